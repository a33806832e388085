"""LNURL server configuration: a frozen dataclass built once at startup.

``load_config()`` reads the process environment (after loading an optional
``.env`` file). Tests and embedding applications construct
``LnurlServerConfig`` directly instead.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

from lnurl_server.constants import CORRELATION_TTL_SECS, LEDGER_TIMEOUT_SECS

_REQUIRED_VARS = ("GRAPHQL_URL_INTERNAL", "PAY_SERVER", "URL_HOST_DOMAIN")


@dataclass(frozen=True)
class LnurlServerConfig:
    graphql_url: str
    pay_server: str
    host_domain: str
    nostr_pubkey: str | None = None
    redis_url: str | None = None
    redis_sentinels: tuple[tuple[str, int], ...] = field(default_factory=tuple)
    redis_master_name: str = "mymaster"
    redis_password: str | None = None
    comment_allowed: int = 0
    ledger_timeout_secs: float = LEDGER_TIMEOUT_SECS
    correlation_ttl_secs: int = CORRELATION_TTL_SECS
    listen_host: str = "0.0.0.0"
    listen_port: int = 3000
    log_level: str = "INFO"

    @property
    def nostr_enabled(self) -> bool:
        return bool(self.nostr_pubkey)

    @property
    def callback_base(self) -> str:
        return self.pay_server.rstrip("/")


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer (got {raw!r})") from exc


def parse_sentinels(raw: str | None) -> tuple[tuple[str, int], ...]:
    """Parse ``host:port,host:port`` into sentinel address tuples.

    A bare host gets the default sentinel port 26379.
    """
    if not raw:
        return ()
    sentinels: list[tuple[str, int]] = []
    for item in raw.split(","):
        item = item.strip()
        if not item:
            continue
        host, _, port = item.partition(":")
        try:
            sentinels.append((host, int(port) if port else 26379))
        except ValueError as exc:
            raise ValueError(f"REDIS_SENTINELS entry {item!r} has a bad port") from exc
    return tuple(sentinels)


def load_config(env_file: str | None = None) -> LnurlServerConfig:
    """Build the configuration from environment variables."""
    load_dotenv(env_file)

    missing = [name for name in _REQUIRED_VARS if not os.getenv(name)]
    if missing:
        raise ValueError(f"Missing required environment variables: {', '.join(missing)}")

    return LnurlServerConfig(
        graphql_url=os.environ["GRAPHQL_URL_INTERNAL"],
        pay_server=os.environ["PAY_SERVER"],
        host_domain=os.environ["URL_HOST_DOMAIN"],
        nostr_pubkey=os.getenv("NOSTR_PUBKEY") or None,
        redis_url=os.getenv("REDIS_URL") or None,
        redis_sentinels=parse_sentinels(os.getenv("REDIS_SENTINELS")),
        redis_master_name=os.getenv("REDIS_MASTER_NAME", "mymaster"),
        redis_password=os.getenv("REDIS_PASSWORD") or None,
        comment_allowed=_env_int("LNURL_COMMENT_ALLOWED", 0),
        ledger_timeout_secs=_env_int("LEDGER_TIMEOUT_SECS", LEDGER_TIMEOUT_SECS),
        correlation_ttl_secs=_env_int("CORRELATION_TTL_SECS", CORRELATION_TTL_SECS),
        listen_host=os.getenv("LNURL_LISTEN_HOST", "0.0.0.0"),
        listen_port=_env_int("LNURL_LISTEN_PORT", 3000),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
    )
