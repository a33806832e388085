"""Short-lived payment-hash → zap-request correlation store.

When a zap request funds an invoice, the raw event is stored under the
invoice's payment hash so the settlement notifier can publish a zap receipt
later. Writes are fire-and-forget: they run as detached tasks and a failure
is logged, never returned to the wallet.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from lnurl_server.constants import (
    CORRELATION_KEY_PREFIX,
    CORRELATION_STORE_TIMEOUT_SECS,
    CORRELATION_TTL_SECS,
)

if TYPE_CHECKING:
    from lnurl_server.config import LnurlServerConfig

logger = logging.getLogger(__name__)


@runtime_checkable
class CorrelationStore(Protocol):
    """Async TTL key/value store.

    The backend is trusted to provide atomic per-key set with expiry.
    """

    async def set(self, key: str, value: str, ttl_secs: int) -> None: ...

    async def close(self) -> None: ...


def correlation_key(payment_hash: str) -> str:
    return f"{CORRELATION_KEY_PREFIX}{payment_hash}"


class RedisCorrelationStore:
    """Redis-backed store, reached by URL or through Sentinel."""

    def __init__(self, client) -> None:
        self._client = client

    @classmethod
    def from_config(cls, config: LnurlServerConfig) -> RedisCorrelationStore:
        timeouts = {
            "socket_timeout": CORRELATION_STORE_TIMEOUT_SECS,
            "socket_connect_timeout": CORRELATION_STORE_TIMEOUT_SECS,
        }
        if config.redis_sentinels:
            from redis.asyncio.sentinel import Sentinel

            sentinel = Sentinel(
                list(config.redis_sentinels),
                sentinel_kwargs={"password": config.redis_password, **timeouts},
                password=config.redis_password,
                **timeouts,
            )
            return cls(sentinel.master_for(config.redis_master_name))

        from redis.asyncio import from_url

        if not config.redis_url:
            raise ValueError("REDIS_URL or REDIS_SENTINELS is required for Redis storage")
        return cls(from_url(config.redis_url, password=config.redis_password, **timeouts))

    async def set(self, key: str, value: str, ttl_secs: int) -> None:
        await self._client.set(key, value, ex=ttl_secs)

    async def close(self) -> None:
        await self._client.aclose()


class InMemoryCorrelationStore:
    """Process-local store for development and tests. Entries expire lazily."""

    def __init__(self) -> None:
        self._entries: dict[str, tuple[str, float]] = {}

    async def set(self, key: str, value: str, ttl_secs: int) -> None:
        self._purge()
        self._entries[key] = (value, time.monotonic() + ttl_secs)

    async def get(self, key: str) -> str | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if expires_at <= time.monotonic():
            del self._entries[key]
            return None
        return value

    async def close(self) -> None:
        self._entries.clear()

    def _purge(self) -> None:
        now = time.monotonic()
        self._entries = {k: e for k, e in self._entries.items() if e[1] > now}

    def __len__(self) -> int:
        return len(self._entries)


class CorrelationWriter:
    """Spawns detached correlation writes and keeps them alive until done."""

    def __init__(self, store: CorrelationStore, ttl_secs: int = CORRELATION_TTL_SECS) -> None:
        self._store = store
        self._ttl_secs = ttl_secs
        self._pending: set[asyncio.Task[None]] = set()

    def record(self, payment_hash: str, event_json: str) -> asyncio.Task[None]:
        """Schedule a write and return immediately."""
        task = asyncio.create_task(self._write(payment_hash, event_json))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def _write(self, payment_hash: str, event_json: str) -> None:
        try:
            await self._store.set(correlation_key(payment_hash), event_json, self._ttl_secs)
        except Exception:
            logger.warning(
                "Failed to store zap request for payment hash %s.", payment_hash,
                exc_info=True,
            )

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    async def drain(self, timeout: float = 5.0) -> None:
        """Wait briefly for in-flight writes, then cancel the rest."""
        if not self._pending:
            return
        _, still_pending = await asyncio.wait(set(self._pending), timeout=timeout)
        for task in still_pending:
            task.cancel()
        if still_pending:
            logger.warning("Cancelled %d unfinished correlation write(s).", len(still_pending))
