"""Bolt card pairing: one-time code → card keys for the NFC programmer."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from lnurl_server.errors import (
    InvalidOtp,
    LedgerEmptyResponse,
    PairingIncomplete,
    PairingRejected,
)
from lnurl_server.ledger_client import PayloadRejected

if TYPE_CHECKING:
    from lnurl_server.config import LnurlServerConfig
    from lnurl_server.ledger_client import ClientOrigin, LedgerClient

logger = logging.getLogger(__name__)

_OTP_PATTERN = re.compile(r"^[A-Za-z0-9_-]{1,128}$")


@dataclass(frozen=True)
class BoltCardKeys:
    """Key material returned once at pairing time. Never stored here."""

    card_name: str
    k0: str
    k1: str
    k2: str
    k3: str
    k4: str
    lnurlw_base: str
    protocol_name: str
    protocol_version: str

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> BoltCardKeys:
        return cls(
            card_name=str(payload.get("cardName") or ""),
            k0=str(payload.get("k0") or ""),
            k1=str(payload.get("k1") or ""),
            k2=str(payload.get("k2") or ""),
            k3=str(payload.get("k3") or ""),
            k4=str(payload.get("k4") or ""),
            lnurlw_base=str(payload.get("lnurlwBase") or ""),
            protocol_name=str(payload.get("protocolName") or ""),
            protocol_version=str(payload.get("protocolVersion") or ""),
        )

    def to_dict(self) -> dict[str, Any]:
        # Field names follow the Bolt Card programmer app's pairing format.
        return {
            "card_name": self.card_name,
            "id": "1",
            "k0": self.k0,
            "k1": self.k1,
            "k2": self.k2,
            "k3": self.k3,
            "k4": self.k4,
            "lnurlw_base": self.lnurlw_base,
            "protocol_name": self.protocol_name,
            "protocol_version": self.protocol_version,
        }


def validate_otp(otp: str | None) -> str:
    if not otp or not _OTP_PATTERN.match(otp):
        raise InvalidOtp()
    return otp


class CardPairingService:
    def __init__(self, config: LnurlServerConfig, ledger: LedgerClient) -> None:
        self._config = config
        self._ledger = ledger

    async def pair(
        self,
        otp: str | None,
        base_url: str | None = None,
        origin: ClientOrigin | None = None,
    ) -> BoltCardKeys:
        """Exchange a pairing code for card keys.

        Transport failures surface as LedgerUnreachable and top-level GraphQL
        errors as LedgerRejected, both unchanged.
        """
        otp = validate_otp(otp)
        base_url = base_url or self._config.callback_base
        try:
            payload = await self._ledger.bolt_card_pair(otp, base_url, origin=origin)
        except PayloadRejected as exc:
            logger.warning("Bolt card pairing rejected: %s", exc.messages)
            raise PairingRejected(exc.messages) from exc
        except LedgerEmptyResponse as exc:
            logger.error("No data returned from bolt card pairing.")
            raise PairingIncomplete() from exc

        logger.info("Paired bolt card %r.", payload.get("cardName"))
        return BoltCardKeys.from_payload(payload)
