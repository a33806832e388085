"""Fiat → millisatoshi conversion from the ledger's price series.

A ledger price point encodes its rate as fixed point: ``base / 10**offset``
in cents per sat. Dividing by 100 gives whole major units per sat.
Conversions round to the nearest whole sat before expanding to msat, so the
same fiat amount at the same rate always yields the same msat amount, while
msat → fiat → msat may drift by up to one sat.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import TYPE_CHECKING, Any

from lnurl_server.constants import BASE_CURRENCY, MSAT_PER_SAT, PRICE_RANGE
from lnurl_server.errors import CurrencyUnsupported, QuoteUnavailable, ValidationError

if TYPE_CHECKING:
    from lnurl_server.ledger_client import ClientOrigin, LedgerClient

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PriceSnapshot:
    """One point of the ledger's BTC price series."""

    base: int
    offset: int
    currency_unit: str = ""
    timestamp: int | None = None

    @property
    def rate(self) -> Decimal:
        """Major fiat units per sat."""
        return Decimal(self.base) / (Decimal(10) ** self.offset) / 100

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PriceSnapshot | None:
        """Build from a ``btcPriceList`` entry. None if the point has no price."""
        price = data.get("price")
        if not price or price.get("base") is None or price.get("offset") is None:
            return None
        return cls(
            base=int(price["base"]),
            offset=int(price["offset"]),
            currency_unit=str(price.get("currencyUnit", "")),
            timestamp=data.get("timestamp"),
        )


def fiat_to_millisats(amount: Decimal, snapshot: PriceSnapshot) -> int:
    """Convert a major-unit fiat amount to msat, rounded to a whole sat."""
    rate = snapshot.rate
    if rate <= 0:
        raise QuoteUnavailable("Price quote has a non-positive rate")
    try:
        sats = (Decimal(amount) / rate).quantize(Decimal(1), rounding=ROUND_HALF_UP)
    except InvalidOperation as exc:
        raise ValidationError("Invalid amount") from exc
    return int(sats) * MSAT_PER_SAT


def millisats_to_fiat(amount_msat: int, snapshot: PriceSnapshot) -> Decimal:
    """Inverse of ``fiat_to_millisats`` (no rounding applied)."""
    return Decimal(amount_msat) / MSAT_PER_SAT * snapshot.rate


def is_base_currency(currency: str | None) -> bool:
    return bool(currency) and currency.strip().upper() == BASE_CURRENCY


class PriceConverter:
    """Converts fiat amounts using the most recent ledger price point."""

    def __init__(self, ledger: LedgerClient) -> None:
        self._ledger = ledger

    async def latest_snapshot(self, origin: ClientOrigin | None = None) -> PriceSnapshot:
        points = await self._ledger.btc_price_list(PRICE_RANGE, origin=origin)
        if not points:
            raise QuoteUnavailable()
        snapshot = PriceSnapshot.from_dict(points[-1])
        if snapshot is None:
            raise QuoteUnavailable("Latest price point has no price")
        return snapshot

    async def to_millisats(
        self,
        amount: Decimal,
        currency: str,
        origin: ClientOrigin | None = None,
    ) -> int:
        if is_base_currency(currency):
            raise CurrencyUnsupported(
                f"{BASE_CURRENCY} amounts are not converted; pass them in sats"
            )
        snapshot = await self.latest_snapshot(origin)
        amount_msat = fiat_to_millisats(amount, snapshot)
        logger.debug(
            "Converted %s %s to %d msat (rate %s %s/sat).",
            amount, currency, amount_msat, snapshot.rate, snapshot.currency_unit,
        )
        return amount_msat
