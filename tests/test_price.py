"""Tests for fiat → msat price conversion."""

from decimal import Decimal
from unittest.mock import AsyncMock

import pytest

from lnurl_server.errors import CurrencyUnsupported, QuoteUnavailable, ValidationError
from lnurl_server.ledger_client import ClientOrigin, LedgerClient
from lnurl_server.price import (
    PriceConverter,
    PriceSnapshot,
    fiat_to_millisats,
    is_base_currency,
    millisats_to_fiat,
)

# BTC at $60,000 → 0.06 US cents per sat.
SNAPSHOT = PriceSnapshot(base=60_000_000_000, offset=12, currency_unit="USDCENT")


def _point(base: int, offset: int, timestamp: int = 0) -> dict:
    return {"timestamp": timestamp, "price": {"base": base, "offset": offset, "currencyUnit": "USDCENT"}}


def _mock_ledger(points: list[dict]) -> AsyncMock:
    ledger = AsyncMock(spec=LedgerClient)
    ledger.btc_price_list = AsyncMock(return_value=points)
    return ledger


class TestPriceSnapshot:
    def test_rate_is_major_units_per_sat(self) -> None:
        assert SNAPSHOT.rate == Decimal("0.0006")

    def test_from_dict(self) -> None:
        snap = PriceSnapshot.from_dict(_point(123, 2, timestamp=99))
        assert snap == PriceSnapshot(base=123, offset=2, currency_unit="USDCENT", timestamp=99)

    def test_from_dict_without_price(self) -> None:
        assert PriceSnapshot.from_dict({"timestamp": 1, "price": None}) is None
        assert PriceSnapshot.from_dict({"timestamp": 1}) is None


class TestConversionMath:
    def test_ten_dollars(self) -> None:
        # 10 / 0.0006 = 16666.67 → 16667 sats
        assert fiat_to_millisats(Decimal("10"), SNAPSHOT) == 16_667_000

    def test_result_is_whole_sats(self) -> None:
        for amount in ("0.01", "1.23", "7", "999.99"):
            assert fiat_to_millisats(Decimal(amount), SNAPSHOT) % 1000 == 0

    def test_same_input_same_output(self) -> None:
        first = fiat_to_millisats(Decimal("3.33"), SNAPSHOT)
        assert fiat_to_millisats(Decimal("3.33"), SNAPSHOT) == first

    def test_round_half_up(self) -> None:
        snap = PriceSnapshot(base=200, offset=0)  # 2 major units per sat
        assert fiat_to_millisats(Decimal("3"), snap) == 2000  # 1.5 → 2
        assert fiat_to_millisats(Decimal("2.9"), snap) == 1000  # 1.45 → 1

    def test_round_trip_within_one_sat(self) -> None:
        for amount in ("0.5", "10", "42.42", "1234.56"):
            fiat = Decimal(amount)
            back = millisats_to_fiat(fiat_to_millisats(fiat, SNAPSHOT), SNAPSHOT)
            assert abs(back - fiat) <= SNAPSHOT.rate

    def test_huge_amount_rejected(self) -> None:
        with pytest.raises(ValidationError, match="Invalid amount"):
            fiat_to_millisats(Decimal("1e30"), SNAPSHOT)

    def test_zero_rate_rejected(self) -> None:
        with pytest.raises(QuoteUnavailable):
            fiat_to_millisats(Decimal("1"), PriceSnapshot(base=0, offset=0))


class TestIsBaseCurrency:
    def test_btc_any_case(self) -> None:
        assert is_base_currency("BTC")
        assert is_base_currency("btc")

    def test_fiat(self) -> None:
        assert not is_base_currency("USD")
        assert not is_base_currency(None)
        assert not is_base_currency("")


class TestPriceConverter:
    @pytest.mark.asyncio
    async def test_uses_latest_point(self) -> None:
        ledger = _mock_ledger([_point(1, 0, 1), _point(60_000_000_000, 12, 2)])
        converter = PriceConverter(ledger)
        origin = ClientOrigin(real_ip="1.1.1.1")
        assert await converter.to_millisats(Decimal("10"), "USD", origin=origin) == 16_667_000
        ledger.btc_price_list.assert_called_once_with("ONE_DAY", origin=origin)

    @pytest.mark.asyncio
    async def test_base_currency_unsupported(self) -> None:
        ledger = _mock_ledger([_point(1, 0)])
        with pytest.raises(CurrencyUnsupported):
            await PriceConverter(ledger).to_millisats(Decimal("1"), "BTC")
        ledger.btc_price_list.assert_not_called()

    @pytest.mark.asyncio
    async def test_empty_series(self) -> None:
        with pytest.raises(QuoteUnavailable):
            await PriceConverter(_mock_ledger([])).to_millisats(Decimal("1"), "USD")

    @pytest.mark.asyncio
    async def test_latest_point_without_price(self) -> None:
        ledger = _mock_ledger([_point(1, 0), {"timestamp": 5, "price": None}])
        with pytest.raises(QuoteUnavailable):
            await PriceConverter(ledger).to_millisats(Decimal("1"), "USD")
