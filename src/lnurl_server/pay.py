"""LNURL-pay: pay-request descriptor (phase 1) and invoice callback (phase 2).

The two phases share no server-side state. They are tied together by the
identifier and by the metadata string, which both phases build with
``build_metadata`` so the default description hash always matches what the
payer saw.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import TYPE_CHECKING, Any, Union

from lnurl_server.constants import MAX_SENDABLE_MSAT, MIN_SENDABLE_MSAT, MSAT_PER_SAT
from lnurl_server.errors import (
    InvoiceIssuanceFailed,
    LedgerEmptyResponse,
    LedgerRejected,
    SubSatUnsupported,
    UnknownIdentifier,
    ValidationError,
)
from lnurl_server.metadata import build_metadata, sha256_hex
from lnurl_server.nostr import validate_zap_request
from lnurl_server.price import PriceConverter, is_base_currency

if TYPE_CHECKING:
    from lnurl_server.config import LnurlServerConfig
    from lnurl_server.correlation import CorrelationWriter
    from lnurl_server.ledger_client import ClientOrigin, LedgerClient

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PayRequestDescriptor:
    identifier: str
    callback_url: str
    min_sendable_msat: int
    max_sendable_msat: int
    metadata: str
    nostr_pubkey: str | None = None
    comment_allowed: int = 0

    @property
    def nostr_enabled(self) -> bool:
        return bool(self.nostr_pubkey)

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {
            "callback": self.callback_url,
            "minSendable": self.min_sendable_msat,
            "maxSendable": self.max_sendable_msat,
            "metadata": self.metadata,
            "tag": "payRequest",
        }
        if self.comment_allowed > 0:
            body["commentAllowed"] = self.comment_allowed
        if self.nostr_enabled:
            body["allowsNostr"] = True
            body["nostrPubkey"] = self.nostr_pubkey
        return body


@dataclass(frozen=True)
class DescriptionHash:
    """SHA-256 (hex) committed into the invoice's description hash."""

    hex: str


@dataclass(frozen=True)
class Memo:
    """Free-text invoice description, sent instead of a hash."""

    text: str


Commitment = Union[DescriptionHash, Memo]


@dataclass(frozen=True)
class IssuedInvoice:
    payment_request: str
    payment_hash: str

    def to_dict(self) -> dict[str, Any]:
        return {"pr": self.payment_request, "routes": []}


# ---------------------------------------------------------------------------
# Shared helpers
# ---------------------------------------------------------------------------


async def resolve_wallet_id(
    ledger: LedgerClient, identifier: str, origin: ClientOrigin | None = None
) -> str:
    """Look up the wallet paid for ``identifier``. Raises UnknownIdentifier."""
    try:
        wallet_id = await ledger.default_wallet_id(identifier, origin=origin)
    except LedgerRejected as exc:
        logger.info("Ledger rejected wallet lookup for %r: %s", identifier, exc.reason)
        raise UnknownIdentifier(identifier) from exc
    if not wallet_id:
        raise UnknownIdentifier(identifier)
    return wallet_id


def parse_callback_amount(amount: str) -> int:
    """Return whole sats for a payer-supplied msat amount string.

    Sub-sat precision is rejected rather than truncated.
    """
    try:
        amount_msat = int(amount)
    except (TypeError, ValueError) as exc:
        raise SubSatUnsupported() from exc
    if str(amount_msat) != amount:
        raise SubSatUnsupported()
    if amount_msat % MSAT_PER_SAT != 0:
        raise SubSatUnsupported()
    if amount_msat <= 0:
        raise ValidationError("Invalid amount")
    return amount_msat // MSAT_PER_SAT


def select_commitment(
    config: LnurlServerConfig,
    identifier: str,
    amount_msat: int,
    nostr: str | None = None,
    comment: str | None = None,
) -> tuple[Commitment, bool]:
    """Pick the invoice commitment. Returns ``(commitment, is_zap)``.

    Priority: zap request (nostr enabled) > comment memo > metadata hash.
    """
    if config.nostr_enabled and nostr:
        validate_zap_request(nostr, amount_msat)
        return DescriptionHash(sha256_hex(nostr)), True
    if comment:
        if 0 < config.comment_allowed < len(comment):
            raise ValidationError(
                f"Comment must be {config.comment_allowed} characters or less"
            )
        return Memo(comment), False
    return DescriptionHash(sha256_hex(build_metadata(identifier, config.host_domain))), False


# ---------------------------------------------------------------------------
# Phase 1: pay request
# ---------------------------------------------------------------------------


class PayRequestService:
    """Resolves an identifier into LNURL-pay bounds and metadata."""

    def __init__(
        self,
        config: LnurlServerConfig,
        ledger: LedgerClient,
        prices: PriceConverter | None = None,
    ) -> None:
        self._config = config
        self._ledger = ledger
        self._prices = prices or PriceConverter(ledger)

    async def _pinned_amount_msat(
        self,
        amount: str | None,
        currency: str | None,
        origin: ClientOrigin | None,
    ) -> int | None:
        if not amount:
            return None

        if currency and not is_base_currency(currency):
            try:
                value = Decimal(amount)
            except InvalidOperation as exc:
                raise ValidationError("Invalid amount") from exc
            if not value.is_finite() or value <= 0:
                raise ValidationError("Invalid amount")
            return await self._prices.to_millisats(value, currency, origin=origin)

        try:
            sats = int(amount)
        except ValueError:
            logger.debug("Ignoring non-integer amount %r.", amount)
            return None
        return sats * MSAT_PER_SAT if sats > 0 else None

    async def resolve(
        self,
        identifier: str,
        amount: str | None = None,
        currency: str | None = None,
        origin: ClientOrigin | None = None,
    ) -> PayRequestDescriptor:
        if not identifier:
            raise ValidationError("Invalid request")

        amount_msat = await self._pinned_amount_msat(amount, currency, origin)
        await resolve_wallet_id(self._ledger, identifier, origin)

        if amount_msat:
            min_sendable = max_sendable = amount_msat
        else:
            min_sendable, max_sendable = MIN_SENDABLE_MSAT, MAX_SENDABLE_MSAT

        return PayRequestDescriptor(
            identifier=identifier,
            callback_url=f"{self._config.callback_base}/lnurlp/{identifier}/callback",
            min_sendable_msat=min_sendable,
            max_sendable_msat=max_sendable,
            metadata=build_metadata(identifier, self._config.host_domain),
            nostr_pubkey=self._config.nostr_pubkey,
            comment_allowed=self._config.comment_allowed,
        )


# ---------------------------------------------------------------------------
# Phase 2: callback
# ---------------------------------------------------------------------------


class PayCallbackService:
    """Validates the callback amount and issues an invoice through the ledger."""

    def __init__(
        self,
        config: LnurlServerConfig,
        ledger: LedgerClient,
        correlations: CorrelationWriter | None = None,
    ) -> None:
        self._config = config
        self._ledger = ledger
        self._correlations = correlations

    async def create_invoice(
        self,
        identifier: str,
        amount: str | None,
        nostr: str | None = None,
        comment: str | None = None,
        origin: ClientOrigin | None = None,
    ) -> IssuedInvoice:
        if not identifier or not amount:
            raise ValidationError("Invalid request")

        amount_sats = parse_callback_amount(amount)
        commitment, is_zap = select_commitment(
            self._config, identifier, amount_sats * MSAT_PER_SAT, nostr, comment
        )
        wallet_id = await resolve_wallet_id(self._ledger, identifier, origin)

        if isinstance(commitment, DescriptionHash):
            kwargs = {"description_hash": commitment.hex}
        else:
            kwargs = {"memo": commitment.text}

        try:
            payload = await self._ledger.create_invoice_for_recipient(
                wallet_id, amount_sats, origin=origin, **kwargs
            )
        except LedgerRejected as exc:
            logger.warning("Invoice issuance rejected for %r: %s", identifier, exc.messages)
            raise InvoiceIssuanceFailed(exc.messages) from exc
        except LedgerEmptyResponse as exc:
            raise InvoiceIssuanceFailed() from exc

        invoice = payload.get("invoice") or {}
        payment_request = invoice.get("paymentRequest")
        payment_hash = invoice.get("paymentHash")
        if not payment_request or not payment_hash:
            logger.warning("Ledger returned no invoice for %r.", identifier)
            raise InvoiceIssuanceFailed()

        if is_zap:
            if self._correlations is not None:
                self._correlations.record(payment_hash, nostr)
            else:
                logger.warning(
                    "Zap request for %s not recorded: no correlation store configured.",
                    payment_hash,
                )

        logger.info("Issued %d sat invoice for %r (%s).", amount_sats, identifier, payment_hash)
        return IssuedInvoice(payment_request=payment_request, payment_hash=payment_hash)
