"""LNURL error taxonomy.

Every error carries the ``reason`` shown to the wallet and the HTTP status
used by the endpoints that signal errors out-of-band. Pay endpoints ignore
``status_code`` and always answer 200, as LNURL clients expect.
"""

from __future__ import annotations

from typing import Any


class LnurlError(Exception):
    """Base exception for all protocol-level failures."""

    status_code: int = 400

    def __init__(self, reason: str, status_code: int | None = None) -> None:
        super().__init__(reason)
        self.reason = reason
        if status_code is not None:
            self.status_code = status_code

    def to_dict(self) -> dict[str, Any]:
        return {"status": "ERROR", "reason": self.reason}


# ---------------------------------------------------------------------------
# Caller input (detected before any network call)
# ---------------------------------------------------------------------------


class ValidationError(LnurlError):
    """Malformed or missing caller input."""


class InvalidOtp(ValidationError):
    def __init__(self, reason: str = "Invalid OTP parameter") -> None:
        super().__init__(reason)


class InvalidCardReference(ValidationError):
    def __init__(self, reason: str = "Invalid card ID parameter") -> None:
        super().__init__(reason)


class MissingChallengeNonce(ValidationError):
    def __init__(self, reason: str = "Invalid k1 parameter") -> None:
        super().__init__(reason)


class AmbiguousWithdrawRequest(ValidationError):
    def __init__(self, reason: str = "Invalid parameters for LNURL withdraw") -> None:
        super().__init__(reason)


class SubSatUnsupported(ValidationError):
    def __init__(
        self,
        reason: str = "Millisatoshi amount is not supported, please send a value in full sats.",
    ) -> None:
        super().__init__(reason)


class InvalidZapRequest(ValidationError):
    """The ``nostr`` parameter is not an acceptable NIP-57 zap request."""


# ---------------------------------------------------------------------------
# Lookup / conversion
# ---------------------------------------------------------------------------


class UnknownIdentifier(LnurlError):
    status_code = 404

    def __init__(self, identifier: str) -> None:
        super().__init__(f"Couldn't find user '{identifier}'.")
        self.identifier = identifier


class CurrencyUnsupported(LnurlError):
    """Conversion was requested for the network base unit."""


class QuoteUnavailable(LnurlError):
    status_code = 503

    def __init__(self, reason: str = "No price quote available") -> None:
        super().__init__(reason)


# ---------------------------------------------------------------------------
# Ledger service
# ---------------------------------------------------------------------------


class LedgerError(LnurlError):
    """Base exception for ledger service failures."""

    status_code = 500


class LedgerUnreachable(LedgerError):
    """Transport failure or timeout talking to the ledger."""


class LedgerRejected(LedgerError):
    """The ledger answered with structured application errors."""

    status_code = 400

    def __init__(self, reason: str, messages: list[str] | None = None) -> None:
        super().__init__(reason)
        self.messages = list(messages or [])


class LedgerEmptyResponse(LedgerError):
    """Transport succeeded but the ledger returned no usable payload."""

    def __init__(self, reason: str = "No data returned from server") -> None:
        super().__init__(reason)


class InvoiceIssuanceFailed(LedgerRejected):
    def __init__(self, messages: list[str] | None = None) -> None:
        first = messages[0] if messages else "unknown error"
        super().__init__(f"Failed to get invoice: {first}", messages)


class PairingRejected(LedgerRejected):
    def __init__(self, messages: list[str]) -> None:
        super().__init__(f"Failed to pair Bolt card: {_first(messages)}", messages)


class WithdrawRequestRejected(LedgerRejected):
    def __init__(self, messages: list[str]) -> None:
        super().__init__(
            f"Failed to process withdraw request: {_first(messages)}", messages
        )


class WithdrawCallbackRejected(LedgerRejected):
    def __init__(self, messages: list[str]) -> None:
        super().__init__(
            f"Failed to process withdraw callback: {_first(messages)}", messages
        )


class PairingIncomplete(LedgerEmptyResponse):
    pass


class NoData(LedgerEmptyResponse):
    pass


def _first(messages: list[str]) -> str:
    return messages[0] if messages else "unknown error"
