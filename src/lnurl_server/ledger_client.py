"""Async GraphQL client for the ledger (account/wallet/invoice) service."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

import httpx

from lnurl_server.constants import FORWARDED_HEADERS, LEDGER_TIMEOUT_SECS, PRICE_RANGE
from lnurl_server.errors import LedgerEmptyResponse, LedgerRejected, LedgerUnreachable


class PayloadRejected(LedgerRejected):
    """A mutation payload carried its own ``errors`` list.

    Distinct from top-level GraphQL errors so callers can attach their own
    wording to application-level rejections.
    """

    def __init__(self, messages: list[str]) -> None:
        super().__init__(messages[0] if messages else "unknown error", messages)


# ---------------------------------------------------------------------------
# GraphQL documents
# ---------------------------------------------------------------------------

USER_DEFAULT_WALLET_ID = """
query userDefaultWalletId($username: Username!) {
  recipientWalletId: userDefaultWalletId(username: $username)
}
"""

BTC_PRICE_LIST = """
query btcPriceList($range: PriceGraphRange!) {
  btcPriceList(range: $range) {
    timestamp
    price {
      base
      offset
      currencyUnit
    }
  }
}
"""

LN_INVOICE_CREATE_ON_BEHALF_OF_RECIPIENT = """
mutation lnInvoiceCreateOnBehalfOfRecipient(
  $walletId: WalletId!
  $amount: SatAmount!
  $descriptionHash: Hex32Bytes
  $memo: Memo
) {
  mutationData: lnInvoiceCreateOnBehalfOfRecipient(
    input: {
      recipientWalletId: $walletId
      amount: $amount
      descriptionHash: $descriptionHash
      memo: $memo
    }
  ) {
    errors {
      message
    }
    invoice {
      paymentRequest
      paymentHash
    }
  }
}
"""

BOLT_CARD_PAIR = """
mutation PairCard($input: BoltCardPairInput!) {
  boltCardPair(input: $input) {
    errors {
      message
    }
    cardName
    k0
    k1
    k2
    k3
    k4
    lnurlwBase
    protocolName
    protocolVersion
  }
}
"""

BOLT_CARD_WITHDRAW_REQUEST = """
mutation BoltCardWithdrawRequest($input: BoltCardWithdrawRequestInput!) {
  boltCardWithdrawRequest(input: $input) {
    errors {
      message
    }
    tag
    callback
    k1
    minWithdrawable
    maxWithdrawable
    defaultDescription
  }
}
"""

BOLT_CARD_WITHDRAW_CALLBACK = """
mutation BoltCardWithdrawCallback($input: BoltCardWithdrawCallbackInput!) {
  boltCardWithdrawCallback(input: $input) {
    errors {
      message
    }
    status
  }
}
"""


# ---------------------------------------------------------------------------
# Client origin forwarding
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ClientOrigin:
    """Network-origin headers of the wallet request, forwarded to the ledger."""

    real_ip: str | None = None
    forwarded_for: str | None = None

    @classmethod
    def from_headers(cls, headers: Mapping[str, str]) -> ClientOrigin:
        real_ip_header, forwarded_header = FORWARDED_HEADERS
        return cls(
            real_ip=headers.get(real_ip_header),
            forwarded_for=headers.get(forwarded_header),
        )

    def headers(self) -> dict[str, str]:
        real_ip_header, forwarded_header = FORWARDED_HEADERS
        out: dict[str, str] = {}
        if self.real_ip is not None:
            out[real_ip_header] = self.real_ip
        if self.forwarded_for is not None:
            out[forwarded_header] = self.forwarded_for
        return out


_NO_ORIGIN = ClientOrigin()


def _messages(errors: Any) -> list[str]:
    if not isinstance(errors, list):
        return []
    return [str(e.get("message", "")) if isinstance(e, dict) else str(e) for e in errors]


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------


class LedgerClient:
    """Async client for the ledger's GraphQL API.

    Constructor accepts explicit params and reads no env vars. One pooled
    ``httpx.AsyncClient`` per instance; no retries.
    """

    def __init__(self, graphql_url: str, timeout: float = LEDGER_TIMEOUT_SECS) -> None:
        self._graphql_url = graphql_url
        self._client = httpx.AsyncClient(timeout=httpx.Timeout(timeout))

    # -- internal request dispatcher -----------------------------------------

    async def _execute(
        self,
        document: str,
        variables: dict[str, Any],
        origin: ClientOrigin | None = None,
    ) -> dict[str, Any]:
        """POST a GraphQL document and return its ``data`` object.

        Transport failures, timeouts and non-2xx answers raise
        LedgerUnreachable; top-level GraphQL ``errors`` raise LedgerRejected.
        """
        headers = (origin or _NO_ORIGIN).headers()
        try:
            response = await self._client.post(
                self._graphql_url,
                json={"query": document, "variables": variables},
                headers=headers,
            )
        except httpx.TimeoutException as exc:
            raise LedgerUnreachable(f"Ledger request timed out: {exc}") from exc
        except httpx.HTTPError as exc:
            raise LedgerUnreachable(f"GraphQL request failed: {exc}") from exc

        if response.status_code >= 400:
            messages: list[str] = []
            try:
                body = response.json()
            except ValueError:
                body = None
            if isinstance(body, dict):
                messages = _messages(body.get("errors"))
            raise LedgerUnreachable(", ".join(messages) or "GraphQL request failed")

        try:
            body = response.json()
        except ValueError as exc:
            raise LedgerUnreachable("Ledger returned a non-JSON response") from exc
        if not isinstance(body, dict):
            raise LedgerUnreachable("Ledger returned an unexpected response")

        errors = _messages(body.get("errors"))
        if errors:
            raise LedgerRejected(f"GraphQL errors: {', '.join(errors)}", errors)

        return body.get("data") or {}

    async def _mutate(
        self,
        document: str,
        variables: dict[str, Any],
        field: str,
        origin: ClientOrigin | None = None,
    ) -> dict[str, Any]:
        """Run a mutation and unwrap its payload object."""
        data = await self._execute(document, variables, origin)
        payload = data.get(field)
        if not payload:
            raise LedgerEmptyResponse()
        errors = _messages(payload.get("errors"))
        if errors:
            raise PayloadRejected(errors)
        return payload

    # -- public API methods ---------------------------------------------------

    async def default_wallet_id(
        self, username: str, origin: ClientOrigin | None = None
    ) -> str | None:
        """Resolve a username to the wallet that receives its payments."""
        data = await self._execute(USER_DEFAULT_WALLET_ID, {"username": username}, origin)
        return data.get("recipientWalletId") or None

    async def btc_price_list(
        self, range_: str = PRICE_RANGE, origin: ClientOrigin | None = None
    ) -> list[dict[str, Any]]:
        """Recent BTC price points, oldest first."""
        data = await self._execute(BTC_PRICE_LIST, {"range": range_}, origin)
        return list(data.get("btcPriceList") or [])

    async def create_invoice_for_recipient(
        self,
        wallet_id: str,
        amount_sats: int,
        *,
        description_hash: str | None = None,
        memo: str | None = None,
        origin: ClientOrigin | None = None,
    ) -> dict[str, Any]:
        """Issue an invoice on behalf of ``wallet_id``. Returns the payload dict."""
        variables = {
            "walletId": wallet_id,
            "amount": amount_sats,
            "descriptionHash": description_hash,
            "memo": memo,
        }
        return await self._mutate(
            LN_INVOICE_CREATE_ON_BEHALF_OF_RECIPIENT, variables, "mutationData", origin
        )

    async def bolt_card_pair(
        self, otp: str, base_url: str, origin: ClientOrigin | None = None
    ) -> dict[str, Any]:
        return await self._mutate(
            BOLT_CARD_PAIR,
            {"input": {"otp": otp, "baseUrl": base_url}},
            "boltCardPair",
            origin,
        )

    async def bolt_card_withdraw_request(
        self,
        card_id: str,
        p: str,
        c: str,
        base_url: str,
        origin: ClientOrigin | None = None,
    ) -> dict[str, Any]:
        return await self._mutate(
            BOLT_CARD_WITHDRAW_REQUEST,
            {"input": {"cardId": card_id, "p": p, "c": c, "baseUrl": base_url}},
            "boltCardWithdrawRequest",
            origin,
        )

    async def bolt_card_withdraw_callback(
        self, k1: str, payment_request: str, origin: ClientOrigin | None = None
    ) -> dict[str, Any]:
        return await self._mutate(
            BOLT_CARD_WITHDRAW_CALLBACK,
            {"input": {"k1": k1, "pr": payment_request}},
            "boltCardWithdrawCallback",
            origin,
        )

    # -- lifecycle ------------------------------------------------------------

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    async def __aenter__(self) -> LedgerClient:
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.close()
