"""LNURL-withdraw for paired bolt cards.

A card tap hits the withdraw endpoint with ``p``/``c`` and receives a
challenge carrying the ledger-issued nonce ``k1``. The wallet then calls the
same endpoint with ``k1`` and an invoice ``pr`` to redeem it. The ledger
verifies the card signature and enforces single use and expiry of ``k1``;
this module only dispatches and forwards.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Union

from lnurl_server.errors import (
    AmbiguousWithdrawRequest,
    InvalidCardReference,
    LedgerEmptyResponse,
    MissingChallengeNonce,
    NoData,
    WithdrawCallbackRejected,
    WithdrawRequestRejected,
)
from lnurl_server.ledger_client import PayloadRejected

if TYPE_CHECKING:
    from lnurl_server.config import LnurlServerConfig
    from lnurl_server.ledger_client import ClientOrigin, LedgerClient

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Request shapes
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ChallengeRequest:
    card_id: str
    p: str
    c: str


@dataclass(frozen=True)
class RedemptionRequest:
    k1: str | None
    payment_request: str


WithdrawRequest = Union[ChallengeRequest, RedemptionRequest]


def classify_withdraw_request(
    card_id: str | None, params: Mapping[str, str]
) -> WithdrawRequest:
    """Pick challenge issuance or redemption from the parameter shape.

    A payment request always selects redemption, even alongside ``p``/``c``.
    """
    if not card_id:
        raise InvalidCardReference()
    p, c, pr = params.get("p"), params.get("c"), params.get("pr")
    if pr:
        return RedemptionRequest(k1=params.get("k1"), payment_request=pr)
    if p and c:
        return ChallengeRequest(card_id=card_id, p=p, c=c)
    raise AmbiguousWithdrawRequest()


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class WithdrawChallenge:
    card_id: str
    k1: str
    callback_url: str
    min_withdrawable_msat: int
    max_withdrawable_msat: int
    default_description: str
    tag: str = "withdrawRequest"

    def to_dict(self) -> dict[str, Any]:
        return {
            "tag": self.tag,
            "callback": self.callback_url,
            "k1": self.k1,
            "minWithdrawable": self.min_withdrawable_msat,
            "maxWithdrawable": self.max_withdrawable_msat,
            "defaultDescription": self.default_description,
        }


@dataclass(frozen=True)
class WithdrawOutcome:
    status: str

    def to_dict(self) -> dict[str, Any]:
        return {"status": self.status}


# ---------------------------------------------------------------------------
# Services
# ---------------------------------------------------------------------------


class WithdrawChallengeService:
    def __init__(self, config: LnurlServerConfig, ledger: LedgerClient) -> None:
        self._config = config
        self._ledger = ledger

    async def issue_challenge(
        self,
        card_id: str | None,
        p: str,
        c: str,
        base_url: str | None = None,
        origin: ClientOrigin | None = None,
    ) -> WithdrawChallenge:
        if not card_id:
            raise InvalidCardReference()
        base_url = base_url or self._config.callback_base
        try:
            payload = await self._ledger.bolt_card_withdraw_request(
                card_id, p, c, base_url, origin=origin
            )
        except PayloadRejected as exc:
            logger.warning("Withdraw request for card %s rejected: %s", card_id, exc.messages)
            raise WithdrawRequestRejected(exc.messages) from exc
        except LedgerEmptyResponse as exc:
            logger.error("No data returned from withdraw request for card %s.", card_id)
            raise NoData() from exc

        return WithdrawChallenge(
            card_id=card_id,
            k1=str(payload.get("k1") or ""),
            callback_url=str(payload.get("callback") or ""),
            min_withdrawable_msat=int(payload.get("minWithdrawable") or 0),
            max_withdrawable_msat=int(payload.get("maxWithdrawable") or 0),
            default_description=str(payload.get("defaultDescription") or ""),
            tag=str(payload.get("tag") or "withdrawRequest"),
        )


class WithdrawRedemptionService:
    def __init__(self, ledger: LedgerClient) -> None:
        self._ledger = ledger

    async def redeem(
        self,
        k1: str | None,
        payment_request: str,
        origin: ClientOrigin | None = None,
    ) -> WithdrawOutcome:
        """Forward a redemption. Repeat redemptions get whatever the ledger says."""
        if not k1:
            raise MissingChallengeNonce()
        try:
            payload = await self._ledger.bolt_card_withdraw_callback(
                k1, payment_request, origin=origin
            )
        except PayloadRejected as exc:
            logger.warning("Withdraw redemption rejected: %s", exc.messages)
            raise WithdrawCallbackRejected(exc.messages) from exc
        except LedgerEmptyResponse as exc:
            logger.error("No data returned from withdraw redemption.")
            raise NoData() from exc

        return WithdrawOutcome(status=str(payload.get("status") or ""))
