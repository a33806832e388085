"""aiohttp application exposing the LNURL endpoints.

Routes (all GET):
  /lnurlp/{username}                 pay request (also under /.well-known/)
  /lnurlp/{username}/callback        pay callback, returns the invoice
  /api/bolt-card/{otp}               bolt card pairing
  /api/lnurl/withdraw/{card_id}      withdraw challenge or redemption
  /health                            liveness

Pay endpoints report errors in-band with HTTP 200, as LNURL wallets expect.
Card endpoints use the error's HTTP status (400 for bad input and ledger
rejections, 500 for an unreachable ledger or an empty answer).
"""

from __future__ import annotations

import logging
from typing import Any

from aiohttp import web

from lnurl_server.card import CardPairingService
from lnurl_server.config import LnurlServerConfig, load_config
from lnurl_server.correlation import (
    CorrelationStore,
    CorrelationWriter,
    InMemoryCorrelationStore,
    RedisCorrelationStore,
)
from lnurl_server.errors import LnurlError
from lnurl_server.ledger_client import ClientOrigin, LedgerClient
from lnurl_server.pay import PayCallbackService, PayRequestService
from lnurl_server.withdraw import (
    ChallengeRequest,
    WithdrawChallengeService,
    WithdrawRedemptionService,
    classify_withdraw_request,
)

logger = logging.getLogger(__name__)

_UNEXPECTED = {"status": "ERROR", "reason": "unexpected error"}


def _in_band_error(exc: LnurlError) -> web.Response:
    return web.json_response(exc.to_dict())


def _status_error(exc: LnurlError) -> web.Response:
    return web.json_response(exc.to_dict(), status=exc.status_code)


class LnurlServer:
    """Wires the LNURL services to HTTP routes.

    Owns the ledger client and correlation store it is given and closes them
    on application cleanup.
    """

    def __init__(
        self,
        config: LnurlServerConfig,
        ledger: LedgerClient,
        correlation_store: CorrelationStore | None = None,
    ) -> None:
        self._config = config
        self._ledger = ledger
        self._store = correlation_store
        self._correlations = (
            CorrelationWriter(correlation_store, config.correlation_ttl_secs)
            if correlation_store is not None
            else None
        )
        self._pay_requests = PayRequestService(config, ledger)
        self._pay_callbacks = PayCallbackService(config, ledger, self._correlations)
        self._pairing = CardPairingService(config, ledger)
        self._challenges = WithdrawChallengeService(config, ledger)
        self._redemptions = WithdrawRedemptionService(ledger)

    @classmethod
    def from_config(cls, config: LnurlServerConfig) -> LnurlServer:
        ledger = LedgerClient(config.graphql_url, timeout=config.ledger_timeout_secs)
        store: CorrelationStore | None = None
        if config.nostr_enabled:
            if config.redis_url or config.redis_sentinels:
                store = RedisCorrelationStore.from_config(config)
            else:
                logger.warning(
                    "Nostr zaps enabled without Redis; zap requests are kept in process memory."
                )
                store = InMemoryCorrelationStore()
        return cls(config, ledger, store)

    @property
    def correlations(self) -> CorrelationWriter | None:
        return self._correlations

    def build_app(self) -> web.Application:
        app = web.Application()
        app.router.add_get("/lnurlp/{username}", self._handle_pay_request)
        app.router.add_get("/.well-known/lnurlp/{username}", self._handle_pay_request)
        app.router.add_get("/lnurlp/{username}/callback", self._handle_pay_callback)
        app.router.add_get("/api/bolt-card/{otp}", self._handle_card_pair)
        app.router.add_get("/api/lnurl/withdraw/{card_id}", self._handle_withdraw)
        app.router.add_get("/health", self._handle_health)
        app.on_cleanup.append(self._on_cleanup)
        return app

    async def _on_cleanup(self, app: web.Application) -> None:
        if self._correlations is not None:
            await self._correlations.drain()
        if self._store is not None:
            await self._store.close()
        await self._ledger.close()

    # -- Handlers ----------------------------------------------------------------

    async def _handle_pay_request(self, request: web.Request) -> web.Response:
        """GET /lnurlp/{username}?amount=&currency="""
        username = request.match_info["username"]
        try:
            descriptor = await self._pay_requests.resolve(
                username,
                amount=request.query.get("amount"),
                currency=request.query.get("currency"),
                origin=ClientOrigin.from_headers(request.headers),
            )
        except LnurlError as exc:
            return _in_band_error(exc)
        except Exception:
            logger.exception("Unexpected error resolving pay request for %r", username)
            return web.json_response(_UNEXPECTED)
        return web.json_response(descriptor.to_dict())

    async def _handle_pay_callback(self, request: web.Request) -> web.Response:
        """GET /lnurlp/{username}/callback?amount=&nostr=&comment="""
        username = request.match_info["username"]
        try:
            invoice = await self._pay_callbacks.create_invoice(
                username,
                request.query.get("amount"),
                nostr=request.query.get("nostr"),
                comment=request.query.get("comment"),
                origin=ClientOrigin.from_headers(request.headers),
            )
        except LnurlError as exc:
            return _in_band_error(exc)
        except Exception:
            logger.exception("Unexpected error getting invoice for %r", username)
            return web.json_response(_UNEXPECTED)
        return web.json_response(invoice.to_dict())

    async def _handle_card_pair(self, request: web.Request) -> web.Response:
        """GET /api/bolt-card/{otp}"""
        try:
            keys = await self._pairing.pair(
                request.match_info.get("otp"),
                origin=ClientOrigin.from_headers(request.headers),
            )
        except LnurlError as exc:
            return _status_error(exc)
        except Exception:
            logger.exception("Unexpected error pairing bolt card")
            return web.json_response(_UNEXPECTED, status=500)
        return web.json_response(keys.to_dict())

    async def _handle_withdraw(self, request: web.Request) -> web.Response:
        """GET /api/lnurl/withdraw/{card_id}?p=&c=  or  ?k1=&pr="""
        card_id = request.match_info.get("card_id")
        origin = ClientOrigin.from_headers(request.headers)
        try:
            shape = classify_withdraw_request(card_id, request.query)
            result: Any
            if isinstance(shape, ChallengeRequest):
                result = await self._challenges.issue_challenge(
                    shape.card_id, shape.p, shape.c, origin=origin
                )
            else:
                result = await self._redemptions.redeem(
                    shape.k1, shape.payment_request, origin=origin
                )
        except LnurlError as exc:
            return _status_error(exc)
        except Exception:
            logger.exception("Unexpected error handling withdraw for card %s", card_id)
            return web.json_response(_UNEXPECTED, status=500)
        return web.json_response(result.to_dict())

    async def _handle_health(self, request: web.Request) -> web.Response:
        """GET /health"""
        return web.json_response({
            "status": "ok",
            "nostr_enabled": self._config.nostr_enabled,
            "pending_correlation_writes": (
                self._correlations.pending_count if self._correlations else 0
            ),
        })


def main() -> None:
    config = load_config()
    logging.basicConfig(
        level=config.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    server = LnurlServer.from_config(config)
    logger.info(
        "Starting LNURL server for %s (nostr %s).",
        config.host_domain, "enabled" if config.nostr_enabled else "disabled",
    )
    web.run_app(server.build_app(), host=config.listen_host, port=config.listen_port)


if __name__ == "__main__":
    main()
