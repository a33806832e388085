"""LNURL server for Lightning Address payments and bolt card withdrawals.

Protocol layer in front of a GraphQL ledger service.
"""

__version__ = "0.1.0"

from lnurl_server.config import LnurlServerConfig, load_config
from lnurl_server.errors import LnurlError, ValidationError, LedgerError
from lnurl_server.ledger_client import LedgerClient, ClientOrigin
from lnurl_server.price import PriceConverter, PriceSnapshot
from lnurl_server.correlation import (
    CorrelationStore,
    CorrelationWriter,
    InMemoryCorrelationStore,
    RedisCorrelationStore,
)
from lnurl_server.metadata import build_metadata, metadata_hash
from lnurl_server.pay import PayRequestService, PayCallbackService, PayRequestDescriptor
from lnurl_server.card import CardPairingService, BoltCardKeys
from lnurl_server.withdraw import (
    WithdrawChallengeService,
    WithdrawRedemptionService,
    classify_withdraw_request,
)
from lnurl_server.server import LnurlServer

__all__ = [
    "LnurlServerConfig",
    "load_config",
    "LnurlError",
    "ValidationError",
    "LedgerError",
    "LedgerClient",
    "ClientOrigin",
    "PriceConverter",
    "PriceSnapshot",
    "CorrelationStore",
    "CorrelationWriter",
    "InMemoryCorrelationStore",
    "RedisCorrelationStore",
    "build_metadata",
    "metadata_hash",
    "PayRequestService",
    "PayCallbackService",
    "PayRequestDescriptor",
    "CardPairingService",
    "BoltCardKeys",
    "WithdrawChallengeService",
    "WithdrawRedemptionService",
    "classify_withdraw_request",
    "LnurlServer",
]
