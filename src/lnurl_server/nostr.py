"""NIP-57 zap request (kind 9734) checks for the pay callback.

The ``nostr`` callback parameter is hashed verbatim into the invoice, so it
is only accepted if it is a signed kind 9734 event with exactly one ``p``
tag, and any ``amount`` tag matches the requested amount.
"""

from __future__ import annotations

import logging

from nostr_sdk import Event as NostrEvent

from lnurl_server.constants import ZAP_REQUEST_KIND
from lnurl_server.errors import InvalidZapRequest

logger = logging.getLogger(__name__)


def _tag_values(event: NostrEvent, name: str) -> list[str]:
    tags = event.tags()
    # Older nostr-sdk releases wrap tags in a Tags object; newer ones return a list.
    if hasattr(tags, "to_vec"):
        tags = tags.to_vec()
    values: list[str] = []
    for tag in tags:
        tag_vec = tag.as_vec() if hasattr(tag, "as_vec") else tag.to_vec()
        if len(tag_vec) >= 2 and tag_vec[0] == name:
            values.append(tag_vec[1])
    return values


def validate_zap_request(event_json: str, amount_msat: int) -> NostrEvent:
    """Parse and check a zap request. Raises InvalidZapRequest on failure."""
    try:
        event = NostrEvent.from_json(event_json)
    except Exception as exc:
        raise InvalidZapRequest("Zap request is not a valid nostr event") from exc

    try:
        verified = event.verify()
    except Exception as exc:
        raise InvalidZapRequest("Zap request signature is invalid") from exc
    if not verified:
        raise InvalidZapRequest("Zap request signature is invalid")

    kind = event.kind().as_u16()
    if kind != ZAP_REQUEST_KIND:
        raise InvalidZapRequest(f"Zap request must be kind {ZAP_REQUEST_KIND}, got {kind}")

    if len(_tag_values(event, "p")) != 1:
        raise InvalidZapRequest("Zap request must have exactly one p tag")

    amounts = _tag_values(event, "amount")
    if amounts:
        try:
            requested = int(amounts[0])
        except ValueError as exc:
            raise InvalidZapRequest("Zap request amount tag is malformed") from exc
        if requested != amount_msat:
            logger.info(
                "Zap request amount %d msat does not match callback amount %d msat.",
                requested, amount_msat,
            )
            raise InvalidZapRequest("Zap request amount does not match invoice amount")

    return event
