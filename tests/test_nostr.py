"""Tests for NIP-57 zap request validation."""

from __future__ import annotations

import json
from unittest.mock import MagicMock, patch

import pytest
from nostr_sdk import EventBuilder, Keys, Kind, Tag

from lnurl_server.constants import ZAP_REQUEST_KIND
from lnurl_server.errors import InvalidZapRequest
from lnurl_server.nostr import validate_zap_request

RECIPIENT_PK = "aa" * 32
AMOUNT_MSAT = 21_000


def _make_tag(key: str, value: str) -> MagicMock:
    tag = MagicMock()
    tag.as_vec.return_value = [key, value]
    return tag


def _make_event(
    kind_num: int = 9734,
    tags: list[tuple[str, str]] | None = None,
    verify_result: bool = True,
) -> MagicMock:
    if tags is None:
        tags = [("p", RECIPIENT_PK), ("amount", str(AMOUNT_MSAT)), ("relays", "wss://relay.damus.io")]
    event = MagicMock()
    event.verify.return_value = verify_result
    event.kind.return_value.as_u16.return_value = kind_num
    event.tags.return_value.to_vec.return_value = [_make_tag(k, v) for k, v in tags]
    return event


def _zap_json() -> str:
    return json.dumps({"kind": 9734, "tags": [["p", RECIPIENT_PK]], "content": ""})


class TestValidateZapRequest:
    def test_valid_request(self) -> None:
        event = _make_event()
        with patch("lnurl_server.nostr.NostrEvent") as event_cls:
            event_cls.from_json.return_value = event
            assert validate_zap_request(_zap_json(), AMOUNT_MSAT) is event
            event_cls.from_json.assert_called_once_with(_zap_json())

    def test_amount_tag_optional(self) -> None:
        event = _make_event(tags=[("p", RECIPIENT_PK)])
        with patch("lnurl_server.nostr.NostrEvent") as event_cls:
            event_cls.from_json.return_value = event
            assert validate_zap_request(_zap_json(), 999_000) is event

    def test_unparseable(self) -> None:
        with patch("lnurl_server.nostr.NostrEvent") as event_cls:
            event_cls.from_json.side_effect = Exception("bad json")
            with pytest.raises(InvalidZapRequest, match="not a valid nostr event"):
                validate_zap_request("not json", AMOUNT_MSAT)

    def test_bad_signature(self) -> None:
        with patch("lnurl_server.nostr.NostrEvent") as event_cls:
            event_cls.from_json.return_value = _make_event(verify_result=False)
            with pytest.raises(InvalidZapRequest, match="signature"):
                validate_zap_request(_zap_json(), AMOUNT_MSAT)

    def test_wrong_kind(self) -> None:
        with patch("lnurl_server.nostr.NostrEvent") as event_cls:
            event_cls.from_json.return_value = _make_event(kind_num=1)
            with pytest.raises(InvalidZapRequest, match="kind 9734"):
                validate_zap_request(_zap_json(), AMOUNT_MSAT)

    def test_no_p_tag(self) -> None:
        with patch("lnurl_server.nostr.NostrEvent") as event_cls:
            event_cls.from_json.return_value = _make_event(tags=[("amount", str(AMOUNT_MSAT))])
            with pytest.raises(InvalidZapRequest, match="exactly one p tag"):
                validate_zap_request(_zap_json(), AMOUNT_MSAT)

    def test_two_p_tags(self) -> None:
        tags = [("p", RECIPIENT_PK), ("p", "bb" * 32)]
        with patch("lnurl_server.nostr.NostrEvent") as event_cls:
            event_cls.from_json.return_value = _make_event(tags=tags)
            with pytest.raises(InvalidZapRequest, match="exactly one p tag"):
                validate_zap_request(_zap_json(), AMOUNT_MSAT)

    def test_amount_mismatch(self) -> None:
        with patch("lnurl_server.nostr.NostrEvent") as event_cls:
            event_cls.from_json.return_value = _make_event()
            with pytest.raises(InvalidZapRequest, match="does not match"):
                validate_zap_request(_zap_json(), AMOUNT_MSAT + 1000)

    def test_malformed_amount(self) -> None:
        tags = [("p", RECIPIENT_PK), ("amount", "lots")]
        with patch("lnurl_server.nostr.NostrEvent") as event_cls:
            event_cls.from_json.return_value = _make_event(tags=tags)
            with pytest.raises(InvalidZapRequest, match="malformed"):
                validate_zap_request(_zap_json(), AMOUNT_MSAT)

    def test_plain_list_tags(self) -> None:
        event = _make_event()
        event.tags.return_value = [_make_tag("p", RECIPIENT_PK), _make_tag("amount", str(AMOUNT_MSAT))]
        with patch("lnurl_server.nostr.NostrEvent") as event_cls:
            event_cls.from_json.return_value = event
            assert validate_zap_request(_zap_json(), AMOUNT_MSAT) is event


# ---------------------------------------------------------------------------
# Signed events (real nostr-sdk)
# ---------------------------------------------------------------------------


def _signed_zap(tags: list[list[str]]) -> str:
    keys = Keys.generate()
    builder = EventBuilder(Kind(ZAP_REQUEST_KIND), "").tags([Tag.parse(t) for t in tags])
    event = builder.finalize_unsigned(keys.public_key()).sign(keys)
    return event.as_json()


class TestSignedZapRequest:
    def test_valid_signed_request(self) -> None:
        zap = _signed_zap([["p", RECIPIENT_PK], ["amount", str(AMOUNT_MSAT)]])
        event = validate_zap_request(zap, AMOUNT_MSAT)
        assert event.kind().as_u16() == ZAP_REQUEST_KIND

    def test_signed_request_amount_mismatch(self) -> None:
        zap = _signed_zap([["p", RECIPIENT_PK], ["amount", str(AMOUNT_MSAT)]])
        with pytest.raises(InvalidZapRequest, match="does not match"):
            validate_zap_request(zap, AMOUNT_MSAT * 2)

    def test_signed_request_without_p_tag(self) -> None:
        zap = _signed_zap([["relays", "wss://relay.damus.io"]])
        with pytest.raises(InvalidZapRequest, match="exactly one p tag"):
            validate_zap_request(zap, AMOUNT_MSAT)

    def test_tampered_content_rejected(self) -> None:
        data = json.loads(_signed_zap([["p", RECIPIENT_PK]]))
        data["content"] = "tampered"
        with pytest.raises(InvalidZapRequest):
            validate_zap_request(json.dumps(data), AMOUNT_MSAT)

    def test_tampered_signature_rejected(self) -> None:
        data = json.loads(_signed_zap([["p", RECIPIENT_PK]]))
        data["sig"] = ("0" if data["sig"][0] != "0" else "1") + data["sig"][1:]
        with pytest.raises(InvalidZapRequest):
            validate_zap_request(json.dumps(data), AMOUNT_MSAT)
