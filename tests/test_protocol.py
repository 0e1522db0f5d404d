import json

import pytest

from pageflow.core.errors import MalformedEvent
from pageflow.domains.collaboration.schemas import (
    BlockUpdatePayload, PageTarget, ServerEvent, build_event, decode_message, encode_message, parse_payload
)


def test_decode_envelope():
    assert decode_message('{"type": "join-page", "data": {"pageId": "p1"}}') == ("join-page", {"pageId": "p1"})


def test_missing_data_defaults_to_empty_object():
    assert decode_message('{"type": "ping"}') == ("ping", {})


@pytest.mark.parametrize("raw", [
    "not json",
    "[1, 2]",
    '{"data": {}}',
    '{"type": 5}',
    '{"type": ""}',
])
def test_decode_rejects_bad_frames(raw):
    with pytest.raises(MalformedEvent):
        decode_message(raw)


def test_payload_accepts_camel_and_snake_case():
    camel = parse_payload(BlockUpdatePayload, {"pageId": "p1", "blockId": "b1", "content": {"text": "x"}})
    snake = parse_payload(BlockUpdatePayload, {"page_id": "p1", "block_id": "b1"})

    assert camel.block_id == "b1"
    assert camel.content == {"text": "x"}
    assert snake.page_id == "p1"


def test_bare_string_payload():
    assert parse_payload(PageTarget, "p1", bare_field="pageId").page_id == "p1"

    with pytest.raises(MalformedEvent):
        parse_payload(PageTarget, "p1")


def test_empty_page_id_is_invalid():
    with pytest.raises(MalformedEvent):
        parse_payload(PageTarget, {"pageId": ""})


def test_encode_round_trips_through_json():
    message = build_event(ServerEvent.PONG, timestamp="2024-01-01T00:00:00+00:00")

    assert json.loads(encode_message(message)) == {"type": "pong", "data": {"timestamp": "2024-01-01T00:00:00+00:00"}}
