"""StreamDecoder: line buffering, sentinel handling and malformed input."""

import json

import pytest

from neurochat.stream_decoder import StreamDecoder, extract_delta, iter_events

from conftest import sse_body

BODY = (
    b": keep-alive comment\n"
    b'data: {"choices":[{"delta":{"role":"assistant"}}]}\n\n'
    + "data: {\"choices\":[{\"delta\":{\"content\":\"Привет\"}}]}\r\n\r\n".encode("utf-8")
    + b"data: not json at all\n\n"
    + b'data: {"choices":[{"delta":{"content":" world"}}]}\n\n'
    + b"data: [DONE]\n\n"
)


def decode_all(chunks) -> list[dict]:
    return list(iter_events(chunks))


def test_whole_buffer_yields_parsed_payloads():
    events = decode_all([BODY])
    assert [extract_delta(e) for e in events] == [None, "Привет", " world"]


@pytest.mark.parametrize("offset", range(1, len(BODY)))
def test_any_split_point_gives_the_same_events(offset):
    """Splits land mid-line, mid-prefix, mid-sentinel and mid-character."""
    assert decode_all([BODY[:offset], BODY[offset:]]) == decode_all([BODY])


def test_byte_at_a_time_gives_the_same_events():
    assert decode_all([BODY[i : i + 1] for i in range(len(BODY))]) == decode_all(
        [BODY]
    )


def test_sentinel_stops_iteration_even_with_more_lines_buffered():
    body = sse_body("one") + sse_body("two", done=False)
    events = decode_all([body])
    assert [extract_delta(e) for e in events] == ["one"]


def test_feed_after_sentinel_is_ignored():
    decoder = StreamDecoder()
    decoder.feed(b"data: [DONE]\n")
    assert decoder.done
    assert decoder.feed(sse_body("late")) == []
    assert decoder.close() == []


def test_stream_end_without_sentinel_flushes_final_line():
    body = b'data: {"choices":[{"delta":{"content":"tail"}}]}'
    events = decode_all([body])
    assert [extract_delta(e) for e in events] == ["tail"]


def test_partial_line_is_held_back_until_terminated():
    decoder = StreamDecoder()
    line = "data: " + json.dumps({"choices": [{"delta": {"content": "x"}}]})
    assert decoder.feed(line[:10]) == []
    assert decoder.feed(line[10:]) == []
    assert len(decoder.feed("\n")) == 1


def test_malformed_and_non_object_payloads_are_skipped():
    body = b"data: {broken\n" b"data: 42\n" b"event: ping\n" b"data: [DONE]\n"
    assert decode_all([body]) == []


def test_transport_error_propagates():
    def chunks():
        yield sse_body("ok", done=False)
        raise ConnectionResetError("peer went away")

    events = iter_events(chunks())
    assert extract_delta(next(events)) == "ok"
    with pytest.raises(ConnectionResetError):
        next(events)


@pytest.mark.parametrize(
    "payload",
    [
        {},
        {"choices": []},
        {"choices": [{}]},
        {"choices": [{"delta": {}}]},
        {"choices": [{"delta": {"content": ""}}]},
        {"choices": [{"delta": {"content": None}}]},
        {"choices": "nope"},
    ],
)
def test_extract_delta_without_content(payload):
    assert extract_delta(payload) is None
