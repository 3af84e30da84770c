"""Unit tests for watch event decoding."""

from __future__ import annotations

import pytest
from prometheus_client import REGISTRY

from kubewatch.errors import DecodeError
from kubewatch.models.events import EventType, WatchEvent
from kubewatch.watch.decoder import decode_event, parse_event


def _drops() -> float:
    return REGISTRY.get_sample_value("kubewatch_decode_failures_total") or 0.0


class TestParseEvent:
    def test_well_formed_event(self) -> None:
        event = parse_event(b'{"type":"ADDED","object":{"kind":"Pod","metadata":{"name":"web-0"}}}')
        assert event == WatchEvent(
            type="ADDED",
            object={"kind": "Pod", "metadata": {"name": "web-0"}},
            raw={"type": "ADDED", "object": {"kind": "Pod", "metadata": {"name": "web-0"}}},
        )
        assert event.type == EventType.ADDED

    def test_raw_keeps_extra_fields(self) -> None:
        event = parse_event(b'{"type":"BOOKMARK","object":{},"extra":1}')
        assert event.raw["extra"] == 1

    def test_unknown_type_is_passed_through(self) -> None:
        assert parse_event(b'{"type":"SOMETHING","object":null}').type == "SOMETHING"

    def test_missing_type_and_object(self) -> None:
        event = parse_event(b"{}")
        assert event.type == ""
        assert event.object is None

    @pytest.mark.parametrize(
        "line",
        [
            b"",
            b"   ",
            b"\t",
            b"not json",
            b'{"type":"ADDED"',
            b"[1,2]",
            b"42",
            b'"ADDED"',
            b"null",
            b"\xc3\x28",
        ],
    )
    def test_invalid_lines_raise_decode_error(self, line: bytes) -> None:
        with pytest.raises(DecodeError):
            parse_event(line)

    def test_deeply_nested_line_is_decode_error(self) -> None:
        line = b"[" * 200_000 + b"]" * 200_000
        with pytest.raises(DecodeError):
            parse_event(line)


class TestDecodeEvent:
    def test_returns_event_for_valid_line(self) -> None:
        event = decode_event(b'{"type":"DELETED","object":{"id":3}}')
        assert event is not None
        assert event.object == {"id": 3}

    def test_invalid_line_is_dropped_and_counted(self) -> None:
        before = _drops()
        assert decode_event(b"keep-alive") is None
        assert decode_event(b"") is None
        assert _drops() == before + 2

    def test_deeply_nested_object_is_dropped(self) -> None:
        before = _drops()
        assert decode_event(b'{"type":"ADDED","object":' + b"[" * 200_000 + b"]" * 200_000 + b"}") is None
        assert _drops() == before + 1

    def test_event_is_immutable(self) -> None:
        event = decode_event(b'{"type":"ADDED","object":{}}')
        assert event is not None
        with pytest.raises(AttributeError):
            event.type = "DELETED"  # type: ignore[misc]
