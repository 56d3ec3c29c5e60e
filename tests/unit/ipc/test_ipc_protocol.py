"""Tests for the selection wire format."""

from __future__ import annotations

import io
import unittest

from heats.errors import IpcProtocolError
from heats.ipc import END_MARKER, HotkeyRequest, SelectionRequest, encode_request, encode_response, read_request
from heats.ipc.client import read_stdin_items
from heats.items import Item


def _read(payload: bytes) -> SelectionRequest | HotkeyRequest:
    return read_request(io.BytesIO(payload))


class ReadRequestTests(unittest.TestCase):
    def test_plain_lines_are_text_items(self) -> None:
        request = _read(b"alpha\nbravo\n\ncharlie")
        assert isinstance(request, SelectionRequest)
        self.assertEqual(request.format, "text")
        self.assertEqual([item.label for item in request.items], ["alpha", "bravo", "charlie"])
        self.assertEqual([item.index for item in request.items], [0, 1, 2])
        self.assertEqual({item.provider for item in request.items}, {"dmenu"})
        self.assertFalse(request.held_open)

    def test_context_line_selects_jsonl(self) -> None:
        request = _read(
            b'{"format": "jsonl"}\n'
            b'{"title": "Editor", "data": {"id": 3}}\n'
            b"not json\n"
            b'{"title": "Shell"}\n'
        )
        assert isinstance(request, SelectionRequest)
        self.assertEqual(request.format, "jsonl")
        self.assertEqual([item.label for item in request.items], ["Editor", "Shell"])

    def test_text_context_line_is_not_an_item(self) -> None:
        request = _read(b'{"format": "text"}\n{"title": "literal"}\n')
        assert isinstance(request, SelectionRequest)
        self.assertEqual([item.label for item in request.items], ['{"title": "literal"}'])

    def test_json_first_line_without_known_keys_is_an_item(self) -> None:
        request = _read(b'{"name": "x"}\nsecond\n')
        assert isinstance(request, SelectionRequest)
        self.assertEqual(request.items[0].label, '{"name": "x"}')

    def test_end_marker_holds_connection_open(self) -> None:
        request = _read(b"alpha\n" + END_MARKER.encode() + b"\nignored\n")
        assert isinstance(request, SelectionRequest)
        self.assertTrue(request.held_open)
        self.assertEqual([item.label for item in request.items], ["alpha"])

    def test_hotkey_control_line(self) -> None:
        request = _read(b'{"hotkey": " Cmd+Semicolon "}\n')
        self.assertEqual(request, HotkeyRequest(binding="Cmd+Semicolon"))

    def test_malformed_requests_raise(self) -> None:
        cases = [
            b"",
            b'{"format": "xml"}\nalpha\n',
            b'{"format": "jsonl"}\nplain\n',
            b'{"hotkey": 5}\n',
            b"\xff\xfe\n",
            END_MARKER.encode() + b"\n",
            b'{"format": "text"}\n',
        ]
        for payload in cases:
            with self.subTest(payload=payload):
                with self.assertRaises(IpcProtocolError):
                    _read(payload)


class EncodingTests(unittest.TestCase):
    def test_response_carries_label_or_data_field(self) -> None:
        text_request = SelectionRequest(format="text", items=())
        jsonl_request = SelectionRequest(format="jsonl", items=())
        item = Item(label="Editor", data={"id": 3})
        self.assertEqual(encode_response(text_request, item), b"Editor\n")
        self.assertEqual(encode_response(jsonl_request, item), b'{"id":3}\n')
        self.assertEqual(encode_response(jsonl_request, Item(label="x", data="plain")), b"plain\n")
        self.assertEqual(encode_response(text_request, None), b"\n")

    def test_response_is_a_single_line(self) -> None:
        request = SelectionRequest(format="jsonl", items=())
        self.assertEqual(encode_response(request, Item(label="x", data="a\nb")), b"a b\n")

    def test_encode_request_is_readable(self) -> None:
        payload = encode_request(["alpha", "", "bravo"], hold_open=True)
        request = _read(payload)
        assert isinstance(request, SelectionRequest)
        self.assertEqual([item.label for item in request.items], ["alpha", "bravo"])
        self.assertTrue(request.held_open)
        with self.assertRaises(ValueError):
            encode_request(["a"], "xml")

    def test_read_stdin_items_drops_blank_lines(self) -> None:
        self.assertEqual(read_stdin_items(io.StringIO("a\r\n\nb\n")), ["a", "b"])
