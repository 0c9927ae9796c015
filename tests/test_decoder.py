"""Tests for the incremental RESP frame decoder."""

from __future__ import annotations

import math

import pytest

from valkeywire import (
    Array,
    Attribute,
    BigNumber,
    Boolean,
    BulkError,
    BulkString,
    Double,
    Error,
    Integer,
    Map,
    Null,
    ProtocolError,
    Push,
    Set,
    SimpleString,
    VerbatimString,
)
from valkeywire.protocol.decoder import MAX_NESTING_DEPTH, FrameDecoder


def decode_all(data: bytes) -> list:
    decoder = FrameDecoder()
    decoder.feed(data)
    return list(decoder)


# One frame per RESP type tag, with the value the decoder must produce
FRAMES = [
    (b"+OK\r\n", SimpleString(b"OK")),
    (b"-ERR unknown command\r\n", Error("ERR unknown command")),
    (b":1000\r\n", Integer(1000)),
    (b":-42\r\n", Integer(-42)),
    (b"$5\r\nhello\r\n", BulkString(b"hello")),
    (b"$0\r\n\r\n", BulkString(b"")),
    (b"$-1\r\n", Null()),
    (b"*-1\r\n", Null()),
    (b"_\r\n", Null()),
    (b"#t\r\n", Boolean(True)),
    (b"#f\r\n", Boolean(False)),
    (b",3.25\r\n", Double(3.25)),
    (b",-inf\r\n", Double(-math.inf)),
    (b"(3492890328409238509324850943850943825024385\r\n",
     BigNumber(3492890328409238509324850943850943825024385)),
    (b"=15\r\ntxt:Some string\r\n", VerbatimString("txt", b"Some string")),
    (b"!21\r\nSYNTAX invalid syntax\r\n", BulkError("SYNTAX invalid syntax")),
    (b"*2\r\n$3\r\nfoo\r\n:7\r\n", Array((BulkString(b"foo"), Integer(7)))),
    (b"*0\r\n", Array(())),
    (b"~2\r\n+a\r\n+b\r\n", Set((SimpleString(b"a"), SimpleString(b"b")))),
    (
        b"%2\r\n+first\r\n:1\r\n+second\r\n:2\r\n",
        Map(((SimpleString(b"first"), Integer(1)), (SimpleString(b"second"), Integer(2)))),
    ),
    (
        b">3\r\n$7\r\nmessage\r\n$4\r\nchan\r\n$2\r\nhi\r\n",
        Push((BulkString(b"message"), BulkString(b"chan"), BulkString(b"hi"))),
    ),
    (
        b"|1\r\n+key-popularity\r\n%1\r\n$1\r\na\r\n,0.1923\r\n*1\r\n:2039\r\n",
        Attribute(
            ((SimpleString(b"key-popularity"), Map(((BulkString(b"a"), Double(0.1923)),))),),
            Array((Integer(2039),)),
        ),
    ),
    (
        b"*2\r\n*2\r\n:1\r\n:2\r\n%1\r\n+k\r\n_\r\n",
        Array((Array((Integer(1), Integer(2))), Map(((SimpleString(b"k"), Null()),)))),
    ),
]


class TestFrameTypes:
    """Every type tag decodes to its wire value."""

    @pytest.mark.parametrize("data,expected", FRAMES)
    def test_decodes_frame(self, data, expected):
        """Test that a complete frame decodes to exactly one value."""
        assert decode_all(data) == [expected]

    def test_nan_double(self):
        """Test that nan is accepted for doubles."""
        (value,) = decode_all(b",nan\r\n")
        assert math.isnan(value.value)

    def test_multiple_frames_in_one_feed(self):
        """Test that back-to-back frames come out in order."""
        values = decode_all(b"+OK\r\n:1\r\n$1\r\nx\r\n")
        assert values == [SimpleString(b"OK"), Integer(1), BulkString(b"x")]

    def test_binary_payload(self):
        """Test that bulk strings may contain CRLF and arbitrary bytes."""
        payload = b"a\r\nb\x00\xff"
        assert decode_all(b"$%d\r\n%s\r\n" % (len(payload), payload)) == [BulkString(payload)]


class TestPartialFrames:
    """Partial frames are retained and retried verbatim."""

    @pytest.mark.parametrize("data,expected", FRAMES)
    def test_chunked_feeding_matches_single_feed(self, data, expected):
        """Test that every chunk size yields the same values as one feed."""
        stream = data * 3
        for chunk_size in range(1, len(stream) + 1):
            decoder = FrameDecoder()
            values = []
            for start in range(0, len(stream), chunk_size):
                decoder.feed(stream[start : start + chunk_size])
                values.extend(decoder)
            assert values == [expected] * 3, f"chunk size {chunk_size}"
            assert decoder.buffered == 0

    def test_incomplete_frame_consumes_nothing(self):
        """Test that a partial frame stays in the buffer untouched."""
        decoder = FrameDecoder()
        decoder.feed(b"*2\r\n$3\r\nfoo\r\n")
        assert decoder.next_value() is None
        assert decoder.buffered == len(b"*2\r\n$3\r\nfoo\r\n")

        decoder.feed(b":42\r\n")
        assert decoder.next_value() == Array((BulkString(b"foo"), Integer(42)))
        assert decoder.buffered == 0

    def test_trailing_partial_frame_is_kept(self):
        """Test that bytes after a complete frame are kept for the next feed."""
        decoder = FrameDecoder()
        decoder.feed(b"+OK\r\n$5\r\nhel")
        assert list(decoder) == [SimpleString(b"OK")]
        assert decoder.buffered == len(b"$5\r\nhel")

    def test_empty_decoder_has_nothing(self):
        """Test that an empty decoder yields no values."""
        assert FrameDecoder().next_value() is None


class TestProtocolErrors:
    """Malformed input raises ProtocolError."""

    @pytest.mark.parametrize(
        "data",
        [
            b"?foo\r\n",
            b"$abc\r\n",
            b"$-2\r\n",
            b"%-1\r\n",
            b"~-1\r\n",
            b":12a\r\n",
            b": 1\r\n",
            b"$1_0\r\n",
            b"#x\r\n",
            b",notanumber\r\n",
            b"$3\r\nfooXX",
            b"=3\r\ntxt\r\n",
            b"_x\r\n",
        ],
    )
    def test_rejects_malformed_frame(self, data):
        """Test that invalid tags, lengths and payloads are rejected."""
        decoder = FrameDecoder()
        decoder.feed(data)
        with pytest.raises(ProtocolError):
            decoder.next_value()

    def test_rejects_excessive_nesting(self):
        """Test that nesting beyond the depth limit is rejected."""
        decoder = FrameDecoder()
        decoder.feed(b"*1\r\n" * (MAX_NESTING_DEPTH + 2) + b":1\r\n")
        with pytest.raises(ProtocolError, match="nesting"):
            decoder.next_value()

    def test_accepts_nesting_at_limit(self):
        """Test that nesting up to the limit still decodes."""
        decoder = FrameDecoder()
        decoder.feed(b"*1\r\n" * MAX_NESTING_DEPTH + b":1\r\n")
        value = decoder.next_value()
        for _ in range(MAX_NESTING_DEPTH):
            assert isinstance(value, Array)
            value = value[0]
        assert value == Integer(1)
