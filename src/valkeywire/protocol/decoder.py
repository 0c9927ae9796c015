"""Incremental RESP2/RESP3 frame decoder.

The decoder owns an append-only buffer. Network reads are fed into it and
complete top-level replies are taken out of it one by one. A reply is parsed
from its first byte every time; when the buffer ends in the middle of a frame
nothing is consumed and the same parse is retried after the next feed.

Example:
    >>> decoder = FrameDecoder()
    >>> decoder.feed(b"*2\\r\\n$3\\r\\nfoo\\r\\n:4")
    >>> list(decoder)
    []
    >>> decoder.feed(b"2\\r\\n")
    >>> list(decoder)
    [Array(elements=(BulkString(value=b'foo'), Integer(value=42)))]
"""

from __future__ import annotations

import re
from collections.abc import Iterator

from valkeywire.domain.value_objects.wire_value import (
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
    Push,
    Set,
    SimpleString,
    VerbatimString,
    WireValue,
)
from valkeywire.exceptions import ProtocolError

CRLF = b"\r\n"

# Aggregates nested deeper than this are rejected instead of recursing further
MAX_NESTING_DEPTH = 512

_NULL = Null()

_INTEGER_RE = re.compile(rb"[+-]?[0-9]+")


class _NeedMoreData(Exception):
    """Raised internally when the buffer ends inside a frame."""


class FrameDecoder:
    """Turn a byte stream into a sequence of WireValue.

    Not thread-safe: a decoder belongs to the single task reading the channel.
    """

    def __init__(self) -> None:
        self._buffer = bytearray()

    @property
    def buffered(self) -> int:
        """Number of bytes held back waiting for the rest of a frame."""
        return len(self._buffer)

    def feed(self, data: bytes) -> None:
        """Append bytes read from the channel."""
        self._buffer += data

    def next_value(self) -> WireValue | None:
        """Return the next complete reply, or None when more data is needed.

        Raises:
            ProtocolError: If the buffered bytes are not valid RESP
        """
        if not self._buffer:
            return None
        # An incomplete frame is parsed again from its first byte on the next
        # call: an aggregate split over many reads costs quadratic time.
        try:
            value, end = self._parse(0, 0)
        except _NeedMoreData:
            return None
        del self._buffer[:end]
        return value

    def __iter__(self) -> Iterator[WireValue]:
        while True:
            value = self.next_value()
            if value is None:
                return
            yield value

    # -------------------------------------------------------------------------
    # Parsing
    # -------------------------------------------------------------------------

    def _read_line(self, pos: int) -> tuple[bytes, int]:
        end = self._buffer.find(CRLF, pos)
        if end < 0:
            raise _NeedMoreData
        return bytes(self._buffer[pos:end]), end + 2

    def _read_length(self, pos: int, tag: str, allow_null: bool = False) -> tuple[int, int]:
        line, pos = self._read_line(pos)
        if not _INTEGER_RE.fullmatch(line):
            raise ProtocolError(f"Invalid length {line!r} for type '{tag}'")
        length = int(line)
        if length < 0 and not (allow_null and length == -1):
            raise ProtocolError(f"Invalid length {length} for type '{tag}'")
        return length, pos

    def _read_payload(self, pos: int, length: int) -> tuple[bytes, int]:
        end = pos + length
        if len(self._buffer) < end + 2:
            raise _NeedMoreData
        if self._buffer[end : end + 2] != CRLF:
            raise ProtocolError(f"Missing CRLF after {length} byte payload")
        return bytes(self._buffer[pos:end]), end + 2

    def _parse(self, pos: int, depth: int) -> tuple[WireValue, int]:
        if pos >= len(self._buffer):
            raise _NeedMoreData
        if depth > MAX_NESTING_DEPTH:
            raise ProtocolError(f"Aggregate nesting deeper than {MAX_NESTING_DEPTH}")

        tag = chr(self._buffer[pos])
        pos += 1

        if tag == "+":
            line, pos = self._read_line(pos)
            return SimpleString(line), pos

        if tag == "-":
            line, pos = self._read_line(pos)
            return Error(line.decode("utf-8", errors="replace")), pos

        if tag == ":":
            line, pos = self._read_line(pos)
            return Integer(self._parse_int(line, tag)), pos

        if tag == "(":
            line, pos = self._read_line(pos)
            return BigNumber(self._parse_int(line, tag)), pos

        if tag == ",":
            line, pos = self._read_line(pos)
            return Double(self._parse_double(line)), pos

        if tag == "#":
            line, pos = self._read_line(pos)
            if line == b"t":
                return Boolean(True), pos
            if line == b"f":
                return Boolean(False), pos
            raise ProtocolError(f"Invalid boolean {line!r}")

        if tag == "_":
            line, pos = self._read_line(pos)
            if line:
                raise ProtocolError(f"Unexpected payload {line!r} after null")
            return _NULL, pos

        if tag in "$=!":
            length, pos = self._read_length(pos, tag, allow_null=tag == "$")
            if length == -1:
                return _NULL, pos
            payload, pos = self._read_payload(pos, length)
            if tag == "$":
                return BulkString(payload), pos
            if tag == "!":
                return BulkError(payload.decode("utf-8", errors="replace")), pos
            # Verbatim strings start with a three character format and a colon
            if len(payload) < 4 or payload[3:4] != b":":
                raise ProtocolError(f"Invalid verbatim string {payload[:8]!r}")
            return VerbatimString(payload[:3].decode("ascii", errors="replace"), payload[4:]), pos

        if tag in "*~>":
            count, pos = self._read_length(pos, tag, allow_null=tag == "*")
            if count == -1:
                return _NULL, pos
            elements = []
            for _ in range(count):
                element, pos = self._parse(pos, depth + 1)
                elements.append(element)
            if tag == "*":
                return Array(tuple(elements)), pos
            if tag == "~":
                return Set(tuple(elements)), pos
            return Push(tuple(elements)), pos

        if tag in "%|":
            count, pos = self._read_length(pos, tag)
            pairs = []
            for _ in range(count):
                key, pos = self._parse(pos, depth + 1)
                value, pos = self._parse(pos, depth + 1)
                pairs.append((key, value))
            if tag == "%":
                return Map(tuple(pairs)), pos
            # An attribute describes the value that follows it
            value, pos = self._parse(pos, depth + 1)
            return Attribute(tuple(pairs), value), pos

        raise ProtocolError(f"Unknown RESP type tag {tag!r}")

    @staticmethod
    def _parse_int(line: bytes, tag: str) -> int:
        if not _INTEGER_RE.fullmatch(line):
            raise ProtocolError(f"Invalid integer {line!r} for type '{tag}'")
        return int(line)

    @staticmethod
    def _parse_double(line: bytes) -> float:
        try:
            # float() understands inf, -inf and nan as sent by the server
            return float(line)
        except ValueError:
            raise ProtocolError(f"Invalid double {line!r}") from None
