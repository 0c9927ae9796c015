"""Tests for the key value object."""

from __future__ import annotations

import pytest

from valkeywire import ValkeyKey


class TestValkeyKey:
    """Test ValkeyKey construction, equality and immutability."""

    def test_text_and_bytes_are_equal(self):
        """Test that text keys are stored UTF-8 encoded."""
        assert ValkeyKey("user:1") == ValkeyKey(b"user:1")
        assert bytes(ValkeyKey("café")) == b"caf\xc3\xa9"

    def test_copy_from_key(self):
        key = ValkeyKey(b"k")
        assert ValkeyKey(key) == key

    def test_binary_keys(self):
        """Test that arbitrary bytes are valid keys."""
        key = ValkeyKey(bytearray(b"\xff\xfe"))
        assert bytes(key) == b"\xff\xfe"
        assert len(key) == 2
        assert str(key) == "\\xff\\xfe"

    def test_hashable(self):
        assert len({ValkeyKey("a"), ValkeyKey(b"a"), ValkeyKey("b")}) == 2

    def test_not_equal_to_plain_bytes(self):
        """Test that a key only equals other keys."""
        assert ValkeyKey(b"a") != b"a"

    def test_immutable(self):
        key = ValkeyKey("a")
        with pytest.raises(AttributeError):
            key._raw = b"b"

    def test_rejects_other_types(self):
        with pytest.raises(TypeError):
            ValkeyKey(42)

    def test_random(self):
        """Test that random keys carry the prefix and differ."""
        first = ValkeyKey.random("test:")
        second = ValkeyKey.random("test:")

        assert str(first).startswith("test:")
        assert first != second
        assert repr(first).startswith("ValkeyKey(b'test:")
