"""Path sanitizer: hostile and empty identifiers."""

from __future__ import annotations

import pytest

from weft.errors import InvalidPathSegment
from weft.sanitize import MAX_SEGMENT_BYTES, sanitize


class TestSanitize:
    """Untrusted names become one safe path segment or fail."""

    def test_plain_names_unchanged(self):
        assert sanitize("Org1") == "Org1"
        assert sanitize("peer0.org1.example.com") == "peer0.org1.example.com"
        assert sanitize("admin user") == "admin user"

    def test_traversal_cannot_escape(self):
        out = sanitize("../../etc")
        assert "/" not in out
        assert "\\" not in out
        assert out not in ("", ".", "..")
        assert out == "....etc"

    def test_separators_and_illegal_chars_removed(self):
        assert sanitize('a/b\\c?d<e>f:g*h|i"j') == "abcdefghij"

    def test_control_chars_removed(self):
        assert sanitize("ad\x00m\x1fin") == "admin"
        assert sanitize("ad\x85min") == "admin"

    @pytest.mark.parametrize("bad", ["", "/", "..", ".", "...", "  ", "\x00\x01"])
    def test_empty_or_reserved_fails(self, bad):
        with pytest.raises(InvalidPathSegment):
            sanitize(bad)

    @pytest.mark.parametrize("bad", ["con", "NUL", "com1", "lpt9.txt", "aux.json"])
    def test_windows_reserved_names_fail(self, bad):
        with pytest.raises(InvalidPathSegment):
            sanitize(bad)

    def test_trailing_dots_and_spaces_stripped(self):
        assert sanitize("admin. . ") == "admin"

    def test_long_names_truncated_to_byte_limit(self):
        out = sanitize("é" * 300)
        assert len(out.encode("utf-8")) <= MAX_SEGMENT_BYTES
        assert out == "é" * (MAX_SEGMENT_BYTES // 2)

    def test_non_string_rejected(self):
        with pytest.raises(InvalidPathSegment):
            sanitize(None)  # type: ignore[arg-type]

    def test_error_carries_segment(self):
        with pytest.raises(InvalidPathSegment) as ei:
            sanitize("..")
        assert ei.value.segment == ".."
        assert isinstance(ei.value, ValueError)
