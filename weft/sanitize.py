"""Path segment sanitization for untrusted identifiers.

Organization names, identity ids, wallet labels and gateway ids all come from
topology documents or command-line input and end up as directory or file
names. ``sanitize`` turns such a string into a single safe path segment:

- path separators and characters illegal on common filesystems are removed
  (``/ \\ ? < > : * | "``)
- control characters (including NUL) are removed
- ``.`` / ``..`` (any all-dots name) and Windows device names are rejected
- trailing dots and spaces are stripped
- the result is truncated to 255 UTF-8 bytes

The function is deterministic and never returns an empty string; when nothing
usable is left it raises :class:`~weft.errors.InvalidPathSegment`.
"""

from __future__ import annotations

import re

from weft.errors import InvalidPathSegment

MAX_SEGMENT_BYTES = 255

ILLEGAL_RE = re.compile(r'[/\\?<>:*|"]')
CONTROL_RE = re.compile(r"[\x00-\x1f\x80-\x9f]")
RESERVED_RE = re.compile(r"^\.+$")
WINDOWS_RESERVED_RE = re.compile(r"^(con|prn|aux|nul|com[0-9]|lpt[0-9])(\..*)?$", re.IGNORECASE)
WINDOWS_TRAILING_RE = re.compile(r"[. ]+$")


def _truncate_utf8(s: str, limit: int) -> str:
    encoded = s.encode("utf-8")
    if len(encoded) <= limit:
        return s
    return encoded[:limit].decode("utf-8", errors="ignore")


def sanitize(segment: str) -> str:
    """Return ``segment`` as a safe, non-empty filesystem path segment."""
    if not isinstance(segment, str):
        raise InvalidPathSegment(f"path segment must be a string, got {type(segment).__name__}", str(segment))

    out = ILLEGAL_RE.sub("", segment)
    out = CONTROL_RE.sub("", out)
    out = _truncate_utf8(out, MAX_SEGMENT_BYTES)
    out = WINDOWS_TRAILING_RE.sub("", out)

    if not out:
        raise InvalidPathSegment(f"'{segment}' has no usable path characters", segment)
    if RESERVED_RE.match(out) or WINDOWS_RESERVED_RE.match(out):
        raise InvalidPathSegment(f"'{segment}' is a reserved path name", segment)
    return out
