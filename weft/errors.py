"""Error kinds raised by the weft conversion engine.

Every error the engine raises on purpose derives from :class:`WeftError`, so
callers (the CLI in particular) can report a message and a non-zero exit
status without catching unrelated exceptions.
"""

from __future__ import annotations

from typing import Optional


class WeftError(Exception):
    """Base class for all engine errors."""
    pass


class InvalidPathSegment(WeftError, ValueError):
    """An identifier cannot be turned into a safe filesystem path segment."""

    def __init__(self, message: str, segment: str = ""):
        super().__init__(message)
        self.segment = segment


class MalformedCredential(WeftError, ValueError):
    """Certificate/key content or an identity document is unusable."""
    pass


class InvalidGatewayEntry(WeftError, ValueError):
    """A gateway topology entry cannot be resolved to an organization/peer."""
    pass


class InvalidTopology(WeftError, ValueError):
    """The topology document is not an array of typed entries."""
    pass


class AlreadyExists(WeftError):
    """A wallet entry exists and overwrite was not requested."""

    def __init__(self, message: str, path: Optional[str] = None):
        super().__init__(message)
        self.path = path


class NotFound(WeftError, LookupError):
    """A wallet entry, directory or input file is missing."""

    def __init__(self, message: str, path: Optional[str] = None):
        super().__init__(message)
        self.path = path


class IOFailure(WeftError):
    """Filesystem error; the original ``OSError`` is chained as ``__cause__``."""

    def __init__(self, message: str, path: Optional[str] = None):
        super().__init__(message)
        self.path = path
