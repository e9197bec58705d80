"""Typed errors raised by the kernel text parsers.

Every error keeps the offending raw text (token, line or path) on ``context`` so a
caller can log or alert without re-deriving it.
"""
from __future__ import annotations
from typing import Optional


class KstatError(Exception):
    def __init__(self, message: str, context: Optional[str] = None):
        super().__init__(message if context is None else f"{message}: {context!r}")
        self.message = message
        self.context = context


class DecodeError(KstatError, ValueError):
    """A single token failed numeric decoding."""


class StructuralError(KstatError, ValueError):
    """A line, record or file violates its required shape."""


class ResolutionError(KstatError, LookupError):
    """A configfs/sysfs entry could not be resolved to a backstore."""


class StreamError(KstatError, OSError):
    """The underlying input could not be read to completion."""
