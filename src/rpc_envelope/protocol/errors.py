"""Error types raised by the envelope codec."""

from __future__ import annotations


class EnvelopeError(Exception):
    """Base class for all envelope codec errors."""


class EnvelopeParseError(EnvelopeError, ValueError):
    """The buffer is not valid UTF-8 JSON."""


class EnvelopeValidationError(EnvelopeError, ValueError):
    """The decoded document does not have the envelope shape."""


class EnvelopeEncodeError(EnvelopeError, TypeError):
    """An argument cannot be represented in the wire format."""
