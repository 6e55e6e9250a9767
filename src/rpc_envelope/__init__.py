"""Command envelopes for RPC requests sent across message queues."""

from .protocol import (
    CommandEnvelope,
    DecodeResult,
    EnvelopeEncodeError,
    EnvelopeError,
    EnvelopeParseError,
    EnvelopeValidationError,
    ErrorKind,
    FunctionSource,
    FunctionTable,
    decode_envelope,
    function_source,
    functions,
    parse_function_source,
    register,
)

__version__ = "0.1.0"
