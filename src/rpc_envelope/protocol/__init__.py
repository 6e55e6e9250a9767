"""Protocol layer: envelope codec, function text encoding, and errors."""

from .envelope import CommandEnvelope, DecodeResult, ErrorKind, decode_envelope
from .errors import (
    EnvelopeEncodeError,
    EnvelopeError,
    EnvelopeParseError,
    EnvelopeValidationError,
)
from .functions import (
    FunctionSource,
    FunctionTable,
    function_source,
    functions,
    parse_function_source,
    register,
    revive,
)
