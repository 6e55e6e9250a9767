"""Command envelope for RPC requests sent across message queues.

Wire format: UTF-8 JSON object with exactly two fields::

    {"command":"add","args":[2,3]}

- command: name of the remote operation (non-empty string)
- args: positional arguments (array, may be empty)

Callables anywhere in ``args`` are sent as their source text, see
:mod:`rpc_envelope.protocol.functions`. The JSON is compact and keeps
non-ASCII text unescaped, so peers produce byte-identical payloads.
"""

from __future__ import annotations

import json
import logging
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from .errors import EnvelopeEncodeError, EnvelopeParseError, EnvelopeValidationError
from .functions import FunctionTable, function_source, functions, revive

logger = logging.getLogger(__name__)

ENCODING = "utf-8"
JSON_SEPARATORS = (",", ":")


class ErrorKind(str, Enum):
    """Why a buffer failed to decode."""

    PARSE = "parse"
    VALIDATION = "validation"


def _encode_default(value: Any) -> Any:
    """``json.dumps`` hook: callables become their source text."""
    if callable(value):
        return function_source(value)
    raise EnvelopeEncodeError(
        f"Object of type {type(value).__name__} is not JSON serializable"
    )


def _without_non_finite(value: Any) -> Any:
    """Replace NaN and infinities with None, as JSON has no token for them."""
    if isinstance(value, float) and not math.isfinite(value):
        return None
    if isinstance(value, (list, tuple)):
        return [_without_non_finite(item) for item in value]
    if isinstance(value, dict):
        return {key: _without_non_finite(item) for key, item in value.items()}
    return value


def _reject_constant(token: str) -> Any:
    raise EnvelopeParseError(f"Payload is not valid JSON: unexpected token {token}")


def _is_false_like(value: Any) -> bool:
    # An empty list still counts as present.
    if value is None or value is False:
        return True
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return value == 0
    return value == ""


def _table_for(revive_functions: bool | FunctionTable) -> FunctionTable | None:
    if isinstance(revive_functions, FunctionTable):
        return revive_functions
    return functions if revive_functions else None


@dataclass(frozen=True)
class CommandEnvelope:
    """A named remote call with its ordered argument list."""

    command: str
    args: list[Any] = field(default_factory=list)

    # Compared by value, but args is a list so envelopes are not hashable
    __hash__ = None

    def __repr__(self) -> str:
        return f"CommandEnvelope(command={self.command!r}, args={len(self.args)} item(s))"

    @classmethod
    def create(cls, command: str, args: list[Any] | None = None) -> CommandEnvelope:
        """Create an envelope ready to :meth:`pack`. Nothing is validated here."""
        return cls(command, [] if args is None else args)

    def to_dict(self) -> dict[str, Any]:
        return {"command": self.command, "args": self.args}

    def pack(self) -> bytes:
        """Serialize the envelope for publishing to a queue.

        NaN and infinities are sent as ``null``.

        Raises:
            EnvelopeEncodeError: If an argument is neither JSON-encodable
                nor callable.
        """
        text = json.dumps(
            _without_non_finite(self.to_dict()),
            separators=JSON_SEPARATORS,
            ensure_ascii=False,
            default=_encode_default,
        )
        data = text.encode(ENCODING)
        logger.debug("Packed command %r (%d bytes)", self.command, len(data))
        return data

    @classmethod
    def from_buffer(
        cls,
        buffer: bytes | bytearray | memoryview,
        revive_functions: bool | FunctionTable = False,
    ) -> CommandEnvelope:
        """Rebuild an envelope from a consumed queue payload.

        Args:
            buffer: The payload bytes.
            revive_functions: ``False`` keeps function text as strings.
                ``True`` revives it against the default function table;
                a ``FunctionTable`` revives against that table. Only
                registered local functions are ever returned.

        Raises:
            EnvelopeParseError: If the payload is not UTF-8 JSON.
            EnvelopeValidationError: If ``command`` or ``args`` is missing
                or has the wrong type.
        """
        try:
            obj = json.loads(
                bytes(buffer).decode(ENCODING), parse_constant=_reject_constant
            )
        except UnicodeDecodeError as exc:
            raise EnvelopeParseError(f"Payload is not valid {ENCODING}: {exc}") from exc
        except json.JSONDecodeError as exc:
            raise EnvelopeParseError(f"Payload is not valid JSON: {exc}") from exc

        table = _table_for(revive_functions)
        if table is not None:
            obj = revive(obj, table)

        if not isinstance(obj, dict):
            raise EnvelopeValidationError("Expect serialized command to be an object")
        command = obj.get("command")
        if _is_false_like(command):
            raise EnvelopeValidationError(
                "Expect command field to be present and not false in serialized command"
            )
        if not isinstance(command, str):
            raise EnvelopeValidationError("Expect command field to be string")
        args = obj.get("args")
        if _is_false_like(args):
            raise EnvelopeValidationError(
                "Expect args field to be present and not false in serialized command"
            )
        if not isinstance(args, list):
            raise EnvelopeValidationError("Expect args field to be array")

        return cls(command, args)


@dataclass
class DecodeResult:
    """Outcome of :func:`decode_envelope`. Truthy only on success."""

    envelope: CommandEnvelope | None = None
    error_kind: ErrorKind | None = None
    message: str = ""

    def __bool__(self) -> bool:
        return self.envelope is not None


def decode_envelope(
    buffer: bytes | bytearray | memoryview,
    revive_functions: bool | FunctionTable = False,
) -> DecodeResult:
    """Decode a payload, reporting failures as a result instead of raising."""
    try:
        envelope = CommandEnvelope.from_buffer(buffer, revive_functions)
    except EnvelopeParseError as exc:
        logger.warning("Dropping unparseable payload: %s", exc)
        return DecodeResult(error_kind=ErrorKind.PARSE, message=str(exc))
    except EnvelopeValidationError as exc:
        logger.warning("Dropping invalid envelope: %s", exc)
        return DecodeResult(error_kind=ErrorKind.VALIDATION, message=str(exc))
    return DecodeResult(envelope=envelope)
