"""Callables carried as source text, and their revival on the receiving side.

Packing replaces every callable in the argument tree with its source text.
On the receiving side, a function-shaped string is turned back into a
callable only by looking it up in a :class:`FunctionTable` of functions the
receiver registered itself. Received text is never compiled or executed.

Recognized shapes::

    def name(a, b):              Python function (decorators, async allowed)
        return a + b
    lambda a, b: a + b           Python lambda
    function name(a, b) { ... }  brace-bodied function from JavaScript peers
    (a, b) => { ... }
"""

from __future__ import annotations

import ast
import inspect
import logging
import re
import textwrap
from dataclasses import dataclass
from typing import Any, Callable

logger = logging.getLogger(__name__)

LAMBDA_NAME = "<lambda>"

_DEF_PATTERN = re.compile(
    r"(?:[ \t]*@(?:[^\n(]|\([^)]*\))*\n)*"  # decorators, arguments may span lines
    r"[ \t]*(?:async[ \t]+)?def[ \t]+(?P<name>\w+)[ \t]*"
    r"\((?P<params>[^)]*)\)"
    r"[^:\n]*:"  # return annotation
    r"(?P<body>[\s\S]+)"
)
_LAMBDA_PATTERN = re.compile(r"\s*lambda\b(?P<params>[^:]*):(?P<body>[\s\S]+)")
# Permissive: nested braces and destructured parameters are not handled.
_BRACE_PATTERN = re.compile(
    r"(?:function\s*(?P<name>[\w$]*)[^(]*)?\(?(?P<params>[^)=]+)\)?"
    r"(?:\s*(?:=>)?\s*)\{(?P<body>[\s\S]+)\}"
)


@dataclass(frozen=True)
class FunctionSource:
    """A string recognized as function source text."""

    name: str | None
    params: tuple[str, ...]
    body: str
    text: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "params": list(self.params),
            "body": self.body,
        }


def _qualname(fn: Any) -> str:
    return getattr(fn, "__qualname__", None) or type(fn).__qualname__


def _lambda_expression(source: str) -> str:
    """Cut the ``lambda`` expression out of the line(s) that define it."""
    try:
        tree = ast.parse(source)
    except SyntaxError:
        return source.strip()
    lambdas = [node for node in ast.walk(tree) if isinstance(node, ast.Lambda)]
    if len(lambdas) != 1:
        return source.strip()
    return ast.get_source_segment(source, lambdas[0]) or source.strip()


def function_source(fn: Callable[..., Any]) -> str:
    """Return the text a callable is packed as.

    Functions give their dedented source, lambdas just their expression.
    Callables without retrievable source (builtins, partials, instances)
    give a ``<callable NAME>`` placeholder that never revives.
    """
    try:
        source = textwrap.dedent(inspect.getsource(fn))
    except (OSError, TypeError):
        return f"<callable {_qualname(fn)}>"
    if getattr(fn, "__name__", None) == LAMBDA_NAME:
        return _lambda_expression(source)
    return source.rstrip()


def _split_params(raw: str) -> tuple[str, ...]:
    params = [p.strip() for p in raw.rstrip(",").split(",")]
    while params and not params[-1]:
        params.pop()
    return tuple(params)


def parse_function_source(text: str) -> FunctionSource | None:
    """Match *text* against the known function shapes.

    Returns:
        A ``FunctionSource``, or ``None`` if the text is not function-shaped.
    """
    match = _DEF_PATTERN.fullmatch(text)
    if match:
        return FunctionSource(
            name=match.group("name"),
            params=_split_params(match.group("params")),
            body=textwrap.dedent(match.group("body")).strip(),
            text=text,
        )

    match = _LAMBDA_PATTERN.fullmatch(text)
    if match:
        return FunctionSource(
            name=None,
            params=_split_params(match.group("params")),
            body=match.group("body").strip(),
            text=text,
        )

    match = _BRACE_PATTERN.search(text)
    if match:
        return FunctionSource(
            name=match.group("name") or None,
            params=_split_params(match.group("params")),
            body=match.group("body"),
            text=text,
        )

    return None


class FunctionTable:
    """Local callables that function text may be revived into.

    Usage::

        table = FunctionTable()

        @table.register
        def is_even(n):
            return n % 2 == 0

        CommandEnvelope.from_buffer(payload, revive_functions=table)
    """

    def __init__(self) -> None:
        self._by_name: dict[str, Callable[..., Any]] = {}
        self._by_source: dict[str, Callable[..., Any]] = {}

    def register(self, fn: Callable[..., Any] | None = None, *, name: str | None = None):
        """Register a callable, directly or as a decorator.

        The callable is found again by its packed source text, and by
        *name* (default: its ``__name__``, unless it is a lambda).
        """

        def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
            key = name or getattr(func, "__name__", None)
            if key and key != LAMBDA_NAME:
                self._by_name[key] = func
            text = function_source(func)
            if parse_function_source(text) is not None:
                self._by_source[text] = func
            logger.debug("Registered function %s", key or _qualname(func))
            return func

        if fn is None:
            return decorator
        return decorator(fn)

    def resolve(self, source: FunctionSource) -> Callable[..., Any] | None:
        """Find the local callable for parsed function text."""
        fn = self._by_source.get(source.text)
        if fn is None and source.name:
            fn = self._by_name.get(source.name)
        return fn

    def names(self) -> list[str]:
        return sorted(self._by_name)

    def __contains__(self, name: object) -> bool:
        return name in self._by_name

    def __len__(self) -> int:
        return len(self._by_name)


# Default table used when revival is requested with ``True``
functions = FunctionTable()
register = functions.register


def _revive_string(value: str, table: FunctionTable) -> Any:
    source = parse_function_source(value)
    if source is None:
        return value
    fn = table.resolve(source)
    if fn is None:
        logger.debug("No registered function for %r, keeping text", source.name or value[:40])
        return value
    logger.debug("Revived function %s", source.name or _qualname(fn))
    return fn


def _revive_node(value: Any, table: FunctionTable) -> Any:
    if isinstance(value, str):
        return _revive_string(value, table)
    return revive(value, table)


def revive(value: Any, table: FunctionTable) -> Any:
    """Replace function text inside a decoded document with local callables.

    Containers are walked bottom-up. The document itself and a string held
    directly under the empty-string key are returned as they are; containers
    under that key are still walked.
    """
    if isinstance(value, list):
        return [_revive_node(item, table) for item in value]
    if isinstance(value, dict):
        return {
            key: revive(item, table) if key == "" else _revive_node(item, table)
            for key, item in value.items()
        }
    return value
