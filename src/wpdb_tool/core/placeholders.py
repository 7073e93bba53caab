"""Query template compilation with typed placeholders.

Templates use a printf-like grammar::

    %[argnum$][flags][width]['pad][.precision](d|f|F|s|i)

``d`` is an integer, ``f``/``F`` a locale-independent float, ``s`` a quoted
string value and ``i`` a backtick-quoted identifier. ``bytes`` arguments to
``s`` are written as ``X'..'`` hex literals. A literal percent sign
is written ``%%``. Any other percent sign is passed through as text.

The compiled SQL has every remaining ``%`` replaced by a per-instance escape
token so that feeding it into another compile pass cannot create new
placeholders. Database.query() restores the percent signs right before the
statement is sent to the server.
"""

from __future__ import annotations

import hashlib
import hmac
import math
import re
import secrets
import time
from dataclasses import dataclass
from decimal import Decimal
from enum import StrEnum
from typing import Any

import structlog

from wpdb_tool.core.exceptions import (
    ArgumentCountMismatch,
    DualRoleConflict,
    MissingPlaceholder,
    PrepareError,
)

_ALLOWED_FORMAT = r"(?:[1-9][0-9]*\$)?[-+0-9]*(?: |0|'.)?[-+0-9]*(?:\.[0-9]+)?"
_PLACEHOLDER_RE = re.compile(rf"%(?P<format>{_ALLOWED_FORMAT})(?P<type>[sdfFi])")
_ARGNUM_RE = re.compile(r"([1-9][0-9]*)\$")
_INT_PREFIX_RE = re.compile(r"\s*[+-]?\d+")
_FLOAT_PREFIX_RE = re.compile(r"\s*[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")

_BACKSLASH_ESCAPES = str.maketrans(
    {
        "\\": "\\\\",
        "\x00": "\\0",
        "\n": "\\n",
        "\r": "\\r",
        "\x1a": "\\Z",
    }
)


class Role(StrEnum):
    IDENTIFIER = "identifier"
    VALUE = "value"


@dataclass(frozen=True)
class Placeholder:
    """One parsed placeholder and the argument it binds to."""

    text: str
    format: str
    conversion: str
    index: int
    explicit: bool
    after_percent: bool

    @property
    def role(self) -> Role:
        return Role.IDENTIFIER if self.conversion == "i" else Role.VALUE


@dataclass(frozen=True)
class _Spec:
    left: bool = False
    plus: bool = False
    pad: str = " "
    width: int = 0
    precision: int | None = None


def _parse_spec(fmt: str) -> _Spec:
    m = _ARGNUM_RE.match(fmt)
    i = m.end() if m else 0
    left = plus = False
    pad = " "
    width = ""
    precision: int | None = None
    while i < len(fmt):
        ch = fmt[i]
        if ch == "'" and i + 1 < len(fmt):
            pad = fmt[i + 1]
            i += 2
            continue
        if ch == ".":
            precision = int(fmt[i + 1 :] or 0)
            break
        if ch == "-":
            left = True
        elif ch == "+":
            plus = True
        elif ch == " ":
            pad = " "
        elif ch == "0" and not width:
            pad = "0"
        elif ch.isdigit():
            width += ch
        i += 1
    return _Spec(left, plus, pad, int(width or 0), precision)


def _to_int(value: Any) -> int:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, (float, Decimal)):
        if isinstance(value, float) and not math.isfinite(value):
            return 0
        return int(value)
    if value is None:
        return 0
    m = _INT_PREFIX_RE.match(str(value))
    return int(m.group()) if m else 0


def _to_float(value: Any) -> float:
    if isinstance(value, (int, float, Decimal)):
        return float(value)
    if value is None:
        return 0.0
    m = _FLOAT_PREFIX_RE.match(str(value))
    return float(m.group()) if m else 0.0


def _pad(text: str, spec: _Spec, numeric: bool = False) -> str:
    if len(text) >= spec.width:
        return text
    if spec.left:
        return text.ljust(spec.width, spec.pad)
    if numeric and spec.pad == "0" and text[:1] in "+-":
        return text[0] + text[1:].rjust(spec.width - 1, "0")
    return text.rjust(spec.width, spec.pad)


class PlaceholderCompiler:
    """Compiles query templates into escaped SQL.

    Diagnostics from the last prepare() call are kept on ``last_error`` as
    PrepareError values and logged as warnings; prepare() never raises them.
    """

    def __init__(
        self,
        allow_unsafe_unquoted_parameters: bool = False,
        placeholder_salt: str | None = None,
        backslash_escapes: bool = True,
    ) -> None:
        self.allow_unsafe_unquoted_parameters = allow_unsafe_unquoted_parameters
        self.backslash_escapes = backslash_escapes
        self.last_error: PrepareError | None = None
        self._salt = placeholder_salt
        self._escape_token: str | None = None

    # -- escaping helpers --

    def real_escape(self, value: Any) -> str:
        """Escape a value for use inside a single-quoted SQL string."""
        if value is None:
            return ""
        if isinstance(value, bool):
            return "1" if value else ""
        text = str(value)
        if self.backslash_escapes:
            text = text.translate(_BACKSLASH_ESCAPES)
        return text.replace("'", "''")

    def escape(self, data: Any) -> Any:
        """Recursively escape strings inside lists, tuples and dicts."""
        if isinstance(data, dict):
            return {key: self.escape(value) for key, value in data.items()}
        if isinstance(data, (list, tuple)):
            return [self.escape(value) for value in data]
        if isinstance(data, str):
            return self.add_placeholder_escape(self.real_escape(data))
        return data

    @staticmethod
    def escape_identifier_value(identifier: Any) -> str:
        return str(identifier).replace("`", "``")

    def quote_identifier(self, identifier: Any) -> str:
        return f"`{self.escape_identifier_value(identifier)}`"

    @staticmethod
    def esc_like(text: str) -> str:
        """Escape LIKE wildcards. Use before prepare(), never after."""
        return re.sub(r"([\\%_])", r"\\\1", text)

    def placeholder_escape(self) -> str:
        """Return the escape token, generating it on first use."""
        if self._escape_token is None:
            salt = self._salt or secrets.token_hex(32)
            message = f"{salt}{time.time_ns()}".encode()
            digest = hmac.new(salt.encode(), message, hashlib.sha256).hexdigest()
            self._escape_token = "{" + digest + "}"
        return self._escape_token

    def add_placeholder_escape(self, query: str) -> str:
        return query.replace("%", self.placeholder_escape())

    def remove_placeholder_escape(self, query: str) -> str:
        return query.replace(self.placeholder_escape(), "%")

    # -- compilation --

    def tokenize(self, query: str) -> list[str | Placeholder]:
        """Split a template into literal text and placeholders.

        Escaped ``%%`` becomes a single ``%`` in the literal text.
        """
        tokens: list[str | Placeholder] = []
        literal: list[str] = []
        sequential = 0
        pos = 0
        length = len(query)

        while pos < length:
            nxt = query.find("%", pos)
            if nxt == -1:
                literal.append(query[pos:])
                break
            if nxt > pos:
                literal.append(query[pos:nxt])
                pos = nxt
            if query.startswith("%%", pos):
                literal.append("%")
                pos += 2
                continue
            m = _PLACEHOLDER_RE.match(query, pos)
            if m is None:
                # Stray percent sign: escaped and kept as text.
                literal.append("%")
                pos += 1
                continue

            text = "".join(literal)
            if text:
                tokens.append(text)
            literal = []

            fmt = m.group("format")
            argnum = _ARGNUM_RE.match(fmt)
            if argnum:
                index = int(argnum.group(1)) - 1
            else:
                index = sequential
                sequential += 1
            tokens.append(
                Placeholder(
                    text=m.group(),
                    format=fmt,
                    conversion=m.group("type"),
                    index=index,
                    explicit=argnum is not None,
                    after_percent=text.endswith("%"),
                )
            )
            pos = m.end()

        if literal:
            tokens.append("".join(literal))
        return tokens

    def prepare(self, query: str | None, *args: Any) -> str | None:
        """Compile a template and its arguments into escaped SQL.

        Arguments may be passed individually or as a single list. Returns
        None when the template is rejected (dual-role argument, a list sent
        to a single placeholder) and an empty string when too few arguments
        were supplied to cover the placeholders.
        """
        self.last_error = None
        if query is None:
            return None

        log = structlog.get_logger()

        query = query.replace("'%s'", "%s").replace('"%s"', "%s")

        passed_as_array = len(args) == 1 and isinstance(args[0], (list, tuple))
        values: list[Any] = list(args[0]) if passed_as_array else list(args)

        tokens = self.tokenize(query)
        placeholders: list[Placeholder] = []
        legacy_literals: set[int] = set()
        for pos, token in enumerate(tokens):
            if not isinstance(token, Placeholder):
                continue
            if (
                token.conversion == "f"
                and self.allow_unsafe_unquoted_parameters
                and token.after_percent
            ):
                legacy_literals.add(pos)
                continue
            placeholders.append(token)

        if not placeholders:
            self._diagnose(
                MissingPlaceholder(
                    "The query argument of prepare() must have a placeholder."
                ),
                log,
            )

        roles: dict[int, set[Role]] = {}
        for ph in placeholders:
            roles.setdefault(ph.index, set()).add(ph.role)
        dual_use = sorted(index for index, found in roles.items() if len(found) > 1)
        if dual_use:
            conflicts = [
                " and ".join(ph.text for ph in placeholders if ph.index == index)
                for index in dual_use
            ]
            msg = (
                "Arguments cannot be prepared as both an Identifier and Value. "
                f"Found the following conflicts: {', '.join(conflicts)}"
            )
            self._diagnose(DualRoleConflict(msg, conflicts), log)
            return None

        placeholder_count = len(placeholders)
        args_count = len(values)
        if args_count != placeholder_count:
            if placeholder_count == 1 and passed_as_array:
                msg = (
                    "The query only expected one placeholder, but an array of "
                    "multiple placeholders was sent."
                )
                self._diagnose(ArgumentCountMismatch(msg), log)
                return None

            msg = (
                "The query does not contain the correct number of placeholders "
                f"({placeholder_count}) for the number of arguments passed "
                f"({args_count})."
            )
            self._diagnose(ArgumentCountMismatch(msg), log)
            if args_count < placeholder_count:
                max_numbered = max(
                    (ph.index + 1 for ph in placeholders if ph.explicit), default=0
                )
                if not max_numbered or args_count < max_numbered:
                    return ""

        identifiers = {
            index for index, found in roles.items() if Role.IDENTIFIER in found
        }
        arguments = [
            self._coerce_argument(i, value, i in identifiers, log)
            for i, value in enumerate(values)
        ]

        parts: list[str] = []
        for pos, token in enumerate(tokens):
            if isinstance(token, str):
                parts.append(token)
            elif pos in legacy_literals:
                parts.append(f"%{token.format}{token.conversion}")
            else:
                value = arguments[token.index] if token.index < len(arguments) else ""
                parts.append(self._render(token, value))

        return self.add_placeholder_escape("".join(parts))

    @staticmethod
    def _coerce_argument(index: int, value: Any, is_identifier: bool, log: Any) -> Any:
        """Reduce an argument to int, float, Decimal, bytes or str.

        Escaping happens in _render(), after precision and padding, so a
        truncated value can never end inside an escape sequence.
        """
        if is_identifier:
            if value is None:
                return ""
            if isinstance(value, bytes):
                return value.decode("utf-8", errors="replace")
            return str(value)
        if isinstance(value, bool):
            return int(value)
        if isinstance(value, (int, float, Decimal, str, bytes)):
            return value
        if value is None:
            return ""
        log.warning(
            "unsupported value type in prepare()",
            argument=index + 1,
            type=type(value).__name__,
        )
        return ""

    def _render(self, ph: Placeholder, value: Any) -> str:
        spec = _parse_spec(ph.format)

        if isinstance(value, bytes):
            if ph.conversion == "s":
                # Hex literal: binary data never passes through a text codec.
                data = value if spec.precision is None else value[: spec.precision]
                return f"X'{data.hex()}'"
            value = value.decode("ascii", errors="ignore")

        if ph.conversion == "d":
            number = _to_int(value)
            text = str(number)
            if spec.plus and number >= 0:
                text = "+" + text
            return _pad(text, spec, numeric=True)

        if ph.conversion in ("f", "F"):
            number = _to_float(value)
            precision = 6 if spec.precision is None else spec.precision
            text = f"{number:.{precision}f}"
            if spec.plus and number >= 0:
                text = "+" + text
            return _pad(text, spec, numeric=True)

        text = value if isinstance(value, str) else str(value)
        if spec.precision is not None:
            text = text[: spec.precision]
        text = _pad(text, spec)

        if ph.conversion == "i":
            return f"`{self.escape_identifier_value(text)}`"
        text = self.real_escape(text)
        if not self.allow_unsafe_unquoted_parameters or (
            ph.format == "" and not ph.after_percent
        ):
            return f"'{text}'"
        return text

    def _diagnose(self, error: PrepareError, log: Any) -> None:
        self.last_error = error
        log.warning("prepare diagnostic", kind=error.kind, message=error.message)
