from __future__ import annotations

import re
from collections.abc import Container, Sequence
from dataclasses import dataclass
from typing import Any

import structlog

from .codec import WireValue, to_wire_value
from .errors import (
    EmptyTemplateError,
    FormatSpecError,
    IndexOutOfRangeError,
    NullArgumentsError,
    TemplateSyntaxError,
    ValidationError,
)

logger = structlog.get_logger()

_INDEX = re.compile(r"[0-9]+")


@dataclass(frozen=True)
class Marker:
    index: int
    format_spec: str | None
    text: str


type TemplateToken = str | Marker


def scan_template(template: str) -> list[TemplateToken]:
    tokens: list[TemplateToken] = []
    literal: list[str] = []
    pos = 0
    end = len(template)

    while pos < end:
        ch = template[pos]

        if ch == "{":
            if template.startswith("{{", pos):
                literal.append("{")
                pos += 2
                continue

            close = template.find("}", pos + 1)
            if close == -1:
                raise TemplateSyntaxError(f"unmatched '{{' at position {pos} in format string")

            body = template[pos + 1 : close]
            index_text, sep, spec = body.partition(":")
            if not _INDEX.fullmatch(index_text):
                raise TemplateSyntaxError(
                    f"Format string contains invalid parameter index {index_text!r}. "
                    "Parameter indices must be non-negative integers."
                )
            if sep and not spec:
                raise TemplateSyntaxError(f"empty format specifier in {template[pos : close + 1]!r}")

            if literal:
                tokens.append("".join(literal))
                literal = []
            tokens.append(
                Marker(
                    index=int(index_text),
                    format_spec=spec if sep else None,
                    text=template[pos : close + 1],
                )
            )
            pos = close + 1
            continue

        if ch == "}":
            if template.startswith("}}", pos):
                literal.append("}")
                pos += 2
                continue
            raise TemplateSyntaxError(f"unmatched '}}' at position {pos} in format string")

        literal.append(ch)
        pos += 1

    if literal:
        tokens.append("".join(literal))
    return tokens


@dataclass(frozen=True)
class FormatResult:
    expression: str
    registrations: tuple[tuple[str, WireValue], ...]

    @property
    def placeholders(self) -> tuple[str, ...]:
        return tuple(placeholder for placeholder, _ in self.registrations)


class ExpressionFormatter:
    def __init__(self, *, prefix: str = ":p") -> None:
        if not prefix.startswith(":") or len(prefix) < 2:
            raise ValueError("prefix must start with ':' and name at least one character")
        self._prefix = prefix
        self._literal_placeholder = re.compile(re.escape(prefix) + r"[0-9]+(?![0-9])")

    @property
    def prefix(self) -> str:
        return self._prefix

    def format(
        self,
        template: str,
        args: Sequence[Any] | None,
        *,
        reserved: Container[str] = (),
    ) -> FormatResult:
        """Rewrite ``{N[:spec]}`` markers into value placeholders.

        Nothing is registered here: the caller adds ``registrations`` to its value registry.
        Generated names skip anything in ``reserved`` and any placeholder already spelled out
        in the template text, so several calls can share one registry.
        """
        if template is None or not template.strip():
            raise EmptyTemplateError("Format string cannot be null or empty.")
        if args is None:
            raise NullArgumentsError("format arguments are required; pass an empty sequence for none")

        values = tuple(args)
        tokens = scan_template(template)
        markers = [token for token in tokens if isinstance(token, Marker)]

        if markers:
            highest = max(marker.index for marker in markers)
            if highest >= len(values):
                raise IndexOutOfRangeError(index=highest, argument_count=len(values))

        taken = {
            match.group(0)
            for token in tokens
            if isinstance(token, str)
            for match in self._literal_placeholder.finditer(token)
        }

        assigned: dict[tuple[int, str | None], str] = {}
        registrations: list[tuple[str, WireValue]] = []
        parts: list[str] = []
        counter = 0

        for token in tokens:
            if isinstance(token, str):
                parts.append(token)
                continue

            key = (token.index, token.format_spec)
            placeholder = assigned.get(key)
            if placeholder is None:
                while f"{self._prefix}{counter}" in reserved or f"{self._prefix}{counter}" in taken:
                    counter += 1
                placeholder = f"{self._prefix}{counter}"
                counter += 1

                registrations.append((placeholder, _convert(values[token.index], token)))
                assigned[key] = placeholder
            parts.append(placeholder)

        logger.debug(
            "expression_formatted",
            markers=len(markers),
            placeholders=[placeholder for placeholder, _ in registrations],
        )
        return FormatResult(expression="".join(parts), registrations=tuple(registrations))


def _convert(value: Any, marker: Marker) -> WireValue:
    try:
        return to_wire_value(value, marker.format_spec)
    except FormatSpecError as err:
        raise FormatSpecError(
            f"Invalid format specifier {marker.format_spec!r} for parameter at index {marker.index}. {err}"
        ) from err
    except ValidationError as err:
        raise ValidationError(f"Cannot use parameter at index {marker.index} in {marker.text}: {err}") from err


_default_formatter = ExpressionFormatter()


def format_expression(
    template: str,
    args: Sequence[Any] | None,
    *,
    reserved: Container[str] = (),
) -> FormatResult:
    return _default_formatter.format(template, args, reserved=reserved)
