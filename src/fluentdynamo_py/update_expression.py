from __future__ import annotations

import re
from collections.abc import Iterable

from .errors import MissingConditionError, ValidationError

ACTION_KEYWORDS = ("SET", "REMOVE", "ADD", "DELETE")

# Keywords count only as standalone words: not inside #names, :values or dotted paths.
_KEYWORD = re.compile(r"(?<![#:\w.])\b(SET|REMOVE|ADD|DELETE)\b(?![\w.])", re.IGNORECASE)


def split_clauses(fragment: str) -> list[tuple[str, str]]:
    """Split ``SET a = :p0 REMOVE b`` into ``[("SET", "a = :p0"), ("REMOVE", "b")]``."""
    text = fragment.strip()
    boundaries: list[tuple[int, int, str]] = []
    for match in _KEYWORD.finditer(text):
        if _depth(text, match.start()) == 0:
            boundaries.append((match.start(), match.end(), match.group(1).upper()))

    if not boundaries or boundaries[0][0] != 0:
        raise ValidationError(
            f"update expression must start with one of {', '.join(ACTION_KEYWORDS)}: {fragment!r}"
        )

    clauses: list[tuple[str, str]] = []
    for i, (_, body_start, keyword) in enumerate(boundaries):
        body_end = boundaries[i + 1][0] if i + 1 < len(boundaries) else len(text)
        body = text[body_start:body_end].strip().rstrip(",").strip()
        if not body:
            raise ValidationError(f"{keyword} clause has no actions: {fragment!r}")
        clauses.append((keyword, body))
    return clauses


def _depth(text: str, pos: int) -> int:
    return text.count("(", 0, pos) - text.count(")", 0, pos)


class UpdateExpressionAccumulator:
    def __init__(self) -> None:
        self._clauses: dict[str, list[str]] = {}

    def add(self, fragment: str) -> None:
        self.add_clauses(split_clauses(fragment))

    def add_clauses(self, clauses: Iterable[tuple[str, str]]) -> None:
        pending = list(clauses)
        for keyword, _ in pending:
            if keyword not in ACTION_KEYWORDS:
                raise ValidationError(f"unknown update action {keyword!r}")
        for keyword, body in pending:
            self._clauses.setdefault(keyword, []).append(body)

    def combine(self, *, required: bool = True) -> str | None:
        if not self._clauses:
            if required:
                raise MissingConditionError("UpdateExpression is required but no update action was added")
            return None
        return " ".join(f"{keyword} {', '.join(bodies)}" for keyword, bodies in self._clauses.items())

    def __len__(self) -> int:
        return sum(len(bodies) for bodies in self._clauses.values())

    def __bool__(self) -> bool:
        return bool(self._clauses)
