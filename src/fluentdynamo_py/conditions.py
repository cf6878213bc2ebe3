from __future__ import annotations

from .errors import MissingConditionError, ValidationError


class ConditionAccumulator:
    """Ordered fragments for one expression slot, joined with AND when read."""

    def __init__(self, slot: str = "ConditionExpression") -> None:
        self.slot = slot
        self._fragments: list[str] = []

    def add(self, fragment: str) -> None:
        if not fragment or not fragment.strip():
            raise ValidationError(f"{self.slot} fragment cannot be empty")
        self._fragments.append(fragment)

    @property
    def fragments(self) -> tuple[str, ...]:
        return tuple(self._fragments)

    def combine(self, *, required: bool = False) -> str | None:
        if not self._fragments:
            if required:
                raise MissingConditionError(f"{self.slot} is required but no condition was added")
            return None
        if len(self._fragments) == 1:
            return self._fragments[0]
        return " AND ".join(f"({fragment})" for fragment in self._fragments)

    def __len__(self) -> int:
        return len(self._fragments)

    def __bool__(self) -> bool:
        return bool(self._fragments)
