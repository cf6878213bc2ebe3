from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from typing import Any

from .codec import NullKind, WireValue, null_marker, to_wire_value
from .errors import DuplicateKeyError


class AttributeValueRegistry:
    def __init__(self) -> None:
        self._values: dict[str, WireValue] = {}

    def add(
        self,
        placeholder: str,
        value: Any,
        conditional_use: bool = True,
        *,
        null_kind: NullKind | None = None,
    ) -> bool:
        """Register ``value`` under ``placeholder``; returns whether an entry was added.

        With ``conditional_use`` a missing value (``None`` or an empty map) is skipped, which
        turns optional filters into no-ops. Without it the value is always registered and a
        ``None`` is encoded according to ``null_kind``.
        """
        if value is None:
            if conditional_use:
                return False
            self._put(placeholder, null_marker(null_kind or "S"))
            return True

        if isinstance(value, Mapping) and not value:
            if conditional_use:
                return False
            self._put(placeholder, {"M": {}})
            return True

        self._put(placeholder, to_wire_value(value))
        return True

    def add_wire(self, placeholder: str, value: WireValue) -> None:
        self._put(placeholder, dict(value))

    def add_range(self, values: Mapping[str, WireValue] | Iterable[tuple[str, WireValue]]) -> None:
        items = values.items() if isinstance(values, Mapping) else values
        for placeholder, value in items:
            self.add_wire(placeholder, value)

    def _put(self, placeholder: str, value: WireValue) -> None:
        if placeholder in self._values:
            raise DuplicateKeyError(placeholder=placeholder, registry="value")
        self._values[placeholder] = value

    def get(self, placeholder: str) -> WireValue | None:
        return self._values.get(placeholder)

    def snapshot(self) -> dict[str, WireValue] | None:
        if not self._values:
            return None
        return dict(self._values)

    def __contains__(self, placeholder: object) -> bool:
        return placeholder in self._values

    def __len__(self) -> int:
        return len(self._values)

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)
