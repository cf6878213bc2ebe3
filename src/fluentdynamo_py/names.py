from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping

from .errors import DuplicateKeyError


class AttributeNameRegistry:
    """Expression attribute names (``#placeholder`` -> real attribute name) for one request.

    The registry is append-only. Placeholders and names are stored verbatim; empty strings
    are accepted and left for DynamoDB to judge.
    """

    def __init__(self) -> None:
        self._names: dict[str, str] = {}

    def add(self, placeholder: str, name: str) -> None:
        if placeholder in self._names:
            raise DuplicateKeyError(placeholder=placeholder, registry="name")
        self._names[placeholder] = name

    def add_range(self, entries: Mapping[str, str] | Iterable[tuple[str, str]]) -> None:
        # No rollback: entries before a duplicate stay registered.
        items = entries.items() if isinstance(entries, Mapping) else entries
        for placeholder, name in items:
            self.add(placeholder, name)

    def snapshot(self) -> dict[str, str] | None:
        """Copy of the mapping, or ``None`` when the request should omit the field."""
        if not self._names:
            return None
        return dict(self._names)

    def __contains__(self, placeholder: object) -> bool:
        return placeholder in self._names

    def __len__(self) -> int:
        return len(self._names)

    def __iter__(self) -> Iterator[str]:
        return iter(self._names)
