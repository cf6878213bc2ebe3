from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any, Self

import structlog

from .codec import WireValue
from .errors import ValidationError
from .requests import CONSUMED_CAPACITY_MODES
from .runtime import OperationObserver, execute_operation

logger = structlog.get_logger()

MAX_BATCH_GET_KEYS = 100
MAX_BATCH_WRITE_REQUESTS = 25


def _copy_item(item: Mapping[str, WireValue]) -> dict[str, WireValue]:
    if not item:
        raise ValidationError("batch entries cannot be empty")
    return {name: dict(value) for name, value in item.items()}


class _BatchBuilder:
    operation: str

    def __init__(self, *, client: Any | None = None, on_operation: OperationObserver | None = None) -> None:
        self._client = client
        self._on_operation = on_operation
        self._consumed_capacity: str | None = None

    def return_consumed_capacity(self, mode: str = "TOTAL") -> Self:
        if mode not in CONSUMED_CAPACITY_MODES:
            raise ValidationError(f"ReturnConsumedCapacity must be one of {sorted(CONSUMED_CAPACITY_MODES)}")
        self._consumed_capacity = mode
        return self

    def to_request(self) -> dict[str, Any]:
        raise NotImplementedError

    def execute(self) -> dict[str, Any]:
        """Send one batch request; unprocessed entries are returned to the caller untouched."""
        if self._client is None:
            raise ValidationError(f"{self.operation} has no DynamoDB client to execute with")
        return execute_operation(self._client, self.operation, self.to_request(), on_operation=self._on_operation)


class BatchGetBuilder(_BatchBuilder):
    operation = "batch_get_item"

    def __init__(self, *, client: Any | None = None, on_operation: OperationObserver | None = None) -> None:
        super().__init__(client=client, on_operation=on_operation)
        self._tables: dict[str, dict[str, Any]] = {}

    def get_from_table(
        self,
        table_name: str,
        keys: Sequence[Mapping[str, WireValue]],
        *,
        projection: str | None = None,
        consistent_read: bool = False,
        names: Mapping[str, str] | None = None,
    ) -> Self:
        if not table_name:
            raise ValidationError("table name is required")
        if not keys:
            raise ValidationError(f"no keys given for table {table_name!r}")

        entry = self._tables.setdefault(table_name, {"Keys": []})
        entry["Keys"].extend(_copy_item(key) for key in keys)
        if consistent_read:
            entry["ConsistentRead"] = True
        if projection:
            entry["ProjectionExpression"] = projection
        if names:
            entry.setdefault("ExpressionAttributeNames", {}).update(names)
        return self

    def to_request(self) -> dict[str, Any]:
        total = sum(len(entry["Keys"]) for entry in self._tables.values())
        if total == 0:
            raise ValidationError("batch_get_item requires at least one key")
        if total > MAX_BATCH_GET_KEYS:
            raise ValidationError(f"batch_get_item supports at most {MAX_BATCH_GET_KEYS} keys, got {total}")

        req: dict[str, Any] = {
            "RequestItems": {
                table: {**entry, "Keys": list(entry["Keys"])} for table, entry in self._tables.items()
            }
        }
        if self._consumed_capacity is not None:
            req["ReturnConsumedCapacity"] = self._consumed_capacity
        logger.debug("batch_built", operation=self.operation, tables=len(self._tables), keys=total)
        return req


class BatchWriteBuilder(_BatchBuilder):
    operation = "batch_write_item"

    def __init__(self, *, client: Any | None = None, on_operation: OperationObserver | None = None) -> None:
        super().__init__(client=client, on_operation=on_operation)
        self._tables: dict[str, list[dict[str, Any]]] = {}

    def put(self, table_name: str, item: Mapping[str, WireValue]) -> Self:
        self._entries(table_name).append({"PutRequest": {"Item": _copy_item(item)}})
        return self

    def delete(self, table_name: str, key: Mapping[str, WireValue]) -> Self:
        self._entries(table_name).append({"DeleteRequest": {"Key": _copy_item(key)}})
        return self

    def _entries(self, table_name: str) -> list[dict[str, Any]]:
        if not table_name:
            raise ValidationError("table name is required")
        return self._tables.setdefault(table_name, [])

    def to_request(self) -> dict[str, Any]:
        total = sum(len(entries) for entries in self._tables.values())
        if total == 0:
            raise ValidationError("batch_write_item requires at least one request")
        if total > MAX_BATCH_WRITE_REQUESTS:
            raise ValidationError(
                f"batch_write_item supports at most {MAX_BATCH_WRITE_REQUESTS} requests, got {total}"
            )

        req: dict[str, Any] = {"RequestItems": {table: list(entries) for table, entries in self._tables.items()}}
        if self._consumed_capacity is not None:
            req["ReturnConsumedCapacity"] = self._consumed_capacity
        logger.debug("batch_built", operation=self.operation, tables=len(self._tables), requests=total)
        return req
