from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import Any, ClassVar, Self

import structlog

from .codec import NullKind, WireValue, to_wire_value
from .conditions import ConditionAccumulator
from .errors import ValidationError
from .formatter import ExpressionFormatter, FormatResult
from .names import AttributeNameRegistry
from .runtime import OperationObserver, execute_operation
from .update_expression import UpdateExpressionAccumulator, split_clauses
from .values import AttributeValueRegistry

logger = structlog.get_logger()

CONSUMED_CAPACITY_MODES = frozenset({"INDEXES", "TOTAL", "NONE"})
ITEM_COLLECTION_METRICS_MODES = frozenset({"SIZE", "NONE"})
CONDITION_FAILURE_RETURN_MODES = frozenset({"ALL_OLD", "NONE"})

_default_formatter = ExpressionFormatter()


def _check_mode(kind: str, mode: str, allowed: frozenset[str]) -> str:
    if mode not in allowed:
        raise ValidationError(f"{kind} must be one of {sorted(allowed)}, got {mode!r}")
    return mode


class _RequestBuilder:
    operation: ClassVar[str]

    def __init__(
        self,
        table_name: str | None = None,
        *,
        client: Any | None = None,
        on_operation: OperationObserver | None = None,
        formatter: ExpressionFormatter | None = None,
    ) -> None:
        self._table_name = table_name
        self._client = client
        self._on_operation = on_operation
        self._formatter = formatter or _default_formatter
        self._names = AttributeNameRegistry()
        self._values = AttributeValueRegistry()
        self._consumed_capacity: str | None = None

    @property
    def table_name(self) -> str | None:
        return self._table_name

    def for_table(self, table_name: str) -> Self:
        self._table_name = table_name
        return self

    def with_attribute(self, placeholder: str, name: str) -> Self:
        self._names.add(placeholder, name)
        return self

    def with_attributes(self, names: Mapping[str, str]) -> Self:
        self._names.add_range(names)
        return self

    def return_consumed_capacity(self, mode: str = "TOTAL") -> Self:
        self._consumed_capacity = _check_mode("ReturnConsumedCapacity", mode, CONSUMED_CAPACITY_MODES)
        return self

    def _resolve(self, template: str, args: tuple[Any, ...]) -> FormatResult:
        return self._formatter.format(template, args, reserved=self._values)

    def _format(self, template: str, args: tuple[Any, ...]) -> str:
        result = self._resolve(template, args)
        self._values.add_range(result.registrations)
        return result.expression

    def _require_table(self) -> str:
        if not self._table_name:
            raise ValidationError(f"{self.operation} requires a table name")
        return self._table_name

    def _expression_attributes(self, req: dict[str, Any]) -> dict[str, Any]:
        names = self._names.snapshot()
        if names is not None:
            req["ExpressionAttributeNames"] = names
        values = self._values.snapshot()
        if values is not None:
            req["ExpressionAttributeValues"] = values
        return req

    def _request_options(self, req: dict[str, Any]) -> dict[str, Any]:
        if self._consumed_capacity is not None:
            req["ReturnConsumedCapacity"] = self._consumed_capacity
        return req

    def _index_name(self) -> str | None:
        return None

    def to_request(self) -> dict[str, Any]:
        raise NotImplementedError

    def execute(self) -> dict[str, Any]:
        if self._client is None:
            raise ValidationError(f"{self.operation} has no DynamoDB client to execute with")
        req = self.to_request()
        logger.debug("request_built", operation=self.operation, table_name=self._table_name)
        return execute_operation(
            self._client,
            self.operation,
            req,
            table_name=self._table_name,
            index_name=self._index_name(),
            on_operation=self._on_operation,
        )


class _ValueMixin(_RequestBuilder):
    def with_value(
        self,
        placeholder: str,
        value: Any,
        conditional_use: bool = True,
        *,
        null_kind: NullKind | None = None,
    ) -> Self:
        self._values.add(placeholder, value, conditional_use, null_kind=null_kind)
        return self

    def with_values(self, values: Mapping[str, WireValue]) -> Self:
        self._values.add_range(values)
        return self


class _KeyMixin(_RequestBuilder):
    _key: dict[str, WireValue]

    def with_key(
        self,
        name: str,
        value: Any,
        sort_key_name: str | None = None,
        sort_key_value: Any | None = None,
    ) -> Self:
        if value is None:
            raise ValidationError(f"key attribute {name!r} needs a value")
        self._key[name] = to_wire_value(value)
        if sort_key_name is not None:
            if sort_key_value is None:
                raise ValidationError(f"sort key {sort_key_name!r} needs a value")
            self._key[sort_key_name] = to_wire_value(sort_key_value)
        return self

    def with_key_values(self, key: Mapping[str, WireValue]) -> Self:
        for name, value in key.items():
            self._key[name] = dict(value)
        return self

    def _require_key(self) -> dict[str, WireValue]:
        if not self._key:
            raise ValidationError(f"{self.operation} requires a key")
        return dict(self._key)


class _ConditionMixin(_RequestBuilder):
    _condition: ConditionAccumulator

    def where(self, template: str, *args: Any) -> Self:
        self._condition.add(self._format(template, args))
        return self


class _WriteOptionsMixin(_RequestBuilder):
    return_value_modes: ClassVar[frozenset[str]] = frozenset({"NONE", "ALL_OLD"})
    _return_values: str | None
    _item_collection_metrics: str | None
    _condition_failure_values: str | None

    def return_values(self, mode: str) -> Self:
        self._return_values = _check_mode("ReturnValues", mode, self.return_value_modes)
        return self

    def return_all_old_values(self) -> Self:
        return self.return_values("ALL_OLD")

    def return_item_collection_metrics(self, mode: str = "SIZE") -> Self:
        self._item_collection_metrics = _check_mode(
            "ReturnItemCollectionMetrics", mode, ITEM_COLLECTION_METRICS_MODES
        )
        return self

    def return_values_on_condition_check_failure(self, mode: str = "ALL_OLD") -> Self:
        self._condition_failure_values = _check_mode(
            "ReturnValuesOnConditionCheckFailure", mode, CONDITION_FAILURE_RETURN_MODES
        )
        return self

    def _write_options(self, req: dict[str, Any]) -> dict[str, Any]:
        if self._return_values is not None:
            req["ReturnValues"] = self._return_values
        if self._item_collection_metrics is not None:
            req["ReturnItemCollectionMetrics"] = self._item_collection_metrics
        return req

    def _condition_failure_option(self, req: dict[str, Any]) -> dict[str, Any]:
        if self._condition_failure_values is not None:
            req["ReturnValuesOnConditionCheckFailure"] = self._condition_failure_values
        return req


class GetItemBuilder(_KeyMixin):
    operation = "get_item"

    def __init__(self, table_name: str | None = None, **kwargs: Any) -> None:
        super().__init__(table_name, **kwargs)
        self._key = {}
        self._consistent_read = False
        self._projection: str | None = None

    def using_consistent_read(self, enabled: bool = True) -> Self:
        self._consistent_read = enabled
        return self

    def with_projection(self, expression: str) -> Self:
        self._projection = expression
        return self

    def _get(self) -> dict[str, Any]:
        req: dict[str, Any] = {"TableName": self._require_table(), "Key": self._require_key()}
        if self._projection:
            req["ProjectionExpression"] = self._projection
        names = self._names.snapshot()
        if names is not None:
            req["ExpressionAttributeNames"] = names
        return req

    def to_request(self) -> dict[str, Any]:
        req = self._get()
        if self._consistent_read:
            req["ConsistentRead"] = True
        return self._request_options(req)

    def to_transact_item(self) -> dict[str, Any]:
        return {"Get": self._get()}


class PutItemBuilder(_ValueMixin, _ConditionMixin, _WriteOptionsMixin):
    operation = "put_item"

    def __init__(self, table_name: str | None = None, **kwargs: Any) -> None:
        super().__init__(table_name, **kwargs)
        self._item: dict[str, WireValue] = {}
        self._condition = ConditionAccumulator("ConditionExpression")
        self._return_values = None
        self._item_collection_metrics = None
        self._condition_failure_values = None

    def with_item[T](
        self,
        item: T | Mapping[str, WireValue],
        mapper: Callable[[T], Mapping[str, WireValue]] | None = None,
    ) -> Self:
        mapped = mapper(item) if mapper is not None else item
        if not isinstance(mapped, Mapping):
            raise ValidationError("with_item expects a wire item mapping or a mapper that produces one")
        self._item = {name: dict(value) for name, value in mapped.items()}
        return self

    def _put(self) -> dict[str, Any]:
        if not self._item:
            raise ValidationError("put_item requires an item")
        req: dict[str, Any] = {"TableName": self._require_table(), "Item": dict(self._item)}
        condition = self._condition.combine()
        if condition is not None:
            req["ConditionExpression"] = condition
        return self._condition_failure_option(self._expression_attributes(req))

    def to_request(self) -> dict[str, Any]:
        return self._request_options(self._write_options(self._put()))

    def to_transact_item(self) -> dict[str, Any]:
        return {"Put": self._put()}


class UpdateItemBuilder(_KeyMixin, _ValueMixin, _ConditionMixin, _WriteOptionsMixin):
    operation = "update_item"
    return_value_modes = frozenset({"NONE", "ALL_OLD", "UPDATED_OLD", "ALL_NEW", "UPDATED_NEW"})

    def __init__(self, table_name: str | None = None, **kwargs: Any) -> None:
        super().__init__(table_name, **kwargs)
        self._key = {}
        self._updates = UpdateExpressionAccumulator()
        self._condition = ConditionAccumulator("ConditionExpression")
        self._return_values = None
        self._item_collection_metrics = None
        self._condition_failure_values = None

    def set(self, template: str, *args: Any) -> Self:
        """Add update actions, e.g. ``set("SET #n = {0} REMOVE #old", name)``.

        Clauses sharing a keyword across calls are merged into one clause. A fragment that is
        not a valid update expression registers none of its values.
        """
        result = self._resolve(template, args)
        clauses = split_clauses(result.expression)
        self._values.add_range(result.registrations)
        self._updates.add_clauses(clauses)
        return self

    def _update(self) -> dict[str, Any]:
        req: dict[str, Any] = {
            "TableName": self._require_table(),
            "Key": self._require_key(),
            "UpdateExpression": self._updates.combine(required=True),
        }
        condition = self._condition.combine()
        if condition is not None:
            req["ConditionExpression"] = condition
        return self._condition_failure_option(self._expression_attributes(req))

    def to_request(self) -> dict[str, Any]:
        return self._request_options(self._write_options(self._update()))

    def to_transact_item(self) -> dict[str, Any]:
        return {"Update": self._update()}


class DeleteItemBuilder(_KeyMixin, _ValueMixin, _ConditionMixin, _WriteOptionsMixin):
    operation = "delete_item"

    def __init__(self, table_name: str | None = None, **kwargs: Any) -> None:
        super().__init__(table_name, **kwargs)
        self._key = {}
        self._condition = ConditionAccumulator("ConditionExpression")
        self._return_values = None
        self._item_collection_metrics = None
        self._condition_failure_values = None

    def _delete(self) -> dict[str, Any]:
        req: dict[str, Any] = {"TableName": self._require_table(), "Key": self._require_key()}
        condition = self._condition.combine()
        if condition is not None:
            req["ConditionExpression"] = condition
        return self._condition_failure_option(self._expression_attributes(req))

    def to_request(self) -> dict[str, Any]:
        return self._request_options(self._write_options(self._delete()))

    def to_transact_item(self) -> dict[str, Any]:
        return {"Delete": self._delete()}


class ConditionCheckBuilder(_KeyMixin, _ValueMixin, _ConditionMixin):
    """Condition-only member of a write transaction; it cannot be executed on its own."""

    operation = "condition_check"

    def __init__(self, table_name: str | None = None, **kwargs: Any) -> None:
        super().__init__(table_name, **kwargs)
        self._key = {}
        self._condition = ConditionAccumulator("ConditionExpression")
        self._condition_failure_values: str | None = None

    def return_values_on_condition_check_failure(self, mode: str = "ALL_OLD") -> Self:
        self._condition_failure_values = _check_mode(
            "ReturnValuesOnConditionCheckFailure", mode, CONDITION_FAILURE_RETURN_MODES
        )
        return self

    def to_request(self) -> dict[str, Any]:
        req: dict[str, Any] = {
            "TableName": self._require_table(),
            "Key": self._require_key(),
            "ConditionExpression": self._condition.combine(required=True),
        }
        if self._condition_failure_values is not None:
            req["ReturnValuesOnConditionCheckFailure"] = self._condition_failure_values
        return self._expression_attributes(req)

    def to_transact_item(self) -> dict[str, Any]:
        return {"ConditionCheck": self.to_request()}

    def execute(self) -> dict[str, Any]:
        raise ValidationError("condition checks only run inside a write transaction")


class _ReadManyBuilder(_ValueMixin):
    def __init__(self, table_name: str | None = None, **kwargs: Any) -> None:
        super().__init__(table_name, **kwargs)
        self._filter = ConditionAccumulator("FilterExpression")
        self._index: str | None = None
        self._limit: int | None = None
        self._select: str | None = None
        self._start_key: dict[str, WireValue] | None = None
        self._consistent_read = False
        self._projection: str | None = None

    def with_filter(self, template: str, *args: Any) -> Self:
        self._filter.add(self._format(template, args))
        return self

    def using_index(self, index_name: str) -> Self:
        self._index = index_name
        return self

    def take(self, limit: int) -> Self:
        if limit <= 0:
            raise ValidationError("limit must be positive")
        self._limit = limit
        return self

    def count(self) -> Self:
        self._select = "COUNT"
        return self

    def start_at(self, exclusive_start_key: Mapping[str, WireValue]) -> Self:
        self._start_key = {name: dict(value) for name, value in exclusive_start_key.items()}
        return self

    def using_consistent_read(self, enabled: bool = True) -> Self:
        self._consistent_read = enabled
        return self

    def with_projection(self, expression: str) -> Self:
        self._projection = expression
        return self

    def _index_name(self) -> str | None:
        return self._index

    def _read_options(self, req: dict[str, Any]) -> dict[str, Any]:
        if self._select is not None and self._projection:
            raise ValidationError("count() cannot be combined with a projection")
        fltr = self._filter.combine()
        if fltr is not None:
            req["FilterExpression"] = fltr
        if self._index:
            req["IndexName"] = self._index
        if self._limit is not None:
            req["Limit"] = self._limit
        if self._select is not None:
            req["Select"] = self._select
        if self._start_key:
            req["ExclusiveStartKey"] = self._start_key
        if self._consistent_read:
            req["ConsistentRead"] = True
        if self._projection:
            req["ProjectionExpression"] = self._projection
        return req


class QueryBuilder(_ReadManyBuilder):
    operation = "query"

    def __init__(self, table_name: str | None = None, **kwargs: Any) -> None:
        super().__init__(table_name, **kwargs)
        self._key_condition = ConditionAccumulator("KeyConditionExpression")
        self._scan_forward: bool | None = None

    def where(self, template: str, *args: Any) -> Self:
        self._key_condition.add(self._format(template, args))
        return self

    def order_ascending(self) -> Self:
        self._scan_forward = True
        return self

    def order_descending(self) -> Self:
        self._scan_forward = False
        return self

    def to_request(self) -> dict[str, Any]:
        req: dict[str, Any] = {
            "TableName": self._require_table(),
            "KeyConditionExpression": self._key_condition.combine(required=True),
        }
        self._read_options(req)
        if self._scan_forward is not None:
            req["ScanIndexForward"] = self._scan_forward
        return self._request_options(self._expression_attributes(req))


class ScanBuilder(_ReadManyBuilder):
    operation = "scan"

    def __init__(self, table_name: str | None = None, **kwargs: Any) -> None:
        super().__init__(table_name, **kwargs)
        self._segment: tuple[int, int] | None = None

    def with_segment(self, segment: int, total_segments: int) -> Self:
        if total_segments <= 0 or not 0 <= segment < total_segments:
            raise ValidationError(f"invalid scan segment {segment} of {total_segments}")
        self._segment = (segment, total_segments)
        return self

    def to_request(self) -> dict[str, Any]:
        req: dict[str, Any] = {"TableName": self._require_table()}
        self._read_options(req)
        if self._segment is not None:
            req["Segment"], req["TotalSegments"] = self._segment
        return self._request_options(self._expression_attributes(req))
