from __future__ import annotations

from typing import Any, Self

import structlog

from .aws_errors import map_transaction_error
from .errors import ValidationError
from .requests import (
    CONSUMED_CAPACITY_MODES,
    ITEM_COLLECTION_METRICS_MODES,
    ConditionCheckBuilder,
    DeleteItemBuilder,
    GetItemBuilder,
    PutItemBuilder,
    UpdateItemBuilder,
)
from .runtime import OperationObserver, execute_operation

logger = structlog.get_logger()

MAX_TRANSACTION_ACTIONS = 100

type TransactWriteMember = PutItemBuilder | UpdateItemBuilder | DeleteItemBuilder | ConditionCheckBuilder


class _TransactionBuilder:
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

    def _check_size(self, count: int) -> None:
        if count == 0:
            raise ValidationError(f"{self.operation} requires at least one action")
        if count > MAX_TRANSACTION_ACTIONS:
            raise ValidationError(f"a transaction supports at most {MAX_TRANSACTION_ACTIONS} actions")

    def to_request(self) -> dict[str, Any]:
        raise NotImplementedError

    def execute(self) -> dict[str, Any]:
        if self._client is None:
            raise ValidationError(f"{self.operation} has no DynamoDB client to execute with")
        return execute_operation(
            self._client,
            self.operation,
            self.to_request(),
            on_operation=self._on_operation,
            error_mapper=map_transaction_error,
        )


class TransactWriteBuilder(_TransactionBuilder):
    operation = "transact_write_items"

    def __init__(self, *, client: Any | None = None, on_operation: OperationObserver | None = None) -> None:
        super().__init__(client=client, on_operation=on_operation)
        self._members: list[TransactWriteMember] = []
        self._token: str | None = None
        self._item_collection_metrics: str | None = None

    def put(self, builder: PutItemBuilder) -> Self:
        return self._add(builder, PutItemBuilder)

    def update(self, builder: UpdateItemBuilder) -> Self:
        return self._add(builder, UpdateItemBuilder)

    def delete(self, builder: DeleteItemBuilder) -> Self:
        return self._add(builder, DeleteItemBuilder)

    def condition_check(self, builder: ConditionCheckBuilder) -> Self:
        return self._add(builder, ConditionCheckBuilder)

    def _add(self, builder: TransactWriteMember, expected: type) -> Self:
        if not isinstance(builder, expected):
            raise ValidationError(f"expected {expected.__name__}, got {type(builder).__name__}")
        self._members.append(builder)
        return self

    def with_client_request_token(self, token: str) -> Self:
        if not token:
            raise ValidationError("client request token cannot be empty")
        self._token = token
        return self

    def return_item_collection_metrics(self, mode: str = "SIZE") -> Self:
        if mode not in ITEM_COLLECTION_METRICS_MODES:
            raise ValidationError(f"ReturnItemCollectionMetrics must be one of {sorted(ITEM_COLLECTION_METRICS_MODES)}")
        self._item_collection_metrics = mode
        return self

    def to_request(self) -> dict[str, Any]:
        self._check_size(len(self._members))
        req: dict[str, Any] = {"TransactItems": [member.to_transact_item() for member in self._members]}
        if self._token is not None:
            req["ClientRequestToken"] = self._token
        if self._consumed_capacity is not None:
            req["ReturnConsumedCapacity"] = self._consumed_capacity
        if self._item_collection_metrics is not None:
            req["ReturnItemCollectionMetrics"] = self._item_collection_metrics
        logger.debug("transaction_built", operation=self.operation, actions=len(self._members))
        return req


class TransactGetBuilder(_TransactionBuilder):
    operation = "transact_get_items"

    def __init__(self, *, client: Any | None = None, on_operation: OperationObserver | None = None) -> None:
        super().__init__(client=client, on_operation=on_operation)
        self._members: list[GetItemBuilder] = []

    def get(self, builder: GetItemBuilder) -> Self:
        if not isinstance(builder, GetItemBuilder):
            raise ValidationError(f"expected GetItemBuilder, got {type(builder).__name__}")
        self._members.append(builder)
        return self

    def to_request(self) -> dict[str, Any]:
        self._check_size(len(self._members))
        req: dict[str, Any] = {"TransactItems": [member.to_transact_item() for member in self._members]}
        if self._consumed_capacity is not None:
            req["ReturnConsumedCapacity"] = self._consumed_capacity
        logger.debug("transaction_built", operation=self.operation, actions=len(self._members))
        return req
