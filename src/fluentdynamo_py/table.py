from __future__ import annotations

from typing import Any

import boto3

from .batch import BatchGetBuilder, BatchWriteBuilder
from .formatter import ExpressionFormatter
from .requests import (
    ConditionCheckBuilder,
    DeleteItemBuilder,
    GetItemBuilder,
    PutItemBuilder,
    QueryBuilder,
    ScanBuilder,
    UpdateItemBuilder,
)
from .runtime import OperationObserver
from .transaction import TransactGetBuilder, TransactWriteBuilder


class DynamoDbTable:
    """A table name bound to a client; every call hands out a fresh, pre-targeted builder."""

    def __init__(
        self,
        table_name: str,
        *,
        client: Any | None = None,
        on_operation: OperationObserver | None = None,
        formatter: ExpressionFormatter | None = None,
    ) -> None:
        if not table_name:
            raise ValueError("table_name is required")

        self._table_name = table_name
        self._client: Any = client or boto3.client("dynamodb")
        self._on_operation = on_operation
        self._formatter = formatter

    @property
    def name(self) -> str:
        return self._table_name

    @property
    def client(self) -> Any:
        return self._client

    def _options(self) -> dict[str, Any]:
        return {"client": self._client, "on_operation": self._on_operation, "formatter": self._formatter}

    def get(self) -> GetItemBuilder:
        return GetItemBuilder(self._table_name, **self._options())

    def put(self) -> PutItemBuilder:
        return PutItemBuilder(self._table_name, **self._options())

    def update(self) -> UpdateItemBuilder:
        return UpdateItemBuilder(self._table_name, **self._options())

    def delete(self) -> DeleteItemBuilder:
        return DeleteItemBuilder(self._table_name, **self._options())

    def query(self) -> QueryBuilder:
        return QueryBuilder(self._table_name, **self._options())

    def scan(self) -> ScanBuilder:
        return ScanBuilder(self._table_name, **self._options())

    def condition_check(self) -> ConditionCheckBuilder:
        return ConditionCheckBuilder(self._table_name, **self._options())

    def transact_write(self) -> TransactWriteBuilder:
        return TransactWriteBuilder(client=self._client, on_operation=self._on_operation)

    def transact_get(self) -> TransactGetBuilder:
        return TransactGetBuilder(client=self._client, on_operation=self._on_operation)

    def batch_get(self) -> BatchGetBuilder:
        return BatchGetBuilder(client=self._client, on_operation=self._on_operation)

    def batch_write(self) -> BatchWriteBuilder:
        return BatchWriteBuilder(client=self._client, on_operation=self._on_operation)
