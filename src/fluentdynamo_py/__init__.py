from __future__ import annotations

import json
import re
from importlib.resources import files
from typing import TYPE_CHECKING, Any

from .codec import WireValue, null_marker, to_wire_value
from .conditions import ConditionAccumulator
from .errors import (
    AwsError,
    ConditionFailedError,
    DuplicateKeyError,
    EmptyTemplateError,
    FluentDynamoError,
    FormatSpecError,
    IndexOutOfRangeError,
    MissingConditionError,
    NotFoundError,
    NullArgumentsError,
    TemplateSyntaxError,
    ThrottledError,
    TransactionCanceledError,
    ValidationError,
)
from .formatter import ExpressionFormatter, FormatResult, format_expression, scan_template
from .names import AttributeNameRegistry
from .update_expression import UpdateExpressionAccumulator
from .values import AttributeValueRegistry

if TYPE_CHECKING:
    from .batch import BatchGetBuilder, BatchWriteBuilder
    from .requests import (
        ConditionCheckBuilder,
        DeleteItemBuilder,
        GetItemBuilder,
        PutItemBuilder,
        QueryBuilder,
        ScanBuilder,
        UpdateItemBuilder,
    )
    from .runtime import (
        AwsCallMetric,
        OperationContext,
        create_client_config,
        get_dynamodb_client,
        instrument_client,
    )
    from .table import DynamoDbTable
    from .transaction import TransactGetBuilder, TransactWriteBuilder


def _read_repo_version() -> str:
    try:
        data = json.loads(files(__package__).joinpath("version.json").read_text(encoding="utf-8"))
    except (OSError, ValueError):
        return "0.0.0"

    version = data.get("version")
    return version if isinstance(version, str) and version else "0.0.0"


def _normalize_repo_version(repo_version: str) -> str:
    match = re.match(r"^(\d+\.\d+\.\d+)-rc\.?([0-9]+)$", repo_version)
    if match:
        return f"{match.group(1)}rc{match.group(2)}"
    return repo_version


__repo_version__ = _read_repo_version()
__version__ = _normalize_repo_version(__repo_version__)

_REQUEST_BUILDERS = {
    "ConditionCheckBuilder",
    "DeleteItemBuilder",
    "GetItemBuilder",
    "PutItemBuilder",
    "QueryBuilder",
    "ScanBuilder",
    "UpdateItemBuilder",
}
_RUNTIME = {
    "AwsCallMetric",
    "OperationContext",
    "create_client_config",
    "get_dynamodb_client",
    "instrument_client",
}


def __getattr__(name: str) -> Any:
    if name in _REQUEST_BUILDERS:
        from . import requests

        return getattr(requests, name)
    if name in {"TransactGetBuilder", "TransactWriteBuilder"}:
        from . import transaction

        return getattr(transaction, name)
    if name in {"BatchGetBuilder", "BatchWriteBuilder"}:
        from . import batch

        return getattr(batch, name)
    if name == "DynamoDbTable":
        from .table import DynamoDbTable

        return DynamoDbTable
    if name in _RUNTIME:
        from . import runtime

        return getattr(runtime, name)
    raise AttributeError(name)


__all__ = [
    "AttributeNameRegistry",
    "AttributeValueRegistry",
    "AwsCallMetric",
    "AwsError",
    "BatchGetBuilder",
    "BatchWriteBuilder",
    "ConditionAccumulator",
    "ConditionCheckBuilder",
    "ConditionFailedError",
    "create_client_config",
    "DeleteItemBuilder",
    "DuplicateKeyError",
    "DynamoDbTable",
    "EmptyTemplateError",
    "ExpressionFormatter",
    "FluentDynamoError",
    "format_expression",
    "FormatResult",
    "FormatSpecError",
    "get_dynamodb_client",
    "GetItemBuilder",
    "IndexOutOfRangeError",
    "instrument_client",
    "MissingConditionError",
    "NotFoundError",
    "null_marker",
    "NullArgumentsError",
    "OperationContext",
    "PutItemBuilder",
    "QueryBuilder",
    "scan_template",
    "ScanBuilder",
    "TemplateSyntaxError",
    "ThrottledError",
    "to_wire_value",
    "TransactGetBuilder",
    "TransactionCanceledError",
    "TransactWriteBuilder",
    "UpdateExpressionAccumulator",
    "UpdateItemBuilder",
    "ValidationError",
    "WireValue",
    "__repo_version__",
    "__version__",
]
