from __future__ import annotations

import re
from collections import deque
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from botocore.exceptions import ClientError


class _AnySentinel:
    def __repr__(self) -> str:  # pragma: no cover
        return "ANY"


ANY: Any = _AnySentinel()

type RequestCheck = Mapping[str, Any] | Callable[[Mapping[str, Any]], None]


def assert_request_matches(expected: Any, actual: Any, *, path: str = "request") -> None:
    """Partial structural match: dicts may carry extra keys, lists must match in length."""
    if expected is ANY:
        return

    if isinstance(expected, Mapping):
        if not isinstance(actual, Mapping):
            raise AssertionError(f"{path}: expected a mapping, got {type(actual).__name__}")
        for key, want in expected.items():
            if key not in actual:
                raise AssertionError(f"{path}: missing key {key!r}")
            assert_request_matches(want, actual[key], path=f"{path}.{key}")
        return

    if isinstance(expected, list):
        if not isinstance(actual, list):
            raise AssertionError(f"{path}: expected a list, got {type(actual).__name__}")
        if len(expected) != len(actual):
            raise AssertionError(f"{path}: expected {len(expected)} entries, got {len(actual)}")
        for i, (want, got) in enumerate(zip(expected, actual, strict=True)):
            assert_request_matches(want, got, path=f"{path}[{i}]")
        return

    if expected != actual:
        raise AssertionError(f"{path}: expected {expected!r}, got {actual!r}")


def client_error(
    code: str,
    message: str = "",
    *,
    operation: str = "DynamoDB",
    cancellation_reasons: Sequence[str] | None = None,
) -> ClientError:
    response: dict[str, Any] = {"Error": {"Code": code, "Message": message}}
    if cancellation_reasons is not None:
        response["CancellationReasons"] = [{"Code": reason} for reason in cancellation_reasons]
    return ClientError(response, operation)


EXPRESSION_FIELDS = (
    "KeyConditionExpression",
    "FilterExpression",
    "ConditionExpression",
    "UpdateExpression",
    "ProjectionExpression",
)

_PLACEHOLDER = re.compile(r"[#:][A-Za-z0-9_]+")


def unused_placeholders(request: Any) -> set[str]:
    """Registered names and values that no expression of the same request part references.

    DynamoDB rejects such requests, so the fake client does too. Nested transaction and
    batch entries are checked one by one.
    """
    unused: set[str] = set()
    if isinstance(request, Mapping):
        declared = set(request.get("ExpressionAttributeNames") or ()) | set(
            request.get("ExpressionAttributeValues") or ()
        )
        if declared:
            referenced: set[str] = set()
            for field in EXPRESSION_FIELDS:
                referenced.update(_PLACEHOLDER.findall(str(request.get(field) or "")))
            unused |= declared - referenced
        for value in request.values():
            unused |= unused_placeholders(value)
    elif isinstance(request, list):
        for entry in request:
            unused |= unused_placeholders(entry)
    return unused


@dataclass(frozen=True)
class ExpectedCall:
    method: str
    check: RequestCheck | None = None
    response: Mapping[str, Any] | None = None
    error: Exception | None = None


class FakeDynamoDBClient:
    """In-memory stand-in for a boto3 DynamoDB client driven by an expectation queue."""

    def __init__(self, *, strict_placeholders: bool = True) -> None:
        self._strict_placeholders = strict_placeholders
        self._pending: deque[ExpectedCall] = deque()
        self.calls: list[tuple[str, dict[str, Any]]] = []

    def expect(
        self,
        method: str,
        check: RequestCheck | None = None,
        *,
        response: Mapping[str, Any] | None = None,
        error: Exception | None = None,
    ) -> None:
        self._pending.append(ExpectedCall(method=method, check=check, response=response, error=error))

    def assert_no_pending(self) -> None:
        if self._pending:
            raise AssertionError(f"expected calls never made: {[call.method for call in self._pending]}")

    def requests_for(self, method: str) -> list[dict[str, Any]]:
        return [req for name, req in self.calls if name == method]

    def _handle(self, method: str, req: dict[str, Any]) -> dict[str, Any]:
        self.calls.append((method, dict(req)))
        if not self._pending:
            raise AssertionError(f"unexpected call: {method}")

        call = self._pending.popleft()
        if call.method != method:
            raise AssertionError(f"expected {call.method}, got {method}")

        if self._strict_placeholders:
            unused = unused_placeholders(req)
            if unused:
                raise AssertionError(f"{method}: placeholders unused in expressions: {sorted(unused)}")

        if callable(call.check):
            call.check(req)
        elif call.check is not None:
            assert_request_matches(call.check, req, path=method)

        if call.error is not None:
            raise call.error
        return dict(call.response or {})

    def get_item(self, **kwargs: Any) -> dict[str, Any]:
        return self._handle("get_item", kwargs)

    def put_item(self, **kwargs: Any) -> dict[str, Any]:
        return self._handle("put_item", kwargs)

    def update_item(self, **kwargs: Any) -> dict[str, Any]:
        return self._handle("update_item", kwargs)

    def delete_item(self, **kwargs: Any) -> dict[str, Any]:
        return self._handle("delete_item", kwargs)

    def query(self, **kwargs: Any) -> dict[str, Any]:
        return self._handle("query", kwargs)

    def scan(self, **kwargs: Any) -> dict[str, Any]:
        return self._handle("scan", kwargs)

    def batch_get_item(self, **kwargs: Any) -> dict[str, Any]:
        return self._handle("batch_get_item", kwargs)

    def batch_write_item(self, **kwargs: Any) -> dict[str, Any]:
        return self._handle("batch_write_item", kwargs)

    def transact_write_items(self, **kwargs: Any) -> dict[str, Any]:
        return self._handle("transact_write_items", kwargs)

    def transact_get_items(self, **kwargs: Any) -> dict[str, Any]:
        return self._handle("transact_get_items", kwargs)
