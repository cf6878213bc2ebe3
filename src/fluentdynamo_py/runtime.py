from __future__ import annotations

import os
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any, cast

import boto3
import structlog
from botocore.config import Config
from botocore.exceptions import ClientError

from .aws_errors import error_code, map_client_error

logger = structlog.get_logger()

ENDPOINT_ENV = "DYNAMODB_ENDPOINT"


@dataclass(frozen=True)
class AwsCallMetric:
    service: str
    operation: str
    seconds: float
    ok: bool


@dataclass(frozen=True)
class OperationContext:
    operation: str
    table_name: str | None
    index_name: str | None
    seconds: float
    ok: bool
    consumed_capacity: Any | None = None
    item_count: int | None = None
    scanned_count: int | None = None
    last_evaluated_key: dict[str, Any] | None = None
    error_code: str | None = None


type OperationObserver = Callable[[OperationContext], None]
type ErrorMapper = Callable[[ClientError], Exception]


def create_client_config(
    *,
    connect_timeout: float = 1.0,
    read_timeout: float = 3.0,
    max_attempts: int = 3,
) -> Config:
    return Config(
        connect_timeout=connect_timeout,
        read_timeout=read_timeout,
        retries={"max_attempts": max_attempts, "mode": "adaptive"},
    )


class _InstrumentedClient:
    def __init__(self, client: Any, service: str, on_call: Callable[[AwsCallMetric], None]) -> None:
        self._client = client
        self._service = service
        self._on_call = on_call

    def __getattr__(self, name: str) -> Any:
        attr = getattr(self._client, name)
        if name.startswith("_") or not callable(attr):
            return attr

        def wrapped(*args: Any, **kwargs: Any) -> Any:
            start = time.monotonic()
            ok = False
            try:
                out = attr(*args, **kwargs)
                ok = True
                return out
            finally:
                self._on_call(
                    AwsCallMetric(
                        service=self._service,
                        operation=name,
                        seconds=time.monotonic() - start,
                        ok=ok,
                    )
                )

        return wrapped


def instrument_client(
    client: Any,
    *,
    on_call: Callable[[AwsCallMetric], None],
    service: str = "dynamodb",
) -> Any:
    return _InstrumentedClient(client, service, on_call)


_clients: dict[tuple[str | None, str | None], Any] = {}


def get_dynamodb_client(
    *,
    region: str | None = None,
    config: Config | None = None,
    session: Any | None = None,
    endpoint_url: str | None = None,
    environ: Mapping[str, str] = os.environ,
) -> Any:
    endpoint = endpoint_url or environ.get(ENDPOINT_ENV) or None
    key = (region, endpoint)
    existing = _clients.get(key)
    if existing is not None:
        return existing

    sess = session or boto3.session.Session(region_name=region)
    client = cast(Any, sess).client(
        "dynamodb",
        region_name=region,
        config=config or create_client_config(),
        endpoint_url=endpoint,
    )
    _clients[key] = client
    return client


def _reset_clients_for_tests() -> None:
    _clients.clear()


def execute_operation(
    client: Any,
    operation: str,
    request: dict[str, Any],
    *,
    table_name: str | None = None,
    index_name: str | None = None,
    on_operation: OperationObserver | None = None,
    error_mapper: ErrorMapper = map_client_error,
) -> dict[str, Any]:
    """Send ``request`` with ``client.<operation>`` and report the outcome.

    ``ClientError`` is mapped through ``error_mapper`` and chained. The observer sees one
    ``OperationContext`` per call, whether or not the call succeeded.
    """
    logger.debug(
        "request_sent",
        operation=operation,
        table_name=table_name,
        index_name=index_name,
        names=len(request.get("ExpressionAttributeNames") or ()),
        values=len(request.get("ExpressionAttributeValues") or ()),
    )

    start = time.monotonic()
    try:
        resp = getattr(client, operation)(**request)
    except ClientError as err:
        code = error_code(err)
        logger.warning("request_failed", operation=operation, table_name=table_name, code=code)
        _notify(
            on_operation,
            OperationContext(
                operation=operation,
                table_name=table_name,
                index_name=index_name,
                seconds=time.monotonic() - start,
                ok=False,
                error_code=code or None,
            ),
        )
        raise error_mapper(err) from err

    _notify(
        on_operation,
        OperationContext(
            operation=operation,
            table_name=table_name,
            index_name=index_name,
            seconds=time.monotonic() - start,
            ok=True,
            consumed_capacity=resp.get("ConsumedCapacity"),
            item_count=resp.get("Count"),
            scanned_count=resp.get("ScannedCount"),
            last_evaluated_key=resp.get("LastEvaluatedKey"),
        ),
    )
    return resp


def _notify(on_operation: OperationObserver | None, context: OperationContext) -> None:
    if on_operation is not None:
        on_operation(context)
