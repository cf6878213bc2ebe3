from __future__ import annotations

from botocore.exceptions import ClientError

from .errors import (
    AwsError,
    ConditionFailedError,
    FluentDynamoError,
    NotFoundError,
    ThrottledError,
    TransactionCanceledError,
    ValidationError,
)

THROTTLING_CODES = frozenset(
    {
        "ProvisionedThroughputExceededException",
        "RequestLimitExceeded",
        "ThrottlingException",
        "TransactionInProgressException",
    }
)


def error_code(err: ClientError) -> str:
    return str(err.response.get("Error", {}).get("Code", ""))


def _error_message(err: ClientError) -> str:
    return str(err.response.get("Error", {}).get("Message", ""))


def map_client_error(err: ClientError) -> FluentDynamoError:
    code = error_code(err)
    message = _error_message(err)

    if code == "ConditionalCheckFailedException":
        return ConditionFailedError(message or "conditional check failed")
    if code == "ValidationException":
        return ValidationError(message)
    if code == "ResourceNotFoundException":
        return NotFoundError(message)
    if code in THROTTLING_CODES:
        return ThrottledError(message or code)
    if code == "TransactionCanceledException":
        return map_transaction_error(err)

    return AwsError(code=code or "UnknownError", message=message or str(err))


def map_transaction_error(err: ClientError) -> FluentDynamoError:
    code = error_code(err)
    message = _error_message(err)

    if code != "TransactionCanceledException":
        return map_client_error(err)

    reasons = err.response.get("CancellationReasons") or []
    reason_codes = tuple(
        str(reason["Code"]) for reason in reasons if isinstance(reason, dict) and reason.get("Code")
    )
    return TransactionCanceledError(
        message=message or "transaction canceled",
        reason_codes=reason_codes,
    )
