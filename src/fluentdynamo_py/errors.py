from __future__ import annotations

from typing import Literal


class FluentDynamoError(Exception):
    pass


class ValidationError(FluentDynamoError):
    pass


class DuplicateKeyError(ValidationError):
    def __init__(self, *, placeholder: str, registry: Literal["name", "value"]) -> None:
        super().__init__(f"expression attribute {registry} already registered: {placeholder!r}")
        self.placeholder = placeholder
        self.registry = registry


class EmptyTemplateError(ValidationError):
    pass


class NullArgumentsError(ValidationError):
    pass


class IndexOutOfRangeError(ValidationError):
    def __init__(self, *, index: int, argument_count: int) -> None:
        super().__init__(
            f"Format string references parameter index {index} but only {argument_count} "
            "arguments were provided."
        )
        self.index = index
        self.argument_count = argument_count


class MissingConditionError(ValidationError):
    pass


class TemplateSyntaxError(ValidationError):
    pass


class FormatSpecError(ValidationError):
    pass


class ConditionFailedError(FluentDynamoError):
    pass


class NotFoundError(FluentDynamoError):
    pass


class ThrottledError(FluentDynamoError):
    pass


class TransactionCanceledError(FluentDynamoError):
    def __init__(self, *, message: str, reason_codes: tuple[str, ...]) -> None:
        super().__init__(message)
        self.reason_codes = reason_codes


class AwsError(FluentDynamoError):
    def __init__(self, *, code: str, message: str) -> None:
        super().__init__(f"{code}: {message}")
        self.code = code
        self.message = message
