from __future__ import annotations

import math
import re
import uuid
from collections.abc import Mapping
from datetime import UTC, date, datetime, time, timedelta
from decimal import ROUND_HALF_UP, Decimal, DecimalException, InvalidOperation, localcontext
from enum import Enum
from typing import Any, Literal

from boto3.dynamodb.types import Binary, TypeSerializer

from .errors import FormatSpecError, ValidationError

type WireValue = dict[str, Any]
type NullKind = Literal["S", "N", "BOOL", "M"]

# Significant digits DynamoDB keeps for a number.
DYNAMODB_PRECISION = 38

WIRE_TAGS = frozenset({"S", "N", "BOOL", "NULL", "B", "SS", "NS", "BS", "M", "L"})

_serializer = TypeSerializer()


def is_wire_value(value: Any) -> bool:
    return isinstance(value, Mapping) and len(value) == 1 and next(iter(value)) in WIRE_TAGS


def null_marker(kind: NullKind = "S") -> WireValue:
    """Wire form of an explicitly registered null.

    Strings and maps use the NULL variant. Numbers become an empty ``N`` and booleans an
    attribute value with no type set; both quirks are kept for compatibility.
    """
    if kind == "N":
        return {"N": ""}
    if kind == "BOOL":
        return {}
    return {"NULL": True}


def to_wire_value(value: Any, format_spec: str | None = None) -> WireValue:
    spec = format_spec or None

    if value is None:
        return {"NULL": True}

    # Enum before str/int so StrEnum and IntEnum members keep their symbolic name.
    if isinstance(value, Enum):
        if spec:
            raise FormatSpecError(
                f"Enum values do not support format strings. Format {spec!r} is not valid "
                f"for enum type {type(value).__name__}."
            )
        return {"S": value.name}

    if isinstance(value, bool):
        if spec:
            raise FormatSpecError(
                f"Boolean values do not support format strings. Format {spec!r} is not valid for boolean type."
            )
        return {"BOOL": value}

    if isinstance(value, str):
        return {"S": value}

    if isinstance(value, (int, float, Decimal)):
        return {"N": format_number(value, spec)}

    if isinstance(value, datetime):
        if spec is not None and spec.lower() == "ttl":
            return {"N": str(to_epoch_seconds(value))}
        return {"S": format_datetime(value, spec)}

    if isinstance(value, date):
        if spec is not None and spec.lower() == "ttl":
            return {"N": str(to_epoch_seconds(datetime.combine(value, time())))}
        return {"S": format_date(value, spec)}

    if isinstance(value, uuid.UUID):
        return {"S": format_uuid(value, spec)}

    if isinstance(value, Binary):
        return {"B": bytes(value.value)}

    if isinstance(value, (bytes, bytearray)):
        return {"B": bytes(value)}

    if isinstance(value, Mapping):
        return {"M": _map_entries(value)}

    if isinstance(value, (set, frozenset)):
        return _set_value(value)

    if isinstance(value, (list, tuple)):
        if not value:
            raise ValidationError("cannot use an empty list as an expression value")
        return {"L": [to_wire_value(v) for v in value]}

    if spec:
        try:
            return {"S": format(value, spec)}
        except (TypeError, ValueError) as err:
            raise FormatSpecError(
                f"Type {type(value).__name__} does not support format {spec!r}: {err}"
            ) from err
    return {"S": str(value)}


def _map_entries(value: Mapping[Any, Any]) -> dict[str, WireValue]:
    if not value:
        raise ValidationError("cannot use an empty map as an expression value")
    if all(isinstance(v, str) for v in value.values()):
        return {str(k): {"S": v} for k, v in value.items()}
    if all(is_wire_value(v) for v in value.values()):
        return {str(k): dict(v) for k, v in value.items()}
    return {str(k): to_wire_value(v) for k, v in value.items()}


def _set_value(value: set[Any] | frozenset[Any]) -> WireValue:
    if not value:
        raise ValidationError("cannot use an empty set as an expression value")

    members: set[Any] = set()
    for member in value:
        if isinstance(member, bool):
            raise ValidationError("sets of booleans are not supported")
        if isinstance(member, float):
            member = Decimal(repr(member))
        members.add(member)

    try:
        return _serializer.serialize(members)
    except (TypeError, DecimalException) as err:
        raise ValidationError(f"unsupported set value: {err!r}") from err


def _as_decimal(value: int | float | Decimal) -> Decimal:
    if isinstance(value, float):
        return Decimal(repr(value))
    return Decimal(value)


def format_number(value: int | float | Decimal, format_spec: str | None = None) -> str:
    if isinstance(value, float) and not math.isfinite(value):
        raise ValidationError(f"number is not representable in DynamoDB: {value!r}")
    if isinstance(value, Decimal) and not value.is_finite():
        raise ValidationError(f"number is not representable in DynamoDB: {value!r}")

    if not format_spec:
        if isinstance(value, float):
            return repr(value)
        return str(value)

    kind = format_spec[0]
    precision_text = format_spec[1:]
    if precision_text and not precision_text.isdecimal():
        raise FormatSpecError(f"Invalid format specifier {format_spec!r} for numeric value.")
    precision = int(precision_text) if precision_text else None

    match kind:
        case "F" | "f":
            places = 2 if precision is None else precision
            try:
                with localcontext() as ctx:
                    ctx.prec = DYNAMODB_PRECISION + places
                    fixed = _as_decimal(value).quantize(Decimal(1).scaleb(-places), rounding=ROUND_HALF_UP)
            except InvalidOperation as err:
                raise FormatSpecError(f"Cannot apply {format_spec!r} to {value!r}: too many digits.") from err
            return format(fixed, "f")
        case "D" | "d":
            if not isinstance(value, int):
                raise FormatSpecError(f"Format {format_spec!r} is only valid for integers.")
            digits = str(abs(value)).zfill(precision or 0)
            return f"-{digits}" if value < 0 else digits
        case "E" | "e":
            places = 6 if precision is None else precision
            return format(_as_decimal(value), f".{places}{kind}")
        case "X" | "x":
            if not isinstance(value, int) or value < 0:
                raise FormatSpecError(f"Format {format_spec!r} is only valid for non-negative integers.")
            return format(value, kind).zfill(precision or 0)

    raise FormatSpecError(f"Invalid format specifier {format_spec!r} for numeric value.")


def to_epoch_seconds(value: datetime) -> int:
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return int(value.timestamp())


def _offset_text(offset: timedelta, *, utc_as_z: bool) -> str:
    if offset == timedelta(0) and utc_as_z:
        return "Z"
    sign = "-" if offset < timedelta(0) else "+"
    minutes = abs(int(offset.total_seconds())) // 60
    return f"{sign}{minutes // 60:02d}:{minutes % 60:02d}"


def _seconds_text(value: datetime, sep: str = "T") -> str:
    # strftime does not zero-pad years below 1000 on every platform.
    return f"{value.year:04d}-{value.month:02d}-{value.day:02d}{sep}{value:%H:%M:%S}"


def _round_trip(value: datetime) -> str:
    text = f"{_seconds_text(value)}.{value.microsecond:06d}0"
    offset = value.utcoffset()
    if offset is None:
        return text
    return text + _offset_text(offset, utc_as_z=True)


def format_datetime(value: datetime, format_spec: str | None = None) -> str:
    if not format_spec or format_spec in {"o", "O"}:
        return _round_trip(value)
    if format_spec == "s":
        return _seconds_text(value)
    if format_spec == "u":
        utc = value.astimezone(UTC) if value.tzinfo is not None else value
        return f"{_seconds_text(utc, sep=' ')}Z"
    if "%" in format_spec:
        return value.strftime(format_spec)
    if len(format_spec) == 1:
        raise FormatSpecError(f"Unsupported standard date format {format_spec!r}.")
    return _apply_date_pattern(value, format_spec)


def format_date(value: date, format_spec: str | None = None) -> str:
    if not format_spec:
        return value.isoformat()
    return format_datetime(datetime.combine(value, time()), format_spec)


_PATTERN_TOKEN = re.compile(r"'[^']*'|\"[^\"]*\"|\\.|y+|M+|d+|H+|h+|m+|s+|f+|t+|K|z+|.", re.DOTALL)


def _apply_date_pattern(value: datetime, pattern: str) -> str:
    out: list[str] = []
    for token in _PATTERN_TOKEN.findall(pattern):
        head = token[0]
        size = len(token)
        if head in {"'", '"'}:
            out.append(token[1:-1])
        elif head == "\\":
            out.append(token[1:])
        elif head == "y":
            if size == 1:
                out.append(str(value.year % 100))
            elif size == 2:
                out.append(f"{value.year % 100:02d}")
            else:
                out.append(f"{value.year:0{size}d}")
        elif head == "M":
            if size >= 4:
                out.append(value.strftime("%B"))
            elif size == 3:
                out.append(value.strftime("%b"))
            else:
                out.append(f"{value.month:0{size}d}")
        elif head == "d":
            if size >= 4:
                out.append(value.strftime("%A"))
            elif size == 3:
                out.append(value.strftime("%a"))
            else:
                out.append(f"{value.day:0{size}d}")
        elif head == "H":
            out.append(f"{value.hour:0{min(size, 2)}d}")
        elif head == "h":
            out.append(f"{(value.hour % 12) or 12:0{min(size, 2)}d}")
        elif head == "m":
            out.append(f"{value.minute:0{min(size, 2)}d}")
        elif head == "s":
            out.append(f"{value.second:0{min(size, 2)}d}")
        elif head == "f":
            if size > 7:
                raise FormatSpecError(f"Too many fraction digits in date format {pattern!r}.")
            out.append(f"{value.microsecond:06d}0"[:size])
        elif head == "t":
            marker = "AM" if value.hour < 12 else "PM"
            out.append(marker[:size] if size < 2 else marker)
        elif head == "K":
            offset = value.utcoffset()
            out.append("" if offset is None else _offset_text(offset, utc_as_z=True))
        elif head == "z":
            offset = value.utcoffset() or timedelta(0)
            out.append(_offset_text(offset, utc_as_z=False))
        else:
            out.append(token)
    return "".join(out)


def format_uuid(value: uuid.UUID, format_spec: str | None = None) -> str:
    match format_spec:
        case None | "" | "D" | "d":
            return str(value)
        case "N" | "n":
            return value.hex
        case "B" | "b":
            return "{" + str(value) + "}"
        case "P" | "p":
            return "(" + str(value) + ")"
    raise FormatSpecError(f"Invalid format specifier {format_spec!r} for UUID value.")
