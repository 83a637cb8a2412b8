import json
from datetime import date, datetime, time, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Optional

from mapping.errors import UnsupportedValueShape
from mapping.models import DataType, SemanticFieldSpec

ARRAY_SEPARATOR = ", "
ISO_FORMAT = "%Y-%m-%dT%H:%M:%SZ"
# Epoch values above this are milliseconds (JavaScript Date.now())
EPOCH_MILLIS_THRESHOLD = 1e11


def _translate(value: str, table: Optional[Dict[str, str]]) -> str:
    """Enum code -> label. Unknown codes pass through unchanged."""
    if not table:
        return value
    if value in table:
        return table[value]
    return table.get(value.strip().lower(), value)


def format_number(value: Any) -> str:
    """Minimal decimal string: no exponent, no trailing zeros, no separators."""
    number = Decimal(str(value))
    if not number.is_finite():
        raise InvalidOperation(str(value))
    # Full precision, no rounding to the decimal context
    text = format(number, "f")
    return text.rstrip("0").rstrip(".") if "." in text else text


def format_date(value: Any) -> str:
    """Render a date, datetime, ISO string or epoch seconds/milliseconds as YYYY-MM-DDTHH:MM:SSZ (UTC)."""
    if isinstance(value, datetime):
        moment = value
    elif isinstance(value, date):
        moment = datetime.combine(value, time.min)
    elif isinstance(value, (int, float)) and not isinstance(value, bool):
        seconds = value / 1000 if abs(value) > EPOCH_MILLIS_THRESHOLD else value
        moment = datetime.fromtimestamp(seconds, tz=timezone.utc)
    elif isinstance(value, str):
        text = value.strip()
        if text.endswith("Z") or text.endswith("z"):
            text = text[:-1] + "+00:00"
        moment = datetime.fromisoformat(text)
    else:
        raise ValueError(f"not a date: {type(value).__name__}")

    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc).strftime(ISO_FORMAT)


def _scalar(spec: SemanticFieldSpec, value: Any) -> str:
    key = spec.semantic_key

    if isinstance(value, (dict, list, tuple, set)):
        raise UnsupportedValueShape(key, type(value).__name__, "scalar")

    if spec.data_type == DataType.DATE:
        try:
            return format_date(value)
        except (ValueError, TypeError, OverflowError, OSError):
            raise UnsupportedValueShape(key, type(value).__name__, "date")

    if isinstance(value, bool):
        if spec.data_type == DataType.NUMBER:
            raise UnsupportedValueShape(key, "bool", "number")
        return "true" if value else "false"

    if isinstance(value, (int, float, Decimal)):
        try:
            return format_number(value)
        except (InvalidOperation, ValueError):
            raise UnsupportedValueShape(key, type(value).__name__, "finite number")

    if isinstance(value, (datetime, date)):
        return format_date(value)

    text = str(value)
    if spec.data_type == DataType.NUMBER:
        try:
            return format_number(text.strip())
        except (InvalidOperation, ValueError):
            raise UnsupportedValueShape(key, "str", "number")
    return _translate(text, spec.value_transform)


def _object(spec: SemanticFieldSpec, value: Dict[str, Any]) -> str:
    """Objects are only written to long-text fields, as readable `key: value` lines."""
    if spec.data_type != DataType.LONG_TEXT:
        raise UnsupportedValueShape(spec.semantic_key, "dict", "scalar")
    lines = []
    for item_key, item_value in value.items():
        if isinstance(item_value, (dict, list)):
            item_value = json.dumps(item_value, default=str)
        lines.append(f"{item_key}: {item_value}")
    return "\n".join(lines)


def transform(spec: SemanticFieldSpec, raw_value: Any) -> str:
    """
    Convert a submitted value into the CRM's string representation.

    Enum codes are translated through spec.value_transform, arrays are
    joined with ", ", dates become ISO-8601 UTC, numbers their minimal
    decimal form. The result is cut at the field limit without a marker.

    Raises UnsupportedValueShape when the value cannot take the declared
    shape (e.g. an object for a scalar field).
    """
    if raw_value is None:
        result = ""
    elif isinstance(raw_value, dict):
        result = _object(spec, raw_value)
    elif isinstance(raw_value, (list, tuple, set)):
        items = sorted(raw_value) if isinstance(raw_value, set) else raw_value
        parts = []
        for item in items:
            if item is None or item == "":
                continue
            if isinstance(item, (dict, list, tuple, set)):
                raise UnsupportedValueShape(spec.semantic_key, f"list of {type(item).__name__}", "list of scalars")
            parts.append(_scalar(spec, item))
        result = ARRAY_SEPARATOR.join(parts)
    else:
        result = _scalar(spec, raw_value)

    return result[:spec.limit]
