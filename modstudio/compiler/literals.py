"""Script literal formatting for node payload values."""

import math
from typing import Optional, Any

from modstudio.compiler.graph import ValueType

ZERO_VALUES = {
    ValueType.INT: "0",
    ValueType.FLOAT: "0.0",
    ValueType.NUMBER: "0",
    ValueType.BOOL: "false",
    ValueType.STRING: '""',
    ValueType.ASSET: '$""',
    ValueType.VECTOR: "<0, 0, 0>",
    ValueType.ARRAY: "[]",
}


def zero_value(value_type: Optional[str]) -> str:
    """Type-appropriate default for an input with no connection and no payload value."""
    return ZERO_VALUES.get(ValueType.coerce(value_type), "null")


def quote_string(value: str) -> str:
    escaped = (
        value.replace("\\", "\\\\")
        .replace('"', '\\"')
        .replace("\n", "\\n")
        .replace("\t", "\\t")
    )
    return f'"{escaped}"'


def is_blank(value: Any) -> bool:
    """An editor field left empty: None or a whitespace-only string."""
    return value is None or (isinstance(value, str) and not value.strip())


def format_number(value: Any, as_float: bool = False) -> str:
    if isinstance(value, bool):
        return "1" if value else "0"
    if isinstance(value, int) and not as_float:
        return str(value)
    if is_blank(value) or (isinstance(value, float) and not math.isfinite(value)):
        return "0.0" if as_float else "0"
    if isinstance(value, (int, float)):
        value = float(value)
        if value.is_integer():
            return f"{value:.1f}"
        return repr(value)
    # Free text in a numeric field is passed through as an expression
    return str(value)


def format_vector(value: Any) -> str:
    if isinstance(value, dict):
        parts = [value.get(axis, 0) for axis in ("x", "y", "z")]
    elif isinstance(value, (list, tuple)) and len(value) == 3:
        parts = list(value)
    else:
        return str(value)
    return "<" + ", ".join(format_number(p) for p in parts) + ">"


def _infer(value: Any) -> ValueType:
    if isinstance(value, bool):
        return ValueType.BOOL
    if isinstance(value, int):
        return ValueType.INT
    if isinstance(value, float):
        return ValueType.FLOAT
    if isinstance(value, str):
        return ValueType.STRING
    if isinstance(value, (list, tuple)):
        return ValueType.ARRAY
    if isinstance(value, dict) and {"x", "y", "z"} <= set(value):
        return ValueType.VECTOR
    return ValueType.ANY


def format_literal(value: Any, value_type: Optional[str] = None) -> str:
    """Render a payload value as a script expression of the given value type."""
    vt = ValueType.coerce(value_type)
    if value is None or (is_blank(value) and vt not in (ValueType.STRING, ValueType.ASSET)):
        return zero_value(vt.value)
    if isinstance(value, float) and not math.isfinite(value):
        return zero_value(vt.value)
    if vt in (ValueType.ANY, ValueType.ENTITY, ValueType.STRUCT):
        vt = _infer(value)

    if vt == ValueType.STRING:
        return quote_string(value) if isinstance(value, str) else quote_string(str(value))
    if vt == ValueType.ASSET:
        text = str(value)
        return text if text.startswith('$"') else f'$"{text}"'
    if vt == ValueType.FUNCTION:
        return str(value) if value != "" else "null"
    if vt == ValueType.BOOL:
        if isinstance(value, str):
            return "true" if value.strip().lower() == "true" else "false"
        return "true" if value else "false"
    if vt == ValueType.INT:
        if isinstance(value, float) and value.is_integer():
            return str(int(value))
        return format_number(value)
    if vt == ValueType.FLOAT:
        return format_number(value, as_float=True)
    if vt == ValueType.NUMBER:
        return format_number(value)
    if vt == ValueType.VECTOR:
        return format_vector(value)
    if vt == ValueType.ARRAY:
        if isinstance(value, (list, tuple)):
            return "[" + ", ".join(format_literal(v) for v in value) + "]"
        return str(value)
    return str(value)
