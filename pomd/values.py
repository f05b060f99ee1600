"""
Runtime value model.

The renderer works on a closed set of value types: Null, Bool, Number,
String, Array and Object. Python objects coming from the context file are
converted at the boundary with from_python() and never reach the evaluator.
"""

from __future__ import annotations

import json
import math
from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Tuple


class ValueType(Enum):
    """Value types of the template language."""
    NULL = "null"
    BOOL = "bool"
    NUMBER = "number"
    STRING = "string"
    ARRAY = "array"
    OBJECT = "object"


@dataclass(frozen=True)
class Value(ABC):
    """Base class for all runtime values."""

    @abstractmethod
    def get_type(self) -> ValueType:
        pass

    def type_name(self) -> str:
        return self.get_type().value


@dataclass(frozen=True)
class NullValue(Value):
    def get_type(self) -> ValueType:
        return ValueType.NULL


@dataclass(frozen=True)
class BoolValue(Value):
    value: bool

    def get_type(self) -> ValueType:
        return ValueType.BOOL


@dataclass(frozen=True)
class NumberValue(Value):
    """Floating-point number. Integers are stored as integral floats."""
    value: float

    def get_type(self) -> ValueType:
        return ValueType.NUMBER

    def is_integral(self) -> bool:
        return math.isfinite(self.value) and float(self.value).is_integer()


@dataclass(frozen=True)
class StringValue(Value):
    value: str

    def get_type(self) -> ValueType:
        return ValueType.STRING


@dataclass(frozen=True)
class ArrayValue(Value):
    items: Tuple[Value, ...] = ()

    def get_type(self) -> ValueType:
        return ValueType.ARRAY


@dataclass(frozen=True)
class ObjectValue(Value):
    """
    String-keyed mapping of values.

    Iteration follows insertion order. The mapping is never mutated
    after construction.
    """
    fields: Dict[str, Value]

    def get_type(self) -> ValueType:
        return ValueType.OBJECT


NULL = NullValue()
TRUE = BoolValue(True)
FALSE = BoolValue(False)


def bool_value(flag: bool) -> BoolValue:
    return TRUE if flag else FALSE


def is_truthy(value: Value) -> bool:
    """
    Truthiness rule used by `!`, `&&`, `||` and the `if` directive.

    Bool is itself; Number is true when non-zero; String, Array and Object
    are true when non-empty; Null is false.
    """
    if isinstance(value, BoolValue):
        return value.value
    if isinstance(value, NumberValue):
        return value.value != 0
    if isinstance(value, StringValue):
        return bool(value.value)
    if isinstance(value, ArrayValue):
        return bool(value.items)
    if isinstance(value, ObjectValue):
        return bool(value.fields)
    return False


def from_python(data: Any) -> Value:
    """
    Converts JSON-like Python data into a Value.

    Raises:
        TypeError: For objects that have no counterpart in the value model
    """
    if isinstance(data, Value):
        return data
    if data is None:
        return NULL
    # bool is a subclass of int, check it first
    if isinstance(data, bool):
        return bool_value(data)
    if isinstance(data, (int, float)):
        return NumberValue(float(data))
    if isinstance(data, str):
        return StringValue(data)
    if isinstance(data, Mapping):
        fields: Dict[str, Value] = {}
        for key, item in data.items():
            if not isinstance(key, str):
                raise TypeError(f"Object keys must be strings, got {type(key).__name__}")
            fields[key] = from_python(item)
        return ObjectValue(fields)
    if isinstance(data, (list, tuple)):
        return ArrayValue(tuple(from_python(item) for item in data))
    raise TypeError(f"Unsupported value type: {type(data).__name__}")


def to_python(value: Value) -> Any:
    """Converts a Value back into plain JSON-like Python data."""
    if isinstance(value, BoolValue):
        return value.value
    if isinstance(value, NumberValue):
        return int(value.value) if value.is_integral() else value.value
    if isinstance(value, StringValue):
        return value.value
    if isinstance(value, ArrayValue):
        return [to_python(item) for item in value.items]
    if isinstance(value, ObjectValue):
        return {key: to_python(item) for key, item in value.fields.items()}
    return None


def format_number(value: float) -> str:
    if math.isfinite(value) and value.is_integer():
        return str(int(value))
    return repr(value)


def display(value: Value) -> str:
    """
    Text form of a value when interpolated into output.

    Strings are emitted as-is, integral numbers without a fractional part,
    containers as compact JSON.
    """
    if isinstance(value, StringValue):
        return value.value
    if isinstance(value, NumberValue):
        return format_number(value.value)
    if isinstance(value, BoolValue):
        return "true" if value.value else "false"
    if isinstance(value, NullValue):
        return "null"
    return json.dumps(to_python(value), ensure_ascii=False, separators=(",", ":"))


# Target names accepted by the `type` attribute of <let>
CONVERSION_TYPES = ("string", "integer", "number", "boolean", "array", "object")

# Strings that read as false when converted to boolean
_FALSE_TEXT = {"", "0", "false", "null", "NaN"}


def parse_json(text: str) -> Value:
    """
    Decodes JSON text into a Value.

    Raises:
        TypeError: When the text is not valid JSON
    """
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise TypeError(f"Invalid JSON at {e.lineno}:{e.colno}: {e.msg}") from e
    return from_python(data)


def _to_number(value: Value) -> NumberValue:
    if isinstance(value, NumberValue):
        return value
    if isinstance(value, StringValue):
        try:
            parsed = float(value.value.strip())
        except ValueError:
            parsed = math.nan
        if math.isfinite(parsed):
            return NumberValue(parsed)
        raise TypeError(f"Cannot convert {value.value!r} to a number")
    raise TypeError(f"Cannot convert {value.type_name()} to a number")


def convert(value: Value, target: str) -> Value:
    """
    Converts a value to one of CONVERSION_TYPES.

    Strings are parsed: numbers as decimal literals, booleans by the
    false-text rule, arrays and objects as JSON. Values already of the
    target type are returned unchanged.

    Raises:
        ValueError: For an unknown target name
        TypeError: When the value cannot be represented as the target type
    """
    if target == "string":
        return value if isinstance(value, StringValue) else StringValue(display(value))

    if target == "boolean":
        if isinstance(value, StringValue):
            return bool_value(value.value.strip() not in _FALSE_TEXT)
        return bool_value(is_truthy(value))

    if target in ("integer", "number"):
        result = _to_number(value)
        if target == "integer" and not result.is_integral():
            raise TypeError(f"Cannot convert {display(value)!r} to an integer")
        return result

    if target in ("array", "object"):
        result = parse_json(value.value) if isinstance(value, StringValue) else value
        expected = ArrayValue if target == "array" else ObjectValue
        if not isinstance(result, expected):
            raise TypeError(f"Expected {target}, got {result.type_name()}")
        return result

    raise ValueError(f"Unknown type '{target}', expected one of: {', '.join(CONVERSION_TYPES)}")


__all__ = [
    "ValueType",
    "Value",
    "NullValue",
    "BoolValue",
    "NumberValue",
    "StringValue",
    "ArrayValue",
    "ObjectValue",
    "NULL",
    "TRUE",
    "FALSE",
    "bool_value",
    "is_truthy",
    "from_python",
    "to_python",
    "format_number",
    "display",
    "CONVERSION_TYPES",
    "parse_json",
    "convert",
]
