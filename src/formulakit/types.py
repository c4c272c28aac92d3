"""Core types for formulakit.

This module defines the declarations a caller hands to an evaluator:
- TypeTag: the closed set of variable types
- Variable: a named, typed input slot with an optional default
- Function: a named helper whose body is a function literal
- EvaluationType: the kind of evaluation being built
"""

import math
from dataclasses import dataclass
from enum import Enum
from typing import Any


class TypeTag(Enum):
    """Types a declared variable (and a formula result) can have."""

    INT = "int"
    FLOAT = "float"
    STRING = "string"
    BOOL = "bool"

    @classmethod
    def parse(cls, value: "TypeTag | str") -> "TypeTag":
        """Resolve a tag from its name.

        Raises:
            ValueError: If the name is not a known type
        """
        if isinstance(value, TypeTag):
            return value
        try:
            return cls(str(value).strip())
        except ValueError:
            raise ValueError(f"unknown type '{value}'") from None

    @property
    def zero_value(self) -> Any:
        return _ZERO_VALUES[self]

    def accepts(self, value: Any) -> bool:
        """Check whether a runtime value belongs to this type.

        The match is exact: bool is not an int and int is not a float.
        """
        return type_of_value(value) is self


_ZERO_VALUES: dict[TypeTag, Any] = {
    TypeTag.INT: 0,
    TypeTag.FLOAT: 0.0,
    TypeTag.STRING: "",
    TypeTag.BOOL: False,
}

_PYTHON_TYPES: dict[type, TypeTag] = {
    bool: TypeTag.BOOL,
    int: TypeTag.INT,
    float: TypeTag.FLOAT,
    str: TypeTag.STRING,
}


def type_of_value(value: Any) -> TypeTag | None:
    """Return the tag of a runtime value, or None for unsupported values."""
    return _PYTHON_TYPES.get(type(value))


def type_name_of_value(value: Any) -> str:
    """Name of a value's type as reported in error messages."""
    tag = type_of_value(value)
    if tag is not None:
        return tag.value
    if value is None:
        return "null"
    return type(value).__name__


def format_value(value: Any) -> str:
    """Format a value the way the formula language writes it.

    Booleans are lowercase, strings are unquoted, floats use the shortest repr.
    """
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return "null"
    if isinstance(value, float):
        if math.isnan(value):
            return "NaN"
        if math.isinf(value):
            return "+Inf" if value > 0 else "-Inf"
        return repr(value)
    return str(value)


class EvaluationType(Enum):
    """Kinds of evaluation.

    SIMPLE: a formula body returning one value
    COMPLEX: reserved, recognized but rejected at build time
    """

    SIMPLE = 1
    COMPLEX = 2


@dataclass(frozen=True)
class Variable:
    """A declared input variable.

    Attributes:
        name: Identifier used in the formula
        type: A TypeTag or its name ("int", "float", "string", "bool")
        default_value: Value used when an evaluation does not override it;
            None means the type's zero value
    """

    name: str
    type: TypeTag | str
    default_value: Any = None

    @property
    def type_name(self) -> str:
        if isinstance(self.type, TypeTag):
            return self.type.value
        return str(self.type)


@dataclass(frozen=True)
class Function:
    """A declared helper function.

    Attributes:
        name: Identifier the function is bound to
        body: Function literal source, e.g. ``func(a, b int) int { return a + b }``
    """

    name: str
    body: str
