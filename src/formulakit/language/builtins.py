"""Built-in packages for the formula language.

This module registers all built-in functions with the PackageRegistry.
Call register_all_builtins() before compiling; the compiler does so when
the registry is empty.

Packages:
- builtin (no import): int, float, string, bool conversions
- strings: len, isEmpty, concat, trim, upper, lower, contains, startsWith,
  endsWith, matches, replace, repeat, index, substring
- math: abs, round, floor, ceil, sqrt, pow, min, max, absInt, minInt, maxInt
- fmt: sprintf, sprint
- rand: intn, randomInt, float
"""

import math
import random
import re
from typing import Any

from formulakit.language.packages import (
    UNIVERSE,
    FunctionCategory,
    FunctionDefinition,
    FunctionParameter,
    PackageRegistry,
)
from formulakit.types import format_value


def register_all_builtins() -> None:
    """Register all built-in functions with the PackageRegistry."""
    _register_conversions()
    _register_string_functions()
    _register_math_functions()
    _register_format_functions()
    _register_random_functions()


# -----------------------------------------------------------------------------
# Conversions
# -----------------------------------------------------------------------------


_INT_MIN = -(1 << 63)
_INT_MAX = (1 << 63) - 1


def _to_int(value: Any) -> int:
    """Convert to int; floats truncate toward zero."""
    if isinstance(value, bool):
        return 1 if value else 0
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if math.isnan(value) or math.isinf(value):
            raise ValueError(f"cannot convert {format_value(value)} to int")
        result = int(value)
    else:
        try:
            result = int(str(value).strip())
        except ValueError:
            raise ValueError(f'cannot convert "{value}" to int') from None
    if not _INT_MIN <= result <= _INT_MAX:
        raise ValueError(f"{format_value(value)} is out of range for int")
    return result


def _to_float(value: Any) -> float:
    if isinstance(value, (bool, int, float)):
        return float(value)
    try:
        return float(str(value).strip())
    except ValueError:
        raise ValueError(f'cannot convert "{value}" to float') from None


def _to_string(value: Any) -> str:
    return format_value(value)


def _to_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    text = str(value).strip().lower()
    if text in ("true", "1"):
        return True
    if text in ("false", "0", ""):
        return False
    raise ValueError(f'cannot convert "{value}" to bool')


def _register_conversions() -> None:
    for name, implementation, description in (
        ("int", _to_int, "Converts a value to int (floats truncate toward zero)"),
        ("float", _to_float, "Converts a value to float"),
        ("string", _to_string, "Formats a value as a string"),
        ("bool", _to_bool, "Converts a value to bool"),
    ):
        PackageRegistry.register(
            FunctionDefinition(
                name=name,
                package=UNIVERSE,
                description=description,
                category=FunctionCategory.CONVERSION,
                parameters=[FunctionParameter("value", "any", "The value to convert")],
                return_type=name,
                implementation=implementation,
                examples=[f"{name}(A)"],
            )
        )


# -----------------------------------------------------------------------------
# String Functions
# -----------------------------------------------------------------------------


def _matches(value: str, pattern: str) -> bool:
    """Test if string matches regex pattern."""
    try:
        return bool(re.search(pattern, value))
    except re.error as e:
        raise ValueError(f"invalid pattern {pattern!r}: {e}") from None


def _substring(value: str, start: int, end: int) -> str:
    if start < 0 or end > len(value) or start > end:
        raise ValueError(f"substring bounds [{start}:{end}] out of range for length {len(value)}")
    return value[start:end]


# Longest string strings.repeat may build
MAX_REPEAT_LENGTH = 1 << 24


def _repeat(value: str, count: int) -> str:
    if count < 0:
        raise ValueError("negative repeat count")
    if len(value) * count > MAX_REPEAT_LENGTH:
        raise ValueError(f"repeat result longer than {MAX_REPEAT_LENGTH} characters")
    return value * count


def _register_string_functions() -> None:
    string_param = FunctionParameter("value", "string", "The input string")

    definitions = [
        ("len", "Returns the number of characters in a string", [string_param], "int",
         lambda s: len(s), ["strings.len(Name) > 0"]),
        ("isEmpty", "Returns true if the string is empty or whitespace", [string_param], "bool",
         lambda s: s.strip() == "", ["strings.isEmpty(MiddleName)"]),
        ("concat", "Concatenates all arguments",
         [FunctionParameter("values", "string", "Strings to concatenate", variadic=True)], "string",
         lambda *args: "".join(args), ['strings.concat(First, " ", Last)']),
        ("trim", "Removes whitespace from both ends of a string", [string_param], "string",
         lambda s: s.strip(), ['strings.trim(Name)']),
        ("upper", "Converts string to uppercase", [string_param], "string",
         lambda s: s.upper(), ['strings.upper(Code) == "US"']),
        ("lower", "Converts string to lowercase", [string_param], "string",
         lambda s: s.lower(), ['strings.lower(Email)']),
        ("contains", "Returns true if substr is within the string",
         [string_param, FunctionParameter("substr", "string", "The text to find")], "bool",
         lambda s, sub: sub in s, ['strings.contains(Title, "urgent")']),
        ("startsWith", "Returns true if the string starts with prefix",
         [string_param, FunctionParameter("prefix", "string", "The prefix")], "bool",
         lambda s, prefix: s.startswith(prefix), ['strings.startsWith(Sku, "A-")']),
        ("endsWith", "Returns true if the string ends with suffix",
         [string_param, FunctionParameter("suffix", "string", "The suffix")], "bool",
         lambda s, suffix: s.endswith(suffix), ['strings.endsWith(Email, ".org")']),
        ("matches", "Returns true if the regular expression matches the string",
         [string_param, FunctionParameter("pattern", "string", "Regular expression")], "bool",
         _matches, ['strings.matches(Zip, "^[0-9]{5}$")']),
        ("replace", "Replaces all occurrences of old with new",
         [string_param,
          FunctionParameter("old", "string", "Text to replace"),
          FunctionParameter("new", "string", "Replacement")], "string",
         lambda s, old, new: s.replace(old, new), ['strings.replace(Phone, "-", "")']),
        ("repeat", "Repeats the string count times",
         [string_param, FunctionParameter("count", "int", "Number of repetitions")], "string",
         _repeat, ['strings.repeat("*", Stars)']),
        ("index", "Returns the index of substr in the string, or -1",
         [string_param, FunctionParameter("substr", "string", "The text to find")], "int",
         lambda s, sub: s.find(sub), ['strings.index(Email, "@")']),
        ("substring", "Returns the characters from start up to (not including) end",
         [string_param,
          FunctionParameter("start", "int", "First index"),
          FunctionParameter("end", "int", "End index (exclusive)")], "string",
         _substring, ["strings.substring(Code, 0, 2)"]),
    ]

    for name, description, parameters, return_type, implementation, examples in definitions:
        PackageRegistry.register(
            FunctionDefinition(
                name=name,
                package="strings",
                description=description,
                category=FunctionCategory.STRING,
                parameters=parameters,
                return_type=return_type,
                implementation=implementation,
                examples=examples,
            )
        )


# -----------------------------------------------------------------------------
# Math Functions
# -----------------------------------------------------------------------------


def _round(value: float, places: int = 0) -> float:
    """Round half away from zero to the given number of places."""
    factor = 10 ** places
    scaled = abs(value) * factor
    rounded = math.floor(scaled + 0.5) / factor
    return math.copysign(rounded, value)


def _sqrt(value: float) -> float:
    if value < 0:
        return math.nan
    return math.sqrt(value)


def _pow(base: float, exponent: float) -> float:
    try:
        return math.pow(base, exponent)
    except (OverflowError, ValueError):
        return math.nan if base < 0 else math.inf


def _min(first: Any, *rest: Any) -> Any:
    return min(first, *rest) if rest else first


def _max(first: Any, *rest: Any) -> Any:
    return max(first, *rest) if rest else first


def _register_math_functions() -> None:
    x = FunctionParameter("x", "float", "The input number")
    a = FunctionParameter("a", "int", "The input integer")

    definitions = [
        ("abs", "Returns the absolute value", [x], "float", math.fabs, ["math.abs(Delta)"]),
        ("round", "Rounds half away from zero to the given decimal places",
         [x, FunctionParameter("places", "int", "Decimal places")], "float",
         _round, ["math.round(Price * 1.2, 2)"]),
        ("floor", "Largest whole number not greater than x", [x], "float",
         lambda v: float(math.floor(v)), ["math.floor(Score)"]),
        ("ceil", "Smallest whole number not less than x", [x], "float",
         lambda v: float(math.ceil(v)), ["math.ceil(Score)"]),
        ("sqrt", "Square root (NaN for negative input)", [x], "float", _sqrt, ["math.sqrt(Area)"]),
        ("pow", "Raises base to exponent",
         [FunctionParameter("base", "float", "Base"), FunctionParameter("exp", "float", "Exponent")],
         "float", _pow, ["math.pow(Rate, 2)"]),
        ("min", "Smallest of the arguments",
         [x, FunctionParameter("rest", "float", "More numbers", variadic=True)], "float",
         _min, ["math.min(A, B, 10)"]),
        ("max", "Largest of the arguments",
         [x, FunctionParameter("rest", "float", "More numbers", variadic=True)], "float",
         _max, ["math.max(A, B, 0)"]),
        ("absInt", "Absolute value of an integer", [a], "int", abs, ["math.absInt(Offset)"]),
        ("minInt", "Smallest of the integer arguments",
         [a, FunctionParameter("rest", "int", "More integers", variadic=True)], "int",
         _min, ["math.minInt(Count, 10)"]),
        ("maxInt", "Largest of the integer arguments",
         [a, FunctionParameter("rest", "int", "More integers", variadic=True)], "int",
         _max, ["math.maxInt(Count, 0)"]),
    ]

    for name, description, parameters, return_type, implementation, examples in definitions:
        PackageRegistry.register(
            FunctionDefinition(
                name=name,
                package="math",
                description=description,
                category=FunctionCategory.MATH,
                parameters=parameters,
                return_type=return_type,
                implementation=implementation,
                examples=examples,
            )
        )


# -----------------------------------------------------------------------------
# Format Functions
# -----------------------------------------------------------------------------


_VERB = re.compile(r"%(\.\d+)?([a-z%])")


def _sprintf(template: str, *args: Any) -> str:
    """Format a string with %s %d %f %t %v %q verbs.

    %s/%v use the formula language rendering, %d expects an int,
    %f a float (with optional precision, e.g. %.2f), %t a bool and
    %q quotes a string.
    """
    remaining = list(args)

    def substitute(match: re.Match) -> str:
        precision, verb = match.group(1), match.group(2)
        if verb == "%":
            return "%"
        if not remaining:
            return f"%!{verb}(MISSING)"
        value = remaining.pop(0)

        if verb in ("s", "v"):
            return format_value(value)
        if verb == "d" and isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        if verb == "f" and isinstance(value, (int, float)) and not isinstance(value, bool):
            digits = int(precision[1:]) if precision else 6
            return f"{float(value):.{digits}f}"
        if verb == "t" and isinstance(value, bool):
            return format_value(value)
        if verb == "q":
            escaped = format_value(value).replace("\\", "\\\\").replace('"', '\\"')
            return f'"{escaped}"'
        return f"%!{verb}({format_value(value)})"

    result = _VERB.sub(substitute, template)
    if remaining:
        extra = ", ".join(format_value(v) for v in remaining)
        result += f"%!(EXTRA {extra})"
    return result


def _sprint(*args: Any) -> str:
    return "".join(format_value(a) for a in args)


def _register_format_functions() -> None:
    PackageRegistry.register(
        FunctionDefinition(
            name="sprintf",
            package="fmt",
            description="Formats values according to a template (%s %d %f %t %v %q)",
            category=FunctionCategory.FORMAT,
            parameters=[
                FunctionParameter("format", "string", "Template with verbs"),
                FunctionParameter("args", "any", "Values to format", variadic=True),
            ],
            return_type="string",
            implementation=_sprintf,
            examples=['fmt.sprintf("%s after %d tries", Message, Tries)'],
        )
    )

    PackageRegistry.register(
        FunctionDefinition(
            name="sprint",
            package="fmt",
            description="Concatenates the string form of all arguments",
            category=FunctionCategory.FORMAT,
            parameters=[FunctionParameter("args", "any", "Values to format", variadic=True)],
            return_type="string",
            implementation=_sprint,
            examples=['fmt.sprint("total: ", Total)'],
        )
    )


# -----------------------------------------------------------------------------
# Random Functions
# -----------------------------------------------------------------------------


def _random_int(low: int, high: int) -> int:
    """Random int in [low, high)."""
    if high <= low:
        raise ValueError(f"invalid range [{low}, {high})")
    return random.randrange(low, high)


def _intn(n: int) -> int:
    if n <= 0:
        raise ValueError("argument to intn must be positive")
    return random.randrange(n)


def _register_random_functions() -> None:
    definitions = [
        ("randomInt", "Random integer in [low, high)",
         [FunctionParameter("low", "int", "Inclusive lower bound"),
          FunctionParameter("high", "int", "Exclusive upper bound")], "int",
         _random_int, ["rand.randomInt(0, 10)"]),
        ("intn", "Random integer in [0, n)",
         [FunctionParameter("n", "int", "Exclusive upper bound")], "int",
         _intn, ["rand.intn(6) + 1"]),
        ("float", "Random float in [0.0, 1.0)", [], "float",
         random.random, ["rand.float() < 0.5"]),
    ]

    for name, description, parameters, return_type, implementation, examples in definitions:
        PackageRegistry.register(
            FunctionDefinition(
                name=name,
                package="rand",
                description=description,
                category=FunctionCategory.RANDOM,
                parameters=parameters,
                return_type=return_type,
                implementation=implementation,
                examples=examples,
                deterministic=False,
            )
        )
