"""Source assembly.

Turns a registry and its formula into one complete program:

    // evaluator: simple operation
    import "math"

    var A int = 0
    var B float = 10.5

    let NOT = func(cond bool) bool { return !cond }

    func __formula__() {
        return float(A) + B
    }

    emit __formula__()

This is a textual step. Names, bodies and the formula are passed through
verbatim; anything malformed surfaces as a compile diagnostic.
"""

import math
from typing import Any

from formulakit.language.checker import FORMULA_FUNCTION
from formulakit.registry import DeclarationRegistry
from formulakit.types import TypeTag, Variable


def quote_string(value: str) -> str:
    """Render a string as a double-quoted literal."""
    parts = ['"']
    for char in value:
        if char == "\\":
            parts.append("\\\\")
        elif char == '"':
            parts.append('\\"')
        elif char == "\n":
            parts.append("\\n")
        elif char == "\t":
            parts.append("\\t")
        elif char == "\r":
            parts.append("\\r")
        elif ord(char) < 0x20:
            parts.append(f"\\u{ord(char):04x}")
        else:
            parts.append(char)
    parts.append('"')
    return "".join(parts)


def render_literal(value: Any) -> str:
    """Render a Python value as a literal of the formula language.

    Values without a literal form are rendered with repr() and left for the
    compiler to reject.
    """
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        if math.isnan(value) or math.isinf(value):
            return repr(value)
        text = repr(value)
        if "." not in text and "e" not in text:
            text += ".0"
        elif "e" in text and "." not in text.split("e")[0]:
            mantissa, exponent = text.split("e")
            text = f"{mantissa}.0e{exponent}"
        return text
    if isinstance(value, str):
        return quote_string(value)
    return repr(value)


def _zero_literal(type_name: str) -> str | None:
    try:
        return render_literal(TypeTag.parse(type_name).zero_value)
    except ValueError:
        return None


def render_variable(variable: Variable) -> str:
    """Render one top-level variable declaration."""
    if variable.default_value is not None:
        return f"var {variable.name} {variable.type_name} = {render_literal(variable.default_value)}"
    zero = _zero_literal(variable.type_name)
    if zero is None:
        return f"var {variable.name} {variable.type_name}"
    return f"var {variable.name} {variable.type_name} = {zero}"


def _indent(text: str, prefix: str = "    ") -> str:
    lines = text.strip("\n").splitlines()
    return "\n".join(prefix + line if line.strip() else "" for line in lines)


def assemble(registry: DeclarationRegistry) -> str:
    """Compose the complete program text for a registry."""
    sections: list[str] = [f"// evaluator: {' '.join(registry.name.split())}".rstrip()]

    if registry.imports:
        sections.append("\n".join(f"import {quote_string(p)}" for p in registry.imports))

    if registry.variables:
        sections.append("\n".join(render_variable(v) for v in registry.variables))

    for function in registry.functions:
        sections.append(f"let {function.name} = {function.body.strip()}")

    body = _indent(registry.formula)
    sections.append(f"func {FORMULA_FUNCTION}() {{\n{body}\n}}")
    sections.append(f"emit {FORMULA_FUNCTION}()")

    return "\n\n".join(sections) + "\n"
