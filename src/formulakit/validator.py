"""Build preconditions.

Checked in order before anything is assembled or compiled; the first
failure wins. The messages are stable and callers may match on them.
"""

import math

from formulakit.errors import ValidationError
from formulakit.registry import DeclarationRegistry
from formulakit.types import EvaluationType

NAME_MANDATORY = "name is mandatory"
EVALUATION_TYPE_INVALID = "evaluationType is invalid"
FORMULA_EMPTY = "evaluation formula cannot be empty"
COMPLEX_UNSUPPORTED = "currently complex evaluation is still not supported"


def resolve_evaluation_type(value: object) -> EvaluationType | None:
    """Map a stored evaluation kind to the enum, None if out of range."""
    if isinstance(value, EvaluationType):
        return value
    if isinstance(value, bool):
        return None
    try:
        return EvaluationType(value)
    except ValueError:
        pass
    if isinstance(value, str):
        try:
            return EvaluationType[value.strip().upper()]
        except KeyError:
            return None
    return None


def validate(registry: DeclarationRegistry) -> EvaluationType:
    """Check the registry can be built.

    Returns:
        The resolved evaluation kind

    Raises:
        ValidationError: On the first failed precondition
    """
    if not registry.name or not registry.name.strip():
        raise ValidationError(NAME_MANDATORY)

    evaluation_type = resolve_evaluation_type(registry.evaluation_type)
    if evaluation_type is None:
        raise ValidationError(EVALUATION_TYPE_INVALID)

    if not registry.formula or not registry.formula.strip():
        raise ValidationError(FORMULA_EMPTY)

    if evaluation_type is EvaluationType.COMPLEX:
        raise ValidationError(COMPLEX_UNSUPPORTED)

    for variable in registry.variables:
        default = variable.default_value
        if isinstance(default, float) and not math.isfinite(default):
            raise ValidationError(
                f"default value of variable {variable.name} must be a finite number"
            )

    return evaluation_type
