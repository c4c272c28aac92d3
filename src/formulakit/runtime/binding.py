"""Per-call variable binding."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Mapping

from formulakit.errors import TypeMismatchError, UnknownVariableError

if TYPE_CHECKING:
    from formulakit.build.artifact import Artifact


def bind_variables(artifact: Artifact, overrides: Mapping[str, Any] | None) -> dict[str, Any]:
    """Check overrides against the declared types and merge them with defaults.

    Keys are checked in the order given; the first problem wins.

    Raises:
        UnknownVariableError: If a key names no declared variable
        TypeMismatchError: If a value's type differs from the declared type
    """
    values = artifact.defaults()

    for name, value in (overrides or {}).items():
        spec = artifact.get_variable(name)
        if spec is None:
            raise UnknownVariableError(name)
        if not spec.type.accepts(value):
            raise TypeMismatchError(name, spec.type, value)
        values[name] = value

    return values
