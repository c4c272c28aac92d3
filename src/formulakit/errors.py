"""Error taxonomy for formulakit.

Every failure is raised to the immediate caller:
- ValidationError: build preconditions (raised before anything is compiled)
- BuildError: the formula program failed to compile
- NotBuiltError: evaluate() called before a successful build()
- TypeMismatchError / UnknownVariableError: bad per-call overrides
- ExecutionError / EvaluationTimeoutError: the program failed while running
- DecodeError: the program's result could not be decoded
- DefinitionError: an evaluator definition file is malformed
"""

from typing import Any

from formulakit.types import TypeTag, format_value, type_name_of_value


class FormulaKitError(Exception):
    """Base class for all formulakit errors."""


class ValidationError(FormulaKitError):
    """A build precondition is not met.

    The message is a stable string callers may match on.
    """


class BuildError(FormulaKitError):
    """The assembled program could not be compiled.

    Attributes:
        diagnostics: The compiler's diagnostic text, unmodified
    """

    def __init__(self, diagnostics: str):
        self.diagnostics = diagnostics
        super().__init__(f"build failed: {diagnostics}")


class NotBuiltError(FormulaKitError):
    """The evaluator has no artifact to run."""

    def __init__(self, name: str = ""):
        label = f"evaluator '{name}'" if name else "evaluator"
        super().__init__(f"{label} is not built, call build() first")


class TypeMismatchError(FormulaKitError):
    """An override value does not match its variable's declared type."""

    def __init__(self, name: str, declared: TypeTag | str, value: Any):
        self.name = name
        self.declared = declared.value if isinstance(declared, TypeTag) else str(declared)
        self.value = value
        super().__init__(
            f"Error on setting value of variable {name} (type {self.declared}) "
            f"with value {format_value(value)} (type {type_name_of_value(value)})"
        )


class UnknownVariableError(FormulaKitError):
    """An override names a variable that was never declared."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(
            f"Error on setting value of variable {name}: variable is not declared"
        )


class ExecutionError(FormulaKitError):
    """The built program failed while running."""


class EvaluationTimeoutError(ExecutionError):
    """The built program did not finish within its time budget."""


class DecodeError(FormulaKitError):
    """The program's output could not be decoded into a result."""


class DefinitionError(FormulaKitError):
    """An evaluator definition file is malformed."""
