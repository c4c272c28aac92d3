"""formulakit: typed formula evaluators.

Declare typed variables, helper functions and a formula, build once, then
evaluate many times with per-call overrides:

    from formulakit import Evaluator, TypeTag, Variable

    with Evaluator("simple operation") as ev:
        ev.define_variable(Variable("A", TypeTag.INT))
        ev.define_variable(Variable("B", TypeTag.FLOAT, 10.5))
        ev.prepare_evaluation("return float(A) + B")
        ev.build()
        ev.evaluate({"A": 9})  # 19.5
"""

from formulakit.config import EvaluatorConfig
from formulakit.errors import (
    BuildError,
    DecodeError,
    DefinitionError,
    EvaluationTimeoutError,
    ExecutionError,
    FormulaKitError,
    NotBuiltError,
    TypeMismatchError,
    UnknownVariableError,
    ValidationError,
)
from formulakit.evaluator import Evaluator, EvaluatorState
from formulakit.loader import EvaluatorDefinition, evaluator_from_dict, load_definition
from formulakit.types import EvaluationType, Function, TypeTag, Variable

__all__ = [
    "BuildError",
    "DecodeError",
    "DefinitionError",
    "EvaluationTimeoutError",
    "EvaluationType",
    "Evaluator",
    "EvaluatorConfig",
    "EvaluatorDefinition",
    "EvaluatorState",
    "ExecutionError",
    "FormulaKitError",
    "Function",
    "NotBuiltError",
    "TypeMismatchError",
    "TypeTag",
    "UnknownVariableError",
    "ValidationError",
    "Variable",
    "evaluator_from_dict",
    "load_definition",
]
