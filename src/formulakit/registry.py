"""Declaration registry for an evaluator.

Holds everything a caller declares before a build: the evaluator name and
kind, variables, helper functions, imported packages, the formula text and
where build output goes. All operations are plain mutations; invalid
combinations are only diagnosed when the evaluator is built.
"""

from pathlib import Path
from typing import Any

from formulakit.types import EvaluationType, Function, Variable


class DeclarationRegistry:
    """In-memory declarations of one evaluator.

    Re-declaring a variable or function name replaces the earlier
    declaration (last write wins) while keeping its original position in
    the generated program. Importing a package twice is a no-op.
    """

    def __init__(self, name: str = ""):
        self.name = name
        self.evaluation_type: Any = EvaluationType.SIMPLE
        self.formula = ""
        self.base_build_path: Path | None = None
        self._variables: dict[str, Variable] = {}
        self._functions: dict[str, Function] = {}
        self._imports: list[str] = []

    def set_name(self, name: str) -> None:
        self.name = name

    def define_variable(self, variable: Variable) -> None:
        self._variables[variable.name] = variable

    def define_function(self, function: Function) -> None:
        self._functions[function.name] = function

    def import_package(self, package: str) -> None:
        if package not in self._imports:
            self._imports.append(package)

    def prepare_evaluation(self, formula: str) -> None:
        self.formula = formula

    def set_base_build_path(self, path: str | Path) -> None:
        self.base_build_path = Path(path)

    @property
    def variables(self) -> list[Variable]:
        """Declared variables in declaration order."""
        return list(self._variables.values())

    @property
    def functions(self) -> list[Function]:
        """Declared functions in declaration order."""
        return list(self._functions.values())

    @property
    def imports(self) -> list[str]:
        return list(self._imports)

    def get_variable(self, name: str) -> Variable | None:
        return self._variables.get(name)
