"""Load evaluator definitions from YAML files."""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from formulakit.config import EvaluatorConfig
from formulakit.errors import DefinitionError
from formulakit.evaluator import Evaluator
from formulakit.types import EvaluationType, Function, Variable


@dataclass
class EvaluatorDefinition:
    """An evaluator as written in a definition file.

    Example:
        evaluator:
          name: simple operation
          imports: [math]
          variables:
            - {name: A, type: int}
            - {name: B, type: float, default: 10.5}
          formula: |
            return float(A) + B
    """

    name: str
    formula: str
    evaluation_type: Any = EvaluationType.SIMPLE
    variables: list[Variable] = field(default_factory=list)
    functions: list[Function] = field(default_factory=list)
    imports: list[str] = field(default_factory=list)
    build_path: Path | None = None

    def create_evaluator(self, config: EvaluatorConfig | None = None) -> Evaluator:
        """Create an unbuilt Evaluator carrying these declarations."""
        evaluator = Evaluator(self.name, config=config)
        evaluator.evaluation_type = self.evaluation_type
        for package in self.imports:
            evaluator.import_package(package)
        for variable in self.variables:
            evaluator.define_variable(variable)
        for function in self.functions:
            evaluator.define_function(function)
        evaluator.prepare_evaluation(self.formula)
        if self.build_path is not None:
            evaluator.set_base_build_path(self.build_path)
        return evaluator


def load_definition(path: str | Path) -> EvaluatorDefinition:
    """Read an evaluator definition file.

    Raises:
        DefinitionError: If the file cannot be read or is malformed
    """
    path = Path(path)
    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except OSError as e:
        raise DefinitionError(f"cannot read {path}: {e}") from e
    except yaml.YAMLError as e:
        raise DefinitionError(f"invalid YAML in {path}: {e}") from e

    definition = resolve_definition(data)
    if definition.build_path is not None and not definition.build_path.is_absolute():
        definition.build_path = path.parent / definition.build_path
    return definition


def resolve_definition(data: Any) -> EvaluatorDefinition:
    """Convert parsed YAML into an EvaluatorDefinition."""
    if not isinstance(data, dict) or not isinstance(data.get("evaluator"), dict):
        raise DefinitionError("definition must have a top-level 'evaluator' mapping")
    data = data["evaluator"]

    imports = data.get("imports") or []
    if isinstance(imports, str):
        imports = [imports]

    build_path = data.get("buildPath")

    return EvaluatorDefinition(
        name=str(data.get("name") or ""),
        formula=str(data.get("formula") or ""),
        evaluation_type=data.get("evaluationType", EvaluationType.SIMPLE),
        variables=[_resolve_variable(v) for v in _as_list(data, "variables")],
        functions=[_resolve_function(f) for f in _as_list(data, "functions")],
        imports=[str(p) for p in imports],
        build_path=Path(build_path) if build_path else None,
    )


def evaluator_from_dict(data: Any, config: EvaluatorConfig | None = None) -> Evaluator:
    return resolve_definition(data).create_evaluator(config)


def _as_list(data: dict, key: str) -> list[dict]:
    items = data.get(key) or []
    if not isinstance(items, list) or not all(isinstance(i, dict) for i in items):
        raise DefinitionError(f"'{key}' must be a list of mappings")
    return items


def _resolve_variable(data: dict) -> Variable:
    if "name" not in data or "type" not in data:
        raise DefinitionError(f"variable needs 'name' and 'type': {data}")
    return Variable(
        name=str(data["name"]),
        type=str(data["type"]),
        default_value=data.get("default"),
    )


def _resolve_function(data: dict) -> Function:
    if "name" not in data or "body" not in data:
        raise DefinitionError(f"function needs 'name' and 'body': {data}")
    return Function(name=str(data["name"]), body=str(data["body"]))
