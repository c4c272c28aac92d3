"""Evaluator: declare, build once, evaluate many times."""

from __future__ import annotations

import logging
import shutil
import tempfile
import threading
from enum import Enum
from pathlib import Path
from typing import Any, Mapping

from formulakit.assembler import assemble
from formulakit.build import Artifact, BuildPipeline
from formulakit.config import EvaluatorConfig
from formulakit.errors import FormulaKitError, NotBuiltError
from formulakit.registry import DeclarationRegistry
from formulakit.runtime import bind_variables, create_runner, decode_result
from formulakit.types import Function, TypeTag, Variable

logger = logging.getLogger(__name__)


class EvaluatorState(str, Enum):
    UNBUILT = "unbuilt"
    BUILT = "built"
    CLOSED = "closed"


class Evaluator:
    """Compiles a formula over typed variables and evaluates it repeatedly.

    Usage:
        ev = Evaluator("simple operation")
        ev.define_variable(Variable("A", TypeTag.INT))
        ev.define_variable(Variable("B", TypeTag.FLOAT, 10.5))
        ev.prepare_evaluation("return float(A) + B")
        ev.build()
        ev.evaluate({"A": 9})  # 19.5

    Declarations may change at any time; they only take effect on the next
    build(). A failed rebuild keeps the previous artifact. Concurrent
    evaluate() calls are independent; builds are serialized.
    """

    def __init__(self, name: str = "", *, config: EvaluatorConfig | None = None):
        self.config = config or EvaluatorConfig()
        self.registry = DeclarationRegistry(name or "")
        if self.config.build_path is not None:
            self.registry.set_base_build_path(self.config.build_path)

        self._pipeline = BuildPipeline()
        self._runner = create_runner(self.config)
        self._artifact: Artifact | None = None
        self._closed = False
        self._temp_dir: Path | None = None
        self._build_lock = threading.Lock()

    # -------------------------------------------------------------------------
    # Declarations
    # -------------------------------------------------------------------------

    @property
    def name(self) -> str:
        return self.registry.name

    def set_name(self, name: str) -> None:
        self.registry.set_name(name)

    @property
    def evaluation_type(self) -> Any:
        return self.registry.evaluation_type

    @evaluation_type.setter
    def evaluation_type(self, value: Any) -> None:
        self.registry.evaluation_type = value

    def define_variable(
        self,
        variable: Variable | str,
        type: TypeTag | str | None = None,
        default_value: Any = None,
    ) -> None:
        """Declare (or redeclare) a variable.

        Accepts a Variable or its fields:
            ev.define_variable("A", "int")
        """
        if not isinstance(variable, Variable):
            if type is None:
                raise TypeError("define_variable() needs a type when given a name")
            variable = Variable(variable, type, default_value)
        self.registry.define_variable(variable)

    def define_function(self, function: Function | str, body: str | None = None) -> None:
        """Declare (or redeclare) a helper function."""
        if not isinstance(function, Function):
            if body is None:
                raise TypeError("define_function() needs a body when given a name")
            function = Function(function, body)
        self.registry.define_function(function)

    def import_package(self, package: str) -> None:
        self.registry.import_package(package)

    def prepare_evaluation(self, formula: str) -> None:
        self.registry.prepare_evaluation(formula)

    def set_base_build_path(self, path: str | Path) -> None:
        self.registry.set_base_build_path(path)

    @property
    def source(self) -> str:
        """Program text the current declarations assemble to."""
        return assemble(self.registry)

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    @property
    def state(self) -> EvaluatorState:
        if self._closed:
            return EvaluatorState.CLOSED
        if self._artifact is not None:
            return EvaluatorState.BUILT
        return EvaluatorState.UNBUILT

    @property
    def is_built(self) -> bool:
        return self.state is EvaluatorState.BUILT

    @property
    def artifact(self) -> Artifact | None:
        return self._artifact

    def build(self) -> Artifact:
        """Validate, assemble and compile the current declarations.

        Returns:
            The new artifact, which replaces the previous one

        Raises:
            ValidationError: If a build precondition fails
            BuildError: If the program does not compile
        """
        with self._build_lock:
            self._ensure_open()
            base_path = self._base_path()

            try:
                artifact = self._pipeline.run(self.registry, base_path)
            except FormulaKitError:
                if self._artifact is not None:
                    logger.info(
                        "Rebuild of '%s' failed, keeping previous artifact", self.name
                    )
                raise

            previous, self._artifact = self._artifact, artifact
            if previous is not None and previous.directory != artifact.directory:
                if self._owns(previous.directory):
                    shutil.rmtree(previous.directory, ignore_errors=True)
            logger.debug("Artifact for '%s' at %s", self.name, artifact.directory)
            return artifact

    def evaluate(self, overrides: Mapping[str, Any] | None = None) -> Any:
        """Run the built formula once and return its value.

        Args:
            overrides: Values for declared variables; the rest keep their
                defaults

        Raises:
            NotBuiltError: If no build has succeeded yet
            UnknownVariableError: If an override names an undeclared variable
            TypeMismatchError: If an override has the wrong type
            ExecutionError: If the program fails or times out while running
            DecodeError: If the result cannot be decoded
        """
        self._ensure_open()
        artifact = self._artifact
        if artifact is None:
            raise NotBuiltError(self.name)

        variables = bind_variables(artifact, overrides)
        logger.debug("Evaluating '%s' with %s runner", self.name, self._runner.name)
        envelope = self._runner.run(artifact, variables)
        return decode_result(envelope)

    def close(self) -> None:
        """Release build output owned by this evaluator. Idempotent."""
        with self._build_lock:
            if self._closed:
                return
            self._closed = True
            self._artifact = None
            if self._temp_dir is not None and not self.config.keep_build:
                shutil.rmtree(self._temp_dir, ignore_errors=True)
                logger.debug("Removed build directory %s", self._temp_dir)
            self._temp_dir = None

    def __enter__(self) -> Evaluator:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"Evaluator(name={self.name!r}, state={self.state.value})"

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _ensure_open(self) -> None:
        if self._closed:
            raise FormulaKitError(f"evaluator '{self.name}' is closed")

    def _base_path(self) -> Path:
        if self.registry.base_build_path is not None:
            return self.registry.base_build_path
        if self._temp_dir is None:
            self._temp_dir = Path(tempfile.mkdtemp(prefix="formulakit-"))
        return self._temp_dir

    def _owns(self, directory: Path) -> bool:
        return self._temp_dir is not None and self._temp_dir in directory.parents
