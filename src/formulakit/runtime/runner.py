"""Runners execute an artifact once per evaluation.

- InProcessRunner: a fresh interpreter per call inside this process
- SubprocessRunner: a fresh Python process per call
  (``python -m formulakit.runtime <artifact-dir>``)

Both return the result envelope; decoding is left to the caller.
"""

from __future__ import annotations

import logging
import os
import subprocess
import sys
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import TYPE_CHECKING, Any

from formulakit.config import RUNNER_SUBPROCESS, EvaluatorConfig
from formulakit.errors import EvaluationTimeoutError, ExecutionError
from formulakit.language import BudgetExceeded, Interpreter, RuntimeFault
from formulakit.runtime.codec import (
    ResultEnvelope,
    dump_variables,
    encode_result,
    load_envelope,
)

if TYPE_CHECKING:
    from formulakit.build.artifact import Artifact

logger = logging.getLogger(__name__)

# Exit statuses of the runtime entry point
EXIT_RUNTIME_FAULT = 3
EXIT_TIMEOUT = 4


class Runner(ABC):
    """Executes an artifact with a complete set of variable values."""

    name: str = ""

    def __init__(self, timeout: float, max_steps: int, max_call_depth: int) -> None:
        self.timeout = timeout
        self.max_steps = max_steps
        self.max_call_depth = max_call_depth

    @abstractmethod
    def run(self, artifact: Artifact, variables: dict[str, Any]) -> ResultEnvelope:
        """Run the artifact once.

        Raises:
            ExecutionError: If the program fails while running
            EvaluationTimeoutError: If it does not finish within the time or
                step budget
            DecodeError: If its result cannot be decoded
        """
        ...


class InProcessRunner(Runner):
    """Runs the checked program on a fresh interpreter in this process.

    The interpreter runs on a daemon worker thread so the deadline holds even
    while a single step is busy; on timeout the run is cancelled and left to
    stop at its next step.
    """

    name = "inprocess"

    def run(self, artifact: Artifact, variables: dict[str, Any]) -> ResultEnvelope:
        interpreter = Interpreter(
            artifact.program,
            max_steps=self.max_steps,
            max_call_depth=self.max_call_depth,
            timeout=self.timeout,
        )
        outcome: dict[str, Any] = {}

        def work() -> None:
            try:
                outcome["value"] = interpreter.run(variables)
            except BaseException as e:  # re-raised on the calling thread
                outcome["error"] = e

        worker = threading.Thread(target=work, name="formulakit-eval", daemon=True)
        worker.start()
        worker.join(self.timeout)
        if worker.is_alive():
            interpreter.cancel()
            raise EvaluationTimeoutError(f"evaluation exceeded {self.timeout}s")

        try:
            if "error" in outcome:
                raise outcome["error"]
            value = outcome["value"]
        except BudgetExceeded as e:
            raise EvaluationTimeoutError(str(e)) from e
        except RuntimeFault as e:
            raise ExecutionError(f"runtime error: {e}") from e
        except RecursionError as e:
            raise ExecutionError("runtime error: expression nesting too deep") from e
        except MemoryError as e:
            raise ExecutionError("runtime error: out of memory") from e

        return encode_result(value, artifact.result_type)


class SubprocessRunner(Runner):
    """Runs the artifact from its build directory in a child Python process.

    Variables are written to the child's stdin as JSON; the child prints a
    single result envelope on stdout.
    """

    name = "subprocess"

    def __init__(
        self,
        timeout: float,
        max_steps: int,
        max_call_depth: int,
        python: str | None = None,
    ) -> None:
        super().__init__(timeout, max_steps, max_call_depth)
        self.python = python or sys.executable

    def command(self, artifact: Artifact) -> list[str]:
        return [
            self.python,
            "-m",
            "formulakit.runtime",
            str(artifact.directory),
            "--max-steps",
            str(self.max_steps),
            "--max-call-depth",
            str(self.max_call_depth),
        ]

    def run(self, artifact: Artifact, variables: dict[str, Any]) -> ResultEnvelope:
        command = self.command(artifact)
        logger.debug("Running %s", " ".join(command))

        try:
            result = subprocess.run(
                command,
                input=dump_variables(variables),
                capture_output=True,
                text=True,
                timeout=self.timeout,
                env=self._environment(),
            )
        except subprocess.TimeoutExpired as e:
            raise EvaluationTimeoutError(f"evaluation exceeded {self.timeout}s") from e
        except OSError as e:
            raise ExecutionError(f"cannot start runtime process: {e}") from e

        if result.returncode != 0:
            detail = result.stderr.strip() or f"exit status {result.returncode}"
            if result.returncode == EXIT_TIMEOUT:
                raise EvaluationTimeoutError(detail)
            raise ExecutionError(detail)

        lines = [line for line in result.stdout.splitlines() if line.strip()]
        return load_envelope(lines[-1] if lines else "")

    @staticmethod
    def _environment() -> dict[str, str]:
        """Child environment with this formulakit importable."""
        env = dict(os.environ)
        package_root = str(Path(__file__).resolve().parents[2])
        existing = env.get("PYTHONPATH")
        env["PYTHONPATH"] = package_root + (os.pathsep + existing if existing else "")
        return env


def create_runner(config: EvaluatorConfig) -> Runner:
    """Create the runner selected by config."""
    runner_type = SubprocessRunner if config.runner == RUNNER_SUBPROCESS else InProcessRunner
    return runner_type(
        timeout=config.timeout,
        max_steps=config.max_steps,
        max_call_depth=config.max_call_depth,
    )
