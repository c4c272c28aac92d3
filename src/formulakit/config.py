"""Evaluator configuration."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

RUNNER_INPROCESS = "inprocess"
RUNNER_SUBPROCESS = "subprocess"
RUNNERS = (RUNNER_INPROCESS, RUNNER_SUBPROCESS)


@dataclass
class EvaluatorConfig:
    """Settings shared by the build pipeline and the runners.

    Attributes:
        build_path: Base directory for build output; None means a private
            temporary directory per evaluator
        timeout: Seconds a single evaluation may run
        max_steps: Statement/loop budget of a single evaluation
        max_call_depth: Deepest allowed nesting of user function calls
        runner: "inprocess" or "subprocess"
        keep_build: Keep temporary build directories when an evaluator closes
    """

    build_path: Path | None = None
    timeout: float = 5.0
    max_steps: int = 1_000_000
    max_call_depth: int = 50
    runner: str = RUNNER_INPROCESS
    keep_build: bool = False

    def __post_init__(self) -> None:
        if self.runner not in RUNNERS:
            raise ValueError(
                f"Unsupported runner '{self.runner}', expected one of: {', '.join(RUNNERS)}"
            )
        if self.timeout <= 0:
            raise ValueError("timeout must be positive")
        if self.max_steps <= 0:
            raise ValueError("max_steps must be positive")
        if self.max_call_depth <= 0:
            raise ValueError("max_call_depth must be positive")

    @classmethod
    def from_env(cls) -> EvaluatorConfig:
        """Create config from environment variables.

        Variables:
        - FORMULAKIT_BUILD_PATH: base build directory
        - FORMULAKIT_TIMEOUT: seconds per evaluation (default 5)
        - FORMULAKIT_MAX_STEPS: step budget (default 1000000)
        - FORMULAKIT_MAX_CALL_DEPTH: call depth limit (default 50)
        - FORMULAKIT_RUNNER: inprocess | subprocess (default inprocess)
        - FORMULAKIT_KEEP_BUILD: 1/true/yes keeps temporary build output
        """
        build_path = os.environ.get("FORMULAKIT_BUILD_PATH")
        return cls(
            build_path=Path(build_path) if build_path else None,
            timeout=_env_number("FORMULAKIT_TIMEOUT", float, 5.0),
            max_steps=_env_number("FORMULAKIT_MAX_STEPS", int, 1_000_000),
            max_call_depth=_env_number("FORMULAKIT_MAX_CALL_DEPTH", int, 50),
            runner=os.environ.get("FORMULAKIT_RUNNER", RUNNER_INPROCESS).strip().lower(),
            keep_build=os.environ.get("FORMULAKIT_KEEP_BUILD", "").strip().lower()
            in ("1", "true", "yes"),
        )


def _env_number(name: str, kind: type, default: float | int) -> float | int:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return kind(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got '{raw}'") from None
