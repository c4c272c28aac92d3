"""Execution of built artifacts.

This package provides:
- bind_variables: per-call override checking and merging with defaults
- InProcessRunner / SubprocessRunner: one fresh execution per evaluation
- Result envelope encoding shared by both runners
"""

from formulakit.runtime.binding import bind_variables
from formulakit.runtime.codec import (
    ResultEnvelope,
    ScalarValue,
    VariablesPayload,
    decode_result,
    dump_envelope,
    encode_result,
    load_envelope,
)
from formulakit.runtime.runner import (
    InProcessRunner,
    Runner,
    SubprocessRunner,
    create_runner,
)

__all__ = [
    "InProcessRunner",
    "ResultEnvelope",
    "Runner",
    "ScalarValue",
    "SubprocessRunner",
    "VariablesPayload",
    "bind_variables",
    "create_runner",
    "decode_result",
    "dump_envelope",
    "encode_result",
    "load_envelope",
]
