"""Result and variable encoding across the execution boundary.

A program's result travels as a self-describing envelope

    {"type": "float", "value": 19.5}

so the caller gets back a value of the type the formula produced, even when
the program ran in another process.
"""

import json
from typing import Any, Union

from pydantic import BaseModel, StrictBool, StrictFloat, StrictInt, StrictStr
from pydantic import ValidationError as PydanticValidationError

from formulakit.errors import DecodeError
from formulakit.types import TypeTag, type_name_of_value

ScalarValue = Union[StrictBool, StrictInt, StrictFloat, StrictStr]


class ResultEnvelope(BaseModel):
    """A tagged result value."""

    type: TypeTag
    value: ScalarValue


class VariablesPayload(BaseModel):
    """Variable values handed to a program run."""

    variables: dict[str, ScalarValue]


def encode_result(value: Any, result_type: TypeTag) -> ResultEnvelope:
    """Wrap a program's emitted value in an envelope.

    Raises:
        DecodeError: If the value does not belong to result_type
    """
    if not result_type.accepts(value):
        raise DecodeError(
            f"result {value!r} (type {type_name_of_value(value)}) "
            f"does not match result type {result_type.value}"
        )
    return ResultEnvelope(type=result_type, value=value)


def decode_result(envelope: ResultEnvelope) -> Any:
    """Unwrap an envelope into a Python value of the tagged type.

    Raises:
        DecodeError: If the value disagrees with its tag
    """
    value = envelope.value
    if envelope.type is TypeTag.FLOAT and type(value) is int:
        return float(value)
    if not envelope.type.accepts(value):
        raise DecodeError(
            f"result {value!r} (type {type_name_of_value(value)}) "
            f"is tagged {envelope.type.value}"
        )
    return value


def dump_envelope(envelope: ResultEnvelope) -> str:
    """Serialize an envelope to one JSON line."""
    return json.dumps({"type": envelope.type.value, "value": envelope.value})


def load_envelope(text: str) -> ResultEnvelope:
    """Parse one JSON line into an envelope.

    Raises:
        DecodeError: If the text is not a valid envelope
    """
    if not text or not text.strip():
        raise DecodeError("no result was produced")
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise DecodeError(f"result is not valid JSON: {e}") from e
    try:
        return ResultEnvelope.model_validate(data)
    except PydanticValidationError as e:
        raise DecodeError(f"malformed result envelope: {e.errors()[0]['msg']}") from e


def dump_variables(variables: dict[str, Any]) -> str:
    return json.dumps({"variables": variables})


def load_variables(text: str) -> dict[str, Any]:
    """Parse serialized variables.

    Raises:
        DecodeError: If the payload is malformed
    """
    try:
        data = json.loads(text) if text.strip() else {"variables": {}}
        return VariablesPayload.model_validate(data).variables
    except (json.JSONDecodeError, PydanticValidationError) as e:
        raise DecodeError(f"malformed variables payload: {e}") from e
