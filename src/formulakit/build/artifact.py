"""Built artifacts."""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field

from formulakit.language import CheckedProgram
from formulakit.runtime.codec import ScalarValue
from formulakit.types import TypeTag

MANIFEST_FILENAME = "manifest.json"


class VariableSpec(BaseModel):
    """A top-level variable as frozen into an artifact."""

    name: str
    type: TypeTag
    default: ScalarValue


class ArtifactManifest(BaseModel):
    """Metadata describing a built artifact.

    Written next to the generated source so the artifact can be run from
    its directory alone (see formulakit.runtime.__main__).
    """

    name: str
    """Name of the evaluator that was built."""
    package: str
    """Directory name of the build output: slugged name plus source hash."""
    source_file: str
    """Generated source file, relative to the artifact directory."""
    source_hash: str
    """SHA-256 of the generated source."""
    result_type: TypeTag
    """Type of the value the formula returns."""
    variables: list[VariableSpec] = Field(default_factory=list)
    functions: list[str] = Field(default_factory=list)
    imports: list[str] = Field(default_factory=list)
    built_at: datetime


class Artifact:
    """An executable, immutable build result.

    An Artifact bundles the checked program with its manifest and the
    directory holding the generated files. It is shared read-only by every
    evaluation until a rebuild replaces it.
    """

    manifest: ArtifactManifest
    program: CheckedProgram
    directory: Path

    def __init__(
        self,
        program: CheckedProgram,
        manifest: ArtifactManifest,
        directory: Path,
    ) -> None:
        self.program = program
        self.manifest = manifest
        self.directory = directory
        self._variables = {v.name: v for v in manifest.variables}

    @property
    def source_path(self) -> Path:
        return self.directory / self.manifest.source_file

    @property
    def result_type(self) -> TypeTag:
        return self.manifest.result_type

    @property
    def variables(self) -> dict[str, VariableSpec]:
        """Declared variables by name."""
        return dict(self._variables)

    def get_variable(self, name: str) -> VariableSpec | None:
        return self._variables.get(name)

    def defaults(self) -> dict[str, Any]:
        """Initial values of every declared variable."""
        return {name: spec.default for name, spec in self._variables.items()}
