"""Compiler: turns generated source into an Artifact."""

from __future__ import annotations

import hashlib
import logging
import re
from datetime import datetime, timezone
from pathlib import Path

from formulakit.build.artifact import (
    MANIFEST_FILENAME,
    Artifact,
    ArtifactManifest,
    VariableSpec,
)
from formulakit.errors import BuildError
from formulakit.language import CompileError, compile_source

logger = logging.getLogger(__name__)

SOURCE_FILENAME = "main.fk"


def source_hash(source: str) -> str:
    return hashlib.sha256(source.encode("utf-8")).hexdigest()


def create_package_name(name: str, source: str, package_prefix: str = "fk_") -> str:
    """Name the build directory for an evaluator's source.

    The evaluator name is reduced to identifier characters and followed by
    the first six hex digits of the source hash, so a changed source always
    lands in a fresh directory.

    Args:
        name: Evaluator name
        source: Generated program text
        package_prefix: Leading marker for formulakit output

    Returns:
        A name such as ``fk_simple_operation_3f2b1a``
    """
    s = re.sub(r"[^0-9a-zA-Z_]", "_", name.strip())
    if not s or s[0].isdigit():
        s = "_" + s

    return package_prefix + s + "_" + source_hash(source)[:6]


class Compiler:
    """Compiles assembled program text into a runnable Artifact.

    The generated source is written to ``<output_dir>/main.fk`` before
    compiling, so a failed build still leaves the text that failed next to
    its diagnostics for inspection.
    """

    def __init__(self, source_filename: str = SOURCE_FILENAME) -> None:
        self.source_filename = source_filename

    def compile(self, source: str, output_dir: Path, *, name: str = "") -> Artifact:
        """Compile source into an artifact stored under output_dir.

        Args:
            source: Complete program text
            output_dir: Directory for the source file and manifest, created
                if missing
            name: Evaluator name recorded in the manifest

        Returns:
            The compiled program and its manifest

        Raises:
            BuildError: If the program has compile diagnostics, one per line,
                each prefixed with the source file name
        """
        output_dir.mkdir(parents=True, exist_ok=True)
        source_path = output_dir / self.source_filename
        source_path.write_text(source, encoding="utf-8")
        logger.debug("Wrote %s", source_path)

        try:
            checked = compile_source(source)
        except CompileError as e:
            diagnostics = "\n".join(f"{self.source_filename}:{d}" for d in e.diagnostics)
            raise BuildError(diagnostics) from e

        manifest = ArtifactManifest(
            name=name,
            package=output_dir.name,
            source_file=self.source_filename,
            source_hash=source_hash(source),
            result_type=checked.result_type,
            variables=[
                VariableSpec(name=v.name, type=v.type, default=v.default)
                for v in checked.variables.values()
            ],
            functions=[f for f in checked.functions if not f.startswith("__")],
            imports=checked.imports,
            built_at=datetime.now(timezone.utc),
        )
        (output_dir / MANIFEST_FILENAME).write_text(
            manifest.model_dump_json(indent=2), encoding="utf-8"
        )

        return Artifact(checked, manifest, output_dir)


def load_artifact(directory: Path) -> Artifact:
    """Recreate an artifact from a build directory.

    Raises:
        BuildError: If the manifest or source is missing or no longer compiles
    """
    manifest_path = directory / MANIFEST_FILENAME
    try:
        manifest = ArtifactManifest.model_validate_json(manifest_path.read_text(encoding="utf-8"))
        source = (directory / manifest.source_file).read_text(encoding="utf-8")
    except OSError as e:
        raise BuildError(f"cannot read artifact in {directory}: {e}") from e
    except ValueError as e:
        raise BuildError(f"invalid manifest {manifest_path}: {e}") from e

    if source_hash(source) != manifest.source_hash:
        raise BuildError(f"source in {directory} does not match its manifest")

    try:
        checked = compile_source(source)
    except CompileError as e:
        raise BuildError(str(e)) from e

    return Artifact(checked, manifest, directory)
