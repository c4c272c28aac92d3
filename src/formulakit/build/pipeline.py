"""Build pipeline: validate, assemble, compile."""

from __future__ import annotations

import logging
from pathlib import Path

from formulakit.assembler import assemble
from formulakit.build.artifact import Artifact
from formulakit.build.compiler import Compiler, create_package_name
from formulakit.registry import DeclarationRegistry
from formulakit.validator import validate

logger = logging.getLogger(__name__)


class BuildPipeline:
    """Runs one build of a registry.

    Validation runs first and never touches the filesystem; the source is
    only assembled and written once every precondition holds.
    """

    def __init__(self, compiler: Compiler | None = None) -> None:
        self.compiler = compiler or Compiler()

    def run(self, registry: DeclarationRegistry, base_path: Path) -> Artifact:
        """Build the registry into an artifact under base_path.

        Raises:
            ValidationError: If a build precondition fails
            BuildError: If the assembled program does not compile
        """
        validate(registry)

        source = assemble(registry)
        output_dir = base_path / create_package_name(registry.name, source)
        logger.debug("Building evaluator '%s' in %s", registry.name, output_dir)

        artifact = self.compiler.compile(source, output_dir, name=registry.name)
        logger.info(
            "Built evaluator '%s' (returns %s)", registry.name, artifact.result_type.value
        )
        return artifact
