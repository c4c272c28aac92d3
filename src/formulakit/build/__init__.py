"""Build pipeline for formulakit.

This module provides:
- BuildPipeline: validate, assemble and compile a registry
- Compiler: compile program text into an Artifact
- Artifact: the reusable, immutable build result
"""

from formulakit.build.artifact import Artifact, ArtifactManifest, VariableSpec
from formulakit.build.compiler import Compiler, create_package_name, load_artifact
from formulakit.build.pipeline import BuildPipeline

__all__ = [
    "Artifact",
    "ArtifactManifest",
    "BuildPipeline",
    "Compiler",
    "VariableSpec",
    "create_package_name",
    "load_artifact",
]
