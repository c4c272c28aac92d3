"""Package registry for the formula language.

Packages group typed builtin functions callable from formulas once
imported (e.g., `import "strings"` then `strings.upper(name)`).
Conversion functions (int, float, string, bool) live in the universe
package and need no import.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable

UNIVERSE = ""


class FunctionCategory(Enum):
    """Categories for organizing functions in documentation."""

    STRING = "string"
    MATH = "math"
    FORMAT = "format"
    RANDOM = "random"
    CONVERSION = "conversion"


@dataclass
class FunctionParameter:
    """Definition of a function parameter.

    Attributes:
        name: Parameter name
        type: Expected type ("int", "float", "string", "bool" or "any")
        description: Human-readable description
        variadic: If True, this parameter accepts any number of values
    """

    name: str
    type: str
    description: str
    variadic: bool = False


@dataclass
class FunctionDefinition:
    """Complete definition of a builtin function.

    Attributes:
        name: Function name as used in formulas
        package: Package the function belongs to (UNIVERSE for conversions)
        description: Human-readable description
        category: Category for documentation organization
        parameters: List of parameter definitions
        return_type: Type of the return value
        examples: Example expressions using this function
        implementation: The Python callable
        deterministic: False when results may differ between calls
    """

    name: str
    package: str
    description: str
    category: FunctionCategory
    parameters: list[FunctionParameter]
    return_type: str
    implementation: Callable[..., Any]
    examples: list[str] = field(default_factory=list)
    deterministic: bool = True

    @property
    def qualified_name(self) -> str:
        if self.package == UNIVERSE:
            return self.name
        return f"{self.package}.{self.name}"

    @property
    def is_variadic(self) -> bool:
        return bool(self.parameters) and self.parameters[-1].variadic

    def to_dict(self) -> dict[str, Any]:
        """Export for documentation."""
        return {
            "name": self.qualified_name,
            "description": self.description,
            "category": self.category.value,
            "parameters": [
                {
                    "name": p.name,
                    "type": p.type,
                    "description": p.description,
                    "variadic": p.variadic,
                }
                for p in self.parameters
            ],
            "returnType": self.return_type,
            "deterministic": self.deterministic,
            "examples": self.examples,
        }


class PackageRegistry:
    """Registry of builtin packages and their functions.

    Example:
        PackageRegistry.register(FunctionDefinition(
            name="upper",
            package="strings",
            ...
        ))

        func = PackageRegistry.get("strings", "upper")
        result = func.implementation("hello")  # Returns "HELLO"
    """

    _packages: dict[str, dict[str, FunctionDefinition]] = {}

    @classmethod
    def register(cls, func_def: FunctionDefinition) -> None:
        """Register a function definition under its package."""
        cls._packages.setdefault(func_def.package, {})[func_def.name] = func_def

    @classmethod
    def get(cls, package: str, name: str) -> FunctionDefinition:
        """Get a function definition.

        Raises:
            ValueError: If the function is not registered
        """
        functions = cls._packages.get(package, {})
        if name not in functions:
            qualified = name if package == UNIVERSE else f"{package}.{name}"
            raise ValueError(f"Unknown function: {qualified}")
        return functions[name]

    @classmethod
    def is_registered(cls, package: str, name: str) -> bool:
        """Check if a function is registered."""
        return name in cls._packages.get(package, {})

    @classmethod
    def has_package(cls, package: str) -> bool:
        """Check if an importable package exists."""
        return package != UNIVERSE and package in cls._packages

    @classmethod
    def list_packages(cls) -> list[str]:
        """List importable package names."""
        return sorted(p for p in cls._packages if p != UNIVERSE)

    @classmethod
    def list_functions(cls, package: str) -> list[FunctionDefinition]:
        """List functions of one package, sorted by name."""
        functions = cls._packages.get(package, {})
        return [functions[name] for name in sorted(functions)]

    @classmethod
    def is_empty(cls) -> bool:
        return not cls._packages

    @classmethod
    def export_documentation(cls) -> dict[str, Any]:
        """Export the full registry for documentation.

        Returns:
            Dict of package name to its function definitions; conversions
            are listed under "builtin"
        """
        return {
            (package or "builtin"): [f.to_dict() for f in cls.list_functions(package)]
            for package in sorted(cls._packages)
        }

    @classmethod
    def clear(cls) -> None:
        """Clear all registrations. Primarily for testing."""
        cls._packages.clear()
