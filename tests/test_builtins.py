"""Tests for the built-in packages (strings, math, fmt, rand) and the registry."""

import math
from concurrent.futures import ThreadPoolExecutor

import pytest

from formulakit.language import (
    CompileError,
    Interpreter,
    PackageRegistry,
    RuntimeFault,
    compile_source,
    ensure_builtins,
    register_all_builtins,
)
from formulakit.language.packages import UNIVERSE, FunctionCategory


@pytest.fixture(autouse=True)
def setup_packages():
    """Register built-in packages before each test."""
    PackageRegistry.clear()
    register_all_builtins()
    yield
    PackageRegistry.clear()


def run(expression: str, *packages: str):
    imports = "\n".join(f'import "{p}"' for p in packages)
    source = f"{imports}\nfunc __formula__() {{ return {expression} }}\nemit __formula__()\n"
    return Interpreter(compile_source(source)).run()


# =============================================================================
# Registry
# =============================================================================


class TestPackageRegistry:
    def test_packages_listed(self):
        assert PackageRegistry.list_packages() == ["fmt", "math", "rand", "strings"]

    def test_conversions_live_in_universe(self):
        names = [f.name for f in PackageRegistry.list_functions(UNIVERSE)]
        assert names == ["bool", "float", "int", "string"]

    def test_lookup(self):
        definition = PackageRegistry.get("strings", "upper")
        assert definition.qualified_name == "strings.upper"
        assert definition.category is FunctionCategory.STRING
        assert definition.return_type == "string"

    def test_is_registered(self):
        assert PackageRegistry.is_registered("math", "sqrt")
        assert not PackageRegistry.is_registered("math", "upper")

    def test_documentation_export(self):
        docs = PackageRegistry.export_documentation()
        assert set(docs) == {"builtin", "fmt", "math", "rand", "strings"}
        sprintf = next(f for f in docs["fmt"] if f["name"] == "fmt.sprintf")
        assert sprintf["returnType"] == "string"
        assert sprintf["parameters"][-1]["variadic"] is True

    def test_random_functions_not_deterministic(self):
        assert not PackageRegistry.get("rand", "intn").deterministic
        assert PackageRegistry.get("math", "sqrt").deterministic

    def test_clear(self):
        PackageRegistry.clear()
        assert PackageRegistry.is_empty()

    def test_first_registration_is_thread_safe(self):
        PackageRegistry.clear()
        source = 'import "strings"\nfunc __formula__() { return strings.upper("a") }\nemit __formula__()\n'
        with ThreadPoolExecutor(max_workers=8) as pool:
            results = list(pool.map(lambda _: compile_source(source), range(16)))
        assert len(results) == 16
        assert PackageRegistry.list_packages() == ["fmt", "math", "rand", "strings"]

    def test_ensure_builtins_is_idempotent(self):
        ensure_builtins()
        ensure_builtins()
        assert PackageRegistry.list_packages() == ["fmt", "math", "rand", "strings"]


# =============================================================================
# Conversions
# =============================================================================


class TestConversions:
    def test_int_truncates(self):
        assert run("int(-2.7)") == -2
        assert run('int("42")') == 42

    def test_int_out_of_range(self):
        with pytest.raises(RuntimeFault, match="out of range for int"):
            run("int(1.0e300)")
        with pytest.raises(RuntimeFault, match="out of range for int"):
            run('int("9223372036854775808")')


# =============================================================================
# strings
# =============================================================================


class TestStrings:
    def test_basic(self):
        assert run('strings.upper("abc")', "strings") == "ABC"
        assert run('strings.lower("ABC")', "strings") == "abc"
        assert run('strings.trim("  a ")', "strings") == "a"
        assert run('strings.len("héllo")', "strings") == 5

    def test_predicates(self):
        assert run('strings.contains("urgent: fix", "urgent")', "strings") is True
        assert run('strings.startsWith("A-100", "A-")', "strings") is True
        assert run('strings.endsWith("a@b.org", ".com")', "strings") is False
        assert run('strings.isEmpty("   ")', "strings") is True
        assert run('strings.matches("12345", "^[0-9]{5}$")', "strings") is True

    def test_concat_is_variadic(self):
        assert run('strings.concat("a", "b", "c")', "strings") == "abc"
        assert run("strings.concat()", "strings") == ""

    def test_replace_and_repeat(self):
        assert run('strings.replace("555-1234", "-", "")', "strings") == "5551234"
        assert run('strings.repeat("ab", 3)', "strings") == "ababab"

    def test_repeat_length_bounded(self):
        with pytest.raises(RuntimeFault, match="repeat result longer than"):
            run('strings.repeat("ab", 100000000000)', "strings")

    def test_index_and_substring(self):
        assert run('strings.index("a@b", "@")', "strings") == 1
        assert run('strings.index("ab", "z")', "strings") == -1
        assert run('strings.substring("hello", 1, 3)', "strings") == "el"

    def test_substring_out_of_range(self):
        with pytest.raises(RuntimeFault, match="Error calling strings.substring"):
            run('strings.substring("hi", 0, 5)', "strings")

    def test_invalid_pattern(self):
        with pytest.raises(RuntimeFault, match="invalid pattern"):
            run('strings.matches("a", "(")', "strings")

    def test_argument_types_checked(self):
        with pytest.raises(CompileError, match="as type string in argument to strings.upper"):
            run("strings.upper(1)", "strings")


# =============================================================================
# math
# =============================================================================


class TestMath:
    def test_round_half_away_from_zero(self):
        assert run("math.round(2.5, 0)", "math") == 3.0
        assert run("math.round(-2.5, 0)", "math") == -3.0
        assert run("math.round(3.14159, 2)", "math") == 3.14

    def test_floor_ceil_abs(self):
        assert run("math.floor(2.7)", "math") == 2.0
        assert run("math.ceil(2.1)", "math") == 3.0
        assert run("math.abs(-1.5)", "math") == 1.5
        assert run("math.absInt(-4)", "math") == 4

    def test_sqrt_and_pow(self):
        assert run("math.sqrt(16)", "math") == 4.0
        assert math.isnan(run("math.sqrt(-1)", "math"))
        assert run("math.pow(2, 10)", "math") == 1024.0

    def test_min_max(self):
        assert run("math.min(3, 1.5, 2)", "math") == 1.5
        assert run("math.max(3, 1.5)", "math") == 3.0
        assert run("math.minInt(4, 2, 8)", "math") == 2
        assert run("math.maxInt(4)", "math") == 4

    def test_int_variable_not_accepted_as_float(self):
        source = (
            'import "math"\nvar N int = 4\n'
            "func __formula__() { return math.sqrt(N) }\nemit __formula__()\n"
        )
        with pytest.raises(CompileError, match="cannot use N \\(type int\\) as type float"):
            compile_source(source)


# =============================================================================
# fmt
# =============================================================================


class TestFmt:
    def test_sprintf_verbs(self):
        assert run('fmt.sprintf("%s after %d tried", "win", 3)', "fmt") == "win after 3 tried"
        assert run('fmt.sprintf("%.2f", 3.14159)', "fmt") == "3.14"
        assert run('fmt.sprintf("%f", 1.5)', "fmt") == "1.500000"
        assert run('fmt.sprintf("%t|%v|%q", true, 2.5, "x")', "fmt") == 'true|2.5|"x"'
        assert run('fmt.sprintf("100%%")', "fmt") == "100%"

    def test_sprintf_mismatches(self):
        assert run('fmt.sprintf("%d")', "fmt") == "%!d(MISSING)"
        assert run('fmt.sprintf("%d", "x")', "fmt") == "%!d(x)"
        assert run('fmt.sprintf("a", 1)', "fmt") == "a%!(EXTRA 1)"

    def test_sprint(self):
        assert run('fmt.sprint("total: ", 3, " ", false)', "fmt") == "total: 3 false"


# =============================================================================
# rand
# =============================================================================


class TestRand:
    def test_random_int_range(self):
        for _ in range(20):
            assert 0 <= run("rand.randomInt(0, 10)", "rand") < 10

    def test_random_int_empty_range(self):
        with pytest.raises(RuntimeFault, match="invalid range"):
            run("rand.randomInt(5, 5)", "rand")

    def test_intn(self):
        assert run("rand.intn(1)", "rand") == 0

    def test_float(self):
        assert 0.0 <= run("rand.float()", "rand") < 1.0
