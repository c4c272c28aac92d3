"""Tests for the formula language.

Tests cover:
- Lexer: Tokenization of program text
- Parser: AST generation from tokens
- TypeChecker: Name resolution, typing rules and diagnostics
- Interpreter: Running checked programs
"""

import math

import pytest

from formulakit.language import (
    BinaryOp,
    BudgetExceeded,
    CompileError,
    FunctionCall,
    FunctionLiteral,
    Identifier,
    Interpreter,
    Lexer,
    LexerError,
    Literal,
    PackageRegistry,
    ParseError,
    RuntimeFault,
    TokenType,
    UnaryOp,
    compile_source,
    parse,
    parse_program,
    register_all_builtins,
)
from formulakit.language.parser import (
    ForStatement,
    IfStatement,
    ImportDeclaration,
    LetDeclaration,
    Parameter,
    VarDeclaration,
)
from formulakit.types import TypeTag


@pytest.fixture(autouse=True)
def setup_packages():
    """Register built-in packages before each test."""
    PackageRegistry.clear()
    register_all_builtins()
    yield
    PackageRegistry.clear()


def program(body: str, header: str = "") -> str:
    """Wrap a formula body into a complete program."""
    return f"{header}\nfunc __formula__() {{\n{body}\n}}\nemit __formula__()\n"


def run(body: str, header: str = "", variables=None, **limits):
    checked = compile_source(program(body, header))
    return Interpreter(checked, **limits).run(variables)


def token_types(source: str) -> list[TokenType]:
    return [t.type for t in Lexer(source).tokenize()]


# =============================================================================
# Lexer Tests
# =============================================================================


class TestLexer:
    def test_declaration(self):
        assert token_types("total := price * 2") == [
            TokenType.IDENTIFIER,
            TokenType.DECLARE,
            TokenType.IDENTIFIER,
            TokenType.MULTIPLY,
            TokenType.INT,
            TokenType.EOF,
        ]

    def test_numbers(self):
        tokens = Lexer("42 3.5 1.5e3 2e2").tokenize()
        assert [(t.type, t.value) for t in tokens[:-1]] == [
            (TokenType.INT, 42),
            (TokenType.FLOAT, 3.5),
            (TokenType.FLOAT, 1500.0),
            (TokenType.FLOAT, 200.0),
        ]

    def test_string_escapes(self):
        token = Lexer(r'"a\n\"b\" \u0041"').next_token()
        assert token.type == TokenType.STRING
        assert token.value == 'a\n"b" A'

    def test_unknown_escape(self):
        with pytest.raises(LexerError, match="Unknown escape"):
            Lexer(r'"\q"').tokenize()

    def test_keywords_are_case_sensitive(self):
        assert token_types("IF if OR NOT") == [
            TokenType.IDENTIFIER,
            TokenType.IF,
            TokenType.IDENTIFIER,
            TokenType.IDENTIFIER,
            TokenType.EOF,
        ]

    def test_booleans(self):
        tokens = Lexer("true false").tokenize()
        assert [t.value for t in tokens[:-1]] == [True, False]

    def test_compound_operators(self):
        assert token_types("x += 1; y-- ; z != w") == [
            TokenType.IDENTIFIER,
            TokenType.PLUS_ASSIGN,
            TokenType.INT,
            TokenType.SEMICOLON,
            TokenType.IDENTIFIER,
            TokenType.DECREMENT,
            TokenType.SEMICOLON,
            TokenType.IDENTIFIER,
            TokenType.NEQ,
            TokenType.IDENTIFIER,
            TokenType.EOF,
        ]

    def test_newline_ends_statement_after_value(self):
        assert TokenType.NEWLINE in token_types("a\nb")

    def test_newline_after_operator_continues(self):
        assert TokenType.NEWLINE not in token_types("a +\n b")

    def test_newline_inside_parentheses_ignored(self):
        assert TokenType.NEWLINE not in token_types("f(a,\n b\n)")

    def test_newline_inside_braces_kept(self):
        types = token_types("f(func() int {\n return 1\n})")
        assert types.count(TokenType.NEWLINE) == 1

    def test_comments_skipped(self):
        assert token_types("a // trailing\nb") == [
            TokenType.IDENTIFIER,
            TokenType.NEWLINE,
            TokenType.IDENTIFIER,
            TokenType.EOF,
        ]

    def test_positions(self):
        tokens = Lexer("a\n  b").tokenize()
        b = tokens[2]
        assert (b.line, b.column) == (2, 3)

    def test_unterminated_string(self):
        with pytest.raises(LexerError, match="Unterminated string literal"):
            Lexer('"abc').tokenize()

    def test_unexpected_character(self):
        with pytest.raises(LexerError, match="Unexpected character '@'") as exc:
            Lexer("a @ b").tokenize()
        assert exc.value.column == 3


# =============================================================================
# Parser Tests
# =============================================================================


class TestParser:
    def test_precedence(self):
        assert parse("a + b * 2") == BinaryOp(
            "+", Identifier("a"), BinaryOp("*", Identifier("b"), Literal(2))
        )

    def test_grouping(self):
        assert parse("(a + b) * 2") == BinaryOp(
            "*", BinaryOp("+", Identifier("a"), Identifier("b")), Literal(2)
        )

    def test_logical_precedence(self):
        assert parse("!a && b || c") == BinaryOp(
            "||",
            BinaryOp("&&", UnaryOp("!", Identifier("a")), Identifier("b")),
            Identifier("c"),
        )

    def test_package_call(self):
        assert parse("math.sqrt(x)") == FunctionCall("sqrt", [Identifier("x")], "math")

    def test_call_with_space_before_parenthesis(self):
        node = parse('IF (N > 20, "a", "b")')
        assert isinstance(node, FunctionCall)
        assert node.name == "IF"
        assert len(node.arguments) == 3

    def test_function_literal_shared_parameter_type(self):
        node = parse("func(cond bool, ok, nok string) string { return ok }")
        assert isinstance(node, FunctionLiteral)
        assert node.parameters == [
            Parameter("cond", "bool"),
            Parameter("ok", "string"),
            Parameter("nok", "string"),
        ]
        assert node.return_type == "string"

    def test_positions_recorded(self):
        node = parse("a +\n  b")
        assert (node.right.line, node.right.column) == (2, 3)

    def test_top_level_items(self):
        items = parse_program(
            'import "math"\n'
            "var A int = 1\n"
            "let Twice = func(x int) int { return x * 2 }\n"
            "func __formula__() { return Twice(A) }\n"
            "emit __formula__()\n"
        ).items
        assert isinstance(items[0], ImportDeclaration)
        assert items[0].package == "math"
        assert items[1] == VarDeclaration("A", "int", Literal(1))
        assert isinstance(items[2], LetDeclaration)
        assert len(items) == 5

    def test_else_if_chain(self):
        body = parse_program(
            program("if A > 1 { return 1 } else if A > 0 { return 2 } else { return 3 }")
        ).items[0].function.body
        statement = body.statements[0]
        assert isinstance(statement, IfStatement)
        assert isinstance(statement.else_branch, IfStatement)
        assert statement.else_branch.else_branch is not None

    def test_for_forms(self):
        body = parse_program(program("for i < 3 { i++ }\nfor { break }\nreturn 1")).items[0]
        loops = body.function.body.statements[:2]
        assert all(isinstance(s, ForStatement) for s in loops)
        assert loops[0].condition is not None
        assert loops[1].condition is None

    def test_empty_expression(self):
        with pytest.raises(ParseError, match="Empty expression"):
            parse("   ")

    def test_incomplete_expression(self):
        with pytest.raises(ParseError):
            parse("a +")

    def test_missing_parameter_type(self):
        with pytest.raises(ParseError, match="Missing type for parameter 'a'"):
            parse("func(a) int { return a }")

    def test_statement_at_top_level(self):
        with pytest.raises(ParseError, match="Unexpected token 'x' at top level"):
            parse_program("x := 1")

    def test_statements_need_separators(self):
        with pytest.raises(ParseError, match="after statement") as exc:
            parse_program(program("x := 1 y := 2\nreturn x"))
        assert exc.value.line == 3


# =============================================================================
# Type Checker Tests
# =============================================================================


class TestTypeChecker:
    def diagnostics(self, source: str) -> list[str]:
        with pytest.raises(CompileError) as exc:
            compile_source(source)
        return [d.message for d in exc.value.diagnostics]

    def test_result_type_inferred(self):
        checked = compile_source(program('return "x"'))
        assert checked.result_type is TypeTag.STRING

    def test_globals_collected(self):
        checked = compile_source(program("return B", "var A int = 1\nvar B float = 10.5"))
        assert list(checked.variables) == ["A", "B"]
        assert checked.variables["B"].type is TypeTag.FLOAT
        assert checked.variables["B"].default == 10.5

    def test_undefined_name(self):
        assert "undefined: Y" in self.diagnostics(program("return Y"))

    def test_mismatched_operands(self):
        messages = self.diagnostics(program("return A + 1.5", "var A int = 0"))
        assert any("mismatched types int and float" in m for m in messages)

    def test_bool_is_not_int(self):
        messages = self.diagnostics(program("return F + 1", "var F bool = false"))
        assert any("mismatched types bool and int" in m for m in messages)

    def test_int_constant_in_float_context(self):
        checked = compile_source(program("return B + 1", "var B float = 1.5"))
        assert checked.result_type is TypeTag.FLOAT
        assert Interpreter(checked).run() == 2.5

    def test_int_variable_not_float(self):
        messages = self.diagnostics(program("var x float = A\nreturn x", "var A int = 0"))
        assert any("cannot use A (type int) as type float" in m for m in messages)

    def test_global_initializer_exact_type(self):
        messages = self.diagnostics(program("return B", "var B float = 2"))
        assert "cannot use 2 (type int) as type float in declaration of B" in messages

    def test_non_boolean_condition(self):
        messages = self.diagnostics(program("if 1 { return 1 }\nreturn 2"))
        assert any("non-boolean condition in if statement" in m for m in messages)

    def test_missing_return(self):
        messages = self.diagnostics(
            program("return F(1)", "let F = func(x int) int { if x > 0 { return 1 } }")
        )
        assert "missing return" in messages

    def test_formula_without_return(self):
        messages = self.diagnostics(program("x := 1\nx++"))
        assert "formula must return a value" in messages

    def test_nesting_too_deep(self):
        messages = self.diagnostics(program("return " + "(" * 3000 + "1" + ")" * 3000))
        assert messages == ["expression nesting too deep"]

    def test_inconsistent_formula_returns(self):
        messages = self.diagnostics(program('if true { return 1 }\nreturn "a"'))
        assert "inconsistent return types: string and int" in messages

    def test_wrong_argument_type(self):
        messages = self.diagnostics(
            program('return NOT("yes")', "let NOT = func(c bool) bool { return !c }")
        )
        assert any("in argument to NOT" in m for m in messages)

    def test_argument_count(self):
        messages = self.diagnostics(
            program("return NOT()", "let NOT = func(c bool) bool { return !c }")
        )
        assert any(m.startswith("not enough arguments in call to NOT") for m in messages)

    def test_unknown_package(self):
        assert 'unknown package "nope"' in self.diagnostics(program("return 1", 'import "nope"'))

    def test_package_not_imported(self):
        messages = self.diagnostics(program('return strings.upper("a")'))
        assert 'package "strings" is not imported' in messages

    def test_unknown_package_function(self):
        messages = self.diagnostics(program("return math.nope(1.0)", 'import "math"'))
        assert "undefined: math.nope" in messages

    def test_unknown_type(self):
        assert "unknown type decimal" in self.diagnostics(program("return 1", "var A decimal"))

    def test_let_must_be_function(self):
        messages = self.diagnostics(program("return 1", "let X = 1"))
        assert "let X must be bound to a function literal" in messages

    def test_break_outside_loop(self):
        assert "break is not in a loop" in self.diagnostics(program("break\nreturn 1"))

    def test_redeclared(self):
        messages = self.diagnostics(program("x := 1\nx := 2\nreturn x"))
        assert "x redeclared in this block" in messages

    def test_shadowing_in_inner_block(self):
        checked = compile_source(program("x := 1\nif true { x := 2\nx++ }\nreturn x"))
        assert Interpreter(checked).run() == 1

    def test_unused_expression(self):
        messages = self.diagnostics(program("1 + 2\nreturn 1"))
        assert "1 + 2 evaluated but not used" in messages

    def test_emit_required(self):
        messages = self.diagnostics("func __formula__() { return 1 }")
        assert "program must emit exactly one result, found 0" in messages

    def test_diagnostics_sorted_with_positions(self):
        with pytest.raises(CompileError) as exc:
            compile_source(program("x := Y\nreturn Z"))
        rendered = str(exc.value).splitlines()
        assert rendered == ["3:6: undefined: Y", "4:8: undefined: Z"]

    def test_syntax_error_becomes_diagnostic(self):
        with pytest.raises(CompileError) as exc:
            compile_source(program("return (1"))
        diagnostic = exc.value.diagnostics[0]
        assert diagnostic.line == 4
        assert "Expected ')'" in diagnostic.message


# =============================================================================
# Interpreter Tests
# =============================================================================


class TestInterpreter:
    def test_arithmetic(self):
        assert run("return 1 + 2 * 3 - 4") == 3

    def test_integer_division_truncates(self):
        assert run("return -7 / 2") == -3
        assert run("return 7 / -2") == -3

    def test_modulo_sign_of_dividend(self):
        assert run("return -7 % 3") == -1
        assert run("return 7 % -3") == 1

    def test_integer_divide_by_zero(self):
        with pytest.raises(RuntimeFault, match="integer divide by zero"):
            run("x := 0\nreturn 1 / x")

    def test_float_divide_by_zero(self):
        assert run("x := 0.0\nreturn 1.0 / x") == math.inf
        assert run("x := 0.0\nreturn -1.0 / x") == -math.inf
        assert math.isnan(run("x := 0.0\nreturn x / x"))

    def test_string_operations(self):
        assert run('s := "ab"\ns += "c"\nreturn s + "!"') == "abc!"
        assert run('return "abc" < "abd"') is True

    def test_variables_and_defaults(self):
        header = "var A int = 0\nvar B float = 10.5"
        assert run("return float(A) + B", header) == 10.5
        assert run("return float(A) + B", header, {"A": 9}) == 19.5

    def test_loop_with_break_and_continue(self):
        body = """
            total := 0
            i := 0
            for {
                i++
                if i > 10 {
                    break
                }
                if i % 2 == 0 {
                    continue
                }
                total += i
            }
            return total
        """
        assert run(body) == 25

    def test_conditional_loop(self):
        assert run("i := 0\nfor i < 5 { i += 2 }\nreturn i") == 6

    def test_closure_captures_scope(self):
        body = """
            n := 0
            inc := func() int { n++; return n }
            inc()
            inc()
            return inc()
        """
        assert run(body) == 3

    def test_recursive_let_function(self):
        header = "let Fact = func(n int) int { if n <= 1 { return 1 }; return n * Fact(n - 1) }"
        assert run("return Fact(10)", header) == 3628800

    def test_short_circuit(self):
        header = "var Zero int = 0"
        assert run("return Zero != 0 && 10 / Zero > 1", header) is False

    def test_conversions(self):
        assert run("return int(3.9)") == 3
        assert run("return int(-3.9)") == -3
        assert run("return string(true)") == "true"
        assert run('return float("2.5")') == 2.5
        assert run("return bool(0)") is False

    def test_conversion_failure(self):
        with pytest.raises(RuntimeFault, match='Error calling int: cannot convert "x" to int'):
            run('return int("x")')

    def test_fresh_state_per_run(self):
        checked = compile_source(program("Count++\nreturn Count", "var Count int = 0"))
        interpreter = Interpreter(checked)
        assert interpreter.run() == 1
        assert interpreter.run() == 1

    def test_step_budget(self):
        with pytest.raises(BudgetExceeded, match="step budget of 1000 exhausted"):
            run("i := 0\nfor { i++ }\nreturn i", max_steps=1000)

    def test_deadline(self):
        with pytest.raises(BudgetExceeded, match="exceeded"):
            run("i := 0\nfor { i++ }\nreturn i", timeout=0.05)

    def test_int_overflow_wraps(self):
        assert run("x := 9223372036854775807\nreturn x + 1") == -9223372036854775808
        assert run("x := 4294967296\nreturn x * x") == 0
        assert run("x := -9223372036854775808\nreturn -x") == -9223372036854775808
        assert run("x := -9223372036854775808\nreturn x / -1") == -9223372036854775808
        assert run("x := -9223372036854775808\nx--\nreturn x") == 9223372036854775807

    def test_float_arithmetic_not_wrapped(self):
        assert run("return 1.0e300 * 1.0e300") == math.inf

    def test_cancel_stops_run(self):
        interpreter = Interpreter(compile_source(program("i := 0\nfor { i++ }\nreturn i")))
        interpreter.cancel()
        with pytest.raises(BudgetExceeded):
            interpreter.run()

    def test_call_depth(self):
        header = "let Loop = func(n int) int { return Loop(n + 1) }"
        with pytest.raises(RuntimeFault, match="maximum call depth of 20 exceeded in Loop"):
            run("return Loop(0)", header, max_call_depth=20)

    def test_fault_position(self):
        with pytest.raises(RuntimeFault) as exc:
            run("x := 0\nreturn 1 / x")
        assert exc.value.line == 4
