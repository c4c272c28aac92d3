"""Formula language for formulakit.

This package provides:
- Lexer: Tokenizes program text
- Parser: Produces an AST from tokens
- TypeChecker: Resolves names and types, reports diagnostics
- Interpreter: Runs a checked program against variable values
- PackageRegistry: Typed builtin packages (strings, math, fmt, rand)
"""

import threading

from formulakit.language.builtins import register_all_builtins
from formulakit.language.checker import (
    CheckedProgram,
    CompileError,
    Diagnostic,
    FunctionType,
    GlobalVariable,
    TypeChecker,
)
from formulakit.language.interpreter import (
    BudgetExceeded,
    Closure,
    Environment,
    Interpreter,
    RuntimeFault,
)
from formulakit.language.lexer import Lexer, LexerError, Token, TokenType
from formulakit.language.packages import (
    FunctionCategory,
    FunctionDefinition,
    FunctionParameter,
    PackageRegistry,
)
from formulakit.language.parser import (
    ASTNode,
    BinaryOp,
    Block,
    FunctionCall,
    FunctionLiteral,
    Identifier,
    Literal,
    ParseError,
    Parser,
    Program,
    UnaryOp,
    parse,
    parse_program,
)


_builtins_lock = threading.Lock()


def ensure_builtins() -> None:
    """Register the builtin packages once, even when called from many threads."""
    with _builtins_lock:
        if PackageRegistry.is_empty():
            register_all_builtins()


def compile_source(source: str) -> CheckedProgram:
    """Parse and type-check program text.

    Registers the builtin packages first if nothing is registered yet.

    Args:
        source: Complete program text

    Returns:
        The checked program, ready for an Interpreter

    Raises:
        CompileError: With one diagnostic per problem found
    """
    ensure_builtins()

    try:
        program = parse_program(source)
        return TypeChecker().check(program)
    except (LexerError, ParseError) as e:
        raise CompileError([Diagnostic(e.line, e.column, e.message)]) from e
    except RecursionError as e:
        raise CompileError([Diagnostic(1, 1, "expression nesting too deep")]) from e


__all__ = [
    # Compilation
    "compile_source",
    "ensure_builtins",
    "CheckedProgram",
    "CompileError",
    "Diagnostic",
    "FunctionType",
    "GlobalVariable",
    "TypeChecker",
    # Interpreter
    "BudgetExceeded",
    "Closure",
    "Environment",
    "Interpreter",
    "RuntimeFault",
    # Lexer
    "Lexer",
    "LexerError",
    "Token",
    "TokenType",
    # Packages
    "FunctionCategory",
    "FunctionDefinition",
    "FunctionParameter",
    "PackageRegistry",
    "register_all_builtins",
    # Parser
    "ASTNode",
    "BinaryOp",
    "Block",
    "FunctionCall",
    "FunctionLiteral",
    "Identifier",
    "Literal",
    "ParseError",
    "Parser",
    "Program",
    "UnaryOp",
    "parse",
    "parse_program",
]
