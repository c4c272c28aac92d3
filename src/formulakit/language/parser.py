"""Parser for the formula language.

Converts a stream of tokens into an Abstract Syntax Tree (AST).
Uses recursive descent parsing with operator precedence.

Operator Precedence (lowest to highest):
1. ||
2. &&
3. == != < <= > >=
4. + -
5. * / %
6. ! - (unary)
7. () (function call) . (package member)

A program is a sequence of top-level items:

    import "math"
    var Rate float = 0.5
    let Double = func(x float) float { return x * 2 }
    func __formula__() { return Double(Rate) }
    emit __formula__()
"""

from dataclasses import dataclass, field
from typing import Any

from formulakit.language.lexer import Lexer, Token, TokenType


# -----------------------------------------------------------------------------
# AST Node Types
# -----------------------------------------------------------------------------


@dataclass
class ASTNode:
    """Base class for AST nodes."""

    line: int = field(default=0, kw_only=True, compare=False, repr=False)
    column: int = field(default=0, kw_only=True, compare=False, repr=False)


@dataclass
class Literal(ASTNode):
    """A literal value (int, float, string, boolean)."""
    value: Any


@dataclass
class Identifier(ASTNode):
    """A variable or function reference."""
    name: str


@dataclass
class BinaryOp(ASTNode):
    """Binary operation (e.g., a + b, x == y)."""
    operator: str
    left: ASTNode
    right: ASTNode


@dataclass
class UnaryOp(ASTNode):
    """Unary operation (e.g., !x, -y)."""
    operator: str
    operand: ASTNode


@dataclass
class FunctionCall(ASTNode):
    """Function call (e.g., IF(a, b, c), math.sqrt(x))."""
    name: str
    arguments: list[ASTNode]
    package: str | None = None


@dataclass
class Parameter(ASTNode):
    """A typed function parameter."""
    name: str
    type_name: str


@dataclass
class Block(ASTNode):
    """A braced list of statements."""
    statements: list[ASTNode]


@dataclass
class FunctionLiteral(ASTNode):
    """An anonymous function (e.g., func(a, b int) int { return a + b })."""
    parameters: list[Parameter]
    return_type: str | None
    body: Block


@dataclass
class VarDeclaration(ASTNode):
    """Variable declaration (``var x int = 1`` or ``x := 1``)."""
    name: str
    type_name: str | None
    value: ASTNode | None


@dataclass
class LetDeclaration(ASTNode):
    """Immutable top-level binding (``let Name = func(...) ...``)."""
    name: str
    value: ASTNode


@dataclass
class FunctionDeclaration(ASTNode):
    """Named top-level function; its result type may be inferred."""
    name: str
    function: FunctionLiteral


@dataclass
class ImportDeclaration(ASTNode):
    """Package import (``import "strings"``)."""
    package: str


@dataclass
class Assignment(ASTNode):
    """Assignment to an existing variable (=, +=, -=, *=, /=)."""
    name: str
    operator: str
    value: ASTNode


@dataclass
class IncDec(ASTNode):
    """Increment or decrement statement (x++, x--)."""
    name: str
    operator: str


@dataclass
class IfStatement(ASTNode):
    """Conditional with optional else branch (a Block or another IfStatement)."""
    condition: ASTNode
    then_block: Block
    else_branch: ASTNode | None = None


@dataclass
class ForStatement(ASTNode):
    """Loop while condition holds; no condition loops until break/return."""
    condition: ASTNode | None
    body: Block


@dataclass
class BreakStatement(ASTNode):
    pass


@dataclass
class ContinueStatement(ASTNode):
    pass


@dataclass
class ReturnStatement(ASTNode):
    value: ASTNode | None = None


@dataclass
class ExpressionStatement(ASTNode):
    expression: ASTNode


@dataclass
class EmitStatement(ASTNode):
    """Hands a value to the result encoder; the program's single output."""
    value: ASTNode


@dataclass
class Program(ASTNode):
    """Root of a parsed program."""
    items: list[ASTNode]


# -----------------------------------------------------------------------------
# Parser
# -----------------------------------------------------------------------------


class ParseError(Exception):
    """Raised when the token stream does not form a valid program."""

    def __init__(self, message: str, token: Token):
        self.message = message
        self.token = token
        self.line = token.line
        self.column = token.column
        super().__init__(f"{message} at line {token.line}, column {token.column}")


_COMPARISON_OPS = {
    TokenType.EQ: "==",
    TokenType.NEQ: "!=",
    TokenType.LT: "<",
    TokenType.LTE: "<=",
    TokenType.GT: ">",
    TokenType.GTE: ">=",
}

_ASSIGN_OPS = {
    TokenType.ASSIGN: "=",
    TokenType.PLUS_ASSIGN: "+=",
    TokenType.MINUS_ASSIGN: "-=",
    TokenType.MULTIPLY_ASSIGN: "*=",
    TokenType.DIVIDE_ASSIGN: "/=",
}

_TERMINATORS = (TokenType.NEWLINE, TokenType.SEMICOLON)


class Parser:
    """Recursive descent parser for the formula language.

    Usage:
        parser = Parser(program_text)
        program = parser.parse_program()

        # or, for a single expression
        ast = Parser('a + b * 2').parse_expression()
    """

    def __init__(self, source: str):
        self.source = source
        self.lexer = Lexer(source)
        self.tokens = self.lexer.tokenize()
        self.position = 0

    def parse_program(self) -> Program:
        """Parse a whole program and return its root node."""
        items: list[ASTNode] = []
        self._skip_terminators()

        while not self._is_at_end():
            items.append(self._parse_top_level())
            self._end_statement()
            self._skip_terminators()

        return Program(items, line=1, column=1)

    def parse_expression(self) -> ASTNode:
        """Parse a single expression and return the AST root."""
        self._skip_terminators()
        if self._is_at_end():
            raise ParseError("Empty expression", self._current())

        ast = self._parse_or()
        self._skip_terminators()

        if not self._is_at_end():
            raise ParseError(
                f"Unexpected token '{self._current().value}'",
                self._current(),
            )

        return ast

    # -------------------------------------------------------------------------
    # Helper methods
    # -------------------------------------------------------------------------

    def _current(self) -> Token:
        """Get current token."""
        if self.position >= len(self.tokens):
            return self.tokens[-1]
        return self.tokens[self.position]

    def _peek(self, offset: int = 0) -> Token:
        """Peek at a token without consuming it."""
        pos = self.position + offset
        if pos >= len(self.tokens):
            return self.tokens[-1]
        return self.tokens[pos]

    def _is_at_end(self) -> bool:
        """Check if we've consumed all tokens."""
        return self._current().type == TokenType.EOF

    def _advance(self) -> Token:
        """Consume and return current token."""
        token = self._current()
        self.position += 1
        return token

    def _match(self, *types: TokenType) -> bool:
        """Check if current token matches any of the given types."""
        return self._current().type in types

    def _consume(self, token_type: TokenType, message: str) -> Token:
        """Consume a token of the expected type, or raise error."""
        if self._current().type == token_type:
            return self._advance()
        raise ParseError(message, self._current())

    def _skip_terminators(self) -> None:
        while self._match(*_TERMINATORS):
            self._advance()

    def _end_statement(self) -> None:
        """A statement ends at a terminator, a closing brace or end of input."""
        if self._match(*_TERMINATORS):
            self._advance()
            return
        if self._match(TokenType.RBRACE, TokenType.EOF):
            return
        raise ParseError(
            f"Unexpected token '{self._current().value}' after statement",
            self._current(),
        )

    @staticmethod
    def _at(token: Token) -> dict[str, int]:
        return {"line": token.line, "column": token.column}

    # -------------------------------------------------------------------------
    # Top level
    # -------------------------------------------------------------------------

    def _parse_top_level(self) -> ASTNode:
        token = self._current()

        if token.type == TokenType.IMPORT:
            self._advance()
            name = self._consume(TokenType.STRING, "Expected package name after 'import'")
            return ImportDeclaration(str(name.value), **self._at(token))

        if token.type == TokenType.VAR:
            return self._parse_var_declaration()

        if token.type == TokenType.LET:
            self._advance()
            name = self._consume(TokenType.IDENTIFIER, "Expected name after 'let'")
            self._consume(TokenType.ASSIGN, "Expected '=' after name")
            return LetDeclaration(str(name.value), self._parse_or(), **self._at(token))

        if token.type == TokenType.FUNC and self._peek(1).type == TokenType.IDENTIFIER:
            self._advance()
            name = self._advance()
            function = self._parse_function_rest(token)
            return FunctionDeclaration(str(name.value), function, **self._at(token))

        if token.type == TokenType.EMIT:
            self._advance()
            return EmitStatement(self._parse_or(), **self._at(token))

        raise ParseError(f"Unexpected token '{token.value}' at top level", token)

    # -------------------------------------------------------------------------
    # Statements
    # -------------------------------------------------------------------------

    def _parse_statements(self, until: TokenType) -> list[ASTNode]:
        statements: list[ASTNode] = []
        self._skip_terminators()
        while not self._match(until, TokenType.EOF):
            statements.append(self._parse_statement())
            self._end_statement()
            self._skip_terminators()
        if until != TokenType.EOF and self._is_at_end():
            raise ParseError("Expected '}' before end of input", self._current())
        return statements

    def _parse_block(self) -> Block:
        start = self._consume(TokenType.LBRACE, "Expected '{'")
        statements = self._parse_statements(until=TokenType.RBRACE)
        self._consume(TokenType.RBRACE, "Expected '}' after block")
        return Block(statements, **self._at(start))

    def _parse_statement(self) -> ASTNode:
        token = self._current()

        if token.type == TokenType.VAR:
            return self._parse_var_declaration()

        if token.type == TokenType.IF:
            return self._parse_if()

        if token.type == TokenType.FOR:
            self._advance()
            condition = None if self._match(TokenType.LBRACE) else self._parse_or()
            return ForStatement(condition, self._parse_block(), **self._at(token))

        if token.type == TokenType.BREAK:
            self._advance()
            return BreakStatement(**self._at(token))

        if token.type == TokenType.CONTINUE:
            self._advance()
            return ContinueStatement(**self._at(token))

        if token.type == TokenType.RETURN:
            self._advance()
            if self._match(*_TERMINATORS, TokenType.RBRACE, TokenType.EOF):
                return ReturnStatement(None, **self._at(token))
            return ReturnStatement(self._parse_or(), **self._at(token))

        if token.type == TokenType.LBRACE:
            return self._parse_block()

        if token.type == TokenType.IDENTIFIER:
            following = self._peek(1).type
            if following == TokenType.DECLARE:
                self._advance()
                self._advance()
                return VarDeclaration(str(token.value), None, self._parse_or(), **self._at(token))
            if following in _ASSIGN_OPS:
                self._advance()
                op = _ASSIGN_OPS[self._advance().type]
                return Assignment(str(token.value), op, self._parse_or(), **self._at(token))
            if following in (TokenType.INCREMENT, TokenType.DECREMENT):
                self._advance()
                op = "++" if self._advance().type == TokenType.INCREMENT else "--"
                return IncDec(str(token.value), op, **self._at(token))

        return ExpressionStatement(self._parse_or(), **self._at(token))

    def _parse_var_declaration(self) -> VarDeclaration:
        start = self._consume(TokenType.VAR, "Expected 'var'")
        name = self._consume(TokenType.IDENTIFIER, "Expected variable name after 'var'")

        type_name = None
        if self._match(TokenType.IDENTIFIER):
            type_name = str(self._advance().value)

        value = None
        if self._match(TokenType.ASSIGN):
            self._advance()
            value = self._parse_or()

        if type_name is None and value is None:
            raise ParseError(
                f"Variable '{name.value}' needs a type or an initial value", self._current()
            )

        return VarDeclaration(str(name.value), type_name, value, **self._at(start))

    def _parse_if(self) -> IfStatement:
        start = self._consume(TokenType.IF, "Expected 'if'")
        condition = self._parse_or()
        then_block = self._parse_block()

        else_branch: ASTNode | None = None
        if self._match(TokenType.ELSE):
            self._advance()
            if self._match(TokenType.IF):
                else_branch = self._parse_if()
            else:
                else_branch = self._parse_block()

        return IfStatement(condition, then_block, else_branch, **self._at(start))

    # -------------------------------------------------------------------------
    # Expressions (in order of precedence, lowest to highest)
    # -------------------------------------------------------------------------

    def _parse_or(self) -> ASTNode:
        """Parse OR expression (lowest precedence)."""
        left = self._parse_and()

        while self._match(TokenType.OR):
            op_token = self._advance()
            right = self._parse_and()
            left = BinaryOp("||", left, right, **self._at(op_token))

        return left

    def _parse_and(self) -> ASTNode:
        """Parse AND expression."""
        left = self._parse_comparison()

        while self._match(TokenType.AND):
            op_token = self._advance()
            right = self._parse_comparison()
            left = BinaryOp("&&", left, right, **self._at(op_token))

        return left

    def _parse_comparison(self) -> ASTNode:
        """Parse comparison expression (==, !=, <, <=, >, >=)."""
        left = self._parse_additive()

        while self._current().type in _COMPARISON_OPS:
            op_token = self._advance()
            right = self._parse_additive()
            left = BinaryOp(_COMPARISON_OPS[op_token.type], left, right, **self._at(op_token))

        return left

    def _parse_additive(self) -> ASTNode:
        """Parse additive expression (+, -)."""
        left = self._parse_multiplicative()

        while self._match(TokenType.PLUS, TokenType.MINUS):
            op_token = self._advance()
            op = "+" if op_token.type == TokenType.PLUS else "-"
            right = self._parse_multiplicative()
            left = BinaryOp(op, left, right, **self._at(op_token))

        return left

    def _parse_multiplicative(self) -> ASTNode:
        """Parse multiplicative expression (*, /, %)."""
        left = self._parse_unary()

        while self._match(TokenType.MULTIPLY, TokenType.DIVIDE, TokenType.MODULO):
            op_token = self._advance()
            if op_token.type == TokenType.MULTIPLY:
                op = "*"
            elif op_token.type == TokenType.DIVIDE:
                op = "/"
            else:
                op = "%"
            right = self._parse_unary()
            left = BinaryOp(op, left, right, **self._at(op_token))

        return left

    def _parse_unary(self) -> ASTNode:
        """Parse unary expression (!, -)."""
        if self._match(TokenType.NOT):
            op_token = self._advance()
            operand = self._parse_unary()
            return UnaryOp("!", operand, **self._at(op_token))

        if self._match(TokenType.MINUS):
            op_token = self._advance()
            operand = self._parse_unary()
            return UnaryOp("-", operand, **self._at(op_token))

        return self._parse_primary()

    def _parse_primary(self) -> ASTNode:
        """Parse primary expression (literals, identifiers, calls, grouped expressions)."""
        token = self._current()

        # Literals
        if token.type in (TokenType.INT, TokenType.FLOAT, TokenType.STRING, TokenType.BOOLEAN):
            self._advance()
            return Literal(token.value, **self._at(token))

        # Identifier, function call or package member call
        if token.type == TokenType.IDENTIFIER:
            self._advance()
            if self._match(TokenType.DOT):
                self._advance()
                member = self._consume(TokenType.IDENTIFIER, "Expected identifier after '.'")
                if not self._match(TokenType.LPAREN):
                    raise ParseError(
                        f"Expected '(' after '{token.value}.{member.value}'", self._current()
                    )
                return self._parse_function_call(str(member.value), token, package=str(token.value))
            if self._match(TokenType.LPAREN):
                return self._parse_function_call(str(token.value), token)
            return Identifier(str(token.value), **self._at(token))

        # Function literal
        if token.type == TokenType.FUNC:
            self._advance()
            return self._parse_function_rest(token)

        # Grouped expression
        if token.type == TokenType.LPAREN:
            self._advance()
            expr = self._parse_or()
            self._consume(TokenType.RPAREN, "Expected ')' after expression")
            return expr

        raise ParseError(f"Unexpected token '{token.value}'", token)

    def _parse_function_call(
        self, name: str, start: Token, package: str | None = None
    ) -> FunctionCall:
        """Parse a function call (arguments in parentheses)."""
        self._consume(TokenType.LPAREN, "Expected '(' after function name")

        arguments: list[ASTNode] = []

        if not self._match(TokenType.RPAREN):
            arguments.append(self._parse_or())

            while self._match(TokenType.COMMA):
                self._advance()
                if self._match(TokenType.RPAREN):
                    break
                arguments.append(self._parse_or())

        self._consume(TokenType.RPAREN, "Expected ')' after arguments")

        return FunctionCall(name, arguments, package, **self._at(start))

    def _parse_function_rest(self, start: Token) -> FunctionLiteral:
        """Parse parameters, optional result type and body after 'func' [name]."""
        self._consume(TokenType.LPAREN, "Expected '(' after 'func'")

        parameters: list[Parameter] = []
        pending: list[Token] = []

        while not self._match(TokenType.RPAREN):
            name = self._consume(TokenType.IDENTIFIER, "Expected parameter name")
            pending.append(name)
            if self._match(TokenType.IDENTIFIER):
                # "a, b int" gives both a and b the type int
                type_name = str(self._advance().value)
                parameters.extend(
                    Parameter(str(p.value), type_name, **self._at(p)) for p in pending
                )
                pending = []
            if self._match(TokenType.COMMA):
                self._advance()
            elif not self._match(TokenType.RPAREN):
                raise ParseError("Expected ',' or ')' in parameter list", self._current())

        if pending:
            raise ParseError(f"Missing type for parameter '{pending[-1].value}'", pending[-1])

        self._consume(TokenType.RPAREN, "Expected ')' after parameters")

        return_type = None
        if self._match(TokenType.IDENTIFIER):
            return_type = str(self._advance().value)

        return FunctionLiteral(parameters, return_type, self._parse_block(), **self._at(start))


def parse(source: str) -> ASTNode:
    """Convenience function to parse an expression string.

    Args:
        source: The expression string

    Returns:
        The AST root node
    """
    return Parser(source).parse_expression()


def parse_program(source: str) -> Program:
    """Convenience function to parse a whole program."""
    return Parser(source).parse_program()
