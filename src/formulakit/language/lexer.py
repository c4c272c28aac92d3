"""Lexer/tokenizer for the formula language.

Converts program text into a stream of tokens for the parser.

Token types:
- Literals: INT, FLOAT, STRING, BOOLEAN
- Identifiers and keywords (var, let, func, if, else, for, ...)
- Operators: comparison, logical, arithmetic, assignment
- Punctuation: LPAREN, RPAREN, LBRACE, RBRACE, COMMA, DOT, SEMICOLON
- NEWLINE: statement terminator, emitted only after a token that can end a
  statement and never directly inside parentheses
"""

import re
from dataclasses import dataclass
from enum import Enum, auto
from typing import Iterator


class TokenType(Enum):
    """Types of tokens in the formula language."""

    # Literals
    INT = auto()
    FLOAT = auto()
    STRING = auto()
    BOOLEAN = auto()

    # Identifiers
    IDENTIFIER = auto()

    # Keywords
    VAR = auto()
    LET = auto()
    FUNC = auto()
    IF = auto()
    ELSE = auto()
    FOR = auto()
    BREAK = auto()
    CONTINUE = auto()
    RETURN = auto()
    EMIT = auto()
    IMPORT = auto()

    # Comparison operators
    EQ = auto()          # ==
    NEQ = auto()         # !=
    LT = auto()          # <
    LTE = auto()         # <=
    GT = auto()          # >
    GTE = auto()         # >=

    # Logical operators
    AND = auto()         # &&
    OR = auto()          # ||
    NOT = auto()         # !

    # Arithmetic operators
    PLUS = auto()        # +
    MINUS = auto()       # -
    MULTIPLY = auto()    # *
    DIVIDE = auto()      # /
    MODULO = auto()      # %

    # Assignment
    ASSIGN = auto()      # =
    DECLARE = auto()     # :=
    PLUS_ASSIGN = auto()
    MINUS_ASSIGN = auto()
    MULTIPLY_ASSIGN = auto()
    DIVIDE_ASSIGN = auto()
    INCREMENT = auto()   # ++
    DECREMENT = auto()   # --

    # Punctuation
    LPAREN = auto()      # (
    RPAREN = auto()      # )
    LBRACE = auto()      # {
    RBRACE = auto()      # }
    COMMA = auto()       # ,
    DOT = auto()         # .
    SEMICOLON = auto()   # ;
    NEWLINE = auto()

    # End of input
    EOF = auto()


@dataclass(frozen=True)
class Token:
    """One lexeme of formula source.

    ``value`` holds the decoded literal (int, float, unescaped string, bool)
    or the identifier text; ``position`` is the offset into the source and
    ``line``/``column`` are 1-based for diagnostics.
    """

    type: TokenType
    value: str | int | float | bool | None
    position: int
    line: int = 1
    column: int = 1

    def __repr__(self) -> str:
        return f"Token({self.type.name}, {self.value!r}, line={self.line}, col={self.column})"


class LexerError(Exception):
    """Raised for characters or literals that cannot start a token."""

    def __init__(self, message: str, position: int, line: int = 1, column: int = 1):
        self.message = message
        self.position = position
        self.line = line
        self.column = column
        super().__init__(f"{message} at line {line}, column {column}")


# Tried in order; two-character operators precede their one-character prefixes.
TOKEN_PATTERNS = [
    # Whitespace and comments (skip)
    (r"[ \t\r]+", None),
    (r"//[^\n]*", None),
    (r"\n", TokenType.NEWLINE),

    # Two-character operators
    (r"==", TokenType.EQ),
    (r"!=", TokenType.NEQ),
    (r"<=", TokenType.LTE),
    (r">=", TokenType.GTE),
    (r"&&", TokenType.AND),
    (r"\|\|", TokenType.OR),
    (r":=", TokenType.DECLARE),
    (r"\+\+", TokenType.INCREMENT),
    (r"--", TokenType.DECREMENT),
    (r"\+=", TokenType.PLUS_ASSIGN),
    (r"-=", TokenType.MINUS_ASSIGN),
    (r"\*=", TokenType.MULTIPLY_ASSIGN),
    (r"/=", TokenType.DIVIDE_ASSIGN),

    # Single character operators
    (r"<", TokenType.LT),
    (r">", TokenType.GT),
    (r"!", TokenType.NOT),
    (r"\+", TokenType.PLUS),
    (r"-", TokenType.MINUS),
    (r"\*", TokenType.MULTIPLY),
    (r"/", TokenType.DIVIDE),
    (r"%", TokenType.MODULO),
    (r"=", TokenType.ASSIGN),

    # Punctuation
    (r"\(", TokenType.LPAREN),
    (r"\)", TokenType.RPAREN),
    (r"\{", TokenType.LBRACE),
    (r"\}", TokenType.RBRACE),
    (r",", TokenType.COMMA),
    (r"\.", TokenType.DOT),
    (r";", TokenType.SEMICOLON),

    # Numbers (float before integer)
    (r"\d+\.\d+(?:[eE][+-]?\d+)?", TokenType.FLOAT),
    (r"\d+[eE][+-]?\d+", TokenType.FLOAT),
    (r"\d+", TokenType.INT),

    # Strings (double quoted)
    (r'"([^"\\\n]|\\.)*"', TokenType.STRING),

    # Keywords and identifiers (must come after operators)
    (r"[a-zA-Z_][a-zA-Z0-9_]*", TokenType.IDENTIFIER),
]

# Keywords are case-sensitive: IF, OR and NOT stay available as identifiers
KEYWORDS = {
    "true": (TokenType.BOOLEAN, True),
    "false": (TokenType.BOOLEAN, False),
    "var": (TokenType.VAR, "var"),
    "let": (TokenType.LET, "let"),
    "func": (TokenType.FUNC, "func"),
    "if": (TokenType.IF, "if"),
    "else": (TokenType.ELSE, "else"),
    "for": (TokenType.FOR, "for"),
    "break": (TokenType.BREAK, "break"),
    "continue": (TokenType.CONTINUE, "continue"),
    "return": (TokenType.RETURN, "return"),
    "emit": (TokenType.EMIT, "emit"),
    "import": (TokenType.IMPORT, "import"),
}

# A newline after one of these ends the statement
STATEMENT_ENDERS = frozenset(
    {
        TokenType.INT,
        TokenType.FLOAT,
        TokenType.STRING,
        TokenType.BOOLEAN,
        TokenType.IDENTIFIER,
        TokenType.RPAREN,
        TokenType.RBRACE,
        TokenType.INCREMENT,
        TokenType.DECREMENT,
        TokenType.BREAK,
        TokenType.CONTINUE,
        TokenType.RETURN,
    }
)

_ESCAPES = {
    "n": "\n",
    "t": "\t",
    "r": "\r",
    "\\": "\\",
    '"': '"',
}


class Lexer:
    """Tokenizer for the formula language.

    Usage:
        lexer = Lexer('total := price * 2')
        for token in lexer:
            print(token)
    """

    def __init__(self, source: str):
        self.source = source
        self.position = 0
        self.line = 1
        self.column = 1
        self._last_type: TokenType | None = None
        self._brackets: list[TokenType] = []
        self._compiled_patterns = [
            (re.compile(pattern), token_type)
            for pattern, token_type in TOKEN_PATTERNS
        ]

    def __iter__(self) -> Iterator[Token]:
        """Iterate over all tokens in the source."""
        while True:
            token = self.next_token()
            yield token
            if token.type == TokenType.EOF:
                break

    def next_token(self) -> Token:
        """Get the next token from the source."""
        while True:
            if self.position >= len(self.source):
                return Token(TokenType.EOF, None, self.position, self.line, self.column)

            token = self._scan()
            if token is None:
                continue

            self._track_brackets(token.type)
            self._last_type = token.type
            return token

    def _scan(self) -> Token | None:
        """Scan one lexeme; None means it was skipped."""
        for pattern, token_type in self._compiled_patterns:
            match = pattern.match(self.source, self.position)
            if not match:
                continue

            value = match.group()
            start_pos = self.position
            start_line = self.line
            start_column = self.column

            self._advance(len(value))

            if token_type is None:
                return None

            if token_type == TokenType.NEWLINE:
                if self._newline_ends_statement():
                    return Token(TokenType.NEWLINE, "\n", start_pos, start_line, start_column)
                return None

            token_value: str | int | float | bool | None = value

            if token_type == TokenType.INT:
                token_value = int(value)
            elif token_type == TokenType.FLOAT:
                token_value = float(value)
            elif token_type == TokenType.STRING:
                token_value = self._unescape_string(value[1:-1], start_pos, start_line, start_column)
            elif token_type == TokenType.IDENTIFIER and value in KEYWORDS:
                keyword_type, keyword_value = KEYWORDS[value]
                return Token(keyword_type, keyword_value, start_pos, start_line, start_column)

            return Token(token_type, token_value, start_pos, start_line, start_column)

        char = self.source[self.position]
        if char == '"':
            raise LexerError("Unterminated string literal", self.position, self.line, self.column)
        raise LexerError(
            f"Unexpected character '{char}'",
            self.position,
            self.line,
            self.column,
        )

    def _newline_ends_statement(self) -> bool:
        if self._brackets and self._brackets[-1] == TokenType.LPAREN:
            return False
        return self._last_type in STATEMENT_ENDERS

    def _track_brackets(self, token_type: TokenType) -> None:
        if token_type in (TokenType.LPAREN, TokenType.LBRACE):
            self._brackets.append(token_type)
        elif token_type in (TokenType.RPAREN, TokenType.RBRACE) and self._brackets:
            self._brackets.pop()

    def _advance(self, count: int) -> None:
        """Advance position by count characters, updating line/column."""
        for _ in range(count):
            if self.position < len(self.source):
                if self.source[self.position] == "\n":
                    self.line += 1
                    self.column = 1
                else:
                    self.column += 1
                self.position += 1

    def _unescape_string(self, s: str, position: int, line: int, column: int) -> str:
        """Process escape sequences in a string."""
        result = []
        i = 0
        while i < len(s):
            if s[i] == "\\" and i + 1 < len(s):
                next_char = s[i + 1]
                if next_char in _ESCAPES:
                    result.append(_ESCAPES[next_char])
                    i += 2
                elif next_char == "u":
                    digits = s[i + 2:i + 6]
                    if len(digits) != 4 or not re.fullmatch(r"[0-9a-fA-F]{4}", digits):
                        raise LexerError("Invalid unicode escape", position, line, column)
                    result.append(chr(int(digits, 16)))
                    i += 6
                else:
                    raise LexerError(
                        f"Unknown escape sequence '\\{next_char}'", position, line, column
                    )
            else:
                result.append(s[i])
                i += 1
        return "".join(result)

    def tokenize(self) -> list[Token]:
        """Tokenize the entire source and return list of tokens."""
        return list(self)
