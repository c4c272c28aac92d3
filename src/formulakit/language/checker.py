"""Static type checker for the formula language.

Walks a parsed Program, resolves every name, infers expression types and
reports problems as diagnostics with line/column positions. A program that
checks cleanly is guaranteed to only fail at runtime for value-dependent
reasons (division by zero, bad conversions, exhausted budgets).

Typing rules:
- Types are int, float, string, bool and function types.
- No implicit conversions, except that an integer constant may be used
  where a float is expected (it is converted in place).
- Top-level variables are initialized with a literal of their exact type.
- Conditions must be bool; every path of a function with a result returns.
- The formula function (a named top-level func without a result type) has
  its result type inferred from its return statements.
"""

from dataclasses import dataclass, field
from typing import Any, Union

from formulakit.language.packages import UNIVERSE, FunctionDefinition, PackageRegistry
from formulakit.language.parser import (
    Assignment,
    ASTNode,
    BinaryOp,
    Block,
    BreakStatement,
    ContinueStatement,
    EmitStatement,
    ExpressionStatement,
    ForStatement,
    FunctionCall,
    FunctionDeclaration,
    FunctionLiteral,
    Identifier,
    IfStatement,
    ImportDeclaration,
    IncDec,
    LetDeclaration,
    Literal,
    Program,
    ReturnStatement,
    UnaryOp,
    VarDeclaration,
)
from formulakit.types import TypeTag, type_of_value


@dataclass(frozen=True)
class FunctionType:
    """Type of a user function value."""

    parameters: tuple[TypeTag, ...]
    result: TypeTag | None

    def __str__(self) -> str:
        params = ", ".join(p.value for p in self.parameters)
        result = f" {self.result.value}" if self.result else ""
        return f"func({params}){result}"


ValueType = Union[TypeTag, FunctionType]


class _Invalid:
    """Type of an expression that already produced a diagnostic."""

    def __repr__(self) -> str:
        return "INVALID"


INVALID = _Invalid()

_NUMERIC = (TypeTag.INT, TypeTag.FLOAT)
_ORDERED = (TypeTag.INT, TypeTag.FLOAT, TypeTag.STRING)

# Wrapper the assembler puts around the formula body
FORMULA_FUNCTION = "__formula__"


def _display_name(name: str) -> str:
    return "formula" if name == FORMULA_FUNCTION else name


@dataclass(frozen=True)
class Diagnostic:
    """A single compiler message."""

    line: int
    column: int
    message: str

    def __str__(self) -> str:
        return f"{self.line}:{self.column}: {self.message}"


class CompileError(Exception):
    """The program text could not be compiled.

    Attributes:
        diagnostics: Every problem found, in source order
    """

    def __init__(self, diagnostics: list[Diagnostic]):
        self.diagnostics = diagnostics
        super().__init__("\n".join(str(d) for d in diagnostics))


@dataclass(frozen=True)
class GlobalVariable:
    """A checked top-level variable and its literal initial value."""

    name: str
    type: TypeTag
    default: Any


@dataclass
class CheckedProgram:
    """Result of a successful check.

    Attributes:
        program: The AST, with integer constants in float context converted
        result_type: Type of the emitted value
        variables: Top-level variables in declaration order
        functions: Names of top-level functions in declaration order
        imports: Imported package names
    """

    program: Program
    result_type: TypeTag
    variables: dict[str, GlobalVariable] = field(default_factory=dict)
    functions: list[str] = field(default_factory=list)
    imports: list[str] = field(default_factory=list)


@dataclass
class _Symbol:
    type: ValueType
    mutable: bool = True


class _Scope:
    def __init__(self, parent: "_Scope | None" = None):
        self.parent = parent
        self.symbols: dict[str, _Symbol] = {}

    def lookup(self, name: str) -> _Symbol | None:
        scope: _Scope | None = self
        while scope is not None:
            if name in scope.symbols:
                return scope.symbols[name]
            scope = scope.parent
        return None


@dataclass
class _FunctionContext:
    result: TypeTag | None
    infer: bool = False
    returns: list[TypeTag] = field(default_factory=list)
    invalid_return: bool = False


def _type_name(value_type: ValueType | None) -> str:
    if value_type is None:
        return "no value"
    if isinstance(value_type, TypeTag):
        return value_type.value
    return str(value_type)


def _is_int_constant(node: ASTNode) -> bool:
    if isinstance(node, Literal):
        return type_of_value(node.value) is TypeTag.INT
    if isinstance(node, UnaryOp) and node.operator == "-":
        return _is_int_constant(node.operand)
    return False


def _convert_to_float(node: ASTNode) -> None:
    if isinstance(node, Literal):
        node.value = float(node.value)
    elif isinstance(node, UnaryOp):
        _convert_to_float(node.operand)


class TypeChecker:
    """Checks a Program and collects diagnostics.

    Usage:
        checked = TypeChecker().check(parse_program(source))
    """

    def __init__(self) -> None:
        self.diagnostics: list[Diagnostic] = []
        self._imports: set[str] = set()
        self._function: _FunctionContext | None = None
        self._loop_depth = 0

    def check(self, program: Program) -> CheckedProgram:
        """Check a program.

        Raises:
            CompileError: If any diagnostic was reported
        """
        checked = CheckedProgram(program=program, result_type=TypeTag.INT)
        scope = _Scope()
        emits: list[EmitStatement] = []
        pending: list[tuple[ASTNode, Any]] = []

        # Pass 1: imports and the signatures of top-level names
        for item in program.items:
            if isinstance(item, ImportDeclaration):
                self._check_import(item, checked)
            elif isinstance(item, VarDeclaration):
                var_type = self._declare_global_var(item, scope)
                if var_type is not None:
                    pending.append((item, var_type))
            elif isinstance(item, LetDeclaration):
                if not isinstance(item.value, FunctionLiteral):
                    self._error(item, f"let {item.name} must be bound to a function literal")
                    continue
                signature = self._signature(item.value)
                self._declare(scope, item, item.name, signature or INVALID, mutable=False)
                pending.append((item, signature))
                checked.functions.append(item.name)
            elif isinstance(item, FunctionDeclaration):
                if item.function.return_type is not None:
                    signature = self._signature(item.function)
                    self._declare(scope, item, item.name, signature or INVALID, mutable=False)
                pending.append((item, None))
                checked.functions.append(item.name)
            elif isinstance(item, EmitStatement):
                emits.append(item)

        # Pass 2: initializers and bodies
        for item, extra in pending:
            if isinstance(item, VarDeclaration):
                default = self._check_global_initializer(item, extra)
                checked.variables[item.name] = GlobalVariable(item.name, extra, default)
            elif isinstance(item, LetDeclaration):
                if extra is not None:
                    self._check_function_body(item.value, extra, scope)
            elif isinstance(item, FunctionDeclaration):
                self._check_function_declaration(item, scope)

        if len(emits) != 1:
            self._error(program, f"program must emit exactly one result, found {len(emits)}")
        else:
            emitted = self._check_expr(emits[0].value, scope)
            if isinstance(emitted, TypeTag):
                checked.result_type = emitted
            elif emitted is not INVALID:
                self._error(emits[0], f"cannot emit {_type_name(emitted)}")

        if self.diagnostics:
            raise CompileError(sorted(self.diagnostics, key=lambda d: (d.line, d.column)))
        return checked

    # -------------------------------------------------------------------------
    # Helper methods
    # -------------------------------------------------------------------------

    def _error(self, node: ASTNode, message: str) -> None:
        self.diagnostics.append(Diagnostic(node.line, node.column, message))

    def _declare(
        self, scope: _Scope, node: ASTNode, name: str, value_type: Any, mutable: bool = True
    ) -> None:
        if name in scope.symbols:
            self._error(node, f"{name} redeclared in this block")
            return
        scope.symbols[name] = _Symbol(value_type, mutable)

    def _resolve_type(self, node: ASTNode, type_name: str) -> TypeTag | None:
        try:
            return TypeTag.parse(type_name)
        except ValueError:
            self._error(node, f"unknown type {type_name}")
            return None

    def _signature(self, function: FunctionLiteral) -> FunctionType | None:
        params = []
        valid = True
        for parameter in function.parameters:
            resolved = self._resolve_type(parameter, parameter.type_name)
            if resolved is None:
                valid = False
            else:
                params.append(resolved)

        result = None
        if function.return_type is not None:
            result = self._resolve_type(function, function.return_type)
            valid = valid and result is not None

        return FunctionType(tuple(params), result) if valid else None

    def _assignable(self, node: ASTNode, actual: Any, expected: Any) -> bool:
        """Check a value of type actual can be used as expected."""
        if actual is INVALID or expected is INVALID:
            return True
        if actual == expected:
            return True
        if expected is TypeTag.FLOAT and actual is TypeTag.INT and _is_int_constant(node):
            _convert_to_float(node)
            return True
        return False

    # -------------------------------------------------------------------------
    # Top level
    # -------------------------------------------------------------------------

    def _check_import(self, item: ImportDeclaration, checked: CheckedProgram) -> None:
        if not PackageRegistry.has_package(item.package):
            self._error(item, f'unknown package "{item.package}"')
            return
        if item.package not in self._imports:
            self._imports.add(item.package)
            checked.imports.append(item.package)

    def _declare_global_var(self, item: VarDeclaration, scope: _Scope) -> TypeTag | None:
        if item.type_name is None:
            self._error(item, f"variable {item.name} needs an explicit type")
            self._declare(scope, item, item.name, INVALID)
            return None
        var_type = self._resolve_type(item, item.type_name)
        self._declare(scope, item, item.name, var_type or INVALID)
        return var_type

    def _check_global_initializer(self, item: VarDeclaration, var_type: TypeTag) -> Any:
        if item.value is None:
            return var_type.zero_value

        node = item.value
        negate = False
        if isinstance(node, UnaryOp) and node.operator == "-" and isinstance(node.operand, Literal):
            negate = True
            node = node.operand

        if not isinstance(node, Literal):
            self._error(item.value, f"initial value of {item.name} must be a literal")
            return var_type.zero_value

        literal_type = type_of_value(node.value)
        if negate and literal_type not in _NUMERIC:
            self._error(item.value, f"invalid operation: -{_type_name(literal_type)}")
            return var_type.zero_value
        if literal_type is not var_type:
            self._error(
                item.value,
                f"cannot use {'-' if negate else ''}{node.value!r} (type {_type_name(literal_type)}) "
                f"as type {var_type.value} in declaration of {item.name}",
            )
            return var_type.zero_value

        return -node.value if negate else node.value

    def _check_function_declaration(self, item: FunctionDeclaration, scope: _Scope) -> None:
        function = item.function
        if function.return_type is not None:
            signature = self._signature(function)
            if signature is not None:
                self._check_function_body(function, signature, scope)
            return

        params = self._signature(function)
        if params is None:
            scope.symbols.setdefault(item.name, _Symbol(INVALID, mutable=False))
            return

        context = _FunctionContext(result=None, infer=True)
        self._check_body(function, params.parameters, context, scope)

        if not context.returns:
            if not context.invalid_return:
                self._error(item, f"{_display_name(item.name)} must return a value")
            result: Any = INVALID
        else:
            result = FunctionType(params.parameters, context.returns[0])
            if not self._terminates(function.body):
                self._error(function.body, f"missing return in {_display_name(item.name)}")

        self._declare(scope, item, item.name, result, mutable=False)

    def _check_function_body(
        self, function: FunctionLiteral, signature: FunctionType, scope: _Scope
    ) -> None:
        context = _FunctionContext(result=signature.result)
        self._check_body(function, signature.parameters, context, scope)
        if signature.result is not None and not self._terminates(function.body):
            self._error(function.body, "missing return")

    def _check_body(
        self,
        function: FunctionLiteral,
        parameters: tuple[TypeTag, ...],
        context: _FunctionContext,
        scope: _Scope,
    ) -> None:
        inner = _Scope(scope)
        for parameter, param_type in zip(function.parameters, parameters):
            self._declare(inner, parameter, parameter.name, param_type)

        saved_function, saved_loops = self._function, self._loop_depth
        self._function, self._loop_depth = context, 0
        try:
            for statement in function.body.statements:
                self._check_statement(statement, inner)
        finally:
            self._function, self._loop_depth = saved_function, saved_loops

    def _terminates(self, node: ASTNode | None) -> bool:
        """Whether control cannot fall off the end of this statement."""
        if isinstance(node, ReturnStatement):
            return True
        if isinstance(node, Block):
            return bool(node.statements) and self._terminates(node.statements[-1])
        if isinstance(node, IfStatement):
            return (
                node.else_branch is not None
                and self._terminates(node.then_block)
                and self._terminates(node.else_branch)
            )
        if isinstance(node, ForStatement):
            return node.condition is None and not self._has_break(node.body)
        return False

    def _has_break(self, node: ASTNode) -> bool:
        if isinstance(node, BreakStatement):
            return True
        if isinstance(node, Block):
            return any(self._has_break(s) for s in node.statements)
        if isinstance(node, IfStatement):
            return self._has_break(node.then_block) or (
                node.else_branch is not None and self._has_break(node.else_branch)
            )
        # A break inside a nested loop belongs to that loop
        return False

    # -------------------------------------------------------------------------
    # Statements
    # -------------------------------------------------------------------------

    def _check_statement(self, node: ASTNode, scope: _Scope) -> None:
        method = getattr(self, f"_check_{type(node).__name__.lower()}", None)
        if method is None:
            self._error(node, f"unexpected {type(node).__name__} in function body")
            return
        method(node, scope)

    def _check_block(self, node: Block, scope: _Scope) -> None:
        inner = _Scope(scope)
        for statement in node.statements:
            self._check_statement(statement, inner)

    def _check_vardeclaration(self, node: VarDeclaration, scope: _Scope) -> None:
        declared = None
        if node.type_name is not None:
            declared = self._resolve_type(node, node.type_name) or INVALID

        if node.value is None:
            self._declare(scope, node, node.name, declared)
            return

        value_type = self._check_expr(node.value, scope)
        if value_type is None:
            self._error(node.value, f"{self._describe(node.value)} (no value) used as value")
            value_type = INVALID

        if declared is None:
            self._declare(scope, node, node.name, value_type)
            return

        if not self._assignable(node.value, value_type, declared):
            self._error(
                node.value,
                f"cannot use {self._describe(node.value)} (type {_type_name(value_type)}) "
                f"as type {_type_name(declared)} in declaration of {node.name}",
            )
        self._declare(scope, node, node.name, declared)

    def _check_assignment(self, node: Assignment, scope: _Scope) -> None:
        symbol = scope.lookup(node.name)
        value_type = self._check_expr(node.value, scope)

        if symbol is None:
            self._error(node, f"undefined: {node.name}")
            return
        if not symbol.mutable:
            self._error(node, f"cannot assign to {node.name} (neither addressable nor a map index)")
            return
        if value_type is None:
            self._error(node.value, f"{self._describe(node.value)} (no value) used as value")
            return

        target = symbol.type
        if node.operator != "=" and target is not INVALID:
            allowed = (*_NUMERIC, TypeTag.STRING) if node.operator == "+=" else _NUMERIC
            if target not in allowed:
                self._error(node, f"invalid operation: operator {node.operator[0]} not defined on {node.name} (type {_type_name(target)})")
                return

        if not self._assignable(node.value, value_type, target):
            self._error(
                node.value,
                f"cannot use {self._describe(node.value)} (type {_type_name(value_type)}) "
                f"as type {_type_name(target)} in assignment",
            )

    def _check_incdec(self, node: IncDec, scope: _Scope) -> None:
        symbol = scope.lookup(node.name)
        if symbol is None:
            self._error(node, f"undefined: {node.name}")
        elif not symbol.mutable:
            self._error(node, f"cannot assign to {node.name}")
        elif symbol.type is not INVALID and symbol.type not in _NUMERIC:
            self._error(node, f"invalid operation: {node.name}{node.operator} (non-numeric type {_type_name(symbol.type)})")

    def _check_ifstatement(self, node: IfStatement, scope: _Scope) -> None:
        self._expect_condition(node.condition, scope, "if")
        self._check_block(node.then_block, scope)
        if node.else_branch is not None:
            self._check_statement(node.else_branch, scope)

    def _check_forstatement(self, node: ForStatement, scope: _Scope) -> None:
        if node.condition is not None:
            self._expect_condition(node.condition, scope, "for")
        self._loop_depth += 1
        try:
            self._check_block(node.body, scope)
        finally:
            self._loop_depth -= 1

    def _check_breakstatement(self, node: BreakStatement, scope: _Scope) -> None:
        if self._loop_depth == 0:
            self._error(node, "break is not in a loop")

    def _check_continuestatement(self, node: ContinueStatement, scope: _Scope) -> None:
        if self._loop_depth == 0:
            self._error(node, "continue is not in a loop")

    def _check_returnstatement(self, node: ReturnStatement, scope: _Scope) -> None:
        context = self._function
        if context is None:
            self._error(node, "return outside function")
            return

        if node.value is None:
            if context.infer or context.result is not None:
                self._error(node, "not enough return values")
            return

        value_type = self._check_expr(node.value, scope)
        if value_type is INVALID:
            context.invalid_return = True
            return
        if value_type is None:
            self._error(node.value, f"{self._describe(node.value)} (no value) used as value")
            return

        if context.infer:
            if not isinstance(value_type, TypeTag):
                self._error(node.value, f"cannot return {_type_name(value_type)} from the formula")
            elif not context.returns:
                context.returns.append(value_type)
            elif not self._assignable(node.value, value_type, context.returns[0]):
                self._error(
                    node.value,
                    f"inconsistent return types: {_type_name(value_type)} and "
                    f"{_type_name(context.returns[0])}",
                )
            return

        if context.result is None:
            self._error(node.value, "too many return values")
        elif not self._assignable(node.value, value_type, context.result):
            self._error(
                node.value,
                f"cannot use {self._describe(node.value)} (type {_type_name(value_type)}) "
                f"as type {_type_name(context.result)} in return statement",
            )

    def _check_expressionstatement(self, node: ExpressionStatement, scope: _Scope) -> None:
        self._check_expr(node.expression, scope)
        if not isinstance(node.expression, FunctionCall):
            self._error(node, f"{self._describe(node.expression)} evaluated but not used")

    def _expect_condition(self, node: ASTNode, scope: _Scope, keyword: str) -> None:
        condition = self._check_expr(node, scope)
        if condition is not INVALID and condition is not TypeTag.BOOL:
            self._error(
                node,
                f"non-boolean condition in {keyword} statement (type {_type_name(condition)})",
            )

    # -------------------------------------------------------------------------
    # Expressions
    # -------------------------------------------------------------------------

    def _check_expr(self, node: ASTNode, scope: _Scope) -> Any:
        """Return the type of an expression, None for no value, or INVALID."""
        if isinstance(node, Literal):
            literal_type = type_of_value(node.value)
            if literal_type is None:
                self._error(node, f"unsupported literal {node.value!r}")
                return INVALID
            return literal_type

        if isinstance(node, Identifier):
            symbol = scope.lookup(node.name)
            if symbol is None:
                self._error(node, f"undefined: {node.name}")
                return INVALID
            if symbol.type is None:
                return INVALID
            return symbol.type

        if isinstance(node, UnaryOp):
            return self._check_unary(node, scope)

        if isinstance(node, BinaryOp):
            return self._check_binary(node, scope)

        if isinstance(node, FunctionCall):
            return self._check_call(node, scope)

        if isinstance(node, FunctionLiteral):
            signature = self._signature(node)
            if signature is None:
                return INVALID
            self._check_function_body(node, signature, scope)
            return signature

        self._error(node, f"unexpected {type(node).__name__} in expression")
        return INVALID

    def _check_unary(self, node: UnaryOp, scope: _Scope) -> Any:
        operand = self._value(node.operand, scope)
        if operand is INVALID:
            return INVALID
        if node.operator == "!":
            if operand is not TypeTag.BOOL:
                self._error(node, f"invalid operation: operator ! not defined on {self._describe(node.operand)} (type {_type_name(operand)})")
                return INVALID
            return TypeTag.BOOL
        if operand not in _NUMERIC:
            self._error(node, f"invalid operation: operator - not defined on {self._describe(node.operand)} (type {_type_name(operand)})")
            return INVALID
        return operand

    def _check_binary(self, node: BinaryOp, scope: _Scope) -> Any:
        op = node.operator
        left = self._value(node.left, scope)
        right = self._value(node.right, scope)
        if left is INVALID or right is INVALID:
            return INVALID

        if op in ("&&", "||"):
            if left is not TypeTag.BOOL or right is not TypeTag.BOOL:
                self._error(node, f"invalid operation: operator {op} not defined on {_type_name(left)} and {_type_name(right)}")
                return INVALID
            return TypeTag.BOOL

        # Unify operand types, letting an int constant adopt float
        if left != right:
            if self._assignable(node.right, right, left):
                right = left
            elif self._assignable(node.left, left, right):
                left = right
            else:
                self._error(
                    node,
                    f"invalid operation: {self._describe(node)} "
                    f"(mismatched types {_type_name(left)} and {_type_name(right)})",
                )
                return INVALID

        operand = left
        if isinstance(operand, FunctionType):
            self._error(node, f"invalid operation: operator {op} not defined on {_type_name(operand)}")
            return INVALID

        if op in ("==", "!="):
            return TypeTag.BOOL
        if op in ("<", "<=", ">", ">="):
            if operand not in _ORDERED:
                self._error(node, f"invalid operation: operator {op} not defined on {_type_name(operand)}")
                return INVALID
            return TypeTag.BOOL
        if op == "+":
            if operand not in (*_NUMERIC, TypeTag.STRING):
                self._error(node, f"invalid operation: operator + not defined on {_type_name(operand)}")
                return INVALID
            return operand
        if op in ("-", "*", "/"):
            if operand not in _NUMERIC:
                self._error(node, f"invalid operation: operator {op} not defined on {_type_name(operand)}")
                return INVALID
            return operand
        if op == "%":
            if operand is not TypeTag.INT:
                self._error(node, f"invalid operation: operator % not defined on {_type_name(operand)}")
                return INVALID
            return operand

        self._error(node, f"unknown operator {op}")
        return INVALID

    def _value(self, node: ASTNode, scope: _Scope) -> Any:
        """Type of an expression that must produce a value."""
        value_type = self._check_expr(node, scope)
        if value_type is None:
            self._error(node, f"{self._describe(node)} (no value) used as value")
            return INVALID
        return value_type

    def _check_call(self, node: FunctionCall, scope: _Scope) -> Any:
        argument_types = [self._check_expr(arg, scope) for arg in node.arguments]

        if node.package is not None:
            if node.package not in self._imports:
                if PackageRegistry.has_package(node.package):
                    self._error(node, f'package "{node.package}" is not imported')
                else:
                    self._error(node, f"undefined: {node.package}")
                return INVALID
            if not PackageRegistry.is_registered(node.package, node.name):
                self._error(node, f"undefined: {node.package}.{node.name}")
                return INVALID
            return self._check_builtin_call(
                node, PackageRegistry.get(node.package, node.name), argument_types
            )

        symbol = scope.lookup(node.name)
        if symbol is not None:
            if symbol.type is INVALID:
                return INVALID
            if not isinstance(symbol.type, FunctionType):
                self._error(node, f"invalid operation: cannot call non-function {node.name} (type {_type_name(symbol.type)})")
                return INVALID
            return self._check_user_call(node, symbol.type, argument_types)

        if PackageRegistry.is_registered(UNIVERSE, node.name):
            return self._check_builtin_call(
                node, PackageRegistry.get(UNIVERSE, node.name), argument_types
            )

        self._error(node, f"undefined: {node.name}")
        return INVALID

    def _check_user_call(
        self, node: FunctionCall, signature: FunctionType, argument_types: list[Any]
    ) -> Any:
        if len(argument_types) != len(signature.parameters):
            self._error(
                node,
                f"{'not enough' if len(argument_types) < len(signature.parameters) else 'too many'} "
                f"arguments in call to {node.name}: have {len(argument_types)}, "
                f"want {len(signature.parameters)}",
            )
            return signature.result

        for argument, actual, expected in zip(node.arguments, argument_types, signature.parameters):
            self._check_argument(node, argument, actual, expected)

        return signature.result

    def _check_builtin_call(
        self, node: FunctionCall, definition: FunctionDefinition, argument_types: list[Any]
    ) -> Any:
        parameters = definition.parameters
        fixed = parameters[:-1] if definition.is_variadic else parameters

        count = len(argument_types)
        if count < len(fixed) or (not definition.is_variadic and count > len(fixed)):
            self._error(
                node,
                f"{'not enough' if count < len(fixed) else 'too many'} arguments in call to "
                f"{definition.qualified_name}: have {count}, want {len(fixed)}"
                f"{' or more' if definition.is_variadic else ''}",
            )
            return TypeTag(definition.return_type)

        for index, (argument, actual) in enumerate(zip(node.arguments, argument_types)):
            parameter = parameters[min(index, len(parameters) - 1)]
            if parameter.type == "any":
                if actual is None:
                    self._error(argument, f"{self._describe(argument)} (no value) used as value")
                elif isinstance(actual, FunctionType):
                    self._error(argument, f"cannot use function value as argument to {definition.qualified_name}")
                continue
            self._check_argument(node, argument, actual, TypeTag(parameter.type))

        return TypeTag(definition.return_type)

    def _check_argument(self, call: FunctionCall, argument: ASTNode, actual: Any, expected: TypeTag) -> None:
        if actual is None:
            self._error(argument, f"{self._describe(argument)} (no value) used as value")
        elif not self._assignable(argument, actual, expected):
            name = call.name if call.package is None else f"{call.package}.{call.name}"
            self._error(
                argument,
                f"cannot use {self._describe(argument)} (type {_type_name(actual)}) "
                f"as type {_type_name(expected)} in argument to {name}",
            )

    def _describe(self, node: ASTNode) -> str:
        """Short source-like rendering of an expression for messages."""
        if isinstance(node, Literal):
            if isinstance(node.value, bool):
                return "true" if node.value else "false"
            if isinstance(node.value, str):
                return f'"{node.value}"'
            return repr(node.value)
        if isinstance(node, Identifier):
            return node.name
        if isinstance(node, UnaryOp):
            return f"{node.operator}{self._describe(node.operand)}"
        if isinstance(node, BinaryOp):
            return f"{self._describe(node.left)} {node.operator} {self._describe(node.right)}"
        if isinstance(node, FunctionCall):
            name = node.name if node.package is None else f"{node.package}.{node.name}"
            return f"{name}(...)" if node.arguments else f"{name}()"
        if isinstance(node, FunctionLiteral):
            return "func literal"
        return type(node).__name__
