"""Interpreter for checked formula programs.

Walks the AST of a CheckedProgram and computes the emitted value. Every run
starts from fresh state: top-level variables are bound from the supplied
values (or their literal initializers) and nothing survives the call.

Runs are bounded by a step budget, a wall-clock deadline and a maximum call
depth, so a runaway loop or recursion ends with a RuntimeFault instead of
hanging the host.
"""

import math
import time
from dataclasses import dataclass
from typing import Any

from formulakit.language.checker import CheckedProgram
from formulakit.language.packages import UNIVERSE, PackageRegistry
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
    IncDec,
    LetDeclaration,
    Literal,
    ReturnStatement,
    UnaryOp,
    VarDeclaration,
)
from formulakit.types import TypeTag

DEFAULT_MAX_STEPS = 1_000_000
DEFAULT_MAX_CALL_DEPTH = 50

# Deadline is checked every this many steps
_CLOCK_INTERVAL = 256

_INT_MASK = (1 << 64) - 1
_INT_SIGN = 1 << 63


def wrap_int(value: int) -> int:
    """Reduce an integer to the signed 64-bit range, wrapping on overflow."""
    value &= _INT_MASK
    return value - (1 << 64) if value & _INT_SIGN else value


class RuntimeFault(Exception):
    """Error while running a program."""

    def __init__(self, message: str, node: ASTNode | None = None):
        self.line = node.line if node is not None else 0
        self.column = node.column if node is not None else 0
        if node is not None and node.line:
            message = f"{message} at line {node.line}, column {node.column}"
        super().__init__(message)


class BudgetExceeded(RuntimeFault):
    """The step budget or the deadline ran out."""


class _ReturnSignal(Exception):
    def __init__(self, value: Any):
        self.value = value


class _BreakSignal(Exception):
    pass


class _ContinueSignal(Exception):
    pass


class Environment:
    """A chain of variable scopes."""

    def __init__(self, parent: "Environment | None" = None):
        self.parent = parent
        self.values: dict[str, Any] = {}

    def define(self, name: str, value: Any) -> None:
        self.values[name] = value

    def lookup(self, name: str) -> Any:
        env: Environment | None = self
        while env is not None:
            if name in env.values:
                return env.values[name]
            env = env.parent
        raise KeyError(name)

    def assign(self, name: str, value: Any) -> None:
        env: Environment | None = self
        while env is not None:
            if name in env.values:
                env.values[name] = value
                return
            env = env.parent
        raise KeyError(name)


@dataclass
class Closure:
    """A function value bound to the environment it was created in."""

    function: FunctionLiteral
    environment: Environment
    name: str = "func literal"


class Interpreter:
    """Executes a checked program.

    Usage:
        interpreter = Interpreter(checked, max_steps=10_000, timeout=1.0)
        value = interpreter.run({"A": 9})
    """

    def __init__(
        self,
        checked: CheckedProgram,
        *,
        max_steps: int = DEFAULT_MAX_STEPS,
        max_call_depth: int = DEFAULT_MAX_CALL_DEPTH,
        timeout: float | None = None,
    ):
        self.checked = checked
        self.max_steps = max_steps
        self.max_call_depth = max_call_depth
        self.timeout = timeout
        self._steps = 0
        self._depth = 0
        self._deadline: float | None = None
        self._cancelled = False

    def cancel(self) -> None:
        """Stop a run in progress at its next step."""
        self._cancelled = True

    def run(self, variables: dict[str, Any] | None = None) -> Any:
        """Run the program and return the emitted value.

        Args:
            variables: Values for top-level variables; missing ones keep
                their initial value

        Raises:
            RuntimeFault: On any runtime error
            BudgetExceeded: If the step budget or the deadline ran out
        """
        variables = variables or {}
        self._steps = 0
        self._depth = 0
        self._deadline = time.monotonic() + self.timeout if self.timeout else None

        globals_env = Environment()
        result: Any = None

        for item in self.checked.program.items:
            if isinstance(item, VarDeclaration):
                if item.name in variables:
                    globals_env.define(item.name, variables[item.name])
                else:
                    globals_env.define(item.name, self.checked.variables[item.name].default)
            elif isinstance(item, LetDeclaration):
                globals_env.define(item.name, Closure(item.value, globals_env, item.name))
            elif isinstance(item, FunctionDeclaration):
                globals_env.define(item.name, Closure(item.function, globals_env, item.name))
            elif isinstance(item, EmitStatement):
                result = self.evaluate(item.value, globals_env)

        return result

    # -------------------------------------------------------------------------
    # Budget
    # -------------------------------------------------------------------------

    def _tick(self, node: ASTNode) -> None:
        self._steps += 1
        if self._cancelled:
            raise BudgetExceeded(f"evaluation exceeded {self.timeout}s", node)
        if self._steps > self.max_steps:
            raise BudgetExceeded(f"step budget of {self.max_steps} exhausted", node)
        if self._deadline is not None and self._steps % _CLOCK_INTERVAL == 0:
            if time.monotonic() > self._deadline:
                raise BudgetExceeded(f"evaluation exceeded {self.timeout}s", node)

    # -------------------------------------------------------------------------
    # Statements
    # -------------------------------------------------------------------------

    def execute(self, node: ASTNode, env: Environment) -> None:
        """Execute a statement node."""
        self._tick(node)
        method = getattr(self, f"_exec_{type(node).__name__.lower()}", None)
        if method is None:
            raise RuntimeFault(f"Unknown statement type: {type(node).__name__}", node)
        method(node, env)

    def _exec_block(self, node: Block, env: Environment) -> None:
        inner = Environment(env)
        for statement in node.statements:
            self.execute(statement, inner)

    def _exec_vardeclaration(self, node: VarDeclaration, env: Environment) -> None:
        if node.value is not None:
            value = self.evaluate(node.value, env)
        else:
            value = TypeTag.parse(node.type_name).zero_value
        env.define(node.name, value)

    def _exec_assignment(self, node: Assignment, env: Environment) -> None:
        value = self.evaluate(node.value, env)
        if node.operator != "=":
            current = env.lookup(node.name)
            value = self._arithmetic(node.operator[0], current, value, node)
        env.assign(node.name, value)

    def _exec_incdec(self, node: IncDec, env: Environment) -> None:
        current = env.lookup(node.name)
        env.assign(node.name, wrap_int(current + 1 if node.operator == "++" else current - 1))

    def _exec_ifstatement(self, node: IfStatement, env: Environment) -> None:
        if self.evaluate(node.condition, env):
            self._exec_block(node.then_block, env)
        elif node.else_branch is not None:
            self.execute(node.else_branch, env)

    def _exec_forstatement(self, node: ForStatement, env: Environment) -> None:
        while node.condition is None or self.evaluate(node.condition, env):
            self._tick(node)
            try:
                self._exec_block(node.body, env)
            except _BreakSignal:
                break
            except _ContinueSignal:
                continue

    def _exec_breakstatement(self, node: BreakStatement, env: Environment) -> None:
        raise _BreakSignal()

    def _exec_continuestatement(self, node: ContinueStatement, env: Environment) -> None:
        raise _ContinueSignal()

    def _exec_returnstatement(self, node: ReturnStatement, env: Environment) -> None:
        value = self.evaluate(node.value, env) if node.value is not None else None
        raise _ReturnSignal(value)

    def _exec_expressionstatement(self, node: ExpressionStatement, env: Environment) -> None:
        self.evaluate(node.expression, env)

    # -------------------------------------------------------------------------
    # Expressions
    # -------------------------------------------------------------------------

    def evaluate(self, node: ASTNode, env: Environment) -> Any:
        """Evaluate an expression node and return the result."""
        method = getattr(self, f"_eval_{type(node).__name__.lower()}", None)
        if method is None:
            raise RuntimeFault(f"Unknown node type: {type(node).__name__}", node)
        return method(node, env)

    def _eval_literal(self, node: Literal, env: Environment) -> Any:
        return node.value

    def _eval_identifier(self, node: Identifier, env: Environment) -> Any:
        try:
            return env.lookup(node.name)
        except KeyError:
            raise RuntimeFault(f"undefined: {node.name}", node) from None

    def _eval_functionliteral(self, node: FunctionLiteral, env: Environment) -> Closure:
        return Closure(node, env)

    def _eval_unaryop(self, node: UnaryOp, env: Environment) -> Any:
        operand = self.evaluate(node.operand, env)
        if node.operator == "!":
            return not operand
        if type(operand) is int:
            return wrap_int(-operand)
        return -operand

    def _eval_binaryop(self, node: BinaryOp, env: Environment) -> Any:
        op = node.operator

        # Short-circuit evaluation for logical operators
        if op == "&&":
            return bool(self.evaluate(node.left, env)) and bool(self.evaluate(node.right, env))
        if op == "||":
            return bool(self.evaluate(node.left, env)) or bool(self.evaluate(node.right, env))

        left = self.evaluate(node.left, env)
        right = self.evaluate(node.right, env)

        if op == "==":
            return left == right
        if op == "!=":
            return left != right
        if op == "<":
            return left < right
        if op == "<=":
            return left <= right
        if op == ">":
            return left > right
        if op == ">=":
            return left >= right

        return self._arithmetic(op, left, right, node)

    def _arithmetic(self, op: str, left: Any, right: Any, node: ASTNode) -> Any:
        """Apply +, -, *, / or % with the language's numeric semantics.

        Integer results wrap to 64 bits.
        """
        result = self._apply(op, left, right, node)
        if type(result) is int:
            return wrap_int(result)
        return result

    def _apply(self, op: str, left: Any, right: Any, node: ASTNode) -> Any:
        if op == "+":
            return left + right
        if op == "-":
            return left - right
        if op == "*":
            return left * right
        if op == "/":
            if isinstance(left, int):
                if right == 0:
                    raise RuntimeFault("integer divide by zero", node)
                quotient = abs(left) // abs(right)
                return quotient if (left < 0) == (right < 0) else -quotient
            if right == 0:
                if left == 0 or math.isnan(left):
                    return math.nan
                return math.copysign(math.inf, left) * math.copysign(1.0, right)
            return left / right
        if op == "%":
            if right == 0:
                raise RuntimeFault("integer divide by zero", node)
            remainder = abs(left) % abs(right)
            return remainder if left >= 0 else -remainder
        raise RuntimeFault(f"Unknown operator: {op}", node)

    def _eval_functioncall(self, node: FunctionCall, env: Environment) -> Any:
        args = [self.evaluate(arg, env) for arg in node.arguments]

        if node.package is None:
            try:
                target = env.lookup(node.name)
            except KeyError:
                target = None
            if isinstance(target, Closure):
                return self.call(target, args, node)
            package = UNIVERSE
        else:
            package = node.package

        func_def = PackageRegistry.get(package, node.name)
        try:
            return func_def.implementation(*args)
        except (ValueError, TypeError, ArithmeticError, MemoryError) as e:
            raise RuntimeFault(f"Error calling {func_def.qualified_name}: {e}", node) from e

    def call(self, closure: Closure, args: list[Any], node: ASTNode) -> Any:
        """Call a user function with already-evaluated arguments."""
        self._depth += 1
        if self._depth > self.max_call_depth:
            self._depth -= 1
            raise RuntimeFault(
                f"maximum call depth of {self.max_call_depth} exceeded in {closure.name}", node
            )

        frame = Environment(closure.environment)
        for parameter, value in zip(closure.function.parameters, args):
            frame.define(parameter.name, value)

        try:
            for statement in closure.function.body.statements:
                self.execute(statement, frame)
        except _ReturnSignal as signal:
            return signal.value
        finally:
            self._depth -= 1
        return None
