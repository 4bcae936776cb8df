"""ExpressionEvaluator: recursive expression evaluator for notebook lines.

Splits an expression on its lowest-precedence top-level operator and
recurses into both sides, so balanced parentheses, operator precedence and
arbitrarily nested calls like ``round(sqrt(a^2 + b^2) * 1.1, 2)`` are
handled without a separate tokenizer.
"""

from __future__ import annotations

import logging
import math
import re
from collections.abc import Mapping
from typing import Any

from linecalc.calc._functions import (
    CONSTANTS,
    EvaluationError,
    FunctionRegistry,
    is_number,
    modulo,
    power,
)

logger = logging.getLogger(__name__)

_NUMBER_RE = re.compile(r"(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")
_INT_RE = re.compile(r"\d+")
_IDENT_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")
_FUNC_CALL_RE = re.compile(r"^([A-Za-z_][A-Za-z0-9_]*)\s*\(")

# A +/- after one of these is a sign, not a binary operator
_OPERAND_BOUNDARY = frozenset("(,+-*/%^<>=!")

# Floats beyond this can't round-trip through int exactly
_MAX_EXACT_INT = 2 ** 53

# ---------------------------------------------------------------------------
# Expression parsing helpers
# ---------------------------------------------------------------------------


def _find_matching_paren(expr: str, start: int) -> int:
    """Index of the ``')'`` matching the ``'('`` at *expr[start]*, or -1."""
    depth = 1
    i = start + 1
    while i < len(expr):
        ch = expr[i]
        if ch == '(':
            depth += 1
        elif ch == ')':
            depth -= 1
            if depth == 0:
                return i
        i += 1
    return -1


def _match_function_call(expr: str) -> tuple[str, str] | None:
    """If *expr* is exactly ``name(balanced_args)``, return ``(name, args_str)``.

    Uses balanced parenthesis matching so ``sqrt(4)*2`` is NOT matched
    (there's trailing content after the close-paren).
    """
    m = _FUNC_CALL_RE.match(expr)
    if not m:
        return None
    open_idx = m.end() - 1  # position of '('
    close_idx = _find_matching_paren(expr, open_idx)
    # The close-paren must be the very last character
    if close_idx >= 0 and close_idx == len(expr) - 1:
        return (m.group(1), expr[open_idx + 1 : close_idx])
    return None


def _is_exponent_sign(expr: str, j: int) -> bool:
    """``True`` when ``expr[j]`` is the ``e`` of a literal like ``2.5e-1``."""
    if expr[j] not in ('e', 'E'):
        return False
    k = j - 1
    while k >= 0 and (expr[k].isdigit() or expr[k] == '.'):
        k -= 1
    if k == j - 1:
        return False
    # "x2e-1" is the name x2e minus 1, not a literal
    return k < 0 or not (expr[k].isalnum() or expr[k] == '_')


def _find_top_level_split(expr: str) -> tuple[str, str, str] | None:
    """Find the rightmost lowest-precedence binary operator at paren depth 0.

    Precedence (lowest to highest)::

        1. comparison     (==, !=, <=, >=, <, >)
        2. additive       (+, -)
        3. multiplicative (*, /, %)

    Right-to-left scan produces correct left-to-right associativity.
    Power (``^``) is handled separately by :func:`_find_power_split`.
    Returns ``(left, op, right)`` or ``None``.
    """
    length = len(expr)

    for pass_type in ("cmp", "add", "mul"):
        depth = 0
        i = length - 1
        while i > 0:
            ch = expr[i]

            # Track parentheses (inverted for right-to-left)
            if ch == ')':
                depth += 1
                i -= 1
                continue
            if ch == '(':
                depth -= 1
                i -= 1
                continue

            if depth != 0:
                i -= 1
                continue

            matched_op: str | None = None
            op_start = i

            if pass_type == "cmp":
                # 2-char comparison operators checked first
                if expr[i - 1 : i + 1] in ("==", "!=", "<=", ">="):
                    matched_op = expr[i - 1 : i + 1]
                    op_start = i - 1
                elif ch in ('<', '>'):
                    matched_op = ch
            elif pass_type == "add" and ch in ('+', '-'):
                matched_op = ch
            elif pass_type == "mul" and ch in ('*', '/', '%'):
                matched_op = ch

            if matched_op is not None:
                # Verify it's a binary operator (not unary prefix)
                if op_start <= 0:
                    i -= 1
                    continue
                # Check preceding non-space character
                j = op_start - 1
                while j >= 0 and expr[j] == ' ':
                    j -= 1
                if j < 0 or (pass_type != "cmp" and expr[j] in _OPERAND_BOUNDARY):
                    i -= 1
                    continue
                # Skip +/- that are part of scientific notation (e.g. 2.5e-1)
                if matched_op in ('+', '-') and j == op_start - 1 and _is_exponent_sign(expr, j):
                    i -= 1
                    continue

                left = expr[:op_start].strip()
                right = expr[op_start + len(matched_op) :].strip()
                if left and right:
                    return (left, matched_op, right)

            i -= 1

    return None


def _find_power_split(expr: str) -> tuple[str, str] | None:
    """Split on the leftmost top-level ``^`` (power is right-associative)."""
    depth = 0
    for i, ch in enumerate(expr):
        if ch == '(':
            depth += 1
        elif ch == ')':
            depth -= 1
        elif ch == '^' and depth == 0:
            left = expr[:i].strip()
            right = expr[i + 1 :].strip()
            if left and right:
                return (left, right)
            return None
    return None


def _split_top_level_args(args_str: str) -> list[str]:
    """Split on commas at depth 0 WITHOUT evaluating - returns raw strings."""
    if not args_str.strip():
        return []
    args: list[str] = []
    depth = 0
    current = ""
    for ch in args_str:
        if ch == '(':
            depth += 1
        elif ch == ')':
            depth -= 1
        elif ch == ',' and depth == 0:
            args.append(current)
            current = ""
            continue
        current += ch
    args.append(current)
    return args


def _binary_op(left: Any, op: str, right: Any) -> Any:
    """Evaluate an arithmetic binary operation on numbers."""
    if not is_number(left) or not is_number(right):
        raise EvaluationError(f"Cannot apply {op!r} to {left!r} and {right!r}")
    if op == '+':
        return left + right
    if op == '-':
        return left - right
    if op == '*':
        return left * right
    if op == '/':
        if right == 0:
            raise EvaluationError("Division by zero")
        return left / right
    if op == '%':
        return modulo(left, right)
    raise EvaluationError(f"Unknown operator {op!r}")


def _compare(left: Any, right: Any, op: str) -> bool:
    """Evaluate a comparison between two numbers."""
    if not is_number(left) or not is_number(right):
        raise EvaluationError(f"Cannot compare {left!r} and {right!r}")
    if op == '>':
        return left > right
    if op == '<':
        return left < right
    if op == '>=':
        return left >= right
    if op == '<=':
        return left <= right
    if op == '==':
        return left == right
    if op == '!=':
        return left != right
    raise EvaluationError(f"Unknown operator {op!r}")


def normalize_result(raw: Any) -> Any:
    """Convert an evaluation result to a plain Python scalar.

    Integral floats become ints; numpy-style scalars are unwrapped through
    ``.item()``.  Anything that isn't a number or bool is rejected.
    """
    if hasattr(raw, 'item') and not isinstance(raw, (int, float)):
        try:
            raw = raw.item()
        except (ValueError, TypeError):
            pass
    if isinstance(raw, bool):
        return raw
    if isinstance(raw, int):
        return raw
    if isinstance(raw, float):
        if math.isfinite(raw) and raw == int(raw) and abs(raw) < _MAX_EXACT_INT:
            return int(raw)
        return raw
    raise EvaluationError(f"Result is not a number: {raw!r}")


# ---------------------------------------------------------------------------
# Evaluator
# ---------------------------------------------------------------------------


class ExpressionEvaluator:
    """Evaluates arithmetic expressions against a name -> value scope.

    Usage::

        evaluator = ExpressionEvaluator()
        evaluator.evaluate("a * 3 + sqrt(16)", {"a": 2})   # 10
    """

    def __init__(self, functions: FunctionRegistry | None = None) -> None:
        self._functions = functions or FunctionRegistry()

    @property
    def functions(self) -> FunctionRegistry:
        return self._functions

    def evaluate(self, expression: str, scope: Mapping[str, Any]) -> Any:
        """Evaluate *expression*; raise EvaluationError on any failure."""
        try:
            raw = self._eval_expr(expression, scope)
        except EvaluationError:
            raise
        except (ArithmeticError, ValueError, RecursionError) as e:
            raise EvaluationError(f"Cannot evaluate {expression!r}: {e}") from e
        return normalize_result(raw)

    # ------------------------------------------------------------------
    # Recursive descent
    # ------------------------------------------------------------------

    def _eval_expr(self, expr: str, scope: Mapping[str, Any]) -> Any:
        """Recursively evaluate an expression.

        Dispatch order (first match wins):

        1. Binary/comparison split at top level (paren-aware, precedence-correct)
        2. Unary minus / plus
        3. Power split
        4. Parenthesized sub-expression ``(...)``
        5. Function call ``name(balanced_args)``
        6. Numeric literal
        7. Boolean literal
        8. Name (scope, then constants)
        """
        expr = expr.strip()
        if not expr:
            raise EvaluationError("Unexpected end of expression")

        # 1. Binary split (comparison -> additive -> multiplicative)
        split = _find_top_level_split(expr)
        if split:
            left_str, op, right_str = split
            left_val = self._eval_expr(left_str, scope)
            right_val = self._eval_expr(right_str, scope)
            if op in ('+', '-', '*', '/', '%'):
                return _binary_op(left_val, op, right_val)
            return _compare(left_val, right_val, op)

        # 2. Unary minus / plus (looser than ^, so -2^2 == -4)
        if expr[0] in ('-', '+'):
            val = self._eval_expr(expr[1:], scope)
            if not is_number(val):
                raise EvaluationError(f"Cannot apply unary {expr[0]!r} to {val!r}")
            return -val if expr[0] == '-' else +val

        # 3. Power
        pow_split = _find_power_split(expr)
        if pow_split:
            base = self._eval_expr(pow_split[0], scope)
            exponent = self._eval_expr(pow_split[1], scope)
            if not is_number(base) or not is_number(exponent):
                raise EvaluationError(f"Cannot apply '^' to {base!r} and {exponent!r}")
            return power(base, exponent)

        # 4. Parenthesized sub-expression: (expr)
        if expr.startswith('('):
            close = _find_matching_paren(expr, 0)
            if close == len(expr) - 1:
                return self._eval_expr(expr[1:close], scope)

        # 5. Function call: name(balanced_args)
        func = _match_function_call(expr)
        if func:
            return self._eval_function(func[0], func[1], scope)

        # 6. Numeric literal (int, float, and scientific notation like 1e3)
        if _NUMBER_RE.fullmatch(expr):
            if _INT_RE.fullmatch(expr):
                return int(expr)
            return float(expr)

        # 7. Boolean
        if expr == 'true':
            return True
        if expr == 'false':
            return False

        # 8. Names
        if _IDENT_RE.fullmatch(expr):
            if expr in scope:
                return scope[expr]
            if expr in CONSTANTS:
                return CONSTANTS[expr]
            raise EvaluationError(f"Undefined symbol {expr}")

        raise EvaluationError(f"Cannot parse {expr!r}")

    def _eval_function(self, name: str, args_str: str, scope: Mapping[str, Any]) -> Any:
        """Evaluate a function call with evaluated arguments."""
        func = self._functions.get(name)
        if func is None:
            raise EvaluationError(f"Undefined function {name}")
        args = [self._eval_expr(arg, scope) for arg in _split_top_level_args(args_str)]
        try:
            return func(args)
        except EvaluationError:
            raise
        except (ArithmeticError, ValueError, TypeError) as e:
            logger.debug("Error evaluating %s: %s", name, e)
            raise EvaluationError(f"{name}: {e}") from e
