"""Builtin math functions and constants for expression evaluation."""

from __future__ import annotations

import math
from typing import Any, Callable


class EvaluationError(Exception):
    """An expression could not be evaluated (syntax, unknown symbol, bad operand)."""


# Largest power result computed exactly, in bits
_MAX_POWER_BITS = 1024

# round() digits are clamped to this range
_MAX_ROUND_DIGITS = 15
_MIN_ROUND_DIGITS = 308


# ---------------------------------------------------------------------------
# Argument coercion
# ---------------------------------------------------------------------------


def is_number(val: Any) -> bool:
    """True for ints, floats and bools (bools count as 0/1)."""
    return isinstance(val, (int, float))


def _require_numbers(name: str, args: list[Any]) -> list[int | float]:
    for arg in args:
        if not is_number(arg):
            raise EvaluationError(f"{name}: expected a number, got {arg!r}")
    return args


def _arity(name: str, args: list[Any], low: int, high: int | None = None) -> None:
    high = low if high is None else high
    if not low <= len(args) <= high:
        if low == high:
            expected = str(low)
        else:
            expected = f"{low}..{high}"
        raise EvaluationError(f"{name}: expected {expected} argument(s), got {len(args)}")


def _unary(name: str, fn: Callable[[float], Any]) -> Callable[[list[Any]], Any]:
    """Wrap a one-argument math function with arity and type checks."""

    def builtin(args: list[Any]) -> Any:
        _arity(name, args, 1)
        (x,) = _require_numbers(name, args)
        return fn(x)

    builtin.__name__ = f"_builtin_{name}"
    return builtin


# ---------------------------------------------------------------------------
# Builtins
# ---------------------------------------------------------------------------


def _builtin_log(args: list[Any]) -> float:
    _arity("log", args, 1, 2)
    nums = _require_numbers("log", args)
    if len(nums) == 2:
        return math.log(nums[0], nums[1])
    return math.log(nums[0])


def _builtin_round(args: list[Any]) -> float:
    """Round half away from zero, optionally to *digits* decimals."""
    _arity("round", args, 1, 2)
    nums = _require_numbers("round", args)
    x = nums[0]
    digits = int(nums[1]) if len(nums) == 2 else 0
    digits = max(-_MIN_ROUND_DIGITS, min(digits, _MAX_ROUND_DIGITS))
    factor = 10 ** digits
    rounded = math.floor(abs(x) * factor + 0.5) / factor
    return math.copysign(rounded, x) if rounded else 0


def _builtin_max(args: list[Any]) -> float:
    if not args:
        raise EvaluationError("max: expected at least 1 argument")
    return max(_require_numbers("max", args))


def _builtin_min(args: list[Any]) -> float:
    if not args:
        raise EvaluationError("min: expected at least 1 argument")
    return min(_require_numbers("min", args))


def _builtin_pow(args: list[Any]) -> float:
    _arity("pow", args, 2)
    base, exponent = _require_numbers("pow", args)
    return power(base, exponent)


def _builtin_mod(args: list[Any]) -> float:
    _arity("mod", args, 2)
    x, y = _require_numbers("mod", args)
    return modulo(x, y)


def _builtin_sign(args: list[Any]) -> int:
    _arity("sign", args, 1)
    (x,) = _require_numbers("sign", args)
    if x > 0:
        return 1
    if x < 0:
        return -1
    return 0


def power(base: float, exponent: float) -> float:
    """``base ** exponent`` restricted to real results of bounded size."""
    if base == 0 and exponent < 0:
        raise EvaluationError("Division by zero")
    try:
        # Exact int powers past this size would take unbounded time; floats overflow instead
        if abs(base) > 1 and abs(exponent) * math.log2(abs(base)) > _MAX_POWER_BITS:
            base, exponent = float(base), float(exponent)
        result = base ** exponent
    except OverflowError as e:
        raise EvaluationError(f"Result too large for {base}^{exponent}") from e
    if isinstance(result, complex):
        raise EvaluationError(f"Complex result for {base}^{exponent}")
    return result


def modulo(x: float, y: float) -> float:
    if y == 0:
        raise EvaluationError("Division by zero")
    return x % y


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

_BUILTINS: dict[str, Callable[[list[Any]], Any]] = {
    # Trigonometry
    "sin": _unary("sin", math.sin),
    "cos": _unary("cos", math.cos),
    "tan": _unary("tan", math.tan),
    "asin": _unary("asin", math.asin),
    "acos": _unary("acos", math.acos),
    "atan": _unary("atan", math.atan),
    # Exponents and logarithms
    "exp": _unary("exp", math.exp),
    "log": _builtin_log,
    "log10": _unary("log10", math.log10),
    "log2": _unary("log2", math.log2),
    "sqrt": _unary("sqrt", math.sqrt),
    "pow": _builtin_pow,
    # Rounding
    "abs": _unary("abs", abs),
    "ceil": _unary("ceil", math.ceil),
    "floor": _unary("floor", math.floor),
    "round": _builtin_round,
    "sign": _builtin_sign,
    "mod": _builtin_mod,
    # Aggregates
    "max": _builtin_max,
    "min": _builtin_min,
}

CONSTANTS: dict[str, float] = {
    "pi": math.pi,
    "e": math.e,
    "tau": math.tau,
}


class FunctionRegistry:
    """Registry of callable function implementations.

    Starts with builtins and can be extended with custom functions.
    Functions receive a list of already-evaluated arguments.
    """

    def __init__(self) -> None:
        self._functions: dict[str, Callable[[list[Any]], Any]] = dict(_BUILTINS)

    def register(self, name: str, func: Callable[[list[Any]], Any]) -> None:
        self._functions[name] = func

    def get(self, name: str) -> Callable[[list[Any]], Any] | None:
        return self._functions.get(name)

    def has(self, name: str) -> bool:
        return name in self._functions

    @property
    def supported_functions(self) -> frozenset[str]:
        return frozenset(self._functions.keys())
