"""
Arithmetic for the auto maths replies in guild chat.

Expressions are parsed with ``ast`` and only numbers, parentheses and the
binary / unary arithmetic operators are evaluated.
"""

from __future__ import annotations

import ast
import math
import operator
import re
from dataclasses import dataclass

# chat spelling -> python
_REPLACEMENTS = (("^", "**"), ("x", "*"), (":", "/"))

_BINARY_OPERATORS = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
    ast.Pow: operator.pow,
}
_UNARY_OPERATORS = {
    ast.UAdd: operator.pos,
    ast.USub: operator.neg,
}

MAX_EXPONENT = 1000

AUTO_MATHS_REGEXP = re.compile(r"^[\d ()*+./:^x-]+$")
_NON_ZERO_DIGIT = re.compile(r"[1-9]")
# dungeon party sizes like 4/5
_PARTY_SIZE = re.compile(r"^[0-5] */ *5$")


@dataclass
class Calculation:
    input: str
    output: float

    @property
    def formatted_output(self) -> str:
        if self.output == int(self.output) and abs(self.output) < 1e15:
            return f"{int(self.output):,}"
        return f"{self.output:,.4f}".rstrip("0").rstrip(".")


class MathsError(ValueError):
    pass


def _evaluate(node: ast.AST) -> float:
    if isinstance(node, ast.Expression):
        return _evaluate(node.body)

    if isinstance(node, ast.Constant) and isinstance(node.value, (int, float)):
        # floats only, so huge powers overflow instead of growing unbounded ints
        try:
            return float(node.value)
        except OverflowError as e:
            raise MathsError("number too large") from e

    if isinstance(node, ast.BinOp) and type(node.op) in _BINARY_OPERATORS:
        left, right = _evaluate(node.left), _evaluate(node.right)
        if isinstance(node.op, ast.Pow) and abs(right) > MAX_EXPONENT:
            raise MathsError("exponent too large")
        try:
            result = _BINARY_OPERATORS[type(node.op)](left, right)
        except (ZeroDivisionError, OverflowError) as e:
            raise MathsError(str(e)) from e
        # e.g. roots of negative numbers
        if isinstance(result, complex):
            raise MathsError("result is not a real number")
        return result

    if isinstance(node, ast.UnaryOp) and type(node.op) in _UNARY_OPERATORS:
        return _UNARY_OPERATORS[type(node.op)](_evaluate(node.operand))

    raise MathsError(f"unsupported expression: {ast.dump(node)}")


def calculate(expression: str) -> Calculation:
    """
    Raises:
        MathsError: if the expression is not plain arithmetic or can't be evaluated
    """
    parsed = expression.replace(" ", "")
    for old, new in _REPLACEMENTS:
        parsed = parsed.replace(old, new)

    try:
        tree = ast.parse(parsed, mode="eval")
    except (SyntaxError, ValueError) as e:
        raise MathsError(f"invalid expression: {expression}") from e

    try:
        output = float(_evaluate(tree))
    except OverflowError as e:
        raise MathsError("result is too large") from e
    if math.isnan(output) or math.isinf(output):
        raise MathsError("result is not a finite number")

    return Calculation(input=expression.replace(" ", ""), output=output)


def is_auto_maths_candidate(content: str) -> bool:
    """Looks like arithmetic, excluding ``0-0`` and party sizes like ``4/5``."""
    return bool(
        AUTO_MATHS_REGEXP.match(content)
        and _NON_ZERO_DIGIT.search(content)
        and not _PARTY_SIZE.match(content)
    )
