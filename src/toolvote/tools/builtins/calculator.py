"""Exact arithmetic over rational numbers."""

from __future__ import annotations

import ast
import operator
from fractions import Fraction
from typing import Callable

from pydantic import BaseModel, Field

from toolvote.tools.base import ProgressCallback, Tool, ToolResult

_BINARY: dict[type[ast.operator], Callable[[Fraction, Fraction], Fraction]] = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
    ast.FloorDiv: lambda left, right: Fraction(left // right),
    ast.Mod: operator.mod,
}
_UNARY: dict[type[ast.unaryop], Callable[[Fraction], Fraction]] = {
    ast.UAdd: operator.pos,
    ast.USub: operator.neg,
}


class CalculatorInput(BaseModel):
    expression: str = Field(description="Arithmetic expression, e.g. 2^3*4 or 1/3 + 1/6")


class CalculatorTool(Tool):
    name = "calculator"
    description = "Evaluate an arithmetic expression exactly, keeping fractions."
    input_schema = CalculatorInput
    tier = 1

    def run(self, data: BaseModel | dict, progress: ProgressCallback | None = None) -> ToolResult:
        expression = CalculatorInput.model_validate(data).expression
        value = evaluate_expression(expression)
        if value.denominator == 1:
            shown = str(value.numerator)
        else:
            shown = f"{value.numerator}/{value.denominator}"
        return ToolResult(
            output={
                "status": "success",
                "value": shown,
                "rational": f"{value.numerator}/{value.denominator}",
            }
        )


def evaluate_expression(expression: str) -> Fraction:
    """Evaluate ``expression``; ``^`` means power, as people usually type it."""
    try:
        tree = ast.parse(expression.replace("^", "**"), mode="eval")
    except SyntaxError as exc:
        raise ValueError(f"Cannot parse expression: {expression}") from exc
    return _evaluate(tree.body)


def _evaluate(node: ast.AST) -> Fraction:
    match node:
        case ast.Constant(value=bool()):
            raise ValueError("Booleans are not numbers here")
        case ast.Constant(value=int() | float() as number):
            return Fraction(str(number))
        case ast.UnaryOp(op=op, operand=operand) if type(op) in _UNARY:
            return _UNARY[type(op)](_evaluate(operand))
        case ast.BinOp(left=left, op=ast.Pow(), right=right):
            exponent = _evaluate(right)
            if exponent.denominator != 1:
                raise ValueError("Exponent must be an integer")
            return _evaluate(left) ** int(exponent)
        case ast.BinOp(left=left, op=op, right=right) if type(op) in _BINARY:
            return _BINARY[type(op)](_evaluate(left), _evaluate(right))
    raise ValueError(f"Unsupported expression: {ast.dump(node)[:40]}")
