import ast
import math
import operator as op

from timetrack.errors import ValidationError

_ALLOWED_OPS = {
    ast.Add: op.add,
    ast.Sub: op.sub,
    ast.Mult: op.mul,
    ast.Div: op.truediv,
    ast.USub: op.neg,
    ast.UAdd: op.pos,
}


def parse_hours_expr(expr: str) -> float:
    """
    Parse a simple arithmetic expression safely.
    Allowed: numbers, + - * /, parentheses, unary +/-
    Examples: "1.5", "90/60", "(45+30)/60"
    """
    if expr is None:
        raise ValidationError("Hours are empty")

    s = str(expr).strip().replace(",", ".")
    if not s:
        raise ValidationError("Hours are empty")

    try:
        node = ast.parse(s, mode="eval").body
    except SyntaxError as e:
        raise ValidationError(f"Hours must be a number, got '{expr}'") from e

    def _eval(n):
        if isinstance(n, ast.Constant) and isinstance(n.value, (int, float)) and not isinstance(n.value, bool):
            return float(n.value)
        if isinstance(n, ast.UnaryOp) and type(n.op) in _ALLOWED_OPS:
            return _ALLOWED_OPS[type(n.op)](_eval(n.operand))
        if isinstance(n, ast.BinOp) and type(n.op) in _ALLOWED_OPS:
            return _ALLOWED_OPS[type(n.op)](_eval(n.left), _eval(n.right))
        raise ValidationError(f"Hours must be a number, got '{expr}'")

    try:
        return _eval(node)
    except ZeroDivisionError as e:
        raise ValidationError("Division by zero in hours") from e


def parse_hours(value) -> float:
    """Accept a number or an expression string; reject anything not strictly positive."""
    if isinstance(value, bool):
        raise ValidationError("Hours must be a number")
    if isinstance(value, (int, float)):
        hours = float(value)
    else:
        hours = parse_hours_expr(value)

    if not math.isfinite(hours):
        raise ValidationError("Hours must be a finite number")
    if hours <= 0:
        raise ValidationError(f"Hours must be greater than zero, got {hours:g}")
    return hours
