# routes/calculator.py
import math
import re
import logging

import sympy
from sympy.core.sympify import SympifyError
from sympy.parsing.sympy_parser import parse_expr
from tokenize import TokenError

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

ERROR = "Error"

FUNCTIONS = {
    "sin": sympy.sin,
    "cos": sympy.cos,
    "tan": sympy.tan,
    "log": lambda x: sympy.log(x, 10),
    "ln": sympy.log,
    "exp": sympy.exp,
    "sqrt": sympy.sqrt,
}

_FUNCTION_NAMES = re.compile(r"\b(" + "|".join(FUNCTIONS) + r")\b")
_ALLOWED = re.compile(r"^[0-9+\-*/().\s]*$")


def format_number(value: float) -> str:
    rounded = round(value, 6)
    if rounded == int(rounded):
        return str(int(rounded))
    return repr(rounded)


def evaluate(expression: str) -> str:
    """Evaluate a calculator expression. Returns "Error" instead of raising."""
    if not expression or not expression.strip():
        return ERROR
    expression = expression.replace("×", "*").replace("÷", "/")
    # Exponent operator is not a calculator key
    if "**" in expression or not _ALLOWED.match(_FUNCTION_NAMES.sub("", expression)):
        logger.info(f"Rejected calculator input: {expression!r}")
        return ERROR
    try:
        result = parse_expr(expression, local_dict=dict(FUNCTIONS), global_dict={"Integer": sympy.Integer, "Float": sympy.Float})
        value = float(sympy.N(result))
    except (SympifyError, SyntaxError, TypeError, ValueError, ZeroDivisionError, OverflowError, AttributeError, TokenError) as e:
        logger.info(f"Calculator could not evaluate {expression!r}: {e}")
        return ERROR
    if not math.isfinite(value):
        return ERROR
    return format_number(value)
