# routes/scientific_text.py
import re
import logging
from typing import List, Optional

from pydantic import BaseModel, Field

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# $...$, \(...\) and \[...\] are handed to the client's LaTeX renderer untouched
LATEX_PATTERN = re.compile(r"(\$[^$]+\$|\\\(.*?\\\)|\\\[.*?\\\])", re.DOTALL)

# Lightweight notation: H_{2}O, 10^{3}, x^2, CO_2, [a/b]
MARKUP_PATTERN = re.compile(r"(\^\{[^}]+\}|\^[\w]|_\{[^}]+\}|_[\w]|\[[^\]]+/[^\]]+\]|\n)")


class Segment(BaseModel):
    value: str
    type: str = Field(..., pattern="^(text|latex|sup|sub|frac|newline)$")
    original: Optional[str] = None
    numerator: Optional[str] = None
    denominator: Optional[str] = None


def _latex_inner(token: str) -> str:
    if token.startswith("$"):
        return token[1:-1]
    return token[2:-2]


def _markup_segment(part: str) -> Segment:
    if part == "\n":
        return Segment(value="", type="newline", original=part)
    if part.startswith("^{"):
        return Segment(value=part[2:-1], type="sup", original=part)
    if part.startswith("^"):
        return Segment(value=part[1:], type="sup", original=part)
    if part.startswith("_{"):
        return Segment(value=part[2:-1], type="sub", original=part)
    if part.startswith("_"):
        return Segment(value=part[1:], type="sub", original=part)
    if part.startswith("[") and "/" in part:
        split_point = part.index("/")
        num, den = part[1:split_point], part[split_point + 1:-1]
        return Segment(value=f"{num}/{den}", type="frac", original=part, numerator=num, denominator=den)
    return Segment(value=part, type="text", original=part)


def parse_scientific_text(content: str) -> List[Segment]:
    """
    Split question or option text into renderable segments.
    Args:
        content (str): Raw text with optional notation or LaTeX.
    Returns:
        list: Segments of type text, latex, sup, sub, frac or newline, in order.
              LaTeX segments carry their inner expression wrapped in \\( \\).
    """
    if not content or not isinstance(content, str):
        return []

    segments = []
    for chunk in LATEX_PATTERN.split(content):
        if not chunk:
            continue
        if LATEX_PATTERN.fullmatch(chunk):
            segments.append(Segment(value="\\(" + _latex_inner(chunk) + "\\)", type="latex", original=chunk))
            continue
        for part in MARKUP_PATTERN.split(chunk):
            if part:
                segments.append(_markup_segment(part))

    logger.debug(f"Parsed {len(segments)} segments from text of length {len(content)}")
    return segments
