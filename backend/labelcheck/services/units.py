"""Volume expression parsing (net contents -> milliliters)."""

import re
from typing import Optional

from .normalization import fold_text

ML_PER_FL_OZ = 29.5735

_NUMBER = r"(\d+(?:\.\d+)?)"

# Checked in order; the first pattern found anywhere in the text wins.
# "fl oz" must precede plain "oz".
VOLUME_PATTERNS = [
    (re.compile(_NUMBER + r"\s*ml\b"), 1.0),
    (re.compile(_NUMBER + r"\s*l\b"), 1000.0),
    (re.compile(_NUMBER + r"\s*fl\.?\s*oz\b"), ML_PER_FL_OZ),
    (re.compile(_NUMBER + r"\s*oz\b"), ML_PER_FL_OZ),  # assume fluid ounces
]

# Decimal points are significant here, so only punctuation other than "."
# is blanked out.
_NON_VOLUME = re.compile(r"[^a-z0-9. ]")
_WHITESPACE = re.compile(r"\s+")


def _fold_volume_text(text: str) -> str:
    text = _NON_VOLUME.sub(" ", fold_text(text))
    return _WHITESPACE.sub(" ", text).strip()


def to_milliliters(text: Optional[str]) -> Optional[float]:
    """
    Convert a volume expression to milliliters.

    Examples:
    - "750 ml" -> 750.0
    - "1.5 L" -> 1500.0
    - "12 FL. OZ" -> 354.882
    - "16 oz" -> 473.176

    Returns None when the text is empty or holds no recognizable volume.
    """
    folded = _fold_volume_text(text or "")
    if not folded:
        return None

    for pattern, factor in VOLUME_PATTERNS:
        match = pattern.search(folded)
        if match:
            return float(match.group(1)) * factor

    return None
