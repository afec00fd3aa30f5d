"""Text normalization shared by every field comparator."""

import re
import unicodedata
from typing import Optional

_NON_ALNUM = re.compile(r"[^a-z0-9 ]")
_WHITESPACE = re.compile(r"\s+")


def fold_text(text: Optional[str]) -> str:
    """Lower-case and strip diacritics ("Añejo" -> "anejo"), nothing else."""
    if not text:
        return ""
    decomposed = unicodedata.normalize("NFKD", text.lower())
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def normalize_text(text: Optional[str]) -> str:
    """
    Normalize text into a comparable form.

    - Lower-case, NFKD decomposition with combining marks removed
    - Every character outside [a-z0-9 ] becomes a space
    - Whitespace runs collapsed, ends trimmed

    Total and idempotent: normalize_text(normalize_text(x)) == normalize_text(x).
    """
    text = fold_text(text)
    text = _NON_ALNUM.sub(" ", text)
    return _WHITESPACE.sub(" ", text).strip()
