"""Fuzzy matching of claimed field values against raw OCR text.

OCR output is noisy: misread characters, merged lines, and packaging text
surrounding the claimed values. Each scorer below handles a different kind of
corruption, and a field counts as found when any one of them clears the bar.
"""

from dataclasses import dataclass
from typing import Callable, Tuple
import logging

from rapidfuzz import fuzz

from .normalization import normalize_text

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FieldMatch:
    """Outcome of matching one field value against the label text."""
    found: bool
    confidence: int  # 0-100


def partial_score(needle: str, haystack: str) -> int:
    """Best-aligned substring similarity (handles boilerplate around the value)."""
    return round(fuzz.partial_ratio(needle, haystack))


def token_set_score(needle: str, haystack: str) -> int:
    """Order- and duplicate-insensitive token overlap (handles missing words)."""
    return round(fuzz.token_set_ratio(needle, haystack))


def token_sort_score(needle: str, haystack: str) -> int:
    """Whole-string similarity after sorting tokens (handles reordered words)."""
    return round(fuzz.token_sort_ratio(needle, haystack))


def ratio_score(needle: str, haystack: str) -> int:
    """Plain edit-distance similarity of the two whole strings."""
    return round(fuzz.ratio(needle, haystack))


SCORERS: Tuple[Callable[[str, str], int], ...] = (
    partial_score,
    token_set_score,
    token_sort_score,
    ratio_score,
)


def match_confidence(haystack: str, needle: str) -> int:
    """
    Best similarity of needle inside haystack across all SCORERS.

    Both operands are normalized first. Empty text on either side scores 0.
    """
    normalized_needle = normalize_text(needle)
    normalized_haystack = normalize_text(haystack)
    if not normalized_needle or not normalized_haystack:
        return 0

    return max(scorer(normalized_needle, normalized_haystack) for scorer in SCORERS)


def match_field(haystack: str, needle: str, threshold: float) -> FieldMatch:
    """
    Decide whether a claimed value appears in the OCR text.

    Args:
        haystack: OCR text (raw or already normalized)
        needle: Claimed field value as submitted
        threshold: Minimum confidence (0-100) to count as found

    Returns:
        FieldMatch with found = confidence >= threshold
    """
    confidence = match_confidence(haystack, needle)
    logger.debug(f"Match '{needle}' -> {confidence}% (threshold {threshold})")
    return FieldMatch(found=confidence >= threshold, confidence=confidence)
