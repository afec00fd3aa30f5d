"""Tests for fuzzy field matching."""

import pytest

from labelcheck.services.matching import (
    SCORERS,
    FieldMatch,
    match_confidence,
    match_field,
    partial_score,
    ratio_score,
    token_set_score,
    token_sort_score,
)


LABEL_TEXT = "OLD TOM DISTILLERY KENTUCKY STRAIGHT BOURBON WHISKEY 45% 750ml"


class TestScorers:
    """Each scorer is usable on its own."""

    def test_partial_score_finds_substring(self):
        assert partial_score("old tom", "old tom distillery est 1891") == 100

    def test_token_set_score_ignores_order_and_extra_words(self):
        assert token_set_score("tom old", "old tom distillery") == 100

    def test_token_sort_score_ignores_order(self):
        assert token_sort_score("distillery old tom", "old tom distillery") == 100

    def test_ratio_score_whole_string(self):
        assert ratio_score("bourbon", "bourbon") == 100
        assert ratio_score("abc", "xyz") == 0

    def test_scores_are_integer_percentages(self):
        for scorer in SCORERS:
            score = scorer("old tom distilery", "old tom distillery")
            assert isinstance(score, int)
            assert 0 <= score <= 100

    def test_reordered_words_beat_substring_alignment(self):
        needle, haystack = "straight bourbon kentucky", "kentucky straight bourbon"
        assert token_sort_score(needle, haystack) == 100
        assert partial_score(needle, haystack) < 100


class TestMatchField:
    """Test match_field."""

    def test_verbatim_match_is_100(self):
        result = match_field(LABEL_TEXT, "Old Tom Distillery", 100)
        assert result == FieldMatch(found=True, confidence=100)

    @pytest.mark.parametrize("needle", [
        "Kentucky Straight Bourbon Whiskey",
        "old-tom distillery",
        "WHISKEY",
        "45%",
    ])
    def test_contained_after_normalization_is_100(self, needle):
        assert match_confidence(LABEL_TEXT, needle) == 100

    def test_ocr_typo_still_found(self):
        result = match_field("OLD T0M DISTILLERY", "Old Tom Distillery", 60)
        assert result.found is True
        assert result.confidence < 100

    def test_unrelated_text_not_found(self):
        result = match_field(LABEL_TEXT, "zzzz qqqq", 60)
        assert result.found is False
        assert result.confidence < 60

    def test_empty_haystack_scores_zero(self):
        assert match_field("", "Old Tom Distillery", 60) == FieldMatch(found=False, confidence=0)

    def test_empty_needle_scores_zero(self):
        assert match_confidence(LABEL_TEXT, "") == 0
        assert match_confidence(LABEL_TEXT, "%%%") == 0

    def test_threshold_boundary_inclusive(self):
        confidence = match_confidence("OLD T0M DISTILLERY", "Old Tom Distillery")
        assert match_field("OLD T0M DISTILLERY", "Old Tom Distillery", confidence).found is True
        assert match_field("OLD T0M DISTILLERY", "Old Tom Distillery", confidence + 1).found is False

    def test_confidence_is_best_of_scorers(self):
        needle, haystack = "straight bourbon kentucky", "kentucky straight bourbon"
        expected = max(scorer(needle, haystack) for scorer in SCORERS)
        assert match_confidence(haystack, needle) == expected == 100
