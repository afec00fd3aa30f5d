"""Comparison engine: checks claimed label fields against OCR text."""

from dataclasses import dataclass, field
from typing import Dict, Optional
import logging

from .matching import match_field
from .normalization import normalize_text
from .units import to_milliliters
from .ocr import OCRResult
from ..models import LabelClaim
from ..config import Settings, get_settings

logger = logging.getLogger(__name__)

# Issue map keys (wire names of the claim fields)
BRAND_NAME = "brandName"
PRODUCT_CLASS = "productClass"
ALCOHOL_CONTENT = "alcoholContent"
NET_CONTENTS = "netContents"
GENERAL = "general"


@dataclass(frozen=True)
class ComparisonResult:
    """Verdict for one label: success iff no issues."""
    issues: Dict[str, str] = field(default_factory=dict)

    @property
    def success(self) -> bool:
        return not self.issues


def format_percent_value(value: float) -> str:
    """Render a number the way it is printed on labels: 45.0 -> "45", 12.5 -> "12.5"."""
    value = float(value)
    if value.is_integer():
        return str(int(value))
    return repr(value)


class ComparisonService:
    """
    Checks each claimed field against the OCR text of a single label.

    Pure and deterministic: the same (OCRResult, LabelClaim) pair always
    yields the same ComparisonResult.
    """

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()

    def compare(self, ocr_result: OCRResult, claim: LabelClaim) -> ComparisonResult:
        """
        Compare a claim with the OCR result of its label image.

        Args:
            ocr_result: Text recognized on the label
            claim: Submitted field values

        Returns:
            ComparisonResult with one issue per field that was not found
        """
        issues: Dict[str, str] = {}
        text = normalize_text(ocr_result.raw_text)

        logger.info(f"Comparing claim against OCR text ({len(text)} chars, "
                    f"OCR confidence {ocr_result.confidence:.0f}%)")
        logger.debug(f"Normalized OCR text: '{text}'")

        brand_issue = self._check_brand(text, claim.brand_name)
        if brand_issue:
            issues[BRAND_NAME] = brand_issue

        class_issue = self._check_product_class(text, claim.product_class)
        if class_issue:
            issues[PRODUCT_CLASS] = class_issue

        if isinstance(claim.alcohol_content, (int, float)):
            abv_issue = self._check_alcohol_content(text, claim.alcohol_content)
            if abv_issue:
                issues[ALCOHOL_CONTENT] = abv_issue

        if claim.net_contents:
            if self.settings.net_contents_mode == "unit":
                net_issue = self._check_net_contents_volume(ocr_result.raw_text, claim.net_contents)
            else:
                net_issue = self._check_net_contents_text(text, claim.net_contents)
            if net_issue:
                issues[NET_CONTENTS] = net_issue

        result = ComparisonResult(issues=issues)
        logger.info(f"Comparison completed. Success: {result.success}, Issues: {len(issues)}")
        return result

    def _check_brand(self, text: str, brand_name: str) -> Optional[str]:
        match = match_field(text, brand_name, self.settings.brand_match_threshold)
        logger.info(f"Brand match: '{brand_name}' -> {match.confidence}%")
        if not match.found:
            return f"Brand name not found in label (confidence: {match.confidence}%)"
        return None

    def _check_product_class(self, text: str, product_class: str) -> Optional[str]:
        match = match_field(text, product_class, self.settings.product_class_match_threshold)
        logger.info(f"Product class match: '{product_class}' -> {match.confidence}%")
        if not match.found:
            return f"Product class not found in label (confidence: {match.confidence}%)"
        return None

    def _check_alcohol_content(self, text: str, alcohol_content: float) -> Optional[str]:
        """
        Try "<value>%" first, then the bare number.

        Labels print ABV in many ways ("45% ALC/VOL", "ALC. 45 BY VOL"), so
        either candidate clearing the threshold counts.
        """
        threshold = self.settings.alcohol_content_match_threshold
        number = format_percent_value(alcohol_content)
        percent_text = f"{number}%"

        for candidate in (percent_text, number):
            match = match_field(text, candidate, threshold)
            logger.info(f"Alcohol content match: '{candidate}' -> {match.confidence}%")
            if match.found:
                return None

        return f'Alcohol content "{percent_text}" not found in label'

    def _check_net_contents_text(self, text: str, net_contents: str) -> Optional[str]:
        match = match_field(text, net_contents, self.settings.net_contents_match_threshold)
        logger.info(f"Volume match: '{net_contents}' -> {match.confidence}%")
        if not match.found:
            return (f'Net contents "{net_contents}" not found in label '
                    f"(confidence: {match.confidence}%)")
        return None

    def _check_net_contents_volume(self, raw_text: str, net_contents: str) -> Optional[str]:
        """
        Compare volumes after converting both sides to mL.

        Works on the raw OCR text because normalize_text drops decimal points.
        The label side is the first volume expression found in that text.
        Unparseable values are reported as mismatches, never raised.
        """
        claimed_ml = to_milliliters(net_contents)
        if claimed_ml is None:
            return f'Net contents "{net_contents}" is not a recognizable volume'

        label_ml = to_milliliters(raw_text)
        if label_ml is None:
            return f'Net contents "{net_contents}" not found in label (no volume detected)'

        difference = abs(label_ml - claimed_ml)
        logger.info(f"Volume comparison: label={label_ml:.1f} mL, claim={claimed_ml:.1f} mL")
        if difference > self.settings.net_contents_tolerance_ml:
            return (f'Net contents "{net_contents}" does not match label '
                    f"({label_ml:.0f} mL on label, {claimed_ml:.0f} mL claimed)")
        return None
