"""OCR service using EasyOCR (PyTorch-based).

Implements the text-extraction contract the validation jobs rely on:
extract_text(image_bytes) always returns an OCRResult and never raises.
Missing, undecodable or unreadable images (and an uninitialized engine)
produce OCRResult.empty(), so comparison sees "nothing found" instead of a
transport-level error.
"""

import numpy as np
from typing import Optional, List
from dataclasses import dataclass, field
import logging
import os
import re
import threading
import time
import unicodedata

from ..config import get_settings
from .preprocessing import ImagePreprocessor

logger = logging.getLogger(__name__)


@dataclass
class OCRBox:
    """A detected text box with position and confidence."""
    text: str
    confidence: float  # 0-1, as reported by EasyOCR
    bbox: List[List[int]]  # [[x1,y1], [x2,y2], [x3,y3], [x4,y4]]

    @property
    def top(self) -> int:
        return min(p[1] for p in self.bbox)

    @property
    def left(self) -> int:
        return min(p[0] for p in self.bbox)

    @property
    def height(self) -> int:
        return max(p[1] for p in self.bbox) - self.top


@dataclass
class OCRResult:
    """Raw text recognized on a label image.

    confidence is 0-100 and informational only: it is logged, never used to
    gate matching decisions.
    """
    raw_text: str
    confidence: float
    boxes: List[OCRBox] = field(default_factory=list)

    @property
    def token_count(self) -> int:
        return len(self.boxes)

    @classmethod
    def empty(cls) -> "OCRResult":
        """Create empty result for failed OCR."""
        return cls(raw_text="", confidence=0.0)


class OCRService:
    """EasyOCR wrapper service."""

    _instance: Optional["OCRService"] = None
    _reader = None
    _initialized = False
    _lock = threading.Lock()
    _semaphore: Optional[threading.Semaphore] = None

    def __new__(cls):
        """Singleton pattern to reuse OCR engine."""
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self):
        self.settings = get_settings()
        self.preprocessor = ImagePreprocessor()
        # Initialize semaphore for concurrency control
        if self._semaphore is None:
            OCRService._semaphore = threading.Semaphore(self.settings.ocr_max_concurrent)

    def initialize(self) -> bool:
        """
        Initialize OCR engine. Call on app startup.
        Thread-safe initialization.

        Returns:
            True if initialization successful
        """
        with self._lock:
            if self._initialized:
                return True

            try:
                import easyocr
                import torch

                # Use available CPUs (from env or cpu_count), but cap at reasonable limit
                num_threads = int(os.environ.get('TORCH_NUM_THREADS', min(4, os.cpu_count() or 2)))
                torch.set_num_threads(num_threads)

                logger.info(f"Initializing EasyOCR engine with {num_threads} threads...")

                model_dir = os.environ.get('EASYOCR_MODULE_PATH')
                reader_kwargs = {"gpu": False, "verbose": False}
                if model_dir:
                    reader_kwargs["model_storage_directory"] = model_dir

                OCRService._reader = easyocr.Reader([self.settings.ocr_lang], **reader_kwargs)
                OCRService._initialized = True
                logger.info("EasyOCR initialized successfully")
                return True

            except Exception as e:
                logger.error(f"Failed to initialize EasyOCR: {e}")
                return False

    @property
    def is_ready(self) -> bool:
        """Check if OCR engine is ready."""
        return self._initialized and self._reader is not None

    def extract_text(self, image_bytes: Optional[bytes]) -> OCRResult:
        """
        Recognize the text printed on a label image.

        Args:
            image_bytes: Uploaded image file contents

        Returns:
            OCRResult; empty when the image is missing or unreadable
        """
        if not image_bytes:
            logger.warning("No image supplied to OCR")
            return OCRResult.empty()

        if not self.is_ready:
            logger.error("OCR engine not initialized")
            return OCRResult.empty()

        try:
            image = self.preprocessor.prepare_for_ocr(image_bytes)
        except Exception as e:
            logger.warning(f"Unable to decode label image: {e}")
            return OCRResult.empty()

        start_time = time.time()
        result = self._process_single(image)
        elapsed_ms = (time.time() - start_time) * 1000

        logger.info(
            f"OCR metrics: confidence={result.confidence:.0f}%, "
            f"tokens={result.token_count}, time={elapsed_ms:.0f}ms"
        )
        return result

    def _process_single(self, image: np.ndarray) -> OCRResult:
        """Run a single EasyOCR pass and assemble the raw text in reading order."""
        with self._semaphore:
            try:
                results = self._reader.readtext(
                    image,
                    decoder='greedy',  # Faster than beamsearch
                    batch_size=1,      # Predictable CPU usage
                    paragraph=False,
                )
            except Exception as e:
                logger.error(f"OCR processing failed: {e}")
                return OCRResult.empty()

        if not results:
            logger.warning("OCR returned no results")
            return OCRResult.empty()

        boxes = []
        for bbox_points, text, confidence in results:
            normalized_text = self._normalize_text(text)
            if not normalized_text:
                continue
            boxes.append(OCRBox(
                text=normalized_text,
                confidence=float(confidence),
                bbox=[[int(p[0]), int(p[1])] for p in bbox_points]
            ))

        if not boxes:
            return OCRResult.empty()

        # Sort by line, then left-to-right. Line height comes from the median
        # box height so words on the same printed line stay together.
        line_h = int(np.median([b.height for b in boxes]))
        line_h = max(12, min(line_h, 60))
        sorted_boxes = sorted(boxes, key=lambda b: (b.top // line_h, b.left))

        avg_confidence = sum(b.confidence for b in boxes) / len(boxes)
        return OCRResult(
            raw_text=" ".join(b.text for b in sorted_boxes),
            confidence=avg_confidence * 100,
            boxes=sorted_boxes,
        )

    def _normalize_text(self, text: str) -> str:
        """NFKC-normalize a recognized fragment and collapse its whitespace."""
        normalized = unicodedata.normalize('NFKC', text or "")
        return re.sub(r'\s+', ' ', normalized).strip()
