"""Image validation and preparation for OCR.

- Upload validation (extension, size, decodability, minimum dimensions)
- Downscaling of large photos (keeps EasyOCR fast on CPU)
- Grayscale + light sharpening
- CLAHE, or adaptive thresholding for low-contrast / glossy labels
"""

import cv2
import numpy as np
from PIL import Image
import io
from typing import Optional, Tuple
import logging

from ..config import get_settings

logger = logging.getLogger(__name__)


class ImagePreprocessor:
    """Validates uploaded label images and prepares them for OCR."""

    def __init__(self):
        self.settings = get_settings()

    def validate_image(self, image_bytes: Optional[bytes], filename: str) -> Tuple[bool, str]:
        """
        Validate image meets requirements for upload.

        Returns:
            Tuple of (is_valid, error_message)
        """
        if not image_bytes:
            return False, "labelImage file is required"

        # Check file extension
        ext = filename.rsplit(".", 1)[-1].lower() if "." in filename else ""
        if ext not in self.settings.allowed_extensions:
            allowed = ", ".join(sorted(self.settings.allowed_extensions)).upper()
            return False, f"Invalid file type. Allowed formats: {allowed}"

        # Check file size against upload limit
        size_mb = len(image_bytes) / (1024 * 1024)
        if size_mb > self.settings.max_upload_size_mb:
            return False, f"Image exceeds {self.settings.max_upload_size_mb}MB upload limit. Please resize or compress."

        # Try to load image
        try:
            info = self.get_image_info(image_bytes)
        except Exception as e:
            return False, f"Unable to read image: {str(e)}"

        min_dim = self.settings.min_image_dimension
        if info["width"] < min_dim or info["height"] < min_dim:
            return False, f"Image too small. Minimum dimensions: {min_dim}x{min_dim} pixels."

        return True, ""

    def get_image_info(self, image_bytes: bytes) -> dict:
        """Get basic image information without full preprocessing."""
        pil_image = Image.open(io.BytesIO(image_bytes))
        return {
            "format": pil_image.format,
            "mode": pil_image.mode,
            "width": pil_image.width,
            "height": pil_image.height,
            "size_bytes": len(image_bytes),
        }

    def prepare_for_ocr(self, image_bytes: bytes) -> np.ndarray:
        """
        Decode and enhance an image for OCR.

        Raises whatever PIL raises for undecodable bytes; the OCR service
        turns that into an empty result.

        Returns:
            BGR image as numpy array
        """
        image = self._load_image(image_bytes)
        image = self._downscale(image)

        gray = cv2.cvtColor(image, cv2.COLOR_BGR2GRAY)
        sharpened = self._sharpen(gray)

        if gray.std() < self.settings.contrast_threshold:
            logger.debug("Low contrast image, using adaptive threshold")
            enhanced = self._adaptive_threshold(sharpened)
        else:
            clahe = cv2.createCLAHE(clipLimit=2.0, tileGridSize=(8, 8))
            enhanced = clahe.apply(sharpened)

        # EasyOCR accepts both, BGR is standard
        return cv2.cvtColor(enhanced, cv2.COLOR_GRAY2BGR)

    def _load_image(self, image_bytes: bytes) -> np.ndarray:
        """Load image from bytes."""
        # Use PIL to handle various formats, then convert to OpenCV
        pil_image = Image.open(io.BytesIO(image_bytes))
        if pil_image.mode != "RGB":
            pil_image = pil_image.convert("RGB")

        image = np.array(pil_image)
        return cv2.cvtColor(image, cv2.COLOR_RGB2BGR)

    def _downscale(self, image: np.ndarray) -> np.ndarray:
        """Clamp the longest side to max_image_dimension."""
        height, width = image.shape[:2]
        max_dim = self.settings.max_image_dimension
        if max(width, height) <= max_dim:
            return image

        scale = max_dim / max(width, height)
        new_size = (int(width * scale), int(height * scale))
        logger.debug(f"Resized image from {width}x{height} to {new_size[0]}x{new_size[1]}")
        return cv2.resize(image, new_size, interpolation=cv2.INTER_AREA)

    def _sharpen(self, image: np.ndarray) -> np.ndarray:
        """Apply light sharpening to enhance text edges."""
        # Unsharp masking - gentle sharpening
        gaussian = cv2.GaussianBlur(image, (0, 0), 2.0)
        return cv2.addWeighted(image, 1.3, gaussian, -0.3, 0)

    def _adaptive_threshold(self, image: np.ndarray) -> np.ndarray:
        """Adaptive threshold with Gaussian weighting, for uneven lighting."""
        return cv2.adaptiveThreshold(
            image,
            255,
            cv2.ADAPTIVE_THRESH_GAUSSIAN_C,
            cv2.THRESH_BINARY,
            blockSize=21,
            C=10
        )
