import easyocr
from pathlib import Path
from typing import List
import logging
import numpy as np
import cv2

from geotag_ocr.models.records import RawRecognitionResult

logger = logging.getLogger(__name__)


class EasyOCREngine:
    """One recognition engine handle backed by an EasyOCR reader"""

    def __init__(
        self,
        languages: List[str] = ['en'],
        gpu: bool = False,
        min_confidence: float = 0.0,
        max_image_size: int = 1920
    ):
        """
        Load EasyOCR models for this handle

        Args:
            languages: List of language codes (e.g., ['en', 'ur'])
            gpu: Use GPU acceleration if available
            min_confidence: Minimum confidence threshold (0.0 - 1.0)
            max_image_size: Maximum image width in pixels (resize if larger, 0 = no resize)
        """
        logger.info(f"Loading EasyOCR reader with languages: {languages}, GPU: {gpu}")
        self.reader = easyocr.Reader(
            languages,
            gpu=gpu,
            verbose=False
        )
        self.min_confidence = min_confidence
        self.max_image_size = max_image_size

    def recognize(self, job_id: str, image_path: Path) -> RawRecognitionResult:
        """
        Run recognition on one image. Blocking; called from an executor thread.

        Returns:
            RawRecognitionResult with text lines joined by newlines,
            average confidence and the raw detections
        """
        detections = self._read_image(str(image_path))

        if self.min_confidence > 0:
            detections = [d for d in detections if d[2] >= self.min_confidence]

        if not detections:
            return RawRecognitionResult(job_id=job_id, text='', confidence=0.0, details=[])

        lines = [str(d[1]).strip() for d in detections]
        confidences = [float(d[2]) for d in detections]

        return RawRecognitionResult(
            job_id=job_id,
            text='\n'.join(lines),
            confidence=sum(confidences) / len(confidences),
            details=[
                {'box': np.asarray(d[0]).tolist(), 'text': str(d[1]), 'confidence': float(d[2])}
                for d in detections
            ]
        )

    def _read_image(self, image_path: str) -> List:
        """
        Decode the image and pass the array to EasyOCR
        Uses cv2.imdecode to support Unicode file paths
        """
        with open(image_path, 'rb') as f:
            image_data = np.frombuffer(f.read(), np.uint8)

        image = cv2.imdecode(image_data, cv2.IMREAD_COLOR)

        if image is None:
            raise ValueError(f"Failed to decode image: {Path(image_path).name}")

        # Resize large images, recognition time grows with pixel count
        if self.max_image_size > 0:
            height, width = image.shape[:2]
            if width > self.max_image_size:
                scale = self.max_image_size / width
                new_width = self.max_image_size
                new_height = int(height * scale)
                image = cv2.resize(image, (new_width, new_height), interpolation=cv2.INTER_AREA)
                logger.debug(f"Resized image from {width}x{height} to {new_width}x{new_height}")

        return self.reader.readtext(image)
