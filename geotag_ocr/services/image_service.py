from pathlib import Path
from typing import List, Optional
from fastapi import UploadFile
from PIL import Image
import io
import logging

from geotag_ocr.models.records import ImageInput

logger = logging.getLogger(__name__)


class ImageService:
    """Service for finding, validating and loading input images"""

    SUPPORTED_EXTENSIONS = {'.png', '.jpg', '.jpeg'}

    def is_supported_name(self, filename: Optional[str]) -> bool:
        return bool(filename) and Path(filename).suffix.lower() in self.SUPPORTED_EXTENSIONS

    def is_valid_image(self, content: bytes) -> bool:
        """
        Validate that bytes decode as an image

        Args:
            content: Raw file content

        Returns:
            True if valid image, False otherwise
        """
        try:
            img = Image.open(io.BytesIO(content))
            img.verify()
            return True
        except Exception as e:
            logger.debug(f"Image validation failed: {e}")
            return False

    def load_images_recursive(self, root_dir: Path) -> List[ImageInput]:
        """
        Recursively load all valid PNG and JPEG images under a directory

        Names are relative to root_dir so nested archive folders stay visible
        in the export. Results are sorted by name.
        """
        images = []

        for item in sorted(root_dir.rglob('*')):
            if not item.is_file() or not self.is_supported_name(item.name):
                continue

            content = item.read_bytes()
            if not self.is_valid_image(content):
                logger.warning(f"Skipping invalid image file: {item.name}")
                continue

            images.append(ImageInput(name=item.relative_to(root_dir).as_posix(), content=content))

        return images

    async def read_uploaded_image(self, file: UploadFile) -> Optional[ImageInput]:
        """
        Read an uploaded file as an image input

        Returns:
            ImageInput, or None if the upload is not a valid PNG/JPEG
        """
        if file.content_type and not file.content_type.startswith('image/'):
            logger.debug(f"Invalid content type: {file.content_type}")
            return None

        if not self.is_supported_name(file.filename):
            logger.debug(f"Unsupported file name: {file.filename}")
            return None

        content = await file.read()
        if not self.is_valid_image(content):
            return None

        return ImageInput(name=Path(file.filename).name, content=content)
