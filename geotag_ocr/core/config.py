from pydantic_settings import BaseSettings
from typing import List, Optional, Tuple
import json


class Settings(BaseSettings):
    """Application configuration settings"""

    # Application
    APP_NAME: str = "Geotag OCR Batch API"
    VERSION: str = "1.0.0"
    DEBUG: bool = False

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    # File Processing
    MAX_IMAGES_PER_REQUEST: int = 200
    TEMP_DIR: str = "./temp"
    EXPORT_DIR: str = "./exports"

    # Recognition engine pool
    OCR_LANGUAGES: str = '["en"]'  # JSON string
    OCR_GPU_ENABLED: bool = False
    OCR_POOL_SIZE: int = 3
    OCR_JOB_TIMEOUT_SECONDS: float = 0  # 0 = no per-job deadline
    OCR_WARMUP_ON_STARTUP: bool = True

    # Recognition cleanup
    OCR_MIN_CONFIDENCE: float = 0.0  # Drop detections below this (0.0 - 1.0)
    OCR_MAX_IMAGE_SIZE: int = 1920  # Resize images wider than this (0 = no resize)

    # Field extraction (deployment region)
    LATITUDE_RANGE: Tuple[float, float] = (23.0, 37.0)
    LONGITUDE_RANGE: Tuple[float, float] = (60.0, 78.0)

    # Supported Formats
    SUPPORTED_ARCHIVE_FORMATS: List[str] = ["zip", "rar", "7z", "tar", "gz", "bz2"]

    class Config:
        env_file = ".env"
        case_sensitive = True

    @property
    def ocr_languages_list(self) -> List[str]:
        """Parse OCR_LANGUAGES from JSON string"""
        try:
            return json.loads(self.OCR_LANGUAGES)
        except (json.JSONDecodeError, TypeError):
            return ["en"]

    @property
    def job_timeout(self) -> Optional[float]:
        """Per-job recognition deadline in seconds, or None when disabled"""
        return self.OCR_JOB_TIMEOUT_SECONDS if self.OCR_JOB_TIMEOUT_SECONDS > 0 else None


settings = Settings()
