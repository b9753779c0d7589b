from pydantic import BaseModel
from typing import List, Optional

from geotag_ocr.models.records import ExtractedRecord


class ImageError(BaseModel):
    """Error encountered while processing an image"""
    filename: str
    error: str


class BatchResponse(BaseModel):
    """Response model for the batch extraction endpoint"""
    status: str  # "success" | "partial_success" | "failed"
    total_images: int
    processed_images: int
    records: List[ExtractedRecord]
    errors: Optional[List[ImageError]] = None
    export_file: Optional[str] = None
    processing_time_seconds: float
