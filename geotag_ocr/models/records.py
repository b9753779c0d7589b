from pydantic import BaseModel, ConfigDict, Field
from typing import Any, List, Union

NOT_FOUND = "Not found"


class ImageInput(BaseModel):
    """One input image with its display name"""
    name: str
    content: bytes


class RecognitionJob(BaseModel):
    """Unit of recognition work submitted to the engine pool"""
    job_id: str
    image: ImageInput


class RawRecognitionResult(BaseModel):
    """Text and diagnostics returned by a recognition engine for one job"""
    model_config = ConfigDict(frozen=True)

    job_id: str
    text: str
    confidence: float = 0.0
    details: List[Any] = Field(default_factory=list)


class ExtractedRecord(BaseModel):
    """Structured fields recovered from one image"""
    model_config = ConfigDict(frozen=True)

    image_name: str
    plus_code: str = NOT_FOUND
    latitude: str = NOT_FOUND
    longitude: str = NOT_FOUND
    timestamp: str = NOT_FOUND
    original_text: str = ""


class ProcessingFailure(BaseModel):
    """Failure marker for an image whose recognition did not succeed"""
    model_config = ConfigDict(frozen=True)

    image_name: str
    job_id: str
    error: str


class BatchResult(BaseModel):
    """Per-image outcomes of one batch, in input order"""
    entries: List[Union[ExtractedRecord, ProcessingFailure]] = Field(default_factory=list)

    @property
    def records(self) -> List[ExtractedRecord]:
        return [e for e in self.entries if isinstance(e, ExtractedRecord)]

    @property
    def failures(self) -> List[ProcessingFailure]:
        return [e for e in self.entries if isinstance(e, ProcessingFailure)]

    def __len__(self) -> int:
        return len(self.entries)
