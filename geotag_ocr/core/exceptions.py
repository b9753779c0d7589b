"""
Exceptions raised by the recognition pool and batch pipeline.
"""


class GeotagOCRError(Exception):
    """Base exception for all batch OCR errors"""
    pass


class PoolInitializationError(GeotagOCRError):
    """Raised when the recognition engine pool cannot be constructed"""
    pass


class PoolNotInitializedError(GeotagOCRError):
    """Raised when a job is submitted before the pool is ready"""
    pass


class RecognitionError(GeotagOCRError):
    """Raised when recognition of a single job fails"""

    def __init__(self, job_id: str, image_name: str, cause: BaseException):
        self.job_id = job_id
        self.image_name = image_name
        self.cause = cause
        super().__init__(f"Recognition failed for {image_name}: {cause}")


class RecognitionTimeoutError(RecognitionError):
    """Raised when a job exceeds the configured recognition deadline"""

    def __init__(self, job_id: str, image_name: str, timeout: float):
        self.timeout = timeout
        super().__init__(
            job_id,
            image_name,
            TimeoutError(f"no result after {timeout:g}s"),
        )


class ExportError(GeotagOCRError):
    """Raised when the export file cannot be written"""
    pass
