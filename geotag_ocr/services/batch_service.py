from typing import Callable, Optional, Sequence, Tuple, Union
import asyncio
import logging
import uuid

from geotag_ocr.core.exceptions import RecognitionError
from geotag_ocr.models.records import (
    BatchResult,
    ExtractedRecord,
    ImageInput,
    ProcessingFailure,
    RecognitionJob,
)
from geotag_ocr.services.engine_pool import EnginePool
from geotag_ocr.services.extraction_service import LATITUDE_RANGE, LONGITUDE_RANGE, extract, to_record

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]


class BatchCoordinator:
    """Runs one recognition job per image and collects per-image outcomes"""

    def __init__(
        self,
        pool: EnginePool,
        pool_size: int = 3,
        latitude_range: Tuple[float, float] = LATITUDE_RANGE,
        longitude_range: Tuple[float, float] = LONGITUDE_RANGE
    ):
        self.pool = pool
        self.pool_size = pool_size
        self.latitude_range = latitude_range
        self.longitude_range = longitude_range

    async def process_batch(
        self,
        images: Sequence[ImageInput],
        on_progress: Optional[ProgressCallback] = None
    ) -> BatchResult:
        """
        Process all images concurrently

        Args:
            images: Images to process
            on_progress: Called as on_progress(completed, total) after each image finishes

        Returns:
            BatchResult with one entry per image, in input order

        Raises:
            PoolInitializationError: If the engine pool cannot be built
        """
        if not images:
            return BatchResult()

        await self.pool.initialize(self.pool_size)

        total = len(images)
        completed = 0

        def job_finished():
            nonlocal completed
            completed += 1
            if on_progress is None:
                return
            try:
                on_progress(completed, total)
            except Exception as e:
                logger.error(f"Progress callback failed at {completed}/{total}: {e}")

        logger.info(f"Processing batch of {total} images on {self.pool.size} engines")

        entries = await asyncio.gather(
            *[self._process_one(image, job_finished) for image in images]
        )

        result = BatchResult(entries=list(entries))
        logger.info(f"Batch finished: {len(result.records)} records, {len(result.failures)} errors")

        return result

    async def _process_one(
        self,
        image: ImageInput,
        job_finished: Callable[[], None]
    ) -> Union[ExtractedRecord, ProcessingFailure]:
        job = RecognitionJob(job_id=uuid.uuid4().hex, image=image)

        try:
            raw = await self.pool.submit(job)
            fields = extract(raw.text, self.latitude_range, self.longitude_range)
            return to_record(image.name, raw.text, fields)

        except RecognitionError as e:
            return ProcessingFailure(
                image_name=image.name,
                job_id=job.job_id,
                error=f"{type(e.cause).__name__}: {e.cause}"
            )

        finally:
            job_finished()
