from pathlib import Path
from typing import Callable, List, Optional, Protocol, Set
from concurrent.futures import ThreadPoolExecutor
from contextlib import asynccontextmanager
import asyncio
import aiofiles
import logging

from geotag_ocr.core.exceptions import (
    PoolInitializationError,
    PoolNotInitializedError,
    RecognitionError,
    RecognitionTimeoutError,
)
from geotag_ocr.models.records import RawRecognitionResult, RecognitionJob

logger = logging.getLogger(__name__)


class RecognitionEngine(Protocol):
    """Anything that turns an image file into recognized text"""

    def recognize(self, job_id: str, image_path: Path) -> RawRecognitionResult:
        ...


class EnginePool:
    """
    Fixed-size pool of recognition engines

    Engines are built once, on the first call to initialize(). Every
    submitted job waits for an idle engine, runs on the pool's executor and
    hands the engine back when the underlying call returns, so an engine
    never holds more than one job.
    """

    def __init__(
        self,
        engine_factory: Callable[[], RecognitionEngine],
        temp_dir: str = "./temp",
        job_timeout: Optional[float] = None
    ):
        """
        Args:
            engine_factory: Builds one engine; called pool_size times from executor threads
            temp_dir: Directory for per-job image files
            job_timeout: Per-job recognition deadline in seconds (None = wait forever)
        """
        self._engine_factory = engine_factory
        self._temp_dir = Path(temp_dir)
        self._job_timeout = job_timeout
        self._init_lock = asyncio.Lock()
        self._engines: List[RecognitionEngine] = []
        self._idle: Optional[asyncio.Queue] = None
        self._executor: Optional[ThreadPoolExecutor] = None
        self._tasks: Set[asyncio.Task] = set()

    @property
    def initialized(self) -> bool:
        return self._idle is not None

    @property
    def size(self) -> int:
        return len(self._engines)

    @property
    def idle_count(self) -> int:
        return self._idle.qsize() if self._idle is not None else 0

    async def initialize(self, pool_size: int) -> "EnginePool":
        """
        Build pool_size engines concurrently and wait until all are ready

        Later calls, including ones racing the first, return the same pool.

        Raises:
            ValueError: If pool_size is not a positive integer
            PoolInitializationError: If any engine fails to load
        """
        if isinstance(pool_size, bool) or not isinstance(pool_size, int) or pool_size < 1:
            raise ValueError(f"pool_size must be a positive integer, got {pool_size!r}")

        if self.initialized:
            return self

        async with self._init_lock:
            if self.initialized:
                return self

            logger.info(f"Initializing recognition pool with {pool_size} engines")
            executor = ThreadPoolExecutor(max_workers=pool_size, thread_name_prefix="ocr-engine")
            loop = asyncio.get_running_loop()

            built = await asyncio.gather(
                *[loop.run_in_executor(executor, self._engine_factory) for _ in range(pool_size)],
                return_exceptions=True
            )

            failures = [b for b in built if isinstance(b, BaseException)]
            if failures:
                executor.shutdown(wait=False)
                logger.error(f"{len(failures)} of {pool_size} engines failed to load: {failures[0]}")
                raise PoolInitializationError(
                    f"Failed to initialize recognition engine: {failures[0]}"
                ) from failures[0]

            self._temp_dir.mkdir(parents=True, exist_ok=True)

            idle = asyncio.Queue()
            for engine in built:
                idle.put_nowait(engine)

            self._engines = list(built)
            self._executor = executor
            self._idle = idle

            logger.info(f"Recognition pool ready ({pool_size} engines)")

        return self

    def submit(self, job: RecognitionJob) -> asyncio.Future:
        """
        Queue a job and return a future for its RawRecognitionResult

        The future fails with RecognitionError if the engine raises; the
        pool itself keeps running.
        """
        if not self.initialized:
            raise PoolNotInitializedError("Recognition pool is not initialized")

        loop = asyncio.get_running_loop()
        future = loop.create_future()

        task = loop.create_task(self._run_job(job, future, self._idle, self._executor))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

        return future

    async def _run_job(
        self,
        job: RecognitionJob,
        future: asyncio.Future,
        idle: asyncio.Queue,
        executor: ThreadPoolExecutor
    ):
        # idle and executor belong to the pool generation that accepted the
        # job; after shutdown() its engines never enter a rebuilt pool
        engine = await idle.get()
        logger.debug(f"Job {job.job_id} ({job.image.name}) acquired engine, {idle.qsize()} idle")

        loop = asyncio.get_running_loop()

        try:
            async with self._staged_image(job) as image_path:
                call = loop.run_in_executor(executor, engine.recognize, job.job_id, image_path)

                if self._job_timeout is None:
                    result = await call
                else:
                    try:
                        result = await asyncio.wait_for(asyncio.shield(call), self._job_timeout)
                    except asyncio.TimeoutError:
                        logger.warning(f"Recognition of {job.image.name} exceeded {self._job_timeout:g}s")
                        _set_exception(
                            future,
                            RecognitionTimeoutError(job.job_id, job.image.name, self._job_timeout)
                        )
                        # The engine stays busy until the blocking call returns
                        try:
                            await call
                        except Exception as e:
                            logger.debug(f"Late failure for timed out job {job.job_id}: {e}")
                        return

            _set_result(future, result)

        except Exception as e:
            logger.error(f"Failed to recognize {job.image.name}: {e}")
            _set_exception(future, RecognitionError(job.job_id, job.image.name, e))

        finally:
            idle.put_nowait(engine)

    @asynccontextmanager
    async def _staged_image(self, job: RecognitionJob):
        """
        Write the job's image to a temp file for the engine to read,
        removing it when the job finishes
        """
        suffix = Path(job.image.name).suffix.lower() or ".img"
        image_path = self._temp_dir / f"job_{job.job_id}{suffix}"

        try:
            async with aiofiles.open(image_path, 'wb') as f:
                await f.write(job.image.content)
            yield image_path
        finally:
            try:
                image_path.unlink(missing_ok=True)
            except OSError as e:
                logger.error(f"Failed to remove {image_path}: {e}")

    def shutdown(self):
        """Release engines and the executor"""
        if self._executor is not None:
            self._executor.shutdown(wait=False)

        self._executor = None
        self._engines = []
        self._idle = None
        logger.info("Recognition pool shut down")


def _set_result(future: asyncio.Future, result: RawRecognitionResult):
    if not future.done():
        future.set_result(result)


def _set_exception(future: asyncio.Future, error: BaseException):
    if not future.done():
        future.set_exception(error)
