from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
from functools import partial
import shutil
from pathlib import Path
import logging

from geotag_ocr.core.config import settings
from geotag_ocr.api.endpoints import batch
from geotag_ocr.services.engine_pool import EnginePool
from geotag_ocr.services.recognition_engine import EasyOCREngine

# Configure logging
logging.basicConfig(
    level=logging.INFO if not settings.DEBUG else logging.DEBUG,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

logger = logging.getLogger(__name__)


def create_engine_pool() -> EnginePool:
    """Engine pool configured from settings, not yet initialized"""
    engine_factory = partial(
        EasyOCREngine,
        languages=settings.ocr_languages_list,
        gpu=settings.OCR_GPU_ENABLED,
        min_confidence=settings.OCR_MIN_CONFIDENCE,
        max_image_size=settings.OCR_MAX_IMAGE_SIZE
    )
    return EnginePool(
        engine_factory,
        temp_dir=settings.TEMP_DIR,
        job_timeout=settings.job_timeout
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager
    Owns the temp directory and the recognition engine pool
    """
    logger.info("Starting up Geotag OCR API...")
    temp_dir = Path(settings.TEMP_DIR)

    if temp_dir.exists():
        logger.info(f"Cleaning existing temp directory: {temp_dir}")
        shutil.rmtree(temp_dir, ignore_errors=True)

    temp_dir.mkdir(parents=True, exist_ok=True)
    Path(settings.EXPORT_DIR).mkdir(parents=True, exist_ok=True)

    if getattr(app.state, "engine_pool", None) is None:
        app.state.engine_pool = create_engine_pool()

    if settings.OCR_WARMUP_ON_STARTUP:
        # Startup fails outright if the engines cannot be loaded
        await app.state.engine_pool.initialize(settings.OCR_POOL_SIZE)

    yield

    logger.info("Shutting down Geotag OCR API...")
    app.state.engine_pool.shutdown()

    if temp_dir.exists():
        logger.info(f"Cleaning temp directory: {temp_dir}")
        shutil.rmtree(temp_dir, ignore_errors=True)


# Create FastAPI application
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.VERSION,
    description="Batch OCR for inspection photos. Extracts plus-codes, coordinates and timestamps into a CSV export.",
    lifespan=lifespan
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(
    batch.router,
    prefix="/api/v1/batch",
    tags=["Batch"]
)


@app.get("/")
async def root():
    """Root endpoint with API information"""
    return {
        "name": settings.APP_NAME,
        "version": settings.VERSION,
        "status": "running",
        "docs": "/docs",
        "extract_endpoint": "/api/v1/batch/extract"
    }


@app.get("/health")
async def health(request: Request):
    """Health check endpoint"""
    pool = request.app.state.engine_pool
    return {
        "status": "healthy",
        "version": settings.VERSION,
        "engine_pool": {
            "initialized": pool.initialized,
            "size": pool.size,
            "idle": pool.idle_count
        }
    }


def run():
    """Serve the API with uvicorn using HOST/PORT from settings"""
    import uvicorn

    uvicorn.run(app, host=settings.HOST, port=settings.PORT)
