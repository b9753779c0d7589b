from fastapi import APIRouter, UploadFile, File, HTTPException, Request, status
from fastapi.responses import FileResponse
from typing import List, Optional
import time
from pathlib import Path
import shutil
import uuid
import logging
from contextlib import asynccontextmanager

from geotag_ocr.core.config import settings
from geotag_ocr.core.exceptions import ExportError, PoolInitializationError
from geotag_ocr.models.responses import BatchResponse, ImageError
from geotag_ocr.services.archive_service import ArchiveService
from geotag_ocr.services.batch_service import BatchCoordinator
from geotag_ocr.services.export_service import CSV_MEDIA_TYPE, ExportService
from geotag_ocr.services.image_service import ImageService

logger = logging.getLogger(__name__)

router = APIRouter()

archive_service = ArchiveService()
image_service = ImageService()
export_service = ExportService(export_dir=settings.EXPORT_DIR)


@asynccontextmanager
async def temporary_directory(base_dir: Path):
    """
    Context manager for temporary directory with guaranteed cleanup
    """
    temp_dir = base_dir / f"upload_{uuid.uuid4().hex}"
    temp_dir.mkdir(parents=True, exist_ok=True)

    try:
        yield temp_dir
    finally:
        shutil.rmtree(temp_dir, ignore_errors=True)
        logger.debug(f"Cleaned up temporary directory: {temp_dir}")


def log_progress(completed: int, total: int):
    logger.debug(f"Batch progress: {completed}/{total}")


@router.post("/extract", response_model=BatchResponse)
async def extract_fields_from_images(
    request: Request,
    archive: Optional[UploadFile] = File(None),
    images: Optional[List[UploadFile]] = File(None)
):
    """
    Recognize inspection photos and extract plus-code, coordinates and timestamp

    Accepts either:
    - Single archive file (ZIP, RAR, 7Z, TAR)
    - Multiple image files (PNG, JPEG)

    Successful records are written to a CSV export; the response names the
    file, or has export_file=null when no image succeeded.
    """
    start_time = time.time()

    if not archive and not images:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Either 'archive' or 'images' must be provided"
        )

    if archive and images:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Provide either 'archive' OR 'images', not both"
        )

    inputs = []

    try:
        if archive:
            logger.info(f"Processing archive: {archive.filename}")

            if not archive_service.is_supported_archive(archive.filename):
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail=f"Unsupported archive format. Supported: {', '.join(settings.SUPPORTED_ARCHIVE_FORMATS)}"
                )

            async with temporary_directory(Path(settings.TEMP_DIR)) as temp_dir:
                try:
                    extract_dir = await archive_service.extract_archive(archive, temp_dir)
                    inputs = image_service.load_images_recursive(extract_dir)
                except Exception as e:
                    logger.error(f"Archive extraction failed: {e}")
                    raise HTTPException(
                        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                        detail=f"Failed to extract archive: {str(e)}"
                    )

        else:
            logger.info(f"Processing {len(images)} uploaded images")

            for img_file in images:
                image = await image_service.read_uploaded_image(img_file)
                if image is None:
                    logger.warning(f"Skipping invalid image: {img_file.filename}")
                    continue
                inputs.append(image)

        if not inputs:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="No valid PNG or JPEG images found"
            )

        if len(inputs) > settings.MAX_IMAGES_PER_REQUEST:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Too many images. Maximum: {settings.MAX_IMAGES_PER_REQUEST}, Found: {len(inputs)}"
            )

        coordinator = BatchCoordinator(
            request.app.state.engine_pool,
            pool_size=settings.OCR_POOL_SIZE,
            latitude_range=settings.LATITUDE_RANGE,
            longitude_range=settings.LONGITUDE_RANGE
        )

        try:
            batch = await coordinator.process_batch(inputs, on_progress=log_progress)
        except PoolInitializationError as e:
            logger.error(f"Recognition pool unavailable: {e}")
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail=str(e)
            )

        records = batch.records
        failures = batch.failures
        export_path = export_service.export_records(records)

        if not records:
            response_status = "failed"
        elif failures:
            response_status = "partial_success"
        else:
            response_status = "success"

        image_errors = [
            ImageError(filename=f.image_name, error=f.error)
            for f in failures
        ] if failures else None

        return BatchResponse(
            status=response_status,
            total_images=len(inputs),
            processed_images=len(records),
            records=records,
            errors=image_errors,
            export_file=export_path.name if export_path else None,
            processing_time_seconds=round(time.time() - start_time, 2)
        )

    except HTTPException:
        raise
    except ExportError as e:
        logger.error(f"Export failed: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(e)
        )
    except Exception as e:
        logger.error(f"Batch processing failed: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Processing failed: {str(e)}"
        )


@router.get("/exports/{filename}")
async def download_export(filename: str):
    """Download a CSV produced by /extract"""
    path = export_service.resolve(filename)
    if path is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Export not found: {filename}"
        )

    return FileResponse(path, media_type=CSV_MEDIA_TYPE, filename=path.name)
