from pathlib import Path
from typing import Optional, Sequence
import csv
import io
import time
import logging

from geotag_ocr.core.exceptions import ExportError
from geotag_ocr.models.records import ExtractedRecord

logger = logging.getLogger(__name__)

CSV_MEDIA_TYPE = "text/csv; charset=utf-8"
EXPORT_PREFIX = "extracted_manhole_data_"

COLUMNS = ["Location/Plus Code", "Latitude", "Longitude", "Timestamp", "PICS"]


def record_row(record: ExtractedRecord) -> list:
    return [
        record.plus_code,
        record.latitude,
        record.longitude,
        record.timestamp,
        record.image_name,
    ]


def render_csv(records: Sequence[ExtractedRecord]) -> str:
    """Header row plus one row per record"""
    buffer = io.StringIO()
    writer = csv.writer(buffer)
    writer.writerow(COLUMNS)
    writer.writerows(record_row(r) for r in records)
    return buffer.getvalue()


class ExportService:
    """Writes successful records of a batch to a timestamped CSV file"""

    def __init__(self, export_dir: str = "./exports"):
        self.export_dir = Path(export_dir)

    def export_records(self, records: Sequence[ExtractedRecord]) -> Optional[Path]:
        """
        Write records to a new CSV file

        Returns:
            Path to the written file, or None when there is nothing to export

        Raises:
            ExportError: If the file cannot be written
        """
        if not records:
            logger.info("No successful records, skipping export")
            return None

        try:
            self.export_dir.mkdir(parents=True, exist_ok=True)
            path = self._unique_path()
            with open(path, 'w', encoding='utf-8', newline='') as f:
                f.write(render_csv(records))
        except OSError as e:
            raise ExportError(f"Failed to write export file: {e}") from e

        logger.info(f"Exported {len(records)} records to {path}")
        return path

    def resolve(self, filename: str) -> Optional[Path]:
        """Path of a previously written export, or None if it does not exist"""
        if Path(filename).name != filename or not filename.startswith(EXPORT_PREFIX):
            return None

        path = self.export_dir / filename
        return path if path.is_file() else None

    def _unique_path(self) -> Path:
        stem = f"{EXPORT_PREFIX}{int(time.time() * 1000)}"
        path = self.export_dir / f"{stem}.csv"

        counter = 1
        while path.exists():
            path = self.export_dir / f"{stem}_{counter}.csv"
            counter += 1

        return path
