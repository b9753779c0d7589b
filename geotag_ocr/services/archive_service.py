from pathlib import Path
from fastapi import UploadFile
import zipfile
import tarfile
import rarfile
import py7zr
import aiofiles
import logging

logger = logging.getLogger(__name__)


class ArchiveService:
    """Unpacks uploaded archives of inspection photos"""

    def __init__(self):
        # Extension -> extractor
        self.extractors = {
            'zip': self._extract_zip,
            'tar': self._extract_tar,
            'gz': self._extract_tar,
            'bz2': self._extract_tar,
            '7z': self._extract_7z,
            'rar': self._extract_rar,
        }

        # rarfile shells out to the system unrar
        rarfile.UNRAR_TOOL = "unrar"

    def get_extension(self, filename: str) -> str:
        """Get file extension, handling .tar.gz and .tar.bz2"""
        filename_lower = filename.lower()

        if filename_lower.endswith('.tar.gz') or filename_lower.endswith('.tgz'):
            return 'gz'
        elif filename_lower.endswith('.tar.bz2'):
            return 'bz2'
        else:
            return Path(filename).suffix[1:].lower()

    def is_supported_archive(self, filename: str) -> bool:
        return bool(filename) and self.get_extension(filename) in self.extractors

    async def extract_archive(self, file: UploadFile, target_dir: Path) -> Path:
        """
        Save the upload into target_dir and unpack it there

        Returns:
            Directory holding the extracted files

        Raises:
            ValueError: If archive format is unsupported
            Exception: If extraction fails
        """
        extension = self.get_extension(file.filename)
        extractor = self.extractors.get(extension)
        if extractor is None:
            raise ValueError(f"Unsupported archive format: {extension}")

        archive_path = target_dir / Path(file.filename).name
        extract_dir = target_dir / "extracted"
        extract_dir.mkdir(parents=True, exist_ok=True)

        async with aiofiles.open(archive_path, 'wb') as f:
            await f.write(await file.read())

        logger.info(f"Extracting archive: {file.filename}")
        try:
            extractor(archive_path, extract_dir)
        finally:
            archive_path.unlink(missing_ok=True)

        return extract_dir

    def _extract_zip(self, archive_path: Path, extract_dir: Path):
        with zipfile.ZipFile(archive_path, 'r') as zip_ref:
            zip_ref.extractall(extract_dir)

    def _extract_tar(self, archive_path: Path, extract_dir: Path):
        """Extract TAR archive (including .tar.gz, .tar.bz2), rejecting unsafe members"""
        with tarfile.open(archive_path, 'r:*') as tar_ref:
            tar_ref.extractall(extract_dir, filter='data')

    def _extract_7z(self, archive_path: Path, extract_dir: Path):
        with py7zr.SevenZipFile(archive_path, 'r') as sz_ref:
            sz_ref.extractall(extract_dir)

    def _extract_rar(self, archive_path: Path, extract_dir: Path):
        with rarfile.RarFile(archive_path, 'r') as rar_ref:
            rar_ref.extractall(extract_dir)
