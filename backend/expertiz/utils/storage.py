"""Media file storage."""
import os
import uuid
from datetime import datetime
from pathlib import Path

import aiofiles

from expertiz.config import get_settings

settings = get_settings()


class StorageService:
    """Local file storage for report media."""

    def __init__(self, base_dir: str | None = None, url_prefix: str | None = None):
        self.base_dir = Path(base_dir or settings.upload_dir)
        self.base_dir.mkdir(parents=True, exist_ok=True)
        self.url_prefix = url_prefix or f"{settings.api_prefix}/files"

    def _generate_filename(self, original_filename: str) -> str:
        """Generate unique filename with timestamp and UUID."""
        ext = Path(original_filename).suffix.lower()
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        unique_id = uuid.uuid4().hex[:8]
        return f"{timestamp}_{unique_id}{ext}"

    def _resolve(self, relative_path: str) -> Path:
        path = (self.base_dir / relative_path).resolve()
        # Reject paths escaping the upload directory.
        path.relative_to(self.base_dir.resolve())
        return path

    async def save_file(
        self,
        content: bytes,
        original_filename: str,
        subfolder: str = "media"
    ) -> tuple[str, str]:
        """
        Save file to storage.

        Returns:
            tuple: (relative_path, filename)
        """
        filename = self._generate_filename(original_filename)

        dir_path = self.base_dir / subfolder
        dir_path.mkdir(parents=True, exist_ok=True)

        async with aiofiles.open(dir_path / filename, "wb") as f:
            await f.write(content)

        return f"{subfolder}/{filename}", filename

    async def read_file(self, relative_path: str) -> bytes:
        async with aiofiles.open(self._resolve(relative_path), "rb") as f:
            return await f.read()

    async def delete_file(self, relative_path: str) -> bool:
        """Delete file from storage."""
        try:
            file_path = self._resolve(relative_path)
            if file_path.exists():
                os.remove(file_path)
                return True
            return False
        except (OSError, ValueError):
            return False

    def get_file_url(self, relative_path: str) -> str:
        """Public URL of a stored file (served by the API)."""
        return f"{self.url_prefix}/{relative_path}"

    def get_absolute_path(self, relative_path: str) -> Path:
        """Get absolute filesystem path for file."""
        return self._resolve(relative_path)


# Global storage instance
storage = StorageService()
