import logging
import os
import uuid
from pathlib import Path

from app.config import settings
from app.errors import InvalidInputError
from app.schemas.document import StoredFile

logger = logging.getLogger(__name__)


def get_allowed_extensions() -> set[str]:
    return {
        ext.strip().lower().lstrip(".")
        for ext in settings.upload_allowed_extensions.split(",")
        if ext.strip()
    }


class LocalStorage:
    """Stores uploaded blobs as files under a single upload directory."""

    def __init__(self, upload_dir: str | None = None, max_size_bytes: int | None = None):
        self.upload_dir = upload_dir or settings.upload_dir
        self.max_size_bytes = max_size_bytes or settings.upload_max_size_bytes

    def validate_upload(self, file_name: str | None, size: int) -> None:
        if not file_name:
            raise InvalidInputError("File is required")
        ext = Path(file_name).suffix.lower().lstrip(".")
        if ext not in get_allowed_extensions():
            raise InvalidInputError(
                "Only image and document files are allowed!",
                details={"allowed": sorted(get_allowed_extensions())},
            )
        if size > self.max_size_bytes:
            raise InvalidInputError(
                "File too large",
                details={"max_size_bytes": self.max_size_bytes},
            )

    @staticmethod
    def generate_file_name(original_name: str) -> str:
        path = Path(original_name)
        stem = path.name.split(".")[0] or "file"
        return f"{stem}-{uuid.uuid4()}{path.suffix}"

    def save(self, content: bytes, original_name: str, mime_type: str) -> StoredFile:
        self.validate_upload(original_name, len(content))

        upload_dir = Path(self.upload_dir)
        upload_dir.mkdir(parents=True, exist_ok=True)

        filename = self.generate_file_name(original_name)
        file_path = upload_dir / filename
        with open(file_path, "wb") as f:
            f.write(content)

        logger.info("Stored upload %s (%d bytes)", filename, len(content))
        return StoredFile(
            filename=filename,
            original_name=original_name,
            mime_type=mime_type or "application/octet-stream",
            size=len(content),
            file_path=str(file_path),
        )

    @staticmethod
    def exists(file_path: str | None) -> bool:
        return bool(file_path) and Path(file_path).is_file()

    @staticmethod
    def size(file_path: str) -> int:
        return Path(file_path).stat().st_size

    @staticmethod
    def delete(file_path: str | None) -> bool:
        if not LocalStorage.exists(file_path):
            return False
        os.remove(file_path)
        return True


storage = LocalStorage()
