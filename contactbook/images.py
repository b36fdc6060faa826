"""Contact image storage on the local filesystem.

Files are written under ``MEDIA_ROOT`` with generated names and served
back through the static mount at ``MEDIA_URL``. Paths handed out and
accepted are relative to ``MEDIA_ROOT``.
"""

import os
import uuid

import structlog

from .core import get_settings
from .errors import StorageFailure

logger = structlog.get_logger(__name__)


class ImageStore:
    """Writes and removes image blobs below a root directory."""

    def __init__(self, root: str, directory: str = "contacts"):
        self.root = os.path.abspath(root)
        self.directory = directory

    def _resolve(self, path: str) -> str | None:
        full = os.path.abspath(os.path.join(self.root, path))
        if os.path.commonpath([self.root, full]) != self.root:
            return None
        return full

    def store(self, data: bytes, extension: str) -> str:
        """
        Write ``data`` under a fresh name and return its relative path.

        Args:
            data (bytes): File content.
            extension (str): Original file extension, with or without dot.

        Raises:
            StorageFailure: If the file cannot be written.

        Returns:
            str: Path relative to the store root, e.g. ``contacts/<hex>.png``.
        """
        extension = extension.lstrip(".").lower()
        filename = uuid.uuid4().hex + (f".{extension}" if extension else "")
        relative = f"{self.directory}/{filename}"
        full = os.path.join(self.root, self.directory, filename)
        try:
            os.makedirs(os.path.dirname(full), exist_ok=True)
            with open(full, "wb") as f:
                f.write(data)
        except OSError as e:
            raise StorageFailure("Could not store image") from e
        logger.info("Image stored", path=relative, size=len(data))
        return relative

    def delete(self, path: str | None) -> None:
        """Remove a stored blob. Missing paths and ``None`` are ignored."""
        if not path:
            return
        full = self._resolve(path)
        if full is None:
            logger.warning("Refusing to delete path outside media root", path=path)
            return
        try:
            os.remove(full)
        except FileNotFoundError:
            return
        except OSError as e:
            raise StorageFailure("Could not delete image") from e
        logger.info("Image deleted", path=path)

    def exists(self, path: str | None) -> bool:
        if not path:
            return False
        full = self._resolve(path)
        return full is not None and os.path.isfile(full)


def get_image_store() -> ImageStore:
    """FastAPI dependency returning the configured image store."""
    settings = get_settings()
    return ImageStore(settings.MEDIA_ROOT, settings.CONTACT_IMAGE_DIR)
