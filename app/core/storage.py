from __future__ import annotations

import logging
from functools import lru_cache
from pathlib import Path
import time
from uuid import uuid4

from app.core.config import get_settings
from app.services.exceptions import PayloadTooLarge, StorageUnavailable, UnsupportedMediaType


logger = logging.getLogger(__name__)

ALLOWED_EXTENSIONS = {".jpg", ".jpeg", ".png", ".gif", ".webp"}
DEFAULT_MAX_BYTES = 5 * 1024 * 1024


class AssetStore:
    """Image files on local disk, keyed by generated names.

    The store keeps no metadata. Callers persist the returned URL.
    """

    def __init__(self, root: Path, url_prefix: str = "/product-images", max_bytes: int = DEFAULT_MAX_BYTES):
        self.root = Path(root)
        self.url_prefix = "/" + url_prefix.strip("/")
        self.max_bytes = max_bytes

    def save(self, contents: bytes, original_name: str) -> str:
        ext = Path(original_name or "").suffix.lower()
        if ext not in ALLOWED_EXTENSIONS:
            raise UnsupportedMediaType(f"Unsupported file type: {ext or original_name!r}")
        if len(contents) > self.max_bytes:
            raise PayloadTooLarge(f"File larger than {self.max_bytes} bytes")

        file_name = f"{uuid4().hex}{ext}"
        try:
            self.root.mkdir(parents=True, exist_ok=True)
            with (self.root / file_name).open("xb") as buffer:
                buffer.write(contents)
        except OSError as exc:
            raise StorageUnavailable(f"Could not write {file_name}: {exc}") from exc
        logger.info("Stored image %s (%d bytes)", file_name, len(contents))
        return f"{self.url_prefix}/{file_name}"

    def delete(self, relative_path: str) -> bool:
        path = self.resolve(relative_path)
        if path is None:
            return False
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        except OSError as exc:
            logger.error("Failed to delete image file %s: %s", path, exc)
            return False
        logger.info("Deleted image file %s", path)
        return True

    def resolve(self, relative_path: str | None) -> Path | None:
        if not relative_path:
            return None
        # only the basename is honoured so a path can never leave the root
        safe_name = Path(relative_path).name
        if not safe_name or safe_name in {".", ".."}:
            return None
        return self.root / safe_name

    def exists(self, relative_path: str | None) -> bool:
        path = self.resolve(relative_path)
        return path is not None and path.is_file()

    def age_seconds(self, relative_path: str | None) -> float | None:
        """Seconds since the file was last written, or None when there is no file."""
        path = self.resolve(relative_path)
        if path is None:
            return None
        try:
            return time.time() - path.stat().st_mtime
        except FileNotFoundError:
            return None

    def list_files(self) -> list[str]:
        if not self.root.is_dir():
            return []
        return sorted(f"{self.url_prefix}/{path.name}" for path in self.root.iterdir() if path.is_file())


@lru_cache
def get_asset_store() -> AssetStore:
    settings = get_settings()
    return AssetStore(
        settings.product_image_dir,
        url_prefix=settings.PRODUCT_IMAGE_DIR_NAME,
        max_bytes=settings.PRODUCT_IMAGE_MAX_BYTES,
    )
