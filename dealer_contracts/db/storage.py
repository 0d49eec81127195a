"""Local filesystem storage, the counterpart of Supabase Storage in sqlite mode"""

import logging
from pathlib import Path, PurePosixPath
from typing import Optional

from dealer_contracts.db.base import StorageInterface
from dealer_contracts.utils.config import get_settings

logger = logging.getLogger(__name__)


class LocalStorage(StorageInterface):
    """Stores objects as files below `root`; URLs are file:// URIs."""

    def __init__(self, root: Optional[str] = None):
        self.root = Path(root or get_settings().storage_path).resolve()

    def _resolve(self, path: str) -> Path:
        relative = PurePosixPath(path)
        if relative.is_absolute() or ".." in relative.parts:
            raise ValueError(f"Invalid storage path: {path}")
        return self.root.joinpath(*relative.parts)

    def put(self, path: str, data: bytes, content_type: str = "application/pdf") -> str:
        target = self._resolve(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(data)
        logger.info(f"Stored {path} ({len(data)} bytes, {content_type})")
        return target.as_uri()

    def get_url(self, path: str, ttl: Optional[int] = None) -> str:
        return self._resolve(path).as_uri()

    def get(self, path: str) -> bytes:
        return self._resolve(path).read_bytes()

    def remove(self, path: str) -> None:
        self._resolve(path).unlink()
