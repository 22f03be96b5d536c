"""
Device-local key/value storage.
Each key is one file under ``STORAGE_DIR``; values are whole strings and every
write replaces the previous value atomically.
"""
import logging
import os
import re
import tempfile
from typing import Optional

from ..core.config import settings

logger = logging.getLogger(__name__)

_KEY_PATTERN = re.compile(r"^[\w\-.]+$")


class LocalStorage:
    """String values persisted under well-known keys."""

    def __init__(self, base_dir: Optional[str] = None):
        self.base_dir = base_dir or settings.STORAGE_DIR
        os.makedirs(self.base_dir, exist_ok=True)

    def _path(self, key: str) -> str:
        if not _KEY_PATTERN.match(key):
            raise ValueError(f"Invalid storage key: {key!r}")
        return os.path.join(self.base_dir, key)

    def get_item(self, key: str) -> Optional[str]:
        path = self._path(key)
        try:
            with open(path, "r", encoding="utf-8") as fh:
                return fh.read()
        except FileNotFoundError:
            return None

    def set_item(self, key: str, value: str) -> None:
        """Write to a temp file then rename over the key so readers never see a partial value."""
        path = self._path(key)
        fd, tmp_path = tempfile.mkstemp(dir=self.base_dir, prefix=f".{key}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(value)
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(tmp_path, path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

    def remove_item(self, key: str) -> None:
        try:
            os.unlink(self._path(key))
        except FileNotFoundError:
            pass

    def has_item(self, key: str) -> bool:
        return os.path.exists(self._path(key))
