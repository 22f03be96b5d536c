"""
Local attachment store for photos captured while offline.
Photos are written to ``ATTACHMENT_DIR`` keyed by a generated identifier and kept
until the submission that references them has been delivered.
"""
import asyncio
import glob
import logging
import mimetypes
import os
import re
import secrets
import string
import time
from dataclasses import dataclass
from typing import Optional

from ..core.config import settings

logger = logging.getLogger(__name__)

DEFAULT_CONTENT_TYPE = "image/jpeg"

_ID_ALPHABET = string.digits + string.ascii_lowercase
_ID_PATTERN = re.compile(r"^[\w\-]+$")


@dataclass
class Photo:
    """A binary attachment ready to be sent."""
    content: bytes
    filename: Optional[str] = None
    content_type: str = DEFAULT_CONTENT_TYPE

    @property
    def size(self) -> int:
        return len(self.content)


def generate_attachment_id() -> str:
    """``<epoch millis>-<6 base36 chars>``; collision resistant without a registry."""
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(6))
    return f"{int(time.time() * 1000)}-{suffix}"


def _extension_for(content_type: str) -> str:
    if content_type == "image/jpeg":
        return ".jpg"
    return mimetypes.guess_extension(content_type) or ".bin"


class AttachmentStore:
    """Keyed binary blob store; one file per attachment identifier."""

    def __init__(self, base_dir: Optional[str] = None):
        self.base_dir = base_dir or settings.ATTACHMENT_DIR
        os.makedirs(self.base_dir, exist_ok=True)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def save(self, blob, content_type: str = DEFAULT_CONTENT_TYPE) -> Optional[str]:
        """Persist ``blob`` and return its new identifier, or ``None`` if it is not storable."""
        if not isinstance(blob, (bytes, bytearray)):
            logger.warning("Attachment rejected: expected bytes, got %s", type(blob).__name__)
            return None
        if len(blob) == 0:
            logger.warning("Attachment rejected: blob has size 0")
            return None

        attachment_id = generate_attachment_id()
        await asyncio.to_thread(self._write, attachment_id, bytes(blob), content_type)
        logger.debug("Saved attachment %s (%d bytes)", attachment_id, len(blob))
        return attachment_id

    async def save_photo(self, photo: Photo) -> Optional[str]:
        return await self.save(photo.content, content_type=photo.content_type)

    async def get(self, attachment_id: str) -> Optional[Photo]:
        """Return the stored photo, or ``None`` when the identifier does not resolve."""
        path = self._find(attachment_id)
        if path is None:
            return None
        try:
            content = await asyncio.to_thread(self._read, path)
        except OSError as exc:
            logger.warning("Failed to read attachment %s: %s", attachment_id, exc)
            return None
        content_type = mimetypes.guess_type(path)[0] or DEFAULT_CONTENT_TYPE
        return Photo(content=content, filename=os.path.basename(path), content_type=content_type)

    async def delete(self, attachment_id: str) -> None:
        """Remove an attachment; unknown identifiers are ignored."""
        path = self._find(attachment_id)
        if path is None:
            return
        try:
            await asyncio.to_thread(os.unlink, path)
            logger.debug("Deleted attachment %s", attachment_id)
        except FileNotFoundError:
            pass

    def exists(self, attachment_id: str) -> bool:
        return self._find(attachment_id) is not None

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _find(self, attachment_id) -> Optional[str]:
        if not isinstance(attachment_id, str) or not _ID_PATTERN.match(attachment_id):
            return None
        matches = glob.glob(os.path.join(glob.escape(self.base_dir), f"{attachment_id}.*"))
        return matches[0] if matches else None

    def _write(self, attachment_id: str, content: bytes, content_type: str) -> None:
        filepath = os.path.join(self.base_dir, f"{attachment_id}{_extension_for(content_type)}")
        with open(filepath, "wb") as fh:
            fh.write(content)

    @staticmethod
    def _read(path: str) -> bytes:
        with open(path, "rb") as fh:
            return fh.read()
