"""Storage for files uploaded during onboarding (logo, inventory sheet).

The step controller only needs `store(category, filename, data) ->
reference`; the reference is what lands on the record. LocalUploadStore
writes under `settings.upload_dir`:

    <upload_dir>/<category>/<32 hex chars>-<sanitised name>

and returns the path relative to `upload_dir`. Name collisions between
sellers are impossible because of the random prefix.
"""

import asyncio
import logging
import re
import uuid
from pathlib import Path
from typing import Protocol

from sellerboard.config import settings
from sellerboard.middleware.exceptions import UploadError

logger = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


def safe_filename(filename: str) -> str:
    """Basename of `filename` with anything outside [A-Za-z0-9._-] replaced."""
    name = Path(filename.replace("\\", "/")).name
    name = _UNSAFE_CHARS.sub("_", name).strip("._")
    return name[:100] or "upload"


class UploadStore(Protocol):
    async def store(self, category: str, filename: str, data: bytes) -> str:
        ...


class LocalUploadStore:
    """Write uploads to the local filesystem."""

    def __init__(self, root: str | Path | None = None, max_bytes: int | None = None):
        self.root = Path(root or settings.upload_dir)
        self.max_bytes = max_bytes or settings.max_upload_bytes

    async def store(self, category: str, filename: str, data: bytes) -> str:
        if not data:
            raise UploadError(f"Empty upload: {filename}")
        if len(data) > self.max_bytes:
            raise UploadError(
                f"Upload {filename} is {len(data)} bytes (max {self.max_bytes})"
            )

        reference = f"{safe_filename(category)}/{uuid.uuid4().hex}-{safe_filename(filename)}"
        target = self.root / reference
        try:
            await asyncio.to_thread(self._write, target, data)
        except OSError as e:
            raise UploadError(f"Could not write {reference}: {e}") from e

        logger.info("Stored upload %s (%d bytes)", reference, len(data))
        return reference

    @staticmethod
    def _write(target: Path, data: bytes) -> None:
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(data)


class IncomingFile:
    """An upload already read off the request."""

    __slots__ = ("filename", "data")

    def __init__(self, filename: str, data: bytes):
        self.filename = filename
        self.data = data

    def __repr__(self) -> str:
        return f"IncomingFile({self.filename!r}, {len(self.data)} bytes)"
