# app/services/storage.py
import logging
import os
import time
import uuid
from pathlib import Path
from typing import Union

from fastapi import UploadFile

from app.exceptions import InvalidUpload

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1024 * 1024

MIME_SUFFIXES = {
    "image/jpeg": ".jpg",
    "image/png": ".png",
    "image/webp": ".webp",
}


async def save_upload(upload: UploadFile, directory: Union[str, Path], max_bytes: int) -> Path:
    """
    Stream an upload into a uniquely named file below ``directory``.

    The partially written file is removed when the upload exceeds ``max_bytes``
    or writing fails.
    """
    target_dir = Path(directory)
    target_dir.mkdir(parents=True, exist_ok=True)
    suffix = MIME_SUFFIXES.get(upload.content_type or "", "")
    path = target_dir / f"{uuid.uuid4().hex}{suffix}"

    written = 0
    try:
        with open(path, "wb") as out:
            while True:
                chunk = await upload.read(CHUNK_SIZE)
                if not chunk:
                    break
                written += len(chunk)
                if written > max_bytes:
                    raise InvalidUpload(
                        f"File too large. Maximum size is {max_bytes // 1024 // 1024} MB.",
                        status_code=413,
                    )
                out.write(chunk)
    except BaseException:
        remove_file(path, "partial upload")
        raise

    logger.info(f"Stored upload '{upload.filename}' ({written} bytes) at {path}")
    return path


def remove_file(path: Union[str, Path], label: str = "file") -> bool:
    """Best-effort delete. Failures are logged, never raised."""
    try:
        os.remove(path)
    except FileNotFoundError:
        logger.debug(f"{label} already removed: {path}")
        return False
    except OSError as e:
        logger.error(f"Could not delete {label} {path}: {e}", exc_info=True)
        return False
    logger.debug(f"Deleted {label}: {path}")
    return True


def purge_stale_files(directory: Union[str, Path], max_age_seconds: int) -> int:
    """Remove files older than ``max_age_seconds``, e.g. left behind by dropped connections."""
    target_dir = Path(directory)
    if not target_dir.is_dir():
        return 0

    cutoff = time.time() - max_age_seconds
    removed = 0
    for entry in target_dir.iterdir():
        try:
            if entry.is_file() and entry.stat().st_mtime < cutoff:
                if remove_file(entry, "stale file"):
                    removed += 1
        except OSError as e:
            logger.warning(f"Skipping {entry} during cleanup: {e}")
    if removed:
        logger.info(f"Purged {removed} stale file(s) from {target_dir}")
    return removed
