"""
Local file storage for uploaded documents and email attachments.
Files live under UPLOAD_DIR/<subdir>/<uuid><ext>; callers only ever pass the stored
name back in, and the path is re-derived here.
"""
import uuid
from pathlib import Path

from fastapi import UploadFile

from outreach.app.core.config import MAX_UPLOAD_BYTES, settings
from outreach.app.core.logging_config import get_logger

logger = get_logger("services.storage")

_CHUNK = 1024 * 1024


class UploadTooLargeError(Exception):
    pass


def storage_dir(subdir: str) -> Path:
    base = Path(settings.upload_dir)
    if not base.is_absolute():
        base = Path.cwd() / base
    path = base / subdir
    path.mkdir(parents=True, exist_ok=True)
    return path


def stored_path(subdir: str, file_name: str) -> Path:
    """Path for a stored name. Only the final path component is honoured."""
    return storage_dir(subdir) / Path(file_name).name


def save_upload(upload: UploadFile, subdir: str, suffix: str, max_bytes: int = MAX_UPLOAD_BYTES) -> tuple[str, int]:
    """
    Stream an upload to disk under a generated name.
    Returns (stored file name, size in bytes). Raises UploadTooLargeError past max_bytes.
    """
    file_name = f"{uuid.uuid4()}{suffix}"
    dest = stored_path(subdir, file_name)
    size = 0
    try:
        with dest.open("wb") as out:
            while True:
                chunk = upload.file.read(_CHUNK)
                if not chunk:
                    break
                size += len(chunk)
                if size > max_bytes:
                    raise UploadTooLargeError(f"File size must be less than {max_bytes // (1024 * 1024)}MB")
                out.write(chunk)
    except Exception:
        dest.unlink(missing_ok=True)
        raise
    logger.info("Stored upload subdir=%s file=%s bytes=%d", subdir, file_name, size)
    return file_name, size


def read_file(subdir: str, file_name: str) -> bytes:
    return stored_path(subdir, file_name).read_bytes()


def delete_file(subdir: str, file_name: str | None) -> bool:
    """Delete a stored file. Returns True if deleted or already gone."""
    if not file_name:
        return True
    path = stored_path(subdir, file_name)
    if not path.exists():
        return True
    try:
        path.unlink()
        logger.info("Deleted stored file subdir=%s file=%s", subdir, file_name)
        return True
    except OSError as e:
        logger.warning("Failed to delete stored file %s: %s", path, e)
        return False
