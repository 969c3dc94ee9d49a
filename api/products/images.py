"""
Product image store.

Uploaded images live as plain files under the uploads directory, which is
also mounted as static files (see `api/main.py`). The database only keeps the
root-relative URL, e.g. `/uploads/1718000000000-1a2b3c4d-vase.jpg`.

This file contains logic that is independent of FastAPI's routing layer:
- Validate uploads (count + extension)
- Read file bytes with a size limit and write them to disk
- Delete files by URL (best-effort)
"""

from __future__ import annotations

import logging
import re
import time
from dataclasses import dataclass
from pathlib import Path
from uuid import uuid4

from fastapi import HTTPException, UploadFile
from starlette.concurrency import run_in_threadpool

from core import config
from core.errors import InvalidInputError

ALLOWED_EXTENSIONS = {".jpg", ".jpeg", ".png", ".gif", ".webp"}

DEFAULT_MAX_IMAGES = 5
DEFAULT_MAX_IMAGE_BYTES = 5 * 1024 * 1024  # 5 MiB

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StoredImage:
    image_url: str
    alt_text: str
    path: Path


def uploads_dir() -> Path:
    return Path(config.env_str("UPLOAD_DIR", "public/uploads"))


def url_prefix() -> str:
    return "/" + config.env_str("UPLOAD_URL_PREFIX", "/uploads").strip("/")


def max_images() -> int:
    return max(0, config.env_int("MAX_PRODUCT_IMAGES", DEFAULT_MAX_IMAGES))


def max_image_bytes() -> int:
    value = config.env_int("MAX_IMAGE_BYTES", DEFAULT_MAX_IMAGE_BYTES)
    return value if value > 0 else DEFAULT_MAX_IMAGE_BYTES


def ensure_uploads_dir() -> Path:
    root = uploads_dir()
    root.mkdir(parents=True, exist_ok=True)
    return root


def _original_name(file: UploadFile) -> str:
    # Browsers on Windows may send a full client path.
    return Path((file.filename or "").replace("\\", "/")).name


def validate_uploads(files: list[UploadFile]) -> None:
    """
    Reject the batch before anything touches disk or the database.
    """
    limit = max_images()
    if len(files) > limit:
        raise InvalidInputError(f"Too many images. At most {limit} are allowed.")

    for file in files:
        name = _original_name(file)
        if not name:
            raise InvalidInputError("Image is missing a filename.")
        ext = Path(name).suffix.lower()
        if ext not in ALLOWED_EXTENSIONS:
            raise InvalidInputError(
                f"Unsupported image type '{ext or name}'.",
                details=f"Allowed: {sorted(ALLOWED_EXTENSIONS)}",
            )


def stored_name(original: str) -> str:
    safe = re.sub(r"\s+", "_", Path(original).name)
    return f"{int(time.time() * 1000)}-{uuid4().hex[:8]}-{safe}"


async def read_upload_bytes(file: UploadFile, max_bytes: int) -> bytes:
    """
    Read the upload into memory, enforcing a maximum size.
    """
    chunk_size = 1024 * 1024  # 1 MiB
    buf = bytearray()

    while True:
        chunk = await file.read(chunk_size)
        if not chunk:
            break
        buf.extend(chunk)
        if len(buf) > max_bytes:
            raise HTTPException(
                status_code=413,
                detail=f"Image too large. Max is {max_bytes} bytes.",
            )

    return bytes(buf)


async def save_upload(file: UploadFile) -> StoredImage:
    original = _original_name(file)
    data = await read_upload_bytes(file, max_bytes=max_image_bytes())

    name = stored_name(original)
    path = ensure_uploads_dir() / name
    await run_in_threadpool(path.write_bytes, data)

    return StoredImage(image_url=f"{url_prefix()}/{name}", alt_text=original, path=path)


async def save_uploads(files: list[UploadFile]) -> list[StoredImage]:
    """
    Save every upload in order. On failure, files written so far are removed.
    """
    stored: list[StoredImage] = []
    try:
        for file in files:
            stored.append(await save_upload(file))
    except Exception:
        await remove_stored(stored)
        raise
    return stored


def path_for_url(image_url: str) -> Path:
    """
    Map a stored URL back to its file. Only the basename is used, so a URL can
    never point outside the uploads directory.
    """
    return uploads_dir() / Path(image_url.replace("\\", "/")).name


def _unlink(path: Path) -> bool:
    try:
        path.unlink()
    except FileNotFoundError:
        logger.info("image_missing path=%s", path)
        return False
    except OSError as exc:
        logger.warning("image_delete_failed path=%s error=%s", path, exc)
        return False
    return True


async def delete_image(image_url: str) -> bool:
    """
    Best-effort delete of one stored image. Never raises for filesystem errors.

    Returns True when a file was actually removed.
    """
    if not image_url:
        return False
    return await run_in_threadpool(_unlink, path_for_url(image_url))


async def remove_stored(images: list[StoredImage]) -> None:
    for image in images:
        await run_in_threadpool(_unlink, image.path)
