"""
Local-disk storage for uploaded images and documents.

Files live under IMAGES_ROOT and are served by the app at /images/...:

    ranches/<ranchId>/{brand,logo,animals,fences,water,misc}/
    ranches/<ranchId>/animals/<animalId>/{photos,documents}/
    ranches/<ranchId>/medications/standards/<medicationId>/<purpose>/

Stored names are random UUIDs keeping the original extension.
"""

import logging
import os
import re
import uuid
from dataclasses import dataclass
from typing import Optional

from fastapi import UploadFile

from backend import config
from backend.errors import ApiError

logger = logging.getLogger(__name__)

RANCH_SUBDIRS = ("brand", "logo", "animals", "fences", "water", "misc")

_CHUNK_SIZE = 1024 * 1024
_SAFE_EXT = re.compile(r"^\.[a-z0-9]{1,10}$")


@dataclass
class StoredFile:
    stored_filename: str
    original_filename: Optional[str]
    mime_type: Optional[str]
    size_bytes: int
    path: str


def ranch_dir(ranch_id: str) -> str:
    return os.path.join(config.IMAGES_ROOT, "ranches", ranch_id)


def ensure_ranch_structure(ranch_id: str) -> str:
    """Create the ranch folder tree; safe to call repeatedly."""
    base = ranch_dir(ranch_id)
    for sub in RANCH_SUBDIRS:
        os.makedirs(os.path.join(base, sub), exist_ok=True)
    return base


def animal_dir(ranch_id: str, animal_id: str, kind: str) -> str:
    return os.path.join(ranch_dir(ranch_id), "animals", animal_id, kind)


def medication_dir(ranch_id: str, medication_id: str, purpose: str) -> str:
    return os.path.join(ranch_dir(ranch_id), "medications", "standards", medication_id, purpose)


def public_url(*parts: str) -> str:
    return "/images/" + "/".join(p.strip("/") for p in parts)


def safe_extension(filename: Optional[str]) -> str:
    ext = os.path.splitext(filename or "")[1].lower()
    return ext if _SAFE_EXT.match(ext) else ""


async def save_upload(upload: UploadFile, dest_dir: str) -> StoredFile:
    """Stream an upload to dest_dir, enforcing MAX_UPLOAD_BYTES."""
    os.makedirs(dest_dir, exist_ok=True)
    stored_filename = f"{uuid.uuid4()}{safe_extension(upload.filename)}"
    path = os.path.join(dest_dir, stored_filename)

    size = 0
    with open(path, "wb") as out:
        while True:
            chunk = await upload.read(_CHUNK_SIZE)
            if not chunk:
                break
            size += len(chunk)
            if size > config.MAX_UPLOAD_BYTES:
                out.close()
                os.remove(path)
                raise ApiError(
                    413,
                    "FILE_TOO_LARGE",
                    f"File {upload.filename or stored_filename} exceeds the {config.MAX_UPLOAD_BYTES} byte limit",
                )
            out.write(chunk)

    logger.info("Stored upload %s (%d bytes) in %s", stored_filename, size, dest_dir)
    return StoredFile(
        stored_filename=stored_filename,
        original_filename=upload.filename,
        mime_type=upload.content_type,
        size_bytes=size,
        path=path,
    )


def remove_files(paths: list[str]) -> None:
    """Best-effort cleanup of files written before a failed transaction."""
    for path in paths:
        try:
            os.remove(path)
        except FileNotFoundError:
            continue
        except OSError as e:
            logger.warning("Could not remove %s: %s", path, e)
