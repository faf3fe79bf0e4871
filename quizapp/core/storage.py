"""
External storage of the attachment files.

Files go to Cloudinary when CLOUDINARY_URL is defined. Otherwise they are
saved in the local uploads directory, named by the SHA-256 of their content,
and served from /uploads.
"""
import hashlib
import logging
import os
from typing import NamedTuple

import cloudinary
import cloudinary.api
import cloudinary.uploader
from fastapi import UploadFile

from . import config

logger = logging.getLogger(__name__)

UPLOAD_URL_PREFIX = "/uploads/"

# Options for the files uploaded to Cloudinary
CLOUDINARY_UPLOAD_OPTIONS = {
    "folder": config.CLOUDINARY_FOLDER,
    "resource_type": "auto",
    "tags": ["core", "quiz"],
}


class StorageError(Exception):
    pass


class UploadResult(NamedTuple):
    public_id: str
    url: str


def cloudinary_enabled() -> bool:
    return bool(config.CLOUDINARY_URL)


def _read_upload(upload: UploadFile) -> bytes:
    upload.file.seek(0)
    content = upload.file.read(config.MAX_UPLOAD_SIZE + 1)
    if len(content) > config.MAX_UPLOAD_SIZE:
        raise StorageError(f"File too large (max {config.MAX_UPLOAD_SIZE // (1024 * 1024)} MB).")
    if not content:
        raise StorageError("The file is empty.")
    return content


def _local_name(content: bytes, filename: str) -> str:
    ext = os.path.splitext(filename or "")[1].lower()
    return hashlib.sha256(content).hexdigest() + ext


def upload_resource(upload: UploadFile) -> UploadResult:
    content = _read_upload(upload)

    if cloudinary_enabled():
        try:
            result = cloudinary.uploader.upload(content, **CLOUDINARY_UPLOAD_OPTIONS)
        except Exception as e:
            logger.warning("Cloudinary upload failed: %s", e)
            raise StorageError("The file could not be uploaded.") from e
        return UploadResult(result["public_id"], result["secure_url"])

    name = _local_name(content, upload.filename)
    os.makedirs(config.UPLOAD_DIR, exist_ok=True)
    path = os.path.join(config.UPLOAD_DIR, name)
    # same content, same name
    if not os.path.exists(path):
        with open(path, "wb") as buffer:
            buffer.write(content)
    logger.info("Saved upload %s as %s", upload.filename, name)
    return UploadResult(name, UPLOAD_URL_PREFIX + name)


def resource_type(mime: str) -> str:
    """Cloudinary resource type of an upload made with resource_type="auto"."""
    mime = mime or ""
    if mime.startswith("image/"):
        return "image"
    # Cloudinary keeps audio with the videos
    if mime.startswith(("video/", "audio/")):
        return "video"
    return "raw"


def delete_resource(public_id: str, mime: str = None):
    """Best effort: failures are logged and ignored."""
    if not public_id:
        return
    try:
        if cloudinary_enabled():
            cloudinary.api.delete_resources([public_id], resource_type=resource_type(mime))
        else:
            path = os.path.join(config.UPLOAD_DIR, os.path.basename(public_id))
            if os.path.exists(path):
                os.remove(path)
        logger.info("Deleted resource %s", public_id)
    except Exception as e:
        logger.warning("Error deleting resource %s: %s", public_id, e)
