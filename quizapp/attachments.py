import logging
from datetime import datetime, timedelta
from typing import Optional

from fastapi import UploadFile
from sqlalchemy.orm import Session

from . import models
from .core import storage
from .core.config import ATTACHMENT_COOLDOWN

logger = logging.getLogger(__name__)


def has_file(upload: Optional[UploadFile]) -> bool:
    return upload is not None and bool(upload.filename)


def is_cooling_down(attachment: Optional[models.Attachment], now: datetime = None) -> bool:
    """An attachment can not be replaced until ATTACHMENT_COOLDOWN seconds after its last edit."""
    if attachment is None:
        return False
    last_edition = attachment.updated_at or attachment.created_at
    if last_edition is None:
        return False
    return last_edition + timedelta(seconds=ATTACHMENT_COOLDOWN) > (now or datetime.utcnow())


def release_resource(db: Session, public_id: str, mime: str = None, exclude_id: int = None):
    # Local files are content addressed, so two rows can share one file.
    query = db.query(models.Attachment).filter(models.Attachment.public_id == public_id)
    if exclude_id is not None:
        query = query.filter(models.Attachment.id != exclude_id)
    if query.count() == 0:
        storage.delete_resource(public_id, mime)


def destroy_attachment(db: Session, attachment: models.Attachment):
    """Delete the external resource (best effort) and the row. The caller commits."""
    release_resource(db, attachment.public_id, attachment.mime, exclude_id=attachment.id)
    db.delete(attachment)


def replace_attachment(db: Session, owner, attr: str, upload: UploadFile) -> models.Attachment:
    """
    Upload `upload` and link it to `owner.<attr>`.

    The previous attachment (resource and row) is deleted only once the new
    one is committed. If linking fails the new resource is deleted and the
    owner keeps its old attachment. Raises storage.StorageError when the
    upload itself fails.
    """
    old = getattr(owner, attr)
    result = storage.upload_resource(upload)

    try:
        attachment = models.Attachment(
            public_id=result.public_id,
            url=result.url,
            filename=upload.filename,
            mime=upload.content_type or "application/octet-stream",
        )
        db.add(attachment)
        setattr(owner, attr, attachment)
        db.commit()
    except Exception:
        db.rollback()
        logger.exception("Failed linking attachment %s", result.public_id)
        release_resource(db, result.public_id, upload.content_type)
        raise

    if old is not None:
        destroy_attachment(db, old)
        db.commit()
    return attachment


def remove_attachment(db: Session, owner, attr: str):
    old = getattr(owner, attr)
    if old is None:
        return
    setattr(owner, attr, None)
    db.flush()
    destroy_attachment(db, old)
    db.commit()
