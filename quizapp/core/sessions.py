import copy
import logging
import secrets
import time
from datetime import datetime, timedelta

from itsdangerous import BadSignature, URLSafeSerializer
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from .. import models

logger = logging.getLogger(__name__)

FLASH_KEY = "_flashes"


class DatabaseSessionMiddleware(BaseHTTPMiddleware):
    """
    Server side sessions stored in the `sessions` table.

    The cookie only carries the signed session id. The session dict is
    exposed as `request.session`; an empty dict removes the stored row.
    """

    def __init__(self, app, session_factory, secret_key: str, cookie_name: str = "session",
                 max_age: int = 4 * 60 * 60, cleanup_interval: int = 15 * 60):
        super().__init__(app)
        self.session_factory = session_factory
        self.signer = URLSafeSerializer(secret_key, salt="session-id")
        self.cookie_name = cookie_name
        self.max_age = max_age
        self.cleanup_interval = cleanup_interval
        self._last_cleanup = 0.0

    def _read_sid(self, request: Request):
        cookie = request.cookies.get(self.cookie_name)
        if not cookie:
            return None
        try:
            return self.signer.loads(cookie)
        except BadSignature:
            logger.warning("Discarding session cookie with a bad signature")
            return None

    def _load(self, sid):
        db = self.session_factory()
        try:
            record = db.get(models.SessionRecord, sid)
            if record is None or record.expires < datetime.utcnow():
                return None
            return copy.deepcopy(record.data or {})
        finally:
            db.close()

    def _save(self, sid, data):
        db = self.session_factory()
        try:
            record = db.get(models.SessionRecord, sid)
            if record is None:
                record = models.SessionRecord(sid=sid)
                db.add(record)
            record.data = data
            record.expires = datetime.utcnow() + timedelta(seconds=self.max_age)
            db.commit()
        finally:
            db.close()

    def _delete(self, sid):
        db = self.session_factory()
        try:
            db.query(models.SessionRecord).filter(models.SessionRecord.sid == sid).delete()
            db.commit()
        finally:
            db.close()

    def _cleanup(self):
        now = time.time()
        if now - self._last_cleanup < self.cleanup_interval:
            return
        self._last_cleanup = now
        db = self.session_factory()
        try:
            removed = db.query(models.SessionRecord).filter(
                models.SessionRecord.expires < datetime.utcnow()
            ).delete()
            db.commit()
            if removed:
                logger.info("Removed %d expired sessions", removed)
        finally:
            db.close()

    async def dispatch(self, request: Request, call_next):
        self._cleanup()

        sid = self._read_sid(request)
        data = self._load(sid) if sid else None
        is_new = data is None
        request.scope["session"] = data or {}

        response = await call_next(request)

        data = request.scope["session"]
        if data:
            if is_new:
                sid = secrets.token_urlsafe(32)
            self._save(sid, data)
            response.set_cookie(
                self.cookie_name,
                self.signer.dumps(sid),
                max_age=self.max_age,
                httponly=True,
                samesite="lax",
            )
        elif sid:
            self._delete(sid)
            response.delete_cookie(self.cookie_name)

        return response


def flash(request: Request, message: str, category: str = "info"):
    request.session.setdefault(FLASH_KEY, []).append([category, message])


def get_flashed_messages(request: Request):
    # error pages can be rendered outside the session middleware
    if "session" not in request.scope:
        return []
    return request.session.pop(FLASH_KEY, [])
