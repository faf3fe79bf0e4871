import logging
import time
from typing import Optional

from fastapi import Depends, HTTPException, Query, Request, status
from sqlalchemy.orm import Session, joinedload

from .. import models
from ..database import get_db
from .config import LOGIN_MAX_IDLE
from .sessions import flash

logger = logging.getLogger(__name__)


class LoginRequired(Exception):
    """Raised by HTML routes that need a logged in user."""


# --- LOGIN SESSION ---

def start_login(request: Request, user: models.User):
    # The existence of session["login_user"] means that the user is logged in.
    request.session["login_user"] = {
        "id": user.id,
        "username": user.username,
        "is_admin": bool(user.is_admin),
        "expires": time.time() + LOGIN_MAX_IDLE,
    }
    logger.info("User %s logged in", user.username)


def end_login(request: Request):
    login_user = request.session.pop("login_user", None)
    if login_user:
        logger.info("User %s logged out", login_user["username"])


def get_login_user(request: Request) -> Optional[dict]:
    return request.session.get("login_user")


def end_user_sessions(db: Session, user_id: int) -> int:
    """Log out every stored session of the user. The caller commits."""
    closed = 0
    for record in db.query(models.SessionRecord).all():
        login_user = (record.data or {}).get("login_user")
        if login_user and login_user.get("id") == user_id:
            db.delete(record)
            closed += 1
    return closed


def check_login_expires(request: Request):
    """Close the login session after LOGIN_MAX_IDLE seconds without requests."""
    login_user = request.session.get("login_user")
    if not login_user:
        return
    if login_user["expires"] < time.time():
        del request.session["login_user"]
        flash(request, "User session has expired.", "info")
    else:
        login_user["expires"] = time.time() + LOGIN_MAX_IDLE


def save_back(request: Request):
    """Remember the current page as the target of /goback."""
    url = request.url.path
    if request.url.query:
        url += "?" + request.url.query
    request.session["back_url"] = url


# --- AUTOLOAD ---

def load_quiz(quiz_id: int, db: Session = Depends(get_db)) -> models.Quiz:
    quiz = db.query(models.Quiz).options(
        joinedload(models.Quiz.attachment),
        joinedload(models.Quiz.author).joinedload(models.User.photo),
    ).filter(models.Quiz.id == quiz_id).first()
    if quiz is None:
        raise HTTPException(status_code=404, detail=f"There is no quiz with id={quiz_id}")
    return quiz


def load_user(user_id: int, db: Session = Depends(get_db)) -> models.User:
    user = db.query(models.User).options(
        joinedload(models.User.photo)
    ).filter(models.User.id == user_id).first()
    if user is None:
        raise HTTPException(status_code=404, detail=f"There is no user with id={user_id}")
    return user


# --- PERMISSIONS ---

def login_required(request: Request) -> dict:
    login_user = get_login_user(request)
    if not login_user:
        raise LoginRequired()
    return login_user


def admin_required(login_user: dict = Depends(login_required)) -> dict:
    if not login_user["is_admin"]:
        logger.info("Prohibited route: %s is not an administrator", login_user["username"])
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Administrator required")
    return login_user


def admin_or_author_required(
    quiz: models.Quiz = Depends(load_quiz),
    login_user: dict = Depends(login_required),
) -> models.Quiz:
    if not (login_user["is_admin"] or quiz.author_id == login_user["id"]):
        logger.info("Prohibited operation: %s is not the author of quiz %d", login_user["username"], quiz.id)
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Only the author or an administrator")
    return quiz


def admin_or_myself_required(
    user: models.User = Depends(load_user),
    login_user: dict = Depends(login_required),
) -> models.User:
    if not (login_user["is_admin"] or user.id == login_user["id"]):
        logger.info("Prohibited route: %s is not user %d", login_user["username"], user.id)
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Only the user or an administrator")
    return user


def local_user_required(user: models.User = Depends(load_user)) -> models.User:
    if not user.is_local:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Only local accounts can be edited")
    return user


# --- API ACCESS TOKEN ---

def token_required(token: str = Query(""), db: Session = Depends(get_db)) -> models.User:
    """Resolve the ?token= query parameter to its owner."""
    if not token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Access token required")
    user = db.query(models.User).filter(models.User.token == token).first()
    if user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid access token")
    return user
