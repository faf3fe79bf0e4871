import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Request, UploadFile, status
from fastapi.responses import RedirectResponse, Response
from pydantic import ValidationError
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from .. import models, schemas
from ..attachments import destroy_attachment, has_file, is_cooling_down, remove_attachment, replace_attachment
from ..core import security
from ..core.auth import (
    admin_or_myself_required, admin_required, check_login_expires, end_login, end_user_sessions, get_login_user,
    load_quiz, load_user, local_user_required, login_required, save_back,
)
from ..core.config import ITEMS_PER_PAGE, QUIZ_OPEN_REGISTER
from ..core.csrf import validate_csrf
from ..core.pagination import Page, parse_pageno
from ..core.sessions import flash
from ..core.storage import StorageError
from ..core.templates import render
from ..database import get_db

logger = logging.getLogger(__name__)

router = APIRouter(dependencies=[Depends(check_login_expires), Depends(validate_csrf)])

# Registration is open to anybody only when QUIZ_OPEN_REGISTER is set.
register_guards = [] if QUIZ_OPEN_REGISTER else [Depends(admin_required)]


def flash_form_errors(request: Request, exc: ValidationError):
    flash(request, "There are errors in the form:", "error")
    for message in schemas.form_errors(exc):
        flash(request, message, "error")


def save_user_photo(request: Request, db: Session, user: models.User, photo: UploadFile):
    try:
        replace_attachment(db, user, "photo", photo)
        flash(request, "Photo saved successfully.", "success")
    except StorageError as e:
        flash(request, f"Failed to save photo: {e}", "error")
    except SQLAlchemyError as e:
        flash(request, f"Failed linking photo: {e}", "error")


# --- INDEX ---
@router.get("/users", dependencies=[Depends(login_required), Depends(save_back)])
async def index(request: Request, pageno: str = "1", db: Session = Depends(get_db)):
    page = Page(db.query(models.User).count(), ITEMS_PER_PAGE, parse_pageno(pageno))
    users = db.query(models.User).options(
        joinedload(models.User.photo)
    ).order_by(models.User.username).offset(page.offset).limit(ITEMS_PER_PAGE).all()
    return render(request, "users/index.html", {"users": users, "page": page})


# --- SHOW ---
@router.get("/users/{user_id:int}", dependencies=[Depends(login_required)])
async def show(request: Request, user: models.User = Depends(load_user)):
    return render(request, "users/show.html", {"user": user})


# --- NEW / CREATE ---
@router.get("/users/new", dependencies=register_guards)
async def new_user(request: Request):
    return render(request, "users/new.html", {"user": {"username": ""}})


@router.post("/users", dependencies=register_guards)
async def create_user(
    request: Request,
    username: str = Form(""),
    password: str = Form(""),
    photo: Optional[UploadFile] = File(None),
    db: Session = Depends(get_db),
):
    try:
        form = schemas.UserForm(username=username, password=password)
    except ValidationError as e:
        flash_form_errors(request, e)
        return render(request, "users/new.html", {"user": {"username": username}})

    user = models.User(username=form.username, token=security.create_token())
    user.set_password(form.password)
    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        flash(request, f'User "{username}" already exists.', "error")
        return render(request, "users/new.html", {"user": {"username": username}})

    db.refresh(user)
    logger.info("New user: %s", user.username)
    flash(request, "User created successfully.", "success")

    if has_file(photo):
        save_user_photo(request, db, user, photo)
    else:
        flash(request, "User without photo.", "info")

    if get_login_user(request):
        return RedirectResponse(url=f"/users/{user.id}", status_code=status.HTTP_303_SEE_OTHER)
    return RedirectResponse(url="/login", status_code=status.HTTP_303_SEE_OTHER)


# --- EDIT / UPDATE ---
@router.get("/users/{user_id:int}/edit",
            dependencies=[Depends(login_required), Depends(local_user_required)])
async def edit_user(request: Request, user: models.User = Depends(admin_or_myself_required)):
    return render(request, "users/edit.html", {"user": user})


@router.put("/users/{user_id:int}",
            dependencies=[Depends(login_required), Depends(local_user_required)])
async def update_user(
    request: Request,
    password: str = Form(""),
    keep_photo: bool = Form(False),
    photo: Optional[UploadFile] = File(None),
    user: models.User = Depends(admin_or_myself_required),
    db: Session = Depends(get_db),
):
    # The username can not be changed.
    if password:
        user.set_password(password)
    db.commit()
    flash(request, "User updated successfully.", "success")

    if not keep_photo:
        if is_cooling_down(user.photo):
            flash(request, "Photo file can not be modified until 1 minute has passed.", "error")
        elif has_file(photo):
            save_user_photo(request, db, user, photo)
        else:
            remove_attachment(db, user, "photo")
            flash(request, "This user has no photo.", "info")

    return RedirectResponse(url=f"/users/{user.id}", status_code=status.HTTP_303_SEE_OTHER)


# --- DELETE ---
@router.delete("/users/{user_id:int}")
async def delete_user(request: Request, user: models.User = Depends(admin_or_myself_required),
                      db: Session = Depends(get_db)):
    user_id, username = user.id, user.username
    if user.photo:
        destroy_attachment(db, user.photo)
    db.delete(user)
    closed = end_user_sessions(db, user_id)
    db.commit()
    logger.info("User %s deleted, %d sessions closed", username, closed)

    # Deleting the logged user closes the session.
    login_user = get_login_user(request)
    if login_user and login_user["id"] == user_id:
        end_login(request)

    flash(request, "User deleted successfully.", "success")
    return RedirectResponse(url="/goback", status_code=status.HTTP_303_SEE_OTHER)


# --- ACCESS TOKEN ---
@router.put("/users/{user_id:int}/token")
async def create_token(request: Request, user: models.User = Depends(admin_or_myself_required),
                       db: Session = Depends(get_db)):
    user.token = security.create_token()
    db.commit()
    flash(request, "User Access Token created successfully.", "success")
    return RedirectResponse(url=f"/users/{user.id}", status_code=status.HTTP_303_SEE_OTHER)


# --- FAVOURITES ---
def favourite_target(request: Request, user: models.User, login_user: dict):
    if request.headers.get("x-requested-with") != "XMLHttpRequest":
        raise HTTPException(status_code=status.HTTP_415_UNSUPPORTED_MEDIA_TYPE, detail="Only XHR requests")
    if user.id != login_user["id"]:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Only your own favourites")


@router.put("/users/{user_id:int}/favourites/{quiz_id:int}")
async def add_favourite(
    request: Request,
    user: models.User = Depends(load_user),
    quiz: models.Quiz = Depends(load_quiz),
    login_user: dict = Depends(login_required),
    db: Session = Depends(get_db),
):
    favourite_target(request, user, login_user)
    quiz.add_fan(user)
    db.commit()
    return Response(status_code=status.HTTP_200_OK)


@router.delete("/users/{user_id:int}/favourites/{quiz_id:int}")
async def delete_favourite(
    request: Request,
    user: models.User = Depends(load_user),
    quiz: models.Quiz = Depends(load_quiz),
    login_user: dict = Depends(login_required),
    db: Session = Depends(get_db),
):
    favourite_target(request, user, login_user)
    quiz.remove_fan(user)
    db.commit()
    return Response(status_code=status.HTTP_200_OK)
