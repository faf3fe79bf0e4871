import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Request, UploadFile, status
from fastapi.responses import RedirectResponse
from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .. import models, schemas
from ..attachments import has_file, is_cooling_down, destroy_attachment, remove_attachment, replace_attachment
from ..core.auth import (
    admin_or_author_required, check_login_expires, get_login_user, load_quiz, load_user,
    login_required, save_back,
)
from ..core.config import ITEMS_PER_PAGE, QUIZZES_PER_DAY
from ..core.pagination import parse_pageno
from ..core.csrf import validate_csrf
from ..core.sessions import flash
from ..core.storage import StorageError
from ..core.templates import render
from ..database import get_db
from ..queries import paginate_quizzes, quizzes_created_today, search_quizzes
from ..random_play import RandomPlay

logger = logging.getLogger(__name__)

router = APIRouter(dependencies=[Depends(check_login_expires), Depends(validate_csrf)])


def flash_form_errors(request: Request, exc: ValidationError):
    flash(request, "There are errors in the form:", "error")
    for message in schemas.form_errors(exc):
        flash(request, message, "error")


def save_quiz_attachment(request: Request, db: Session, quiz: models.Quiz, image: UploadFile):
    try:
        replace_attachment(db, quiz, "attachment", image)
        flash(request, "Attached file saved successfully.", "success")
    except StorageError as e:
        flash(request, f"Failed to save the attached file: {e}", "error")
    except SQLAlchemyError as e:
        flash(request, f"Failed linking the attached file: {e}", "error")


def render_index(request: Request, db: Session, search: str, pageno: str,
                 searchfavourites: bool, author: Optional[models.User] = None):
    login_user = get_login_user(request)
    fan_id = login_user["id"] if (searchfavourites and login_user) else None

    query = search_quizzes(db, search, author_id=author.id if author else None, fan_id=fan_id)
    page, quizzes = paginate_quizzes(query, parse_pageno(pageno), ITEMS_PER_PAGE)

    viewer_id = login_user["id"] if login_user else None
    return render(request, "quizzes/index.html", {
        "quizzes": quizzes,
        "favourites": {quiz.id for quiz in quizzes if quiz.is_favourite_of(viewer_id)},
        "search": search,
        "searchfavourites": searchfavourites,
        "page": page,
        "author": author,
    })


# --- INDEX ---
@router.get("/quizzes", dependencies=[Depends(save_back)])
async def index(request: Request, search: str = "", pageno: str = "1", searchfavourites: bool = False,
                db: Session = Depends(get_db)):
    return render_index(request, db, search, pageno, searchfavourites)


@router.get("/users/{user_id:int}/quizzes", dependencies=[Depends(login_required), Depends(save_back)])
async def user_quizzes(request: Request, search: str = "", pageno: str = "1", searchfavourites: bool = False,
                       author: models.User = Depends(load_user), db: Session = Depends(get_db)):
    return render_index(request, db, search, pageno, searchfavourites, author=author)


# --- NEW / CREATE ---
@router.get("/quizzes/new", dependencies=[Depends(login_required)])
async def new_quiz(request: Request):
    return render(request, "quizzes/new.html", {"quiz": {"question": "", "answer": ""}})


@router.post("/quizzes")
async def create_quiz(
    request: Request,
    question: str = Form(""),
    answer: str = Form(""),
    image: Optional[UploadFile] = File(None),
    login_user: dict = Depends(login_required),
    db: Session = Depends(get_db),
):
    if quizzes_created_today(db, login_user["id"]) >= QUIZZES_PER_DAY:
        flash(request, f"Maximum {QUIZZES_PER_DAY} new quizzes per day.", "error")
        return RedirectResponse(url="/goback", status_code=status.HTTP_303_SEE_OTHER)

    try:
        form = schemas.QuizForm(question=question, answer=answer)
    except ValidationError as e:
        flash_form_errors(request, e)
        return render(request, "quizzes/new.html", {"quiz": {"question": question, "answer": answer}})

    quiz = models.Quiz(question=form.question, answer=form.answer, author_id=login_user["id"])
    db.add(quiz)
    db.commit()
    db.refresh(quiz)
    flash(request, "Quiz created successfully.", "success")

    if has_file(image):
        save_quiz_attachment(request, db, quiz, image)
    else:
        flash(request, "Quiz without attached file.", "info")

    return RedirectResponse(url=f"/quizzes/{quiz.id}", status_code=status.HTTP_303_SEE_OTHER)


# --- SHOW ---
@router.get("/quizzes/{quiz_id:int}")
async def show_quiz(request: Request, quiz: models.Quiz = Depends(admin_or_author_required)):
    return render(request, "quizzes/show.html", {"quiz": quiz})


# --- EDIT / UPDATE ---
@router.get("/quizzes/{quiz_id:int}/edit")
async def edit_quiz(request: Request, quiz: models.Quiz = Depends(admin_or_author_required)):
    return render(request, "quizzes/edit.html", {"quiz": quiz})


@router.put("/quizzes/{quiz_id:int}")
async def update_quiz(
    request: Request,
    question: str = Form(""),
    answer: str = Form(""),
    keep_attachment: bool = Form(False),
    image: Optional[UploadFile] = File(None),
    quiz: models.Quiz = Depends(admin_or_author_required),
    db: Session = Depends(get_db),
):
    try:
        form = schemas.QuizForm(question=question, answer=answer)
    except ValidationError as e:
        flash_form_errors(request, e)
        quiz.question, quiz.answer = question, answer
        response = render(request, "quizzes/edit.html", {"quiz": quiz})
        db.rollback()
        return response

    quiz.question = form.question
    quiz.answer = form.answer
    db.commit()
    flash(request, "Quiz edited successfully.", "success")

    if not keep_attachment:
        if is_cooling_down(quiz.attachment):
            flash(request, "Attached file can not be modified until 1 minute has passed.", "error")
        elif has_file(image):
            save_quiz_attachment(request, db, quiz, image)
        else:
            remove_attachment(db, quiz, "attachment")
            flash(request, "This quiz has no attached file.", "info")

    return RedirectResponse(url=f"/quizzes/{quiz.id}", status_code=status.HTTP_303_SEE_OTHER)


# --- DELETE ---
@router.delete("/quizzes/{quiz_id:int}")
async def delete_quiz(request: Request, quiz: models.Quiz = Depends(admin_or_author_required),
                      db: Session = Depends(get_db)):
    quiz_id = quiz.id
    if quiz.attachment:
        destroy_attachment(db, quiz.attachment)
    db.delete(quiz)
    db.commit()
    logger.info("Quiz %d deleted", quiz_id)
    flash(request, "Quiz deleted successfully.", "success")
    return RedirectResponse(url="/goback", status_code=status.HTTP_303_SEE_OTHER)


# --- PLAY ---
@router.get("/quizzes/{quiz_id:int}/play")
async def play(request: Request, answer: str = "", quiz: models.Quiz = Depends(load_quiz)):
    return render(request, "quizzes/play.html", {"quiz": quiz, "answer": answer})


@router.get("/quizzes/{quiz_id:int}/check")
async def check(request: Request, answer: str = "", quiz: models.Quiz = Depends(load_quiz)):
    return render(request, "quizzes/result.html", {
        "quiz": quiz,
        "answer": answer,
        "result": quiz.check_answer(answer),
    })


# --- RANDOM PLAY ---
@router.get("/quizzes/randomplay")
async def random_play(request: Request, db: Session = Depends(get_db)):
    result = RandomPlay(request.session).next_quiz(db)
    if result.nomore:
        return render(request, "quizzes/random_nomore.html", {"score": result.score})
    return render(request, "quizzes/random_play.html", {"quiz": result.quiz, "score": result.score})


@router.get("/quizzes/randomcheck/{quiz_id:int}")
async def random_check(request: Request, quiz_id: int, answer: str = "", db: Session = Depends(get_db)):
    result = RandomPlay(request.session).check(db, answer, quiz_id=quiz_id)
    return render(request, "quizzes/random_result.html", {
        "quiz": result.quiz,
        "answer": result.answer,
        "result": result.result,
        "score": result.score,
    })
