import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import JSONResponse, Response
from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload

from .. import models, schemas
from ..core.auth import load_quiz, load_user, token_required
from ..core.config import ITEMS_PER_PAGE
from ..core.pagination import add_pageno_to_url, parse_pageno
from ..core.xml import to_xml
from ..database import get_db
from ..queries import paginate_quizzes, search_quizzes, with_relations
from ..random_play import RandomPlay, random_quiz

logger = logging.getLogger(__name__)


async def trace(request: Request):
    logger.debug("=== API ===> %s", request.url.path)


# All routes require an user access token.
router = APIRouter(prefix="/api", tags=["api"], dependencies=[Depends(trace), Depends(token_required)])


def formatted(data: dict, fmt: str, root: str):
    fmt = (fmt or "json").lower()
    if fmt == "json":
        return JSONResponse(content=data)
    if fmt == "xml":
        return Response(content=to_xml(root, data), media_type="application/xml")
    logger.info("Unsupported format %r", fmt)
    raise HTTPException(status_code=status.HTTP_406_NOT_ACCEPTABLE, detail=f'Unsupported format ".{fmt}"')


def dump(model) -> dict:
    return model.model_dump(by_alias=True)


def full_quiz(db: Session, quiz_id: int) -> models.Quiz:
    return with_relations(db.query(models.Quiz)).filter(models.Quiz.id == quiz_id).first()


# --- USERS ---
@router.get("/users", response_model=List[schemas.UserDisplay])
def list_users(db: Session = Depends(get_db)):
    return db.query(models.User).options(
        joinedload(models.User.photo)
    ).order_by(models.User.username).all()


@router.get("/users/tokenOwner", response_model=schemas.UserDisplay)
def show_token_owner(owner: models.User = Depends(token_required)):
    return owner


@router.get("/users/{user_id:int}", response_model=schemas.UserDisplay)
def show_user(user: models.User = Depends(load_user)):
    return user


# --- QUIZZES ---
def quiz_index(request: Request, db: Session, owner: models.User, fmt: str,
               author_id: Optional[int] = None):
    search = request.query_params.get("search", "")
    searchfavourites = bool(request.query_params.get("searchfavourites"))
    pageno = parse_pageno(request.query_params.get("pageno"))

    query = search_quizzes(db, search, author_id=author_id,
                           fan_id=owner.id if searchfavourites else None)
    page, quizzes = paginate_quizzes(query, pageno, ITEMS_PER_PAGE)

    next_url = add_pageno_to_url(request.url, page.pageno + 1) if page.has_next else ""
    data = {
        "quizzes": [dump(schemas.quiz_display(quiz, owner.id)) for quiz in quizzes],
        "pageno": page.pageno,
        "nextUrl": next_url,
    }
    if (fmt or "json").lower() == "xml":
        return formatted({"quiz": data["quizzes"]}, fmt, "quizzes")
    return formatted(data, fmt, "quizzes")


@router.get("/quizzes")
@router.get("/quizzes.{fmt}")
def list_quizzes(request: Request, fmt: str = "json", owner: models.User = Depends(token_required),
                 db: Session = Depends(get_db)):
    return quiz_index(request, db, owner, fmt)


@router.get("/users/tokenOwner/quizzes")
@router.get("/users/tokenOwner/quizzes.{fmt}")
def list_token_owner_quizzes(request: Request, fmt: str = "json", owner: models.User = Depends(token_required),
                             db: Session = Depends(get_db)):
    return quiz_index(request, db, owner, fmt, author_id=owner.id)


@router.get("/users/{user_id:int}/quizzes")
@router.get("/users/{user_id:int}/quizzes.{fmt}")
def list_user_quizzes(request: Request, fmt: str = "json", user: models.User = Depends(load_user),
                      owner: models.User = Depends(token_required), db: Session = Depends(get_db)):
    return quiz_index(request, db, owner, fmt, author_id=user.id)


@router.get("/quizzes/{quiz_id:int}")
@router.get("/quizzes/{quiz_id:int}.{fmt}")
def show_quiz(quiz_id: int, fmt: str = "json", owner: models.User = Depends(token_required),
              db: Session = Depends(get_db)):
    quiz = full_quiz(db, quiz_id)
    if quiz is None:
        raise HTTPException(status_code=404, detail=f"There is no quiz with id={quiz_id}")
    return formatted(dump(schemas.quiz_display(quiz, owner.id)), fmt, "quiz")


# --- FAVOURITES ---
@router.put("/users/tokenOwner/favourites/{quiz_id:int}")
def add_favourite(quiz: models.Quiz = Depends(load_quiz), owner: models.User = Depends(token_required),
                  db: Session = Depends(get_db)):
    quiz.add_fan(owner)
    db.commit()
    return Response(status_code=status.HTTP_200_OK)


@router.delete("/users/tokenOwner/favourites/{quiz_id:int}")
def delete_favourite(quiz: models.Quiz = Depends(load_quiz), owner: models.User = Depends(token_required),
                     db: Session = Depends(get_db)):
    quiz.remove_fan(owner)
    db.commit()
    return Response(status_code=status.HTTP_200_OK)


# --- PLAY ---
@router.get("/quizzes/random")
def play_random(owner: models.User = Depends(token_required), db: Session = Depends(get_db)):
    quiz = random_quiz(db)
    if quiz is None:
        return {"nomore": True}
    return dump(schemas.quiz_display(full_quiz(db, quiz.id), owner.id))


@router.get("/quizzes/{quiz_id:int}/check", response_model=schemas.CheckResult)
def check(answer: str = "", quiz: models.Quiz = Depends(load_quiz)):
    return schemas.CheckResult(quizId=quiz.id, answer=answer, result=quiz.check_answer(answer))


# --- RANDOM PLAY ---
def next_random_play_quiz(request: Request, db: Session, owner: models.User):
    result = RandomPlay(request.session).next_quiz(db)
    if result.nomore:
        return dump(schemas.RandomPlayNoMore(score=result.score))
    quiz = full_quiz(db, result.quiz.id)
    return dump(schemas.RandomPlayQuiz(quiz=schemas.quiz_display(quiz, owner.id), score=result.score))


@router.get("/quizzes/randomPlay/new")
def random_play_new(request: Request, owner: models.User = Depends(token_required), db: Session = Depends(get_db)):
    RandomPlay(request.session).start()
    return next_random_play_quiz(request, db, owner)


@router.get("/quizzes/randomPlay/next")
def random_play_next(request: Request, owner: models.User = Depends(token_required), db: Session = Depends(get_db)):
    return next_random_play_quiz(request, db, owner)


@router.get("/quizzes/randomPlay/check", response_model=schemas.RandomPlayCheck)
def random_play_check(request: Request, answer: str = "", db: Session = Depends(get_db)):
    result = RandomPlay(request.session).check(db, answer)
    return schemas.RandomPlayCheck(answer=result.answer, quizId=result.quiz.id,
                                   result=result.result, score=result.score)


# Up to 10 random quizzes, with their answers.
@router.get("/quizzes/random10wa")
def random10wa(owner: models.User = Depends(token_required), db: Session = Depends(get_db)):
    quizzes = with_relations(db.query(models.Quiz)).order_by(func.random()).limit(10).all()
    return [dump(schemas.quiz_display(quiz, owner.id, with_answer=True)) for quiz in quizzes]
