import re
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.orm import Query, Session, joinedload, selectinload

from . import models
from .core.pagination import Page


def search_quizzes(db: Session, search: str = "", author_id: Optional[int] = None,
                   fan_id: Optional[int] = None) -> Query:
    """
    Quizzes whose question contains the words of `search` in order,
    optionally restricted to one author and/or to the favourites of `fan_id`.
    """
    query = db.query(models.Quiz)
    search = (search or "").strip()
    if search:
        query = query.filter(models.Quiz.question.like("%" + re.sub(r" +", "%", search) + "%"))
    if author_id is not None:
        query = query.filter(models.Quiz.author_id == author_id)
    if fan_id is not None:
        query = query.filter(models.Quiz.fans.any(models.User.id == fan_id))
    return query


def with_relations(query: Query) -> Query:
    return query.options(
        joinedload(models.Quiz.attachment),
        joinedload(models.Quiz.author).joinedload(models.User.photo),
        selectinload(models.Quiz.fans),
    )


def paginate_quizzes(query: Query, pageno: int, per_page: int):
    page = Page(query.count(), per_page, pageno)
    quizzes = with_relations(query).order_by(models.Quiz.id).offset(page.offset).limit(per_page).all()
    return page, quizzes


def quizzes_created_today(db: Session, author_id: int) -> int:
    since = datetime.utcnow() - timedelta(days=1)
    return db.query(models.Quiz).filter(
        models.Quiz.author_id == author_id,
        models.Quiz.created_at >= since,
    ).count()
