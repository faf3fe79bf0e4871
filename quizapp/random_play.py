"""
Random play: answer random quizzes, without repeats, until a wrong answer.

The state lives in the browser session under one key:

    NoSession                         the key is absent
    AwaitingAnswer(quiz_id, resolved) quiz_id is the quiz being served,
                                      0 after a correct answer

Asking for the next quiz while one is served returns the same quiz. Only a
correct check adds the quiz to `resolved`. A wrong check ends the run, as does
running out of unresolved quizzes; both report the final score.
"""
import logging
from dataclasses import dataclass, field
from typing import List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from . import models

logger = logging.getLogger(__name__)

SESSION_KEY = "random_play"

NO_SESSION = "no_session"
AWAITING_ANSWER = "awaiting_answer"


class RandomPlayConflict(Exception):
    """A check was requested but no quiz is being served."""


@dataclass
class AwaitingAnswer:
    quiz_id: int = 0
    resolved: List[int] = field(default_factory=list)

    @property
    def score(self):
        return len(self.resolved)

    def to_session(self):
        return {"state": AWAITING_ANSWER, "quiz_id": self.quiz_id, "resolved": list(self.resolved)}

    @classmethod
    def from_session(cls, data):
        return cls(quiz_id=data.get("quiz_id", 0), resolved=list(data.get("resolved", [])))


@dataclass
class NextResult:
    quiz: Optional[models.Quiz]
    score: int

    @property
    def nomore(self):
        return self.quiz is None


@dataclass
class CheckResult:
    quiz: models.Quiz
    answer: str
    result: bool
    score: int


def random_quiz(db: Session, exclude=()) -> Optional[models.Quiz]:
    """A uniformly random quiz whose id is not in `exclude`, or None."""
    query = db.query(models.Quiz)
    if exclude:
        query = query.filter(models.Quiz.id.notin_(list(exclude)))
    return query.order_by(func.random()).first()


class RandomPlay:
    def __init__(self, session: dict):
        self.session = session

    @property
    def state(self) -> Optional[AwaitingAnswer]:
        data = self.session.get(SESSION_KEY)
        if not data or data.get("state") != AWAITING_ANSWER:
            return None
        return AwaitingAnswer.from_session(data)

    @property
    def status(self) -> str:
        return AWAITING_ANSWER if self.state else NO_SESSION

    def _save(self, state: AwaitingAnswer):
        self.session[SESSION_KEY] = state.to_session()

    def clear(self):
        self.session.pop(SESSION_KEY, None)

    def start(self) -> AwaitingAnswer:
        state = AwaitingAnswer()
        self._save(state)
        return state

    def next_quiz(self, db: Session) -> NextResult:
        state = self.state or self.start()

        quiz = None
        if state.quiz_id:
            # serve again the quiz that was not answered
            quiz = db.get(models.Quiz, state.quiz_id)
            if quiz is None:
                logger.info("Random play: quiz %d was deleted, choosing another", state.quiz_id)

        if quiz is None:
            quiz = random_quiz(db, exclude=state.resolved)

        if quiz is None:
            self.clear()
            return NextResult(None, state.score)

        state.quiz_id = quiz.id
        self._save(state)
        return NextResult(quiz, state.score)

    def check(self, db: Session, answer: str, quiz_id: int = None) -> CheckResult:
        state = self.state
        if state is None or not state.quiz_id:
            raise RandomPlayConflict("There is no quiz to check")
        if quiz_id is not None and quiz_id != state.quiz_id:
            raise RandomPlayConflict(f"Quiz {quiz_id} is not the quiz being played")

        quiz = db.get(models.Quiz, state.quiz_id)
        if quiz is None:
            self.clear()
            raise RandomPlayConflict(f"There is no quiz with id={state.quiz_id}")

        answer = answer or ""
        result = quiz.check_answer(answer)

        if result:
            state.quiz_id = 0
            # resubmitting a solved quiz must not score twice
            if quiz.id not in state.resolved:
                state.resolved.append(quiz.id)
            self._save(state)
        else:
            self.clear()

        return CheckResult(quiz=quiz, answer=answer, result=result, score=state.score)
