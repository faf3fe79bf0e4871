from pydantic import BaseModel, Field, ValidationInfo, field_validator
from typing import List, Optional


# --- HTML forms ---

class QuizForm(BaseModel):
    question: str = ""
    answer: str = ""

    @field_validator("question", "answer")
    @classmethod
    def not_empty(cls, value: str, info: ValidationInfo):
        if not value.strip():
            raise ValueError(f"{info.field_name.capitalize()} must not be empty.")
        return value


class UserForm(BaseModel):
    username: str = ""
    password: str = ""

    @field_validator("username", "password")
    @classmethod
    def not_empty(cls, value: str, info: ValidationInfo):
        if not value.strip():
            raise ValueError(f"{info.field_name.capitalize()} must not be empty.")
        return value


def form_errors(exc) -> List[str]:
    """Messages of a pydantic ValidationError, one per invalid field."""
    messages = []
    for error in exc.errors():
        ctx = error.get("ctx") or {}
        messages.append(str(ctx["error"]) if "error" in ctx else error["msg"])
    return messages


# --- API ---

class AttachmentDisplay(BaseModel):
    filename: str
    mime: str
    url: str
    class Config:
        from_attributes = True


class UserDisplay(BaseModel):
    id: int
    is_admin: bool = Field(serialization_alias="isAdmin")
    username: str
    photo: Optional[AttachmentDisplay] = None
    class Config:
        from_attributes = True


class AuthorDisplay(UserDisplay):
    account_type_id: Optional[int] = Field(None, serialization_alias="accountTypeId")
    profile_id: Optional[str] = Field(None, serialization_alias="profileId")
    profile_name: Optional[str] = Field(None, serialization_alias="profileName")


class QuizDisplay(BaseModel):
    id: int
    question: str
    author: Optional[AuthorDisplay] = None
    attachment: Optional[AttachmentDisplay] = None
    favourite: bool = False


class QuizWithAnswer(QuizDisplay):
    answer: str


class CheckResult(BaseModel):
    quizId: int
    answer: str
    result: bool


class RandomPlayQuiz(BaseModel):
    quiz: QuizDisplay
    score: int


class RandomPlayNoMore(BaseModel):
    nomore: bool = True
    score: int


class RandomPlayCheck(BaseModel):
    answer: str
    quizId: int
    result: bool
    score: int


def quiz_display(quiz, viewer_id: Optional[int], with_answer: bool = False) -> QuizDisplay:
    """The favourite flag is computed for the viewer, never stored."""
    schema = QuizWithAnswer if with_answer else QuizDisplay
    data = {
        "id": quiz.id,
        "question": quiz.question,
        "author": AuthorDisplay.model_validate(quiz.author) if quiz.author else None,
        "attachment": AttachmentDisplay.model_validate(quiz.attachment) if quiz.attachment else None,
        "favourite": quiz.is_favourite_of(viewer_id),
    }
    if with_answer:
        data["answer"] = quiz.answer
    return schema(**data)
