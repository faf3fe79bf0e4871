from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, JSON, String, Table, Text
from sqlalchemy.orm import relationship

from .core import security
from .database import Base

# Account types. 0 is a local (username/password) account.
LOCAL, GITHUB, TWITTER, GOOGLE, LINKEDIN = range(5)

ACCOUNT_TYPES = {
    "github": GITHUB,
    "twitter": TWITTER,
    "google": GOOGLE,
    "linkedin": LINKEDIN,
}


def utcnow():
    return datetime.utcnow()


# N-to-N between Quiz and User:
#   a user has many favourite quizzes,
#   a quiz has many fans (the users who marked it as favourite).
favourites = Table(
    "favourites",
    Base.metadata,
    Column("user_id", Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
    Column("quiz_id", Integer, ForeignKey("quizzes.id", ondelete="CASCADE"), primary_key=True),
)


class Attachment(Base):
    __tablename__ = "attachments"

    id = Column(Integer, primary_key=True, index=True)
    public_id = Column(String, nullable=False)  # cloud resource id or local file name
    url = Column(String, nullable=False)
    filename = Column(String, nullable=False)
    mime = Column(String, nullable=False)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    @property
    def is_image(self):
        return self.mime.startswith("image/")

    @property
    def is_video(self):
        return self.mime.startswith("video/")


class User(Base):
    __tablename__ = "users"
    # never reuse ids
    __table_args__ = {"sqlite_autoincrement": True}

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String, unique=True, index=True, nullable=False)
    password = Column(String, nullable=True)  # hashed, empty for OAuth accounts
    is_admin = Column(Boolean, default=False)

    # OAuth profile
    account_type_id = Column(Integer, default=LOCAL)
    profile_id = Column(String, nullable=True)
    profile_name = Column(String, nullable=True)

    photo_id = Column(Integer, ForeignKey("attachments.id"), nullable=True)
    token = Column(String, nullable=True, index=True)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    photo = relationship("Attachment", foreign_keys=[photo_id])
    quizzes = relationship("Quiz", back_populates="author")
    favourite_quizzes = relationship("Quiz", secondary=favourites, back_populates="fans")

    def set_password(self, password):
        self.password = security.hash_password(password)

    def verify_password(self, password):
        return security.verify_password(password, self.password)

    @property
    def is_local(self):
        return not self.account_type_id


class Quiz(Base):
    __tablename__ = "quizzes"

    id = Column(Integer, primary_key=True, index=True)
    question = Column(Text, nullable=False)
    answer = Column(Text, nullable=False)
    author_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    attachment_id = Column(Integer, ForeignKey("attachments.id"), nullable=True)
    created_at = Column(DateTime, default=utcnow, index=True)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    author = relationship("User", back_populates="quizzes")
    attachment = relationship("Attachment", foreign_keys=[attachment_id])
    fans = relationship("User", secondary=favourites, back_populates="favourite_quizzes")

    def check_answer(self, answer):
        return (answer or "").lower().strip() == self.answer.lower().strip()

    def is_favourite_of(self, user_id):
        if not user_id:
            return False
        return any(fan.id == user_id for fan in self.fans)

    def add_fan(self, user):
        if user not in self.fans:
            self.fans.append(user)

    def remove_fan(self, user):
        if user in self.fans:
            self.fans.remove(user)


class SessionRecord(Base):
    """Server side storage of the browser sessions."""

    __tablename__ = "sessions"

    sid = Column(String, primary_key=True)
    data = Column(JSON, default=dict)
    expires = Column(DateTime, nullable=False, index=True)
