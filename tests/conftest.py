import os
import tempfile

# The settings are read when quizapp is imported.
_tmpdir = tempfile.mkdtemp(prefix="quizapp-tests-")
os.environ["DATABASE_URL"] = "sqlite:///" + os.path.join(_tmpdir, "test.sqlite")
os.environ["UPLOAD_DIR"] = os.path.join(_tmpdir, "uploads")
os.environ["SECRET_KEY"] = "test-secret"
os.environ["CLOUDINARY_URL"] = ""
os.environ["QUIZ_OPEN_REGISTER"] = "false"
os.environ["ADMIN_PASSWORD"] = "1234"

import pytest
from fastapi.testclient import TestClient

from main import app
from quizapp import models
from quizapp.core import security
from quizapp.database import Base, SessionLocal, engine


@pytest.fixture(autouse=True)
def reset_db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client():
    # entering the client runs the startup handlers (admin user)
    with TestClient(app) as c:
        yield c


def create_user(db, username, password="secret", is_admin=False, **kwargs):
    user = models.User(username=username, is_admin=is_admin, token=security.create_token(), **kwargs)
    user.set_password(password)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def create_quiz(db, author, question="Capital of France?", answer="Paris"):
    quiz = models.Quiz(question=question, answer=answer, author_id=author.id if author else None)
    db.add(quiz)
    db.commit()
    db.refresh(quiz)
    return quiz


def csrf_token(client):
    if "csrf_token" not in client.cookies:
        client.get("/")
    return client.cookies.get("csrf_token")


def login(client, username, password="secret"):
    client.get("/login")
    return client.post("/login", data={
        "username": username,
        "password": password,
        "csrf_token": csrf_token(client),
    }, follow_redirects=False)


def xhr_headers(client):
    return {"X-Requested-With": "XMLHttpRequest", "x-csrf-token": csrf_token(client)}
