import xml.etree.ElementTree as ET

import pytest

from conftest import create_quiz, create_user
from quizapp.core import config


@pytest.fixture
def pepe(db):
    return create_user(db, "pepe")


def test_token_is_required(client):
    response = client.get("/api/quizzes")
    assert response.status_code == 401
    assert response.json() == {"error": "Access token required"}

    response = client.get("/api/quizzes", params={"token": "nope"})
    assert response.status_code == 401


def test_unknown_route(client, pepe):
    response = client.get("/api/nothing/here", params={"token": pepe.token})
    assert response.status_code == 404
    assert response.json() == {"error": "API route not found"}


def test_users(client, db, pepe):
    users = client.get("/api/users", params={"token": pepe.token}).json()
    assert [u["username"] for u in users] == ["admin", "pepe"]
    assert users[0]["isAdmin"] is True
    assert "password" not in users[0]
    assert "token" not in users[0]

    owner = client.get("/api/users/tokenOwner", params={"token": pepe.token}).json()
    assert owner["id"] == pepe.id

    response = client.get("/api/users/999", params={"token": pepe.token})
    assert response.status_code == 404
    assert response.json() == {"error": "There is no user with id=999"}


def test_quiz_index_never_shows_answers(client, db, pepe):
    create_quiz(db, pepe)
    data = client.get("/api/quizzes.json", params={"token": pepe.token}).json()
    assert data["pageno"] == 1
    assert data["nextUrl"] == ""
    quiz = data["quizzes"][0]
    assert quiz["question"] == "Capital of France?"
    assert quiz["author"]["username"] == "pepe"
    assert quiz["favourite"] is False
    assert "answer" not in quiz


def test_quiz_index_next_url(client, db, pepe):
    for i in range(config.ITEMS_PER_PAGE + 1):
        create_quiz(db, pepe, question=f"Q{i}")
    data = client.get("/api/quizzes", params={"token": pepe.token}).json()
    assert len(data["quizzes"]) == config.ITEMS_PER_PAGE
    assert "pageno=2" in data["nextUrl"]
    assert f"token={pepe.token}" in data["nextUrl"]

    second = client.get(data["nextUrl"]).json()
    assert len(second["quizzes"]) == 1
    assert second["nextUrl"] == ""


def test_quiz_index_as_xml(client, db, pepe):
    create_quiz(db, pepe, question="Q1")
    create_quiz(db, pepe, question="Q2")
    response = client.get("/api/quizzes.xml", params={"token": pepe.token})
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("application/xml")
    root = ET.fromstring(response.text)
    assert root.tag == "quizzes"
    assert [q.findtext("question") for q in root.findall("quiz")] == ["Q1", "Q2"]


def test_unsupported_format(client, db, pepe):
    quiz = create_quiz(db, pepe)
    response = client.get(f"/api/quizzes/{quiz.id}.yaml", params={"token": pepe.token})
    assert response.status_code == 406


def test_show_quiz(client, db, pepe):
    quiz = create_quiz(db, pepe)
    data = client.get(f"/api/quizzes/{quiz.id}", params={"token": pepe.token}).json()
    assert data["id"] == quiz.id
    assert "answer" not in data

    root = ET.fromstring(client.get(f"/api/quizzes/{quiz.id}.xml", params={"token": pepe.token}).text)
    assert root.tag == "quiz"
    assert root.findtext("author/username") == "pepe"


def test_author_quizzes(client, db, pepe):
    juan = create_user(db, "juan")
    create_quiz(db, pepe, question="Pepe's")
    create_quiz(db, juan, question="Juan's")

    mine = client.get("/api/users/tokenOwner/quizzes", params={"token": pepe.token}).json()
    assert [q["question"] for q in mine["quizzes"]] == ["Pepe's"]

    his = client.get(f"/api/users/{juan.id}/quizzes", params={"token": pepe.token}).json()
    assert [q["question"] for q in his["quizzes"]] == ["Juan's"]


def test_favourites(client, db, pepe):
    liked = create_quiz(db, pepe, question="Liked")
    create_quiz(db, pepe, question="Other")
    params = {"token": pepe.token}

    assert client.put(f"/api/users/tokenOwner/favourites/{liked.id}", params=params).status_code == 200
    assert client.put(f"/api/users/tokenOwner/favourites/{liked.id}", params=params).status_code == 200

    data = client.get("/api/quizzes", params={**params, "searchfavourites": "1"}).json()
    assert [(q["question"], q["favourite"]) for q in data["quizzes"]] == [("Liked", True)]

    # the flag belongs to the viewer
    juan = create_user(db, "juan")
    other_view = client.get(f"/api/quizzes/{liked.id}", params={"token": juan.token}).json()
    assert other_view["favourite"] is False

    assert client.delete(f"/api/users/tokenOwner/favourites/{liked.id}", params=params).status_code == 200
    data = client.get("/api/quizzes", params={**params, "searchfavourites": "1"}).json()
    assert data["quizzes"] == []


def test_check(client, db, pepe):
    quiz = create_quiz(db, pepe)
    data = client.get(f"/api/quizzes/{quiz.id}/check", params={"token": pepe.token, "answer": " PARIS"}).json()
    assert data == {"quizId": quiz.id, "answer": " PARIS", "result": True}


def test_random(client, db, pepe):
    assert client.get("/api/quizzes/random", params={"token": pepe.token}).json() == {"nomore": True}
    quiz = create_quiz(db, pepe)
    data = client.get("/api/quizzes/random", params={"token": pepe.token}).json()
    assert data["id"] == quiz.id


def test_random10wa(client, db, pepe):
    for i in range(12):
        create_quiz(db, pepe, question=f"Q{i}", answer=f"A{i}")
    data = client.get("/api/quizzes/random10wa", params={"token": pepe.token}).json()
    assert len(data) == 10
    assert all(q["answer"] == "A" + q["question"][1:] for q in data)


def test_random_play(client, db, pepe):
    quiz = create_quiz(db, pepe)
    params = {"token": pepe.token}

    response = client.get("/api/quizzes/randomPlay/check", params={**params, "answer": "Paris"})
    assert response.status_code == 409
    assert "error" in response.json()

    data = client.get("/api/quizzes/randomPlay/new", params=params).json()
    assert data["score"] == 0
    assert data["quiz"]["id"] == quiz.id

    # unanswered quiz is served again
    assert client.get("/api/quizzes/randomPlay/next", params=params).json()["quiz"]["id"] == quiz.id

    data = client.get("/api/quizzes/randomPlay/check", params={**params, "answer": "paris"}).json()
    assert data == {"answer": "paris", "quizId": quiz.id, "result": True, "score": 1}

    data = client.get("/api/quizzes/randomPlay/next", params=params).json()
    assert data == {"nomore": True, "score": 1}


def test_random_play_wrong_answer(client, db, pepe):
    create_quiz(db, pepe)
    params = {"token": pepe.token}
    client.get("/api/quizzes/randomPlay/new", params=params)
    data = client.get("/api/quizzes/randomPlay/check", params={**params, "answer": "Rome"}).json()
    assert data["result"] is False
    assert data["score"] == 0
    assert client.get("/api/quizzes/randomPlay/check", params={**params, "answer": "Paris"}).status_code == 409


def test_bad_pageno_is_the_first_page(client, db, pepe):
    create_quiz(db, pepe)
    data = client.get("/api/quizzes", params={"token": pepe.token, "pageno": "abc"}).json()
    assert data["pageno"] == 1
    assert len(data["quizzes"]) == 1
