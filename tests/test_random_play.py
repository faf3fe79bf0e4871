import pytest

from conftest import create_quiz, create_user
from quizapp import models
from quizapp.random_play import AWAITING_ANSWER, NO_SESSION, SESSION_KEY, RandomPlay, RandomPlayConflict


@pytest.fixture
def author(db):
    return create_user(db, "pepe")


def test_next_without_quizzes_reports_zero_and_clears(db):
    session = {}
    result = RandomPlay(session).next_quiz(db)
    assert result.nomore
    assert result.score == 0
    assert SESSION_KEY not in session


def test_next_serves_the_same_quiz_until_answered(db, author):
    for i in range(5):
        create_quiz(db, author, question=f"Q{i}", answer=f"A{i}")
    play = RandomPlay({})
    first = play.next_quiz(db).quiz
    assert play.status == AWAITING_ANSWER
    assert play.next_quiz(db).quiz.id == first.id
    assert play.next_quiz(db).quiz.id == first.id


def test_check_without_state_is_a_conflict(db, author):
    create_quiz(db, author)
    with pytest.raises(RandomPlayConflict):
        RandomPlay({}).check(db, "Paris")


def test_check_after_a_correct_answer_is_a_conflict(db, author):
    create_quiz(db, author)
    play = RandomPlay({})
    play.next_quiz(db)
    assert play.check(db, "Paris").result
    with pytest.raises(RandomPlayConflict):
        play.check(db, "Paris")


def test_correct_answers_until_no_more(db, author):
    quizzes = [create_quiz(db, author, question=f"Q{i}", answer=f"A{i}") for i in range(3)]
    answers = {quiz.id: quiz.answer for quiz in quizzes}
    session = {}
    play = RandomPlay(session)

    served = []
    for expected_score in range(1, 4):
        quiz = play.next_quiz(db).quiz
        served.append(quiz.id)
        result = play.check(db, "  " + answers[quiz.id].lower() + " ")
        assert result.result
        assert result.score == expected_score
        assert session[SESSION_KEY]["quiz_id"] == 0

    # no repeats
    assert sorted(served) == sorted(answers)

    result = play.next_quiz(db)
    assert result.nomore
    assert result.score == 3
    assert play.status == NO_SESSION


def test_wrong_answer_ends_the_run(db, author):
    create_quiz(db, author, question="Q1", answer="A1")
    create_quiz(db, author, question="Q2", answer="A2")
    session = {}
    play = RandomPlay(session)

    quiz = play.next_quiz(db).quiz
    play.check(db, quiz.answer)
    play.next_quiz(db)
    result = play.check(db, "wrong")
    assert not result.result
    assert result.score == 1
    assert SESSION_KEY not in session


def test_check_of_another_quiz_is_a_conflict(db, author):
    quiz = create_quiz(db, author)
    play = RandomPlay({})
    play.next_quiz(db)
    with pytest.raises(RandomPlayConflict):
        play.check(db, "Paris", quiz_id=quiz.id + 1)


def test_start_resets_the_score(db, author):
    create_quiz(db, author)
    session = {}
    play = RandomPlay(session)
    play.next_quiz(db)
    play.check(db, "Paris")
    play.start()
    assert play.state.score == 0
    assert play.next_quiz(db).quiz is not None


def test_deleted_quiz_is_replaced(db, author):
    doomed = create_quiz(db, author, question="Q1", answer="A1")
    other = create_quiz(db, author, question="Q2", answer="A2")
    session = {SESSION_KEY: {"state": AWAITING_ANSWER, "quiz_id": doomed.id, "resolved": []}}
    db.delete(doomed)
    db.commit()

    result = RandomPlay(session).next_quiz(db)
    assert result.quiz.id == other.id


def test_resolved_quizzes_are_not_served_again(db, author):
    solved = create_quiz(db, author, question="Q1", answer="A1")
    pending = create_quiz(db, author, question="Q2", answer="A2")
    session = {SESSION_KEY: {"state": AWAITING_ANSWER, "quiz_id": 0, "resolved": [solved.id]}}
    play = RandomPlay(session)
    for _ in range(5):
        assert play.next_quiz(db).quiz.id == pending.id
    assert db.query(models.Quiz).count() == 2
