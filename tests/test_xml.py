import xml.etree.ElementTree as ET

from quizapp.core.xml import to_xml


def test_nested_lists_and_scalars():
    doc = to_xml("quizzes", {"quiz": [
        {"id": 1, "question": "Q1", "favourite": True, "attachment": None},
        {"id": 2, "question": "Q2", "favourite": False, "author": {"username": "pepe"}},
    ]})
    assert doc.startswith("<?xml")

    root = ET.fromstring(doc)
    assert root.tag == "quizzes"
    quizzes = root.findall("quiz")
    assert [q.findtext("id") for q in quizzes] == ["1", "2"]
    assert quizzes[0].findtext("favourite") == "true"
    assert quizzes[1].findtext("favourite") == "false"
    assert quizzes[0].find("attachment") is None
    assert quizzes[1].findtext("author/username") == "pepe"


def test_text_is_escaped():
    root = ET.fromstring(to_xml("quiz", {"question": "1 < 2 & 3 > 2?"}))
    assert root.findtext("question") == "1 < 2 & 3 > 2?"


def test_control_characters_are_dropped():
    doc = to_xml("quiz", {"question": "Bell\x07 and\x01 tab\tok"})
    assert ET.fromstring(doc).findtext("question") == "Bell and tab\tok"
