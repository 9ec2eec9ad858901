import json

import pytest

from quizbee.errors import ParseFailure, ShapeFailure
from quizbee.parser import parse_model_json, parse_question_array

from conftest import question_dict, questions_json


def test_parses_bare_json_array():
    questions = parse_question_array(questions_json("What is 2+2?"))
    assert [q.question_text for q in questions] == ["What is 2+2?"]


def test_extracts_fenced_array_and_ignores_prose():
    text = (
        "Sure! Here is your quiz:\n"
        '```json\n[{"questionText":"X","options":["a","b","c","d"],"correctAnswer":"a"}]\n```\n'
        "Let me know if you want changes."
    )
    questions = parse_question_array(text)

    assert len(questions) == 1
    assert questions[0].question_text == "X"
    assert questions[0].options == ["a", "b", "c", "d"]
    assert questions[0].correct_answer == "a"


def test_fence_match_is_case_insensitive():
    assert parse_model_json('```JSON\n{"content": "ok"}\n```') == {"content": "ok"}


def test_prose_without_fence_is_a_parse_failure():
    with pytest.raises(ParseFailure):
        parse_model_json("I could not make a quiz about that.")


def test_broken_fenced_json_is_a_parse_failure():
    with pytest.raises(ParseFailure):
        parse_model_json("```json\n[{]\n```")


def test_non_array_is_a_shape_failure_not_a_parse_failure():
    with pytest.raises(ShapeFailure) as info:
        parse_question_array(json.dumps({"content": "Done!"}))

    assert not isinstance(info.value, ParseFailure)
    assert info.value.value == {"content": "Done!"}


def test_structurally_invalid_items_are_dropped():
    items = [
        question_dict("Good one"),
        {"questionText": "Three options", "options": ["a", "b", "c"], "correctAnswer": "a"},
        "not even an object",
        {"options": ["a", "b", "c", "d"], "correctAnswer": "a"},
    ]
    questions = parse_question_array(json.dumps(items))
    assert [q.question_text for q in questions] == ["Good one"]
