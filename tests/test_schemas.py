import pytest
from pydantic import TypeAdapter, ValidationError

from quizbee.schemas import (
    Difficulty,
    GenerationRequest,
    Patch,
    Question,
    SessionForm,
    UpdatePatch,
    normalize_difficulty,
    normalize_question_text,
    step_difficulty,
)

from conftest import make_question


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("75", Difficulty.HARD),
        ("20", Difficulty.EASY),
        ("50", Difficulty.MEDIUM),
        ("33", Difficulty.MEDIUM),
        ("66", Difficulty.HARD),
        (10, Difficulty.EASY),
        ("hard", Difficulty.HARD),
        ("EASY", Difficulty.EASY),
        (" Medium ", Difficulty.MEDIUM),
    ],
)
def test_normalize_difficulty(raw, expected):
    assert normalize_difficulty(raw) == expected


def test_unrecognized_difficulty_falls_back_to_default():
    assert normalize_difficulty("spicy") == Difficulty.MEDIUM
    assert normalize_difficulty(None) == Difficulty.MEDIUM
    assert normalize_difficulty("spicy", default=None) is None


def test_step_difficulty_saturates():
    assert step_difficulty(Difficulty.MEDIUM, 1) == Difficulty.HARD
    assert step_difficulty(Difficulty.HARD, 1) == Difficulty.HARD
    assert step_difficulty(Difficulty.EASY, -1) == Difficulty.EASY


def test_normalized_key_collapses_whitespace_and_case():
    assert normalize_question_text("  What   is\nDNA? ") == "what is dna?"
    assert make_question("What IS  dna?").normalized_key == "what is dna?"
    assert normalize_question_text(None) == ""


def test_question_requires_exactly_four_options():
    with pytest.raises(ValidationError):
        Question.model_validate({"questionText": "x", "options": ["a"], "correctAnswer": "a"})


def test_question_wire_format_uses_camel_case():
    assert make_question("Q").to_wire() == {
        "questionText": "Q",
        "options": ["a", "b", "c", "d"],
        "correctAnswer": "a",
    }


def test_generation_request_normalizes_slider_difficulty():
    assert GenerationRequest(subject="Math", difficulty="80", desired_count=3).difficulty == Difficulty.HARD
    with pytest.raises(ValidationError):
        GenerationRequest(subject="Math", desired_count=0)


def test_session_form_wire_format():
    form = SessionForm(subject="Math", difficulty="easy", number_of_questions=5)
    assert form.to_wire() == {"subject": "Math", "difficulty": "Easy", "numberOfQuestions": 5}


def test_update_patch_accepts_partial_question_alias():
    patch = TypeAdapter(Patch).validate_python(
        {"op": "update", "index": 1, "partialQuestion": {"questionText": "New text"}}
    )
    assert isinstance(patch, UpdatePatch)
    assert patch.question.changes() == {"question_text": "New text"}
