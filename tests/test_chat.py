import asyncio
import json

from quizbee.chat import ChatInterpreter, to_payload
from quizbee.schemas import SessionForm

from conftest import FakeGateway, make_question, question_dict


def interpret(reply, message="add five more", quiz=(), form=None, **kwargs):
    gateway = FakeGateway(lambda prompt: reply)
    payload = asyncio.run(ChatInterpreter(gateway, **kwargs).interpret(message, quiz, form))
    return payload, gateway


def test_fenced_plan_is_extracted():
    reply = 'Okay!\n```json\n{"content": "Adding 5 questions", "modification": {"type": "append", "count": 5}}\n```'
    payload, _ = interpret(reply)

    assert payload.content == "Adding 5 questions"
    assert payload.modification.type == "append"
    assert payload.modification.count == 5
    assert payload.quiz is None and payload.patches is None


def test_prose_reply_becomes_plain_content():
    payload, _ = interpret("I can only help with quizzes.")

    assert payload.content == "I can only help with quizzes."
    assert payload.quiz is None and payload.patches is None and payload.modification is None


def test_bare_array_is_a_replacement_quiz():
    payload, _ = interpret(json.dumps([question_dict("Fresh question")]))
    assert [q.question_text for q in payload.quiz] == ["Fresh question"]


def test_patches_are_passed_through_raw():
    reply = json.dumps({"content": "ok", "patches": [{"op": "delete", "index": 1}, "junk"]})
    payload, _ = interpret(reply)
    assert payload.patches == [{"op": "delete", "index": 1}]


def test_bad_shapes_are_dropped():
    payload = to_payload({"content": 3, "quiz": "not a list", "modification": "harder"})

    assert payload.content == "3"
    assert payload.quiz is None
    assert payload.modification is None


def test_invalid_plan_is_dropped():
    payload = to_payload({"content": "ok", "modification": {"type": "teleport"}})
    assert payload.modification is None


def test_prompt_shows_truncated_quiz_and_form():
    quiz = [make_question(f"Q{i}") for i in range(25)]
    form = SessionForm(subject="Physics", difficulty="hard", number_of_questions=25)

    _, gateway = interpret('{"content": "ok"}', quiz=quiz, form=form, quiz_cap=20)
    prompt = gateway.prompts[0]

    assert '"Q19"' in prompt
    assert '"Q20"' not in prompt
    assert '"numberOfQuestions": 25' in prompt
    assert '"add five more"' in prompt
