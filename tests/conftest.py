import json

import pytest
from redis.exceptions import RedisError

from quizbee.schemas import Question


def question_dict(text, answer="a"):
    return {"questionText": text, "options": ["a", "b", "c", "d"], "correctAnswer": answer}


def questions_json(*texts):
    return json.dumps([question_dict(t) for t in texts])


def make_question(text):
    return Question.model_validate(question_dict(text))


class FakeGateway:
    """Scripted ModelGateway. `responder(prompt)` returns text or an exception to raise."""

    def __init__(self, responder):
        self.responder = responder
        self.prompts = []

    async def generate(self, prompt):
        self.prompts.append(prompt)
        reply = self.responder(prompt)
        if isinstance(reply, Exception):
            raise reply
        return reply


class FakeRedis:
    def __init__(self, fail=False):
        self.fail = fail
        self.published = []

    async def publish(self, channel, message):
        if self.fail:
            raise RedisError("redis is down")
        self.published.append((channel, json.loads(message)))
        return 0


@pytest.fixture
def fake_redis():
    return FakeRedis()
