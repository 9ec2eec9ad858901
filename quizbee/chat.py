# quizbee/chat.py
import logging
import os
from typing import Any, Dict, Optional, Sequence

from pydantic import ValidationError

from quizbee.errors import ParseFailure
from quizbee.llm_client import ModelGateway
from quizbee.parser import coerce_questions, parse_model_json
from quizbee.prompts import build_chat_prompt
from quizbee.schemas import ChatPayload, ModificationPlan, Question, SessionForm, quiz_to_wire

logger = logging.getLogger(__name__)

# Only the first questions are shown to the model to keep the chat prompt small
CHAT_QUIZ_CAP = int(os.environ.get("CHAT_QUIZ_CAP", 20))


class ChatInterpreter:
    """Turns a free-text edit request into a ChatPayload (plan, patches and/or full quiz)."""

    def __init__(self, gateway: ModelGateway, quiz_cap: int = CHAT_QUIZ_CAP):
        self.gateway = gateway
        self.quiz_cap = quiz_cap

    async def interpret(
        self,
        message: str,
        quiz: Sequence[Question] = (),
        form: Optional[SessionForm] = None,
    ) -> ChatPayload:
        shown = quiz_to_wire(list(quiz)[:self.quiz_cap])
        meta = form.to_wire() if form is not None else None
        text = await self.gateway.generate(build_chat_prompt(message, shown, meta))

        try:
            parsed = parse_model_json(text)
        except ParseFailure:
            logger.info("Chat reply was not JSON; passing it through as plain content")
            return ChatPayload(content=text)
        return to_payload(parsed)


def to_payload(parsed: Any) -> ChatPayload:
    """Shape-check a parsed chat reply. Anything unusable is dropped, never raised."""
    if isinstance(parsed, list):
        # A bare array can only be a replacement quiz
        parsed = {"quiz": parsed}
    if not isinstance(parsed, dict):
        return ChatPayload(content=str(parsed))

    content = parsed.get("content")
    payload: Dict[str, Any] = {"content": "" if content is None else str(content)}

    quiz = parsed.get("quiz")
    if isinstance(quiz, list):
        payload["quiz"] = coerce_questions(quiz)
    elif quiz is not None:
        logger.warning("Dropping non-list quiz from chat reply")

    patches = parsed.get("patches")
    if isinstance(patches, list):
        payload["patches"] = [p for p in patches if isinstance(p, dict)]

    modification = parsed.get("modification")
    if isinstance(modification, dict):
        payload["modification"] = _plan_or_none(modification)
    elif modification is not None:
        logger.warning("Dropping non-object modification from chat reply")

    return ChatPayload(**payload)


def _plan_or_none(raw: Dict[str, Any]) -> Optional[ModificationPlan]:
    try:
        return ModificationPlan.model_validate(raw)
    except ValidationError:
        logger.warning("Dropping invalid modification plan: %r", raw)
        return None
