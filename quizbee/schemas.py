# quizbee/schemas.py
import math
import re
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

_WHITESPACE_RE = re.compile(r"\s+")


class Difficulty(str, Enum):
    EASY = "Easy"
    MEDIUM = "Medium"
    HARD = "Hard"


_DIFFICULTY_LADDER = [Difficulty.EASY, Difficulty.MEDIUM, Difficulty.HARD]


def normalize_difficulty(raw: Any, default: Optional[Difficulty] = Difficulty.MEDIUM) -> Optional[Difficulty]:
    """
    Map a label ("hard", "Medium") or a 0-100 slider value ("75", 20) onto a Difficulty.
    Slider boundaries: <33 Easy, <66 Medium, otherwise Hard.
    """
    if isinstance(raw, Difficulty):
        return raw
    if raw is None or isinstance(raw, bool):
        return default
    if isinstance(raw, str):
        text = raw.strip()
        for level in Difficulty:
            if text.lower() == level.value.lower():
                return level
        try:
            raw = float(text)
        except ValueError:
            # unknown labels fall back to the default rather than being read as Hard
            return default
    if isinstance(raw, (int, float)):
        if math.isnan(raw):
            return default
        if raw < 33:
            return Difficulty.EASY
        if raw < 66:
            return Difficulty.MEDIUM
        return Difficulty.HARD
    return default


def step_difficulty(current: Difficulty, steps: int) -> Difficulty:
    """Move up (positive) or down (negative) the Easy/Medium/Hard ladder, saturating at the ends."""
    position = _DIFFICULTY_LADDER.index(current) + steps
    position = max(0, min(len(_DIFFICULTY_LADDER) - 1, position))
    return _DIFFICULTY_LADDER[position]


def normalize_question_text(text: Any) -> str:
    if not isinstance(text, str):
        return ""
    return _WHITESPACE_RE.sub(" ", text.strip()).lower()


class Question(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    question_text: str = Field(..., alias="questionText", min_length=1)
    options: List[str] = Field(..., min_length=4, max_length=4)
    # Expected to match one of the options; not enforced here
    correct_answer: str = Field(..., alias="correctAnswer")

    @property
    def normalized_key(self) -> str:
        return normalize_question_text(self.question_text)

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)


class PartialQuestion(BaseModel):
    """Fields to shallow-merge onto an existing question; anything left out is preserved."""
    model_config = ConfigDict(populate_by_name=True)

    question_text: Optional[str] = Field(None, alias="questionText")
    options: Optional[List[str]] = Field(None, min_length=4, max_length=4)
    correct_answer: Optional[str] = Field(None, alias="correctAnswer")

    def changes(self) -> Dict[str, Any]:
        return self.model_dump(exclude_unset=True, exclude_none=True)


class ReplacePatch(BaseModel):
    op: Literal["replace"]
    index: int
    question: Question


class UpdatePatch(BaseModel):
    op: Literal["update"]
    index: int
    question: PartialQuestion = Field(validation_alias=AliasChoices("question", "partialQuestion"))


class DeletePatch(BaseModel):
    op: Literal["delete"]
    index: int


class InsertPatch(BaseModel):
    op: Literal["insertAfter", "insertBefore"]
    index: int
    question: Question


Patch = Annotated[
    Union[ReplacePatch, UpdatePatch, DeletePatch, InsertPatch],
    Field(discriminator="op"),
]


class ModificationPlan(BaseModel):
    type: Literal["difficulty", "topic", "count", "append", "other"]
    action: Optional[Literal["increase", "decrease", "change"]] = None
    value: Optional[Union[int, float, str]] = None
    count: Optional[int] = None  # only read for type=append
    subtopic: Optional[str] = None


class SessionForm(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    subject: str
    difficulty: Difficulty = Difficulty.MEDIUM
    number_of_questions: int = Field(..., alias="numberOfQuestions", ge=0)

    @field_validator("difficulty", mode="before")
    @classmethod
    def _coerce_difficulty(cls, value: Any) -> Difficulty:
        return normalize_difficulty(value)

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")


class GenerationRequest(BaseModel):
    subject: str
    difficulty: Difficulty = Difficulty.MEDIUM
    desired_count: int = Field(..., gt=0)
    source_text: Optional[str] = None
    focus: Optional[str] = None  # subtopic hint from a chat plan

    @field_validator("difficulty", mode="before")
    @classmethod
    def _coerce_difficulty(cls, value: Any) -> Difficulty:
        return normalize_difficulty(value)


class ChatPayload(BaseModel):
    """One interpreted chat turn. Patches stay raw so a bad one cannot sink the rest."""
    content: str = ""
    quiz: Optional[List[Question]] = None
    patches: Optional[List[Dict[str, Any]]] = None
    modification: Optional[ModificationPlan] = None


class ChatRequest(BaseModel):
    message: str = Field(..., min_length=1)


def quiz_to_wire(quiz: List[Question]) -> List[Dict[str, Any]]:
    return [q.to_wire() for q in quiz]
