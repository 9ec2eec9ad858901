# quizbee/reconciler.py
import logging
import math
from typing import Any, List, Optional, Sequence, Union

from pydantic import TypeAdapter, ValidationError

from quizbee.schemas import (
    ChatPayload,
    DeletePatch,
    Difficulty,
    GenerationRequest,
    InsertPatch,
    ModificationPlan,
    Patch,
    Question,
    ReplacePatch,
    SessionForm,
    UpdatePatch,
    normalize_difficulty,
    step_difficulty,
)
from quizbee.synthesizer import QuizSynthesizer, merge_unique

logger = logging.getLogger(__name__)

_PATCH_ADAPTER = TypeAdapter(Patch)
_PATCH_TYPES = (ReplacePatch, UpdatePatch, DeletePatch, InsertPatch)
_DIFFICULTY_STEPS = {"increase": 1, "decrease": -1}
# Plans of these types change content, so a same-size quiz is regenerated
_REGENERATING_TYPES = {"difficulty", "topic", "other"}


def _as_count(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, str):
        try:
            value = float(value.strip())
        except ValueError:
            return None
    if isinstance(value, (int, float)):
        # "inf", "nan" and "1e400" parse as floats but have no integer count
        if isinstance(value, float) and not math.isfinite(value):
            return None
        return int(value)
    return None


class ReconciliationEngine:
    """
    Owns one editing session: the live quiz, the last-used generation form and the
    source text the quiz was generated from. All mutation goes through this class.
    Single writer; not safe for concurrent turns.
    """

    def __init__(
        self,
        synthesizer: QuizSynthesizer,
        quiz: Optional[Sequence[Question]] = None,
        form: Optional[SessionForm] = None,
        source_text: Optional[str] = None,
    ):
        self.synthesizer = synthesizer
        self._quiz: List[Question] = list(quiz or [])
        self.form = form
        self.source_text = source_text

    @property
    def quiz(self) -> List[Question]:
        return list(self._quiz)

    def replace_quiz(self, questions: Sequence[Question]) -> List[Question]:
        self._quiz = list(questions)
        return self.quiz

    async def generate(self, request: GenerationRequest) -> List[Question]:
        """Form submission: synthesize a fresh quiz and remember the form for later plans."""
        questions = await self.synthesizer.synthesize(request)
        self.replace_quiz(questions)
        self.form = SessionForm(
            subject=request.subject,
            difficulty=request.difficulty,
            number_of_questions=request.desired_count,
        )
        self.source_text = request.source_text
        return self.quiz

    # patches

    def apply_patches(self, patches: Sequence[Union[dict, Any]]) -> List[Question]:
        """
        Apply patches left to right against one evolving list; each index is read
        against the list as the previous patches left it. Malformed patches and
        out-of-range indices are skipped. Re-applying the same list is not idempotent
        in general (a repeated delete removes a different element).
        """
        quiz = list(self._quiz)
        for position, raw in enumerate(patches):
            patch = self._coerce_patch(raw, position)
            if patch is None:
                continue
            if not self._apply_one(quiz, patch):
                logger.warning(
                    "Skipping %s patch %d: index %d out of range for %d questions",
                    patch.op, position, patch.index, len(quiz),
                )
        self._quiz = quiz
        return self.quiz

    @staticmethod
    def _coerce_patch(raw: Any, position: int):
        if isinstance(raw, _PATCH_TYPES):
            return raw
        try:
            return _PATCH_ADAPTER.validate_python(raw)
        except ValidationError:
            logger.warning("Skipping malformed patch %d: %r", position, raw)
            return None

    @staticmethod
    def _apply_one(quiz: List[Question], patch) -> bool:
        in_bounds = 0 <= patch.index < len(quiz)

        if isinstance(patch, DeletePatch):
            if in_bounds:
                del quiz[patch.index]
            return in_bounds

        if isinstance(patch, ReplacePatch):
            if in_bounds:
                quiz[patch.index] = patch.question
            return in_bounds

        if isinstance(patch, UpdatePatch):
            if in_bounds:
                quiz[patch.index] = quiz[patch.index].model_copy(update=patch.question.changes())
            return in_bounds

        # insertAfter / insertBefore
        target = patch.index + 1 if patch.op == "insertAfter" else max(0, patch.index)
        if 0 <= target <= len(quiz):
            quiz.insert(target, patch.question)
            return True
        return False

    # plans

    async def reconcile_with_plan(self, plan: ModificationPlan) -> List[Question]:
        """
        Resize or regenerate the quiz according to a plan. Growing and regenerating call
        the synthesizer and let its failures propagate; shrinking only truncates.
        """
        if self.form is None:
            logger.info("Ignoring %s plan: no generation form in this session yet", plan.type)
            return self.quiz

        current = list(self._quiz)
        current_len = len(current)
        subject = self.form.subject
        difficulty = self.form.difficulty
        desired = self.form.number_of_questions

        if plan.type == "difficulty":
            difficulty = self._resolve_difficulty(plan, difficulty)
        elif plan.type == "topic":
            if plan.value is not None and str(plan.value).strip():
                subject = str(plan.value).strip()
        elif plan.type == "count":
            count = _as_count(plan.value)
            if count is not None:
                desired = max(0, count)
        elif plan.type == "append":
            extra = plan.count if plan.count is not None else _as_count(plan.value)
            if extra is not None:
                desired = current_len + max(0, extra)

        logger.info(
            "Reconciling %s plan: %d -> %d questions, %s, %r",
            plan.type, current_len, desired, difficulty.value, subject,
        )

        if desired > current_len:
            needed = desired - current_len
            fresh = await self.synthesizer.synthesize(
                self._request(subject, difficulty, needed, plan.subtopic)
            )
            # existing questions win over freshly generated duplicates
            seen = {q.normalized_key for q in current}
            self._quiz = current + merge_unique([fresh], seen=seen, limit=needed)
        elif desired < current_len:
            self._quiz = current[:desired]
        elif plan.type in _REGENERATING_TYPES and desired > 0:
            fresh = await self.synthesizer.synthesize(
                self._request(subject, difficulty, desired, plan.subtopic)
            )
            self._quiz = fresh[:desired]
        else:
            return self.quiz

        self.form = SessionForm(subject=subject, difficulty=difficulty, number_of_questions=desired)
        return self.quiz

    @staticmethod
    def _resolve_difficulty(plan: ModificationPlan, current: Difficulty) -> Difficulty:
        level = normalize_difficulty(plan.value, default=None)
        if level is None and plan.action in _DIFFICULTY_STEPS:
            level = step_difficulty(current, _DIFFICULTY_STEPS[plan.action])
        return level or current

    def _request(self, subject: str, difficulty: Difficulty, count: int, focus: Optional[str]) -> GenerationRequest:
        return GenerationRequest(
            subject=subject,
            difficulty=difficulty,
            desired_count=count,
            source_text=self.source_text,
            focus=focus,
        )

    # chat turns

    async def apply_turn(self, payload: ChatPayload) -> List[Question]:
        """
        Apply one interpreted chat turn: replacement quiz, then patches, then plan.
        A turn is all-or-nothing; if the plan fails the quiz and form are restored.
        """
        saved_quiz, saved_form = list(self._quiz), self.form
        try:
            if payload.quiz:
                self.replace_quiz(payload.quiz)
            elif payload.quiz is not None:
                logger.warning("Ignoring empty replacement quiz")
            if payload.patches:
                self.apply_patches(payload.patches)
            if payload.modification is not None:
                await self.reconcile_with_plan(payload.modification)
        except Exception:
            logger.warning("Turn failed; restoring the previous quiz")
            self._quiz, self.form = saved_quiz, saved_form
            raise
        return self.quiz
