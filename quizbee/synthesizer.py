# quizbee/synthesizer.py
import asyncio
import logging
import os
from typing import Iterable, List, Optional, Set

from quizbee import segmenter
from quizbee.errors import GenerationFailure, ParseFailure, ShapeFailure
from quizbee.llm_client import ModelGateway
from quizbee.parser import parse_question_array
from quizbee.prompts import build_prompt, per_chunk_cap
from quizbee.schemas import GenerationRequest, Question

logger = logging.getLogger(__name__)

MAX_CONCURRENT_CHUNKS = int(os.environ.get("MAX_CONCURRENT_CHUNKS", 4))
CHUNK_TIMEOUT_SECONDS = float(os.environ.get("CHUNK_TIMEOUT_SECONDS", 180))


def merge_unique(
    batches: Iterable[Iterable[Question]],
    seen: Optional[Set[str]] = None,
    limit: Optional[int] = None,
) -> List[Question]:
    """
    Flatten batches in order, keeping the first question per normalized key.
    Keys already in `seen` are treated as taken; `seen` is updated in place.
    Questions with a blank key are skipped. Stops once `limit` items were collected.
    """
    seen = set() if seen is None else seen
    merged: List[Question] = []
    for batch in batches:
        for question in batch:
            if limit is not None and len(merged) >= limit:
                return merged
            key = question.normalized_key
            if not key or key in seen:
                continue
            seen.add(key)
            merged.append(question)
    return merged


class QuizSynthesizer:
    """Turns a GenerationRequest into questions, chunking long source documents."""

    def __init__(
        self,
        gateway: ModelGateway,
        single_prompt_ceiling: int = segmenter.MAX_CHARS_SINGLE_PROMPT,
        chunk_size: int = segmenter.CHUNK_SIZE,
        max_concurrency: int = MAX_CONCURRENT_CHUNKS,
        chunk_timeout: Optional[float] = CHUNK_TIMEOUT_SECONDS,
    ):
        self.gateway = gateway
        self.single_prompt_ceiling = single_prompt_ceiling
        self.chunk_size = chunk_size
        self.max_concurrency = max(1, max_concurrency)
        self.chunk_timeout = chunk_timeout

    async def synthesize(self, request: GenerationRequest) -> List[Question]:
        cleaned = segmenter.clean(request.source_text) if request.source_text else ""

        if not cleaned or not segmenter.needs_segmentation(cleaned, self.single_prompt_ceiling):
            single = request.model_copy(update={"source_text": cleaned or None})
            questions = await self._single_shot(single)
        else:
            questions = await self._chunked(request, cleaned)

        if not questions:
            raise GenerationFailure("Model returned no questions.")
        logger.info("Synthesized %d/%d questions for %r", len(questions), request.desired_count, request.subject)
        return questions

    async def _single_shot(self, request: GenerationRequest) -> List[Question]:
        text = await self.gateway.generate(build_prompt(request))
        try:
            return parse_question_array(text)
        except (ParseFailure, ShapeFailure) as e:
            logger.error("Single-shot generation output unusable: %s", e)
            raise GenerationFailure(str(e)) from e

    async def _chunked(self, request: GenerationRequest, cleaned: str) -> List[Question]:
        chunks = segmenter.segment(cleaned, self.chunk_size)
        cap = per_chunk_cap(request.desired_count, len(chunks))
        logger.info(
            "Source text is %d chars; generating from %d chunks, up to %d questions each",
            len(cleaned), len(chunks), cap,
        )

        semaphore = asyncio.Semaphore(self.max_concurrency)
        tasks = [
            self._generate_chunk(request, chunk, cap, part, len(chunks), semaphore)
            for part, chunk in enumerate(chunks, start=1)
        ]
        results = await asyncio.gather(*tasks)

        # Earlier chunks win ties and crowd out later ones before truncation
        merged = merge_unique(results)[:request.desired_count]
        seen = {q.normalized_key for q in merged}

        shortfall = request.desired_count - len(merged)
        if shortfall > 0:
            merged.extend(await self._backfill(request, shortfall, seen))
        return merged

    async def _generate_chunk(
        self,
        request: GenerationRequest,
        chunk: str,
        cap: int,
        part: int,
        total: int,
        semaphore: asyncio.Semaphore,
    ) -> List[Question]:
        """One chunk's questions; any failure in here contributes an empty list."""
        prompt = build_prompt(
            request.model_copy(update={"source_text": chunk}),
            per_chunk_cap=cap,
            part=part,
            total=total,
        )
        try:
            async with semaphore:
                text = await asyncio.wait_for(self.gateway.generate(prompt), timeout=self.chunk_timeout)
            return parse_question_array(text)
        except Exception:
            logger.warning("Chunk %d/%d failed; contributing no questions", part, total, exc_info=True)
            return []

    async def _backfill(self, request: GenerationRequest, shortfall: int, seen: Set[str]) -> List[Question]:
        """Single best-effort general-knowledge call to close the gap. Never raises."""
        fallback = request.model_copy(update={"desired_count": shortfall, "source_text": None})
        logger.info("Backfilling %d questions from general knowledge", shortfall)
        try:
            text = await self.gateway.generate(build_prompt(fallback))
            extra = parse_question_array(text)
        except Exception:
            logger.warning("Backfill failed; returning undersized quiz", exc_info=True)
            return []
        return merge_unique([extra], seen=seen, limit=shortfall)
