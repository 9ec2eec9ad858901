# quizbee/prompts.py
import json
import math
from typing import Any, Dict, List, Optional

from quizbee.schemas import GenerationRequest


def per_chunk_cap(desired_count: int, chunks: int) -> int:
    """Per-part question cap so parallel chunk calls aim for roughly the full count together."""
    return max(1, math.ceil(desired_count / max(1, chunks)))


def build_prompt(
    request: GenerationRequest,
    per_chunk_cap: Optional[int] = None,
    part: Optional[int] = None,
    total: Optional[int] = None,
) -> str:
    """Build the quiz generation prompt. Same inputs always give the same text."""
    lines = [
        "You are an expert quiz generator. Create a multiple-choice quiz as pure JSON (no prose before or after).",
        f"Subject: {request.subject}",
        f"Difficulty: {request.difficulty.value}",
        f"Number of questions: {request.desired_count}",
        "Include a few fair 'trick' questions that require careful reading.",
        'Return ONLY a JSON array of question objects with keys: "questionText" (string), '
        '"options" (exactly 4 strings), "correctAnswer" (string, must match one of the options exactly).',
    ]
    if request.focus:
        lines.append(f"Focus the questions on: {request.focus}")

    if request.source_text:
        marker = f" (part {part}/{total})" if part and total else ""
        lines.append(f'Use ONLY the following source text{marker}:\n"""{request.source_text}"""')
    else:
        lines.append("No source text provided. Use general knowledge for the subject and difficulty.")

    if per_chunk_cap:
        lines.append(f"Generate up to {per_chunk_cap} questions for this part.")
    return "\n".join(lines)


CHAT_SYSTEM_RULES = """
Output: JSON ONLY (no prose outside JSON). Choose one or more of:
1) A plan:
{
  "content": "<brief confirmation>",
  "modification": {
    "type": "difficulty" | "topic" | "count" | "append" | "other",
    "action": "increase" | "decrease" | "change",
    "value": "<new value if applicable>",
    "count": 5,
    "subtopic": "<optional hint for generation>"
  }
}

2) Direct in-place edits to the current quiz (indices are 0-based and applied in order):
{
  "content": "<brief confirmation>",
  "patches": [
    { "op": "replace", "index": 2, "question": { "questionText": "...", "options": ["a","b","c","d"], "correctAnswer": "a" } },
    { "op": "update", "index": 0, "question": { "questionText": "..." } },
    { "op": "delete", "index": 4 },
    { "op": "insertAfter", "index": 1, "question": { "questionText": "...", "options": ["a","b","c","d"], "correctAnswer": "b" } }
  ]
}

3) A full replacement quiz:
{
  "content": "<brief>",
  "quiz": [ { "questionText": "...", "options": ["...","...","...","..."], "correctAnswer": "..." } ]
}

Rules:
- Each "options" array must have exactly 4 strings and one "correctAnswer" that matches one option.
- Use "patches" when the user asks to tweak specific questions; use "modification" when they ask to change topic, difficulty, or question count; use "quiz" when rewriting everything.
""".strip()


def build_chat_prompt(
    message: str,
    quiz: Optional[List[Dict[str, Any]]] = None,
    meta: Optional[Dict[str, Any]] = None,
) -> str:
    """Prompt that turns a free-text edit request into a plan, patches or a replacement quiz."""
    return "\n".join([
        "You are a quiz-modification assistant.",
        "",
        "Input:",
        f"- User request: {json.dumps(message)}",
        f"- Current quiz (optional, truncated): {json.dumps(quiz) if quiz else 'none'}",
        f"- Meta (optional): {json.dumps(meta) if meta else 'none'}",
        "",
        CHAT_SYSTEM_RULES,
    ])
