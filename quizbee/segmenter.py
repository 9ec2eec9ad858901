# quizbee/segmenter.py
import math
import os
import re
from typing import List

# Policy constants; tune per deployment
MAX_CHARS_SINGLE_PROMPT = int(os.environ.get("MAX_CHARS_SINGLE_PROMPT", 180_000))
CHUNK_SIZE = int(os.environ.get("CHUNK_SIZE", 60_000))
MAX_SOURCE_MB = float(os.environ.get("MAX_SOURCE_MB", 25))

_TRAILING_WS_RE = re.compile(r"[ \t]+\n")
_BLANK_RUN_RE = re.compile(r"\n{3,}")


def clean(raw: str) -> str:
    """Normalize extracted document text before it goes near a prompt."""
    text = raw.replace("\u0000", "").replace("\r", "\n")
    text = _TRAILING_WS_RE.sub("\n", text)
    text = _BLANK_RUN_RE.sub("\n\n", text)
    return text.strip()


def segment(text: str, chunk_size: int = CHUNK_SIZE) -> List[str]:
    """
    Split text into contiguous, non-overlapping slices of at most chunk_size characters.
    "".join(segment(t, n)) == t for every t.
    """
    if chunk_size <= 0:
        raise ValueError("chunk_size must be positive")
    return [text[i:i + chunk_size] for i in range(0, len(text), chunk_size)]


def chunk_count(length: int, chunk_size: int = CHUNK_SIZE) -> int:
    return max(1, math.ceil(length / chunk_size))


def needs_segmentation(cleaned: str, ceiling: int = MAX_CHARS_SINGLE_PROMPT) -> bool:
    return len(cleaned) > ceiling
