# quizbee/llm_client.py
import logging
import os
from typing import Optional, Protocol

import httpx

logger = logging.getLogger(__name__)

# Read variables from environment, defaults match a local Ollama install
OLLAMA_URL = os.environ.get("OLLAMA_URL", "http://localhost:11434")
OLLAMA_MODEL_NAME = os.environ.get("OLLAMA_MODEL_NAME", "mistral:7b")
LLM_TIMEOUT_SECONDS = float(os.environ.get("LLM_TIMEOUT_SECONDS", 120))


class ModelGateway(Protocol):
    """Anything that can turn a prompt into model text."""

    async def generate(self, prompt: str) -> str:
        ...


async def call_llm_api(model_name: str, prompt: str, timeout: float, base_url: str = OLLAMA_URL) -> str:
    """Handles the actual API call to the Ollama endpoint and returns the raw response text."""
    url = f"{base_url}/api/generate"
    payload = {
        "model": model_name,
        "prompt": prompt,
        "stream": False,
        "options": {"temperature": 0.3},
    }

    logger.info("Attempting LLM call to %s with model %s", url, model_name)
    async with httpx.AsyncClient(timeout=timeout) as client:
        resp = await client.post(url, json=payload)
        resp.raise_for_status()  # Raises HTTPStatusError for 4xx/5xx responses
        raw_response = resp.json()

    text = raw_response.get("response", "")
    if not isinstance(text, str):
        logger.warning("Ollama 'response' field is %s, not text", type(text).__name__)
        return ""
    return text


class OllamaGateway:
    """ModelGateway backed by an Ollama server. Transport errors propagate to the caller."""

    def __init__(
        self,
        base_url: str = OLLAMA_URL,
        model: str = OLLAMA_MODEL_NAME,
        timeout: float = LLM_TIMEOUT_SECONDS,
    ):
        self.base_url = base_url
        self.model = model
        self.timeout = timeout

    async def generate(self, prompt: str) -> str:
        text = await call_llm_api(self.model, prompt, self.timeout, base_url=self.base_url)
        logger.debug("Model %s returned %d characters", self.model, len(text))
        return text


# shared instance, created lazily
_gateway: Optional[OllamaGateway] = None


def get_gateway() -> OllamaGateway:
    global _gateway
    if _gateway is None:
        _gateway = OllamaGateway()
    return _gateway
