# helper/llm.py
import os
from typing import Optional

import requests

DEFAULT_OLLAMA_URL = "http://localhost:11434"


def resolve_ollama_url(default_url: str = DEFAULT_OLLAMA_URL) -> str:
    """Respect OLLAMA_URL if set, otherwise use default_url unchanged."""
    return (os.getenv("OLLAMA_URL") or default_url).rstrip("/")


def get_default_model() -> str:
    """
    Resolve the grading model name.

    Priority:
      1) SPEAKING_GRADER_MODEL
      2) OLLAMA_MODEL
      3) fallback "llama3.1:8b"
    """
    return os.getenv("SPEAKING_GRADER_MODEL", os.getenv("OLLAMA_MODEL", "llama3.1:8b"))


def ollama_chat(
    system_prompt: str,
    user_prompt: str,
    *,
    num_ctx: int = 4096,
    timeout: int = 60,
    model: Optional[str] = None,
    temperature: Optional[float] = None,
    top_p: Optional[float] = None,
    json_format: bool = False,
) -> str:
    """
    Single, non-streaming chat call against a local Ollama instance.

    Args:
        system_prompt: System context/instructions
        user_prompt: User query
        num_ctx: Context window size
        timeout: Request timeout in seconds
        model: Model name (uses default if not provided)
        temperature: Sampling temperature (lower = more deterministic)
        top_p: Nucleus sampling parameter
        json_format: Ask the server to constrain output to JSON

    Returns:
      raw content string from the model (no extra cleanup).

    Raises:
      requests.RequestException on transport or HTTP errors,
      KeyError / ValueError when the response body is not a chat reply.
    """
    base_url = resolve_ollama_url()
    model_name = model or get_default_model()

    options = {"num_ctx": num_ctx}
    if temperature is not None:
        options["temperature"] = temperature
    if top_p is not None:
        options["top_p"] = top_p

    payload = {
        "model": model_name,
        "messages": [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_prompt},
        ],
        "stream": False,
        "options": options,
    }
    if json_format:
        payload["format"] = "json"

    resp = requests.post(
        f"{base_url}/api/chat",
        json=payload,
        timeout=timeout,
    )
    resp.raise_for_status()
    data = resp.json()
    return data["message"]["content"]
