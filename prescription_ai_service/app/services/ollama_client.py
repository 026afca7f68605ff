import json
from typing import Any, Dict, Optional

import requests

from app.core.errors import LLMError
from app.core.llm_config import (
    OLLAMA_BASE_URL,
    OLLAMA_TEMPERATURE,
    OLLAMA_TIMEOUT_S,
)

class OllamaError(LLMError):
    pass

def _safe_json_parse(text: str) -> Dict[str, Any]:
    """Parse a JSON object even if model returns extra text. Arrays and scalars are rejected."""
    text = (text or "").strip()
    try:
        value = json.loads(text)
        if isinstance(value, dict):
            return value
    except ValueError:
        pass

    start = text.find("{")
    end = text.rfind("}")
    if start != -1 and end != -1 and end > start:
        try:
            value = json.loads(text[start : end + 1])
            if isinstance(value, dict):
                return value
        except ValueError:
            pass

    raise OllamaError(f"No JSON object from LLM: {text[:200]}...")

def ollama_chat_json(
    model: str,
    system: str,
    user: str,
    schema: Optional[Dict[str, Any]] = None,
    temperature: Optional[float] = None,
    timeout_s: Optional[int] = None,
) -> Dict[str, Any]:
    """
    Calls Ollama /api/chat and returns JSON from assistant message content.
    We enforce JSON output with `format` when possible.
    """
    url = f"{OLLAMA_BASE_URL}/chat"
    payload: Dict[str, Any] = {
        "model": model,
        "messages": [
            {"role": "system", "content": system},
            {"role": "user", "content": user},
        ],
        "stream": False,
        "options": {"temperature": temperature if temperature is not None else OLLAMA_TEMPERATURE},
    }
    if schema is not None:
        payload["format"] = schema

    try:
        r = requests.post(url, json=payload, timeout=timeout_s or OLLAMA_TIMEOUT_S)
    except requests.RequestException as e:
        raise OllamaError(f"Ollama unreachable: {e}") from e
    if r.status_code >= 400:
        raise OllamaError(f"Ollama {r.status_code}: {r.text[:200]}")

    try:
        data = r.json()
    except ValueError as e:
        raise OllamaError("Ollama returned a non-JSON body") from e
    message = data.get("message") if isinstance(data, dict) else None
    if not isinstance(message, dict):
        raise OllamaError(f"Ollama response has no message object: {r.text[:200]}")
    content = message.get("content")
    if not isinstance(content, str):
        raise OllamaError("Ollama message content is not text")
    return _safe_json_parse(content)
