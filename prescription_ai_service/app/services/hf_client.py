import json
import os
from typing import Any, Dict, Optional

from huggingface_hub import InferenceClient

from app.core.errors import LLMError
from app.core.llm_config import (
    HF_TEMPERATURE,
    HF_MAX_TOKENS,
    HF_TIMEOUT_S,
)

class HFLLMError(LLMError):
    pass

def hf_configured() -> bool:
    return bool(os.getenv("HF_TOKEN", "").strip())

def _safe_json_parse(text: str) -> Dict[str, Any]:
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
    raise HFLLMError(f"Model did not return a JSON object. Got: {text[:200]}...")

def hf_chat_json(
    *,
    model: str,
    system: str,
    user: str,
    schema: Optional[Dict[str, Any]] = None,
    temperature: Optional[float] = None,
    max_tokens: Optional[int] = None,
    timeout_s: Optional[int] = None,
) -> Dict[str, Any]:
    # token and provider are read per call so a restart is not needed after editing config.env
    token = os.getenv("HF_TOKEN", "").strip()
    if not token:
        raise HFLLMError("HF_TOKEN is missing. Set it in config.env and restart.")

    provider = os.getenv("HF_PROVIDER", "auto").strip() or "auto"

    client = InferenceClient(
        provider=provider,
        api_key=token,
        timeout=float(timeout_s or HF_TIMEOUT_S),
    )

    messages = [
        {"role": "system", "content": system},
        {"role": "user", "content": user},
    ]

    if schema:
        response_format = {
            "type": "json_schema",
            "json_schema": {
                "name": "Prescription",
                "schema": schema,
                "strict": True,
            },
        }
    else:
        response_format = {"type": "json_object"}

    try:
        out = client.chat_completion(
            model=model,
            messages=messages,
            temperature=temperature if temperature is not None else HF_TEMPERATURE,
            max_tokens=max_tokens if max_tokens is not None else HF_MAX_TOKENS,
            response_format=response_format,
        )
    except Exception as e:
        raise HFLLMError(f"HF inference failed: {e}") from e

    try:
        content = out.choices[0].message.content or ""
    except (AttributeError, IndexError, TypeError) as e:
        raise HFLLMError(f"HF response has no message content: {e}") from e
    if not isinstance(content, str):
        raise HFLLMError("HF message content is not text")
    return _safe_json_parse(content)
