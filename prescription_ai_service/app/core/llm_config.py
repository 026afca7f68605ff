import os

from app.core.env import load_env

load_env()

USE_LLM_EXTRACTION = os.getenv("USE_LLM_EXTRACTION", "false").lower() == "true"

OLLAMA_BASE_URL = os.getenv("OLLAMA_BASE_URL", "http://localhost:11434/api")
OLLAMA_MODEL_EXTRACT = os.getenv("OLLAMA_MODEL_EXTRACT", "llama3.2")
# ordered cascade; first model is tried first
OLLAMA_MODELS_EXTRACT = [
    m.strip()
    for m in os.getenv("OLLAMA_MODELS_EXTRACT", OLLAMA_MODEL_EXTRACT).split(",")
    if m.strip()
]
OLLAMA_TEMPERATURE = float(os.getenv("OLLAMA_TEMPERATURE", "0.2"))
OLLAMA_TIMEOUT_S = int(os.getenv("OLLAMA_TIMEOUT_S", "90"))

HF_MODEL_EXTRACT = os.getenv("HF_MODEL_EXTRACT", "meta-llama/Llama-3.1-8B-Instruct")
HF_TEMPERATURE = float(os.getenv("HF_TEMPERATURE", "0.2"))
HF_MAX_TOKENS = int(os.getenv("HF_MAX_TOKENS", "2048"))
HF_TIMEOUT_S = int(os.getenv("HF_TIMEOUT_S", "60"))

LLM_MAX_ATTEMPTS = int(os.getenv("LLM_MAX_ATTEMPTS", "2"))
LLM_BACKOFF_BASE_S = float(os.getenv("LLM_BACKOFF_BASE_S", "0.5"))
