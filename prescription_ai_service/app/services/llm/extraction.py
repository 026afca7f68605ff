# app/services/llm/extraction.py
from app.core.llm_config import HF_MODEL_EXTRACT, OLLAMA_MODEL_EXTRACT
from app.schemas.models import ExtractedPrescription
from app.services.hf_client import hf_chat_json
from app.services.ollama_client import ollama_chat_json
from app.services.llm.extraction_prompt import EXTRACT_SYSTEM_PROMPT, build_extract_user_prompt
from app.services.llm.extraction_sanitize import sanitize_extracted_prescription
from app.services.llm.extraction_schema import PRESCRIPTION_SCHEMA

def ollama_extract_prescription(text: str, model: str = OLLAMA_MODEL_EXTRACT) -> ExtractedPrescription:
    raw = ollama_chat_json(
        model=model,
        system=EXTRACT_SYSTEM_PROMPT,
        user=build_extract_user_prompt(text),
        schema=PRESCRIPTION_SCHEMA,
    )
    return sanitize_extracted_prescription(raw, text)

def hf_extract_prescription(text: str, model: str = HF_MODEL_EXTRACT) -> ExtractedPrescription:
    raw = hf_chat_json(
        model=model,
        system=EXTRACT_SYSTEM_PROMPT,
        user=build_extract_user_prompt(text),
        schema=PRESCRIPTION_SCHEMA,
    )
    return sanitize_extracted_prescription(raw, text)
