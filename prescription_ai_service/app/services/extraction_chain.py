"""
Ordered fallback chain of extraction strategies.

AI strategies (one per configured Ollama model, then Hugging Face when a
token is set) are tried in order, each with a few attempts and exponential
backoff between them. The rule-based extractor is always last and never
raises, so the chain always yields some structured result.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence

from pydantic import ValidationError

from app.core import llm_config
from app.core.errors import ExtractionError, LLMError
from app.core.logging_config import get_logger
from app.schemas.models import ExtractedPrescription
from app.services.extraction import extract_prescription
from app.services.hf_client import hf_configured
from app.services.llm.extraction import hf_extract_prescription, ollama_extract_prescription

RULE_BASED = "rule_based"

class RuleBasedExtraction:
    name = RULE_BASED
    retryable = False

    def extract(self, text: str) -> ExtractedPrescription:
        return extract_prescription(text)

class OllamaExtraction:
    retryable = True

    def __init__(self, model: str):
        self.model = model
        self.name = f"ollama:{model}"

    def extract(self, text: str) -> ExtractedPrescription:
        return ollama_extract_prescription(text, model=self.model)

class HuggingFaceExtraction:
    retryable = True

    def __init__(self, model: str):
        self.model = model
        self.name = f"huggingface:{model}"

    def extract(self, text: str) -> ExtractedPrescription:
        return hf_extract_prescription(text, model=self.model)

@dataclass
class ExtractionOutcome:
    prescription: ExtractedPrescription
    method: str
    errors: List[str] = field(default_factory=list)

class ExtractionChain:
    def __init__(
        self,
        strategies: Sequence = (),
        max_attempts: int = llm_config.LLM_MAX_ATTEMPTS,
        backoff_base_s: float = llm_config.LLM_BACKOFF_BASE_S,
        sleep: Callable[[float], None] = time.sleep,
        logger: Optional[logging.Logger] = None,
    ):
        self.strategies = list(strategies)
        self.fallback = RuleBasedExtraction()
        self.max_attempts = max(1, max_attempts)
        self.backoff_base_s = backoff_base_s
        self.sleep = sleep
        self.logger = get_logger(__name__, logger)

    @property
    def names(self) -> List[str]:
        return [s.name for s in self.strategies] + [self.fallback.name]

    def _try_strategy(self, strategy, text: str, errors: List[str]) -> Optional[ExtractedPrescription]:
        attempts = self.max_attempts if getattr(strategy, "retryable", True) else 1
        for attempt in range(attempts):
            try:
                result = strategy.extract(text)
                if not result.medications:
                    raise ExtractionError("no medications extracted")
                return result
            except (LLMError, ExtractionError, ValidationError) as e:
                errors.append(f"{strategy.name} attempt {attempt + 1}: {e}")
                self.logger.warning(
                    "extraction strategy failed",
                    extra={"strategy": strategy.name, "attempt": attempt + 1, "error": str(e)},
                )
                if attempt + 1 < attempts:
                    self.sleep(self.backoff_base_s * 2 ** attempt)
        return None

    def run(self, text: str) -> ExtractionOutcome:
        errors: List[str] = []
        for strategy in self.strategies:
            result = self._try_strategy(strategy, text, errors)
            if result is not None:
                self.logger.info("extraction done", extra={"method": strategy.name})
                return ExtractionOutcome(prescription=result, method=strategy.name, errors=errors)

        result = self.fallback.extract(text)
        self.logger.info("extraction done", extra={"method": self.fallback.name, "ai_errors": len(errors)})
        return ExtractionOutcome(prescription=result, method=self.fallback.name, errors=errors)

def build_extraction_chain(logger: Optional[logging.Logger] = None) -> ExtractionChain:
    """Chain from config: rule-based only unless USE_LLM_EXTRACTION is on."""
    strategies: list = []
    if llm_config.USE_LLM_EXTRACTION:
        strategies += [OllamaExtraction(m) for m in llm_config.OLLAMA_MODELS_EXTRACT]
        if hf_configured():
            strategies.append(HuggingFaceExtraction(llm_config.HF_MODEL_EXTRACT))
    return ExtractionChain(strategies, logger=logger)
