"""
Exceptions raised inside the prescription service.

Only the optional AI extraction path raises; the rule-based pipeline reports
problems through its results (validation reasons, review items, skipped
counts) instead.
"""


class PrescriptionServiceError(RuntimeError):
    """Base class for service errors."""
    pass


class ExtractionError(PrescriptionServiceError):
    """An extraction strategy produced nothing usable."""
    pass


class LLMError(PrescriptionServiceError):
    """An AI provider call failed or returned unparseable output."""
    pass
