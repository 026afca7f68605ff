# app/agent/nodes.py
import logging
from typing import Any, Callable, Dict, Optional

from app.agent.state import PipelineState
from app.schemas.models import FullData
from app.services.duplicates import resolve_duplicates
from app.services.extraction_chain import ExtractionChain
from app.services.planning import generate_reminders
from app.services.report import analyze_data
from app.services.validation import split_invalid_names, validate_prescription

logger = logging.getLogger(__name__)

def _audit(state: PipelineState, event: str, extra: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    audit = list(state.get("audit") or [])
    audit.append({"event": event, **(extra or {})})
    logger.info(event, extra=extra or {})
    return {"audit": audit}

def make_extract_node(chain: ExtractionChain) -> Callable[[PipelineState], Dict[str, Any]]:
    def extract_node(state: PipelineState) -> Dict[str, Any]:
        outcome = chain.run(state.get("text") or "")
        p = outcome.prescription
        return {
            "extracted": p,
            "extraction_method": outcome.method,
            "extraction_errors": outcome.errors,
            **_audit(state, "extract.done", {
                "method": outcome.method,
                "medications": len(p.medications),
                "appointments": len(p.appointments),
                "ai_errors": len(outcome.errors),
            }),
        }
    return extract_node

def validate_node(state: PipelineState) -> Dict[str, Any]:
    result = validate_prescription(state["extracted"])
    accepted = result.is_valid or bool(state.get("allow_invalid"))
    status = "ACCEPTED" if accepted else "REJECTED"
    return {
        "validation": result,
        "status": status,
        **_audit(state, "validate.done", {
            "is_valid": result.is_valid,
            "confidence": result.confidence,
            "status": status,
        }),
    }

def route_after_validate(state: PipelineState) -> str:
    # conditional edge target
    return "resolve" if state.get("status") == "ACCEPTED" else "rejected"

def resolve_node(state: PipelineState) -> Dict[str, Any]:
    # records whose name fails the shape check never reach the scheduler
    named, rejected = split_invalid_names(state["extracted"])
    clean, report = resolve_duplicates(named)
    return {
        "prescription": clean,
        "duplicate_report": report,
        "rejected_names": rejected,
        **_audit(state, "resolve.done", {"duplicates": report.total_duplicates, "rejected_names": len(rejected)}),
    }

def schedule_node(state: PipelineState) -> Dict[str, Any]:
    reminders = generate_reminders(state["prescription"], start_date=state.get("start_date"))
    s = reminders.summary
    return {
        "reminders": reminders,
        **_audit(state, "schedule.done", {
            "total_reminders": s.total_reminders,
            "default_schedule": s.medications_with_default_schedule,
            "skipped": s.skipped,
        }),
    }

def report_node(state: PipelineState) -> Dict[str, Any]:
    full = FullData(
        prescription=state["prescription"],
        reminders=state["reminders"],
        validation=state.get("validation"),
        duplicate_report=state.get("duplicate_report"),
        extraction_method=state.get("extraction_method") or "rule_based",
        rejected_names=state.get("rejected_names") or [],
        start_date=state.get("start_date"),
    )
    bundle = analyze_data(full, today=state.get("today"))
    return {
        "full_data": full,
        "bundle": bundle,
        **_audit(state, "report.done", {
            "insights": len(bundle.insights),
            "warnings": len(bundle.warnings),
        }),
    }
