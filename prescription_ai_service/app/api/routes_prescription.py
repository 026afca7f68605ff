# app/api/routes_prescription.py
import datetime as dt
import logging
from typing import Optional
from zoneinfo import ZoneInfo

from fastapi import APIRouter, HTTPException

from app.agent.graph import run_analysis
from app.core.app_config import DEFAULT_TIMEZONE
from app.schemas.models import (
    AnalyzeRequest, AnalyzeResponse,
    GetDataRequest, GetDataResponse,
    CreateRemindersRequest, ReminderSchedule,
    CheckDuplicatesRequest, CheckDuplicatesResponse,
    ExtractedPrescription, ValidationResult,
)
from app.services.bundle_store import get_bundle, put_bundle
from app.services.duplicates import duplicate_message, resolve_duplicates
from app.services.planning import generate_reminders
from app.services.report import OPTION_HANDLERS, get_data_by_option
from app.services.validation import get_recommendation

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/prescription", tags=["prescription"])

def _local_today(today: Optional[dt.date] = None) -> dt.date:
    return today or dt.datetime.now(ZoneInfo(DEFAULT_TIMEZONE)).date()

@router.post("/analyze", response_model=AnalyzeResponse)
def analyze(req: AnalyzeRequest):
    if not req.text.strip():
        raise HTTPException(status_code=400, detail="text is empty")

    today = _local_today(req.today)
    state = run_analysis(
        req.text,
        start_date=req.start_date or today,
        today=today,
        allow_invalid=req.allow_invalid,
    )

    validation: ValidationResult = state["validation"]
    resp = AnalyzeResponse(
        status=state["status"],
        validation=validation,
        recommendation=get_recommendation(validation),
        extraction_method=state.get("extraction_method") or "rule_based",
        errors=state.get("extraction_errors") or [],
    )
    if state["status"] != "ACCEPTED":
        return resp

    full = state["full_data"]
    resp.analysis_id = put_bundle(full)
    resp.bundle = state["bundle"]
    if req.include_full_data:
        resp.full_data = full
    return resp

@router.post("/get-data", response_model=GetDataResponse)
def get_data(req: GetDataRequest):
    if req.data is None and not req.analysis_id:
        raise HTTPException(status_code=400, detail="analysis_id or data is required")
    if req.option_id not in OPTION_HANDLERS:
        raise HTTPException(status_code=404, detail=f"Unknown option: {req.option_id}")

    full = req.data
    if full is None:
        full = get_bundle(req.analysis_id)
        if full is None:
            raise HTTPException(status_code=404, detail="Analysis not found or expired.")

    data = get_data_by_option(full, req.option_id, today=_local_today(req.today))
    return GetDataResponse(option_id=req.option_id, data=data)

@router.post("/create-reminders", response_model=ReminderSchedule)
def create_reminders(req: CreateRemindersRequest):
    if not req.medications and not req.appointments:
        raise HTTPException(status_code=400, detail="medications or appointments are required")
    prescription = ExtractedPrescription(medications=req.medications, appointments=req.appointments)
    return generate_reminders(prescription, start_date=req.start_date or _local_today())

@router.post("/check-duplicates", response_model=CheckDuplicatesResponse)
def check_duplicates(req: CheckDuplicatesRequest):
    data = ExtractedPrescription(
        medications=req.medications,
        appointments=req.appointments,
        instructions=req.instructions,
    )
    clean, report = resolve_duplicates(data)
    logger.info("duplicate check", extra={"duplicates": report.total_duplicates})
    return CheckDuplicatesResponse(report=report, clean_data=clean, message=duplicate_message(report))

@router.get("/health")
def health():
    return {"ok": True, "service": "prescription"}
