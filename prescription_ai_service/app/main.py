from fastapi import FastAPI

from app.api.routes_prescription import router as prescription_router
from app.core.app_config import LOG_JSON, LOG_LEVEL
from app.core.logging_config import setup_logging

setup_logging(level=LOG_LEVEL, format_json=LOG_JSON)

app = FastAPI(title="Prescription Reminder Service (AI + LangGraph)", version="1.0")

app.include_router(prescription_router)

@app.get("/health")
def health():
    return {"ok": True}
@app.get("/")
def root():
    return {"ok": True, "service": "Prescription Reminder Service (AI + LangGraph)"}
