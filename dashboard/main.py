# Dashboard service entry point - derived CKD cohort views over the CKD backend
import logging

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field
from typing import Any, List, Optional

from config import configure_logging, get_allowed_origins, get_backend_url
from backend_client import CKDBackendClient
from cycles import ADVANCED, BUSY, CONFIRMATION_REQUIRED, MAX_CYCLES_REACHED, RESET, CycleController
from errors import BackendError
from flags import build_patient_card
from models import Observation, PatientClinicalSnapshot
from observations import normalize_observations
from payloads import AnalysisSucceeded, RiskAssessment
from summaries import summarize_evolution, summarize_risk_assessment
from trends import build_trend_panels, classify_metrics

configure_logging()
logger = logging.getLogger(__name__)

backend = CKDBackendClient(get_backend_url())
controller = CycleController(backend)

app = FastAPI(title="CKD Cohort Dashboard API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_allowed_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Request models
class ObservationIn(BaseModel):
    observation_type: Optional[str] = None
    value_numeric: Optional[float] = None
    value_text: Optional[str] = None
    unit: Optional[str] = None
    observation_date: Any = None  # unparseable dates are skipped, not rejected
    month_number: Optional[int] = Field(default=None, ge=0)
    notes: Optional[str] = None

class ObservationsRequest(BaseModel):
    observations: List[ObservationIn] = Field(default_factory=list)

class TrendsRequest(ObservationsRequest):
    is_treated: bool = False
    metrics: Optional[List[str]] = None

class SnapshotIn(BaseModel):
    patient_id: Optional[str] = None
    ckd_stage: Optional[int] = Field(default=None, ge=0, le=5)
    egfr: Optional[float] = None
    uacr: Optional[float] = None
    systolic_bp: Optional[float] = None
    diastolic_bp: Optional[float] = None
    weight_kg: Optional[float] = None
    height_cm: Optional[float] = None
    bmi: Optional[float] = None
    hemoglobin: Optional[float] = None
    potassium: Optional[float] = None
    phosphorus: Optional[float] = None
    calcium: Optional[float] = None
    albumin: Optional[float] = None
    hba1c: Optional[float] = None
    comorbidities: List[str] = Field(default_factory=list)
    on_ras_inhibitor: Optional[bool] = None
    on_sglt2i: Optional[bool] = None
    nephrotoxic_meds: bool = False
    nephrology_referral: Optional[bool] = None

class ResetRequest(BaseModel):
    confirmation_token: Optional[str] = None

class AnalyzeRequest(BaseModel):
    store_results: bool = True
    include_patient_data: bool = True
    skip_cache: bool = False


def _to_observations(items: List[ObservationIn]) -> List[Observation]:
    return [Observation(**item.model_dump()) for item in items]


def _backend_failure(exc: BackendError):
    logger.warning("Backend call failed: %s", exc)
    raise HTTPException(status_code=502, detail=str(exc))


@app.get("/")
def read_root():
    return {"message": "CKD Cohort Dashboard API"}

@app.get("/health")
def health_check():
    return {"status": "healthy"}


@app.get("/dashboard/cycle")
def get_cycle():
    """Re-read cycle metadata from the backend and return controller state."""
    try:
        controller.refresh()
    except BackendError as exc:
        _backend_failure(exc)
    return controller.snapshot()

@app.post("/dashboard/cycle/advance")
def advance_cycle():
    """Advance the whole cohort by one cycle."""
    outcome = controller.advance()
    if outcome.status == ADVANCED:
        return outcome.to_dict()
    if outcome.status in (MAX_CYCLES_REACHED, BUSY):
        raise HTTPException(status_code=409, detail=outcome.message)
    raise HTTPException(status_code=502, detail=outcome.message)

@app.post("/dashboard/cycle/reset")
def reset_simulation(request: Optional[ResetRequest] = None):
    """
    Reset the simulation. The first call answers with a confirmation token;
    the reset only happens when that token is sent back.
    """
    token = request.confirmation_token if request else None
    outcome = controller.reset(token)
    if outcome.status in (RESET, CONFIRMATION_REQUIRED):
        return outcome.to_dict()
    if outcome.status == BUSY:
        raise HTTPException(status_code=409, detail=outcome.message)
    raise HTTPException(status_code=502, detail=outcome.message)


@app.post("/dashboard/observations/series")
def observation_series(request: ObservationsRequest):
    """Per-cycle wide table plus skipped-record diagnostics."""
    return normalize_observations(_to_observations(request.observations)).to_dict()

@app.post("/dashboard/observations/trends")
def observation_trends(request: TrendsRequest):
    """Trend-vs-baseline decision per metric, and the fixed dashboard panels."""
    normalized = normalize_observations(_to_observations(request.observations))
    views = classify_metrics(normalized.series, request.metrics)
    result: dict = build_trend_panels(normalized.series, request.is_treated)
    result["metrics"] = {name: view.to_dict() for name, view in views.items()}
    result["skipped_count"] = normalized.skipped_count
    return result


@app.post("/dashboard/patients/flags")
def patient_flags(snapshot: SnapshotIn):
    return build_patient_card(PatientClinicalSnapshot(**snapshot.model_dump()))

@app.get("/dashboard/patients/{patient_id}/evolution")
def patient_evolution(patient_id: str):
    try:
        history = backend.get_progression_history(patient_id)
        treatments = backend.get_treatments(patient_id)
    except BackendError as exc:
        _backend_failure(exc)
    return summarize_evolution(history, treatments)

@app.post("/dashboard/patients/{patient_id}/risk-analysis")
def patient_risk_analysis(patient_id: str, request: Optional[AnalyzeRequest] = None):
    """Trigger the backend AI analysis and shape the result for display."""
    options = request or AnalyzeRequest()
    try:
        response = backend.analyze_patient(
            patient_id,
            store_results=options.store_results,
            include_patient_data=options.include_patient_data,
            skip_cache=options.skip_cache,
        )
    except BackendError as exc:
        _backend_failure(exc)

    if isinstance(response, AnalysisSucceeded):
        return {
            "success": True,
            "patient_id": response.patient_id,
            "cached": response.cached,
            "processing_time_ms": response.processing_time_ms,
            "analysis": summarize_risk_assessment(response.analysis),
        }
    return {"success": False, "patient_id": response.patient_id or patient_id, "error": response.message}

@app.post("/dashboard/risk/summary")
def risk_summary(assessment: RiskAssessment):
    """Display summary for an assessment the caller already holds."""
    return summarize_risk_assessment(assessment)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
