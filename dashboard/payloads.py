# Upstream JSON schemas - validated at the backend trust boundary
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter, ValidationError, model_validator

from errors import MalformedPayloadError


class CycleMetadata(BaseModel):
    id: int
    current_cycle: int = Field(ge=0)
    total_cycles: int = Field(ge=0)
    cycle_duration_months: int = 1
    simulation_start_date: Optional[str] = None
    last_advance_date: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @model_validator(mode="after")
    def _cycle_within_total(self) -> "CycleMetadata":
        if self.current_cycle > self.total_cycles:
            raise ValueError(
                f"current_cycle {self.current_cycle} exceeds total_cycles {self.total_cycles}"
            )
        return self

    @property
    def at_maximum(self) -> bool:
        return self.current_cycle >= self.total_cycles


class AdvanceResult(BaseModel):
    new_cycle: int
    patients_processed: int = 0
    transitions_detected: int = 0
    alerts_generated: int = 0
    treatment_changes: int = 0
    processing_time_ms: float = 0


class HealthStateHistory(BaseModel):
    cycle_number: int
    measured_at: str
    egfr_value: float
    uacr_value: float
    health_state: str
    risk_level: str
    risk_color: str
    is_treated: bool = False
    average_adherence: Optional[float] = None
    active_treatments: List[str] = Field(default_factory=list)


class Treatment(BaseModel):
    id: str
    medication_name: str
    medication_class: str
    started_cycle: int
    current_adherence: float = Field(ge=0, le=1)
    status: str


class KeyFindings(BaseModel):
    abnormal_labs: List[str] = Field(default_factory=list)
    risk_factors: List[str] = Field(default_factory=list)
    protective_factors: List[str] = Field(default_factory=list)


class CKDAnalysis(BaseModel):
    current_stage: Optional[str] = None
    kidney_function: Optional[str] = None
    kidney_damage: Optional[str] = None
    progression_risk: Optional[str] = None


class Recommendations(BaseModel):
    immediate_actions: List[str] = Field(default_factory=list)
    follow_up: List[str] = Field(default_factory=list)
    lifestyle_modifications: List[str] = Field(default_factory=list)
    screening_tests: List[str] = Field(default_factory=list)


class RiskAssessment(BaseModel):
    patient_id: str
    risk_score: float = Field(ge=0, le=1)
    risk_level: Literal["low", "medium", "high"]
    risk_tier: Literal[1, 2, 3]
    key_findings: KeyFindings = Field(default_factory=KeyFindings)
    ckd_analysis: CKDAnalysis = Field(default_factory=CKDAnalysis)
    recommendations: Recommendations = Field(default_factory=Recommendations)
    confidence_score: Optional[float] = Field(default=None, ge=0, le=1)
    model_version: Optional[str] = None
    analyzed_at: str


class AnalysisSucceeded(BaseModel):
    success: Literal[True]
    patient_id: str
    analysis: RiskAssessment
    cached: bool = False
    processing_time_ms: Optional[float] = None


class AnalysisFailed(BaseModel):
    success: Literal[False]
    patient_id: Optional[str] = None
    error: Optional[str] = None
    processing_time_ms: Optional[float] = None

    @property
    def message(self) -> str:
        return self.error or "Analysis failed"


AnalysisResponse = Union[AnalysisSucceeded, AnalysisFailed]
_analysis_adapter = TypeAdapter(AnalysisResponse)


def _validate(model, data: Any, what: str):
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        raise MalformedPayloadError(f"Malformed {what} payload: {exc.error_count()} error(s)") from exc


def _field(body: Any, key: str, what: str) -> Any:
    if not isinstance(body, dict) or key not in body:
        raise MalformedPayloadError(f"Malformed {what} payload: missing '{key}'")
    return body[key]


def decode_cycle_metadata(body: Dict[str, Any]) -> CycleMetadata:
    return _validate(CycleMetadata, _field(body, "cycle_metadata", "cycle metadata"), "cycle metadata")


def decode_advance_result(body: Dict[str, Any]) -> AdvanceResult:
    return _validate(AdvanceResult, _field(body, "result", "advance result"), "advance result")


def _rows(body: Any, key: str, what: str) -> List[Any]:
    rows = _field(body, key, what)
    if not isinstance(rows, list):
        raise MalformedPayloadError(f"Malformed {what} payload: '{key}' is not a list")
    return rows


def decode_progression_history(body: Dict[str, Any]) -> List[HealthStateHistory]:
    rows = _rows(body, "progression_history", "progression history")
    return [_validate(HealthStateHistory, row, "progression history") for row in rows]


def decode_treatments(body: Dict[str, Any]) -> List[Treatment]:
    rows = _rows(body, "treatments", "treatment")
    return [_validate(Treatment, row, "treatment") for row in rows]


def decode_risk_assessment(data: Dict[str, Any]) -> RiskAssessment:
    return _validate(RiskAssessment, data, "risk assessment")


def decode_analysis_response(body: Dict[str, Any]) -> AnalysisResponse:
    """Succeeded only when success is true and a valid analysis is present; anything else malformed is an error."""
    try:
        return _analysis_adapter.validate_python(body)
    except ValidationError as exc:
        raise MalformedPayloadError(f"Malformed analysis payload: {exc.error_count()} error(s)") from exc
