# Display-ready summaries: risk labels/colours, cycle progress, advance results, patient evolution
from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence

import kdigo
from payloads import AdvanceResult, CycleMetadata, HealthStateHistory, RiskAssessment, Treatment

UNKNOWN_COLOR = "gray"

TIER_LABELS = {1: "Low", 2: "Moderate", 3: "High"}
TIER_COLORS = {1: "green", 2: "yellow", 3: "red"}
LEVEL_COLORS = {"low": "green", "medium": "yellow", "high": "red"}

KIDNEY_FUNCTION_TEXT = {
    "normal": "Normal kidney function",
    "mildly_reduced": "Mildly reduced kidney function",
    "moderately_reduced": "Moderately reduced kidney function",
    "severely_reduced": "Severely reduced kidney function",
    "kidney_failure": "Kidney failure",
}

NO_PROGRESSION_MESSAGE = 'No progression data available yet. Click "Next Cycle" to generate data.'


def tier_label(tier: Optional[int]) -> str:
    return TIER_LABELS.get(tier, "Unknown")


def tier_color(tier: Optional[int]) -> str:
    return TIER_COLORS.get(tier, UNKNOWN_COLOR)


def level_color(level: Optional[str]) -> str:
    return LEVEL_COLORS.get((level or "").lower(), UNKNOWN_COLOR)


def risk_display(risk_level: Optional[str], risk_tier: Optional[int]) -> Dict[str, Any]:
    """
    Colours for the risk header and tier badge.

    risk_level drives the header, risk_tier drives the badge. When the two
    disagree both are still shown as received and `consistent` is False.
    """
    header_color = level_color(risk_level)
    badge_color = tier_color(risk_tier)
    return {
        "risk_level": risk_level,
        "risk_tier": risk_tier,
        "tier_label": tier_label(risk_tier),
        "header_color": header_color,
        "badge_color": badge_color,
        "consistent": header_color == badge_color and header_color != UNKNOWN_COLOR,
    }


def _percent(fraction: Optional[float]) -> Optional[int]:
    return None if fraction is None else round(fraction * 100)


def summarize_risk_assessment(assessment: RiskAssessment) -> Dict[str, Any]:
    ckd = assessment.ckd_analysis
    summary = risk_display(assessment.risk_level, assessment.risk_tier)
    summary.update({
        "patient_id": assessment.patient_id,
        "risk_score": assessment.risk_score,
        "risk_score_percent": _percent(assessment.risk_score),
        "confidence_percent": _percent(assessment.confidence_score),
        "key_findings": assessment.key_findings.model_dump(),
        "ckd_analysis": dict(
            ckd.model_dump(),
            kidney_function_text=KIDNEY_FUNCTION_TEXT.get(ckd.kidney_function, ckd.kidney_function),
        ),
        "recommendations": assessment.recommendations.model_dump(),
        "model_version": assessment.model_version,
        "analyzed_at": assessment.analyzed_at,
    })
    return summary


def progress_percentage(current_cycle: int, total_cycles: int) -> float:
    """100 * current / total, clamped to [0, 100]. A zero total reads as no progress."""
    if total_cycles <= 0:
        return 0.0
    return max(0.0, min(100.0, 100.0 * current_cycle / total_cycles))


def summarize_cycle_metadata(metadata: CycleMetadata) -> Dict[str, Any]:
    return {
        "current_cycle": metadata.current_cycle,
        "total_cycles": metadata.total_cycles,
        "cycle_duration_months": metadata.cycle_duration_months,
        "progress_percentage": progress_percentage(metadata.current_cycle, metadata.total_cycles),
        "cycles_remaining": max(0, metadata.total_cycles - metadata.current_cycle),
        "at_maximum": metadata.at_maximum,
        "simulation_start_date": metadata.simulation_start_date,
        "last_advance_date": metadata.last_advance_date,
    }


def summarize_advance_result(result: AdvanceResult) -> Dict[str, Any]:
    summary = result.model_dump()
    summary["processing_time_seconds"] = round(result.processing_time_ms / 1000, 2)
    return summary


def summarize_treatment(treatment: Treatment) -> Dict[str, Any]:
    return {
        "id": treatment.id,
        "medication_name": treatment.medication_name,
        "medication_class": treatment.medication_class,
        "started_cycle": treatment.started_cycle,
        "status": treatment.status,
        "adherence_percent": round(treatment.current_adherence * 100),
    }


def summarize_evolution(
    history: Sequence[HealthStateHistory],
    treatments: Sequence[Treatment] = (),
) -> Dict[str, Any]:
    """
    Baseline-vs-latest view of a patient's progression history.

    eGFR change is absolute; uACR change is a percentage of baseline
    (None when the baseline uACR is zero).
    """
    treatment_rows = [summarize_treatment(t) for t in treatments]
    if not history:
        return {
            "has_data": False,
            "message": NO_PROGRESSION_MESSAGE,
            "treatments": treatment_rows,
        }

    ordered: List[HealthStateHistory] = sorted(history, key=lambda h: h.cycle_number)
    first, last = ordered[0], ordered[-1]
    egfr_change = last.egfr_value - first.egfr_value
    uacr_change = last.uacr_value - first.uacr_value
    uacr_percent = None if first.uacr_value == 0 else round(uacr_change / first.uacr_value * 100, 1)

    return {
        "has_data": True,
        "cycles": len(ordered),
        "egfr": {
            "latest": last.egfr_value,
            "baseline": first.egfr_value,
            "change": round(egfr_change, 1),
            "improving": egfr_change >= 0,
        },
        "uacr": {
            "latest": last.uacr_value,
            "baseline": first.uacr_value,
            "change": round(uacr_change, 1),
            "percent_change": uacr_percent,
            "improving": uacr_change <= 0,
        },
        "health_state": last.health_state,
        "risk_level": last.risk_level,
        "risk_color": last.risk_color,
        "is_treated": last.is_treated,
        "average_adherence_percent": _percent(last.average_adherence),
        "active_treatments": list(last.active_treatments),
        "kdigo": kdigo.classify(last.egfr_value, last.uacr_value).to_dict(),
        "history": [h.model_dump() for h in ordered],
        "treatments": treatment_rows,
    }
