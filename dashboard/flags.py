"""
Derived clinical flags for a patient snapshot.

Every threshold comparison is strict, so a value sitting exactly on the
threshold (K+ 5.5, Hb 11, BP 140/90, phosphorus 4.5) does not raise the flag.
A missing value never raises a flag either.
"""
from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Optional

import kdigo
from models import PatientClinicalSnapshot

POTASSIUM_HIGH = 5.5  # mEq/L
HEMOGLOBIN_LOW = 11  # g/dL
SYSTOLIC_HIGH = 140  # mmHg
DIASTOLIC_HIGH = 90  # mmHg
PHOSPHORUS_HIGH = 4.5  # mg/dL
PHOSPHORUS_MIN_STAGE = 3
REFERRAL_MIN_STAGE = 4

STAGE_COLORS = ["green", "lime", "yellow", "orange", "red"]


@dataclass
class ClinicalFlags:
    bmi: Optional[float]
    high_potassium: bool
    low_hemoglobin: bool
    high_blood_pressure: bool
    high_phosphorus: bool
    nephrology_referral_needed: bool

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _above(value: Optional[float], threshold: float) -> bool:
    return value is not None and value > threshold


def _below(value: Optional[float], threshold: float) -> bool:
    return value is not None and value < threshold


def _stage_at_least(stage: Optional[int], minimum: int) -> bool:
    return stage is not None and stage >= minimum


def calculate_bmi(
    weight_kg: Optional[float],
    height_cm: Optional[float],
    bmi: Optional[float] = None,
) -> Optional[float]:
    """Supplied BMI wins unchanged; otherwise weight / height(m)^2 rounded to 2 places."""
    if bmi is not None:
        return bmi
    if weight_kg and height_cm:
        return round(weight_kg / (height_cm / 100) ** 2, 2)
    return None


def derive_clinical_flags(snapshot: PatientClinicalSnapshot) -> ClinicalFlags:
    return ClinicalFlags(
        bmi=calculate_bmi(snapshot.weight_kg, snapshot.height_cm, snapshot.bmi),
        high_potassium=_above(snapshot.potassium, POTASSIUM_HIGH),
        low_hemoglobin=_below(snapshot.hemoglobin, HEMOGLOBIN_LOW),
        high_blood_pressure=(
            _above(snapshot.systolic_bp, SYSTOLIC_HIGH) or _above(snapshot.diastolic_bp, DIASTOLIC_HIGH)
        ),
        high_phosphorus=(
            _above(snapshot.phosphorus, PHOSPHORUS_HIGH)
            and _stage_at_least(snapshot.ckd_stage, PHOSPHORUS_MIN_STAGE)
        ),
        # Unknown referral status counts as not referred
        nephrology_referral_needed=(
            not snapshot.nephrology_referral and _stage_at_least(snapshot.ckd_stage, REFERRAL_MIN_STAGE)
        ),
    )


def _format_number(value: float) -> str:
    return f"{value:g}"


def alert_badges(snapshot: PatientClinicalSnapshot, flags: Optional[ClinicalFlags] = None) -> List[str]:
    """Alert texts for the patient card, in display order."""
    flags = flags or derive_clinical_flags(snapshot)
    alerts = []
    if flags.high_potassium:
        alerts.append(f"High K+ ({_format_number(snapshot.potassium)})")
    if flags.low_hemoglobin:
        alerts.append(f"Anemia (Hb {_format_number(snapshot.hemoglobin)})")
    if flags.high_phosphorus:
        alerts.append("High Phosphorus")
    if snapshot.nephrotoxic_meds:
        alerts.append("Nephrotoxic Meds")
    if flags.nephrology_referral_needed:
        alerts.append("Nephrology referral needed")
    return alerts


def stage_badge(stage: Optional[int]) -> Dict[str, str]:
    if stage is None:
        return {"label": "Stage unknown", "color": "gray"}
    if stage == 0:
        return {"label": "No CKD", "color": "green"}
    index = min(max(stage - 1, 0), len(STAGE_COLORS) - 1)
    return {"label": f"Stage {stage}", "color": STAGE_COLORS[index]}


def medication_badges(snapshot: PatientClinicalSnapshot) -> List[Dict[str, Any]]:
    """Badges only for medications whose status is known."""
    badges = []
    if snapshot.on_ras_inhibitor is not None:
        badges.append({"label": "RAS Inhibitor", "active": snapshot.on_ras_inhibitor})
    if snapshot.on_sglt2i is not None:
        badges.append({"label": "SGLT2i", "active": snapshot.on_sglt2i})
    return badges


def build_patient_card(snapshot: PatientClinicalSnapshot) -> Dict[str, Any]:
    """
    Flags, badges and (when eGFR and uACR are known) the KDIGO classification.

    A snapshot without a recorded stage takes its stage label from KDIGO.
    That label is display only: the stage-gated flags still see the stage as
    unknown.
    """
    flags = derive_clinical_flags(snapshot)
    classification = None
    if snapshot.egfr is not None and snapshot.uacr is not None:
        classification = kdigo.classify(snapshot.egfr, snapshot.uacr)

    display_stage, stage_source = snapshot.ckd_stage, "recorded"
    if display_stage is None:
        if classification is not None:
            display_stage, stage_source = classification.ckd_stage or 0, "kdigo"
        else:
            stage_source = None

    return {
        "patient_id": snapshot.patient_id,
        "flags": flags.to_dict(),
        "alerts": alert_badges(snapshot, flags),
        "stage_badge": stage_badge(display_stage),
        "stage_source": stage_source,
        "severity": kdigo.severity_label(display_stage) if display_stage is not None else None,
        "medications": medication_badges(snapshot),
        "comorbidities": list(snapshot.comorbidities),
        "kdigo": classification.to_dict() if classification else None,
    }
