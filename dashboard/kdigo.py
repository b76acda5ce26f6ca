# KDIGO CKD classification from eGFR and uACR (2024 heat-map)
from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Dict, Optional, Tuple


@dataclass
class KDIGOClassification:
    gfr_category: str
    gfr_description: str
    albuminuria_category: str
    albuminuria_description: str
    health_state: str  # e.g. "G3a-A2"
    risk_level: str  # low | moderate | high | very_high
    risk_color: str  # green | yellow | orange | red
    has_ckd: bool
    ckd_stage: Optional[int]
    ckd_stage_name: str
    requires_nephrology_referral: bool
    requires_dialysis_planning: bool
    recommend_ras_inhibitor: bool
    recommend_sglt2i: bool
    target_bp: str
    monitoring_frequency: str

    def to_dict(self) -> Dict:
        return asdict(self)


def gfr_category(egfr: float) -> Tuple[str, str]:
    if egfr >= 90:
        return "G1", "Normal or High"
    elif egfr >= 60:
        return "G2", "Mildly Decreased"
    elif egfr >= 45:
        return "G3a", "Mild to Moderate Decrease"
    elif egfr >= 30:
        return "G3b", "Moderate to Severe Decrease"
    elif egfr >= 15:
        return "G4", "Severely Decreased"
    return "G5", "Kidney Failure"


def albuminuria_category(uacr: float) -> Tuple[str, str]:
    if uacr < 30:
        return "A1", "Normal to Mildly Increased"
    elif uacr <= 300:
        return "A2", "Moderately Increased"
    return "A3", "Severely Increased"


def ckd_stage(egfr: float, uacr: float) -> Tuple[Optional[int], str]:
    """Stage 1-2 need albuminuria (uACR >= 30) as evidence of kidney damage; below eGFR 60 it is always CKD."""
    if egfr < 15:
        return 5, "Stage 5 (Kidney Failure)"
    if egfr < 30:
        return 4, "Stage 4 (Severe)"
    if egfr < 45:
        return 3, "Stage 3b (Moderate to Severe)"
    if egfr < 60:
        return 3, "Stage 3a (Mild to Moderate)"
    if egfr < 90 and uacr >= 30:
        return 2, "Stage 2 (Mild Decrease with Damage)"
    if egfr >= 90 and uacr >= 30:
        return 1, "Stage 1 (Normal Function with Damage)"
    return None, "No CKD"


def kdigo_risk(gfr_cat: str, alb_cat: str) -> Tuple[str, str]:
    """(risk_level, risk_color) from the KDIGO prognosis grid."""
    if gfr_cat in ("G4", "G5"):
        return "very_high", "red"
    if gfr_cat == "G3b" and alb_cat in ("A2", "A3"):
        return "very_high", "red"
    if gfr_cat == "G3a" and alb_cat == "A3":
        return "very_high", "red"

    if gfr_cat == "G3b" and alb_cat == "A1":
        return "high", "orange"
    if gfr_cat == "G3a" and alb_cat == "A2":
        return "high", "orange"
    if gfr_cat in ("G1", "G2") and alb_cat == "A3":
        return "high", "orange"

    if gfr_cat == "G3a" and alb_cat == "A1":
        return "moderate", "yellow"
    if gfr_cat in ("G1", "G2") and alb_cat == "A2":
        return "moderate", "yellow"

    return "low", "green"


MONITORING_FREQUENCY = {
    "very_high": "Every 1-3 months",
    "high": "Every 3-6 months",
    "moderate": "Every 6-12 months",
    "low": "Annually",
}


def classify(egfr: float, uacr: float) -> KDIGOClassification:
    gfr_cat, gfr_desc = gfr_category(egfr)
    alb_cat, alb_desc = albuminuria_category(uacr)
    stage, stage_name = ckd_stage(egfr, uacr)
    risk_level, risk_color = kdigo_risk(gfr_cat, alb_cat)

    return KDIGOClassification(
        gfr_category=gfr_cat,
        gfr_description=gfr_desc,
        albuminuria_category=alb_cat,
        albuminuria_description=alb_desc,
        health_state=f"{gfr_cat}-{alb_cat}",
        risk_level=risk_level,
        risk_color=risk_color,
        has_ckd=stage is not None,
        ckd_stage=stage,
        ckd_stage_name=stage_name,
        requires_nephrology_referral=gfr_cat in ("G3b", "G4", "G5") or alb_cat == "A3",
        requires_dialysis_planning=gfr_cat == "G5" or (gfr_cat == "G4" and egfr < 20),
        recommend_ras_inhibitor=alb_cat in ("A2", "A3"),
        recommend_sglt2i=stage is not None and 2 <= stage <= 4,
        target_bp="<140/90 mmHg" if alb_cat == "A1" else "<130/80 mmHg",
        monitoring_frequency=MONITORING_FREQUENCY[risk_level],
    )


def severity_label(stage: Optional[int]) -> str:
    """Patient-list grouping label for a CKD stage."""
    if stage in (1, 2):
        return "Mild CKD"
    if stage == 3:
        return "Moderate CKD"
    if stage == 4:
        return "Severe CKD"
    if stage == 5:
        return "Kidney Failure"
    return "No CKD"
