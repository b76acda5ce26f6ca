# Engine-side data models - transient, recomputable copies of backend records
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class Observation:
    """One lab/vital reading as produced by the backend simulation."""
    observation_type: Optional[str]
    observation_date: Any = None  # ISO or free-text string, epoch ms, date or datetime; may be missing or garbage
    value_numeric: Optional[float] = None
    value_text: Optional[str] = None
    unit: Optional[str] = None
    month_number: Optional[int] = None
    notes: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Observation":
        return cls(
            observation_type=data.get("observation_type"),
            observation_date=data.get("observation_date"),
            value_numeric=data.get("value_numeric"),
            value_text=data.get("value_text"),
            unit=data.get("unit"),
            month_number=data.get("month_number"),
            notes=data.get("notes"),
        )


@dataclass
class CycleSeriesEntry:
    """One row of the wide per-cycle table. A missing metric means "not measured this cycle"."""
    month: int
    date: str
    values: Dict[str, float] = field(default_factory=dict)

    def get(self, metric: str) -> Optional[float]:
        return self.values.get(metric)

    def has(self, metric: str) -> bool:
        return self.values.get(metric) is not None

    def to_dict(self) -> Dict[str, Any]:
        row: Dict[str, Any] = {"month": self.month, "date": self.date}
        row.update(self.values)
        return row


@dataclass
class SkippedObservation:
    """Diagnostic record for an observation left out of the series."""
    index: int  # position in the input sequence
    reason: str  # "missing_date" | "invalid_date" | "missing_type"
    observation_type: Optional[str] = None
    observation_date: Any = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "index": self.index,
            "reason": self.reason,
            "observation_type": self.observation_type,
            "observation_date": None if self.observation_date is None else str(self.observation_date),
        }


@dataclass
class NormalizationResult:
    series: List[CycleSeriesEntry] = field(default_factory=list)
    skipped: List[SkippedObservation] = field(default_factory=list)

    @property
    def skipped_count(self) -> int:
        return len(self.skipped)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "series": [entry.to_dict() for entry in self.series],
            "skipped_count": self.skipped_count,
            "skipped": [s.to_dict() for s in self.skipped],
        }


@dataclass
class PatientClinicalSnapshot:
    """
    Flattened latest state of one patient, used for alert flags.
    None on any numeric field means unknown - never read as zero.
    """
    patient_id: Optional[str] = None
    ckd_stage: Optional[int] = None  # 0 = no CKD, 1-5 = CKD stages
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
    comorbidities: List[str] = field(default_factory=list)
    on_ras_inhibitor: Optional[bool] = None
    on_sglt2i: Optional[bool] = None
    nephrotoxic_meds: bool = False
    nephrology_referral: Optional[bool] = None
