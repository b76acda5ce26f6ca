"""
Trend eligibility: decide per metric whether the dashboard shows a trend line
or a single baseline value.

A metric needs two or more cycles with a value to be drawn as a trend. With a
single value it falls back to the most recent value and its date ("no updates
yet"). With no value at all the metric is left out entirely.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional

from models import CycleSeriesEntry
from observations import metric_names

TREND = "trend"
STATIC = "static"


@dataclass
class LatestValue:
    value: float
    date: str
    month: int

    def to_dict(self) -> Dict[str, Any]:
        return {"value": self.value, "date": self.date, "month": self.month}


@dataclass
class MetricView:
    metric: str
    mode: str  # TREND | STATIC
    latest: LatestValue
    points: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def is_trend(self) -> bool:
        return self.mode == TREND

    def to_dict(self) -> Dict[str, Any]:
        return {
            "metric": self.metric,
            "mode": self.mode,
            "latest": self.latest.to_dict(),
            "points": self.points,
        }


def _ordered(series: Iterable[CycleSeriesEntry]) -> List[CycleSeriesEntry]:
    return sorted(series, key=lambda entry: entry.month)


def has_multiple_timepoints(series: Iterable[CycleSeriesEntry], metric: str) -> bool:
    """True when more than one cycle carries a defined value for the metric."""
    return sum(1 for entry in series if entry.has(metric)) > 1


def latest_value(series: Iterable[CycleSeriesEntry], metric: str) -> Optional[LatestValue]:
    """Most recent defined value, scanning from the last cycle backwards."""
    for entry in reversed(_ordered(series)):
        if entry.has(metric):
            return LatestValue(value=entry.get(metric), date=entry.date, month=entry.month)
    return None


def classify_metric(series: Iterable[CycleSeriesEntry], metric: str) -> Optional[MetricView]:
    """Trend or static view for one metric; None when the metric was never measured."""
    ordered = _ordered(series)
    latest = latest_value(ordered, metric)
    if latest is None:
        return None

    if not has_multiple_timepoints(ordered, metric):
        return MetricView(metric=metric, mode=STATIC, latest=latest)

    points = [
        {"month": entry.month, "date": entry.date, "value": entry.get(metric)}
        for entry in ordered
        if entry.has(metric)
    ]
    return MetricView(metric=metric, mode=TREND, latest=latest, points=points)


def classify_metrics(
    series: Iterable[CycleSeriesEntry],
    metrics: Optional[Iterable[str]] = None,
) -> Dict[str, MetricView]:
    """Views for the requested metrics (default: every metric in the series). Unmeasured ones are omitted."""
    ordered = _ordered(series)
    names = list(metrics) if metrics is not None else metric_names(ordered)
    views: Dict[str, MetricView] = {}
    for name in names:
        view = classify_metric(ordered, name)
        if view is not None:
            views[name] = view
    return views


# Dashboard panels: which metric drives each chart and how its baseline is judged
@dataclass(frozen=True)
class MetricPanel:
    key: str
    label: str
    unit: str
    normal_range: str
    reference_lines: tuple = ()
    is_good: Optional[Callable[[float], bool]] = None
    secondary_key: Optional[str] = None  # e.g. diastolic paired with systolic


METRIC_PANELS = (
    MetricPanel(
        key="eGFR",
        label="Kidney Function (eGFR)",
        unit="mL/min/1.73m²",
        normal_range=">60 mL/min/1.73m²",
        reference_lines=((60, "Normal (>60)"), (30, "Severe (<30)")),
        is_good=lambda v: v >= 60,
    ),
    MetricPanel(
        key="uACR",
        label="Protein in Urine (uACR)",
        unit="mg/g",
        normal_range="<30 mg/g",
        reference_lines=((30, "Normal (<30)"), (300, "Severe (>300)")),
        is_good=lambda v: v < 30,
    ),
    MetricPanel(
        key="blood_pressure_systolic",
        label="Blood Pressure",
        unit="mmHg",
        normal_range="<130/80 mmHg",
        reference_lines=((130, "Target Systolic (130)"), (80, "Target Diastolic (80)")),
        secondary_key="blood_pressure_diastolic",
    ),
    MetricPanel(
        key="HbA1c",
        label="Diabetes Control (HbA1c)",
        unit="%",
        normal_range="<7%",
        reference_lines=((7, "Target (<7%)"),),
        is_good=lambda v: v < 7,
    ),
)


def _panel_payload(panel: MetricPanel, series: List[CycleSeriesEntry]) -> Optional[Dict[str, Any]]:
    view = classify_metric(series, panel.key)
    if view is None:
        return None

    payload: Dict[str, Any] = {
        "metric": panel.key,
        "label": panel.label,
        "unit": panel.unit,
        "normal_range": panel.normal_range,
        "reference_lines": [{"value": v, "label": text} for v, text in panel.reference_lines],
        "mode": view.mode,
        "latest": view.latest.to_dict(),
        "is_good": panel.is_good(view.latest.value) if panel.is_good else None,
    }

    if panel.secondary_key:
        # Blood pressure: systolic decides the mode, diastolic rides along
        secondary = latest_value(series, panel.secondary_key)
        payload["secondary_metric"] = panel.secondary_key
        payload["secondary_latest"] = secondary.to_dict() if secondary else None

    if view.is_trend:
        keys = [panel.key] + ([panel.secondary_key] if panel.secondary_key else [])
        payload["points"] = [
            dict({"month": e.month, "date": e.date}, **{k: e.get(k) for k in keys if e.has(k)})
            for e in series
            if any(e.has(k) for k in keys)
        ]
    else:
        payload["points"] = []
        payload["note"] = "Graph will appear once follow-up results are recorded"

    return payload


def build_trend_panels(series: Iterable[CycleSeriesEntry], is_treated: bool = False) -> Dict[str, Any]:
    """Display-ready trend panels for the fixed dashboard metrics."""
    ordered = _ordered(series)
    panels = []
    for panel in METRIC_PANELS:
        payload = _panel_payload(panel, ordered)
        if payload is not None:
            panels.append(payload)
    return {
        "is_treated": is_treated,
        "treatment_label": "Under Treatment" if is_treated else "Not Treated",
        "panels": panels,
    }
