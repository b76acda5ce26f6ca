"""
Observation normalization: fold an unordered stream of lab observations into
one row per simulation cycle.

Rows are keyed by month_number (missing/0 is the baseline cycle 1). Within a
cycle the last observation of a given type wins, in input order. Records with
a missing or unparseable date are skipped and reported, never raised.
"""
import logging
from datetime import date, datetime, time
from typing import Any, Callable, Dict, Iterable, List, Optional, Union

import pandas as pd

from models import CycleSeriesEntry, NormalizationResult, Observation, SkippedObservation

logger = logging.getLogger(__name__)

BASELINE_MONTH = 1

# Fixed English abbreviations so labels do not depend on the process locale
_MONTH_ABBREVIATIONS = (
    "Jan", "Feb", "Mar", "Apr", "May", "Jun",
    "Jul", "Aug", "Sep", "Oct", "Nov", "Dec",
)

DateFormatter = Callable[[datetime], str]


def parse_observation_date(value: Any) -> Optional[datetime]:
    """
    Parse an observation timestamp. Returns None when it is absent or not a valid instant.

    Strings go through pandas (ISO 8601, partial dates like "2024-03", and
    free text like "March 15, 2024"); bare numbers are epoch milliseconds.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime.combine(value, time.min)
    try:
        if isinstance(value, (int, float)):
            parsed = pd.to_datetime(value, unit="ms", utc=True, errors="coerce")
        elif isinstance(value, str) and value.strip():
            parsed = pd.to_datetime(value.strip(), errors="coerce")
        else:
            return None
    except (ValueError, OverflowError):
        return None
    if pd.isna(parsed):
        return None
    return parsed.to_pydatetime()


def format_month_year(moment: datetime) -> str:
    """'Mar 2024' style label for a cycle row."""
    return f"{_MONTH_ABBREVIATIONS[moment.month - 1]} {moment.year}"


def effective_month(month_number: Optional[int]) -> int:
    """None and 0 both mean the initial baseline draw."""
    return month_number or BASELINE_MONTH


def normalize_observations(
    observations: Iterable[Union[Observation, Dict[str, Any]]],
    date_formatter: DateFormatter = format_month_year,
) -> NormalizationResult:
    """Group observations into CycleSeriesEntry rows sorted ascending by month."""
    by_month: Dict[int, CycleSeriesEntry] = {}
    skipped: List[SkippedObservation] = []

    for index, raw in enumerate(observations):
        obs = raw if isinstance(raw, Observation) else Observation.from_dict(raw)

        if obs.observation_date is None or obs.observation_date == "":
            skipped.append(SkippedObservation(index, "missing_date", obs.observation_type))
            logger.warning("Skipping observation #%d (%s) without date", index, obs.observation_type)
            continue

        observed_at = parse_observation_date(obs.observation_date)
        if observed_at is None:
            skipped.append(SkippedObservation(index, "invalid_date", obs.observation_type, obs.observation_date))
            logger.warning(
                "Skipping observation #%d (%s) with invalid date %r",
                index, obs.observation_type, obs.observation_date,
            )
            continue

        if not obs.observation_type:
            skipped.append(SkippedObservation(index, "missing_type", None, obs.observation_date))
            logger.warning("Skipping observation #%d without observation_type", index)
            continue

        month = effective_month(obs.month_number)
        entry = by_month.get(month)
        if entry is None:
            entry = CycleSeriesEntry(month=month, date=date_formatter(observed_at))
            by_month[month] = entry

        if obs.value_numeric is not None:
            entry.values[obs.observation_type] = obs.value_numeric

    if skipped:
        logger.info("Normalized %d cycle(s), skipped %d observation(s)", len(by_month), len(skipped))

    return NormalizationResult(
        series=[by_month[m] for m in sorted(by_month)],
        skipped=skipped,
    )


def merge_series(entries: Iterable[CycleSeriesEntry]) -> List[CycleSeriesEntry]:
    """
    Re-apply the per-cycle grouping to already-built rows.

    Rows sharing a month collapse into one (first date kept, later values
    overwrite). Input rows are not mutated. Running this on the output of
    normalize_observations returns an equal series.
    """
    by_month: Dict[int, CycleSeriesEntry] = {}
    for entry in entries:
        month = effective_month(entry.month)
        merged = by_month.get(month)
        if merged is None:
            merged = CycleSeriesEntry(month=month, date=entry.date)
            by_month[month] = merged
        merged.values.update({k: v for k, v in entry.values.items() if v is not None})
    return [by_month[m] for m in sorted(by_month)]


def metric_names(series: Iterable[CycleSeriesEntry]) -> List[str]:
    """All metric columns present in the series, in first-seen order."""
    names: Dict[str, None] = {}
    for entry in series:
        for name, value in entry.values.items():
            if value is not None:
                names.setdefault(name, None)
    return list(names)
