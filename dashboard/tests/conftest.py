"""
Shared pytest fixtures for the CKD dashboard service tests.

The CKD backend is replaced by FakeBackend, an in-process stand-in that
records every call so tests can assert on network traffic.
"""
import pytest
from fastapi.testclient import TestClient

import main
from cycles import CycleController
from errors import BackendTransportError
from payloads import (
    AdvanceResult,
    AnalysisFailed,
    AnalysisSucceeded,
    CycleMetadata,
    HealthStateHistory,
    RiskAssessment,
    Treatment,
)


def make_metadata(current_cycle=6, total_cycles=24):
    return CycleMetadata(
        id=1,
        current_cycle=current_cycle,
        total_cycles=total_cycles,
        cycle_duration_months=1,
        simulation_start_date="2024-01-01T00:00:00Z",
        last_advance_date=None,
        created_at="2024-01-01T00:00:00Z",
        updated_at="2024-01-01T00:00:00Z",
    )


def make_assessment(risk_level="medium", risk_tier=2, **overrides):
    data = {
        "patient_id": "p-001",
        "risk_score": 0.55,
        "risk_level": risk_level,
        "risk_tier": risk_tier,
        "key_findings": {"abnormal_labs": ["eGFR 42"], "risk_factors": ["Diabetes"], "protective_factors": []},
        "ckd_analysis": {
            "current_stage": "3b",
            "kidney_function": "moderately_reduced",
            "kidney_damage": "microalbuminuria",
            "progression_risk": "moderate",
        },
        "recommendations": {"immediate_actions": ["Start SGLT2i"], "follow_up": ["Repeat labs in 3 months"]},
        "confidence_score": 0.8,
        "analyzed_at": "2024-06-01T12:00:00Z",
    }
    data.update(overrides)
    return RiskAssessment(**data)


class FakeBackend:
    """Records calls; advances its own cycle counter like the real backend would."""

    def __init__(self, current_cycle=6, total_cycles=24):
        self.current_cycle = current_cycle
        self.total_cycles = total_cycles
        self.calls = []
        self.fail = set()  # names of calls that should raise
        self.on_advance = None  # hook run while an advance is "in flight"
        self.on_reset = None
        self.history = []
        self.treatments = []
        self.analysis = None

    def _maybe_fail(self, name, message):
        self.calls.append(name)
        if name in self.fail:
            raise BackendTransportError(message, status_code=500)

    def get_current_cycle(self):
        self._maybe_fail("current-cycle", "Failed to fetch current cycle")
        return make_metadata(self.current_cycle, self.total_cycles)

    def advance_cycle(self):
        self._maybe_fail("advance-cycle", "Failed to advance cycle")
        if self.on_advance:
            self.on_advance()
        self.current_cycle += 1
        return AdvanceResult(
            new_cycle=self.current_cycle,
            patients_processed=200,
            transitions_detected=12,
            alerts_generated=5,
            treatment_changes=3,
            processing_time_ms=1534,
        )

    def reset_simulation(self):
        self._maybe_fail("reset-simulation", "Failed to reset simulation")
        if self.on_reset:
            self.on_reset()
        self.current_cycle = 0

    def get_progression_history(self, patient_id):
        self._maybe_fail("history", "Failed to fetch history")
        return list(self.history)

    def get_treatments(self, patient_id):
        self._maybe_fail("treatments", "Failed to fetch treatments")
        return list(self.treatments)

    def analyze_patient(self, patient_id, store_results=True, include_patient_data=True, skip_cache=False):
        self._maybe_fail("analyze", "Failed to analyze patient")
        if self.analysis is None:
            return AnalysisFailed(success=False, patient_id=patient_id, error="Patient not found")
        return AnalysisSucceeded(success=True, patient_id=patient_id, analysis=self.analysis, cached=False,
                                 processing_time_ms=2100)


@pytest.fixture
def fake_backend():
    return FakeBackend()


@pytest.fixture
def controller(fake_backend):
    tokens = iter(f"token-{i}" for i in range(1, 100))
    return CycleController(fake_backend, token_factory=lambda: next(tokens))


@pytest.fixture
def client(monkeypatch, fake_backend, controller):
    """TestClient with the module-level backend and controller swapped for fakes."""
    monkeypatch.setattr(main, "backend", fake_backend)
    monkeypatch.setattr(main, "controller", controller)
    return TestClient(main.app)


@pytest.fixture
def history_rows():
    return [
        HealthStateHistory(
            cycle_number=2, measured_at="2024-03-01T00:00:00Z", egfr_value=46.0, uacr_value=330.0,
            health_state="G3a-A3", risk_level="very_high", risk_color="red", is_treated=True,
            average_adherence=0.82, active_treatments=["Empagliflozin"],
        ),
        HealthStateHistory(
            cycle_number=0, measured_at="2024-01-01T00:00:00Z", egfr_value=44.0, uacr_value=300.0,
            health_state="G3b-A2", risk_level="very_high", risk_color="red", is_treated=False,
            average_adherence=None, active_treatments=[],
        ),
        HealthStateHistory(
            cycle_number=1, measured_at="2024-02-01T00:00:00Z", egfr_value=45.0, uacr_value=310.0,
            health_state="G3a-A3", risk_level="very_high", risk_color="red", is_treated=True,
            average_adherence=0.9, active_treatments=["Empagliflozin"],
        ),
    ]


@pytest.fixture
def treatment_rows():
    return [
        Treatment(id="t1", medication_name="Empagliflozin", medication_class="SGLT2i",
                  started_cycle=1, current_adherence=0.824, status="active"),
    ]
