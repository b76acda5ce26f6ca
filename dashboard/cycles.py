"""
Cycle advancement controller - guards the cohort-wide "advance one cycle"
and "reset simulation" round trips.

Advance and reset each have an in-flight flag and exclude one another: a
trigger while either is running returns a "busy" outcome and does nothing.
Advancing at total_cycles is rejected before any network call. Reset needs a
confirmation token issued by a previous unconfirmed reset call. After either
succeeds the cycle metadata is re-read from the backend, which owns the
cycle number.
"""
from __future__ import annotations

import logging
import threading
import uuid
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from errors import BackendError
from payloads import AdvanceResult, CycleMetadata
from summaries import summarize_advance_result, summarize_cycle_metadata

logger = logging.getLogger(__name__)

ADVANCED = "advanced"
RESET = "reset"
MAX_CYCLES_REACHED = "max_cycles_reached"
BUSY = "busy"
CONFIRMATION_REQUIRED = "confirmation_required"
ERROR = "error"

MAX_CYCLES_MESSAGE = "Maximum cycles reached ({total_cycles} months)"
BUSY_MESSAGE = "Another cycle operation is already in progress"
RESET_CONFIRMATION_MESSAGE = (
    "Are you sure you want to reset the simulation? "
    "This will delete all progression data and start from cycle 0."
)


@dataclass
class CycleActionOutcome:
    status: str
    message: Optional[str] = None
    result: Optional[AdvanceResult] = None
    cycle_metadata: Optional[CycleMetadata] = None
    confirmation_token: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status in (ADVANCED, RESET)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status,
            "message": self.message,
            "result": summarize_advance_result(self.result) if self.result else None,
            "cycle": summarize_cycle_metadata(self.cycle_metadata) if self.cycle_metadata else None,
            "confirmation_token": self.confirmation_token,
        }


class CycleController:
    def __init__(self, backend, token_factory: Callable[[], str] = lambda: uuid.uuid4().hex):
        self.backend = backend
        self._token_factory = token_factory
        self._lock = threading.Lock()
        self._pending_confirmation: Optional[str] = None

        self.cycle_metadata: Optional[CycleMetadata] = None
        self.last_result: Optional[AdvanceResult] = None
        self.error: Optional[str] = None
        self.advancing = False
        self.resetting = False

    @property
    def busy(self) -> bool:
        return self.advancing or self.resetting

    @property
    def can_advance(self) -> bool:
        return not self.busy and not (self.cycle_metadata and self.cycle_metadata.at_maximum)

    @property
    def can_reset(self) -> bool:
        return not self.busy

    def refresh(self) -> CycleMetadata:
        """Re-read cycle metadata. Raises BackendError; state is untouched on failure."""
        metadata = self.backend.get_current_cycle()
        self.cycle_metadata = metadata
        return metadata

    def _refresh_after_change(self):
        try:
            self.refresh()
            self.error = None
        except BackendError as exc:
            logger.error("Cycle metadata refresh failed: %s", exc)
            self.error = str(exc)

    def _max_cycles_outcome(self, metadata: CycleMetadata) -> CycleActionOutcome:
        message = MAX_CYCLES_MESSAGE.format(total_cycles=metadata.total_cycles)
        self.error = message
        return CycleActionOutcome(MAX_CYCLES_REACHED, message, cycle_metadata=metadata)

    def advance(self) -> CycleActionOutcome:
        with self._lock:
            if self.busy:
                return CycleActionOutcome(BUSY, BUSY_MESSAGE, cycle_metadata=self.cycle_metadata)
            if self.cycle_metadata is not None and self.cycle_metadata.at_maximum:
                return self._max_cycles_outcome(self.cycle_metadata)
            self.advancing = True

        try:
            self.error = None
            if self.cycle_metadata is None:
                self.refresh()
                if self.cycle_metadata.at_maximum:
                    return self._max_cycles_outcome(self.cycle_metadata)

            result = self.backend.advance_cycle()
            self.last_result = result
            logger.info(
                "Advanced to cycle %s: %s patients, %s alerts",
                result.new_cycle, result.patients_processed, result.alerts_generated,
            )
            self._refresh_after_change()
            return CycleActionOutcome(ADVANCED, self.error, result=result, cycle_metadata=self.cycle_metadata)
        except BackendError as exc:
            logger.error("Advance cycle failed: %s", exc)
            self.error = str(exc)
            return CycleActionOutcome(ERROR, self.error, cycle_metadata=self.cycle_metadata)
        finally:
            with self._lock:
                self.advancing = False

    def reset(self, confirmation_token: Optional[str] = None) -> CycleActionOutcome:
        """
        Reset the whole simulation back to cycle 0.

        Without the token from a previous CONFIRMATION_REQUIRED outcome no
        request is sent; a fresh single-use token is handed back instead.
        """
        with self._lock:
            if self.busy:
                return CycleActionOutcome(BUSY, BUSY_MESSAGE, cycle_metadata=self.cycle_metadata)
            if confirmation_token is None or confirmation_token != self._pending_confirmation:
                self._pending_confirmation = self._token_factory()
                return CycleActionOutcome(
                    CONFIRMATION_REQUIRED,
                    RESET_CONFIRMATION_MESSAGE,
                    cycle_metadata=self.cycle_metadata,
                    confirmation_token=self._pending_confirmation,
                )
            self._pending_confirmation = None
            self.resetting = True

        try:
            self.error = None
            self.backend.reset_simulation()
            self.last_result = None
            logger.info("Simulation reset")
            self._refresh_after_change()
            return CycleActionOutcome(RESET, self.error, cycle_metadata=self.cycle_metadata)
        except BackendError as exc:
            logger.error("Reset simulation failed: %s", exc)
            self.error = str(exc)
            return CycleActionOutcome(ERROR, self.error, cycle_metadata=self.cycle_metadata)
        finally:
            with self._lock:
                self.resetting = False

    def snapshot(self) -> Dict[str, Any]:
        """Current controller state for the dashboard."""
        return {
            "cycle": summarize_cycle_metadata(self.cycle_metadata) if self.cycle_metadata else None,
            "last_result": summarize_advance_result(self.last_result) if self.last_result else None,
            "advancing": self.advancing,
            "resetting": self.resetting,
            "can_advance": self.can_advance,
            "can_reset": self.can_reset,
            "error": self.error,
        }
