# HTTP client for the CKD backend (progression + AI analysis endpoints)
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import requests

from errors import BackendTransportError, MalformedPayloadError
from payloads import (
    AdvanceResult,
    AnalysisResponse,
    CycleMetadata,
    HealthStateHistory,
    Treatment,
    decode_advance_result,
    decode_analysis_response,
    decode_cycle_metadata,
    decode_progression_history,
    decode_treatments,
)

logger = logging.getLogger(__name__)


class CKDBackendClient:
    """
    Thin wrapper over the backend's JSON API.

    No retries and no explicit timeout: a failed call raises
    BackendTransportError once and the caller decides what to show.
    """

    def __init__(self, base_url: str, session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()

    def _send(
        self,
        method: str,
        path: str,
        failure_message: str,
        json: Optional[Dict[str, Any]] = None,
    ) -> requests.Response:
        url = f"{self.base_url}{path}"
        headers = {"Content-Type": "application/json"} if method == "POST" else None
        try:
            return self.session.request(method, url, json=json, headers=headers)
        except requests.RequestException as exc:
            logger.error("%s %s failed: %s", method, url, exc)
            raise BackendTransportError(str(exc) or failure_message) from exc

    @staticmethod
    def _json(response: requests.Response, failure_message: str) -> Any:
        try:
            return response.json()
        except ValueError as exc:
            if not response.ok:
                raise BackendTransportError(failure_message, status_code=response.status_code) from exc
            raise MalformedPayloadError(f"{failure_message}: response is not JSON") from exc

    def _request(
        self,
        method: str,
        path: str,
        failure_message: str,
        json: Optional[Dict[str, Any]] = None,
        expect_body: bool = True,
    ) -> Dict[str, Any]:
        response = self._send(method, path, failure_message, json=json)
        if not response.ok:
            logger.error("%s %s returned HTTP %s", method, path, response.status_code)
            raise BackendTransportError(failure_message, status_code=response.status_code)
        if not expect_body:
            return {}
        return self._json(response, failure_message)

    @staticmethod
    def _patient_path(patient_id: str) -> str:
        return quote(str(patient_id), safe="")

    def get_current_cycle(self) -> CycleMetadata:
        body = self._request("GET", "/api/progression/current-cycle", "Failed to fetch current cycle")
        return decode_cycle_metadata(body)

    def advance_cycle(self) -> AdvanceResult:
        body = self._request("POST", "/api/progression/advance-cycle", "Failed to advance cycle")
        return decode_advance_result(body)

    def reset_simulation(self) -> None:
        self._request(
            "POST", "/api/progression/reset-simulation", "Failed to reset simulation", expect_body=False
        )

    def get_progression_history(self, patient_id: str) -> List[HealthStateHistory]:
        path = f"/api/progression/patient/{self._patient_path(patient_id)}"
        return decode_progression_history(self._request("GET", path, "Failed to fetch history"))

    def get_treatments(self, patient_id: str) -> List[Treatment]:
        path = f"/api/progression/patient/{self._patient_path(patient_id)}/treatments"
        return decode_treatments(self._request("GET", path, "Failed to fetch treatments"))

    def analyze_patient(
        self,
        patient_id: str,
        store_results: bool = True,
        include_patient_data: bool = True,
        skip_cache: bool = False,
    ) -> AnalysisResponse:
        """
        Run the AI risk analysis. The backend reports its own failures as
        {success: false, error} (often with a 4xx/5xx status), so the body is
        decoded whatever the status code. An error status whose body is not a
        tagged result raises BackendTransportError carrying the body's "error"
        text when there is one.
        """
        failure_message = "Failed to analyze patient"
        response = self._send(
            "POST",
            f"/api/analyze/{self._patient_path(patient_id)}",
            failure_message,
            json={
                "storeResults": store_results,
                "includePatientData": include_patient_data,
                "skipCache": skip_cache,
            },
        )
        body = self._json(response, failure_message)
        try:
            return decode_analysis_response(body)
        except MalformedPayloadError as exc:
            if response.ok:
                raise
            error = body.get("error") if isinstance(body, dict) else None
            logger.error("Analysis of %s returned HTTP %s: %s", patient_id, response.status_code, error)
            raise BackendTransportError(
                error if isinstance(error, str) and error else failure_message,
                status_code=response.status_code,
            ) from exc
