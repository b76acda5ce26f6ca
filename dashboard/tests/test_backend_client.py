"""
Tests for backend_client.py - URLs, bodies and error mapping against a fake requests session.
"""
import pytest
import requests

from backend_client import CKDBackendClient
from errors import BackendTransportError, MalformedPayloadError
from payloads import AnalysisFailed, AnalysisSucceeded
from test_payloads import ANALYSIS, METADATA


class FakeResponse:
    def __init__(self, status_code=200, payload=None):
        self.status_code = status_code
        self._payload = payload

    @property
    def ok(self):
        return self.status_code < 400

    def json(self):
        if self._payload is None:
            raise ValueError("No JSON object could be decoded")
        return self._payload


class FakeSession:
    def __init__(self, *responses, error=None):
        self.responses = list(responses)
        self.error = error
        self.requests = []

    def request(self, method, url, json=None, headers=None):
        self.requests.append({"method": method, "url": url, "json": json, "headers": headers})
        if self.error:
            raise self.error
        return self.responses.pop(0)


def client_with(*responses, error=None):
    session = FakeSession(*responses, error=error)
    return CKDBackendClient("http://backend.test:3000/", session=session), session


class TestProgressionEndpoints:

    def test_current_cycle(self):
        client, session = client_with(FakeResponse(200, {"cycle_metadata": METADATA}))
        metadata = client.get_current_cycle()
        assert metadata.total_cycles == 24
        assert session.requests[0]["method"] == "GET"
        assert session.requests[0]["url"] == "http://backend.test:3000/api/progression/current-cycle"

    def test_advance_posts_without_body(self):
        result = {"new_cycle": 7, "patients_processed": 3, "transitions_detected": 0,
                  "alerts_generated": 1, "treatment_changes": 0, "processing_time_ms": 90}
        client, session = client_with(FakeResponse(200, {"result": result}))
        assert client.advance_cycle().new_cycle == 7
        sent = session.requests[0]
        assert (sent["method"], sent["url"], sent["json"]) == (
            "POST", "http://backend.test:3000/api/progression/advance-cycle", None,
        )

    def test_reset_accepts_empty_body(self):
        client, session = client_with(FakeResponse(200, None))
        assert client.reset_simulation() is None
        assert session.requests[0]["url"].endswith("/api/progression/reset-simulation")

    def test_history_and_treatments_paths_are_escaped(self):
        client, session = client_with(
            FakeResponse(200, {"progression_history": []}),
            FakeResponse(200, {"treatments": []}),
        )
        assert client.get_progression_history("abc/1") == []
        assert client.get_treatments("abc/1") == []
        assert session.requests[0]["url"].endswith("/api/progression/patient/abc%2F1")
        assert session.requests[1]["url"].endswith("/api/progression/patient/abc%2F1/treatments")


class TestErrors:

    def test_http_error_uses_fixed_message(self):
        client, _ = client_with(FakeResponse(500, {"error": "boom"}))
        with pytest.raises(BackendTransportError) as exc_info:
            client.advance_cycle()
        assert str(exc_info.value) == "Failed to advance cycle"
        assert exc_info.value.status_code == 500

    def test_network_error_message_passed_through(self):
        client, _ = client_with(error=requests.ConnectionError("Connection refused"))
        with pytest.raises(BackendTransportError) as exc_info:
            client.get_current_cycle()
        assert str(exc_info.value) == "Connection refused"

    def test_non_json_success_is_malformed(self):
        client, _ = client_with(FakeResponse(200, None))
        with pytest.raises(MalformedPayloadError):
            client.get_current_cycle()

    def test_wrong_shape_is_malformed(self):
        client, _ = client_with(FakeResponse(200, {"cycle_metadata": {"id": 1}}))
        with pytest.raises(MalformedPayloadError):
            client.get_current_cycle()


class TestAnalyze:

    def test_request_body_uses_backend_field_names(self):
        client, session = client_with(FakeResponse(200, {"success": True, "patient_id": "p-001", "analysis": ANALYSIS}))
        response = client.analyze_patient("p-001", skip_cache=True)
        assert isinstance(response, AnalysisSucceeded)
        assert session.requests[0]["url"].endswith("/api/analyze/p-001")
        assert session.requests[0]["json"] == {"storeResults": True, "includePatientData": True, "skipCache": True}

    def test_error_body_decoded_even_on_http_error(self):
        client, _ = client_with(FakeResponse(404, {"success": False, "patient_id": "p-404", "error": "Patient not found"}))
        response = client.analyze_patient("p-404")
        assert isinstance(response, AnalysisFailed)
        assert response.message == "Patient not found"

    def test_http_error_with_bare_error_body_keeps_backend_text(self):
        client, _ = client_with(FakeResponse(404, {"error": "Patient not found"}))
        with pytest.raises(BackendTransportError) as exc_info:
            client.analyze_patient("p-404")
        assert str(exc_info.value) == "Patient not found"
        assert exc_info.value.status_code == 404

    def test_http_error_with_unrecognised_body(self):
        client, _ = client_with(FakeResponse(500, {"detail": "boom"}))
        with pytest.raises(BackendTransportError) as exc_info:
            client.analyze_patient("p-001")
        assert str(exc_info.value) == "Failed to analyze patient"

    def test_success_status_with_bad_body_is_malformed(self):
        client, _ = client_with(FakeResponse(200, {"error": "Patient not found"}))
        with pytest.raises(MalformedPayloadError):
            client.analyze_patient("p-001")

    def test_http_error_without_json(self):
        client, _ = client_with(FakeResponse(502, None))
        with pytest.raises(BackendTransportError) as exc_info:
            client.analyze_patient("p-001")
        assert str(exc_info.value) == "Failed to analyze patient"
