import pytest
import requests

from phish_url_detection_engine.core.errors import AuthError, BackendUnavailableError, NetworkError, RemoteScanError
from phish_url_detection_engine.providers.scanner_api import ScannerApiClient, normalize_remote_result


class _FakeResponse:
    def __init__(self, payload=None, status_code: int = 200, *, invalid_json: bool = False) -> None:
        self._payload = payload
        self.status_code = status_code
        self.text = "body"
        self._invalid_json = invalid_json

    def json(self):
        if self._invalid_json:
            raise ValueError("not json")
        return self._payload


class _FakeSession:
    def __init__(self, response=None, error: Exception | None = None) -> None:
        self.response = response
        self.error = error
        self.requests: list[dict[str, object]] = []

    def post(self, url, **kwargs):
        self.requests.append({"url": url, **kwargs})
        if self.error is not None:
            raise self.error
        return self.response


def _client(session, **kwargs) -> ScannerApiClient:
    return ScannerApiClient("https://scan.example/", session=session, **kwargs)


def test_normalize_camel_case_envelope():
    payload = {
        "result": {
            "riskScore": 85,
            "confidence": 0.9,
            "verdict": "dangerous",
            "riskLevel": "E",
            "decision": "block",
            "threatType": "phishing",
            "reasoning": ["Known phishing kit"],
            "indicators": [{"type": "kit", "value": "x", "severity": "HIGH"}, {"bogus": True}],
        }
    }
    result = normalize_remote_result(payload, url="https://evil.test", scan_type="hybrid")
    assert result.probability == 0.85
    assert result.risk_score == 85
    assert result.verdict == "DANGEROUS"
    assert result.risk_level == "E"
    assert result.decision == "BLOCK"
    assert result.threat_type == "phishing"
    assert result.scan_type == "hybrid"
    assert [item.severity for item in result.indicators] == ["high"]
    assert result.reasoning == ["Known phishing kit"]


def test_normalize_derives_missing_fields():
    result = normalize_remote_result({"probability": 0.2}, url="https://ok.test", scan_type="deep", latency_ms=12.5)
    assert result.verdict == "SAFE"
    assert result.risk_level == "A"
    assert result.confidence == 0.7
    assert result.decision == "ALLOW"
    assert result.latency_ms == 12.5
    assert result.url == "https://ok.test"


def test_normalize_requires_a_score():
    with pytest.raises(RemoteScanError):
        normalize_remote_result({"verdict": "SAFE"}, url="https://ok.test", scan_type="deep")


def test_endpoints():
    client = ScannerApiClient("https://scan.example/", legacy_deep_url="https://legacy.example/deep")
    assert client.endpoint_for("hybrid") == "https://scan.example/scanner/hybrid"
    assert client.endpoint_for("deep") == "https://scan.example/scanner/deep"
    assert client.endpoint_for("legacy_deep") == "https://legacy.example/deep"
    assert ScannerApiClient(None).endpoint_for("deep") == ""


def test_scan_sends_bearer_token(monkeypatch):
    monkeypatch.setenv("PHISH_URL_ENGINE_API_TOKEN", "tok")
    session = _FakeSession(_FakeResponse({"probability": 0.1}))
    assert _client(session).scan("https://ok.test", "hybrid") == {"probability": 0.1}
    sent = session.requests[0]
    assert sent["headers"]["Authorization"] == "Bearer tok"
    assert sent["json"]["options"] == {"includeWhois": True, "maxRedirects": 5}
    assert sent["timeout"] == 30.0


def test_scan_without_endpoint_is_unavailable():
    with pytest.raises(BackendUnavailableError):
        ScannerApiClient(None, session=_FakeSession()).scan("https://ok.test", "deep")


@pytest.mark.parametrize("status", [401, 403])
def test_auth_failures(status):
    with pytest.raises(AuthError) as exc_info:
        _client(_FakeSession(_FakeResponse(status_code=status))).scan("https://ok.test", "deep")
    assert exc_info.value.status_code == status


def test_transport_failures_are_network_errors():
    with pytest.raises(NetworkError) as exc_info:
        _client(_FakeSession(_FakeResponse(status_code=502))).scan("https://ok.test", "deep")
    assert exc_info.value.status_code == 502
    with pytest.raises(NetworkError):
        _client(_FakeSession(error=requests.Timeout("slow"))).scan("https://ok.test", "deep")
    with pytest.raises(NetworkError):
        _client(_FakeSession(error=requests.ConnectionError("refused"))).scan("https://ok.test", "hybrid")
    with pytest.raises(NetworkError):
        _client(_FakeSession(_FakeResponse(invalid_json=True))).scan("https://ok.test", "hybrid")


def test_unknown_mode_is_rejected():
    with pytest.raises(ValueError):
        _client(_FakeSession()).scan("https://ok.test", "turbo")
