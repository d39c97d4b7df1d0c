import pytest

pytest.importorskip("fastapi")
pytest.importorskip("httpx")

from fastapi.testclient import TestClient

from phish_url_detection_engine.api import app as api_app
from phish_url_detection_engine.core.errors import AuthError


def test_health():
    client = TestClient(api_app.create_app(service=None))
    assert client.get("/health").json() == {"status": "ok"}


def test_scan_returns_result_with_runtime(make_service):
    runtime = {"profile": "test", "backends": []}
    client = TestClient(api_app.create_app(service=make_service(), runtime=runtime))
    response = client.post("/scan", json={"url": "https://paypa1-secure-login.tk/verify"})
    assert response.status_code == 200
    body = response.json()
    assert body["verdict"] == "DANGEROUS"
    assert body["decision"] == "BLOCK"
    assert body["scan_type"] == "edge"
    assert body["runtime"] == runtime


def test_scan_honours_requested_tier(make_service, fake_remote):
    remote = fake_remote({"deep": {"probability": 0.05, "confidence": 0.95}})
    client = TestClient(api_app.create_app(service=make_service(remote=remote)))
    body = client.post("/scan", json={"url": "https://example.com", "tier": "deep"}).json()
    assert body["scan_type"] == "deep"
    assert remote.calls == ["deep"]


def test_invalid_url_is_not_an_http_error(make_service):
    client = TestClient(api_app.create_app(service=make_service()))
    response = client.post("/scan", json={"url": "not a url"})
    assert response.status_code == 200
    assert response.json()["verdict"] == "UNKNOWN"


def test_remote_auth_failure_maps_to_bad_gateway(make_service, fake_remote):
    remote = fake_remote({"deep": AuthError("bad token", status_code=401)})
    client = TestClient(api_app.create_app(service=make_service(remote=remote)))
    response = client.post("/scan", json={"url": "https://example.com", "tier": "deep"})
    assert response.status_code == 502


def test_service_is_built_lazily(monkeypatch, make_service):
    built = []

    def _fake_create_service():
        built.append(True)
        return make_service(), {"profile": "lazy"}

    monkeypatch.setattr(api_app, "create_service", _fake_create_service)
    client = TestClient(api_app.create_app())
    assert built == []
    client.post("/scan", json={"url": "https://www.google.com"})
    client.post("/scan", json={"url": "https://www.google.com"})
    assert built == [True]
