"""FastAPI entrypoint for the URL scan service."""

from __future__ import annotations

from fastapi import FastAPI, HTTPException

from phish_url_detection_engine.core.errors import AuthError
from phish_url_detection_engine.orchestrator.build import create_service
from phish_url_detection_engine.orchestrator.pipeline import ScanService


def create_app(
    service: ScanService | None = None,
    runtime: dict[str, object] | None = None,
) -> FastAPI:
    app = FastAPI(title="phish-url-detection-engine")
    state: dict[str, object] = {"service": service, "runtime": runtime or {}}

    def _service() -> ScanService:
        current = state["service"]
        if not isinstance(current, ScanService):
            current, state["runtime"] = create_service()
            state["service"] = current
        return current

    @app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.post("/scan")
    def scan(payload: dict[str, object]) -> dict[str, object]:
        url = str(payload.get("url", "") or "")
        tier = payload.get("tier")
        requested = str(tier) if isinstance(tier, str) and tier.strip() else None
        scanner = _service()
        try:
            result = scanner.scan(url, requested)
        except AuthError as exc:
            raise HTTPException(status_code=502, detail=f"remote scanner rejected credentials: {exc}") from exc
        body = result.model_dump(mode="json")
        body["runtime"] = state["runtime"]
        return body

    return app


app = create_app()
