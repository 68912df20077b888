"""
Build-completion webhook server.

Receives build-completed notifications from the CI host, runs the lifecycle trigger in
the background, and serves the per-build query surface as JSON.
"""

from __future__ import annotations

import logging
import os
import time
from typing import Any, Dict, List, Optional, Union

from dateutil import parser as date_parser
from fastapi import BackgroundTasks, FastAPI, HTTPException, Query, Request
from pydantic import BaseModel, Field, field_validator

from doctor.core.models import BuildOutcome, Severity
from doctor.diagnostics.registry import provider_categories, provider_id_of, provider_priority
from doctor.dump import result_set_to_json_dict
from doctor.pipeline.trigger import AnalysisState, CompletedBuild
from doctor.runtime import DoctorRuntime, build_runtime

logger = logging.getLogger(__name__)


class BuildCompletedEvent(BaseModel):
    job_name: str
    build_number: int
    result: Optional[str] = None
    build_url: Optional[str] = None
    node_name: Optional[str] = None
    start_time: int = 0  # epoch millis; ISO-8601 strings are accepted
    duration_ms: int = 0
    pipeline: bool = False
    log: str = ""
    environment: Dict[str, str] = Field(default_factory=dict)
    scm_revision: Optional[str] = None
    branch: Optional[str] = None
    diagnostics_enabled: Optional[bool] = None

    @field_validator("start_time", mode="before")
    @classmethod
    def _parse_start_time(cls, v: Union[int, float, str, None]) -> int:
        if v is None or v == "":
            return 0
        if isinstance(v, str) and not v.strip().lstrip("-").isdigit():
            try:
                return int(date_parser.isoparse(v.strip()).timestamp() * 1000)
            except (ValueError, OverflowError) as e:
                raise ValueError(f"start_time is neither epoch millis nor ISO-8601: {v!r}") from e
        return int(v)

    def to_completed_build(self) -> CompletedBuild:
        return CompletedBuild(
            job_name=self.job_name,
            build_number=self.build_number,
            outcome=BuildOutcome.parse(self.result),
            build_url=self.build_url,
            diagnostics_enabled=self.diagnostics_enabled,
            handle=self,
        )


def _runtime(request: Request) -> DoctorRuntime:
    rt = getattr(request.app.state, "runtime", None)
    if rt is None:
        raise HTTPException(status_code=503, detail="Runtime not initialized")
    return rt


def create_app(runtime: Optional[DoctorRuntime] = None) -> FastAPI:
    """Build the app. Without `runtime`, one is composed from env config at startup."""
    app = FastAPI(title="Pipeline Doctor")
    app.state.runtime = runtime

    @app.on_event("startup")
    def _startup_build_runtime() -> None:
        if app.state.runtime is None:
            app.state.runtime = build_runtime()
            logger.info("Pipeline Doctor runtime ready (%d providers)", len(app.state.runtime.registry))

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        start_time = time.time()
        try:
            response = await call_next(request)
        except Exception as e:
            logger.exception("%s %s - ERROR after %.3fs: %s", request.method, request.url.path, time.time() - start_time, e)
            raise
        logger.debug(
            "%s %s - %d (%.3fs)", request.method, request.url.path, response.status_code, time.time() - start_time
        )
        return response

    @app.get("/healthz")
    def healthz() -> Dict[str, Any]:
        return {"ok": True}

    @app.get("/api/v1/providers")
    def list_providers(request: Request) -> Dict[str, Any]:
        rt = _runtime(request)
        items: List[Dict[str, Any]] = []
        for p in rt.registry.get_providers():
            pid = provider_id_of(p)
            items.append(
                {
                    "id": pid,
                    "name": getattr(p, "provider_name", "") or pid,
                    "priority": provider_priority(p),
                    "categories": sorted(provider_categories(p)),
                }
            )
        return {"providers": items, "categories": sorted(rt.registry.get_all_supported_categories())}

    @app.post("/api/v1/builds/completed", status_code=202)
    def build_completed(event: BuildCompletedEvent, request: Request, background: BackgroundTasks) -> Dict[str, Any]:
        rt = _runtime(request)
        build = event.to_completed_build()
        state = rt.trigger.state_of(build.job_name, build.build_number)
        if state != AnalysisState.NOT_ANALYZED:
            reason: Optional[str] = f"build already handled ({state.value})"
        else:
            reason = rt.trigger.skip_reason(build)
        if reason is None:
            background.add_task(rt.trigger.on_completed, build)
        logger.info("Received completion for %s (result=%s)", build.display_name, event.result)
        return {
            "job_name": build.job_name,
            "build_number": build.build_number,
            "accepted": reason is None,
            "skip_reason": reason,
        }

    @app.get("/api/v1/builds/{job_name:path}/{build_number}/diagnostics")
    def get_diagnostics(
        job_name: str,
        build_number: int,
        request: Request,
        severity: Optional[str] = Query(None, description="Only return results of this severity"),
    ) -> Dict[str, Any]:
        rt = _runtime(request)
        sev: Optional[Severity] = None
        if severity:
            try:
                sev = Severity.parse(severity)
            except ValueError:
                raise HTTPException(status_code=400, detail=f"Unknown severity: {severity}") from None

        state = rt.trigger.state_of(job_name, build_number)
        result_set = rt.store.get(job_name, build_number)
        if result_set is None:
            raise HTTPException(status_code=404, detail={"state": state.value, "message": "No diagnostic results"})
        body = result_set_to_json_dict(result_set, severity=sev)
        body["state"] = state.value
        return body

    return app


def run(host: str = "0.0.0.0", port: int = 8080, runtime: Optional[DoctorRuntime] = None) -> None:
    import uvicorn

    log_level = os.getenv("LOG_LEVEL", "info").upper()
    logging.basicConfig(
        level=getattr(logging, log_level, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    uvicorn_log_level = (
        log_level.lower() if log_level.lower() in ["critical", "error", "warning", "info", "debug", "trace"] else "info"
    )

    logger.info("Starting webhook server on %s:%d (log_level=%s)", host, port, log_level)
    uvicorn.run(create_app(runtime), host=host, port=port, log_level=uvicorn_log_level)
