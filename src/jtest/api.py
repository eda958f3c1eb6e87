from __future__ import annotations

import os
from typing import Any, Dict, Optional

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, ConfigDict, Field

from .core.errors import ConfigurationError, MissingSuite, PathTraversal
from .logging import setup_logging
from .services.functional import FunctionalSuiteRunner
from .services.suite_store import SuiteStore
from .services.unit import UnitSuiteRunner
from .settings import get_settings

log = setup_logging()
settings = get_settings()

app = FastAPI(title="JTest grading API")

# CORS: comma separated allow list via JTEST_CORS_ORIGIN, otherwise "*" (dev)
_origins = [o.strip() for o in os.environ.get("JTEST_CORS_ORIGIN", "").split(",") if o.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=_origins or ["*"],
    allow_credentials=bool(_origins),
    allow_methods=["*"],
    allow_headers=["*"],
)

suites = SuiteStore(settings.suites_root)
functional = FunctionalSuiteRunner(settings, suites=suites)
unit = UnitSuiteRunner(settings, runner=functional.runner, toolchain=functional.toolchain)
log.info("api_ready", upload_root=str(settings.upload_root), suites_root=str(settings.suites_root),
         tests_dir=str(settings.tests_dir))


# --------- Schemas ---------
class FunctionalRunReq(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    assignment_id: str = Field(alias="assignmentId", min_length=1)
    student_id: Optional[str] = Field(None, alias="studentId")
    relative_path: Optional[str] = Field(None, alias="relativePath")


class ByPathReq(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    relative_path: str = Field(alias="relativePath", min_length=1)


class LatestReq(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    assignment_id: str = Field("default", alias="assignmentId")
    student_id: Optional[str] = Field(None, alias="studentId")


# --------- Endpoints ---------

@app.get("/api/health")
def health():
    return {"ok": True}


# sync endpoints: FastAPI runs each in the threadpool, one grading run per request
@app.post("/api/functional/run")
def run_functional(req: FunctionalRunReq):
    return functional.run(req.assignment_id, student_id=req.student_id,
                          relative_path=req.relative_path).to_dict()


@app.post("/api/test/by-path")
def run_unit_by_path(req: ByPathReq):
    return unit.run(req.relative_path).to_dict()


@app.post("/api/test/latest")
def run_unit_latest(req: LatestReq):
    report = unit.run_latest(req.assignment_id, req.student_id)
    if report.used is None and report.error_kind == "missing_submission":
        raise HTTPException(status_code=404, detail=report.output)
    return report.to_dict()


# --------- Instructor suites ---------

@app.get("/api/instructor/tests/{assignment_id}")
def get_suite(assignment_id: str):
    try:
        return suites.load_raw(assignment_id)
    except MissingSuite:
        raise HTTPException(status_code=404, detail="Not found")
    except (PathTraversal, ConfigurationError) as e:
        raise HTTPException(status_code=400, detail=e.detail)


@app.put("/api/instructor/tests/{assignment_id}")
def put_suite(assignment_id: str, body: Dict[str, Any]):
    try:
        suites.save(assignment_id, body)
    except PathTraversal as e:
        raise HTTPException(status_code=400, detail=e.detail)
    return {"ok": True}


@app.delete("/api/instructor/tests/{assignment_id}")
def delete_suite(assignment_id: str):
    try:
        suites.delete(assignment_id)
    except PathTraversal as e:
        raise HTTPException(status_code=400, detail=e.detail)
    return {"ok": True}
