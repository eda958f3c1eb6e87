from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


# ---------- suite definitions (tests.json, camelCase on disk) ----------

class Normalize(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    trim: bool = False
    collapse_ws: bool = Field(False, alias="collapseWs")


class TestCase(BaseModel):
    __test__ = False  # not a pytest class

    model_config = ConfigDict(populate_by_name=True)

    name: str
    stdin: str = ""
    expected: str = ""
    timeout_ms: Optional[int] = Field(None, alias="timeoutMs", gt=0)
    normalize: Normalize = Field(default_factory=Normalize)


class TestSuite(BaseModel):
    __test__ = False

    model_config = ConfigDict(populate_by_name=True)

    assignment_id: str = Field(alias="assignmentId")
    version: int = 1  # stored, never checked
    cases: List[TestCase] = Field(default_factory=list)


# ---------- execution results ----------

@dataclass
class ProcessResult:
    exit_status: int
    stdout: str
    stderr: str
    timed_out: bool
    duration_ms: int
    truncated: bool = False  # output cap hit, group killed


@dataclass
class CompileResult:
    ok: bool
    diagnostics: str
    classes_dir: Path
    artifacts: List[Path] = field(default_factory=list)
    timed_out: bool = False


class CaseOutcome(str, Enum):
    PASSED = "passed"
    WRONG_ANSWER = "wrong_answer"
    CRASHED = "crashed"      # non-zero exit or killed by a signal
    TIMED_OUT = "timed_out"
    OUTPUT_LIMIT = "output_limit"


@dataclass
class RunResult:
    name: str
    passed: bool
    exit_status: int
    stdout: str
    stderr: str
    expected: str
    outcome: CaseOutcome
    timed_out: bool = False
    duration_ms: int = 0
    truncated: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "pass": self.passed,
            "exitStatus": self.exit_status,
            "stdout": self.stdout,
            "stderr": self.stderr,
            "expected": self.expected,
            "outcome": self.outcome.value,
            "timedOut": self.timed_out,
            "durationMs": self.duration_ms,
            "truncated": self.truncated,
        }


@dataclass
class Summary:
    assignment_id: str
    student_id: str
    total: int
    passed: int
    failed: int

    @classmethod
    def of(cls, assignment_id: str, student_id: str, results: List[RunResult]) -> "Summary":
        passed = sum(1 for r in results if r.passed)
        return cls(
            assignment_id=assignment_id,
            student_id=student_id,
            total=len(results),
            passed=passed,
            failed=len(results) - passed,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "assignmentId": self.assignment_id,
            "studentId": self.student_id,
            "total": self.total,
            "passed": self.passed,
            "failed": self.failed,
        }


@dataclass
class FunctionalReport:
    success: bool
    summary: Optional[Summary] = None
    results: List[RunResult] = field(default_factory=list)
    error: Optional[str] = None
    error_kind: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        if not self.success:
            return {"success": False, "error": self.error, "errorKind": self.error_kind}
        return {
            "success": True,
            "summary": self.summary.to_dict() if self.summary else None,
            "results": [r.to_dict() for r in self.results],
        }


@dataclass
class LauncherCounts:
    found: int = 0
    skipped: int = 0
    started: int = 0
    aborted: int = 0
    successful: int = 0
    failed: int = 0


@dataclass
class UnitReport:
    success: bool
    output: str
    used: Optional[str] = None
    counts: Optional[LauncherCounts] = None
    error_kind: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"success": self.success, "output": self.output}
        if self.used is not None:
            out["used"] = self.used
        if self.counts is not None:
            out["counts"] = self.counts.__dict__
        if self.error_kind is not None:
            out["errorKind"] = self.error_kind
        return out
