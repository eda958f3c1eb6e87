from __future__ import annotations

from pathlib import Path
from typing import Optional

import structlog

from ..core.compare import case_passed
from ..core.errors import CompileError, GradingError, MissingSubmission
from ..core.models import (
    CaseOutcome,
    CompileResult,
    FunctionalReport,
    ProcessResult,
    RunResult,
    Summary,
    TestCase,
)
from ..core.paths import latest_submission, submission_path
from ..core.utils import new_run_id
from ..executor.base import Toolchain
from ..executor.process import ProcessRunner
from ..executor.toolchain import JavaToolchain
from ..executor.workspace import Workspace
from ..settings import Settings, get_settings
from .suite_store import SuiteStore

log = structlog.get_logger(__name__)


def _outcome(res: ProcessResult, passed: bool) -> CaseOutcome:
    if res.truncated:
        return CaseOutcome.OUTPUT_LIMIT
    if res.timed_out:
        return CaseOutcome.TIMED_OUT
    if res.exit_status != 0:
        return CaseOutcome.CRASHED
    return CaseOutcome.PASSED if passed else CaseOutcome.WRONG_ANSWER


class FunctionalSuiteRunner:
    """
    stdin/stdout grading of one submission against its assignment's suite:
      resolve -> workspace -> compile -> (run, compare) per case -> summary -> cleanup
    Anything that fails before compilation succeeds yields one suite-level failure.
    """

    def __init__(self, settings: Settings, runner: Optional[ProcessRunner] = None,
                 toolchain: Optional[Toolchain] = None, suites: Optional[SuiteStore] = None):
        self.settings = settings
        self.runner = runner or ProcessRunner(limits=settings.limits, kill_grace_s=settings.kill_grace_s,
                                             max_output_bytes=settings.max_output_bytes)
        self.toolchain = toolchain or JavaToolchain(
            self.runner,
            javac_bin=settings.javac_bin,
            java_bin=settings.java_bin,
            compile_timeout_s=settings.compile_timeout_s,
        )
        self.suites = suites or SuiteStore(settings.suites_root)

    def _locate(self, assignment_id: str, student_id: str, relative_path: Optional[str]) -> Path:
        if relative_path:
            return submission_path(self.settings.upload_root, relative_path)
        return latest_submission(self.settings.upload_root, assignment_id, student_id,
                                 ext=self.settings.submission_ext)

    def run(self, assignment_id: str, student_id: Optional[str] = None,
            relative_path: Optional[str] = None) -> FunctionalReport:
        student_id = student_id or self.settings.default_student_id
        blog = log.bind(run_id=new_run_id(), assignment_id=assignment_id, student_id=student_id)

        try:
            suite = self.suites.load(assignment_id)
            submission = self._locate(assignment_id, student_id, relative_path)

            with Workspace.create(self.settings.workspace_dir, prefix="jtest-fn-") as ws:
                try:
                    entry = ws.stage(submission, self.toolchain.entry_source)
                except OSError as e:
                    raise MissingSubmission(f"Cannot read submission {submission.name}: {e.strerror or e}") from e
                compiled = self.toolchain.compile(ws, [entry])
                if not compiled.ok:
                    return self._fail(blog, CompileError(compiled.diagnostics))

                results = [self._run_case(ws, compiled, case) for case in suite.cases]
        except GradingError as e:
            return self._fail(blog, e)

        summary = Summary.of(assignment_id, student_id, results)
        blog.info("functional_finished", total=summary.total, passed=summary.passed, failed=summary.failed)
        return FunctionalReport(success=True, summary=summary, results=results)

    @staticmethod
    def _fail(blog, e: GradingError) -> FunctionalReport:
        blog.info("functional_failed", kind=e.kind.value, error=e.detail[:200])
        return FunctionalReport(success=False, error=e.detail, error_kind=e.kind.value)

    def _run_case(self, ws: Workspace, compiled: CompileResult, case: TestCase) -> RunResult:
        timeout_ms = case.timeout_ms or self.settings.default_timeout_ms
        res = self.runner.run(
            self.toolchain.run_command(ws, compiled),
            cwd=ws.path,
            stdin=case.stdin,
            timeout_ms=timeout_ms,
        )
        passed = not (res.timed_out or res.truncated) and case_passed(
            res.exit_status, res.stdout, case.expected, case.normalize
        )
        outcome = _outcome(res, passed)
        if outcome is not CaseOutcome.PASSED:
            log.debug("case_failed", case=case.name, outcome=outcome.value, rc=res.exit_status)

        return RunResult(
            name=case.name,
            passed=passed,
            exit_status=res.exit_status,
            stdout=res.stdout,
            stderr=res.stderr,
            expected=case.expected,
            outcome=outcome,
            timed_out=res.timed_out,
            duration_ms=res.duration_ms,
            truncated=res.truncated,
        )


def run_functional_suite(assignment_id: str, student_id: Optional[str] = None,
                         relative_path: Optional[str] = None,
                         settings: Optional[Settings] = None) -> dict:
    return FunctionalSuiteRunner(settings or get_settings()).run(
        assignment_id, student_id=student_id, relative_path=relative_path
    ).to_dict()
