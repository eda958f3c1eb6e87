from __future__ import annotations

import os
import re
from pathlib import Path
from typing import List, Optional

import structlog

from ..core.errors import ConfigurationError, ErrorKind, GradingError, MissingSubmission
from ..core.models import LauncherCounts, UnitReport
from ..core.paths import latest_submission, submission_path
from ..core.utils import new_run_id
from ..executor.base import Toolchain
from ..executor.process import ProcessRunner
from ..executor.toolchain import JavaToolchain
from ..executor.workspace import Workspace
from ..settings import Settings, get_settings

log = structlog.get_logger(__name__)

# console launcher summary block, e.g. "[         3 tests successful      ]"
_COUNT_LINE = re.compile(r"^\[\s*(\d+)\s+tests?\s+(found|skipped|started|aborted|successful|failed)\s*\]", re.M)


def parse_counts(output: str) -> Optional[LauncherCounts]:
    """Best-effort read of the launcher's summary; the raw text stays authoritative."""
    hits = _COUNT_LINE.findall(output or "")
    if not hits:
        return None
    counts = LauncherCounts()
    for n, what in hits:
        setattr(counts, what, int(n))
    return counts


class UnitSuiteRunner:
    """
    Compile the submission (as Main.java) together with the instructor's JUnit
    sources inside a private workspace, then let the console launcher discover
    tests in that workspace's class output only.
    """

    def __init__(self, settings: Settings, runner: Optional[ProcessRunner] = None,
                 toolchain: Optional[Toolchain] = None):
        self.settings = settings
        self.runner = runner or ProcessRunner(limits=settings.limits, kill_grace_s=settings.kill_grace_s,
                                             max_output_bytes=settings.max_output_bytes)
        self.toolchain = toolchain or JavaToolchain(
            self.runner,
            javac_bin=settings.javac_bin,
            java_bin=settings.java_bin,
            compile_timeout_s=settings.compile_timeout_s,
        )

    # ---------- configuration checks ----------

    def launcher(self) -> Path:
        jar = self.settings.launcher_jar.resolve()
        if not jar.is_file():
            raise ConfigurationError(f"Launcher not found: {jar}")
        return jar

    def test_sources(self) -> List[Path]:
        tests_dir = self.settings.tests_dir.resolve()
        sources = []
        if tests_dir.is_dir():
            sources = sorted(p for p in tests_dir.iterdir()
                             if p.is_file() and p.name.lower().endswith(".java"))
        if not sources:
            raise ConfigurationError(f"No test sources found in {tests_dir}")
        return sources

    def launcher_command(self, jar: Path, classes_dir: Path) -> List[str]:
        return [
            self.settings.java_bin,
            "-jar", str(jar),
            "execute",
            "--class-path", str(classes_dir),
            "--scan-class-path", str(classes_dir),
            "--details", "tree",
            "--details-theme", "ascii",
            "--fail-if-no-tests",
        ]

    # ---------- pipeline ----------

    def run(self, relative_path: str) -> UnitReport:
        blog = log.bind(run_id=new_run_id(), relative_path=relative_path)
        try:
            submission = submission_path(self.settings.upload_root, relative_path)
            sources = self.test_sources()
            jar = self.launcher()
            return self._grade(submission, sources, jar, blog)
        except GradingError as e:
            blog.info("unit_failed", kind=e.kind.value, error=e.detail[:200])
            return UnitReport(success=False, output=e.detail, error_kind=e.kind.value)

    def run_latest(self, assignment_id: str, student_id: Optional[str] = None) -> UnitReport:
        student_id = student_id or self.settings.default_student_id
        try:
            latest = latest_submission(self.settings.upload_root, assignment_id, student_id,
                                       ext=self.settings.submission_ext)
        except GradingError as e:
            return UnitReport(success=False, output=e.detail, error_kind=e.kind.value)
        rel = os.path.relpath(latest, self.settings.upload_root.resolve())
        report = self.run(rel)
        report.used = rel
        return report

    def _grade(self, submission: Path, sources: List[Path], jar: Path, blog) -> UnitReport:
        with Workspace.create(self.settings.workspace_dir, prefix="jtest-run-") as ws:
            try:
                entry = ws.stage(submission, self.toolchain.entry_source)
            except OSError as e:
                raise MissingSubmission(f"Cannot read submission {submission.name}: {e.strerror or e}") from e
            try:
                staged = [ws.stage(src, f"tests/{src.name}") for src in sources]
            except OSError as e:
                raise ConfigurationError(f"Cannot copy test sources: {e}") from e

            compiled = self.toolchain.compile(ws, [entry, *staged], [jar])
            if not compiled.ok:
                blog.info("unit_compile_failed")
                return UnitReport(success=False, output=compiled.diagnostics,
                                  error_kind=ErrorKind.COMPILE_ERROR.value)
            if not compiled.artifacts:
                raise ConfigurationError(f"No .class files produced in {compiled.classes_dir}")

            res = self.runner.run(
                self.launcher_command(jar, compiled.classes_dir),
                cwd=ws.path,
                stdin="",
                timeout_ms=self.settings.unit_timeout_s * 1000,
            )

        ok = res.exit_status == 0 and not (res.timed_out or res.truncated)
        if ok:
            output = res.stdout
        else:
            # launcher prints its tree (with failures) on stdout; stderr only when it could not start
            output = res.stdout or res.stderr
            if res.timed_out:
                output = f"{output}\n[timeout] launcher exceeded {self.settings.unit_timeout_s}s".lstrip()
            elif res.truncated:
                output = f"{output}\n[output limit] launcher exceeded {self.settings.max_output_bytes} bytes".lstrip()
        blog.info("unit_finished", success=ok, rc=res.exit_status, timed_out=res.timed_out)
        return UnitReport(success=ok, output=output, counts=parse_counts(res.stdout))


def run_unit_suite(relative_path: str, settings: Optional[Settings] = None) -> dict:
    return UnitSuiteRunner(settings or get_settings()).run(relative_path).to_dict()


def run_unit_suite_latest(assignment_id: str, student_id: Optional[str] = None,
                          settings: Optional[Settings] = None) -> dict:
    return UnitSuiteRunner(settings or get_settings()).run_latest(assignment_id, student_id).to_dict()
