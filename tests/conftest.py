from __future__ import annotations

import json
import os
import shutil
import sys
from pathlib import Path
from typing import List, Sequence

import pytest

from jtest.core.models import CompileResult
from jtest.executor.base import Toolchain
from jtest.executor.process import ProcessRunner
from jtest.executor.workspace import Workspace
from jtest.settings import Settings

PROGRAMS = Path(__file__).parent / "programs"


class PyToolchain(Toolchain):
    """
    Stand-in for javac/java: "compiles" by checking for a marker and runs the
    staged Main.java with the current interpreter.
    """

    def __init__(self, runner: ProcessRunner, produce_classes: bool = True):
        self.runner = runner
        self.produce_classes = produce_classes
        self.compiled: List[List[Path]] = []

    def compile(self, ws: Workspace, sources: Sequence[Path], classpath_extras: Sequence[Path] = ()) -> CompileResult:
        self.compiled.append(list(sources))
        out_dir = ws.classes_dir
        out_dir.mkdir(parents=True, exist_ok=True)
        for src in sources:
            if "COMPILE_ERROR" in src.read_text(encoding="utf-8"):
                return CompileResult(ok=False, diagnostics=f"{src.name}:1: error: ';' expected",
                                     classes_dir=out_dir)
        artifacts = []
        if self.produce_classes:
            for src in sources:
                cls = out_dir / (src.stem + ".class")
                cls.write_bytes(b"\xca\xfe\xba\xbe")
                artifacts.append(cls)
        return CompileResult(ok=True, diagnostics="", classes_dir=out_dir, artifacts=artifacts)

    def run_command(self, ws: Workspace, compiled: CompileResult) -> List[str]:
        return [sys.executable, str(ws.path / self.entry_source)]


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    s = Settings(
        upload_root=tmp_path / "uploads",
        suites_root=tmp_path / "functional",
        tests_dir=tmp_path / "junit" / "test",
        launcher_jar=tmp_path / "junit" / "launcher.jar",
        workspace_dir=tmp_path / "ws",
        default_timeout_ms=3000,
        compile_timeout_s=10,
        unit_timeout_s=10,
        kill_grace_s=1.0,
        max_output_bytes=256 * 1024,
    )
    for d in (s.upload_root, s.suites_root, s.tests_dir.parent):
        d.mkdir(parents=True, exist_ok=True)
    return s


@pytest.fixture
def runner(settings: Settings) -> ProcessRunner:
    return ProcessRunner(kill_grace_s=settings.kill_grace_s, max_output_bytes=settings.max_output_bytes)


@pytest.fixture
def toolchain(runner: ProcessRunner) -> PyToolchain:
    return PyToolchain(runner)


@pytest.fixture
def write_suite(settings: Settings):
    def _write(assignment_id: str, cases: list, version: int = 1) -> Path:
        p = settings.suites_root / assignment_id / "tests.json"
        p.parent.mkdir(parents=True, exist_ok=True)
        p.write_text(json.dumps({"assignmentId": assignment_id, "version": version, "cases": cases}, indent=2))
        return p
    return _write


@pytest.fixture
def upload(settings: Settings):
    def _upload(assignment_id: str, student_id: str, program: str, filename: str = "Main.java",
                mtime: float | None = None) -> Path:
        dest = settings.upload_root / assignment_id / student_id / filename
        dest.parent.mkdir(parents=True, exist_ok=True)
        src = PROGRAMS / program
        if src.exists():
            shutil.copyfile(src, dest)
        else:
            dest.write_text(program, encoding="utf-8")
        if mtime is not None:
            os.utime(dest, (mtime, mtime))
        return dest
    return _upload


def leftover_workspaces(settings: Settings) -> list:
    ws = settings.workspace_dir
    return list(ws.iterdir()) if ws and ws.exists() else []


def pid_alive(pid: int) -> bool:
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        return True
    # an unreaped zombie still answers signal 0
    try:
        stat = Path(f"/proc/{pid}/stat").read_text()
    except OSError:
        return False
    return stat.rsplit(")", 1)[1].split()[0] != "Z"
