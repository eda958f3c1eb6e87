from __future__ import annotations

import os
from pathlib import Path
from typing import List, Sequence

import structlog

from ..core.models import CompileResult
from .base import Toolchain
from .process import ProcessRunner
from .workspace import Workspace

log = structlog.get_logger(__name__)


class JavaToolchain(Toolchain):
    """javac into <workspace>/classes, java -cp <classes> Main to run."""

    def __init__(self, runner: ProcessRunner, *, javac_bin: str = "javac", java_bin: str = "java",
                 compile_timeout_s: int = 30):
        self.runner = runner
        self.javac_bin = javac_bin
        self.java_bin = java_bin
        self.compile_timeout_s = compile_timeout_s

    def compile(self, ws: Workspace, sources: Sequence[Path], classpath_extras: Sequence[Path] = ()) -> CompileResult:
        out_dir = ws.classes_dir
        out_dir.mkdir(parents=True, exist_ok=True)

        argv: List[str] = [self.javac_bin, "-encoding", "UTF-8", "-d", str(out_dir)]
        if classpath_extras:
            argv += ["-cp", os.pathsep.join(str(p) for p in classpath_extras)]
        argv += [str(s) for s in sources]

        res = self.runner.run(argv, cwd=ws.path, stdin="", timeout_ms=self.compile_timeout_s * 1000)
        if res.timed_out:
            log.warning("compile_timed_out", workspace=str(ws.path), timeout_s=self.compile_timeout_s)
            return CompileResult(
                ok=False,
                diagnostics=f"Compilation exceeded {self.compile_timeout_s}s\n{res.stderr}".rstrip(),
                classes_dir=out_dir,
                timed_out=True,
            )
        if res.exit_status != 0:
            # javac writes diagnostics to stderr; keep stdout too in case a wrapper script is used
            diagnostics = "\n".join(x for x in (res.stderr.strip(), res.stdout.strip()) if x)
            log.info("compile_failed", workspace=str(ws.path), rc=res.exit_status)
            return CompileResult(ok=False, diagnostics=diagnostics or f"javac exited with {res.exit_status}",
                                 classes_dir=out_dir)

        artifacts = sorted(out_dir.rglob("*.class"))
        return CompileResult(ok=True, diagnostics=res.stderr, classes_dir=out_dir, artifacts=artifacts)

    def run_command(self, ws: Workspace, compiled: CompileResult) -> List[str]:
        return [self.java_bin, "-cp", str(compiled.classes_dir), self.entry_class]
