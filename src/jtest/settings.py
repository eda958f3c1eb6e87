from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # ---- trusted roots ----
    upload_root: Path = Path("uploads")
    suites_root: Path = Path("functional")

    # ---- unit mode ----
    tests_dir: Path = Path("junit/test")
    launcher_jar: Path = Path("junit/junit-platform-console-standalone-1.10.2.jar")

    # ---- toolchain ----
    javac_bin: str = "javac"
    java_bin: str = "java"
    submission_ext: str = ".java"
    default_student_id: str = "anon"

    # ---- time budgets ----
    default_timeout_ms: int = 3000
    compile_timeout_s: int = 30
    unit_timeout_s: int = 120
    kill_grace_s: float = 2.0

    # per stream (stdout, stderr); over it the process group is killed
    max_output_bytes: int = 1024 * 1024

    # None -> system temp dir
    workspace_dir: Optional[Path] = None

    # optional rlimits for child processes: cpu_seconds / memory_bytes / nofile
    limits: Dict[str, Any] = {}

    # env prefix JTEST_*
    model_config = SettingsConfigDict(env_prefix="JTEST_", extra="ignore")


def _read_yaml(path: Path) -> Dict[str, Any]:
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except FileNotFoundError:
        data = {}
    return data if isinstance(data, dict) else {}


def load_settings(conf: Optional[Path] = None) -> Settings:
    """Env (JTEST_*) first, then conf/grader.yaml (or JTEST_CONF) on top."""
    s = Settings()

    conf = conf or Path(os.environ.get("JTEST_CONF", "conf/grader.yaml"))
    data = _read_yaml(conf)

    paths = data.get("paths") or {}
    if not isinstance(paths, dict):
        paths = {}
    toolchain = data.get("toolchain") or {}
    if not isinstance(toolchain, dict):
        toolchain = {}
    timeouts = data.get("timeouts") or {}
    if not isinstance(timeouts, dict):
        timeouts = {}
    limits = data.get("limits") or s.limits
    if not isinstance(limits, dict):
        limits = {}

    workspace_dir = paths.get("workspace_dir", s.workspace_dir)

    s = s.model_copy(
        update={
            "upload_root": Path(str(paths.get("upload_root", s.upload_root))),
            "suites_root": Path(str(paths.get("suites_root", s.suites_root))),
            "tests_dir": Path(str(paths.get("tests_dir", s.tests_dir))),
            "launcher_jar": Path(str(paths.get("launcher_jar", s.launcher_jar))),
            "workspace_dir": Path(str(workspace_dir)) if workspace_dir else None,
            "javac_bin": str(toolchain.get("javac", s.javac_bin)),
            "java_bin": str(toolchain.get("java", s.java_bin)),
            "submission_ext": str(toolchain.get("submission_ext", s.submission_ext)),
            "default_student_id": str(data.get("default_student_id", s.default_student_id)),
            "default_timeout_ms": int(timeouts.get("case_ms", s.default_timeout_ms)),
            "compile_timeout_s": int(timeouts.get("compile_s", s.compile_timeout_s)),
            "unit_timeout_s": int(timeouts.get("unit_s", s.unit_timeout_s)),
            "kill_grace_s": float(timeouts.get("kill_grace_s", s.kill_grace_s)),
            "max_output_bytes": int(data.get("max_output_bytes", s.max_output_bytes)),
            "limits": limits,
        }
    )
    return s


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return load_settings()
