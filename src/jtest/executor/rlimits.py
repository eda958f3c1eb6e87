from __future__ import annotations
import resource
from typing import Any, Callable, Dict, Optional


def apply_rlimits(cpu_seconds: Optional[int], memory_bytes: Optional[int], nofile: Optional[int]) -> None:
    """
    Per-process limits (CPU time, address space, open files), each optional.
    A limit the OS refuses is left at its default.
    """
    for res, value in (
        (resource.RLIMIT_CPU, cpu_seconds),
        (resource.RLIMIT_AS, memory_bytes),
        (resource.RLIMIT_NOFILE, nofile),
    ):
        if not value:
            continue
        try:
            resource.setrlimit(res, (int(value), int(value)))
        except (ValueError, OSError):
            pass


def make_preexec(limits: Dict[str, Any]) -> Optional[Callable[[], None]]:
    """preexec_fn for Popen, or None when no limit is configured."""
    cpu = limits.get("cpu_seconds")
    mem = limits.get("memory_bytes")
    nofile = limits.get("nofile")
    if not (cpu or mem or nofile):
        return None

    def _preexec():
        apply_rlimits(cpu, mem, nofile)

    return _preexec
