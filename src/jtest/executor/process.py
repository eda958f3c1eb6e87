from __future__ import annotations

import os
import signal
import subprocess
import threading
import time
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import structlog

from ..core.errors import ConfigurationError
from ..core.models import ProcessResult
from .rlimits import make_preexec

log = structlog.get_logger(__name__)

CHUNK = 64 * 1024
POLL_S = 0.02


def _kill_group(pgid: int) -> None:
    try:
        os.killpg(pgid, signal.SIGKILL)
    except (ProcessLookupError, PermissionError):
        # group already empty
        pass


class _Capture:
    """Bytes read from one pipe, capped at `limit`; the rest is drained and dropped."""

    def __init__(self, stream, limit: int, overflow: threading.Event):
        self.stream = stream
        self.limit = limit
        self.overflow = overflow
        self.buf = bytearray()
        self.lock = threading.Lock()
        self.thread = threading.Thread(target=self._reader, daemon=True)
        self.thread.start()

    def _reader(self) -> None:
        fd = self.stream.fileno()
        while True:
            try:
                chunk = os.read(fd, CHUNK)
            except OSError:
                break
            if not chunk:
                break
            with self.lock:
                room = self.limit - len(self.buf)
                if room > 0:
                    self.buf += chunk[:room]
                if len(chunk) > room:
                    self.overflow.set()

    def text(self) -> str:
        with self.lock:
            data = bytes(self.buf)
        return data.decode("utf-8", errors="replace")


def _feed(stream, data: bytes) -> None:
    try:
        if data:
            stream.write(data)
    except (BrokenPipeError, OSError):
        # child exited or closed stdin without reading it all
        pass
    finally:
        try:
            stream.close()
        except OSError:
            pass


class ProcessRunner:
    """
    Run one program to completion or until its wall-clock budget runs out.

    The child leads its own session, so on timeout the whole process group
    (the program and anything it spawned) gets SIGKILL. stdout and stderr are
    read in chunks and each is capped at `max_output_bytes`; going over the cap
    kills the group as well. The group is swept again after every run so
    nothing outlives the call.
    """

    def __init__(self, limits: Optional[Dict[str, Any]] = None, kill_grace_s: float = 2.0,
                 env: Optional[Dict[str, str]] = None, max_output_bytes: int = 1024 * 1024):
        self.limits = limits or {}
        self.kill_grace_s = kill_grace_s
        self.env = env
        self.max_output_bytes = max_output_bytes

    def run(
        self,
        argv: Sequence[str],
        *,
        cwd: Path,
        stdin: Optional[str] = "",
        timeout_ms: int,
    ) -> ProcessResult:
        cmd: List[str] = [str(a) for a in argv]
        start = time.monotonic()
        try:
            proc = subprocess.Popen(
                cmd,
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                bufsize=0,
                cwd=str(cwd),
                env={**os.environ, **(self.env or {})},
                start_new_session=True,
                preexec_fn=make_preexec(self.limits),
            )
        except FileNotFoundError as e:
            raise ConfigurationError(f"Executable not found: {cmd[0]}") from e
        except PermissionError as e:
            raise ConfigurationError(f"Executable not runnable: {cmd[0]}: {e}") from e

        overflow = threading.Event()
        out = _Capture(proc.stdout, self.max_output_bytes, overflow)
        err = _Capture(proc.stderr, self.max_output_bytes, overflow)
        # stdin goes through its own thread so a child blocked on a full stdout pipe cannot deadlock us
        threading.Thread(target=_feed, args=(proc.stdin, (stdin or "").encode("utf-8")), daemon=True).start()

        deadline = start + timeout_ms / 1000.0
        timed_out = truncated = False
        try:
            while True:
                if overflow.is_set():
                    truncated = True
                    break
                if proc.poll() is not None and not out.thread.is_alive() and not err.thread.is_alive():
                    break
                if time.monotonic() >= deadline:
                    timed_out = True
                    break
                overflow.wait(POLL_S)

            if timed_out or truncated:
                _kill_group(proc.pid)
                try:
                    proc.wait(timeout=self.kill_grace_s)
                except subprocess.TimeoutExpired:
                    proc.kill()
                    proc.wait()
                # a descendant that left the group may still hold a pipe; keep what was read so far
                grace_end = time.monotonic() + self.kill_grace_s
                for cap in (out, err):
                    cap.thread.join(max(0.0, grace_end - time.monotonic()))
        finally:
            _kill_group(proc.pid)

        duration_ms = int((time.monotonic() - start) * 1000)
        rc = proc.returncode if proc.returncode is not None else -signal.SIGKILL
        stdout, stderr = out.text(), err.text()
        for cap in (out, err):
            # a reader still blocked in os.read keeps its fd until the holder exits
            if not cap.thread.is_alive():
                cap.stream.close()
        if timed_out:
            stderr += f"\n[timeout] exceeded {timeout_ms}ms"
            log.info("process_timed_out", argv0=cmd[0], timeout_ms=timeout_ms, duration_ms=duration_ms)
        if truncated:
            stderr += f"\n[output limit] exceeded {self.max_output_bytes} bytes"
            log.info("process_output_limit", argv0=cmd[0], max_output_bytes=self.max_output_bytes,
                     duration_ms=duration_ms)

        return ProcessResult(
            exit_status=rc,
            stdout=stdout,
            stderr=stderr,
            timed_out=timed_out,
            duration_ms=duration_ms,
            truncated=truncated,
        )
