import json
import os
import sys
import time

import pytest

from jtest.core.models import CompileResult
from jtest.executor.toolchain import JavaToolchain
from jtest.executor.workspace import Workspace

RECORDING_JAVAC = """\
import json, os, sys
here = os.path.dirname(os.path.abspath(__file__))
with open(os.path.join(here, "argv.json"), "w") as f:
    json.dump(sys.argv[1:], f)
out = sys.argv[sys.argv.index("-d") + 1]
os.makedirs(os.path.join(out, "pkg"), exist_ok=True)
for rel in ("Main.class", os.path.join("pkg", "Helper.class")):
    with open(os.path.join(out, rel), "wb") as f:
        f.write(b"\\xca\\xfe\\xba\\xbe")
"""

FAILING_JAVAC = """\
import sys
sys.stderr.write("Main.java:3: error: ';' expected\\n1 error\\n")
sys.exit(1)
"""

SLEEPING_JAVAC = """\
import time
time.sleep(30)
"""


def _stub(tmp_path, name, body):
    path = tmp_path / "bin" / name
    path.parent.mkdir(exist_ok=True)
    script = path.with_suffix(".py")
    script.write_text(body)
    path.write_text(f'#!/bin/sh\nexec "{sys.executable}" "{script}" "$@"\n')
    os.chmod(path, 0o755)
    return path


@pytest.fixture
def ws(settings):
    with Workspace.create(settings.workspace_dir) as w:
        yield w


def test_compile_argv_and_artifacts(runner, ws, tmp_path):
    javac = _stub(tmp_path, "javac", RECORDING_JAVAC)
    tc = JavaToolchain(runner, javac_bin=str(javac), compile_timeout_s=10)
    main = ws.path / "Main.java"
    main.write_text("class Main {}")
    jar = tmp_path / "launcher.jar"
    extra = tmp_path / "lib"

    res = tc.compile(ws, [main], [jar, extra])

    assert res.ok and not res.timed_out
    assert res.classes_dir == ws.classes_dir
    assert res.artifacts == sorted([ws.classes_dir / "Main.class", ws.classes_dir / "pkg" / "Helper.class"])
    argv = json.loads((javac.parent / "argv.json").read_text())
    assert argv == [
        "-encoding", "UTF-8",
        "-d", str(ws.classes_dir),
        "-cp", os.pathsep.join([str(jar), str(extra)]),
        str(main),
    ]


def test_compile_without_extras_has_no_classpath(runner, ws, tmp_path):
    javac = _stub(tmp_path, "javac", RECORDING_JAVAC)
    tc = JavaToolchain(runner, javac_bin=str(javac))
    main = ws.path / "Main.java"
    main.write_text("class Main {}")

    assert tc.compile(ws, [main]).ok
    argv = json.loads((javac.parent / "argv.json").read_text())
    assert "-cp" not in argv


def test_compile_failure_returns_diagnostics(runner, ws, tmp_path):
    javac = _stub(tmp_path, "javac", FAILING_JAVAC)
    tc = JavaToolchain(runner, javac_bin=str(javac))
    main = ws.path / "Main.java"
    main.write_text("class Main { int x }")

    res = tc.compile(ws, [main])

    assert res.ok is False
    assert not res.timed_out
    assert "';' expected" in res.diagnostics
    assert res.artifacts == []


def test_compile_timeout(runner, ws, tmp_path):
    javac = _stub(tmp_path, "javac", SLEEPING_JAVAC)
    tc = JavaToolchain(runner, javac_bin=str(javac), compile_timeout_s=1)
    main = ws.path / "Main.java"
    main.write_text("class Main {}")

    start = time.monotonic()
    res = tc.compile(ws, [main])
    elapsed = time.monotonic() - start

    assert res.ok is False
    assert res.timed_out is True
    assert res.diagnostics.startswith("Compilation exceeded 1s")
    assert elapsed < 1 + runner.kill_grace_s + 2.0


def test_run_command(runner, ws):
    tc = JavaToolchain(runner, java_bin="/opt/jdk/bin/java")
    compiled = CompileResult(ok=True, diagnostics="", classes_dir=ws.classes_dir)
    assert tc.run_command(ws, compiled) == ["/opt/jdk/bin/java", "-cp", str(ws.classes_dir), "Main"]
