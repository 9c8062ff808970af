# tests/test_toolchain.py
from __future__ import annotations

import json
import os
import sys
import threading
import time
from pathlib import Path

import pytest

from sweepforge.config import ExecutorOptions
from sweepforge.errors import (
    BuildFailError,
    ExecuteFailError,
    NotFoundError,
    RetryLimitExceededError,
    TaskTimeoutError,
)
from sweepforge.executor import Executor, ProgressCounter, Toolchain

pytestmark = pytest.mark.skipif(sys.platform == "win32", reason="needs shebang scripts")


def _tool(tmp_path: Path, body: str, name: str = "waf") -> Path:
    """
    Write an executable Python script acting as the tool entrypoint.
    Returns the tool directory.
    """
    tool_dir = tmp_path / "tool"
    tool_dir.mkdir(exist_ok=True)
    script = tool_dir / name
    script.write_text(f"#!{sys.executable}\nimport os, sys, time\n{body}\n", encoding="utf-8")
    script.chmod(0o755)
    return tool_dir


def _is_gone(pid: int, wait: float = 5.0) -> bool:
    """True once `pid` has exited (a zombie counts as exited)."""
    deadline = time.monotonic() + wait
    while time.monotonic() < deadline:
        try:
            os.kill(pid, 0)
        except ProcessLookupError:
            return True
        try:
            state = Path(f"/proc/{pid}/stat").read_text().rsplit(")", 1)[1].split()[0]
        except (OSError, IndexError):
            return True
        if state == "Z":
            return True
        time.sleep(0.05)
    return False


# Runs the real work in a child of the entrypoint and records its pid.
SPAWNING_TOOL = """
import subprocess
if sys.argv[1:] == ["build"]:
    sys.exit(0)
if sys.argv[2] == "--x=0":
    # Fail only once the sibling task is up and running.
    sibling = os.path.join(os.getcwd(), "pid---x=1")
    deadline = time.monotonic() + 10
    while not os.path.exists(sibling) and time.monotonic() < deadline:
        time.sleep(0.01)
    sys.exit(1)
sleeper = subprocess.Popen(["sleep", "30"])
open(os.path.join(os.getcwd(), "pid-" + sys.argv[2]), "w").write(str(sleeper.pid))
sleeper.wait()
"""


ECHO_TOOL = """
import json
if sys.argv[1:] == ["build"]:
    sys.exit(0)
print(json.dumps({"argv": sys.argv[1:], "cwd": os.getcwd()}))
"""


# -------------------------
# Locating the entrypoint
# -------------------------


def test_locate_resolves_tool_directory(tmp_path: Path) -> None:
    tool_dir = _tool(tmp_path, ECHO_TOOL)

    tc = Toolchain.locate(tool_dir / ".." / "tool", "waf")

    assert tc.root == tool_dir.resolve()
    assert tc.script == tool_dir.resolve() / "waf"


def test_locate_missing_entrypoint_raises(tmp_path: Path) -> None:
    with pytest.raises(NotFoundError):
        Toolchain.locate(tmp_path, "waf")


def test_locate_entrypoint_directory_raises(tmp_path: Path) -> None:
    (tmp_path / "waf").mkdir()
    with pytest.raises(NotFoundError):
        Toolchain.locate(tmp_path, "waf")


# -------------------------
# Build gate
# -------------------------


def test_build_success(tmp_path: Path) -> None:
    marker = tmp_path / "built"
    tool_dir = _tool(tmp_path, f"open(r'{marker}', 'w').write(' '.join(sys.argv[1:]))")

    Toolchain.locate(tool_dir, "waf").build()

    assert marker.read_text() == "build"


def test_build_failure_carries_stderr(tmp_path: Path) -> None:
    tool_dir = _tool(tmp_path, "sys.stderr.write('missing header'); sys.exit(3)")

    with pytest.raises(BuildFailError) as info:
        Toolchain.locate(tool_dir, "waf").build()

    assert info.value.returncode == 3
    assert "missing header" in info.value.stderr


def test_build_spawn_failure_raises_execute_fail(tmp_path: Path) -> None:
    tool_dir = _tool(tmp_path, ECHO_TOOL)
    (tool_dir / "waf").chmod(0o644)

    with pytest.raises(ExecuteFailError):
        Toolchain.locate(tool_dir, "waf").build()


# -------------------------
# Invocations
# -------------------------


def test_run_passes_command_and_working_dir(tmp_path: Path) -> None:
    tool_dir = _tool(tmp_path, ECHO_TOOL)
    tc = Toolchain.locate(tool_dir, "waf")

    invocation = tc.run("prog --x=1 --label='a b'")

    assert invocation.succeeded
    payload = json.loads(invocation.stdout)
    assert payload["argv"] == ["--run", "prog --x=1 --label='a b'"]
    assert Path(payload["cwd"]) == tool_dir.resolve()


def test_run_reports_failure_status(tmp_path: Path) -> None:
    tool_dir = _tool(tmp_path, "sys.stderr.write('bad'); sys.exit(4)")

    invocation = Toolchain.locate(tool_dir, "waf").run("x")

    assert invocation.returncode == 4
    assert invocation.stderr == b"bad"
    assert not invocation.succeeded


def test_run_spawn_failure_raises_execute_fail(tmp_path: Path) -> None:
    tool_dir = _tool(tmp_path, ECHO_TOOL)
    (tool_dir / "waf").chmod(0o644)

    with pytest.raises(ExecuteFailError):
        Toolchain.locate(tool_dir, "waf").run("x")


def test_run_timeout_kills_process(tmp_path: Path) -> None:
    tool_dir = _tool(tmp_path, "time.sleep(30)")
    tc = Toolchain.locate(tool_dir, "waf", timeout=0.3)

    start = time.monotonic()
    with pytest.raises(TaskTimeoutError) as info:
        tc.run("slow")

    assert time.monotonic() - start < 10
    assert info.value.timeout == 0.3


def test_close_kills_running_invocations(tmp_path: Path) -> None:
    tool_dir = _tool(tmp_path, "time.sleep(30)")
    tc = Toolchain.locate(tool_dir, "waf")
    results = []

    worker = threading.Thread(target=lambda: results.append(tc.run("slow")))
    worker.start()
    deadline = time.monotonic() + 10
    while not tc._running and time.monotonic() < deadline:
        time.sleep(0.01)

    tc.close()
    worker.join(timeout=10)

    assert not worker.is_alive()
    assert results[0].returncode != 0


def _wait_for(path: Path, wait: float = 10.0) -> int:
    deadline = time.monotonic() + wait
    while time.monotonic() < deadline:
        if path.exists() and path.read_text():
            return int(path.read_text())
        time.sleep(0.01)
    raise AssertionError(f"{path} never appeared")


def test_timeout_kills_processes_started_by_the_tool(tmp_path: Path) -> None:
    tool_dir = _tool(tmp_path, SPAWNING_TOOL)
    tc = Toolchain.locate(tool_dir, "waf", timeout=2.0)

    start = time.monotonic()
    with pytest.raises(TaskTimeoutError):
        tc.run("--x=1")

    assert time.monotonic() - start < 8
    assert _is_gone(_wait_for(tool_dir / "pid---x=1"))


def test_close_kills_processes_started_by_the_tool(tmp_path: Path) -> None:
    tool_dir = _tool(tmp_path, SPAWNING_TOOL)
    tc = Toolchain.locate(tool_dir, "waf")
    results = []

    worker = threading.Thread(target=lambda: results.append(tc.run("--x=1")))
    worker.start()
    sleeper = _wait_for(tool_dir / "pid---x=1")

    start = time.monotonic()
    tc.close()
    worker.join(timeout=10)

    assert not worker.is_alive()
    assert time.monotonic() - start < 5
    assert results[0].returncode != 0
    assert _is_gone(sleeper)


def test_open_accepts_invocations_again(tmp_path: Path) -> None:
    tool_dir = _tool(tmp_path, ECHO_TOOL)
    tc = Toolchain.locate(tool_dir, "waf")
    tc.close()
    tc.open()

    invocation = tc.run("x")

    assert invocation.succeeded


def test_run_after_close_is_killed(tmp_path: Path) -> None:
    tool_dir = _tool(tmp_path, "time.sleep(30)")
    tc = Toolchain.locate(tool_dir, "waf")
    tc.close()

    start = time.monotonic()
    invocation = tc.run("slow")

    assert time.monotonic() - start < 10
    assert invocation.returncode != 0


# -------------------------
# End to end with a real tool
# -------------------------


FLAKY_TOOL = """
if sys.argv[1:] == ["build"]:
    sys.exit(0)
command = sys.argv[2]
counter = os.path.join(os.getcwd(), "attempts-" + command.replace(" ", "_").replace("=", "-"))
seen = int(open(counter).read()) if os.path.exists(counter) else 0
open(counter, "w").write(str(seen + 1))
if "--policy=2" in command and seen == 0:
    sys.exit(1)
print("done", command)
"""


def test_sweep_end_to_end(tmp_path: Path) -> None:
    tool_dir = _tool(tmp_path, FLAKY_TOOL)
    cfg = tmp_path / "config.yaml"
    cfg.write_text(
        "groupA:\n  sim_time: 100\n  app: x\n  policy: [1, 2, 3]\n"
        "groupB:\n  sim_time: 5\n",
        encoding="utf-8",
    )
    progress = ProgressCounter()

    ex = Executor.from_options(
        ExecutorOptions(config_path=cfg, tool_path=tool_dir, task_concurrent=2, retry_limit=2),
        progress=progress,
    )
    results = ex.execute()

    assert sorted(t.param["policy"] for t in results["groupA"]) == [1, 2, 3]
    assert [t.stdout for t in results["groupB"]] == ["done --sim-time=5\n"]
    retried = [t for t in results["groupA"] if t.param["policy"] == 2]
    assert retried[0].attempts == 2
    assert progress.completed_count == 4


def test_sweep_end_to_end_retry_exhausted(tmp_path: Path) -> None:
    tool_dir = _tool(tmp_path, FLAKY_TOOL)
    cfg = tmp_path / "config.toml"
    cfg.write_text("[groupA]\npolicy = [1, 2, 3]\n", encoding="utf-8")

    ex = Executor.from_options(
        ExecutorOptions(config_path=cfg, tool_path=tool_dir, task_concurrent=1, retry_limit=1)
    )

    with pytest.raises(RetryLimitExceededError):
        ex.execute()

    assert len(ex.results["groupA"]) <= 2


def test_abort_returns_promptly_and_kills_sibling_tasks(tmp_path: Path) -> None:
    tool_dir = _tool(tmp_path, SPAWNING_TOOL)
    cfg = tmp_path / "config.toml"
    cfg.write_text("[g]\nx = [0, 1]\n", encoding="utf-8")
    ex = Executor.from_options(
        ExecutorOptions(config_path=cfg, tool_path=tool_dir, task_concurrent=2, retry_limit=1)
    )

    start = time.monotonic()
    with pytest.raises(RetryLimitExceededError):
        ex.execute()

    assert time.monotonic() - start < 10
    assert _is_gone(_wait_for(tool_dir / "pid---x=1"))
    assert ex.results["g"] == ()


def test_executor_recovers_after_abort(tmp_path: Path) -> None:
    tool_dir = _tool(tmp_path, FLAKY_TOOL)
    cfg = tmp_path / "config.toml"
    cfg.write_text("[g]\npolicy = [1, 2, 3]\n", encoding="utf-8")
    ex = Executor.from_options(
        ExecutorOptions(config_path=cfg, tool_path=tool_dir, task_concurrent=1, retry_limit=1)
    )

    with pytest.raises(RetryLimitExceededError):
        ex.execute()

    results = ex.execute()

    assert sorted(t.param["policy"] for t in results["g"]) == [1, 2, 3]
    assert all(t.returncode == 0 for t in results["g"])
