"""!
@brief Tests for the subprocess wrapper.
"""

from __future__ import annotations

import pathlib
import subprocess
import sys

PROJECT_ROOT = pathlib.Path(__file__).resolve().parents[1]
SRC_PATH = PROJECT_ROOT / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

from cygwin_janitor import exec_utils  # noqa: E402


def test_dry_run_does_not_spawn(monkeypatch) -> None:
    """!
    @brief Dry-run returns a skipped success without calling subprocess.
    """

    def unexpected(*args, **kwargs):
        raise AssertionError("subprocess.run should not be called")

    monkeypatch.setattr(exec_utils.subprocess, "run", unexpected)

    result = exec_utils.run_command(["sc.exe", "delete", "sshd"], event="service_delete", dry_run=True)

    assert result.skipped and result.ok


def test_missing_executable_maps_to_127(monkeypatch) -> None:
    """!
    @brief A missing tool is a result, not an exception.
    """

    def missing(*args, **kwargs):
        raise FileNotFoundError(2, "No such file", "sc.exe")

    monkeypatch.setattr(exec_utils.subprocess, "run", missing)

    result = exec_utils.run_command(["sc.exe", "query", "sshd"], event="service_query")

    assert result.returncode == exec_utils.MISSING_EXECUTABLE
    assert not result.ok
    assert result.describe() == "sc.exe not available"


def test_timeout_is_reported(monkeypatch) -> None:
    """!
    @brief Timeouts set ``timed_out`` and describe themselves.
    """

    def slow(command, **kwargs):
        raise subprocess.TimeoutExpired(command, kwargs.get("timeout"))

    monkeypatch.setattr(exec_utils.subprocess, "run", slow)

    result = exec_utils.run_command(["sc.exe", "stop", "sshd"], event="service_stop", timeout=1)

    assert result.timed_out
    assert result.describe() == "timed out"


def test_completed_process_is_captured(monkeypatch) -> None:
    """!
    @brief Return code and output are passed through with a sanitised environment.
    """

    seen = {}

    def fake_run(command, **kwargs):
        seen.update(kwargs)
        return subprocess.CompletedProcess(command, 1060, "", "[SC] OpenService FAILED 1060:\n\nThe specified service does not exist.")

    monkeypatch.setattr(exec_utils.subprocess, "run", fake_run)
    monkeypatch.setenv("PYTHONPATH", "/tmp/src")

    result = exec_utils.run_command(["sc.exe", "delete", "sshd"], event="service_delete")

    assert result.returncode == 1060
    assert result.describe() == "exit code 1060: The specified service does not exist."
    assert "PYTHONPATH" not in seen["env"]
