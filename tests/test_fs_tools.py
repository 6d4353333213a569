"""!
@brief Tests for filesystem helpers and the directory erase gate.
"""

from __future__ import annotations

import pathlib
import sys

import pytest

PROJECT_ROOT = pathlib.Path(__file__).resolve().parents[1]
SRC_PATH = PROJECT_ROOT / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

from cygwin_janitor import detect, fs_tools, report  # noqa: E402


@pytest.mark.parametrize(
    ("candidate", "root", "expected"),
    [
        ("C:\\cygwin64\\bin\\bash.exe", "C:\\cygwin64", True),
        ("c:\\CYGWIN64\\bin", "C:\\cygwin64\\", True),
        ("C:\\cygwin64", "C:\\cygwin64", True),
        ("C:/cygwin64/usr/sbin/sshd.exe", "C:\\cygwin64", True),
        ("C:\\cygwin64-old\\bin\\bash.exe", "C:\\cygwin64", False),
        ("C:\\cygwin64old", "C:\\cygwin64", False),
        ("D:\\cygwin64\\bin", "C:\\cygwin64", False),
        ("C:\\Windows\\System32", "C:\\", True),
        ("", "C:\\cygwin64", False),
        ("C:\\cygwin64\\bin", "", False),
    ],
)
def test_is_path_under_matches_whole_components(candidate: str, root: str, expected: bool) -> None:
    """!
    @brief Prefix matching respects component boundaries and ignores case.
    """

    assert fs_tools.is_path_under(candidate, root) is expected


def test_remove_tree_handles_missing_and_dry_run(tmp_path) -> None:
    """!
    @brief Dry-run leaves the tree alone; a missing path is already gone.
    """

    folder = tmp_path / "cache"
    (folder / "x86_64").mkdir(parents=True)

    dry = fs_tools.remove_tree(folder, dry_run=True)
    assert dry.ok and dry.detail == "dry-run"
    assert folder.exists()

    done = fs_tools.remove_tree(folder)
    assert done.ok and done.detail == "removed"
    assert not folder.exists()

    again = fs_tools.remove_tree(folder)
    assert again.ok and again.detail == "already absent"


def test_remove_file_reports_absence(tmp_path) -> None:
    """!
    @brief Deleting a vanished shortcut still counts as success.
    """

    shortcut = tmp_path / "Cygwin64 Terminal.lnk"
    shortcut.write_text("lnk", encoding="utf-8")

    assert fs_tools.remove_file(shortcut).detail == "deleted"
    assert fs_tools.remove_file(shortcut).detail == "already absent"


FOUND = detect.InstallationTarget("C:\\cygwin64", True, detect.ResolutionSource.CONFIG_STORE)
HOOK_LEFT = report.SecurityHookState(found_initially=True, reset_attempted=False)
HOOK_RESET = report.SecurityHookState(found_initially=True, reset_attempted=True, reset_succeeded=True)
HOOK_FAILED = report.SecurityHookState(found_initially=True, reset_attempted=True, reset_succeeded=False)
NO_HOOK = report.SecurityHookState()


@pytest.mark.parametrize(
    ("target", "hook", "eligible", "status", "reason"),
    [
        (detect.InstallationTarget.not_found(), NO_HOOK, True, report.StepStatus.SKIPPED_NOT_ELIGIBLE, "path not found"),
        (FOUND, NO_HOOK, False, report.StepStatus.SKIPPED_NOT_ELIGIBLE, "not requested"),
        (FOUND, HOOK_LEFT, True, report.StepStatus.BLOCKED, "security hook present but not reset"),
        (FOUND, HOOK_FAILED, True, report.StepStatus.BLOCKED, "security hook present but not reset"),
    ],
)
def test_directory_erase_gate_blocks(target, hook, eligible, status, reason) -> None:
    """!
    @brief Each gate condition yields its own status and reason.
    """

    result = fs_tools.directory_erase_gate(target, hook, eligible=eligible)

    assert result is not None
    assert result.status is status
    assert result.reason == reason
    assert not result.state_changed


@pytest.mark.parametrize("hook", [NO_HOOK, HOOK_RESET])
def test_directory_erase_gate_allows(hook) -> None:
    """!
    @brief No hook, or a hook that was reset, lets the erase proceed.
    """

    assert fs_tools.directory_erase_gate(FOUND, hook, eligible=True) is None


def test_erase_installation_root_success(tmp_path) -> None:
    """!
    @brief The root and everything beneath it is deleted.
    """

    root = tmp_path / "cygwin64"
    (root / "bin").mkdir(parents=True)
    (root / "bin" / "bash.exe").write_bytes(b"MZ")
    target = detect.InstallationTarget(str(root), True, detect.ResolutionSource.EXPLICIT_OVERRIDE)

    result = fs_tools.erase_installation_root(target)

    assert result.status is report.StepStatus.SUCCEEDED
    assert result.state_changed
    assert not root.exists()


def test_erase_installation_root_failure_advises_restart(tmp_path, monkeypatch) -> None:
    """!
    @brief A locked tree is a single failed attempt with restart guidance.
    """

    root = tmp_path / "cygwin64"
    root.mkdir()
    target = detect.InstallationTarget(str(root), True, detect.ResolutionSource.EXPLICIT_OVERRIDE)
    calls = []

    def locked(path):
        calls.append(path)
        raise PermissionError(32, "The process cannot access the file")

    monkeypatch.setattr(fs_tools, "_rmtree", locked)

    result = fs_tools.erase_installation_root(target)

    assert len(calls) == 1
    assert result.status is report.StepStatus.FAILED
    assert "restart" in result.reason
    assert result.failed_items
