"""!
@brief Tests for runtime guardrails.
"""

from __future__ import annotations

import pathlib
import sys

import pytest

PROJECT_ROOT = pathlib.Path(__file__).resolve().parents[1]
SRC_PATH = PROJECT_ROOT / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

from cygwin_janitor import safety  # noqa: E402


def test_live_run_requires_admin() -> None:
    """!
    @brief Missing elevation is a ``PermissionError`` for live runs.
    """

    with pytest.raises(PermissionError):
        safety.evaluate_runtime_environment(is_admin=False, dry_run=False)


@pytest.mark.parametrize(("is_admin", "dry_run"), [(True, False), (True, True), (False, True)])
def test_admin_or_dry_run_passes(is_admin: bool, dry_run: bool) -> None:
    """!
    @brief Elevated runs and dry-runs pass the precondition.
    """

    safety.evaluate_runtime_environment(is_admin=is_admin, dry_run=dry_run)


def test_is_admin_uses_effective_uid(monkeypatch) -> None:
    """!
    @brief Non-Windows hosts fall back to the effective user id.
    """

    monkeypatch.setattr(safety.os, "name", "posix")
    monkeypatch.setattr(safety.os, "geteuid", lambda: 0, raising=False)
    assert safety.is_admin()

    monkeypatch.setattr(safety.os, "geteuid", lambda: 1000, raising=False)
    assert not safety.is_admin()
