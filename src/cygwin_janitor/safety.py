"""!
@brief Safety and guardrail enforcement helpers.
@details Holds the checks that must never be bypassed by a flag: the
administrative precondition evaluated before detection, and the rule that the
core authentication package stays registered whatever else is removed.
"""
from __future__ import annotations

import ctypes
import os
from typing import Iterable

from . import constants


def is_admin() -> bool:
    """!
    @brief Determine whether the current process runs with administrative rights.
    """

    if os.name == "nt":
        try:
            shell32 = ctypes.windll.shell32  # type: ignore[attr-defined]
            return bool(shell32.IsUserAnAdmin())
        except (AttributeError, OSError):
            return False

    geteuid = getattr(os, "geteuid", None)
    if callable(geteuid):
        return geteuid() == 0
    return False


def evaluate_runtime_environment(*, is_admin: bool, dry_run: bool) -> None:
    """!
    @brief Validate prerequisites before anything is detected or touched.
    @details Dry-run executions only read state and are allowed without
    elevation.
    @raises PermissionError If administrative rights are missing for a live run.
    """

    if is_admin or dry_run:
        return
    raise PermissionError(
        "Administrative rights are required; re-run from an elevated prompt or use --dry-run."
    )


def ensure_core_entry_retained(
    entries: Iterable[str], core: str = constants.SECURITY_CORE_IDENTIFIER
) -> None:
    """!
    @brief Refuse an authentication package list that lacks the core package.
    @raises ValueError When ``core`` is missing from ``entries``.
    """

    wanted = core.strip().lower()
    if any(str(entry).strip().lower() == wanted for entry in entries):
        return
    raise ValueError(f"Refusing to write authentication packages without {core!r}")


__all__ = ["ensure_core_entry_retained", "evaluate_runtime_environment", "is_admin"]
