"""!
@brief Filesystem utilities for residue cleanup.
@details Provides the boundary-aware path prefix test shared by the service
and process reapers, recursive and single-file deletion returning per-item
results, and the gated removal of the installation root.
"""
from __future__ import annotations

import ntpath
import os
import shutil
import stat
import sys
from pathlib import Path

from . import detect, logging_ext, report

DIRECTORY_STEP = "directory"
DIRECTORY_TITLE = "Remove installation directory"


def normalize_for_compare(path: str | os.PathLike[str]) -> str:
    """!
    @brief Case-folded, backslash separated form of ``path`` without trailing separators.
    """

    text = str(path).strip().strip('"')
    if not text:
        return ""
    normalized = ntpath.normcase(ntpath.normpath(text))
    stripped = normalized.rstrip("\\")
    if not stripped or stripped.endswith(":"):
        return stripped + "\\"
    return stripped


def is_path_under(candidate: str | os.PathLike[str], root: str | os.PathLike[str]) -> bool:
    """!
    @brief ``True`` when ``candidate`` is ``root`` or lies inside it.
    @details Matches on whole path components, so ``C:\\cygwin64-old\\x.exe``
    is not inside ``C:\\cygwin64``.
    """

    normalized_root = normalize_for_compare(root)
    normalized_candidate = normalize_for_compare(candidate)
    if not normalized_root or not normalized_candidate:
        return False
    if normalized_candidate == normalized_root:
        return True
    prefix = normalized_root if normalized_root.endswith("\\") else normalized_root + "\\"
    return normalized_candidate.startswith(prefix)


def _handle_readonly(function, path: str, exc: BaseException) -> None:
    """!
    @brief Clear the read-only attribute and retry the failed removal once.
    """

    if isinstance(exc, PermissionError):
        os.chmod(path, stat.S_IWRITE)
        function(path)
    else:
        raise exc


def _rmtree(path: Path) -> None:
    if sys.version_info >= (3, 12):
        shutil.rmtree(path, onexc=_handle_readonly)
    else:  # pragma: no cover - older interpreters
        shutil.rmtree(path, onerror=lambda func, p, info: _handle_readonly(func, p, info[1]))


def remove_tree(path: Path, *, dry_run: bool = False) -> report.ItemResult:
    """!
    @brief Recursively delete ``path`` and report the outcome instead of raising.
    """

    human_logger = logging_ext.get_human_logger()
    machine_logger = logging_ext.get_machine_logger()
    machine_logger.info(
        "filesystem_remove_plan",
        extra={"event": "filesystem_remove_plan", "path": str(path), "dry_run": dry_run},
    )

    if dry_run:
        human_logger.info("Dry-run: would remove %s", path)
        return report.ItemResult(str(path), True, "dry-run")
    if not path.exists():
        return report.ItemResult(str(path), True, "already absent")

    human_logger.info("Removing %s", path)
    try:
        if path.is_dir() and not path.is_symlink():
            _rmtree(path)
        else:
            _unlink(path)
    except OSError as exc:
        human_logger.error("Failed to remove %s: %s", path, exc)
        machine_logger.error(
            "filesystem_remove_failed",
            extra={"event": "filesystem_remove_failed", "path": str(path), "error": str(exc)},
        )
        return report.ItemResult(str(path), False, str(exc))
    return report.ItemResult(str(path), True, "removed")


def _unlink(path: Path) -> None:
    try:
        path.unlink()
    except PermissionError:
        os.chmod(path, stat.S_IWRITE)
        path.unlink()


def remove_file(path: Path, *, dry_run: bool = False) -> report.ItemResult:
    """!
    @brief Delete a single file (used for desktop shortcuts).
    """

    human_logger = logging_ext.get_human_logger()
    if dry_run:
        human_logger.info("Dry-run: would delete %s", path)
        return report.ItemResult(str(path), True, "dry-run")
    try:
        _unlink(path)
    except FileNotFoundError:
        return report.ItemResult(str(path), True, "already absent")
    except OSError as exc:
        human_logger.error("Failed to delete %s: %s", path, exc)
        return report.ItemResult(str(path), False, str(exc))
    human_logger.info("Deleted %s", path)
    return report.ItemResult(str(path), True, "deleted")


def directory_erase_gate(
    target: detect.InstallationTarget,
    hook_state: report.SecurityHookState,
    *,
    eligible: bool,
    ineligible_reason: str = "not requested",
) -> report.StepResult | None:
    """!
    @brief Decide whether the installation root may be deleted.
    @details The authentication hook check is absolute: when the hook was found
    and not reset, the erase is blocked no matter which flags were given.
    @returns ``None`` when deletion may proceed, otherwise the skip/block result.
    """

    if not target.resolved:
        return report.StepResult(
            DIRECTORY_STEP, DIRECTORY_TITLE, report.StepStatus.SKIPPED_NOT_ELIGIBLE, "path not found"
        )
    if not eligible:
        return report.StepResult(
            DIRECTORY_STEP, DIRECTORY_TITLE, report.StepStatus.SKIPPED_NOT_ELIGIBLE, ineligible_reason
        )
    if hook_state.blocks_directory_erase:
        return report.StepResult(
            DIRECTORY_STEP,
            DIRECTORY_TITLE,
            report.StepStatus.BLOCKED,
            "security hook present but not reset",
        )
    return None


def erase_installation_root(
    target: detect.InstallationTarget, *, dry_run: bool = False
) -> report.StepResult:
    """!
    @brief Recursively delete the installation root once the gate has passed.
    @details A single attempt is made. Locked files usually mean a process or
    service still holds a handle; the operator is told to restart and retry.
    """

    human_logger = logging_ext.get_human_logger()
    outcome = remove_tree(Path(target.root_path), dry_run=dry_run)
    if outcome.ok:
        return report.StepResult(
            DIRECTORY_STEP,
            DIRECTORY_TITLE,
            report.StepStatus.SUCCEEDED,
            "dry-run" if dry_run else f"removed {target.root_path}",
            [outcome],
            not dry_run,
        )
    human_logger.error(
        "Could not remove %s. Restart the machine and delete it manually.", target.root_path
    )
    return report.StepResult(
        DIRECTORY_STEP,
        DIRECTORY_TITLE,
        report.StepStatus.FAILED,
        f"{outcome.detail}; a restart may be required before deleting it manually",
        [outcome],
        True,
    )


__all__ = [
    "directory_erase_gate",
    "erase_installation_root",
    "is_path_under",
    "normalize_for_compare",
    "remove_file",
    "remove_tree",
]
