"""!
@brief Remove installation root references from the machine and user ``Path``.
@details Entries pointing into the root (``C:\\cygwin64\\bin`` and the root
itself) are dropped while every other entry keeps its position; the list is
never sorted or de-duplicated. The value is only written back when an entry
was actually removed, and its registry type is preserved.
"""
from __future__ import annotations

import ctypes
import enum
import os
from typing import List, Tuple

from . import constants, detect, fs_tools, logging_ext, registry_tools, report


class Scope(str, enum.Enum):
    MACHINE = "machine"
    USER = "user"


_SCOPE_KEYS = {
    Scope.MACHINE: (constants.HKLM, constants.MACHINE_ENVIRONMENT_KEY),
    Scope.USER: (constants.HKCU, constants.USER_ENVIRONMENT_KEY),
}


def step_name(scope: Scope) -> str:
    return f"path-vars-{scope.value}"


def step_title(scope: Scope) -> str:
    return f"Scrub {scope.value} Path variable"


def scrub_entries(value: str, root: str) -> Tuple[List[str], List[str]]:
    """!
    @brief Split ``value`` and separate kept entries from removed ones.
    @details Empty segments are dropped. An entry is removed when it (after
    ``%VAR%`` expansion) is the root or lies beneath it.
    @returns ``(kept, removed)`` in original order.
    """

    kept: List[str] = []
    removed: List[str] = []
    for entry in value.split(constants.PATH_DELIMITER):
        if not entry.strip():
            continue
        if fs_tools.is_path_under(os.path.expandvars(entry), root):
            removed.append(entry)
        else:
            kept.append(entry)
    return kept, removed


def find_path_entries(target: detect.InstallationTarget, scope: Scope) -> List[report.RemovableItem]:
    """!
    @brief Read-only preview of the entries :func:`scrub_path_variable` would drop.
    """

    if not target.resolved:
        return []
    root, key = _SCOPE_KEYS[scope]
    value = registry_tools.get_value(root, key, constants.PATH_VALUE)
    if not isinstance(value, str):
        return []
    _, removed = scrub_entries(value, target.root_path)
    return [report.RemovableItem(entry, entry, f"{scope.value} Path entry") for entry in removed]


def broadcast_environment_change() -> None:
    """!
    @brief Tell running applications that the environment changed.
    """

    if os.name != "nt":
        return
    try:
        result = ctypes.c_ulong(0)
        ctypes.windll.user32.SendMessageTimeoutW(  # type: ignore[attr-defined]
            0xFFFF,  # HWND_BROADCAST
            0x001A,  # WM_SETTINGCHANGE
            0,
            "Environment",
            0x0002,  # SMTO_ABORTIFHUNG
            5000,
            ctypes.byref(result),
        )
    except (AttributeError, OSError):
        logging_ext.get_human_logger().debug("Environment change broadcast failed")


def scrub_path_variable(
    target: detect.InstallationTarget, scope: Scope, *, dry_run: bool = False
) -> report.StepResult:
    """!
    @brief Remove root references from the ``Path`` value of ``scope``.
    """

    human_logger = logging_ext.get_human_logger()
    machine_logger = logging_ext.get_machine_logger()
    name, title = step_name(scope), step_title(scope)

    if not target.resolved:
        return report.StepResult(name, title, report.StepStatus.SKIPPED_NOT_ELIGIBLE, "path not found")

    root, key = _SCOPE_KEYS[scope]
    if scope is Scope.USER and not registry_tools.key_exists(root, key) and not dry_run:
        try:
            registry_tools.create_key(root, key)
        except OSError as exc:
            human_logger.warning("Unable to create %s: %s", registry_tools.format_key(root, key), exc)

    found = registry_tools.read_value(root, key, constants.PATH_VALUE)
    if found is None or not isinstance(found[0], str):
        return report.StepResult(name, title, report.StepStatus.NO_CHANGES, "no Path value")
    original, value_type = found

    kept, removed = scrub_entries(original, target.root_path)
    if not removed:
        human_logger.info("%s Path has no entries under %s", scope.value.capitalize(), target.root_path)
        return report.StepResult(name, title, report.StepStatus.NO_CHANGES, "no changes needed")

    updated = constants.PATH_DELIMITER.join(kept)
    machine_logger.info(
        "path_scrub_plan",
        extra={"event": "path_scrub_plan", "scope": scope.value, "removed": removed, "dry_run": dry_run},
    )
    items = [report.ItemResult(entry, True, "dry-run" if dry_run else "removed") for entry in removed]
    if dry_run:
        human_logger.info("Dry-run: would remove %s from the %s Path", ", ".join(removed), scope.value)
        return report.StepResult(name, title, report.StepStatus.SUCCEEDED, "dry-run", items)

    if value_type not in (constants.REG_SZ, constants.REG_EXPAND_SZ):
        value_type = constants.REG_EXPAND_SZ
    try:
        registry_tools.set_value(root, key, constants.PATH_VALUE, updated, value_type)
    except OSError as exc:
        human_logger.error("Failed to update the %s Path: %s", scope.value, exc)
        return report.StepResult(
            name,
            title,
            report.StepStatus.FAILED,
            f"write failed: {exc}",
            [report.ItemResult(entry, False, str(exc)) for entry in removed],
        )

    broadcast_environment_change()
    human_logger.info("Removed %d %s Path entry(ies)", len(removed), scope.value)
    return report.StepResult(
        name, title, report.StepStatus.SUCCEEDED, f"{len(removed)} entry(ies) removed", items, True
    )


__all__ = [
    "Scope",
    "broadcast_environment_change",
    "find_path_entries",
    "scrub_entries",
    "scrub_path_variable",
    "step_name",
    "step_title",
]
