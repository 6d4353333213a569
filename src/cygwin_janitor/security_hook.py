"""!
@brief Detection and removal of the Cygwin LSA authentication package.
@details ``cyglsa-config`` registers ``cyglsa``/``cyglsa64`` in the LSA
``Authentication Packages`` list. Leaving that entry behind after the DLL is
deleted breaks logon, so the entry must be removed (and the machine
restarted) before the installation directory goes. The list is rewritten in
one ``SetValueEx`` call and never without ``msv1_0``.
"""
from __future__ import annotations

import ntpath
from dataclasses import dataclass
from typing import List, Sequence, Tuple

from . import constants, logging_ext, registry_tools, report, safety

STEP = "security-hook"
TITLE = "Reset LSA authentication package"


@dataclass(frozen=True)
class HookInspection:
    """!
    @brief Snapshot of the authentication package list taken before any change.
    """

    entries: Tuple[str, ...] = ()
    readable: bool = False

    @property
    def found(self) -> bool:
        return any(is_hook_entry(entry) for entry in self.entries)

    @property
    def state(self) -> report.SecurityHookState:
        return report.SecurityHookState(found_initially=self.found)


def is_hook_entry(entry: str) -> bool:
    """!
    @brief ``True`` for ``cyglsa``, ``cyglsa64`` or a path to either DLL.
    """

    name = ntpath.basename(str(entry).strip().strip('"')).lower()
    if name.endswith(".dll"):
        name = name[:-4]
    return name in constants.SECURITY_HOOK_IDENTIFIERS


def without_hook(entries: Sequence[str]) -> List[str]:
    """!
    @brief The package list with every hook entry removed, order preserved.
    """

    return [entry for entry in entries if not is_hook_entry(entry)]


def inspect_security_hook() -> HookInspection:
    """!
    @brief Read the LSA package list; unreadable counts as "hook not found".
    """

    human_logger = logging_ext.get_human_logger()
    found = registry_tools.read_value(constants.HKLM, constants.LSA_KEY, constants.LSA_PACKAGES_VALUE)
    if found is None:
        human_logger.debug("LSA authentication packages are not readable; assuming no hook.")
        return HookInspection()
    value, _ = found
    if isinstance(value, str):
        entries = tuple(part for part in value.split("\0") if part)
    elif isinstance(value, (list, tuple)):
        entries = tuple(str(part) for part in value if part)
    else:
        return HookInspection()
    inspection = HookInspection(entries, True)
    if inspection.found:
        human_logger.warning("Cygwin LSA authentication package is registered: %s", ", ".join(entries))
    return inspection


def reset_security_hook(
    inspection: HookInspection, *, dry_run: bool = False
) -> Tuple[report.SecurityHookState, report.StepResult]:
    """!
    @brief Remove the hook from the package list.
    @details A candidate list without the core package is rejected before any
    write. A failed write leaves the original value untouched. Only a
    completed write sets ``reset_succeeded``.
    @returns The final hook state and the step outcome.
    """

    human_logger = logging_ext.get_human_logger()
    machine_logger = logging_ext.get_machine_logger()

    if not inspection.found:
        return inspection.state, report.StepResult(STEP, TITLE, report.StepStatus.NO_CHANGES, "not present")

    new_entries = without_hook(inspection.entries)
    attempted = report.SecurityHookState(found_initially=True, reset_attempted=True)
    machine_logger.info(
        "security_hook_reset_plan",
        extra={
            "event": "security_hook_reset_plan",
            "before": list(inspection.entries),
            "after": new_entries,
            "dry_run": dry_run,
        },
    )

    try:
        safety.ensure_core_entry_retained(new_entries)
    except ValueError as exc:
        human_logger.critical("%s; the authentication package list was left unchanged.", exc)
        machine_logger.error(
            "security_hook_core_missing",
            extra={"event": "security_hook_core_missing", "after": new_entries},
        )
        return attempted, report.StepResult(STEP, TITLE, report.StepStatus.FAILED, str(exc))

    if dry_run:
        human_logger.info("Dry-run: would set authentication packages to %s", ", ".join(new_entries))
        return attempted, report.StepResult(STEP, TITLE, report.StepStatus.SUCCEEDED, "dry-run")

    try:
        registry_tools.set_value(
            constants.HKLM,
            constants.LSA_KEY,
            constants.LSA_PACKAGES_VALUE,
            new_entries,
            constants.REG_MULTI_SZ,
        )
    except OSError as exc:
        human_logger.error("Failed to write authentication packages: %s", exc)
        machine_logger.error(
            "security_hook_write_failed",
            extra={"event": "security_hook_write_failed", "error": repr(exc)},
        )
        return attempted, report.StepResult(
            STEP, TITLE, report.StepStatus.FAILED, f"write failed: {exc}"
        )

    human_logger.warning("Removed Cygwin LSA authentication package. A restart is mandatory.")
    succeeded = report.SecurityHookState(found_initially=True, reset_attempted=True, reset_succeeded=True)
    return succeeded, report.StepResult(
        STEP,
        TITLE,
        report.StepStatus.SUCCEEDED,
        "removed; restart required",
        [report.ItemResult(constants.LSA_PACKAGES_VALUE, True, ", ".join(new_entries))],
        True,
    )


__all__ = [
    "HookInspection",
    "inspect_security_hook",
    "is_hook_entry",
    "reset_security_hook",
    "without_hook",
]
