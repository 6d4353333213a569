"""!
@brief Per-item and per-step result records plus the end-of-run report.
@details Components never raise across their boundary; they return
:class:`ItemResult` and :class:`StepResult` values which the orchestrator
collects into a :class:`RunReport`.
"""
from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import List, Sequence

from . import detect, plan


class StepStatus(str, enum.Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    NO_CHANGES = "no changes"
    SKIPPED_NOT_ELIGIBLE = "skipped"
    SKIPPED_BY_USER = "skipped by user"
    BLOCKED = "blocked"


@dataclass(frozen=True)
class RemovableItem:
    """!
    @brief A discovered removal candidate and why it was selected.
    @details ``identifier`` is the service name, process id, key, or path the
    remover acts on; ``path`` is the filesystem location that matched.
    """

    identifier: str
    path: str
    reason: str = ""

    def __str__(self) -> str:
        if self.identifier == self.path:
            return self.path
        return f"{self.identifier} ({self.path})"


@dataclass(frozen=True)
class ItemResult:
    """!
    @brief Outcome for one service, process, key, file or directory.
    """

    item: str
    ok: bool
    detail: str = ""


@dataclass
class StepResult:
    """!
    @brief Outcome of one orchestrator step.
    @details ``state_changed`` is set when the step issued at least one
    mutation against the host, whether or not every item succeeded.
    """

    step: str
    title: str
    status: StepStatus
    reason: str = ""
    items: List[ItemResult] = field(default_factory=list)
    state_changed: bool = False

    @property
    def failed_items(self) -> List[ItemResult]:
        return [item for item in self.items if not item.ok]


def from_items(
    step: str,
    title: str,
    items: Sequence[ItemResult],
    *,
    dry_run: bool = False,
    verb: str = "removed",
) -> StepResult:
    """!
    @brief Fold item outcomes into a step result.
    @details Any failed item fails the step; the remaining items are still
    reported individually.
    """

    item_list = list(items)
    if not item_list:
        return StepResult(step, title, StepStatus.NO_CHANGES, "nothing found")
    failures = [item for item in item_list if not item.ok]
    changed = not dry_run and len(failures) < len(item_list)
    if failures:
        return StepResult(
            step,
            title,
            StepStatus.FAILED,
            f"{len(failures)} of {len(item_list)} item(s) failed",
            item_list,
            changed,
        )
    reason = "dry-run" if dry_run else f"{len(item_list)} item(s) {verb}"
    return StepResult(step, title, StepStatus.SUCCEEDED, reason, item_list, changed)


@dataclass(frozen=True)
class SecurityHookState:
    """!
    @brief Authentication hook status shared between the reset and erase steps.
    @details ``reset_succeeded`` is only ever ``True`` after a write that kept
    the core identifier in the list.
    """

    found_initially: bool = False
    reset_attempted: bool = False
    reset_succeeded: bool = False

    @property
    def blocks_directory_erase(self) -> bool:
        return self.found_initially and not self.reset_succeeded


@dataclass
class RunReport:
    """!
    @brief Everything the final summary needs.
    """

    target: detect.InstallationTarget
    actions: plan.EffectiveActionSet
    steps: List[StepResult] = field(default_factory=list)
    hook_state: SecurityHookState = field(default_factory=SecurityHookState)
    no_action: bool = False

    def add(self, result: StepResult) -> StepResult:
        self.steps.append(result)
        return result

    def step(self, name: str) -> StepResult | None:
        for result in self.steps:
            if result.step == name:
                return result
        return None

    @property
    def reboot_mandatory(self) -> bool:
        return self.hook_state.reset_succeeded

    @property
    def reboot_recommended(self) -> bool:
        return any(result.state_changed for result in self.steps)

    @property
    def failures(self) -> List[StepResult]:
        return [
            result
            for result in self.steps
            if result.status in (StepStatus.FAILED, StepStatus.BLOCKED)
        ]


__all__ = [
    "ItemResult",
    "RemovableItem",
    "RunReport",
    "SecurityHookState",
    "StepResult",
    "StepStatus",
    "from_items",
]
