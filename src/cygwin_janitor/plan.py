"""!
@brief Translate the operator's request into the set of actions to attempt.
@details The effective action set is computed once, before any destructive
step, from the requested flags, the run mode, and the detection outcome. The
orchestrator and the pre-run banner both read the same frozen value so what
is announced is exactly what is attempted.
"""
from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, List

from . import detect


class Action(str, enum.Enum):
    SERVICES = "services"
    PROCESSES = "processes"
    CONFIG = "config"
    SECURITY_HOOK = "security-hook"
    PATH_VARS = "path-vars"
    CACHE = "cache"
    SHORTCUTS = "shortcuts"
    DIRECTORY = "directory"


REQUESTABLE_ACTIONS: tuple[Action, ...] = (
    Action.SERVICES,
    Action.CONFIG,
    Action.SECURITY_HOOK,
    Action.PATH_VARS,
    Action.CACHE,
    Action.SHORTCUTS,
    Action.DIRECTORY,
)
"""!
@brief Categories the operator can ask for directly; process termination is implied only.
"""

ALL_SAFE_ACTIONS: FrozenSet[Action] = frozenset(
    {
        Action.DIRECTORY,
        Action.CONFIG,
        Action.SERVICES,
        Action.CACHE,
        Action.PATH_VARS,
        Action.SHORTCUTS,
        Action.SECURITY_HOOK,
    }
)

DIRECTORY_PREREQUISITES: FrozenSet[Action] = frozenset(
    {Action.SERVICES, Action.PATH_VARS, Action.PROCESSES}
)

TARGET_REQUIRED: FrozenSet[Action] = frozenset(
    {Action.SERVICES, Action.PATH_VARS, Action.DIRECTORY, Action.PROCESSES}
)

REASON_PATH_NOT_FOUND = "path not found"
REASON_NOT_REQUESTED = "not requested"


@dataclass(frozen=True)
class ActionRequest:
    """!
    @brief The operator's declared intent as parsed from CLI and config file.
    """

    services: bool = False
    config: bool = False
    security_hook: bool = False
    path_vars: bool = False
    cache: bool = False
    shortcuts: bool = False
    directory: bool = False
    all_safe: bool = False
    unattended: bool = False

    def requested(self) -> FrozenSet[Action]:
        flags = {
            Action.SERVICES: self.services,
            Action.CONFIG: self.config,
            Action.SECURITY_HOOK: self.security_hook,
            Action.PATH_VARS: self.path_vars,
            Action.CACHE: self.cache,
            Action.SHORTCUTS: self.shortcuts,
            Action.DIRECTORY: self.directory,
        }
        return frozenset(action for action, enabled in flags.items() if enabled)

    @property
    def has_actions(self) -> bool:
        return self.all_safe or bool(self.requested())


@dataclass(frozen=True)
class EffectiveActionSet:
    """!
    @brief Actions the orchestrator will attempt, plus why others were dropped.
    """

    actions: FrozenSet[Action] = frozenset()
    suppressed: Dict[Action, str] = field(default_factory=dict, hash=False)
    unattended: bool = False

    def __contains__(self, action: object) -> bool:
        return action in self.actions

    @property
    def is_empty(self) -> bool:
        return not self.actions

    def reason_for(self, action: Action) -> str:
        """!
        @brief Reason an action is not in the set (``"path not found"`` or ``"not requested"``).
        """

        return self.suppressed.get(action, REASON_NOT_REQUESTED)

    def ordered(self) -> List[Action]:
        return [action for action in Action if action in self.actions]


def compute_effective_actions(
    request: ActionRequest, target: detect.InstallationTarget
) -> EffectiveActionSet:
    """!
    @brief Expand and filter ``request`` against the detection outcome.
    @details ``all_safe`` expands to :data:`ALL_SAFE_ACTIONS`. Directory removal
    pulls in service removal, PATH scrubbing and process termination. Actions
    that need a resolved root are suppressed when detection failed. An
    interactive run without any category flag offers every category; the
    operator is asked step by step.
    """

    requested = set(request.requested())
    if request.all_safe:
        requested |= ALL_SAFE_ACTIONS
    if not request.unattended and not requested:
        requested = set(REQUESTABLE_ACTIONS)
    if Action.DIRECTORY in requested:
        requested |= DIRECTORY_PREREQUISITES

    suppressed: Dict[Action, str] = {}
    if not target.resolved:
        for action in sorted(requested & TARGET_REQUIRED, key=lambda item: item.value):
            suppressed[action] = REASON_PATH_NOT_FOUND
        requested -= TARGET_REQUIRED

    return EffectiveActionSet(frozenset(requested), suppressed, request.unattended)


__all__ = [
    "ALL_SAFE_ACTIONS",
    "Action",
    "ActionRequest",
    "EffectiveActionSet",
    "REASON_NOT_REQUESTED",
    "REASON_PATH_NOT_FOUND",
    "REQUESTABLE_ACTIONS",
    "compute_effective_actions",
]
