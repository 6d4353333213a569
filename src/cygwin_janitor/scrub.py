"""!
@brief Run orchestration: detection, eligibility, the fixed step sequence, and the report.
@details One linear pass per invocation. Each step is gated by the effective
action set and, in interactive mode, by its own confirmation prompt. A
declined, ineligible, or failed step never stops the pass; the only hard
dependency between steps is that the installation directory is not deleted
while the LSA authentication hook is still registered.
"""
from __future__ import annotations

import time
from typing import Callable, List, Optional, Sequence

from . import (
    confirm,
    constants,
    detect,
    env_path,
    fs_tools,
    logging_ext,
    plan,
    processes,
    registry_product,
    report,
    residue,
    security_hook,
    tasks_services,
)
from .plan import Action

Confirm = Callable[[str, Sequence[object]], bool]
Announce = Callable[[detect.InstallationTarget, plan.EffectiveActionSet], None]

STEP_SEQUENCE = (
    "services",
    "processes",
    "config",
    security_hook.STEP,
    env_path.step_name(env_path.Scope.MACHINE),
    env_path.step_name(env_path.Scope.USER),
    "cache",
    "shortcuts",
    fs_tools.DIRECTORY_STEP,
)


def _always_yes(title: str, items: Sequence[object]) -> bool:
    return True


def _interactive_confirm(input_func: confirm.InputFunc | None) -> Confirm:
    def _ask(title: str, items: Sequence[object]) -> bool:
        return confirm.request_step_confirmation(title, items, input_func=input_func)

    return _ask


class _StepRunner:
    """!
    @brief Shared gating, confirmation, telemetry and failure isolation for steps.
    """

    def __init__(
        self,
        run_report: report.RunReport,
        actions: plan.EffectiveActionSet,
        confirm_func: Confirm,
        dry_run: bool,
    ) -> None:
        self.report = run_report
        self.actions = actions
        self.confirm = confirm_func
        self.dry_run = dry_run
        self.human_logger = logging_ext.get_human_logger()
        self.machine_logger = logging_ext.get_machine_logger()

    def record(self, result: report.StepResult) -> report.StepResult:
        self.machine_logger.info(
            "step_result",
            extra={
                "event": "step_result",
                "step": result.step,
                "status": result.status.value,
                "reason": result.reason,
                "items": [{"item": item.item, "ok": item.ok, "detail": item.detail} for item in result.items],
                "state_changed": result.state_changed,
            },
        )
        if result.status is report.StepStatus.FAILED:
            self.human_logger.error("%s: %s", result.title, result.reason)
        elif result.status is report.StepStatus.BLOCKED:
            self.human_logger.error("%s blocked: %s", result.title, result.reason)
        elif result.status in (report.StepStatus.SKIPPED_NOT_ELIGIBLE, report.StepStatus.SKIPPED_BY_USER):
            self.human_logger.info("%s %s: %s", result.title, result.status.value, result.reason)
        return self.report.add(result)

    def start(self, step: str, title: str) -> None:
        self.human_logger.info("== %s", title)
        self.machine_logger.info("step_start", extra={"event": "step_start", "step": step})

    def skip(self, step: str, title: str, reason: str) -> report.StepResult:
        return self.record(
            report.StepResult(step, title, report.StepStatus.SKIPPED_NOT_ELIGIBLE, reason)
        )

    def crashed(self, step: str, title: str, exc: Exception) -> report.StepResult:
        self.human_logger.exception("%s failed unexpectedly", title)
        return self.record(
            report.StepResult(step, title, report.StepStatus.FAILED, f"unexpected error: {exc}")
        )

    def discovered(
        self,
        step: str,
        title: str,
        action: Action,
        find: Callable[[], List[report.RemovableItem]],
        remove: Callable[[List[report.RemovableItem]], List[report.ItemResult]],
        *,
        verb: str = "removed",
        ineligible_reason: Optional[str] = None,
    ) -> report.StepResult:
        """!
        @brief Find items, confirm, then remove them, isolating every failure.
        """

        if action not in self.actions:
            return self.skip(step, title, ineligible_reason or self.actions.reason_for(action))
        self.start(step, title)
        try:
            items = find()
            if not items:
                return self.record(report.StepResult(step, title, report.StepStatus.NO_CHANGES, "nothing found"))
            if not self.confirm(title, items):
                return self.record(report.StepResult(step, title, report.StepStatus.SKIPPED_BY_USER, "declined"))
            results = remove(items)
        except Exception as exc:  # noqa: BLE001 - one step must not end the pass
            return self.crashed(step, title, exc)
        return self.record(report.from_items(step, title, results, dry_run=self.dry_run, verb=verb))


def _inspect_security_hook(runner: _StepRunner) -> security_hook.HookInspection:
    try:
        return security_hook.inspect_security_hook()
    except Exception as exc:  # noqa: BLE001 - unreadable policy counts as absent
        runner.human_logger.warning("Could not inspect LSA authentication packages: %s", exc)
        return security_hook.HookInspection()


def _run_security_hook(runner: _StepRunner, inspection: security_hook.HookInspection) -> None:
    title = security_hook.TITLE
    runner.start(security_hook.STEP, title)
    runner.report.hook_state = inspection.state

    if not inspection.found:
        runner.record(
            report.StepResult(security_hook.STEP, title, report.StepStatus.NO_CHANGES, "not present")
        )
        return
    if Action.SECURITY_HOOK not in runner.actions:
        runner.skip(security_hook.STEP, title, "found but reset not enabled")
        return
    if not runner.confirm(title, list(inspection.entries)):
        runner.record(
            report.StepResult(security_hook.STEP, title, report.StepStatus.SKIPPED_BY_USER, "declined")
        )
        return
    try:
        state, result = security_hook.reset_security_hook(inspection, dry_run=runner.dry_run)
    except Exception as exc:  # noqa: BLE001
        runner.crashed(security_hook.STEP, title, exc)
        return
    runner.report.hook_state = state
    runner.record(result)


def _run_path_scrub(runner: _StepRunner, target: detect.InstallationTarget, scope: env_path.Scope) -> None:
    step = env_path.step_name(scope)
    title = env_path.step_title(scope)
    if Action.PATH_VARS not in runner.actions:
        runner.skip(step, title, runner.actions.reason_for(Action.PATH_VARS))
        return
    runner.start(step, title)
    try:
        entries = env_path.find_path_entries(target, scope)
        if entries and not runner.confirm(title, entries):
            runner.record(report.StepResult(step, title, report.StepStatus.SKIPPED_BY_USER, "declined"))
            return
        result = env_path.scrub_path_variable(target, scope, dry_run=runner.dry_run)
    except Exception as exc:  # noqa: BLE001
        runner.crashed(step, title, exc)
        return
    runner.record(result)


def _run_directory_erase(runner: _StepRunner, target: detect.InstallationTarget) -> None:
    step, title = fs_tools.DIRECTORY_STEP, fs_tools.DIRECTORY_TITLE
    gate = fs_tools.directory_erase_gate(
        target,
        runner.report.hook_state,
        eligible=Action.DIRECTORY in runner.actions,
        ineligible_reason=runner.actions.reason_for(Action.DIRECTORY),
    )
    if gate is not None:
        runner.record(gate)
        return
    runner.start(step, title)
    if not runner.confirm(title, [target.root_path]):
        runner.record(report.StepResult(step, title, report.StepStatus.SKIPPED_BY_USER, "declined"))
        return
    try:
        result = fs_tools.erase_installation_root(target, dry_run=runner.dry_run)
    except Exception as exc:  # noqa: BLE001
        runner.crashed(step, title, exc)
        return
    runner.record(result)


def execute_run(
    target: detect.InstallationTarget,
    actions: plan.EffectiveActionSet,
    *,
    confirm_func: Confirm | None = None,
    input_func: confirm.InputFunc | None = None,
    dry_run: bool = False,
) -> report.RunReport:
    """!
    @brief Run every step in the fixed order and collect the report.
    @details Unattended runs never prompt. Interactive runs ask per step via
    ``confirm_func`` (defaults to :func:`confirm.request_step_confirmation`).
    Process termination is skipped when a security hook that will not be
    reset is going to block the directory step.
    """

    if confirm_func is None:
        confirm_func = _always_yes if actions.unattended else _interactive_confirm(input_func)

    run_report = report.RunReport(target=target, actions=actions)
    runner = _StepRunner(run_report, actions, confirm_func, dry_run)

    runner.discovered(
        "services",
        "Remove services",
        Action.SERVICES,
        lambda: tasks_services.find_services(target),
        lambda items: tasks_services.remove_services(items, dry_run=dry_run),
    )
    hook = _inspect_security_hook(runner)
    if hook.found and Action.PROCESSES in actions and Action.SECURITY_HOOK not in actions:
        runner.human_logger.warning(
            "Security hook reset is not enabled; the installation directory will not be removed "
            "and running processes are left alone"
        )
        runner.skip("processes", "Terminate processes", "directory removal blocked by security hook")
    else:
        processes_reason = None
        if Action.PROCESSES not in actions and Action.PROCESSES not in actions.suppressed:
            processes_reason = "only runs before directory removal"
        runner.discovered(
            "processes",
            "Terminate processes",
            Action.PROCESSES,
            lambda: processes.find_processes(target),
            lambda items: processes.terminate_processes(items, dry_run=dry_run),
            verb="terminated",
            ineligible_reason=processes_reason,
        )
    runner.discovered(
        "config",
        "Remove registry configuration",
        Action.CONFIG,
        registry_product.find_config_keys,
        lambda items: registry_product.remove_config_keys(items, dry_run=dry_run),
    )
    _run_security_hook(runner, hook)
    _run_path_scrub(runner, target, env_path.Scope.MACHINE)
    _run_path_scrub(runner, target, env_path.Scope.USER)
    runner.discovered(
        "cache",
        "Remove download caches",
        Action.CACHE,
        lambda: residue.find_cache_directories(target),
        lambda items: residue.remove_directories(items, dry_run=dry_run),
    )
    runner.discovered(
        "shortcuts",
        "Remove shortcuts",
        Action.SHORTCUTS,
        residue.find_shortcuts,
        lambda items: residue.remove_shortcuts(items, dry_run=dry_run),
    )
    _run_directory_erase(runner, target)

    runner.machine_logger.info(
        "run_complete",
        extra={
            "event": "run_complete",
            "reboot_mandatory": run_report.reboot_mandatory,
            "reboot_recommended": run_report.reboot_recommended,
            "failures": [result.step for result in run_report.failures],
        },
    )
    return run_report


def run(
    request: plan.ActionRequest,
    *,
    explicit_path: str | None = None,
    dry_run: bool = False,
    input_func: confirm.InputFunc | None = None,
    confirm_func: Confirm | None = None,
    announce: Announce | None = None,
    delay_seconds: float = constants.UNATTENDED_DELAY_SECONDS,
    sleep: Callable[[float], None] = time.sleep,
) -> report.RunReport:
    """!
    @brief Full pass: resolve the root once, compute eligibility once, execute.
    @details ``announce`` receives the target and action set before anything
    destructive happens (banner / unattended echo). An unattended request
    without any action stops after detection and returns a ``no_action``
    report. Otherwise unattended runs wait ``delay_seconds`` as a last chance
    to abort.
    """

    human_logger = logging_ext.get_human_logger()

    target = detect.resolve_installation(explicit_path)
    if target.resolved:
        human_logger.info("Installation root: %s (%s)", target.root_path, target.source.value)
    else:
        human_logger.warning("Cygwin installation root not found; root-dependent steps will be skipped.")

    actions = plan.compute_effective_actions(request, target)
    if announce is not None:
        announce(target, actions)

    if request.unattended and not request.has_actions:
        human_logger.warning("Unattended mode without any action flag: detection only, no action taken.")
        return report.RunReport(target=target, actions=actions, no_action=True)

    if request.unattended and delay_seconds > 0 and not dry_run:
        human_logger.warning("Starting in %s seconds; press Ctrl+C to abort.", delay_seconds)
        sleep(delay_seconds)

    return execute_run(
        target,
        actions,
        confirm_func=confirm_func,
        input_func=input_func,
        dry_run=dry_run,
    )


__all__ = ["STEP_SEQUENCE", "execute_run", "run"]
