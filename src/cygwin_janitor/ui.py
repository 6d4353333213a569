"""!
@brief Plain console rendering for the pre-run banner and the final summary.
"""
from __future__ import annotations

import sys
import textwrap
from typing import List, TextIO

from . import detect, plan, report, version

_COLORS = {
    "green": "\033[32m",
    "yellow": "\033[33m",
    "red": "\033[31m",
    "cyan": "\033[36m",
    "bold": "\033[1m",
}
_RESET = "\033[0m"

_STATUS_COLORS = {
    report.StepStatus.SUCCEEDED: "green",
    report.StepStatus.NO_CHANGES: "cyan",
    report.StepStatus.SKIPPED_NOT_ELIGIBLE: "yellow",
    report.StepStatus.SKIPPED_BY_USER: "yellow",
    report.StepStatus.FAILED: "red",
    report.StepStatus.BLOCKED: "red",
}

RESIDUAL_RISK_NOTES = (
    "Only the fixed locations were scanned. Check other drives, custom download",
    "folders, and per-user shortcuts of other accounts manually.",
)


def colorize(text: str, color: str, enabled: bool) -> str:
    if not enabled or color not in _COLORS:
        return text
    return f"{_COLORS[color]}{text}{_RESET}"


def render_banner(
    target: detect.InstallationTarget,
    actions: plan.EffectiveActionSet,
    *,
    dry_run: bool = False,
    use_color: bool = True,
    stream: TextIO | None = None,
) -> None:
    """!
    @brief Print what was detected and exactly which actions will be attempted.
    """

    out = stream or sys.stdout
    mode = "unattended" if actions.unattended else "interactive"
    lines: List[str] = [
        colorize(f"Cygwin Janitor {version.__version__}", "bold", use_color),
        f"Mode: {mode}{' (dry-run)' if dry_run else ''}",
    ]
    if target.resolved:
        lines.append(f"Installation root: {target.root_path} [{target.source.value}]")
    else:
        lines.append(colorize("Installation root: not found", "yellow", use_color))
    if actions.is_empty:
        lines.append("Actions: none")
    else:
        lines.append("Actions: " + ", ".join(action.value for action in actions.ordered()))
    for action, reason in sorted(actions.suppressed.items(), key=lambda pair: pair[0].value):
        lines.append(colorize(f"  skipped {action.value}: {reason}", "yellow", use_color))
    print("\n".join(lines), file=out)


def render_summary(
    run_report: report.RunReport,
    *,
    use_color: bool = True,
    stream: TextIO | None = None,
) -> None:
    """!
    @brief Print the per-step table, reboot guidance and residual-risk reminder.
    """

    out = stream or sys.stdout
    lines: List[str] = ["", colorize("================ Summary ================", "bold", use_color)]

    if run_report.no_action:
        lines.append("No action requested; detection only. Nothing was changed.")
    for result in run_report.steps:
        status = colorize(f"{result.status.value:<15}", _STATUS_COLORS[result.status], use_color)
        detail = f" ({result.reason})" if result.reason else ""
        lines.append(f"{status} {result.title}{detail}")
        for item in result.failed_items:
            lines.append(f"{'':<16}  - {item.item}: {item.detail}")

    lines.append("")
    if run_report.reboot_mandatory:
        lines.append(
            colorize(
                "REBOOT MANDATORY: the LSA authentication package was removed.", "red", use_color
            )
        )
    elif run_report.reboot_recommended:
        lines.append(colorize("Restart recommended to release remaining handles.", "yellow", use_color))

    directory = run_report.step("directory")
    if directory is not None and directory.status is report.StepStatus.BLOCKED:
        lines.append(
            colorize(
                "The installation directory was kept because the LSA hook is still registered. "
                "Re-run with --reset-security-hook, restart, then remove the directory.",
                "red",
                use_color,
            )
        )

    if not run_report.no_action:
        lines.extend(textwrap.wrap(" ".join(RESIDUAL_RISK_NOTES), width=78))
    print("\n".join(lines), file=out)


__all__ = ["RESIDUAL_RISK_NOTES", "colorize", "render_banner", "render_summary"]
