"""!
@brief Tests for banner and summary rendering and report aggregation.
"""

from __future__ import annotations

import io
import pathlib
import sys

PROJECT_ROOT = pathlib.Path(__file__).resolve().parents[1]
SRC_PATH = PROJECT_ROOT / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

from cygwin_janitor import detect, plan, report, ui  # noqa: E402
from cygwin_janitor.report import StepStatus  # noqa: E402

FOUND = detect.InstallationTarget("C:\\cygwin64", True, detect.ResolutionSource.CONFIG_STORE)


def _render_summary(run_report: report.RunReport) -> str:
    stream = io.StringIO()
    ui.render_summary(run_report, use_color=False, stream=stream)
    return stream.getvalue()


def test_banner_lists_actions_and_suppressions() -> None:
    """!
    @brief The banner names the mode, the root, and every suppressed action.
    """

    missing = detect.InstallationTarget.not_found()
    actions = plan.compute_effective_actions(plan.ActionRequest(directory=True, cache=True, unattended=True), missing)
    stream = io.StringIO()

    ui.render_banner(missing, actions, dry_run=True, use_color=False, stream=stream)

    text = stream.getvalue()
    assert "Mode: unattended (dry-run)" in text
    assert "Installation root: not found" in text
    assert "Actions: cache" in text
    assert "skipped directory: path not found" in text


def test_summary_reports_mandatory_reboot() -> None:
    """!
    @brief A successful hook reset overrides the plain restart recommendation.
    """

    run_report = report.RunReport(FOUND, plan.EffectiveActionSet())
    run_report.hook_state = report.SecurityHookState(True, True, True)
    run_report.add(report.StepResult("security-hook", "Reset LSA authentication package", StepStatus.SUCCEEDED, "", [], True))

    text = _render_summary(run_report)

    assert "REBOOT MANDATORY" in text
    assert "Restart recommended" not in text
    assert "Only the fixed locations were scanned" in text


def test_summary_lists_failed_items() -> None:
    """!
    @brief Each failed item appears under its step.
    """

    items = [report.ItemResult("sshd", True, "deleted"), report.ItemResult("cron", False, "exit code 5")]
    run_report = report.RunReport(FOUND, plan.EffectiveActionSet())
    run_report.add(report.from_items("services", "Remove services", items))

    text = _render_summary(run_report)

    assert "failed" in text
    assert "- cron: exit code 5" in text
    assert "sshd" not in text
    assert "Restart recommended" in text


def test_from_items_aggregation() -> None:
    """!
    @brief Empty, all-ok and partially failed item lists fold as expected.
    """

    empty = report.from_items("cache", "Remove download caches", [])
    assert empty.status is StepStatus.NO_CHANGES

    ok = report.from_items("cache", "Remove download caches", [report.ItemResult("a", True)])
    assert ok.status is StepStatus.SUCCEEDED and ok.state_changed

    dry = report.from_items("cache", "Remove download caches", [report.ItemResult("a", True)], dry_run=True)
    assert dry.reason == "dry-run" and not dry.state_changed

    failed = report.from_items("cache", "Remove download caches", [report.ItemResult("a", False, "locked")])
    assert failed.status is StepStatus.FAILED and not failed.state_changed
