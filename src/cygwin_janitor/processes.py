"""!
@brief Discovery and forced termination of processes running from the installation root.
@details Terminating ``bash.exe``, ``mintty.exe`` and other binaries under the
root releases their file handles before the directory is deleted. This is a
best-effort step: a process that cannot be killed is logged and the rest
continue.
"""
from __future__ import annotations

import os
from typing import List, Sequence

import psutil

from . import detect, fs_tools, logging_ext, report


def find_processes(target: detect.InstallationTarget) -> List[report.RemovableItem]:
    """!
    @brief Enumerate processes whose executable image lives under ``target``.
    @details The current interpreter is never returned, even when it runs from
    the installation root.
    """

    if not target.resolved:
        return []

    human_logger = logging_ext.get_human_logger()
    own_pid = os.getpid()
    matches: List[report.RemovableItem] = []
    for proc in psutil.process_iter(attrs=["pid", "name", "exe"]):
        info = proc.info
        pid = info.get("pid")
        exe = info.get("exe") or ""
        if pid == own_pid or not exe:
            continue
        if fs_tools.is_path_under(exe, target.root_path):
            human_logger.info("Found process %s (pid %s)", info.get("name") or exe, pid)
            matches.append(report.RemovableItem(str(pid), exe, "image under installation root"))
    return matches


def terminate_processes(
    items: Sequence[report.RemovableItem], *, dry_run: bool = False, timeout: float = 5.0
) -> List[report.ItemResult]:
    """!
    @brief Force-kill each candidate by process id.
    """

    human_logger = logging_ext.get_human_logger()
    machine_logger = logging_ext.get_machine_logger()

    results: List[report.ItemResult] = []
    for item in items:
        label = str(item)
        machine_logger.info(
            "terminate_process_plan",
            extra={
                "event": "terminate_process_plan",
                "pid": item.identifier,
                "exe": item.path,
                "dry_run": dry_run,
            },
        )
        if dry_run:
            human_logger.info("Dry-run: would terminate %s", label)
            results.append(report.ItemResult(label, True, "dry-run"))
            continue
        try:
            proc = psutil.Process(int(item.identifier))
            proc.kill()
            proc.wait(timeout=timeout)
        except psutil.NoSuchProcess:
            results.append(report.ItemResult(label, True, "already exited"))
            continue
        except (psutil.AccessDenied, psutil.TimeoutExpired, OSError, ValueError) as exc:
            human_logger.error("Failed to terminate %s: %s", label, exc)
            machine_logger.error(
                "terminate_process_failed",
                extra={"event": "terminate_process_failed", "pid": item.identifier, "error": repr(exc)},
            )
            results.append(report.ItemResult(label, False, str(exc) or type(exc).__name__))
            continue
        human_logger.info("Terminated %s", label)
        results.append(report.ItemResult(label, True, "terminated"))
    return results


__all__ = ["find_processes", "terminate_processes"]
