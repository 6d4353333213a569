"""!
@brief Service discovery and removal.
@details Services are discovered from the service control manager's registry
database and kept only when their executable lives under the installation
root (``cygserver``, ``sshd``, ``cron`` and friends registered through
``cygrunsrv``). Removal wraps ``sc.exe``: stop, wait, re-query, then delete,
with a WMI based fallback when ``sc delete`` fails for another reason than
the service already being gone.
"""
from __future__ import annotations

import os
import time
from typing import List, Sequence

from . import constants, detect, exec_utils, fs_tools, logging_ext, registry_tools, report


def parse_image_path(image_path: str) -> str:
    """!
    @brief Extract the executable from a service ``ImagePath`` value.
    @details Handles quoted paths, NT ``\\??\\`` prefixes, ``%VAR%`` expansion,
    and unquoted paths followed by arguments.
    """

    text = os.path.expandvars(str(image_path or "").strip())
    if text.startswith("\\??\\"):
        text = text[4:]
    if text.startswith('"'):
        end = text.find('"', 1)
        return text[1:end] if end > 0 else text[1:]
    lowered = text.lower()
    marker = lowered.find(".exe")
    if marker >= 0:
        return text[: marker + 4]
    return text.split(" ", 1)[0]


def find_services(target: detect.InstallationTarget) -> List[report.RemovableItem]:
    """!
    @brief Enumerate Win32 services whose binary lives under ``target``.
    @returns Candidates with the matched executable path as justification.
    """

    human_logger = logging_ext.get_human_logger()
    if not target.resolved:
        return []

    try:
        names = list(registry_tools.iter_subkeys(constants.HKLM, constants.SERVICES_KEY))
    except OSError as exc:
        human_logger.warning("Unable to enumerate services: %s", exc)
        return []

    matches: List[report.RemovableItem] = []
    for name in names:
        key = f"{constants.SERVICES_KEY}\\{name}"
        service_type = registry_tools.get_value(constants.HKLM, key, "Type", 0)
        if not isinstance(service_type, int) or not service_type & constants.WIN32_SERVICE_TYPE_MASK:
            continue
        image_path = registry_tools.get_value(constants.HKLM, key, "ImagePath")
        if not isinstance(image_path, str) or not image_path.strip():
            continue
        executable = parse_image_path(image_path)
        if fs_tools.is_path_under(executable, target.root_path):
            human_logger.info("Found service %s (%s)", name, executable)
            matches.append(report.RemovableItem(name, executable, "binary under installation root"))
    return matches


def query_service_status(
    service: str,
    *,
    retries: int = 3,
    delay: float = 1.0,
    timeout: int = 30,
) -> str:
    """!
    @brief Query the current state of a service with retry support.
    @details Runs ``sc query`` up to ``retries`` times. The recognised state
    token (``RUNNING``, ``STOPPED``, ...) is returned in uppercase, or
    ``"UNKNOWN"`` when every attempt fails.
    """

    human_logger = logging_ext.get_human_logger()

    for attempt in range(1, max(1, retries) + 1):
        result = exec_utils.run_command(
            ["sc.exe", "query", service],
            event="service_query",
            timeout=timeout,
            extra={"service": service, "attempt": attempt},
        )
        if result.returncode == exec_utils.MISSING_EXECUTABLE:
            return "UNKNOWN"
        if result.returncode == constants.SERVICE_DOES_NOT_EXIST:
            return "MISSING"
        if result.ok:
            status = _parse_service_state(result.stdout)
            if status:
                return status
        if attempt < retries:
            time.sleep(delay)

    human_logger.debug("Service %s status unknown after %d attempts", service, retries)
    return "UNKNOWN"


def _parse_service_state(output: str) -> str:
    for line in output.splitlines():
        stripped = line.strip()
        if stripped.upper().startswith("STATE"):
            _, _, remainder = stripped.partition(":")
            tokens = remainder.strip().split()
            if tokens:
                return tokens[-1].upper()
    return ""


def _fallback_delete(service: str, *, dry_run: bool) -> exec_utils.CommandResult:
    quoted = service.replace("'", "''")
    script = (
        f"$s = Get-CimInstance Win32_Service -Filter \"Name='{quoted}'\"; "
        "if ($null -eq $s) { exit 0 }; "
        "$r = Invoke-CimMethod -InputObject $s -MethodName Delete; "
        "exit [int]$r.ReturnValue"
    )
    return exec_utils.run_command(
        ["powershell.exe", "-NoProfile", "-ExecutionPolicy", "Bypass", "-Command", script],
        event="service_delete_fallback",
        timeout=60,
        dry_run=dry_run,
        extra={"service": service},
    )


def remove_service(
    item: report.RemovableItem,
    *,
    dry_run: bool = False,
    wait_seconds: float = constants.SERVICE_STOP_WAIT_SECONDS,
) -> report.ItemResult:
    """!
    @brief Stop and delete one service.
    @details A service that is still running after the wait is only logged;
    deletion is attempted regardless. "Does not exist" counts as success.
    """

    human_logger = logging_ext.get_human_logger()
    service = item.identifier

    exec_utils.run_command(
        ["sc.exe", "stop", service],
        event="service_stop",
        timeout=30,
        dry_run=dry_run,
        human_message=f"Stopping service {service}",
        extra={"service": service},
    )
    if not dry_run:
        time.sleep(wait_seconds)
        status = query_service_status(service, retries=1)
        if status not in ("STOPPED", "MISSING"):
            human_logger.warning("Service %s reports %s after stop request; deleting anyway.", service, status)

    primary = exec_utils.run_command(
        ["sc.exe", "delete", service],
        event="service_delete",
        timeout=30,
        dry_run=dry_run,
        human_message=f"Deleting service {service}",
        extra={"service": service},
    )
    if primary.skipped:
        return report.ItemResult(service, True, "dry-run")
    if primary.ok:
        return report.ItemResult(service, True, "deleted")
    if primary.returncode == constants.SERVICE_DOES_NOT_EXIST:
        human_logger.info("Service %s no longer exists", service)
        return report.ItemResult(service, True, "already removed")

    human_logger.warning("sc delete failed for %s (%s); trying WMI.", service, primary.describe())
    fallback = _fallback_delete(service, dry_run=dry_run)
    if fallback.ok:
        human_logger.info("Deleted service %s via WMI", service)
        return report.ItemResult(service, True, "deleted via WMI")

    human_logger.error("Failed to delete service %s", service)
    return report.ItemResult(
        service,
        False,
        f"sc delete: {primary.describe()}; WMI: {fallback.describe()}",
    )


def remove_services(
    items: Sequence[report.RemovableItem],
    *,
    dry_run: bool = False,
    wait_seconds: float = constants.SERVICE_STOP_WAIT_SECONDS,
) -> List[report.ItemResult]:
    """!
    @brief Remove each service in turn; one failure never stops the rest.
    """

    return [remove_service(item, dry_run=dry_run, wait_seconds=wait_seconds) for item in items]


__all__ = [
    "find_services",
    "parse_image_path",
    "query_service_status",
    "remove_service",
    "remove_services",
]
