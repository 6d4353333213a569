"""!
@brief Subprocess execution helpers with sanitised environments.
@details Every call to ``sc.exe``, ``reg.exe`` or PowerShell goes through
:func:`run_command` so that telemetry, dry-run handling, and failure mapping
stay uniform. The helper never raises for process-level failures; callers
inspect the returned :class:`CommandResult` instead.
"""

from __future__ import annotations

import os
import subprocess
import time
from collections.abc import Mapping, MutableMapping, Sequence
from dataclasses import dataclass

from . import logging_ext

_SANITIZE_BLOCKLIST = {
    "PYTHONPATH",
    "PYTHONHOME",
    "PYTHONWARNINGS",
    "VIRTUAL_ENV",
    "CONDA_PREFIX",
    "__PYVENV_LAUNCHER__",
}

MISSING_EXECUTABLE = 127
"""!
@brief Return code reported when the executable could not be located.
"""


@dataclass
class CommandResult:
    """!
    @brief Outcome information from :func:`run_command`.
    @details ``skipped`` marks dry-run results, ``timed_out`` marks commands
    that exceeded their timeout, and ``error`` carries the launcher failure
    text when the process could not be started.
    """

    command: Sequence[str]
    returncode: int
    stdout: str
    stderr: str
    duration: float
    skipped: bool = False
    timed_out: bool = False
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.returncode == 0 and not self.error

    def describe(self) -> str:
        """!
        @brief Short human readable reason for a failed command.
        """

        if self.timed_out:
            return "timed out"
        if self.returncode == MISSING_EXECUTABLE:
            return f"{self.command[0]} not available"
        if self.error:
            return self.error
        text = (self.stderr or self.stdout or "").strip()
        last_line = text.splitlines()[-1].strip() if text else ""
        suffix = f": {last_line}" if last_line else ""
        return f"exit code {self.returncode}{suffix}"


def sanitize_environment(
    base_env: Mapping[str, str] | None = None,
) -> MutableMapping[str, str]:
    """!
    @brief Produce a subprocess environment stripped of interpreter artefacts.
    @param base_env Source mapping, defaults to :data:`os.environ`.
    @returns Mutable mapping ready for subprocess invocation.
    """

    source = os.environ if base_env is None else base_env
    environment: MutableMapping[str, str] = {
        str(key): str(value) for key, value in source.items() if value is not None
    }
    for key in _SANITIZE_BLOCKLIST:
        environment.pop(key, None)
    return environment


def run_command(
    command: Sequence[str],
    *,
    event: str,
    timeout: int | float | None = None,
    dry_run: bool = False,
    human_message: str | None = None,
    extra: Mapping[str, object] | None = None,
) -> CommandResult:
    """!
    @brief Execute ``command`` with consistent logging and environment hygiene.
    @details Emits ``<event>_plan`` before and ``<event>_result`` after the
    call (or ``_missing``, ``_timeout``, ``_error`` on launcher failures).
    In dry-run mode nothing is spawned and a ``skipped`` success is returned.
    @param command Command sequence to execute.
    @param event Base name for structured log events.
    @param timeout Optional timeout (seconds) passed to :func:`subprocess.run`.
    @param dry_run When ``True`` the command is only logged.
    @param human_message Optional message for the human channel.
    @param extra Additional metadata merged into machine log payloads.
    @returns :class:`CommandResult` describing the observed outcome.
    """

    human_logger = logging_ext.get_human_logger()
    machine_logger = logging_ext.get_machine_logger()

    command_list = [str(part) for part in command]
    context = dict(extra or {})

    def _emit(suffix: str, level: str = "info", **payload: object) -> None:
        name = f"{event}_{suffix}"
        getattr(machine_logger, level)(
            name,
            extra={"event": name, "command": command_list, **context, **payload},
        )

    _emit("plan", timeout=timeout, dry_run=dry_run)

    if dry_run:
        human_logger.info("%s [dry-run]", human_message or "Would execute " + " ".join(command_list))
        return CommandResult(
            command=command_list,
            returncode=0,
            stdout="",
            stderr="",
            duration=0.0,
            skipped=True,
        )

    if human_message:
        human_logger.info(human_message)

    start = time.monotonic()
    try:
        completed = subprocess.run(  # noqa: S603 - intentional command execution
            command_list,
            capture_output=True,
            text=True,
            timeout=timeout,
            check=False,
            env=sanitize_environment(),
        )
    except FileNotFoundError as exc:
        duration = time.monotonic() - start
        human_logger.debug("Command not found: %s", command_list[0])
        _emit("missing", "error", duration=duration, error=str(exc))
        return CommandResult(
            command=command_list,
            returncode=MISSING_EXECUTABLE,
            stdout="",
            stderr="",
            duration=duration,
            error=str(exc),
        )
    except subprocess.TimeoutExpired as exc:
        duration = time.monotonic() - start
        human_logger.warning("Command timed out after %.1fs: %s", duration, command_list[0])
        stdout = exc.stdout if isinstance(exc.stdout, str) else ""
        stderr = exc.stderr if isinstance(exc.stderr, str) else ""
        _emit("timeout", "error", duration=duration, stdout=stdout, stderr=stderr)
        return CommandResult(
            command=command_list,
            returncode=1,
            stdout=stdout,
            stderr=stderr,
            duration=duration,
            timed_out=True,
            error="timeout",
        )
    except OSError as exc:
        duration = time.monotonic() - start
        human_logger.error("Failed to execute %s: %s", command_list[0], exc)
        _emit("error", "error", duration=duration, error=str(exc))
        return CommandResult(
            command=command_list,
            returncode=1,
            stdout="",
            stderr="",
            duration=duration,
            error=str(exc),
        )

    duration = time.monotonic() - start
    _emit(
        "result",
        return_code=completed.returncode,
        stdout=completed.stdout,
        stderr=completed.stderr,
        duration=duration,
    )
    if completed.returncode != 0:
        human_logger.debug("Command %s exited with %s", command_list[0], completed.returncode)

    return CommandResult(
        command=command_list,
        returncode=completed.returncode,
        stdout=completed.stdout or "",
        stderr=completed.stderr or "",
        duration=duration,
    )


__all__ = ["CommandResult", "MISSING_EXECUTABLE", "run_command", "sanitize_environment"]
