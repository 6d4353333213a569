"""!
@brief Primary entry point for the Cygwin Janitor CLI.
@details Parses flags (optionally layered over a JSON config file), sets up
logging, enforces the administrative precondition, and hands over to
:func:`cygwin_janitor.scrub.run`. The process exits 0 whenever the pass
completes, even with per-step failures; 1 is reserved for a missing
elevation or a malformed invocation.
"""
from __future__ import annotations

import argparse
import ctypes
import json
import logging
import os
import pathlib
import sys
from typing import Dict, Iterable, Mapping, Optional

from . import constants, logging_ext, plan, safety, scrub, ui, version

EXIT_OK = 0
EXIT_PRECONDITION = 1
EXIT_ABORTED = 130

ACTION_FLAGS: Dict[str, str] = {
    "remove-services": "services",
    "remove-config": "config",
    "reset-security-hook": "security_hook",
    "scrub-path-vars": "path_vars",
    "remove-cache": "cache",
    "remove-shortcuts": "shortcuts",
    "remove-directory": "directory",
}
"""!
@brief CLI/config flag name to :class:`plan.ActionRequest` field.
"""

_BOOLEAN_OPTIONS = tuple(ACTION_FLAGS) + (
    "all-safe",
    "unattended",
    "verbose",
    "dry-run",
    "json",
    "no-color",
)


def enable_vt_mode_if_possible() -> None:
    """!
    @brief Turn on ANSI escape processing for Windows consoles, best effort.
    """

    if os.name != "nt":  # pragma: no cover - Windows behaviour only
        return
    try:
        from ctypes import wintypes

        kernel32 = ctypes.windll.kernel32  # type: ignore[attr-defined]
    except (ImportError, AttributeError, OSError):  # pragma: no cover
        return

    for std_handle in (-11, -12):  # STD_OUTPUT_HANDLE, STD_ERROR_HANDLE
        handle = kernel32.GetStdHandle(std_handle)
        if not handle:
            continue
        mode = wintypes.DWORD()
        if kernel32.GetConsoleMode(handle, ctypes.byref(mode)):
            kernel32.SetConsoleMode(handle, mode.value | 0x0004)


def build_arg_parser() -> argparse.ArgumentParser:
    """!
    @brief Create the argument parser.
    """

    parser = argparse.ArgumentParser(
        prog="cygwin-janitor",
        description="Locate a Cygwin installation and remove its footprint from this machine.",
    )
    metadata = version.build_info()
    parser.add_argument(
        "-V",
        "--version",
        action="version",
        version=f"{metadata['version']} ({metadata['build']})",
    )
    parser.add_argument("--path", metavar="DIR", help="Installation root to use instead of auto-detection.")
    parser.add_argument("--unattended", action="store_true", help="Run without prompts; only flagged actions run.")

    actions = parser.add_argument_group("Actions")
    actions.add_argument("--remove-directory", action="store_true", help="Delete the installation root (implies services, Path scrub and process termination).")
    actions.add_argument("--remove-config", action="store_true", help="Delete the Cygwin registry keys.")
    actions.add_argument("--remove-services", action="store_true", help="Stop and delete services running from the root.")
    actions.add_argument("--remove-cache", action="store_true", help="Delete leftover setup download caches.")
    actions.add_argument("--scrub-path-vars", action="store_true", help="Remove root entries from the machine and user Path.")
    actions.add_argument("--remove-shortcuts", action="store_true", help="Delete Start Menu folders and desktop shortcuts.")
    actions.add_argument("--reset-security-hook", action="store_true", help="Remove the cyglsa LSA authentication package (reboot required).")
    actions.add_argument("--all-safe", action="store_true", help="Enable every action above.")

    output = parser.add_argument_group("Output")
    output.add_argument("--verbose", action="store_true", help="Show debug detail.")
    output.add_argument("--dry-run", action="store_true", help="Report what would be done without changing anything.")
    output.add_argument("--logdir", metavar="DIR", help="Also write text and JSONL logs to DIR.")
    output.add_argument("--json", action="store_true", help="Mirror structured events to stdout.")
    output.add_argument("--no-color", action="store_true", help="Disable ANSI colours.")

    parser.add_argument("--config", metavar="FILE", help="JSON file with default values for the flags above.")
    parser.add_argument(
        "--unattended-delay",
        metavar="SEC",
        type=float,
        help=f"Grace period before an unattended run starts (default {constants.UNATTENDED_DELAY_SECONDS}).",
    )
    return parser


def load_config_file(config_path: str | None) -> dict[str, object]:
    """!
    @brief Load and parse a JSON configuration file.
    @param config_path Path to the JSON file, or ``None`` to skip.
    @returns Dictionary of options, empty when no file was given.
    @raises SystemExit(1) When the file cannot be read or parsed.
    """

    if not config_path:
        return {}

    path = pathlib.Path(config_path).expanduser().resolve()
    if not path.exists():
        print(f"Error: Configuration file not found: {path}", file=sys.stderr)
        raise SystemExit(EXIT_PRECONDITION)
    try:
        with open(path, encoding="utf-8") as handle:
            config = json.load(handle)
    except json.JSONDecodeError as exc:
        print(f"Error: Invalid JSON in configuration file: {path}\n{exc}", file=sys.stderr)
        raise SystemExit(EXIT_PRECONDITION) from exc
    except OSError as exc:
        print(f"Error: Cannot read configuration file: {path}\n{exc}", file=sys.stderr)
        raise SystemExit(EXIT_PRECONDITION) from exc
    if not isinstance(config, dict):
        print(f"Error: Configuration file must contain a JSON object: {path}", file=sys.stderr)
        raise SystemExit(EXIT_PRECONDITION)
    return config


def collect_options(args: argparse.Namespace) -> dict[str, object]:
    """!
    @brief Merge CLI arguments over the config file over built-in defaults.
    @details Boolean flags are enabled when set on the command line or set to
    ``true`` in the config file. Config keys use the long flag names
    (``"remove-directory"``), CLI attributes use underscores. A config value
    of the wrong type is a malformed invocation and exits with
    :data:`EXIT_PRECONDITION`.
    """

    config = load_config_file(getattr(args, "config", None))
    options: dict[str, object] = {}
    for name in _BOOLEAN_OPTIONS:
        config_value = config.get(name)
        if config_value is not None and not isinstance(config_value, bool):
            print(f"Error: {name} must be true or false, got {config_value!r}", file=sys.stderr)
            raise SystemExit(EXIT_PRECONDITION)
        cli_value = bool(getattr(args, name.replace("-", "_"), False))
        options[name] = cli_value or config_value is True

    for name in ("path", "logdir"):
        cli_value = getattr(args, name, None)
        value = cli_value if cli_value is not None else config.get(name)
        if value is not None and not isinstance(value, str):
            print(f"Error: {name} must be a string, got {value!r}", file=sys.stderr)
            raise SystemExit(EXIT_PRECONDITION)
        options[name] = value

    delay = getattr(args, "unattended_delay", None)
    if delay is None:
        delay = config.get("unattended-delay", constants.UNATTENDED_DELAY_SECONDS)
    try:
        options["unattended-delay"] = max(0.0, float(delay))  # type: ignore[arg-type]
    except (TypeError, ValueError):
        print(f"Error: unattended-delay must be a number, got {delay!r}", file=sys.stderr)
        raise SystemExit(EXIT_PRECONDITION) from None
    return options


def build_request(options: Mapping[str, object]) -> plan.ActionRequest:
    """!
    @brief Translate resolved options into an :class:`plan.ActionRequest`.
    """

    flags = {field: bool(options.get(flag)) for flag, field in ACTION_FLAGS.items()}
    return plan.ActionRequest(
        **flags,
        all_safe=bool(options.get("all-safe")),
        unattended=bool(options.get("unattended")),
    )


def _use_color(options: Mapping[str, object]) -> bool:
    if options.get("no-color") or os.environ.get("NO_COLOR"):
        return False
    isatty = getattr(sys.stdout, "isatty", None)
    return bool(isatty and isatty())


def main(argv: Optional[Iterable[str]] = None) -> int:
    """!
    @brief Entry point for the ``cygwin-janitor`` console script.
    @returns Process exit code.
    """

    enable_vt_mode_if_possible()
    parser = build_arg_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)
    try:
        options = collect_options(args)
    except SystemExit as exc:
        return int(exc.code or EXIT_PRECONDITION)

    use_color = _use_color(options)
    logdir = options.get("logdir")
    human_log, machine_log = logging_ext.setup_logging(
        pathlib.Path(str(logdir)).expanduser() if logdir else None,
        level=logging.DEBUG if options["verbose"] else logging.INFO,
        json_to_stdout=bool(options["json"]),
        use_color=use_color,
    )

    dry_run = bool(options["dry-run"])
    try:
        safety.evaluate_runtime_environment(is_admin=safety.is_admin(), dry_run=dry_run)
    except PermissionError as exc:
        human_log.error("%s", exc)
        machine_log.error("precondition_failed", extra={"event": "precondition_failed", "error": str(exc)})
        return EXIT_PRECONDITION

    request = build_request(options)
    machine_log.info(
        "startup",
        extra={
            "event": "startup",
            "request": {name: getattr(request, name) for name in request.__dataclass_fields__},
            "dry_run": dry_run,
        },
    )

    def announce(target, actions) -> None:
        ui.render_banner(target, actions, dry_run=dry_run, use_color=use_color)

    try:
        run_report = scrub.run(
            request,
            explicit_path=options.get("path") or None,  # type: ignore[arg-type]
            dry_run=dry_run,
            announce=announce,
            delay_seconds=float(options["unattended-delay"]),  # type: ignore[arg-type]
        )
    except KeyboardInterrupt:
        human_log.warning("Aborted by operator.")
        return EXIT_ABORTED

    ui.render_summary(run_report, use_color=use_color)
    return EXIT_OK


if __name__ == "__main__":  # pragma: no cover - for manual execution
    sys.exit(main())
