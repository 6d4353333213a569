"""!
@brief Installation root detection.
@details The root is resolved through a prioritised fallback chain: an
explicit operator override, the ``rootdir`` value written by the Cygwin setup
program, and finally the conventional ``C:\\cygwin64``/``C:\\cygwin``
locations. Detection only reads the registry and filesystem.
"""
from __future__ import annotations

import enum
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional

from . import constants, logging_ext, registry_tools


class ResolutionSource(str, enum.Enum):
    EXPLICIT_OVERRIDE = "explicit override"
    CONFIG_STORE = "registry"
    WELL_KNOWN_LOCATION = "well-known location"
    NOT_FOUND = "not found"


@dataclass(frozen=True)
class InstallationTarget:
    """!
    @brief The resolved installation root, computed once per run.
    @details ``root_path`` is empty whenever ``resolved`` is ``False``.
    """

    root_path: str = ""
    resolved: bool = False
    source: ResolutionSource = ResolutionSource.NOT_FOUND

    @classmethod
    def not_found(cls) -> "InstallationTarget":
        return cls()


def normalize_root(raw: str) -> str:
    """!
    @brief Absolute, normalised form of ``raw`` without a trailing separator.
    """

    expanded = os.path.expandvars(os.path.expanduser(raw.strip().strip('"')))
    return os.path.normpath(os.path.abspath(expanded))


def has_fingerprint(root: Path) -> bool:
    """!
    @brief Check ``root`` for at least one installation marker.
    """

    for parts in constants.INSTALL_FINGERPRINT_FILES:
        if root.joinpath(*parts).is_file():
            return True
    for parts in constants.INSTALL_FINGERPRINT_DIRS:
        if root.joinpath(*parts).is_dir():
            return True
    return False


def _from_explicit(explicit_path: str) -> Optional[str]:
    human_logger = logging_ext.get_human_logger()
    candidate = normalize_root(explicit_path)
    if not os.path.isdir(candidate):
        human_logger.warning("Supplied path %s does not exist; trying other detection methods.", candidate)
        return None
    if not has_fingerprint(Path(candidate)):
        human_logger.warning(
            "Supplied path %s does not look like a Cygwin installation; trying other detection methods.",
            candidate,
        )
        return None
    return candidate


def _from_registry() -> Optional[str]:
    human_logger = logging_ext.get_human_logger()
    for root, path in constants.ROOTDIR_LOOKUPS:
        value = registry_tools.get_value(root, path, constants.ROOTDIR_VALUE)
        if not isinstance(value, str) or not value.strip():
            continue
        candidate = normalize_root(value)
        if os.path.isdir(candidate):
            human_logger.debug(
                "Registry %s points at %s", registry_tools.format_key(root, path), candidate
            )
            return candidate
        human_logger.debug("Registry rootdir %s no longer exists", candidate)
    return None


def _from_well_known(locations: Iterable[Path]) -> Optional[str]:
    for location in locations:
        if location.is_dir() and has_fingerprint(location):
            return normalize_root(str(location))
    return None


def resolve_installation(explicit_path: str | None = None) -> InstallationTarget:
    """!
    @brief Locate the installation root, first successful strategy wins.
    @details A rejected explicit path is only a warning; detection continues
    with the registry and the well-known locations.
    @param explicit_path Optional operator supplied root.
    @returns Immutable :class:`InstallationTarget`.
    """

    machine_logger = logging_ext.get_machine_logger()

    target = InstallationTarget.not_found()
    if explicit_path:
        found = _from_explicit(explicit_path)
        if found:
            target = InstallationTarget(found, True, ResolutionSource.EXPLICIT_OVERRIDE)
    if not target.resolved:
        found = _from_registry()
        if found:
            target = InstallationTarget(found, True, ResolutionSource.CONFIG_STORE)
    if not target.resolved:
        found = _from_well_known(constants.well_known_locations())
        if found:
            target = InstallationTarget(found, True, ResolutionSource.WELL_KNOWN_LOCATION)

    machine_logger.info(
        "detect_result",
        extra={
            "event": "detect_result",
            "root_path": target.root_path,
            "resolved": target.resolved,
            "source": target.source.value,
        },
    )
    return target


__all__ = [
    "InstallationTarget",
    "ResolutionSource",
    "has_fingerprint",
    "normalize_root",
    "resolve_installation",
]
