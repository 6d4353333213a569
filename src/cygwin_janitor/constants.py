"""!
@brief Static data for Cygwin Janitor.
@details Centralises registry roots, product fingerprints, security policy
identifiers, and the fixed scan locations so detection and cleanup modules
work from a single source of truth.
"""
from __future__ import annotations

import os
from pathlib import Path
from typing import Dict, Tuple

try:  # pragma: no cover - Windows registry handles are optional on test hosts.
    import winreg
except ImportError:  # pragma: no cover - test scaffolding supplies substitutes.
    winreg = None  # type: ignore[assignment]


if winreg is not None:  # pragma: no branch - deterministic assignments.
    HKLM = winreg.HKEY_LOCAL_MACHINE
    HKCU = winreg.HKEY_CURRENT_USER
    REG_SZ = winreg.REG_SZ
    REG_EXPAND_SZ = winreg.REG_EXPAND_SZ
    REG_MULTI_SZ = winreg.REG_MULTI_SZ
else:  # pragma: no cover - exercised implicitly in non-Windows CI.
    HKLM = 0x80000002
    HKCU = 0x80000001
    REG_SZ = 1
    REG_EXPAND_SZ = 2
    REG_MULTI_SZ = 7


REGISTRY_ROOTS: Dict[str, int] = {
    "HKLM": HKLM,
    "HKCU": HKCU,
}

PRODUCT_KEYWORD = "cygwin"
"""!
@brief Lower-case token used for loose name matching (caches, shortcuts).
"""

INSTALL_FINGERPRINT_FILES: Tuple[Tuple[str, ...], ...] = (
    ("Cygwin.bat",),
    ("bin", "cygwin1.dll"),
)

INSTALL_FINGERPRINT_DIRS: Tuple[Tuple[str, ...], ...] = (
    ("etc", "setup"),
)

ROOTDIR_LOOKUPS: Tuple[Tuple[int, str], ...] = (
    (HKLM, r"SOFTWARE\Cygwin\setup"),
    (HKLM, r"SOFTWARE\WOW6432Node\Cygwin\setup"),
    (HKCU, r"SOFTWARE\Cygwin\setup"),
)

ROOTDIR_VALUE = "rootdir"

WELL_KNOWN_DIRECTORY_NAMES = ("cygwin64", "cygwin")

CONFIG_SUBTREES: Tuple[Tuple[int, str], ...] = (
    (HKLM, r"SOFTWARE\Cygwin"),
    (HKCU, r"SOFTWARE\Cygwin"),
)

SERVICES_KEY = r"SYSTEM\CurrentControlSet\Services"

WIN32_SERVICE_TYPE_MASK = 0x30
"""!
@brief ``SERVICE_WIN32_OWN_PROCESS | SERVICE_WIN32_SHARE_PROCESS``.
"""

SERVICE_STOP_WAIT_SECONDS = 3.0

SERVICE_DOES_NOT_EXIST = 1060
"""!
@brief ``ERROR_SERVICE_DOES_NOT_EXIST`` as reported by ``sc.exe``.
"""

LSA_KEY = r"SYSTEM\CurrentControlSet\Control\Lsa"

LSA_PACKAGES_VALUE = "Authentication Packages"

SECURITY_HOOK_IDENTIFIERS = ("cyglsa", "cyglsa64")

SECURITY_CORE_IDENTIFIER = "msv1_0"

MACHINE_ENVIRONMENT_KEY = r"SYSTEM\CurrentControlSet\Control\Session Manager\Environment"

USER_ENVIRONMENT_KEY = "Environment"

PATH_VALUE = "Path"

PATH_DELIMITER = ";"

CACHE_NAME_PREFIXES = ("http%3a%2f%2f", "https%3a%2f%2f", "ftp%3a%2f%2f")

CACHE_ARCH_MARKERS = ("x86", "x86_64")

MENU_FOLDER_NAME = "Cygwin"

SHORTCUT_SUFFIX = ".lnk"

UNATTENDED_DELAY_SECONDS = 5


def well_known_locations() -> Tuple[Path, ...]:
    """!
    @brief Conventional installation roots probed after the registry lookup.
    """

    drive = os.environ.get("SystemDrive") or "C:"
    return tuple(Path(f"{drive}\\{name}") for name in WELL_KNOWN_DIRECTORY_NAMES)


def cache_scan_roots() -> Tuple[Path, ...]:
    """!
    @brief User profile directories searched for leftover download caches.
    """

    home = Path.home()
    return (home / "Downloads", home / "Desktop", home)


def _start_menu_programs(base: str | None) -> Path | None:
    if not base:
        return None
    return Path(base) / "Microsoft" / "Windows" / "Start Menu" / "Programs"


def menu_roots() -> Tuple[Path, ...]:
    """!
    @brief Machine-wide and per-user Start Menu program folders.
    """

    roots = (
        _start_menu_programs(os.environ.get("ProgramData")),
        _start_menu_programs(os.environ.get("APPDATA")),
    )
    return tuple(root for root in roots if root is not None)


def desktop_roots() -> Tuple[Path, ...]:
    """!
    @brief Public and per-user desktop folders.
    """

    roots = []
    public = os.environ.get("PUBLIC")
    if public:
        roots.append(Path(public) / "Desktop")
    roots.append(Path.home() / "Desktop")
    return tuple(roots)
