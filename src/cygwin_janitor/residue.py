"""!
@brief Leftover download caches and shortcuts.
@details ``setup-x86_64.exe`` stores downloaded packages next to itself in a
folder named after the URL-encoded mirror (``http%3a%2f%2fmirror...``) with
``x86``/``x86_64`` subfolders. Those folders usually end up in the Downloads
folder, on the desktop, or in the profile root. Shortcuts live in a fixed
pair of Start Menu folders and on the public and per-user desktops; anything
outside these locations is left for the operator to check.
"""
from __future__ import annotations

import os
from pathlib import Path
from typing import Dict, Iterable, List, Sequence

from . import constants, detect, fs_tools, logging_ext, report


def is_cache_directory(path: Path, target: detect.InstallationTarget) -> bool:
    """!
    @brief Heuristic for a setup download cache.
    @details Name starts with a URL-scheme prefix or contains ``cygwin``, the
    folder holds an architecture subfolder, and it does not resolve to the
    installation root (only checked when the root is known).
    """

    name = path.name.lower()
    name_matches = name.startswith(constants.CACHE_NAME_PREFIXES) or constants.PRODUCT_KEYWORD in name
    if not name_matches:
        return False
    if not any((path / marker).is_dir() for marker in constants.CACHE_ARCH_MARKERS):
        return False
    if target.resolved and fs_tools.normalize_for_compare(path.resolve()) == fs_tools.normalize_for_compare(
        Path(target.root_path).resolve()
    ):
        return False
    return True


def _is_link(path: Path) -> bool:
    """!
    @brief True for symbolic links and NTFS junctions.
    """

    if path.is_symlink():
        return True
    isjunction = getattr(os.path, "isjunction", None)
    return bool(isjunction and isjunction(path))


def find_cache_directories(
    target: detect.InstallationTarget, roots: Iterable[Path] | None = None
) -> List[report.RemovableItem]:
    """!
    @brief Scan the top level of each root for cache folders, de-duplicated by path.
    """

    human_logger = logging_ext.get_human_logger()
    scan_roots = constants.cache_scan_roots() if roots is None else roots

    seen: Dict[str, report.RemovableItem] = {}
    for root in scan_roots:
        try:
            children = sorted(root.iterdir())
        except OSError:
            continue
        for child in children:
            try:
                if _is_link(child):
                    human_logger.debug("Ignoring linked folder %s", child)
                    continue
                if not child.is_dir() or not is_cache_directory(child, target):
                    continue
                key = fs_tools.normalize_for_compare(child.resolve())
            except OSError:
                continue
            if key not in seen:
                human_logger.info("Found download cache %s", child)
                seen[key] = report.RemovableItem(str(child), str(child), f"cache folder in {root}")
    return list(seen.values())


def find_menu_folders(roots: Iterable[Path] | None = None) -> List[report.RemovableItem]:
    """!
    @brief Return the Start Menu product folders that exist.
    """

    scan_roots = constants.menu_roots() if roots is None else roots
    found: List[report.RemovableItem] = []
    for root in scan_roots:
        folder = root / constants.MENU_FOLDER_NAME
        if folder.is_dir():
            found.append(report.RemovableItem(str(folder), str(folder), "start menu folder"))
    return found


def find_desktop_shortcuts(roots: Iterable[Path] | None = None) -> List[report.RemovableItem]:
    """!
    @brief Return ``*.lnk`` files on the desktops whose name mentions the product.
    """

    scan_roots = constants.desktop_roots() if roots is None else roots
    found: List[report.RemovableItem] = []
    for root in scan_roots:
        try:
            entries = sorted(root.iterdir())
        except OSError:
            continue
        for entry in entries:
            name = entry.name.lower()
            if (
                name.endswith(constants.SHORTCUT_SUFFIX)
                and constants.PRODUCT_KEYWORD in name
                and entry.is_file()
            ):
                found.append(report.RemovableItem(str(entry), str(entry), "desktop shortcut"))
    return found


def find_shortcuts(
    menu_roots: Iterable[Path] | None = None, desktop_roots: Iterable[Path] | None = None
) -> List[report.RemovableItem]:
    """!
    @brief Menu folders followed by desktop shortcut files.
    """

    return find_menu_folders(menu_roots) + find_desktop_shortcuts(desktop_roots)


def remove_directories(
    items: Sequence[report.RemovableItem], *, dry_run: bool = False
) -> List[report.ItemResult]:
    """!
    @brief Recursively delete each folder; one failure does not stop the others.
    """

    return [fs_tools.remove_tree(Path(item.path), dry_run=dry_run) for item in items]


def remove_shortcuts(
    items: Sequence[report.RemovableItem], *, dry_run: bool = False
) -> List[report.ItemResult]:
    """!
    @brief Delete folders recursively and shortcut files plainly.
    """

    results: List[report.ItemResult] = []
    for item in items:
        path = Path(item.path)
        if path.is_dir():
            results.append(fs_tools.remove_tree(path, dry_run=dry_run))
        else:
            results.append(fs_tools.remove_file(path, dry_run=dry_run))
    return results


__all__ = [
    "find_cache_directories",
    "find_desktop_shortcuts",
    "find_menu_folders",
    "find_shortcuts",
    "is_cache_directory",
    "remove_directories",
    "remove_shortcuts",
]
