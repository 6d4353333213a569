"""!
@brief Tests for download cache and shortcut discovery.
"""

from __future__ import annotations

import os
import pathlib
import sys

import pytest

PROJECT_ROOT = pathlib.Path(__file__).resolve().parents[1]
SRC_PATH = PROJECT_ROOT / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

from cygwin_janitor import detect, residue  # noqa: E402

NOT_FOUND = detect.InstallationTarget.not_found()


def _cache(parent: pathlib.Path, name: str, marker: str = "x86_64") -> pathlib.Path:
    folder = parent / name
    (folder / marker).mkdir(parents=True)
    return folder


def _link(link: pathlib.Path, target: pathlib.Path) -> pathlib.Path:
    try:
        os.symlink(target, link, target_is_directory=True)
    except (OSError, NotImplementedError):
        pytest.skip("symbolic links are not available")
    return link


def test_cache_predicate_needs_name_and_marker(tmp_path) -> None:
    """!
    @brief Name pattern and architecture subfolder are both required.
    """

    mirror = _cache(tmp_path, "https%3a%2f%2fmirrors.kernel.org%2fsourceware%2fcygwin%2f")
    named = _cache(tmp_path, "Cygwin-packages", "x86")
    no_marker = tmp_path / "http%3a%2f%2fexample.org%2f"
    no_marker.mkdir()
    wrong_name = _cache(tmp_path, "Downloads-old")

    assert residue.is_cache_directory(mirror, NOT_FOUND)
    assert residue.is_cache_directory(named, NOT_FOUND)
    assert not residue.is_cache_directory(no_marker, NOT_FOUND)
    assert not residue.is_cache_directory(wrong_name, NOT_FOUND)


def test_cache_predicate_excludes_installation_root(tmp_path) -> None:
    """!
    @brief The installation root itself never counts as a cache.
    """

    root = _cache(tmp_path, "cygwin64", "x86_64")
    target = detect.InstallationTarget(str(root), True, detect.ResolutionSource.EXPLICIT_OVERRIDE)

    assert not residue.is_cache_directory(root, target)


def test_cache_predicate_compares_resolved_root(tmp_path) -> None:
    """!
    @brief A root given through a linked path still matches the real folder.
    """

    root = _cache(tmp_path, "cygwin64", "x86_64")
    alias = _link(tmp_path / "cygroot", root)
    target = detect.InstallationTarget(str(alias), True, detect.ResolutionSource.EXPLICIT_OVERRIDE)

    assert not residue.is_cache_directory(root, target)


def test_linked_cache_folder_is_not_followed(tmp_path) -> None:
    """!
    @brief A link named like a cache never exposes its target to the sweep.
    """

    keep = _cache(tmp_path / "D_drive", "keep", "x86")
    downloads = tmp_path / "Downloads"
    downloads.mkdir()
    _link(downloads / "cygwin-mirror", keep)

    found = residue.find_cache_directories(NOT_FOUND, roots=[downloads])
    residue.remove_directories(found)

    assert found == []
    assert (keep / "x86").is_dir()


def test_link_to_installation_root_is_not_a_cache(tmp_path) -> None:
    """!
    @brief The installation root stays out of the cache sweep when reached through a link.
    """

    root = _cache(tmp_path, "cygwin64", "x86_64")
    target = detect.InstallationTarget(str(root), True, detect.ResolutionSource.EXPLICIT_OVERRIDE)
    downloads = tmp_path / "Downloads"
    downloads.mkdir()
    link = _link(downloads / "cygwin", root)

    found = residue.find_cache_directories(target, roots=[downloads])

    assert found == []
    assert not residue.is_cache_directory(link, target)
    assert (root / "x86_64").is_dir()


def test_find_cache_directories_deduplicates_and_stays_top_level(tmp_path) -> None:
    """!
    @brief Overlapping roots report each folder once; nested folders are not scanned.
    """

    downloads = tmp_path / "Downloads"
    downloads.mkdir()
    cache = _cache(downloads, "ftp%3a%2f%2fmirror%2f")
    nested_parent = downloads / "archive"
    _cache(nested_parent, "http%3a%2f%2fold%2f")
    (downloads / "notes-cygwin.txt").write_text("x", encoding="utf-8")

    found = residue.find_cache_directories(NOT_FOUND, roots=[downloads, downloads, tmp_path / "missing"])

    assert [item.path for item in found] == [str(cache)]


def test_find_shortcuts_menu_and_desktop(tmp_path) -> None:
    """!
    @brief Menu folders come first, then matching ``.lnk`` files.
    """

    programs = tmp_path / "Programs"
    menu = programs / "Cygwin"
    menu.mkdir(parents=True)
    desktop = tmp_path / "Desktop"
    desktop.mkdir()
    (desktop / "Cygwin64 Terminal.lnk").write_text("lnk", encoding="utf-8")
    (desktop / "Other.lnk").write_text("lnk", encoding="utf-8")
    (desktop / "cygwin-notes.txt").write_text("txt", encoding="utf-8")

    found = residue.find_shortcuts(menu_roots=[programs, tmp_path / "none"], desktop_roots=[desktop])

    assert [item.path for item in found] == [str(menu), str(desktop / "Cygwin64 Terminal.lnk")]


def test_remove_shortcuts_handles_folders_and_files(tmp_path) -> None:
    """!
    @brief Menu folders are removed recursively and shortcuts are unlinked.
    """

    menu = tmp_path / "Cygwin"
    menu.mkdir()
    (menu / "Cygwin64 Terminal.lnk").write_text("lnk", encoding="utf-8")
    shortcut = tmp_path / "Cygwin64 Terminal.lnk"
    shortcut.write_text("lnk", encoding="utf-8")

    items = residue.find_shortcuts(menu_roots=[tmp_path], desktop_roots=[tmp_path])
    results = residue.remove_shortcuts(items)

    assert all(result.ok for result in results)
    assert not menu.exists()
    assert not shortcut.exists()
