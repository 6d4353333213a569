"""!
@brief Registry access helpers.
@details Thin wrappers over :mod:`winreg` used by detection, the security
policy reset, and PATH scrubbing, plus ``reg.exe`` based recursive deletion.
Reads degrade to defaults on ``OSError``; writes let ``OSError`` propagate so
callers can record the failure.
"""
from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Iterator, Tuple

from . import constants, exec_utils

try:  # pragma: no cover - exercised through mocks on non-Windows platforms.
    import winreg
except ImportError:  # pragma: no cover - handled gracefully during tests.
    winreg = None  # type: ignore[assignment]


def _ensure_winreg() -> None:
    """!
    @brief Raise an informative error when ``winreg`` is unavailable.
    """

    if winreg is None:  # pragma: no cover - simplifies non-Windows test runs.
        raise FileNotFoundError("Windows registry APIs are unavailable on this platform")


@contextmanager
def open_key(root: int, path: str, access: int | None = None) -> Iterator[Any]:
    """!
    @brief Context manager mirroring ``winreg.OpenKey`` that always closes the handle.
    """

    _ensure_winreg()
    access_mask = access if access is not None else winreg.KEY_READ  # type: ignore[union-attr]
    handle = winreg.OpenKey(root, path, 0, access_mask)  # type: ignore[union-attr]
    try:
        yield handle
    finally:
        winreg.CloseKey(handle)  # type: ignore[union-attr]


def iter_subkeys(root: int, path: str) -> Iterator[str]:
    """!
    @brief Yield subkey names for ``root``/``path``.
    """

    _ensure_winreg()
    with open_key(root, path) as handle:
        subkey_count, _, _ = winreg.QueryInfoKey(handle)  # type: ignore[union-attr]
        for index in range(subkey_count):
            yield winreg.EnumKey(handle, index)  # type: ignore[union-attr]


def read_value(root: int, path: str, value_name: str) -> Tuple[Any, int] | None:
    """!
    @brief Read ``value_name`` together with its registry type.
    @returns ``(value, type)`` or ``None`` when the key or value is missing or unreadable.
    """

    try:
        _ensure_winreg()
        with open_key(root, path) as handle:
            value, value_type = winreg.QueryValueEx(handle, value_name)  # type: ignore[union-attr]
            return value, value_type
    except OSError:
        return None


def get_value(root: int, path: str, value_name: str, default: Any | None = None) -> Any | None:
    """!
    @brief Read ``value_name`` beneath ``root``/``path``.
    """

    found = read_value(root, path, value_name)
    return default if found is None else found[0]


def set_value(root: int, path: str, value_name: str, value: Any, value_type: int) -> None:
    """!
    @brief Write ``value_name`` in one ``SetValueEx`` call.
    @raises OSError When the key cannot be opened for writing or the write fails.
    """

    _ensure_winreg()
    with open_key(root, path, winreg.KEY_SET_VALUE) as handle:  # type: ignore[union-attr]
        winreg.SetValueEx(handle, value_name, 0, value_type, value)  # type: ignore[union-attr]


def create_key(root: int, path: str) -> None:
    """!
    @brief Create ``root``/``path`` if it does not already exist.
    @raises OSError When the key cannot be created.
    """

    _ensure_winreg()
    handle = winreg.CreateKeyEx(root, path, 0, winreg.KEY_READ)  # type: ignore[union-attr]
    winreg.CloseKey(handle)  # type: ignore[union-attr]


def key_exists(root: int, path: str) -> bool:
    """!
    @brief Determine whether the given key exists.
    """

    try:
        _ensure_winreg()
        with open_key(root, path):
            return True
    except OSError:
        return False


def hive_name(root: int) -> str:
    """!
    @brief Provide the short identifier (``HKLM``/``HKCU``) for a hive handle.
    """

    for name, handle in constants.REGISTRY_ROOTS.items():
        if handle == root:
            return name
    return hex(root)


def format_key(root: int, path: str) -> str:
    """!
    @brief Render ``root``/``path`` as ``HKLM\\SOFTWARE\\...`` for display and ``reg.exe``.
    """

    return f"{hive_name(root)}\\{path}"


def parse_key(key: str) -> Tuple[int, str]:
    """!
    @brief Split ``HKLM\\SOFTWARE\\...`` into a hive handle and relative path.
    @raises ValueError When the hive prefix is not recognised.
    """

    hive, _, path = key.partition("\\")
    try:
        return constants.REGISTRY_ROOTS[hive.upper()], path
    except KeyError:
        raise ValueError(f"Unsupported registry hive in {key!r}") from None


def delete_tree(root: int, path: str, *, dry_run: bool = False) -> exec_utils.CommandResult:
    """!
    @brief Recursively delete a registry key via ``reg delete /f``.
    """

    key = format_key(root, path)
    return exec_utils.run_command(
        ["reg.exe", "delete", key, "/f"],
        event="registry_delete",
        timeout=60,
        dry_run=dry_run,
        human_message=f"Deleting registry key {key}",
        extra={"key": key},
    )


__all__ = [
    "create_key",
    "delete_tree",
    "format_key",
    "get_value",
    "hive_name",
    "iter_subkeys",
    "key_exists",
    "open_key",
    "parse_key",
    "read_value",
    "set_value",
]
