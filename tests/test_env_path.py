"""!
@brief Tests for ``Path`` scrubbing.
"""

from __future__ import annotations

import pathlib
import sys
from typing import Dict, List, Tuple

import pytest

PROJECT_ROOT = pathlib.Path(__file__).resolve().parents[1]
SRC_PATH = PROJECT_ROOT / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

from cygwin_janitor import constants, detect, env_path, report  # noqa: E402

ROOT = "C:\\cygwin64"
TARGET = detect.InstallationTarget(ROOT, True, detect.ResolutionSource.CONFIG_STORE)
MACHINE = (constants.HKLM, constants.MACHINE_ENVIRONMENT_KEY, constants.PATH_VALUE)
USER = (constants.HKCU, constants.USER_ENVIRONMENT_KEY, constants.PATH_VALUE)


class _FakeRegistry:
    """!
    @brief Registry stand-in tracking keys, values and writes.
    """

    def __init__(self) -> None:
        self.values: Dict[Tuple[int, str, str], Tuple[object, int]] = {}
        self.keys = {(constants.HKLM, constants.MACHINE_ENVIRONMENT_KEY)}
        self.writes: List[Tuple[Tuple[int, str, str], object, int]] = []

    def read_value(self, root, path, name):
        return self.values.get((root, path, name))

    def set_value(self, root, path, name, value, value_type):
        self.writes.append(((root, path, name), value, value_type))
        self.values[(root, path, name)] = (value, value_type)

    def key_exists(self, root, path):
        return (root, path) in self.keys

    def create_key(self, root, path):
        self.keys.add((root, path))


@pytest.fixture
def registry(monkeypatch: pytest.MonkeyPatch) -> _FakeRegistry:
    fake = _FakeRegistry()
    for name in ("read_value", "set_value", "key_exists", "create_key"):
        monkeypatch.setattr(env_path.registry_tools, name, getattr(fake, name))
    monkeypatch.setattr(env_path, "broadcast_environment_change", lambda: None)
    return fake


def test_scrub_entries_preserves_order_and_drops_root() -> None:
    """!
    @brief ``A;root;B;root\\bin;C`` becomes ``A;B;C``.
    """

    value = f"C:\\A;{ROOT};C:\\B;{ROOT}\\bin;C:\\C"

    kept, removed = env_path.scrub_entries(value, ROOT)

    assert kept == ["C:\\A", "C:\\B", "C:\\C"]
    assert removed == [ROOT, f"{ROOT}\\bin"]


def test_scrub_entries_keeps_sibling_prefix_and_duplicates() -> None:
    """!
    @brief Sibling folders stay; unrelated duplicates are not collapsed.
    """

    value = f"C:\\cygwin64-old\\bin;C:\\X;;C:\\X;{ROOT}\\usr\\local\\bin\\"

    kept, removed = env_path.scrub_entries(value, ROOT)

    assert kept == ["C:\\cygwin64-old\\bin", "C:\\X", "C:\\X"]
    assert removed == [f"{ROOT}\\usr\\local\\bin\\"]


def test_scrub_machine_path_writes_once_preserving_type(registry) -> None:
    """!
    @brief The value is rewritten in one call with its original registry type.
    """

    registry.values[MACHINE] = (f"C:\\Windows;{ROOT}\\bin;C:\\Tools", constants.REG_EXPAND_SZ)

    result = env_path.scrub_path_variable(TARGET, env_path.Scope.MACHINE)

    assert registry.writes == [(MACHINE, "C:\\Windows;C:\\Tools", constants.REG_EXPAND_SZ)]
    assert result.status is report.StepStatus.SUCCEEDED
    assert result.state_changed
    assert result.step == "path-vars-machine"


def test_scrub_without_matches_skips_write(registry) -> None:
    """!
    @brief A ``Path`` without root entries is not rewritten.
    """

    registry.values[MACHINE] = ("C:\\Windows;C:\\Tools", constants.REG_SZ)

    result = env_path.scrub_path_variable(TARGET, env_path.Scope.MACHINE)

    assert registry.writes == []
    assert result.status is report.StepStatus.NO_CHANGES
    assert result.reason == "no changes needed"


def test_user_scope_creates_missing_environment_key(registry) -> None:
    """!
    @brief A missing per-user ``Environment`` key is created and reported as no change.
    """

    result = env_path.scrub_path_variable(TARGET, env_path.Scope.USER)

    assert (constants.HKCU, constants.USER_ENVIRONMENT_KEY) in registry.keys
    assert result.status is report.StepStatus.NO_CHANGES
    assert result.reason == "no Path value"


def test_write_failure_is_reported(registry, monkeypatch) -> None:
    """!
    @brief A denied write fails the step with every planned entry listed.
    """

    registry.values[USER] = (f"{ROOT}\\bin;C:\\Users\\me\\bin", constants.REG_SZ)
    registry.keys.add((constants.HKCU, constants.USER_ENVIRONMENT_KEY))

    def denied(*args, **kwargs):
        raise PermissionError(5, "Access is denied")

    monkeypatch.setattr(env_path.registry_tools, "set_value", denied)

    result = env_path.scrub_path_variable(TARGET, env_path.Scope.USER)

    assert result.status is report.StepStatus.FAILED
    assert [item.item for item in result.failed_items] == [f"{ROOT}\\bin"]
    assert not result.state_changed


def test_dry_run_previews_without_writing(registry) -> None:
    """!
    @brief Dry-run lists the entries but leaves the value alone.
    """

    registry.values[MACHINE] = (f"{ROOT}\\bin;C:\\Windows", constants.REG_EXPAND_SZ)

    preview = env_path.find_path_entries(TARGET, env_path.Scope.MACHINE)
    result = env_path.scrub_path_variable(TARGET, env_path.Scope.MACHINE, dry_run=True)

    assert [item.identifier for item in preview] == [f"{ROOT}\\bin"]
    assert result.reason == "dry-run"
    assert registry.writes == []
