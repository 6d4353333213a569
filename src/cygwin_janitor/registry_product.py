"""!
@brief Cygwin configuration subtrees in the registry.
@details The setup program records its state under ``SOFTWARE\\Cygwin`` in
both the machine and the user hive. Discovery does not need a resolved
installation root.
"""

from __future__ import annotations

from typing import List, Sequence

from . import constants, logging_ext, registry_tools, report


def find_config_keys() -> List[report.RemovableItem]:
    """!
    @brief Return the product subtrees that currently exist.
    """

    found: List[report.RemovableItem] = []
    for root, path in constants.CONFIG_SUBTREES:
        if registry_tools.key_exists(root, path):
            key = registry_tools.format_key(root, path)
            found.append(report.RemovableItem(key, key, "product configuration key"))
    return found


def remove_config_keys(
    items: Sequence[report.RemovableItem], *, dry_run: bool = False
) -> List[report.ItemResult]:
    """!
    @brief Delete each subtree recursively; failures are isolated per key.
    """

    human_logger = logging_ext.get_human_logger()
    results: List[report.ItemResult] = []
    for item in items:
        root, path = registry_tools.parse_key(item.identifier)
        outcome = registry_tools.delete_tree(root, path, dry_run=dry_run)
        if outcome.skipped:
            results.append(report.ItemResult(item.identifier, True, "dry-run"))
        elif outcome.ok:
            results.append(report.ItemResult(item.identifier, True, "deleted"))
        else:
            human_logger.error("Failed to delete %s: %s", item.identifier, outcome.describe())
            results.append(report.ItemResult(item.identifier, False, outcome.describe()))
    return results


__all__ = ["find_config_keys", "remove_config_keys"]
