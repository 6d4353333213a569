"""!
@brief Cygwin Janitor package root.
@details Modules under this namespace locate a Cygwin installation and
coordinate removal of its services, processes, registry configuration, LSA
authentication hook, ``Path`` entries, download caches, shortcuts, and
installation directory.
"""

__all__ = [
    "main",
    "detect",
    "plan",
    "scrub",
    "report",
    "registry_tools",
    "registry_product",
    "security_hook",
    "env_path",
    "fs_tools",
    "residue",
    "processes",
    "tasks_services",
    "logging_ext",
    "exec_utils",
    "ui",
    "constants",
    "safety",
    "confirm",
    "version",
]
