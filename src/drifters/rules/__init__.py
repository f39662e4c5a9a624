"""
Drifters rules module.

Shared sync rules, the machine registry and fileset resolution.
"""

from drifters.rules.fileset import expand_tilde, resolve_fileset
from drifters.rules.machines import MachineInfo, MachineRegistry, detect_os
from drifters.rules.sync_rules import AppDefinition, MachineOverride, SyncRules

__all__ = [
    "AppDefinition",
    "MachineInfo",
    "MachineOverride",
    "MachineRegistry",
    "SyncRules",
    "detect_os",
    "expand_tilde",
    "resolve_fileset",
]
