"""
Drifters - replicate configuration files across machines.

A shared git repository carries every machine's copy of each tracked file;
each machine merges those copies back with a deterministic last-write-wins
rule while keeping its own tagged exclude sections.
"""

__version__ = "0.4.0"
__author__ = "Drifters Team"

from drifters.core.config import DriftersConfig
from drifters.sync.manager import SyncManager

__all__ = ["DriftersConfig", "SyncManager", "__version__"]
