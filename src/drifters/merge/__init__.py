"""
Drifters merge module.

Deterministic last-write-wins selection between machine copies.
"""

from drifters.merge.consensus import merge_versions

__all__ = ["merge_versions"]
