"""
Fileset resolution for one app on one machine.
"""

from __future__ import annotations

import fnmatch
import glob
import re
from pathlib import Path

from drifters.core.logging import get_logger
from drifters.rules.sync_rules import AppDefinition

logger = get_logger(__name__)


def expand_tilde(pattern: str) -> str:
    """Expand a leading ``~`` or ``~/`` to the home directory."""
    if pattern == "~":
        return str(Path.home())
    if pattern.startswith("~/"):
        return str(Path.home() / pattern[2:])
    return pattern


def collect_patterns(
    app: AppDefinition,
    machine_id: str,
    os_name: str,
) -> tuple[list[str], list[str]]:
    """Concatenate app, OS and machine patterns. No tier removes another."""
    include = list(app.include)
    exclude = list(app.exclude)

    os_patterns = app.os_patterns(os_name)
    if os_patterns is None:
        logger.warning("Unknown OS, using app defaults only", os=os_name)
    else:
        include.extend(os_patterns[0])
        exclude.extend(os_patterns[1])

    override = app.machine_override(machine_id)
    if override is not None:
        include.extend(override.include)
        exclude.extend(override.exclude)

    return include, exclude


def is_excluded(path: Path, exclude_patterns: list[str]) -> bool:
    """A path is excluded by a glob match or a plain substring match."""
    path_str = str(path)
    for pattern in exclude_patterns:
        if fnmatch.fnmatchcase(path_str, expand_tilde(pattern)):
            return True
        if pattern in path_str:
            return True
    return False


def resolve_fileset(app: AppDefinition, machine_id: str, os_name: str) -> list[Path]:
    """Return the sorted, deduplicated local files that take part in syncing.

    Wildcards match names starting with a dot. An empty result is valid:
    no pattern matched an existing file.
    """
    include, exclude = collect_patterns(app, machine_id, os_name)

    files: set[Path] = set()
    for pattern in include:
        expanded = expand_tilde(pattern)
        try:
            matches = glob.glob(expanded, recursive=True, include_hidden=True)
        except (re.error, ValueError, OSError) as exc:
            logger.warning("Invalid glob pattern", pattern=expanded, error=str(exc))
            continue

        for match in matches:
            path = Path(match)
            if not is_excluded(path, exclude):
                files.add(path)

    return sorted(files)
