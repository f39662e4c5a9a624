"""
Consensus merge of per-machine file copies.

Strategy: last-write-wins on git commit timestamps, at file granularity.

* Each copy's effective timestamp is ``committed_at or 0``; copies that
  predate timestamp tracking count as the oldest.
* The copy with the highest effective timestamp wins.
* When several copies share the highest timestamp, the current machine's
  copy wins if it is among them, otherwise the lexicographically smallest
  content does.

The result depends only on the set of (machine, content, timestamp)
tuples and the current machine id, never on mapping order, so every
machine looking at the same snapshot picks the same content.
"""

from __future__ import annotations

from collections.abc import Mapping

from drifters.core.errors import EmptyVersionSetError
from drifters.core.logging import get_logger
from drifters.core.models import MachineVersion

logger = get_logger(__name__)


def merge_versions(
    versions: Mapping[str, MachineVersion],
    current_machine_id: str,
) -> str:
    """Pick the content to apply locally.

    Raises:
        EmptyVersionSetError: ``versions`` is empty.
    """
    if not versions:
        raise EmptyVersionSetError()

    if len(versions) == 1:
        (only,) = versions.values()
        return only.content

    contents = {version.content for version in versions.values()}
    if len(contents) == 1:
        return contents.pop()

    latest = max(version.effective_timestamp for version in versions.values())
    winners = {
        machine_id: version.content
        for machine_id, version in versions.items()
        if version.effective_timestamp == latest
    }

    if len(winners) == 1:
        machine_id = next(iter(winners))
        logger.debug("Last write wins", machine_id=machine_id, committed_at=latest)
        return winners[machine_id]

    if current_machine_id in winners:
        logger.warning(
            "Timestamp tie, preferring current machine",
            tied_machines=sorted(winners),
            committed_at=latest,
            machine_id=current_machine_id,
        )
        return winners[current_machine_id]

    logger.warning(
        "Timestamp tie without current machine, using smallest content",
        tied_machines=sorted(winners),
        committed_at=latest,
        machine_id=current_machine_id,
    )
    return min(winners.values())
