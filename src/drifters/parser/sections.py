"""
Exclude-section codec.

A file may carry machine-local regions delimited by tag lines::

    # drifters::exclude::start
    export API_TOKEN="only-on-this-machine"
    # drifters::exclude::stop

The body between the tags never leaves the machine. On push the body is
stripped (the tag lines stay, so positions can be matched later); on pull
each tagged region of the incoming content is replaced by the region at the
same ordinal position in the local file.
"""

from __future__ import annotations

from drifters.core.errors import MalformedContentError
from drifters.core.logging import get_logger
from drifters.core.models import LocalOnlySpan, Span, SyncedSpan

logger = get_logger(__name__)

EXCLUDE_START_MARKER = "drifters::exclude::start"
EXCLUDE_STOP_MARKER = "drifters::exclude::stop"

_LINE_ENDINGS = ("\n", "\r")


def exclude_tags(comment_prefix: str) -> tuple[str, str]:
    """Return the (start, stop) tag tokens for a comment prefix."""
    return (
        f"{comment_prefix} {EXCLUDE_START_MARKER}",
        f"{comment_prefix} {EXCLUDE_STOP_MARKER}",
    )


def parse_spans(content: str, comment_prefix: str) -> list[Span]:
    """Split ``content`` into synced and local-only spans.

    A line is a tag only when the tag token is its first non-whitespace
    content. Line endings are preserved, so joining the span texts gives
    back ``content`` exactly.

    Raises:
        MalformedContentError: a start tag is not closed before the end of
            input, or a start tag appears inside an open section.
    """
    start_tag, stop_tag = exclude_tags(comment_prefix)

    spans: list[Span] = []
    synced: list[str] = []
    section: list[str] | None = None
    section_start = 0

    for number, line in enumerate(content.splitlines(keepends=True), start=1):
        stripped = line.lstrip()

        if section is None:
            if stripped.startswith(start_tag):
                if synced:
                    spans.append(SyncedSpan("".join(synced)))
                    synced = []
                section = [line]
                section_start = number
            else:
                synced.append(line)
            continue

        if stripped.startswith(start_tag):
            raise MalformedContentError(
                f"Exclude start tag opened inside the section started at line {section_start}",
                line_number=number,
                remediation=f"Add a '{stop_tag}' line before opening another section.",
            )

        section.append(line)
        if stripped.startswith(stop_tag):
            spans.append(LocalOnlySpan("".join(section), section_start, number))
            section = None

    if section is not None:
        raise MalformedContentError(
            "Exclude start tag has no matching stop tag",
            line_number=section_start,
            remediation=f"Add a matching '{stop_tag}' line.",
        )

    if synced:
        spans.append(SyncedSpan("".join(synced)))

    return spans


def extract_exclude_sections(content: str, comment_prefix: str) -> list[str]:
    """Return the text of every exclude section, tag lines included."""
    return [
        span.text for span in parse_spans(content, comment_prefix) if isinstance(span, LocalOnlySpan)
    ]


def extract_syncable(content: str, comment_prefix: str) -> str | None:
    """Strip exclude bodies, keeping the tag lines.

    Returns None when the content has no exclude sections; the caller then
    syncs the file verbatim.
    """
    spans = parse_spans(content, comment_prefix)
    if not any(isinstance(span, LocalOnlySpan) for span in spans):
        return None

    parts: list[str] = []
    for span in spans:
        if isinstance(span, LocalOnlySpan):
            lines = span.text.splitlines(keepends=True)
            parts.append(lines[0])
            parts.append(lines[-1])
        else:
            parts.append(span.text)
    return "".join(parts)


def merge_local(local_content: str, incoming_content: str, comment_prefix: str) -> str:
    """Apply ``incoming_content`` while keeping the local exclude sections.

    The Nth section of the incoming content is replaced by the Nth section
    of the local content. Incoming sections without a local counterpart are
    kept as they are.
    """
    local_sections = extract_exclude_sections(local_content, comment_prefix)

    parts: list[str] = []
    ordinal = 0
    for span in parse_spans(incoming_content, comment_prefix):
        if isinstance(span, LocalOnlySpan):
            if ordinal < len(local_sections):
                parts.append(_match_line_ending(local_sections[ordinal], span.text))
            else:
                parts.append(span.text)
            ordinal += 1
        else:
            parts.append(span.text)

    if ordinal < len(local_sections):
        logger.warning(
            "Incoming content has fewer exclude sections than the local file",
            incoming_sections=ordinal,
            local_sections=len(local_sections),
        )

    return "".join(parts)


def _match_line_ending(local_text: str, incoming_text: str) -> str:
    # A section taken from the end of the local file may lack a trailing
    # newline while the incoming one continues with more lines, and the
    # reverse.
    if incoming_text.endswith(_LINE_ENDINGS):
        if local_text.endswith(_LINE_ENDINGS):
            return local_text
        return local_text + incoming_text[len(incoming_text.rstrip("\r\n")):]
    return local_text.rstrip("\r\n")
