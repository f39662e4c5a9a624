"""
Drifters parser module.

Comment syntax detection and the exclude-section codec.
"""

from drifters.parser.comments import detect_comment_syntax
from drifters.parser.sections import (
    exclude_tags,
    extract_exclude_sections,
    extract_syncable,
    merge_local,
    parse_spans,
)

__all__ = [
    "detect_comment_syntax",
    "exclude_tags",
    "extract_exclude_sections",
    "extract_syncable",
    "merge_local",
    "parse_spans",
]
