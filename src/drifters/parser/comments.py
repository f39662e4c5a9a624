"""
Comment syntax detection for exclude tags.
"""

from __future__ import annotations

from pathlib import PurePath

DEFAULT_COMMENT_PREFIX = "#"

_COMMENT_PREFIXES: dict[str, str] = {
    # Shell, Python, Ruby, Perl, YAML, TOML and most config formats
    "sh": "#",
    "bash": "#",
    "zsh": "#",
    "fish": "#",
    "py": "#",
    "rb": "#",
    "pl": "#",
    "yaml": "#",
    "yml": "#",
    "toml": "#",
    "conf": "#",
    "cfg": "#",
    "env": "#",
    # C family, JavaScript and friends
    "js": "//",
    "ts": "//",
    "jsx": "//",
    "tsx": "//",
    "jsonc": "//",
    "json5": "//",
    "c": "//",
    "cpp": "//",
    "h": "//",
    "hpp": "//",
    "rs": "//",
    "go": "//",
    "java": "//",
    "kt": "//",
    "swift": "//",
    # Lua, SQL, Haskell
    "lua": "--",
    "sql": "--",
    "hs": "--",
    # Vim script
    "vim": '"',
}


def detect_comment_syntax(filename: str) -> str:
    """Return the comment prefix used for exclude tags in ``filename``."""
    name = PurePath(filename).name
    if "vimrc" in name or name.endswith(".vim"):
        return '"'

    # PurePath.suffix is empty for dotfiles such as ".bashrc"
    extension = PurePath(name).suffix.lower().lstrip(".")
    return _COMMENT_PREFIXES.get(extension, DEFAULT_COMMENT_PREFIX)
