"""
Path admission for addon archives.

Only paths matching one of the wildcard patterns below may be stored. Patterns
are matched in declaration order against the whole path, case-insensitively;
``*`` spans any number of characters (including ``/``) and ``?`` exactly one.
"""

from __future__ import annotations

import functools
import re
from typing import Dict, Optional, Tuple

from .pathutil import norm_path


# Trailing None terminates the scan, mirroring the table shipped with the game tools.
WILDCARDS: Tuple[Optional[str], ...] = (
    "maps/*.bsp",
    "maps/*.png",
    "maps/*.nav",
    "maps/*.ain",
    "sound/*.wav",
    "sound/*.mp3",
    "lua/*.lua",
    "materials/*.vmt",
    "materials/*.vtf",
    "materials/*.png",
    "models/*.mdl",
    "models/*.vtx",
    "models/*.phy",
    "models/*.ani",
    "models/*.vvd",
    "gamemodes/*.txt",
    "gamemodes/*.lua",
    "scenes/*.vcd",
    "particles/*.pcf",
    "gamemodes/*/backgrounds/*.jpg",
    "gamemodes/*/icon24.png",
    "gamemodes/*/logo.png",
    "scripts/vehicles/*.txt",
    "resource/fonts/*.ttf",
    None,
)

# Files that are never embedded even when a wildcard would accept them.
IGNORED: Tuple[str, ...] = (
    "addon.json",
    "*thumbs.db",
    "*desktop.ini",
    "*.ds_store",
)

_CATEGORIES: Dict[str, Tuple[str, ...]] = {
    "Maps": ("*.bsp", "*.png", "*.nav", "*.ain"),
    "Lua script files": ("*.lua",),
    "Materials": ("*.vmt", "*.vtf", "*.png"),
    "Models": ("*.mdl", "*.vtx", "*.phy", "*.ani", "*.vvd"),
    "Text files": ("*.txt",),
    "Fonts": ("*.ttf",),
    "Images": ("*.png", "*.jpg"),
    "Scenes": ("*.vcd",),
    "Particle effects": ("*.pcf",),
}


@functools.lru_cache(maxsize=None)
def compile_wildcard(wildcard: str) -> "re.Pattern[str]":
    """Translate a wildcard into a case-insensitive regular expression.

    ``*`` becomes ``.*``, ``?`` becomes ``.`` and every other character is
    taken literally. The result is meant for ``fullmatch``.
    """
    pattern = re.escape(wildcard).replace(r"\*", ".*").replace(r"\?", ".")
    return re.compile(pattern, re.IGNORECASE)


def _candidate(path: str) -> str:
    return path.replace("\\", "/")


def match_pattern(path: str) -> Optional[str]:
    """Return the first wildcard that accepts ``path``, or None."""
    candidate = _candidate(path)
    for wildcard in WILDCARDS:
        if wildcard is None:
            break
        if compile_wildcard(wildcard).fullmatch(candidate):
            return wildcard
    return None


def classify(path: str) -> Optional[str]:
    """Return the text matched by the first accepting wildcard, or None.

    Matching is anchored, so the returned string is ``path`` exactly as
    given; backslashes count as separators only while matching.
    """
    if match_pattern(path) is None:
        return None
    return path


def accepts(path: str) -> bool:
    return match_pattern(path) is not None


def is_ignored(path: str) -> bool:
    candidate = _candidate(path)
    return any(compile_wildcard(w).fullmatch(candidate) for w in IGNORED)


def locate(fs_path: str) -> Optional[str]:
    """Find the archive path hidden inside a filesystem path.

    Suffixes are tried at each directory boundary from the left, so
    ``/home/me/addon/lua/autorun/init.lua`` yields ``lua/autorun/init.lua``.
    Returns None when no suffix is whitelisted.
    """
    parts = [q for q in _candidate(fs_path).split("/") if q not in ("", ".")]
    for start in range(len(parts)):
        suffix = "/".join(parts[start:])
        if ".." in parts[start:]:
            continue
        matched = classify(suffix)
        if matched is not None:
            return norm_path(matched)
    return None


def categories() -> Dict[str, Tuple[str, ...]]:
    """Known wildcard groups by human-readable file type (reporting only)."""
    return dict(_CATEGORIES)
