# Magic and version
GMA_MAGIC = b"GMAD"  # 4 bytes: "GMAD"
GMA_VERSION = 3
GMA_MIN_VERSION = 1

# Identity fields written when the caller supplies none
DEFAULT_ORIGIN_ID = 0
DEFAULT_TIMESTAMP = 0
DEFAULT_ADDON_VERSION = 1

# Author is not user-editable in the reference tooling; writers emit this literal.
DEFAULT_AUTHOR = "Author Name"

DEFAULT_BLOCK_SIZE = 4096  # 4 KiB diff granularity

MAX_TAGS = 2

ADDON_TYPES = (
    "gamemode",
    "map",
    "weapon",
    "vehicle",
    "npc",
    "entity",
    "tool",
    "effects",
    "model",
    "servercontent",
)

ADDON_TAGS = (
    "fun",
    "roleplay",
    "scenic",
    "movie",
    "realism",
    "cartoon",
    "water",
    "comic",
    "build",
)


def type_exists(value: str) -> bool:
    return value is not None and value.lower() in ADDON_TYPES


def tag_exists(value: str) -> bool:
    return value is not None and value.lower() in ADDON_TAGS
