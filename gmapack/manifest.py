from __future__ import annotations

import json
from typing import List, Tuple


def build_description_payload(*, description: str, addon_type: str, tags: List[str]) -> str:
    """Combine description, type and tags into the JSON string stored in the header.

    Key order and indentation are fixed so the same manifest always encodes
    to the same bytes.
    """
    doc = {
        "description": description,
        "type": addon_type,
        "tags": list(tags),
    }
    return json.dumps(doc, indent="\t", ensure_ascii=False)


def parse_description_payload(raw: str) -> Tuple[str, str, List[str]]:
    """
    Returns: (description, addon_type, tags)

    Archives written by older tools store plain text instead of JSON; that
    text becomes the description with no type and no tags.
    """
    try:
        doc = json.loads(raw)
    except ValueError:
        return raw, "", []
    if not isinstance(doc, dict):
        return raw, "", []
    description = doc.get("description", "")
    addon_type = doc.get("type", "")
    tags = doc.get("tags") or []
    if not isinstance(description, str):
        description = str(description)
    if not isinstance(addon_type, str):
        addon_type = str(addon_type)
    if not isinstance(tags, list):
        tags = [tags]
    return description, addon_type, [str(t) for t in tags]
