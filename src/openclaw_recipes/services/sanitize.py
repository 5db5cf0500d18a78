"""Plain-text input sanitizers for agent and project fields."""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from typing import Any

AGENT_NAME_MAX = 50
AGENT_BIO_MAX = 500
AGENT_CAPABILITY_MAX = 50
AGENT_CAPABILITIES_COUNT = 20
PROJECT_TITLE_MAX = 200
PROJECT_DESCRIPTION_MAX = 10_000
PROJECT_TAG_MAX = 30
PROJECT_TAGS_COUNT = 10

_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")
_AGENT_NAME_DISALLOWED = re.compile(r"[^a-z0-9_-]")
_TITLE_DISALLOWED = re.compile(r"[^\w\s\-()]")


def sanitize_text(value: str, max_length: int) -> str:
    """Trim, clip to `max_length` and drop ASCII control characters."""
    return _CONTROL_CHARS.sub("", value.strip()[:max_length])


def sanitize_agent_name(name: str) -> str:
    """Normalise an agent name to lowercase ``[a-z0-9_-]``.

    Raises:
        ValueError: If fewer than two characters remain.
    """
    cleaned = _AGENT_NAME_DISALLOWED.sub("", name.strip().lower()[:AGENT_NAME_MAX])
    if len(cleaned) < 2:
        raise ValueError("Agent name must be at least 2 characters (alphanumeric, _, -)")
    return cleaned


def sanitize_project_title(title: str) -> str:
    """Keep word characters, spaces, hyphens and parentheses.

    Raises:
        ValueError: If fewer than three characters remain.
    """
    cleaned = _TITLE_DISALLOWED.sub("", title.strip()[:PROJECT_TITLE_MAX])
    if len(cleaned) < 3:
        raise ValueError("Project title must be at least 3 characters")
    return cleaned


def _sanitize_list(items: Iterable[str] | None, count: int, max_length: int) -> list[str]:
    if not items:
        return []
    cleaned = (sanitize_text(item, max_length) for item in list(items)[:count] if isinstance(item, str))
    return [item for item in cleaned if item]


def sanitize_tags(tags: Iterable[str] | None) -> list[str]:
    return _sanitize_list(tags, PROJECT_TAGS_COUNT, PROJECT_TAG_MAX)


def sanitize_capabilities(capabilities: Iterable[str] | None) -> list[str]:
    return _sanitize_list(capabilities, AGENT_CAPABILITIES_COUNT, AGENT_CAPABILITY_MAX)


def clip_metadata(metadata: Mapping[str, Any] | None, max_length: int) -> dict[str, Any]:
    """Clip every string value in a shallow metadata mapping to `max_length`."""
    if not metadata:
        return {}
    return {
        str(key)[:max_length]: sanitize_text(value, max_length) if isinstance(value, str) else value
        for key, value in metadata.items()
    }
