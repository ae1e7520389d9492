from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import UTC, datetime

_SLUG_DROP = re.compile(r"[^a-z0-9\s-]")
_SLUG_SPACE = re.compile(r"\s+")
_SLUG_DASHES = re.compile(r"-+")

SLUG_MAX_LENGTH = 50


@dataclass(frozen=True, slots=True)
class Organization:
    id: int
    name: str
    slug: str
    description: str | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))


def generate_slug(name: str) -> str:
    """Derive a URL slug from an organization name.

    "Acme  Foods, Inc." -> "acme-foods-inc"
    """
    slug = _SLUG_DROP.sub("", name.lower())
    slug = _SLUG_SPACE.sub("-", slug.strip())
    slug = _SLUG_DASHES.sub("-", slug)
    return slug[:SLUG_MAX_LENGTH].strip("-")
