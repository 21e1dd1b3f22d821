"""Row model shared by the codec, mapper, validator, and store."""

from __future__ import annotations

import uuid
from dataclasses import asdict, dataclass, field
from typing import Any

FIELDS = ["offset", "media_type", "title", "artist", "album", "year"]
TEXT_FIELDS = ["title", "artist", "album"]

MEDIA_TYPES = ["music", "talk", "id", "promo", "ad"]
ARTIST_REQUIRED_TYPES = {"music", "talk"}

DEFAULT_MEDIA_TYPE = "music"
INSERTED_MEDIA_TYPE = "talk"

MAX_FIELD_LENGTH = 500
MIN_YEAR = 1900
MAX_YEAR = 2100


def generate_id() -> str:
    return str(uuid.uuid4())


def is_empty(value: Any) -> bool:
    """None and whitespace-only strings count as empty; anything else does not."""
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    return False


@dataclass
class Row:
    offset: str = ""
    media_type: str = DEFAULT_MEDIA_TYPE
    title: str = ""
    artist: str = ""
    album: str = ""
    year: str = ""
    id: str = field(default_factory=generate_id)

    def to_dict(self) -> dict[str, str]:
        return asdict(self)

    def values(self) -> list[str]:
        return [getattr(self, name) for name in FIELDS]


def row_from_data(data: dict[str, Any], *, media_type_default: str = DEFAULT_MEDIA_TYPE) -> Row:
    """Build a Row from loose field data, falling back to defaults for falsy values."""
    return Row(
        id=data.get("id") or generate_id(),
        offset=data.get("offset") or "",
        media_type=data.get("media_type") or media_type_default,
        title=data.get("title") or "",
        artist=data.get("artist") or "",
        album=data.get("album") or "",
        year=data.get("year") or "",
    )
