from __future__ import annotations

import logging
import re
import unicodedata
from datetime import date, datetime
from typing import Callable, Optional, Union

from sqlalchemy.orm import Session

from gallerydesk.core.settings import settings

logger = logging.getLogger("gallery")

IsTaken = Callable[[str, Optional[int]], bool]

DEFAULT_TITLE = "galeria"

_NON_ALNUM = re.compile(r"[^a-z0-9]+")

# Letters NFKD cannot decompose into ASCII plus combining marks
_TRANSLITERATE = str.maketrans(
    {
        "ß": "ss",
        "æ": "ae",
        "Æ": "AE",
        "ø": "o",
        "Ø": "O",
        "œ": "oe",
        "Œ": "OE",
        "đ": "d",
        "Đ": "D",
        "ł": "l",
        "Ł": "L",
        "þ": "th",
        "Þ": "TH",
        "ð": "d",
        "Ð": "D",
    }
)


def normalize_title(raw_title: str, max_length: Optional[int] = None) -> str:
    """Lowercase ASCII, dash-separated form of a title ("galeria" when nothing survives)."""
    limit = max_length if max_length is not None else settings.SLUG_MAX_TITLE_LENGTH
    text = unicodedata.normalize("NFKD", (raw_title or "").translate(_TRANSLITERATE))
    text = "".join(c for c in text if not unicodedata.combining(c))
    text = text.replace("&", " e ").lower()
    text = _NON_ALNUM.sub("-", text).strip("-")
    # Cutting may leave a dash at the end
    text = text[:limit].rstrip("-")
    return text or DEFAULT_TITLE


def slug_base(owner_handle: str, raw_title: str, when: Union[date, datetime]) -> str:
    return f"{owner_handle}/{when:%Y/%m/%d}/{normalize_title(raw_title)}"


def generate_slug(
    owner_handle: str,
    raw_title: str,
    when: Union[date, datetime],
    is_taken: IsTaken,
    exclude_id: Optional[int] = None,
) -> str:
    """Return ``handle/YYYY/MM/DD/title``, suffixed ``-2``, ``-3``... until unused.

    ``exclude_id`` lets a gallery keep its own slug when it is renamed to the
    same title and date. A failing uniqueness lookup is logged and the
    unsuffixed base is returned; the unique index on the column is the
    final arbiter.
    """
    base = slug_base(owner_handle, raw_title, when)
    candidate = base
    n = 1
    try:
        while is_taken(candidate, exclude_id):
            n += 1
            candidate = f"{base}-{n}"
    except Exception:
        logger.warning(
            "slug.lookup_failed", extra={"slug_base": base, "exclude_id": exclude_id}, exc_info=True
        )
        return base
    return candidate


def slug_lookup(db: Session) -> IsTaken:
    """Uniqueness callback backed by the Gallery table."""
    from gallerydesk.models.gallery import Gallery

    def _is_taken(candidate: str, exclude_id: Optional[int]) -> bool:
        q = db.query(Gallery.GalleryID).filter(Gallery.Slug == candidate)
        if exclude_id is not None:
            q = q.filter(Gallery.GalleryID != exclude_id)
        return q.first() is not None

    return _is_taken
