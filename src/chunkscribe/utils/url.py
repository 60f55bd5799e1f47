from __future__ import annotations

import re
from urllib.parse import urlparse

MEDIA_EXTENSION_RE = re.compile(r"\.(mp4|mp3|m4a|wav|flac|ogg|webm)$", re.IGNORECASE)


def has_media_extension(reference: str) -> bool:
    """True when the reference points straight at a media file, query string ignored."""
    parsed = urlparse(reference.strip())
    return bool(MEDIA_EXTENSION_RE.search(parsed.path or reference.strip()))
