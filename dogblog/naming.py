import hashlib
import mimetypes
import re
from datetime import datetime

from .models import ArtifactNames

_SLUG_UNSAFE = re.compile(r"[^A-Za-z0-9-]")
_EXT_UNSAFE = re.compile(r"[^a-z0-9]")


def sanitize_slug(slug: str) -> str:
    return _SLUG_UNSAFE.sub("", slug or "") or "image"


def timestamp_label(when: datetime) -> str:
    return when.strftime("%Y%m%d%H%M%S") + f"{when.microsecond // 1000:03d}"


def file_extension(filename: str, mime_type: str = "") -> str:
    if "." in (filename or ""):
        ext = _EXT_UNSAFE.sub("", filename.rsplit(".", 1)[-1].lower())
        if ext:
            return ext
    guessed = mimetypes.guess_extension(mime_type or "") or ""
    ext = _EXT_UNSAFE.sub("", guessed.lower())
    if ext in ("", "jpe", "jpeg"):
        return "jpg"
    return ext


class ArtifactNamer:
    """Derive the shared base name of a post and its image.

    ``timestamp_slug`` names read like ``20240501093015123-happy-dog``;
    ``content_hash`` names are the sha256 of the image bytes.
    """

    def __init__(self, strategy: str = "timestamp_slug") -> None:
        self.strategy = strategy

    def derive(self, filename: str, mime_type: str, image: bytes, when: datetime, slug: str) -> ArtifactNames:
        if self.strategy == "content_hash":
            base_name = hashlib.sha256(image).hexdigest()
        else:
            base_name = f"{timestamp_label(when)}-{sanitize_slug(slug)}"
        return ArtifactNames(base_name=base_name, extension=file_extension(filename, mime_type))
