import mimetypes
from typing import Any, Iterator, Optional, Tuple
from urllib.parse import urlparse

from botocore.exceptions import BotoCoreError, ClientError

from .errors import ConfigurationError, ImageNotFound
from .models import FolderEntry, ImageRef, SourceImage

SWEEPABLE_TYPES = ("image/jpeg", "image/png")


def parse_s3_uri(uri: str) -> Tuple[str, str]:
    parsed = urlparse(uri or "")
    if parsed.scheme != "s3" or not parsed.netloc:
        raise ConfigurationError(f"Expected an s3://bucket/prefix URI, got: {uri!r}")
    return parsed.netloc, parsed.path.strip("/")


def _guess_type(key: str) -> str:
    return mimetypes.guess_type(key)[0] or ""


class S3ImageSource:
    """Resolve image handles to bytes.

    Uploaded photos live at ``{prefix}/{image_id}/{filename}`` in the uploads
    bucket; folder-sweep handles point straight at an object.
    """

    def __init__(self, s3_client: Any, uploads_bucket: str = "", upload_prefix: str = "uploads") -> None:
        self.s3 = s3_client
        self.uploads_bucket = uploads_bucket
        self.upload_prefix = upload_prefix.strip("/")

    def _find_upload_key(self, image_id: str) -> Optional[str]:
        if not self.uploads_bucket:
            raise ConfigurationError("UPLOADS_BUCKET is not configured.")
        prefix = f"{self.upload_prefix}/{image_id}/" if self.upload_prefix else f"{image_id}/"
        response = self.s3.list_objects_v2(Bucket=self.uploads_bucket, Prefix=prefix, MaxKeys=10)
        for item in response.get("Contents") or []:
            key = item.get("Key")
            if isinstance(key, str) and not key.endswith("/"):
                return key
        return None

    def fetch(self, ref: ImageRef) -> SourceImage:
        try:
            if ref.bucket and ref.key:
                bucket, key = ref.bucket, ref.key
            else:
                bucket = self.uploads_bucket
                key = self._find_upload_key(ref.image_id or "")
                if key is None:
                    raise ImageNotFound(f"No uploaded photo for {ref.describe()}")
            response = self.s3.get_object(Bucket=bucket, Key=key)
            data = response["Body"].read()
        except (BotoCoreError, ClientError) as exc:
            raise ImageNotFound(f"Failed to load image {ref.describe()}: {exc}") from exc
        if not data:
            raise ImageNotFound(f"Empty image data for {ref.describe()}")

        content_type = response.get("ContentType")
        if not isinstance(content_type, str) or not content_type.startswith("image/"):
            content_type = _guess_type(key) or "image/jpeg"
        return SourceImage(name=key.rsplit("/", 1)[-1], mime_type=content_type, data=data)


class S3Folder:
    def __init__(self, s3_client: Any, uri: str) -> None:
        self.s3 = s3_client
        self.bucket, self.prefix = parse_s3_uri(uri)

    def _key_for(self, name: str) -> str:
        return f"{self.prefix}/{name}" if self.prefix else name

    def list_images(self) -> Iterator[FolderEntry]:
        paginator = self.s3.get_paginator("list_objects_v2")
        prefix = f"{self.prefix}/" if self.prefix else ""
        for page in paginator.paginate(Bucket=self.bucket, Prefix=prefix, Delimiter="/"):
            for item in page.get("Contents") or []:
                key = item.get("Key")
                if not isinstance(key, str) or _guess_type(key) not in SWEEPABLE_TYPES:
                    continue
                yield FolderEntry(bucket=self.bucket, key=key, size=int(item.get("Size") or 0))

    def move_in(self, entry: FolderEntry) -> str:
        """Move an entry from another folder into this one; return the new key."""
        target_key = self._key_for(entry.name)
        self.s3.copy_object(
            Bucket=self.bucket,
            Key=target_key,
            CopySource={"Bucket": entry.bucket, "Key": entry.key},
        )
        self.s3.delete_object(Bucket=entry.bucket, Key=entry.key)
        return target_key
