from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


def _as_text(value: Any) -> Optional[str]:
    if isinstance(value, str):
        stripped = value.strip()
        return stripped or None
    return None


@dataclass(frozen=True)
class ImageRef:
    """Handle for a source photo: an uploaded image id or a direct S3 object."""

    image_id: Optional[str] = None
    bucket: Optional[str] = None
    key: Optional[str] = None

    def describe(self) -> str:
        if self.bucket and self.key:
            return f"s3://{self.bucket}/{self.key}"
        return f"id={self.image_id}"


@dataclass(frozen=True)
class SourceImage:
    name: str
    mime_type: str
    data: bytes


@dataclass(frozen=True)
class SubmissionRecord:
    image_ref: ImageRef
    location: Optional[str] = None
    category: Optional[str] = None
    memo: Optional[str] = None
    respondent_identity: Optional[str] = None
    publish_requested: bool = False


@dataclass(frozen=True)
class LocationResolution:
    address_text: Optional[str] = None
    map_link: Optional[str] = None
    lat: Optional[float] = None
    lng: Optional[float] = None

    def __post_init__(self) -> None:
        if (self.lat is None) != (self.lng is None):
            raise ValueError("lat and lng must be provided together")
        if (self.address_text or self.lat is not None) and not self.map_link:
            raise ValueError("map_link is required when a location is present")

    @property
    def has_coordinates(self) -> bool:
        return self.lat is not None and self.lng is not None

    @property
    def is_empty(self) -> bool:
        return not self.address_text and not self.map_link and not self.has_coordinates

    def prompt_text(self) -> Optional[str]:
        if self.address_text:
            return self.address_text
        if self.has_coordinates:
            return f"latitude {self.lat}, longitude {self.lng}"
        return None


@dataclass(frozen=True)
class ArticleDraft:
    filename: str = ""
    title: str = ""
    content: str = ""
    tags: Tuple[str, ...] = ()

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "ArticleDraft":
        raw_tags = data.get("tags") if isinstance(data.get("tags"), list) else []
        tags = [_as_text(str(tag)) for tag in raw_tags if tag is not None]
        return cls(
            filename=_as_text(data.get("filename")) or "",
            title=_as_text(data.get("title")) or "",
            content=data.get("content").strip() if isinstance(data.get("content"), str) else "",
            tags=tuple(tag for tag in tags if tag),
        )


@dataclass(frozen=True)
class ArtifactNames:
    base_name: str
    extension: str

    @property
    def image_path(self) -> str:
        return f"static/images/{self.base_name}.{self.extension}"

    @property
    def post_path(self) -> str:
        return f"content/posts/{self.base_name}.md"

    @property
    def cover_image(self) -> str:
        return f"/images/{self.base_name}.{self.extension}"


@dataclass(frozen=True)
class RemoteFile:
    path: str
    content_base64: str
    commit_message: str
    revision_token: Optional[str] = None


class PipelineState(str, Enum):
    RECEIVED = "received"
    NORMALIZED = "normalized"
    LOCATION_RESOLVED = "location_resolved"
    LOCATION_SKIPPED = "location_skipped"
    CONTENT_GENERATED = "content_generated"
    NAMED = "named"
    IMAGE_UPLOADED = "image_uploaded"
    POST_UPLOADED = "post_uploaded"
    PUBLISHED = "published"
    FAILED = "failed"
    SKIPPED = "skipped"
    REJECTED = "rejected"


@dataclass
class PublishOutcome:
    state: PipelineState
    title: Optional[str] = None
    image_path: Optional[str] = None
    post_path: Optional[str] = None
    reason: Optional[str] = None

    @property
    def published(self) -> bool:
        return self.state is PipelineState.PUBLISHED

    def to_payload(self) -> Dict[str, Any]:
        return {
            "state": self.state.value,
            "title": self.title,
            "image_path": self.image_path,
            "post_path": self.post_path,
            "reason": self.reason,
        }


# Trigger payloads. Each variant has its own normaliser in dogblog.normalizer.


@dataclass(frozen=True)
class FormEvent:
    named_values: Dict[str, List[str]]
    sheet: Optional[str] = None
    row: Optional[int] = None

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "FormEvent":
        raw = payload.get("namedValues") if isinstance(payload.get("namedValues"), dict) else {}
        named_values: Dict[str, List[str]] = {}
        for title, answers in raw.items():
            if isinstance(answers, list):
                named_values[str(title)] = [str(answer) for answer in answers if answer is not None]
            elif answers is not None:
                named_values[str(title)] = [str(answers)]
        rng = payload.get("range") if isinstance(payload.get("range"), dict) else {}
        row = rng.get("rowStart")
        return cls(
            named_values=named_values,
            sheet=_as_text(rng.get("sheet")),
            row=row if isinstance(row, int) and not isinstance(row, bool) else None,
        )


@dataclass(frozen=True)
class SheetEditEvent:
    row: int
    column: int
    value: Any
    values: Tuple[Any, ...] = ()
    sheet: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "SheetEditEvent":
        rng = payload.get("range") if isinstance(payload.get("range"), dict) else {}
        row = rng.get("row")
        column = rng.get("column")
        values = payload.get("values") if isinstance(payload.get("values"), list) else []
        return cls(
            row=row if isinstance(row, int) and not isinstance(row, bool) else 0,
            column=column if isinstance(column, int) and not isinstance(column, bool) else 0,
            value=payload.get("value"),
            values=tuple(values),
            sheet=_as_text(rng.get("sheet")),
        )


@dataclass(frozen=True)
class FolderEntry:
    bucket: str
    key: str
    size: int = 0

    @property
    def name(self) -> str:
        return self.key.rsplit("/", 1)[-1]
