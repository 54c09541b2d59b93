import re
from typing import Any, Optional, Union

from .errors import InvalidImageReference, PublishSignalMissing, Unauthorized
from .models import FolderEntry, FormEvent, ImageRef, SheetEditEvent, SubmissionRecord
from .settings import Settings

Trigger = Union[FormEvent, SheetEditEvent, FolderEntry]

_ID_PARAM = re.compile(r"[?&]id=([A-Za-z0-9_-]+)")
_ID_PATH = re.compile(r"/d/([A-Za-z0-9_-]+)")

# Sheet rows: A timestamp, B email, C photo URL, D location, E category, F memo.
SHEET_EMAIL, SHEET_PHOTO, SHEET_LOCATION, SHEET_CATEGORY, SHEET_MEMO = 1, 2, 3, 4, 5
SHEET_HEADER_ROWS = 1


def _text(value: Any) -> Optional[str]:
    if value is None or isinstance(value, bool):
        return None
    stripped = str(value).strip()
    return stripped or None


def extract_image_id(reference: Optional[str]) -> str:
    """Pull the file id out of ``...?id=<ID>`` or ``.../d/<ID>/...`` links."""
    if reference:
        for pattern in (_ID_PARAM, _ID_PATH):
            match = pattern.search(reference)
            if match:
                return match.group(1)
    raise InvalidImageReference(reference)


def check_authorized(identity: Optional[str], settings: Settings) -> None:
    if settings.allowed_email and (identity or "").strip().lower() != settings.allowed_email.strip().lower():
        raise Unauthorized(identity)


def _missing_publish_signal(description: str, settings: Settings) -> None:
    if settings.missing_publish_signal == "error":
        raise PublishSignalMissing(f"No publish signal: {description}")
    print(f"Skipped: no publish signal ({description}).")
    return None


def is_publish_signal(value: Any, settings: Settings) -> bool:
    if value is True:
        return True
    text = _text(value)
    if text is None:
        return False
    return text.upper() == "TRUE" or text == settings.publish_marker


def normalize_form_event(event: FormEvent, settings: Settings) -> Optional[SubmissionRecord]:
    def answer(name: str) -> Optional[str]:
        answers = event.named_values.get(settings.field_title(name)) or []
        return _text(answers[0]) if answers else None

    identity = answer("email")
    check_authorized(identity, settings)

    publish_value = answer("publish")
    if not is_publish_signal(publish_value, settings):
        return _missing_publish_signal(f"form value {publish_value!r}", settings)

    return SubmissionRecord(
        image_ref=ImageRef(image_id=extract_image_id(answer("photo"))),
        location=answer("location"),
        category=answer("category"),
        memo=answer("memo"),
        respondent_identity=identity,
        publish_requested=True,
    )


def normalize_sheet_edit(event: SheetEditEvent, settings: Settings) -> Optional[SubmissionRecord]:
    # Row values are positional; reordering the sheet columns breaks this.
    if event.column != settings.publish_column or event.row <= SHEET_HEADER_ROWS:
        return None

    def cell(index: int) -> Optional[str]:
        return _text(event.values[index]) if index < len(event.values) else None

    identity = cell(SHEET_EMAIL)
    check_authorized(identity, settings)

    if not is_publish_signal(event.value, settings):
        return _missing_publish_signal(f"row {event.row} value {event.value!r}", settings)

    return SubmissionRecord(
        image_ref=ImageRef(image_id=extract_image_id(cell(SHEET_PHOTO))),
        location=cell(SHEET_LOCATION),
        category=cell(SHEET_CATEGORY),
        memo=cell(SHEET_MEMO),
        respondent_identity=identity,
        publish_requested=True,
    )


def normalize_folder_entry(entry: FolderEntry, settings: Settings) -> SubmissionRecord:
    return SubmissionRecord(image_ref=ImageRef(bucket=entry.bucket, key=entry.key), publish_requested=True)


def normalize(trigger: Trigger, settings: Settings) -> Optional[SubmissionRecord]:
    """Return the canonical record, or None when the submission is silently skipped."""
    if isinstance(trigger, FormEvent):
        return normalize_form_event(trigger, settings)
    if isinstance(trigger, SheetEditEvent):
        return normalize_sheet_edit(trigger, settings)
    if isinstance(trigger, FolderEntry):
        return normalize_folder_entry(trigger, settings)
    raise TypeError(f"Unsupported trigger: {type(trigger).__name__}")
