from dataclasses import replace

import pytest

from dogblog.errors import InvalidImageReference, PublishSignalMissing, Unauthorized
from dogblog.models import FolderEntry, FormEvent, ImageRef, SheetEditEvent
from dogblog.normalizer import extract_image_id, normalize


def form_event(**overrides):
    named_values = {
        "Email Address": ["owner@example.com"],
        "Photo": ["https://drive.google.com/open?id=abc_123-XYZ"],
        "Location": ["Yoyogi Park"],
        "Category": ["park"],
        "Memo": ["first walk"],
        "Publish": ["Publish"],
    }
    named_values.update(overrides)
    return FormEvent.from_payload({"namedValues": named_values, "range": {"sheet": "Responses", "rowStart": 4}})


def sheet_edit(value="TRUE", row=5, column=7, email="owner@example.com"):
    return SheetEditEvent.from_payload(
        {
            "range": {"sheet": "Responses", "row": row, "column": column},
            "value": value,
            "values": [
                "2024/05/01 9:30:00",
                email,
                "https://drive.google.com/file/d/FILE42/view?usp=sharing",
                "Dog run",
                "dog-run",
                "met a friend",
            ],
        }
    )


@pytest.mark.parametrize(
    "url, expected",
    [
        ("https://drive.google.com/open?id=abc_123-XYZ", "abc_123-XYZ"),
        ("https://drive.google.com/uc?export=view&id=Q9", "Q9"),
        ("https://drive.google.com/file/d/FILE42/view", "FILE42"),
    ],
)
def test_extract_image_id_known_shapes(url, expected):
    assert extract_image_id(url) == expected


@pytest.mark.parametrize("url", [None, "", "https://example.com/photo.jpg"])
def test_extract_image_id_rejects_unknown_shapes(url):
    with pytest.raises(InvalidImageReference):
        extract_image_id(url)


def test_form_event_is_looked_up_by_question_title(settings):
    record = normalize(form_event(), settings)

    assert record.image_ref == ImageRef(image_id="abc_123-XYZ")
    assert record.location == "Yoyogi Park"
    assert record.category == "park"
    assert record.memo == "first walk"
    assert record.respondent_identity == "owner@example.com"
    assert record.publish_requested is True


def test_form_event_uses_configured_titles(settings):
    custom = replace(settings, form_field_titles={**settings.form_field_titles, "memo": "Notes"})
    record = normalize(form_event(Notes=["windy day"]), custom)

    assert record.memo == "windy day"


def test_form_without_publish_signal_is_skipped(settings, capsys):
    assert normalize(form_event(Publish=[]), settings) is None
    assert "no publish signal" in capsys.readouterr().out


def test_form_without_publish_signal_can_be_an_error(settings):
    strict = replace(settings, missing_publish_signal="error")
    with pytest.raises(PublishSignalMissing):
        normalize(form_event(Publish=["later"]), strict)


def test_form_from_other_user_is_unauthorized(settings):
    with pytest.raises(Unauthorized):
        normalize(form_event(**{"Email Address": ["stranger@example.com"]}), settings)


def test_form_without_email_is_unauthorized_when_allow_list_set(settings):
    with pytest.raises(Unauthorized):
        normalize(form_event(**{"Email Address": []}), settings)


def test_authorization_is_checked_before_image_reference(settings):
    event = form_event(**{"Email Address": ["stranger@example.com"], "Photo": ["not a link"]})
    with pytest.raises(Unauthorized):
        normalize(event, settings)


def test_authorization_is_checked_before_publish_signal(settings):
    strict = replace(settings, missing_publish_signal="error")
    with pytest.raises(Unauthorized):
        normalize(form_event(**{"Email Address": ["stranger@example.com"], "Publish": []}), strict)
    with pytest.raises(Unauthorized):
        normalize(sheet_edit(value="FALSE", email="someone@example.com"), strict)


def test_form_with_bad_photo_url_is_rejected(settings):
    with pytest.raises(InvalidImageReference):
        normalize(form_event(Photo=["https://example.com/dog.jpg"]), settings)


def test_sheet_edit_reads_row_positionally(settings):
    record = normalize(sheet_edit(), settings)

    assert record.image_ref == ImageRef(image_id="FILE42")
    assert record.location == "Dog run"
    assert record.category == "dog-run"
    assert record.memo == "met a friend"


@pytest.mark.parametrize("value", [True, "TRUE", "true", "Publish"])
def test_sheet_edit_publish_signals(settings, value):
    assert normalize(sheet_edit(value=value), settings) is not None


def test_sheet_edit_ignores_other_columns_and_header(settings):
    assert normalize(sheet_edit(column=3), settings) is None
    assert normalize(sheet_edit(row=1), settings) is None


def test_sheet_edit_unchecked_is_skipped(settings):
    assert normalize(sheet_edit(value="FALSE"), settings) is None


def test_sheet_edit_unauthorized(settings):
    with pytest.raises(Unauthorized):
        normalize(sheet_edit(email="someone@example.com"), settings)


def test_folder_entry_needs_no_signal(settings):
    record = normalize(FolderEntry(bucket="photos", key="incoming/dog.png"), settings)

    assert record.image_ref == ImageRef(bucket="photos", key="incoming/dog.png")
    assert record.category is None
    assert record.publish_requested is True


def test_no_allow_list_accepts_anyone(settings):
    open_settings = replace(settings, allowed_email="")
    record = normalize(form_event(**{"Email Address": ["anyone@example.com"]}), open_settings)
    assert record.respondent_identity == "anyone@example.com"
