from datetime import datetime, timezone

from dogblog.markdown import build_post_markdown
from dogblog.models import ArticleDraft, ArtifactNames, LocationResolution

WHEN = datetime(2024, 5, 1, 9, 30, 15, tzinfo=timezone.utc)
DRAFT = ArticleDraft(filename="happy-shiba", title='Shiba "Hana" walks', content="A sunny day.", tags=("shiba", "walk"))
NAMES = ArtifactNames(base_name="20240501093015000-happy-shiba", extension="jpg")


def test_post_without_location():
    markdown = build_post_markdown(DRAFT, NAMES, "daily", LocationResolution(), WHEN)

    assert markdown == (
        "---\n"
        'title: "Shiba \\"Hana\\" walks"\n'
        "date: 2024-05-01T09:30:15+00:00\n"
        'tags: ["shiba", "walk"]\n'
        'categories: ["daily"]\n'
        "cover:\n"
        '  image: "/images/20240501093015000-happy-shiba.jpg"\n'
        "---\n"
        "\n"
        "A sunny day.\n"
    )


def test_post_with_coordinates_and_address():
    location = LocationResolution(
        address_text="Yoyogi Park", map_link="https://www.google.com/maps?q=35.6717,139.6949", lat=35.6717, lng=139.6949
    )

    markdown = build_post_markdown(DRAFT, NAMES, "park", location, WHEN)

    assert "location:\n  lat: 35.6717\n  lng: 139.6949\n---\n" in markdown
    assert markdown.endswith(
        "A sunny day.\n\n### 📍 Photographed at\nYoyogi Park\n\n"
        "[View on Google Maps](https://www.google.com/maps?q=35.6717,139.6949)\n"
    )


def test_post_with_coordinates_but_no_address():
    location = LocationResolution(map_link="https://www.google.com/maps?q=35.0,139.0", lat=35.0, lng=139.0)

    markdown = build_post_markdown(DRAFT, NAMES, "park", location, WHEN)

    assert "  lat: 35.0\n  lng: 139.0\n" in markdown
    assert markdown.endswith(
        "A sunny day.\n\n### 📍 Photographed at\n\n[View on Google Maps](https://www.google.com/maps?q=35.0,139.0)\n"
    )


def test_text_location_has_no_coordinates_block():
    location = LocationResolution(address_text="Kamakura", map_link="https://www.google.com/maps/search/?api=1&query=Kamakura")

    markdown = build_post_markdown(DRAFT, NAMES, "travel", location, WHEN)

    assert "lat:" not in markdown
    assert "### 📍 Photographed at\nKamakura\n" in markdown


def test_missing_category_and_tags_use_defaults():
    draft = ArticleDraft(title="Nap", content="Zzz")

    markdown = build_post_markdown(draft, NAMES, None, LocationResolution(), WHEN, default_category="misc")

    assert "tags: []\n" in markdown
    assert 'categories: ["misc"]\n' in markdown


def test_assembly_is_deterministic():
    location = LocationResolution(map_link="https://www.google.com/maps?q=1.5,2.5", lat=1.5, lng=2.5)

    first = build_post_markdown(DRAFT, NAMES, "park", location, WHEN)
    second = build_post_markdown(DRAFT, NAMES, "park", location, WHEN)

    assert first.encode("utf-8") == second.encode("utf-8")
