import json
from datetime import datetime
from typing import Optional

from .models import ArticleDraft, ArtifactNames, LocationResolution

LOCATION_HEADING = "### 📍 Photographed at"
MAP_LINK_LABEL = "View on Google Maps"


def _quoted(value: str) -> str:
    # JSON string literals are valid double-quoted YAML scalars.
    return json.dumps(value, ensure_ascii=False)


def build_location_section(location: LocationResolution) -> str:
    if location.is_empty:
        return ""
    lines = ["", "", LOCATION_HEADING]
    if location.address_text:
        lines.append(location.address_text)
    if location.map_link:
        lines.extend(["", f"[{MAP_LINK_LABEL}]({location.map_link})"])
    return "\n".join(lines)


def build_front_matter(
    draft: ArticleDraft,
    names: ArtifactNames,
    category: Optional[str],
    location: LocationResolution,
    published_at: datetime,
    default_category: str = "uncategorized",
) -> str:
    lines = [
        "---",
        f"title: {_quoted(draft.title)}",
        f"date: {published_at.isoformat()}",
        f"tags: {json.dumps(list(draft.tags), ensure_ascii=False)}",
        f"categories: {json.dumps([category or default_category], ensure_ascii=False)}",
        "cover:",
        f"  image: {_quoted(names.cover_image)}",
    ]
    if location.has_coordinates:
        lines.extend(["location:", f"  lat: {location.lat}", f"  lng: {location.lng}"])
    lines.append("---")
    return "\n".join(lines)


def build_post_markdown(
    draft: ArticleDraft,
    names: ArtifactNames,
    category: Optional[str],
    location: LocationResolution,
    published_at: datetime,
    default_category: str = "uncategorized",
) -> str:
    front_matter = build_front_matter(draft, names, category, location, published_at, default_category)
    return f"{front_matter}\n\n{draft.content}{build_location_section(location)}\n"
