from io import BytesIO
from typing import Any, Callable, Dict, FrozenSet, Optional, Tuple
from urllib.parse import quote

from botocore.exceptions import BotoCoreError, ClientError
from PIL import ExifTags, Image, UnidentifiedImageError

from .models import LocationResolution

GPS_IFD_TAG = 34853

Coordinates = Tuple[float, float]


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _rational_to_float(value: Any) -> float:
    if hasattr(value, "numerator") and hasattr(value, "denominator"):
        return float(value.numerator) / float(value.denominator)
    if isinstance(value, tuple) and len(value) == 2:
        return float(value[0]) / float(value[1])
    return float(value)


def _to_degrees(value: Any) -> float:
    degrees = _rational_to_float(value[0])
    minutes = _rational_to_float(value[1])
    seconds = _rational_to_float(value[2])
    return degrees + (minutes / 60.0) + (seconds / 3600.0)


def coordinates_from_gps_tags(gps_tags: Dict[str, Any]) -> Optional[Coordinates]:
    lat_ref = gps_tags.get("GPSLatitudeRef")
    lat_val = gps_tags.get("GPSLatitude")
    lng_ref = gps_tags.get("GPSLongitudeRef")
    lng_val = gps_tags.get("GPSLongitude")
    if not (lat_ref and lat_val and lng_ref and lng_val):
        return None
    try:
        lat = _to_degrees(lat_val)
        lng = _to_degrees(lng_val)
    except (TypeError, ValueError, IndexError, ZeroDivisionError):
        return None
    if str(lat_ref).upper().startswith("S"):
        lat = -lat
    if str(lng_ref).upper().startswith("W"):
        lng = -lng
    if not (-90.0 <= lat <= 90.0 and -180.0 <= lng <= 180.0):
        return None
    return lat, lng


def read_gps_coordinates(data: bytes) -> Optional[Coordinates]:
    """Read signed decimal GPS coordinates from a photo's EXIF block."""
    try:
        with Image.open(BytesIO(data)) as image:
            exif = image.getexif()
    except (UnidentifiedImageError, OSError, ValueError):
        return None

    try:
        gps_info = exif.get_ifd(ExifTags.IFD.GPSInfo)
    except (KeyError, ValueError, TypeError):
        gps_info = None
    if not gps_info:
        gps_info = exif.get(GPS_IFD_TAG)
    if not isinstance(gps_info, dict) or not gps_info:
        return None

    gps_tags = {ExifTags.GPSTAGS.get(key, key): value for key, value in gps_info.items()}
    return coordinates_from_gps_tags(gps_tags)


def coordinate_map_link(lat: float, lng: float) -> str:
    return f"https://www.google.com/maps?q={lat},{lng}"


def search_map_link(text: str) -> str:
    return f"https://www.google.com/maps/search/?api=1&query={quote(text, safe='')}"


class AmazonLocationGeocoder:
    def __init__(self, client: Any, index_name: str, language: str = "ja") -> None:
        self.client = client
        self.index_name = index_name
        self.language = language

    def reverse(self, lat: float, lng: float) -> Optional[str]:
        if not self.index_name:
            return None
        try:
            response = self.client.search_place_index_for_position(
                IndexName=self.index_name,
                Position=[lng, lat],
                MaxResults=1,
                Language=self.language,
            )
        except (BotoCoreError, ClientError) as exc:
            print(f"Reverse geocoding failed for {lat},{lng}: {exc}")
            return None

        results = response.get("Results") or []
        if not results:
            return None
        place = results[0].get("Place") or {}
        label = place.get("Label")
        if isinstance(label, str) and label.strip():
            return label.strip()
        parts = [place.get("Municipality"), place.get("Region"), place.get("Country")]
        parts = [part.strip() for part in parts if isinstance(part, str) and part.strip()]
        return ", ".join(parts) if parts else None


class GeolocationResolver:
    def __init__(
        self,
        geocoder: Optional[AmazonLocationGeocoder],
        allowed_categories: FrozenSet[str],
        unknown_markers: FrozenSet[str] = frozenset({"unknown"}),
        read_coordinates: Callable[[bytes], Optional[Coordinates]] = read_gps_coordinates,
    ) -> None:
        self.geocoder = geocoder
        self.allowed_categories = frozenset(category.strip().lower() for category in allowed_categories)
        self.unknown_markers = frozenset(marker.strip().lower() for marker in unknown_markers)
        self._read_coordinates = read_coordinates

    def allows(self, category: Optional[str]) -> bool:
        return bool(category) and category.strip().lower() in self.allowed_categories

    def resolve(self, image: bytes, category: Optional[str], fallback_text: Optional[str]) -> LocationResolution:
        # Categories such as "home" may reveal private places.
        if not self.allows(category):
            return LocationResolution()

        coordinates = self._read_coordinates(image)
        if coordinates is not None and all(_is_number(value) for value in coordinates):
            lat, lng = coordinates
            address = self.geocoder.reverse(lat, lng) if self.geocoder is not None else None
            print(f"[{category}] location from photo metadata: {address or f'{lat},{lng}'}")
            return LocationResolution(address_text=address, map_link=coordinate_map_link(lat, lng), lat=lat, lng=lng)

        text = fallback_text.strip() if isinstance(fallback_text, str) else ""
        if text and text.lower() not in self.unknown_markers:
            print(f"[{category}] location from submitted text: {text}")
            return LocationResolution(address_text=text, map_link=search_map_link(text))

        print(f"[{category}] no location available.")
        return LocationResolution()
