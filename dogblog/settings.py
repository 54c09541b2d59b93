import base64
import json
import os
from dataclasses import dataclass, field
from datetime import timezone as dt_timezone
from datetime import tzinfo
from typing import Any, Dict, FrozenSet, List, Mapping, Optional, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

import boto3

from .errors import ConfigurationError

NAMING_STRATEGIES = ("timestamp_slug", "content_hash")
MODEL_STRATEGIES = ("ranked", "first_match")
MISSING_PUBLISH_SIGNAL_MODES = ("skip", "error")

DEFAULT_FORM_FIELD_TITLES = {
    "email": "Email Address",
    "photo": "Photo",
    "location": "Location",
    "category": "Category",
    "memo": "Memo",
    "publish": "Publish",
}

AWS_CLIENT_CONFIG = Config(connect_timeout=5, read_timeout=10, retries={"max_attempts": 2})


def resolve_zone(name: str) -> tzinfo:
    if name == "UTC":
        return dt_timezone.utc
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ConfigurationError(f"Unknown TIMEZONE: {name}") from exc


@dataclass(frozen=True)
class Settings:
    allowed_email: str = ""
    gemini_api_key: str = ""
    github_token: str = ""
    github_repo: str = ""
    github_branch: str = ""
    folder_uri: str = ""
    processed_folder_uri: str = ""
    uploads_bucket: str = ""
    upload_prefix: str = "uploads"
    status_table: str = ""
    place_index_name: str = ""
    geocode_language: str = "ja"
    location_categories: FrozenSet[str] = frozenset({"park", "travel", "dog-run", "shop"})
    unknown_location_markers: FrozenSet[str] = frozenset({"unknown", "不明"})
    naming_strategy: str = "timestamp_slug"
    model_strategy: str = "ranked"
    model_preference: str = "flash"
    default_model: str = "gemini-2.5-flash"
    model_backoff_seconds: float = 1.0
    generation_timeout: float = 30.0
    model_list_timeout: float = 10.0
    store_timeout: float = 10.0
    sweep_budget_seconds: float = 300.0
    sweep_max_files: int = 0
    missing_publish_signal: str = "skip"
    publish_marker: str = "Publish"
    publish_column: int = 7
    post_language: str = "ja"
    default_category: str = "uncategorized"
    timezone: str = "UTC"
    form_field_titles: Mapping[str, str] = field(default_factory=lambda: dict(DEFAULT_FORM_FIELD_TITLES))

    def __post_init__(self) -> None:
        if self.naming_strategy not in NAMING_STRATEGIES:
            raise ConfigurationError(f"Unknown NAMING_STRATEGY: {self.naming_strategy}")
        if self.model_strategy not in MODEL_STRATEGIES:
            raise ConfigurationError(f"Unknown MODEL_STRATEGY: {self.model_strategy}")
        if self.missing_publish_signal not in MISSING_PUBLISH_SIGNAL_MODES:
            raise ConfigurationError(f"Unknown MISSING_PUBLISH_SIGNAL: {self.missing_publish_signal}")
        resolve_zone(self.timezone)

    def field_title(self, name: str) -> str:
        return self.form_field_titles.get(name) or DEFAULT_FORM_FIELD_TITLES[name]

    def missing_for_publishing(self) -> List[str]:
        missing = []
        if not self.gemini_api_key:
            missing.append("GEMINI_API_KEY")
        if not self.github_token:
            missing.append("GITHUB_TOKEN")
        if not self.github_repo:
            missing.append("GITHUB_REPO")
        return missing

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None, secrets_client: Any = None) -> "Settings":
        env = os.environ if environ is None else environ

        def text(name: str, default: str = "") -> str:
            value = env.get(name)
            return value.strip() if isinstance(value, str) and value.strip() else default

        def number(name: str, default: float) -> float:
            raw = text(name)
            if not raw:
                return default
            try:
                return float(raw)
            except ValueError as exc:
                raise ConfigurationError(f"Invalid number for {name}: {raw}") from exc

        def words(name: str, default: FrozenSet[str]) -> FrozenSet[str]:
            raw = text(name)
            if not raw:
                return default
            return frozenset(part.strip() for part in raw.split(",") if part.strip())

        gemini_api_key = text("GEMINI_API_KEY")
        github_token = text("GITHUB_TOKEN")
        gemini_secret_arn = text("GEMINI_API_KEY_SECRET_ARN")
        github_secret_arn = text("GITHUB_TOKEN_SECRET_ARN")
        if (not gemini_api_key and gemini_secret_arn) or (not github_token and github_secret_arn):
            if secrets_client is None:
                secrets_client = boto3.client("secretsmanager", config=AWS_CLIENT_CONFIG)
            if not gemini_api_key and gemini_secret_arn:
                gemini_api_key = read_secret(secrets_client, gemini_secret_arn, ("apiKey", "key", "GEMINI_API_KEY"))
            if not github_token and github_secret_arn:
                github_token = read_secret(secrets_client, github_secret_arn, ("token", "GITHUB_TOKEN"))

        return cls(
            allowed_email=text("ALLOWED_EMAIL"),
            gemini_api_key=gemini_api_key,
            github_token=github_token,
            github_repo=text("GITHUB_REPO"),
            github_branch=text("GITHUB_BRANCH"),
            folder_uri=text("FOLDER_ID"),
            processed_folder_uri=text("PROCESSED_FOLDER_ID"),
            uploads_bucket=text("UPLOADS_BUCKET"),
            upload_prefix=text("UPLOAD_PREFIX", "uploads").strip("/"),
            status_table=text("STATUS_TABLE"),
            place_index_name=text("PLACE_INDEX_NAME"),
            geocode_language=text("GEOCODE_LANGUAGE", "ja"),
            location_categories=words("LOCATION_CATEGORIES", cls.location_categories),
            unknown_location_markers=words("UNKNOWN_LOCATION_MARKERS", cls.unknown_location_markers),
            naming_strategy=text("NAMING_STRATEGY", "timestamp_slug"),
            model_strategy=text("MODEL_STRATEGY", "ranked"),
            model_preference=text("MODEL_PREFERENCE", "flash"),
            default_model=text("DEFAULT_MODEL", "gemini-2.5-flash"),
            model_backoff_seconds=number("MODEL_BACKOFF_SECONDS", 1.0),
            generation_timeout=number("GENERATION_TIMEOUT", 30.0),
            model_list_timeout=number("MODEL_LIST_TIMEOUT", 10.0),
            store_timeout=number("STORE_TIMEOUT", 10.0),
            sweep_budget_seconds=number("SWEEP_BUDGET_SECONDS", 300.0),
            sweep_max_files=int(number("SWEEP_MAX_FILES", 0)),
            missing_publish_signal=text("MISSING_PUBLISH_SIGNAL", "skip"),
            publish_marker=text("PUBLISH_MARKER", "Publish"),
            publish_column=int(number("PUBLISH_COLUMN", 7)),
            post_language=text("POST_LANGUAGE", "ja"),
            default_category=text("DEFAULT_CATEGORY", "uncategorized"),
            timezone=text("TIMEZONE", "UTC"),
            form_field_titles=_parse_field_titles(text("FORM_FIELD_TITLES")),
        )


def _parse_field_titles(raw: str) -> Dict[str, str]:
    titles = dict(DEFAULT_FORM_FIELD_TITLES)
    if not raw:
        return titles
    try:
        overrides = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ConfigurationError(f"FORM_FIELD_TITLES is not valid JSON: {exc}") from exc
    if not isinstance(overrides, dict):
        raise ConfigurationError("FORM_FIELD_TITLES must be a JSON object.")
    for name, title in overrides.items():
        if name in titles and isinstance(title, str) and title.strip():
            titles[name] = title.strip()
    return titles


def read_secret(client: Any, secret_arn: str, key_names: Tuple[str, ...]) -> str:
    try:
        response = client.get_secret_value(SecretId=secret_arn)
    except (BotoCoreError, ClientError) as exc:
        print(f"Failed to load secret {secret_arn}: {exc}")
        return ""

    secret_value = response.get("SecretString")
    if not secret_value and response.get("SecretBinary"):
        try:
            secret_value = base64.b64decode(response["SecretBinary"]).decode("utf-8")
        except (ValueError, UnicodeDecodeError) as exc:
            print(f"Failed to decode secret binary: {exc}")
            secret_value = ""

    if not isinstance(secret_value, str) or not secret_value.strip():
        return ""

    secret_value = secret_value.strip()
    try:
        payload = json.loads(secret_value)
    except json.JSONDecodeError:
        return secret_value
    if isinstance(payload, dict):
        for key_name in key_names:
            key_value = payload.get(key_name)
            if isinstance(key_value, str) and key_value.strip():
                return key_value.strip()
    return secret_value
