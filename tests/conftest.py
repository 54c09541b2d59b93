import json
import os
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

import pytest

os.environ.setdefault("AWS_DEFAULT_REGION", "us-east-1")

from dogblog.models import SourceImage  # noqa: E402
from dogblog.settings import Settings  # noqa: E402
from dogblog.transport import HttpResponse  # noqa: E402

FIXED_NOW = datetime(2024, 5, 1, 9, 30, 15, 123456, tzinfo=timezone.utc)


class FakeTransport:
    """Stand-in for dogblog.transport.send that answers from a routing function."""

    def __init__(self, route: Callable[[str, str, Optional[Dict[str, Any]]], Any]) -> None:
        self.route = route
        self.calls: List[Dict[str, Any]] = []

    def __call__(self, method, url, service, timeout, payload=None, headers=None):
        self.calls.append(
            {"method": method, "url": url, "service": service, "timeout": timeout, "payload": payload, "headers": headers}
        )
        result = self.route(method, url, payload)
        if isinstance(result, Exception):
            raise result
        return result

    def urls(self, method: str) -> List[str]:
        return [call["url"] for call in self.calls if call["method"] == method]


def gemini_envelope(article: Dict[str, Any]) -> str:
    return json.dumps({"candidates": [{"content": {"parts": [{"text": json.dumps(article)}]}}]})


def models_listing(*names: str) -> HttpResponse:
    return HttpResponse(
        200,
        json.dumps(
            {"models": [{"name": f"models/{name}", "supportedGenerationMethods": ["generateContent"]} for name in names]}
        ),
    )


class FakeSource:
    def __init__(self, image: Optional[SourceImage] = None) -> None:
        self.image = image or SourceImage(name="walk.JPG", mime_type="image/jpeg", data=b"\xff\xd8fake-jpeg")
        self.fetched = []

    def fetch(self, ref):
        self.fetched.append(ref)
        return self.image


class RecordingStatus:
    def __init__(self) -> None:
        self.values: List[str] = []

    def set(self, text: str) -> None:
        self.values.append(text)


@pytest.fixture
def settings() -> Settings:
    return Settings(
        allowed_email="owner@example.com",
        gemini_api_key="gemini-key",
        github_token="gh-token",
        github_repo="owner/dog-blog",
        uploads_bucket="uploads-bucket",
        model_backoff_seconds=1.0,
    )


@pytest.fixture
def status() -> RecordingStatus:
    return RecordingStatus()


class FakeContentsApi:
    """Minimal in-memory GitHub contents endpoint."""

    def __init__(self):
        self.files = {}
        self.revision = 0

    def __call__(self, method, url, payload):
        path = url.split("/contents/", 1)[1].split("?", 1)[0]
        if method == "GET":
            if path not in self.files:
                return HttpResponse(404, '{"message": "Not Found"}')
            return HttpResponse(200, json.dumps({"sha": self.files[path]["sha"]}))
        current = self.files.get(path)
        if current and payload.get("sha") != current["sha"]:
            return HttpResponse(409, '{"message": "sha mismatch"}')
        if not current and "sha" in payload:
            return HttpResponse(422, '{"message": "sha for missing file"}')
        self.revision += 1
        self.files[path] = {"sha": f"sha{self.revision}", "content": payload["content"]}
        return HttpResponse(200 if current else 201, "{}")
