import base64
import json
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional
from urllib.parse import quote

from . import transport
from .errors import AllModelsFailed, MalformedGeneration, RequestTimeout, TransportError
from .models import ArticleDraft

GEMINI_API_BASE = "https://generativelanguage.googleapis.com/v1beta"
GENERATE_METHOD = "generateContent"


@dataclass(frozen=True)
class PromptContext:
    location_text: Optional[str] = None
    category: Optional[str] = None
    memo: Optional[str] = None


def _language_hint(language: str) -> str:
    return "Write in Japanese." if language == "ja" else "Write in English."


def build_prompt(context: PromptContext, language: str = "ja") -> str:
    has_location = bool(context.location_text)
    prompt = (
        "You are a professional blogger writing about a dog from the attached photo.\n"
        f"{_language_hint(language)}\n"
        "Input:\n"
        f"- Location: {context.location_text or 'unknown'}\n"
        f"- Category: {context.category or 'daily'}\n"
        f"- Memo: {context.memo or 'none'}\n"
        "Requirements:\n"
        "- Return JSON only, without Markdown code fences.\n"
        '- "filename": English words describing the photo in kebab-case, no extension.\n'
        '- "title": an engaging title of at most 30 characters.\n'
        '- "content": the article body in Markdown. Weave in the location and memo naturally.\n'
        '- "tags": an array of tag strings.\n'
    )
    if has_location:
        prompt += (
            "Location rules:\n"
            "- Write as a neutral visitor observing the place from outside. Never write in the voice "
            "of the business or facility (no \"we\", \"our shop\", \"please visit us\").\n"
            "- When the photo or input leaves something uncertain, use hedged wording such as "
            "\"appears to be\" instead of stating it as fact.\n"
        )
    prompt += (
        "JSON schema:\n"
        "{\n"
        '  "filename": "string",\n'
        '  "title": "string",\n'
        '  "content": "string",\n'
        '  "tags": ["string"]\n'
        "}\n"
    )
    return prompt


def score_model(name: str) -> int:
    score = 0
    if "flash" in name:
        score += 10
    if "pro" in name:
        score += 5
    if "latest" in name:
        score += 2
    return score


def _strip_model_prefix(name: str) -> str:
    return name.split("/")[-1]


def parse_generation(raw: str) -> ArticleDraft:
    """Unwrap the response envelope and parse the JSON article it carries."""
    try:
        payload = json.loads(raw)
        text = payload["candidates"][0]["content"]["parts"][0]["text"]
    except (ValueError, KeyError, IndexError, TypeError) as exc:
        raise MalformedGeneration(f"Unexpected Gemini response envelope: {exc}") from exc
    if not isinstance(text, str):
        raise MalformedGeneration("Gemini response text is not a string.")
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise MalformedGeneration(f"Gemini output was not valid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise MalformedGeneration("Gemini output was not a JSON object.")
    return ArticleDraft.from_json(data)


class GeminiClient:
    def __init__(
        self,
        api_key: str,
        default_model: str = "gemini-2.5-flash",
        strategy: str = "ranked",
        preference: str = "flash",
        language: str = "ja",
        timeout: float = 30.0,
        list_timeout: float = 10.0,
        backoff_seconds: float = 1.0,
        send: transport.Transport = transport.send,
        sleep: Callable[[float], None] = time.sleep,
        api_base: str = GEMINI_API_BASE,
    ) -> None:
        self.api_key = api_key
        self.default_model = default_model
        self.strategy = strategy
        self.preference = preference
        self.language = language
        self.timeout = timeout
        self.list_timeout = list_timeout
        self.backoff_seconds = backoff_seconds
        self._send = send
        self._sleep = sleep
        self._api_base = api_base.rstrip("/")

    def _list_capable_models(self) -> List[str]:
        names: List[str] = []
        page_token = ""
        while True:
            url = f"{self._api_base}/models?key={quote(self.api_key, safe='')}&pageSize=1000"
            if page_token:
                url += f"&pageToken={quote(page_token, safe='')}"
            response = self._send("GET", url, "gemini", self.list_timeout)
            if response.status != 200:
                raise TransportError(f"Model listing returned {response.status}: {response.body}")
            payload = response.json()
            for model in payload.get("models") or []:
                if not isinstance(model, dict) or not isinstance(model.get("name"), str):
                    continue
                methods = model.get("supportedGenerationMethods") or []
                if GENERATE_METHOD in methods:
                    names.append(_strip_model_prefix(model["name"]))
            page_token = payload.get("nextPageToken") or ""
            if not page_token:
                return names

    def candidate_models(self) -> List[str]:
        try:
            capable = self._list_capable_models()
        except (TransportError, ValueError, AttributeError) as exc:
            print(f"Failed to list Gemini models: {exc}")
            capable = []

        if self.strategy == "first_match":
            chosen = [name for name in capable if self.preference in name][:1]
        else:
            chosen = sorted(capable, key=score_model, reverse=True)

        if not chosen:
            print(f"No suitable Gemini model found; falling back to {self.default_model}")
            return [self.default_model]
        print(f"Gemini model candidates: {', '.join(chosen)}")
        return chosen

    def _request_body(self, prompt: str, mime_type: str, image: bytes) -> Dict[str, Any]:
        return {
            "contents": [
                {
                    "parts": [
                        {"text": prompt},
                        {"inline_data": {"mime_type": mime_type, "data": base64.b64encode(image).decode("ascii")}},
                    ]
                }
            ],
            "generationConfig": {"responseMimeType": "application/json"},
        }

    def generate(self, image: bytes, mime_type: str, context: PromptContext) -> ArticleDraft:
        body = self._request_body(build_prompt(context, self.language), mime_type, image)
        models = self.candidate_models()
        last_error = ""
        timeouts = 0
        for index, model in enumerate(models):
            url = f"{self._api_base}/models/{model}:{GENERATE_METHOD}?key={quote(self.api_key, safe='')}"
            print(f"Trying Gemini model: {model}")
            try:
                response = self._send("POST", url, "gemini", self.timeout, payload=body)
            except RequestTimeout as exc:
                timeouts += 1
                last_error = str(exc)
                print(f"Gemini model {model} timed out.")
            except TransportError as exc:
                last_error = str(exc)
                print(f"Gemini model {model} request failed: {exc}")
            else:
                if response.status == 200:
                    draft = parse_generation(response.body)
                    print(f"Gemini model {model} produced: {draft.title}")
                    return draft
                last_error = f"{response.status} {response.body}"
                print(f"Gemini model {model} failed ({response.status}); trying next.")
            if index < len(models) - 1:
                self._sleep(self.backoff_seconds)

        if timeouts == len(models):
            raise RequestTimeout("gemini", last_error)
        raise AllModelsFailed(last_error)
