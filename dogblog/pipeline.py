from datetime import datetime, timezone
from typing import Any, Callable, Optional

import boto3

from .errors import InvalidImageReference, PipelineError, PublishSignalMissing, Unauthorized
from .gemini import GeminiClient, PromptContext
from .geolocation import AmazonLocationGeocoder, GeolocationResolver
from .github_store import GitHubContentStore
from .markdown import build_post_markdown
from .models import LocationResolution, PipelineState, PublishOutcome, SubmissionRecord
from .naming import ArtifactNamer
from .normalizer import Trigger, normalize
from .settings import AWS_CLIENT_CONFIG, Settings, resolve_zone
from .source_store import S3ImageSource
from .status import IN_PROGRESS, NullStatus, failure_marker, success_marker, write_status


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Publisher:
    """Run one submission from trigger payload to committed post.

    States advance ``received -> normalized -> location_resolved|location_skipped
    -> content_generated -> named -> image_uploaded -> post_uploaded ->
    published``; any failure ends in ``failed`` with the error shown on the
    status surface. Nothing is retried here beyond the model fallback inside
    the Gemini client.
    """

    def __init__(
        self,
        settings: Settings,
        source: S3ImageSource,
        resolver: GeolocationResolver,
        generator: GeminiClient,
        namer: ArtifactNamer,
        store: GitHubContentStore,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.settings = settings
        self.source = source
        self.resolver = resolver
        self.generator = generator
        self.namer = namer
        self.store = store
        self.clock = clock
        self._zone = resolve_zone(settings.timezone)

    def submit(self, trigger: Trigger, status: Any = None) -> PublishOutcome:
        status = status if status is not None else NullStatus()
        try:
            record = normalize(trigger, self.settings)
        except Unauthorized as exc:
            print(f"Blocked submission: {exc}")
            return PublishOutcome(state=PipelineState.REJECTED, reason=str(exc))
        except (InvalidImageReference, PublishSignalMissing) as exc:
            return self._fail(status, PipelineState.RECEIVED, exc, None)

        if record is None:
            return PublishOutcome(state=PipelineState.SKIPPED)

        write_status(status, IN_PROGRESS)
        return self.publish(record, status)

    def publish(self, record: SubmissionRecord, status: Any = None) -> PublishOutcome:
        status = status if status is not None else NullStatus()
        state = PipelineState.NORMALIZED
        print(f"Publishing {record.image_ref.describe()} (category={record.category}, by={record.respondent_identity})")
        try:
            image = self.source.fetch(record.image_ref)

            if self.resolver.allows(record.category):
                location = self.resolver.resolve(image.data, record.category, record.location)
                state = PipelineState.LOCATION_RESOLVED
            else:
                print(f"Location lookup skipped for category {record.category or '(none)'}.")
                location = LocationResolution()
                state = PipelineState.LOCATION_SKIPPED

            context = PromptContext(location_text=location.prompt_text(), category=record.category, memo=record.memo)
            draft = self.generator.generate(image.data, image.mime_type, context)
            state = PipelineState.CONTENT_GENERATED

            now = self.clock().astimezone(self._zone)
            names = self.namer.derive(image.name, image.mime_type, image.data, now, draft.filename)
            state = PipelineState.NAMED

            markdown = build_post_markdown(
                draft, names, record.category, location, now, self.settings.default_category
            )
            self.store.upload(names.image_path, image.data, f"Add image: {names.base_name}")
            state = PipelineState.IMAGE_UPLOADED

            self.store.upload(names.post_path, markdown.encode("utf-8"), f"Add post: {draft.title or names.base_name}")
            state = PipelineState.POST_UPLOADED
        except Exception as exc:
            return self._fail(status, state, exc, record)

        title = draft.title or names.base_name
        write_status(status, success_marker(title))
        print(f"Published: {title} ({names.post_path})")
        return PublishOutcome(
            state=PipelineState.PUBLISHED,
            title=title,
            image_path=names.image_path,
            post_path=names.post_path,
        )

    def _fail(
        self, status: Any, state: PipelineState, exc: Exception, record: Optional[SubmissionRecord]
    ) -> PublishOutcome:
        kind = exc.kind if isinstance(exc, PipelineError) else type(exc).__name__
        detail = f"after {state.value}: {kind}: {exc}"
        if record is not None:
            detail += (
                f" [image={record.image_ref.describe()} location={record.location!r}"
                f" category={record.category!r} memo={record.memo!r}]"
            )
        print(f"Submission failed {detail}")
        write_status(status, failure_marker(exc))
        return PublishOutcome(state=PipelineState.FAILED, reason=f"{kind}: {exc}")


def build_publisher(settings: Settings, clock: Callable[[], datetime] = utc_now) -> Publisher:
    s3 = boto3.client("s3", config=AWS_CLIENT_CONFIG)
    geocoder = None
    if settings.place_index_name:
        geocoder = AmazonLocationGeocoder(
            boto3.client("location", config=AWS_CLIENT_CONFIG),
            settings.place_index_name,
            settings.geocode_language,
        )
    return Publisher(
        settings=settings,
        source=S3ImageSource(s3, settings.uploads_bucket, settings.upload_prefix),
        resolver=GeolocationResolver(geocoder, settings.location_categories, settings.unknown_location_markers),
        generator=GeminiClient(
            settings.gemini_api_key,
            default_model=settings.default_model,
            strategy=settings.model_strategy,
            preference=settings.model_preference,
            language=settings.post_language,
            timeout=settings.generation_timeout,
            list_timeout=settings.model_list_timeout,
            backoff_seconds=settings.model_backoff_seconds,
        ),
        namer=ArtifactNamer(settings.naming_strategy),
        store=GitHubContentStore(
            settings.github_repo,
            settings.github_token,
            branch=settings.github_branch,
            timeout=settings.store_timeout,
        ),
        clock=clock,
    )
