from typing import Optional


class PipelineError(Exception):
    """Base class for failures that end one submission."""

    kind = "pipeline_error"


class ConfigurationError(PipelineError):
    kind = "configuration_error"


class Unauthorized(PipelineError):
    kind = "unauthorized"

    def __init__(self, identity: Optional[str]) -> None:
        super().__init__(f"Unauthorized submitter: {identity or 'unknown'}")
        self.identity = identity


class InvalidImageReference(PipelineError):
    kind = "invalid_image_reference"

    def __init__(self, reference: Optional[str]) -> None:
        super().__init__(f"Invalid photo URL: {reference or '(missing)'}")
        self.reference = reference


class PublishSignalMissing(PipelineError):
    kind = "publish_signal_missing"


class ImageNotFound(PipelineError):
    kind = "image_not_found"


class TransportError(PipelineError):
    kind = "transport_error"


class RequestTimeout(TransportError):
    kind = "timeout"

    def __init__(self, service: str, detail: str = "") -> None:
        message = f"{service} request timed out"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)
        self.service = service


class AllModelsFailed(PipelineError):
    kind = "all_models_failed"

    def __init__(self, last_error: str) -> None:
        super().__init__(f"All models failed. Last error: {last_error}")
        self.last_error = last_error


class MalformedGeneration(PipelineError):
    kind = "malformed_generation"


class StoreWriteFailed(PipelineError):
    kind = "store_write_failed"

    def __init__(self, path: str, status_body: str) -> None:
        super().__init__(f"GitHub API error ({path}): {status_body}")
        self.path = path
        self.status_body = status_body
