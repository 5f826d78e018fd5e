"""
Error types and provider error classification.

Every error surfaced by the workflow carries a stable ``code`` so the HTTP
layer and the CLI can report it without inspecting messages. Provider
errors are classified by substring matching on their message; nothing is
ever retried automatically.
"""

from enum import Enum


class StoryReelError(Exception):
    """Base class for all workflow errors."""

    code = "ERROR"

    def __init__(self, message: str, details: list[str] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or []

    def to_dict(self) -> dict:
        data = {"code": self.code, "message": self.message}
        if self.details:
            data["details"] = self.details
        return data


class ValidationError(StoryReelError):
    """Input rejected before any state was touched."""

    code = "VALIDATION_ERROR"


class NotFoundError(StoryReelError):
    """Project or artifact does not exist."""

    code = "NOT_FOUND"


class InvalidStatusError(StoryReelError):
    """Operation not permitted from the project's current status."""

    code = "INVALID_STATUS"


class ContentPolicyError(StoryReelError):
    """Provider refused the prompt on content-policy grounds."""

    code = "CONTENT_POLICY_VIOLATION"


class ProviderQuotaError(StoryReelError):
    """Provider rejected the call for auth, balance or quota reasons."""

    code = "PROVIDER_QUOTA"


class AssetGenerationError(StoryReelError):
    """Every scene failed during asset generation."""

    code = "ASSET_GENERATION_FAILED"


class NoValidScenesError(StoryReelError):
    """Render found no scene with a bound asset."""

    code = "NO_VALID_SCENES"


class CompositorError(StoryReelError):
    """ffprobe/ffmpeg failed or produced unusable output."""

    code = "RENDER_FAILED"


class ErrorKind(str, Enum):
    """Classification of a provider failure."""

    CONTENT_POLICY = "content_policy"
    QUOTA = "quota"
    GENERIC = "generic"


CONTENT_POLICY_MARKERS = (
    "content filters",
    "content_policy_violation",
    "content policy",
    "safety system",
)

QUOTA_MARKERS = (
    "insufficient balance",
    "invalid api key",
    "quota",
    "rate limit",
    "unauthorized",
    "401",
    "402",
    "429",
)

USER_MESSAGES = {
    ErrorKind.CONTENT_POLICY: (
        "The image provider blocked the generation due to content policy "
        "violations. Please try a different topic or style. Avoid violent, "
        "adult, or otherwise inappropriate content."
    ),
    ErrorKind.QUOTA: (
        "The provider rejected the request (invalid API key, insufficient "
        "balance or quota exceeded). Check the account credentials and credits."
    ),
    ErrorKind.GENERIC: "Generation failed. See details for the provider message.",
}


def classify_message(message: str) -> ErrorKind:
    """Classify a provider error message."""
    lowered = message.lower()
    if any(marker in lowered for marker in CONTENT_POLICY_MARKERS):
        return ErrorKind.CONTENT_POLICY
    if any(marker in lowered for marker in QUOTA_MARKERS):
        return ErrorKind.QUOTA
    return ErrorKind.GENERIC


def classify_error(error: BaseException) -> ErrorKind:
    """Classify an exception raised by a generator collaborator."""
    if isinstance(error, ContentPolicyError):
        return ErrorKind.CONTENT_POLICY
    if isinstance(error, ProviderQuotaError):
        return ErrorKind.QUOTA
    return classify_message(str(error))


def user_message(kind: ErrorKind) -> str:
    """Remediation text shown to the user for an error kind."""
    return USER_MESSAGES[kind]


def wrap_provider_error(error: BaseException, stage: str) -> StoryReelError:
    """Convert a raw collaborator exception into a typed workflow error."""
    if isinstance(error, StoryReelError):
        return error

    kind = classify_error(error)
    if kind == ErrorKind.CONTENT_POLICY:
        return ContentPolicyError(user_message(kind), details=[str(error)])
    if kind == ErrorKind.QUOTA:
        return ProviderQuotaError(user_message(kind), details=[str(error)])
    return StoryReelError(f"Failed to generate {stage}: {error}", details=[str(error)])
