"""
Error taxonomy shared by the generation pipeline and the API layer.

Every error carries a machine readable ``code`` and a ``retryable`` flag so the
caller can decide whether to offer a retry action.
"""

from typing import Optional


# User-friendly messages (not exposing internal details)
USER_MESSAGES = {
    "VALIDATION_ERROR": "Please fill in all required fields.",
    "INVALID_TONE": "Unknown story tone.",
    "QUOTA_EXCEEDED": "You have reached the usage limit of your plan.",
    "NOT_FOUND": "Story not found or access denied.",
    "API_KEY_MISSING": "The AI service is not configured, please contact the administrator.",
    "INVALID_API_KEY": "The AI service key is invalid, please contact the administrator.",
    "RATE_LIMIT": "The AI service is busy, please try again later.",
    "SERVER_ERROR": "The AI service is temporarily unavailable, please try again later.",
    "HTTP_ERROR": "The AI service request failed, please try again later.",
    "INVALID_RESPONSE": "The AI service returned an unexpected response.",
    "PARSE_ERROR": "The AI service returned malformed content, retrying.",
    "MAX_RETRIES_EXCEEDED": "Story generation failed, please try again later.",
    "UNKNOWN_ERROR": "Story generation failed, please try again later.",
    "PERSISTENCE_ERROR": "Failed to save the story, please try again.",
    "IMAGE_FAILED": "Image generation failed, please try again later.",
    "TOO_MANY_REQUESTS": "Too many requests, please try again later.",
}


def get_user_friendly_error(code: str) -> str:
    return USER_MESSAGES.get(code, USER_MESSAGES["UNKNOWN_ERROR"])


class StoryServiceError(Exception):
    """Base class for every error surfaced to API callers."""

    status_code = 500

    def __init__(
        self,
        message: str,
        code: str = "UNKNOWN_ERROR",
        retryable: bool = False,
        user_message: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.retryable = retryable
        self.user_message = user_message or get_user_friendly_error(code)

    def to_dict(self) -> dict:
        return {
            "success": False,
            "message": self.user_message,
            "error_code": self.code,
            "retryable": self.retryable,
        }

    def __repr__(self) -> str:
        return f"{type(self).__name__}(code={self.code!r}, retryable={self.retryable})"


class ValidationError(StoryServiceError):
    status_code = 400

    def __init__(self, message: str, code: str = "VALIDATION_ERROR"):
        super().__init__(message, code=code, retryable=False)


class QuotaExceededError(StoryServiceError):
    status_code = 403

    def __init__(self, plan: str, usage_count: int, limit: int):
        super().__init__(
            f"Plan '{plan}' limit reached ({usage_count}/{limit})",
            code="QUOTA_EXCEEDED",
            retryable=False,
            user_message=f"You have reached the usage limit of the {plan} plan ({limit} stories).",
        )
        self.plan = plan
        self.usage_count = usage_count
        self.limit = limit


class TooManyRequestsError(StoryServiceError):
    status_code = 429

    def __init__(self, limit: str):
        super().__init__(f"Rate limit exceeded: {limit}", code="TOO_MANY_REQUESTS", retryable=True)
        self.limit = limit


class NotFoundError(StoryServiceError):
    status_code = 404

    def __init__(self, message: str = "Story not found"):
        super().__init__(message, code="NOT_FOUND", retryable=False)


class AIServiceError(StoryServiceError):
    """Failure of the text generation endpoint."""

    FATAL_CODES = ("API_KEY_MISSING", "INVALID_API_KEY")

    @property
    def status_code(self) -> int:
        return 503 if self.code in self.FATAL_CODES else 500


class ImageGenerationError(StoryServiceError):
    """Failure of the image generation endpoint. Never escapes the illustration step."""

    def __init__(self, message: str, code: str, retryable: bool = True, user_message: Optional[str] = None):
        super().__init__(
            message,
            code=code,
            retryable=retryable,
            user_message=user_message or get_user_friendly_error("IMAGE_FAILED"),
        )
