import random
from typing import Optional

import requests

from parallel_life.core.config import Settings
from parallel_life.core.errors import ImageGenerationError
from parallel_life.core.logger import get_logger

logger = get_logger("painter")


class ImageGenerationClient:
    """
    Painter agent: one text-to-image request per call, returning the image URL.
    Retrying is left to the caller; every failure says whether a retry can help.
    """

    def __init__(self, settings: Settings, session: Optional[requests.Session] = None):
        self.settings = settings
        self.api_key = settings.IMAGE_API_KEY
        self.session = session or requests.Session()

    def build_payload(self, prompt: str, size: Optional[str] = None, seed: Optional[int] = None) -> dict:
        return {
            "model": self.settings.IMAGE_MODEL,
            "prompt": prompt,
            "response_format": "url",
            "size": size or self.settings.IMAGE_SIZE,
            "seed": seed if seed is not None else random.randint(0, 999999),
            "guidance_scale": self.settings.IMAGE_GUIDANCE_SCALE,
            "watermark": self.settings.IMAGE_WATERMARK,
        }

    def generate(self, prompt: str, size: Optional[str] = None, seed: Optional[int] = None) -> str:
        """
        Generate one image and return its URL.

        Raises:
            ImageGenerationError: with ``retryable`` telling the caller whether to try again
        """
        if not self.api_key:
            raise ImageGenerationError("Image API key is missing", code="API_KEY_MISSING", retryable=False)

        try:
            resp = self.session.post(
                self.settings.IMAGE_API_URL,
                json=self.build_payload(prompt, size, seed),
                headers={"Authorization": f"Bearer {self.api_key}"},
                timeout=self.settings.IMAGE_TIMEOUT,
            )
            resp.raise_for_status()
        except requests.HTTPError as e:
            raise self._classify_status(e.response) from e
        except requests.Timeout as e:
            raise ImageGenerationError("Request timeout", code="TIMEOUT", retryable=True) from e
        except requests.RequestException as e:
            raise ImageGenerationError(str(e) or "Unknown error", code="UNKNOWN_ERROR", retryable=True) from e

        try:
            data = resp.json()
            image_url = data["data"][0]["url"]
        except (ValueError, KeyError, IndexError, TypeError):
            image_url = None

        if not image_url:
            raise ImageGenerationError("Invalid response format from image endpoint", code="INVALID_RESPONSE", retryable=True)

        return image_url

    @staticmethod
    def _classify_status(response: Optional[requests.Response]) -> ImageGenerationError:
        status = response.status_code if response is not None else None
        if status == 401:
            return ImageGenerationError("Invalid API key", code="INVALID_API_KEY", retryable=False)
        if status == 429:
            return ImageGenerationError("Rate limit exceeded", code="RATE_LIMIT_EXCEEDED", retryable=True)
        if status == 400:
            return ImageGenerationError("Invalid request parameters", code="INVALID_PARAMETERS", retryable=False)
        if status is not None and status >= 500:
            return ImageGenerationError("Image server error", code="SERVER_ERROR", retryable=True)

        detail = ""
        if response is not None:
            try:
                detail = response.json().get("message", "")
            except (ValueError, AttributeError):
                detail = response.text[:200]
        return ImageGenerationError(f"HTTP {status}: {detail}".strip(), code="HTTP_ERROR", retryable=True)
