import json
import math
import time
from typing import Any, Callable, Dict, List, Optional

import groq
from groq import Groq

from parallel_life.agents.context_loader import load_context
from parallel_life.agents.narrative.prompts import build_fallback_story, build_story_prompt
from parallel_life.agents.narrative.sanitizer import extract_json_payload
from parallel_life.agents.narrative.story_types import (
    AttemptOutcome,
    FatalFailure,
    GeneratedSegment,
    GeneratedStory,
    RetryableFailure,
    Success,
)
from parallel_life.core.config import Settings
from parallel_life.core.errors import AIServiceError
from parallel_life.core.logger import get_logger, log_agent_action
from parallel_life.db.models import StoryRequest

logger = get_logger("writer")


class StoryFormatError(ValueError):
    """The model answered, but not with a structurally valid story."""


def _non_empty_text(value: Any) -> bool:
    return isinstance(value, str) and bool(value.strip())


def parse_generated_story(content: str) -> GeneratedStory:
    """
    Turn raw model output into a GeneratedStory.

    Raises:
        StoryFormatError: if the payload is not JSON or misses required fields
    """
    payload = extract_json_payload(content)
    try:
        data = json.loads(payload)
    except json.JSONDecodeError as e:
        raise StoryFormatError(f"Response is not valid JSON: {e}") from e

    if not isinstance(data, dict):
        raise StoryFormatError("Response JSON is not an object")
    if not _non_empty_text(data.get("title")) or not _non_empty_text(data.get("summary")):
        raise StoryFormatError("Story title or summary missing")

    raw_segments = data.get("segments")
    if not isinstance(raw_segments, list) or not raw_segments:
        raise StoryFormatError("Story has no segments")

    segments: List[GeneratedSegment] = []
    for raw in raw_segments:
        if not isinstance(raw, dict):
            raise StoryFormatError("Segment is not an object")
        order = raw.get("order")
        # bool is an int subclass, and "order": true is not an order
        if isinstance(order, bool) or not isinstance(order, (int, float)):
            raise StoryFormatError("Segment order is not a number")
        # json accepts NaN and Infinity, int() does not
        if not math.isfinite(order):
            raise StoryFormatError(f"Segment order {order} is not finite")
        if order != int(order) or order < 1:
            raise StoryFormatError(f"Segment order {order} is not a positive integer")
        if not _non_empty_text(raw.get("title")) or not _non_empty_text(raw.get("content")):
            raise StoryFormatError(f"Segment {order} has an empty title or content")
        segments.append(GeneratedSegment(title=raw["title"].strip(), content=raw["content"].strip(), order=int(order)))

    orders = [segment.order for segment in segments]
    if len(set(orders)) != len(orders):
        raise StoryFormatError(f"Duplicate segment orders: {orders}")

    return GeneratedStory(
        title=data["title"].strip(),
        summary=data["summary"].strip(),
        segments=segments,
    )


def classify_status_error(status_code: int, detail: str = "") -> AttemptOutcome:
    """Map a non-2xx answer of the text endpoint to an attempt outcome."""
    if status_code == 401:
        return FatalFailure(AIServiceError("Invalid API key", code="INVALID_API_KEY", retryable=False))
    if status_code == 429:
        return RetryableFailure(AIServiceError("Rate limit exceeded", code="RATE_LIMIT", retryable=True))
    if status_code >= 500:
        return RetryableFailure(AIServiceError(f"Server error: {status_code} {detail}".strip(), code="SERVER_ERROR", retryable=True))
    return RetryableFailure(AIServiceError(f"HTTP error: {status_code} {detail}".strip(), code="HTTP_ERROR", retryable=True))


class TextGenerationClient:
    """
    Writer agent: produces the parallel life story through a chat completion endpoint.

    Owns the whole retry policy, so the SDK's own retries are disabled.
    """

    def __init__(
        self,
        settings: Settings,
        client: Optional[Any] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.settings = settings
        self.api_key = settings.TEXT_API_KEY
        self._client = client
        self._sleep = sleep
        self.system_prompt = load_context("writer")

    @property
    def client(self):
        if self._client is None:
            self._client = Groq(
                api_key=self.api_key,
                base_url=self.settings.TEXT_BASE_URL or None,
                timeout=self.settings.TEXT_TIMEOUT,
                max_retries=0,
            )
        return self._client

    def build_messages(self, request: StoryRequest) -> List[Dict[str, str]]:
        return [
            {"role": "system", "content": self.system_prompt},
            {"role": "user", "content": build_story_prompt(request)},
        ]

    def generate(self, request: StoryRequest) -> GeneratedStory:
        """
        Generate a story for ``request``.

        Returns the fallback story when every attempt came back unparseable.

        Raises:
            AIServiceError: API_KEY_MISSING / INVALID_API_KEY immediately,
                MAX_RETRIES_EXCEEDED once retryable transport errors exhaust the attempts
        """
        if not self.api_key:
            raise AIServiceError("Text generation API key not configured", code="API_KEY_MISSING", retryable=False)

        messages = self.build_messages(request)
        max_attempts = max(1, self.settings.MAX_RETRIES)
        last_failure: Optional[RetryableFailure] = None

        for attempt in range(1, max_attempts + 1):
            logger.info(f"Generating story (attempt {attempt}/{max_attempts})")
            outcome = self._attempt(messages)

            if isinstance(outcome, Success):
                log_agent_action("writer", "story generated", f"attempt={attempt} segments={len(outcome.story.segments)}")
                return outcome.story

            if isinstance(outcome, FatalFailure):
                log_agent_action("writer", "fatal error", outcome.error.code, success=False)
                raise outcome.error

            last_failure = outcome
            logger.warning(f"Attempt {attempt}/{max_attempts} failed: {outcome.error.code} {outcome.error.message}")
            if attempt < max_attempts:
                delay = self.settings.RETRY_DELAY * attempt
                logger.info(f"Retrying in {delay:.1f}s")
                self._sleep(delay)

        if last_failure is not None and last_failure.parse_failure:
            logger.warning("All attempts returned unusable content, creating fallback story")
            log_agent_action("writer", "fallback story", f"career={request.career}", success=False)
            return build_fallback_story(request)

        logger.error(f"All {max_attempts} attempts failed, last error: {last_failure.error.code}")
        raise AIServiceError(
            "Failed to generate story after all retries",
            code="MAX_RETRIES_EXCEEDED",
            retryable=False,
        )

    def _attempt(self, messages: List[Dict[str, str]]) -> AttemptOutcome:
        try:
            completion = self.client.chat.completions.create(
                model=self.settings.TEXT_MODEL,
                messages=messages,
                max_tokens=self.settings.TEXT_MAX_TOKENS,
                temperature=self.settings.TEXT_TEMPERATURE,
                top_p=self.settings.TEXT_TOP_P,
            )
        except groq.APIStatusError as e:
            return classify_status_error(e.status_code, e.message)
        except groq.APIResponseValidationError as e:
            return RetryableFailure(
                AIServiceError(f"Invalid response: {e}", code="INVALID_RESPONSE", retryable=True),
                parse_failure=True,
            )
        except groq.APIConnectionError as e:
            # Timeouts are a subclass of connection errors
            return RetryableFailure(AIServiceError(f"Connection error: {e}", code="HTTP_ERROR", retryable=True))

        try:
            content = completion.choices[0].message.content
        except (AttributeError, IndexError, TypeError):
            content = None
        if not content:
            return RetryableFailure(
                AIServiceError("Invalid response format from text endpoint", code="INVALID_RESPONSE", retryable=True),
                parse_failure=True,
            )

        try:
            return Success(parse_generated_story(content))
        except StoryFormatError as e:
            logger.debug(f"Unparseable content: {content[:200]}...")
            return RetryableFailure(
                AIServiceError(f"Failed to parse AI response: {e}", code="PARSE_ERROR", retryable=True),
                parse_failure=True,
            )
