import time
from typing import Callable, Optional, Sequence

from parallel_life.agents.narrative.painter import ImageGenerationClient
from parallel_life.agents.narrative.story_types import GeneratedSegment, IllustrationResult
from parallel_life.core.config import Settings
from parallel_life.core.errors import ImageGenerationError
from parallel_life.core.logger import get_logger, log_agent_action

logger = get_logger("illustrator")

PromptBuilder = Callable[[GeneratedSegment], str]


class IllustrationScheduler:
    """
    Drives the painter over the segments of a story. Illustration is a nice-to-have:
    nothing here raises, failures end up in the result instead.
    """

    def __init__(
        self,
        settings: Settings,
        painter: ImageGenerationClient,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.settings = settings
        self.painter = painter
        self._sleep = sleep

    def illustrate(self, segments: Sequence[GeneratedSegment], prompt_builder: PromptBuilder) -> IllustrationResult:
        result = IllustrationResult()
        for index, segment in enumerate(segments, start=1):
            url = self._illustrate_segment(index, segment, prompt_builder)
            if url:
                result.urls_by_index[index] = url
            else:
                result.failed_indices.append(index)

        log_agent_action(
            "illustrator",
            "segments illustrated",
            f"ok={len(result.urls_by_index)} failed={result.failed_indices}",
            success=not result.failed_indices,
        )
        return result

    def _illustrate_segment(self, index: int, segment: GeneratedSegment, prompt_builder: PromptBuilder) -> Optional[str]:
        max_attempts = max(1, self.settings.IMAGE_MAX_ATTEMPTS)
        for attempt in range(1, max_attempts + 1):
            try:
                return self.painter.generate(prompt_builder(segment))
            except ImageGenerationError as e:
                logger.warning(f"Segment {index} image failed (attempt {attempt}/{max_attempts}): {e.code} {e.message}")
                if not e.retryable:
                    break
            except Exception as e:
                # Prompt builders and painters are pluggable; nothing may abort the story
                logger.warning(f"Segment {index} image failed (attempt {attempt}/{max_attempts}): {e}")
            if attempt < max_attempts:
                self._sleep(self.settings.IMAGE_RETRY_DELAY * attempt)
        return None

    def illustrate_cover(self, prompt: str) -> Optional[str]:
        """Single attempt. A failed cover is logged and dropped, it is not part of the failure report."""
        try:
            return self.painter.generate(prompt)
        except Exception as e:
            logger.error(f"Cover image generation failed: {e}")
            return None
