from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

from parallel_life.core.errors import AIServiceError


@dataclass
class GeneratedSegment:
    title: str
    content: str
    order: int

    def to_dict(self) -> Dict[str, Any]:
        return {"title": self.title, "content": self.content, "order": self.order}


@dataclass
class GeneratedStory:
    """Output of the text generator. Lives only for the duration of one orchestration call."""
    title: str
    summary: str
    segments: List[GeneratedSegment]
    is_fallback: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "summary": self.summary,
            "segments": [segment.to_dict() for segment in self.segments],
        }


# --- Outcome of a single text generation attempt ---

@dataclass
class Success:
    story: GeneratedStory


@dataclass
class RetryableFailure:
    error: AIServiceError
    # True when the endpoint answered but its content was not a usable story
    parse_failure: bool = False


@dataclass
class FatalFailure:
    error: AIServiceError


AttemptOutcome = Union[Success, RetryableFailure, FatalFailure]


@dataclass
class IllustrationResult:
    """Per-segment illustration outcome. Indices are 1-based positions in the segment list."""
    urls_by_index: Dict[int, str] = field(default_factory=dict)
    failed_indices: List[int] = field(default_factory=list)

    def url_for(self, index: int) -> Optional[str]:
        return self.urls_by_index.get(index)
