from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, TypedDict

from parallel_life.agents.narrative.story_types import GeneratedSegment, GeneratedStory, IllustrationResult
from parallel_life.db.models import Story, StoryRequest, StorySegment


@dataclass
class StoryResult:
    story: Story
    segments: List[GeneratedSegment]
    illustrations: IllustrationResult = field(default_factory=IllustrationResult)
    segments_saved: bool = True
    is_fallback: bool = False
    regenerated_from: Optional[int] = None

    @property
    def failed_image_generations(self) -> List[int]:
        return list(self.illustrations.failed_indices)

    def to_response(self) -> Dict[str, Any]:
        message = "New story generated successfully" if self.regenerated_from else "Story generated successfully"
        if self.failed_image_generations:
            chapters = ", ".join(str(index) for index in self.failed_image_generations)
            message += f", but images for chapters {chapters} could not be generated"

        story = self.story.model_dump(mode="json")
        story["segments"] = [
            {**segment.to_dict(), "image_url": self.illustrations.url_for(index)}
            for index, segment in enumerate(self.segments, start=1)
        ]
        return {
            "success": True,
            "message": message,
            "story_id": self.story.id,
            "story": story,
            "failed_image_generations": self.failed_image_generations,
        }


class IllustrationPolicy(TypedDict):
    cover: bool
    segments: bool


class StoryState(TypedDict, total=False):
    # Inputs
    user_id: int
    request: StoryRequest
    tone: str
    policy: IllustrationPolicy
    source_story_id: Optional[int]  # set when regenerating

    # Generation
    generated: GeneratedStory
    cover_image_url: Optional[str]
    illustrations: IllustrationResult

    # Persistence
    story: Story
    saved_segments: List[StorySegment]
    segments_saved: bool
    usage_count: int

    # Output
    result: StoryResult
