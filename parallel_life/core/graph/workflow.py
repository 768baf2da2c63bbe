"""
Story generation workflow.

validate -> check_quota -> generate -> [cover] -> persist_story -> [illustrate]
    -> persist_segments -> respond

check_quota takes the user's usage slot up front. It is given back when
generate or persist_story fails, and kept once the story row exists.

Regeneration enters at check_quota with the stored request and an illustration
policy replayed from the original story.
"""

from langgraph.graph import END, START, StateGraph

from parallel_life.agents.narrative.illustrator import IllustrationScheduler
from parallel_life.agents.narrative.prompts import build_cover_prompt, build_segment_prompt
from parallel_life.agents.narrative.story_types import IllustrationResult
from parallel_life.agents.narrative.writer import TextGenerationClient
from parallel_life.core.config import Settings
from parallel_life.core.errors import NotFoundError, QuotaExceededError, StoryServiceError, ValidationError
from parallel_life.core.graph.state import IllustrationPolicy, StoryResult, StoryState
from parallel_life.core.logger import get_logger, log_error, log_quota_event, log_story_event
from parallel_life.db.models import Story, StoryRequest, StorySegment, Tone
from parallel_life.db.store import StoryStore

logger = get_logger("orchestrator")

REQUIRED_FIELDS = ("birthplace", "career", "gender", "birth_date", "relationship", "dream_or_regret", "tone")
VALID_TONES = tuple(tone.value for tone in Tone)


def validate_request(request: StoryRequest) -> None:
    missing = [
        name for name in REQUIRED_FIELDS
        if not isinstance(getattr(request, name), str) or not getattr(request, name).strip()
    ]
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}")
    if request.tone not in VALID_TONES:
        raise ValidationError(f"Invalid tone: {request.tone}", code="INVALID_TONE")


def replay_policy(story: Story, segments) -> IllustrationPolicy:
    """Illustration policy of an existing story; derived from stored URLs for rows without one."""
    if story.illustration_policy is not None:
        return {
            "cover": bool(story.illustration_policy.get("cover")),
            "segments": bool(story.illustration_policy.get("segments")),
        }
    return {
        "cover": story.cover_image_url is not None,
        "segments": any(segment.image_url is not None for segment in segments),
    }


class StoryOrchestrator:
    """Creates and regenerates stories for one request, within one database session."""

    def __init__(
        self,
        settings: Settings,
        store: StoryStore,
        writer: TextGenerationClient,
        illustrator: IllustrationScheduler,
    ):
        self.settings = settings
        self.store = store
        self.writer = writer
        self.illustrator = illustrator
        self.graph = self._build_graph()

    # --- public API ---

    def create(self, user_id: int, request: StoryRequest) -> StoryResult:
        policy: IllustrationPolicy = {"cover": request.generate_images, "segments": request.generate_images}
        final_state = self.graph.invoke({
            "user_id": user_id,
            "request": request,
            "tone": request.tone,
            "policy": policy,
            "source_story_id": None,
        })
        return final_state["result"]

    def regenerate(self, user_id: int, story_id: int) -> StoryResult:
        original = self.store.get_owned_story(user_id, story_id)
        if original is None:
            raise NotFoundError(f"Story {story_id} not found for user {user_id}")

        policy = replay_policy(original, self.store.get_segments(original.id))
        request = StoryRequest.model_validate({**original.input_data, "generate_images": policy["cover"] or policy["segments"]})
        logger.info(f"Regenerating story {story_id} for user {user_id} with policy {policy}")

        final_state = self.graph.invoke({
            "user_id": user_id,
            "request": request,
            "tone": original.tone,
            "policy": policy,
            "source_story_id": original.id,
        })
        return final_state["result"]

    # --- NODES ---

    def validate_node(self, state: StoryState) -> StoryState:
        validate_request(state["request"])
        return {}

    def quota_node(self, state: StoryState) -> StoryState:
        user = self.store.get_quota(state["user_id"])
        if user is None:
            raise NotFoundError(f"User {state['user_id']} not found")

        plan = user.plan.value
        limit = self.settings.plan_limit(plan)
        try:
            usage_count = self.store.reserve_quota(user.id, limit)
        except Exception as e:
            log_error("Usage counter update failed", e, {"user_id": user.id})
            raise StoryServiceError(f"Failed to update usage: {e}", code="PERSISTENCE_ERROR", retryable=True) from e

        if usage_count is None:
            user = self.store.get_quota(user.id)
            log_quota_event(user.id, "rejected", user.usage_count, limit, plan)
            raise QuotaExceededError(plan, user.usage_count, limit)

        log_quota_event(user.id, "charged", usage_count, limit, plan)
        return {"usage_count": usage_count}

    def generate_node(self, state: StoryState) -> StoryState:
        try:
            return {"generated": self.writer.generate(state["request"])}
        except Exception:
            self._release_quota(state["user_id"])
            raise

    def _release_quota(self, user_id: int) -> None:
        # The slot taken by check_quota is returned when no story gets saved
        try:
            usage_count = self.store.release_quota(user_id)
        except Exception as e:
            log_error("Usage counter release failed", e, {"user_id": user_id})
            return
        log_quota_event(user_id, "released", usage_count)

    def cover_node(self, state: StoryState) -> StoryState:
        prompt = build_cover_prompt(state["generated"], state["tone"])
        return {"cover_image_url": self.illustrator.illustrate_cover(prompt)}

    def persist_story_node(self, state: StoryState) -> StoryState:
        generated = state["generated"]
        try:
            story = self.store.create_story(
                user_id=state["user_id"],
                title=generated.title,
                summary=generated.summary,
                input_data=state["request"].to_input_data(),
                tone=state["tone"],
                cover_image_url=state.get("cover_image_url"),
                illustration_policy=dict(state["policy"]),
            )
        except Exception as e:
            log_error("Story creation failed", e, {"user_id": state["user_id"]})
            self._release_quota(state["user_id"])
            raise StoryServiceError(f"Failed to save story: {e}", code="PERSISTENCE_ERROR", retryable=True) from e

        log_story_event(state["user_id"], story.id, "story saved", f"fallback={generated.is_fallback}")
        return {"story": story}

    def illustrate_node(self, state: StoryState) -> StoryState:
        image_style = self.settings.IMAGE_STYLE
        illustrations = self.illustrator.illustrate(
            state["generated"].segments,
            lambda segment: build_segment_prompt(segment, image_style),
        )
        return {"illustrations": illustrations}

    def persist_segments_node(self, state: StoryState) -> StoryState:
        story = state["story"]
        illustrations = state.get("illustrations") or IllustrationResult()
        rows = [
            StorySegment(
                story_id=story.id,
                segment_order=segment.order,
                title=segment.title,
                content=segment.content,
                image_url=illustrations.url_for(index),
            )
            for index, segment in enumerate(state["generated"].segments, start=1)
        ]

        segments_saved = True
        saved = []
        try:
            saved = self.store.add_segments(story.id, rows)
        except Exception as e:
            # The story row stays; the caller is told through segments_saved
            segments_saved = False
            log_error("Story segments creation failed", e, {"story_id": story.id})

        return {"saved_segments": saved, "segments_saved": segments_saved}

    def respond_node(self, state: StoryState) -> StoryState:
        generated = state["generated"]
        result = StoryResult(
            story=state["story"],
            segments=generated.segments,
            illustrations=state.get("illustrations") or IllustrationResult(),
            segments_saved=state.get("segments_saved", True),
            is_fallback=generated.is_fallback,
            regenerated_from=state.get("source_story_id"),
        )
        log_story_event(
            state["user_id"],
            result.story.id,
            "story generated",
            f"segments={len(result.segments)} failed_images={result.failed_image_generations} usage={state.get('usage_count')}",
        )
        return {"result": result}

    # --- EDGES ---

    @staticmethod
    def route_entry(state: StoryState) -> str:
        # Stored requests were validated when first submitted
        return "check_quota" if state.get("source_story_id") else "validate"

    @staticmethod
    def route_after_generate(state: StoryState) -> str:
        return "cover" if state["policy"]["cover"] else "persist_story"

    @staticmethod
    def route_after_persist(state: StoryState) -> str:
        return "illustrate" if state["policy"]["segments"] else "persist_segments"

    # --- GRAPH ---

    def _build_graph(self):
        workflow = StateGraph(StoryState)

        workflow.add_node("validate", self.validate_node)
        workflow.add_node("check_quota", self.quota_node)
        workflow.add_node("generate", self.generate_node)
        workflow.add_node("cover", self.cover_node)
        workflow.add_node("persist_story", self.persist_story_node)
        workflow.add_node("illustrate", self.illustrate_node)
        workflow.add_node("persist_segments", self.persist_segments_node)
        workflow.add_node("respond", self.respond_node)

        workflow.add_conditional_edges(
            START,
            self.route_entry,
            {
                "validate": "validate",
                "check_quota": "check_quota",
            }
        )
        workflow.add_edge("validate", "check_quota")
        workflow.add_edge("check_quota", "generate")

        workflow.add_conditional_edges(
            "generate",
            self.route_after_generate,
            {
                "cover": "cover",
                "persist_story": "persist_story",
            }
        )
        workflow.add_edge("cover", "persist_story")

        workflow.add_conditional_edges(
            "persist_story",
            self.route_after_persist,
            {
                "illustrate": "illustrate",
                "persist_segments": "persist_segments",
            }
        )
        workflow.add_edge("illustrate", "persist_segments")
        workflow.add_edge("persist_segments", "respond")
        workflow.add_edge("respond", END)

        return workflow.compile()
