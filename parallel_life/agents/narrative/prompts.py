"""
Prompt builders for the writer and painter agents, plus the locally
synthesized fallback story.
"""

from parallel_life.agents.context_loader import wrap_user_input
from parallel_life.agents.narrative.story_types import GeneratedSegment, GeneratedStory
from parallel_life.db.models import StoryRequest

TONE_DESCRIPTORS = {
    "warm": "warm and touching",
    "funny": "humorous",
    "romantic": "romantic",
    "dark": "contemplative and dark",
}

TONE_IMAGE_STYLES = {
    "warm": "warm lighting, soft colors, cozy atmosphere",
    "funny": "bright colors, playful elements, cheerful mood",
    "romantic": "soft pastels, dreamy atmosphere, elegant composition",
    "dark": "dramatic lighting, deep colors, contemplative mood",
}
DEFAULT_IMAGE_STYLE = "balanced lighting, natural colors"

FALLBACK_TONE_LABELS = {
    "warm": "Warm",
    "funny": "Joyful",
    "romantic": "Romantic",
    "dark": "Profound",
}

SEGMENT_COUNT = 5
SEGMENT_MIN_WORDS = 500
SEGMENT_PROMPT_CHARS = 500


def build_story_prompt(request: StoryRequest) -> str:
    """Build the single user message sent to the text model."""
    tone = TONE_DESCRIPTORS[request.tone]
    has_life_story = bool(request.original_life_story)

    profile = "\n".join([
        f"- Birthplace / where you grew up: {request.birthplace}",
        f"- Career direction: {request.career}",
        f"- Personality: {request.personality or 'not specified'}",
        f"- Gender: {request.gender}",
        f"- Date of birth: {request.birth_date} (choose life stages that fit this age)",
        f"- Relationship status: {request.relationship}",
        f"- Dream or regret: {request.dream_or_regret}",
        f"- Tone: {tone} (keep this overall mood, with emotional ups and downs between stages)",
    ])

    sections = [
        "Write a parallel life story for me with the following requirements.",
        "",
        "Tell the story in the second person so the reader lives it. Blend every detail below "
        "into the narrative naturally, with rich sensory description, and keep it coherent and believable.",
        "",
        "Background:",
        wrap_user_input(profile),
    ]
    if has_life_story:
        sections += [
            "",
            "The reader's real life so far, for reference:",
            wrap_user_input(request.original_life_story, tag="life_story"),
        ]

    requirements = [
        "**Title**: evocative and visual, expressing the parallel life theme.",
        "**Summary** (at most 100 characters): a vivid one-paragraph overview of this other you.",
    ]
    if has_life_story:
        requirements.append(
            "**Creative reference**: build a parallel world from the real life above. Keep the core "
            "personality, but let key choices, chances and surroundings lead somewhere different."
        )
    requirements += [
        f"**{SEGMENT_COUNT} life stages**: each with a poetic title and at least {SEGMENT_MIN_WORDS} words, "
        "showing the career, personality and dream or regret given above. The dream must come true "
        "or the regret must be resolved. Include joy, hesitation, challenge, growth and insight.",
        "Keep the story positive and imaginative while inviting reflection.",
    ]
    sections += ["", "Requirements:"]
    sections += [f"{number}. {line}" for number, line in enumerate(requirements, start=1)]

    sections += [
        "",
        "Output format (must be valid JSON, nothing else):",
        '{"title": "story title", "summary": "life overview", "segments": '
        '[{"title": "stage title", "content": "stage text", "order": 1}, ...]}',
    ]
    return "\n".join(sections)


def build_cover_prompt(story: GeneratedStory, tone: str) -> str:
    style = TONE_IMAGE_STYLES.get(tone, DEFAULT_IMAGE_STYLE)
    return (
        f'Create a book cover illustration for "{story.title}". {story.summary}. '
        f"Style: {style}, high quality, artistic, book cover design, no text overlay."
    )


def build_segment_prompt(segment: GeneratedSegment, image_style: str) -> str:
    """The segment text itself is the scene description; only the style is appended."""
    return f"{segment.content[:SEGMENT_PROMPT_CHARS]}, {image_style}"


def build_fallback_story(request: StoryRequest) -> GeneratedStory:
    """Deterministic three-stage story built from the raw request fields."""
    label = FALLBACK_TONE_LABELS.get(request.tone, "Unique")
    personality = request.personality or "one-of-a-kind"
    return GeneratedStory(
        title=f"The {label} Life of a {request.career}",
        summary=(
            f"A {label.lower()} story about growing up in {request.birthplace} and working as a "
            f"{request.career}. The storyteller is resting, so here is a simple outline of that life."
        ),
        segments=[
            GeneratedSegment(
                title="Where It Began",
                content=(
                    f"In {request.birthplace}, someone carrying the dream of {request.dream_or_regret} "
                    f"set out on their own path. Being {personality}, they chose the road of {request.career}."
                ),
                order=1,
            ),
            GeneratedSegment(
                title="Growing Along the Way",
                content=(
                    f"As the years passed they kept growing in {request.career}. Being {request.relationship} "
                    "gave them their own way of understanding life."
                ),
                order=2,
            ),
            GeneratedSegment(
                title="Looking Back",
                content=(
                    f"Looking back, {request.dream_or_regret} became an important part of the journey. "
                    "Every choice shaped a path that belongs to no one else."
                ),
                order=3,
            ),
        ],
        is_fallback=True,
    )
