"""
Record store used by the generation pipeline.

Wraps an SQLModel session and exposes only what the orchestrator needs: story
and segment writes, owned-story lookups and the quota counter.
"""

from typing import Dict, List, Optional, Sequence

from sqlalchemy import update
from sqlmodel import Session, select

from parallel_life.db.models import Story, StorySegment, User


class StoryStore:

    def __init__(self, session: Session):
        self.session = session

    # --- quota ---

    def get_quota(self, user_id: int) -> Optional[User]:
        user = self.session.get(User, user_id)
        if user is not None:
            # Another request may have moved the counter since this session loaded it
            self.session.refresh(user)
        return user

    def reserve_quota(self, user_id: int, limit: int) -> Optional[int]:
        """
        Take one generation slot: usage_count goes up by one only while it is below limit.
        The compare and the increment run as one UPDATE, so concurrent requests can
        never push the counter past the limit.
        Returns the new counter value, or None when the quota is used up.
        """
        try:
            result = self.session.execute(
                update(User)
                .where(User.id == user_id, User.usage_count < limit)
                .values(usage_count=User.usage_count + 1)
            )
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise
        if result.rowcount == 0:
            return None
        return self.session.exec(select(User.usage_count).where(User.id == user_id)).one()

    def release_quota(self, user_id: int) -> int:
        """Give back a slot taken by reserve_quota for a generation that produced no story."""
        try:
            self.session.execute(
                update(User)
                .where(User.id == user_id, User.usage_count > 0)
                .values(usage_count=User.usage_count - 1)
            )
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise
        return self.session.exec(select(User.usage_count).where(User.id == user_id)).one()

    # --- stories ---

    def create_story(
        self,
        user_id: int,
        title: str,
        summary: str,
        input_data: Dict,
        tone: str,
        cover_image_url: Optional[str],
        illustration_policy: Dict[str, bool],
    ) -> Story:
        story = Story(
            user_id=user_id,
            title=title,
            summary=summary,
            input_data=input_data,
            tone=tone,
            cover_image_url=cover_image_url,
            illustration_policy=illustration_policy,
            is_public=True,
        )
        self.session.add(story)
        try:
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise
        self.session.refresh(story)
        return story

    def add_segments(self, story_id: int, segments: Sequence[StorySegment]) -> List[StorySegment]:
        """Write all segments of a story in one transaction; nothing is written on failure."""
        for segment in segments:
            segment.story_id = story_id
            self.session.add(segment)
        try:
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise
        for segment in segments:
            self.session.refresh(segment)
        return list(segments)

    def get_owned_story(self, user_id: int, story_id: int) -> Optional[Story]:
        return self.session.exec(
            select(Story).where(Story.id == story_id, Story.user_id == user_id)
        ).first()

    def get_segments(self, story_id: int) -> List[StorySegment]:
        return list(self.session.exec(
            select(StorySegment)
            .where(StorySegment.story_id == story_id)
            .order_by(StorySegment.segment_order)
        ).all())
