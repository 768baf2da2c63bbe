"""
Story routes: generation, regeneration, reading, listing and the social actions
(likes, visibility, deletion) around a story.
"""

import math
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy import delete, update
from sqlmodel import Session, func, select

from parallel_life.api.deps import get_current_user, get_current_user_optional, get_orchestrator
from parallel_life.api.rate_limit import limiter
from parallel_life.core.config import settings
from parallel_life.core.graph.workflow import StoryOrchestrator
from parallel_life.core.logger import get_logger, log_story_event
from parallel_life.db.models import Comment, Like, Story, StoryRequest, StorySegment, User, VisibilityUpdate
from parallel_life.db.session import get_session

logger = get_logger("api.stories")
router = APIRouter()

SORT_ORDERS = {
    "latest": Story.created_at.desc(),
    "oldest": Story.created_at.asc(),
    "popular": Story.likes_count.desc(),
}


def _pagination(page: int, limit: int, total: int) -> dict:
    return {"page": page, "limit": limit, "total": total, "pages": math.ceil(total / limit) if limit else 0}


def _author(user: Optional[User]) -> dict:
    return {
        "nickname": user.nickname if user else "",
        "avatar_url": user.avatar_url if user else "",
    }


def _story_card(story: Story, author: Optional[User], is_liked: bool) -> dict:
    data = story.model_dump(mode="json", exclude={"input_data", "illustration_policy"})
    data["is_liked"] = is_liked
    data["user"] = _author(author)
    return data


def _get_owned_story(session: Session, story_id: int, user: User) -> Story:
    story = session.exec(select(Story).where(Story.id == story_id, Story.user_id == user.id)).first()
    if story is None:
        raise HTTPException(status_code=404, detail="Story not found or access denied")
    return story


# --- generation ---

@router.post("/generate", status_code=201)
@limiter.limit(settings.STORY_RATE_LIMIT)
def generate_story(
    request: Request,
    payload: StoryRequest,
    current_user: User = Depends(get_current_user),
    orchestrator: StoryOrchestrator = Depends(get_orchestrator),
):
    """Generate a new story. Errors are turned into {error_code, retryable} bodies by the app handler."""
    result = orchestrator.create(current_user.id, payload)
    return result.to_response()


@router.post("/{story_id}/regenerate", status_code=201)
@limiter.limit(settings.STORY_RATE_LIMIT)
def regenerate_story(
    request: Request,
    story_id: int,
    current_user: User = Depends(get_current_user),
    orchestrator: StoryOrchestrator = Depends(get_orchestrator),
):
    result = orchestrator.regenerate(current_user.id, story_id)
    return result.to_response()


# --- listing ---

@router.get("/")
def list_public_stories(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    user_id: Optional[int] = None,
    tone: Optional[str] = None,
    sort: str = "latest",
    current_user: Optional[User] = Depends(get_current_user_optional),
    session: Session = Depends(get_session),
):
    conditions = [Story.is_public == True]  # noqa: E712
    if user_id is not None:
        conditions.append(Story.user_id == user_id)
    if tone:
        conditions.append(Story.tone == tone)

    total = session.exec(select(func.count()).select_from(Story).where(*conditions)).one()
    rows = session.exec(
        select(Story, User)
        .join(User, User.id == Story.user_id)
        .where(*conditions)
        .order_by(SORT_ORDERS.get(sort, SORT_ORDERS["latest"]))
        .offset((page - 1) * limit)
        .limit(limit)
    ).all()

    liked_ids = set()
    if current_user and rows:
        liked_ids = set(session.exec(
            select(Like.story_id).where(
                Like.user_id == current_user.id,
                Like.story_id.in_([story.id for story, _ in rows]),
            )
        ).all())

    return {
        "success": True,
        "stories": [_story_card(story, author, story.id in liked_ids) for story, author in rows],
        "pagination": _pagination(page, limit, total),
    }


@router.get("/user/me")
def list_my_stories(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    total = session.exec(select(func.count()).select_from(Story).where(Story.user_id == current_user.id)).one()
    stories = session.exec(
        select(Story)
        .where(Story.user_id == current_user.id)
        .order_by(Story.created_at.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    ).all()
    return {
        "success": True,
        "stories": [story.model_dump(mode="json") for story in stories],
        "pagination": _pagination(page, limit, total),
    }


@router.get("/liked")
def list_liked_stories(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    rows = session.exec(
        select(Like, Story, User)
        .join(Story, Story.id == Like.story_id)
        .join(User, User.id == Story.user_id)
        .where(Like.user_id == current_user.id)
        .order_by(Like.created_at.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    ).all()
    return {
        "success": True,
        "stories": [
            {
                "id": story.id,
                "title": story.title,
                "summary": story.summary,
                "tone": story.tone,
                "created_at": story.created_at.isoformat(),
                "likes_count": story.likes_count,
                "comments_count": story.comments_count,
                "author_nickname": author.nickname,
                "liked_at": like.created_at.isoformat(),
            }
            for like, story, author in rows
        ],
    }


# --- single story ---

@router.get("/{story_id}")
def get_story(
    story_id: int,
    current_user: Optional[User] = Depends(get_current_user_optional),
    session: Session = Depends(get_session),
):
    story = session.get(Story, story_id)
    if story is None:
        raise HTTPException(status_code=404, detail="Story not found")
    if not story.is_public and (current_user is None or current_user.id != story.user_id):
        raise HTTPException(status_code=403, detail="You do not have access to this story")

    segments = session.exec(
        select(StorySegment).where(StorySegment.story_id == story_id).order_by(StorySegment.segment_order)
    ).all()

    # Counted in the database so concurrent readers are not lost
    session.execute(update(Story).where(Story.id == story_id).values(views_count=Story.views_count + 1))
    session.commit()
    session.refresh(story)

    is_liked = bool(current_user) and session.exec(
        select(Like).where(Like.story_id == story_id, Like.user_id == current_user.id)
    ).first() is not None

    data = story.model_dump(mode="json")
    data["segments"] = [segment.model_dump(mode="json") for segment in segments]
    data["user"] = _author(session.get(User, story.user_id))
    data["is_liked"] = is_liked
    return {"success": True, "story": data}


@router.post("/{story_id}/like")
def toggle_like(
    story_id: int,
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    story = session.get(Story, story_id)
    if story is None:
        raise HTTPException(status_code=404, detail="Story not found")

    existing = session.exec(
        select(Like).where(Like.story_id == story_id, Like.user_id == current_user.id)
    ).first()

    if existing:
        session.delete(existing)
        delta = -1
    else:
        session.add(Like(story_id=story_id, user_id=current_user.id))
        delta = 1
    # Counter and like row change in the same transaction
    session.execute(update(Story).where(Story.id == story_id).values(likes_count=Story.likes_count + delta))
    session.commit()
    session.refresh(story)

    log_story_event(current_user.id, story_id, "like" if delta > 0 else "unlike")
    return {"success": True, "is_liked": delta > 0, "likes_count": story.likes_count}


@router.patch("/{story_id}/visibility")
def update_visibility(
    story_id: int,
    payload: VisibilityUpdate,
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    story = _get_owned_story(session, story_id, current_user)
    story.is_public = payload.is_public
    session.add(story)
    session.commit()
    return {
        "success": True,
        "message": "Story is now public" if payload.is_public else "Story is now private",
        "is_public": story.is_public,
    }


@router.delete("/{story_id}")
def delete_story(
    story_id: int,
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    story = _get_owned_story(session, story_id, current_user)

    session.execute(delete(Like).where(Like.story_id == story_id))
    session.execute(delete(Comment).where(Comment.story_id == story_id))
    # Segments go with the story through the relationship cascade
    session.delete(story)
    session.commit()

    log_story_event(current_user.id, story_id, "deleted")
    return {"success": True, "message": "Story deleted"}
