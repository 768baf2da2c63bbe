import math

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import update
from sqlmodel import Session, func, select

from parallel_life.api.deps import get_current_user
from parallel_life.core.logger import get_logger
from parallel_life.db.models import Comment, CommentCreate, Story, User
from parallel_life.db.session import get_session

logger = get_logger("api.comments")
router = APIRouter()

MAX_COMMENT_LENGTH = 500


def _comment_out(comment: Comment, author: User) -> dict:
    data = comment.model_dump(mode="json")
    data["user"] = {"nickname": author.nickname, "avatar_url": author.avatar_url}
    return data


@router.get("/story/{story_id}")
def list_comments(
    story_id: int,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    session: Session = Depends(get_session),
):
    total = session.exec(select(func.count()).select_from(Comment).where(Comment.story_id == story_id)).one()
    rows = session.exec(
        select(Comment, User)
        .join(User, User.id == Comment.user_id)
        .where(Comment.story_id == story_id)
        .order_by(Comment.created_at.desc(), Comment.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    ).all()
    return {
        "success": True,
        "comments": [_comment_out(comment, author) for comment, author in rows],
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "totalPages": math.ceil(total / limit),
        },
    }


@router.post("/story/{story_id}", status_code=201)
def create_comment(
    story_id: int,
    payload: CommentCreate,
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    content = (payload.content or "").strip()
    if not content:
        raise HTTPException(status_code=400, detail="Comment cannot be empty")
    if len(content) > MAX_COMMENT_LENGTH:
        raise HTTPException(status_code=400, detail=f"Comment cannot exceed {MAX_COMMENT_LENGTH} characters")

    story = session.get(Story, story_id)
    if story is None:
        raise HTTPException(status_code=404, detail="Story not found")
    if not story.is_public:
        raise HTTPException(status_code=403, detail="Cannot comment on a private story")

    comment = Comment(story_id=story_id, user_id=current_user.id, content=content)
    session.add(comment)
    session.execute(update(Story).where(Story.id == story_id).values(comments_count=Story.comments_count + 1))
    session.commit()
    session.refresh(comment)

    logger.info(f"Comment {comment.id} added to story {story_id} by user {current_user.id}")
    return {"success": True, "message": "Comment created", "comment": _comment_out(comment, current_user)}


@router.delete("/{comment_id}")
def delete_comment(
    comment_id: int,
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    comment = session.get(Comment, comment_id)
    if comment is None:
        raise HTTPException(status_code=404, detail="Comment not found")
    if comment.user_id != current_user.id:
        raise HTTPException(status_code=403, detail="You cannot delete this comment")

    story_id = comment.story_id
    session.delete(comment)
    session.execute(update(Story).where(Story.id == story_id).values(comments_count=Story.comments_count - 1))
    session.commit()

    logger.info(f"Comment {comment_id} deleted from story {story_id}")
    return {"success": True, "message": "Comment deleted"}
