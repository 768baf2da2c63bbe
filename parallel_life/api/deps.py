from typing import Optional

from fastapi import Depends, HTTPException, Request
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError
from sqlmodel import Session, select

from parallel_life.agents.narrative.illustrator import IllustrationScheduler
from parallel_life.agents.narrative.painter import ImageGenerationClient
from parallel_life.agents.narrative.writer import TextGenerationClient
from parallel_life.core.config import settings
from parallel_life.core.graph.workflow import StoryOrchestrator
from parallel_life.core.security import decode_access_token
from parallel_life.db.models import User
from parallel_life.db.session import get_session
from parallel_life.db.store import StoryStore

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/token", auto_error=False)


def _user_from_token(token: Optional[str], session: Session) -> Optional[User]:
    if not token:
        return None
    try:
        payload = decode_access_token(token)
    except JWTError:
        return None
    email = payload.get("sub")
    if email is None:
        return None
    user = session.exec(select(User).where(User.email == email)).first()
    if user is None or not user.is_active:
        return None
    return user


def get_current_user_optional(
    request: Request,
    token: Optional[str] = Depends(oauth2_scheme),
    session: Session = Depends(get_session),
) -> Optional[User]:
    """Bearer header first, then the access_token cookie set at login."""
    return _user_from_token(token or request.cookies.get("access_token"), session)


def get_current_user(user: Optional[User] = Depends(get_current_user_optional)) -> User:
    if user is None:
        raise HTTPException(
            status_code=401,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user


# --- generation pipeline ---

def get_text_client() -> TextGenerationClient:
    return TextGenerationClient(settings)


def get_illustrator() -> IllustrationScheduler:
    return IllustrationScheduler(settings, ImageGenerationClient(settings))


def get_orchestrator(
    session: Session = Depends(get_session),
    writer: TextGenerationClient = Depends(get_text_client),
    illustrator: IllustrationScheduler = Depends(get_illustrator),
) -> StoryOrchestrator:
    return StoryOrchestrator(settings, StoryStore(session), writer, illustrator)
