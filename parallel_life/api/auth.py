from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import JSONResponse
from fastapi.security import OAuth2PasswordRequestForm
from sqlmodel import Session, select

from parallel_life.api.deps import get_current_user
from parallel_life.api.rate_limit import limiter
from parallel_life.core.config import settings
from parallel_life.core.logger import get_logger, log_security_event
from parallel_life.core.security import (
    create_access_token,
    get_password_hash,
    is_valid_email,
    password_strength_error,
    verify_password,
)
from parallel_life.db.models import User, UserCreate, UserRead
from parallel_life.db.session import get_session

logger = get_logger("auth")
router = APIRouter()


def _client_ip(request: Request) -> Optional[str]:
    return request.client.host if request.client else None


def _find_user(session: Session, email: str) -> Optional[User]:
    return session.exec(select(User).where(User.email == email)).first()


@router.post("/signup", response_model=UserRead, status_code=status.HTTP_201_CREATED)
@limiter.limit(settings.AUTH_RATE_LIMIT)
def signup(payload: UserCreate, request: Request, session: Session = Depends(get_session)):
    """Register a free-plan account. The nickname defaults to the local part of the email."""
    email = payload.email.strip().lower()
    if not is_valid_email(email):
        raise HTTPException(status_code=400, detail="Invalid email address")
    weakness = password_strength_error(payload.password)
    if weakness:
        raise HTTPException(status_code=400, detail=weakness)

    if _find_user(session, email):
        log_security_event("SIGNUP", email, _client_ip(request), success=False, details="email taken")
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Email already registered")

    user = User(
        email=email,
        hashed_password=get_password_hash(payload.password),
        nickname=(payload.nickname or "").strip() or email.split("@")[0],
    )
    session.add(user)
    session.commit()
    session.refresh(user)

    log_security_event("SIGNUP", email, _client_ip(request))
    logger.info(f"Registered user {user.id} on the {user.plan.value} plan")
    return user


@router.post("/token")
@limiter.limit(settings.AUTH_RATE_LIMIT)
def login(request: Request, form_data: OAuth2PasswordRequestForm = Depends(), session: Session = Depends(get_session)):
    """OAuth2 password login. The token is returned and also set as an httponly cookie."""
    email = form_data.username.strip().lower()
    user = _find_user(session, email)

    if user is None or not user.is_active or not verify_password(form_data.password, user.hashed_password):
        log_security_event("LOGIN", email, _client_ip(request), success=False)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    access_token = create_access_token(data={"sub": user.email})
    log_security_event("LOGIN", user.email, _client_ip(request))

    response = JSONResponse({"access_token": access_token, "token_type": "bearer"})
    response.set_cookie("access_token", access_token, httponly=True, samesite="lax")
    return response


@router.get("/me", response_model=UserRead)
def me(current_user: User = Depends(get_current_user)):
    return current_user
