"""
Request rate limits for story generation and the login/signup routes.

Signed-in callers are counted per account, anonymous callers per client address.
"""

from typing import Optional

from fastapi import Request
from fastapi.responses import JSONResponse
from jose import JWTError
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from parallel_life.core.config import settings
from parallel_life.core.errors import TooManyRequestsError
from parallel_life.core.logger import get_logger
from parallel_life.core.security import decode_access_token

logger = get_logger("api.rate_limit")


def _request_token(request: Request) -> Optional[str]:
    scheme, _, token = request.headers.get("Authorization", "").partition(" ")
    if scheme.lower() == "bearer" and token:
        return token
    return request.cookies.get("access_token")


def user_or_address(request: Request) -> str:
    token = _request_token(request)
    if token:
        try:
            subject = decode_access_token(token).get("sub")
        except JWTError:
            subject = None
        if subject:
            return f"user:{subject}"
    return f"ip:{get_remote_address(request)}"


limiter = Limiter(key_func=user_or_address, enabled=settings.RATE_LIMIT_ENABLED)


async def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded):
    error = TooManyRequestsError(str(exc.detail))
    logger.warning(f"{request.method} {request.url.path} limited for {user_or_address(request)}: {error.limit}")
    return JSONResponse(status_code=error.status_code, content=error.to_dict())
