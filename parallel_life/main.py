from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded

from parallel_life.db.session import create_db_models
from parallel_life.api import auth, stories, comments
from parallel_life.api.rate_limit import limiter, rate_limit_exceeded_handler
from parallel_life.core.config import settings
from parallel_life.core.errors import StoryServiceError
from parallel_life.core.logger import get_logger, log_error

logger = get_logger("api")

@asynccontextmanager
async def lifespan(app: FastAPI):
    create_db_models()
    yield

app = FastAPI(title=f"{settings.PROJECT_NAME} API", version=settings.VERSION, lifespan=lifespan)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)


@app.exception_handler(StoryServiceError)
async def story_service_error_handler(request: Request, exc: StoryServiceError):
    logger.warning(f"{request.method} {request.url.path} failed: {exc.code} {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    log_error(f"Unhandled error on {request.method} {request.url.path}", exc)
    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "message": "Story generation failed, please try again later.",
            "error_code": "UNKNOWN_ERROR",
            "retryable": True,
        },
    )


#Include Routers
app.include_router(auth.router, prefix="/auth", tags=["Authentication"])
app.include_router(stories.router, prefix="/api/stories", tags=["Stories"])
app.include_router(comments.router, prefix="/api/comments", tags=["Comments"])


@app.get("/health")
def health():
    return {"status": "ok", "version": settings.VERSION}
