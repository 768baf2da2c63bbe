import os
from dotenv import load_dotenv

# Load variables from .env file
load_dotenv()


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


class Settings:
    """
    Runtime configuration. Every component receives an instance at construction
    so tests can hand in their own values instead of touching the environment.
    """

    PROJECT_NAME: str = "Parallel Life Stories"
    VERSION: str = "1.0.0"

    # Database (sqlite for local runs, Postgres in production)
    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./parallel_life.db")

    # Security
    SECRET_KEY: str = os.getenv("SECRET_KEY", "dev-secret-change-me")
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "10080"))
    BCRYPT_ROUNDS: int = int(os.getenv("BCRYPT_ROUNDS", "12"))

    # Logging
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
    LOG_DIR: str = os.getenv("LOG_DIR", "logs")

    # Text generation (chat completion endpoint)
    TEXT_API_KEY: str = os.getenv("GROQ_API_KEY")
    TEXT_MODEL: str = os.getenv("TEXT_MODEL", "llama-3.3-70b-versatile")
    TEXT_BASE_URL: str = os.getenv("TEXT_BASE_URL")
    TEXT_MAX_TOKENS: int = int(os.getenv("TEXT_MAX_TOKENS", "4000"))
    TEXT_TEMPERATURE: float = float(os.getenv("TEXT_TEMPERATURE", "0.8"))
    TEXT_TOP_P: float = float(os.getenv("TEXT_TOP_P", "0.9"))
    TEXT_TIMEOUT: float = float(os.getenv("TEXT_TIMEOUT", "120"))
    MAX_RETRIES: int = int(os.getenv("MAX_RETRIES", "3"))
    RETRY_DELAY: float = float(os.getenv("RETRY_DELAY", "1.0"))  # seconds

    # Image generation
    IMAGE_API_KEY: str = os.getenv("IMAGE_API_KEY")
    IMAGE_API_URL: str = os.getenv(
        "IMAGE_API_URL", "https://ark.cn-beijing.volces.com/api/v3/images/generations"
    )
    IMAGE_MODEL: str = os.getenv("IMAGE_MODEL", "seedream-3-0-t2i")
    IMAGE_SIZE: str = os.getenv("IMAGE_SIZE", "1024x1024")
    IMAGE_GUIDANCE_SCALE: float = float(os.getenv("IMAGE_GUIDANCE_SCALE", "2.5"))
    IMAGE_WATERMARK: bool = _env_bool("IMAGE_WATERMARK", True)
    IMAGE_TIMEOUT: float = float(os.getenv("IMAGE_TIMEOUT", "60"))
    IMAGE_MAX_ATTEMPTS: int = int(os.getenv("IMAGE_MAX_ATTEMPTS", "3"))
    IMAGE_RETRY_DELAY: float = float(os.getenv("IMAGE_RETRY_DELAY", "1.0"))  # seconds
    IMAGE_STYLE: str = os.getenv(
        "IMAGE_STYLE",
        "gentle and healing, soft tones, modern and minimal, emotionally rich, "
        "high quality, 4K, professional photography, aesthetic composition",
    )

    # Quota
    FREE_PLAN_LIMIT: int = int(os.getenv("FREE_PLAN_LIMIT", "5"))
    PREMIUM_PLAN_LIMIT: int = int(os.getenv("PREMIUM_PLAN_LIMIT", "50"))

    # Request rate limits, in the "count/period" notation of the limits package
    RATE_LIMIT_ENABLED: bool = _env_bool("RATE_LIMIT_ENABLED", True)
    STORY_RATE_LIMIT: str = os.getenv("STORY_RATE_LIMIT", "10/hour")
    AUTH_RATE_LIMIT: str = os.getenv("AUTH_RATE_LIMIT", "5/15 minutes")

    def plan_limit(self, plan: str) -> int:
        return self.PREMIUM_PLAN_LIMIT if plan == "premium" else self.FREE_PLAN_LIMIT


settings = Settings()
