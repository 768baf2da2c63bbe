"""
Parallel Life Stories - Logging System

One "parallel_life" logger tree: console output at LOG_LEVEL, a rotating
app.log with everything, error.log for failures and security.log for auth
events. Modules take a child logger through get_logger().
"""

import logging
import sys
from pathlib import Path
from logging.handlers import RotatingFileHandler

from parallel_life.core.config import settings

ROOT_LOGGER = "parallel_life"

LOGS_DIR = Path(settings.LOG_DIR)
if not LOGS_DIR.is_absolute():
    LOGS_DIR = Path(__file__).resolve().parent.parent.parent / LOGS_DIR
LOGS_DIR.mkdir(parents=True, exist_ok=True)

DETAILED_FORMAT = '%(asctime)s | %(levelname)-8s | %(name)s:%(funcName)s:%(lineno)d | %(message)s'
SIMPLE_FORMAT = '%(asctime)s | %(levelname)-8s | %(name)s | %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'

MB = 1024 * 1024


def _rotating_handler(filename: str, level: int, max_mb: int = 5, backups: int = 5) -> RotatingFileHandler:
    handler = RotatingFileHandler(LOGS_DIR / filename, maxBytes=max_mb * MB, backupCount=backups, encoding='utf-8')
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(DETAILED_FORMAT, datefmt=DATE_FORMAT))
    return handler


def setup_logger(level: str = settings.LOG_LEVEL) -> logging.Logger:
    """Configure the root application logger. Safe to call again (handlers are replaced)."""
    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(logging.DEBUG)
    logger.propagate = False

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(getattr(logging, level.upper(), logging.INFO))
    console_handler.setFormatter(logging.Formatter(SIMPLE_FORMAT, datefmt='%H:%M:%S'))
    logger.addHandler(console_handler)

    logger.addHandler(_rotating_handler("app.log", logging.DEBUG))
    logger.addHandler(_rotating_handler("error.log", logging.ERROR))
    return logger


logger = setup_logger()


def get_logger(name: str) -> logging.Logger:
    """Child logger, e.g. get_logger("writer") -> parallel_life.writer"""
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")


def get_security_logger() -> logging.Logger:
    """parallel_life.security, which additionally writes security.log"""
    security_logger = get_logger("security")
    if not any(getattr(h, "baseFilename", "").endswith("security.log") for h in security_logger.handlers):
        security_logger.addHandler(_rotating_handler("security.log", logging.INFO, max_mb=2, backups=10))
    return security_logger


# =========================
# EVENT HELPERS
# =========================

def log_story_event(user_id: int, story_id: int, event: str, details: str = ""):
    get_logger("story").info(f"[User:{user_id}] [Story:{story_id}] {event} | {details}")


def log_quota_event(user_id: int, event: str, usage_count: int = None, limit: int = None, plan: str = ""):
    """Quota decisions: rejected requests, charged slots and slots given back."""
    usage = f"{usage_count}/{limit}" if limit is not None else f"{usage_count}"
    get_logger("quota").info(f"[User:{user_id}] {event} | plan={plan or '-'} usage={usage}")


def log_security_event(event_type: str, user_email: str = None, ip_address: str = None, success: bool = True, details: str = ""):
    status = "SUCCESS" if success else "FAILED"
    user_info = f"user={user_email}" if user_email else "anonymous"
    ip_info = f"ip={ip_address}" if ip_address else ""
    get_security_logger().info(f"[{event_type}] [{status}] {user_info} | {ip_info} | {details}")


def log_agent_action(agent_name: str, action: str, details: str = "", success: bool = True):
    """Writer, painter and illustrator milestones."""
    level = logging.INFO if success else logging.WARNING
    get_logger(f"agent.{agent_name}").log(level, f"[{'ok' if success else 'failed'}] {action} | {details}")


def log_error(message: str, error: Exception = None, context: dict = None):
    context_str = "".join(f" | {k}={v}" for k, v in (context or {}).items())
    error_logger = get_logger("error")
    if error:
        error_logger.error(f"{message}: {error}{context_str}", exc_info=error)
    else:
        error_logger.error(f"{message}{context_str}")
