# Service configuration - environment driven, .env aware
import logging
import os

from dotenv import load_dotenv

load_dotenv()  # Load .env so CKD_BACKEND_URL can be set for local runs

DEFAULT_BACKEND_URL = "http://localhost:3000"

# Local Vite dev servers for the dashboard front-end
DEFAULT_ALLOWED_ORIGINS = [
    "http://localhost:5173",
    "http://localhost:5174",
]


def get_backend_url() -> str:
    """Base URL of the CKD backend; trailing slashes are dropped."""
    url = os.environ.get("CKD_BACKEND_URL", "").strip() or DEFAULT_BACKEND_URL
    return url.rstrip("/")


def get_allowed_origins() -> list:
    """CORS origins: local dev plus the deployed front-end from FRONTEND_URL if set."""
    origins = list(DEFAULT_ALLOWED_ORIGINS)
    frontend_url = os.environ.get("FRONTEND_URL", "")
    if frontend_url:
        origins.append(frontend_url)
    return origins


def get_log_level() -> int:
    name = os.environ.get("LOG_LEVEL", "INFO").upper()
    level = logging.getLevelName(name)
    return level if isinstance(level, int) else logging.INFO


def configure_logging():
    logging.basicConfig(
        level=get_log_level(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
