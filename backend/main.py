"""
Folder Stream Backend: FastAPI Server

HTTP front door for the shared-folder streaming service:
1. Lists the files of a shared folder by crawling it in a headless browser
2. Resolves one file to metadata plus a same-origin stream link
3. Streams the file bytes through from the storage origin

Run with: uvicorn main:app --port 3000 (from backend/)
Or: python main.py (from the project root)
"""

# Load environment variables FIRST before any other imports
from pathlib import Path
from dotenv import load_dotenv

# Load .env from project root (parent of backend/)
env_path = Path(__file__).parent.parent / ".env"
load_dotenv(env_path, override=False)

import logging
import os
import sys
from contextlib import asynccontextmanager
from datetime import datetime
from logging.handlers import TimedRotatingFileHandler
from typing import Optional

from fastapi import FastAPI
from pythonjsonlogger import jsonlogger

from folder_routes import router as folder_router
from settings import ServiceSettings

SERVICE_NAME = "Folder Stream Backend"
VERSION = "1.0.0"

# ============================================================================
# LOGGING CONFIGURATION
# ============================================================================

# Create custom formatter with colors for terminal
class ColoredFormatter(logging.Formatter):
    """Custom formatter with colors for different log levels."""

    COLORS = {
        'DEBUG': '\033[36m',     # Cyan
        'INFO': '\033[32m',      # Green
        'WARNING': '\033[33m',   # Yellow
        'ERROR': '\033[31m',     # Red
        'CRITICAL': '\033[35m',  # Magenta
    }
    RESET = '\033[0m'
    BOLD = '\033[1m'

    def format(self, record):
        # Work on a copy so the file handlers still see plain text
        record = logging.makeLogRecord(record.__dict__)
        color = self.COLORS.get(record.levelname, self.RESET)
        record.levelname = f"{color}{self.BOLD}{record.levelname}{self.RESET}"
        record.msg = f"{color}{record.getMessage()}{self.RESET}"
        record.args = None
        return super().format(record)


def setup_logging(log_dir: Optional[str] = None):
    """Setup console, JSON file and error-file logging for the service."""

    logger = logging.getLogger("folder-stream")
    logger.setLevel(logging.DEBUG)

    # Clear existing handlers
    logger.handlers = []

    # Console handler with colors for readability during development
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(logging.INFO)
    console_formatter = ColoredFormatter(
        '%(asctime)s | %(levelname)s | [%(name)s] %(message)s',
        datefmt='%H:%M:%S'
    )
    console_handler.setFormatter(console_formatter)
    logger.addHandler(console_handler)

    log_dir = Path(log_dir or os.getenv("LOG_DIR", "."))
    log_dir.mkdir(parents=True, exist_ok=True)

    # Rotating file handler for structured JSON logs.
    # Rotates daily, keeps 7 days of logs.
    file_handler = TimedRotatingFileHandler(
        log_dir / "folder_stream.log", when="midnight", interval=1, backupCount=7, encoding='utf-8'
    )
    file_handler.setLevel(logging.DEBUG)
    json_formatter = jsonlogger.JsonFormatter(
        '%(asctime)s %(name)s %(levelname)s %(message)s %(lineno)d %(funcName)s',
        rename_fields={'levelname': 'level', 'asctime': 'timestamp'}
    )
    file_handler.setFormatter(json_formatter)
    logger.addHandler(file_handler)

    # Plain-text error log
    error_handler = logging.FileHandler(log_dir / 'folder_stream.error.log', mode='a', encoding='utf-8')
    error_handler.setLevel(logging.ERROR)
    error_formatter = logging.Formatter(
        '%(asctime)s | %(levelname)s | [%(name)s] %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )
    error_handler.setFormatter(error_formatter)
    logger.addHandler(error_handler)

    return logger

logger = setup_logging()

# ============================================================================
# FASTAPI APPLICATION
# ============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    settings: ServiceSettings = app.state.settings
    logger.info("=" * 60)
    logger.info("  FOLDER STREAM BACKEND STARTING")
    logger.info("=" * 60)
    logger.info(f"Settings: {settings!r}")
    if not settings.server_cookie:
        logger.warning("TERABOX_COOKIE not set; callers must supply their own cookie")
    yield
    logger.info("  FOLDER STREAM BACKEND SHUTTING DOWN")


def create_app(settings: Optional[ServiceSettings] = None) -> FastAPI:
    """
    Build the FastAPI app.

    Args:
        settings: Explicit settings (defaults to ServiceSettings.from_env())
    """
    app = FastAPI(
        title=SERVICE_NAME,
        description="Shared-folder listing, resolution and streaming API",
        version=VERSION,
        lifespan=lifespan
    )
    app.state.settings = settings or ServiceSettings.from_env()
    app.include_router(folder_router)

    @app.get("/")
    async def root():
        """Service index."""
        return {
            "ok": True,
            "service": SERVICE_NAME,
            "version": VERSION,
            "message": "Shared folder streaming API",
            "endpoints": {
                "health": "GET /health",
                "folder": "POST /folder { url, cookie? }",
                "resolve": "POST /resolve { url, cookie?, pick }",
                "stream": "GET /stream?url=... (X-Cookie header optional)",
            },
        }

    @app.get("/health")
    async def health():
        """Simple health check endpoint."""
        return {"ok": True, "timestamp": datetime.now().isoformat()}

    return app


app = create_app()
