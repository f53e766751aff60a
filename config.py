"""
PicRate configuration.

Values come from the environment (a local .env file is loaded first).
"""
import logging
import os

from dotenv import load_dotenv

load_dotenv()

# ── Database ──
DATABASE_URL = os.getenv("MONGODB_URI") or os.getenv("DATABASE_URL", "mongodb://localhost:27017/picrate")
DATABASE_NAME = os.getenv("DATABASE_NAME") or None
DEFAULT_DATABASE_NAME = "picrate"

# ── Rating service (Gemini) ──
GEMINI_API_KEY = os.getenv("GEMINI_API_KEY", "")
GEMINI_MODEL = os.getenv("GEMINI_MODEL", "gemini-1.5-flash")

# ── Leaderboard ──
TOP_SCORERS_LIMIT = 3
AVATAR_SIZE = 80
AVATAR_JPEG_QUALITY = 90

# ── Server ──
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]
PORT = int(os.getenv("PORT", 8000))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()


def configure_logging(level=None):
    logging.basicConfig(
        level=level or LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
