"""
Runtime configuration.

Values come from the environment (a local .env file is loaded first). Token
lifetimes are fixed constants, not configuration.
"""

import os
import sys
from typing import Optional

from dotenv import load_dotenv

load_dotenv()

DEBUG_MODE = "--debug" in sys.argv or os.getenv("DEBUG_MODE") == "1"

HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", "3000"))


def _optional_float(name: str) -> Optional[float]:
    raw = os.getenv(name, "").strip()
    return float(raw) if raw else None


# Unset means no timeout on the CDN fetch
UPSTREAM_TIMEOUT_SECONDS = _optional_float("UPSTREAM_TIMEOUT_SECONDS")

TOKEN_MAX_AGE_SECONDS = 30 * 60
TOKEN_SWEEP_INTERVAL_SECONDS = 5 * 60

DOWNLOAD_FILENAME = "instagram-video.mp4"
DEFAULT_CONTENT_TYPE = "video/mp4"
