"""
Centralized configuration loader.

Reads the ENVIRONMENT env-var and merges the correct environment module
(config_prod or config_local) into a single settings namespace.

Usage:
    from configs.config import get_config
    cfg = get_config()
    print(cfg.ASSEMBLYAI_BASE_URL)
"""

import os
import importlib
import logging
from types import SimpleNamespace

logger = logging.getLogger(__name__)

# ── Environment detection ────────────────────────────────────────────────
ENVIRONMENT = os.getenv("ENVIRONMENT", "production")

# ── Shared constants (environment-independent) ───────────────────────────

# Database
MONGODB_URL = os.getenv("MONGODB_URL", "mongodb://127.0.0.1:27017/scribevault")
DATABASE_NAME = os.getenv("DATABASE_NAME", "scribevault")
TRANSCRIPTIONS_COLLECTION = "transcriptions"
BACKUPS_COLLECTION = "transcription_backups"

# File storage
UPLOAD_DIR = os.getenv("UPLOAD_DIR", "/var/lib/scribevault/uploads")
TRANSCRIPTS_DIR = os.getenv("TRANSCRIPTS_DIR", "/var/lib/scribevault/transcriptions")

# Speech-to-text provider
ASSEMBLYAI_API_KEY = os.getenv("ASSEMBLYAI_API_KEY", "")
ASSEMBLYAI_BASE_URL = os.getenv("ASSEMBLYAI_BASE_URL", "https://api.eu.assemblyai.com")
PROVIDER_REQUEST_TIMEOUT_SECONDS = 60

DEFAULT_TRANSCRIPTION_OPTIONS = {
    "speaker_labels": True,
    "speakers_expected": 2,
    "sentiment_analysis": True,
    "speech_model": "nano",
    "language_code": "en",
}

# Polling
POLL_INTERVAL_SECONDS = 5
POLL_TIMEOUT_SECONDS = 30 * 60
POLL_MAX_ATTEMPTS = None  # None: bounded by POLL_TIMEOUT_SECONDS only

# History
HISTORY_PAGE_SIZE = 20

# In-memory job registry (asynchronous uploads)
JOB_REGISTRY_TTL_SECONDS = 10 * 60

# Security
JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "change-me-in-production")
JWT_ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = 60
ADMIN_ROLE = "admin"
MAX_UPLOAD_SIZE = 500 * 1024 * 1024  # 500 MB

ALLOWED_EXTENSIONS = frozenset({
    ".mp3", ".wav", ".aac", ".ogg", ".flac", ".m4a", ".webm",
    ".mp4", ".mov", ".mkv",
})

EXPORT_FORMATS = ("txt", "pdf", "docx")

CORS_METHODS = ["GET", "POST", "DELETE", "OPTIONS"]
CORS_HEADERS = [
    "Accept",
    "Accept-Language",
    "Authorization",
    "Content-Type",
    "Origin",
    "X-Requested-With",
    "X-Request-ID",
]

# Logging
LOG_DIR = os.getenv("LOG_DIR", ".")
LOG_FILE_APP = "app.log"
LOG_FILE_ERRORS = "errors.log"
LOG_FILE_PROVIDER = "provider.log"
LOG_LEVEL_APP = os.getenv("LOG_LEVEL", "INFO")
LOG_LEVEL_THIRD_PARTY = "WARNING"
LOG_MAX_BYTES = 5 * 1024 * 1024  # 5 MB
LOG_BACKUP_COUNT = 5


# ── Config loader ────────────────────────────────────────────────────────

_config_cache = None


def get_config() -> SimpleNamespace:
    """
    Return a merged configuration namespace.

    Environment-specific values from config_local or config_prod
    override the shared defaults defined above.
    """
    global _config_cache
    if _config_cache is not None:
        return _config_cache

    # Start with all module-level constants
    base = {
        key: value
        for key, value in globals().items()
        if key.isupper() and not key.startswith("_")
    }

    # Overlay environment-specific settings
    env_module_name = (
        "configs.config_local" if ENVIRONMENT == "development"
        else "configs.config_prod"
    )
    try:
        env_module = importlib.import_module(env_module_name)
        for key in dir(env_module):
            if key.isupper():
                base[key] = getattr(env_module, key)
        logger.info("Loaded configuration from %s", env_module_name)
    except ImportError:
        logger.warning(
            "Environment config '%s' not found; using shared defaults.",
            env_module_name,
        )

    _config_cache = SimpleNamespace(**base)
    return _config_cache
