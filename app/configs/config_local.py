"""
Development / local environment configuration overrides.

Only values that DIFFER from production need to be declared here.
The base config.py merges these on top of the production defaults.
"""

import os

# FastAPI docs are enabled in development
DOCS_ENABLED = True

# Local working directories instead of the service volume
UPLOAD_DIR = os.getenv("UPLOAD_DIR", "./uploads")
TRANSCRIPTS_DIR = os.getenv("TRANSCRIPTS_DIR", "./transcriptions")

# Faster feedback while developing against the provider
POLL_INTERVAL_SECONDS = 2

# Verbose scribevault.* logs locally
LOG_LEVEL_APP = os.getenv("LOG_LEVEL", "DEBUG")

# Relaxed CORS for local development
CORS_ORIGINS = [
    "http://localhost:3000",
    "http://localhost:5173",
    "http://127.0.0.1:3000",
    "http://127.0.0.1:5173",
]

# Trusted hosts include localhost
ALLOWED_HOSTS = [
    "localhost",
    "127.0.0.1",
    "testserver",
]
