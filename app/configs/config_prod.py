"""
Production environment configuration.

These are the baseline defaults. Local overrides live in config_local.py.
"""

import os

# FastAPI docs are disabled in production
DOCS_ENABLED = False

CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv("CORS_ORIGINS", "https://scribevault.app").split(",")
    if origin.strip()
]

ALLOWED_HOSTS = [
    host.strip()
    for host in os.getenv(
        "ALLOWED_HOSTS", "scribevault.app,api.scribevault.app,localhost,127.0.0.1,testserver"
    ).split(",")
    if host.strip()
]
