"""
Shared utility functions and singletons used across multiple modules.
"""

import os
import re
import uuid

from slowapi import Limiter
from slowapi.util import get_remote_address

# ── Shared rate-limiter instance ─────────────────────────────────────────
# Created here (not in main.py) so that route modules can import it
# without a circular dependency.
limiter = Limiter(key_func=get_remote_address)

_UNSAFE_CHARS = re.compile(r"[^\w.\-]+")


def stored_upload_name(original_filename: str) -> str:
    """Unique on-disk name for an upload, e.g. '3f2a…_meeting_notes.mp3'."""
    base = os.path.basename(original_filename or "upload")
    safe = _UNSAFE_CHARS.sub("_", base).strip("._") or "upload"
    return f"{uuid.uuid4().hex}_{safe}"
