"""
Transcript text helpers.

Turns provider payloads into the speaker-labelled display text stored
locally, and derives the deterministic names used for files on disk.
"""

import os
from datetime import datetime
from typing import Any, Dict, List, Optional

RECORDED_AT_FORMAT = "%Y-%m-%d_%H-%M-%S"


def flatten_utterances(payload: Optional[Dict[str, Any]]) -> str:
    """
    Build the display text for a provider payload.

    Utterances become one ``Speaker <id>: <text>`` line each, in order.
    Payloads without utterances fall back to their plain ``text``.
    """
    if not payload:
        return ""

    utterances = payload.get("utterances")
    if isinstance(utterances, list) and utterances:
        lines = []
        for utterance in utterances:
            if not isinstance(utterance, dict):
                continue
            speaker = utterance.get("speaker")
            speaker_label = "" if speaker is None else speaker
            lines.append(f"Speaker {speaker_label}: {utterance.get('text') or ''}\n")
        return "".join(lines)

    text = payload.get("text")
    if isinstance(text, str) and text.strip():
        return text
    return ""


def normalize_utterances(payload: Optional[Dict[str, Any]]) -> Optional[List[Dict[str, Any]]]:
    """Return ``[{speaker, text, start, end}]`` (ms), or None when absent."""
    if not payload:
        return None
    utterances = payload.get("utterances")
    if not isinstance(utterances, list):
        return None
    return [
        {
            "speaker": u.get("speaker"),
            "text": u.get("text") or "",
            "start": u.get("start"),
            "end": u.get("end"),
        }
        for u in utterances
        if isinstance(u, dict)
    ]


def format_audio_duration(seconds: Optional[float]) -> str:
    """Render a duration in seconds as ``MM:SS`` (empty when unknown)."""
    if not seconds:
        return ""
    try:
        total = int(float(seconds))
    except (TypeError, ValueError, OverflowError):
        return ""
    return f"{total // 60:02d}:{total % 60:02d}"


def format_recorded_at(recorded_at: datetime) -> str:
    return recorded_at.strftime(RECORDED_AT_FORMAT)


def transcript_filename(file_name: str, recorded_at: datetime) -> str:
    """``<original stem>_<YYYY-MM-DD_HH-MM-SS>.txt``"""
    stem = os.path.splitext(os.path.basename(file_name))[0]
    return f"{stem}_{format_recorded_at(recorded_at)}.txt"
