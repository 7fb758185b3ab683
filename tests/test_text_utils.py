from datetime import datetime

from scribevault.transcription.text_utils import (
    flatten_utterances,
    format_audio_duration,
    normalize_utterances,
    transcript_filename,
)


def test_flatten_joins_speaker_lines_in_order():
    payload = {"utterances": [{"speaker": 1, "text": "hi"}, {"speaker": 2, "text": "yo"}]}
    assert flatten_utterances(payload) == "Speaker 1: hi\nSpeaker 2: yo\n"


def test_flatten_skips_malformed_utterances():
    payload = {"utterances": [None, "noise", {"speaker": "B", "text": "ok"}]}
    assert flatten_utterances(payload) == "Speaker B: ok\n"


def test_flatten_falls_back_to_plain_text():
    assert flatten_utterances({"utterances": None, "text": "just text"}) == "just text"
    assert flatten_utterances({"utterances": [], "text": "   "}) == ""
    assert flatten_utterances(None) == ""


def test_normalize_utterances_keeps_timing():
    payload = {"utterances": [{"speaker": "A", "text": "hello", "start": 10, "end": 250, "words": []}]}
    assert normalize_utterances(payload) == [
        {"speaker": "A", "text": "hello", "start": 10, "end": 250}
    ]
    assert normalize_utterances({"text": "no utterances"}) is None


def test_format_audio_duration():
    assert format_audio_duration(125) == "02:05"
    assert format_audio_duration(59.9) == "00:59"
    assert format_audio_duration(None) == ""
    assert format_audio_duration("61") == "01:01"
    assert format_audio_duration("n/a") == ""
    assert format_audio_duration({"seconds": 3}) == ""


def test_transcript_filename_uses_stem_and_recorded_date():
    recorded = datetime(2024, 5, 1, 10, 20, 30)
    assert transcript_filename("calls/meeting.final.mp3", recorded) == (
        "meeting.final_2024-05-01_10-20-30.txt"
    )
