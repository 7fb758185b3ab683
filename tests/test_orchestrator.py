import threading

import pytest

from scribevault.errors import InputError, PersistenceError, ProviderError, TranscriptionStepError
from scribevault.provider.poller import Poller
from scribevault.transcription.models import TranscriptionJob
from scribevault.transcription.orchestrator import JobOrchestrator, parse_recorded_at

from conftest import FakeProviderClient, completed_payload

OPTIONS = {"speaker_labels": True, "language_code": "en"}
METADATA = {"file_name": "meeting.mp3", "recorded_at": "2024-05-01T10:20:30Z"}


def make_orchestrator(client, transcripts, backups, out_dir):
    return JobOrchestrator(
        client=client,
        poller=Poller(client, interval=0, timeout=None, max_attempts=5),
        transcripts=transcripts,
        backups=backups,
        transcripts_dir=str(out_dir),
    )


def test_successful_job_stores_record_backup_and_file(provider, transcripts, backups, audio_file, tmp_path):
    out_dir = tmp_path / "transcripts"
    orchestrator = make_orchestrator(provider, transcripts, backups, out_dir)
    job = TranscriptionJob()

    record = orchestrator.run_job("user-1", str(audio_file), METADATA, OPTIONS, job=job)

    assert record["transcript_id"] == "job-1"
    assert record["transcription"] == "Speaker 1: hi\nSpeaker 2: yo\n"
    assert record["transcript_file"] == "meeting_2024-05-01_10-20-30.txt"
    assert record["utterances"][1] == {"speaker": 2, "text": "yo", "start": 1000, "end": 1800}
    assert (out_dir / "meeting_2024-05-01_10-20-30.txt").read_text(encoding="utf-8") == (
        "Speaker 1: hi\nSpeaker 2: yo\n"
    )
    assert transcripts.get_transcript_by_provider_id("job-1") is not None
    assert backups.get_backup("job-1")["file_name"] == "meeting.mp3"
    assert provider.uploaded == [b"ID3-fake-audio"]
    assert provider.submitted[0] == ("https://cdn.example/upload/1", OPTIONS)
    assert all(step["status"] == "success" for step in job.snapshot().values())
    assert job.result == record


def test_failed_transcription_leaves_later_steps_pending(transcripts, backups, audio_file, tmp_path):
    client = FakeProviderClient(statuses=[{"id": "job-1", "status": "failed", "error": "bad audio"}])
    orchestrator = make_orchestrator(client, transcripts, backups, tmp_path / "out")

    with pytest.raises(TranscriptionStepError) as exc_info:
        orchestrator.run_job("user-1", str(audio_file), METADATA, OPTIONS)

    error = exc_info.value
    assert error.step == "transcribe"
    assert "job-1" in error.message
    assert error.transcript_id == "job-1"
    assert error.steps["transcribe"]["status"] == "error"
    for step in ("save_db", "save_file", "complete"):
        assert error.steps[step] == {"status": "pending", "error": None}
    assert transcripts.get_transcript_by_provider_id("job-1") is None
    assert backups.get_backup("job-1") is None


def test_missing_file_fails_init(provider, transcripts, backups, tmp_path):
    orchestrator = make_orchestrator(provider, transcripts, backups, tmp_path / "out")

    with pytest.raises(TranscriptionStepError) as exc_info:
        orchestrator.run_job("user-1", str(tmp_path / "missing.mp3"), METADATA, OPTIONS)

    assert exc_info.value.step == "init"
    assert exc_info.value.status_code == 400
    assert exc_info.value.steps["upload"]["status"] == "pending"
    assert provider.uploaded == []


def test_upload_failure_stops_before_submit(provider, transcripts, backups, audio_file, tmp_path):
    provider.upload_error = ProviderError("Provider unreachable: timeout")
    orchestrator = make_orchestrator(provider, transcripts, backups, tmp_path / "out")

    with pytest.raises(TranscriptionStepError) as exc_info:
        orchestrator.run_job("user-1", str(audio_file), METADATA, OPTIONS)

    assert exc_info.value.step == "upload"
    assert exc_info.value.transcript_id is None
    assert provider.submitted == []


def test_database_failure_reports_provider_job(provider, backups, audio_file, tmp_path):
    class BrokenTranscripts:
        def insert_transcript_record(self, **kwargs):
            raise PersistenceError("Failed to store transcription: disk full", kwargs["transcript_id"])

    orchestrator = make_orchestrator(provider, BrokenTranscripts(), backups, tmp_path / "out")

    with pytest.raises(TranscriptionStepError) as exc_info:
        orchestrator.run_job("user-1", str(audio_file), METADATA, OPTIONS)

    assert exc_info.value.step == "save_db"
    assert "job-1" in exc_info.value.message
    assert exc_info.value.steps["save_file"]["status"] == "pending"
    # the backup is kept so the transcript can be restored later
    assert backups.get_backup("job-1") is not None


def test_unexpected_save_error_is_reported_as_step_failure(provider, backups, audio_file, tmp_path):
    class ExplodingTranscripts:
        def insert_transcript_record(self, **kwargs):
            raise RuntimeError("connection reset")

    job = TranscriptionJob()
    orchestrator = make_orchestrator(provider, ExplodingTranscripts(), backups, tmp_path / "out")

    with pytest.raises(TranscriptionStepError) as exc_info:
        orchestrator.run_job("user-1", str(audio_file), METADATA, OPTIONS, job=job)

    error = exc_info.value
    assert error.step == "save_db"
    assert error.status_code == 500
    assert error.transcript_id == "job-1"
    assert "job-1" in error.message
    assert error.steps["transcribe"]["status"] == "success"
    assert error.steps["save_db"]["status"] == "error"
    assert job.is_finished


def test_malformed_utterances_do_not_break_the_job(transcripts, backups, audio_file, tmp_path):
    client = FakeProviderClient(statuses=[completed_payload(utterances=[None, {"speaker": 1, "text": "hi"}])])
    orchestrator = make_orchestrator(client, transcripts, backups, tmp_path / "out")

    record = orchestrator.run_job("user-1", str(audio_file), METADATA, OPTIONS)

    assert record["transcription"] == "Speaker 1: hi\n"
    assert record["utterances"] == [{"speaker": 1, "text": "hi", "start": None, "end": None}]


def test_file_write_failure_reports_provider_job(provider, transcripts, backups, audio_file, tmp_path):
    # a plain file where the transcripts directory should be
    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory")
    orchestrator = make_orchestrator(provider, transcripts, backups, blocker)

    with pytest.raises(TranscriptionStepError) as exc_info:
        orchestrator.run_job("user-1", str(audio_file), METADATA, OPTIONS)

    error = exc_info.value
    assert error.step == "save_file"
    assert "job-1" in error.message
    assert error.steps["save_db"]["status"] == "success"
    assert error.steps["save_file"]["status"] == "error"
    assert error.steps["complete"] == {"status": "pending", "error": None}
    assert transcripts.get_transcript_by_provider_id("job-1") is not None


def test_cancelled_job_fails_transcribe(provider, transcripts, backups, audio_file, tmp_path):
    orchestrator = make_orchestrator(provider, transcripts, backups, tmp_path / "out")
    cancel = threading.Event()
    cancel.set()

    with pytest.raises(TranscriptionStepError) as exc_info:
        orchestrator.run_job("user-1", str(audio_file), METADATA, OPTIONS, cancel_event=cancel)

    assert exc_info.value.step == "transcribe"
    assert exc_info.value.status_code == 499
    assert provider.status_calls == 0


def test_recorded_date_defaults_to_file_mtime(provider, transcripts, backups, audio_file, tmp_path):
    orchestrator = make_orchestrator(provider, transcripts, backups, tmp_path / "out")

    record = orchestrator.run_job("user-1", str(audio_file), {"file_name": "meeting.mp3"}, OPTIONS)

    assert record["file_recorded_at"] is not None
    assert record["transcript_file"].startswith("meeting_")


def test_parse_recorded_at_formats():
    assert parse_recorded_at(None) is None
    assert parse_recorded_at("1714558830000").year == 2024
    assert parse_recorded_at("2024-05-01T10:20:30Z").hour == 10
    with pytest.raises(InputError):
        parse_recorded_at("yesterday")
