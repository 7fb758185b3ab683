from datetime import datetime

import pytest

from scribevault.database.backup_repository import PAYLOAD_VERSION, decode_backup_payload
from scribevault.errors import ConflictError, PersistenceError


def insert(transcripts, transcript_id, user_id="user-1", file_name="meeting.mp3", recorded=None):
    return transcripts.insert_transcript_record(
        user_id=user_id,
        file_name=file_name,
        file_recorded_at=recorded or datetime(2024, 5, 1, 10, 0, 0),
        transcript_id=transcript_id,
        transcription="Speaker A: hello\n",
    )


def test_insert_and_read_back(transcripts):
    record = insert(transcripts, "job-1")

    assert len(record["transcription_id"]) == 32
    assert "_id" not in record
    assert transcripts.get_transcript(record["transcription_id"])["transcript_id"] == "job-1"
    assert transcripts.get_transcript_by_provider_id("job-1")["transcription_id"] == (
        record["transcription_id"]
    )


def test_provider_id_is_unique(transcripts):
    insert(transcripts, "job-1")
    with pytest.raises(ConflictError):
        insert(transcripts, "job-1")


def test_list_filters_and_ordering(transcripts):
    insert(transcripts, "job-1", file_name="Weekly Sync.mp3", recorded=datetime(2024, 1, 1))
    insert(transcripts, "job-2", file_name="interview.wav", recorded=datetime(2024, 3, 1))
    insert(transcripts, "job-3", user_id="user-2", file_name="weekly plan.mp3")

    mine = transcripts.list_transcripts(user_id="user-1", order_by="file_recorded_at", direction="asc")
    assert [r["transcript_id"] for r in mine] == ["job-1", "job-2"]

    weekly = transcripts.list_transcripts(user_id="user-1", file_name="weekly")
    assert [r["transcript_id"] for r in weekly] == ["job-1"]

    ranged = transcripts.list_transcripts(user_id="user-1", date_from=datetime(2024, 2, 1))
    assert [r["transcript_id"] for r in ranged] == ["job-2"]

    assert len(transcripts.list_transcripts()) == 3


def test_delete_transcript(transcripts):
    record = insert(transcripts, "job-1")
    assert transcripts.delete_transcript(record["transcription_id"]) is True
    assert transcripts.delete_transcript(record["transcription_id"]) is False


def test_backup_round_trip_and_scoping(backups):
    backups.insert_backup("job-1", "user-1", "a.mp3", datetime(2024, 5, 1), {"status": "completed"})
    backups.insert_backup("job-2", "user-2", "b.mp3", datetime(2024, 5, 2), {"status": "completed"})

    backup = backups.get_backup("job-1")
    assert backup["payload_version"] == PAYLOAD_VERSION
    assert decode_backup_payload(backup) == {"status": "completed"}

    assert [b["transcript_id"] for b in backups.get_backups_by_ids(["job-1", "job-2"], "user-1")] == ["job-1"]
    assert len(backups.get_backups_by_ids(["job-1", "job-2"], "user-1", is_admin=True)) == 2
    assert backups.get_backups_by_ids([], "user-1") == []


def test_duplicate_backup_is_a_persistence_error(backups):
    backups.insert_backup("job-1", "user-1", "a.mp3", None, {"status": "completed"})
    with pytest.raises(PersistenceError):
        backups.insert_backup("job-1", "user-1", "a.mp3", None, {"status": "completed"})


@pytest.mark.parametrize("backup", [
    {"transcript_id": "x", "payload_version": 99, "raw_payload": "{}"},
    {"transcript_id": "x", "payload_version": PAYLOAD_VERSION, "raw_payload": "{not json"},
    {"transcript_id": "x", "payload_version": PAYLOAD_VERSION, "raw_payload": "[1, 2]"},
    {"transcript_id": "x", "payload_version": PAYLOAD_VERSION, "raw_payload": None},
])
def test_untrusted_payloads_decode_to_none(backup):
    assert decode_backup_payload(backup) is None
