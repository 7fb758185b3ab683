import itertools
import threading

import pytest

from scribevault.errors import PollCancelledError, PollTimeoutError, ProviderError
from scribevault.provider.poller import Poller

from conftest import FakeProviderClient, completed_payload


def test_poll_returns_completed_payload():
    client = FakeProviderClient(statuses=[
        {"status": "queued"}, {"status": "processing"}, completed_payload(),
    ])
    poller = Poller(client, interval=0, max_attempts=10)

    assert poller.poll("job-1")["status"] == "completed"
    assert client.status_calls == 3


def test_failed_status_raises_with_transcript_id():
    client = FakeProviderClient(statuses=[{"status": "failed", "error": "bad audio"}])
    poller = Poller(client, interval=0, max_attempts=10)

    with pytest.raises(ProviderError) as exc_info:
        poller.poll("job-1")
    assert "job-1" in exc_info.value.message
    assert "bad audio" in exc_info.value.message


def test_attempt_cap_gives_timeout():
    client = FakeProviderClient(statuses=[{"status": "processing"}])
    poller = Poller(client, interval=0, timeout=None, max_attempts=3)

    with pytest.raises(PollTimeoutError):
        poller.poll("job-1")
    assert client.status_calls == 3


def test_wall_clock_timeout():
    client = FakeProviderClient(statuses=[{"status": "processing"}])
    clock = itertools.count(0, 10).__next__
    poller = Poller(client, interval=0, timeout=25, clock=clock)

    with pytest.raises(PollTimeoutError):
        poller.poll("job-1")
    assert client.status_calls == 3


def test_poller_requires_a_bound():
    with pytest.raises(ValueError):
        Poller(FakeProviderClient(), timeout=None, max_attempts=None)


def test_cancelled_before_start_makes_no_calls():
    client = FakeProviderClient(statuses=[{"status": "processing"}])
    cancel = threading.Event()
    cancel.set()

    with pytest.raises(PollCancelledError):
        Poller(client, interval=0, max_attempts=10).poll("job-1", cancel)
    assert client.status_calls == 0


def test_cancel_during_polling_stops_further_calls():
    cancel = threading.Event()

    class CancellingClient(FakeProviderClient):
        def get_status(self, transcript_id):
            cancel.set()
            return super().get_status(transcript_id)

    client = CancellingClient(statuses=[{"status": "processing"}])
    with pytest.raises(PollCancelledError):
        Poller(client, interval=0, max_attempts=10).poll("job-1", cancel)
    assert client.status_calls == 1
