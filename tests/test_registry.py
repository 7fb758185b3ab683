from scribevault.transcription.models import StepKey
from scribevault.transcription.registry import JobRegistry


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


def test_jobs_are_scoped_to_their_owner():
    registry = JobRegistry()
    job = registry.create("user-1")

    assert registry.get(job.job_id, "user-1") is job
    assert registry.get(job.job_id, "user-2") is None
    assert registry.get("unknown") is None


def test_cancel_sets_the_event():
    registry = JobRegistry()
    job = registry.create("user-1")

    assert registry.cancel(job.job_id, "user-2") is False
    assert registry.cancel(job.job_id, "user-1") is True
    assert job.cancel_event.is_set()


def test_finished_jobs_expire_after_ttl():
    clock = FakeClock()
    registry = JobRegistry(ttl_seconds=60, clock=clock)
    running = registry.create("user-1")
    finished = registry.create("user-1")
    finished.start(StepKey.INIT)
    finished.fail(StepKey.INIT, "No audio file provided")
    finished.finished_at = clock.now

    clock.now += 61

    assert registry.get(finished.job_id) is None
    assert registry.get(running.job_id) is running
    assert registry.active_jobs() == [running]


def test_cancel_all_signals_only_running_jobs():
    registry = JobRegistry()
    running = registry.create("user-1")
    other_user = registry.create("user-2")
    finished = registry.create("user-1")
    finished.start(StepKey.INIT)
    finished.fail(StepKey.INIT, "No audio file provided")

    assert registry.cancel_all() == 2
    assert running.cancel_event.is_set()
    assert other_user.cancel_event.is_set()
    assert not finished.cancel_event.is_set()
