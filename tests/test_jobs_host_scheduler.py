"""Tests for the in-memory host scheduler."""

from __future__ import annotations

import pytest

from childproc.jobs import InMemoryHostScheduler


def test_jobs_host_scheduler_parks_and_releases() -> None:
    scheduler = InMemoryHostScheduler()

    scheduler.scheduler_park("parent-1", "childProcess")

    assert scheduler.scheduler_parked_event("parent-1") == "childProcess"
    assert scheduler.scheduler_release("parent-1") is True
    assert scheduler.scheduler_release("parent-1") is False
    assert scheduler.scheduler_parked_event("parent-1") is None


@pytest.mark.parametrize(
    ("instance_id", "resume_event", "message"),
    [
        (" ", "childProcess", "instance_id must not be blank"),
        ("parent-1", " ", "resume_event must not be blank"),
    ],
)
def test_jobs_host_scheduler_rejects_blank_values(instance_id: str, resume_event: str, message: str) -> None:
    scheduler = InMemoryHostScheduler()

    with pytest.raises(ValueError, match=message):
        scheduler.scheduler_park(instance_id, resume_event)

    assert scheduler.scheduler_parked_event(instance_id) is None
