"""Shared test doubles for child process orchestration tests."""

from __future__ import annotations

import threading
from pathlib import Path
from typing import Any, Mapping, Sequence

import pytest

from childproc.domain import ProcessHandle, ProcessStatus, RemoteCallFailedError


class FakeClock:
    """Thread-safe monotonic clock advanced only by `sleep`."""

    def __init__(self, start: float = 0.0):
        self._now = start
        self._lock = threading.Lock()
        self.sleep_calls: list[float] = []

    def __call__(self) -> float:
        with self._lock:
            return self._now

    def sleep(self, seconds: float) -> None:
        """Record the requested delay and advance the clock by it."""

        with self._lock:
            self.sleep_calls.append(seconds)
            self._now += seconds


class ScriptedProcessService:
    """In-memory process service with scripted status transitions.

    Status resolution order for one identifier:
    1. pending injected status-query failures raise `RemoteCallFailedError`;
    2. a scheduled terminal status applies once the clock reaches its time;
    3. a scripted status list is consumed one entry per query (the last entry repeats);
    4. otherwise the process reports `FINISHED`.
    """

    def __init__(self, clock: FakeClock | None = None):
        self.clock = clock or FakeClock()
        self._lock = threading.Lock()
        self._next_number = 0
        self.submissions: list[dict[str, Any]] = []
        self.forks: list[dict[str, Any]] = []
        self.kills: list[str] = []
        self.wait_conditions: list[tuple[str, dict[str, Any]]] = []
        self.status_calls: list[str] = []
        self.downloads: list[tuple[str, str]] = []
        self.status_scripts: dict[str, list[ProcessStatus]] = {}
        self.scheduled_terminals: dict[str, tuple[float, ProcessStatus]] = {}
        self.status_failures: dict[str, int] = {}
        self.meta: dict[str, dict[str, Any]] = {}
        self.artifacts: dict[tuple[str, str], bytes] = {}
        self.children: dict[str, list[str]] = {}
        self.wait_condition_failures = 0

    def service_label(self) -> str:
        return "stub://process-service"

    def service_submit(self, request: Mapping[str, Any], payload_path: Path | None, fields: Mapping[str, str]) -> str:
        instance_id = self._service_next_instance_id()
        self.submissions.append(
            {
                "instance_id": instance_id,
                "request": dict(request),
                "payload_path": payload_path,
                "payload_bytes": payload_path.read_bytes() if payload_path is not None else None,
                "fields": dict(fields),
            }
        )
        return instance_id

    def service_fork(self, parent_instance_id: str, request: Mapping[str, Any], sync: bool) -> str:
        instance_id = self._service_next_instance_id()
        self.forks.append(
            {
                "instance_id": instance_id,
                "parent_instance_id": parent_instance_id,
                "request": dict(request),
                "sync": sync,
            }
        )
        return instance_id

    def service_get_status(self, instance_id: str) -> ProcessHandle:
        with self._lock:
            self.status_calls.append(instance_id)
            remaining_failures = self.status_failures.get(instance_id, 0)
            if remaining_failures > 0:
                self.status_failures[instance_id] = remaining_failures - 1
                raise RemoteCallFailedError(f"GET {instance_id} returned HTTP 503", status_code=503)

            if instance_id in self.scheduled_terminals:
                terminal_at, terminal_status = self.scheduled_terminals[instance_id]
                status = terminal_status if self.clock() >= terminal_at else ProcessStatus.RUNNING
            elif instance_id in self.status_scripts:
                script = self.status_scripts[instance_id]
                status = script.pop(0) if len(script) > 1 else script[0]
            else:
                status = ProcessStatus.FINISHED
        return ProcessHandle(instance_id=instance_id, status=status, meta=self.meta.get(instance_id, {}))

    def service_list_children(self, instance_id: str, tags: Sequence[str] | None = None) -> list[str]:
        _ = tags
        return list(self.children.get(instance_id, []))

    def service_kill(self, instance_id: str) -> None:
        self.kills.append(instance_id)

    def service_set_wait_condition(self, instance_id: str, condition: Mapping[str, Any]) -> None:
        if self.wait_condition_failures > 0:
            self.wait_condition_failures -= 1
            raise RemoteCallFailedError("POST wait returned HTTP 502", status_code=502)
        self.wait_conditions.append((instance_id, dict(condition)))

    def service_download_output_artifact(self, instance_id: str, name: str) -> bytes | None:
        self.downloads.append((instance_id, name))
        return self.artifacts.get((instance_id, name))

    def _service_next_instance_id(self) -> str:
        with self._lock:
            self._next_number += 1
            return f"child-{self._next_number}"


@pytest.fixture
def fake_clock() -> FakeClock:
    """Provide a clock starting at zero."""

    return FakeClock()


@pytest.fixture
def process_service(fake_clock: FakeClock) -> ScriptedProcessService:
    """Provide a scripted process service sharing `fake_clock`."""

    return ScriptedProcessService(clock=fake_clock)
