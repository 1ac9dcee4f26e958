"""Typed interfaces for adapter-layer responsibilities."""

from pathlib import Path
from typing import Any, Mapping, Protocol, Sequence

from childproc.domain import ProcessHandle


class ProcessServicePort(Protocol):
    """Port definition for the remote process-management service."""

    def service_label(self) -> str:
        """Return a stable label for the remote target used in diagnostics.

        Returns:
            str: Human-readable remote target identifier.

        Raises:
            RuntimeError: Raised when target metadata is unavailable.
        """

    def service_submit(
        self,
        request: Mapping[str, Any],
        payload_path: Path | None,
        fields: Mapping[str, str],
    ) -> str:
        """Start a new process.

        Args:
            request: Wire request document.
            payload_path: Optional archive to upload with the request.
            fields: Additional submission fields (org, project, parent id, ...).

        Returns:
            str: Remote-assigned process identifier.

        Raises:
            RemoteCallFailedError: Raised when the remote call fails.
        """

    def service_fork(self, parent_instance_id: str, request: Mapping[str, Any], sync: bool) -> str:
        """Start a sibling process continuing from the parent's current point.

        Args:
            parent_instance_id: Process being forked.
            request: Wire request document.
            sync: Remote synchronous-fork flag.

        Returns:
            str: Remote-assigned process identifier.

        Raises:
            RemoteCallFailedError: Raised when the remote call fails.
        """

    def service_get_status(self, instance_id: str) -> ProcessHandle:
        """Return the current status snapshot of one process.

        Args:
            instance_id: Process identifier.

        Returns:
            ProcessHandle: Status snapshot.

        Raises:
            RemoteCallFailedError: Raised when the remote call fails.
        """

    def service_list_children(self, instance_id: str, tags: Sequence[str] | None = None) -> list[str]:
        """List child process identifiers of one process.

        Args:
            instance_id: Parent process identifier.
            tags: Optional tag filter.

        Returns:
            list[str]: Child process identifiers.

        Raises:
            RemoteCallFailedError: Raised when the remote call fails.
        """

    def service_kill(self, instance_id: str) -> None:
        """Request termination of one process.

        Args:
            instance_id: Process identifier.

        Returns:
            None: Acknowledgement only.

        Raises:
            RemoteCallFailedError: Raised when the remote call fails.
        """

    def service_set_wait_condition(self, instance_id: str, condition: Mapping[str, Any]) -> None:
        """Register a durable wait condition on one process.

        Args:
            instance_id: Process that waits.
            condition: Condition document naming member identifiers and a resume event.

        Returns:
            None: Acknowledgement only.

        Raises:
            RemoteCallFailedError: Raised when the remote call fails.
        """

    def service_download_output_artifact(self, instance_id: str, name: str) -> bytes | None:
        """Download one output artifact of a process.

        Args:
            instance_id: Process identifier.
            name: Artifact name.

        Returns:
            bytes | None: Artifact bytes, or None when the remote reports not found.

        Raises:
            RemoteCallFailedError: Raised when the remote call fails for other reasons.
        """
