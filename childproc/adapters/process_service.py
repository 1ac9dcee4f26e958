"""HTTP adapter implementation for the remote process-management service."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Final, Mapping, Sequence
from urllib.parse import quote

import httpx
import structlog

from childproc.domain import ProcessHandle, RemoteCallFailedError, domain_parse_process_status

from .interfaces import ProcessServicePort

logger = structlog.get_logger(__name__)


class HttpProcessServiceAdapter(ProcessServicePort):
    """Adapter implementation for the v1 process REST API over `httpx`."""

    _USER_AGENT: Final[str] = "childproc/1.0 (Python/httpx)"
    _PROCESS_PATH: Final[str] = "/api/v1/process"
    _NOT_FOUND_STATUS_CODE: Final[int] = 404

    def __init__(
        self,
        base_url: str,
        api_key: str | None = None,
        request_timeout_seconds: float = 30.0,
        transport: httpx.BaseTransport | None = None,
    ):
        """Initialize process service adapter.

        Args:
            base_url: Base URL of the remote service.
            api_key: Optional API key sent in the `Authorization` header.
            request_timeout_seconds: HTTP request timeout in seconds.
            transport: Optional custom transport, used by tests.

        Returns:
            None: Initializer does not return a value.

        Raises:
            ValueError: Raised when required config values are invalid.
        """

        normalized_base_url = base_url.strip()
        if not normalized_base_url:
            raise ValueError("base_url must not be blank")
        if request_timeout_seconds <= 0:
            raise ValueError("request_timeout_seconds must be > 0")

        headers = {"User-Agent": self._USER_AGENT}
        if api_key is not None and api_key.strip():
            headers["Authorization"] = api_key.strip()

        self._base_url = normalized_base_url.rstrip("/")
        self._client = httpx.Client(
            base_url=self._base_url,
            headers=headers,
            timeout=request_timeout_seconds,
            transport=transport,
        )

    def close(self) -> None:
        """Close the underlying HTTP client."""

        self._client.close()

    def __enter__(self) -> HttpProcessServiceAdapter:
        return self

    def __exit__(self, *_exc_info: object) -> None:
        self.close()

    def service_label(self) -> str:
        """Return the remote base URL for diagnostics.

        Returns:
            str: Remote base URL.

        Raises:
            RuntimeError: This implementation does not raise runtime errors.
        """

        return self._base_url

    def service_submit(
        self,
        request: Mapping[str, Any],
        payload_path: Path | None,
        fields: Mapping[str, str],
    ) -> str:
        """Submit a new process as a multipart request.

        Args:
            request: Wire request document.
            payload_path: Optional archive uploaded as the `archive` part.
            fields: Additional form fields.

        Returns:
            str: Remote-assigned process identifier.

        Raises:
            RemoteCallFailedError: Raised for transport failures, HTTP errors or a malformed response.
        """

        request_part = ("request.json", json.dumps(dict(request), sort_keys=True).encode("utf-8"), "application/json")
        if payload_path is None:
            response = self._adapter_send(
                "POST",
                self._PROCESS_PATH,
                files={"request": request_part},
                data=dict(fields),
            )
        else:
            with payload_path.open("rb") as payload_stream:
                response = self._adapter_send(
                    "POST",
                    self._PROCESS_PATH,
                    files={
                        "archive": (payload_path.name, payload_stream, "application/octet-stream"),
                        "request": request_part,
                    },
                    data=dict(fields),
                )
        return self._adapter_extract_instance_id(response, context_label="submit")

    def service_fork(self, parent_instance_id: str, request: Mapping[str, Any], sync: bool) -> str:
        """Fork the parent process.

        Args:
            parent_instance_id: Process being forked.
            request: Wire request document.
            sync: Remote synchronous-fork flag.

        Returns:
            str: Remote-assigned process identifier.

        Raises:
            RemoteCallFailedError: Raised for transport failures, HTTP errors or a malformed response.
        """

        response = self._adapter_send(
            "POST",
            f"{self._PROCESS_PATH}/{self._adapter_quote(parent_instance_id)}/fork",
            params={"sync": "true" if sync else "false"},
            json=dict(request),
        )
        return self._adapter_extract_instance_id(response, context_label="fork")

    def service_get_status(self, instance_id: str) -> ProcessHandle:
        """Fetch the process entry and convert it to a handle.

        Args:
            instance_id: Process identifier.

        Returns:
            ProcessHandle: Status snapshot.

        Raises:
            RemoteCallFailedError: Raised for transport failures, HTTP errors or a malformed entry.
        """

        response = self._adapter_send("GET", f"{self._PROCESS_PATH}/{self._adapter_quote(instance_id)}")
        entry = self._adapter_parse_json(response, context_label="status")
        if not isinstance(entry, dict):
            raise RemoteCallFailedError("process entry must be a JSON object")
        return self._adapter_build_handle(entry, fallback_instance_id=instance_id)

    def service_list_children(self, instance_id: str, tags: Sequence[str] | None = None) -> list[str]:
        """List child process identifiers.

        Args:
            instance_id: Parent process identifier.
            tags: Optional tag filter.

        Returns:
            list[str]: Child process identifiers in remote order.

        Raises:
            RemoteCallFailedError: Raised for transport failures, HTTP errors or a malformed response.
        """

        query_parameters = [("tags", tag) for tag in (tags or ())]
        response = self._adapter_send(
            "GET",
            f"{self._PROCESS_PATH}/{self._adapter_quote(instance_id)}/subprocess",
            params=query_parameters,
        )
        entries = self._adapter_parse_json(response, context_label="list_children")
        if not isinstance(entries, list):
            raise RemoteCallFailedError("subprocess list must be a JSON array")

        child_ids: list[str] = []
        for entry in entries:
            if not isinstance(entry, dict) or not entry.get("instanceId"):
                raise RemoteCallFailedError("subprocess entry is missing instanceId")
            child_ids.append(str(entry["instanceId"]))
        return child_ids

    def service_kill(self, instance_id: str) -> None:
        """Request termination of one process."""

        self._adapter_send("DELETE", f"{self._PROCESS_PATH}/{self._adapter_quote(instance_id)}")

    def service_set_wait_condition(self, instance_id: str, condition: Mapping[str, Any]) -> None:
        """Register a wait condition on one process."""

        self._adapter_send(
            "POST",
            f"{self._PROCESS_PATH}/{self._adapter_quote(instance_id)}/wait",
            json=dict(condition),
        )

    def service_download_output_artifact(self, instance_id: str, name: str) -> bytes | None:
        """Download one attachment, treating remote not-found as absence.

        Args:
            instance_id: Process identifier.
            name: Attachment name.

        Returns:
            bytes | None: Attachment bytes, None when the remote returns 404.

        Raises:
            RemoteCallFailedError: Raised for transport failures and other HTTP errors.
        """

        try:
            response = self._adapter_send(
                "GET",
                f"{self._PROCESS_PATH}/{self._adapter_quote(instance_id)}/attachment/{self._adapter_quote(name)}",
            )
        except RemoteCallFailedError as error:
            if error.status_code == self._NOT_FOUND_STATUS_CODE:
                return None
            logger.error("process_service.download_failed", instance_id=instance_id, artifact=name)
            raise
        return bytes(response.content)

    def _adapter_send(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        """Execute one HTTP request and map failures to `RemoteCallFailedError`.

        Args:
            method: HTTP method.
            path: Path relative to the base URL.
            **kwargs: Extra `httpx.Client.request` arguments.

        Returns:
            httpx.Response: Successful response.

        Raises:
            RemoteCallFailedError: Raised for transport failures and HTTP status >= 400.
        """

        try:
            response = self._client.request(method, path, **kwargs)
        except httpx.TimeoutException as error:
            raise RemoteCallFailedError(f"{method} {path} timed out") from error
        except httpx.HTTPError as error:
            raise RemoteCallFailedError(f"{method} {path} failed: {error}") from error

        if response.status_code >= 400:
            raise RemoteCallFailedError(
                f"{method} {path} returned HTTP {response.status_code}",
                status_code=response.status_code,
            )
        return response

    def _adapter_parse_json(self, response: httpx.Response, context_label: str) -> Any:
        try:
            return response.json()
        except ValueError as error:
            raise RemoteCallFailedError(f"response is not valid JSON for context={context_label}") from error

    def _adapter_extract_instance_id(self, response: httpx.Response, context_label: str) -> str:
        """Extract the assigned identifier from a start or fork response.

        Args:
            response: Successful HTTP response.
            context_label: Context label for error messages.

        Returns:
            str: Process identifier.

        Raises:
            RemoteCallFailedError: Raised when the identifier is missing.
        """

        payload = self._adapter_parse_json(response, context_label=context_label)
        instance_id = payload.get("instanceId") if isinstance(payload, dict) else None
        if not instance_id:
            raise RemoteCallFailedError(f"{context_label} response missing instanceId")
        return str(instance_id)

    def _adapter_build_handle(self, entry: Mapping[str, Any], fallback_instance_id: str) -> ProcessHandle:
        try:
            status = domain_parse_process_status(entry.get("status"))
        except ValueError as error:
            raise RemoteCallFailedError(str(error)) from error

        meta = entry.get("meta")
        return ProcessHandle(
            instance_id=str(entry.get("instanceId") or fallback_instance_id),
            status=status,
            meta=dict(meta) if isinstance(meta, dict) else {},
        )

    @staticmethod
    def _adapter_quote(value: str) -> str:
        return quote(str(value), safe="")
