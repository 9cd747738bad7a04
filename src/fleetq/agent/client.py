"""HTTP client for the coordinator API, used by worker agents."""

from __future__ import annotations

from typing import Any, Optional

import httpx

from fleetq.logging import get_logger

logger = get_logger(__name__)

DEFAULT_TIMEOUT_SECONDS = 10.0
DEFAULT_MAX_RETRIES = 2


class CoordinatorError(Exception):
    """Non-2xx answer (or transport failure) from the coordinator."""

    def __init__(self, message: str, *, status_code: int = 0, payload: Optional[dict] = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.payload = payload or {}

    @property
    def code(self) -> Optional[str]:
        return self.payload.get("code")


class CoordinatorClient:
    """
    Thin wrapper over the coordinator endpoints.

    Pass `client` to reuse an existing httpx.Client (a FastAPI TestClient works);
    otherwise one is built for `base_url` with retrying transport.
    """

    def __init__(
        self,
        base_url: str,
        auth_secret: str,
        *,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        max_retries: int = DEFAULT_MAX_RETRIES,
        client: Optional[httpx.Client] = None,
    ) -> None:
        self._headers = {"Authorization": f"Bearer {auth_secret}"}
        self._owns_client = client is None
        if client is None:
            client = httpx.Client(
                base_url=base_url,
                timeout=httpx.Timeout(timeout_seconds, connect=5.0),
                transport=httpx.HTTPTransport(retries=max_retries),
            )
        self._client = client

    def register(self) -> str:
        return self._request("POST", "/workers")["worker_id"]

    def poll(self, worker_id: str) -> Optional[dict[str, Any]]:
        """Returns the dispatched task, or None when the queue is empty."""
        return self._request("GET", f"/workers/{worker_id}/poll").get("task")

    def start(self, worker_id: str, task_id: str) -> dict[str, Any]:
        return self._request("POST", f"/workers/{worker_id}/tasks/{task_id}/start")

    def finish(self, worker_id: str, task_id: str, output: str) -> dict[str, Any]:
        return self._request("POST", f"/workers/{worker_id}/tasks/{task_id}/finish", json={"output": output})

    def failure(self, worker_id: str, task_id: str, error: str, details: str = "") -> dict[str, Any]:
        return self._request(
            "POST",
            f"/workers/{worker_id}/tasks/{task_id}/failure",
            json={"error": error, "details": details},
        )

    def snapshot(self, worker_id: str) -> dict[str, Any]:
        return self._request("GET", f"/workers/{worker_id}/sync")

    def sync(
        self,
        worker_id: str,
        queued: list[dict[str, Any]],
        active: list[dict[str, Any]],
        local_queue_state: Optional[dict[str, Any]] = None,
    ) -> dict[str, Any]:
        body: dict[str, Any] = {"queued_tasks": queued, "active_tasks": active}
        if local_queue_state is not None:
            body["local_queue_state"] = local_queue_state
        return self._request("POST", f"/workers/{worker_id}/sync", json=body)

    def _request(self, method: str, path: str, json: Optional[dict[str, Any]] = None) -> dict[str, Any]:
        try:
            response = self._client.request(method, path, json=json, headers=self._headers)
        except httpx.HTTPError as exc:
            logger.warning("%s %s failed: %s", method, path, exc)
            raise CoordinatorError(f"{method} {path} failed: {exc}") from exc

        if not response.is_success:
            try:
                payload = response.json()
            except ValueError:
                payload = {"error": response.text}
            raise CoordinatorError(
                f"{method} {path} -> HTTP {response.status_code}: {payload.get('error', '')}",
                status_code=response.status_code,
                payload=payload,
            )
        return response.json()

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> CoordinatorClient:
        return self

    def __exit__(self, *_: object) -> None:
        self.close()
