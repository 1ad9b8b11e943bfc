import requests
from typing import List, Optional

from describer.exceptions import BatchInProgress
from describer.models import (
    BatchItemIn,
    BatchRequest,
    BatchSnapshot,
    ResultRecord,
    ServiceStatus,
)


class ServiceClient:
    """Client for a running ``describer-server``."""

    def __init__(self, server_url: str, timeout: float = 30):
        if not (server_url.startswith("http://") or server_url.startswith("https://")):
            server_url = "http://" + server_url
        self.server_url = server_url.rstrip("/")
        self.timeout = timeout

    def start_batch(self, items: List[BatchItemIn]) -> BatchSnapshot:
        """
        POST the items to /batch.
        Returns the snapshot right after the run was accepted, with status:
          - OK: the run started
          - BUSY: another batch action is still running
          - SERVICE_UNAVAILABLE: the server could not be reached
        """
        submission = BatchRequest(items=items)
        return self._snapshot("post", "/batch", json=submission.model_dump())

    def get_batch(self) -> BatchSnapshot:
        return self._snapshot("get", "/batch")

    def retry_failed(self) -> BatchSnapshot:
        return self._snapshot("post", "/batch/retry-failed")

    def retry_one(self, item_id: str) -> Optional[ResultRecord]:
        """
        Re-run one item synchronously and return its record.

        Returns None if the server does not know ``item_id``; raises
        BatchInProgress if another batch action is running.
        """
        resp = requests.post(f"{self.server_url}/batch/retry/{item_id}", timeout=self.timeout)
        if resp.status_code == 404:
            return None
        if resp.status_code == 409:
            raise BatchInProgress(resp.json().get("detail", "A batch action is already running"))
        resp.raise_for_status()
        return ResultRecord(**resp.json())

    def cancel(self) -> bool:
        """Ask the running batch to stop; False if nothing was running."""
        resp = requests.post(f"{self.server_url}/batch/cancel", timeout=self.timeout)
        resp.raise_for_status()
        return bool(resp.json().get("cancelled"))

    def reset_batch(self) -> BatchSnapshot:
        return self._snapshot("delete", "/batch")

    def export_csv(self) -> Optional[str]:
        """CSV export text, or None if there are no completed results yet."""
        resp = requests.get(f"{self.server_url}/batch/export/csv", timeout=self.timeout)
        if resp.status_code == 404:
            return None
        resp.raise_for_status()
        return resp.content.decode("utf-8")

    def _snapshot(self, method: str, path: str, **kwargs) -> BatchSnapshot:
        url = f"{self.server_url}{path}"
        try:
            resp = requests.request(method, url, timeout=self.timeout, **kwargs)
        except requests.ConnectionError:
            return BatchSnapshot(status=ServiceStatus.SERVICE_UNAVAILABLE)

        if resp.status_code == 409:
            return BatchSnapshot(status=ServiceStatus.BUSY, running=True)

        resp.raise_for_status()
        return BatchSnapshot(**resp.json())
