# gcp/spanner_controller.py

import time
import logging

from backend.config import DRY_RUN, HTTP_TIMEOUT_SECONDS, OPERATION_POLL_SECONDS
from decision.collaborators import ResourceIdentity
from decision.errors import CollaboratorError
from gcp.api_client import get_authorized_session, request_before_deadline
from gcp.gcp_config import SPANNER_API


class SpannerCapacityClient:
    """
    Reads and updates the processing units of a Spanner instance through the
    Instance Admin REST API.

    Implements both CapacityReader.current and CapacityWriter.apply.
    """

    def __init__(
        self,
        session=None,
        dry_run: bool = DRY_RUN,
        http_timeout: float = HTTP_TIMEOUT_SECONDS,
        poll_seconds: float = OPERATION_POLL_SECONDS,
        sleep=time.sleep,
        monotonic=time.monotonic,
    ):
        self._session = session
        self.dry_run = dry_run
        self.http_timeout = http_timeout
        self.poll_seconds = poll_seconds
        self._sleep = sleep
        self._monotonic = monotonic

    @property
    def session(self):
        if self._session is None:
            self._session = get_authorized_session()
        return self._session

    def current(self, resource: ResourceIdentity, timeout: float | None = None) -> int:
        """Get current processing units of the instance."""
        stage = CollaboratorError.READ_CAPACITY
        deadline = self._deadline(timeout)

        res = self._request(stage, "GET", f"{SPANNER_API}/{resource.name}", deadline)
        if res.status_code == 404:
            raise CollaboratorError(stage, f"Instance {resource.name} not found", reason=CollaboratorError.NOT_FOUND)
        if not res.ok:
            raise CollaboratorError(stage, f"Failed to get instance {resource.name}: HTTP {res.status_code} {res.text}")

        processing_units = res.json().get("processingUnits")
        if processing_units is None:
            raise CollaboratorError(stage, f"Instance {resource.name} reported no processingUnits")
        return int(processing_units)

    def apply(self, resource: ResourceIdentity, new_units: int, timeout: float | None = None) -> bool:
        """
        Update the instance to new_units processing units (PATCH -> wait on operation).

        Returns only once the long-running update operation has finished.
        In dry_run mode, this only logs what would be done and returns False.
        """
        stage = CollaboratorError.WRITE_CAPACITY

        if self.dry_run:
            logging.info(f"[DRY RUN] Would update {resource.name} to {new_units} PUs")
            return False

        deadline = self._deadline(timeout)
        logging.info(f"Updating {resource.name} to {new_units} PUs")

        body = {
            "instance": {"name": resource.name, "processingUnits": new_units},
            "fieldMask": "processingUnits",
        }
        res = self._request(stage, "PATCH", f"{SPANNER_API}/{resource.name}", deadline, json=body)
        if res.status_code == 404:
            raise CollaboratorError(stage, f"Instance {resource.name} not found", reason=CollaboratorError.NOT_FOUND)
        if not res.ok:
            raise CollaboratorError(
                stage,
                f"Failed to start update instance operation: HTTP {res.status_code} {res.text}",
                reason=CollaboratorError.APPLY_FAILED,
            )

        self._wait_for_operation(res.json(), deadline)
        logging.info(f"Instance {resource.name} updated to {new_units} PUs")
        return True

    def _wait_for_operation(self, operation: dict, deadline: float | None) -> None:
        stage = CollaboratorError.WRITE_CAPACITY

        while not operation.get("done"):
            wait = self.poll_seconds
            if deadline is not None:
                remaining = deadline - self._monotonic()
                if remaining <= 0:
                    raise CollaboratorError(
                        stage,
                        f"Timed out waiting for operation {operation.get('name')}",
                        reason=CollaboratorError.TIMEOUT,
                    )
                wait = min(wait, remaining)
            self._sleep(wait)

            res = self._request(stage, "GET", f"{SPANNER_API}/{operation['name']}", deadline)
            if not res.ok:
                raise CollaboratorError(
                    stage,
                    f"Failed to poll operation {operation['name']}: HTTP {res.status_code} {res.text}",
                    reason=CollaboratorError.APPLY_FAILED,
                )
            operation = res.json()

        if "error" in operation:
            message = operation["error"].get("message", operation["error"])
            raise CollaboratorError(
                stage,
                f"Update instance operation failed: {message}",
                reason=CollaboratorError.APPLY_FAILED,
            )

    def _deadline(self, timeout: float | None) -> float | None:
        if timeout is None:
            return None
        return self._monotonic() + timeout

    def _request(self, stage: str, method: str, url: str, deadline: float | None, **kwargs):
        return request_before_deadline(
            self.session, stage, method, url, deadline, self.http_timeout, self._monotonic, **kwargs
        )
