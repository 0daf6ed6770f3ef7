# data/fetch_utilization.py

import time
import logging
from datetime import datetime, timezone
import pandas as pd

from backend.config import HTTP_TIMEOUT_SECONDS
from decision.collaborators import ResourceIdentity, UTILIZATION_WINDOW
from decision.errors import CollaboratorError, NoDataError
from gcp.api_client import get_authorized_session, request_before_deadline
from gcp.gcp_config import CPU_UTILIZATION_METRIC, MONITORING_API


def _rfc3339(ts: datetime) -> str:
    return ts.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def points_to_frame(points):
    """
    Convert Cloud Monitoring points into a time-ordered DataFrame.

    Returns:
        DataFrame with columns ['timestamp', 'utilization'] (ratio 0-1),
        without points that carry no double value
    """
    df = pd.DataFrame(
        {
            "timestamp": [p.get("interval", {}).get("endTime") for p in points],
            "utilization": [p.get("value", {}).get("doubleValue") for p in points],
        }
    )
    df.dropna(inplace=True)
    if df.empty:
        return df

    df["timestamp"] = pd.to_datetime(df["timestamp"], utc=True)
    df["utilization"] = df["utilization"].astype(float)
    df.sort_values("timestamp", inplace=True)
    return df


class CloudMonitoringUtilizationReader:
    """Reads instance CPU utilization from the Cloud Monitoring timeSeries API."""

    def __init__(self, session=None, http_timeout: float = HTTP_TIMEOUT_SECONDS, clock=None, monotonic=time.monotonic):
        self._session = session
        self.http_timeout = http_timeout
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._monotonic = monotonic

    @property
    def session(self):
        if self._session is None:
            self._session = get_authorized_session()
        return self._session

    def recent(self, resource: ResourceIdentity, window=UTILIZATION_WINDOW, timeout: float | None = None) -> float:
        """
        Most recent CPU utilization (%) of the instance within the trailing window.

        Raises:
            NoDataError: If no series in the window holds a data point
            CollaboratorError: If the API call fails
        """
        stage = CollaboratorError.READ_UTILIZATION
        deadline = None if timeout is None else self._monotonic() + timeout

        end = self._clock()
        start = end - window
        url = f"{MONITORING_API}/projects/{resource.project}/timeSeries"
        params = {
            "filter": f'metric.type="{CPU_UTILIZATION_METRIC}" resource.labels.instance_id="{resource.instance}"',
            "interval.startTime": _rfc3339(start),
            "interval.endTime": _rfc3339(end),
            "view": "FULL",
        }

        while True:
            res = request_before_deadline(
                self.session, stage, "GET", url, deadline, self.http_timeout, self._monotonic, params=params
            )
            if res.status_code == 404:
                raise CollaboratorError(
                    stage, f"Project {resource.project} not found", reason=CollaboratorError.NOT_FOUND
                )
            if not res.ok:
                raise CollaboratorError(stage, f"Could not read time series value: HTTP {res.status_code} {res.text}")

            body = res.json()
            for series in body.get("timeSeries", []):
                df = points_to_frame(series.get("points", []))
                if not df.empty:
                    latest = df.iloc[-1]
                    logging.info(f"Latest CPU sample for {resource.name} at {latest['timestamp']}: {latest['utilization']:.4f}")
                    return float(latest["utilization"]) * 100

            page_token = body.get("nextPageToken")
            if not page_token:
                break
            params = {**params, "pageToken": page_token}

        minutes = int(window.total_seconds() // 60)
        logging.warning(f"No CPU usage data for {resource.name} in the last {minutes} minutes")
        raise NoDataError(f"No CPU usage data found for the last {minutes} minutes")
