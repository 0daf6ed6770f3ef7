"""Shared fixtures and collaborator fakes for all tests."""

import os
import tempfile
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

# Keep test runs from writing into the working tree
os.environ.setdefault("LOG_FILE", os.path.join(tempfile.gettempdir(), "autoscaler-tests", "autoscaler.log"))

import pytest

from decision.collaborators import ResourceIdentity
from decision.cooldown_store import CooldownStore
from decision.scaling_policy import ScalingPolicy


class FakeCapacityClient:
    """In-memory CapacityReader + CapacityWriter."""

    def __init__(self, units=500, read_error=None, write_error=None, dry_run=False):
        self.units = units
        self.dry_run = dry_run
        self.read_error = read_error
        self.write_error = write_error
        self.read_calls = 0
        self.applied = []
        self.timeouts = []

    def current(self, resource, timeout=None):
        self.read_calls += 1
        self.timeouts.append(timeout)
        if self.read_error:
            raise self.read_error
        return self.units

    def apply(self, resource, new_units, timeout=None):
        self.timeouts.append(timeout)
        if self.write_error:
            raise self.write_error
        if self.dry_run:
            return False
        self.applied.append((resource.name, new_units))
        self.units = new_units
        return True


class FakeUtilizationReader:
    """UtilizationReader returning a fixed percentage."""

    def __init__(self, utilization=40.0, error=None, on_read=None):
        self.utilization = utilization
        self.error = error
        self.on_read = on_read
        self.calls = []

    def recent(self, resource, window=timedelta(minutes=5), timeout=None):
        self.calls.append((resource.name, window, timeout))
        if self.on_read:
            self.on_read()
        if self.error:
            raise self.error
        return self.utilization


class FakeClock:
    """Wall clock (utc datetimes) that only moves when told to."""

    def __init__(self, start=None):
        self.now = start or datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


class FakeMonotonic:
    """Monotonic clock in seconds that only moves when told to."""

    def __init__(self):
        self.value = 0.0

    def __call__(self):
        return self.value

    def sleep(self, seconds):
        self.value += seconds


def make_response(status_code=200, body=None, text=""):
    """Minimal stand-in for requests.Response."""
    res = MagicMock()
    res.status_code = status_code
    res.ok = 200 <= status_code < 400
    res.json.return_value = body if body is not None else {}
    res.text = text
    return res


@pytest.fixture
def resource():
    return ResourceIdentity(project="test-project", instance="test-instance")


@pytest.fixture
def policy():
    """step=100, [100, 1000], thresholds 30/50, 30 minute cooldown."""
    return ScalingPolicy(
        step=100,
        min_units=100,
        max_units=1000,
        scale_up_threshold=50.0,
        scale_down_threshold=30.0,
        cooldown_interval=timedelta(minutes=30),
    )


@pytest.fixture
def store():
    return CooldownStore()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def monotonic():
    return FakeMonotonic()
