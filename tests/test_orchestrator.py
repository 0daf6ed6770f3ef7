"""
Tests for the per-request autoscaling sequence, using collaborator fakes.
"""

from datetime import timedelta

import pytest

from backend.orchestrator import Deadline, run_autoscale
from decision.errors import CollaboratorError, NoDataError
from decision.scaling_policy import ScalingAction

from conftest import FakeCapacityClient, FakeUtilizationReader


def run(resource, policy, capacity, utilization, store, clock, **kwargs):
    return run_autoscale(
        resource,
        policy,
        capacity_reader=capacity,
        utilization_reader=utilization,
        capacity_writer=capacity,
        cooldown_store=store,
        clock=clock,
        **kwargs,
    )


class TestRunAutoscale:
    def test_scale_up_applies_without_recording_cooldown(self, resource, policy, store, clock):
        capacity = FakeCapacityClient(units=500)

        outcome = run(resource, policy, capacity, FakeUtilizationReader(80.0), store, clock)

        assert outcome.decision.action is ScalingAction.SCALE_UP
        assert outcome.current_units == 500
        assert outcome.utilization == 80.0
        assert capacity.applied == [(resource.name, 600)]
        assert store.last_scale_down(resource.name) is None

    def test_scale_down_records_cooldown_after_write(self, resource, policy, store, clock):
        capacity = FakeCapacityClient(units=300)

        outcome = run(resource, policy, capacity, FakeUtilizationReader(10.0), store, clock)

        assert outcome.decision.action is ScalingAction.SCALE_DOWN
        assert capacity.applied == [(resource.name, 200)]
        assert store.last_scale_down(resource.name) == clock()
        assert outcome.applied

    def test_dry_run_scale_down_does_not_start_cooldown(self, resource, policy, store, clock):
        capacity = FakeCapacityClient(units=300, dry_run=True)
        utilization = FakeUtilizationReader(10.0)

        first = run(resource, policy, capacity, utilization, store, clock)
        clock.advance(minutes=5)
        second = run(resource, policy, capacity, utilization, store, clock)

        assert first.decision.action is ScalingAction.SCALE_DOWN
        assert not first.applied
        assert second.decision.action is ScalingAction.SCALE_DOWN
        assert store.last_scale_down(resource.name) is None

    def test_second_scale_down_within_interval_is_skipped(self, resource, policy, store, clock):
        capacity = FakeCapacityClient(units=300)
        utilization = FakeUtilizationReader(10.0)

        run(resource, policy, capacity, utilization, store, clock)
        clock.advance(minutes=5)
        outcome = run(resource, policy, capacity, utilization, store, clock)

        assert outcome.decision.action is ScalingAction.SKIP_DUE_TO_COOLDOWN
        assert capacity.applied == [(resource.name, 200)]

    def test_scale_down_resumes_after_interval(self, resource, policy, store, clock):
        capacity = FakeCapacityClient(units=300)
        utilization = FakeUtilizationReader(10.0)

        run(resource, policy, capacity, utilization, store, clock)
        clock.advance(minutes=30)
        outcome = run(resource, policy, capacity, utilization, store, clock)

        assert outcome.decision.action is ScalingAction.SCALE_DOWN
        assert capacity.applied == [(resource.name, 200), (resource.name, 100)]

    @pytest.mark.parametrize(
        "units,utilization,action",
        [
            (1000, 80.0, ScalingAction.HOLD_AT_MAX),
            (100, 10.0, ScalingAction.HOLD_AT_MIN),
            (400, 40.0, ScalingAction.HOLD_WITHIN_DEAD_ZONE),
        ],
    )
    def test_holds_do_not_write(self, resource, policy, store, clock, units, utilization, action):
        capacity = FakeCapacityClient(units=units)

        outcome = run(resource, policy, capacity, FakeUtilizationReader(utilization), store, clock)

        assert outcome.decision.action is action
        assert capacity.applied == []
        assert len(store) == 0

    def test_write_failure_leaves_store_untouched(self, resource, policy, store, clock):
        error = CollaboratorError(CollaboratorError.WRITE_CAPACITY, "boom", reason=CollaboratorError.APPLY_FAILED)
        capacity = FakeCapacityClient(units=300, write_error=error)

        with pytest.raises(CollaboratorError) as exc_info:
            run(resource, policy, capacity, FakeUtilizationReader(10.0), store, clock)

        assert exc_info.value.is_write
        assert store.last_scale_down(resource.name) is None

    def test_capacity_read_failure_stops_before_utilization(self, resource, policy, store, clock):
        error = CollaboratorError(CollaboratorError.READ_CAPACITY, "gone", reason=CollaboratorError.NOT_FOUND)
        capacity = FakeCapacityClient(read_error=error)
        utilization = FakeUtilizationReader(10.0)

        with pytest.raises(CollaboratorError) as exc_info:
            run(resource, policy, capacity, utilization, store, clock)

        assert exc_info.value.stage == CollaboratorError.READ_CAPACITY
        assert not exc_info.value.is_write
        assert utilization.calls == []
        assert capacity.applied == []

    def test_no_data_is_an_error_not_zero(self, resource, policy, store, clock):
        capacity = FakeCapacityClient(units=300)
        utilization = FakeUtilizationReader(error=NoDataError("No CPU usage data found for the last 5 minutes"))

        with pytest.raises(NoDataError):
            run(resource, policy, capacity, utilization, store, clock)

        assert capacity.applied == []
        assert len(store) == 0

    def test_utilization_is_read_over_five_minutes(self, resource, policy, store, clock):
        utilization = FakeUtilizationReader(40.0)

        run(resource, policy, FakeCapacityClient(units=400), utilization, store, clock)

        assert utilization.calls[0][1] == timedelta(minutes=5)

    def test_collaborators_receive_remaining_deadline(self, resource, policy, store, clock, monotonic):
        capacity = FakeCapacityClient(units=500)
        utilization = FakeUtilizationReader(80.0, on_read=lambda: monotonic.sleep(15))

        run(resource, policy, capacity, utilization, store, clock, deadline_seconds=60, monotonic=monotonic)

        assert capacity.timeouts == [60, 45]
        assert utilization.calls[0][2] == 60

    def test_exhausted_deadline_aborts_before_write(self, resource, policy, store, clock, monotonic):
        capacity = FakeCapacityClient(units=300)
        utilization = FakeUtilizationReader(10.0, on_read=lambda: monotonic.sleep(61))

        with pytest.raises(CollaboratorError) as exc_info:
            run(resource, policy, capacity, utilization, store, clock, deadline_seconds=60, monotonic=monotonic)

        assert exc_info.value.stage == CollaboratorError.WRITE_CAPACITY
        assert exc_info.value.timed_out
        assert capacity.applied == []
        assert len(store) == 0


class TestDeadline:
    def test_remaining_counts_down(self, monotonic):
        deadline = Deadline(30, monotonic=monotonic)
        monotonic.sleep(10)

        assert deadline.remaining(CollaboratorError.READ_CAPACITY) == 20

    def test_expired_raises_timeout(self, monotonic):
        deadline = Deadline(30, monotonic=monotonic)
        monotonic.sleep(30)

        with pytest.raises(CollaboratorError) as exc_info:
            deadline.remaining(CollaboratorError.READ_UTILIZATION)

        assert exc_info.value.reason == CollaboratorError.TIMEOUT
        assert exc_info.value.stage == CollaboratorError.READ_UTILIZATION
