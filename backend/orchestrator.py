# backend/orchestrator.py

import time
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from backend.config import REQUEST_DEADLINE_SECONDS, UTILIZATION_WINDOW_SECONDS
from decision.collaborators import CapacityReader, CapacityWriter, ResourceIdentity, UtilizationReader
from decision.cooldown_store import CooldownStore
from decision.errors import CollaboratorError
from decision.scaling_policy import ScalingAction, ScalingDecision, ScalingPolicy, decide_action


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Deadline:
    """Per-request time budget shared by every collaborator call."""

    def __init__(self, seconds: float, monotonic=time.monotonic):
        self._monotonic = monotonic
        self._expires_at = monotonic() + seconds

    def remaining(self, stage: str) -> float:
        """Seconds left for the call made at stage. Raises a timeout CollaboratorError when none are."""
        left = self._expires_at - self._monotonic()
        if left <= 0:
            raise CollaboratorError(stage, f"Request deadline exceeded before {stage}", reason=CollaboratorError.TIMEOUT)
        return left


@dataclass(frozen=True)
class AutoscaleOutcome:
    resource: ResourceIdentity
    current_units: int
    utilization: float
    decision: ScalingDecision
    applied: bool = False


def run_autoscale(
    resource: ResourceIdentity,
    policy: ScalingPolicy,
    capacity_reader: CapacityReader,
    utilization_reader: UtilizationReader,
    capacity_writer: CapacityWriter,
    cooldown_store: CooldownStore,
    deadline_seconds: float = REQUEST_DEADLINE_SECONDS,
    clock=utc_now,
    monotonic=time.monotonic,
) -> AutoscaleOutcome:
    """
    Run one autoscaling cycle for a single instance.

    Steps: read capacity -> read utilization -> check cooldown -> decide ->
    apply the new capacity. The cooldown store is updated only after a
    scale-down has actually been written, never for a dry run.

    Raises:
        CollaboratorError: If a read or the write fails or the deadline runs out.
                           The cooldown store is left untouched.
    """
    deadline = Deadline(deadline_seconds, monotonic=monotonic)

    # Step 1: Current processing units
    current_units = capacity_reader.current(resource, timeout=deadline.remaining(CollaboratorError.READ_CAPACITY))
    logging.info(f"Current Processing Units of {resource.name}: {current_units}")

    # Step 2: Utilization over the trailing window
    utilization = utilization_reader.recent(
        resource,
        window=timedelta(seconds=UTILIZATION_WINDOW_SECONDS),
        timeout=deadline.remaining(CollaboratorError.READ_UTILIZATION),
    )
    logging.info(f"Current CPU Usage of {resource.name}: {utilization:.2f}%")

    # Step 3 & 4: Cooldown state and decision
    since_last_scale_down = cooldown_store.time_since_last_scale_down(resource.name, clock())
    decision = decide_action(
        current_units=current_units,
        utilization=utilization,
        policy=policy,
        since_last_scale_down=since_last_scale_down,
    )
    logging.info(f"Decision for {resource.name}: {decision.action.value} - {decision.reason}")

    # Step 5: Apply (a dry-run writer reports nothing written)
    applied = False
    if decision.action.changes_capacity:
        applied = capacity_writer.apply(
            resource,
            decision.new_units,
            timeout=deadline.remaining(CollaboratorError.WRITE_CAPACITY),
        )
        if applied and decision.action is ScalingAction.SCALE_DOWN:
            cooldown_store.record_scale_down(resource.name, clock())

    return AutoscaleOutcome(
        resource=resource,
        current_units=current_units,
        utilization=utilization,
        decision=decision,
        applied=applied,
    )
