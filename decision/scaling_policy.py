# decision/scaling_policy.py

import enum
from dataclasses import dataclass
from datetime import timedelta

from decision.errors import ConfigurationError


class ScalingAction(str, enum.Enum):
    SCALE_UP = "scale_up"
    SCALE_DOWN = "scale_down"
    HOLD_AT_MAX = "hold_at_max"
    HOLD_AT_MIN = "hold_at_min"
    HOLD_WITHIN_DEAD_ZONE = "hold_within_dead_zone"
    SKIP_DUE_TO_COOLDOWN = "skip_due_to_cooldown"

    @property
    def changes_capacity(self) -> bool:
        return self in (ScalingAction.SCALE_UP, ScalingAction.SCALE_DOWN)


@dataclass(frozen=True)
class ScalingPolicy:
    """
    Per-request scaling policy, validated on construction.

    Args:
        step: Processing units added/removed per scaling action
        min_units: Lower capacity bound
        max_units: Upper capacity bound
        scale_up_threshold: Scale up when utilization (%) is above this
        scale_down_threshold: Scale down when utilization (%) is below this
        cooldown_interval: Minimum time between two scale-downs of one resource

    Raises:
        ConfigurationError: If any bound or threshold is invalid
    """

    step: int
    min_units: int
    max_units: int
    scale_up_threshold: float
    scale_down_threshold: float
    cooldown_interval: timedelta

    def __post_init__(self):
        for name in ("step", "min_units", "max_units"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
                raise ConfigurationError(f"{name} must be a positive integer, got {value!r}")

        if self.min_units > self.max_units:
            raise ConfigurationError(
                f"min_units ({self.min_units}) must not exceed max_units ({self.max_units})"
            )

        for name in ("scale_up_threshold", "scale_down_threshold"):
            value = getattr(self, name)
            if not 0.0 <= value <= 100.0:
                raise ConfigurationError(f"{name} must be within [0, 100], got {value}")

        if self.scale_down_threshold >= self.scale_up_threshold:
            raise ConfigurationError(
                f"scale_down_threshold ({self.scale_down_threshold}) must be below "
                f"scale_up_threshold ({self.scale_up_threshold})"
            )

        if self.cooldown_interval < timedelta(0):
            raise ConfigurationError(f"cooldown_interval must not be negative, got {self.cooldown_interval}")


@dataclass(frozen=True)
class ScalingDecision:
    """Outcome of one decision. new_units is set only for SCALE_UP / SCALE_DOWN."""

    action: ScalingAction
    reason: str
    new_units: int | None = None

    def __post_init__(self):
        if self.action.changes_capacity and self.new_units is None:
            raise ValueError(f"{self.action.value} requires new_units")
        if not self.action.changes_capacity and self.new_units is not None:
            raise ValueError(f"{self.action.value} must not carry new_units")


def decide_action(current_units, utilization, policy: ScalingPolicy, since_last_scale_down=None):
    """
    Decide scaling action from current capacity, utilization and cooldown state.

    Only the scale-down path is rate limited; scale-up reacts immediately.
    Candidates are clamped to the policy bounds before being compared with
    the current capacity, so a saturated resource always yields a hold.

    Args:
        current_units: Current processing units of the resource
        utilization: Utilization percentage (0-100)
        policy: ScalingPolicy to apply
        since_last_scale_down: timedelta since the last recorded scale-down,
                               or None if none was recorded

    Returns:
        ScalingDecision
    """
    if utilization > policy.scale_up_threshold:
        candidate = min(current_units + policy.step, policy.max_units)
        if candidate == current_units:
            return ScalingDecision(
                ScalingAction.HOLD_AT_MAX,
                reason=f"Utilization {utilization:.2f}% > {policy.scale_up_threshold}% but already at max {policy.max_units} PUs",
            )
        return ScalingDecision(
            ScalingAction.SCALE_UP,
            new_units=candidate,
            reason=f"Utilization {utilization:.2f}% > {policy.scale_up_threshold}%: {current_units} -> {candidate} PUs",
        )

    if utilization < policy.scale_down_threshold:
        if since_last_scale_down is not None and since_last_scale_down < policy.cooldown_interval:
            remaining = int((policy.cooldown_interval - since_last_scale_down).total_seconds())
            return ScalingDecision(
                ScalingAction.SKIP_DUE_TO_COOLDOWN,
                reason=f"Cooldown active: {remaining}s remaining",
            )

        candidate = max(current_units - policy.step, policy.min_units)
        if candidate == current_units:
            return ScalingDecision(
                ScalingAction.HOLD_AT_MIN,
                reason=f"Utilization {utilization:.2f}% < {policy.scale_down_threshold}% but already at min {policy.min_units} PUs",
            )
        return ScalingDecision(
            ScalingAction.SCALE_DOWN,
            new_units=candidate,
            reason=f"Utilization {utilization:.2f}% < {policy.scale_down_threshold}%: {current_units} -> {candidate} PUs",
        )

    return ScalingDecision(
        ScalingAction.HOLD_WITHIN_DEAD_ZONE,
        reason=(
            f"Utilization {utilization:.2f}% within dead zone "
            f"[{policy.scale_down_threshold}%, {policy.scale_up_threshold}%]"
        ),
    )
