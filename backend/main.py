import os
import logging
import traceback
import datetime
from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel, ConfigDict, Field

from backend.config import (
    DEFAULT_SCALE_DOWN_THRESHOLD,
    DEFAULT_SCALE_UP_THRESHOLD,
    DRY_RUN,
    LOG_FILE,
    get_resize_interval,
)
from backend.orchestrator import run_autoscale
from data.fetch_utilization import CloudMonitoringUtilizationReader
from decision.collaborators import ResourceIdentity
from decision.cooldown_store import CooldownStore
from decision.errors import CollaboratorError, ConfigurationError
from decision.scaling_policy import ScalingAction, ScalingPolicy
from gcp.spanner_controller import SpannerCapacityClient

# Setup logging
if os.path.dirname(LOG_FILE):
    os.makedirs(os.path.dirname(LOG_FILE), exist_ok=True)
logging.basicConfig(
    filename=LOG_FILE,
    level=logging.INFO,
    format="%(asctime)s | %(levelname)s | %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S"
)

app = FastAPI(title="Spanner Processing Unit Autoscaler")

# Last scale-down per instance, shared by every request this process serves
cooldown_store = CooldownStore()

RESPONSE_MESSAGES = {
    ScalingAction.SCALE_UP: "Scaled up to {new_units} PUs.",
    ScalingAction.HOLD_AT_MAX: "CPU usage is high, but already at max PUs.",
    ScalingAction.SCALE_DOWN: "Scaled down to {new_units} PUs.",
    ScalingAction.HOLD_AT_MIN: "CPU usage is low, but already at min PUs.",
    ScalingAction.SKIP_DUE_TO_COOLDOWN: "Skipping scale down due to interval.",
    ScalingAction.HOLD_WITHIN_DEAD_ZONE: "CPU usage is within the normal range.",
}

# Scale actions the writer did not carry out (dry run)
DRY_RUN_MESSAGES = {
    ScalingAction.SCALE_UP: "[DRY RUN] Would scale up to {new_units} PUs.",
    ScalingAction.SCALE_DOWN: "[DRY RUN] Would scale down to {new_units} PUs.",
}

FAILURE_MESSAGES = {
    CollaboratorError.READ_CAPACITY: "Failed to get current processing units",
    CollaboratorError.READ_UTILIZATION: "Failed to get Spanner CPU usage",
    CollaboratorError.WRITE_CAPACITY: "Failed to update processing units",
}


class AutoscaleRequest(BaseModel):
    """Autoscaler configuration payload. Accepts camelCase or snake_case keys."""

    model_config = ConfigDict(populate_by_name=True)

    project: str | None = None
    instance: str | None = None
    pu_step: int | None = Field(None, alias="puStep")
    pu_min: int | None = Field(None, alias="puMin")
    pu_max: int | None = Field(None, alias="puMax")
    scale_up_threshold: float | None = Field(None, alias="scaleUpThreshold")
    scale_down_threshold: float | None = Field(None, alias="scaleDownThreshold")


def build_policy(payload: AutoscaleRequest, cooldown_interval: datetime.timedelta):
    """
    Validate the payload into the target instance and its scaling policy.

    Returns:
        (ResourceIdentity, ScalingPolicy)

    Raises:
        ConfigurationError: If a required field is missing or a bound is invalid
    """
    required = (payload.project, payload.instance, payload.pu_step, payload.pu_min, payload.pu_max)
    if any(value is None or value == "" for value in required):
        raise ConfigurationError("Missing required fields in JSON.")

    scale_up = payload.scale_up_threshold
    if scale_up is None:
        scale_up = DEFAULT_SCALE_UP_THRESHOLD
    scale_down = payload.scale_down_threshold
    if scale_down is None:
        scale_down = DEFAULT_SCALE_DOWN_THRESHOLD

    policy = ScalingPolicy(
        step=payload.pu_step,
        min_units=payload.pu_min,
        max_units=payload.pu_max,
        scale_up_threshold=scale_up,
        scale_down_threshold=scale_down,
        cooldown_interval=cooldown_interval,
    )
    return ResourceIdentity(project=payload.project, instance=payload.instance), policy


def render_decision(decision, applied: bool = True) -> str:
    messages = RESPONSE_MESSAGES
    if decision.action.changes_capacity and not applied:
        messages = DRY_RUN_MESSAGES
    return messages[decision.action].format(new_units=decision.new_units)


def get_cooldown_store() -> CooldownStore:
    return cooldown_store


def get_capacity_client() -> SpannerCapacityClient:
    return SpannerCapacityClient()


def get_utilization_reader() -> CloudMonitoringUtilizationReader:
    return CloudMonitoringUtilizationReader()


@app.exception_handler(RequestValidationError)
def invalid_body_handler(request: Request, exc: RequestValidationError):
    logging.error(f"Invalid request body: {exc.errors()}")
    return PlainTextResponse("Invalid JSON request body.", status_code=400)


@app.post("/autoscale", response_class=PlainTextResponse)
def autoscale(
    payload: AutoscaleRequest,
    capacity_client=Depends(get_capacity_client),
    utilization_reader=Depends(get_utilization_reader),
    store: CooldownStore = Depends(get_cooldown_store),
):
    """
    Main autoscaling endpoint.
    """
    try:
        resource, policy = build_policy(payload, get_resize_interval())
    except ConfigurationError as e:
        logging.error(f"Validation error: {e}")
        return PlainTextResponse(str(e), status_code=400)

    logging.info(
        f"Request received: project={resource.project}, instance={resource.instance}, "
        f"pu_step={policy.step}, pu_min={policy.min_units}, pu_max={policy.max_units}, "
        f"scale_up_threshold={policy.scale_up_threshold:.2f}, "
        f"scale_down_threshold={policy.scale_down_threshold:.2f}"
    )

    try:
        outcome = run_autoscale(
            resource,
            policy,
            capacity_reader=capacity_client,
            utilization_reader=utilization_reader,
            capacity_writer=capacity_client,
            cooldown_store=store,
        )
    except CollaboratorError as e:
        message = f"{FAILURE_MESSAGES[e.stage]}: {e}"
        if e.is_write:
            # The update may have partially applied on the instance
            logging.error(f"{message} (write stage, instance state unknown)")
        else:
            logging.error(message)
        return PlainTextResponse(message, status_code=504 if e.timed_out else 500)
    except Exception as e:
        logging.error(f"Autoscaling error: {e}")
        logging.error(traceback.format_exc())
        return PlainTextResponse(f"Internal error: {e}", status_code=500)

    decision = outcome.decision

    # Structured log entry
    timestamp = datetime.datetime.now().strftime("%Y-%m-%d %H:%M:%S")
    log_entry = (
        f"timestamp={timestamp} | "
        f"instance={resource.name} | "
        f"current_pu={outcome.current_units} | "
        f"cpu={outcome.utilization:.2f} | "
        f"decision={decision.action.value} | "
        f"new_pu={decision.new_units} | "
        f"applied={outcome.applied} | "
        f"dry_run={DRY_RUN} | "
        f"reason={decision.reason}"
    )
    logging.info(log_entry)

    return render_decision(decision, applied=outcome.applied)


@app.get("/health")
def health():
    return {"status": "ok"}
