# decision/errors.py


class AutoscalerError(Exception):
    """Base class for every error raised by the autoscaler."""


class ConfigurationError(AutoscalerError, ValueError):
    """Missing or invalid configuration. Raised before any API call is made."""


class CollaboratorError(AutoscalerError):
    """
    A capacity read, utilization read or capacity write failed.

    Args:
        stage: One of READ_CAPACITY, READ_UTILIZATION, WRITE_CAPACITY
        message: Human-readable cause
        reason: One of NOT_FOUND, UNAVAILABLE, NO_DATA, APPLY_FAILED, TIMEOUT
    """

    READ_CAPACITY = "read_capacity"
    READ_UTILIZATION = "read_utilization"
    WRITE_CAPACITY = "write_capacity"

    NOT_FOUND = "not_found"
    UNAVAILABLE = "unavailable"
    NO_DATA = "no_data"
    APPLY_FAILED = "apply_failed"
    TIMEOUT = "timeout"

    def __init__(self, stage: str, message: str, reason: str = UNAVAILABLE):
        super().__init__(message)
        self.stage = stage
        self.reason = reason

    @property
    def is_write(self) -> bool:
        # A failed write may have partially applied on the target resource
        return self.stage == self.WRITE_CAPACITY

    @property
    def timed_out(self) -> bool:
        return self.reason == self.TIMEOUT


class NoDataError(CollaboratorError):
    """The utilization window contained zero data points."""

    def __init__(self, message: str):
        super().__init__(CollaboratorError.READ_UTILIZATION, message, reason=CollaboratorError.NO_DATA)
