"""
Exception hierarchy for the cloud sync engine.

Every failure raised by the engine is scoped to a single task run or a
single signal queue item; none of these are meant to take the process down.
"""


class CloudSyncError(Exception):
    """Base class for all cloud sync errors."""

    pass


class DuplicateTaskNameError(CloudSyncError):
    """Raised when a task is created with a name that already exists."""

    def __init__(self, task_name: str):
        self.task_name = task_name
        super().__init__(f"Cloud sync task name '{task_name}' already exists")


class InvalidPeriodError(CloudSyncError, ValueError):
    """Raised when a period type/value pair cannot be parsed."""

    def __init__(self, period_type: str, period: str, reason: str):
        self.period_type = period_type
        self.period = period
        super().__init__(
            f"Invalid period {period!r} for period type {period_type!r}: {reason}"
        )


class UpstreamError(CloudSyncError):
    """Raised when a collaborating service fails a read or write."""

    pass


class InventoryError(UpstreamError):
    """Raised when the inventory service rejects or fails a request."""

    def __init__(self, operation: str, message: str, status_code: int | None = None):
        self.operation = operation
        self.status_code = status_code
        detail = f" (HTTP {status_code})" if status_code is not None else ""
        super().__init__(f"Inventory operation '{operation}' failed{detail}: {message}")


class CloudProviderError(UpstreamError):
    """Raised when the cloud provider cannot list regions or instances."""

    pass


class FieldCoercionError(CloudSyncError):
    """Raised when a record field is missing or has an unexpected type."""

    def __init__(self, field: str, value: object, expected: str):
        self.field = field
        self.value = value
        self.expected = expected
        super().__init__(
            f"Field '{field}' expected {expected}, got {type(value).__name__}: {value!r}"
        )


class SignalDecodeError(CloudSyncError):
    """Raised when a signal queue message is empty or malformed."""

    def __init__(self, raw: object, reason: str):
        self.raw = raw
        super().__init__(f"Cannot decode signal message {raw!r}: {reason}")
