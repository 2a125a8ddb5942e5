"""Exception hierarchy for the lead sync pipeline."""


class SyncLeadsError(Exception):
    """Base class for all pipeline errors."""


class ConfigurationError(SyncLeadsError):
    """
    Raised at first use when credentials, the sheet id or the database URL are missing.

    The master loop logs it and retries on the next tick, so credentials fixed between
    ticks are picked up without a restart.
    """


class ThreadInvariantError(SyncLeadsError):
    """A thread is in a state that should be impossible (e.g. its root message is missing)."""

    def __init__(self, property_id: str, reason: str):
        super().__init__(f"thread {property_id}: {reason}")
        self.property_id = property_id
        self.reason = reason


class SheetWriteError(SyncLeadsError):
    """A sheet write failed after exhausting retries, or with a non-retryable error."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code
