"""
Interaction engine exceptions.

Every failure carries a stable machine-readable code alongside the message.
"""


class InteractionError(Exception):
    """Base class for interaction engine failures."""

    default_code = "interaction_error"

    def __init__(self, message: str, code: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code


class InteractionValidationError(InteractionError, ValueError):
    """Rejected input: bad item, unresolvable actor or out-of-range rating."""

    default_code = "invalid_interaction"


class StorageUnavailableError(InteractionError):
    """Interaction storage is missing or unreachable."""

    default_code = "storage_unavailable"


class WriteFailedError(InteractionError):
    """A write to interaction or rollup storage did not complete."""

    default_code = "write_failed"
