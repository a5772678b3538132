"""Error kinds raised by relay operations."""


class RelayError(Exception):
    """Base error for session and image relay failures."""

    error_code = "RELAY_ERROR"

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class SessionNotFoundError(RelayError):
    """Unknown or expired session, or unknown image identifier."""

    error_code = "NOT_FOUND"


class SenderConflictError(RelayError):
    """The session already has a live sender attached."""

    error_code = "CONFLICT"


class InvalidSessionStateError(RelayError):
    """The operation is not permitted in the session's current status."""

    error_code = "INVALID_STATE"


class PayloadTooLargeError(RelayError):
    """An upload exceeded the configured size limit."""

    error_code = "PAYLOAD_TOO_LARGE"

    def __init__(self, size: int, limit: int) -> None:
        self.size = size
        self.limit = limit
        super().__init__(f"Upload exceeds the {limit} byte limit.")


class StorageFailureError(RelayError):
    """Backing storage failed for a reason other than an absent file."""

    error_code = "STORAGE_FAILURE"
