"""Failure taxonomy for the trade-session core.

Every error carries the HTTP status and user-facing message it maps to, and
whether the caller may usefully retry the same request.
"""


class OTCError(Exception):
    status_code = 500
    public_message = "Internal error."
    retryable = False


class StorageError(OTCError):
    """Persistence layer unavailable or a constraint was violated."""

    status_code = 500
    public_message = "Database error."
    retryable = True


class EncryptionFailure(OTCError):
    """The time-lock oracle was unreachable or rejected an encrypt call."""

    status_code = 502
    public_message = "Encryption failed."
    retryable = True


class DecryptionFailure(OTCError):
    """The oracle was unreachable, rejected a decrypt call, or returned garbage."""

    status_code = 502
    public_message = "Decryption failed."
    retryable = True


class SessionNotFound(OTCError):
    status_code = 404
    public_message = "Trade session not found."
    retryable = False
