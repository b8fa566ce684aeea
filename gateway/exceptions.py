"""Custom exception classes for the relay gateway."""

from typing import Any, Dict


class RelayException(Exception):
    """
    Base exception class for all relay errors.

    Structured context (file id, part index, upload id, ...) is kept in
    ``context`` so handlers can log it without parsing the message.
    """
    code = "INTERNAL_ERROR"

    def __init__(self, message: str = "", **context: Any):
        super().__init__(message)
        self.context: Dict[str, Any] = context


class SignatureInvalidError(RelayException):
    """
    Raised when a download signature does not match.
    """
    code = "SIGNATURE_INVALID"


class SignatureExpiredError(SignatureInvalidError):
    """
    Raised when a download signature is past its expiry time.
    """
    code = "SIGNATURE_EXPIRED"


class AuthRequiredError(RelayException):
    """
    Raised when the relay account is not signed in and the operation needs it.
    """
    code = "AUTH_REQUIRED"


class AuthStateError(RelayException):
    """
    Raised when a sign-in step is invoked from a state that does not allow it.
    """
    code = "INVALID_AUTH_STATE"


class NoPendingCodeError(AuthStateError):
    """
    Raised when a verification code is submitted before one was requested.
    """
    code = "NO_PENDING_CODE"


class TwoFactorUnsupportedError(RelayException):
    """
    Raised when the relay account has a cloud password enabled.
    """
    code = "TWO_FACTOR_UNSUPPORTED"


class SessionRevokedError(RelayException):
    """
    Raised when the backend no longer accepts the relay account session.
    """
    code = "SESSION_REVOKED"


class BackendUnavailableError(RelayException):
    """
    Raised when the backend is unreachable, times out or returns a transport error.
    """
    code = "BACKEND_UNAVAILABLE"


class BackendRejectedError(RelayException):
    """
    Raised when the backend answers but refuses the request or its reply is unusable.
    """
    code = "BACKEND_REJECTED"


class RetrievalUnsupportedError(BackendRejectedError):
    """
    Raised when a stored-file handle cannot be turned into a retrieval URL.
    """
    code = "RETRIEVAL_UNSUPPORTED"


class UploadIdCollisionError(BackendRejectedError):
    """
    Raised when the backend reports the numeric upload id is already in use.
    """
    code = "UPLOAD_ID_COLLISION"


class PartUploadFailedError(RelayException):
    """
    Raised when a part upload fails. The upload session cannot be resumed.
    """
    code = "PART_UPLOAD_FAILED"

    def __init__(self, message: str = "", part_index: int = -1, **context: Any):
        super().__init__(message, part_index=part_index, **context)
        self.part_index = part_index


class PartOrderError(RelayException):
    """
    Raised when parts are not uploaded in sequence or the session is not accepting parts.
    """
    code = "PART_ORDER"


class CommitIncompleteError(RelayException):
    """
    Raised when commit is attempted before every part is acknowledged.
    """
    code = "COMMIT_INCOMPLETE"


class FileRecordNotFoundError(RelayException):
    """
    Raised when a requested file record does not exist.
    """
    code = "FILE_NOT_FOUND"


class UploadNotPermittedError(RelayException):
    """
    Raised when a user without upload permission tries to upload.
    """
    code = "UPLOAD_NOT_PERMITTED"


class FileTooLargeError(RelayException):
    """
    Raised when an upload exceeds the configured maximum file size.
    """
    code = "FILE_TOO_LARGE"


class InvalidAPIKeyError(RelayException):
    """
    Raised when the admin API key is missing or wrong.
    """
    code = "INVALID_API_KEY"


class RateLimitedError(RelayException):
    """
    Raised when a client sends too many requests within the rate limit window.
    """
    code = "RATE_LIMITED"
