"""Error classes and AWS error classification."""

from enum import Enum

from botocore.exceptions import ClientError

THROTTLING_ERROR_CODES = frozenset({"Throttling", "ThrottlingException"})
EXPIRED_TOKEN_ERROR_CODES = frozenset({"ExpiredTokenException", "ExpiredToken"})

# ECS answers bursts of deregistrations with a ClientException, not a throttling code
CONCURRENT_ATTEMPTS_MESSAGE = "too many concurrent attempts"


class MalformedArnError(ValueError):
    """Raised when a task definition ARN does not end in ``family:revision``."""

    def __init__(self, arn: str, reason: str) -> None:
        self.arn = arn
        self.reason = reason
        super().__init__(f"Malformed task definition ARN '{arn}': {reason}")


class ErrorClass(str, Enum):
    """How the retirement scheduler reacts to a failed deregistration."""

    THROTTLING = "throttling"
    CREDENTIAL_EXPIRY = "credential_expiry"
    FATAL = "fatal"
    PERMANENT = "permanent"


def get_error_code(error: BaseException) -> str:
    """Return the AWS error code of a ClientError, or "" for anything else."""
    if isinstance(error, ClientError):
        return error.response.get("Error", {}).get("Code", "") or ""
    return ""


def get_error_message(error: BaseException) -> str:
    """Return the AWS error message of a ClientError, or str(error)."""
    if isinstance(error, ClientError):
        return error.response.get("Error", {}).get("Message", "") or ""
    return str(error)


def is_throttling_error(error: BaseException) -> bool:
    """Rate-limit rejections that should be retried after a backoff delay."""
    if not isinstance(error, ClientError):
        return False

    code = get_error_code(error)
    if code in THROTTLING_ERROR_CODES:
        return True

    message = get_error_message(error).lower()
    return code == "ClientException" and CONCURRENT_ATTEMPTS_MESSAGE in message


def is_expired_token_error(error: BaseException) -> bool:
    """Expired session credentials: refresh the session and retry."""
    return isinstance(error, ClientError) and get_error_code(error) in EXPIRED_TOKEN_ERROR_CODES


def is_stopworthy_error(error: BaseException) -> bool:
    """
    Errors that abort the whole run.

    A ClientError without an error code, or any exception that is not an API
    level ClientError at all (connection failures, programming errors, ...).
    """
    if not isinstance(error, ClientError):
        return True
    return get_error_code(error) == ""


def classify_error(error: BaseException) -> ErrorClass:
    """
    Classify a deregistration failure.

    Checked in priority order: throttling, credential expiry, stop-worthy,
    then everything else is a permanent per-job failure.
    """
    if is_throttling_error(error):
        return ErrorClass.THROTTLING
    if is_expired_token_error(error):
        return ErrorClass.CREDENTIAL_EXPIRY
    if is_stopworthy_error(error):
        return ErrorClass.FATAL
    return ErrorClass.PERMANENT
