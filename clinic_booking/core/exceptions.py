"""Domain error taxonomy shared by the services and mapped to HTTP in ``main``."""

from typing import Optional


class ClinicError(Exception):
    """Base class for errors raised by the service layer."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(ClinicError, ValueError):
    """Malformed input: surfaced to the caller immediately, never retried."""


class InvalidArgumentError(ValidationError):
    """A pure helper was handed empty or malformed arguments."""


class NotFoundError(ClinicError, LookupError):
    """Unknown identity, code or document."""


class UpstreamError(ClinicError):
    """The backing store or an external service failed or rejected the call."""

    def __init__(
        self,
        message: str,
        error_type: Optional[str] = None,
        code: Optional[str] = None,
    ):
        super().__init__(message)
        self.error_type = error_type
        self.code = code
