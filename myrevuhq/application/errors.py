"""
Application Errors
==================

Use cases raise these; the web layer turns them into
{"error": message} responses with the matching status code.
"""

from typing import Optional


class ServiceError(Exception):
    """Base exception for use case failures."""
    status_code = 400

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class ValidationError(ServiceError):
    status_code = 400


class AuthError(ServiceError):
    status_code = 401

    def __init__(self, message: str = "Unauthorized"):
        super().__init__(message)


class ForbiddenError(ServiceError):
    status_code = 403


class NotFoundError(ServiceError):
    status_code = 404


class LimitReachedError(ServiceError):
    status_code = 429


class ConfigurationError(ServiceError):
    """A required provider credential or price is missing."""
    status_code = 500


class SmsSendError(ServiceError):
    """The SMS provider refused the message."""
    status_code = 500

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.code = code
