"""Exceptions raised by forms."""


class FormError(Exception):
    """Base class for form errors."""


class ConfigurationError(FormError):
    """A form was set up or used incorrectly by the calling code."""


class InvalidCsrfToken(FormError):
    """The submitted CSRF token is missing, malformed, expired or forged.

    The message is the same for every cause so callers can't leak which
    check failed.
    """

    def __init__(self, message: str = "Form session expired. Please try again."):
        super().__init__(message)
