from django.core.exceptions import ImproperlyConfigured


class ShieldError(Exception):
    """Base error for the defence pipeline."""


class StoreUnavailable(ShieldError):
    """The backing store could not complete an operation.

    Callers fail open on this error: the request is allowed and the
    failure is logged.
    """

    def __init__(self, operation, detail=""):
        self.operation = operation
        self.detail = detail
        message = f"{operation} failed"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class ConfigurationError(ShieldError, ImproperlyConfigured):
    """Invalid or missing configuration. Only raised at startup."""
