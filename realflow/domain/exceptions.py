"""
Domain-specific exception hierarchy for the realflow application.
"""


class RealflowError(Exception):
    """Base class for all application-level errors."""


class ConfigurationError(RealflowError):
    """Raised when the configuration is missing required values or is invalid."""


class RepositoryError(RealflowError):
    """Raised when raw records cannot be fetched from the backing store."""


class MalformedTimestampError(RealflowError, ValueError):
    """Raised when a timestamp value cannot be parsed into a date-time."""

    def __init__(self, value: object):
        super().__init__(f"Could not parse timestamp: {value!r}")
        self.value = value
