"""
Custom exception classes for the private voice bot.

These provide a hierarchy of typed exceptions for better error handling.
"""


class BotError(Exception):
    """Base exception for bot-related errors."""

    pass


class ConfigError(BotError):
    """Exception raised for configuration-related errors."""

    pass


class ConfigTemplateCreated(ConfigError):
    """Raised when no settings file existed and a template was written instead."""

    def __init__(self, path: str) -> None:
        super().__init__(f"No settings file found; template written to {path}")
        self.path = path


class ServiceError(BotError):
    """Exception raised for service-related errors."""

    pass


class GatewayError(BotError):
    """Exception raised when a platform call fails after retries."""

    def __init__(self, operation: str, cause: BaseException | None = None) -> None:
        detail = f": {cause}" if cause is not None else ""
        super().__init__(f"Platform call '{operation}' failed{detail}")
        self.operation = operation
        self.cause = cause
