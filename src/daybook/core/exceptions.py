"""
Daybook exception hierarchy.

All daybook exceptions inherit from DaybookError, making it easy for consumers
to catch library-level errors while still distinguishing specific failure modes.
"""


class DaybookError(Exception):
    """Base exception class for all daybook errors."""


class ConfigurationError(DaybookError):
    """Raised for configuration errors (missing keys, invalid values)."""


class PersistenceError(DaybookError):
    """Base class for journal library persistence errors."""

    message = "Persistence failed."

    def __init__(self, message: str | None = None):
        super().__init__(message or self.message)


class PersistenceUnavailableError(PersistenceError):
    """Raised when the store's persistence collaborator is gone."""

    message = "Persistence service unavailable."


class DirectoryNotReachableError(PersistenceError):
    """Raised when the library folder cannot be located or created."""

    message = "Unable to access the selected library folder."


class DirectoryContentsReadError(PersistenceError):
    """Raised when the library folder exists but cannot be listed."""

    message = "Library folder contents could not be read."


class ParseError(PersistenceError):
    """Raised when stored bytes match no known entry schema."""

    def __init__(self, schema: str, file: str | None = None, reason: Exception | None = None):
        self.schema = schema
        self.file = file
        self.reason = reason
        if file:
            message = f"{file} could not be read. Reason: {reason or f'parsing failed at {schema}'}"
        else:
            message = f"Parsing failed at {schema}."
        super().__init__(message)


class UnexpectedItemError(PersistenceError):
    """Raised for non-file items found inside the library folder."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Unexpected item in user directory {name}")


class NamingCollisionError(PersistenceError):
    """Raised when an entry's file could not be stored under its own name."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Filename collision {name}")
