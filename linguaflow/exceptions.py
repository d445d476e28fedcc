"""Exception hierarchy shared by the data layer and services."""


class LinguaFlowError(Exception):
    """Base class for all LinguaFlow errors."""


class StorageError(LinguaFlowError):
    """Durable local storage could not be read or written."""


class RemoteStoreError(LinguaFlowError):
    """Remote store request failed (network, auth, HTTP status, timeout)."""

    def __init__(self, message: str, status: int = 0):
        super().__init__(message)
        self.status = status


class InvalidQualityError(LinguaFlowError, ValueError):
    """Review grade outside the AGAIN..EASY range."""


class GenerationError(LinguaFlowError):
    """AI generation failed, timed out, or returned unusable content."""
