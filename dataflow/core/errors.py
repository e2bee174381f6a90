"""
Error taxonomy for the entity service.

Every error carries the HTTP status it maps to; the API layer turns them into
a ``{"error": message}`` payload without exposing SQL or tracebacks.
"""


class DataFlowError(Exception):
    """Base class for errors surfaced to API callers."""
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidIdentifier(DataFlowError):
    """A field or entity name sanitized to nothing."""
    status_code = 400


class UnknownEntity(DataFlowError):
    """Entity name outside the closed set of entity kinds."""
    status_code = 400


class InvalidCursor(DataFlowError):
    status_code = 400


class InvalidFilter(DataFlowError):
    """Malformed or unsupported filter-query document."""
    status_code = 400


class EmptyBatch(DataFlowError):
    status_code = 400


class BatchSizeExceeded(DataFlowError):
    status_code = 400


class RecordNotFound(DataFlowError):
    status_code = 404

    def __init__(self, message: str = "Not found"):
        super().__init__(message)


class StoreError(DataFlowError):
    """Failure reported by the entity store. Never retried."""
    status_code = 500


class MissingTable(StoreError):
    """The entity table has not been created yet."""


class AirflowConfigError(DataFlowError):
    """Airflow connection settings are unusable (bad or restricted URL)."""
    status_code = 400


class AirflowError(DataFlowError):
    """Upstream Airflow call failed."""
    status_code = 502


class AirflowTimeout(AirflowError):
    pass


class GitLabError(DataFlowError):
    status_code = 502


class InvalidDeployRequest(DataFlowError):
    status_code = 400
