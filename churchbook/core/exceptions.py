"""
Error taxonomy for the offline sync core
"""

from typing import Optional


class ChurchBookError(Exception):
    """Base exception for all ChurchBook errors."""


class ConnectivityError(ChurchBookError):
    """Raised when there is no network path to the remote data service."""

    def __init__(self, message: str = "No connection to the remote data service"):
        super().__init__(message)
        self.message = message


class RemoteRejectionError(ChurchBookError):
    """Raised when the remote service is reachable but rejects the operation."""

    def __init__(self, message: str, status_code: Optional[int] = None, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.code = code

    def __str__(self):
        if self.status_code:
            return f"{self.message} (HTTP {self.status_code})"
        return self.message


class StorageUnavailableError(ChurchBookError):
    """Raised when the local durable store cannot be read or written."""


class RecordNotFoundError(ChurchBookError):
    """Raised when a record or queued operation does not exist."""

    def __init__(self, collection: str, record_id):
        super().__init__(f"{collection} record '{record_id}' not found")
        self.collection = collection
        self.record_id = record_id
