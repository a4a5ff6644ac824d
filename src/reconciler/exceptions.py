"""Reconciliation exceptions."""

from typing import Any


class ReconcileError(Exception):
    """Base exception for failures inside a reconcile cycle."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        """Initialize reconcile error.

        Args:
            message: Human-readable error message
            details: Optional dictionary with additional error details
        """
        super().__init__(message)
        self.details = details or {}


class CredentialResolutionError(ReconcileError):
    """Raised when the referenced credential is missing or malformed."""

    pass


class ResourceStoreError(ReconcileError):
    """Raised when the resource or secret store cannot serve a request."""

    pass


class ResourceNotFoundError(ResourceStoreError):
    """Raised when updating a resource that no longer exists."""

    pass
