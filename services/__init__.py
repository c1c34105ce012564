"""Domain operations for complaints, feedback, and principal classification."""
from services.context import PortalContext, Principal, current_context, current_principal
from services.errors import (
    AuthenticationRequired,
    NotFound,
    PermissionDenied,
    PersistenceDenied,
    PortalError,
    SentimentAnalysisFailed,
    StaleRevision,
    StorageUnavailable,
    ValidationError,
)

__all__ = [
    "PortalContext",
    "Principal",
    "current_context",
    "current_principal",
    "AuthenticationRequired",
    "NotFound",
    "PermissionDenied",
    "PersistenceDenied",
    "PortalError",
    "SentimentAnalysisFailed",
    "StaleRevision",
    "StorageUnavailable",
    "ValidationError",
]
