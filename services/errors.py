"""Error taxonomy shared by every portal operation."""
from typing import Dict, List, Optional


class PortalError(Exception):
    """Base class for failures surfaced to callers of the service layer."""

    code = "portal_error"
    status_code = 400
    default_message = "The request could not be completed."

    def __init__(self, message: Optional[str] = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self) -> Dict:
        return {"error": self.code, "message": self.message}


class ValidationError(PortalError):
    code = "validation_error"
    status_code = 422
    default_message = "Some fields are invalid."

    def __init__(self, fields: Dict[str, List[str]], message: Optional[str] = None) -> None:
        super().__init__(message)
        self.fields = {name: list(errors) for name, errors in fields.items()}

    def to_dict(self) -> Dict:
        payload = super().to_dict()
        payload["fields"] = self.fields
        return payload


class AuthenticationRequired(PortalError):
    code = "authentication_required"
    status_code = 401
    default_message = "Please sign in to continue."


class PermissionDenied(PortalError):
    code = "permission_denied"
    status_code = 403
    default_message = "You are not allowed to perform this action."


class NotFound(PortalError):
    code = "not_found"
    status_code = 404
    default_message = "The requested record does not exist."


class StaleRevision(PortalError):
    code = "stale_revision"
    status_code = 409
    default_message = "The complaint was changed by someone else. Reload it and try again."


class SentimentAnalysisFailed(PortalError):
    code = "sentiment_analysis_failed"
    status_code = 502
    default_message = "Your feedback could not be analyzed, so it was not saved. Please submit the form again."


class PersistenceDenied(PortalError):
    code = "persistence_denied"
    status_code = 503
    default_message = "The record could not be saved. Please retry saving."


class StorageUnavailable(PortalError):
    code = "storage_unavailable"
    status_code = 503
    default_message = "Records are temporarily unavailable. Please retry shortly."
