"""
Domain exceptions raised by the service layer.
Routes let these propagate; handlers in main.py turn them into responses.
"""
from typing import Any, Dict, List, Optional


class DomainError(Exception):
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(DomainError):
    status_code = 404


class PermissionDenied(DomainError):
    status_code = 403

    def __init__(self, message: str = "Unauthorized"):
        super().__init__(message)


class InvalidRequest(DomainError):
    status_code = 400


class ValidationFailed(DomainError):
    """Field-level failure rendered as {"errors": [...]}"""
    status_code = 400

    def __init__(self, field: str, message: str, code: str = "custom"):
        super().__init__(message)
        self.errors: List[Dict[str, Any]] = [
            {"path": [field], "message": message, "code": code},
        ]


class SchedulingConflict(DomainError):
    status_code = 409

    def __init__(self, conflicts: List[Any], message: Optional[str] = None):
        super().__init__(
            message or "The technician already has an appointment in this time slot"
        )
        self.conflicts = conflicts
