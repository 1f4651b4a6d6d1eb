"""
Custom exceptions for the Order Fulfillment lifecycle engine.

Services raise these internally; public service operations convert them into
``{'success': False, 'error': {...}}`` results (see ``services/results.py``).
"""

from typing import Dict, Any, Iterable


class BusinessException(Exception):
    """Base exception for business logic errors."""

    def __init__(self, message: str, code: str = "BUSINESS_ERROR", details: Dict[str, Any] = None):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'code': self.code,
            'message': self.message,
            'details': self.details,
        }


class NotFoundException(BusinessException):
    """Raised when an order, shipment or milestone does not exist for the organization."""

    def __init__(self, entity_type: str, identifier: Any):
        message = f"{entity_type} not found"
        super().__init__(message, "NOT_FOUND", {
            "entity_type": entity_type,
            "identifier": str(identifier),
        })


class ConflictException(BusinessException):
    """Raised when an operation collides with existing lifecycle state."""

    def __init__(self, message: str, details: Dict[str, Any] = None):
        super().__init__(message, "CONFLICT", details)


class ValidationException(BusinessException):
    """Raised when data validation fails."""

    def __init__(self, message: str, field_errors: Dict[str, Any] = None):
        super().__init__(message, "VALIDATION_ERROR", field_errors or {})


class InvalidTransitionException(ValidationException):
    """Raised when attempting an invalid workflow transition."""

    def __init__(self, current_status: str, attempted_status: str,
                 allowed_transitions: Iterable[str] = (), entity_type: str = "order"):
        allowed = [str(status) for status in allowed_transitions]
        if allowed:
            suffix = f"Allowed transitions: {', '.join(allowed)}"
        else:
            suffix = f"'{current_status}' is a terminal state"
        message = (
            f"Invalid {entity_type} status transition from '{current_status}' "
            f"to '{attempted_status}'. {suffix}"
        )
        super().__init__(message, {
            "current_status": str(current_status),
            "attempted_status": str(attempted_status),
            "allowed_transitions": allowed,
            "entity_type": entity_type,
        })


class ImmutableRecordError(BusinessException):
    """Raised when code tries to modify or delete an append-only record."""

    def __init__(self, entity_type: str):
        message = f"{entity_type} records are append-only and cannot be modified or deleted"
        super().__init__(message, "IMMUTABLE_RECORD", {"entity_type": entity_type})
