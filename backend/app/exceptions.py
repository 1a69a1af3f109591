"""
Cooperative Governance Engine - Exception Hierarchy

Provides structured, typed exceptions with error codes for consistent
error handling across the application.

Usage:
    from app.exceptions import NotFoundError, InvalidStateError

    # In a service
    raise NotFoundError("Proposal", proposal_id)

    # Lifecycle guard
    raise InvalidStateError(
        "Only calculated periods can be approved",
        current_state=period.status,
        allowed_states=["calculated"],
    )
"""
from typing import Any, Dict, Optional


class GovernanceException(Exception):
    """
    Base exception for all governance engine errors.

    Attributes:
        message: Human-readable error message
        error_code: Machine-readable error code (e.g., "NOT_FOUND", "INVALID_STATE")
        status_code: HTTP status code to return
        details: Additional context for debugging
    """

    error_code: str = "GOVERNANCE_ERROR"
    status_code: int = 500

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        *,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for API response."""
        result = {
            "error": self.error_code,
            "message": self.message,
        }
        if self.details:
            result["details"] = self.details
        return result


# ===================
# 400 Bad Request Errors
# ===================


class ValidationError(GovernanceException):
    """Raised when input validation fails."""

    error_code = "VALIDATION_ERROR"
    status_code = 400

    def __init__(
        self,
        message: str = "Validation failed",
        *,
        field: Optional[str] = None,
        value: Any = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        details = details or {}
        if field:
            details["field"] = field
        if value is not None:
            details["value"] = str(value)
        super().__init__(message, details=details)


class InvalidStateError(GovernanceException):
    """Raised when an operation is invalid for the current lifecycle state."""

    error_code = "INVALID_STATE"
    status_code = 400

    def __init__(
        self,
        message: str = "Operation not allowed in current state",
        *,
        current_state: Optional[str] = None,
        allowed_states: Optional[list] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        details = details or {}
        if current_state:
            details["current_state"] = current_state
        if allowed_states:
            details["allowed_states"] = allowed_states
        super().__init__(message, details=details)


class DuplicateError(GovernanceException):
    """Raised when attempting to create a duplicate resource."""

    error_code = "DUPLICATE_ERROR"
    status_code = 400

    def __init__(
        self,
        resource: str = "Resource",
        *,
        field: Optional[str] = None,
        value: Any = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        details = details or {}
        details["resource"] = resource
        if field:
            details["field"] = field
        if value is not None:
            details["value"] = str(value)
        message = f"{resource} already exists"
        if field and value:
            message = f"{resource} with {field}='{value}' already exists"
        super().__init__(message, details=details)


# ===================
# 403 Forbidden Errors
# ===================


class PermissionDeniedError(GovernanceException):
    """Raised when the caller lacks permission for an action."""

    error_code = "PERMISSION_DENIED"
    status_code = 403

    def __init__(
        self,
        message: str = "Permission denied",
        *,
        action: Optional[str] = None,
        resource: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        details = details or {}
        if action:
            details["action"] = action
        if resource:
            details["resource"] = resource
        super().__init__(message, details=details)


class NotEligibleError(PermissionDeniedError):
    """Raised when a member may not vote (inactive, no voting rights, suspended)."""

    error_code = "NOT_ELIGIBLE"

    def __init__(
        self,
        message: str = "Member is not eligible to vote",
        *,
        member_id: Any = None,
        reason: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        details = details or {}
        if member_id is not None:
            details["member_id"] = str(member_id)
        if reason:
            details["reason"] = reason
        super().__init__(message, details=details)


# ===================
# 404 Not Found Errors
# ===================


class NotFoundError(GovernanceException):
    """Raised when a resource is not found (or belongs to another tenant)."""

    error_code = "NOT_FOUND"
    status_code = 404

    def __init__(
        self,
        resource: str = "Resource",
        resource_id: Any = None,
        *,
        details: Optional[Dict[str, Any]] = None,
    ):
        details = details or {}
        details["resource"] = resource
        if resource_id is not None:
            details["resource_id"] = str(resource_id)
        message = f"{resource} not found"
        if resource_id is not None:
            message = f"{resource} with ID {resource_id} not found"
        super().__init__(message, details=details)


# ===================
# 409 Conflict Errors
# ===================


class ConflictError(GovernanceException):
    """Raised when there's a resource conflict."""

    error_code = "CONFLICT"
    status_code = 409

    def __init__(
        self,
        message: str = "Resource conflict",
        *,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, details=details)


class ConcurrencyError(ConflictError):
    """Raised when a compare-and-set lost against a concurrent change."""

    error_code = "CONCURRENCY_ERROR"

    def __init__(
        self,
        message: str = "Resource was modified by another user",
        *,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, details=details)


class VotingClosedError(ConflictError):
    """Raised when a vote is cast outside the voting window or on a non-open proposal."""

    error_code = "VOTING_CLOSED"

    def __init__(
        self,
        message: str = "Voting is not open for this proposal",
        *,
        proposal_id: Any = None,
        status: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        details = details or {}
        if proposal_id is not None:
            details["proposal_id"] = str(proposal_id)
        if status:
            details["status"] = status
        super().__init__(message, details=details)


class AlreadyPaidError(ConflictError):
    """Raised when a member distribution is marked paid a second time."""

    error_code = "ALREADY_PAID"

    def __init__(
        self,
        distribution_id: Any,
        *,
        details: Optional[Dict[str, Any]] = None,
    ):
        details = details or {}
        details["distribution_id"] = str(distribution_id)
        message = f"Distribution {distribution_id} has already been paid"
        super().__init__(message, details=details)


# ===================
# 422 Unprocessable Entity Errors
# ===================


class BusinessRuleError(GovernanceException):
    """Raised when a business rule is violated."""

    error_code = "BUSINESS_RULE_ERROR"
    status_code = 422

    def __init__(
        self,
        message: str = "Business rule violation",
        *,
        rule: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        details = details or {}
        if rule:
            details["rule"] = rule
        super().__init__(message, details=details)


class IncompleteFinancialsError(BusinessRuleError):
    """Raised when a period is calculated before its profit figure is known."""

    error_code = "INCOMPLETE_FINANCIALS"

    def __init__(
        self,
        period_id: Any,
        *,
        missing: str = "total_profit",
        details: Optional[Dict[str, Any]] = None,
    ):
        details = details or {}
        details["period_id"] = str(period_id)
        details["missing"] = missing
        message = f"Distribution period {period_id} is missing {missing}"
        super().__init__(message, details=details)
