"""
Common API Response Schemas

Provides standardized error responses, money/percentage field types and
simple message models for consistent API behavior.
"""
from datetime import datetime
from decimal import Decimal
from typing import Annotated, Any, Dict, Optional

from pydantic import BaseModel, Field, PlainSerializer

from app.core.money import round_money, round_percent, STORED_PERCENT_QUANTUM


# ============================================================================
# Field Types
# ============================================================================

# Monetary amounts go over the wire as strings with exactly two decimals
# ("2400.00") so clients never see binary floats.
Money = Annotated[
    Decimal,
    PlainSerializer(lambda v: str(round_money(Decimal(v))), return_type=str, when_used="json"),
]

# Percentages (0-100) reported with two decimals
Percent = Annotated[
    Decimal,
    PlainSerializer(lambda v: str(round_percent(Decimal(v))), return_type=str, when_used="json"),
]

# Stored allocation percentages keep four decimals
FinePercent = Annotated[
    Decimal,
    PlainSerializer(
        lambda v: str(round_percent(Decimal(v), STORED_PERCENT_QUANTUM)),
        return_type=str,
        when_used="json",
    ),
]


# ============================================================================
# Error Response Models
# ============================================================================

class ErrorResponse(BaseModel):
    """
    Standardized error response for all API errors.

    Error Codes:
        - VALIDATION_ERROR: Request validation failed (400/422)
        - INVALID_STATE: Operation not allowed in the current lifecycle state (400)
        - DUPLICATE_ERROR: Duplicate resource (400)
        - PERMISSION_DENIED: Caller lacks permission (403)
        - NOT_ELIGIBLE: Member may not vote (403)
        - NOT_FOUND: Resource not found in this tenant (404)
        - CONFLICT / CONCURRENCY_ERROR: Concurrent modification detected (409)
        - VOTING_CLOSED: Vote outside the voting window (409)
        - ALREADY_PAID: Distribution already paid (409)
        - BUSINESS_RULE_ERROR: Business rule violation (422)
        - INCOMPLETE_FINANCIALS: Period has no profit figure (422)
        - DATABASE_ERROR: Database operation failed (500)
        - INTERNAL_ERROR: Unexpected internal error (500)

    Example:
        {
            "error": "NOT_FOUND",
            "message": "Proposal with ID 123 not found",
            "details": {
                "resource": "Proposal",
                "resource_id": "123"
            },
            "timestamp": "2026-03-02T10:30:00Z"
        }
    """
    error: str = Field(..., description="Machine-readable error code")
    message: str = Field(..., description="Human-readable error message")
    details: Optional[Dict[str, Any]] = Field(
        None,
        description="Additional error context for debugging"
    )
    timestamp: datetime = Field(
        default_factory=datetime.utcnow,
        description="When the error occurred (UTC)"
    )


class MessageResponse(BaseModel):
    """
    Simple message response for operations that don't return data.

    Used for operations like delete where only a confirmation message is needed.
    """
    message: str = Field(..., description="Operation result message")


class StatusResponse(BaseModel):
    """
    Status response for health checks and similar endpoints.
    """
    status: str = Field(..., description="Service status")
    timestamp: datetime = Field(
        default_factory=datetime.utcnow,
        description="Status check timestamp (UTC)"
    )
