"""
Cooperative Member Schemas

Pydantic models for member enrollment, investments and voting
eligibility rules.
"""
from datetime import date, datetime
from decimal import Decimal
from typing import Optional, Literal

from pydantic import BaseModel, Field, model_validator

from app.schemas.common import Money

MemberTypeLiteral = Literal["driver", "customer", "staff", "other"]


class MemberCreate(BaseModel):
    """Enroll a new cooperative member."""
    member_type: MemberTypeLiteral = "driver"
    member_reference_id: Optional[int] = Field(None, description="Driver/customer record in the host system")
    display_name: Optional[str] = Field(None, max_length=255)
    ownership_shares: int = Field(default=1, ge=0)
    voting_rights: bool = True
    joined_date: Optional[date] = Field(None, description="Defaults to today")
    notes: Optional[str] = Field(None, max_length=2000)


class MemberUpdate(BaseModel):
    """Update an existing member. is_active=False is a soft deactivation."""
    member_type: Optional[MemberTypeLiteral] = None
    display_name: Optional[str] = Field(None, max_length=255)
    ownership_shares: Optional[int] = Field(None, ge=0)
    voting_rights: Optional[bool] = None
    is_active: Optional[bool] = None
    notes: Optional[str] = Field(None, max_length=2000)


class MemberDeactivate(BaseModel):
    left_date: Optional[date] = None


class MemberResponse(BaseModel):
    """Member response."""
    id: int
    member_type: str
    member_reference_id: Optional[int] = None
    display_name: Optional[str] = None
    ownership_shares: int
    voting_rights: bool
    is_active: bool
    joined_date: date
    left_date: Optional[date] = None
    notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class EligibleMemberResponse(BaseModel):
    """Snapshot used by voting and distribution."""
    member_id: int
    member_type: str
    ownership_shares: int
    voting_rights: bool
    is_active: bool

    model_config = {"from_attributes": True}


# ============================================================================
# Investments
# ============================================================================

class InvestmentCreate(BaseModel):
    investment_amount: Decimal = Field(..., gt=0)
    investment_date: Optional[date] = None
    investment_type: Literal["capital", "share_purchase", "loan"] = "capital"
    notes: Optional[str] = Field(None, max_length=1000)


class InvestmentReturn(BaseModel):
    """Return (part of) an investment to the member."""
    returned_amount: Optional[Decimal] = Field(
        None, gt=0, description="Defaults to the full outstanding amount"
    )
    returned_date: Optional[date] = None


class InvestmentResponse(BaseModel):
    id: int
    member_id: int
    investment_amount: Money
    investment_date: date
    investment_type: str
    returned_amount: Money
    returned_date: Optional[date] = None
    status: str
    notes: Optional[str] = None
    created_at: datetime

    model_config = {"from_attributes": True}


# ============================================================================
# Voting eligibility rules
# ============================================================================

class EligibilityRuleCreate(BaseModel):
    """Restrict (or explicitly allow) a member's voting for a date range."""
    proposal_type: Optional[str] = Field(None, max_length=50, description="Omit for all proposal types")
    eligible: bool = False
    reason: Optional[str] = Field(None, max_length=1000)
    effective_date: Optional[date] = Field(None, description="Defaults to today")
    expires_date: Optional[date] = None
    notes: Optional[str] = Field(None, max_length=1000)

    @model_validator(mode="after")
    def validate_dates(self):
        if self.effective_date and self.expires_date and self.expires_date < self.effective_date:
            raise ValueError("expires_date must be on or after effective_date")
        return self


class EligibilityRuleResponse(BaseModel):
    id: int
    member_id: int
    proposal_type: Optional[str] = None
    eligible: bool
    reason: Optional[str] = None
    effective_date: date
    expires_date: Optional[date] = None
    notes: Optional[str] = None
    created_at: datetime

    model_config = {"from_attributes": True}
