"""
Profit Distribution Pydantic Schemas
"""
from datetime import date, datetime
from decimal import Decimal
from typing import Optional, Literal

from pydantic import BaseModel, Field, model_validator

from app.schemas.common import Money, Percent, FinePercent

PeriodTypeLiteral = Literal["quarterly", "annual", "special"]
PaymentMethodLiteral = Literal["bank_transfer", "check", "cash", "reinvest", "shares", "other"]


# ============================================================================
# Request Schemas
# ============================================================================

class PeriodCreate(BaseModel):
    """
    Open a distribution period.

    If total_profit is omitted and both revenue and expenses are given,
    profit is derived as revenue - expenses.
    """
    period_type: PeriodTypeLiteral = "quarterly"
    period_start: date
    period_end: date
    total_revenue: Optional[Decimal] = None
    total_expenses: Optional[Decimal] = None
    total_profit: Optional[Decimal] = None
    reserve_percentage: Optional[Decimal] = Field(None, ge=0, le=100, description="Defaults to 20")
    distribution_percentage: Optional[Decimal] = Field(None, ge=0, le=100, description="Defaults to 80")
    notes: Optional[str] = None

    @model_validator(mode="after")
    def validate_dates(self):
        if self.period_start > self.period_end:
            raise ValueError("period_start must be on or before period_end")
        return self


class PeriodUpdate(BaseModel):
    """Edit a draft or calculated period (calculated periods return to draft)"""
    period_type: Optional[PeriodTypeLiteral] = None
    period_start: Optional[date] = None
    period_end: Optional[date] = None
    total_revenue: Optional[Decimal] = None
    total_expenses: Optional[Decimal] = None
    total_profit: Optional[Decimal] = None
    reserve_percentage: Optional[Decimal] = Field(None, ge=0, le=100)
    distribution_percentage: Optional[Decimal] = Field(None, ge=0, le=100)
    notes: Optional[str] = None


class MarkPaidRequest(BaseModel):
    payment_method: PaymentMethodLiteral
    payment_reference: Optional[str] = Field(None, max_length=255)
    tax_withheld: Optional[Decimal] = Field(None, ge=0, description="Withheld from the payout; defaults to 0")
    notes: Optional[str] = Field(None, max_length=1000)


# ============================================================================
# Response Schemas
# ============================================================================

class PeriodResponse(BaseModel):
    id: int
    period_type: str
    period_start: date
    period_end: date
    total_revenue: Optional[Money] = None
    total_expenses: Optional[Money] = None
    total_profit: Optional[Money] = None
    reserve_percentage: Percent
    distribution_percentage: Percent
    distribution_pool: Optional[Money] = None
    distributions_created: int
    status: str
    notes: Optional[str] = None
    created_by: Optional[int] = None
    created_at: datetime
    updated_at: datetime
    calculated_at: Optional[datetime] = None
    approved_by: Optional[int] = None
    approved_at: Optional[datetime] = None
    distributed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class MemberDistributionResponse(BaseModel):
    id: int
    period_id: int
    member_id: int
    distribution_type: str
    ownership_shares: Optional[int] = None
    ownership_percentage: Optional[FinePercent] = None
    investment_amount: Optional[Money] = None
    investment_percentage: Optional[FinePercent] = None
    distribution_amount: Money
    tax_withheld: Money
    net_amount: Money
    paid: bool
    payment_method: Optional[str] = None
    payment_reference: Optional[str] = None
    paid_date: Optional[datetime] = None
    notes: Optional[str] = None

    model_config = {"from_attributes": True}


class CalculationResultResponse(BaseModel):
    period_id: int
    status: str
    distributions_created: int
    pool: Money
    total_shares: int
    total_investment: Money
    zero_basis: bool

    model_config = {"from_attributes": True}


class PeriodSummaryResponse(BaseModel):
    period_id: int
    status: str
    distribution_pool: Optional[Money] = None
    total_members: int
    total_amount: Money
    paid_count: int
    paid_amount: Money
    unpaid_count: int
    unpaid_amount: Money
    profit_share_count: int
    profit_share_amount: Money
    dividend_count: int
    dividend_amount: Money

    model_config = {"from_attributes": True}
