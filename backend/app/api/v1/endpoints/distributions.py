"""
Profit Distribution API Endpoints

Periods move draft -> calculated -> approved -> distributed (or cancelled).
Calculation, approval, payment and completion go through the governance
facade so each runs in its own transaction.
"""
from typing import List, Optional

from fastapi import APIRouter, Query, status

from app.api.v1.deps import Governance
from app.logging_config import get_logger
from app.schemas.common import MessageResponse
from app.schemas.distribution import (
    CalculationResultResponse,
    MarkPaidRequest,
    MemberDistributionResponse,
    PeriodCreate,
    PeriodResponse,
    PeriodSummaryResponse,
    PeriodUpdate,
)

logger = get_logger(__name__)

router = APIRouter(prefix="/cooperative/distributions", tags=["Cooperative Distributions"])


# ============================================================================
# PERIODS
# ============================================================================

@router.get("/periods", response_model=List[PeriodResponse])
def list_periods(
    governance: Governance,
    period_status: Optional[str] = Query(None, alias="status"),
    period_type: Optional[str] = Query(None),
    year: Optional[int] = Query(None, ge=1900, le=9999),
):
    return governance.distributions.list_periods(status=period_status, period_type=period_type, year=year)


@router.post("/periods", response_model=PeriodResponse, status_code=status.HTTP_201_CREATED)
def create_period(data: PeriodCreate, governance: Governance):
    period = governance.distributions.create_period(data, created_by=governance.user_id)
    governance.db.commit()
    governance.db.refresh(period)
    return period


@router.get("/periods/{period_id}", response_model=PeriodResponse)
def get_period(period_id: int, governance: Governance):
    return governance.distributions.get_period(period_id)


@router.patch("/periods/{period_id}", response_model=PeriodResponse)
def update_period(period_id: int, data: PeriodUpdate, governance: Governance):
    period = governance.distributions.update_period(period_id, data)
    governance.db.commit()
    governance.db.refresh(period)
    return period


@router.delete("/periods/{period_id}", response_model=MessageResponse)
def delete_period(period_id: int, governance: Governance):
    governance.distributions.delete_period(period_id)
    governance.db.commit()
    return MessageResponse(message=f"Distribution period {period_id} deleted")


# ============================================================================
# LIFECYCLE
# ============================================================================

@router.post("/periods/{period_id}/calculate", response_model=CalculationResultResponse)
def calculate_distributions(period_id: int, governance: Governance):
    """(Re)calculate member distributions, replacing any previous calculation"""
    result = governance.calculate_distributions(period_id)
    return CalculationResultResponse(**result._asdict())


@router.post("/periods/{period_id}/approve", response_model=PeriodResponse)
def approve_period(period_id: int, governance: Governance):
    return governance.approve_period(period_id)


@router.post("/periods/{period_id}/complete", response_model=PeriodResponse)
def complete_period(period_id: int, governance: Governance):
    """Mark an approved period distributed (every row must be paid)"""
    return governance.complete_period(period_id)


@router.post("/periods/{period_id}/cancel", response_model=PeriodResponse)
def cancel_period(period_id: int, governance: Governance):
    return governance.cancel_period(period_id)


# ============================================================================
# MEMBER DISTRIBUTIONS
# ============================================================================

@router.get("/periods/{period_id}/members", response_model=List[MemberDistributionResponse])
def list_period_distributions(period_id: int, governance: Governance):
    return governance.distributions.list_distributions(period_id)


@router.get("/periods/{period_id}/summary", response_model=PeriodSummaryResponse)
def period_summary(period_id: int, governance: Governance):
    return PeriodSummaryResponse(**governance.distributions.summarize(period_id)._asdict())


@router.post("/{distribution_id}/mark-paid", response_model=MemberDistributionResponse)
def mark_distribution_paid(distribution_id: int, data: MarkPaidRequest, governance: Governance):
    return governance.mark_distribution_paid(
        distribution_id,
        data.payment_method,
        reference=data.payment_reference,
        notes=data.notes,
        tax_withheld=data.tax_withheld,
    )
