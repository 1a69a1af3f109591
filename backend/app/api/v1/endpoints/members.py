"""
Cooperative Member API Endpoints

Members, capital investments and voting eligibility rules.
"""
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Query, status

from app.api.v1.deps import Governance
from app.logging_config import get_logger
from app.schemas.common import MessageResponse
from app.schemas.distribution import MemberDistributionResponse
from app.schemas.member import (
    EligibilityRuleCreate,
    EligibilityRuleResponse,
    EligibleMemberResponse,
    InvestmentCreate,
    InvestmentResponse,
    InvestmentReturn,
    MemberCreate,
    MemberDeactivate,
    MemberResponse,
    MemberUpdate,
)
from app.schemas.proposal import VoteResponse

logger = get_logger(__name__)

router = APIRouter(prefix="/cooperative/members", tags=["Cooperative Members"])


# ============================================================================
# MEMBERS
# ============================================================================

@router.get("", response_model=List[MemberResponse])
def list_members(
    governance: Governance,
    active_only: bool = Query(False, description="Only active members"),
    member_type: Optional[str] = Query(None, description="driver, customer, staff or other"),
):
    return governance.members.list_members(active_only=active_only, member_type=member_type)


@router.post("", response_model=MemberResponse, status_code=status.HTTP_201_CREATED)
def enroll_member(data: MemberCreate, governance: Governance):
    member = governance.members.enroll_member(data, created_by=governance.user_id)
    governance.db.commit()
    governance.db.refresh(member)
    return member


@router.get("/eligible", response_model=List[EligibleMemberResponse])
def list_eligible_members(
    governance: Governance,
    as_of: Optional[date] = Query(None, description="Membership as of this date (default: currently active)"),
):
    return [
        EligibleMemberResponse(**snapshot._asdict())
        for snapshot in governance.members.list_eligible_members(as_of=as_of)
    ]


@router.get("/eligible/count")
def count_eligible_voters(
    governance: Governance,
    as_of: Optional[date] = Query(None),
):
    return {"eligible_voters": governance.members.count_eligible_voters(as_of=as_of)}


@router.get("/{member_id}", response_model=MemberResponse)
def get_member(member_id: int, governance: Governance):
    return governance.members.get_member(member_id)


@router.patch("/{member_id}", response_model=MemberResponse)
def update_member(member_id: int, data: MemberUpdate, governance: Governance):
    member = governance.members.update_member(member_id, data)
    governance.db.commit()
    governance.db.refresh(member)
    return member


@router.post("/{member_id}/deactivate", response_model=MemberResponse)
def deactivate_member(member_id: int, governance: Governance, data: Optional[MemberDeactivate] = None):
    left_date = data.left_date if data else None
    member = governance.members.deactivate_member(member_id, left_date=left_date)
    governance.db.commit()
    governance.db.refresh(member)
    return member


@router.get("/{member_id}/votes", response_model=List[VoteResponse])
def member_voting_history(member_id: int, governance: Governance):
    return governance.voting.list_member_votes(member_id)


@router.get("/{member_id}/distributions", response_model=List[MemberDistributionResponse])
def member_distribution_history(member_id: int, governance: Governance):
    return governance.distributions.list_member_distributions(member_id)


# ============================================================================
# INVESTMENTS
# ============================================================================

@router.get("/{member_id}/investments", response_model=List[InvestmentResponse])
def list_member_investments(
    member_id: int,
    governance: Governance,
    investment_status: Optional[str] = Query(None, alias="status"),
):
    governance.members.get_member(member_id)
    return governance.members.list_investments(member_id=member_id, status=investment_status)


@router.post(
    "/{member_id}/investments",
    response_model=InvestmentResponse,
    status_code=status.HTTP_201_CREATED,
)
def record_investment(member_id: int, data: InvestmentCreate, governance: Governance):
    investment = governance.members.record_investment(member_id, data, created_by=governance.user_id)
    governance.db.commit()
    governance.db.refresh(investment)
    return investment


@router.post("/investments/{investment_id}/return", response_model=InvestmentResponse)
def return_investment(investment_id: int, data: InvestmentReturn, governance: Governance):
    investment = governance.members.return_investment(investment_id, data)
    governance.db.commit()
    governance.db.refresh(investment)
    return investment


# ============================================================================
# VOTING ELIGIBILITY RULES
# ============================================================================

@router.get("/{member_id}/eligibility-rules", response_model=List[EligibilityRuleResponse])
def list_eligibility_rules(member_id: int, governance: Governance):
    governance.members.get_member(member_id)
    return governance.members.list_eligibility_rules(member_id=member_id)


@router.post(
    "/{member_id}/eligibility-rules",
    response_model=EligibilityRuleResponse,
    status_code=status.HTTP_201_CREATED,
)
def add_eligibility_rule(member_id: int, data: EligibilityRuleCreate, governance: Governance):
    rule = governance.members.add_eligibility_rule(member_id, data, created_by=governance.user_id)
    governance.db.commit()
    governance.db.refresh(rule)
    return rule


@router.delete("/eligibility-rules/{rule_id}", response_model=MessageResponse)
def delete_eligibility_rule(rule_id: int, governance: Governance):
    governance.members.delete_eligibility_rule(rule_id)
    governance.db.commit()
    return MessageResponse(message=f"Eligibility rule {rule_id} deleted")
