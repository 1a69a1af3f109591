"""
Proposal & Voting Pydantic Schemas
"""
from datetime import datetime, timezone
from decimal import Decimal
from typing import Annotated, Any, Dict, Optional, Literal

from pydantic import AfterValidator, BaseModel, Field, model_validator

from app.schemas.common import Percent


def to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Store every timestamp as naive UTC."""
    if value is not None and value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


UtcDatetime = Annotated[datetime, AfterValidator(to_naive_utc)]


# ============================================================================
# Request Schemas
# ============================================================================

class ProposalCreate(BaseModel):
    """Create a draft proposal"""
    proposal_type: str = Field(..., min_length=1, max_length=50, description="policy, financial, board_election, ...")
    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    proposal_data: Optional[Dict[str, Any]] = None
    voting_opens: UtcDatetime
    voting_closes: UtcDatetime
    quorum_required: Optional[Decimal] = Field(None, ge=0, le=100, description="Defaults to tenant setting")
    approval_threshold: Optional[Decimal] = Field(None, ge=0, le=100, description="Defaults to tenant setting")
    notes: Optional[str] = None

    @model_validator(mode="after")
    def validate_window(self):
        if self.voting_opens > self.voting_closes:
            raise ValueError("voting_opens must be on or before voting_closes")
        return self


class ProposalUpdate(BaseModel):
    """Edit a draft proposal (window is re-validated against stored values)"""
    proposal_type: Optional[str] = Field(None, min_length=1, max_length=50)
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    proposal_data: Optional[Dict[str, Any]] = None
    voting_opens: Optional[UtcDatetime] = None
    voting_closes: Optional[UtcDatetime] = None
    quorum_required: Optional[Decimal] = Field(None, ge=0, le=100)
    approval_threshold: Optional[Decimal] = Field(None, ge=0, le=100)
    notes: Optional[str] = None


class VoteCast(BaseModel):
    """Cast or replace a member's vote"""
    member_id: int
    vote_choice: Literal["yes", "no", "abstain"]
    voter_comment: Optional[str] = Field(None, max_length=2000)


# ============================================================================
# Response Schemas
# ============================================================================

class ProposalResponse(BaseModel):
    id: int
    proposal_type: str
    title: str
    description: Optional[str] = None
    proposal_data: Optional[Dict[str, Any]] = None
    voting_opens: datetime
    voting_closes: datetime
    quorum_required: Percent
    approval_threshold: Percent
    status: str
    voting_status: Optional[str] = Field(None, description="pending, active or expired")
    notes: Optional[str] = None
    created_by: Optional[int] = None
    created_at: datetime
    updated_at: datetime
    opened_at: Optional[datetime] = None
    closed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class VoteResponse(BaseModel):
    id: int
    proposal_id: int
    member_id: int
    vote_choice: str
    vote_weight: Decimal
    voter_comment: Optional[str] = None
    cast_at: datetime

    model_config = {"from_attributes": True}


class TallyResponse(BaseModel):
    yes_count: int
    no_count: int
    abstain_count: int
    total_votes: int
    eligible_voters: int
    yes_weight: Decimal
    no_weight: Decimal
    abstain_weight: Decimal
    total_weight: Decimal
    quorum_required: Percent
    approval_threshold: Percent
    turnout_percentage: Percent
    approval_percentage: Percent
    quorum_met: bool
    approved: bool
    zero_basis: bool

    model_config = {"from_attributes": True}


class ProposalResultResponse(BaseModel):
    """Binding result (closed proposals) or provisional tally (open/draft)"""
    proposal_id: int
    status: str
    provisional: bool
    computed_at: datetime
    tally: TallyResponse

    model_config = {"from_attributes": True}


class CloseExpiredResponse(BaseModel):
    closed: int
    results: list[ProposalResultResponse]
