"""
Proposal & Voting API Endpoints

Lifecycle: draft -> open -> closed -> passed | failed (or cancelled).
Lifecycle actions and vote casting go through the governance facade so
each runs in its own transaction.
"""
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Query, status

from app.api.v1.deps import Governance
from app.exceptions import NotFoundError
from app.logging_config import get_logger
from app.models.proposal import Proposal
from app.schemas.common import MessageResponse
from app.schemas.proposal import (
    CloseExpiredResponse,
    ProposalCreate,
    ProposalResponse,
    ProposalResultResponse,
    ProposalUpdate,
    TallyResponse,
    VoteCast,
    VoteResponse,
)
from app.services.proposal_voting import ProposalOutcome

logger = get_logger(__name__)

router = APIRouter(prefix="/cooperative/proposals", tags=["Cooperative Proposals"])


def build_proposal_response(proposal: Proposal, now: Optional[datetime] = None) -> ProposalResponse:
    response = ProposalResponse.model_validate(proposal)
    response.voting_status = proposal.voting_status_at(now or datetime.utcnow())
    return response


def build_result_response(outcome: ProposalOutcome) -> ProposalResultResponse:
    return ProposalResultResponse(
        proposal_id=outcome.proposal_id,
        status=outcome.status,
        provisional=outcome.provisional,
        computed_at=outcome.computed_at,
        tally=TallyResponse(**outcome.tally._asdict()),
    )


# ============================================================================
# PROPOSALS
# ============================================================================

@router.get("", response_model=List[ProposalResponse])
def list_proposals(
    governance: Governance,
    proposal_status: Optional[str] = Query(None, alias="status"),
    proposal_type: Optional[str] = Query(None),
):
    now = datetime.utcnow()
    proposals = governance.voting.list_proposals(status=proposal_status, proposal_type=proposal_type)
    return [build_proposal_response(p, now) for p in proposals]


@router.get("/active", response_model=List[ProposalResponse])
def list_active_proposals(governance: Governance):
    """Open proposals currently accepting votes"""
    now = datetime.utcnow()
    return [build_proposal_response(p, now) for p in governance.voting.list_active_proposals(now)]


@router.post("", response_model=ProposalResponse, status_code=status.HTTP_201_CREATED)
def create_proposal(data: ProposalCreate, governance: Governance):
    proposal = governance.voting.create_proposal(data, created_by=governance.user_id)
    governance.db.commit()
    governance.db.refresh(proposal)
    return build_proposal_response(proposal)


@router.post("/close-expired", response_model=CloseExpiredResponse)
def close_expired_proposals(governance: Governance):
    """Close every open proposal whose voting window has ended (scheduler hook)"""
    outcomes = governance.close_expired_proposals()
    return CloseExpiredResponse(
        closed=len(outcomes),
        results=[build_result_response(o) for o in outcomes],
    )


@router.get("/{proposal_id}", response_model=ProposalResponse)
def get_proposal(proposal_id: int, governance: Governance):
    return build_proposal_response(governance.voting.get_proposal(proposal_id))


@router.patch("/{proposal_id}", response_model=ProposalResponse)
def update_proposal(proposal_id: int, data: ProposalUpdate, governance: Governance):
    proposal = governance.voting.update_proposal(proposal_id, data)
    governance.db.commit()
    governance.db.refresh(proposal)
    return build_proposal_response(proposal)


@router.delete("/{proposal_id}", response_model=MessageResponse)
def delete_proposal(proposal_id: int, governance: Governance):
    governance.voting.delete_proposal(proposal_id)
    governance.db.commit()
    return MessageResponse(message=f"Proposal {proposal_id} deleted")


# ============================================================================
# LIFECYCLE
# ============================================================================

@router.post("/{proposal_id}/open", response_model=ProposalResponse)
def open_proposal(proposal_id: int, governance: Governance):
    return build_proposal_response(governance.transition_proposal(proposal_id, "open"))


@router.post("/{proposal_id}/close", response_model=ProposalResultResponse)
def close_proposal(proposal_id: int, governance: Governance):
    """Close voting now and return the binding result"""
    governance.transition_proposal(proposal_id, "close")
    return build_result_response(governance.resolve_proposal(proposal_id))


@router.post("/{proposal_id}/cancel", response_model=ProposalResponse)
def cancel_proposal(proposal_id: int, governance: Governance):
    return build_proposal_response(governance.transition_proposal(proposal_id, "cancel"))


# ============================================================================
# VOTES & RESULTS
# ============================================================================

@router.post("/{proposal_id}/votes", response_model=VoteResponse)
def cast_vote(proposal_id: int, data: VoteCast, governance: Governance):
    """Cast a vote; casting again replaces the member's previous choice"""
    return governance.cast_vote(
        proposal_id, data.member_id, data.vote_choice, comment=data.voter_comment
    )


@router.get("/{proposal_id}/votes", response_model=List[VoteResponse])
def list_votes(proposal_id: int, governance: Governance):
    governance.voting.get_proposal(proposal_id)
    return governance.voting.list_votes(proposal_id)


@router.get("/{proposal_id}/votes/{member_id}", response_model=VoteResponse)
def get_member_vote(proposal_id: int, member_id: int, governance: Governance):
    governance.voting.get_proposal(proposal_id)
    vote = governance.voting.get_member_vote(proposal_id, member_id)
    if vote is None:
        raise NotFoundError("Vote", f"{proposal_id}/{member_id}")
    return vote


@router.get("/{proposal_id}/results", response_model=ProposalResultResponse)
def get_proposal_results(proposal_id: int, governance: Governance):
    """Binding result once closed, provisional tally before that"""
    return build_result_response(governance.resolve_proposal(proposal_id))
