"""
Proposal Voting Service - democratic decisions for one tenant

Key Features:
1. Proposal lifecycle: draft -> open -> closed -> passed | failed (or cancelled)
2. One vote per member per proposal, re-casting replaces the choice
3. Quorum/threshold tally, binding once written at close
4. Sweep that closes every proposal whose voting window has expired

Usage:
    voting = ProposalVoting(db, tenant_id)
    voting.cast_vote(proposal_id, member_id, "yes")
    outcome = voting.resolve_proposal(proposal_id)
    db.commit()  # Caller commits
"""
from datetime import datetime
from decimal import Decimal
from typing import Iterable, List, NamedTuple, Optional

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session

from app.core.money import HUNDRED, ZERO, round_percent, to_decimal
from app.core.status_config import (
    ProposalStatus,
    PROPOSAL_RESOLVED_STATUSES,
    VoteChoice,
    validate_proposal_transition,
)
from app.exceptions import (
    ConcurrencyError,
    InvalidStateError,
    NotEligibleError,
    NotFoundError,
    ValidationError,
    VotingClosedError,
)
from app.logging_config import get_logger
from app.models.member import CooperativeMember
from app.models.proposal import Proposal, ProposalResult, Vote
from app.schemas.proposal import ProposalCreate, ProposalUpdate
from app.services.cooperative_settings import CooperativeSettingsService
from app.services.member_registry import MemberRegistry

logger = get_logger(__name__)

# Native "INSERT .. ON CONFLICT DO UPDATE" per dialect
_UPSERT_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


class VoteRecord(NamedTuple):
    """A single cast vote as seen by the tally"""
    choice: str
    weight: Decimal = Decimal("1")


class ProposalTally(NamedTuple):
    """Counts, percentages and outcome of a proposal"""
    yes_count: int
    no_count: int
    abstain_count: int
    total_votes: int
    eligible_voters: int
    yes_weight: Decimal
    no_weight: Decimal
    abstain_weight: Decimal
    total_weight: Decimal
    quorum_required: Decimal
    approval_threshold: Decimal
    turnout_percentage: Decimal
    approval_percentage: Decimal
    quorum_met: bool
    approved: bool
    zero_basis: bool


class ProposalOutcome(NamedTuple):
    proposal_id: int
    status: str
    provisional: bool
    computed_at: datetime
    tally: ProposalTally


def tally_votes(
    votes: Iterable[VoteRecord],
    eligible_voters: int,
    quorum_required,
    approval_threshold,
) -> ProposalTally:
    """
    Count votes and decide the outcome.

    turnout  = total / eligible x 100   (0 when nobody is eligible)
    approval = yes / (yes + no) x 100   (abstentions excluded; 0 when no yes/no)
    approved = quorum met AND approval >= threshold

    Decisions compare exact integers/decimals; only the reported
    percentages are rounded. Weights are reported, never decisive.
    """
    quorum_required = to_decimal(quorum_required)
    approval_threshold = to_decimal(approval_threshold)
    if eligible_voters < 0:
        raise ValidationError("eligible_voters cannot be negative", field="eligible_voters", value=eligible_voters)

    counts = {choice.value: 0 for choice in VoteChoice}
    weights = {choice.value: ZERO for choice in VoteChoice}
    for vote in votes:
        if vote.choice not in counts:
            raise ValidationError(f"Unknown vote choice '{vote.choice}'", field="vote_choice", value=vote.choice)
        counts[vote.choice] += 1
        weights[vote.choice] += to_decimal(vote.weight)

    yes = counts[VoteChoice.YES.value]
    no = counts[VoteChoice.NO.value]
    abstain = counts[VoteChoice.ABSTAIN.value]
    total = yes + no + abstain
    decisive = yes + no

    if eligible_voters == 0:
        turnout = ZERO
        quorum_met = False
    else:
        turnout = Decimal(total) * HUNDRED / Decimal(eligible_voters)
        quorum_met = Decimal(total) * HUNDRED >= quorum_required * Decimal(eligible_voters)

    if decisive == 0:
        approval = ZERO
        threshold_met = False
    else:
        approval = Decimal(yes) * HUNDRED / Decimal(decisive)
        threshold_met = Decimal(yes) * HUNDRED >= approval_threshold * Decimal(decisive)

    return ProposalTally(
        yes_count=yes,
        no_count=no,
        abstain_count=abstain,
        total_votes=total,
        eligible_voters=eligible_voters,
        yes_weight=weights[VoteChoice.YES.value],
        no_weight=weights[VoteChoice.NO.value],
        abstain_weight=weights[VoteChoice.ABSTAIN.value],
        total_weight=sum(weights.values(), ZERO),
        quorum_required=quorum_required,
        approval_threshold=approval_threshold,
        turnout_percentage=round_percent(turnout),
        approval_percentage=round_percent(approval),
        quorum_met=quorum_met,
        approved=quorum_met and threshold_met,
        zero_basis=eligible_voters == 0,
    )


def tally_from_result(result: ProposalResult) -> ProposalTally:
    return ProposalTally(**{field: getattr(result, field) for field in ProposalTally._fields})


class ProposalVoting:
    """
    Proposal lifecycle, vote casting and resolution for one tenant.

    This service does NOT commit. Caller is responsible for commit.
    """

    def __init__(self, db: Session, tenant_id: int, members: Optional[MemberRegistry] = None):
        self.db = db
        self.tenant_id = tenant_id
        self.members = members or MemberRegistry(db, tenant_id)

    # === QUERIES ===

    def _proposals(self):
        return self.db.query(Proposal).filter(Proposal.tenant_id == self.tenant_id)

    def get_proposal(self, proposal_id: int, for_update: bool = False) -> Proposal:
        query = self._proposals().filter(Proposal.id == proposal_id)
        if for_update:
            query = query.with_for_update()
        proposal = query.first()
        if not proposal:
            raise NotFoundError("Proposal", proposal_id)
        return proposal

    def list_proposals(
        self,
        status: Optional[str] = None,
        proposal_type: Optional[str] = None,
    ) -> List[Proposal]:
        query = self._proposals()
        if status:
            query = query.filter(Proposal.status == status)
        if proposal_type:
            query = query.filter(Proposal.proposal_type == proposal_type)
        return query.order_by(Proposal.voting_closes.desc(), Proposal.id.desc()).all()

    def list_active_proposals(self, now: Optional[datetime] = None) -> List[Proposal]:
        """Open proposals whose voting window contains now."""
        now = now or datetime.utcnow()
        return (
            self._proposals()
            .filter(
                Proposal.status == ProposalStatus.OPEN.value,
                Proposal.voting_opens <= now,
                Proposal.voting_closes >= now,
            )
            .order_by(Proposal.voting_closes)
            .all()
        )

    def _votes(self):
        return self.db.query(Vote).filter(Vote.tenant_id == self.tenant_id)

    def get_member_vote(self, proposal_id: int, member_id: int) -> Optional[Vote]:
        return (
            self._votes()
            .filter(Vote.proposal_id == proposal_id, Vote.member_id == member_id)
            .execution_options(populate_existing=True)
            .first()
        )

    def list_member_votes(self, member_id: int) -> List[Vote]:
        """Voting history of one member, newest first."""
        self.members.get_member(member_id)
        return self._votes().filter(Vote.member_id == member_id).order_by(Vote.cast_at.desc()).all()

    def list_votes(self, proposal_id: int) -> List[Vote]:
        return self._votes().filter(Vote.proposal_id == proposal_id).order_by(Vote.id).all()

    # === LIFECYCLE ===

    def create_proposal(self, data: ProposalCreate, created_by: Optional[int] = None) -> Proposal:
        quorum, threshold = CooperativeSettingsService(self.db, self.tenant_id).voting_defaults()
        proposal = Proposal(
            tenant_id=self.tenant_id,
            proposal_type=data.proposal_type,
            title=data.title,
            description=data.description,
            proposal_data=data.proposal_data,
            voting_opens=data.voting_opens,
            voting_closes=data.voting_closes,
            quorum_required=data.quorum_required if data.quorum_required is not None else quorum,
            approval_threshold=data.approval_threshold if data.approval_threshold is not None else threshold,
            status=ProposalStatus.DRAFT.value,
            notes=data.notes,
            created_by=created_by,
        )
        self._validate_window(proposal.voting_opens, proposal.voting_closes)
        self.db.add(proposal)
        self.db.flush()

        logger.info(
            "Proposal created",
            extra={
                "tenant_id": self.tenant_id,
                "proposal_id": proposal.id,
                "proposal_type": proposal.proposal_type,
                "created_by": created_by,
            },
        )
        return proposal

    def update_proposal(self, proposal_id: int, data: ProposalUpdate) -> Proposal:
        """Edit a draft. Dates and thresholds are frozen once voting opens."""
        proposal = self.get_proposal(proposal_id, for_update=True)
        if proposal.status != ProposalStatus.DRAFT.value:
            raise InvalidStateError(
                "Only draft proposals can be edited",
                current_state=proposal.status,
                allowed_states=[ProposalStatus.DRAFT.value],
            )

        changes = data.model_dump(exclude_unset=True)
        for required in ("proposal_type", "title", "voting_opens", "voting_closes",
                         "quorum_required", "approval_threshold"):
            if required in changes and changes[required] is None:
                changes.pop(required)

        self._validate_window(
            changes.get("voting_opens", proposal.voting_opens),
            changes.get("voting_closes", proposal.voting_closes),
        )
        for field, value in changes.items():
            setattr(proposal, field, value)
        proposal.updated_at = datetime.utcnow()
        self.db.flush()
        return proposal

    def delete_proposal(self, proposal_id: int) -> None:
        proposal = self.get_proposal(proposal_id, for_update=True)
        if proposal.status != ProposalStatus.DRAFT.value:
            raise InvalidStateError(
                "Only draft proposals can be deleted",
                current_state=proposal.status,
                allowed_states=[ProposalStatus.DRAFT.value],
            )
        self.db.delete(proposal)
        self.db.flush()
        logger.info("Proposal deleted", extra={"tenant_id": self.tenant_id, "proposal_id": proposal_id})

    def open_proposal(self, proposal_id: int, now: Optional[datetime] = None) -> Proposal:
        proposal = self.get_proposal(proposal_id, for_update=True)
        now = now or datetime.utcnow()
        self._transition(proposal, ProposalStatus.OPEN.value, now, opened_at=now)
        return proposal

    def cancel_proposal(self, proposal_id: int, now: Optional[datetime] = None) -> Proposal:
        proposal = self.get_proposal(proposal_id, for_update=True)
        now = now or datetime.utcnow()
        self._transition(proposal, ProposalStatus.CANCELLED.value, now, cancelled_at=now)
        return proposal

    def close_proposal(self, proposal_id: int, now: Optional[datetime] = None) -> ProposalOutcome:
        """
        Close voting and write the binding result.

        open -> closed -> passed | failed happens in the caller's
        transaction; the ProposalResult row is written exactly once.
        """
        proposal = self.get_proposal(proposal_id, for_update=True)
        return self._close(proposal, now or datetime.utcnow())

    def close_expired_proposals(self, now: Optional[datetime] = None) -> List[ProposalOutcome]:
        """Close every open proposal whose voting window ended before now."""
        now = now or datetime.utcnow()
        expired = (
            self._proposals()
            .filter(
                Proposal.status == ProposalStatus.OPEN.value,
                Proposal.voting_closes < now,
            )
            .order_by(Proposal.id)
            .with_for_update()
            .all()
        )
        outcomes = [self._close(proposal, now) for proposal in expired]
        if outcomes:
            logger.info(
                "Expired proposals closed",
                extra={"tenant_id": self.tenant_id, "closed": len(outcomes)},
            )
        return outcomes

    def _close(self, proposal: Proposal, now: datetime) -> ProposalOutcome:
        self._transition(proposal, ProposalStatus.CLOSED.value, now, closed_at=now)

        eligible = self.members.count_eligible_voters()
        tally = tally_votes(
            self._vote_records(proposal.id),
            eligible,
            proposal.quorum_required,
            proposal.approval_threshold,
        )
        self.db.add(ProposalResult(proposal_id=proposal.id, computed_at=now, **tally._asdict()))

        final = ProposalStatus.PASSED.value if tally.approved else ProposalStatus.FAILED.value
        self._transition(proposal, final, now)

        logger.info(
            "Proposal resolved",
            extra={
                "tenant_id": self.tenant_id,
                "proposal_id": proposal.id,
                "status": final,
                "total_votes": tally.total_votes,
                "eligible_voters": tally.eligible_voters,
                "quorum_met": tally.quorum_met,
            },
        )
        return ProposalOutcome(proposal.id, final, False, now, tally)

    def _transition(self, proposal: Proposal, new_status: str, now: datetime, **values) -> None:
        """Compare-and-set the status; losing the race raises ConcurrencyError."""
        current = proposal.status
        validate_proposal_transition(current, new_status)
        self.db.flush()

        updates = {Proposal.status: new_status, Proposal.updated_at: now}
        updates.update({getattr(Proposal, field): value for field, value in values.items()})
        updated = (
            self._proposals()
            .filter(Proposal.id == proposal.id, Proposal.status == current)
            .update(updates, synchronize_session=False)
        )
        if updated != 1:
            raise ConcurrencyError(
                f"Proposal {proposal.id} changed status concurrently",
                details={"proposal_id": proposal.id, "expected_status": current},
            )
        self.db.refresh(proposal)

        logger.info(
            "Proposal status changed",
            extra={
                "tenant_id": self.tenant_id,
                "proposal_id": proposal.id,
                "from_status": current,
                "to_status": new_status,
            },
        )

    @staticmethod
    def _validate_window(opens: datetime, closes: datetime) -> None:
        if opens > closes:
            raise ValidationError(
                "voting_opens must be on or before voting_closes",
                field="voting_closes",
                value=closes,
            )

    # === VOTING ===

    def cast_vote(
        self,
        proposal_id: int,
        member_id: int,
        choice: str,
        comment: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Vote:
        """
        Record (or replace) a member's vote.

        Raises:
            VotingClosedError: proposal not open, or now outside the window
            NotEligibleError: member inactive, without voting rights, or suspended
        """
        now = now or datetime.utcnow()
        if choice not in {c.value for c in VoteChoice}:
            raise ValidationError(f"Unknown vote choice '{choice}'", field="vote_choice", value=choice)

        proposal = self.get_proposal(proposal_id)
        if proposal.status != ProposalStatus.OPEN.value:
            raise VotingClosedError(
                f"Proposal {proposal_id} is {proposal.status}, not open for voting",
                proposal_id=proposal_id,
                status=proposal.status,
            )
        if not (proposal.voting_opens <= now <= proposal.voting_closes):
            raise VotingClosedError(
                f"Voting for proposal {proposal_id} is {proposal.voting_status_at(now)}",
                proposal_id=proposal_id,
                status=proposal.voting_status_at(now),
            )

        member = self.members.get_member(member_id)
        reason = self.members.voting_block_reason(member, proposal.proposal_type, now.date())
        if reason:
            raise NotEligibleError(
                f"Member {member_id} cannot vote on proposal {proposal_id}: {reason}",
                member_id=member_id,
                reason=reason,
            )

        values = {
            "tenant_id": self.tenant_id,
            "proposal_id": proposal.id,
            "member_id": member.id,
            "vote_choice": choice,
            "vote_weight": Decimal(max(member.ownership_shares or 0, 1)),
            "voter_comment": comment,
            "cast_at": now,
        }
        self._upsert_vote(values)

        logger.info(
            "Vote cast",
            extra={
                "tenant_id": self.tenant_id,
                "proposal_id": proposal.id,
                "member_id": member.id,
                "vote_choice": choice,
            },
        )
        return self.get_member_vote(proposal.id, member.id)

    def _upsert_vote(self, values: dict) -> None:
        insert = _UPSERT_INSERTS.get(self.db.get_bind().dialect.name)
        if insert is None:
            # No native upsert: lock the existing row and update it in place
            existing = (
                self._votes()
                .filter(Vote.proposal_id == values["proposal_id"], Vote.member_id == values["member_id"])
                .with_for_update()
                .first()
            )
            if existing:
                for field in ("vote_choice", "vote_weight", "voter_comment", "cast_at"):
                    setattr(existing, field, values[field])
            else:
                self.db.add(Vote(**values))
            self.db.flush()
            return

        stmt = insert(Vote).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=[Vote.proposal_id, Vote.member_id],
            set_={
                "vote_choice": stmt.excluded.vote_choice,
                "vote_weight": stmt.excluded.vote_weight,
                "voter_comment": stmt.excluded.voter_comment,
                "cast_at": stmt.excluded.cast_at,
            },
        )
        self.db.execute(stmt)

    def _vote_records(self, proposal_id: int) -> List[VoteRecord]:
        """Votes counted in the tally: only those of members who are eligible voters now."""
        voter_ids = self.members.eligible_voters_query().with_entities(CooperativeMember.id)
        rows = (
            self._votes()
            .filter(Vote.proposal_id == proposal_id, Vote.member_id.in_(voter_ids.statement))
            .with_entities(Vote.vote_choice, Vote.vote_weight)
            .all()
        )
        return [VoteRecord(choice, to_decimal(weight)) for choice, weight in rows]

    # === RESULTS ===

    def resolve_proposal(self, proposal_id: int, now: Optional[datetime] = None) -> ProposalOutcome:
        """
        Result of a proposal.

        Closed proposals return the stored binding result; anything else
        gets a provisional tally against today's eligible voters.
        Reading never changes state.
        """
        proposal = self.get_proposal(proposal_id)
        if proposal.status in PROPOSAL_RESOLVED_STATUSES and proposal.result is not None:
            result = proposal.result
            return ProposalOutcome(proposal.id, proposal.status, False, result.computed_at, tally_from_result(result))

        tally = tally_votes(
            self._vote_records(proposal.id),
            self.members.count_eligible_voters(),
            proposal.quorum_required,
            proposal.approval_threshold,
        )
        return ProposalOutcome(proposal.id, proposal.status, True, now or datetime.utcnow(), tally)
