"""
Unit Tests for ProposalVoting

Tests against an in-memory SQLite database:
1. Proposal lifecycle (create, edit, open, cancel, close)
2. Vote casting: window checks, eligibility, last-write-wins
3. Binding results written exactly once at close
4. Sweep of expired proposals
"""
import pytest
from datetime import date, datetime, timedelta
from decimal import Decimal

from app.exceptions import (
    ConcurrencyError,
    InvalidStateError,
    NotEligibleError,
    NotFoundError,
    ValidationError,
    VotingClosedError,
)
from app.models.proposal import Proposal, ProposalResult, Vote
from app.schemas.member import EligibilityRuleCreate, MemberUpdate
from app.schemas.proposal import ProposalCreate, ProposalUpdate
from app.services.member_registry import MemberRegistry
from app.services.proposal_voting import ProposalVoting
from tests.factories import (
    OTHER_TENANT_ID,
    TENANT_ID,
    create_test_member,
    create_test_members,
    create_test_proposal,
    create_test_settings,
    create_test_vote,
)


@pytest.fixture
def voting(db_session):
    return ProposalVoting(db_session, TENANT_ID)


def _create_data(**overrides):
    now = datetime.utcnow()
    data = {
        "proposal_type": "policy",
        "title": "Adopt new fuel policy",
        "voting_opens": now,
        "voting_closes": now + timedelta(days=7),
    }
    data.update(overrides)
    return ProposalCreate(**data)


# ============================================================================
# Lifecycle
# ============================================================================

class TestProposalLifecycle:

    @pytest.mark.unit
    def test_create_uses_process_defaults(self, db_session, voting):
        proposal = voting.create_proposal(_create_data(), created_by=7)

        assert proposal.status == "draft"
        assert proposal.tenant_id == TENANT_ID
        assert proposal.quorum_required == Decimal("50")
        assert proposal.approval_threshold == Decimal("50")
        assert proposal.created_by == 7

    @pytest.mark.unit
    def test_create_uses_tenant_defaults(self, db_session, voting):
        create_test_settings(db_session, default_quorum_required=Decimal("75"))

        proposal = voting.create_proposal(_create_data(approval_threshold=Decimal("66.67")))

        assert proposal.quorum_required == Decimal("75")
        assert proposal.approval_threshold == Decimal("66.67")

    @pytest.mark.unit
    def test_update_draft(self, db_session, voting):
        proposal = create_test_proposal(db_session, status="draft")

        updated = voting.update_proposal(proposal.id, ProposalUpdate(title="Renamed", quorum_required=Decimal("40")))

        assert updated.title == "Renamed"
        assert updated.quorum_required == Decimal("40")

    @pytest.mark.unit
    def test_update_rejects_inverted_window(self, db_session, voting):
        proposal = create_test_proposal(db_session, status="draft")

        with pytest.raises(ValidationError):
            voting.update_proposal(
                proposal.id,
                ProposalUpdate(voting_closes=proposal.voting_opens - timedelta(hours=1)),
            )

    @pytest.mark.unit
    def test_update_open_proposal_rejected(self, db_session, voting):
        proposal = create_test_proposal(db_session, status="open")

        with pytest.raises(InvalidStateError):
            voting.update_proposal(proposal.id, ProposalUpdate(title="Too late"))

    @pytest.mark.unit
    def test_delete_only_drafts(self, db_session, voting):
        draft = create_test_proposal(db_session, status="draft")
        opened = create_test_proposal(db_session, status="open")

        voting.delete_proposal(draft.id)

        assert db_session.query(Proposal).filter(Proposal.id == draft.id).first() is None
        with pytest.raises(InvalidStateError):
            voting.delete_proposal(opened.id)

    @pytest.mark.unit
    def test_open_then_cancel(self, db_session, voting):
        proposal = create_test_proposal(db_session, status="draft")
        now = datetime(2026, 5, 1, 12, 0)

        voting.open_proposal(proposal.id, now=now)
        assert proposal.status == "open"
        assert proposal.opened_at == now

        voting.cancel_proposal(proposal.id, now=now)
        assert proposal.status == "cancelled"
        assert proposal.cancelled_at == now

    @pytest.mark.unit
    def test_terminal_proposal_cannot_reopen(self, db_session, voting):
        proposal = create_test_proposal(db_session, status="cancelled")

        with pytest.raises(InvalidStateError):
            voting.open_proposal(proposal.id)

    @pytest.mark.unit
    def test_other_tenant_proposal_not_found(self, db_session):
        proposal = create_test_proposal(db_session, tenant_id=OTHER_TENANT_ID)

        with pytest.raises(NotFoundError):
            ProposalVoting(db_session, TENANT_ID).get_proposal(proposal.id)

    @pytest.mark.unit
    def test_stale_status_loses_compare_and_set(self, db_session, voting):
        proposal = create_test_proposal(db_session, status="open")
        # Another transaction cancels the proposal behind this session's back
        db_session.query(Proposal).filter(Proposal.id == proposal.id).update(
            {Proposal.status: "cancelled"}, synchronize_session=False
        )

        with pytest.raises(ConcurrencyError):
            voting.close_proposal(proposal.id)


# ============================================================================
# Vote casting
# ============================================================================

class TestCastVote:

    @pytest.mark.unit
    def test_cast_records_vote(self, db_session, voting):
        proposal = create_test_proposal(db_session)
        member = create_test_member(db_session, ownership_shares=30)

        vote = voting.cast_vote(proposal.id, member.id, "yes", comment="Agreed")

        assert vote.vote_choice == "yes"
        assert vote.vote_weight == Decimal("30")
        assert vote.voter_comment == "Agreed"
        assert vote.tenant_id == TENANT_ID

    @pytest.mark.unit
    def test_recast_replaces_previous_choice(self, db_session, voting):
        proposal = create_test_proposal(db_session)
        member = create_test_member(db_session)

        voting.cast_vote(proposal.id, member.id, "yes")
        vote = voting.cast_vote(proposal.id, member.id, "no")

        assert vote.vote_choice == "no"
        assert db_session.query(Vote).filter(Vote.proposal_id == proposal.id).count() == 1

    @pytest.mark.unit
    def test_zero_share_member_weighs_one(self, db_session, voting):
        proposal = create_test_proposal(db_session)
        member = create_test_member(db_session, ownership_shares=0)

        vote = voting.cast_vote(proposal.id, member.id, "abstain")

        assert vote.vote_weight == Decimal("1")

    @pytest.mark.unit
    def test_unknown_choice(self, db_session, voting):
        proposal = create_test_proposal(db_session)
        member = create_test_member(db_session)

        with pytest.raises(ValidationError):
            voting.cast_vote(proposal.id, member.id, "maybe")

    @pytest.mark.unit
    @pytest.mark.parametrize("status", ["draft", "cancelled", "passed", "failed"])
    def test_not_open_rejected(self, db_session, voting, status):
        proposal = create_test_proposal(db_session, status=status)
        member = create_test_member(db_session)

        with pytest.raises(VotingClosedError):
            voting.cast_vote(proposal.id, member.id, "yes")

    @pytest.mark.unit
    def test_before_window_rejected(self, db_session, voting):
        now = datetime.utcnow()
        proposal = create_test_proposal(
            db_session,
            voting_opens=now + timedelta(days=1),
            voting_closes=now + timedelta(days=8),
        )
        member = create_test_member(db_session)

        with pytest.raises(VotingClosedError) as exc_info:
            voting.cast_vote(proposal.id, member.id, "yes", now=now)
        assert exc_info.value.details["status"] == "pending"

    @pytest.mark.unit
    def test_after_window_rejected(self, db_session, voting):
        proposal = create_test_proposal(db_session)
        member = create_test_member(db_session)

        with pytest.raises(VotingClosedError):
            voting.cast_vote(proposal.id, member.id, "yes", now=proposal.voting_closes + timedelta(seconds=1))

    @pytest.mark.unit
    def test_window_bounds_inclusive(self, db_session, voting):
        proposal = create_test_proposal(db_session)
        first = create_test_member(db_session)
        second = create_test_member(db_session)

        voting.cast_vote(proposal.id, first.id, "yes", now=proposal.voting_opens)
        voting.cast_vote(proposal.id, second.id, "no", now=proposal.voting_closes)

        assert len(voting.list_votes(proposal.id)) == 2

    @pytest.mark.unit
    def test_inactive_member_not_eligible(self, db_session, voting):
        proposal = create_test_proposal(db_session)
        member = create_test_member(db_session, is_active=False, left_date=date(2025, 6, 1))

        with pytest.raises(NotEligibleError) as exc_info:
            voting.cast_vote(proposal.id, member.id, "yes")
        assert exc_info.value.details["reason"] == "member is inactive"

    @pytest.mark.unit
    def test_member_without_voting_rights(self, db_session, voting):
        proposal = create_test_proposal(db_session)
        member = create_test_member(db_session, voting_rights=False)

        with pytest.raises(NotEligibleError):
            voting.cast_vote(proposal.id, member.id, "yes")

    @pytest.mark.unit
    def test_suspension_rule_blocks_matching_type(self, db_session, voting):
        proposal = create_test_proposal(db_session, proposal_type="financial")
        member = create_test_member(db_session)
        MemberRegistry(db_session, TENANT_ID).add_eligibility_rule(
            member.id,
            EligibilityRuleCreate(
                proposal_type="financial",
                eligible=False,
                reason="probation",
                effective_date=date.today() - timedelta(days=1),
            ),
        )

        with pytest.raises(NotEligibleError) as exc_info:
            voting.cast_vote(proposal.id, member.id, "yes")
        assert exc_info.value.details["reason"] == "probation"

    @pytest.mark.unit
    def test_suspension_rule_ignores_other_types(self, db_session, voting):
        proposal = create_test_proposal(db_session, proposal_type="policy")
        member = create_test_member(db_session)
        MemberRegistry(db_session, TENANT_ID).add_eligibility_rule(
            member.id,
            EligibilityRuleCreate(proposal_type="financial", eligible=False, effective_date=date.today()),
        )

        vote = voting.cast_vote(proposal.id, member.id, "yes")

        assert vote.vote_choice == "yes"

    @pytest.mark.unit
    def test_expired_rule_no_longer_blocks(self, db_session, voting):
        proposal = create_test_proposal(db_session)
        member = create_test_member(db_session)
        MemberRegistry(db_session, TENANT_ID).add_eligibility_rule(
            member.id,
            EligibilityRuleCreate(
                eligible=False,
                effective_date=date.today() - timedelta(days=30),
                expires_date=date.today() - timedelta(days=1),
            ),
        )

        assert voting.cast_vote(proposal.id, member.id, "no").vote_choice == "no"

    @pytest.mark.unit
    def test_member_of_other_tenant_not_found(self, db_session, voting):
        proposal = create_test_proposal(db_session)
        outsider = create_test_member(db_session, tenant_id=OTHER_TENANT_ID)

        with pytest.raises(NotFoundError):
            voting.cast_vote(proposal.id, outsider.id, "yes")


# ============================================================================
# Closing and results
# ============================================================================

class TestCloseProposal:

    @pytest.mark.unit
    def test_close_writes_binding_result(self, db_session, voting):
        proposal = create_test_proposal(db_session)
        members = create_test_members(db_session, 10)
        for member in members[:4]:
            create_test_vote(db_session, proposal, member, "yes")
        for member in members[4:6]:
            create_test_vote(db_session, proposal, member, "no")

        outcome = voting.close_proposal(proposal.id)

        assert outcome.status == "passed"
        assert outcome.provisional is False
        assert outcome.tally.eligible_voters == 10
        assert outcome.tally.approval_percentage == Decimal("66.67")
        assert proposal.status == "passed"
        assert proposal.closed_at is not None
        results = db_session.query(ProposalResult).filter(ProposalResult.proposal_id == proposal.id).all()
        assert len(results) == 1
        assert results[0].approved is True

    @pytest.mark.unit
    def test_close_without_quorum_fails(self, db_session, voting):
        proposal = create_test_proposal(db_session)
        members = create_test_members(db_session, 10)
        for member in members[:3]:
            create_test_vote(db_session, proposal, member, "yes")

        outcome = voting.close_proposal(proposal.id)

        assert outcome.status == "failed"
        assert outcome.tally.quorum_met is False

    @pytest.mark.unit
    def test_close_counts_only_active_voters(self, db_session, voting):
        proposal = create_test_proposal(db_session)
        create_test_members(db_session, 3)
        create_test_member(db_session, is_active=False, left_date=date(2025, 2, 1))
        create_test_member(db_session, voting_rights=False)
        create_test_member(db_session, tenant_id=OTHER_TENANT_ID)

        outcome = voting.close_proposal(proposal.id)

        assert outcome.tally.eligible_voters == 3

    @pytest.mark.unit
    def test_votes_of_deactivated_members_not_counted(self, db_session, voting):
        proposal = create_test_proposal(db_session)
        members = create_test_members(db_session, 4)
        for member in members:
            create_test_vote(db_session, proposal, member, "yes")
        registry = MemberRegistry(db_session, TENANT_ID)
        registry.deactivate_member(members[0].id)
        registry.update_member(members[1].id, MemberUpdate(voting_rights=False))

        provisional = voting.resolve_proposal(proposal.id)
        outcome = voting.close_proposal(proposal.id)

        assert provisional.tally.eligible_voters == 2
        assert provisional.tally.total_votes == 2
        assert provisional.tally.turnout_percentage == Decimal("100.00")
        assert outcome.tally.total_votes == 2
        assert outcome.tally.turnout_percentage <= Decimal("100")
        assert db_session.query(Vote).filter(Vote.proposal_id == proposal.id).count() == 4

    @pytest.mark.unit
    def test_close_with_no_members(self, db_session, voting):
        proposal = create_test_proposal(db_session)

        outcome = voting.close_proposal(proposal.id)

        assert outcome.status == "failed"
        assert outcome.tally.zero_basis is True

    @pytest.mark.unit
    def test_second_close_rejected(self, db_session, voting):
        proposal = create_test_proposal(db_session)
        voting.close_proposal(proposal.id)

        with pytest.raises(InvalidStateError):
            voting.close_proposal(proposal.id)
        assert db_session.query(ProposalResult).count() == 1

    @pytest.mark.unit
    def test_close_draft_rejected(self, db_session, voting):
        proposal = create_test_proposal(db_session, status="draft")

        with pytest.raises(InvalidStateError):
            voting.close_proposal(proposal.id)

    @pytest.mark.unit
    def test_resolve_open_is_provisional(self, db_session, voting):
        proposal = create_test_proposal(db_session)
        member = create_test_member(db_session)
        create_test_vote(db_session, proposal, member, "yes")

        outcome = voting.resolve_proposal(proposal.id)

        assert outcome.provisional is True
        assert outcome.status == "open"
        assert outcome.tally.total_votes == 1
        assert proposal.status == "open"
        assert db_session.query(ProposalResult).count() == 0

    @pytest.mark.unit
    def test_resolve_closed_returns_stored_result(self, db_session, voting):
        proposal = create_test_proposal(db_session)
        members = create_test_members(db_session, 2)
        create_test_vote(db_session, proposal, members[0], "yes")
        create_test_vote(db_session, proposal, members[1], "yes")
        voting.close_proposal(proposal.id)

        # Membership changes after close do not alter the binding result
        create_test_members(db_session, 5)
        outcome = voting.resolve_proposal(proposal.id)

        assert outcome.provisional is False
        assert outcome.status == "passed"
        assert outcome.tally.eligible_voters == 2


class TestCloseExpired:

    @pytest.mark.unit
    def test_closes_only_expired_open_proposals(self, db_session, voting):
        now = datetime.utcnow()
        expired = create_test_proposal(
            db_session,
            voting_opens=now - timedelta(days=10),
            voting_closes=now - timedelta(days=1),
        )
        running = create_test_proposal(db_session)
        draft = create_test_proposal(
            db_session,
            status="draft",
            voting_opens=now - timedelta(days=10),
            voting_closes=now - timedelta(days=1),
        )
        create_test_members(db_session, 2)

        outcomes = voting.close_expired_proposals(now=now)

        assert [o.proposal_id for o in outcomes] == [expired.id]
        assert expired.status == "failed"
        assert running.status == "open"
        assert draft.status == "draft"

    @pytest.mark.unit
    def test_sweep_is_idempotent(self, db_session, voting):
        now = datetime.utcnow()
        create_test_proposal(
            db_session,
            voting_opens=now - timedelta(days=10),
            voting_closes=now - timedelta(days=1),
        )

        assert len(voting.close_expired_proposals(now=now)) == 1
        assert voting.close_expired_proposals(now=now) == []
        assert db_session.query(ProposalResult).count() == 1

    @pytest.mark.unit
    def test_list_active_excludes_expired(self, db_session, voting):
        now = datetime.utcnow()
        running = create_test_proposal(db_session)
        create_test_proposal(
            db_session,
            voting_opens=now - timedelta(days=10),
            voting_closes=now - timedelta(days=1),
        )

        assert [p.id for p in voting.list_active_proposals(now)] == [running.id]
