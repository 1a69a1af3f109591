"""
Unit Tests for the GovernanceService facade

Each operation commits on success and rolls back on failure.
"""
import logging
import pytest
from decimal import Decimal

from app.exceptions import AlreadyPaidError, IncompleteFinancialsError, InvalidStateError, ValidationError
from app.models.distribution import MemberDistribution
from app.models.proposal import Proposal, Vote
from app.services.governance import GovernanceService
from tests.factories import (
    TENANT_ID,
    create_test_member,
    create_test_period,
    create_test_proposal,
)


@pytest.fixture
def governance(db_session):
    return GovernanceService(db_session, TENANT_ID, user_id=5)


class TestGovernanceService:

    @pytest.mark.unit
    def test_cast_vote_commits(self, db_session, governance):
        proposal = create_test_proposal(db_session)
        member = create_test_member(db_session)
        db_session.commit()

        governance.cast_vote(proposal.id, member.id, "yes")
        db_session.rollback()

        assert db_session.query(Vote).filter(Vote.proposal_id == proposal.id).count() == 1

    @pytest.mark.unit
    def test_failed_operation_rolls_back(self, db_session, governance):
        proposal = create_test_proposal(db_session, status="draft")
        db_session.commit()

        with pytest.raises(InvalidStateError):
            governance.transition_proposal(proposal.id, "close")

        assert db_session.query(Proposal).filter(Proposal.id == proposal.id).one().status == "draft"

    @pytest.mark.unit
    def test_rollback_logged_as_warning(self, db_session, governance, caplog):
        period = create_test_period(db_session, total_profit=None)
        db_session.commit()

        with caplog.at_level(logging.WARNING, logger="app.services.governance"):
            with pytest.raises(IncompleteFinancialsError):
                governance.calculate_distributions(period.id)

        records = [r for r in caplog.records if r.name == "app.services.governance"]
        assert len(records) == 1
        assert records[0].levelno == logging.WARNING
        assert records[0].error_type == "IncompleteFinancialsError"
        assert records[0].period_id == period.id

    @pytest.mark.unit
    def test_unknown_action(self, db_session, governance):
        proposal = create_test_proposal(db_session, status="draft")

        with pytest.raises(ValidationError):
            governance.transition_proposal(proposal.id, "reopen")

    @pytest.mark.unit
    def test_transition_returns_proposal(self, db_session, governance):
        proposal = create_test_proposal(db_session, status="draft")
        db_session.commit()

        opened = governance.transition_proposal(proposal.id, "open")

        assert opened.id == proposal.id
        assert opened.status == "open"

    @pytest.mark.unit
    def test_approve_records_acting_user(self, db_session, governance):
        create_test_member(db_session, ownership_shares=1)
        period = create_test_period(db_session)
        db_session.commit()

        governance.calculate_distributions(period.id)
        approved = governance.approve_period(period.id)

        assert approved.status == "approved"
        assert approved.approved_by == 5

    @pytest.mark.unit
    def test_double_payment_keeps_first(self, db_session, governance):
        create_test_member(db_session, ownership_shares=1)
        create_test_member(db_session, ownership_shares=1)
        period = create_test_period(db_session)
        db_session.commit()
        governance.calculate_distributions(period.id)
        governance.approve_period(period.id)
        row = db_session.query(MemberDistribution).order_by(MemberDistribution.id).first()

        governance.mark_distribution_paid(row.id, "cash", reference="R-1")
        with pytest.raises(AlreadyPaidError):
            governance.mark_distribution_paid(row.id, "check", reference="R-2")

        db_session.expire_all()
        stored = db_session.query(MemberDistribution).filter(MemberDistribution.id == row.id).one()
        assert stored.payment_method == "cash"
        assert stored.payment_reference == "R-1"
        assert stored.distribution_amount == Decimal("4000.00")
