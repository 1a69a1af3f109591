"""
Governance Service - transactional entry point for governance operations

Each public method is one unit of work: it commits when the underlying
service call succeeds and rolls back on any exception, which is then
re-raised unchanged for the API layer to translate.

Usage:
    governance = GovernanceService(db, tenant_id, user_id=current_user_id)
    governance.cast_vote(proposal_id, member_id, "yes")
    governance.transition_proposal(proposal_id, "close")
"""
from contextlib import contextmanager
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from sqlalchemy.orm import Session

from app.exceptions import ValidationError
from app.logging_config import get_logger
from app.models.distribution import DistributionPeriod, MemberDistribution
from app.models.proposal import Proposal, Vote
from app.services.distribution_calculator import CalculationResult, DistributionCalculator
from app.services.member_registry import MemberRegistry
from app.services.proposal_voting import ProposalOutcome, ProposalVoting

logger = get_logger(__name__)

PROPOSAL_ACTIONS = ("open", "close", "cancel")


class GovernanceService:
    """Facade over the registry, voting and distribution services for one tenant."""

    def __init__(self, db: Session, tenant_id: int, user_id: Optional[int] = None):
        self.db = db
        self.tenant_id = tenant_id
        self.user_id = user_id
        self.members = MemberRegistry(db, tenant_id)
        self.voting = ProposalVoting(db, tenant_id, members=self.members)
        self.distributions = DistributionCalculator(db, tenant_id, members=self.members)

    @contextmanager
    def _unit_of_work(self, operation: str, **context):
        try:
            yield
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.warning(
                f"Governance operation rolled back: {operation}",
                extra={
                    "tenant_id": self.tenant_id,
                    "user_id": self.user_id,
                    "error_type": type(e).__name__,
                    **context,
                },
            )
            raise

    # === VOTING ===

    def cast_vote(
        self,
        proposal_id: int,
        member_id: int,
        choice: str,
        comment: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Vote:
        with self._unit_of_work("cast_vote", proposal_id=proposal_id, member_id=member_id):
            vote = self.voting.cast_vote(proposal_id, member_id, choice, comment=comment, now=now)
        return vote

    def resolve_proposal(self, proposal_id: int, now: Optional[datetime] = None) -> ProposalOutcome:
        """Read-only; nothing to commit."""
        return self.voting.resolve_proposal(proposal_id, now=now)

    def transition_proposal(self, proposal_id: int, action: str, now: Optional[datetime] = None) -> Proposal:
        """Apply open, close or cancel to a proposal."""
        if action not in PROPOSAL_ACTIONS:
            raise ValidationError(
                f"Unknown proposal action '{action}'. Allowed: {list(PROPOSAL_ACTIONS)}",
                field="action",
                value=action,
            )
        with self._unit_of_work("transition_proposal", proposal_id=proposal_id, action=action):
            if action == "open":
                self.voting.open_proposal(proposal_id, now=now)
            elif action == "close":
                self.voting.close_proposal(proposal_id, now=now)
            else:
                self.voting.cancel_proposal(proposal_id, now=now)
        return self.voting.get_proposal(proposal_id)

    def close_expired_proposals(self, now: Optional[datetime] = None) -> List[ProposalOutcome]:
        with self._unit_of_work("close_expired_proposals"):
            outcomes = self.voting.close_expired_proposals(now=now)
        return outcomes

    # === DISTRIBUTIONS ===

    def calculate_distributions(self, period_id: int, now: Optional[datetime] = None) -> CalculationResult:
        with self._unit_of_work("calculate_distributions", period_id=period_id):
            result = self.distributions.calculate(period_id, now=now)
        return result

    def approve_period(self, period_id: int, now: Optional[datetime] = None) -> DistributionPeriod:
        with self._unit_of_work("approve_period", period_id=period_id):
            period = self.distributions.approve(period_id, user_id=self.user_id, now=now)
        return period

    def mark_distribution_paid(
        self,
        distribution_id: int,
        method: str,
        reference: Optional[str] = None,
        notes: Optional[str] = None,
        tax_withheld: Optional[Decimal] = None,
        now: Optional[datetime] = None,
    ) -> MemberDistribution:
        with self._unit_of_work("mark_distribution_paid", distribution_id=distribution_id):
            distribution = self.distributions.mark_paid(
                distribution_id,
                method,
                reference=reference,
                notes=notes,
                tax_withheld=tax_withheld,
                now=now,
            )
        return distribution

    def complete_period(self, period_id: int, now: Optional[datetime] = None) -> DistributionPeriod:
        with self._unit_of_work("complete_period", period_id=period_id):
            period = self.distributions.complete_period(period_id, now=now)
        return period

    def cancel_period(self, period_id: int, now: Optional[datetime] = None) -> DistributionPeriod:
        with self._unit_of_work("cancel_period", period_id=period_id):
            period = self.distributions.cancel_period(period_id, now=now)
        return period
