"""
Member Registry - tenant-scoped access to cooperative members

Source of truth for who may vote and who shares in distributions:
1. Enrollment, updates and soft deactivation
2. Eligible-member snapshots (optionally as of a date)
3. Capital investments (investment dividend basis)
4. Voting eligibility rules (suspensions, probation)

Usage:
    registry = MemberRegistry(db, tenant_id)
    member = registry.enroll_member(MemberCreate(member_type="driver", ownership_shares=30))
    eligible = registry.count_eligible_voters()
    db.commit()  # Caller commits
"""
from datetime import date, datetime
from decimal import Decimal
from typing import Dict, List, NamedTuple, Optional

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from app.core.money import ZERO, round_money, to_decimal
from app.core.status_config import InvestmentStatus
from app.exceptions import BusinessRuleError, DuplicateError, NotFoundError
from app.logging_config import get_logger
from app.models.member import CooperativeMember, MemberInvestment, VotingEligibilityRule
from app.schemas.member import (
    EligibilityRuleCreate,
    InvestmentCreate,
    InvestmentReturn,
    MemberCreate,
    MemberUpdate,
)

logger = get_logger(__name__)


class MemberSnapshot(NamedTuple):
    """Read-only view of a member handed to voting and distribution"""
    member_id: int
    member_type: str
    ownership_shares: int
    voting_rights: bool
    is_active: bool


class MemberRegistry:
    """
    Member lookups and maintenance for one tenant.

    This service does NOT commit. Caller is responsible for commit.
    """

    def __init__(self, db: Session, tenant_id: int):
        self.db = db
        self.tenant_id = tenant_id

    # === MEMBERS ===

    def _members(self):
        return self.db.query(CooperativeMember).filter(
            CooperativeMember.tenant_id == self.tenant_id
        )

    def get_member(self, member_id: int) -> CooperativeMember:
        member = self._members().filter(CooperativeMember.id == member_id).first()
        if not member:
            raise NotFoundError("Member", member_id)
        return member

    def list_members(
        self,
        active_only: bool = False,
        member_type: Optional[str] = None,
    ) -> List[CooperativeMember]:
        query = self._members()
        if active_only:
            query = query.filter(CooperativeMember.is_active.is_(True))
        if member_type:
            query = query.filter(CooperativeMember.member_type == member_type)
        return query.order_by(CooperativeMember.id).all()

    def enroll_member(self, data: MemberCreate, created_by: Optional[int] = None) -> CooperativeMember:
        """Enroll a member. A host record (type + reference id) is enrolled at most once."""
        if data.member_reference_id is not None:
            existing = self._members().filter(
                CooperativeMember.member_type == data.member_type,
                CooperativeMember.member_reference_id == data.member_reference_id,
            ).first()
            if existing:
                raise DuplicateError(
                    "Member",
                    field="member_reference_id",
                    value=data.member_reference_id,
                    details={"member_id": existing.id, "member_type": data.member_type},
                )

        member = CooperativeMember(
            tenant_id=self.tenant_id,
            member_type=data.member_type,
            member_reference_id=data.member_reference_id,
            display_name=data.display_name,
            ownership_shares=data.ownership_shares,
            voting_rights=data.voting_rights,
            is_active=True,
            joined_date=data.joined_date or date.today(),
            notes=data.notes,
        )
        self.db.add(member)
        self.db.flush()

        logger.info(
            "Member enrolled",
            extra={
                "tenant_id": self.tenant_id,
                "member_id": member.id,
                "member_type": member.member_type,
                "ownership_shares": member.ownership_shares,
                "created_by": created_by,
            },
        )
        return member

    def update_member(self, member_id: int, data: MemberUpdate) -> CooperativeMember:
        member = self.get_member(member_id)
        changes = data.model_dump(exclude_unset=True, exclude_none=True)

        is_active = changes.pop("is_active", None)
        for field, value in changes.items():
            setattr(member, field, value)

        if is_active is False and member.is_active:
            self._deactivate(member, date.today())
        elif is_active is True and not member.is_active:
            member.is_active = True
            member.left_date = None
            logger.info(
                "Member reactivated",
                extra={"tenant_id": self.tenant_id, "member_id": member.id},
            )

        member.updated_at = datetime.utcnow()
        self.db.flush()
        return member

    def deactivate_member(self, member_id: int, left_date: Optional[date] = None) -> CooperativeMember:
        """Soft-delete a member. Deactivating an inactive member is a no-op."""
        member = self.get_member(member_id)
        if member.is_active:
            self._deactivate(member, left_date or date.today())
            self.db.flush()
        return member

    def _deactivate(self, member: CooperativeMember, left_date: date) -> None:
        if left_date < member.joined_date:
            raise BusinessRuleError(
                "left_date cannot be before joined_date",
                rule="member_left_after_joined",
            )
        member.is_active = False
        member.left_date = left_date
        member.updated_at = datetime.utcnow()
        logger.info(
            "Member deactivated",
            extra={"tenant_id": self.tenant_id, "member_id": member.id, "left_date": str(left_date)},
        )

    # === ELIGIBILITY SNAPSHOTS ===

    def _eligible_query(self, as_of: Optional[date] = None):
        query = self._members()
        if as_of is None:
            return query.filter(CooperativeMember.is_active.is_(True))
        return query.filter(
            CooperativeMember.joined_date <= as_of,
            or_(
                CooperativeMember.left_date.is_(None),
                CooperativeMember.left_date > as_of,
            ),
        )

    def list_eligible_members(self, as_of: Optional[date] = None) -> List[MemberSnapshot]:
        """
        Members eligible to participate.

        Without as_of: every currently active member.
        With as_of: members who had joined by that date and had not yet left.
        """
        members = self._eligible_query(as_of).order_by(CooperativeMember.id).all()
        return [
            MemberSnapshot(
                member_id=m.id,
                member_type=m.member_type,
                ownership_shares=m.ownership_shares,
                voting_rights=m.voting_rights,
                is_active=m.is_active,
            )
            for m in members
        ]

    def eligible_voters_query(self, as_of: Optional[date] = None):
        """Eligible members holding voting rights (the turnout denominator)."""
        return self._eligible_query(as_of).filter(CooperativeMember.voting_rights.is_(True))

    def count_eligible_voters(self, as_of: Optional[date] = None) -> int:
        return self.eligible_voters_query(as_of).count()

    # === INVESTMENTS ===

    def _investments(self):
        return self.db.query(MemberInvestment).filter(
            MemberInvestment.tenant_id == self.tenant_id
        )

    def record_investment(
        self,
        member_id: int,
        data: InvestmentCreate,
        created_by: Optional[int] = None,
    ) -> MemberInvestment:
        member = self.get_member(member_id)
        investment = MemberInvestment(
            tenant_id=self.tenant_id,
            member_id=member.id,
            investment_amount=round_money(to_decimal(data.investment_amount)),
            investment_date=data.investment_date or date.today(),
            investment_type=data.investment_type,
            returned_amount=ZERO,
            status=InvestmentStatus.ACTIVE.value,
            notes=data.notes,
            created_by=created_by,
        )
        self.db.add(investment)
        self.db.flush()

        logger.info(
            "Investment recorded",
            extra={
                "tenant_id": self.tenant_id,
                "member_id": member.id,
                "investment_id": investment.id,
                "amount": str(investment.investment_amount),
            },
        )
        return investment

    def return_investment(self, investment_id: int, data: InvestmentReturn) -> MemberInvestment:
        """Pay capital back. A full return moves the investment to 'returned'."""
        investment = self._investments().filter(MemberInvestment.id == investment_id).first()
        if not investment:
            raise NotFoundError("Investment", investment_id)
        if investment.status != InvestmentStatus.ACTIVE.value:
            raise BusinessRuleError(
                f"Investment {investment_id} is {investment.status}, not active",
                rule="investment_active",
            )

        outstanding = to_decimal(investment.investment_amount) - to_decimal(investment.returned_amount)
        amount = round_money(to_decimal(data.returned_amount)) if data.returned_amount else outstanding
        if amount > outstanding:
            raise BusinessRuleError(
                f"Cannot return {amount}; only {outstanding} outstanding",
                rule="return_within_outstanding",
            )

        investment.returned_amount = to_decimal(investment.returned_amount) + amount
        investment.returned_date = data.returned_date or date.today()
        if investment.returned_amount >= to_decimal(investment.investment_amount):
            investment.status = InvestmentStatus.RETURNED.value
        investment.updated_at = datetime.utcnow()
        self.db.flush()
        return investment

    def list_investments(
        self,
        member_id: Optional[int] = None,
        status: Optional[str] = None,
    ) -> List[MemberInvestment]:
        query = self._investments()
        if member_id is not None:
            query = query.filter(MemberInvestment.member_id == member_id)
        if status:
            query = query.filter(MemberInvestment.status == status)
        return query.order_by(MemberInvestment.investment_date, MemberInvestment.id).all()

    def active_investment_by_member(self) -> Dict[int, Decimal]:
        """Net active investment (amount - returned) per member, positive values only."""
        rows = (
            self._investments()
            .filter(MemberInvestment.status == InvestmentStatus.ACTIVE.value)
            .with_entities(
                MemberInvestment.member_id,
                func.sum(MemberInvestment.investment_amount - MemberInvestment.returned_amount),
            )
            .group_by(MemberInvestment.member_id)
            .all()
        )
        totals = {}
        for member_id, net in rows:
            net = to_decimal(net) if net is not None else ZERO
            if net > 0:
                totals[member_id] = net
        return totals

    # === VOTING ELIGIBILITY RULES ===

    def _rules(self):
        return self.db.query(VotingEligibilityRule).filter(
            VotingEligibilityRule.tenant_id == self.tenant_id
        )

    def add_eligibility_rule(
        self,
        member_id: int,
        data: EligibilityRuleCreate,
        created_by: Optional[int] = None,
    ) -> VotingEligibilityRule:
        member = self.get_member(member_id)
        rule = VotingEligibilityRule(
            tenant_id=self.tenant_id,
            member_id=member.id,
            proposal_type=data.proposal_type,
            eligible=data.eligible,
            reason=data.reason,
            effective_date=data.effective_date or date.today(),
            expires_date=data.expires_date,
            notes=data.notes,
            created_by=created_by,
        )
        if rule.expires_date and rule.expires_date < rule.effective_date:
            raise BusinessRuleError(
                "expires_date must be on or after effective_date",
                rule="eligibility_rule_dates",
            )
        self.db.add(rule)
        self.db.flush()

        logger.info(
            "Voting eligibility rule added",
            extra={
                "tenant_id": self.tenant_id,
                "member_id": member.id,
                "rule_id": rule.id,
                "eligible": rule.eligible,
                "proposal_type": rule.proposal_type,
            },
        )
        return rule

    def list_eligibility_rules(self, member_id: Optional[int] = None) -> List[VotingEligibilityRule]:
        query = self._rules()
        if member_id is not None:
            query = query.filter(VotingEligibilityRule.member_id == member_id)
        return query.order_by(VotingEligibilityRule.effective_date, VotingEligibilityRule.id).all()

    def delete_eligibility_rule(self, rule_id: int) -> None:
        rule = self._rules().filter(VotingEligibilityRule.id == rule_id).first()
        if not rule:
            raise NotFoundError("Eligibility rule", rule_id)
        self.db.delete(rule)
        self.db.flush()

    def voting_block_reason(
        self,
        member: CooperativeMember,
        proposal_type: str,
        on: date,
    ) -> Optional[str]:
        """
        Why the member may not vote on a proposal of this type, or None.

        Checks, in order: active membership, voting rights, and any
        eligible=False rule covering the date for this (or every) type.
        """
        if not member.is_active:
            return "member is inactive"
        if not member.voting_rights:
            return "member has no voting rights"

        blocking = (
            self._rules()
            .filter(
                VotingEligibilityRule.member_id == member.id,
                VotingEligibilityRule.eligible.is_(False),
                or_(
                    VotingEligibilityRule.proposal_type.is_(None),
                    VotingEligibilityRule.proposal_type == proposal_type,
                ),
                VotingEligibilityRule.effective_date <= on,
                or_(
                    VotingEligibilityRule.expires_date.is_(None),
                    VotingEligibilityRule.expires_date >= on,
                ),
            )
            .order_by(VotingEligibilityRule.effective_date.desc())
            .first()
        )
        if blocking:
            return blocking.reason or "voting suspended by eligibility rule"
        return None

    def is_eligible_to_vote(self, member: CooperativeMember, proposal_type: str, on: date) -> bool:
        return self.voting_block_reason(member, proposal_type, on) is None
