"""
Distribution Calculator - profit shares and dividends per period

Workflow:
1. Manager enters period financials (draft)
2. calculate(): pool = total_profit x distribution_percentage / 100, split
   among eligible members by ownership shares (or invested capital)
3. approve(): calculated -> approved, figures are frozen
4. mark_paid(): each row paid once; the period becomes 'distributed'
   when the last row is paid

Rounding: ROUND_HALF_UP to the money quantum, applied once to each final
distribution_amount. Ratios are never rounded before that.

Usage:
    calc = DistributionCalculator(db, tenant_id)
    result = calc.calculate(period_id)
    calc.approve(period_id, user_id=admin_id)
    db.commit()  # Caller commits
"""
from datetime import datetime
from decimal import Decimal
from typing import Dict, Iterable, List, NamedTuple, Optional, Sequence

from sqlalchemy import extract
from sqlalchemy.orm import Session

from app.core.money import (
    HUNDRED,
    ZERO,
    STORED_PERCENT_QUANTUM,
    percent_of,
    round_money,
    round_percent,
    to_decimal,
)
from app.core.settings import settings
from app.core.status_config import (
    DistributionType,
    DividendBasis,
    PeriodStatus,
    PAYABLE_PERIOD_STATUSES,
    validate_period_transition,
)
from app.exceptions import (
    AlreadyPaidError,
    BusinessRuleError,
    ConcurrencyError,
    IncompleteFinancialsError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from app.logging_config import get_logger
from app.models.distribution import DistributionPeriod, MemberDistribution
from app.schemas.distribution import PeriodCreate, PeriodUpdate
from app.services.cooperative_settings import CooperativeSettingsService, DistributionPolicy
from app.services.member_registry import MemberRegistry, MemberSnapshot

logger = get_logger(__name__)


class BasisEntry(NamedTuple):
    """One member's claim on a pool"""
    member_id: int
    weight: Decimal
    distribution_type: str
    ownership_shares: Optional[int] = None
    investment_amount: Optional[Decimal] = None


class Allocation(NamedTuple):
    member_id: int
    distribution_type: str
    weight: Decimal
    percentage: Decimal  # unrounded share of the pool, 0-100
    amount: Decimal  # rounded money
    ownership_shares: Optional[int] = None
    investment_amount: Optional[Decimal] = None


class CalculationResult(NamedTuple):
    period_id: int
    status: str
    distributions_created: int
    pool: Decimal
    total_shares: int
    total_investment: Decimal
    zero_basis: bool


class PeriodSummary(NamedTuple):
    period_id: int
    status: str
    distribution_pool: Optional[Decimal]
    total_members: int
    total_amount: Decimal
    paid_count: int
    paid_amount: Decimal
    unpaid_count: int
    unpaid_amount: Decimal
    profit_share_count: int
    profit_share_amount: Decimal
    dividend_count: int
    dividend_amount: Decimal


def allocate_pool(pool: Decimal, basis: Sequence[BasisEntry]) -> List[Allocation]:
    """
    Split a pool proportionally to each entry's weight.

    amount = round_half_up(pool x weight / total). Entries with weight <= 0
    are skipped; an empty or zero-weight basis (or a pool <= 0) yields no
    allocations.
    """
    pool = to_decimal(pool)
    entries = [entry for entry in basis if entry.weight > 0]
    total = sum((entry.weight for entry in entries), ZERO)
    if pool <= 0 or total <= 0:
        return []

    allocations = []
    for entry in entries:
        allocations.append(
            Allocation(
                member_id=entry.member_id,
                distribution_type=entry.distribution_type,
                weight=entry.weight,
                percentage=entry.weight * HUNDRED / total,
                amount=round_money(pool * entry.weight / total),
                ownership_shares=entry.ownership_shares,
                investment_amount=entry.investment_amount,
            )
        )
    return allocations


def share_basis(members: Iterable[MemberSnapshot], policy: DistributionPolicy, types: Optional[set] = None) -> List[BasisEntry]:
    """Active members of the policy's types weighted by ownership shares."""
    basis = []
    for member in members:
        if not member.is_active or member.ownership_shares <= 0:
            continue
        if types is not None and member.member_type not in types:
            continue
        distribution_type = policy.distribution_type_for(member.member_type)
        if distribution_type is None:
            continue
        basis.append(
            BasisEntry(
                member_id=member.member_id,
                weight=Decimal(member.ownership_shares),
                distribution_type=distribution_type,
                ownership_shares=member.ownership_shares,
            )
        )
    return basis


def investment_basis(
    members: Iterable[MemberSnapshot],
    investments: Dict[int, Decimal],
    policy: DistributionPolicy,
) -> List[BasisEntry]:
    """Active dividend members weighted by net active investment."""
    basis = []
    for member in members:
        if not member.is_active or member.member_type not in policy.dividend_member_types:
            continue
        invested = investments.get(member.member_id, ZERO)
        if invested <= 0:
            continue
        basis.append(
            BasisEntry(
                member_id=member.member_id,
                weight=invested,
                distribution_type=DistributionType.DIVIDEND.value,
                ownership_shares=member.ownership_shares,
                investment_amount=invested,
            )
        )
    return basis


class DistributionCalculator:
    """
    Distribution periods and member payouts for one tenant.

    This service does NOT commit. Caller is responsible for commit.
    """

    def __init__(self, db: Session, tenant_id: int, members: Optional[MemberRegistry] = None):
        self.db = db
        self.tenant_id = tenant_id
        self.members = members or MemberRegistry(db, tenant_id)

    # === PERIODS ===

    def _periods(self):
        return self.db.query(DistributionPeriod).filter(DistributionPeriod.tenant_id == self.tenant_id)

    def _distributions(self):
        return self.db.query(MemberDistribution).filter(MemberDistribution.tenant_id == self.tenant_id)

    def get_period(self, period_id: int, for_update: bool = False) -> DistributionPeriod:
        query = self._periods().filter(DistributionPeriod.id == period_id)
        if for_update:
            query = query.with_for_update()
        period = query.first()
        if not period:
            raise NotFoundError("Distribution period", period_id)
        return period

    def list_periods(
        self,
        status: Optional[str] = None,
        period_type: Optional[str] = None,
        year: Optional[int] = None,
    ) -> List[DistributionPeriod]:
        query = self._periods()
        if status:
            query = query.filter(DistributionPeriod.status == status)
        if period_type:
            query = query.filter(DistributionPeriod.period_type == period_type)
        if year:
            query = query.filter(extract("year", DistributionPeriod.period_start) == year)
        return query.order_by(DistributionPeriod.period_start.desc(), DistributionPeriod.id.desc()).all()

    def create_period(self, data: PeriodCreate, created_by: Optional[int] = None) -> DistributionPeriod:
        revenue = to_decimal(data.total_revenue)
        expenses = to_decimal(data.total_expenses)
        profit = to_decimal(data.total_profit)
        if profit is None and revenue is not None and expenses is not None:
            profit = revenue - expenses

        period = DistributionPeriod(
            tenant_id=self.tenant_id,
            period_type=data.period_type,
            period_start=data.period_start,
            period_end=data.period_end,
            total_revenue=revenue,
            total_expenses=expenses,
            total_profit=profit,
            reserve_percentage=(
                data.reserve_percentage
                if data.reserve_percentage is not None
                else settings.DEFAULT_RESERVE_PERCENTAGE
            ),
            distribution_percentage=(
                data.distribution_percentage
                if data.distribution_percentage is not None
                else settings.DEFAULT_DISTRIBUTION_PERCENTAGE
            ),
            distributions_created=0,
            status=PeriodStatus.DRAFT.value,
            notes=data.notes,
            created_by=created_by,
        )
        self._validate_dates(period)
        self.db.add(period)
        self.db.flush()

        logger.info(
            "Distribution period created",
            extra={
                "tenant_id": self.tenant_id,
                "period_id": period.id,
                "period_type": period.period_type,
                "period_start": str(period.period_start),
                "period_end": str(period.period_end),
            },
        )
        return period

    def update_period(self, period_id: int, data: PeriodUpdate, now: Optional[datetime] = None) -> DistributionPeriod:
        """
        Edit a draft or calculated period.

        Editing a calculated period discards its distribution rows and
        returns it to draft; it must be recalculated before approval.
        """
        period = self.get_period(period_id, for_update=True)
        if period.status not in (PeriodStatus.DRAFT.value, PeriodStatus.CALCULATED.value):
            raise InvalidStateError(
                "Only draft or calculated periods can be edited",
                current_state=period.status,
                allowed_states=[PeriodStatus.DRAFT.value, PeriodStatus.CALCULATED.value],
            )
        now = now or datetime.utcnow()

        changes = data.model_dump(exclude_unset=True)
        for required in ("period_type", "period_start", "period_end",
                         "reserve_percentage", "distribution_percentage"):
            if required in changes and changes[required] is None:
                changes.pop(required)
        for field, value in changes.items():
            setattr(period, field, value)

        if "total_profit" not in changes and ({"total_revenue", "total_expenses"} & set(changes)):
            if period.total_revenue is not None and period.total_expenses is not None:
                period.total_profit = to_decimal(period.total_revenue) - to_decimal(period.total_expenses)
        self._validate_dates(period)

        if period.status == PeriodStatus.CALCULATED.value:
            self._discard_distributions(period)
            self._set_status(
                period,
                PeriodStatus.DRAFT.value,
                now,
                distribution_pool=None,
                distributions_created=0,
                calculated_at=None,
            )
        else:
            period.updated_at = now
            self.db.flush()
        return period

    def delete_period(self, period_id: int) -> None:
        period = self.get_period(period_id, for_update=True)
        if period.status != PeriodStatus.DRAFT.value:
            raise InvalidStateError(
                "Only draft periods can be deleted",
                current_state=period.status,
                allowed_states=[PeriodStatus.DRAFT.value],
            )
        self.db.delete(period)
        self.db.flush()
        logger.info("Distribution period deleted", extra={"tenant_id": self.tenant_id, "period_id": period_id})

    @staticmethod
    def _validate_dates(period: DistributionPeriod) -> None:
        if period.period_start > period.period_end:
            raise ValidationError(
                "period_start must be on or before period_end",
                field="period_end",
                value=period.period_end,
            )

    # === CALCULATION ===

    def calculate(self, period_id: int, now: Optional[datetime] = None) -> CalculationResult:
        """
        Replace the period's distribution rows with a fresh calculation.

        Delete + insert + status change happen in the caller's transaction,
        so recalculating with unchanged inputs yields identical rows.
        """
        period = self.get_period(period_id, for_update=True)
        if period.status not in (PeriodStatus.DRAFT.value, PeriodStatus.CALCULATED.value):
            raise InvalidStateError(
                f"Cannot calculate a {period.status} distribution period",
                current_state=period.status,
                allowed_states=[PeriodStatus.DRAFT.value, PeriodStatus.CALCULATED.value],
            )
        if period.total_profit is None:
            raise IncompleteFinancialsError(period.id)
        now = now or datetime.utcnow()

        pool = percent_of(to_decimal(period.total_profit), to_decimal(period.distribution_percentage))
        policy = CooperativeSettingsService(self.db, self.tenant_id).policy()
        members = self.members.list_eligible_members()

        self._discard_distributions(period)

        allocations, total_shares, total_investment, zero_basis = self._allocate(pool, members, policy)
        for allocation in allocations:
            self.db.add(self._row_for(period, allocation))

        self._set_status(
            period,
            PeriodStatus.CALCULATED.value,
            now,
            distribution_pool=round_money(pool),
            distributions_created=len(allocations),
            calculated_at=now,
        )

        logger.info(
            "Distributions calculated",
            extra={
                "tenant_id": self.tenant_id,
                "period_id": period.id,
                "pool": str(round_money(pool)),
                "distributions_created": len(allocations),
                "zero_basis": zero_basis,
            },
        )
        return CalculationResult(
            period_id=period.id,
            status=period.status,
            distributions_created=len(allocations),
            pool=round_money(pool),
            total_shares=total_shares,
            total_investment=total_investment,
            zero_basis=zero_basis,
        )

    def _allocate(self, pool: Decimal, members: List[MemberSnapshot], policy: DistributionPolicy):
        """Returns (allocations, total_shares, total_investment, zero_basis)."""
        if policy.dividend_basis == DividendBasis.INVESTMENT.value:
            workers = share_basis(members, policy, types=set(policy.profit_share_member_types))
            investors = investment_basis(members, self.members.active_investment_by_member(), policy)

            dividend_pool = percent_of(pool, policy.effective_dividend_pool_percentage)
            allocations = allocate_pool(pool - dividend_pool, workers) + allocate_pool(dividend_pool, investors)
            total_shares = sum(entry.ownership_shares for entry in workers)
            total_investment = sum((entry.weight for entry in investors), ZERO)
            zero_basis = not workers and not investors
        else:
            basis = share_basis(members, policy)
            allocations = allocate_pool(pool, basis)
            total_shares = sum(entry.ownership_shares for entry in basis)
            total_investment = ZERO
            zero_basis = not basis
        return allocations, total_shares, round_money(total_investment), zero_basis

    def _row_for(self, period: DistributionPeriod, allocation: Allocation) -> MemberDistribution:
        percentage = round_percent(allocation.percentage, STORED_PERCENT_QUANTUM)
        by_investment = allocation.investment_amount is not None
        return MemberDistribution(
            tenant_id=self.tenant_id,
            period_id=period.id,
            member_id=allocation.member_id,
            distribution_type=allocation.distribution_type,
            ownership_shares=allocation.ownership_shares,
            ownership_percentage=None if by_investment else percentage,
            investment_amount=allocation.investment_amount,
            investment_percentage=percentage if by_investment else None,
            distribution_amount=allocation.amount,
            tax_withheld=ZERO,
            net_amount=allocation.amount,
            paid=False,
        )

    def _discard_distributions(self, period: DistributionPeriod) -> None:
        (
            self._distributions()
            .filter(MemberDistribution.period_id == period.id)
            .delete(synchronize_session="fetch")
        )
        self.db.expire(period, ["distributions"])

    # === APPROVAL & PAYMENT ===

    def approve(self, period_id: int, user_id: Optional[int] = None, now: Optional[datetime] = None) -> DistributionPeriod:
        period = self.get_period(period_id, for_update=True)
        now = now or datetime.utcnow()
        self._set_status(period, PeriodStatus.APPROVED.value, now, approved_by=user_id, approved_at=now)
        return period

    def mark_paid(
        self,
        distribution_id: int,
        method: str,
        reference: Optional[str] = None,
        notes: Optional[str] = None,
        tax_withheld: Optional[Decimal] = None,
        now: Optional[datetime] = None,
    ) -> MemberDistribution:
        """
        Record payment of one member distribution.

        Raises:
            InvalidStateError: period not approved/distributed
            AlreadyPaidError: row already paid (including a lost race)
            ValidationError: tax_withheld negative or above the amount
        """
        distribution = self._distributions().filter(MemberDistribution.id == distribution_id).first()
        if not distribution:
            raise NotFoundError("Member distribution", distribution_id)
        period = self.get_period(distribution.period_id, for_update=True)
        if period.status not in PAYABLE_PERIOD_STATUSES:
            raise InvalidStateError(
                f"Distributions of a {period.status} period cannot be paid",
                current_state=period.status,
                allowed_states=sorted(s.value for s in PAYABLE_PERIOD_STATUSES),
            )
        if distribution.paid:
            raise AlreadyPaidError(distribution_id)
        now = now or datetime.utcnow()
        tax = round_money(to_decimal(tax_withheld)) if tax_withheld is not None else ZERO
        amount = to_decimal(distribution.distribution_amount)
        if tax < 0 or tax > amount:
            raise ValidationError(
                "tax_withheld must be between 0 and the distribution amount",
                field="tax_withheld",
                value=str(tax_withheld),
            )

        values = {
            MemberDistribution.paid: True,
            MemberDistribution.payment_method: method,
            MemberDistribution.payment_reference: reference,
            MemberDistribution.paid_date: now,
            MemberDistribution.tax_withheld: tax,
            MemberDistribution.net_amount: amount - tax,
            MemberDistribution.updated_at: now,
        }
        if notes is not None:
            values[MemberDistribution.notes] = notes
        updated = (
            self._distributions()
            .filter(MemberDistribution.id == distribution_id, MemberDistribution.paid.is_(False))
            .update(values, synchronize_session=False)
        )
        if updated != 1:
            raise AlreadyPaidError(distribution_id)
        self.db.refresh(distribution)

        logger.info(
            "Distribution paid",
            extra={
                "tenant_id": self.tenant_id,
                "period_id": period.id,
                "distribution_id": distribution_id,
                "member_id": distribution.member_id,
                "amount": str(distribution.distribution_amount),
                "payment_method": method,
            },
        )

        if (
            settings.AUTO_COMPLETE_DISTRIBUTED_PERIODS
            and period.status == PeriodStatus.APPROVED.value
            and self._unpaid_count(period.id) == 0
        ):
            self._set_status(period, PeriodStatus.DISTRIBUTED.value, now, distributed_at=now)
        return distribution

    def complete_period(self, period_id: int, now: Optional[datetime] = None) -> DistributionPeriod:
        """Explicitly mark an approved period as distributed once every row is paid."""
        period = self.get_period(period_id, for_update=True)
        validate_period_transition(period.status, PeriodStatus.DISTRIBUTED.value)
        unpaid = self._unpaid_count(period.id)
        if unpaid:
            raise BusinessRuleError(
                f"Distribution period {period_id} still has {unpaid} unpaid distributions",
                rule="all_distributions_paid",
                details={"period_id": period_id, "unpaid_count": unpaid},
            )
        now = now or datetime.utcnow()
        self._set_status(period, PeriodStatus.DISTRIBUTED.value, now, distributed_at=now)
        return period

    def cancel_period(self, period_id: int, now: Optional[datetime] = None) -> DistributionPeriod:
        period = self.get_period(period_id, for_update=True)
        validate_period_transition(period.status, PeriodStatus.CANCELLED.value)
        now = now or datetime.utcnow()
        self._discard_distributions(period)
        self._set_status(
            period,
            PeriodStatus.CANCELLED.value,
            now,
            distributions_created=0,
            cancelled_at=now,
        )
        return period

    def _unpaid_count(self, period_id: int) -> int:
        return (
            self._distributions()
            .filter(MemberDistribution.period_id == period_id, MemberDistribution.paid.is_(False))
            .count()
        )

    def _set_status(self, period: DistributionPeriod, new_status: str, now: datetime, **values) -> None:
        """Compare-and-set the period status; losing the race raises ConcurrencyError."""
        current = period.status
        validate_period_transition(current, new_status)
        self.db.flush()

        updates = {DistributionPeriod.status: new_status, DistributionPeriod.updated_at: now}
        updates.update({getattr(DistributionPeriod, field): value for field, value in values.items()})
        updated = (
            self._periods()
            .filter(DistributionPeriod.id == period.id, DistributionPeriod.status == current)
            .update(updates, synchronize_session=False)
        )
        if updated != 1:
            raise ConcurrencyError(
                f"Distribution period {period.id} changed status concurrently",
                details={"period_id": period.id, "expected_status": current},
            )
        self.db.refresh(period)

        logger.info(
            "Distribution period status changed",
            extra={
                "tenant_id": self.tenant_id,
                "period_id": period.id,
                "from_status": current,
                "to_status": new_status,
            },
        )

    # === READS ===

    def list_distributions(self, period_id: int) -> List[MemberDistribution]:
        self.get_period(period_id)
        return (
            self._distributions()
            .filter(MemberDistribution.period_id == period_id)
            .order_by(MemberDistribution.distribution_amount.desc(), MemberDistribution.member_id)
            .all()
        )

    def list_member_distributions(self, member_id: int) -> List[MemberDistribution]:
        """Distribution history of one member, newest period first."""
        self.members.get_member(member_id)
        return (
            self._distributions()
            .join(DistributionPeriod, DistributionPeriod.id == MemberDistribution.period_id)
            .filter(MemberDistribution.member_id == member_id)
            .order_by(DistributionPeriod.period_start.desc(), MemberDistribution.id.desc())
            .all()
        )

    def summarize(self, period_id: int) -> PeriodSummary:
        period = self.get_period(period_id)
        rows = self.list_distributions(period_id)

        def total(items):
            return round_money(sum((to_decimal(r.distribution_amount) for r in items), ZERO))

        paid = [r for r in rows if r.paid]
        unpaid = [r for r in rows if not r.paid]
        profit_shares = [r for r in rows if r.distribution_type == DistributionType.PROFIT_SHARE.value]
        dividends = [r for r in rows if r.distribution_type == DistributionType.DIVIDEND.value]

        return PeriodSummary(
            period_id=period.id,
            status=period.status,
            distribution_pool=period.distribution_pool,
            total_members=len(rows),
            total_amount=total(rows),
            paid_count=len(paid),
            paid_amount=total(paid),
            unpaid_count=len(unpaid),
            unpaid_amount=total(unpaid),
            profit_share_count=len(profit_shares),
            profit_share_amount=total(profit_shares),
            dividend_count=len(dividends),
            dividend_amount=total(dividends),
        )
