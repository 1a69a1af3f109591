"""
Cooperative Settings Service - per-tenant governance policy

A tenant without a cooperative_settings row runs on defaults: drivers and
staff receive profit shares, customers and others receive dividends, and
everyone is weighted by ownership shares.
"""
from decimal import Decimal
from typing import FrozenSet, NamedTuple, Optional, Tuple

from sqlalchemy.orm import Session

from app.core.settings import settings
from app.core.status_config import CooperativeModel, DividendBasis, DistributionType, MemberType
from app.exceptions import ValidationError
from app.logging_config import get_logger
from app.models.cooperative_settings import CooperativeSettings

logger = get_logger(__name__)

DEFAULT_PROFIT_SHARE_TYPES: Tuple[str, ...] = (MemberType.DRIVER.value, MemberType.STAFF.value)
DEFAULT_DIVIDEND_TYPES: Tuple[str, ...] = (MemberType.CUSTOMER.value, MemberType.OTHER.value)


class DistributionPolicy(NamedTuple):
    """
    Which members share in a pool, and by what weight.

    cooperative_model selects the groups that are paid at all:
        worker   - profit shares only
        consumer - dividends only
        hybrid   - both
    """
    profit_share_member_types: FrozenSet[str] = frozenset(DEFAULT_PROFIT_SHARE_TYPES)
    dividend_member_types: FrozenSet[str] = frozenset(DEFAULT_DIVIDEND_TYPES)
    dividend_basis: str = DividendBasis.SHARES.value
    dividend_pool_percentage: Decimal = Decimal("50")
    cooperative_model: str = CooperativeModel.HYBRID.value

    def distribution_type_for(self, member_type: str) -> Optional[str]:
        if member_type in self.profit_share_member_types:
            return DistributionType.PROFIT_SHARE.value
        if member_type in self.dividend_member_types:
            return DistributionType.DIVIDEND.value
        return None

    @property
    def effective_dividend_pool_percentage(self) -> Decimal:
        """Share of the pool reserved for dividends under the investment basis."""
        if not self.profit_share_member_types:
            return Decimal("100")
        if not self.dividend_member_types:
            return Decimal("0")
        return self.dividend_pool_percentage

    @classmethod
    def from_row(cls, row: Optional[CooperativeSettings]) -> "DistributionPolicy":
        if row is None:
            return cls()
        model = row.cooperative_model or CooperativeModel.HYBRID.value
        profit_share_types = frozenset(row.profit_share_member_types or ())
        dividend_types = frozenset(row.dividend_member_types or ())
        if model == CooperativeModel.WORKER.value:
            dividend_types = frozenset()
        elif model == CooperativeModel.CONSUMER.value:
            profit_share_types = frozenset()
        return cls(
            profit_share_member_types=profit_share_types,
            dividend_member_types=dividend_types,
            dividend_basis=row.dividend_basis,
            dividend_pool_percentage=Decimal(str(row.dividend_pool_percentage)),
            cooperative_model=model,
        )


def validate_member_type_sets(profit_share_types, dividend_types) -> None:
    """Both sets must use known member types and must not overlap."""
    known = {t.value for t in MemberType}
    unknown = (set(profit_share_types) | set(dividend_types)) - known
    if unknown:
        raise ValidationError(
            f"Unknown member types: {sorted(unknown)}",
            field="member_types",
            value=sorted(unknown),
        )
    overlap = set(profit_share_types) & set(dividend_types)
    if overlap:
        raise ValidationError(
            f"Member types cannot receive both profit shares and dividends: {sorted(overlap)}",
            field="member_types",
            value=sorted(overlap),
        )


class CooperativeSettingsService:
    """Read and update one tenant's governance policy. Does NOT commit."""

    def __init__(self, db: Session, tenant_id: int):
        self.db = db
        self.tenant_id = tenant_id

    def get(self) -> Optional[CooperativeSettings]:
        return (
            self.db.query(CooperativeSettings)
            .filter(CooperativeSettings.tenant_id == self.tenant_id)
            .first()
        )

    def get_or_create(self) -> CooperativeSettings:
        """Get the tenant's settings row, creating the default one"""
        row = self.get()
        if row:
            return row
        row = CooperativeSettings(
            tenant_id=self.tenant_id,
            profit_share_member_types=list(DEFAULT_PROFIT_SHARE_TYPES),
            dividend_member_types=list(DEFAULT_DIVIDEND_TYPES),
        )
        self.db.add(row)
        self.db.flush()
        return row

    def update(self, changes: dict) -> CooperativeSettings:
        row = self.get_or_create()

        profit_types = changes.get("profit_share_member_types", row.profit_share_member_types)
        dividend_types = changes.get("dividend_member_types", row.dividend_member_types)
        validate_member_type_sets(profit_types, dividend_types)

        for field, value in changes.items():
            if field in ("profit_share_member_types", "dividend_member_types"):
                value = sorted(set(value))
            setattr(row, field, value)
        self.db.flush()

        logger.info(
            "Cooperative settings updated",
            extra={"tenant_id": self.tenant_id, "fields": sorted(changes)},
        )
        return row

    def policy(self) -> DistributionPolicy:
        return DistributionPolicy.from_row(self.get())

    def voting_defaults(self) -> Tuple[Decimal, Decimal]:
        """(quorum_required, approval_threshold) for new proposals."""
        row = self.get()
        quorum = settings.DEFAULT_QUORUM_REQUIRED
        threshold = settings.DEFAULT_APPROVAL_THRESHOLD
        if row is not None:
            if row.default_quorum_required is not None:
                quorum = Decimal(str(row.default_quorum_required))
            if row.default_approval_threshold is not None:
                threshold = Decimal(str(row.default_approval_threshold))
        return quorum, threshold
