"""
Cooperative Settings Model

Per-tenant governance policy:
- Which member types receive profit shares vs dividends
- Whether dividends are weighted by shares or by invested capital
- Default quorum / approval threshold for new proposals
"""
from sqlalchemy import Column, Integer, String, Numeric, DateTime, JSON, func

from app.db.base import Base


class CooperativeSettings(Base):
    """
    Governance policy for a tenant (one row per tenant).

    A tenant without a row uses DistributionPolicy defaults.
    """
    __tablename__ = "cooperative_settings"

    id = Column(Integer, primary_key=True)
    tenant_id = Column(Integer, nullable=False, unique=True, index=True)

    cooperative_model = Column(String(20), nullable=False, default="hybrid")  # worker, consumer, hybrid

    # Distribution policy
    profit_share_member_types = Column(JSON, nullable=False, default=lambda: ["driver", "staff"])
    dividend_member_types = Column(JSON, nullable=False, default=lambda: ["customer", "other"])
    dividend_basis = Column(String(20), nullable=False, default="shares")  # shares, investment
    dividend_pool_percentage = Column(Numeric(5, 2), nullable=False, default=50)

    # Voting defaults (NULL = use process settings)
    default_quorum_required = Column(Numeric(5, 2), nullable=True)
    default_approval_threshold = Column(Numeric(5, 2), nullable=True)

    # Timestamps
    created_at = Column(DateTime(timezone=False), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=False), nullable=False, server_default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f"<CooperativeSettings(tenant={self.tenant_id}, model={self.cooperative_model})>"
