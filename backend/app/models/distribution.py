"""
Profit Distribution Models

A DistributionPeriod holds the manager-entered financials for one
quarter/year; MemberDistribution rows are generated by the calculator
and replaced wholesale on every recalculation until the period is approved.
"""
from datetime import datetime

from sqlalchemy import (
    Column, Integer, String, Numeric, Boolean, Date, DateTime, ForeignKey, Text,
    CheckConstraint, UniqueConstraint
)
from sqlalchemy.orm import relationship

from app.db.base import Base


class DistributionPeriod(Base):
    """
    Profit/dividend distribution period.

    status values: draft, calculated, approved, distributed, cancelled.
    reserve_percentage and distribution_percentage are independent; they
    are not required to sum to 100.
    """
    __tablename__ = "cooperative_distribution_periods"

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Integer, nullable=False, index=True)

    # Period details
    period_type = Column(String(20), nullable=False)  # quarterly, annual, special
    period_start = Column(Date, nullable=False)
    period_end = Column(Date, nullable=False)

    # Financial data (manager-entered)
    total_revenue = Column(Numeric(12, 2), nullable=True)
    total_expenses = Column(Numeric(12, 2), nullable=True)
    total_profit = Column(Numeric(12, 2), nullable=True)

    # Allocation
    reserve_percentage = Column(Numeric(5, 2), nullable=False, default=20)
    distribution_percentage = Column(Numeric(5, 2), nullable=False, default=80)
    distribution_pool = Column(Numeric(12, 2), nullable=True)  # set by the calculator
    distributions_created = Column(Integer, nullable=False, default=0)

    status = Column(String(20), nullable=False, default="draft", index=True)
    notes = Column(Text, nullable=True)

    # Audit
    created_by = Column(Integer, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)
    calculated_at = Column(DateTime, nullable=True)
    approved_by = Column(Integer, nullable=True)
    approved_at = Column(DateTime, nullable=True)
    distributed_at = Column(DateTime, nullable=True)
    cancelled_at = Column(DateTime, nullable=True)

    __table_args__ = (
        CheckConstraint("period_start <= period_end", name="ck_period_dates"),
        CheckConstraint(
            "reserve_percentage >= 0 AND reserve_percentage <= 100", name="ck_period_reserve_pct"
        ),
        CheckConstraint(
            "distribution_percentage >= 0 AND distribution_percentage <= 100",
            name="ck_period_distribution_pct",
        ),
    )

    distributions = relationship(
        "MemberDistribution", back_populates="period", cascade="all, delete-orphan"
    )

    def __repr__(self):
        return f"<DistributionPeriod(id={self.id}, {self.period_start}..{self.period_end}, status={self.status})>"


class MemberDistribution(Base):
    """One member's profit share or dividend for a period."""
    __tablename__ = "cooperative_member_distributions"

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Integer, nullable=False, index=True)
    period_id = Column(
        Integer, ForeignKey("cooperative_distribution_periods.id", ondelete="CASCADE"),
        nullable=False, index=True
    )
    member_id = Column(Integer, ForeignKey("cooperative_members.id"), nullable=False, index=True)

    distribution_type = Column(String(20), nullable=False)  # profit_share, dividend

    # Basis actually used
    ownership_shares = Column(Integer, nullable=True)
    ownership_percentage = Column(Numeric(10, 4), nullable=True)
    investment_amount = Column(Numeric(12, 2), nullable=True)
    investment_percentage = Column(Numeric(10, 4), nullable=True)

    distribution_amount = Column(Numeric(12, 2), nullable=False)
    tax_withheld = Column(Numeric(12, 2), nullable=False, default=0)
    net_amount = Column(Numeric(12, 2), nullable=False)  # distribution_amount - tax_withheld

    # Payment
    paid = Column(Boolean, nullable=False, default=False, index=True)
    payment_method = Column(String(50), nullable=True)
    payment_reference = Column(String(255), nullable=True)
    paid_date = Column(DateTime, nullable=True)

    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint("period_id", "member_id", name="uq_distribution_period_member"),
    )

    period = relationship("DistributionPeriod", back_populates="distributions")

    def __repr__(self):
        return f"<MemberDistribution(period={self.period_id}, member={self.member_id}, ${self.distribution_amount})>"
