"""
Cooperative Member Models

Members are the read-only input to voting and distribution. Removing a
member is a soft deactivation (is_active=False, left_date set); rows are
never deleted so historical results stay reproducible.
"""
from datetime import datetime

from sqlalchemy import (
    Column, Integer, String, Numeric, Boolean, Date, DateTime, ForeignKey, Text, CheckConstraint
)
from sqlalchemy.orm import relationship

from app.db.base import Base


class CooperativeMember(Base):
    """
    Cooperative member with ownership and voting attributes.

    member_type values:
        - driver: worker-owner driving for the cooperative
        - staff: worker-owner in an office/support role
        - customer: passenger member
        - other: anything else (community investors, partner orgs)
    """
    __tablename__ = "cooperative_members"

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Integer, nullable=False, index=True)

    # Member identification
    member_type = Column(String(20), nullable=False, default="driver")
    member_reference_id = Column(Integer, nullable=True)  # driver_id / customer_id in the host app
    display_name = Column(String(255), nullable=True)

    # Ownership & rights
    ownership_shares = Column(Integer, nullable=False, default=1)
    voting_rights = Column(Boolean, nullable=False, default=True)

    # Membership status
    is_active = Column(Boolean, nullable=False, default=True, index=True)
    joined_date = Column(Date, nullable=False)
    left_date = Column(Date, nullable=True)

    notes = Column(Text, nullable=True)

    # Timestamps
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        CheckConstraint("ownership_shares >= 0", name="ck_member_shares_non_negative"),
    )

    investments = relationship("MemberInvestment", back_populates="member")

    def __repr__(self):
        return f"<CooperativeMember(id={self.id}, type={self.member_type}, shares={self.ownership_shares})>"

    @property
    def can_vote(self) -> bool:
        return bool(self.is_active and self.voting_rights)


class MemberInvestment(Base):
    """
    Capital invested by a member (passenger/consumer cooperatives).

    Only rows with status 'active' count toward the investment dividend
    basis; the counted amount is investment_amount - returned_amount.
    """
    __tablename__ = "cooperative_member_investments"

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Integer, nullable=False, index=True)
    member_id = Column(Integer, ForeignKey("cooperative_members.id"), nullable=False, index=True)

    investment_amount = Column(Numeric(12, 2), nullable=False)
    investment_date = Column(Date, nullable=False)
    investment_type = Column(String(50), nullable=False, default="capital")

    # Returns (if withdrawn)
    returned_amount = Column(Numeric(12, 2), nullable=False, default=0)
    returned_date = Column(Date, nullable=True)

    status = Column(String(20), nullable=False, default="active", index=True)
    notes = Column(Text, nullable=True)

    created_by = Column(Integer, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        CheckConstraint("investment_amount > 0", name="ck_investment_amount_positive"),
    )

    member = relationship("CooperativeMember", back_populates="investments")

    def __repr__(self):
        return f"<MemberInvestment(id={self.id}, member={self.member_id}, amount={self.investment_amount})>"


class VotingEligibilityRule(Base):
    """
    Per-member voting restriction (suspension, probation).

    proposal_type NULL means the rule applies to every proposal type.
    expires_date NULL means the rule never expires.
    """
    __tablename__ = "cooperative_voting_eligibility"

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Integer, nullable=False, index=True)
    member_id = Column(Integer, ForeignKey("cooperative_members.id"), nullable=False, index=True)

    proposal_type = Column(String(50), nullable=True)
    eligible = Column(Boolean, nullable=False, default=True)
    reason = Column(Text, nullable=True)

    effective_date = Column(Date, nullable=False)
    expires_date = Column(Date, nullable=True)

    notes = Column(Text, nullable=True)
    created_by = Column(Integer, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    def __repr__(self):
        return f"<VotingEligibilityRule(member={self.member_id}, type={self.proposal_type}, eligible={self.eligible})>"
