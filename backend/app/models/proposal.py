"""
Proposal, Vote and ProposalResult Models

Democratic decision records for a cooperative tenant.
"""
from datetime import datetime

from sqlalchemy import (
    Column, Integer, String, Numeric, Boolean, DateTime, ForeignKey, Text, JSON,
    CheckConstraint, UniqueConstraint
)
from sqlalchemy.orm import relationship

from app.db.base import Base


class Proposal(Base):
    """
    A motion put to the membership.

    status values: draft, open, closed, passed, failed, cancelled.
    Core fields (dates and thresholds) are only editable while draft.
    """
    __tablename__ = "cooperative_proposals"

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Integer, nullable=False, index=True)

    # Proposal details
    proposal_type = Column(String(50), nullable=False)  # policy, financial, board_election, ...
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    proposal_data = Column(JSON, nullable=True)  # type-specific payload (budget, candidates)

    # Voting window
    voting_opens = Column(DateTime, nullable=False)
    voting_closes = Column(DateTime, nullable=False)

    # Voting rules (percentages 0-100)
    quorum_required = Column(Numeric(5, 2), nullable=False)
    approval_threshold = Column(Numeric(5, 2), nullable=False)

    status = Column(String(20), nullable=False, default="draft", index=True)

    notes = Column(Text, nullable=True)

    # Audit
    created_by = Column(Integer, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)
    opened_at = Column(DateTime, nullable=True)
    closed_at = Column(DateTime, nullable=True)
    cancelled_at = Column(DateTime, nullable=True)

    __table_args__ = (
        CheckConstraint("voting_opens <= voting_closes", name="ck_proposal_voting_window"),
        CheckConstraint("quorum_required >= 0 AND quorum_required <= 100", name="ck_proposal_quorum"),
        CheckConstraint("approval_threshold >= 0 AND approval_threshold <= 100", name="ck_proposal_threshold"),
    )

    votes = relationship("Vote", back_populates="proposal", cascade="all, delete-orphan")
    result = relationship(
        "ProposalResult", back_populates="proposal", uselist=False, cascade="all, delete-orphan"
    )

    def __repr__(self):
        return f"<Proposal(id={self.id}, title={self.title!r}, status={self.status})>"

    def voting_status_at(self, now: datetime) -> str:
        """Window position for display: pending, active or expired."""
        if now < self.voting_opens:
            return "pending"
        if now > self.voting_closes:
            return "expired"
        return "active"


class Vote(Base):
    """One vote per (proposal, member); re-casting replaces the choice."""
    __tablename__ = "cooperative_votes"

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Integer, nullable=False, index=True)
    proposal_id = Column(Integer, ForeignKey("cooperative_proposals.id", ondelete="CASCADE"), nullable=False, index=True)
    member_id = Column(Integer, ForeignKey("cooperative_members.id"), nullable=False, index=True)

    vote_choice = Column(String(10), nullable=False)  # yes, no, abstain
    vote_weight = Column(Numeric(10, 2), nullable=False, default=1)  # shares at cast time
    voter_comment = Column(Text, nullable=True)
    cast_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint("proposal_id", "member_id", name="uq_vote_proposal_member"),
        CheckConstraint("vote_choice IN ('yes', 'no', 'abstain')", name="ck_vote_choice"),
    )

    proposal = relationship("Proposal", back_populates="votes")

    def __repr__(self):
        return f"<Vote(proposal={self.proposal_id}, member={self.member_id}, choice={self.vote_choice})>"


class ProposalResult(Base):
    """Binding tally written once, when the proposal closes."""
    __tablename__ = "cooperative_proposal_results"

    id = Column(Integer, primary_key=True, index=True)
    proposal_id = Column(
        Integer, ForeignKey("cooperative_proposals.id", ondelete="CASCADE"),
        nullable=False, unique=True
    )

    yes_count = Column(Integer, nullable=False, default=0)
    no_count = Column(Integer, nullable=False, default=0)
    abstain_count = Column(Integer, nullable=False, default=0)
    total_votes = Column(Integer, nullable=False, default=0)
    eligible_voters = Column(Integer, nullable=False, default=0)

    yes_weight = Column(Numeric(12, 2), nullable=False, default=0)
    no_weight = Column(Numeric(12, 2), nullable=False, default=0)
    abstain_weight = Column(Numeric(12, 2), nullable=False, default=0)
    total_weight = Column(Numeric(12, 2), nullable=False, default=0)

    quorum_required = Column(Numeric(5, 2), nullable=False)
    approval_threshold = Column(Numeric(5, 2), nullable=False)
    turnout_percentage = Column(Numeric(5, 2), nullable=False, default=0)
    approval_percentage = Column(Numeric(5, 2), nullable=False, default=0)
    quorum_met = Column(Boolean, nullable=False, default=False)
    approved = Column(Boolean, nullable=False, default=False)
    zero_basis = Column(Boolean, nullable=False, default=False)

    computed_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    proposal = relationship("Proposal", back_populates="result")

    def __repr__(self):
        return f"<ProposalResult(proposal={self.proposal_id}, approved={self.approved})>"
