"""Database models"""
from app.models.member import CooperativeMember, MemberInvestment, VotingEligibilityRule
from app.models.proposal import Proposal, Vote, ProposalResult
from app.models.distribution import DistributionPeriod, MemberDistribution
from app.models.cooperative_settings import CooperativeSettings

__all__ = [
    # Membership
    "CooperativeMember",
    "MemberInvestment",
    "VotingEligibilityRule",
    # Voting
    "Proposal",
    "Vote",
    "ProposalResult",
    # Distribution
    "DistributionPeriod",
    "MemberDistribution",
    # Settings
    "CooperativeSettings",
]
