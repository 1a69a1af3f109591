"""Status Configuration and Transition Rules

This module defines valid status values and allowed transitions for
Proposals and Distribution Periods, plus the fixed vocabularies used by
members, votes and distributions. Status transitions are validated
to prevent invalid state changes.
"""
from enum import Enum
from typing import Dict, List, Set

from app.exceptions import InvalidStateError


# =============================================================================
# Member vocabulary
# =============================================================================

class MemberType(str, Enum):
    """Kinds of cooperative member"""
    DRIVER = "driver"
    CUSTOMER = "customer"
    STAFF = "staff"
    OTHER = "other"


class VoteChoice(str, Enum):
    YES = "yes"
    NO = "no"
    ABSTAIN = "abstain"


class DistributionType(str, Enum):
    PROFIT_SHARE = "profit_share"  # workers, by ownership shares
    DIVIDEND = "dividend"  # customers/investors, by investment stake


class DividendBasis(str, Enum):
    """How dividend recipients are weighted"""
    SHARES = "shares"
    INVESTMENT = "investment"


class CooperativeModel(str, Enum):
    WORKER = "worker"
    CONSUMER = "consumer"
    HYBRID = "hybrid"


class PeriodType(str, Enum):
    QUARTERLY = "quarterly"
    ANNUAL = "annual"
    SPECIAL = "special"


class PaymentMethod(str, Enum):
    BANK_TRANSFER = "bank_transfer"
    CHECK = "check"
    CASH = "cash"
    REINVEST = "reinvest"
    SHARES = "shares"
    OTHER = "other"


class InvestmentStatus(str, Enum):
    ACTIVE = "active"
    RETURNED = "returned"
    CONVERTED = "converted"


class InvestmentType(str, Enum):
    CAPITAL = "capital"
    SHARE_PURCHASE = "share_purchase"
    LOAN = "loan"


# =============================================================================
# Proposal Status
# =============================================================================

class ProposalStatus(str, Enum):
    """Valid status values for Proposals"""
    DRAFT = "draft"
    OPEN = "open"
    CLOSED = "closed"  # transient: resolved to passed/failed in the same transaction
    PASSED = "passed"
    FAILED = "failed"
    CANCELLED = "cancelled"


# Allowed transitions: current_status -> set of allowed next statuses
PROPOSAL_TRANSITIONS: Dict[str, Set[str]] = {
    ProposalStatus.DRAFT: {
        ProposalStatus.OPEN,
        ProposalStatus.CANCELLED,
    },
    ProposalStatus.OPEN: {
        ProposalStatus.CLOSED,
        ProposalStatus.CANCELLED,
    },
    ProposalStatus.CLOSED: {
        ProposalStatus.PASSED,
        ProposalStatus.FAILED,
    },
    ProposalStatus.PASSED: set(),  # Terminal
    ProposalStatus.FAILED: set(),  # Terminal
    ProposalStatus.CANCELLED: set(),  # Terminal
}

PROPOSAL_RESOLVED_STATUSES: Set[str] = {
    ProposalStatus.CLOSED,
    ProposalStatus.PASSED,
    ProposalStatus.FAILED,
}


def get_allowed_proposal_transitions(current_status: str) -> List[str]:
    """Get list of allowed next statuses for a proposal"""
    return sorted(s.value for s in PROPOSAL_TRANSITIONS.get(current_status, set()))


def is_valid_proposal_transition(current_status: str, new_status: str) -> bool:
    """Check if a proposal status transition is valid"""
    allowed = PROPOSAL_TRANSITIONS.get(current_status, set())
    return new_status in allowed


# =============================================================================
# Distribution Period Status
# =============================================================================

class PeriodStatus(str, Enum):
    """Valid status values for Distribution Periods"""
    DRAFT = "draft"
    CALCULATED = "calculated"
    APPROVED = "approved"
    DISTRIBUTED = "distributed"
    CANCELLED = "cancelled"


PERIOD_TRANSITIONS: Dict[str, Set[str]] = {
    PeriodStatus.DRAFT: {
        PeriodStatus.CALCULATED,
        PeriodStatus.CANCELLED,
    },
    PeriodStatus.CALCULATED: {
        PeriodStatus.CALCULATED,  # Recalculation (destructive replace)
        PeriodStatus.DRAFT,  # Financial inputs edited after calculation
        PeriodStatus.APPROVED,
        PeriodStatus.CANCELLED,
    },
    PeriodStatus.APPROVED: {
        PeriodStatus.DISTRIBUTED,
    },
    PeriodStatus.DISTRIBUTED: set(),  # Terminal
    PeriodStatus.CANCELLED: set(),  # Terminal
}

# Periods whose distribution rows may receive payments
PAYABLE_PERIOD_STATUSES: Set[str] = {
    PeriodStatus.APPROVED,
    PeriodStatus.DISTRIBUTED,
}


def get_allowed_period_transitions(current_status: str) -> List[str]:
    """Get list of allowed next statuses for a distribution period"""
    return sorted(s.value for s in PERIOD_TRANSITIONS.get(current_status, set()))


def is_valid_period_transition(current_status: str, new_status: str) -> bool:
    """Check if a distribution period status transition is valid"""
    allowed = PERIOD_TRANSITIONS.get(current_status, set())
    return new_status in allowed


def sources_for(transitions: Dict[str, Set[str]], new_status: str) -> List[str]:
    """Statuses from which new_status can be reached (used for CAS filters)."""
    return sorted(src.value for src, targets in transitions.items() if new_status in targets)


# =============================================================================
# Validation Helpers
# =============================================================================

def validate_proposal_transition(current: str, new: str) -> None:
    """Validate and raise error if transition is invalid"""
    if not is_valid_proposal_transition(current, new):
        allowed = get_allowed_proposal_transitions(current)
        raise InvalidStateError(
            f"Invalid proposal status transition: '{current}' -> '{new}'. "
            f"Allowed: {allowed if allowed else 'none (terminal state)'}",
            current_state=current,
            allowed_states=sources_for(PROPOSAL_TRANSITIONS, new),
        )


def validate_period_transition(current: str, new: str) -> None:
    """Validate and raise error if transition is invalid"""
    if not is_valid_period_transition(current, new):
        allowed = get_allowed_period_transitions(current)
        raise InvalidStateError(
            f"Invalid distribution period status transition: '{current}' -> '{new}'. "
            f"Allowed: {allowed if allowed else 'none (terminal state)'}",
            current_state=current,
            allowed_states=sources_for(PERIOD_TRANSITIONS, new),
        )
