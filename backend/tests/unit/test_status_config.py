"""
Tests for proposal and distribution period status transitions.
"""
import pytest

from app.core.status_config import (
    PeriodStatus,
    ProposalStatus,
    get_allowed_period_transitions,
    get_allowed_proposal_transitions,
    is_valid_period_transition,
    is_valid_proposal_transition,
    validate_period_transition,
    validate_proposal_transition,
)
from app.exceptions import InvalidStateError


class TestProposalTransitions:

    @pytest.mark.unit
    @pytest.mark.parametrize("current,new", [
        ("draft", "open"),
        ("draft", "cancelled"),
        ("open", "closed"),
        ("open", "cancelled"),
        ("closed", "passed"),
        ("closed", "failed"),
    ])
    def test_allowed(self, current, new):
        assert is_valid_proposal_transition(current, new)

    @pytest.mark.unit
    @pytest.mark.parametrize("current,new", [
        ("draft", "closed"),
        ("open", "passed"),
        ("open", "draft"),
        ("passed", "open"),
        ("failed", "cancelled"),
        ("cancelled", "open"),
    ])
    def test_rejected(self, current, new):
        assert not is_valid_proposal_transition(current, new)

    @pytest.mark.unit
    @pytest.mark.parametrize("terminal", [ProposalStatus.PASSED, ProposalStatus.FAILED, ProposalStatus.CANCELLED])
    def test_terminal_states(self, terminal):
        assert get_allowed_proposal_transitions(terminal.value) == []

    @pytest.mark.unit
    def test_validate_raises_with_context(self):
        with pytest.raises(InvalidStateError) as exc_info:
            validate_proposal_transition("passed", "open")

        assert exc_info.value.details["current_state"] == "passed"
        assert "terminal" in exc_info.value.message


class TestPeriodTransitions:

    @pytest.mark.unit
    def test_recalculation_allowed(self):
        assert is_valid_period_transition("calculated", "calculated")

    @pytest.mark.unit
    def test_approved_cannot_be_cancelled(self):
        assert not is_valid_period_transition("approved", "cancelled")

    @pytest.mark.unit
    def test_draft_cannot_be_approved(self):
        with pytest.raises(InvalidStateError):
            validate_period_transition("draft", "approved")

    @pytest.mark.unit
    def test_allowed_from_calculated(self):
        assert get_allowed_period_transitions(PeriodStatus.CALCULATED.value) == [
            "approved", "calculated", "cancelled", "draft",
        ]

    @pytest.mark.unit
    @pytest.mark.parametrize("terminal", ["distributed", "cancelled"])
    def test_terminal_states(self, terminal):
        assert get_allowed_period_transitions(terminal) == []
