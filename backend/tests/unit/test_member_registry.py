"""
Unit Tests for MemberRegistry and CooperativeSettingsService
"""
import pytest
from datetime import date, timedelta
from decimal import Decimal

from pydantic import ValidationError as SchemaValidationError

from app.exceptions import BusinessRuleError, DuplicateError, NotFoundError, ValidationError
from app.schemas.member import (
    EligibilityRuleCreate,
    InvestmentCreate,
    InvestmentReturn,
    MemberCreate,
    MemberUpdate,
)
from app.services.cooperative_settings import (
    CooperativeSettingsService,
    DistributionPolicy,
    validate_member_type_sets,
)
from app.services.member_registry import MemberRegistry
from tests.factories import (
    OTHER_TENANT_ID,
    TENANT_ID,
    create_test_investment,
    create_test_member,
)


@pytest.fixture
def registry(db_session):
    return MemberRegistry(db_session, TENANT_ID)


class TestMembers:

    @pytest.mark.unit
    def test_enroll_defaults(self, registry):
        member = registry.enroll_member(MemberCreate(member_type="staff", ownership_shares=5))

        assert member.id is not None
        assert member.tenant_id == TENANT_ID
        assert member.is_active is True
        assert member.voting_rights is True
        assert member.joined_date == date.today()

    @pytest.mark.unit
    def test_host_record_enrolled_once(self, registry):
        first = registry.enroll_member(MemberCreate(member_type="driver", member_reference_id=77))
        other_type = registry.enroll_member(MemberCreate(member_type="customer", member_reference_id=77))

        with pytest.raises(DuplicateError) as exc_info:
            registry.enroll_member(MemberCreate(member_type="driver", member_reference_id=77))

        assert other_type.id != first.id
        assert exc_info.value.details["member_id"] == first.id
        assert exc_info.value.error_code == "DUPLICATE_ERROR"

    @pytest.mark.unit
    def test_update_ignores_nulls(self, db_session, registry):
        member = create_test_member(db_session, ownership_shares=4, display_name="Ana")

        registry.update_member(member.id, MemberUpdate(ownership_shares=9, display_name=None))

        assert member.ownership_shares == 9
        assert member.display_name == "Ana"

    @pytest.mark.unit
    def test_update_deactivates_and_reactivates(self, db_session, registry):
        member = create_test_member(db_session)

        registry.update_member(member.id, MemberUpdate(is_active=False))
        assert member.is_active is False
        assert member.left_date == date.today()

        registry.update_member(member.id, MemberUpdate(is_active=True))
        assert member.is_active is True
        assert member.left_date is None

    @pytest.mark.unit
    def test_deactivate_is_idempotent(self, db_session, registry):
        member = create_test_member(db_session)

        registry.deactivate_member(member.id, left_date=date(2025, 6, 30))
        registry.deactivate_member(member.id, left_date=date(2025, 9, 30))

        assert member.left_date == date(2025, 6, 30)

    @pytest.mark.unit
    def test_left_before_joined_rejected(self, db_session, registry):
        member = create_test_member(db_session, joined_date=date(2025, 5, 1))

        with pytest.raises(BusinessRuleError):
            registry.deactivate_member(member.id, left_date=date(2025, 4, 1))

    @pytest.mark.unit
    def test_other_tenant_member_not_found(self, db_session, registry):
        outsider = create_test_member(db_session, tenant_id=OTHER_TENANT_ID)

        with pytest.raises(NotFoundError):
            registry.get_member(outsider.id)

    @pytest.mark.unit
    def test_list_filters(self, db_session, registry):
        create_test_member(db_session, member_type="driver")
        create_test_member(db_session, member_type="customer")
        create_test_member(db_session, member_type="driver", is_active=False)

        assert len(registry.list_members()) == 3
        assert len(registry.list_members(active_only=True)) == 2
        assert len(registry.list_members(member_type="driver")) == 2


class TestEligibility:

    @pytest.mark.unit
    def test_count_eligible_voters(self, db_session, registry):
        create_test_member(db_session)
        create_test_member(db_session)
        create_test_member(db_session, voting_rights=False)
        create_test_member(db_session, is_active=False)
        create_test_member(db_session, tenant_id=OTHER_TENANT_ID)

        assert registry.count_eligible_voters() == 2
        assert len(registry.list_eligible_members()) == 3

    @pytest.mark.unit
    def test_eligible_as_of_date(self, db_session, registry):
        create_test_member(db_session, joined_date=date(2024, 1, 1))
        create_test_member(db_session, joined_date=date(2025, 6, 1))
        create_test_member(
            db_session, joined_date=date(2024, 1, 1), left_date=date(2025, 3, 1), is_active=False,
        )

        assert registry.count_eligible_voters(as_of=date(2025, 1, 1)) == 2
        assert registry.count_eligible_voters(as_of=date(2025, 7, 1)) == 2
        assert registry.count_eligible_voters(as_of=date(2023, 12, 31)) == 0

    @pytest.mark.unit
    def test_rule_for_all_types(self, db_session, registry):
        member = create_test_member(db_session)
        registry.add_eligibility_rule(
            member.id,
            EligibilityRuleCreate(eligible=False, reason="dues unpaid", effective_date=date(2025, 1, 1)),
        )

        assert registry.voting_block_reason(member, "policy", date(2025, 2, 1)) == "dues unpaid"
        assert registry.voting_block_reason(member, "financial", date(2025, 2, 1)) == "dues unpaid"
        assert registry.is_eligible_to_vote(member, "policy", date(2024, 12, 31))

    @pytest.mark.unit
    def test_rule_does_not_change_eligible_count(self, db_session, registry):
        member = create_test_member(db_session)
        registry.add_eligibility_rule(member.id, EligibilityRuleCreate(eligible=False))

        assert registry.count_eligible_voters() == 1

    @pytest.mark.unit
    def test_delete_rule(self, db_session, registry):
        member = create_test_member(db_session)
        rule = registry.add_eligibility_rule(member.id, EligibilityRuleCreate(eligible=False))

        registry.delete_eligibility_rule(rule.id)

        assert registry.list_eligibility_rules(member.id) == []
        assert registry.is_eligible_to_vote(member, "policy", date.today())

    @pytest.mark.unit
    def test_rule_dates_validated(self, db_session, registry):
        member = create_test_member(db_session)

        with pytest.raises(SchemaValidationError):
            registry.add_eligibility_rule(
                member.id,
                EligibilityRuleCreate(
                    effective_date=date.today(),
                    expires_date=date.today() - timedelta(days=1),
                ),
            )


class TestInvestments:

    @pytest.mark.unit
    def test_record_and_sum(self, db_session, registry):
        member = create_test_member(db_session, member_type="customer")

        registry.record_investment(member.id, InvestmentCreate(investment_amount=Decimal("250.005")))
        registry.record_investment(member.id, InvestmentCreate(investment_amount=Decimal("100")))

        assert registry.active_investment_by_member() == {member.id: Decimal("350.01")}

    @pytest.mark.unit
    def test_partial_then_full_return(self, db_session, registry):
        member = create_test_member(db_session, member_type="customer")
        investment = create_test_investment(db_session, member, Decimal("1000.00"))

        registry.return_investment(investment.id, InvestmentReturn(returned_amount=Decimal("400")))
        assert investment.status == "active"
        assert registry.active_investment_by_member() == {member.id: Decimal("600.00")}

        registry.return_investment(investment.id, InvestmentReturn())
        assert investment.status == "returned"
        assert investment.returned_amount == Decimal("1000.00")
        assert registry.active_investment_by_member() == {}

    @pytest.mark.unit
    def test_over_return_rejected(self, db_session, registry):
        member = create_test_member(db_session)
        investment = create_test_investment(db_session, member, Decimal("100.00"))

        with pytest.raises(BusinessRuleError):
            registry.return_investment(investment.id, InvestmentReturn(returned_amount=Decimal("150")))


class TestCooperativeSettings:

    @pytest.mark.unit
    def test_policy_defaults_without_row(self, db_session):
        policy = CooperativeSettingsService(db_session, TENANT_ID).policy()

        assert policy == DistributionPolicy()
        assert policy.distribution_type_for("driver") == "profit_share"
        assert policy.distribution_type_for("customer") == "dividend"

    @pytest.mark.unit
    def test_cooperative_model_limits_paid_groups(self, db_session):
        service = CooperativeSettingsService(db_session, TENANT_ID)

        service.update({"cooperative_model": "worker"})
        worker = service.policy()
        service.update({"cooperative_model": "consumer"})
        consumer = service.policy()

        assert worker.distribution_type_for("customer") is None
        assert worker.effective_dividend_pool_percentage == Decimal("0")
        assert consumer.distribution_type_for("driver") is None
        assert consumer.distribution_type_for("customer") == "dividend"
        assert consumer.effective_dividend_pool_percentage == Decimal("100")

    @pytest.mark.unit
    def test_get_or_create_once(self, db_session):
        service = CooperativeSettingsService(db_session, TENANT_ID)

        first = service.get_or_create()
        second = service.get_or_create()

        assert first.id == second.id
        assert first.profit_share_member_types == ["driver", "staff"]

    @pytest.mark.unit
    def test_update_member_types(self, db_session):
        service = CooperativeSettingsService(db_session, TENANT_ID)

        service.update({
            "profit_share_member_types": ["driver", "staff", "other"],
            "dividend_member_types": ["customer"],
            "dividend_basis": "investment",
        })

        policy = service.policy()
        assert policy.distribution_type_for("other") == "profit_share"
        assert policy.dividend_basis == "investment"

    @pytest.mark.unit
    def test_overlapping_types_rejected(self):
        with pytest.raises(ValidationError):
            validate_member_type_sets(["driver", "customer"], ["customer"])

    @pytest.mark.unit
    def test_unknown_types_rejected(self):
        with pytest.raises(ValidationError):
            validate_member_type_sets(["pilot"], [])

    @pytest.mark.unit
    def test_voting_defaults_per_tenant(self, db_session):
        service = CooperativeSettingsService(db_session, TENANT_ID)
        service.update({"default_approval_threshold": Decimal("66.67")})

        assert service.voting_defaults() == (Decimal("50"), Decimal("66.67"))
        assert CooperativeSettingsService(db_session, OTHER_TENANT_ID).voting_defaults() == (
            Decimal("50"), Decimal("50"),
        )
