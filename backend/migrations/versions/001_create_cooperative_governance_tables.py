"""Create cooperative governance tables

Revision ID: 001_cooperative_governance
Revises:
Create Date: 2026-10-16

Members, investments and voting eligibility; proposals, votes and
results; distribution periods and member distributions; per-tenant
cooperative settings. Every table carries tenant_id.
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '001_cooperative_governance'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    """Create governance tables."""
    # Members
    op.create_table(
        'cooperative_members',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('tenant_id', sa.Integer(), nullable=False),
        sa.Column('member_type', sa.String(20), nullable=False, server_default='driver'),
        sa.Column('member_reference_id', sa.Integer(), nullable=True),
        sa.Column('display_name', sa.String(255), nullable=True),
        sa.Column('ownership_shares', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('voting_rights', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('joined_date', sa.Date(), nullable=False),
        sa.Column('left_date', sa.Date(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint('ownership_shares >= 0', name='ck_member_shares_non_negative'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_cooperative_members_tenant_id', 'cooperative_members', ['tenant_id'])
    op.create_index('ix_cooperative_members_is_active', 'cooperative_members', ['is_active'])

    op.create_table(
        'cooperative_member_investments',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('tenant_id', sa.Integer(), nullable=False),
        sa.Column('member_id', sa.Integer(), sa.ForeignKey('cooperative_members.id'), nullable=False),
        sa.Column('investment_amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('investment_date', sa.Date(), nullable=False),
        sa.Column('investment_type', sa.String(50), nullable=False, server_default='capital'),
        sa.Column('returned_amount', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('returned_date', sa.Date(), nullable=True),
        sa.Column('status', sa.String(20), nullable=False, server_default='active'),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_by', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint('investment_amount > 0', name='ck_investment_amount_positive'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_cooperative_member_investments_tenant_id', 'cooperative_member_investments', ['tenant_id'])
    op.create_index('ix_cooperative_member_investments_member_id', 'cooperative_member_investments', ['member_id'])
    op.create_index('ix_cooperative_member_investments_status', 'cooperative_member_investments', ['status'])

    op.create_table(
        'cooperative_voting_eligibility',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('tenant_id', sa.Integer(), nullable=False),
        sa.Column('member_id', sa.Integer(), sa.ForeignKey('cooperative_members.id'), nullable=False),
        sa.Column('proposal_type', sa.String(50), nullable=True),
        sa.Column('eligible', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('reason', sa.Text(), nullable=True),
        sa.Column('effective_date', sa.Date(), nullable=False),
        sa.Column('expires_date', sa.Date(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_by', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_cooperative_voting_eligibility_tenant_id', 'cooperative_voting_eligibility', ['tenant_id'])
    op.create_index('ix_cooperative_voting_eligibility_member_id', 'cooperative_voting_eligibility', ['member_id'])

    # Proposals & votes
    op.create_table(
        'cooperative_proposals',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('tenant_id', sa.Integer(), nullable=False),
        sa.Column('proposal_type', sa.String(50), nullable=False),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('proposal_data', sa.JSON(), nullable=True),
        sa.Column('voting_opens', sa.DateTime(), nullable=False),
        sa.Column('voting_closes', sa.DateTime(), nullable=False),
        sa.Column('quorum_required', sa.Numeric(5, 2), nullable=False),
        sa.Column('approval_threshold', sa.Numeric(5, 2), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='draft'),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_by', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('opened_at', sa.DateTime(), nullable=True),
        sa.Column('closed_at', sa.DateTime(), nullable=True),
        sa.Column('cancelled_at', sa.DateTime(), nullable=True),
        sa.CheckConstraint('voting_opens <= voting_closes', name='ck_proposal_voting_window'),
        sa.CheckConstraint('quorum_required >= 0 AND quorum_required <= 100', name='ck_proposal_quorum'),
        sa.CheckConstraint('approval_threshold >= 0 AND approval_threshold <= 100', name='ck_proposal_threshold'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_cooperative_proposals_tenant_id', 'cooperative_proposals', ['tenant_id'])
    op.create_index('ix_cooperative_proposals_status', 'cooperative_proposals', ['status'])

    op.create_table(
        'cooperative_votes',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('tenant_id', sa.Integer(), nullable=False),
        sa.Column('proposal_id', sa.Integer(),
                  sa.ForeignKey('cooperative_proposals.id', ondelete='CASCADE'), nullable=False),
        sa.Column('member_id', sa.Integer(), sa.ForeignKey('cooperative_members.id'), nullable=False),
        sa.Column('vote_choice', sa.String(10), nullable=False),
        sa.Column('vote_weight', sa.Numeric(10, 2), nullable=False, server_default='1'),
        sa.Column('voter_comment', sa.Text(), nullable=True),
        sa.Column('cast_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint('proposal_id', 'member_id', name='uq_vote_proposal_member'),
        sa.CheckConstraint("vote_choice IN ('yes', 'no', 'abstain')", name='ck_vote_choice'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_cooperative_votes_tenant_id', 'cooperative_votes', ['tenant_id'])
    op.create_index('ix_cooperative_votes_proposal_id', 'cooperative_votes', ['proposal_id'])
    op.create_index('ix_cooperative_votes_member_id', 'cooperative_votes', ['member_id'])

    op.create_table(
        'cooperative_proposal_results',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('proposal_id', sa.Integer(),
                  sa.ForeignKey('cooperative_proposals.id', ondelete='CASCADE'), nullable=False),
        sa.Column('yes_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('no_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('abstain_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_votes', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('eligible_voters', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('yes_weight', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('no_weight', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('abstain_weight', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('total_weight', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('quorum_required', sa.Numeric(5, 2), nullable=False),
        sa.Column('approval_threshold', sa.Numeric(5, 2), nullable=False),
        sa.Column('turnout_percentage', sa.Numeric(5, 2), nullable=False, server_default='0'),
        sa.Column('approval_percentage', sa.Numeric(5, 2), nullable=False, server_default='0'),
        sa.Column('quorum_met', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('approved', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('zero_basis', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('computed_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint('proposal_id', name='uq_proposal_result_proposal'),
        sa.PrimaryKeyConstraint('id'),
    )

    # Distribution
    op.create_table(
        'cooperative_distribution_periods',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('tenant_id', sa.Integer(), nullable=False),
        sa.Column('period_type', sa.String(20), nullable=False),
        sa.Column('period_start', sa.Date(), nullable=False),
        sa.Column('period_end', sa.Date(), nullable=False),
        sa.Column('total_revenue', sa.Numeric(12, 2), nullable=True),
        sa.Column('total_expenses', sa.Numeric(12, 2), nullable=True),
        sa.Column('total_profit', sa.Numeric(12, 2), nullable=True),
        sa.Column('reserve_percentage', sa.Numeric(5, 2), nullable=False, server_default='20'),
        sa.Column('distribution_percentage', sa.Numeric(5, 2), nullable=False, server_default='80'),
        sa.Column('distribution_pool', sa.Numeric(12, 2), nullable=True),
        sa.Column('distributions_created', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('status', sa.String(20), nullable=False, server_default='draft'),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_by', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('calculated_at', sa.DateTime(), nullable=True),
        sa.Column('approved_by', sa.Integer(), nullable=True),
        sa.Column('approved_at', sa.DateTime(), nullable=True),
        sa.Column('distributed_at', sa.DateTime(), nullable=True),
        sa.Column('cancelled_at', sa.DateTime(), nullable=True),
        sa.CheckConstraint('period_start <= period_end', name='ck_period_dates'),
        sa.CheckConstraint('reserve_percentage >= 0 AND reserve_percentage <= 100', name='ck_period_reserve_pct'),
        sa.CheckConstraint(
            'distribution_percentage >= 0 AND distribution_percentage <= 100', name='ck_period_distribution_pct'
        ),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_cooperative_distribution_periods_tenant_id', 'cooperative_distribution_periods', ['tenant_id'])
    op.create_index('ix_cooperative_distribution_periods_status', 'cooperative_distribution_periods', ['status'])

    op.create_table(
        'cooperative_member_distributions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('tenant_id', sa.Integer(), nullable=False),
        sa.Column('period_id', sa.Integer(),
                  sa.ForeignKey('cooperative_distribution_periods.id', ondelete='CASCADE'), nullable=False),
        sa.Column('member_id', sa.Integer(), sa.ForeignKey('cooperative_members.id'), nullable=False),
        sa.Column('distribution_type', sa.String(20), nullable=False),
        sa.Column('ownership_shares', sa.Integer(), nullable=True),
        sa.Column('ownership_percentage', sa.Numeric(10, 4), nullable=True),
        sa.Column('investment_amount', sa.Numeric(12, 2), nullable=True),
        sa.Column('investment_percentage', sa.Numeric(10, 4), nullable=True),
        sa.Column('distribution_amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('tax_withheld', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('net_amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('paid', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('payment_method', sa.String(50), nullable=True),
        sa.Column('payment_reference', sa.String(255), nullable=True),
        sa.Column('paid_date', sa.DateTime(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint('period_id', 'member_id', name='uq_distribution_period_member'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_cooperative_member_distributions_tenant_id', 'cooperative_member_distributions', ['tenant_id'])
    op.create_index('ix_cooperative_member_distributions_period_id', 'cooperative_member_distributions', ['period_id'])
    op.create_index('ix_cooperative_member_distributions_member_id', 'cooperative_member_distributions', ['member_id'])
    op.create_index('ix_cooperative_member_distributions_paid', 'cooperative_member_distributions', ['paid'])

    # Settings
    op.create_table(
        'cooperative_settings',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('tenant_id', sa.Integer(), nullable=False),
        sa.Column('cooperative_model', sa.String(20), nullable=False, server_default='hybrid'),
        sa.Column('profit_share_member_types', sa.JSON(), nullable=False),
        sa.Column('dividend_member_types', sa.JSON(), nullable=False),
        sa.Column('dividend_basis', sa.String(20), nullable=False, server_default='shares'),
        sa.Column('dividend_pool_percentage', sa.Numeric(5, 2), nullable=False, server_default='50'),
        sa.Column('default_quorum_required', sa.Numeric(5, 2), nullable=True),
        sa.Column('default_approval_threshold', sa.Numeric(5, 2), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_cooperative_settings_tenant_id', 'cooperative_settings', ['tenant_id'], unique=True)


def downgrade():
    """Drop governance tables."""
    op.drop_table('cooperative_settings')
    op.drop_table('cooperative_member_distributions')
    op.drop_table('cooperative_distribution_periods')
    op.drop_table('cooperative_proposal_results')
    op.drop_table('cooperative_votes')
    op.drop_table('cooperative_proposals')
    op.drop_table('cooperative_voting_eligibility')
    op.drop_table('cooperative_member_investments')
    op.drop_table('cooperative_members')
