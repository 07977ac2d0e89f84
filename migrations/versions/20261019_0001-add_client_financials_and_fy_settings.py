"""add_client_financials_and_fy_settings

Revision ID: 3f9c2a71d0b4
Revises:
Create Date: 2026-10-19 00:01:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3f9c2a71d0b4'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # =========================================================================
    # Client Financials Table
    # =========================================================================
    op.create_table(
        'client_financials',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('client_id', sa.String(), nullable=False),
        sa.Column('client_name', sa.String(), nullable=True),
        sa.Column('financial_year', sa.String(), nullable=False),
        sa.Column('product_line', sa.String(), nullable=False),
        sa.Column('history', sa.JSON(), nullable=False),
        sa.Column('months', sa.JSON(), nullable=False),
        sa.Column('deal_details', sa.JSON(), nullable=False),
        sa.Column('comments', sa.Text(), nullable=True),
        sa.Column('full_year_forecast', sa.Numeric(precision=15, scale=2), nullable=False, server_default='0'),
        sa.Column('last_updated_by', sa.String(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_client_financials_client_id', 'client_financials', ['client_id'])
    op.create_index('ix_client_financials_financial_year', 'client_financials', ['financial_year'])
    op.create_index('ix_client_financials_client_year', 'client_financials', ['client_id', 'financial_year'])

    # =========================================================================
    # Financial Year Settings Table
    # =========================================================================
    op.create_table(
        'financial_year_settings',
        sa.Column('tenant_id', sa.String(), nullable=False),
        sa.Column('start_month_name', sa.String(), nullable=False, server_default='March'),
        sa.Column('end_month_name', sa.String(), nullable=False, server_default='February'),
        sa.Column('current_financial_year', sa.String(), nullable=False),
        sa.Column('reporting_month_name', sa.String(), nullable=True),
        sa.Column('currency_symbol', sa.String(), nullable=False, server_default='R'),
        sa.Column('updated_by', sa.String(), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint('tenant_id')
    )


def downgrade() -> None:
    op.drop_table('financial_year_settings')

    op.drop_index('ix_client_financials_client_year', table_name='client_financials')
    op.drop_index('ix_client_financials_financial_year', table_name='client_financials')
    op.drop_index('ix_client_financials_client_id', table_name='client_financials')
    op.drop_table('client_financials')
