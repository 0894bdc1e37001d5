"""add payable/payer lookup index on payments

Revision ID: 0002_payment_lookup_index
Revises: 0001_paygate
Create Date: 2026-10-19
"""

from alembic import op


revision = "0002_payment_lookup_index"
down_revision = "0001_paygate"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_index(
        "ix_payments_payable_payer",
        "payments",
        ["component", "payment_area", "item_id", "payer_id"],
    )


def downgrade() -> None:
    op.drop_index("ix_payments_payable_payer", table_name="payments")
