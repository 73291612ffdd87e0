"""Initial schema: profiles, sellers, bank accounts, payout requests, ledger, idempotency, outbox

Revision ID: 001
Revises:
Create Date: 2024-01-01

"""
from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql


revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Identity, seller and bank account tables belong to the marketplace;
    # this service only reads them.
    op.create_table(
        "profiles",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("role", sa.String(20), nullable=False, server_default="customer"),
        sa.Column("full_name", sa.String(255), nullable=True),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    op.create_table(
        "sellers",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("user_id", sa.String(36), sa.ForeignKey("profiles.id"), nullable=False, unique=True),
        sa.Column("store_name", sa.String(255), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="ACTIVE"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    op.create_table(
        "seller_bank_accounts",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("seller_id", sa.String(36), sa.ForeignKey("sellers.id"), nullable=False),
        sa.Column("bank_name", sa.String(255), nullable=False),
        sa.Column("account_holder_name", sa.String(255), nullable=False),
        sa.Column("iban", sa.String(34), nullable=False),
        sa.Column("currency", sa.String(10), nullable=False, server_default="TRY"),
        sa.Column("is_default", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("is_verified", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), onupdate=sa.func.now()),
    )
    op.create_index("ix_seller_bank_accounts_seller_id", "seller_bank_accounts", ["seller_id"])

    op.create_table(
        "seller_payout_requests",
        sa.Column("id", sa.String(26), primary_key=True),
        sa.Column("seller_id", sa.String(36), sa.ForeignKey("sellers.id"), nullable=False),
        sa.Column(
            "seller_bank_account_id",
            sa.String(36),
            sa.ForeignKey("seller_bank_accounts.id"),
            nullable=False,
        ),
        sa.Column("requested_amount", sa.Numeric(14, 2), nullable=False),
        sa.Column("currency", sa.String(10), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="PENDING_APPROVAL"),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("requested_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint("requested_amount > 0", name="ck_seller_payout_requests_amount_positive"),
    )
    op.create_index("ix_seller_payout_requests_seller_id", "seller_payout_requests", ["seller_id"])
    op.create_index("ix_seller_payout_requests_status", "seller_payout_requests", ["status"])

    op.create_table(
        "seller_ledger_entries",
        sa.Column("id", sa.String(26), primary_key=True),
        sa.Column("seller_id", sa.String(36), sa.ForeignKey("sellers.id"), nullable=False),
        sa.Column(
            "payout_request_id",
            sa.String(26),
            sa.ForeignKey("seller_payout_requests.id"),
            nullable=True,
        ),
        sa.Column("transaction_type", sa.String(40), nullable=False),
        sa.Column("amount", sa.Numeric(14, 2), nullable=False),
        sa.Column("currency", sa.String(10), nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("balance_after_transaction", sa.Numeric(14, 2), nullable=False),
        sa.Column("reference_details", postgresql.JSONB, nullable=False, server_default="{}"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index(
        "ix_seller_ledger_entries_seller_created",
        "seller_ledger_entries",
        ["seller_id", "created_at", "id"],
    )
    # One debit per payout request
    op.create_index(
        "ux_seller_ledger_entries_payout_debit",
        "seller_ledger_entries",
        ["payout_request_id"],
        unique=True,
        postgresql_where=sa.text("transaction_type = 'PAYOUT_REQUEST_DEBIT'"),
    )

    op.create_table(
        "idempotency_keys",
        sa.Column("seller_id", sa.String(36), sa.ForeignKey("sellers.id"), primary_key=True),
        sa.Column("key", sa.String(255), primary_key=True),
        sa.Column(
            "payout_request_id",
            sa.String(26),
            sa.ForeignKey("seller_payout_requests.id"),
            nullable=True,
        ),
        sa.Column("response_data", postgresql.JSONB, nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="PENDING"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_idempotency_keys_expires_at", "idempotency_keys", ["expires_at"])

    op.create_table(
        "outbox",
        sa.Column("id", sa.String(26), primary_key=True),
        sa.Column("aggregate_type", sa.String(100), nullable=False),
        sa.Column("aggregate_id", sa.String(26), nullable=False),
        sa.Column("event_type", sa.String(100), nullable=False),
        sa.Column("payload", postgresql.JSONB, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("published_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("retry_count", sa.Integer, nullable=False, server_default="0"),
    )
    op.create_index(
        "ix_outbox_unpublished",
        "outbox",
        ["created_at"],
        postgresql_where=sa.text("published_at IS NULL"),
    )
    op.create_index("ix_outbox_aggregate", "outbox", ["aggregate_type", "aggregate_id"])


def downgrade() -> None:
    op.drop_table("outbox")
    op.drop_table("idempotency_keys")
    op.drop_table("seller_ledger_entries")
    op.drop_table("seller_payout_requests")
    op.drop_table("seller_bank_accounts")
    op.drop_table("sellers")
    op.drop_table("profiles")
