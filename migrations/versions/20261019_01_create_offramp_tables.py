"""create off-ramp order, signal, settlement and intent tables

Revision ID: 3f9c1e7a2b40
Revises: 
Create Date: 2026-10-19 09:30:00.000000
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "3f9c1e7a2b40"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "offramp_orders",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("provider", sa.String(length=20), nullable=False),
        sa.Column("provider_transaction_ref", sa.String(length=128), nullable=False),
        sa.Column("wallet_address", sa.String(length=64), nullable=False),
        sa.Column("deposit_amount", sa.Numeric(20, 6), nullable=False),
        sa.Column("local_currency", sa.String(length=3), nullable=False),
        sa.Column("total_local_amount", sa.BigInteger(), nullable=False),
        sa.Column("recipient_amount", sa.BigInteger(), nullable=False),
        sa.Column("platform_fee", sa.BigInteger(), nullable=False),
        sa.Column("rate_used", sa.Numeric(20, 6), nullable=False),
        sa.Column("fee_fraction", sa.Numeric(8, 6), nullable=False),
        sa.Column("payment_method_kind", sa.String(length=20), nullable=False),
        sa.Column("payment_method", sa.Text(), nullable=False),
        sa.Column("account_name", sa.String(length=150)),
        sa.Column("canonical_status", sa.String(length=20), nullable=False, server_default="pending"),
        sa.Column("provider_raw_status", sa.String(length=64)),
        sa.Column("deposit_transaction_ref", sa.String(length=128), nullable=False),
        sa.Column("receipt_reference", sa.String(length=128)),
        sa.Column("failure_reason", sa.Text()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("last_status_at", sa.DateTime(timezone=True)),
        sa.Column("completed_at", sa.DateTime(timezone=True)),
        sa.UniqueConstraint("provider", "provider_transaction_ref", name="uq_offramp_orders_provider_ref"),
    )
    op.create_index("ix_offramp_orders_provider_transaction_ref", "offramp_orders", ["provider_transaction_ref"])
    op.create_index("ix_offramp_orders_wallet_address", "offramp_orders", ["wallet_address"])
    op.create_index("ix_offramp_orders_canonical_status", "offramp_orders", ["canonical_status"])
    op.create_index("ix_offramp_orders_deposit_transaction_ref", "offramp_orders", ["deposit_transaction_ref"])

    op.create_table(
        "order_status_events",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("order_id", sa.String(length=36), sa.ForeignKey("offramp_orders.id"), nullable=False),
        sa.Column("source", sa.String(length=20), nullable=False),
        sa.Column("raw_status", sa.String(length=64), nullable=False),
        sa.Column("from_status", sa.String(length=20), nullable=False),
        sa.Column("to_status", sa.String(length=20), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_order_status_events_order_id", "order_status_events", ["order_id"])

    op.create_table(
        "status_signals",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("provider", sa.String(length=20), nullable=False),
        sa.Column("provider_transaction_ref", sa.String(length=128), nullable=False),
        sa.Column("order_id", sa.String(length=36), sa.ForeignKey("offramp_orders.id")),
        sa.Column("source", sa.String(length=20), nullable=False),
        sa.Column("raw_status", sa.String(length=64)),
        sa.Column("canonical_status", sa.String(length=20)),
        sa.Column("outcome", sa.String(length=20), nullable=False),
        sa.Column("receipt_reference", sa.String(length=128)),
        sa.Column("failure_reason", sa.Text()),
        sa.Column("payload", sa.Text()),
        sa.Column("received_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_status_signals_provider_transaction_ref", "status_signals", ["provider_transaction_ref"])
    op.create_index("ix_status_signals_order_id", "status_signals", ["order_id"])
    op.create_index("ix_status_signals_outcome", "status_signals", ["outcome"])

    op.create_table(
        "settlements",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("order_id", sa.String(length=36), sa.ForeignKey("offramp_orders.id"), nullable=False, unique=True),
        sa.Column("amount", sa.BigInteger(), nullable=False),
        sa.Column("currency", sa.String(length=3), nullable=False),
        sa.Column("method", sa.String(length=20), nullable=False),
        sa.Column("provider_reference", sa.String(length=128)),
        sa.Column("settled_at", sa.DateTime(timezone=True), nullable=False),
    )

    op.create_table(
        "disbursement_intents",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("deposit_transaction_ref", sa.String(length=128), nullable=False, unique=True),
        sa.Column("provider", sa.String(length=20), nullable=False),
        sa.Column("local_currency", sa.String(length=3), nullable=False),
        sa.Column("request", sa.Text(), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="pending"),
        sa.Column("provider_transaction_ref", sa.String(length=128)),
        sa.Column("order_id", sa.String(length=36), sa.ForeignKey("offramp_orders.id")),
        sa.Column("last_error", sa.Text()),
        sa.Column("attempts", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True)),
    )
    op.create_index("ix_disbursement_intents_status", "disbursement_intents", ["status"])


def downgrade() -> None:
    op.drop_index("ix_disbursement_intents_status", table_name="disbursement_intents")
    op.drop_table("disbursement_intents")
    op.drop_table("settlements")
    op.drop_index("ix_status_signals_outcome", table_name="status_signals")
    op.drop_index("ix_status_signals_order_id", table_name="status_signals")
    op.drop_index("ix_status_signals_provider_transaction_ref", table_name="status_signals")
    op.drop_table("status_signals")
    op.drop_index("ix_order_status_events_order_id", table_name="order_status_events")
    op.drop_table("order_status_events")
    op.drop_index("ix_offramp_orders_deposit_transaction_ref", table_name="offramp_orders")
    op.drop_index("ix_offramp_orders_canonical_status", table_name="offramp_orders")
    op.drop_index("ix_offramp_orders_wallet_address", table_name="offramp_orders")
    op.drop_index("ix_offramp_orders_provider_transaction_ref", table_name="offramp_orders")
    op.drop_table("offramp_orders")
