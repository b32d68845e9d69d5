"""ticket gate tables

Revision ID: 3f1c2a9b7d10
Revises:
Create Date: 2026-10-19 09:12:44.512301

"""
from __future__ import annotations

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "3f1c2a9b7d10"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create the replay ledger and escrow agreement tables."""
    op.create_table(
        "scan_records",
        sa.Column("id", sa.BigInteger().with_variant(sa.Integer(), "sqlite"), autoincrement=True, nullable=False),
        sa.Column("ticket_id", sa.BigInteger(), nullable=False),
        sa.Column("nonce", sa.String(length=64), nullable=False),
        sa.Column("event_id", sa.BigInteger(), nullable=False),
        sa.Column("owner_id", sa.BigInteger(), nullable=False),
        sa.Column("scanned_by", sa.Text(), nullable=False),
        sa.Column("scanned_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("ticket_id", "nonce", name="uq_scan_records_ticket_nonce"),
    )
    op.create_index("ix_scan_records_event_id", "scan_records", ["event_id"])

    op.create_table(
        "escrow_agreements",
        sa.Column("agreement_id", sa.String(length=64), nullable=False),
        sa.Column("event_id", sa.BigInteger(), nullable=False),
        sa.Column("organizer_secret_submitted", sa.Boolean(), nullable=False),
        sa.Column("artist_secret_submitted", sa.Boolean(), nullable=False),
        sa.Column("release_triggered", sa.Boolean(), nullable=False),
        sa.Column("contract_reference", sa.Text(), nullable=True),
        sa.Column("claim_token", sa.String(length=64), nullable=True),
        sa.Column("claimed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("payout_reference", sa.Text(), nullable=True),
        sa.Column("payout_claim_token", sa.String(length=64), nullable=True),
        sa.Column("payout_claimed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_error", sa.Text(), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("agreement_id"),
    )


def downgrade() -> None:
    """Drop the ticket gate tables."""
    op.drop_table("escrow_agreements")
    op.drop_index("ix_scan_records_event_id", table_name="scan_records")
    op.drop_table("scan_records")
