# src/passa_gate/models/escrow_agreement.py
"""Dual-key escrow agreement state."""

from datetime import datetime

from sqlalchemy import BigInteger, Boolean, DateTime, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from passa_gate.db.session import Base


class EscrowAgreement(Base):
    """Per-event agreement gated on both parties submitting their secret.

    Only `passa_gate.services.escrow_store.EscrowAgreementStore` writes to
    this table. The contract and payout columns each form a claim triple:
    `*_reference` is set once the chain call succeeded, while `*_claim_token`
    and `*_claimed_at` are non-null only while a caller holds the claim.
    """

    __tablename__ = "escrow_agreements"

    agreement_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    event_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    organizer_secret_submitted: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )
    artist_secret_submitted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    release_triggered: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    contract_reference: Mapped[str | None] = mapped_column(Text, nullable=True)
    claim_token: Mapped[str | None] = mapped_column(String(64), nullable=True)
    claimed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    payout_reference: Mapped[str | None] = mapped_column(Text, nullable=True)
    payout_claim_token: Mapped[str | None] = mapped_column(String(64), nullable=True)
    payout_claimed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    last_error: Mapped[str | None] = mapped_column(Text, nullable=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
