# src/passa_gate/models/scan_record.py
"""Replay ledger rows: one per consumed ticket credential."""

from datetime import datetime

from sqlalchemy import BigInteger, DateTime, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from passa_gate.db.session import Base


class ScanRecord(Base):
    """Record that a credential `(ticket_id, nonce)` has been admitted.

    The unique constraint is the authoritative replay guard; rows are
    written once at the first successful scan and never updated.
    """

    __tablename__ = "scan_records"
    __table_args__ = (
        UniqueConstraint("ticket_id", "nonce", name="uq_scan_records_ticket_nonce"),
        Index("ix_scan_records_event_id", "event_id"),
    )

    id: Mapped[int] = mapped_column(
        BigInteger().with_variant(Integer, "sqlite"),
        primary_key=True,
        autoincrement=True,
    )
    ticket_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    # Hex-encoded issuance nonce.
    nonce: Mapped[str] = mapped_column(String(64), nullable=False)
    event_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    owner_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    scanned_by: Mapped[str] = mapped_column(Text, nullable=False)
    scanned_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
