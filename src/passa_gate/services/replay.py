"""Durable replay ledger backing one-time credential use."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from passa_gate.db.time import as_utc
from passa_gate.models import ScanRecord

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScanEntry:
    """Immutable view of a stored scan record."""

    ticket_id: int
    nonce: str
    event_id: int
    owner_id: int
    scanned_by: str
    scanned_at: datetime

    @classmethod
    def from_record(cls, record: ScanRecord) -> ScanEntry:
        return cls(
            ticket_id=record.ticket_id,
            nonce=record.nonce,
            event_id=record.event_id,
            owner_id=record.owner_id,
            scanned_by=record.scanned_by,
            scanned_at=as_utc(record.scanned_at),
        )


@dataclass(frozen=True)
class ConsumeResult:
    """Outcome of an insert-if-absent on the ledger.

    `entry` is always the stored row: the caller's own on first use, the
    original admission otherwise.
    """

    first_use: bool
    entry: ScanEntry


@dataclass(frozen=True)
class AttendanceEntry:
    """A ticket admitted to an event."""

    ticket_id: int
    owner_id: int
    first_scanned_at: datetime
    admissions: int


class ReplayLedger:
    """Storage contract for `scan_records`.

    `consume` relies on the `(ticket_id, nonce)` unique constraint and never
    reads before writing, so concurrent gates racing on the same credential
    are serialized by the database: exactly one insert commits.
    """

    def __init__(self, db: Session) -> None:
        self._db = db

    def consume(
        self,
        *,
        ticket_id: int,
        nonce: str,
        event_id: int,
        owner_id: int,
        scanned_by: str,
        scanned_at: datetime,
    ) -> ConsumeResult:
        """Atomically record first use of `(ticket_id, nonce)`.

        Commits on success. On a uniqueness violation the session is rolled
        back and the original record is returned with `first_use=False`.
        Both paths perform the same insert attempt followed by one lookup.
        """
        self._db.add(
            ScanRecord(
                ticket_id=ticket_id,
                nonce=nonce,
                event_id=event_id,
                owner_id=owner_id,
                scanned_by=scanned_by,
                scanned_at=scanned_at,
            )
        )
        try:
            self._db.commit()
            first_use = True
        except IntegrityError:
            self._db.rollback()
            first_use = False

        stored = self.lookup(ticket_id, nonce)
        if stored is None:
            # Unique violation without a visible row means another constraint failed.
            raise RuntimeError(f"Scan record for ticket {ticket_id} could not be stored")
        return ConsumeResult(first_use=first_use, entry=stored)

    def lookup(self, ticket_id: int, nonce: str) -> ScanEntry | None:
        """Return the stored record for a credential, if any."""
        record = self._db.execute(
            select(ScanRecord).where(
                ScanRecord.ticket_id == ticket_id,
                ScanRecord.nonce == nonce,
            )
        ).scalar_one_or_none()
        return ScanEntry.from_record(record) if record is not None else None

    def history(self, event_id: int, *, limit: int = 100, offset: int = 0) -> list[ScanEntry]:
        """Return admissions for an event, newest first."""
        records = self._db.execute(
            select(ScanRecord)
            .where(ScanRecord.event_id == event_id)
            .order_by(ScanRecord.scanned_at.desc(), ScanRecord.id.desc())
            .limit(limit)
            .offset(offset)
        ).scalars()
        return [ScanEntry.from_record(record) for record in records]

    def attendance(self, event_id: int) -> list[AttendanceEntry]:
        """Return admitted tickets for an event, most recently admitted first."""
        first_seen = func.min(ScanRecord.scanned_at)
        rows = self._db.execute(
            select(
                ScanRecord.ticket_id,
                ScanRecord.owner_id,
                first_seen.label("first_scanned_at"),
                func.count(ScanRecord.id).label("admissions"),
            )
            .where(ScanRecord.event_id == event_id)
            .group_by(ScanRecord.ticket_id, ScanRecord.owner_id)
            .order_by(first_seen.desc())
        ).all()
        return [
            AttendanceEntry(
                ticket_id=row.ticket_id,
                owner_id=row.owner_id,
                first_scanned_at=as_utc(row.first_scanned_at),
                admissions=row.admissions,
            )
            for row in rows
        ]

    def purge_before(self, cutoff: datetime) -> int:
        """Delete records scanned before `cutoff` and return how many went.

        Only call with a cutoff older than the longest credential TTL, so
        every purged credential is already rejected as expired.
        """
        result = self._db.execute(delete(ScanRecord).where(ScanRecord.scanned_at < cutoff))
        self._db.commit()
        removed = int(result.rowcount or 0)
        logger.info("Purged %d scan records older than %s", removed, cutoff.isoformat())
        return removed
