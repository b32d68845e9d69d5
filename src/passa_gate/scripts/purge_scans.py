"""Delete replay-ledger records older than the retention window."""
from __future__ import annotations

import argparse
import sys
from datetime import timedelta

from passa_gate.core.settings import settings
from passa_gate.db.session import SessionLocal
from passa_gate.db.time import utcnow
from passa_gate.services.replay import ReplayLedger

# Credentials may be issued with up to this TTL through the API.
MAX_CREDENTIAL_TTL = timedelta(days=14)


def resolve_cutoff(retention_days: int, ttl_hours: int) -> timedelta:
    """Return the retention window, refusing one shorter than any live credential."""
    retention = timedelta(days=retention_days)
    longest_ttl = max(timedelta(hours=ttl_hours), MAX_CREDENTIAL_TTL)
    if retention <= longest_ttl:
        raise ValueError(
            f"Retention of {retention_days} days would forget credentials that are still valid"
        )
    return retention


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Purge expired scan records")
    parser.add_argument(
        "--retention-days",
        type=int,
        default=settings.scan_record_retention_days,
        help="Keep records newer than this many days (default from SCAN_RECORD_RETENTION_DAYS)",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Only report the cutoff without deleting anything.",
    )
    args = parser.parse_args(argv)

    try:
        retention = resolve_cutoff(args.retention_days, settings.ticket_credential_ttl_hours)
    except ValueError as exc:
        print(f"[purge_scans] ERROR: {exc}", file=sys.stderr)
        sys.exit(2)

    cutoff = utcnow() - retention
    if args.dry_run:
        print(f"[purge_scans] would delete scan records before {cutoff.isoformat()}")
        return

    with SessionLocal() as db:
        removed = ReplayLedger(db).purge_before(cutoff)
    print(f"[purge_scans] deleted {removed} scan records before {cutoff.isoformat()}")


if __name__ == "__main__":
    main()
