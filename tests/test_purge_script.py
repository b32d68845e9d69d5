"""Tests for the scan record retention script."""

from datetime import timedelta

import pytest
from sqlalchemy.orm import sessionmaker

from passa_gate.db.time import utcnow
from passa_gate.scripts import purge_scans
from passa_gate.services.replay import ReplayLedger


def test_resolve_cutoff_refuses_window_shorter_than_credential_ttl() -> None:
    with pytest.raises(ValueError):
        purge_scans.resolve_cutoff(retention_days=7, ttl_hours=24)
    with pytest.raises(ValueError):
        purge_scans.resolve_cutoff(retention_days=30, ttl_hours=24 * 40)

    assert purge_scans.resolve_cutoff(retention_days=30, ttl_hours=24) == timedelta(days=30)


def test_main_exits_on_unsafe_retention(capsys) -> None:
    with pytest.raises(SystemExit) as excinfo:
        purge_scans.main(["--retention-days", "1"])

    assert excinfo.value.code == 2
    assert "ERROR" in capsys.readouterr().err


def test_main_purges_old_records(engine, mocker, capsys) -> None:
    factory = sessionmaker(bind=engine, autoflush=False)
    mocker.patch.object(purge_scans, "SessionLocal", factory)
    now = utcnow()
    with factory() as db:
        ledger = ReplayLedger(db)
        for ticket_id, age in ((1, timedelta(days=45)), (2, timedelta(days=2))):
            ledger.consume(
                ticket_id=ticket_id,
                nonce=f"{ticket_id:02x}" * 16,
                event_id=3,
                owner_id=7,
                scanned_by="gate-a",
                scanned_at=now - age,
            )

    purge_scans.main(["--retention-days", "30"])

    assert "deleted 1 scan records" in capsys.readouterr().out
    with factory() as db:
        assert [entry.ticket_id for entry in ReplayLedger(db).history(3)] == [2]


def test_dry_run_deletes_nothing(mocker, capsys) -> None:
    factory = mocker.patch.object(purge_scans, "SessionLocal")

    purge_scans.main(["--dry-run"])

    factory.assert_not_called()
    assert "would delete" in capsys.readouterr().out
