"""Tests for the standalone cron runner."""

from automize.db import Base, build_engine, build_session_factory
from automize.models.alert import WatchtowerAlert
from automize.models.rule import WatchtowerRule
from automize.models.sheet_snapshot import SheetRefreshSnapshot
from automize.models.snapshot_metric import RefreshSnapshotMetric
from scripts.run_watchtower_cron import main

from conftest import make_settings


def test_cli_runs_daily_schedule(tmp_path, monkeypatch, capsys):
    url = f"sqlite:///{tmp_path / 'watchtower.db'}"
    monkeypatch.setenv("DATABASE_URL", url)
    monkeypatch.setenv("SECRET_KEY", "cli-secret")

    engine = build_engine(make_settings(DATABASE_URL=url))
    Base.metadata.create_all(engine)
    db = build_session_factory(engine)()
    snap = SheetRefreshSnapshot(refresh_type="autometric", refresh_status="completed")
    db.add(snap)
    db.flush()
    db.add(RefreshSnapshotMetric(snapshot_id=snap.id, account_name="Acme", roas_timeframe=1.2))
    db.add(
        WatchtowerRule(
            name="Low ROAS",
            target_table="refresh_snapshot_metrics",
            field_name="roas_timeframe",
            condition="less_than",
            threshold_value="1.5",
            severity="high",
            schedule="daily",
            notify_discord=False,
        )
    )
    db.commit()

    assert main(["--schedule", "daily"]) == 0
    assert "processed=1 sent=0" in capsys.readouterr().out
    assert db.query(WatchtowerAlert).count() == 1

    db.close()
    engine.dispose()
