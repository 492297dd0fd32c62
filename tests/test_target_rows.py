"""Tests for loading target rows per table."""

from datetime import timedelta

import pytest

from automize.core.errors import ValidationFailed
from automize.core.timeutils import time_range_start, utc_now
from automize.models.api_record import ApiRecord
from automize.models.api_snapshot import ApiSnapshot
from automize.models.form_submission import FormSubmission
from automize.services.target_rows import fetch_target_rows, natural_key


def test_time_range_start():
    now = utc_now().replace(hour=15, minute=30)
    assert time_range_start(None, now) is None
    assert time_range_start(0, now) == now.replace(hour=0, minute=0, second=0, microsecond=0)
    assert time_range_start(7, now) == now - timedelta(days=7)


def test_natural_key_prefers_entity_columns():
    assert natural_key("facebook_metrics", {"id": 4, "account_name": "Acme"}) == "Acme"
    assert natural_key("api_records", {"id": 4, "external_id": "ord-9"}) == "ord-9"
    assert natural_key("form_submissions", {"id": 4, "account_name": "Acme"}) == "id:4"


def test_metrics_use_latest_completed_snapshot_and_attach_previous(db, make_snapshot):
    now = utc_now()
    make_snapshot([{"account_name": "Acme", "roas_timeframe": 2.0}], created_at=now - timedelta(hours=3))
    latest = make_snapshot(
        [{"account_name": "Acme", "roas_timeframe": 1.2}, {"account_name": "Globex", "roas_timeframe": 3.0}],
        created_at=now - timedelta(hours=1),
    )
    # en curso: se ignora
    make_snapshot([{"account_name": "Acme", "roas_timeframe": 0.1}], refresh_status="in_progress", created_at=now)

    target = fetch_target_rows(db, "refresh_snapshot_metrics")

    assert target.snapshot_ids == [latest.id]
    by_key = {r.key: r for r in target.rows}
    assert set(by_key) == {"Acme", "Globex"}
    assert by_key["Acme"].data["roas_timeframe"] == 1.2
    assert by_key["Acme"].previous["roas_timeframe"] == 2.0
    assert by_key["Globex"].previous is None


def test_facebook_and_finance_tables_filter_by_refresh_type(db, make_snapshot):
    make_snapshot([{"account_name": "Acme", "roas_timeframe": 1.0}], refresh_type="autometric")
    make_snapshot([{"account_name": "Acme", "shopify_revenue_rebill": 10.0}], refresh_type="financialx")

    fb = fetch_target_rows(db, "facebook_metrics")
    fin = fetch_target_rows(db, "finance_metrics")

    assert [r.data["roas_timeframe"] for r in fb.rows] == [1.0]
    assert [r.data["shopify_revenue_rebill"] for r in fin.rows] == [10.0]


def test_time_range_reads_every_snapshot_in_range(db, make_snapshot):
    now = utc_now()
    make_snapshot([{"account_name": "Old", "roas_timeframe": 1.0}], created_at=now - timedelta(days=10))
    make_snapshot([{"account_name": "A", "roas_timeframe": 1.0}], created_at=now - timedelta(days=2))
    make_snapshot([{"account_name": "B", "roas_timeframe": 1.0}], created_at=now - timedelta(hours=2))

    target = fetch_target_rows(db, "refresh_snapshot_metrics", time_range_days=7)

    assert sorted(r.key for r in target.rows) == ["A", "B"]
    assert len(target.snapshot_ids) == 2


def test_row_filters_narrow_metric_rows(db, make_snapshot):
    make_snapshot(
        [
            {"account_name": "Acme", "pod": "pod-a", "roas_timeframe": 1.0},
            {"account_name": "Globex", "pod": "pod-b", "roas_timeframe": 1.0},
        ]
    )

    target = fetch_target_rows(db, "refresh_snapshot_metrics", row_filters={"pod": "pod-b"})

    assert [r.key for r in target.rows] == ["Globex"]


def test_unknown_row_filter_field_is_rejected(db):
    with pytest.raises(ValidationFailed):
        fetch_target_rows(db, "form_submissions", row_filters={"roas_timeframe": 1})


def test_api_records_come_from_completed_api_snapshots(db):
    done = ApiSnapshot(source_name="shopify", status="completed")
    failed = ApiSnapshot(source_name="shopify", status="failed")
    db.add_all([done, failed])
    db.flush()
    db.add_all(
        [
            ApiRecord(snapshot_id=done.id, external_id="ord-1", amount=12.5),
            ApiRecord(snapshot_id=failed.id, external_id="ord-2", amount=99.0),
        ]
    )
    db.commit()

    target = fetch_target_rows(db, "api_records")

    assert [r.key for r in target.rows] == ["ord-1"]
    assert target.rows[0].snapshot_id == done.id


def test_plain_tables_respect_time_range(db):
    now = utc_now()
    db.add_all(
        [
            FormSubmission(form_type="onboarding", status="pending", created_at=now - timedelta(days=3)),
            FormSubmission(form_type="onboarding", status="failed", created_at=now),
        ]
    )
    db.commit()

    assert len(fetch_target_rows(db, "form_submissions").rows) == 2
    today = fetch_target_rows(db, "form_submissions", time_range_days=0)
    assert [r.data["status"] for r in today.rows] == ["failed"]


def test_unknown_target_table(db):
    with pytest.raises(ValidationFailed):
        fetch_target_rows(db, "users")


def test_range_rows_come_newest_snapshot_first(db, make_snapshot):
    now = utc_now()
    make_snapshot([{"account_name": "Acme", "roas_timeframe": 1.0}], created_at=now - timedelta(days=3))
    make_snapshot([{"account_name": "Acme", "roas_timeframe": 1.3}], created_at=now - timedelta(hours=1))

    target = fetch_target_rows(db, "refresh_snapshot_metrics", time_range_days=7)

    assert [r.data["roas_timeframe"] for r in target.rows] == [1.3, 1.0]
