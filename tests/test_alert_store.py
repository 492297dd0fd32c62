"""Tests for alert creation, dedup, acknowledge and stats."""

from datetime import timedelta

import pytest
from sqlalchemy.exc import IntegrityError

from automize.core.dedupe import compute_dedup_key
from automize.core.errors import NotFoundError, ValidationFailed
from automize.core.timeutils import utc_now
from automize.models.alert import WatchtowerAlert
from automize.services import alert_store


def _key(rule, record_key="Acme"):
    return compute_dedup_key(rule_id=rule.id, target_table=rule.target_table, record_key=record_key)


def test_dedup_key_trims_whitespace_but_keeps_case():
    a = compute_dedup_key(rule_id=1, target_table="api_records", record_key="Acme")
    b = compute_dedup_key(rule_id=1, target_table="API_RECORDS", record_key=" Acme  ")
    c = compute_dedup_key(rule_id=1, target_table="api_records", record_key="acme")
    d = compute_dedup_key(rule_id=2, target_table="api_records", record_key="Acme")
    assert a == b
    assert a != c
    assert a != d
    assert len(a) == 64

    # espacios internos repetidos cuentan como uno
    assert compute_dedup_key(rule_id=1, target_table="t", record_key="Acme  Corp") == compute_dedup_key(
        rule_id=1, target_table="t", record_key="Acme Corp"
    )


def test_create_alert_copies_rule_fields(db, make_rule):
    rule = make_rule(client_id="client-7")
    a = alert_store.create_alert(db, rule=rule, message="ROAS low", severity="high", dedup_key=_key(rule))

    assert a is not None
    assert a.rule_name == rule.name
    assert a.target_table == "refresh_snapshot_metrics"
    assert a.client_id == "client-7"
    assert a.is_acknowledged is False


def test_open_alert_blocks_duplicate_until_acknowledged(db, make_rule):
    rule = make_rule()
    first = alert_store.create_alert(db, rule=rule, message="one", dedup_key=_key(rule))

    assert alert_store.create_alert(db, rule=rule, message="two", dedup_key=_key(rule)) is None
    # otra entidad sí crea
    assert alert_store.create_alert(db, rule=rule, message="other", dedup_key=_key(rule, "Globex")) is not None

    alert_store.acknowledge_alert(db, first.id, acknowledged_by="ops@automize.io")
    assert alert_store.create_alert(db, rule=rule, message="three", dedup_key=_key(rule)) is not None


def test_unique_index_rejects_concurrent_duplicate(db, make_rule):
    rule = make_rule()
    key = _key(rule)
    db.add(WatchtowerAlert(rule_id=rule.id, message="racing", severity="high", dedup_key=key))
    db.commit()

    # una segunda fila abierta con la misma llave viola el índice parcial
    db.add(WatchtowerAlert(rule_id=rule.id, message="racing 2", severity="high", dedup_key=key))
    with pytest.raises(IntegrityError):
        db.commit()
    db.rollback()


def test_acknowledge_is_idempotent(db, make_rule):
    rule = make_rule()
    a = alert_store.create_alert(db, rule=rule, message="m")

    first = alert_store.acknowledge_alert(db, a.id, acknowledged_by="ops@automize.io")
    acked_at = first.acknowledged_at
    second = alert_store.acknowledge_alert(db, a.id, acknowledged_by="someone-else@automize.io")

    assert second.is_acknowledged is True
    assert second.acknowledged_at == acked_at
    assert second.acknowledged_by == "ops@automize.io"


def test_bulk_acknowledge_counts_only_open_alerts(db, make_rule):
    rule = make_rule()
    ids = [alert_store.create_alert(db, rule=rule, message=f"m{i}").id for i in range(3)]
    alert_store.acknowledge_alert(db, ids[0])

    assert alert_store.bulk_acknowledge(db, ids + ids, acknowledged_by="ops") == 2
    assert alert_store.bulk_acknowledge(db, ids) == 0
    assert alert_store.bulk_acknowledge(db, []) == 0


def test_list_alerts_filters_and_sorts_by_severity(db, make_rule):
    rule = make_rule()
    alert_store.create_alert(db, rule=rule, message="low", severity="low")
    alert_store.create_alert(db, rule=rule, message="crit", severity="critical")
    alert_store.create_alert(db, rule=rule, message="med", severity="medium")

    items, total = alert_store.list_alerts(db, sort="severity_desc")
    assert total == 3
    assert [a.message for a in items] == ["crit", "med", "low"]

    items, total = alert_store.list_alerts(db, severity="low")
    assert total == 1

    with pytest.raises(ValidationFailed):
        alert_store.list_alerts(db, sort="nope")


def test_pending_notifications_skip_notified_and_acknowledged(db, make_rule):
    rule = make_rule()
    a = alert_store.create_alert(db, rule=rule, message="a")
    b = alert_store.create_alert(db, rule=rule, message="b")
    c = alert_store.create_alert(db, rule=rule, message="c")
    alert_store.mark_alert_notified(db, a)
    alert_store.acknowledge_alert(db, b.id)

    assert [x.id for x in alert_store.pending_notifications(db, rule.id)] == [c.id]


def test_delete_alert(db, make_rule):
    rule = make_rule()
    a = alert_store.create_alert(db, rule=rule, message="gone")
    alert_store.delete_alert(db, a.id)

    with pytest.raises(NotFoundError):
        alert_store.get_alert(db, a.id)


def test_stats_count_compound_group_once(db, make_rule):
    make_rule(name="single")
    make_rule(name="g1", group_id="group_1", logic_operator="AND")
    make_rule(name="g2", group_id="group_1", logic_operator="AND")
    make_rule(name="off", is_active=False)
    make_rule(name="gone", deleted_at=utc_now())

    rule = make_rule(name="alerting")
    alert_store.create_alert(db, rule=rule, message="now", severity="high")
    old = alert_store.create_alert(db, rule=rule, message="old", severity="critical")
    old.created_at = utc_now() - timedelta(days=10)
    alert_store.acknowledge_alert(db, old.id)

    stats = alert_store.watchtower_stats(db)

    assert stats["totalRules"] == 4
    assert stats["activeRules"] == 3
    assert stats["inactiveRules"] == 1
    assert stats["totalAlerts"] == 2
    assert stats["unacknowledgedAlerts"] == 1
    assert stats["alertsBySeverity"] == {"low": 0, "medium": 0, "high": 1, "critical": 1}
    assert stats["alertsThisWeek"] == 1
