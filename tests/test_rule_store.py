"""Tests for rule CRUD, compound groups, soft delete and dependencies."""

from datetime import timedelta

import pytest

from automize.core.errors import NotFoundError, ValidationFailed
from automize.core.timeutils import utc_now
from automize.models.alert import WatchtowerAlert
from automize.models.rule import WatchtowerRule
from automize.schemas.rules import RuleCreate, RuleUpdate
from automize.services import rule_store


def _payload(**overrides) -> RuleCreate:
    data = dict(
        name="Low ROAS",
        target_table="refresh_snapshot_metrics",
        field_name="roas_timeframe",
        condition="<",
        threshold_value=1.5,
        severity="high",
        schedule="daily",
    )
    data.update(overrides)
    return RuleCreate(**data)


def test_create_rule_normalizes_condition_and_threshold(db):
    r = rule_store.create_rule(db, _payload())

    assert r.id is not None
    assert r.condition == "less_than"
    assert r.threshold_value == "1.5"
    assert r.trigger_count == 0
    assert r.group_id is None


@pytest.mark.parametrize(
    "overrides,fragment",
    [
        ({"field_name": "not_a_field"}, "not available"),
        ({"condition": "contains", "threshold_value": "x"}, "not valid for number"),
        ({"condition": "greater_than", "threshold_value": "lots"}, "must be numeric"),
        ({"condition": "greater_than", "threshold_value": None}, "requires a threshold_value"),
        ({"row_filters": {"unknown": 1}}, "Invalid row_filters"),
    ],
)
def test_create_rule_rejects_invalid_definitions(db, overrides, fragment):
    with pytest.raises(ValidationFailed) as exc:
        rule_store.create_rule(db, _payload(**overrides))
    assert fragment in exc.value.message


def test_create_rule_with_missing_parent_fails(db):
    with pytest.raises(ValidationFailed):
        rule_store.create_rule(db, _payload(parent_rule_id=999))


def test_child_rule_defaults_to_triggered_dependency(db):
    parent = rule_store.create_rule(db, _payload(name="Parent"))
    child = rule_store.create_rule(db, _payload(name="Child", parent_rule_id=parent.id))

    assert child.dependency_condition == "triggered"
    rel = rule_store.get_rule_with_relations(db, parent.id)
    assert [c.id for c in rel["child_rules"]] == [child.id]


def test_compound_rule_creates_one_row_per_clause(db):
    rules = rule_store.create_compound_rule(
        db,
        _payload(
            name="Burning spend",
            clauses=[{"field_name": "ad_spend_timeframe", "condition": ">", "threshold_value": 500}],
            logic_operator="AND",
        ),
    )

    assert len(rules) == 2
    assert rules[0].name == "Burning spend"
    assert rules[1].name == "Burning spend - Clause 2"
    assert rules[0].group_id == rules[1].group_id
    assert rules[0].group_id.startswith("group_")
    assert {r.logic_operator for r in rules} == {"AND"}

    rel = rule_store.get_rule_with_relations(db, rules[0].id)
    assert [r.id for r in rel["group_rules"]] == [rules[1].id]


def test_list_rules_filters_and_paginates(db):
    for i in range(3):
        rule_store.create_rule(db, _payload(name=f"Rule {i}", severity="low"))
    rule_store.create_rule(db, _payload(name="Critical one", severity="critical"))

    items, total = rule_store.list_rules(db, page=1, page_size=2, sort="name_asc", severity="low")
    assert total == 3
    assert [r.name for r in items] == ["Rule 0", "Rule 1"]

    with pytest.raises(ValidationFailed):
        rule_store.list_rules(db, sort="random")


def test_update_rule_revalidates_merged_definition(db):
    r = rule_store.create_rule(db, _payload())

    updated = rule_store.update_rule(db, r.id, RuleUpdate(threshold_value="2", severity="critical"))
    assert updated.threshold_value == "2"
    assert updated.severity == "critical"

    with pytest.raises(ValidationFailed):
        rule_store.update_rule(db, r.id, RuleUpdate(field_name="rebill_status"))

    with pytest.raises(ValidationFailed):
        rule_store.update_rule(db, r.id, RuleUpdate(parent_rule_id=r.id))

    with pytest.raises(ValidationFailed):
        rule_store.update_rule(db, r.id, RuleUpdate(name=None, is_active=None))


def test_toggle_and_active_rules(db):
    a = rule_store.create_rule(db, _payload(name="A", schedule="daily"))
    b = rule_store.create_rule(db, _payload(name="B", schedule="weekly"))
    rule_store.toggle_rule(db, b.id, False)

    assert [r.id for r in rule_store.active_rules(db)] == [a.id]
    assert rule_store.active_rules(db, schedule="weekly") == []


def test_record_trigger_increments_counter(db):
    r = rule_store.create_rule(db, _payload())

    rule_store.record_trigger(db, r.id)
    rule_store.record_trigger(db, r.id)
    db.expire_all()

    r = db.get(WatchtowerRule, r.id)
    assert r.trigger_count == 2
    assert r.last_triggered_at is not None


def test_soft_delete_hides_rule_and_keeps_alerts(db):
    r = rule_store.create_rule(db, _payload())
    db.add(WatchtowerAlert(rule_id=r.id, message="m", severity="high"))
    db.commit()

    ids = rule_store.delete_rule(db, r.id, deleted_by="admin@automize.io")

    assert ids == [r.id]
    with pytest.raises(NotFoundError):
        rule_store.get_rule(db, r.id)
    deleted, total = rule_store.list_deleted_rules(db)
    assert total == 1 and deleted[0].deleted_by == "admin@automize.io"
    assert db.query(WatchtowerAlert).filter(WatchtowerAlert.rule_id == r.id).count() == 1


def test_deleting_group_primary_deletes_whole_group(db):
    rules = rule_store.create_compound_rule(
        db,
        _payload(clauses=[{"field_name": "ctr", "condition": "<", "threshold_value": 0.5}]),
    )

    # una cláusula secundaria sola
    assert rule_store.delete_rule(db, rules[1].id) == [rules[1].id]
    rule_store.restore_rule(db, rules[1].id)

    ids = rule_store.delete_rule(db, rules[0].id)
    assert sorted(ids) == sorted(r.id for r in rules)

    restored = rule_store.restore_rule(db, rules[0].id, restore_group=True)
    assert sorted(restored) == sorted(r.id for r in rules)
    assert all(r.is_active for r in rule_store.group_rules(db, rules[0].group_id))


def test_hard_delete_waits_for_retention(db):
    r = rule_store.create_rule(db, _payload())

    with pytest.raises(ValidationFailed):
        rule_store.hard_delete_rule(db, r.id)

    rule_store.delete_rule(db, r.id)
    with pytest.raises(ValidationFailed) as exc:
        rule_store.hard_delete_rule(db, r.id, retention_days=30)
    assert "30 day(s) remaining" in exc.value.message

    r.deleted_at = utc_now() - timedelta(days=31)
    db.commit()
    assert rule_store.hard_delete_rule(db, r.id, retention_days=30) == [r.id]
    assert db.get(WatchtowerRule, r.id) is None


def test_check_dependency(db):
    parent = rule_store.create_rule(db, _payload(name="Parent"))
    triggered = rule_store.create_rule(db, _payload(name="T", parent_rule_id=parent.id))
    quiet = rule_store.create_rule(
        db, _payload(name="Q", parent_rule_id=parent.id, dependency_condition="not_triggered")
    )
    acked = rule_store.create_rule(
        db, _payload(name="A", parent_rule_id=parent.id, dependency_condition="acknowledged")
    )

    assert rule_store.check_dependency(db, parent) is True
    assert rule_store.check_dependency(db, triggered) is False
    assert rule_store.check_dependency(db, quiet) is True

    db.add(WatchtowerAlert(rule_id=parent.id, message="parent fired", severity="high"))
    db.commit()

    assert rule_store.check_dependency(db, triggered) is True
    assert rule_store.check_dependency(db, quiet) is False
    assert rule_store.check_dependency(db, acked) is False


def test_available_parents_exclude_compound_and_self(db):
    single = rule_store.create_rule(db, _payload(name="Single"))
    rule_store.create_compound_rule(
        db, _payload(name="Group", clauses=[{"field_name": "ctr", "condition": "<", "threshold_value": 1}])
    )

    parents = rule_store.available_parent_rules(db)
    assert [p.id for p in parents] == [single.id]
    assert rule_store.available_parent_rules(db, exclude_id=single.id) == []
