# automize/services/evaluation_job.py
"""
Job de evaluación de Watchtower.

- run_evaluation: todas las reglas activas (o las de un schedule), agrupadas
  por (tabla, rango, filtros) para leer cada conjunto de filas una sola vez.
- process_scheduled_notifications: corrida de cron daily/weekly; evalúa y
  luego envía un digest por regla con sus alertas pendientes.

Un error en un grupo de reglas se registra y no corta el resto del batch.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from automize.core.context import WatchtowerContext
from automize.core.dedupe import compute_dedup_key
from automize.core.enums import Schedule
from automize.core.errors import ValidationFailed
from automize.core.timeutils import utc_now
from automize.models.alert import WatchtowerAlert
from automize.models.rule import WatchtowerRule
from automize.services import alert_store, rule_store
from automize.services.evaluation import evaluate, evaluate_compound
from automize.services.target_rows import TargetRows, fetch_target_rows

logger = logging.getLogger("automize.watchtower.job")


@dataclass
class RuleUnit:
    """Regla simple, o regla compuesta (todas las cláusulas de un group_id)."""

    primary: WatchtowerRule
    clauses: List[WatchtowerRule]

    @property
    def is_compound(self) -> bool:
        return bool(self.primary.group_id)

    @property
    def fetch_key(self) -> Tuple[str, Optional[int], str]:
        r = self.primary
        return (
            r.target_table,
            r.time_range_days,
            json.dumps(r.row_filters or {}, sort_keys=True, default=str),
        )


@dataclass
class EvaluationSummary:
    rules_evaluated: int = 0
    rules_failed: int = 0
    alerts_created: int = 0
    alerts_skipped: int = 0
    notifications_sent: int = 0
    processed_rules: List[WatchtowerRule] = field(default_factory=list)
    timestamp: datetime = field(default_factory=utc_now)


@dataclass
class ScheduledRunResult:
    processed: int
    sent: int
    timestamp: datetime = field(default_factory=utc_now)


def build_units(rules: List[WatchtowerRule]) -> List[RuleUnit]:
    units: List[RuleUnit] = []
    groups: Dict[str, List[WatchtowerRule]] = {}
    for r in rules:
        if r.group_id:
            groups.setdefault(r.group_id, []).append(r)
        else:
            units.append(RuleUnit(primary=r, clauses=[r]))
    for members in groups.values():
        members.sort(key=lambda m: m.id)
        units.append(RuleUnit(primary=members[0], clauses=members))
    units.sort(key=lambda u: u.primary.id)
    return units


def _evaluate_unit(ctx: WatchtowerContext, unit: RuleUnit, target: TargetRows, summary: EvaluationSummary) -> List[WatchtowerAlert]:
    db = ctx.db
    rule = unit.primary

    if not rule_store.check_dependency(db, rule, ctx.settings.WATCHTOWER_DEPENDENCY_WINDOW_HOURS):
        logger.debug("Rule %s skipped: dependency '%s' not met", rule.id, rule.dependency_condition)
        return []

    max_alerts = max(1, int(ctx.settings.WATCHTOWER_MAX_ALERTS_PER_RULE))
    seen = set()
    created: List[WatchtowerAlert] = []

    for row in target.rows:
        if unit.is_compound:
            res = evaluate_compound(rule.name, unit.clauses, row.data, rule.logic_operator, row.previous)
        else:
            res = evaluate(row.data, rule, row.previous)
        if not res.matches:
            continue

        # varios snapshots en rango pueden traer la misma entidad
        if row.key in seen:
            continue
        seen.add(row.key)

        if len(created) >= max_alerts:
            summary.alerts_skipped += 1
            continue

        alert = alert_store.create_alert(
            db,
            rule=rule,
            message=res.message,
            severity=rule.severity,
            snapshot_id=row.snapshot_id,
            record_key=row.key,
            current_value=res.current_value,
            previous_value=res.previous_value,
            dedup_key=compute_dedup_key(rule_id=rule.id, target_table=rule.target_table, record_key=row.key),
        )
        if alert is None:
            summary.alerts_skipped += 1
            continue

        created.append(alert)
        rule_store.record_trigger(db, rule.id)

    return created


def _dispatch_pending(ctx: WatchtowerContext, rule: WatchtowerRule) -> int:
    """Envía las alertas pendientes de la regla; devuelve cuántas llegaron a algún canal."""
    pending = alert_store.pending_notifications(ctx.db, rule.id)
    sent = 0
    for alert in pending:
        result = ctx.dispatcher.send_alert_notifications(ctx.db, alert, rule)
        if result.delivered:
            sent += 1
        # sin reintentos: notificada aunque haya fallado
        alert_store.mark_alert_notified(ctx.db, alert)
    if pending:
        rule_store.mark_rule_notified(ctx.db, rule.id)
    return sent


def _dispatch_digest(ctx: WatchtowerContext, rule: WatchtowerRule) -> int:
    """Un digest por regla con todas sus pendientes; devuelve cuántas alertas llegaron a algún canal."""
    pending = alert_store.pending_notifications(ctx.db, rule.id)
    if not pending:
        return 0
    result = ctx.dispatcher.send_digest_notifications(ctx.db, pending, rule)
    # sin reintentos: notificadas aunque haya fallado
    for alert in pending:
        alert_store.mark_alert_notified(ctx.db, alert)
    rule_store.mark_rule_notified(ctx.db, rule.id)
    return len(pending) if result.delivered else 0


def run_evaluation(
    ctx: WatchtowerContext,
    schedule: Optional[str] = None,
    dispatch_immediate: bool = True,
) -> EvaluationSummary:
    db = ctx.db
    summary = EvaluationSummary()

    units = build_units(rule_store.active_rules(db, schedule=schedule))
    buckets: Dict[Tuple[str, Optional[int], str], List[RuleUnit]] = {}
    for u in units:
        buckets.setdefault(u.fetch_key, []).append(u)

    logger.info("Watchtower evaluation start rules=%s groups=%s schedule=%s", len(units), len(buckets), schedule or "all")

    for (target_table, time_range_days, _), bucket in buckets.items():
        try:
            target = fetch_target_rows(
                db,
                target_table,
                time_range_days=time_range_days,
                row_filters=bucket[0].primary.row_filters,
            )
        except Exception:
            db.rollback()
            logger.exception("Failed loading rows for %s (rules=%s)", target_table, [u.primary.id for u in bucket])
            summary.rules_failed += len(bucket)
            continue

        for unit in bucket:
            try:
                created = _evaluate_unit(ctx, unit, target, summary)
            except Exception:
                db.rollback()
                logger.exception("Rule %s evaluation failed", unit.primary.id)
                summary.rules_failed += 1
                continue
            summary.rules_evaluated += 1
            summary.alerts_created += len(created)
            summary.processed_rules.append(unit.primary)

    if dispatch_immediate:
        for rule in summary.processed_rules:
            if rule.schedule != Schedule.IMMEDIATE.value:
                continue
            try:
                summary.notifications_sent += _dispatch_pending(ctx, rule)
            except Exception:
                db.rollback()
                logger.exception("Dispatch failed for rule %s", rule.id)

    logger.info(
        "Watchtower evaluation done evaluated=%s failed=%s created=%s skipped=%s sent=%s",
        summary.rules_evaluated,
        summary.rules_failed,
        summary.alerts_created,
        summary.alerts_skipped,
        summary.notifications_sent,
    )
    return summary


def process_scheduled_notifications(ctx: WatchtowerContext, schedule: str) -> ScheduledRunResult:
    if schedule not in (Schedule.DAILY.value, Schedule.WEEKLY.value):
        raise ValidationFailed("schedule must be 'daily' or 'weekly'")

    summary = run_evaluation(ctx, schedule=schedule, dispatch_immediate=False)

    sent = 0
    for rule in summary.processed_rules:
        try:
            sent += _dispatch_digest(ctx, rule)
        except Exception:
            ctx.db.rollback()
            logger.exception("Scheduled dispatch failed for rule %s", rule.id)

    logger.info("Scheduled run %s processed=%s sent=%s", schedule, summary.rules_evaluated, sent)
    return ScheduledRunResult(processed=summary.rules_evaluated, sent=sent)
