"""watchtower core tables

Revision ID: 5c2a9e41d7b3
Revises:
Create Date: 2026-10-19 10:12:44.381920
"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB


revision = "5c2a9e41d7b3"
down_revision = None
branch_labels = None
depends_on = None


def _num():
    return sa.Numeric(18, 4)


def _created_at():
    return sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()"))


def upgrade() -> None:
    bind = op.get_bind()
    insp = sa.inspect(bind)

    if not insp.has_table("users"):
        op.create_table(
            "users",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("email", sa.String(length=255), nullable=False),
            sa.Column("full_name", sa.String(length=255), nullable=True),
            sa.Column("hashed_password", sa.String(length=255), nullable=False),
            sa.Column("is_active", sa.Boolean(), nullable=True, server_default=sa.text("true")),
            sa.Column("is_admin", sa.Boolean(), nullable=True, server_default=sa.text("false")),
            sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()")),
            sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()")),
        )
        op.create_index("ix_users_email", "users", ["email"], unique=True)
        op.create_index("ix_users_id", "users", ["id"])

    # Tablas de datos: normalmente ya existen (las llena la ingesta); solo se crean en entornos nuevos
    if not insp.has_table("pod"):
        op.create_table(
            "pod",
            sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
            sa.Column("name", sa.String(length=255), nullable=False),
            sa.Column("discord_id", sa.String(length=64), nullable=True),
            sa.Column("whatsapp_number", sa.String(length=32), nullable=True),
        )

    if not insp.has_table("sheet_refresh_snapshots"):
        op.create_table(
            "sheet_refresh_snapshots",
            sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
            sa.Column("sheet_id", sa.String(length=128), nullable=True),
            sa.Column("refresh_type", sa.String(length=32), nullable=False),
            sa.Column("refresh_status", sa.String(length=32), nullable=False, server_default=sa.text("'pending'")),
            sa.Column("date_preset", sa.String(length=64), nullable=True),
            sa.Column("snapshot_date", sa.Date(), nullable=True),
            _created_at(),
        )
        op.create_index("ix_sheet_refresh_snapshots_refresh_type", "sheet_refresh_snapshots", ["refresh_type"])

    if not insp.has_table("refresh_snapshot_metrics"):
        op.create_table(
            "refresh_snapshot_metrics",
            sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
            sa.Column(
                "snapshot_id",
                sa.Integer(),
                sa.ForeignKey("sheet_refresh_snapshots.id", ondelete="CASCADE"),
                nullable=False,
            ),
            sa.Column("account_name", sa.String(length=255), nullable=True),
            sa.Column("pod", sa.String(length=128), nullable=True),
            sa.Column("is_monitored", sa.Boolean(), nullable=True),
            sa.Column("ad_spend_timeframe", _num(), nullable=True),
            sa.Column("roas_timeframe", _num(), nullable=True),
            sa.Column("fb_revenue_timeframe", _num(), nullable=True),
            sa.Column("shopify_revenue_timeframe", _num(), nullable=True),
            sa.Column("orders_timeframe", _num(), nullable=True),
            sa.Column("ad_spend_rebill", _num(), nullable=True),
            sa.Column("roas_rebill", _num(), nullable=True),
            sa.Column("fb_revenue_rebill", _num(), nullable=True),
            sa.Column("shopify_revenue_rebill", _num(), nullable=True),
            sa.Column("orders_rebill", _num(), nullable=True),
            sa.Column("rebill_status", sa.String(length=64), nullable=True),
            sa.Column("last_rebill_date", sa.Date(), nullable=True),
            sa.Column("cpa_purchase", _num(), nullable=True),
            sa.Column("cpc", _num(), nullable=True),
            sa.Column("cpm", _num(), nullable=True),
            sa.Column("ctr", _num(), nullable=True),
            sa.Column("impressions", _num(), nullable=True),
            sa.Column("hook_rate", _num(), nullable=True),
            sa.Column("atc_rate", _num(), nullable=True),
            sa.Column("bounce_rate", _num(), nullable=True),
            sa.Column("is_error", sa.Boolean(), nullable=True),
            sa.Column("error_detail", sa.String(length=1024), nullable=True),
            _created_at(),
        )
        op.create_index("ix_refresh_snapshot_metrics_snapshot_id", "refresh_snapshot_metrics", ["snapshot_id"])
        op.create_index("ix_refresh_snapshot_metrics_account_name", "refresh_snapshot_metrics", ["account_name"])

    if not insp.has_table("api_snapshots"):
        op.create_table(
            "api_snapshots",
            sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
            sa.Column("source_name", sa.String(length=128), nullable=False),
            sa.Column("status", sa.String(length=32), nullable=False, server_default=sa.text("'pending'")),
            sa.Column("snapshot_type", sa.String(length=64), nullable=True),
            sa.Column("total_records", sa.Integer(), nullable=True),
            sa.Column("error_message", sa.Text(), nullable=True),
            _created_at(),
        )

    if not insp.has_table("api_records"):
        op.create_table(
            "api_records",
            sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
            sa.Column(
                "snapshot_id",
                sa.Integer(),
                sa.ForeignKey("api_snapshots.id", ondelete="CASCADE"),
                nullable=False,
            ),
            sa.Column("external_id", sa.String(length=255), nullable=True),
            sa.Column("name", sa.String(length=255), nullable=True),
            sa.Column("category", sa.String(length=128), nullable=True),
            sa.Column("status", sa.String(length=64), nullable=True),
            sa.Column("amount", _num(), nullable=True),
            sa.Column("quantity", sa.Integer(), nullable=True),
            sa.Column("record_date", sa.Date(), nullable=True),
            _created_at(),
        )
        op.create_index("ix_api_records_snapshot_id", "api_records", ["snapshot_id"])

    if not insp.has_table("form_submissions"):
        op.create_table(
            "form_submissions",
            sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
            sa.Column("form_type", sa.String(length=64), nullable=False),
            sa.Column("status", sa.String(length=32), nullable=False, server_default=sa.text("'pending'")),
            sa.Column("account_name", sa.String(length=255), nullable=True),
            _created_at(),
            sa.Column("processed_at", sa.DateTime(timezone=True), nullable=True),
        )

    if not insp.has_table("watchtower_rules"):
        op.create_table(
            "watchtower_rules",
            sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
            sa.Column("name", sa.String(length=255), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("target_table", sa.String(length=64), nullable=False),
            sa.Column("field_name", sa.String(length=128), nullable=False),
            sa.Column("condition", sa.String(length=32), nullable=False),
            sa.Column("threshold_value", sa.String(length=255), nullable=True),
            sa.Column("time_range_days", sa.Integer(), nullable=True),
            sa.Column("row_filters", JSONB(), nullable=True),
            sa.Column("client_id", sa.String(length=64), nullable=True),
            sa.Column("severity", sa.String(length=16), nullable=False, server_default=sa.text("'medium'")),
            sa.Column("schedule", sa.String(length=16), nullable=False, server_default=sa.text("'immediate'")),
            sa.Column("notify_time", sa.String(length=8), nullable=True),
            sa.Column("notify_day_of_week", sa.Integer(), nullable=True),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
            sa.Column("parent_rule_id", sa.Integer(), nullable=True),
            sa.Column("dependency_condition", sa.String(length=32), nullable=True),
            sa.Column("group_id", sa.String(length=64), nullable=True),
            sa.Column("logic_operator", sa.String(length=8), nullable=True),
            sa.Column("notify_discord", sa.Boolean(), nullable=False, server_default=sa.text("true")),
            sa.Column("discord_channel_id", sa.String(length=64), nullable=True),
            sa.Column("extra_discord_channel_ids", JSONB(), nullable=True),
            sa.Column("notify_whatsapp", sa.Boolean(), nullable=False, server_default=sa.text("false")),
            sa.Column("pod_ids", JSONB(), nullable=True),
            sa.Column("last_triggered_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("trigger_count", sa.Integer(), nullable=False, server_default=sa.text("0")),
            sa.Column("last_notified_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("deleted_by", sa.String(length=255), nullable=True),
            _created_at(),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        )
        op.create_index("ix_watchtower_rules_target_table", "watchtower_rules", ["target_table"])
        op.create_index("ix_watchtower_rules_client_id", "watchtower_rules", ["client_id"])
        op.create_index("ix_watchtower_rules_parent_rule_id", "watchtower_rules", ["parent_rule_id"])
        op.create_index("ix_watchtower_rules_group_id", "watchtower_rules", ["group_id"])
        op.create_index("ix_watchtower_rules_deleted_at", "watchtower_rules", ["deleted_at"])

    if not insp.has_table("watchtower_alerts"):
        op.create_table(
            "watchtower_alerts",
            sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
            sa.Column("rule_id", sa.Integer(), nullable=True),
            sa.Column("rule_name", sa.String(length=255), nullable=True),
            sa.Column("target_table", sa.String(length=64), nullable=True),
            sa.Column("snapshot_id", sa.Integer(), nullable=True),
            sa.Column("record_key", sa.String(length=255), nullable=True),
            sa.Column("client_id", sa.String(length=64), nullable=True),
            sa.Column("message", sa.Text(), nullable=False),
            sa.Column("severity", sa.String(length=16), nullable=False, server_default=sa.text("'medium'")),
            sa.Column("current_value", sa.Text(), nullable=True),
            sa.Column("previous_value", sa.Text(), nullable=True),
            sa.Column("dedup_key", sa.String(length=64), nullable=True),
            sa.Column("is_acknowledged", sa.Boolean(), nullable=False, server_default=sa.text("false")),
            sa.Column("acknowledged_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("acknowledged_by", sa.String(length=255), nullable=True),
            sa.Column("notified_at", sa.DateTime(timezone=True), nullable=True),
            _created_at(),
        )
        op.create_index("ix_watchtower_alerts_rule_id", "watchtower_alerts", ["rule_id"])
        op.create_index("ix_watchtower_alerts_created_at", "watchtower_alerts", ["created_at"])
        # una sola alerta abierta por (regla, entidad)
        op.create_index(
            "uq_watchtower_alerts_open_dedup",
            "watchtower_alerts",
            ["rule_id", "dedup_key"],
            unique=True,
            postgresql_where=sa.text("is_acknowledged = false"),
        )

    if not insp.has_table("watchtower_channel_ids"):
        op.create_table(
            "watchtower_channel_ids",
            sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
            sa.Column("rule_id", sa.Integer(), nullable=True),
            sa.Column("label", sa.String(length=255), nullable=True),
            sa.Column("channel_id", sa.String(length=64), nullable=False),
            _created_at(),
        )
        op.create_index("ix_watchtower_channel_ids_rule_id", "watchtower_channel_ids", ["rule_id"])


def downgrade() -> None:
    bind = op.get_bind()
    insp = sa.inspect(bind)

    # Solo las tablas propias de Watchtower; las de datos no se tocan
    for table in ("watchtower_channel_ids", "watchtower_alerts", "watchtower_rules"):
        if insp.has_table(table):
            op.drop_table(table)
