"""Create integration, event, fusion metric and reliability tables."""

from __future__ import annotations

import sqlalchemy as sa

from alembic import op as alembic_op  # type: ignore[import-untyped]

revision = "20261018_0001"
down_revision = None
branch_labels = None
depends_on = None


def _timestamp(name: str, *, nullable: bool = False, default_now: bool = False) -> sa.Column:
    return sa.Column(
        name,
        sa.DateTime(timezone=True),
        nullable=nullable,
        server_default=sa.func.now() if default_now else None,
    )


def upgrade() -> None:
    """Create every table used by the service."""

    alembic_op.create_table(
        "user_integrations",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.String(length=64), nullable=False),
        sa.Column("service_name", sa.String(length=64), nullable=False),
        sa.Column("status", sa.String(length=32), nullable=False, server_default="active"),
        sa.Column("external_id", sa.String(length=255), nullable=True),
        sa.Column("display_name", sa.String(length=255), nullable=True),
        sa.Column("credentials", sa.JSON(), nullable=True),
        _timestamp("added_at", default_now=True),
        _timestamp("last_event_at", nullable=True),
        sa.Column("last_event_id", sa.String(length=255), nullable=True),
    )
    alembic_op.create_index("ix_user_integrations_user_id", "user_integrations", ["user_id"])
    alembic_op.create_index(
        "ix_user_integrations_service_name", "user_integrations", ["service_name"]
    )
    alembic_op.create_index(
        "ix_user_integrations_external_id", "user_integrations", ["external_id"]
    )

    alembic_op.create_table(
        "integration_events",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.String(length=64), nullable=False),
        sa.Column(
            "user_integration_id",
            sa.Integer(),
            sa.ForeignKey("user_integrations.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("service_name", sa.String(length=64), nullable=False),
        sa.Column("event_type", sa.String(length=128), nullable=False),
        _timestamp("occurred_at"),
        sa.Column("source", sa.String(length=64), nullable=False),
        sa.Column("external_event_id", sa.String(length=255), nullable=True),
        sa.Column("metadata", sa.JSON(), nullable=False),
        _timestamp("created_at", default_now=True),
    )
    alembic_op.create_index("ix_integration_events_user_id", "integration_events", ["user_id"])
    alembic_op.create_index(
        "ix_integration_events_service_name", "integration_events", ["service_name"]
    )
    alembic_op.create_index(
        "ix_integration_events_external_event_id", "integration_events", ["external_event_id"]
    )

    alembic_op.create_table(
        "automation_hooks",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.String(length=64), nullable=False),
        sa.Column("event_type", sa.String(length=128), nullable=False),
        sa.Column("trigger_source", sa.String(length=64), nullable=False),
        sa.Column("action", sa.JSON(), nullable=False),
        sa.Column("status", sa.String(length=32), nullable=False, server_default="pending"),
        sa.Column("metadata", sa.JSON(), nullable=True),
        _timestamp("created_at", default_now=True),
        _timestamp("executed_at", nullable=True),
    )
    alembic_op.create_index("ix_automation_hooks_user_id", "automation_hooks", ["user_id"])
    alembic_op.create_index("ix_automation_hooks_status", "automation_hooks", ["status"])

    alembic_op.create_table(
        "integration_ingestion_state",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.String(length=64), nullable=False),
        sa.Column(
            "user_integration_id",
            sa.Integer(),
            sa.ForeignKey("user_integrations.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("service_name", sa.String(length=64), nullable=False),
        _timestamp("last_polled_at", nullable=True),
        _timestamp("last_event_timestamp", nullable=True),
        _timestamp("next_poll_after", nullable=True),
        sa.Column("metadata", sa.JSON(), nullable=True),
        _timestamp("updated_at", default_now=True),
        sa.UniqueConstraint(
            "user_id",
            "user_integration_id",
            "service_name",
            name="uq_ingestion_state_tenant_service",
        ),
    )

    alembic_op.create_table(
        "integration_metric_samples",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.String(length=64), nullable=False),
        sa.Column("integration_name", sa.String(length=128), nullable=False),
        sa.Column("success_count", sa.Integer(), nullable=False),
        sa.Column("failure_count", sa.Integer(), nullable=False),
        sa.Column("avg_response_time_ms", sa.Float(), nullable=False),
        sa.Column("data_quality_score", sa.Float(), nullable=False),
        sa.Column("uptime_percentage", sa.Float(), nullable=False),
        _timestamp("recorded_at", default_now=True),
    )
    alembic_op.create_index(
        "ix_metric_samples_user_integration",
        "integration_metric_samples",
        ["user_id", "integration_name", "recorded_at"],
    )

    alembic_op.create_table(
        "fusion_efficiency_metrics",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.String(length=64), nullable=False),
        sa.Column("integration_name", sa.String(length=128), nullable=False),
        sa.Column("fusion_score", sa.Float(), nullable=False),
        sa.Column("efficiency_index", sa.Float(), nullable=False),
        sa.Column("trend_7d", sa.Float(), nullable=False, server_default="0"),
        sa.Column("stability_confidence", sa.Float(), nullable=False),
        _timestamp("last_anomaly_at", nullable=True),
        _timestamp("updated_at", default_now=True),
        sa.UniqueConstraint(
            "user_id", "integration_name", name="uq_fusion_metrics_user_integration"
        ),
    )
    alembic_op.create_index(
        "ix_fusion_efficiency_metrics_user_id", "fusion_efficiency_metrics", ["user_id"]
    )

    alembic_op.create_table(
        "fusion_score_history",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.String(length=64), nullable=False),
        sa.Column("integration_name", sa.String(length=128), nullable=False),
        sa.Column("fusion_score", sa.Float(), nullable=False),
        _timestamp("recorded_at", default_now=True),
    )
    alembic_op.create_index(
        "ix_score_history_user_integration",
        "fusion_score_history",
        ["user_id", "integration_name", "recorded_at"],
    )

    alembic_op.create_table(
        "fusion_adaptive_reliability",
        sa.Column("channel", sa.String(length=16), primary_key=True),
        sa.Column("avg_latency_ms", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("failure_rate", sa.Float(), nullable=False, server_default="0"),
        sa.Column("recommended_retry_ms", sa.Integer(), nullable=False, server_default="1000"),
        sa.Column("confidence_score", sa.Float(), nullable=False, server_default="0.5"),
        _timestamp("last_updated", default_now=True),
        sa.CheckConstraint("channel IN ('slack', 'email')", name="ck_reliability_channel"),
        sa.CheckConstraint(
            "failure_rate >= 0 AND failure_rate <= 1", name="ck_reliability_failure_rate"
        ),
        sa.CheckConstraint(
            "recommended_retry_ms >= 500 AND recommended_retry_ms <= 10000",
            name="ck_reliability_retry_ms",
        ),
        sa.CheckConstraint(
            "confidence_score >= 0 AND confidence_score <= 1",
            name="ck_reliability_confidence",
        ),
    )


def downgrade() -> None:
    """Drop every table created in :func:`upgrade`."""

    alembic_op.drop_table("fusion_adaptive_reliability")
    alembic_op.drop_index("ix_score_history_user_integration", table_name="fusion_score_history")
    alembic_op.drop_table("fusion_score_history")
    alembic_op.drop_index(
        "ix_fusion_efficiency_metrics_user_id", table_name="fusion_efficiency_metrics"
    )
    alembic_op.drop_table("fusion_efficiency_metrics")
    alembic_op.drop_index(
        "ix_metric_samples_user_integration", table_name="integration_metric_samples"
    )
    alembic_op.drop_table("integration_metric_samples")
    alembic_op.drop_table("integration_ingestion_state")
    alembic_op.drop_index("ix_automation_hooks_status", table_name="automation_hooks")
    alembic_op.drop_index("ix_automation_hooks_user_id", table_name="automation_hooks")
    alembic_op.drop_table("automation_hooks")
    alembic_op.drop_index(
        "ix_integration_events_external_event_id", table_name="integration_events"
    )
    alembic_op.drop_index("ix_integration_events_service_name", table_name="integration_events")
    alembic_op.drop_index("ix_integration_events_user_id", table_name="integration_events")
    alembic_op.drop_table("integration_events")
    alembic_op.drop_index("ix_user_integrations_external_id", table_name="user_integrations")
    alembic_op.drop_index("ix_user_integrations_service_name", table_name="user_integrations")
    alembic_op.drop_index("ix_user_integrations_user_id", table_name="user_integrations")
    alembic_op.drop_table("user_integrations")
