"""SQLAlchemy models for fusion metrics, score history and channel reliability."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    Float,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, utcnow


class IntegrationMetricSample(Base):
    """Raw operational sample reported for one integration. Never updated."""

    __tablename__ = "integration_metric_samples"
    __table_args__ = (
        Index("ix_metric_samples_user_integration", "user_id", "integration_name", "recorded_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    integration_name: Mapped[str] = mapped_column(String(128), nullable=False)
    success_count: Mapped[int] = mapped_column(Integer, nullable=False)
    failure_count: Mapped[int] = mapped_column(Integer, nullable=False)
    avg_response_time_ms: Mapped[float] = mapped_column(Float, nullable=False)
    data_quality_score: Mapped[float] = mapped_column(Float, nullable=False)
    uptime_percentage: Mapped[float] = mapped_column(Float, nullable=False)
    recorded_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )


class FusionMetricRecord(Base):
    """Latest derived fusion metrics per (user, integration)."""

    __tablename__ = "fusion_efficiency_metrics"
    __table_args__ = (
        UniqueConstraint("user_id", "integration_name", name="uq_fusion_metrics_user_integration"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    integration_name: Mapped[str] = mapped_column(String(128), nullable=False)
    fusion_score: Mapped[float] = mapped_column(Float, nullable=False)
    efficiency_index: Mapped[float] = mapped_column(Float, nullable=False)
    trend_7d: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    stability_confidence: Mapped[float] = mapped_column(Float, nullable=False)
    last_anomaly_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    def __repr__(self) -> str:
        return (
            f"<FusionMetricRecord user={self.user_id} integration={self.integration_name} "
            f"score={self.fusion_score}>"
        )


class FusionScoreHistory(Base):
    """Append-only log of computed fusion scores."""

    __tablename__ = "fusion_score_history"
    __table_args__ = (
        Index("ix_score_history_user_integration", "user_id", "integration_name", "recorded_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    integration_name: Mapped[str] = mapped_column(String(128), nullable=False)
    fusion_score: Mapped[float] = mapped_column(Float, nullable=False)
    recorded_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )


class FusionAdaptiveReliability(Base):
    """Channel reliability figures written by the external self-test process."""

    __tablename__ = "fusion_adaptive_reliability"
    __table_args__ = (
        CheckConstraint("channel IN ('slack', 'email')", name="ck_reliability_channel"),
        CheckConstraint(
            "failure_rate >= 0 AND failure_rate <= 1", name="ck_reliability_failure_rate"
        ),
        CheckConstraint(
            "recommended_retry_ms >= 500 AND recommended_retry_ms <= 10000",
            name="ck_reliability_retry_ms",
        ),
        CheckConstraint(
            "confidence_score >= 0 AND confidence_score <= 1",
            name="ck_reliability_confidence",
        ),
    )

    channel: Mapped[str] = mapped_column(String(16), primary_key=True)
    avg_latency_ms: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    failure_rate: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    recommended_retry_ms: Mapped[int] = mapped_column(Integer, nullable=False, default=1000)
    confidence_score: Mapped[float] = mapped_column(Float, nullable=False, default=0.5)
    last_updated: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
