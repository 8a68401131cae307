"""Historical health metrics for each cinema's listings."""

import uuid
from datetime import datetime

from sqlalchemy import Boolean, DateTime, Float, ForeignKey, Index, Integer, String
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from postboxd.models.base import Base


class HealthSnapshot(Base):
    """
    Point-in-time health of one cinema's data.

    Freshness and volume scores run 0-100; `anomaly_reasons` holds the
    reason codes from `postboxd.services.scraper_health.AnomalyReason`.
    """

    __tablename__ = "health_snapshots"
    __table_args__ = (
        Index("ix_health_snapshots_cinema_snapshot_at", "cinema_id", "snapshot_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    cinema_id: Mapped[str] = mapped_column(
        String(100),
        ForeignKey("cinemas.id", ondelete="CASCADE"),
        nullable=False,
    )
    snapshot_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    # Volume
    total_future_screenings: Mapped[int] = mapped_column(Integer, nullable=False)
    next_14d_screenings: Mapped[int] = mapped_column(Integer, nullable=False)
    next_7d_screenings: Mapped[int] = mapped_column(Integer, nullable=False)

    # Freshness
    last_scrape_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    hours_since_last_scrape: Mapped[float | None] = mapped_column(Float, nullable=True)

    # Scores
    overall_health_score: Mapped[float] = mapped_column(Float, nullable=False)
    freshness_score: Mapped[float] = mapped_column(Float, nullable=False)
    volume_score: Mapped[float] = mapped_column(Float, nullable=False)

    # Anomalies
    is_anomaly: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    anomaly_reasons: Mapped[list[str]] = mapped_column(JSONB, nullable=False, default=list)
    chain_median: Mapped[float | None] = mapped_column(Float, nullable=True)
    percent_of_chain_median: Mapped[float | None] = mapped_column(Float, nullable=True)

    triggered_alert: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    alert_type: Mapped[str | None] = mapped_column(String(50), nullable=True)

    def __repr__(self) -> str:
        return (
            f"<HealthSnapshot(cinema_id={self.cinema_id!r}, "
            f"score={self.overall_health_score}, snapshot_at={self.snapshot_at})>"
        )
