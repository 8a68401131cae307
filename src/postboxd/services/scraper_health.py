"""
Scraper health monitoring.

Scores every cinema's listings on two axes:
- Freshness: hours since the cinema was last scraped
- Volume: future screenings, compared with the chain median where one exists

A daily check (07:00 UTC, after the morning imports) stores a snapshot per
cinema and alerts on stale or empty listings. `post_scrape_health_check`
stores a single snapshot right after a save.
"""

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from postboxd.database import session_scope
from postboxd.models import Cinema, HealthSnapshot, Screening

logger = logging.getLogger(__name__)

HEALTHY_MAX_HOURS = 24
WARNING_STALE_HOURS = 48
CRITICAL_STALE_HOURS = 72
WARNING_VOLUME_PERCENT = 60

HEALTHY_SCORE = 80
WARNING_SCORE = 60

FRESHNESS_WEIGHT = 0.6
VOLUME_WEIGHT = 0.4


class AnomalyReason(str, Enum):
    CRITICAL_STALE = "critical_stale"
    WARNING_STALE = "warning_stale"
    ZERO_SCREENINGS = "zero_screenings"
    LOW_VOLUME = "low_volume"


# Most severe first; the first reason present decides the alert type
ALERT_PRIORITY: tuple[tuple[AnomalyReason, str], ...] = (
    (AnomalyReason.CRITICAL_STALE, "critical_stale"),
    (AnomalyReason.ZERO_SCREENINGS, "critical_volume"),
    (AnomalyReason.WARNING_STALE, "warning_stale"),
    (AnomalyReason.LOW_VOLUME, "warning_volume"),
)


@dataclass
class CinemaHealthMetrics:
    cinema_id: str
    cinema_name: str
    chain: str | None

    total_future_screenings: int
    next_14d_screenings: int
    next_7d_screenings: int

    last_scrape_at: datetime | None
    hours_since_last_scrape: int | None

    overall_health_score: int
    freshness_score: int
    volume_score: int

    anomaly_reasons: list[AnomalyReason] = field(default_factory=list)
    chain_median: float | None = None
    percent_of_chain_median: float | None = None
    alert_type: str | None = None

    @property
    def is_anomaly(self) -> bool:
        return bool(self.anomaly_reasons)


@dataclass
class HealthAlert:
    cinema_id: str
    cinema_name: str
    alert_type: str
    message: str
    hours_since_last_scrape: int | None
    screenings_count: int

    @property
    def is_critical(self) -> bool:
        return self.alert_type.startswith("critical")


@dataclass
class HealthCheckResult:
    timestamp: datetime
    metrics: list[CinemaHealthMetrics]
    alerts: list[HealthAlert]

    @property
    def total_cinemas(self) -> int:
        return len(self.metrics)

    @property
    def healthy_cinemas(self) -> int:
        return sum(1 for m in self.metrics if m.overall_health_score >= HEALTHY_SCORE)

    @property
    def warn_cinemas(self) -> int:
        return sum(1 for m in self.metrics if WARNING_SCORE <= m.overall_health_score < HEALTHY_SCORE)

    @property
    def critical_cinemas(self) -> int:
        return sum(1 for m in self.metrics if m.overall_health_score < WARNING_SCORE)

    def summary(self) -> dict[str, int]:
        return {
            "total_cinemas": self.total_cinemas,
            "healthy": self.healthy_cinemas,
            "warning": self.warn_cinemas,
            "critical": self.critical_cinemas,
            "alert_count": len(self.alerts),
        }


# ---------------------------------------------------------------------------
# Scoring
# ---------------------------------------------------------------------------


def _round(value: float) -> int:
    """Round half up, so 92.5 scores 93 rather than 92."""
    return math.floor(value + 0.5)


def calculate_freshness_score(hours_since_last_scrape: float | None) -> int:
    """
    Score freshness from 100 (just scraped) to 0 (six days or more).

    Piecewise linear: 100→80 over the first 24h, 80→60 to 48h, 60→30 to
    72h, then 30→0 over the following 72h. Never scraped scores 0.
    """
    if hours_since_last_scrape is None:
        return 0

    hours = hours_since_last_scrape
    if hours <= HEALTHY_MAX_HOURS:
        return _round(100 - (hours / HEALTHY_MAX_HOURS) * 20)
    if hours <= WARNING_STALE_HOURS:
        over = hours - HEALTHY_MAX_HOURS
        return _round(80 - (over / (WARNING_STALE_HOURS - HEALTHY_MAX_HOURS)) * 20)
    if hours <= CRITICAL_STALE_HOURS:
        over = hours - WARNING_STALE_HOURS
        return _round(60 - (over / (CRITICAL_STALE_HOURS - WARNING_STALE_HOURS)) * 30)
    over = hours - CRITICAL_STALE_HOURS
    return max(0, _round(30 - (over / 72) * 30))


def calculate_volume_score(total_screenings: int, chain_median: float | None) -> int:
    """Score volume against the chain median, or absolute counts for independents."""
    if total_screenings == 0:
        return 0

    if chain_median is not None and chain_median > 0:
        percent = total_screenings / chain_median * 100
        for threshold, score in ((100, 100), (80, 90), (60, 70), (40, 50), (20, 30)):
            if percent >= threshold:
                return score
        return 20

    for threshold, score in ((50, 100), (30, 90), (15, 70), (5, 50)):
        if total_screenings >= threshold:
            return score
    return 30


def median(values: list[int] | list[float]) -> float:
    if not values:
        return 0
    ordered = sorted(values)
    mid = len(ordered) // 2
    if len(ordered) % 2:
        return ordered[mid]
    return (ordered[mid - 1] + ordered[mid]) / 2


def percent_of_median(total: int, chain_median: float) -> float:
    if chain_median > 0:
        return total / chain_median * 100
    return 100.0 if total > 0 else 0.0


def detect_anomalies(
    hours_since_last_scrape: float | None,
    total_future_screenings: int,
    percent_of_chain_median: float | None,
) -> list[AnomalyReason]:
    reasons: list[AnomalyReason] = []

    if hours_since_last_scrape is not None:
        if hours_since_last_scrape >= CRITICAL_STALE_HOURS:
            reasons.append(AnomalyReason.CRITICAL_STALE)
        elif hours_since_last_scrape >= WARNING_STALE_HOURS:
            reasons.append(AnomalyReason.WARNING_STALE)

    if total_future_screenings == 0:
        reasons.append(AnomalyReason.ZERO_SCREENINGS)
    elif percent_of_chain_median is not None and percent_of_chain_median < WARNING_VOLUME_PERCENT:
        reasons.append(AnomalyReason.LOW_VOLUME)

    return reasons


def alert_type_for(reasons: list[AnomalyReason]) -> str | None:
    for reason, alert_type in ALERT_PRIORITY:
        if reason in reasons:
            return alert_type
    return None


def generate_alert_message(metrics: CinemaHealthMetrics) -> str:
    parts: list[str] = []
    reasons = metrics.anomaly_reasons
    hours = metrics.hours_since_last_scrape

    if AnomalyReason.CRITICAL_STALE in reasons:
        parts.append(f"critically stale ({hours}h since last scrape)")
    elif AnomalyReason.WARNING_STALE in reasons:
        parts.append(f"stale ({hours}h since last scrape)")

    if AnomalyReason.ZERO_SCREENINGS in reasons:
        parts.append("zero future screenings")
    elif AnomalyReason.LOW_VOLUME in reasons:
        parts.append(
            f"low volume ({metrics.total_future_screenings} screenings, "
            f"{_round(metrics.percent_of_chain_median or 0)}% of chain median)"
        )

    return f"{metrics.cinema_name}: {', '.join(parts)}"


def build_metrics(
    cinema: Cinema,
    *,
    total: int,
    next_14d: int,
    next_7d: int,
    last_scrape_at: datetime | None,
    chain_volumes: list[int],
    now: datetime,
) -> CinemaHealthMetrics:
    """Combine raw counts for one cinema into scores, anomalies and an alert type."""
    hours = None
    if last_scrape_at is not None:
        hours = int((now - last_scrape_at).total_seconds() // 3600)

    chain_median = None
    percent = None
    if cinema.chain and chain_volumes:
        chain_median = median(chain_volumes)
        percent = percent_of_median(total, chain_median)

    freshness = calculate_freshness_score(hours)
    volume = calculate_volume_score(total, chain_median)
    reasons = detect_anomalies(hours, total, percent)

    return CinemaHealthMetrics(
        cinema_id=cinema.id,
        cinema_name=cinema.name,
        chain=cinema.chain,
        total_future_screenings=total,
        next_14d_screenings=next_14d,
        next_7d_screenings=next_7d,
        last_scrape_at=last_scrape_at,
        hours_since_last_scrape=hours,
        overall_health_score=_round(freshness * FRESHNESS_WEIGHT + volume * VOLUME_WEIGHT),
        freshness_score=freshness,
        volume_score=volume,
        anomaly_reasons=reasons,
        chain_median=chain_median,
        percent_of_chain_median=percent,
        alert_type=alert_type_for(reasons),
    )


# ---------------------------------------------------------------------------
# Database-backed checks
# ---------------------------------------------------------------------------


async def _future_volume(db: AsyncSession, cinema_id: str, now: datetime) -> tuple[int, int, int, datetime | None]:
    stmt = select(
        func.count(),
        func.count().filter(Screening.start_time < now + timedelta(days=14)),
        func.count().filter(Screening.start_time < now + timedelta(days=7)),
        func.max(Screening.scraped_at),
    ).where(Screening.cinema_id == cinema_id, Screening.start_time >= now)
    total, next_14d, next_7d, last_scraped = (await db.execute(stmt)).one()
    return int(total or 0), int(next_14d or 0), int(next_7d or 0), last_scraped


async def _chain_volumes(db: AsyncSession, cinema: Cinema, now: datetime) -> list[int]:
    """Future screening counts of the other cinemas in the same chain."""
    if not cinema.chain:
        return []

    stmt = (
        select(Cinema.id, func.count(Screening.id))
        .outerjoin(
            Screening,
            (Screening.cinema_id == Cinema.id) & (Screening.start_time >= now),
        )
        .where(Cinema.chain == cinema.chain, Cinema.id != cinema.id)
        .group_by(Cinema.id)
    )
    return [int(count) for _, count in (await db.execute(stmt)).all()]


async def get_cinema_health_metrics(
    db: AsyncSession, cinema_id: str, now: datetime | None = None
) -> CinemaHealthMetrics | None:
    """Health metrics for one cinema, or None if the cinema does not exist."""
    now = now or datetime.now(timezone.utc)
    cinema = await db.get(Cinema, cinema_id)
    if cinema is None:
        return None

    total, next_14d, next_7d, last_from_screenings = await _future_volume(db, cinema_id, now)
    # Cinema-level timestamp counts runs that saved zero screenings
    last_scrape_at = cinema.last_scraped_at or last_from_screenings

    return build_metrics(
        cinema,
        total=total,
        next_14d=next_14d,
        next_7d=next_7d,
        last_scrape_at=last_scrape_at,
        chain_volumes=await _chain_volumes(db, cinema, now),
        now=now,
    )


async def run_full_health_check(db: AsyncSession, now: datetime | None = None) -> HealthCheckResult:
    """Compute metrics for every cinema and collect alerts for anomalies."""
    now = now or datetime.now(timezone.utc)
    cinema_ids = (await db.execute(select(Cinema.id).order_by(Cinema.id))).scalars().all()

    metrics: list[CinemaHealthMetrics] = []
    alerts: list[HealthAlert] = []
    for cinema_id in cinema_ids:
        cinema_metrics = await get_cinema_health_metrics(db, cinema_id, now)
        if cinema_metrics is None:
            continue
        metrics.append(cinema_metrics)

        if cinema_metrics.is_anomaly and cinema_metrics.alert_type:
            alerts.append(
                HealthAlert(
                    cinema_id=cinema_metrics.cinema_id,
                    cinema_name=cinema_metrics.cinema_name,
                    alert_type=cinema_metrics.alert_type,
                    message=generate_alert_message(cinema_metrics),
                    hours_since_last_scrape=cinema_metrics.hours_since_last_scrape,
                    screenings_count=cinema_metrics.total_future_screenings,
                )
            )

    return HealthCheckResult(timestamp=now, metrics=metrics, alerts=alerts)


def save_health_snapshot(db: AsyncSession, metrics: CinemaHealthMetrics) -> HealthSnapshot:
    """Add a snapshot row to the session; the caller commits."""
    snapshot = HealthSnapshot(
        cinema_id=metrics.cinema_id,
        snapshot_at=datetime.now(timezone.utc),
        total_future_screenings=metrics.total_future_screenings,
        next_14d_screenings=metrics.next_14d_screenings,
        next_7d_screenings=metrics.next_7d_screenings,
        last_scrape_at=metrics.last_scrape_at,
        hours_since_last_scrape=metrics.hours_since_last_scrape,
        overall_health_score=metrics.overall_health_score,
        freshness_score=metrics.freshness_score,
        volume_score=metrics.volume_score,
        is_anomaly=metrics.is_anomaly,
        anomaly_reasons=[reason.value for reason in metrics.anomaly_reasons],
        chain_median=metrics.chain_median,
        percent_of_chain_median=metrics.percent_of_chain_median,
        triggered_alert=metrics.alert_type is not None,
        alert_type=metrics.alert_type,
    )
    db.add(snapshot)
    return snapshot


async def get_recent_health_snapshots(
    db: AsyncSession, cinema_id: str, days: int = 7
) -> list[HealthSnapshot]:
    since = datetime.now(timezone.utc) - timedelta(days=days)
    stmt = (
        select(HealthSnapshot)
        .where(HealthSnapshot.cinema_id == cinema_id, HealthSnapshot.snapshot_at >= since)
        .order_by(HealthSnapshot.snapshot_at.desc())
    )
    return list((await db.execute(stmt)).scalars().all())


async def post_scrape_health_check(cinema_id: str) -> CinemaHealthMetrics | None:
    """Snapshot one cinema's health right after its screenings were saved."""
    async with session_scope() as db:
        metrics = await get_cinema_health_metrics(db, cinema_id)
        if metrics is None:
            return None
        save_health_snapshot(db, metrics)

    if metrics.is_anomaly:
        reasons = ", ".join(reason.value for reason in metrics.anomaly_reasons)
        logger.warning(f"Health anomaly for {metrics.cinema_name}: {reasons}")
    return metrics
