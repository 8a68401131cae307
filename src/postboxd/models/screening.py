"""Screening model for film screening times at cinemas."""

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from postboxd.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from postboxd.models.cinema import Cinema
    from postboxd.models.film import Film


class Screening(Base, TimestampMixin):
    """
    A single screening of a film at a cinema.

    Identity is (cinema, film, start_time, screen): the same film at the same
    minute in two auditoria is two screenings.
    """

    __tablename__ = "screenings"
    __table_args__ = (
        UniqueConstraint(
            "cinema_id",
            "film_id",
            "start_time",
            "screen",
            name="uq_cinema_film_time_screen",
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)

    cinema_id: Mapped[str] = mapped_column(
        String(100),
        ForeignKey("cinemas.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    film_id: Mapped[str] = mapped_column(
        String(100),
        ForeignKey("films.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    start_time: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        index=True,
    )
    screen: Mapped[str | None] = mapped_column(String(100), nullable=True)
    format: Mapped[str | None] = mapped_column(String(100), nullable=True)
    booking_url: Mapped[str] = mapped_column(String(1000), nullable=False)
    event_type: Mapped[str | None] = mapped_column(String(50), nullable=True)
    event_description: Mapped[str | None] = mapped_column(Text, nullable=True)
    source_id: Mapped[str | None] = mapped_column(String(500), nullable=True, index=True)

    # Title exactly as the source listed it
    raw_title: Mapped[str | None] = mapped_column(Text, nullable=True)

    scraped_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    cinema: Mapped["Cinema"] = relationship(back_populates="screenings")
    film: Mapped["Film"] = relationship(back_populates="screenings")

    def __repr__(self) -> str:
        return (
            f"<Screening(cinema_id={self.cinema_id!r}, "
            f"film_id={self.film_id!r}, "
            f"start_time={self.start_time}, screen={self.screen!r})>"
        )
