"""Cinema model for storing cinema venue information."""

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, String
from sqlalchemy.dialects.postgresql import ARRAY, JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from postboxd.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from postboxd.models.screening import Screening


class Cinema(Base, TimestampMixin):
    """
    Cinema venue model.

    One row per logical venue. Multi-site operators (BFI Southbank and
    BFI IMAX) are stored as separate cinemas so that screenings can be
    partitioned by venue.
    """

    __tablename__ = "cinemas"

    id: Mapped[str] = mapped_column(String(100), primary_key=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    short_name: Mapped[str | None] = mapped_column(String(50), nullable=True)
    chain: Mapped[str | None] = mapped_column(String(100), nullable=True, index=True)
    website: Mapped[str | None] = mapped_column(String(500), nullable=True)

    # {"street": ..., "area": ..., "postcode": ...}
    address: Mapped[dict | None] = mapped_column(JSONB, nullable=True)
    features: Mapped[list[str]] = mapped_column(ARRAY(String), nullable=False, default=list)

    # Set on every save, even when a run produced zero screenings
    last_scraped_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    screenings: Mapped[list["Screening"]] = relationship(
        back_populates="cinema",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<Cinema(id={self.id!r}, name={self.name!r})>"
