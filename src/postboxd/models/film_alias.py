"""Film alias model mapping raw listing titles to canonical films."""

from typing import TYPE_CHECKING

from sqlalchemy import ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from postboxd.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from postboxd.models.film import Film


class FilmAlias(Base, TimestampMixin):
    """
    Cached title -> film mapping.

    `normalized_title` is the lowercased, whitespace-collapsed raw listing
    title, so a listing seen once never goes through title extraction or
    TMDb again.
    """

    __tablename__ = "film_aliases"
    __table_args__ = (UniqueConstraint("normalized_title", name="uq_normalized_title"),)

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    normalized_title: Mapped[str] = mapped_column(String(500), nullable=False, index=True)
    film_id: Mapped[str] = mapped_column(
        String(100),
        ForeignKey("films.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    film: Mapped["Film"] = relationship(back_populates="aliases")

    def __repr__(self) -> str:
        return f"<FilmAlias(normalized_title={self.normalized_title!r}, film_id={self.film_id!r})>"
