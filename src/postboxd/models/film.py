"""Film model for storing film metadata."""

from typing import TYPE_CHECKING

from sqlalchemy import Boolean, Integer, String, Text
from sqlalchemy.dialects.postgresql import ARRAY
from sqlalchemy.orm import Mapped, mapped_column, relationship

from postboxd.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from postboxd.models.film_alias import FilmAlias
    from postboxd.models.screening import Screening


class Film(Base, TimestampMixin):
    """
    Film model.

    Stores film metadata from TMDb or placeholder data. `title` is the
    canonical (version-stripped) title; non-film events such as quizzes
    are stored with `is_non_film` set and are never sent to TMDb.
    """

    __tablename__ = "films"

    id: Mapped[str] = mapped_column(String(100), primary_key=True)
    title: Mapped[str] = mapped_column(String(500), nullable=False, index=True)
    year: Mapped[int | None] = mapped_column(Integer, nullable=True)

    # TMDb metadata
    tmdb_id: Mapped[int | None] = mapped_column(Integer, nullable=True, unique=True, index=True)
    directors: Mapped[list[str] | None] = mapped_column(ARRAY(String), nullable=True)
    countries: Mapped[list[str] | None] = mapped_column(ARRAY(String), nullable=True)
    cast: Mapped[list[str] | None] = mapped_column(ARRAY(String), nullable=True)
    overview: Mapped[str | None] = mapped_column(Text, nullable=True)
    poster_path: Mapped[str | None] = mapped_column(String(200), nullable=True)
    runtime: Mapped[int | None] = mapped_column(Integer, nullable=True)

    is_non_film: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    screenings: Mapped[list["Screening"]] = relationship(
        back_populates="film",
        cascade="all, delete-orphan",
    )
    aliases: Mapped[list["FilmAlias"]] = relationship(
        back_populates="film",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<Film(id={self.id!r}, title={self.title!r}, year={self.year})>"
