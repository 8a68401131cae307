"""SQLAlchemy ORM models."""

from postboxd.models.base import Base
from postboxd.models.cinema import Cinema
from postboxd.models.film import Film
from postboxd.models.film_alias import FilmAlias
from postboxd.models.health_snapshot import HealthSnapshot
from postboxd.models.import_run import ImportRun
from postboxd.models.screening import Screening

__all__ = [
    "Base",
    "Cinema",
    "Film",
    "FilmAlias",
    "HealthSnapshot",
    "ImportRun",
    "Screening",
]
