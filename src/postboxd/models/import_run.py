"""Audit record for one BFI import run."""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, Index, Integer, String, func
from sqlalchemy.dialects.postgresql import ARRAY, JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from postboxd.models.base import Base


class ImportRun(Base):
    """
    Persisted outcome of a single importer execution.

    Rows are written once at the end of a run and never updated.
    """

    __tablename__ = "bfi_import_runs"
    __table_args__ = (
        Index("ix_bfi_import_runs_status_created_at", "status", "created_at"),
        Index("ix_bfi_import_runs_run_type_created_at", "run_type", "created_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    run_type: Mapped[str] = mapped_column(String(20), nullable=False)  # full | changes
    status: Mapped[str] = mapped_column(String(20), nullable=False)  # success | degraded | failed
    triggered_by: Mapped[str | None] = mapped_column(String(200), nullable=True)

    # {"pdf": "success", "programme_changes": "empty"}
    source_status: Mapped[dict] = mapped_column(JSONB, nullable=False)

    pdf_screenings: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    changes_screenings: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_screenings: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    added: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    updated: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    failed: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    error_codes: Mapped[list[str]] = mapped_column(ARRAY(String), nullable=False, default=list)
    errors: Mapped[list[str]] = mapped_column(ARRAY(String), nullable=False, default=list)

    started_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    finished_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    duration_ms: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
        index=True,
    )

    def __repr__(self) -> str:
        return f"<ImportRun(run_type={self.run_type!r}, status={self.status!r}, started_at={self.started_at})>"
