"""Tests for the BFI import orchestrator, run against fake dependencies."""

import asyncio
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest

from postboxd.scrapers.bfi_pdf.fetcher import FetchedPDF, PDFInfo
from postboxd.scrapers.bfi_pdf.importer import (
    BFI_IMAX,
    BFI_SOUTHBANK,
    ImportDependencies,
    ImportIssue,
    grade_run,
    is_imax_booking_url,
    merge_screenings,
    run_bfi_import,
    run_programme_changes_import,
    screening_key,
    venue_key,
)
from postboxd.scrapers.bfi_pdf.pdf_parser import ParseResult
from postboxd.scrapers.bfi_pdf.programme_changes import ProgrammeChangesResult
from postboxd.scrapers.models import ImportRunRecord, RawScreening
from postboxd.services.pipeline import PipelineResult

SOUTHBANK_URL = "https://whatson.bfi.org.uk/Online/default.asp?search=Vertigo"
IMAX_URL = "https://whatson.bfi.org.uk/imax/Online/default.asp?search=Oppenheimer"
START = datetime(2026, 11, 7, 18, 0, tzinfo=timezone.utc)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def make_screening(
    title: str = "Vertigo",
    start: datetime = START,
    screen: str | None = "NFT1",
    booking_url: str = SOUTHBANK_URL,
    source_id: str | None = None,
) -> RawScreening:
    return RawScreening(
        film_title=title,
        start_time=start,
        screen=screen,
        booking_url=booking_url,
        source_id=source_id,
    )


def make_fetched() -> FetchedPDF:
    info = PDFInfo(
        label="November 2026",
        accessible_pdf_url="https://www.bfi.org.uk/media/999/download",
        media_id="999",
    )
    return FetchedPDF(info=info, content=b"%PDF-1.7", content_hash="f" * 64)


def make_parse_result(*screenings: RawScreening) -> ParseResult:
    return ParseResult(films=[], screenings=list(screenings), parse_errors=[], pdf_label="November 2026")


def make_changes_result(*screenings: RawScreening) -> ProgrammeChangesResult:
    return ProgrammeChangesResult(
        changes=[], screenings=list(screenings), last_updated="5 November 2026", parse_errors=[]
    )


def make_deps(
    pdf_screenings: tuple[RawScreening, ...] = (),
    changes_screenings: tuple[RawScreening, ...] = (),
) -> ImportDependencies:
    return ImportDependencies(
        fetch_pdf=AsyncMock(return_value=make_fetched()),
        parse_pdf=AsyncMock(return_value=make_parse_result(*pdf_screenings)),
        fetch_changes=AsyncMock(return_value=make_changes_result(*changes_screenings)),
        ensure_cinema=AsyncMock(),
        save_screenings=AsyncMock(side_effect=lambda cinema_id, items: PipelineResult(added=len(items))),
        persist_run=AsyncMock(),
        send_alert=AsyncMock(),
    )


def saved_partitions(deps: ImportDependencies) -> dict[str, list[RawScreening]]:
    return {call.args[0]: list(call.args[1]) for call in deps.save_screenings.await_args_list}


def persisted_record(deps: ImportDependencies) -> ImportRunRecord:
    deps.persist_run.assert_awaited_once()
    return deps.persist_run.await_args.args[0]


VERTIGO = make_screening()
OPPENHEIMER = make_screening("Oppenheimer", screen="IMAX", booking_url=IMAX_URL)
NOSFERATU = make_screening("Nosferatu", start=START + timedelta(days=1), screen="NFT3")


# ---------------------------------------------------------------------------
# Venue routing and deduplication
# ---------------------------------------------------------------------------


class TestVenueRouting:
    @pytest.mark.parametrize(
        "url, expected",
        [
            (IMAX_URL, True),
            ("https://www.bfiimax.org.uk/whats-on", True),
            ("https://whatson.bfi.org.uk/IMAX", True),
            (SOUTHBANK_URL, False),
            ("https://whatson.bfi.org.uk/Online/imaxfilms", False),
            ("", False),
            (None, False),
        ],
    )
    def test_is_imax_booking_url(self, url: str | None, expected: bool) -> None:
        assert is_imax_booking_url(url) is expected

    def test_screen_label(self) -> None:
        assert venue_key(make_screening(screen="BFI IMAX")) == BFI_IMAX

    def test_booking_url_fallback(self) -> None:
        assert venue_key(make_screening(screen=None, booking_url=IMAX_URL)) == BFI_IMAX

    def test_southbank_default(self) -> None:
        assert venue_key(make_screening(screen=None)) == BFI_SOUTHBANK
        assert venue_key(make_screening(screen="STUDIO")) == BFI_SOUTHBANK


class TestScreeningKey:
    def test_key_parts(self) -> None:
        assert screening_key(make_screening("Paris,  Texas", screen="NFT 2")) == (
            "bfi-southbank|paris,-texas|2026-11-07T18:00|nft-2"
        )

    def test_normalised_to_utc_minute(self) -> None:
        bst = timezone(timedelta(hours=1))
        a = make_screening(start=datetime(2026, 6, 1, 19, 0, 30, tzinfo=bst))
        b = make_screening(start=datetime(2026, 6, 1, 18, 0, tzinfo=timezone.utc))
        assert screening_key(a) == screening_key(b)

    def test_missing_screen(self) -> None:
        assert screening_key(make_screening(screen=None)).endswith("|unknown")

    def test_same_slot_at_different_venues_is_distinct(self) -> None:
        southbank = make_screening(screen=None)
        imax = make_screening(screen=None, booking_url=IMAX_URL)
        assert screening_key(southbank) != screening_key(imax)


class TestMergeScreenings:
    def test_programme_change_wins(self) -> None:
        from_pdf = make_screening(source_id="pdf")
        from_changes = make_screening(title="VERTIGO", source_id="changes")

        merged = merge_screenings([from_pdf, NOSFERATU], [from_changes])

        assert len(merged) == 2
        assert from_changes in merged
        assert from_pdf not in merged

    def test_different_screens_both_kept(self) -> None:
        merged = merge_screenings([VERTIGO], [make_screening(screen="NFT2")])
        assert len(merged) == 2

    def test_empty(self) -> None:
        assert merge_screenings([], []) == []


class TestGradeRun:
    def test_success(self) -> None:
        assert grade_run(10, {"pdf": "success", "programme_changes": "empty"}, []) == "success"

    def test_failed_source_degrades(self) -> None:
        assert grade_run(10, {"pdf": "failed", "programme_changes": "success"}, []) == "degraded"

    def test_issue_degrades(self) -> None:
        issue = ImportIssue("SAVE_IMAX_FAILED", "boom")
        assert grade_run(10, {"pdf": "success", "programme_changes": "success"}, [issue]) == "degraded"

    def test_nothing_saved_fails(self) -> None:
        assert grade_run(0, {"pdf": "success", "programme_changes": "success"}, []) == "failed"

    def test_empty_allowed(self) -> None:
        assert grade_run(0, {"pdf": "empty", "programme_changes": "empty"}, [], allow_empty=True) == "success"


# ---------------------------------------------------------------------------
# Full import
# ---------------------------------------------------------------------------


class TestRunBfiImport:
    async def test_clean_run(self) -> None:
        deps = make_deps(pdf_screenings=(VERTIGO, OPPENHEIMER), changes_screenings=(NOSFERATU,))

        result = await run_bfi_import("test", deps=deps)

        assert result.status == "success"
        assert result.success
        assert result.pdf_screenings == 2
        assert result.changes_screenings == 1
        assert result.total_screenings == 3
        assert result.saved == PipelineResult(added=3)
        assert result.source_status == {"pdf": "success", "programme_changes": "success"}
        assert result.error_codes == []
        assert result.pdf_info == {"label": "November 2026", "content_hash": "f" * 64}
        assert result.changes_info == {"last_updated": "5 November 2026"}

        partitions = saved_partitions(deps)
        assert partitions[BFI_SOUTHBANK] == [VERTIGO, NOSFERATU]
        assert partitions[BFI_IMAX] == [OPPENHEIMER]
        deps.send_alert.assert_not_called()

    async def test_ensures_both_venues(self) -> None:
        deps = make_deps(pdf_screenings=(VERTIGO,))
        await run_bfi_import("test", deps=deps)
        venue_ids = [call.args[0].id for call in deps.ensure_cinema.await_args_list]
        assert venue_ids == [BFI_SOUTHBANK, BFI_IMAX]

    async def test_only_non_empty_partitions_saved(self) -> None:
        deps = make_deps(pdf_screenings=(VERTIGO,))
        await run_bfi_import("test", deps=deps)
        assert list(saved_partitions(deps)) == [BFI_SOUTHBANK]

    async def test_run_record(self) -> None:
        deps = make_deps(pdf_screenings=(VERTIGO,))

        result = await run_bfi_import("admin-api", deps=deps)

        record = persisted_record(deps)
        assert record.run_type == "full"
        assert record.status == "success"
        assert record.triggered_by == "admin-api"
        assert record.added == 1
        assert record.error_codes == ()
        assert record.duration_ms == result.duration_ms
        assert record.finished_at - record.started_at == timedelta(milliseconds=result.duration_ms)

    async def test_unknown_trigger(self) -> None:
        deps = make_deps(pdf_screenings=(VERTIGO,))
        await run_bfi_import(deps=deps)
        assert persisted_record(deps).triggered_by == "unknown"

    async def test_pdf_not_found_degrades(self) -> None:
        deps = make_deps(changes_screenings=(NOSFERATU,))
        deps.fetch_pdf.return_value = None

        result = await run_bfi_import("test", deps=deps)

        assert result.status == "degraded"
        assert result.error_codes == ["PDF_NOT_FOUND"]
        assert result.errors == ["No PDF found"]
        assert result.source_status["pdf"] == "failed"
        assert result.pdf_info is None
        deps.parse_pdf.assert_not_called()
        deps.send_alert.assert_awaited_once()

    async def test_parse_failure_keeps_pdf_info(self) -> None:
        deps = make_deps(changes_screenings=(NOSFERATU,))
        deps.parse_pdf.side_effect = ValueError("no text layer")

        result = await run_bfi_import("test", deps=deps)

        assert result.status == "degraded"
        assert result.error_codes == ["PDF_FETCH_PARSE_FAILED"]
        assert "no text layer" in result.errors[0]
        assert result.pdf_info["label"] == "November 2026"

    async def test_changes_failure_degrades(self) -> None:
        deps = make_deps(pdf_screenings=(VERTIGO,))
        deps.fetch_changes.side_effect = ConnectionError("reset")

        result = await run_bfi_import("test", deps=deps)

        assert result.status == "degraded"
        assert result.error_codes == ["PROGRAMME_CHANGES_FAILED"]
        assert result.source_status == {"pdf": "success", "programme_changes": "failed"}
        assert result.saved.added == 1

    async def test_both_sources_failing(self) -> None:
        deps = make_deps()
        deps.fetch_pdf.return_value = None
        deps.fetch_changes.side_effect = ConnectionError("reset")

        result = await run_bfi_import("test", deps=deps)

        assert result.status == "failed"
        assert not result.success
        assert result.error_codes == ["PDF_NOT_FOUND", "PROGRAMME_CHANGES_FAILED", "NO_SCREENINGS_PARSED"]
        deps.save_screenings.assert_not_called()
        deps.send_alert.assert_awaited_once()
        assert deps.send_alert.await_args.args[0].status == "failed"

    async def test_empty_sources_fail(self) -> None:
        deps = make_deps()

        result = await run_bfi_import("test", deps=deps)

        assert result.status == "failed"
        assert result.source_status == {"pdf": "empty", "programme_changes": "empty"}
        assert result.error_codes == ["NO_SCREENINGS_PARSED"]

    async def test_one_venue_failing_leaves_the_other(self) -> None:
        async def save(cinema_id: str, items: list[RawScreening]) -> PipelineResult:
            if cinema_id == BFI_IMAX:
                raise RuntimeError("deadlock detected")
            return PipelineResult(added=len(items), updated=1)

        deps = make_deps(pdf_screenings=(VERTIGO, OPPENHEIMER, NOSFERATU))
        deps.save_screenings = AsyncMock(side_effect=save)

        result = await run_bfi_import("test", deps=deps)

        assert result.status == "degraded"
        assert result.error_codes == ["SAVE_IMAX_FAILED"]
        assert result.errors == ["Failed to save IMAX screenings: deadlock detected"]
        assert result.saved == PipelineResult(added=2, updated=1)

    async def test_southbank_save_failure_code(self) -> None:
        deps = make_deps(pdf_screenings=(VERTIGO,))
        deps.save_screenings = AsyncMock(side_effect=RuntimeError("down"))

        result = await run_bfi_import("test", deps=deps)

        assert result.error_codes == ["SAVE_SOUTHBANK_FAILED"]
        assert result.saved == PipelineResult()

    async def test_venues_saved_one_at_a_time(self) -> None:
        events: list[str] = []

        async def save(cinema_id: str, items: list[RawScreening]) -> PipelineResult:
            events.append(f"start {cinema_id}")
            await asyncio.sleep(0)
            events.append(f"end {cinema_id}")
            return PipelineResult(added=len(items))

        deps = make_deps(pdf_screenings=(VERTIGO, OPPENHEIMER))
        deps.save_screenings = AsyncMock(side_effect=save)

        await run_bfi_import("test", deps=deps)

        assert events == [
            f"start {BFI_SOUTHBANK}",
            f"end {BFI_SOUTHBANK}",
            f"start {BFI_IMAX}",
            f"end {BFI_IMAX}",
        ]

    async def test_imax_saved_after_southbank_failure(self) -> None:
        async def save(cinema_id: str, items: list[RawScreening]) -> PipelineResult:
            if cinema_id == BFI_SOUTHBANK:
                raise RuntimeError("connection reset")
            return PipelineResult(added=len(items))

        deps = make_deps(pdf_screenings=(VERTIGO, OPPENHEIMER))
        deps.save_screenings = AsyncMock(side_effect=save)

        result = await run_bfi_import("test", deps=deps)

        assert result.error_codes == ["SAVE_SOUTHBANK_FAILED"]
        assert result.saved == PipelineResult(added=1)
        assert deps.save_screenings.await_count == 2

    async def test_same_slot_at_both_venues_saves_both(self) -> None:
        southbank = make_screening("Dune: Part Two", screen="NFT1")
        imax = make_screening("Dune: Part Two", screen="IMAX", booking_url=IMAX_URL)
        deps = make_deps(pdf_screenings=(southbank,), changes_screenings=(imax,))

        result = await run_bfi_import("test", deps=deps)

        assert result.status == "success"
        assert result.total_screenings == 2
        assert result.saved == PipelineResult(added=2)
        assert saved_partitions(deps) == {BFI_SOUTHBANK: [southbank], BFI_IMAX: [imax]}

    async def test_same_slot_without_screen_routed_by_booking_url(self) -> None:
        southbank = make_screening("Dune: Part Two", screen=None)
        imax = make_screening("Dune: Part Two", screen=None, booking_url=IMAX_URL)
        deps = make_deps(pdf_screenings=(southbank, imax))

        result = await run_bfi_import("test", deps=deps)

        assert result.total_screenings == 2
        assert list(saved_partitions(deps)) == [BFI_SOUTHBANK, BFI_IMAX]

    async def test_venue_setup_failure_does_not_stop_run(self) -> None:
        deps = make_deps(pdf_screenings=(VERTIGO,))
        deps.ensure_cinema.side_effect = RuntimeError("permission denied")

        result = await run_bfi_import("test", deps=deps)

        assert result.status == "degraded"
        assert result.error_codes == ["VENUE_INIT_FAILED"]
        assert result.saved.added == 1

    async def test_persist_failure_is_swallowed(self) -> None:
        deps = make_deps(pdf_screenings=(VERTIGO,))
        deps.persist_run.side_effect = RuntimeError("db gone")

        result = await run_bfi_import("test", deps=deps)

        assert result.status == "success"

    async def test_alert_failure_is_swallowed(self) -> None:
        deps = make_deps()
        deps.fetch_pdf.return_value = None
        deps.send_alert.side_effect = RuntimeError("slack down")

        result = await run_bfi_import("test", deps=deps)

        assert result.status == "failed"
        deps.persist_run.assert_awaited_once()

    async def test_to_dict(self) -> None:
        deps = make_deps(pdf_screenings=(VERTIGO,))

        data = (await run_bfi_import("test", deps=deps)).to_dict()

        assert data["success"] is True
        assert data["status"] == "success"
        assert data["saved"] == {"added": 1, "updated": 0, "failed": 0}


# ---------------------------------------------------------------------------
# Programme changes only
# ---------------------------------------------------------------------------


class TestRunProgrammeChangesImport:
    async def test_saves_changes_without_pdf(self) -> None:
        deps = make_deps(changes_screenings=(NOSFERATU, OPPENHEIMER))

        result = await run_programme_changes_import("test", deps=deps)

        assert result.status == "success"
        assert result.pdf_screenings == 0
        assert result.changes_screenings == 2
        assert result.source_status == {"pdf": "empty", "programme_changes": "success"}
        assert result.pdf_info is None
        deps.fetch_pdf.assert_not_called()
        assert set(saved_partitions(deps)) == {BFI_SOUTHBANK, BFI_IMAX}
        assert persisted_record(deps).run_type == "changes"

    async def test_empty_page_is_not_a_failure(self) -> None:
        deps = make_deps()

        result = await run_programme_changes_import("test", deps=deps)

        assert result.status == "success"
        assert result.total_screenings == 0
        deps.save_screenings.assert_not_called()
        deps.send_alert.assert_not_called()

    async def test_fetch_failure_degrades(self) -> None:
        deps = make_deps()
        deps.fetch_changes.side_effect = TimeoutError()

        result = await run_programme_changes_import("test", deps=deps)

        assert result.status == "degraded"
        assert result.error_codes == ["PROGRAMME_CHANGES_FAILED"]
        deps.send_alert.assert_awaited_once()
