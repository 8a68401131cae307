"""Tests for the BFI programme changes page parser."""

from datetime import datetime
from unittest.mock import AsyncMock, MagicMock
from zoneinfo import ZoneInfo

import pytest

from postboxd.config import settings
from postboxd.scrapers.bfi_pdf.programme_changes import (
    classify_change,
    fetch_programme_changes,
    parse_changes_page,
    parse_slots,
)

LONDON = ZoneInfo("Europe/London")
NOW = datetime(2026, 1, 10, 12, 0, tzinfo=LONDON)

CHANGES_HTML = """
<html><body><main>
<h2>Programme changes</h2>
<p>Last updated: 8 January 2026</p>
<h3>Nosferatu + Q&amp;A</h3>
<p>Additional screening: Tue 27 Jan 20:40 NFT3</p>
<h3>Paris, Texas</h3>
<p>Cancelled: Sat 24 Jan 18:00 NFT1</p>
<h3>La Haine</h3>
<p>Rescheduled from Fri 30 Jan 20:30 NFT2 to Sat 31 Jan 18:10 NFT 1.
<a href="https://whatson.bfi.org.uk/Online/article/lahaine">Book now</a></p>
<h3>Vertigo</h3>
<p>Now in BFI IMAX: Sunday 1st February 19.00 BFI IMAX</p>
</main></body></html>
"""


def parse(html: str = CHANGES_HTML):
    return parse_changes_page(html, now=NOW)


class TestClassifyChange:
    @pytest.mark.parametrize(
        "text, expected",
        [
            ("Cancelled: Sat 24 Jan 18:00 NFT1", "cancelled"),
            ("This screening has been withdrawn", "cancelled"),
            ("Postponed to a later date", "rescheduled"),
            ("Screen change: now NFT2", "venue_change"),
            ("New time: 18:30", "time_change"),
            ("Extra screening added", "additional_screening"),
            ("New screening Fri 30 Jan 18:00", "new_screening"),
            ("Please note the running time", "update"),
        ],
    )
    def test_first_matching_type_wins(self, text: str, expected: str) -> None:
        assert classify_change(text) == expected


class TestParseSlots:
    def test_short_form(self) -> None:
        assert parse_slots("Sat 24 Jan 18:00 NFT1", NOW) == [
            (datetime(2026, 1, 24, 18, 0, tzinfo=LONDON), "NFT1")
        ]

    def test_long_form_with_dot_time(self) -> None:
        assert parse_slots("Saturday 24th January 18.00 in BFI IMAX", NOW) == [
            (datetime(2026, 1, 24, 18, 0, tzinfo=LONDON), "BFI IMAX")
        ]

    def test_screen_is_optional(self) -> None:
        assert parse_slots("Sat 24 Jan 18:00", NOW)[0][1] is None

    def test_spaced_nft_is_normalised(self) -> None:
        assert parse_slots("Sat 24 Jan 18:00 NFT 2", NOW)[0][1] == "NFT2"

    def test_year_rollover(self) -> None:
        december = datetime(2025, 12, 20, tzinfo=LONDON)
        assert parse_slots("Fri 2 Jan 18:00 NFT1", december)[0][0].year == 2026


class TestParseChangesPage:
    def test_last_updated(self) -> None:
        assert parse().last_updated == "8 January 2026"

    def test_changes_without_slots_are_ignored(self) -> None:
        titles = [change.film_title for change in parse().changes]
        assert titles == ["Nosferatu + Q&A", "Paris, Texas", "La Haine", "Vertigo"]

    def test_change_types(self) -> None:
        types = [change.change_type for change in parse().changes]
        assert types == ["additional_screening", "cancelled", "rescheduled", "venue_change"]

    def test_cancelled_slots_produce_no_screenings(self) -> None:
        assert all(s.film_title != "Paris, Texas" for s in parse().screenings)

    def test_additional_screening(self) -> None:
        nosferatu = parse().screenings[0]
        assert nosferatu.film_title == "Nosferatu"
        assert nosferatu.event_type == "q_and_a"
        assert nosferatu.start_time == datetime(2026, 1, 27, 20, 40, tzinfo=LONDON)
        assert nosferatu.screen == "NFT3"
        assert nosferatu.source_id == "bfi-changes-nosferatu-2026-01-27T20:40:00+00:00"
        assert nosferatu.event_description == "Additional screening: Tue 27 Jan 20:40 NFT3"

    def test_rescheduled_keeps_new_slot_and_booking_link(self) -> None:
        la_haine = [s for s in parse().screenings if s.film_title == "La Haine"]
        assert len(la_haine) == 1
        assert la_haine[0].start_time == datetime(2026, 1, 31, 18, 10, tzinfo=LONDON)
        assert la_haine[0].screen == "NFT1"
        assert la_haine[0].booking_url == "https://whatson.bfi.org.uk/Online/article/lahaine"

    def test_imax_slot_routes_to_imax_booking(self) -> None:
        vertigo = parse().screenings[-1]
        assert vertigo.screen == "BFI IMAX"
        assert vertigo.booking_url.startswith("https://whatson.bfi.org.uk/imax/Online/")

    def test_past_slots_dropped(self) -> None:
        later = datetime(2026, 1, 28, tzinfo=LONDON)
        titles = [s.film_title for s in parse_changes_page(CHANGES_HTML, now=later).screenings]
        assert titles == ["La Haine", "Vertigo"]

    def test_impossible_date_is_reported(self) -> None:
        result = parse("<h3>Odd Film</h3><p>Extra screening Mon 31 Feb 18:00 NFT1</p>")
        assert result.changes == []
        assert len(result.parse_errors) == 1
        assert result.parse_errors[0].startswith("Odd Film:")

    def test_empty_page(self) -> None:
        result = parse("<html><body><p>No changes this month.</p></body></html>")
        assert result.changes == []
        assert result.screenings == []
        assert result.last_updated is None


class TestFetchProgrammeChanges:
    async def test_fetches_configured_url(self) -> None:
        response = MagicMock()
        response.text = CHANGES_HTML
        client = MagicMock()
        client.get = AsyncMock(return_value=response)

        result = await fetch_programme_changes(client)

        client.get.assert_awaited_once_with(settings.bfi_changes_url)
        response.raise_for_status.assert_called_once()
        assert len(result.changes) == 4
