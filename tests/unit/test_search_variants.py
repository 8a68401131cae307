"""Unit tests for TMDb search title variations."""

from postboxd.title_extraction import generate_search_variations


class TestGenerateSearchVariations:
    def test_clean_title_gets_article_variant(self) -> None:
        assert generate_search_variations("Tokyo Story") == ["Tokyo Story", "The Tokyo Story"]

    def test_leading_the_is_dropped(self) -> None:
        assert generate_search_variations("The Conversation") == ["The Conversation", "Conversation"]

    def test_leading_a_is_dropped(self) -> None:
        assert generate_search_variations("A Matter of Life and Death") == [
            "A Matter of Life and Death",
            "The A Matter of Life and Death",
            "Matter of Life and Death",
        ]

    def test_extracted_title_leads_original_follows(self) -> None:
        variations = generate_search_variations("Saturday Morning Picture Club: The Gruffalo")
        assert variations[0] == "The Gruffalo"
        assert variations[1] == "Saturday Morning Picture Club: The Gruffalo"
        assert "Gruffalo" in variations

    def test_low_confidence_extraction_drops_original(self) -> None:
        variations = generate_search_variations("LSFF: Midnight Movies")
        assert "LSFF: Midnight Movies" not in variations
        assert variations[0] == "Midnight Movies"

    def test_year_stripped_variant(self) -> None:
        variations = generate_search_variations("Metropolis (1927)")
        assert variations[:2] == ["Metropolis (1927)", "Metropolis"]

    def test_trailing_ellipsis(self) -> None:
        variations = generate_search_variations("And Then There Were None...")
        assert variations[-1] == "And Then There Were None"

    def test_no_duplicates(self) -> None:
        variations = generate_search_variations("Nosferatu + Q&A")
        assert len(variations) == len(set(variations))
