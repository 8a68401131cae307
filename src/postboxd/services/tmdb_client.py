"""TMDb API client for fetching film metadata."""

import logging
from typing import Any

import httpx

from postboxd.config import settings

logger = logging.getLogger(__name__)


class TMDbClient:
    """
    Client for The Movie Database (TMDb) API.

    Lookups are auxiliary to imports, so every request uses the short
    `lookup_timeout` and failures are logged and reported as None.
    """

    BASE_URL = "https://api.themoviedb.org/3"
    LANGUAGE = "en-GB"

    def __init__(self, api_key: str | None = None, timeout: float | None = None) -> None:
        """
        Initialize TMDb client.

        Args:
            api_key: TMDb API key (uses settings if not provided)
            timeout: Request timeout in seconds (uses settings.lookup_timeout if not provided)
        """
        self.api_key = api_key or settings.tmdb_api_key
        self.timeout = timeout if timeout is not None else settings.lookup_timeout
        if not self.api_key:
            logger.warning("TMDb API key not configured")

    async def _get(self, path: str, params: dict[str, Any]) -> dict[str, Any] | None:
        """GET a TMDb endpoint, returning the decoded JSON or None on any failure."""
        if not self.api_key:
            logger.warning(f"Cannot call TMDb {path} without API key")
            return None

        params = {"api_key": self.api_key, "language": self.LANGUAGE, **params}
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.get(f"{self.BASE_URL}{path}", params=params)
                response.raise_for_status()
                return response.json()
        except Exception as e:
            logger.error(f"TMDb request error for {path}: {e}")
            return None

    async def search_film(self, title: str, year: int | None = None) -> dict[str, Any] | None:
        """
        Search for a film by title.

        Args:
            title: Film title
            year: Release year (optional, helps narrow results)

        Returns:
            Best matching result (exact title match preferred) or None if not found
        """
        params: dict[str, Any] = {"query": title}
        if year:
            params["year"] = year

        data = await self._get("/search/movie", params)
        if data is None:
            return None

        results = data.get("results", [])
        if not results:
            logger.info(f"No TMDb results for: {title}")
            return None

        return self.pick_best_result(results, title)

    def pick_best_result(self, results: list[dict[str, Any]], title: str) -> dict[str, Any]:
        """Prefer an exact (case-insensitive) title match, else TMDb's top result."""
        wanted = title.strip().lower()
        for result in results:
            names = {str(result.get("title", "")).lower(), str(result.get("original_title", "")).lower()}
            if wanted in names:
                return result
        return results[0]

    async def get_film_details(self, tmdb_id: int) -> dict[str, Any] | None:
        """
        Get detailed film information including credits.

        Args:
            tmdb_id: TMDb film ID

        Returns:
            Film details including credits or None if error
        """
        return await self._get(f"/movie/{tmdb_id}", {"append_to_response": "credits"})

    def extract_directors(self, credits: dict[str, Any]) -> list[str]:
        """Extract director names from TMDb credits."""
        crew = credits.get("crew", [])
        return [person["name"] for person in crew if person.get("job") == "Director"]

    def extract_countries(self, film_data: dict[str, Any]) -> list[str]:
        """Extract production country names from TMDb film details."""
        countries = film_data.get("production_countries", [])
        return [country["name"] for country in countries]

    def extract_cast(self, credits: dict[str, Any], n: int = 3) -> list[str]:
        """
        Extract top-billed cast member names from TMDb credits.

        Args:
            credits: TMDb credits data
            n: Maximum number of cast members to return

        Returns:
            List of actor names (up to n)
        """
        cast = credits.get("cast", [])
        return [person["name"] for person in cast[:n] if person.get("name")]
