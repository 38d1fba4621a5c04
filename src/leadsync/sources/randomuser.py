"""
Async client for the RandomUser API (https://randomuser.me).

Fetches a batch of synthetic people and normalizes them into Candidates.
Every failure mode (non-2xx, timeout, transport error, unexpected payload)
surfaces as SourceFetchError; a batch is never silently truncated.
"""
import logging
from typing import List, Optional

import httpx

from leadsync.exceptions import SourceFetchError
from leadsync.sources.normalizer import Candidate, normalize_random_user

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://randomuser.me/api/"


class RandomUserSource:
    """Candidate source backed by the RandomUser API."""

    name = "randomuser-api"

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 30.0,
        nationality: Optional[str] = "us",
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Args:
            base_url: API endpoint.
            timeout: Per-request timeout in seconds.
            nationality: ``nat`` filter; None requests all nationalities.
            transport: Optional httpx transport (httpx.MockTransport in tests).
        """
        self.base_url = base_url
        self.timeout = timeout
        self.nationality = nationality
        self._transport = transport

    async def fetch_batch(self, count: int) -> List[Candidate]:
        """
        Fetch ``count`` users and normalize them.

        Raises:
            SourceFetchError: on any HTTP, timeout or payload problem.
        """
        params = {"results": count}
        if self.nationality:
            params["nat"] = self.nationality

        logger.info("Fetching %d users from RandomUser", count)
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self._transport
            ) as client:
                response = await client.get(self.base_url, params=params)
                response.raise_for_status()
                data = response.json()
        except httpx.TimeoutException as exc:
            raise SourceFetchError(f"RandomUser request timed out: {exc}") from exc
        except httpx.HTTPStatusError as exc:
            raise SourceFetchError(
                f"RandomUser API error: {exc.response.status_code} {exc.response.reason_phrase}"
            ) from exc
        except httpx.HTTPError as exc:
            raise SourceFetchError(f"RandomUser request failed: {exc}") from exc
        except ValueError as exc:
            raise SourceFetchError(f"RandomUser returned invalid JSON: {exc}") from exc

        results = data.get("results") if isinstance(data, dict) else None
        if not isinstance(results, list):
            raise SourceFetchError("RandomUser response has no 'results' list")

        try:
            candidates = [normalize_random_user(raw) for raw in results]
        except (KeyError, TypeError, AttributeError, ValueError) as exc:
            raise SourceFetchError(f"RandomUser returned a malformed record: {exc!r}") from exc

        logger.info("Fetched %d users from RandomUser", len(candidates))
        return candidates
