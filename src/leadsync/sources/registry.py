"""Source adapter lookup by name."""
from typing import List, Optional, Protocol

from leadsync.config import Settings, get_settings
from leadsync.exceptions import UnknownSourceError
from leadsync.sources.normalizer import Candidate
from leadsync.sources.randomuser import RandomUserSource


class CandidateSource(Protocol):
    async def fetch_batch(self, count: int) -> List[Candidate]:
        ...


SOURCE_NAMES = (RandomUserSource.name,)


def build_source(name: str, settings: Optional[Settings] = None) -> CandidateSource:
    """
    Return the adapter registered under ``name``.

    Raises:
        UnknownSourceError: if no adapter has that name.
    """
    settings = settings or get_settings()
    if name == RandomUserSource.name:
        return RandomUserSource(
            base_url=settings.randomuser_base_url,
            timeout=settings.source_timeout_seconds,
            nationality=settings.randomuser_nationality or None,
        )
    raise UnknownSourceError(f"Unknown sync source: {name}")
