"""Per-run accumulator threaded through reconciliation."""
from dataclasses import dataclass, field
from typing import Dict, List


@dataclass
class SyncProgress:
    """
    Counts for one sync attempt.

    ``processed`` is bumped before a record is reconciled and exactly one of
    ``created`` / ``skipped`` / ``errors`` after, so
    ``created + skipped + len(errors) <= processed`` holds at every point.
    """

    processed: int = 0
    created: int = 0
    skipped: int = 0
    errors: List[Dict[str, str]] = field(default_factory=list)

    def begin_record(self) -> None:
        self.processed += 1

    def record_created(self) -> None:
        self.created += 1

    def record_skipped(self) -> None:
        self.skipped += 1

    def record_error(self, record_key: str, message: str) -> None:
        self.errors.append({"record_key": record_key, "message": message})
