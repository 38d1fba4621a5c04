"""Domain exceptions shared by the sync pipeline, the lead service and the API."""


class LeadSyncError(RuntimeError):
    """Base class for all leadsync errors."""


# ── Sync pipeline ─────────────────────────────────────────────────────────────

class SourceFetchError(LeadSyncError):
    """Raised when an external source cannot deliver a batch (HTTP error, timeout, bad payload)."""


class UnknownSourceError(SourceFetchError):
    """Raised when no adapter is registered for a source name."""


class JobNotFoundError(LeadSyncError):
    """Raised when a queued task references a SyncJob row that does not exist."""

    def __init__(self, job_id: str):
        super().__init__(f"Sync job {job_id} not found")
        self.job_id = job_id


class InvalidTransitionError(LeadSyncError):
    """Raised when a SyncJob status change would break the lifecycle rules."""


class DuplicateLeadError(LeadSyncError):
    """Raised by the store when a lead with the same email already exists."""

    def __init__(self, email: str):
        super().__init__(f"Lead with email {email} already exists")
        self.email = email


class QueueUnavailableError(LeadSyncError):
    """Raised when a task could not be handed to the queue."""


# ── Leads ─────────────────────────────────────────────────────────────────────

class LeadNotFoundError(LeadSyncError):
    def __init__(self, lead_id: str):
        super().__init__(f"Lead with id {lead_id} not found")
        self.lead_id = lead_id


class LeadConflictError(LeadSyncError):
    """Raised when a manual lead would reuse an existing email."""


class SummaryGenerationError(LeadSyncError):
    """Raised when Claude fails or its reply cannot be turned into a LeadSummary."""
