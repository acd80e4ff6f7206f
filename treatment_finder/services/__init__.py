"""
Treatment Finder Service Layer

Business logic lives here; views stay thin and only translate between
HTTP and these functions.
"""

from .reconciliation import ReconciliationService, ReconciliationError, SnapshotError
from .ranking import priority_score, rank_opportunities
from .contact_workflow import dispatch_contact, override_status, record_outcome

__all__ = [
    "ReconciliationService",
    "ReconciliationError",
    "SnapshotError",
    "priority_score",
    "rank_opportunities",
    "dispatch_contact",
    "override_status",
    "record_outcome",
]
