"""
Custom throttle classes for API rate limiting.

Callers are machines or staff on a practice network, not logged-in users,
so throttles key on client address (AnonRateThrottle).
"""

from rest_framework.throttling import AnonRateThrottle


class IngestionThrottle(AnonRateThrottle):
    """
    Throttle for snapshot ingestion.
    Batches can be up to 3 MB and run in one transaction.
    """

    scope = "ingestion"


class ContactThrottle(AnonRateThrottle):
    """
    Throttle for contact dispatch.
    Each request makes a synchronous call to the messaging vendor.
    """

    scope = "contact"
