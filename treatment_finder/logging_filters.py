"""
Logging filters for PHI/PII scrubbing (HIPAA compliance).

Snapshot batches and contact payloads carry patient names, birth dates,
phone numbers and email addresses. These filters redact them from log
messages before any handler writes them out.

Usage:
    # In settings LOGGING configuration:
    LOGGING = {
        'filters': {
            'phi_scrubber': {
                '()': 'treatment_finder.logging_filters.PHIScrubberFilter',
            },
        },
        'handlers': {
            'console': {
                'filters': ['phi_scrubber'],
                # ... rest of config
            },
        },
    }
"""

import re
import logging
from typing import Dict, Any


# =============================================================================
# PHI/PII Detection Patterns
# =============================================================================

# Social Security Number (dashed form only; bare 9-digit runs are patnums)
SSN_PATTERNS = [
    re.compile(r'\b\d{3}-\d{2}-\d{4}\b'),
]

# Date of Birth patterns, including the ISO dates used by the PMS export
DOB_PATTERNS = [
    re.compile(r'\b[Dd][Oo][Bb]\s*:?\s*\d{1,2}[/-]\d{1,2}[/-]\d{2,4}'),
    re.compile(r'\bdate[\s_]of[\s_]birth\s*:?\s*\d{1,2}[/-]\d{1,2}[/-]\d{2,4}', re.IGNORECASE),
    re.compile(r'\bbirth[\s_]?date[\'"]?\s*[:=]\s*[\'"]?\d{4}-\d{2}-\d{2}', re.IGNORECASE),
]

# Phone Number patterns (US format)
PHONE_PATTERNS = [
    re.compile(r'\(\d{3}\)\s*\d{3}[-.]?\d{4}'),    # (555) 123-4567
    re.compile(r"\b\d{3}[-.]\d{3}[-.]\d{4}\b"),  # 555-123-4567
    re.compile(r'\bphone[\'"]?\s*[:=]\s*[\'"]?[\d\s().+-]{7,}', re.IGNORECASE),
]

# Email Address pattern
EMAIL_PATTERN = re.compile(r'\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b')

# Patient Name patterns (context-based)
PATIENT_NAME_PATTERNS = [
    re.compile(r'\b[Pp]atient[\s_]name\s*:?\s*[A-Za-z\s\'-]+', re.IGNORECASE),
    re.compile(r'\b(?:first|last)_name[\'"]?\s*[:=]\s*[\'"]?[A-Za-z\'-]+', re.IGNORECASE),
]


# =============================================================================
# PHI/PII Scrubber Filter
# =============================================================================

class PHIScrubberFilter(logging.Filter):
    """
    Logging filter that automatically redacts PHI/PII from log messages.

    Sensitive fields:
        - Social Security Numbers
        - Dates of birth
        - Phone numbers
        - Email addresses
        - Patient names (when labelled, e.g. ``first_name=...``)

    Example:
        Input:  "Contact failed for phone=555-123-4567 email=jo@example.com"
        Output: "Contact failed for phone=[REDACTED_PHONE] email=[REDACTED_EMAIL]"
    """

    def __init__(self, name: str = ''):
        super().__init__(name)

        # Email runs before phone so digits inside addresses stay intact
        self.patterns: Dict[str, tuple] = {
            'SSN': (SSN_PATTERNS, '[REDACTED_SSN]'),
            'DOB': (DOB_PATTERNS, '[REDACTED_DOB]'),
            'EMAIL': ([EMAIL_PATTERN], '[REDACTED_EMAIL]'),
            'PHONE': (PHONE_PATTERNS, '[REDACTED_PHONE]'),
            'PATIENT_NAME': (PATIENT_NAME_PATTERNS, '[REDACTED_NAME]'),
        }

    def filter(self, record: logging.LogRecord) -> bool:
        """Scrub the message and string extras. Always lets the record through."""
        if isinstance(record.msg, str):
            record.msg = self.scrub_phi(record.msg)

        if record.args:
            if isinstance(record.args, dict):
                record.args = scrub_dict(record.args, self)
            else:
                record.args = tuple(
                    self.scrub_phi(arg) if isinstance(arg, str) else arg
                    for arg in record.args
                )

        for key, value in list(record.__dict__.items()):
            if key in ('msg', 'args'):
                continue
            if isinstance(value, str):
                setattr(record, key, self.scrub_phi(value))

        return True

    def scrub_phi(self, text: str) -> str:
        """Return ``text`` with every PHI/PII match replaced by its label."""
        if not text:
            return text

        scrubbed_text = text
        for patterns, replacement in self.patterns.values():
            for pattern in patterns:
                scrubbed_text = pattern.sub(replacement, scrubbed_text)

        return scrubbed_text


class SelectivePHIScrubberFilter(PHIScrubberFilter):
    """
    Selective PHI scrubber that only redacts specific high-risk fields.

    Use this for development where contact details are needed for
    debugging outreach flows against test patients.
    """

    def __init__(self, name: str = ''):
        super().__init__(name)

        self.patterns = {
            'SSN': (SSN_PATTERNS, '[REDACTED_SSN]'),
            'DOB': (DOB_PATTERNS, '[REDACTED_DOB]'),
        }


# =============================================================================
# Helper Functions
# =============================================================================

def scrub_dict(data: Dict[str, Any], scrubber: PHIScrubberFilter = None) -> Dict[str, Any]:
    """
    Scrub PHI/PII from a dictionary (useful for structured logs).

    Example:
        >>> scrub_dict({'email': 'jo@example.com', 'patnum': 42})
        {'email': '[REDACTED_EMAIL]', 'patnum': 42}
    """
    if scrubber is None:
        scrubber = PHIScrubberFilter()

    scrubbed = {}
    for key, value in data.items():
        if isinstance(value, str):
            scrubbed[key] = scrubber.scrub_phi(value)
        elif isinstance(value, dict):
            scrubbed[key] = scrub_dict(value, scrubber)
        elif isinstance(value, list):
            scrubbed[key] = [
                scrubber.scrub_phi(item) if isinstance(item, str) else item
                for item in value
            ]
        else:
            scrubbed[key] = value

    return scrubbed
