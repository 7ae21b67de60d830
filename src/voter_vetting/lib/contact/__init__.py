"""Contact normalization library public API.

Provides phone and email normalization and the duplicate-detection rules built
on them.
"""

from voter_vetting.lib.contact.duplicates import DuplicateReason, DuplicateScanConfig, build_duplicate_notes
from voter_vetting.lib.contact.normalize import PhoneConfig, normalize_email, normalize_phone

__all__ = [
    "DuplicateReason",
    "DuplicateScanConfig",
    "PhoneConfig",
    "build_duplicate_notes",
    "normalize_email",
    "normalize_phone",
]
