"""
SQL error normalization - engine messages to semantic buckets with remediation hints.
"""

from querypilot.sql.correction.error_types import SQLErrorType, NormalizedError, REMEDIATION_HINTS
from querypilot.sql.correction.error_parser import normalize_error

__all__ = [
    "SQLErrorType",
    "NormalizedError",
    "REMEDIATION_HINTS",
    "normalize_error",
]
