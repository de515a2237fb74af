"""
SQL analysis - sqlglot-based safety validation and query inspection
"""

from querypilot.sql.analysis.ast_utils import (
    find_sensitive_references,
    find_star_tables,
    is_sensitive_name,
)
from querypilot.sql.analysis.safety import (
    is_data_change,
    is_read_only,
    leading_keyword,
    normalize_candidate,
    validate_statement_safety,
)

__all__ = [
    "find_sensitive_references",
    "find_star_tables",
    "is_sensitive_name",
    "is_data_change",
    "is_read_only",
    "leading_keyword",
    "normalize_candidate",
    "validate_statement_safety",
]
