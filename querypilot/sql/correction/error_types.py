"""
SQL error type definitions for semantic error classification.

Raw engine messages (MySQL, PostgreSQL, SQLite) are normalized into
semantic buckets so the agent gets one actionable hint per kind of mistake.
"""

from enum import Enum
from dataclasses import dataclass, field
from typing import Dict, Any


class SQLErrorType(Enum):
    """
    Semantic SQL error types.

    These represent the *meaning* of an error, not the specific database message.
    """
    UNKNOWN_COLUMN = "unknown_column"
    UNKNOWN_TABLE = "unknown_table"
    AMBIGUOUS_COLUMN = "ambiguous_column"
    DUPLICATE_ALIAS = "duplicate_alias"
    GROUP_BY_VIOLATION = "group_by_error"
    SYNTAX_ERROR = "syntax_error"

    # Rejected before reaching the engine
    POLICY_VIOLATION = "policy_violation"

    OTHER = "other"


REMEDIATION_HINTS: Dict[SQLErrorType, str] = {
    SQLErrorType.UNKNOWN_COLUMN: (
        "Check the exact column names with 'get_table_schema' before retrying. "
        "Do not guess column names."
    ),
    SQLErrorType.UNKNOWN_TABLE: (
        "Use 'list_tables' to find the correct table name, then 'get_table_schema' to inspect it."
    ),
    SQLErrorType.AMBIGUOUS_COLUMN: (
        "Qualify the column with its table name or alias (e.g. users.id)."
    ),
    SQLErrorType.DUPLICATE_ALIAS: (
        "The same table or alias is joined twice. Give each occurrence a distinct alias or remove the duplicate join."
    ),
    SQLErrorType.GROUP_BY_VIOLATION: (
        "Every selected column that is not aggregated must appear in GROUP BY. "
        "Add it to GROUP BY or wrap it in an aggregate such as MAX()."
    ),
    SQLErrorType.SYNTAX_ERROR: (
        "Fix the syntax for this database dialect. Check quoting, commas and keyword order near the reported position."
    ),
    SQLErrorType.POLICY_VIOLATION: (
        "This statement shape is not allowed. Write a read-only query or a change scoped by a WHERE clause."
    ),
    SQLErrorType.OTHER: (
        "Review the error message, inspect the schema with 'get_table_schema', and simplify the query."
    ),
}


@dataclass
class NormalizedError:
    """
    Normalized representation of a SQL error.

    Attributes:
        error_type: Semantic error type (from SQLErrorType enum)
        raw_message: Original error message from the database
        details: Structured error details (e.g., {"column": "users.emial"})
    """
    error_type: SQLErrorType
    raw_message: str
    details: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if not isinstance(self.error_type, SQLErrorType):
            raise TypeError(f"error_type must be SQLErrorType, got {type(self.error_type)}")

    @property
    def hint(self) -> str:
        """Actionable remediation hint for this bucket, naming the offending identifier when known."""
        base = REMEDIATION_HINTS[self.error_type]
        if self.error_type == SQLErrorType.UNKNOWN_COLUMN and self.details.get("column"):
            return f"Column '{self.details['column']}' does not exist. {base}"
        if self.error_type == SQLErrorType.UNKNOWN_TABLE and self.details.get("table"):
            return f"Table '{self.details['table']}' does not exist. {base}"
        return base

    def get_detail(self, key: str, default: Any = None) -> Any:
        return self.details.get(key, default)

    def __str__(self) -> str:
        return f"NormalizedError(type={self.error_type.value}, details={self.details})"
