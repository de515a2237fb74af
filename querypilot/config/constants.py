"""
Statement policy and redaction constants shared by the validator, executor and tools.
"""

# Statement types that can never be submitted, whatever risk level the model declares
BLOCKED_STATEMENT_TYPES = ("DROP", "TRUNCATE", "ALTER", "CREATE", "REPLACE", "GRANT", "REVOKE")

# Keywords that make an unparsable statement unsafe
MUTATION_KEYWORDS = ("DELETE", "UPDATE", "DROP", "TRUNCATE")

# Statements probed with EXPLAIN instead of a rolled-back execution
READ_ONLY_KEYWORDS = ("SELECT", "WITH", "EXPLAIN", "SHOW", "DESCRIBE", "DESC")

# Read-only statements that already produce a plan/metadata and are run as-is
PASSTHROUGH_KEYWORDS = ("EXPLAIN", "SHOW", "DESCRIBE", "DESC")

HIDDEN_VALUE = "[HIDDEN-FOR-SECURITY]"
SENSITIVE_TAG = "[SENSITIVE]"

# Strict identifier format for table/column names interpolated into metadata queries
IDENTIFIER_PATTERN = r"^\w+$"
