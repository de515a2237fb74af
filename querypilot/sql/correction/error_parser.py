"""
SQL error parser - converts raw database errors to semantic error types.

This module is the ONLY place where we match against engine-specific error
strings. Patterns cover MySQL (error codes and messages), PostgreSQL and SQLite.
"""

import re
from loguru import logger

from querypilot.sql.correction.error_types import SQLErrorType, NormalizedError


def normalize_error(error_message: str) -> NormalizedError:
    """
    Parse a raw database error message into a semantic error type.

    Args:
        error_message: Raw error message from the engine driver

    Returns:
        NormalizedError with semantic type and extracted details

    Example:
        >>> normalize_error("(1054, \\"Unknown column 'emial' in 'field list'\\")").error_type
        <SQLErrorType.UNKNOWN_COLUMN: 'unknown_column'>
        >>> normalize_error('relation "userz" does not exist').details["table"]
        'userz'
    """
    if _is_group_by_violation(error_message):
        return _parse_group_by_violation(error_message)

    if _is_duplicate_alias(error_message):
        return _parse_duplicate_alias(error_message)

    if _is_ambiguous_column(error_message):
        return _parse_ambiguous_column(error_message)

    if _is_unknown_column(error_message):
        return _parse_unknown_column(error_message)

    if _is_unknown_table(error_message):
        return _parse_unknown_table(error_message)

    if _is_syntax_error(error_message):
        return _parse_syntax_error(error_message)

    logger.debug(f"Could not normalize error, classifying as OTHER: {error_message[:100]}")
    return NormalizedError(error_type=SQLErrorType.OTHER, raw_message=error_message)


# ============================================================================
# Pattern Detection Functions
# ============================================================================

def _is_group_by_violation(error_message: str) -> bool:
    lowered = error_message.lower()
    return (
        ("expression #" in lowered and "group by" in lowered)
        or "only_full_group_by" in lowered
        or "must appear in the group by clause" in lowered  # PostgreSQL
        or "1055" in error_message  # MySQL
    )


def _is_duplicate_alias(error_message: str) -> bool:
    return (
        "Not unique table/alias" in error_message
        or "specified more than once" in error_message  # PostgreSQL
        or "1066" in error_message
    )


def _is_unknown_column(error_message: str) -> bool:
    return (
        "Unknown column" in error_message
        or "no such column" in error_message  # SQLite
        or re.search(r'column "[^"]+" (of relation "[^"]+" )?does not exist', error_message) is not None  # PostgreSQL
        or "1054" in error_message
    )


def _is_unknown_table(error_message: str) -> bool:
    return (
        "Unknown table" in error_message
        or ("Table" in error_message and "doesn't exist" in error_message)
        or "no such table" in error_message  # SQLite
        or re.search(r'relation "[^"]+" does not exist', error_message) is not None  # PostgreSQL
        or "1146" in error_message
    )


def _is_ambiguous_column(error_message: str) -> bool:
    lowered = error_message.lower()
    return (
        "ambiguous column" in lowered
        or ("column" in lowered and "is ambiguous" in lowered)
        or "1052" in error_message
    )


def _is_syntax_error(error_message: str) -> bool:
    lowered = error_message.lower()
    return (
        "syntax error" in lowered
        or "error in your sql syntax" in lowered
        or "incomplete input" in lowered  # SQLite
        or "1064" in error_message
    )


# ============================================================================
# Error Parsing Functions
# ============================================================================

def _parse_group_by_violation(error_message: str) -> NormalizedError:
    """
    Examples:
    "Expression #2 of SELECT list is not in GROUP BY clause and contains nonaggregated column 'shop.orders.created_at'"
    'column "orders.created_at" must appear in the GROUP BY clause or be used in an aggregate function'
    """
    details = {}

    expr_match = re.search(r"Expression #(\d+)", error_message)
    if expr_match:
        details["expression_num"] = int(expr_match.group(1))

    column_match = re.search(r"column ['\"]([^'\"]+)['\"]", error_message)
    if column_match:
        details["column"] = column_match.group(1)

    return NormalizedError(SQLErrorType.GROUP_BY_VIOLATION, error_message, details)


def _parse_duplicate_alias(error_message: str) -> NormalizedError:
    """
    Examples:
    "Not unique table/alias: 'users'"
    'table name "users" specified more than once'
    """
    details = {}

    alias_match = re.search(r"table/alias[:\s]+['\"]([^'\"]+)['\"]", error_message, re.IGNORECASE)
    if not alias_match:
        alias_match = re.search(r"table name \"([^\"]+)\" specified more than once", error_message)
    if alias_match:
        details["table"] = alias_match.group(1)

    return NormalizedError(SQLErrorType.DUPLICATE_ALIAS, error_message, details)


def _parse_unknown_column(error_message: str) -> NormalizedError:
    """
    Examples:
    "Unknown column 'users.invalid_col' in 'field list'"
    'column "emial" does not exist'
    "no such column: emial"
    """
    details = {}

    column_match = (
        re.search(r"column ['\"]([^'\"]+)['\"]", error_message, re.IGNORECASE)
        or re.search(r"no such column:\s*([\w.]+)", error_message)
    )
    if column_match:
        details["column"] = column_match.group(1)

    location_match = re.search(r"in ['\"]([^'\"]+)['\"]", error_message, re.IGNORECASE)
    if location_match:
        details["location"] = location_match.group(1)

    return NormalizedError(SQLErrorType.UNKNOWN_COLUMN, error_message, details)


def _parse_unknown_table(error_message: str) -> NormalizedError:
    """
    Examples:
    "Table 'shop.userz' doesn't exist"
    'relation "userz" does not exist'
    "no such table: userz"
    """
    details = {}

    table_match = (
        re.search(r"[Tt]able ['\"]([^'\"]+)['\"]", error_message)
        or re.search(r"relation \"([^\"]+)\"", error_message)
        or re.search(r"no such table:\s*([\w.]+)", error_message)
    )
    if table_match:
        details["table"] = table_match.group(1)

    return NormalizedError(SQLErrorType.UNKNOWN_TABLE, error_message, details)


def _parse_ambiguous_column(error_message: str) -> NormalizedError:
    """
    Example error:
    "Column 'id' in field list is ambiguous"
    """
    details = {}

    column_match = (
        re.search(r"[Cc]olumn ['\"]([^'\"]+)['\"]", error_message)
        or re.search(r"ambiguous column name:\s*([\w.]+)", error_message)
    )
    if column_match:
        details["column"] = column_match.group(1)

    return NormalizedError(SQLErrorType.AMBIGUOUS_COLUMN, error_message, details)


def _parse_syntax_error(error_message: str) -> NormalizedError:
    """
    Examples:
    "You have an error in your SQL syntax; ... near 'FORM users' at line 1"
    'syntax error at or near "FORM"'
    'near "FORM": syntax error'
    """
    details = {}

    near_match = (
        re.search(r"near ['\"]([^'\"]*)['\"]", error_message)
        or re.search(r"at or near \"([^\"]*)\"", error_message)
    )
    if near_match:
        details["near"] = near_match.group(1)

    return NormalizedError(SQLErrorType.SYNTAX_ERROR, error_message, details)
