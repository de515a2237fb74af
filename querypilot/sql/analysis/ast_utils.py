"""
SQL AST utilities using sqlglot for deterministic query analysis.

This module provides wrapper functions around sqlglot to:
- Parse SQL into an Abstract Syntax Tree (AST) for a data source dialect
- Find column references and star projections for privacy checks
"""

from typing import Iterable, List, Optional, Set

import sqlglot
from sqlglot import exp

# Data source dialect names -> sqlglot dialect names
_SQLGLOT_DIALECTS = {
    "mysql": "mysql",
    "postgresql": "postgres",
    "postgres": "postgres",
    "sqlite": "sqlite",
}


def to_sqlglot_dialect(dialect: Optional[str]) -> Optional[str]:
    """Map a data source dialect to a sqlglot read dialect (None = generic SQL)."""
    if not dialect:
        return None
    return _SQLGLOT_DIALECTS.get(dialect.lower())


def parse_statements(sql: str, dialect: Optional[str]) -> List[exp.Expression]:
    """Parse every statement in `sql`, dropping empty ones (e.g. a trailing ';')."""
    return [s for s in sqlglot.parse(sql, read=to_sqlglot_dialect(dialect)) if s is not None]


def is_sensitive_name(name: str, keywords: Iterable[str]) -> bool:
    """True when a column/field name contains any sensitive keyword (case-insensitive)."""
    lowered = name.lower()
    return any(keyword.lower() in lowered for keyword in keywords)


def find_sensitive_references(sql: str, dialect: Optional[str], keywords: Iterable[str]) -> List[str]:
    """
    Column names referenced anywhere in `sql` (projection, filters, joins,
    function arguments) that match a sensitive keyword.

    Raises sqlglot errors on unparsable input; callers decide how to fail.
    """
    keywords = list(keywords)
    found: List[str] = []
    for statement in parse_statements(sql, dialect):
        for column in statement.find_all(exp.Column):
            name = column.name
            if not name or name == "*":
                continue
            if is_sensitive_name(name, keywords) and name not in found:
                found.append(name)
    return found


def find_star_tables(sql: str, dialect: Optional[str]) -> Set[str]:
    """
    Names of physical tables whose columns are projected through `*` or `alias.*`.

    Only tables in the same SELECT scope as the star are returned, so a
    `SELECT *` over an explicit subquery does not implicate the subquery's tables.
    """
    tables: Set[str] = set()
    for statement in parse_statements(sql, dialect):
        for select in statement.find_all(exp.Select):
            scope_tables = [
                t for t in select.find_all(exp.Table) if t.find_ancestor(exp.Select) is select
            ]
            by_alias = {t.alias_or_name: t.name for t in scope_tables}

            for projection in select.expressions:
                if isinstance(projection, exp.Star):
                    tables.update(t.name for t in scope_tables)
                elif isinstance(projection, exp.Column) and isinstance(projection.this, exp.Star):
                    qualifier = projection.table
                    tables.add(by_alias.get(qualifier, qualifier))
    return {t for t in tables if t}
