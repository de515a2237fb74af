"""
AST safety validator.

Only an allow-list of statement shapes may be submitted: queries (SELECT, WITH,
set operations), INSERT / UPDATE / DELETE / MERGE, SHOW and DESCRIBE. EXPLAIN
is unwrapped and the explained statement must itself be a read-only query.
On top of that:
- hard-blocked statement types (DROP, TRUNCATE, ALTER, CREATE, REPLACE, GRANT, REVOKE)
  get a dedicated message
- DELETE / UPDATE without a WHERE clause are rejected, including inside CTEs
- unparsable text that mentions a mutation keyword fails closed

Everything here is pure: no connection is ever touched.
"""

import re
from typing import List, Optional

import sqlglot
from loguru import logger
from sqlglot import exp
from sqlglot.errors import SqlglotError
from sqlglot.tokens import TokenType

from querypilot.config.constants import (
    BLOCKED_STATEMENT_TYPES,
    MUTATION_KEYWORDS,
    READ_ONLY_KEYWORDS,
)
from querypilot.sql.analysis.ast_utils import parse_statements, to_sqlglot_dialect

_LEADING_COMMENTS = re.compile(r"^\s*(?:(?:--[^\n]*\n|/\*.*?\*/)\s*)*", re.DOTALL)
_FIRST_WORD = re.compile(r"^\s*\(*\s*([A-Za-z]+)")

# EXPLAIN modifiers in front of the explained statement, e.g. ANALYZE, (FORMAT JSON), QUERY PLAN
_EXPLAIN_OPTIONS = re.compile(
    r"^\s*(?:\([^()]*\)\s*|(?:ANALY[SZ]E|VERBOSE|EXTENDED|QUERY\s+PLAN|FORMAT\s*=\s*\w+)\b\s*)*",
    re.IGNORECASE,
)

WRITE_STATEMENT_TYPES = (exp.Insert, exp.Update, exp.Delete, exp.Merge)
_ALLOWED_STATEMENT_TYPES = (exp.Query, exp.Describe, exp.Show) + WRITE_STATEMENT_TYPES
_METADATA_COMMANDS = ("SHOW", "DESCRIBE", "DESC")

_BLOCKED_MESSAGE = "{} statements are not allowed. Only queries and scoped data changes may be submitted."
_EXPLAIN_WRITE_MESSAGE = (
    "EXPLAIN is only allowed over read-only queries. EXPLAIN ANALYZE runs the statement it explains. "
    "Validate data changes directly instead."
)


def normalize_candidate(text: str) -> str:
    """Cycle-detection / verdict key: whitespace collapsed, trailing semicolons removed."""
    return " ".join(text.split()).rstrip(";").strip()


def leading_keyword(text: str) -> str:
    """First keyword of the statement, uppercased ('' if none)."""
    stripped = _LEADING_COMMENTS.sub("", text or "", count=1)
    match = _FIRST_WORD.match(stripped)
    return match.group(1).upper() if match else ""


def _statement_keywords(text: str, dialect: Optional[str]) -> List[str]:
    """Leading keyword of every ';'-separated statement, from the tokenizer."""
    try:
        tokens = sqlglot.tokenize(text, read=to_sqlglot_dialect(dialect))
    except SqlglotError:
        return []

    keywords = []
    expect_start = True
    for token in tokens:
        if token.token_type == TokenType.SEMICOLON:
            expect_start = True
            continue
        if expect_start:
            keywords.append(token.text.upper())
            expect_start = False
    return keywords


def _statement_type(statement: exp.Expression) -> str:
    if isinstance(statement, exp.Command):
        return str(statement.this).upper()
    return statement.key.upper()


def _command_body(statement: exp.Command) -> str:
    body = statement.args.get("expression")
    if isinstance(body, exp.Expression):
        return body.name
    return str(body or "")


def _blocked_type(statement_type: str) -> Optional[str]:
    for blocked in BLOCKED_STATEMENT_TYPES:
        if statement_type.startswith(blocked):
            return blocked
    return None


def _explained_statements(statement: exp.Expression, dialect: Optional[str]) -> Optional[List[exp.Expression]]:
    """
    Statements wrapped by an EXPLAIN, or None when `statement` is not an EXPLAIN.

    MySQL parses EXPLAIN into a Describe node holding the statement; other
    dialects leave it as an opaque command whose text is parsed again here.
    Raises sqlglot errors when the explained text does not parse.
    """
    if isinstance(statement, exp.Describe):
        target = statement.this
        if target is None or isinstance(target, (exp.Table, exp.Schema)):
            return None
        return [target]

    if isinstance(statement, exp.Command) and _statement_type(statement) == "EXPLAIN":
        inner = _EXPLAIN_OPTIONS.sub("", _command_body(statement), count=1)
        return parse_statements(inner, dialect)

    return None


def _unscoped_mutation(statement: exp.Expression) -> Optional[str]:
    """Name of the first DELETE/UPDATE in `statement` lacking a WHERE clause."""
    for node in statement.find_all(exp.Delete, exp.Update):
        if not node.args.get("where"):
            return "DELETE" if isinstance(node, exp.Delete) else "UPDATE"
    return None


def _statement_violation(statement: exp.Expression, dialect: Optional[str]) -> Optional[str]:
    explained = _explained_statements(statement, dialect)
    if explained is not None:
        for inner in explained:
            violation = _statement_violation(inner, dialect)
            if violation:
                return violation
            if not _reads_only(inner, dialect):
                return _EXPLAIN_WRITE_MESSAGE
        return None

    statement_type = _statement_type(statement)
    blocked = _blocked_type(statement_type)
    if blocked:
        return _BLOCKED_MESSAGE.format(blocked)

    if isinstance(statement, exp.Command):
        if statement_type in _METADATA_COMMANDS:
            return None
        if statement_type in ("INSERT", "UPDATE", "DELETE", "MERGE"):
            return _unverifiable_message(statement_type)
        return _BLOCKED_MESSAGE.format(statement_type)

    if not isinstance(statement, _ALLOWED_STATEMENT_TYPES):
        return _BLOCKED_MESSAGE.format(statement_type)

    if statement.find(exp.Into):
        return "SELECT INTO creates a table. " + _BLOCKED_MESSAGE.format("CREATE")

    mutation = _unscoped_mutation(statement)
    if mutation:
        return (
            f"{mutation} without a WHERE clause would affect every row. "
            "Add a WHERE clause that limits the change to the intended rows."
        )
    return None


def _unverifiable_message(keyword: str) -> str:
    return (
        f"The statement could not be parsed and contains a data-modifying keyword ({keyword}). "
        "Its effect cannot be verified. Rewrite it as a simpler, standard statement."
    )


def _unparsable_violation(text: str, dialect: Optional[str], error: SqlglotError) -> Optional[str]:
    for keyword in _statement_keywords(text, dialect) or [leading_keyword(text)]:
        blocked = _blocked_type(keyword)
        if blocked:
            return _BLOCKED_MESSAGE.format(blocked)

    upper = text.upper()
    for keyword in MUTATION_KEYWORDS:
        if keyword in upper:
            logger.warning(f"Unparsable statement containing {keyword}, failing closed: {error}")
            return _unverifiable_message(keyword)

    keyword = leading_keyword(text)
    if keyword == "EXPLAIN":
        return "The explained statement could not be parsed. Fix its syntax or validate the query directly."
    if keyword not in READ_ONLY_KEYWORDS + ("INSERT", "MERGE"):
        return _BLOCKED_MESSAGE.format(keyword or "Unrecognized")

    logger.debug(f"Statement did not parse, leaving syntax check to the engine: {error}")
    return None


def validate_statement_safety(text: str, dialect: Optional[str]) -> Optional[str]:
    """
    Check a candidate statement against the write policy.

    Args:
        text: Candidate SQL (may hold several ';'-separated statements)
        dialect: Data source dialect (mysql, postgresql, sqlite)

    Returns:
        A rejection message, or None when every statement is allowed.

    Example:
        >>> validate_statement_safety("DELETE FROM users", "mysql")
        'DELETE without a WHERE clause would affect every row. ...'
        >>> validate_statement_safety("DELETE FROM users WHERE id = 1", "mysql") is None
        True
    """
    if not text or not text.strip():
        return "Empty statement. Provide a single SQL statement to validate."

    try:
        statements = parse_statements(text, dialect)
        for keyword in _statement_keywords(text, dialect):
            blocked = _blocked_type(keyword)
            if blocked:
                return _BLOCKED_MESSAGE.format(blocked)

        for statement in statements:
            violation = _statement_violation(statement, dialect)
            if violation:
                return violation
    except SqlglotError as e:
        return _unparsable_violation(text, dialect, e)

    return None


def _reads_only(statement: exp.Expression, dialect: Optional[str]) -> bool:
    explained = _explained_statements(statement, dialect)
    if explained is not None:
        return all(_reads_only(inner, dialect) for inner in explained)
    if isinstance(statement, exp.Command):
        return _statement_type(statement) in _METADATA_COMMANDS
    if not isinstance(statement, (exp.Query, exp.Describe, exp.Show)):
        return False
    return statement.find(*WRITE_STATEMENT_TYPES, exp.Into) is None


def is_read_only(text: str, dialect: Optional[str]) -> bool:
    """
    True for statements that only read: SELECT / WITH / SHOW / DESCRIBE, or an
    EXPLAIN of one, with no INSERT, UPDATE, DELETE or MERGE anywhere in the tree.
    """
    if leading_keyword(text) not in READ_ONLY_KEYWORDS:
        return False

    try:
        return all(_reads_only(statement, dialect) for statement in parse_statements(text, dialect))
    except SqlglotError:
        if leading_keyword(text) not in ("SELECT", "WITH"):
            return False
        upper = text.upper()
        return not any(re.search(rf"\b{kw}\b", upper) for kw in MUTATION_KEYWORDS + ("INSERT", "MERGE"))


def is_data_change(text: str, dialect: Optional[str]) -> bool:
    """True when `text` parses and every statement in it is an INSERT, UPDATE, DELETE or MERGE."""
    try:
        statements = parse_statements(text, dialect)
    except SqlglotError:
        return False
    return bool(statements) and all(isinstance(s, WRITE_STATEMENT_TYPES) for s in statements)
