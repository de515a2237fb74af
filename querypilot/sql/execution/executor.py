"""
Dialect-aware query executor.

Probes a candidate statement against its data source without ever changing data:
- read-only statements run through the engine's EXPLAIN and the plan is
  inspected for full scans
- INSERT, UPDATE, DELETE and MERGE run inside a transaction that is always
  rolled back; no other statement type is ever executed
- Lucene queries go through Elasticsearch's _validate/query endpoint
- HTTP-API commands are checked structurally and never sent
"""

import re
import shlex
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from loguru import logger
from sqlalchemy.exc import DBAPIError, SQLAlchemyError
from sqlglot.errors import SqlglotError

from querypilot.config.constants import PASSTHROUGH_KEYWORDS
from querypilot.config.settings import DataSourceType, Settings
from querypilot.infra.database import ConnectionManager
from querypilot.sql.analysis.ast_utils import parse_statements
from querypilot.sql.analysis.safety import (
    is_data_change,
    is_read_only,
    leading_keyword,
    validate_statement_safety,
)
from querypilot.sql.correction import REMEDIATION_HINTS, SQLErrorType, normalize_error
from querypilot.utils.errors import DataSourceUnavailableError, UnsupportedDialectError

LUCENE_HINT = (
    "Fix the Lucene syntax: use field:value, uppercase AND/OR/NOT, quote phrases, "
    "and write ranges as field:[a TO b]. Check field names with 'get_mapping'."
)

_BODY_FLAGS = {"-d", "--data", "--data-raw", "--data-binary", "--data-urlencode", "-F", "--form", "-T", "--upload-file"}
_METHOD_FLAGS = {"-X", "--request"}


@dataclass
class ProbeResult:
    """Outcome of probing one candidate statement."""
    ok: bool
    warnings: List[str] = field(default_factory=list)
    error_category: Optional[SQLErrorType] = None
    message: Optional[str] = None
    hint: Optional[str] = None

    @classmethod
    def success(cls, warnings: Optional[List[str]] = None) -> "ProbeResult":
        return cls(ok=True, warnings=list(warnings or []))

    @classmethod
    def failure(
        cls,
        category: SQLErrorType,
        message: str,
        hint: Optional[str] = None,
        warnings: Optional[List[str]] = None,
    ) -> "ProbeResult":
        return cls(
            ok=False,
            warnings=list(warnings or []),
            error_category=category,
            message=message,
            hint=hint if hint is not None else REMEDIATION_HINTS[category],
        )


def join_warnings(text: str) -> List[str]:
    """Non-fatal warning for a JOIN with no ON/USING anywhere in the statement."""
    upper = text.upper()
    if re.search(r"\bJOIN\b", upper) and not re.search(r"\b(ON|USING)\b", upper):
        return ["JOIN without ON/USING: possible accidental cross join. Add the join condition."]
    return []


def analyze_plan(dialect: str, rows: List[Dict[str, Any]], row_threshold: int) -> List[str]:
    """
    Turn an EXPLAIN result into performance warnings.

    MySQL: `type` ALL (full table scan) / index (full index scan), `rows` above the
    threshold with no `key`. PostgreSQL: `Seq Scan` plan nodes. SQLite: `SCAN` steps.
    """
    warnings: List[str] = []

    if dialect == DataSourceType.MYSQL.value:
        for row in rows:
            table = row.get("table")
            access = str(row.get("type") or "").upper()
            estimated = int(row.get("rows") or 0)
            if access == "ALL":
                warnings.append(f"Full table scan on '{table}' (~{estimated} rows).")
            elif access == "INDEX":
                warnings.append(f"Full index scan on '{table}' (~{estimated} rows).")
            if estimated > row_threshold and not row.get("key"):
                warnings.append(f"'{table}' scans about {estimated} rows without a usable index.")

    elif dialect == DataSourceType.POSTGRESQL.value:
        for row in rows:
            line = str(next(iter(row.values()), ""))
            match = re.search(r"Seq Scan on (\S+).*?rows=(\d+)", line)
            if not match:
                continue
            table, estimated = match.group(1), int(match.group(2))
            warnings.append(f"Sequential scan (Seq Scan) on '{table}' (~{estimated} rows estimated).")
            if estimated > row_threshold:
                warnings.append(f"'{table}' scans about {estimated} rows without a usable index.")

    elif dialect == DataSourceType.SQLITE.value:
        for row in rows:
            detail = str(row.get("detail") or "")
            match = re.match(r"SCAN (?:TABLE )?(\w+)(.*)", detail)
            if not match:
                continue
            table, rest = match.group(1), match.group(2)
            if "INDEX" in rest.upper():
                warnings.append(f"Full index scan on '{table}'.")
            else:
                warnings.append(f"Full table scan on '{table}'.")

    return warnings


class QueryExecutor:
    """Runs EXPLAIN / rolled-back probes against registered data sources."""

    def __init__(self, connections: ConnectionManager, app_settings: Optional[Settings] = None):
        self.connections = connections
        self.settings = app_settings or connections.settings

    def execute_probe(
        self,
        text: str,
        dialect: str,
        data_source_id: Optional[int],
        index: Optional[str] = None,
    ) -> ProbeResult:
        """
        Probe `text` against a data source.

        Engine errors come back as a failed ProbeResult; only an unreachable
        data source raises (DataSourceUnavailableError).
        """
        dialect = dialect.lower()

        if dialect == DataSourceType.API.value:
            return self._probe_api(text)

        if data_source_id is None:
            raise UnsupportedDialectError("A data source id is required to probe a statement")

        if dialect == DataSourceType.ELASTICSEARCH.value:
            return self._probe_lucene(text, data_source_id, index)

        if dialect not in (DataSourceType.MYSQL.value, DataSourceType.POSTGRESQL.value, DataSourceType.SQLITE.value):
            raise UnsupportedDialectError(f"No probe available for dialect '{dialect}'")

        return self._probe_sql(text, dialect, data_source_id)

    # ------------------------------------------------------------------ SQL

    def _probe_sql(self, text: str, dialect: str, data_source_id: int) -> ProbeResult:
        statement = text.strip().rstrip(";").strip()
        warnings = join_warnings(statement)

        try:
            if len(parse_statements(statement, dialect)) > 1:
                return ProbeResult.failure(
                    SQLErrorType.SYNTAX_ERROR,
                    "Multiple statements found. Validate and submit exactly one statement.",
                    warnings=warnings,
                )
        except SqlglotError as e:
            # Unparsable here is fine; the engine reports the real syntax error
            logger.debug(f"Pre-probe parse failed: {e}")

        if is_read_only(statement, dialect):
            keyword = leading_keyword(statement)
            if keyword in PASSTHROUGH_KEYWORDS:
                plan_sql = statement
            elif dialect == DataSourceType.SQLITE.value:
                plan_sql = f"EXPLAIN QUERY PLAN {statement}"
            else:
                plan_sql = f"EXPLAIN {statement}"

            try:
                rows = self._run_rolled_back(data_source_id, plan_sql, fetch=True)
            except SQLAlchemyError as e:
                return self._failure_from_engine(e, data_source_id, warnings)

            if keyword not in PASSTHROUGH_KEYWORDS:
                warnings.extend(analyze_plan(dialect, rows, self.settings.full_scan_row_threshold))
            logger.debug(f"EXPLAIN probe passed on #{data_source_id} with {len(warnings)} warning(s)")
            return ProbeResult.success(warnings)

        violation = validate_statement_safety(statement, dialect)
        if violation:
            return ProbeResult.failure(SQLErrorType.POLICY_VIOLATION, violation, warnings=warnings)

        if not is_data_change(statement, dialect):
            kind = leading_keyword(statement) or "This"
            return ProbeResult.failure(
                SQLErrorType.POLICY_VIOLATION,
                f"{kind} statements cannot be validated. Only queries and INSERT, UPDATE, DELETE or MERGE "
                "statements that parse cleanly are probed.",
                warnings=warnings,
            )

        try:
            self._run_rolled_back(data_source_id, statement, fetch=False)
        except SQLAlchemyError as e:
            return self._failure_from_engine(e, data_source_id, warnings)

        logger.debug(f"Rolled-back write probe passed on #{data_source_id}")
        return ProbeResult.success(warnings)

    def _run_rolled_back(self, data_source_id: int, sql: str, fetch: bool) -> List[Dict[str, Any]]:
        """Execute `sql` in a transaction that is rolled back before the connection is released."""
        with self.connections.connect(data_source_id) as conn:
            trans = conn.begin()
            try:
                result = conn.exec_driver_sql(sql, execution_options={"no_parameters": True})
                if fetch and result.returns_rows:
                    return [dict(row._mapping) for row in result]
                return []
            finally:
                if trans.is_active:
                    trans.rollback()

    def _failure_from_engine(self, error: SQLAlchemyError, data_source_id: int, warnings: List[str]) -> ProbeResult:
        if isinstance(error, DBAPIError) and error.connection_invalidated:
            raise DataSourceUnavailableError(
                f"Connection to data source #{data_source_id} was lost: {error.orig}"
            ) from error

        message = str(getattr(error, "orig", None) or error)
        normalized = normalize_error(message)
        logger.debug(f"Probe failed on #{data_source_id}: {normalized}")
        return ProbeResult.failure(
            normalized.error_type,
            message,
            hint=normalized.hint,
            warnings=warnings,
        )

    # ------------------------------------------------------------------ Lucene

    def _probe_lucene(self, lucene: str, data_source_id: int, index: Optional[str]) -> ProbeResult:
        if not lucene or not lucene.strip():
            return ProbeResult.failure(SQLErrorType.SYNTAX_ERROR, "Empty Lucene query.", hint=LUCENE_HINT)

        client = self.connections.get_search_client(data_source_id)
        result = client.validate_query(lucene, index=index)
        if result["valid"]:
            return ProbeResult.success()
        return ProbeResult.failure(SQLErrorType.SYNTAX_ERROR, str(result["error"]), hint=LUCENE_HINT)

    # ------------------------------------------------------------------ HTTP API

    def _probe_api(self, command: str) -> ProbeResult:
        command = (command or "").strip()
        allowed = self.settings.api_allowed_prefixes
        if not any(command.startswith(prefix) for prefix in allowed):
            return ProbeResult.failure(
                SQLErrorType.POLICY_VIOLATION,
                f"API commands must start with one of: {', '.join(allowed)}.",
            )

        try:
            parts = shlex.split(command)
        except ValueError as e:
            return ProbeResult.failure(SQLErrorType.SYNTAX_ERROR, f"Cannot parse command: {e}")

        if not any(p.startswith(("http://", "https://")) for p in parts):
            return ProbeResult.failure(SQLErrorType.SYNTAX_ERROR, "No http(s) URL found in the command.")

        for position, part in enumerate(parts):
            if part in _METHOD_FLAGS:
                method = parts[position + 1].upper() if position + 1 < len(parts) else ""
                if method != "GET":
                    return ProbeResult.failure(
                        SQLErrorType.POLICY_VIOLATION,
                        f"Only GET requests are allowed, found '{method or part}'.",
                    )
            if part in _BODY_FLAGS or part.startswith("--data"):
                return ProbeResult.failure(
                    SQLErrorType.POLICY_VIOLATION,
                    "Requests with a body are not allowed.",
                )

        return ProbeResult.success(["HTTP-API commands are checked structurally; the request was not sent."])
