"""
SQL family tools: schema discovery, sampling, value search, validation and submission.

Every identifier the model sends is checked before it reaches a query, and
sensitive columns are tagged (schema) or hidden (data) but never silently dropped.
"""

import re
from typing import Any, Dict, List, Literal, Optional, Tuple, Type

from langchain_core.tools import BaseTool
from loguru import logger
from pydantic import BaseModel, Field
from sqlalchemy import String, cast, column, inspect, literal_column, select, table
from sqlalchemy.exc import NoSuchTableError, SQLAlchemyError
from sqlglot.errors import SqlglotError

from querypilot.config.constants import IDENTIFIER_PATTERN, SENSITIVE_TAG
from querypilot.config.settings import DataSourceType
from querypilot.sql.analysis.ast_utils import find_sensitive_references, find_star_tables
from querypilot.sql.analysis.safety import (
    is_read_only,
    leading_keyword,
    normalize_candidate,
    validate_statement_safety,
)
from querypilot.sql.correction import SQLErrorType, normalize_error
from querypilot.tools.base import (
    AgentServices,
    AgentTool,
    DataSourceInput,
    ValidationVerdict,
    markdown_table,
    redact_row,
    to_json,
)

_IDENTIFIER = re.compile(IDENTIFIER_PATTERN)
INVALID_IDENTIFIER = "Error: Invalid table or column name format."


def is_valid_identifier(name: str) -> bool:
    return bool(name) and _IDENTIFIER.match(name) is not None


def _known_tables(inspector) -> List[str]:
    return sorted(set(inspector.get_table_names()) | set(inspector.get_view_names()))


def privacy_violation(services: AgentServices, sql: str, dialect: str, data_source_id: int) -> Optional[str]:
    """
    Reason a statement would expose sensitive columns, or None.

    Explicit references are always rejected; `*` projections are rejected when
    the underlying table has a sensitive column.
    """
    try:
        references = find_sensitive_references(sql, dialect, services.sensitive_keywords)
        star_tables = find_star_tables(sql, dialect)
    except SqlglotError:
        return None

    if references:
        return (
            f"The statement references sensitive column(s): {', '.join(references)}. "
            "Remove them from the query."
        )

    if star_tables:
        inspector = inspect(services.connections.get_engine(data_source_id))
        for table_name in sorted(star_tables):
            try:
                columns = inspector.get_columns(table_name)
            except NoSuchTableError:
                continue
            hidden = [c["name"] for c in columns if services.is_sensitive(c["name"])]
            if hidden:
                return (
                    f"SELECT * on '{table_name}' would return sensitive column(s) {', '.join(hidden)}. "
                    "List the needed non-sensitive columns explicitly."
                )
    return None


# ============================================================================
# Input Schemas
# ============================================================================

class TableInput(DataSourceInput):
    table_name: str = Field(description="Exact table name, as returned by list_tables.")


class SampleTableInput(TableInput):
    limit: Optional[int] = Field(default=None, ge=1, le=20, description="Number of rows to return (default 3).")


class SearchColumnValuesInput(DataSourceInput):
    table_name: str = Field(description="Table to search.")
    column_name: str = Field(description="Column whose values are searched.")
    keyword: str = Field(description="Fragment of the value the user mentioned (matched with LIKE %keyword%).")
    limit: Optional[int] = Field(default=None, ge=1, le=50, description="Maximum number of distinct values to return (default 5).")


class SqlInput(DataSourceInput):
    sql: str = Field(description="The complete SQL statement.")


class SubmitSqlInput(BaseModel):
    sql: str = Field(
        description="The final SQL, exactly as it passed validate_sql. Empty only when 'error' is set."
    )
    explanation: str = Field(description="Short explanation for the user of what the statement does.")
    risk_level: Literal["safe", "modification"] = Field(
        default="safe",
        description="'safe' for read-only queries, 'modification' for INSERT/UPDATE/DELETE.",
    )
    error: Optional[str] = Field(
        default=None,
        description="Set when the request cannot be answered from this data source (e.g. no matching table).",
    )


# ============================================================================
# Discovery Tools
# ============================================================================

class ListTablesTool(AgentTool):
    name: str = "list_tables"
    description: str = (
        "List the tables and views of the target database as a JSON array. "
        "Read-only. Call this first when you do not know the table names."
    )
    args_schema: Type[BaseModel] = DataSourceInput

    def _execute(self, data_source_id: Optional[int] = None) -> str:
        engine = self.services.connections.get_engine(self._require_source(data_source_id))
        return to_json(_known_tables(inspect(engine)))


class GetTableSchemaTool(AgentTool):
    name: str = "get_table_schema"
    description: str = (
        "Show the columns of one table: type, key flags, comments. Columns tagged [SENSITIVE] "
        "hold secrets and must never be selected, filtered on or returned. Read-only."
    )
    args_schema: Type[BaseModel] = TableInput

    def _execute(self, table_name: str, data_source_id: Optional[int] = None) -> str:
        if not is_valid_identifier(table_name):
            return INVALID_IDENTIFIER

        engine = self.services.connections.get_engine(self._require_source(data_source_id))
        inspector = inspect(engine)
        if table_name not in _known_tables(inspector):
            return f"Table '{table_name}' not found. Use list_tables to see the available tables."

        columns = inspector.get_columns(table_name)
        primary_keys = set(inspector.get_pk_constraint(table_name).get("constrained_columns") or [])

        unique_columns = set()
        try:
            for constraint in inspector.get_unique_constraints(table_name):
                if len(constraint.get("column_names") or []) == 1:
                    unique_columns.add(constraint["column_names"][0])
        except NotImplementedError:
            pass

        foreign_keys: Dict[str, str] = {}
        for fk in inspector.get_foreign_keys(table_name):
            for local, remote in zip(fk.get("constrained_columns") or [], fk.get("referred_columns") or []):
                foreign_keys[local] = f"{fk['referred_table']}.{remote}"

        lines = [f"Table: {table_name}", "Columns:"]
        has_sensitive = False
        for col in columns:
            name = col["name"]
            flags = [str(col["type"])]
            if name in primary_keys:
                flags.append("PRI")
            elif name in unique_columns:
                flags.append("UNI")
            if name in foreign_keys:
                flags.append(f"FK->{foreign_keys[name]}")

            line = f"- {name} ({', '.join(flags)})"
            if self.services.is_sensitive(name):
                line += f" {SENSITIVE_TAG}"
                has_sensitive = True
            if col.get("comment"):
                line += f" // {col['comment']}"
            lines.append(line)

        if has_sensitive:
            lines.append(f"Note: never reference {SENSITIVE_TAG} columns in a query.")
        return "\n".join(lines)


class SampleTableDataTool(AgentTool):
    name: str = "sample_table_data"
    description: str = (
        "Return a few example rows of a table as JSON to learn value formats (dates, enums, codes). "
        "Sensitive values are shown as [HIDDEN-FOR-SECURITY]. Read-only."
    )
    args_schema: Type[BaseModel] = SampleTableInput

    def _execute(self, table_name: str, limit: Optional[int] = None, data_source_id: Optional[int] = None) -> str:
        if not is_valid_identifier(table_name):
            return INVALID_IDENTIFIER

        source_id = self._require_source(data_source_id)
        if table_name not in _known_tables(inspect(self.services.connections.get_engine(source_id))):
            return f"Table '{table_name}' not found. Use list_tables to see the available tables."

        limit = limit or self.services.settings.sample_rows
        statement = select(literal_column("*")).select_from(table(table_name)).limit(limit)
        with self.services.connections.connect(source_id) as conn:
            rows = [dict(r) for r in conn.execute(statement).mappings().all()]

        if not rows:
            return f"Table '{table_name}' is empty."
        return to_json([redact_row(row, self.services) for row in rows])


class SearchColumnValuesTool(AgentTool):
    name: str = "search_column_values"
    description: str = (
        "Find the exact stored spelling of a value the user mentioned (names, statuses, cities) "
        "with a fuzzy LIKE search on one column. Returns JSON {found, values, note}. Read-only."
    )
    args_schema: Type[BaseModel] = SearchColumnValuesInput

    def _execute(
        self,
        table_name: str,
        column_name: str,
        keyword: str,
        limit: Optional[int] = None,
        data_source_id: Optional[int] = None,
    ) -> str:
        if not is_valid_identifier(table_name) or not is_valid_identifier(column_name):
            return INVALID_IDENTIFIER
        if self.services.is_sensitive(column_name):
            return f"Error: Column '{column_name}' is sensitive and cannot be searched."

        target = column(column_name)
        statement = (
            select(target)
            .select_from(table(table_name))
            .where(cast(target, String).like(f"%{keyword}%"))
            .distinct()
            .limit(limit or self.services.settings.search_values_limit)
        )
        with self.services.connections.connect(self._require_source(data_source_id)) as conn:
            values = [row[0] for row in conn.execute(statement).all()]

        if values:
            note = f"Use one of these exact values in the WHERE clause of {table_name}.{column_name}."
        else:
            note = "No match. Try a shorter keyword, another column, or ask the user to clarify."
        return to_json({"found": bool(values), "values": values, "note": note})


class RunQuerySampleTool(AgentTool):
    name: str = "run_query_sample"
    description: str = (
        "Run a SELECT/WITH query and return at most 5 result rows as a markdown table, to check that "
        "filters and joins return what you expect. Read-only; does not replace validate_sql."
    )
    args_schema: Type[BaseModel] = SqlInput

    def _execute(self, sql: str, data_source_id: Optional[int] = None) -> str:
        source_id = self._require_source(data_source_id)
        dialect = self.services.connections.get_dialect(source_id)
        statement = sql.strip().rstrip(";").strip()

        if leading_keyword(statement) not in ("SELECT", "WITH") or not is_read_only(statement, dialect):
            return "Error: run_query_sample only accepts SELECT or WITH queries."

        violation = validate_statement_safety(statement, dialect)
        if violation:
            return f"Security Block: {violation}"
        privacy = privacy_violation(self.services, statement, dialect, source_id)
        if privacy:
            return f"Security Block: {privacy}"

        limit = self.services.settings.query_sample_rows
        wrapped = f"SELECT * FROM ({statement}) AS sample_sub LIMIT {limit}"
        try:
            with self.services.connections.connect(source_id) as conn:
                trans = conn.begin()
                try:
                    result = conn.exec_driver_sql(wrapped, execution_options={"no_parameters": True})
                    columns = list(result.keys())
                    rows = [dict(r) for r in result.mappings().all()]
                finally:
                    trans.rollback()
        except SQLAlchemyError as e:
            normalized = normalize_error(str(getattr(e, "orig", None) or e))
            return f"Query failed: {normalized.raw_message}\nHint: {normalized.hint}"

        if not rows:
            return "Query returned no rows."
        return markdown_table([redact_row(r, self.services) for r in rows], columns)


# ============================================================================
# Validation / Submission
# ============================================================================

class ValidateSqlTool(AgentTool):
    name: str = "validate_sql"
    description: str = (
        "MANDATORY before submit_sql_solution. Checks the statement against the safety policy "
        "(no DROP/TRUNCATE/ALTER/CREATE/REPLACE/GRANT/REVOKE, no DELETE/UPDATE without WHERE, "
        "no sensitive columns) and probes it on the database with EXPLAIN or a rolled-back "
        "transaction. Never changes data. Returns pass/fail with the reason and a hint."
    )
    args_schema: Type[BaseModel] = SqlInput
    response_format: Literal["content", "content_and_artifact"] = "content_and_artifact"

    def _execute(self, sql: str, data_source_id: Optional[int] = None) -> Tuple[str, ValidationVerdict]:
        verdict = self.evaluate(sql, self._require_source(data_source_id))
        logger.info(
            f"validate_sql on #{data_source_id}: {'PASSED' if verdict.passed else 'FAILED'}"
            + (f" ({verdict.error_category})" if verdict.error_category else "")
        )
        return verdict.to_message(), verdict

    def evaluate(self, sql: str, data_source_id: int) -> ValidationVerdict:
        candidate = normalize_candidate(sql)
        source = self.services.connections.get_data_source(data_source_id)
        dialect = source.type.value

        if source.type.is_sql:
            violation = validate_statement_safety(sql, dialect)
            if violation:
                return ValidationVerdict(
                    passed=False,
                    candidate=candidate,
                    reason=f"Security Block: {violation}",
                    hint="Do not retry the same statement. Rewrite it within the policy.",
                    error_category=SQLErrorType.POLICY_VIOLATION.value,
                )

            privacy = privacy_violation(self.services, sql, dialect, data_source_id)
            if privacy:
                return ValidationVerdict(
                    passed=False,
                    candidate=candidate,
                    reason=f"Security Block: {privacy}",
                    hint="Select only the non-sensitive columns the user needs.",
                    error_category=SQLErrorType.POLICY_VIOLATION.value,
                )
        elif source.type != DataSourceType.API:
            return ValidationVerdict(
                passed=False,
                candidate=candidate,
                reason=f"Data source #{data_source_id} is {dialect}; use the search tools instead.",
                error_category=SQLErrorType.OTHER.value,
            )

        probe = self.services.executor.execute_probe(sql, dialect, data_source_id)
        if probe.ok:
            return ValidationVerdict(
                passed=True,
                candidate=candidate,
                performance_note=" ".join(probe.warnings) or None,
            )
        return ValidationVerdict(
            passed=False,
            candidate=candidate,
            reason=probe.message,
            hint=probe.hint,
            performance_note=" ".join(probe.warnings) or None,
            error_category=probe.error_category.value if probe.error_category else None,
        )


class SubmitSqlSolutionTool(BaseTool):
    name: str = "submit_sql_solution"
    description: str = (
        "Submit the final SQL to the user. Only a statement that passed validate_sql in this "
        "conversation, with exactly the same text, is accepted. Ends the task."
    )
    args_schema: Type[BaseModel] = SubmitSqlInput

    def _run(self, **kwargs: Any) -> str:
        # Intercepted by the agent loop before dispatch; reaching here is a no-op
        return "Solution submitted."
