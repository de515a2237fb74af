"""
Shared pieces for agent tools: the services container, the validation
verdict artifact, the error-catching tool base class and output helpers.
"""

import json
from dataclasses import asdict, dataclass
from typing import Any, Dict, Iterable, List, Optional

from langchain_core.tools import BaseTool
from loguru import logger
from pydantic import BaseModel, Field

from querypilot.config.constants import HIDDEN_VALUE
from querypilot.config.settings import Settings
from querypilot.infra.database import ConnectionManager
from querypilot.sql.analysis.ast_utils import is_sensitive_name
from querypilot.sql.execution.executor import QueryExecutor
from querypilot.utils.errors import InfrastructureError


class AgentServices:
    """Dependencies shared by every tool of a run: connection pools, probe executor, settings."""

    def __init__(
        self,
        connections: ConnectionManager,
        executor: Optional[QueryExecutor] = None,
        app_settings: Optional[Settings] = None,
    ):
        self.connections = connections
        self.settings = app_settings or connections.settings
        self.executor = executor or QueryExecutor(connections, self.settings)

    @property
    def sensitive_keywords(self) -> List[str]:
        return self.settings.sensitive_column_keywords

    def is_sensitive(self, name: str) -> bool:
        return is_sensitive_name(name, self.sensitive_keywords)


@dataclass
class ValidationVerdict:
    """
    Result of one validation tool call.

    Authoritative only for `candidate` (the normalized text that was checked)
    within `scope`, the Lucene index it was checked against (None for SQL).
    """
    passed: bool
    candidate: str
    reason: Optional[str] = None
    hint: Optional[str] = None
    performance_note: Optional[str] = None
    error_category: Optional[str] = None
    scope: Optional[str] = None

    def to_message(self) -> str:
        if self.passed:
            message = "Validation passed. The statement is safe to submit."
            if self.performance_note:
                message += f"\nPerformance notes: {self.performance_note}"
            return message
        message = f"Validation failed: {self.reason}"
        if self.hint:
            message += f"\nHint: {self.hint}"
        return message

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class DataSourceInput(BaseModel):
    data_source_id: Optional[int] = Field(
        default=None,
        description="Id of the target data source. Filled in automatically when omitted.",
    )


class AgentTool(BaseTool):
    """
    Base class for tools that touch a data source.

    Subclasses implement `_execute`. Any failure becomes a descriptive string
    result so the agent can recover; infrastructure failures propagate so the
    run can end.
    """

    services: AgentServices

    def _run(self, **kwargs: Any) -> Any:
        try:
            return self._execute(**kwargs)
        except InfrastructureError:
            raise
        except Exception as e:
            logger.warning(f"Tool {self.name} failed: {e}")
            return self._error_result(f"Error executing {self.name}: {e}")

    def _execute(self, **kwargs: Any) -> Any:
        raise NotImplementedError

    def _error_result(self, message: str) -> Any:
        if self.response_format == "content_and_artifact":
            return message, None
        return message

    def _require_source(self, data_source_id: Optional[int]) -> int:
        if data_source_id is None:
            raise ValueError("data_source_id is required")
        return data_source_id


def to_json(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False, default=str)


def redact_row(row: Dict[str, Any], services: AgentServices) -> Dict[str, Any]:
    """Replace values of sensitive keys (recursively for nested documents)."""
    redacted = {}
    for key, value in row.items():
        if services.is_sensitive(str(key)):
            redacted[key] = HIDDEN_VALUE
        elif isinstance(value, dict):
            redacted[key] = redact_row(value, services)
        elif isinstance(value, list):
            redacted[key] = [redact_row(v, services) if isinstance(v, dict) else v for v in value]
        else:
            redacted[key] = value
    return redacted


def markdown_table(rows: List[Dict[str, Any]], columns: Iterable[str]) -> str:
    columns = list(columns)
    header = "| " + " | ".join(columns) + " |"
    separator = "| " + " | ".join("---" for _ in columns) + " |"
    body = [
        "| " + " | ".join(str(row.get(c, "")).replace("|", "\\|").replace("\n", " ") for c in columns) + " |"
        for row in rows
    ]
    return "\n".join([header, separator, *body])
