"""
Search/log family tools backed by Elasticsearch: index discovery, mappings,
field statistics, samples, validation and Lucene submission.
"""

import re
from typing import Any, Dict, Literal, Optional, Tuple, Type

from langchain_core.tools import BaseTool
from pydantic import BaseModel, Field

from querypilot.config.settings import DataSourceType
from querypilot.infra.elasticsearch import ElasticsearchClient
from querypilot.sql.analysis.safety import normalize_candidate
from querypilot.tools.base import (
    AgentTool,
    DataSourceInput,
    ValidationVerdict,
    redact_row,
    to_json,
)

_INDEX_NAME = re.compile(r"^[A-Za-z0-9_.\-*,:]+$")
_FIELD_NAME = re.compile(r"^[\w.@\-]+$")

KEYWORD_TYPES = {"keyword", "text", "constant_keyword", "wildcard"}
NUMERIC_TYPES = {"long", "integer", "short", "byte", "double", "float", "half_float", "scaled_float", "unsigned_long"}
DATE_TYPES = {"date", "date_nanos"}


def flatten_mapping(mapping_response: Dict[str, Any]) -> Dict[str, str]:
    """
    Collapse a `_mapping` response into `{dotted.field: type}` across all
    matched indices. Object fields are walked; multi-fields are skipped.
    """
    fields: Dict[str, str] = {}

    def walk(properties: Dict[str, Any], prefix: str) -> None:
        for name, definition in properties.items():
            path = f"{prefix}{name}"
            if "properties" in definition:
                if definition.get("type") == "nested":
                    fields[path] = "nested"
                walk(definition["properties"], f"{path}.")
            else:
                fields[path] = definition.get("type", "object")

    for index_body in mapping_response.values():
        walk(index_body.get("mappings", {}).get("properties", {}), "")
    return fields


def human_size(size_bytes: int) -> str:
    size = float(size_bytes)
    for unit in ("B", "KB", "MB", "GB"):
        if size < 1024:
            return f"{int(size)} B" if unit == "B" else f"{size:.1f} {unit}"
        size /= 1024
    return f"{size:.1f} TB"


class IndexInput(DataSourceInput):
    index: str = Field(description="Index name or pattern (e.g. 'logs-*').")


class FieldStatsInput(IndexInput):
    field: str = Field(description="Field name as shown by get_mapping (dotted for nested objects).")


class SampleDataInput(IndexInput):
    size: int = Field(default=3, ge=1, le=20, description="Number of documents to return.")


class LuceneInput(DataSourceInput):
    lucene: str = Field(description="Lucene query string, e.g. 'status:500 AND service:payments'.")
    index: Optional[str] = Field(default=None, description="Index or pattern to validate against.")


class SubmitLuceneInput(BaseModel):
    lucene: str = Field(description="The final Lucene query, exactly as it passed validate_lucene.")
    explanation: str = Field(description="Short explanation for the user of what the query matches.")
    index: Optional[str] = Field(default=None, description="Index or pattern the query targets.")


class SearchTool(AgentTool):
    """Base for tools that read from an Elasticsearch data source."""

    def _client(self, data_source_id: Optional[int]) -> ElasticsearchClient:
        return self.services.connections.get_search_client(self._require_source(data_source_id))

    @staticmethod
    def _check_index(index: str) -> Optional[str]:
        if not index or not _INDEX_NAME.match(index):
            return "Error: Invalid index name format."
        return None


class ListIndicesTool(SearchTool):
    name: str = "list_indices"
    description: str = (
        "List searchable indices with document count and size as JSON. System indices are hidden. Read-only."
    )
    args_schema: Type[BaseModel] = DataSourceInput

    def _execute(self, data_source_id: Optional[int] = None) -> str:
        raw = self._client(data_source_id).list_indices()
        visible = [
            i for i in raw
            if not i.get("index", "").startswith(".") or i.get("index", "").startswith(".ds-")
        ]
        visible.sort(key=lambda i: i.get("index", ""))
        limit = self.services.settings.max_listed_indices
        return to_json([
            {
                "index": i.get("index"),
                "docsCount": int(i.get("docs.count") or 0),
                "size": human_size(int(i.get("store.size") or 0)),
            }
            for i in visible[:limit]
        ])


class GetMappingTool(SearchTool):
    name: str = "get_mapping"
    description: str = "Show the fields of an index as a JSON {field: type} map. Read-only."
    args_schema: Type[BaseModel] = IndexInput

    def _execute(self, index: str, data_source_id: Optional[int] = None) -> str:
        error = self._check_index(index)
        if error:
            return error
        fields = flatten_mapping(self._client(data_source_id).get_mapping(index))
        if not fields:
            return f"Index '{index}' has no mapped fields."
        return to_json(fields)


class GetFieldStatsTool(SearchTool):
    name: str = "get_field_stats"
    description: str = (
        "Show the top 10 values of a keyword/text field, or min/max/avg of a numeric/date field. "
        "Use it to learn exact values before filtering. Read-only."
    )
    args_schema: Type[BaseModel] = FieldStatsInput

    def _execute(self, index: str, field: str, data_source_id: Optional[int] = None) -> str:
        error = self._check_index(index)
        if error:
            return error
        if not _FIELD_NAME.match(field):
            return "Error: Invalid field name format."
        if self.services.is_sensitive(field):
            return f"Error: Field '{field}' is sensitive and cannot be inspected."

        client = self._client(data_source_id)
        field_type = flatten_mapping(client.get_mapping(index)).get(field)
        if field_type is None:
            return f"Field '{field}' not found in index '{index}'. Use get_mapping to list fields."

        if field_type in KEYWORD_TYPES:
            agg_field = f"{field}.keyword" if field_type == "text" else field
            body = {"size": 0, "aggs": {"top_values": {"terms": {"field": agg_field, "size": 10}}}}
            buckets = client.search(index, body).get("aggregations", {}).get("top_values", {}).get("buckets", [])
            return to_json({
                "field": field,
                "type": field_type,
                "top_values": [{"value": b.get("key"), "count": b.get("doc_count")} for b in buckets],
            })

        if field_type in NUMERIC_TYPES or field_type in DATE_TYPES:
            body = {"size": 0, "aggs": {"field_stats": {"stats": {"field": field}}}}
            stats = client.search(index, body).get("aggregations", {}).get("field_stats", {})
            if field_type in DATE_TYPES:
                summary = {
                    "min": stats.get("min_as_string", stats.get("min")),
                    "max": stats.get("max_as_string", stats.get("max")),
                    "count": stats.get("count"),
                }
            else:
                summary = {k: stats.get(k) for k in ("min", "max", "avg", "count")}
            return to_json({"field": field, "type": field_type, "stats": summary})

        return f"Statistics are not available for field type '{field_type}'."


class SampleDataTool(SearchTool):
    name: str = "sample_data"
    description: str = (
        "Return the most recent documents of an index (_source only) to learn field formats. "
        "Sensitive fields are shown as [HIDDEN-FOR-SECURITY]. Read-only."
    )
    args_schema: Type[BaseModel] = SampleDataInput

    def _execute(self, index: str, size: int = 3, data_source_id: Optional[int] = None) -> str:
        error = self._check_index(index)
        if error:
            return error
        body = {"size": size, "sort": [{"@timestamp": {"order": "desc", "unmapped_type": "date"}}]}
        hits = self._client(data_source_id).search(index, body).get("hits", {}).get("hits", [])
        if not hits:
            return f"Index '{index}' is empty."
        return to_json([redact_row(hit.get("_source", {}), self.services) for hit in hits])


class GetIndexSummaryTool(SearchTool):
    name: str = "get_index_summary"
    description: str = (
        "Summarize an index: document count, storage size and the @timestamp range it covers. Read-only."
    )
    args_schema: Type[BaseModel] = IndexInput

    def _execute(self, index: str, data_source_id: Optional[int] = None) -> str:
        error = self._check_index(index)
        if error:
            return error
        client = self._client(data_source_id)
        size_bytes = client.store_size(index)
        body = {
            "size": 0,
            "aggs": {
                "oldest": {"min": {"field": "@timestamp"}},
                "newest": {"max": {"field": "@timestamp"}},
            },
        }
        aggs = client.search(index, body).get("aggregations", {})
        oldest, newest = aggs.get("oldest", {}), aggs.get("newest", {})
        time_range = None
        if oldest.get("value") is not None:
            time_range = {
                "from": oldest.get("value_as_string", oldest.get("value")),
                "to": newest.get("value_as_string", newest.get("value")),
            }
        return to_json({
            "index": index,
            "count": client.count(index),
            "size_bytes": size_bytes,
            "size_human": human_size(size_bytes),
            "time_range": time_range,
        })


class ValidateLuceneTool(SearchTool):
    name: str = "validate_lucene"
    description: str = (
        "MANDATORY before submit_lucene_solution. Asks the cluster whether the Lucene query parses. "
        "Never runs the search. Returns pass/fail with the engine's explanation."
    )
    args_schema: Type[BaseModel] = LuceneInput
    response_format: Literal["content", "content_and_artifact"] = "content_and_artifact"

    def _execute(
        self,
        lucene: str,
        index: Optional[str] = None,
        data_source_id: Optional[int] = None,
    ) -> Tuple[str, ValidationVerdict]:
        candidate = normalize_candidate(lucene)
        if index and self._check_index(index):
            verdict = ValidationVerdict(
                passed=False, candidate=candidate, reason="Invalid index name format.", scope=index
            )
            return verdict.to_message(), verdict

        probe = self.services.executor.execute_probe(
            lucene, DataSourceType.ELASTICSEARCH.value, self._require_source(data_source_id), index=index
        )
        if probe.ok:
            verdict = ValidationVerdict(passed=True, candidate=candidate, scope=index or None)
        else:
            verdict = ValidationVerdict(
                passed=False,
                candidate=candidate,
                reason=probe.message,
                hint=probe.hint,
                error_category=probe.error_category.value if probe.error_category else None,
                scope=index or None,
            )
        return verdict.to_message(), verdict


class SubmitLuceneSolutionTool(BaseTool):
    name: str = "submit_lucene_solution"
    description: str = (
        "Submit the final Lucene query to the user. Only a query that passed validate_lucene in this "
        "conversation, with exactly the same text, is accepted. Ends the task."
    )
    args_schema: Type[BaseModel] = SubmitLuceneInput

    def _run(self, **kwargs: Any) -> str:
        # Intercepted by the agent loop before dispatch; reaching here is a no-op
        return "Solution submitted."
