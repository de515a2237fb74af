"""
Minimal Elasticsearch REST client over httpx.

Only the read-only endpoints the search tools need are exposed.
"""

from typing import Any, Dict, List, Optional

import httpx
from loguru import logger

from querypilot.config.settings import DataSourceConfig
from querypilot.utils.errors import DataSourceUnavailableError, SearchQueryError


class ElasticsearchClient:
    """Synchronous client for one cluster; safe to share between threads."""

    def __init__(
        self,
        base_url: str,
        api_key: Optional[str] = None,
        username: Optional[str] = None,
        password: Optional[str] = None,
        timeout: float = 15.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        headers = {"Accept": "application/json"}
        if api_key:
            headers["Authorization"] = f"ApiKey {api_key}"
        auth = (username, password or "") if username and not api_key else None

        self.base_url = base_url.rstrip("/")
        self._client = httpx.Client(
            base_url=self.base_url,
            headers=headers,
            auth=auth,
            timeout=timeout,
            transport=transport,
        )

    @classmethod
    def from_data_source(cls, source: DataSourceConfig, timeout: float = 15.0, **kwargs) -> "ElasticsearchClient":
        return cls(
            base_url=source.get_connection_string(),
            api_key=source.api_key,
            username=source.user or None,
            password=source.password or None,
            timeout=timeout,
            **kwargs,
        )

    def _request(self, method: str, path: str, params: Optional[dict] = None, json: Optional[dict] = None) -> Any:
        try:
            response = self._client.request(method, path, params=params, json=json)
        except (httpx.ConnectError, httpx.TimeoutException) as e:
            logger.error(f"Elasticsearch unreachable at {self.base_url}: {e}")
            raise DataSourceUnavailableError(f"Cannot reach Elasticsearch at {self.base_url}: {e}") from e

        if response.status_code >= 400:
            reason = response.text
            try:
                error = response.json().get("error")
                if isinstance(error, dict):
                    reason = error.get("reason") or error.get("type") or reason
                elif error:
                    reason = str(error)
            except ValueError:
                pass
            raise SearchQueryError(f"Elasticsearch {response.status_code}: {reason}")

        return response.json()

    def list_indices(self) -> List[Dict[str, Any]]:
        return self._request("GET", "/_cat/indices", params={"format": "json", "bytes": "b"})

    def get_mapping(self, index: str) -> Dict[str, Any]:
        return self._request("GET", f"/{index}/_mapping")

    def search(self, index: str, body: Dict[str, Any]) -> Dict[str, Any]:
        return self._request("POST", f"/{index}/_search", json=body)

    def count(self, index: str) -> int:
        return int(self._request("GET", f"/{index}/_count").get("count", 0))

    def store_size(self, index: str) -> int:
        stats = self._request("GET", f"/{index}/_stats/store")
        return int(stats.get("_all", {}).get("primaries", {}).get("store", {}).get("size_in_bytes", 0))

    def validate_query(self, lucene: str, index: Optional[str] = None) -> Dict[str, Any]:
        """
        Ask the cluster whether a Lucene query string parses.

        Returns `{"valid": bool, "error": str|None}`; malformed queries are a
        normal result, not an exception.
        """
        path = f"/{index}/_validate/query" if index else "/_validate/query"
        try:
            result = self._request("GET", path, params={"q": lucene, "explain": "true"})
        except SearchQueryError as e:
            return {"valid": False, "error": str(e)}

        if result.get("valid"):
            return {"valid": True, "error": None}
        explanations = result.get("explanations") or []
        error = result.get("error") or next((x.get("error") for x in explanations if x.get("error")), None)
        return {"valid": False, "error": error or "Query is not valid"}

    def close(self) -> None:
        self._client.close()
