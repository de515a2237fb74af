"""
Database connection management - one pooled SQLAlchemy engine per data source.
"""

import threading
from contextlib import contextmanager
from typing import Dict, Generator, Iterable, List, Optional

from loguru import logger
from sqlalchemy import create_engine
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import InterfaceError, OperationalError

from querypilot.config.settings import DataSourceConfig, DataSourceType, Settings, settings as default_settings
from querypilot.infra.elasticsearch import ElasticsearchClient
from querypilot.utils.errors import (
    DataSourceNotFoundError,
    DataSourceUnavailableError,
    UnsupportedDialectError,
)


class ConnectionManager:
    """
    Registry of data sources and their connection pools.

    Engines are created lazily on first use and shared by every concurrent
    agent run; SQLAlchemy's pool bounds the number of open connections.
    """

    def __init__(
        self,
        data_sources: Optional[Iterable[DataSourceConfig]] = None,
        app_settings: Optional[Settings] = None,
    ):
        self.settings = app_settings or default_settings
        self._sources: Dict[int, DataSourceConfig] = {}
        self._engines: Dict[int, Engine] = {}
        self._search_clients: Dict[int, ElasticsearchClient] = {}
        self._lock = threading.Lock()

        sources = data_sources if data_sources is not None else self.settings.data_sources
        for source in sources:
            self.register(source)

    def register(self, source: DataSourceConfig) -> None:
        """Add (or replace) a data source; any cached pool for the id is disposed."""
        with self._lock:
            old_engine = self._engines.pop(source.id, None)
            old_client = self._search_clients.pop(source.id, None)
            self._sources[source.id] = source
        if old_engine is not None:
            old_engine.dispose()
        if old_client is not None:
            old_client.close()
        logger.info(f"Registered data source #{source.id} ({source.type.value}) {source.name}")

    def get_data_source(self, data_source_id: int) -> DataSourceConfig:
        source = self._sources.get(data_source_id)
        if source is None:
            raise DataSourceNotFoundError(f"Data source #{data_source_id} is not registered")
        return source

    def get_dialect(self, data_source_id: int) -> str:
        return self.get_data_source(data_source_id).type.value

    def list_data_sources(self) -> List[DataSourceConfig]:
        return list(self._sources.values())

    def _connect_args(self, source: DataSourceConfig) -> dict:
        connect_timeout = self.settings.db_connect_timeout_seconds
        statement_timeout_ms = self.settings.db_statement_timeout_seconds * 1000

        if source.type == DataSourceType.MYSQL:
            return {
                "connect_timeout": connect_timeout,
                "read_timeout": self.settings.db_statement_timeout_seconds + connect_timeout,
                "init_command": f"SET SESSION MAX_EXECUTION_TIME={statement_timeout_ms}",
            }
        if source.type == DataSourceType.POSTGRESQL:
            return {
                "connect_timeout": connect_timeout,
                "options": f"-c statement_timeout={statement_timeout_ms}",
            }
        # SQLite: busy timeout; probes run on LangChain's executor threads
        return {"timeout": connect_timeout, "check_same_thread": False}

    def _create_engine(self, source: DataSourceConfig) -> Engine:
        connection_string = source.get_connection_string()
        options = {
            "pool_pre_ping": True,  # Verify connections before using
            "connect_args": self._connect_args(source),
            "echo": False,
        }
        if source.type != DataSourceType.SQLITE:
            options.update(
                pool_recycle=self.settings.db_pool_recycle,
                pool_size=self.settings.db_pool_size,
                max_overflow=self.settings.db_max_overflow,
            )

        logger.info(f"Creating engine for data source #{source.id} ({source.type.value})")
        return create_engine(connection_string, **options)

    def get_engine(self, data_source_id: int) -> Engine:
        source = self.get_data_source(data_source_id)
        if not source.type.is_sql:
            raise UnsupportedDialectError(
                f"Data source #{data_source_id} is {source.type.value}, not a SQL database"
            )
        with self._lock:
            engine = self._engines.get(data_source_id)
            if engine is None:
                engine = self._create_engine(source)
                self._engines[data_source_id] = engine
        return engine

    @contextmanager
    def connect(self, data_source_id: int) -> Generator[Connection, None, None]:
        """
        Check a connection out of the data source pool.

        Failing to obtain a connection is an infrastructure failure; errors raised
        while the caller uses the connection propagate unchanged.
        """
        engine = self.get_engine(data_source_id)
        try:
            conn = engine.connect()
        except (OperationalError, InterfaceError) as e:
            logger.error(f"Cannot connect to data source #{data_source_id}: {e}")
            raise DataSourceUnavailableError(
                f"Cannot connect to data source #{data_source_id}: {getattr(e, 'orig', e)}"
            ) from e
        try:
            yield conn
        finally:
            conn.close()

    def get_search_client(self, data_source_id: int) -> ElasticsearchClient:
        source = self.get_data_source(data_source_id)
        if source.type != DataSourceType.ELASTICSEARCH:
            raise UnsupportedDialectError(
                f"Data source #{data_source_id} is {source.type.value}, not Elasticsearch"
            )
        with self._lock:
            client = self._search_clients.get(data_source_id)
            if client is None:
                client = ElasticsearchClient.from_data_source(source, timeout=self.settings.es_timeout_seconds)
                self._search_clients[data_source_id] = client
        return client

    def set_search_client(self, data_source_id: int, client: ElasticsearchClient) -> None:
        """Use a pre-built client for a registered Elasticsearch source."""
        self.get_data_source(data_source_id)
        with self._lock:
            self._search_clients[data_source_id] = client

    def dispose(self) -> None:
        """Close every pool and search client."""
        with self._lock:
            engines = list(self._engines.values())
            clients = list(self._search_clients.values())
            self._engines.clear()
            self._search_clients.clear()
        for engine in engines:
            engine.dispose()
        for client in clients:
            client.close()
        logger.info("Disposed all data source connections")
