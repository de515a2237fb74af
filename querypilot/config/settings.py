"""
Configuration management for the application.
Loads settings from environment variables and the project .env file.
"""

from enum import Enum
from pathlib import Path
from typing import List, Optional
from urllib.parse import quote_plus

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings
from dotenv import load_dotenv
from loguru import logger

# This file is at querypilot/config/settings.py, so project root is 3 levels up
_project_root = Path(__file__).resolve().parent.parent.parent

PROJECT_ROOT = _project_root

_env_file = _project_root / ".env"
if _env_file.exists():
    load_dotenv(dotenv_path=_env_file, override=True)
    logger.debug(f"Loaded .env from: {_env_file}")
else:
    load_dotenv(override=False)


class DataSourceType(str, Enum):
    """Kinds of data source an agent run can target."""
    MYSQL = "mysql"
    POSTGRESQL = "postgresql"
    SQLITE = "sqlite"
    ELASTICSEARCH = "elasticsearch"
    API = "api"

    @property
    def is_sql(self) -> bool:
        return self in (DataSourceType.MYSQL, DataSourceType.POSTGRESQL, DataSourceType.SQLITE)


class DataSourceConfig(BaseModel):
    """Connection details for one registered data source."""
    id: int
    name: str = ""
    type: DataSourceType
    host: str = "127.0.0.1"
    port: Optional[int] = None
    user: str = ""
    password: str = ""
    database: str = ""
    url: Optional[str] = None  # Explicit SQLAlchemy URL / ES base URL, wins over the parts above
    api_key: Optional[str] = None  # Elasticsearch ApiKey auth

    def get_connection_string(self) -> str:
        """Build the SQLAlchemy URL (or Elasticsearch base URL) for this source"""
        if self.url:
            return self.url

        credentials = ""
        if self.user:
            credentials = quote_plus(self.user)
            if self.password:
                credentials += f":{quote_plus(self.password)}"
            credentials += "@"

        if self.type == DataSourceType.MYSQL:
            return (
                f"mysql+pymysql://{credentials}"
                f"{self.host}:{self.port or 3306}/{self.database}"
                "?charset=utf8mb4"
            )
        if self.type == DataSourceType.POSTGRESQL:
            return f"postgresql+psycopg2://{credentials}{self.host}:{self.port or 5432}/{self.database}"
        if self.type == DataSourceType.SQLITE:
            return f"sqlite:///{self.database}"
        if self.type == DataSourceType.ELASTICSEARCH:
            return f"http://{self.host}:{self.port or 9200}"
        raise ValueError(f"Data source type '{self.type.value}' has no connection string")


class Settings(BaseSettings):
    """Application settings from environment variables."""

    # LLM Provider Selection
    llm_provider: str = Field(default="openai")  # Options: "openai" | "ollama"

    # OpenAI-compatible Configuration
    openai_api_key: str = Field(default="")
    openai_base_url: Optional[str] = Field(default=None)  # Any OpenAI-compatible endpoint
    openai_model: str = Field(default="gpt-4o-mini")
    openai_temperature: float = Field(default=0.1)

    # Ollama Configuration
    ollama_base_url: str = Field(default="http://localhost:11434")
    ollama_model: str = Field(default="llama3")

    max_output_tokens: int = Field(default=4000)
    model_timeout_seconds: float = Field(default=60.0)  # Idle timeout between streamed model chunks

    # Agent Loop Configuration
    agent_max_iterations: int = Field(default=12)  # Hard bound on reasoning turns per run
    agent_run_timeout_seconds: float = Field(default=300.0)  # Deadline for a whole run
    tool_timeout_seconds: float = Field(default=45.0)
    agent_parallel_tool_calls: bool = Field(default=False)  # Run same-turn tool calls concurrently
    max_history_messages: int = Field(default=20)

    # Supervisor Configuration
    supervisor_temperature: float = Field(default=0.0)

    # Database Probe Configuration
    db_connect_timeout_seconds: int = Field(default=10)
    db_statement_timeout_seconds: int = Field(default=30)
    db_pool_size: int = Field(default=5)
    db_max_overflow: int = Field(default=10)
    db_pool_recycle: int = Field(default=3600)
    full_scan_row_threshold: int = Field(default=10000)  # Rows scanned without an index before warning

    # Tool Configuration
    sample_rows: int = Field(default=3)
    query_sample_rows: int = Field(default=5)
    search_values_limit: int = Field(default=5)
    max_listed_indices: int = Field(default=50)
    sensitive_column_keywords: List[str] = Field(
        default_factory=lambda: [
            "password", "secret", "token", "key", "salt", "recovery", "api_key", "access_token",
        ]
    )
    api_allowed_prefixes: List[str] = Field(default_factory=lambda: ["curl"])

    # Elasticsearch Configuration
    es_timeout_seconds: float = Field(default=15.0)

    # Logging
    log_level: str = Field(default="INFO")
    log_file_enabled: bool = Field(default=False)
    log_dir: str = Field(default="data/logs")

    # Registered data sources, JSON list in DATA_SOURCES
    data_sources: List[DataSourceConfig] = Field(default_factory=list)

    class Config:
        env_file = str(_project_root / ".env")
        env_file_encoding = "utf-8"
        extra = "allow"  # Allow extra fields from .env


# Create global settings instance
settings = Settings()
