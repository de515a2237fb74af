"""
Shared fixtures: a scripted chat model, a file-backed SQLite data source and
the services container the tools run against.
"""

from typing import Any, List, Optional

import pytest
from langchain_core.language_models import BaseChatModel
from langchain_core.messages import AIMessage, BaseMessage
from langchain_core.outputs import ChatGeneration, ChatResult
from langchain_core.runnables import RunnableLambda
from pydantic import Field
from sqlalchemy import create_engine

from querypilot.config.settings import DataSourceConfig, DataSourceType, Settings
from querypilot.infra.database import ConnectionManager
from querypilot.tools.base import AgentServices

SHOP_SCHEMA = [
    """CREATE TABLE users (
        id INTEGER PRIMARY KEY,
        name TEXT NOT NULL,
        email TEXT UNIQUE,
        password TEXT NOT NULL,
        created_at TEXT
    )""",
    """CREATE TABLE orders (
        id INTEGER PRIMARY KEY,
        user_id INTEGER NOT NULL REFERENCES users(id),
        amount REAL NOT NULL,
        status TEXT NOT NULL
    )""",
    "INSERT INTO users VALUES (1, 'Alice Martin', 'alice@example.com', 'hunter2', '2024-01-05')",
    "INSERT INTO users VALUES (2, 'Bob Stone', 'bob@example.com', 's3cret', '2024-02-11')",
    "INSERT INTO users VALUES (3, 'Carla Ruiz', 'carla@example.com', 'pa55', '2024-03-20')",
    "INSERT INTO orders VALUES (1, 1, 25.5, 'shipped')",
    "INSERT INTO orders VALUES (2, 1, 10.0, 'pending')",
    "INSERT INTO orders VALUES (3, 2, 99.9, 'shipped')",
]


class ScriptedChatModel(BaseChatModel):
    """
    Chat model that replays scripted AI messages in order.

    `structured` is returned by `with_structured_output` runnables; an
    exception instance is raised instead.
    """

    responses: List[Any] = Field(default_factory=list)
    structured: Optional[Any] = None
    calls: List[List[BaseMessage]] = Field(default_factory=list)
    bound_tools: List[str] = Field(default_factory=list)

    @property
    def _llm_type(self) -> str:
        return "scripted"

    def _generate(self, messages, stop=None, run_manager=None, **kwargs) -> ChatResult:
        self.calls.append(list(messages))
        if not self.responses:
            raise RuntimeError("No scripted response left")
        message = self.responses.pop(0)
        if isinstance(message, Exception):
            raise message
        return ChatResult(generations=[ChatGeneration(message=message)])

    def bind_tools(self, tools, **kwargs):
        self.bound_tools = [t.name for t in tools]
        return self

    def with_structured_output(self, schema, **kwargs):
        structured = self.structured

        async def respond(messages):
            self.calls.append(list(messages))
            if isinstance(structured, Exception):
                raise structured
            return structured

        return RunnableLambda(respond)


def tool_call_message(*calls, content: str = "") -> AIMessage:
    """AIMessage requesting `calls`, each given as (name, args, id)."""
    return AIMessage(
        content=content,
        tool_calls=[{"name": name, "args": args, "id": call_id} for name, args, call_id in calls],
    )


@pytest.fixture
def app_settings() -> Settings:
    return Settings(
        llm_provider="openai",
        openai_api_key="sk-test",
        data_sources=[],
        log_file_enabled=False,
    )


@pytest.fixture
def sqlite_source(tmp_path) -> DataSourceConfig:
    path = tmp_path / "shop.db"
    engine = create_engine(f"sqlite:///{path}")
    with engine.begin() as conn:
        for statement in SHOP_SCHEMA:
            conn.exec_driver_sql(statement)
    engine.dispose()
    return DataSourceConfig(id=1, name="shop", type=DataSourceType.SQLITE, database=str(path))


@pytest.fixture
def connections(sqlite_source, app_settings):
    manager = ConnectionManager([sqlite_source], app_settings)
    yield manager
    manager.dispose()


@pytest.fixture
def services(connections, app_settings) -> AgentServices:
    return AgentServices(connections, app_settings=app_settings)
