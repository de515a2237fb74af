"""
Tool registry - name -> tool mapping built once per skill composition,
plus the terminal-tool table the agent loop checks before dispatch.
"""

from enum import Enum
from typing import Dict, Iterable, Iterator, List, Optional

from langchain_core.tools import BaseTool
from loguru import logger


class TerminalKind(Enum):
    """Tools that end a run instead of being executed."""
    SUBMISSION = "submission"
    CLARIFICATION = "clarification"


TERMINAL_TOOLS: Dict[str, TerminalKind] = {
    "submit_sql_solution": TerminalKind.SUBMISSION,
    "submit_lucene_solution": TerminalKind.SUBMISSION,
    "clarify_intent": TerminalKind.CLARIFICATION,
}

# Submission tool -> validation tool whose passed verdict it requires
VALIDATION_TOOLS: Dict[str, str] = {
    "submit_sql_solution": "validate_sql",
    "submit_lucene_solution": "validate_lucene",
}

# Submission tool -> argument holding the statement
SUBMISSION_ARGUMENTS: Dict[str, str] = {
    "submit_sql_solution": "sql",
    "submit_lucene_solution": "lucene",
}

# Tool -> argument narrowing where a verdict applies (the Lucene index)
SCOPE_ARGUMENTS: Dict[str, str] = {
    "validate_lucene": "index",
    "submit_lucene_solution": "index",
}

# Validation tool -> argument holding the candidate statement
CANDIDATE_ARGUMENTS: Dict[str, str] = {
    "validate_sql": "sql",
    "validate_lucene": "lucene",
}


def is_terminal_tool(name: str) -> Optional[TerminalKind]:
    return TERMINAL_TOOLS.get(name)


def is_validation_tool(name: str) -> bool:
    return name in CANDIDATE_ARGUMENTS


class ToolRegistry:
    """Flattened union of skill tools; the first tool registered under a name wins."""

    def __init__(self, tools: Iterable[BaseTool] = ()):
        self._tools: Dict[str, BaseTool] = {}
        for tool in tools:
            self.register(tool)

    def register(self, tool: BaseTool) -> None:
        if tool.name in self._tools:
            logger.debug(f"Tool '{tool.name}' already registered, keeping the first one")
            return
        self._tools[tool.name] = tool

    def get(self, name: str) -> Optional[BaseTool]:
        return self._tools.get(name)

    def names(self) -> List[str]:
        return list(self._tools)

    def as_list(self) -> List[BaseTool]:
        return list(self._tools.values())

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __iter__(self) -> Iterator[BaseTool]:
        return iter(self._tools.values())

    def __len__(self) -> int:
        return len(self._tools)
