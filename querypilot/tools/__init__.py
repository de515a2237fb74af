"""
Agent tools - SQL family, search family, universal tools and the registry
"""

from querypilot.tools.base import AgentServices, AgentTool, ValidationVerdict
from querypilot.tools.common_tools import ClarifyIntentTool, GetCurrentTimeTool
from querypilot.tools.registry import (
    TerminalKind,
    ToolRegistry,
    is_terminal_tool,
    is_validation_tool,
)
from querypilot.tools.search_tools import (
    GetFieldStatsTool,
    GetIndexSummaryTool,
    GetMappingTool,
    ListIndicesTool,
    SampleDataTool,
    SubmitLuceneSolutionTool,
    ValidateLuceneTool,
)
from querypilot.tools.sql_tools import (
    GetTableSchemaTool,
    ListTablesTool,
    RunQuerySampleTool,
    SampleTableDataTool,
    SearchColumnValuesTool,
    SubmitSqlSolutionTool,
    ValidateSqlTool,
)

__all__ = [
    "AgentServices",
    "AgentTool",
    "ValidationVerdict",
    "ClarifyIntentTool",
    "GetCurrentTimeTool",
    "TerminalKind",
    "ToolRegistry",
    "is_terminal_tool",
    "is_validation_tool",
    "GetFieldStatsTool",
    "GetIndexSummaryTool",
    "GetMappingTool",
    "ListIndicesTool",
    "SampleDataTool",
    "SubmitLuceneSolutionTool",
    "ValidateLuceneTool",
    "GetTableSchemaTool",
    "ListTablesTool",
    "RunQuerySampleTool",
    "SampleTableDataTool",
    "SearchColumnValuesTool",
    "SubmitSqlSolutionTool",
    "ValidateSqlTool",
]
