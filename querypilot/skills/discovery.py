"""
Discovery skill - schema exploration tools for SQL data sources
"""

from typing import List

from langchain_core.tools import BaseTool

from querypilot.skills.base import Skill, SkillContext
from querypilot.skills.prompts import DISCOVERY_FULL_PROMPT, DISCOVERY_PROMPT
from querypilot.tools.base import AgentServices
from querypilot.tools.sql_tools import (
    GetTableSchemaTool,
    ListTablesTool,
    RunQuerySampleTool,
    SampleTableDataTool,
    SearchColumnValuesTool,
)


class DiscoverySkill(Skill):
    """
    Schema discovery.

    The lite variant (used when discovery only supports generation) omits
    value search and query previews.
    """

    name = "discovery"

    def __init__(self, services: AgentServices, lite: bool = False):
        super().__init__(services)
        self.lite = lite

    def get_system_prompt(self, context: SkillContext) -> str:
        if self.lite:
            return DISCOVERY_PROMPT
        return f"{DISCOVERY_PROMPT}\n{DISCOVERY_FULL_PROMPT}"

    def get_tools(self, context: SkillContext) -> List[BaseTool]:
        tools: List[BaseTool] = [
            ListTablesTool(services=self.services),
            GetTableSchemaTool(services=self.services),
            SampleTableDataTool(services=self.services),
        ]
        if not self.lite:
            tools += [
                SearchColumnValuesTool(services=self.services),
                RunQuerySampleTool(services=self.services),
            ]
        return tools
