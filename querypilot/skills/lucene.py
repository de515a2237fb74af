"""
Lucene skill - index exploration and validation for search data sources
"""

from typing import List

from langchain_core.tools import BaseTool

from querypilot.skills.base import Skill, SkillContext
from querypilot.skills.prompts import LUCENE_PROMPT
from querypilot.tools.search_tools import (
    GetFieldStatsTool,
    GetIndexSummaryTool,
    GetMappingTool,
    ListIndicesTool,
    SampleDataTool,
    ValidateLuceneTool,
)


class LuceneSkill(Skill):
    name = "lucene"

    def get_system_prompt(self, context: SkillContext) -> str:
        return LUCENE_PROMPT.format(submit_tool="submit_lucene_solution")

    def get_tools(self, context: SkillContext) -> List[BaseTool]:
        return [
            ListIndicesTool(services=self.services),
            GetMappingTool(services=self.services),
            GetFieldStatsTool(services=self.services),
            SampleDataTool(services=self.services),
            GetIndexSummaryTool(services=self.services),
            ValidateLuceneTool(services=self.services),
        ]
