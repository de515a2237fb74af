"""
Core assistant skill - submission, clarification and time tools
"""

from typing import List

from langchain_core.tools import BaseTool

from querypilot.config.settings import DataSourceType
from querypilot.skills.base import Skill, SkillContext
from querypilot.skills.prompts import CORE_ASSISTANT_PROMPT, SQL_RISK_RULES
from querypilot.tools.common_tools import ClarifyIntentTool, GetCurrentTimeTool
from querypilot.tools.search_tools import SubmitLuceneSolutionTool
from querypilot.tools.sql_tools import SubmitSqlSolutionTool


def is_search_dialect(dialect: str) -> bool:
    return dialect == DataSourceType.ELASTICSEARCH.value


class CoreAssistantSkill(Skill):
    name = "core_assistant"

    def get_system_prompt(self, context: SkillContext) -> str:
        if is_search_dialect(context.dialect):
            return CORE_ASSISTANT_PROMPT.format(
                language="Lucene",
                validate_tool="validate_lucene",
                submit_tool="submit_lucene_solution",
            )
        prompt = CORE_ASSISTANT_PROMPT.format(
            language="SQL",
            validate_tool="validate_sql",
            submit_tool="submit_sql_solution",
        )
        return f"{prompt}\n\n{SQL_RISK_RULES}"

    def get_tools(self, context: SkillContext) -> List[BaseTool]:
        submit = SubmitLuceneSolutionTool() if is_search_dialect(context.dialect) else SubmitSqlSolutionTool()
        return [submit, ClarifyIntentTool(), GetCurrentTimeTool()]
