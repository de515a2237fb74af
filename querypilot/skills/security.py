"""
Security skill - the validate_sql audit
"""

from typing import List, Optional

from langchain_core.tools import BaseTool

from querypilot.skills.base import Skill, SkillContext
from querypilot.skills.prompts import SECURITY_AUDIT_PROMPT, SECURITY_PROMPT
from querypilot.tools.base import AgentServices
from querypilot.tools.sql_tools import ValidateSqlTool


class SecuritySkill(Skill):
    name = "security"

    def __init__(self, services: AgentServices, audited_sql: Optional[str] = None):
        super().__init__(services)
        self.audited_sql = audited_sql

    def get_system_prompt(self, context: SkillContext) -> str:
        if self.audited_sql:
            return f"{SECURITY_PROMPT}\n\n{SECURITY_AUDIT_PROMPT.format(sql=self.audited_sql.strip())}"
        return SECURITY_PROMPT

    def get_tools(self, context: SkillContext) -> List[BaseTool]:
        return [ValidateSqlTool(services=self.services)]
