"""
Skill composition - system prompt plus tool registry for one run
"""

from dataclasses import dataclass, field
from datetime import date
from typing import List, Optional, Sequence

from loguru import logger

from querypilot.skills.base import Skill, SkillContext
from querypilot.skills.prompts import build_system_prompt
from querypilot.tools.registry import ToolRegistry


@dataclass
class ComposedSkills:
    system_prompt: str
    registry: ToolRegistry
    skill_names: List[str] = field(default_factory=list)


def compose_skills(
    skills: Sequence[Skill],
    context: SkillContext,
    role_title: str = "a data assistant",
    today: Optional[date] = None,
) -> ComposedSkills:
    """
    Compose skills into one system prompt and one tool registry.

    Fragments keep the order of `skills`; tools are flattened into a registry
    where the first skill providing a tool name wins.
    """
    fragments = [skill.get_system_prompt(context) for skill in skills]
    registry = ToolRegistry()
    for skill in skills:
        for tool in skill.get_tools(context):
            registry.register(tool)

    system_prompt = build_system_prompt(
        role_title,
        context.dialect,
        context.data_source_id,
        fragments,
        today=today,
    )
    names = [skill.name for skill in skills]
    logger.debug(f"Composed skills {names} -> tools {registry.names()}")
    return ComposedSkills(system_prompt=system_prompt, registry=registry, skill_names=names)
