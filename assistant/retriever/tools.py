"""
Tool Registry

Zero-argument lookups over the résumé dataset that the model may call during
the agentic loop. The set of tools is closed: ToolName enumerates every tool
and each one has exactly one handler.
"""

import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from ..common.errors import UnknownTool
from ..common.schemas import ResumeData

logger = logging.getLogger("assistant.retriever.tools")

EMPTY_SCHEMA: Dict[str, Any] = {"type": "object", "properties": {}, "required": []}


class ToolName(str, Enum):
    """Every tool the model can call"""
    GET_EXPERIENCE = "get_experience"
    GET_EDUCATION = "get_education"
    GET_CERTIFICATIONS = "get_certifications"
    GET_PROJECTS = "get_projects"
    GET_SKILLS = "get_skills"
    GET_CONTACT_INFO = "get_contact_info"


TOOL_DESCRIPTIONS = {
    ToolName.GET_EXPERIENCE: "Retrieve {owner}'s work experience, including companies, positions, years, descriptions, and technologies used.",
    ToolName.GET_EDUCATION: "Retrieve {owner}'s education history, including schools, degrees, dates, GPA, and relevant coursework.",
    ToolName.GET_CERTIFICATIONS: "Retrieve {owner}'s licenses and certifications, including title, organization, date issued, and credential ID.",
    ToolName.GET_PROJECTS: "Retrieve {owner}'s projects, including titles, descriptions, dates, technologies, and repository links.",
    ToolName.GET_SKILLS: "Retrieve {owner}'s technical skills organized by category (e.g., languages, frameworks, tools).",
    ToolName.GET_CONTACT_INFO: "Retrieve {owner}'s contact information and social media profiles (email, LinkedIn, GitHub, etc.).",
}


@dataclass(frozen=True)
class ToolSpec:
    """Declaration of one tool as sent to the model"""
    name: ToolName
    description: str

    def declaration(self) -> Dict[str, Any]:
        return {
            "name": self.name.value,
            "description": self.description,
            "parameters": dict(EMPTY_SCHEMA),
        }


class ToolRegistry:
    """
    Dataset-backed tools.

    The dataset is read through a getter so tools reflect whatever was
    loaded at initialization; a missing dataset yields empty sections.
    """

    def __init__(self, dataset_getter: Callable[[], Optional[ResumeData]], owner_name: str = "the developer"):
        self._dataset = dataset_getter
        self._specs = [
            ToolSpec(name=name, description=TOOL_DESCRIPTIONS[name].format(owner=owner_name))
            for name in ToolName
        ]
        self._handlers: Dict[ToolName, Callable[[], str]] = {
            ToolName.GET_EXPERIENCE: lambda: self._dump_section("experience"),
            ToolName.GET_EDUCATION: lambda: self._dump_section("education"),
            ToolName.GET_CERTIFICATIONS: lambda: self._dump_section("certifications"),
            ToolName.GET_PROJECTS: lambda: self._dump_section("projects"),
            ToolName.GET_SKILLS: lambda: self._dump_section("skills"),
            ToolName.GET_CONTACT_INFO: self._contact_info,
        }
        logger.info("Built %d tools for resume subsections", len(self._specs))

    @property
    def specs(self) -> List[ToolSpec]:
        return list(self._specs)

    def declarations(self) -> List[Dict[str, Any]]:
        """Provider-neutral tool declarations for the chat client."""
        return [spec.declaration() for spec in self._specs]

    def handler_for(self, name: str) -> Callable[[], str]:
        """
        Raises:
            UnknownTool: name is not a ToolName
        """
        try:
            return self._handlers[ToolName(name)]
        except ValueError:
            raise UnknownTool(name) from None

    def execute(self, name: str, args: Optional[Dict[str, Any]] = None) -> str:
        """
        Run a tool and return its text result.

        Failures come back as text so the model sees them as a tool result.
        Tools take no arguments; any provided are ignored.
        """
        try:
            handler = self.handler_for(name)
        except UnknownTool as e:
            logger.warning("Tool not found: %s", name)
            return str(e)

        try:
            return handler()
        except Exception as e:
            logger.error("Tool execution failed: %s: %s", name, e)
            return f"Error executing tool: {e}"

    def _dump_section(self, section: str) -> str:
        dataset = self._dataset()
        records = dataset.section(section) if dataset is not None else []
        return json.dumps(records, indent=2, ensure_ascii=False)

    def _contact_info(self) -> str:
        dataset = self._dataset()
        contact = {
            "socials": dataset.section("socials") if dataset is not None else [],
            "basicInfo": dataset.basic_info if dataset is not None else {},
        }
        return json.dumps(contact, indent=2, ensure_ascii=False)
