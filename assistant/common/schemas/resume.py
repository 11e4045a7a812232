"""
Résumé Dataset Schema

The résumé/projects document is the structured source of truth behind the
tools and the project alias table. Only the fields the assistant reads are
declared; everything else passes through untouched so tools can serialize
records exactly as authored.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class ResumeRecord(BaseModel):
    """Generic résumé entry (experience, education, certification, skill, social)"""
    model_config = ConfigDict(extra="allow")


class ProjectRecord(ResumeRecord):
    """Project entry; repo_name links a project title to its index project id"""
    title: Optional[str] = None
    repo_name: Optional[str] = None


class ResumeData(BaseModel):
    """Top-level résumé document"""
    model_config = ConfigDict(extra="allow")

    basic_info: Dict[str, Any] = Field(default_factory=dict)
    experience: List[ResumeRecord] = Field(default_factory=list)
    education: List[ResumeRecord] = Field(default_factory=list)
    certifications: List[ResumeRecord] = Field(default_factory=list)
    projects: List[ProjectRecord] = Field(default_factory=list)
    skills: List[Any] = Field(default_factory=list)
    socials: List[ResumeRecord] = Field(default_factory=list)

    def section(self, name: str) -> List[Dict[str, Any]]:
        """Return a list section as plain dicts, in authored order."""
        return [
            item.model_dump(mode="json", exclude_none=True) if isinstance(item, BaseModel) else item
            for item in getattr(self, name)
        ]

    def project_mapping(self) -> List[Dict[str, Optional[str]]]:
        """Project-title to repository-id pairs, as shown to the model."""
        return [{"project": p.title, "repo": p.repo_name} for p in self.projects]
