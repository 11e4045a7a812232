"""
Portfolio Assistant Schemas

Dataset models consumed by the tool registry and the project alias table.
"""

from .resume import ResumeData, ResumeRecord, ProjectRecord

__all__ = [
    "ResumeData",
    "ResumeRecord",
    "ProjectRecord",
]
