"""
Project Scope Detector

Decides whether a question targets one specific project so retrieval can be
narrowed to that project's chunks.

Two tiers, cheap first:
1. Alias matching: substring containment of a known alias, else token-set
   Jaccard similarity >= 0.5
2. Model fallback: one closed-form completion that must answer with an exact
   known project id or NONE (only when tier 1 finds nothing)
"""

import json
import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, List, Optional, Tuple

from ..common.errors import CompletionFailure
from ..common.schemas import ResumeData

logger = logging.getLogger("assistant.retriever.scope_detector")

JACCARD_THRESHOLD = 0.5

# Phrases that refer to the assistant's own hosting project
SELF_ALIASES = (
    "this website",
    "this project",
    "this portfolio",
    "portfolio chat",
    "ai portfolio",
    "rag portfolio",
    "portfolio assistant",
)

_SEPARATORS_RE = re.compile(r"[_-]")
_NON_ALNUM_RE = re.compile(r"[^a-z0-9\s]")
_WHITESPACE_RE = re.compile(r"\s+")
_TRAILING_YEAR_RE = re.compile(r"\s+(19|20)\d{2}\s*$")


class ScopeMethod(str, Enum):
    """How a scope decision was reached"""
    ALIAS = "alias"
    MODEL = "model"
    NONE = "none"


@dataclass
class ScopeDecision:
    """Outcome of scope resolution for one question"""
    project_id: Optional[str]
    method: ScopeMethod = ScopeMethod.NONE
    reason: str = ""

    @property
    def is_scoped(self) -> bool:
        return self.project_id is not None


def normalize_text(text: str) -> str:
    """Lowercase, turn _ and - into spaces, drop punctuation, collapse whitespace."""
    text = _SEPARATORS_RE.sub(" ", text.lower())
    text = _NON_ALNUM_RE.sub("", text)
    return _WHITESPACE_RE.sub(" ", text).strip()


def _tokens(text: str) -> set:
    return {t for t in text.split(" ") if t}


def build_aliases(
    project_ids: Iterable[str],
    dataset: Optional[ResumeData],
    self_project_id: str,
) -> Dict[str, str]:
    """
    Build the normalized-phrase -> project id table.

    Order matters: later sources overwrite earlier keys.
    """
    aliases: Dict[str, str] = {}

    for project_id in project_ids:
        normalized = normalize_text(project_id)
        aliases[normalized] = project_id
        without_year = _TRAILING_YEAR_RE.sub("", normalized).strip()
        if without_year != normalized:
            aliases[without_year] = project_id

    if dataset is not None:
        for project in dataset.projects:
            if project.title and project.repo_name:
                aliases[normalize_text(project.title)] = project.repo_name

    for phrase in SELF_ALIASES:
        aliases[phrase] = self_project_id

    aliases.pop("", None)
    return aliases


class ProjectScopeDetector:
    """
    Resolves the project a question is about, if any.

    Call build() once the index and dataset are loaded.
    """

    MODEL_PROMPT = (
        'User query: "{query}"\n\n'
        "Project-to-repo mapping: {mapping}\n\n"
        "Which repo does the user's query refer to? \n"
        'Respond with ONLY the exact repo name from the list above, or "NONE" if no repo is mentioned.\n'
        "Do not add explanation."
    )

    def __init__(self, llm_client=None):
        self._llm = llm_client
        self._aliases: Dict[str, str] = {}
        self._known_ids: List[str] = []
        self._mapping: str = "[]"

    @property
    def aliases(self) -> Dict[str, str]:
        return self._aliases

    @property
    def known_ids(self) -> List[str]:
        return self._known_ids

    def build(
        self,
        project_ids: List[str],
        dataset: Optional[ResumeData],
        self_project_id: str = "portfolio-chat",
    ) -> None:
        self._known_ids = list(project_ids)
        self._aliases = build_aliases(project_ids, dataset, self_project_id)
        self._mapping = json.dumps(dataset.project_mapping()) if dataset is not None else "[]"
        logger.info(
            "Built project aliases: %d aliases for %d repos",
            len(self._aliases), len(self._known_ids),
        )

    def match(self, question: str) -> Tuple[Optional[str], str]:
        """Alias tier. Returns (project_id, reason) or (None, "")."""
        if not self._aliases:
            return None, ""

        normalized = normalize_text(question)
        question_tokens = _tokens(normalized)

        exact_alias: Optional[str] = None
        best_id: Optional[str] = None
        best_score = 0.0
        best_alias = ""

        for alias, project_id in self._aliases.items():
            if alias in normalized:
                if exact_alias is None or len(alias) > len(exact_alias):
                    exact_alias = alias
                continue

            alias_tokens = _tokens(alias)
            union = question_tokens | alias_tokens
            if not union:
                continue
            jaccard = len(question_tokens & alias_tokens) / len(union)
            if jaccard >= JACCARD_THRESHOLD and jaccard > best_score:
                best_id, best_score, best_alias = project_id, jaccard, alias

        if exact_alias is not None:
            return self._aliases[exact_alias], f'exact match: "{exact_alias}"'
        if best_id is not None:
            return best_id, f'token overlap ({best_score:.2f}): "{best_alias}"'
        return None, ""

    def detect(self, question: str) -> Optional[str]:
        """Alias tier only."""
        project_id, reason = self.match(question)
        if project_id:
            logger.info("Detected project %r via %s", project_id, reason)
        return project_id

    async def detect_via_model(self, question: str) -> Optional[str]:
        """
        Model tier: ask for an exact known id or NONE.

        Any other reply, and any completion failure, means no project.
        """
        if not self._known_ids or self._llm is None:
            return None

        prompt = self.MODEL_PROMPT.format(query=question, mapping=self._mapping)
        try:
            response = (await self._llm.generate(prompt)).strip()
        except CompletionFailure as e:
            logger.warning("Model project detection failed: %s", e)
            return None

        if response != "NONE" and response in self._known_ids:
            logger.info("Detected project via model: %r", response)
            return response

        logger.info("Model fallback: no project detected (response: %r)", response)
        return None

    async def resolve(self, question: str) -> ScopeDecision:
        """Run both tiers and report how the scope was decided."""
        project_id, reason = self.match(question)
        if project_id:
            logger.info("Detected project %r via %s", project_id, reason)
            return ScopeDecision(project_id, ScopeMethod.ALIAS, reason)

        project_id = await self.detect_via_model(question)
        if project_id:
            return ScopeDecision(project_id, ScopeMethod.MODEL, "model fallback")

        return ScopeDecision(None, ScopeMethod.NONE, "no alias or model match")
