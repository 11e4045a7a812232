"""
Query Orchestrator

End-to-end answer production for one user turn:

1. Resolve project scope (alias match, then model fallback)
2. Embed and normalize the question
3. Rank chunks, scoped when a project was detected
4. Zero hits -> ungrounded fallback
5. Assemble cited context, build the system prompt with summary and the
   last few turns, run the agentic loop
6. Post-process (email links, navigation marker)
7. Schedule the rolling-summary update without awaiting it

Each stage reports failure as a FallbackReason instead of raising; anything
unexpected is converted to FallbackReason.UNEXPECTED at the boundary. The
user only ever sees an answer or the static apology.
"""

import asyncio
import json
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from ..common.config import AssistantConfig, RetrieverConfig
from ..common.embedding_service import EmbeddingService
from ..common.errors import CompletionFailure, CorruptIndex, EmbeddingFailure
from ..common.llm_client import LLMClient
from ..common.schemas import ResumeData
from ..common.session import Session
from . import vector_math
from .agent_loop import AgenticLoop, LoopResult
from .context import ContextAssembler
from .index_store import AssetSource, IndexStore, fetch_bytes
from .postprocess import NavigationTarget, finalize_navigation, normalize_emails
from .prompts import APOLOGY_TEXT, build_fallback_prompt, build_system_prompt
from .scope_detector import ProjectScopeDetector, ScopeDecision
from .searcher import Searcher
from .summarizer import ConversationSummarizer
from .tools import ToolRegistry

logger = logging.getLogger("assistant.retriever.orchestrator")

_HISTORY_ROLES = ("user", "assistant")


class FallbackReason(str, Enum):
    """Why a turn was answered without grounding"""
    NOT_READY = "not_ready"
    NO_HITS = "no_hits"
    EMBEDDING_FAILED = "embedding_failed"
    COMPLETION_FAILED = "completion_failed"
    UNEXPECTED = "unexpected"


@dataclass
class StageError:
    """A grounded-path stage that could not complete"""
    reason: FallbackReason
    detail: str = ""


@dataclass
class Answer:
    """What a turn produces"""
    text: str
    source_documents: List[Dict[str, Any]] = field(default_factory=list)
    project_id: Optional[str] = None
    navigation: Optional[NavigationTarget] = None
    fallback_reason: Optional[FallbackReason] = None
    iterations: int = 0
    summary_task: Optional["asyncio.Task[None]"] = None

    @property
    def grounded(self) -> bool:
        return self.fallback_reason is None


class QueryOrchestrator:
    """
    Composes scope detection, retrieval, context assembly, the agentic loop
    and summarization.

    Call initialize() once before the first query. If the index fails to
    load the orchestrator stays usable but not ready, and every question is
    answered through the fallback path.
    """

    def __init__(
        self,
        llm_client: LLMClient,
        embedding_service: EmbeddingService,
        index_store: IndexStore,
        retriever_config: Optional[RetrieverConfig] = None,
        dataset: Optional[ResumeData] = None,
        dataset_location: Optional[str] = None,
    ):
        self._config = retriever_config or RetrieverConfig()
        self._llm = llm_client
        self._embedding = embedding_service
        self._store = index_store
        self._dataset = dataset
        self._dataset_location = dataset_location

        self._searcher = Searcher(index_store)
        self._assembler = ContextAssembler(index_store, max_chars=self._config.max_chunk_chars)
        self._detector = ProjectScopeDetector(llm_client)
        self._tools = ToolRegistry(lambda: self._dataset, owner_name=self._config.owner_name)
        self._loop = AgenticLoop(llm_client, self._tools, max_iterations=self._config.max_iterations)
        self._summarizer = ConversationSummarizer(llm_client)
        self._default_session = Session()

        self._initialized = False
        self._index_error: Optional[str] = None

    @classmethod
    def from_config(cls, config: AssistantConfig) -> "QueryOrchestrator":
        """Wire real clients and asset sources from configuration."""
        llm_client = LLMClient.from_config(config.llm)
        embedding_service = EmbeddingService(
            mode=config.embedding.mode,
            model=config.embedding.model,
            openai_api_key=config.llm.openai_api_key or None,
            timeout=config.llm.timeout,
        )
        index_store = IndexStore(AssetSource(config.index.assets_base, timeout=config.index.fetch_timeout))
        return cls(
            llm_client=llm_client,
            embedding_service=embedding_service,
            index_store=index_store,
            retriever_config=config.retriever,
            dataset_location=config.index.dataset_path,
        )

    @property
    def tools(self) -> ToolRegistry:
        return self._tools

    @property
    def detector(self) -> ProjectScopeDetector:
        return self._detector

    @property
    def dataset(self) -> Optional[ResumeData]:
        return self._dataset

    async def initialize(self) -> bool:
        """
        Load dataset and index, then build the alias table.

        Returns:
            True if the grounded path is available
        """
        if self._initialized:
            return self.is_ready()

        if self._dataset is None and self._dataset_location:
            self._dataset = await self._load_dataset(self._dataset_location)

        try:
            await self._store.load()
            self._index_error = None
        except CorruptIndex as e:
            self._index_error = str(e)
            logger.error("Retrieval unavailable, answering from tools only: %s", e)

        if self._store.is_loaded:
            self._detector.build(
                self._store.list_project_ids(),
                self._dataset,
                self._config.self_project_id,
            )

        self._initialized = True
        logger.info("Orchestrator initialized (ready=%s)", self.is_ready())
        return self.is_ready()

    async def _load_dataset(self, location: str) -> Optional[ResumeData]:
        try:
            return ResumeData.model_validate_json(await fetch_bytes(location))
        except Exception as e:
            logger.warning("Could not load resume data from %s: %s", location, e)
            return None

    def is_ready(self) -> bool:
        return self._initialized and self._store.is_loaded

    def status(self) -> Dict[str, Any]:
        return {
            "initialized": self._initialized,
            "ready": self.is_ready(),
            "index_loaded": self._store.is_loaded,
            "index": self._store.stats(),
            "index_error": self._index_error,
            "dataset_loaded": self._dataset is not None,
            "llm_available": self._llm.is_available,
            "embedding_available": self._embedding.is_available,
            "aliases": len(self._detector.aliases),
        }

    async def query(
        self,
        question: str,
        history: Optional[List[Dict[str, str]]] = None,
        session: Optional[Session] = None,
    ) -> Answer:
        """
        Answer one question. Never raises for a well-formed question.

        Args:
            question: The user's message
            history: Prior turns, oldest first ({"role", "content"} dicts)
            session: Carries the rolling summary; a process default is used if omitted
        """
        session = session or self._default_session
        history = self._clean_history(history)

        if not self.is_ready():
            return await self._fallback(question, history, StageError(FallbackReason.NOT_READY))

        start = time.monotonic()
        try:
            outcome = await self._grounded(question, history, session)
        except Exception as e:
            logger.error("RAG query failed: %s", e, exc_info=True)
            outcome = StageError(FallbackReason.UNEXPECTED, str(e))

        if isinstance(outcome, StageError):
            return await self._fallback(question, history, outcome)

        logger.info(
            "Query completed in %dms, retrieved %d chunks, agentic iterations: %d",
            int((time.monotonic() - start) * 1000), len(outcome.source_documents), outcome.iterations,
        )
        return outcome

    async def _grounded(
        self,
        question: str,
        history: List[Dict[str, str]],
        session: Session,
    ) -> Union[Answer, StageError]:
        decision: ScopeDecision = await self._detector.resolve(question)
        logger.info(
            "Retrieval mode: %s",
            f"scoped (repo: {decision.project_id})" if decision.is_scoped else "broad",
        )

        try:
            raw_vector = await self._embedding.embed_query(question)
        except EmbeddingFailure as e:
            return StageError(FallbackReason.EMBEDDING_FAILED, str(e))

        query_vector = vector_math.normalize(raw_vector)
        if query_vector.shape != (self._store.dim,):
            return StageError(
                FallbackReason.EMBEDDING_FAILED,
                f"query has {query_vector.size} dims, index has {self._store.dim}",
            )

        k = self._config.scoped_topk if decision.is_scoped else self._config.topk
        hits = self._searcher.rank(query_vector, scope_project_id=decision.project_id, k=k)
        logger.info("Raw retrieval hits: %d", len(hits))
        if not hits:
            return StageError(FallbackReason.NO_HITS, f"scope={decision.project_id}")

        indices = [h.index for h in hits]
        system_prompt = build_system_prompt(
            self._assembler.format(indices),
            owner=self._config.owner_name,
            self_project=self._config.self_project_id,
            projects_json=self._projects_json(),
        )

        recent = history[-self._config.history_turns:] if self._config.history_turns > 0 else []
        user_message = {"role": "user", "content": question}
        messages = [*recent, user_message]
        summary = session.get_summary()
        if summary:
            messages.insert(0, {"role": "system", "content": f"Conversation Summary:\n{summary}"})

        try:
            result: LoopResult = await self._loop.run(system_prompt, messages)
        except CompletionFailure as e:
            return StageError(FallbackReason.COMPLETION_FAILED, str(e))

        text, navigation = finalize_navigation(normalize_emails(result.text))

        summary_task = self._summarizer.schedule(
            session,
            [*recent, user_message, {"role": "assistant", "content": text}],
        )

        return Answer(
            text=text,
            source_documents=self._assembler.source_documents(indices),
            project_id=decision.project_id,
            navigation=navigation,
            iterations=result.iterations,
            summary_task=summary_task,
        )

    async def _fallback(
        self,
        question: str,
        history: List[Dict[str, str]],
        error: StageError,
    ) -> Answer:
        """Ungrounded answer from tools and general instructions only."""
        if error.reason is FallbackReason.NOT_READY:
            logger.warning("RAG not ready; using fallback")
        elif error.reason is FallbackReason.NO_HITS:
            logger.info("No retrieval hits (%s); using fallback", error.detail)
        elif error.reason in (FallbackReason.EMBEDDING_FAILED, FallbackReason.COMPLETION_FAILED):
            logger.warning("%s: %s; using fallback", error.reason.value, error.detail)
        else:
            logger.error("Unexpected failure in grounded path: %s; using fallback", error.detail)

        turns = self._config.fallback_history_turns
        recent = history[-turns:] if turns > 0 else []
        try:
            result = await self._loop.run(
                build_fallback_prompt(self._config.owner_name),
                [*recent, {"role": "user", "content": question}],
            )
            text, navigation = finalize_navigation(normalize_emails(result.text))
            return Answer(
                text=text,
                navigation=navigation,
                fallback_reason=error.reason,
                iterations=result.iterations,
            )
        except Exception as e:
            logger.error("Fallback query failed: %s", e)
            return Answer(text=APOLOGY_TEXT, fallback_reason=error.reason)

    def _projects_json(self) -> str:
        if self._dataset is None:
            return "[]"
        return json.dumps(self._dataset.project_mapping())

    @staticmethod
    def _clean_history(history: Optional[List[Dict[str, str]]]) -> List[Dict[str, str]]:
        """Keep only well-formed user/assistant turns, in order."""
        return [
            {"role": m["role"], "content": m["content"]}
            for m in (history or [])
            if isinstance(m, dict)
            and m.get("role") in _HISTORY_ROLES
            and isinstance(m.get("content"), str)
        ]
