"""
Retriever - Grounded Question Answering over the Portfolio Corpus

Key Components:
- IndexStore: Immutable binary index (metadata, embedding matrix, text blob)
- Searcher: Linear-scan similarity ranking, optionally scoped to a project
- ProjectScopeDetector: Alias matching with a model fallback
- ContextAssembler: Citation-annotated, length-bounded context
- ToolRegistry: Résumé lookups the model can call
- AgenticLoop: Bounded tool-calling cycle
- ConversationSummarizer: Rolling dialogue digest
- QueryOrchestrator: The end-to-end pipeline and its fallback

Pipeline:
1. Detect project scope
2. Embed the question and rank chunks
3. Assemble cited context
4. Run the agentic loop with tools
5. Post-process and schedule the summary update
"""

from .index_store import IndexStore, AssetSource, ChunkRecord, IndexMetadata
from .searcher import Searcher, SimilarityHit
from .scope_detector import ProjectScopeDetector, ScopeDecision, ScopeMethod
from .context import ContextAssembler
from .tools import ToolRegistry, ToolName
from .agent_loop import AgenticLoop, LoopResult
from .summarizer import ConversationSummarizer
from .postprocess import NavigationTarget, normalize_emails, extract_navigation
from .orchestrator import QueryOrchestrator, Answer, FallbackReason

__all__ = [
    "IndexStore",
    "AssetSource",
    "ChunkRecord",
    "IndexMetadata",
    "Searcher",
    "SimilarityHit",
    "ProjectScopeDetector",
    "ScopeDecision",
    "ScopeMethod",
    "ContextAssembler",
    "ToolRegistry",
    "ToolName",
    "AgenticLoop",
    "LoopResult",
    "ConversationSummarizer",
    "NavigationTarget",
    "normalize_emails",
    "extract_navigation",
    "QueryOrchestrator",
    "Answer",
    "FallbackReason",
]
