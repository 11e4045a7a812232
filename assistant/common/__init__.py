"""
Portfolio Assistant Common Module

Shared infrastructure for the retriever: configuration, model clients,
errors, dataset schemas and session state.
"""

from .config import AssistantConfig, load_config
from .embedding_service import EmbeddingService
from .errors import (
    AssistantError,
    CorruptIndex,
    EmbeddingFailure,
    CompletionFailure,
    UnknownTool,
    StorageUnavailable,
)
from .llm_client import LLMClient, ChatReply, ToolCall
from .session import Session, InMemorySummaryStorage, FileSummaryStorage

__all__ = [
    "AssistantConfig",
    "load_config",
    "EmbeddingService",
    "AssistantError",
    "CorruptIndex",
    "EmbeddingFailure",
    "CompletionFailure",
    "UnknownTool",
    "StorageUnavailable",
    "LLMClient",
    "ChatReply",
    "ToolCall",
    "Session",
    "InMemorySummaryStorage",
    "FileSummaryStorage",
]
