"""
Context Assembler

Turns ranked chunks into the citation-annotated context block embedded in
the system prompt.
"""

import logging
from typing import Any, Dict, List, Sequence

from .index_store import IndexStore

logger = logging.getLogger("assistant.retriever.context")

MAX_CHUNK_CHARS = 1200
TRUNCATION_MARKER = "..."
CHUNK_SEPARATOR = "\n\n---\n\n"


class ContextAssembler:
    """Formats chunks as `[Source: project | path | Lx–y]` + bounded body."""

    def __init__(self, index_store: IndexStore, max_chars: int = MAX_CHUNK_CHARS):
        self._store = index_store
        self._max_chars = max_chars

    def header(self, index: int) -> str:
        item = self._store.items[index]
        header = f"[Source: {item.project_id or 'Unknown'} | {item.source_path or 'N/A'}"
        if item.start_line is not None and item.end_line is not None:
            header += f" | L{item.start_line}–{item.end_line}"
        return header + "]"

    def body(self, index: int) -> str:
        text = self._store.get_chunk_text(index)
        if len(text) > self._max_chars:
            return text[:self._max_chars] + TRUNCATION_MARKER
        return text

    def format(self, indices: Sequence[int]) -> str:
        """Citation-annotated context; empty string when there is nothing to cite."""
        formatted = [f"{self.header(i)}\n{self.body(i)}" for i in indices]
        logger.debug("Formatted context chunks: %d", len(formatted))
        return CHUNK_SEPARATOR.join(formatted)

    def source_documents(self, indices: Sequence[int]) -> List[Dict[str, Any]]:
        """Untruncated chunk text plus raw metadata, for returning with the answer."""
        return [
            {
                "page_content": self._store.get_chunk_text(i),
                "metadata": dict(self._store.items[i].raw),
            }
            for i in indices
        ]
