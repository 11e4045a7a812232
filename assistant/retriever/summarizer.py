"""
Conversation Summarizer

Keeps a compact rolling digest of the dialogue so prompts carry enduring
context without the full history. Runs after the turn's answer is ready and
is best-effort: failures keep the previous summary.
"""

import asyncio
import logging
from typing import Dict, List, Optional

from ..common.llm_client import LLMClient
from ..common.session import Session
from .prompts import SUMMARIZER_SYSTEM_PROMPT, build_summary_prompt

logger = logging.getLogger("assistant.retriever.summarizer")


class ConversationSummarizer:
    """Compresses recent turns into the session's rolling summary."""

    def __init__(self, llm_client: LLMClient):
        self._llm = llm_client

    async def summarize(self, existing_summary: str, recent_messages: List[Dict[str, str]]) -> Optional[str]:
        """
        One completion call producing the replacement summary.

        Returns:
            The new summary, or None if the call failed or came back empty
        """
        prompt = build_summary_prompt(existing_summary, recent_messages)
        try:
            reply = await self._llm.chat([
                {"role": "system", "content": SUMMARIZER_SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ])
        except Exception as e:
            logger.warning("Summary update failed, keeping previous summary: %s", e)
            return None

        updated = (reply.content or "").strip()
        return updated or None

    async def update(self, session: Session, recent_messages: List[Dict[str, str]]) -> None:
        """Summarize and, on success, replace the session summary wholesale."""
        updated = await self.summarize(session.get_summary(), recent_messages)
        if updated:
            session.set_summary(updated)
            logger.debug("Updated summary for session %s (%d chars)", session.session_id, len(updated))

    def schedule(self, session: Session, recent_messages: List[Dict[str, str]]) -> "asyncio.Task[None]":
        """
        Start update() in the background and return its handle.

        The caller may await or discard the task; it never raises.
        """
        return asyncio.create_task(
            self.update(session, list(recent_messages)),
            name=f"summary:{session.session_id}",
        )
