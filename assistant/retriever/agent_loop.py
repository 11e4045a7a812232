"""
Agentic Loop

Bounded model -> tool calls -> tool results -> model cycle for one turn.

States: AwaitingModel -> (ToolsRequested -> ToolsExecuted -> AwaitingModel)* -> Done.
The loop stops at the first tool-free reply or after max_iterations model
calls, whichever comes first. Hitting the cap is not an error: the last
accumulated message content is returned.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List

from ..common.llm_client import LLMClient
from .tools import ToolRegistry

logger = logging.getLogger("assistant.retriever.agent_loop")

MAX_ITERATIONS = 3
NO_RESPONSE_TEXT = "Unable to generate response."


@dataclass
class LoopResult:
    """Final text of a turn plus how it was reached"""
    text: str
    iterations: int
    tool_calls: List[str] = field(default_factory=list)
    capped: bool = False


class AgenticLoop:
    """Runs the bounded tool-calling protocol against the chat client."""

    def __init__(self, llm_client: LLMClient, tools: ToolRegistry, max_iterations: int = MAX_ITERATIONS):
        self._llm = llm_client
        self._tools = tools
        self._max_iterations = max_iterations

    async def run(self, system_prompt: str, messages: List[Dict[str, str]]) -> LoopResult:
        """
        Args:
            system_prompt: Sent first on every model call
            messages: Chronological history ending with the user message

        Raises:
            CompletionFailure: a model call failed
        """
        current = list(messages)
        executed: List[str] = []
        declarations = self._tools.declarations()

        for iteration in range(1, self._max_iterations + 1):
            logger.info("Agentic loop iteration %d/%d", iteration, self._max_iterations)

            reply = await self._llm.chat(
                [{"role": "system", "content": system_prompt}, *current],
                tools=declarations,
            )

            if not reply.wants_tools:
                logger.info("Agentic loop complete (no more tool calls)")
                return LoopResult(text=reply.content or "", iterations=iteration, tool_calls=executed)

            logger.info("Model called %d tool(s)", len(reply.tool_calls))
            current.append({"role": "assistant", "content": reply.content or ""})

            # Sequential, in request order: each result directly follows the call
            for call in reply.tool_calls:
                logger.info("  -> Executing: %s", call.name)
                result = self._tools.execute(call.name, call.args)
                executed.append(call.name)
                current.append({
                    "role": "user",
                    "content": f"[Tool Result from {call.name}]:\n{result}",
                })

        logger.warning("Max iterations (%d) reached", self._max_iterations)
        last = current[-1]["content"] if current else ""
        return LoopResult(
            text=last or NO_RESPONSE_TEXT,
            iterations=self._max_iterations,
            tool_calls=executed,
            capped=True,
        )
