"""
Assistant Server

FastAPI surface over the QueryOrchestrator.

Endpoints:
- GET /health: Health check
- GET /status: Retrieval readiness and component availability
- POST /chat: Answer one question within a session

Sessions live in this process only, bounded by server.max_sessions with the
least recently used evicted first; each one's rolling summary is written
through FileSummaryStorage, so an evicted session picks its summary back up
when its id returns. Summary updates run after the response is built and are
held in pending_tasks until they finish; shutdown waits for them.
"""

import asyncio
import logging
import uuid
from collections import OrderedDict
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import List, Optional, Set

from dotenv import load_dotenv
from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, Field

from .common.config import AssistantConfig, ServerConfig, ensure_directories, load_config
from .common.session import FileSummaryStorage, Session
from .retriever.orchestrator import QueryOrchestrator

logger = logging.getLogger("assistant.server")


# Global state
config: Optional[AssistantConfig] = None
orchestrator: Optional[QueryOrchestrator] = None
summary_storage: Optional[FileSummaryStorage] = None
sessions: "OrderedDict[str, Session]" = OrderedDict()
pending_tasks: Set[asyncio.Task] = set()


def track_task(task: asyncio.Task) -> None:
    """Hold a strong reference to a background task until it completes."""
    pending_tasks.add(task)
    task.add_done_callback(pending_tasks.discard)


async def drain_pending_tasks() -> None:
    """Wait for outstanding background tasks (summary updates never raise)."""
    if not pending_tasks:
        return
    logger.info("Waiting for %d pending summary update(s)", len(pending_tasks))
    await asyncio.gather(*list(pending_tasks), return_exceptions=True)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize components on startup"""
    global config, orchestrator, summary_storage

    logger.info("Starting up...")

    config = load_config()
    ensure_directories(config)
    summary_storage = FileSummaryStorage(config.server.summaries_dir)

    orchestrator = QueryOrchestrator.from_config(config)
    ready = await orchestrator.initialize()
    if ready:
        logger.info("Retrieval ready (%s)", config.index.assets_base)
    else:
        logger.warning("Retrieval not ready, answering from tools only")

    yield

    logger.info("Shutting down...")
    await drain_pending_tasks()
    sessions.clear()


app = FastAPI(
    title="Portfolio Assistant",
    description="Grounded question answering over a developer portfolio",
    version="0.1.0",
    lifespan=lifespan,
)


# =============================================================================
# Request/Response Models
# =============================================================================

class ChatMessage(BaseModel):
    """One prior turn"""
    role: str
    content: str


class ChatRequest(BaseModel):
    """Chat request"""
    message: str
    history: List[ChatMessage] = Field(default_factory=list)
    session_id: Optional[str] = None


class ChatResponse(BaseModel):
    """Chat response"""
    text: str
    session_id: str
    navigation: Optional[str] = None
    project: Optional[str] = None
    grounded: bool = False
    sources: List[dict] = Field(default_factory=list)


def get_session(session_id: Optional[str]) -> Session:
    """
    Look up or create the session for an id (a fresh id when none is given).

    The registry is an LRU bounded by server.max_sessions.
    """
    session_id = session_id or uuid.uuid4().hex
    session = sessions.get(session_id)
    if session is None:
        session = Session(session_id=session_id, storage=summary_storage)
        sessions[session_id] = session
    sessions.move_to_end(session_id)

    limit = (config.server if config else ServerConfig()).max_sessions
    while len(sessions) > max(limit, 1):
        evicted, _ = sessions.popitem(last=False)
        logger.debug("Evicted session %s", evicted)
    return session


# =============================================================================
# Endpoints
# =============================================================================

@app.get("/health")
async def health():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "service": "portfolio-assistant",
        "initialized": orchestrator is not None,
        "ready": orchestrator.is_ready() if orchestrator else False,
        "sessions": len(sessions),
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@app.get("/status")
async def status():
    """Detailed retrieval status"""
    if not orchestrator:
        raise HTTPException(status_code=503, detail="Not initialized")
    return orchestrator.status()


@app.post("/chat", response_model=ChatResponse)
async def chat(request: ChatRequest):
    """Answer one question."""
    if not orchestrator:
        raise HTTPException(status_code=503, detail="Not initialized")
    if not request.message or not request.message.strip():
        raise HTTPException(status_code=400, detail="Invalid message: must provide non-empty string")

    session = get_session(request.session_id)
    answer = await orchestrator.query(
        request.message,
        history=[m.model_dump() for m in request.history],
        session=session,
    )
    if answer.summary_task is not None:
        track_task(answer.summary_task)

    return ChatResponse(
        text=answer.text,
        session_id=session.session_id,
        navigation=answer.navigation.value if answer.navigation else None,
        project=answer.project_id,
        grounded=answer.grounded,
        sources=[doc["metadata"] for doc in answer.source_documents],
    )


# =============================================================================
# CLI Entry Point
# =============================================================================

def run_server():
    """Run the assistant server"""
    import uvicorn

    load_dotenv()
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    server_config = load_config().server
    logger.info("Starting server on port %d", server_config.port)
    uvicorn.run(
        "assistant.server:app",
        host=server_config.host,
        port=server_config.port,
        reload=False,
    )


if __name__ == "__main__":
    run_server()
