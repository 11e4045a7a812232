"""
Portfolio Assistant

Question answering over a developer's project and résumé corpus, grounded in
a prebuilt binary vector index and cited back to source files.

Philosophy:
- Retrieval is narrowed to one project when the question names it
- Every retrieved chunk carries its citation into the prompt
- The model pulls structured résumé data through a bounded tool loop
- Failures degrade to an ungrounded answer, never to an error

Usage:
    from assistant.common import load_config, Session
    from assistant.retriever import QueryOrchestrator

    orchestrator = QueryOrchestrator.from_config(load_config())
    await orchestrator.initialize()
    answer = await orchestrator.query("What did you build for BOSM?", session=Session("abc"))
"""

__version__ = "0.1.0"
