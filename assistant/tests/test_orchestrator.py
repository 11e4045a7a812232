"""End-to-end scenarios for QueryOrchestrator with scripted model and embeddings."""

import asyncio

import pytest
from assistant.common.config import RetrieverConfig
from assistant.common.errors import CompletionFailure
from assistant.common.llm_client import ChatReply, ToolCall
from assistant.common.schemas import ResumeData
from assistant.common.session import Session
from assistant.retriever.index_store import AssetSource, IndexStore
from assistant.retriever.orchestrator import FallbackReason, QueryOrchestrator
from assistant.retriever.postprocess import NavigationTarget
from assistant.retriever.prompts import APOLOGY_TEXT

DATASET = ResumeData(
    basic_info={"name": "Ada"},
    education=[{"school": "State University"}],
    projects=[
        {"title": "Alpha Parser", "repo_name": "alpha"},
        {"title": "Gamma Engine", "repo_name": "gamma"},
    ],
)

# closer to beta than to alpha
QUERY_VECTOR = [0.1, 1.0, 0.0]


async def _orchestrator(directory, llm, embedding, config=None):
    orchestrator = QueryOrchestrator(
        llm_client=llm,
        embedding_service=embedding,
        index_store=IndexStore(AssetSource(str(directory))),
        retriever_config=config or RetrieverConfig(owner_name="Ada"),
        dataset=DATASET,
    )
    await orchestrator.initialize()
    return orchestrator


class TestInitialize:
    @pytest.mark.asyncio
    async def test_ready_with_valid_index(self, two_project_index, scripted_llm, fake_embedding):
        orchestrator = await _orchestrator(two_project_index, scripted_llm(), fake_embedding())

        assert orchestrator.is_ready()
        status = orchestrator.status()
        assert status["index"]["count"] == 2
        assert status["dataset_loaded"]
        assert orchestrator.detector.aliases["alpha parser"] == "alpha"

    @pytest.mark.asyncio
    async def test_corrupt_index_not_ready(self, tmp_path, scripted_llm, fake_embedding):
        orchestrator = await _orchestrator(tmp_path / "missing", scripted_llm(), fake_embedding())

        assert not orchestrator.is_ready()
        assert orchestrator.status()["index_error"]

    @pytest.mark.asyncio
    async def test_dataset_loaded_from_location(self, two_project_index, tmp_path, scripted_llm, fake_embedding):
        dataset_file = tmp_path / "resume.json"
        dataset_file.write_text(DATASET.model_dump_json())
        orchestrator = QueryOrchestrator(
            llm_client=scripted_llm(),
            embedding_service=fake_embedding(),
            index_store=IndexStore(AssetSource(str(two_project_index))),
            dataset_location=str(dataset_file),
        )

        await orchestrator.initialize()

        assert orchestrator.dataset.projects[1].repo_name == "gamma"

    @pytest.mark.asyncio
    async def test_unreadable_dataset_tolerated(self, two_project_index, tmp_path, scripted_llm, fake_embedding):
        orchestrator = QueryOrchestrator(
            llm_client=scripted_llm(),
            embedding_service=fake_embedding(),
            index_store=IndexStore(AssetSource(str(two_project_index))),
            dataset_location=str(tmp_path / "nope.json"),
        )

        assert await orchestrator.initialize()
        assert orchestrator.dataset is None


class TestGroundedPath:
    @pytest.mark.asyncio
    async def test_scoped_question_cites_only_that_project(self, two_project_index, scripted_llm, fake_embedding):
        llm = scripted_llm(["Alpha is a parser.", "- asked about alpha"])
        orchestrator = await _orchestrator(two_project_index, llm, fake_embedding(QUERY_VECTOR))
        session = Session("s1")

        answer = await orchestrator.query("Tell me about alpha", session=session)
        await answer.summary_task

        assert answer.grounded
        assert answer.text == "Alpha is a parser."
        assert answer.project_id == "alpha"
        assert [d["metadata"]["repo"] for d in answer.source_documents] == ["alpha"]
        system_prompt = llm.calls[0]["messages"][0]["content"]
        assert "[Source: alpha | alpha/main.py | L1–20]" in system_prompt
        assert "[Source: beta" not in system_prompt
        assert session.get_summary() == "- asked about alpha"

    @pytest.mark.asyncio
    async def test_broad_question_ranks_everything(self, two_project_index, scripted_llm, fake_embedding):
        llm = scripted_llm(["Both.", "- summary"], generate_reply="NONE")
        orchestrator = await _orchestrator(two_project_index, llm, fake_embedding(QUERY_VECTOR))

        answer = await orchestrator.query("What languages do you use?")
        await answer.summary_task

        assert answer.project_id is None
        assert [d["metadata"]["repo"] for d in answer.source_documents] == ["beta", "alpha"]
        assert len(llm.prompts) == 1

    @pytest.mark.asyncio
    async def test_model_detected_scope(self, two_project_index, scripted_llm, fake_embedding):
        llm = scripted_llm(["Beta answer.", "- summary"], generate_reply="beta")
        orchestrator = await _orchestrator(two_project_index, llm, fake_embedding([1.0, 0.0, 0.0]))

        answer = await orchestrator.query("What about the web service?")
        await answer.summary_task

        assert answer.project_id == "beta"
        assert [d["metadata"]["repo"] for d in answer.source_documents] == ["beta"]

    @pytest.mark.asyncio
    async def test_summary_and_recent_history_in_messages(self, two_project_index, scripted_llm, fake_embedding):
        llm = scripted_llm(["ok", "- summary"])
        orchestrator = await _orchestrator(two_project_index, llm, fake_embedding())
        session = Session("s2")
        session.set_summary("- prefers short answers")
        history = []
        for i in range(5):
            history.append({"role": "user", "content": f"q{i}"})
            history.append({"role": "assistant", "content": f"a{i}"})
        history.append({"role": "tool", "content": "ignored"})

        answer = await orchestrator.query("Tell me about alpha", history=history, session=session)
        await answer.summary_task

        messages = llm.calls[0]["messages"]
        assert messages[1] == {"role": "system", "content": "Conversation Summary:\n- prefers short answers"}
        assert [m["content"] for m in messages[2:]] == [
            "q2", "a2", "q3", "a3", "q4", "a4", "Tell me about alpha",
        ]

    @pytest.mark.asyncio
    async def test_tool_use_and_post_processing(self, two_project_index, scripted_llm, fake_embedding):
        llm = scripted_llm([
            ChatReply(content="", tool_calls=[ToolCall(name="get_education")]),
            "<<ACTION:SCROLL_EDUCATION>> I studied at State University, mail ada@example.com",
            "- summary",
        ])
        orchestrator = await _orchestrator(two_project_index, llm, fake_embedding())

        answer = await orchestrator.query("Tell me about alpha")
        await answer.summary_task

        assert answer.iterations == 2
        assert answer.navigation is NavigationTarget.EDUCATION
        assert answer.text == (
            "I studied at State University, mail [ada@example.com](mailto:ada@example.com) "
            "<<ACTION:SCROLL_EDUCATION>>"
        )

    @pytest.mark.asyncio
    async def test_summary_failure_does_not_affect_answer(self, two_project_index, scripted_llm, fake_embedding):
        llm = scripted_llm(["answer", CompletionFailure("summary down")])
        orchestrator = await _orchestrator(two_project_index, llm, fake_embedding())
        session = Session("s3")
        session.set_summary("previous")

        answer = await orchestrator.query("Tell me about alpha", session=session)
        await answer.summary_task

        assert answer.text == "answer"
        assert session.get_summary() == "previous"

    @pytest.mark.asyncio
    async def test_answer_returned_before_summary_finishes(self, two_project_index, scripted_llm, fake_embedding):
        class SlowSummaryLLM(scripted_llm):
            def __init__(self, replies):
                super().__init__(replies)
                self.release = asyncio.Event()

            async def chat(self, messages, *, tools=None, temperature=None, max_tokens=None):
                # the summarizer is the only caller without tools
                if tools is None:
                    await self.release.wait()
                return await super().chat(messages, tools=tools, temperature=temperature, max_tokens=max_tokens)

        llm = SlowSummaryLLM(["Alpha is a parser.", "- asked about alpha"])
        orchestrator = await _orchestrator(two_project_index, llm, fake_embedding(QUERY_VECTOR))
        session = Session("s4")

        answer = await asyncio.wait_for(orchestrator.query("Tell me about alpha", session=session), timeout=5)

        assert answer.text == "Alpha is a parser."
        assert answer.summary_task.done() is False
        assert session.get_summary() == ""

        llm.release.set()
        await answer.summary_task

        assert session.get_summary() == "- asked about alpha"


class TestFallbackPath:
    @pytest.mark.asyncio
    async def test_zero_hit_scope_falls_back(self, two_project_index, scripted_llm, fake_embedding):
        llm = scripted_llm(["Gamma is a game engine."])
        orchestrator = await _orchestrator(two_project_index, llm, fake_embedding())

        answer = await orchestrator.query("What is Gamma Engine?")

        assert answer.fallback_reason is FallbackReason.NO_HITS
        assert not answer.grounded
        assert answer.text == "Gamma is a game engine."
        assert answer.source_documents == []
        assert answer.summary_task is None
        assert "Use the available tools" in llm.calls[0]["messages"][0]["content"]

    @pytest.mark.asyncio
    async def test_not_ready_falls_back(self, tmp_path, scripted_llm, fake_embedding):
        llm = scripted_llm(["From tools only."])
        embedding = fake_embedding()
        orchestrator = await _orchestrator(tmp_path / "missing", llm, embedding)

        answer = await orchestrator.query("Where did you study?")

        assert answer.fallback_reason is FallbackReason.NOT_READY
        assert answer.text == "From tools only."
        assert embedding.calls == []

    @pytest.mark.asyncio
    async def test_embedding_failure_falls_back(self, two_project_index, scripted_llm, fake_embedding):
        llm = scripted_llm(["fallback"])
        orchestrator = await _orchestrator(two_project_index, llm, fake_embedding(error="quota"))

        answer = await orchestrator.query("Tell me about alpha")

        assert answer.fallback_reason is FallbackReason.EMBEDDING_FAILED
        assert answer.text == "fallback"

    @pytest.mark.asyncio
    async def test_dimension_mismatch_falls_back(self, two_project_index, scripted_llm, fake_embedding):
        orchestrator = await _orchestrator(two_project_index, scripted_llm(["fallback"]), fake_embedding([1.0, 0.0]))
        answer = await orchestrator.query("Tell me about alpha")
        assert answer.fallback_reason is FallbackReason.EMBEDDING_FAILED

    @pytest.mark.asyncio
    async def test_fallback_uses_last_four_turns(self, tmp_path, scripted_llm, fake_embedding):
        llm = scripted_llm(["ok"])
        orchestrator = await _orchestrator(tmp_path / "missing", llm, fake_embedding())
        history = [{"role": "user" if i % 2 == 0 else "assistant", "content": f"m{i}"} for i in range(8)]

        await orchestrator.query("latest", history=history)

        contents = [m["content"] for m in llm.calls[0]["messages"][1:]]
        assert contents == ["m4", "m5", "m6", "m7", "latest"]

    @pytest.mark.asyncio
    async def test_total_failure_returns_apology(self, two_project_index, scripted_llm, fake_embedding):
        llm = scripted_llm([CompletionFailure("down"), CompletionFailure("still down")])
        orchestrator = await _orchestrator(two_project_index, llm, fake_embedding())

        answer = await orchestrator.query("Tell me about alpha")

        assert answer.text == APOLOGY_TEXT
        assert answer.fallback_reason is FallbackReason.COMPLETION_FAILED

    @pytest.mark.asyncio
    async def test_unexpected_error_contained(self, two_project_index, scripted_llm, fake_embedding):
        class ExplodingEmbedding:
            is_available = True

            async def embed_query(self, text):
                raise KeyError("surprise")

        llm = scripted_llm(["recovered"])
        orchestrator = await _orchestrator(two_project_index, llm, ExplodingEmbedding())

        answer = await orchestrator.query("Tell me about alpha")

        assert answer.fallback_reason is FallbackReason.UNEXPECTED
        assert answer.text == "recovered"
