"""Shared fixtures: on-disk index assets and scripted model/embedding fakes."""

import json

import numpy as np
import pytest

from assistant.common.errors import CompletionFailure, EmbeddingFailure
from assistant.common.llm_client import ChatReply


def write_index(directory, items, vectors, texts):
    """Write meta.json / vectors.f32 / texts.txt, computing text spans."""
    blob = b""
    meta_items = []
    for item, text in zip(items, texts):
        data = text.encode("utf-8")
        meta_items.append({**item, "text_offset": len(blob), "text_length": len(data)})
        blob += data

    matrix = np.asarray(vectors, dtype="<f4")
    (directory / "meta.json").write_text(json.dumps({
        "count": len(meta_items),
        "dim": int(matrix.shape[1]),
        "items": meta_items,
    }))
    (directory / "vectors.f32").write_bytes(matrix.tobytes())
    (directory / "texts.txt").write_bytes(blob)
    return directory


@pytest.fixture
def make_index(tmp_path):
    def _make(items, vectors, texts, name="rag"):
        directory = tmp_path / name
        directory.mkdir()
        return write_index(directory, items, vectors, texts)
    return _make


@pytest.fixture
def two_project_index(make_index):
    """alpha and beta, one chunk each; beta points along the second axis."""
    return make_index(
        items=[
            {"repo": "alpha", "file_path": "alpha/main.py", "start_line": 1, "end_line": 20},
            {"repo": "beta", "file_path": "beta/app.py", "start_line": 5, "end_line": 9},
        ],
        vectors=[[1.0, 0.0, 0.0], [0.0, 1.0, 0.0]],
        texts=["def alpha(): pass", "def beta(): pass"],
    )


class ScriptedLLM:
    """Chat client fake that replays a list of replies (str, ChatReply or exception)."""

    def __init__(self, replies=None, generate_reply="NONE"):
        self.replies = list(replies or [])
        self.generate_reply = generate_reply
        self.calls = []
        self.prompts = []
        self.is_available = True

    async def chat(self, messages, *, tools=None, temperature=None, max_tokens=None):
        self.calls.append({"messages": list(messages), "tools": tools})
        if not self.replies:
            raise CompletionFailure("no scripted reply left")
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        if isinstance(reply, str):
            reply = ChatReply(content=reply)
        return reply

    async def generate(self, prompt, *, system=None, max_tokens=None):
        self.prompts.append(prompt)
        if isinstance(self.generate_reply, Exception):
            raise self.generate_reply
        return self.generate_reply


class FakeEmbedding:
    """Returns a fixed vector, or raises EmbeddingFailure when error is set."""

    def __init__(self, vector=None, error=None):
        self.vector = vector if vector is not None else [1.0, 0.0, 0.0]
        self.error = error
        self.is_available = error is None
        self.calls = []

    async def embed_query(self, text):
        self.calls.append(text)
        if self.error:
            raise EmbeddingFailure(self.error)
        return list(self.vector)


@pytest.fixture
def scripted_llm():
    return ScriptedLLM


@pytest.fixture
def fake_embedding():
    return FakeEmbedding
