"""
Embedding Service

Vectorizes user questions for similarity search. The query model must be the
one the offline index was built with; OpenAI embeddings are the default and
fastembed provides an on-device alternative for locally built indexes.

Vectors are returned as produced by the model. Callers normalize them.
"""

import asyncio
import logging
from typing import List, Optional

import numpy as np

from .errors import EmbeddingFailure

logger = logging.getLogger("assistant.common.embedding_service")


class EmbeddingService:
    """
    Query embedding service.

    Modes:
    - "openai": remote OpenAI embeddings API (async)
    - "femb": fastembed, on-device
    """

    def __init__(
        self,
        mode: str = "openai",
        model: str = "text-embedding-3-large",
        openai_api_key: Optional[str] = None,
        timeout: float = 30.0,
    ):
        self._mode = (mode or "openai").lower()
        self._model = model
        self._timeout = timeout
        self._client = None

        if self._mode == "openai":
            if not openai_api_key:
                logger.info("OpenAI API key not provided, embedding service unavailable")
                return
            try:
                from openai import AsyncOpenAI

                self._client = AsyncOpenAI(api_key=openai_api_key)
            except ImportError:
                logger.warning("openai package not installed")
            except Exception as e:
                logger.warning("Failed to initialize OpenAI embeddings: %s", e)
            return

        if self._mode == "femb":
            try:
                from fastembed import TextEmbedding

                self._client = TextEmbedding(model_name=model)
                logger.info("Initialized fastembed with model=%s", model)
            except ImportError:
                logger.warning("fastembed package not installed")
            except Exception as e:
                logger.warning("Failed to initialize fastembed: %s", e)
            return

        logger.warning("Unsupported embedding mode: %s", self._mode)

    @property
    def is_available(self) -> bool:
        """Check if embedding service is available"""
        return self._client is not None

    @property
    def model(self) -> str:
        return self._model

    async def embed_query(self, text: str) -> List[float]:
        """
        Generate an embedding for a single question.

        Args:
            text: Question text

        Returns:
            Embedding vector (not normalized)

        Raises:
            EmbeddingFailure: service unavailable, empty input, or provider error
        """
        if not self.is_available:
            raise EmbeddingFailure("Embedding service is not available")
        if not text or not text.strip():
            raise EmbeddingFailure("Cannot embed empty text")

        try:
            if self._mode == "openai":
                response = await self._client.embeddings.create(
                    model=self._model,
                    input=text,
                    timeout=self._timeout,
                )
                vector = response.data[0].embedding
            else:
                # fastembed is synchronous CPU work
                vector = await asyncio.to_thread(self._embed_local, text)
        except Exception as e:
            raise EmbeddingFailure(f"Embedding request failed: {e}") from e

        # Ensure consistent return type
        if isinstance(vector, np.ndarray):
            return vector.tolist()
        return list(vector)

    def _embed_local(self, text: str):
        return next(iter(self._client.embed([text])))
