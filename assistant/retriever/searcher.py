"""
Searcher

Ranks index chunks against a query vector by linear scan, optionally
restricted to one project. Corpora are low thousands of chunks and rebuilt
offline, so there is no approximate-nearest-neighbour structure.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional

import numpy as np

from . import vector_math
from .index_store import IndexStore

logger = logging.getLogger("assistant.retriever.searcher")


@dataclass(frozen=True)
class SimilarityHit:
    """A ranked chunk: position in IndexStore.items and its score"""
    index: int
    score: float


class Searcher:
    """
    Similarity search over an IndexStore.

    An empty result for a scoped search is reported as-is; deciding whether
    to retry unscoped is the caller's job.
    """

    def __init__(self, index_store: IndexStore):
        self._store = index_store

    def rank(
        self,
        query_vector,
        scope_project_id: Optional[str] = None,
        k: int = 10,
    ) -> List[SimilarityHit]:
        """
        Rank chunks by dot product with the query.

        Args:
            query_vector: Unit-norm query embedding of length dim
            scope_project_id: If set, only chunks of this project are scored
            k: Maximum number of hits

        Returns:
            Up to k hits, score descending, ties by index ascending
        """
        if k <= 0 or not self._store.is_loaded:
            return []

        query = np.asarray(query_vector)
        candidates = [
            i for i, item in enumerate(self._store.items)
            if scope_project_id is None or item.project_id == scope_project_id
        ]
        if not candidates:
            logger.info("No chunks in scope %r", scope_project_id)
            return []

        scores = np.fromiter(
            (vector_math.dot(query, self._store.row(i)) for i in candidates),
            dtype=np.float64,
            count=len(candidates),
        )
        indices = np.asarray(candidates)

        # lexsort: last key is primary
        order = np.lexsort((indices, -scores))[:k]
        hits = [SimilarityHit(index=int(indices[j]), score=float(scores[j])) for j in order]

        logger.debug(
            "Ranked %d/%d chunks (scope=%s), returning %d",
            len(candidates), self._store.count, scope_project_id or "none", len(hits),
        )
        return hits
