"""
Index Store

Loads and holds the immutable binary index produced by the offline builder:

- meta.json   : {"count": N, "dim": D, "items": [...]} (one item per chunk)
- vectors.f32 : N*D little-endian float32 values, row-major, unit-norm rows
- texts.txt   : UTF-8 blob; item i's text is blob[text_offset:text_offset+text_length]

Assets are fetched from a local directory or an http(s) base URL. The store
is read-only once loaded and is shared across turns without copying.
"""

import json
import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

import httpx
import numpy as np

from ..common.errors import CorruptIndex

logger = logging.getLogger("assistant.retriever.index_store")


async def fetch_bytes(location: str, timeout: float = 30.0) -> bytes:
    """Read a local file or GET an http(s) URL."""
    if urlparse(location).scheme in ("http", "https"):
        async with httpx.AsyncClient(timeout=httpx.Timeout(timeout)) as client:
            response = await client.get(location)
            response.raise_for_status()
            return response.content
    return Path(location).read_bytes()


class AssetSource:
    """Resolves index asset names against a directory or base URL."""

    META = "meta.json"
    VECTORS = "vectors.f32"
    TEXTS = "texts.txt"

    def __init__(self, base: str, timeout: float = 30.0):
        self.base = base
        self.timeout = timeout

    def locate(self, name: str) -> str:
        if urlparse(self.base).scheme in ("http", "https"):
            return f"{self.base.rstrip('/')}/{name}"
        return str(Path(self.base) / name)

    async def fetch(self, name: str) -> bytes:
        return await fetch_bytes(self.locate(name), self.timeout)


@dataclass(frozen=True)
class ChunkRecord:
    """Citation metadata for one indexed chunk"""
    project_id: Optional[str]
    source_path: str
    start_line: Optional[int]
    end_line: Optional[int]
    text_offset: int
    text_length: int
    raw: Dict[str, Any]

    @classmethod
    def from_meta(cls, item: Dict[str, Any]) -> "ChunkRecord":
        return cls(
            project_id=item.get("repo") or item.get("project_name") or None,
            source_path=item.get("file_path") or "N/A",
            start_line=item.get("start_line"),
            end_line=item.get("end_line"),
            text_offset=int(item["text_offset"]),
            text_length=int(item["text_length"]),
            raw=item,
        )


@dataclass(frozen=True)
class IndexMetadata:
    """Parsed meta.json"""
    count: int
    dim: int
    items: List[ChunkRecord]


class IndexStore:
    """
    Holder of the binary index.

    load() is all-or-nothing: state is only published after every artifact
    has been fetched and validated, so a failed load leaves the store
    exactly as it was (not ready).
    """

    def __init__(self, source: AssetSource):
        self._source = source
        self._meta: Optional[IndexMetadata] = None
        self._matrix: Optional[np.ndarray] = None
        self._blob: Optional[bytes] = None
        self._load_ms: Optional[int] = None

    @property
    def is_loaded(self) -> bool:
        return self._meta is not None and self._matrix is not None and self._blob is not None

    @property
    def count(self) -> int:
        return self._meta.count if self._meta else 0

    @property
    def dim(self) -> int:
        return self._meta.dim if self._meta else 0

    @property
    def items(self) -> List[ChunkRecord]:
        return self._meta.items if self._meta else []

    @property
    def matrix(self) -> Optional[np.ndarray]:
        return self._matrix

    async def load(self) -> None:
        """
        Fetch and validate meta, vectors and texts.

        Raises:
            CorruptIndex: any fetch, parse or consistency failure
        """
        if self.is_loaded:
            logger.info("Binary index already cached, reusing")
            return

        start = time.monotonic()
        try:
            meta = self._parse_metadata(await self._source.fetch(AssetSource.META))
            matrix = self._parse_matrix(await self._source.fetch(AssetSource.VECTORS), meta)
            blob = await self._source.fetch(AssetSource.TEXTS)
            self._validate_spans(meta, blob)
        except CorruptIndex as e:
            logger.error("Failed to load binary index: %s", e)
            raise
        except Exception as e:
            logger.error("Failed to load binary index: %s", e)
            raise CorruptIndex(f"Index assets unavailable: {e}") from e

        self._meta = meta
        self._matrix = matrix
        self._blob = blob
        self._load_ms = int((time.monotonic() - start) * 1000)
        logger.info(
            "Loaded binary index: %d items, dim=%d, in %dms",
            meta.count, meta.dim, self._load_ms,
        )

    @staticmethod
    def _parse_metadata(raw: bytes) -> IndexMetadata:
        try:
            data = json.loads(raw)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise CorruptIndex(f"meta.json is not valid JSON: {e}") from e

        if not isinstance(data, dict):
            raise CorruptIndex("meta.json must be an object")

        count, dim, items = data.get("count"), data.get("dim"), data.get("items")
        if not isinstance(count, int) or not isinstance(dim, int) or count <= 0 or dim <= 0:
            raise CorruptIndex(f"Invalid meta.json: count={count!r}, dim={dim!r}")
        if not isinstance(items, list) or len(items) != count:
            got = len(items) if isinstance(items, list) else None
            raise CorruptIndex(f"Invalid meta.json: {got} items for count={count}")

        try:
            records = [ChunkRecord.from_meta(item) for item in items]
        except (KeyError, TypeError, ValueError) as e:
            raise CorruptIndex(f"Invalid item in meta.json: {e}") from e

        return IndexMetadata(count=count, dim=dim, items=records)

    @staticmethod
    def _parse_matrix(raw: bytes, meta: IndexMetadata) -> np.ndarray:
        if len(raw) % 4:
            raise CorruptIndex(f"vectors.f32 length {len(raw)} is not a multiple of 4 bytes")

        flat = np.frombuffer(raw, dtype="<f4")
        expected = meta.count * meta.dim
        if flat.size != expected:
            raise CorruptIndex(f"Vector size mismatch: got {flat.size}, expected {expected}")

        matrix = flat.reshape(meta.count, meta.dim)
        matrix.flags.writeable = False
        return matrix

    @staticmethod
    def _validate_spans(meta: IndexMetadata, blob: bytes) -> None:
        size = len(blob)
        for i, item in enumerate(meta.items):
            if item.text_offset < 0 or item.text_length < 0 or item.text_offset + item.text_length > size:
                raise CorruptIndex(
                    f"Item {i} text span [{item.text_offset}, +{item.text_length}) exceeds blob of {size} bytes"
                )

    def row(self, index: int) -> np.ndarray:
        """Read-only view of one embedding row (no copy)."""
        return self._matrix[index]

    def get_chunk_text(self, item_index: int) -> str:
        """Decoded chunk text; empty string for an out-of-range index."""
        if not self.is_loaded or not 0 <= item_index < self._meta.count:
            return ""
        item = self._meta.items[item_index]
        span = self._blob[item.text_offset:item.text_offset + item.text_length]
        return span.decode("utf-8", errors="replace")

    def list_project_ids(self) -> List[str]:
        """Distinct project ids in order of first appearance."""
        return list(dict.fromkeys(i.project_id for i in self.items if i.project_id))

    def stats(self) -> Dict[str, Any]:
        return {
            "loaded": self.is_loaded,
            "count": self.count,
            "dim": self.dim,
            "projects": len(self.list_project_ids()),
            "load_ms": self._load_ms,
        }
