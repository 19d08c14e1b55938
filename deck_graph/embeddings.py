"""
deck_graph.embeddings — caller-facing embedding engine.

Usage:
    engine = EmbeddingEngine()
    vec = await engine.embed("How we rebuilt our CI pipeline")
    area_vec = await engine.compute_area_embedding(["python", "compilers"])
    result = await engine.classify(text, areas)
    engine.destroy()

The engine lives on an asyncio event loop. The model runs in an
EmbeddingWorker thread; replies are handed back to the loop with
``call_soon_threadsafe`` and matched to callers by request id.
"""

import asyncio
import itertools
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

import numpy as np

from . import config
from .exceptions import EmbeddingRequestFailure, EngineDestroyed, ModelLoadFailure
from .vectors import as_embedding, cosine_similarity, has_embedding, mean_vector
from .worker import (EmbeddingWorker, EmbedError, EmbedRequest, EmbedResult,
                     ModelLoader, Reply, WorkerFailed, WorkerReady, WorkerState)

logger = logging.getLogger(__name__)

WORKER_JOIN_TIMEOUT = 0.5


@dataclass
class AreaMatch:
    area: Any
    similarity: float


@dataclass
class Classification:
    embedding: np.ndarray
    matches: List[AreaMatch] = field(default_factory=list)
    unassigned: bool = True


class EmbeddingEngine:
    def __init__(self, loader: Optional[ModelLoader] = None):
        self._loader = loader
        self._worker: Optional[EmbeddingWorker] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._init_future: Optional[asyncio.Future] = None
        self._pending: Dict[int, asyncio.Future] = {}
        self._ids = itertools.count()
        self._failed = False

    # ── State ──────────────────────────────────────────────

    @property
    def state(self) -> WorkerState:
        if self._worker is None:
            return WorkerState.FAILED if self._failed else WorkerState.UNLOADED
        return self._worker.state

    @property
    def ready(self) -> bool:
        return self._worker is not None and self._worker.state is WorkerState.READY

    @property
    def pending_requests(self) -> int:
        return len(self._pending)

    # ── Lifecycle ──────────────────────────────────────────

    async def init(self):
        """
        Load the model. Idempotent: concurrent callers share one load.
        Raises ModelLoadFailure if the worker cannot load the model.
        """
        if self.ready:
            return
        if self._init_future is None:
            self._loop = asyncio.get_running_loop()
            self._init_future = self._loop.create_future()
            self._failed = False
            logger.info("Starting embedding worker...")
            worker = EmbeddingWorker(
                lambda reply: self._deliver(worker, reply), loader=self._loader)
            self._worker = worker
            worker.start()
        await asyncio.shield(self._init_future)

    def destroy(self):
        """Terminate the worker and reject everything still in flight."""
        worker, self._worker = self._worker, None
        if worker is not None:
            worker.terminate()
            if not worker.join(WORKER_JOIN_TIMEOUT):
                logger.warning("Embedding worker still busy after terminate; "
                               "it will exit when its current call returns")
            logger.info("Embedding worker terminated")

        pending, self._pending = self._pending, {}
        for request_id, future in pending.items():
            if not future.done():
                future.set_exception(
                    EngineDestroyed("Engine destroyed", request_id=request_id))

        init_future, self._init_future = self._init_future, None
        if init_future is not None and not init_future.done():
            init_future.set_exception(
                ModelLoadFailure("Engine destroyed while loading"))
        self._failed = False

    async def __aenter__(self):
        await self.init()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        self.destroy()

    # ── Reply handling ─────────────────────────────────────

    def _deliver(self, worker: EmbeddingWorker, reply: Reply):
        loop = self._loop
        if loop is None or loop.is_closed():
            return
        loop.call_soon_threadsafe(self._on_reply, worker, reply)

    def _on_reply(self, worker: EmbeddingWorker, reply: Reply):
        if worker is not self._worker:
            return   # stale worker from before destroy()

        if isinstance(reply, WorkerReady):
            logger.info("Embedding model ready")
            if self._init_future is not None and not self._init_future.done():
                self._init_future.set_result(None)
            return

        if isinstance(reply, WorkerFailed):
            logger.error("Embedding model failed to load: %s", reply.error)
            init_future = self._init_future
            self._worker = None
            self._init_future = None
            self._failed = True
            if init_future is not None and not init_future.done():
                init_future.set_exception(ModelLoadFailure(reply.error))
            return

        future = self._pending.pop(reply.id, None)
        if future is None or future.done():
            return
        if isinstance(reply, EmbedResult):
            future.set_result(as_embedding(reply.embedding))
        elif isinstance(reply, EmbedError):
            future.set_exception(
                EmbeddingRequestFailure(reply.error, request_id=reply.id))

    # ── Embedding ──────────────────────────────────────────

    async def embed(self, text: str) -> np.ndarray:
        """Embed a single text. Returns a read-only float32 vector."""
        await self.init()
        worker = self._worker
        if worker is None:
            raise EngineDestroyed("Engine destroyed")
        request_id = next(self._ids)
        future = self._loop.create_future()
        self._pending[request_id] = future
        worker.post(EmbedRequest(request_id, text))
        return await future

    async def embed_batch(self, texts: Sequence[str]) -> List[np.ndarray]:
        """Embed all texts concurrently; results keep the input order."""
        return list(await asyncio.gather(*(self.embed(t) for t in texts)))

    async def compute_area_embedding(self, seed_keywords: Sequence[str]) -> Optional[np.ndarray]:
        """Centroid of the seed keyword embeddings, or None with no keywords."""
        if not seed_keywords:
            return None
        vectors = await self.embed_batch(list(seed_keywords))
        return mean_vector(vectors)

    async def classify(self, text: str, areas: Sequence[Any],
                       threshold: float = config.CLASSIFY_THRESHOLD) -> Classification:
        """
        Score ``text`` against every area that has an embedding.

        Args:
            text:      content to classify
            areas:     objects with an ``embedding`` attribute (or mapping key)
            threshold: minimum similarity for a match

        Returns:
            Classification with up to MAX_MATCHES matches, best first.
        """
        embedding = await self.embed(text)

        scored = []
        for area in areas:
            area_vec = _area_embedding(area)
            if not has_embedding(area_vec):
                continue
            scored.append(AreaMatch(area, cosine_similarity(embedding, area_vec)))
        scored.sort(key=lambda m: m.similarity, reverse=True)

        matches = [m for m in scored if m.similarity >= threshold][:config.MAX_MATCHES]
        return Classification(embedding=embedding, matches=matches,
                              unassigned=len(matches) == 0)


def _area_embedding(area):
    if isinstance(area, dict):
        return area.get("embedding")
    return getattr(area, "embedding", None)
