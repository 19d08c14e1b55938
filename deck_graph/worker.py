"""
deck_graph.worker — the embedding worker boundary.

The worker owns the loaded text-embedding model on a dedicated thread and
talks to the rest of the process only through messages:

    inbox   <- EmbedRequest(id, text)
    replies -> WorkerReady | WorkerFailed | EmbedResult | EmbedError

Messages are frozen dataclasses holding plain values (str, tuple of floats),
so nothing mutable is shared between the worker and its owner.

State machine:  UNLOADED -> LOADING -> READY, LOADING -> FAILED.
"""

import logging
import queue
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, Sequence, Tuple, Union

from . import config

logger = logging.getLogger(__name__)

Encoder = Callable[[str], Sequence[float]]
ModelLoader = Callable[[], Encoder]


class WorkerState(str, Enum):
    UNLOADED = "unloaded"
    LOADING = "loading"
    READY = "ready"
    FAILED = "failed"


# ─────────────────────────────────────────────────────────────
# Messages
# ─────────────────────────────────────────────────────────────
@dataclass(frozen=True)
class EmbedRequest:
    id: int
    text: str


@dataclass(frozen=True)
class WorkerReady:
    pass


@dataclass(frozen=True)
class WorkerFailed:
    error: str


@dataclass(frozen=True)
class EmbedResult:
    id: int
    embedding: Tuple[float, ...]


@dataclass(frozen=True)
class EmbedError:
    id: int
    error: str


Reply = Union[WorkerReady, WorkerFailed, EmbedResult, EmbedError]

_STOP = object()


# ─────────────────────────────────────────────────────────────
# Default model
# ─────────────────────────────────────────────────────────────
def load_sentence_transformer(model_name: str = config.MODEL_NAME) -> Encoder:
    """Load a sentence-transformers model and return a single-text encoder."""
    from sentence_transformers import SentenceTransformer

    logger.info("Loading embedding model %s", model_name)
    model = SentenceTransformer(model_name)

    def encode(text: str):
        # mean pooling is built into the model; normalize to unit length
        return model.encode([text], normalize_embeddings=True)[0]

    return encode


# ─────────────────────────────────────────────────────────────
# Worker
# ─────────────────────────────────────────────────────────────
class EmbeddingWorker:
    """
    One model, one thread. ``on_reply`` is called from the worker thread
    for every reply; the owner is responsible for marshalling it back to
    its own thread.
    """

    def __init__(self, on_reply: Callable[[Reply], None],
                 loader: Optional[ModelLoader] = None,
                 name: str = "deck-embeddings"):
        self._on_reply = on_reply
        self._loader = loader or load_sentence_transformer
        self._inbox: "queue.Queue" = queue.Queue()
        self._terminated = threading.Event()
        self._state = WorkerState.UNLOADED
        self._thread = threading.Thread(target=self._run, name=name, daemon=True)

    @property
    def state(self) -> WorkerState:
        return self._state

    @property
    def terminated(self) -> bool:
        return self._terminated.is_set()

    def start(self):
        """Begin loading the model. Loading happens once per worker."""
        if self._state is not WorkerState.UNLOADED:
            return
        self._state = WorkerState.LOADING
        self._thread.start()

    def post(self, request: EmbedRequest):
        """Queue a request. Requests posted before READY wait for the load."""
        self._inbox.put(request)

    def terminate(self):
        """Stop the worker. No reply is delivered after this call."""
        self._terminated.set()
        self._inbox.put(_STOP)

    def join(self, timeout: Optional[float] = None) -> bool:
        """Wait for the thread to exit. Returns False if it is still alive."""
        if self._thread.ident is None:
            return True
        self._thread.join(timeout)
        return not self._thread.is_alive()

    def _emit(self, reply: Reply):
        if not self._terminated.is_set():
            self._on_reply(reply)

    def _fail_queued(self, reason: str):
        while True:
            try:
                msg = self._inbox.get_nowait()
            except queue.Empty:
                return
            if msg is _STOP:
                return
            self._emit(EmbedError(msg.id, reason))

    def _run(self):
        try:
            encode = self._loader()
        except Exception as exc:
            logger.error("Embedding model failed to load: %s", exc)
            self._state = WorkerState.FAILED
            self._emit(WorkerFailed(str(exc)))
            self._fail_queued(f"Model not loaded: {exc}")
            return

        self._state = WorkerState.READY
        logger.info("Embedding model ready")
        self._emit(WorkerReady())

        while True:
            msg = self._inbox.get()
            if msg is _STOP:
                break
            try:
                vec = encode(msg.text)
                payload = tuple(float(x) for x in vec)
            except Exception as exc:
                logger.warning("Embed request %s failed: %s", msg.id, exc)
                self._emit(EmbedError(msg.id, str(exc)))
            else:
                self._emit(EmbedResult(msg.id, payload))

        self._state = WorkerState.UNLOADED
