"""
deck-graph API — FastAPI application.

Architecture: one EmbeddingEngine per process (model in a worker thread),
plus a GraphManager holding one GraphView per graph name.

Endpoints:
  GET    /health

  POST   /v1/embed                     — embed one text
  POST   /v1/embed/batch               — embed many texts
  POST   /v1/areas/embedding           — centroid from seed keywords
  POST   /v1/classify                  — score a text against areas

  GET    /v1/graphs                    — list graph names
  PUT    /v1/graphs/{name}             — replace nodes/areas/assignments
  GET    /v1/graphs/{name}             — current layout
  DELETE /v1/graphs/{name}             — drop a graph
  POST   /v1/graphs/{name}/tick        — advance the simulation
  POST   /v1/graphs/{name}/viewport    — resize the render surface
  POST   /v1/graphs/{name}/show        — reheat and resume
  POST   /v1/graphs/{name}/hide        — stop ticking
  POST   /v1/graphs/{name}/pointer     — hover at screen coordinates
  POST   /v1/graphs/{name}/click       — click at screen coordinates
  GET    /v1/graphs/{name}/frame.png   — current frame

Set ``app.state.embedding_loader`` before startup to swap the model.
"""

import logging
from contextlib import asynccontextmanager
import threading
from typing import Optional, Tuple

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse, Response

import deck_graph
from deck_graph import (DimensionMismatch, EmbeddingEngine, EmbeddingRequestFailure,
                        GraphView, ModelLoadFailure, export_graph)
from deck_graph import config

from .graph_manager import GraphManager
from .models import (
    AreaEmbeddingRequest, AreaEmbeddingResponse, AreaMatchOut, ClassifyRequest,
    ClassifyResponse, EmbedBatchRequest, EmbedBatchResponse, EmbedRequest,
    EmbedResponse, GraphOut, HealthResponse, PointerRequest, PointerResponse,
    TickRequest, UpdateGraphRequest, ViewportRequest,
)

# ─────────────────────────────────────────────
# Logging
# ─────────────────────────────────────────────
logging.basicConfig(level=config.LOG_LEVEL, format="%(asctime)s %(levelname)s %(message)s")
logger = logging.getLogger("deck-api")

# ─────────────────────────────────────────────
# App lifecycle
# ─────────────────────────────────────────────
engine: Optional[EmbeddingEngine] = None
manager: Optional[GraphManager] = None

@asynccontextmanager
async def lifespan(app: FastAPI):
    global engine, manager
    logger.info("Starting deck-graph API...")
    engine = EmbeddingEngine(loader=getattr(app.state, "embedding_loader", None))
    manager = GraphManager()
    yield
    logger.info("Shutting down — releasing embedding worker...")
    engine.destroy()
    manager.destroy_all()

app = FastAPI(
    title="deck-graph API",
    description="Semantic spatial graph for bookmarks: embeddings, area classification, layout.",
    version=deck_graph.__version__,
    lifespan=lifespan,
)

# ─────────────────────────────────────────────
# Error mapping
# ─────────────────────────────────────────────
@app.exception_handler(ModelLoadFailure)
async def model_load_failure(request: Request, exc: ModelLoadFailure):
    return JSONResponse(status_code=503, content={"detail": str(exc)})


@app.exception_handler(EmbeddingRequestFailure)
async def embedding_request_failure(request: Request, exc: EmbeddingRequestFailure):
    return JSONResponse(status_code=502, content={"detail": str(exc)})


@app.exception_handler(DimensionMismatch)
async def dimension_mismatch(request: Request, exc: DimensionMismatch):
    return JSONResponse(status_code=422, content={"detail": str(exc)})

# ─────────────────────────────────────────────
# Helpers
# ─────────────────────────────────────────────
def _view(name: str) -> Tuple[GraphView, threading.Lock]:
    try:
        return manager.get_with_lock(name, create=False)
    except KeyError:
        raise HTTPException(404, f"Graph '{name}' not found")
    except ValueError as e:
        raise HTTPException(400, str(e))


def _graph_out(name: str, view: GraphView) -> GraphOut:
    data = export_graph(view)
    return GraphOut(name=name, running=view.running, **data)


def _pointer_out(view: GraphView, node) -> PointerResponse:
    if node is None:
        return PointerResponse(cursor=view.renderer.cursor)
    payload = node.payload if isinstance(node.payload, dict) else None
    if payload is not None:
        payload = {k: v for k, v in payload.items() if k != "embedding"}
    return PointerResponse(content_id=node.id, cursor=view.renderer.cursor, payload=payload)

# ─────────────────────────────────────────────
# Routes — health
# ─────────────────────────────────────────────
@app.get("/health", response_model=HealthResponse, tags=["meta"])
def health():
    return HealthResponse(
        status="ok",
        version=deck_graph.__version__,
        engine_state=engine.state.value,
        graphs_loaded=len(manager.list_graphs()),
    )

# ─────────────────────────────────────────────
# Routes — embeddings
# ─────────────────────────────────────────────
@app.post("/v1/embed", response_model=EmbedResponse, tags=["embeddings"])
async def embed(req: EmbedRequest):
    vec = await engine.embed(req.text)
    return EmbedResponse(embedding=vec.tolist(), dim=len(vec))


@app.post("/v1/embed/batch", response_model=EmbedBatchResponse, tags=["embeddings"])
async def embed_batch(req: EmbedBatchRequest):
    vecs = await engine.embed_batch(req.texts)
    return EmbedBatchResponse(embeddings=[v.tolist() for v in vecs], count=len(vecs))


@app.post("/v1/areas/embedding", response_model=AreaEmbeddingResponse, tags=["embeddings"])
async def area_embedding(req: AreaEmbeddingRequest):
    vec = await engine.compute_area_embedding(req.seed_keywords)
    return AreaEmbeddingResponse(embedding=vec.tolist() if vec is not None else None)


@app.post("/v1/classify", response_model=ClassifyResponse, tags=["embeddings"])
async def classify(req: ClassifyRequest):
    threshold = req.threshold if req.threshold is not None else config.CLASSIFY_THRESHOLD
    result = await engine.classify(req.text, req.areas, threshold=threshold)
    return ClassifyResponse(
        embedding=result.embedding.tolist(),
        matches=[AreaMatchOut(area_id=m.area.id, name=m.area.name, similarity=m.similarity)
                 for m in result.matches],
        unassigned=result.unassigned,
    )

# ─────────────────────────────────────────────
# Routes — graphs
# ─────────────────────────────────────────────
@app.get("/v1/graphs", tags=["graphs"])
def list_graphs():
    return {"graphs": manager.list_graphs()}


@app.put("/v1/graphs/{name}", response_model=GraphOut, tags=["graphs"])
def update_graph(name: str, req: UpdateGraphRequest):
    try:
        view, lock = manager.get_with_lock(name)
    except ValueError as e:
        raise HTTPException(400, str(e))
    with lock:
        view.update(
            [c.model_dump(mode="json") for c in req.contents],
            [a.model_dump(mode="json") for a in req.areas],
            req.assignments,
        )
        return _graph_out(name, view)


@app.get("/v1/graphs/{name}", response_model=GraphOut, tags=["graphs"])
def get_graph(name: str):
    view, lock = _view(name)
    with lock:
        return _graph_out(name, view)


@app.delete("/v1/graphs/{name}", tags=["graphs"])
def drop_graph(name: str):
    try:
        manager.drop(name)
    except KeyError:
        raise HTTPException(404, f"Graph '{name}' not found")
    return {"name": name, "dropped": True}


@app.post("/v1/graphs/{name}/tick", response_model=GraphOut, tags=["graphs"])
def tick_graph(name: str, req: TickRequest):
    view, lock = _view(name)
    with lock:
        for _ in range(req.ticks):
            if not view.tick():
                break
        return _graph_out(name, view)


@app.post("/v1/graphs/{name}/viewport", response_model=GraphOut, tags=["graphs"])
def resize_graph(name: str, req: ViewportRequest):
    view, lock = _view(name)
    with lock:
        view.resize(req.width, req.height, req.pixel_ratio)
        return _graph_out(name, view)


@app.post("/v1/graphs/{name}/show", response_model=GraphOut, tags=["graphs"])
def show_graph(name: str):
    view, lock = _view(name)
    with lock:
        view.show()
        return _graph_out(name, view)


@app.post("/v1/graphs/{name}/hide", response_model=GraphOut, tags=["graphs"])
def hide_graph(name: str):
    view, lock = _view(name)
    with lock:
        view.hide()
        return _graph_out(name, view)


@app.post("/v1/graphs/{name}/pointer", response_model=PointerResponse, tags=["interaction"])
def pointer_graph(name: str, req: PointerRequest):
    view, lock = _view(name)
    with lock:
        return _pointer_out(view, view.pointer_move(req.x, req.y))


@app.post("/v1/graphs/{name}/click", response_model=PointerResponse, tags=["interaction"])
def click_graph(name: str, req: PointerRequest):
    view, lock = _view(name)
    with lock:
        return _pointer_out(view, view.click(req.x, req.y))


@app.get("/v1/graphs/{name}/frame.png", tags=["graphs"])
def graph_frame(name: str):
    view, lock = _view(name)
    with lock:
        png = view.renderer.to_png()
    return Response(content=png, media_type="image/png")
