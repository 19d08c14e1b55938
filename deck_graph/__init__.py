from .exceptions import (DeckGraphError, ModelLoadFailure, EmbeddingRequestFailure,
                         EngineDestroyed, DimensionMismatch)
from .vectors import cosine_similarity, mean_vector, normalize, as_embedding
from .worker import EmbeddingWorker, WorkerState, load_sentence_transformer
from .embeddings import EmbeddingEngine, Classification, AreaMatch
from .nodes import (ContentRecord, AreaRecord, ContentNode, AreaNode, Status,
                    NEBULA_ID, build_similarity_matrix)
from .simulation import ForceSimulation
from .render import GraphRenderer, ZoomTransform
from .graph import GraphView, export_graph, visualize

__all__ = [
    "DeckGraphError", "ModelLoadFailure", "EmbeddingRequestFailure",
    "EngineDestroyed", "DimensionMismatch",
    "cosine_similarity", "mean_vector", "normalize", "as_embedding",
    "EmbeddingWorker", "WorkerState", "load_sentence_transformer",
    "EmbeddingEngine", "Classification", "AreaMatch",
    "ContentRecord", "AreaRecord", "ContentNode", "AreaNode", "Status",
    "NEBULA_ID", "build_similarity_matrix",
    "ForceSimulation",
    "GraphRenderer", "ZoomTransform",
    "GraphView", "export_graph", "visualize",
]
__version__ = "0.1.0"
