"""
Pydantic request / response models for the deck-graph API.
"""

from pydantic import BaseModel, Field
from typing import List, Optional, Dict, Any
from enum import Enum


class StatusEnum(str, Enum):
    UNREAD = "unread"
    READING = "reading"
    DONE = "done"


class ContentIn(BaseModel):
    id: str
    title: Optional[str] = None
    status: StatusEnum = StatusEnum.UNREAD
    summary_line: Optional[str] = None
    url: Optional[str] = None
    embedding: Optional[List[float]] = None


class AreaIn(BaseModel):
    id: str
    name: str
    color: Optional[str] = None
    emoji: str = ""
    embedding: Optional[List[float]] = None
    seed_keywords: List[str] = Field(default_factory=list)
    is_active: bool = True


class EmbedRequest(BaseModel):
    text: str


class EmbedBatchRequest(BaseModel):
    texts: List[str]


class EmbedResponse(BaseModel):
    embedding: List[float]
    dim: int


class EmbedBatchResponse(BaseModel):
    embeddings: List[List[float]]
    count: int


class AreaEmbeddingRequest(BaseModel):
    seed_keywords: List[str]


class AreaEmbeddingResponse(BaseModel):
    embedding: Optional[List[float]] = None


class ClassifyRequest(BaseModel):
    text: str
    areas: List[AreaIn]
    threshold: Optional[float] = None


class AreaMatchOut(BaseModel):
    area_id: str
    name: str
    similarity: float


class ClassifyResponse(BaseModel):
    embedding: List[float]
    matches: List[AreaMatchOut]
    unassigned: bool


class UpdateGraphRequest(BaseModel):
    contents: List[ContentIn]
    areas: List[AreaIn]
    assignments: Dict[str, List[str]] = Field(default_factory=dict)


class GraphNodeOut(BaseModel):
    id: str
    type: str
    label: str
    color: str
    x: float
    y: float
    fixed: bool
    status: Optional[str] = None
    radius: Optional[float] = None


class GraphEdgeOut(BaseModel):
    source: str
    target: str
    weight: Optional[float] = None


class GraphOut(BaseModel):
    name: str
    nodes: List[GraphNodeOut]
    edges: List[GraphEdgeOut]
    alpha: float
    settled: bool
    running: bool


class TickRequest(BaseModel):
    ticks: int = Field(default=1, ge=1, le=10_000)


class ViewportRequest(BaseModel):
    width: float = Field(gt=0)
    height: float = Field(gt=0)
    pixel_ratio: float = Field(default=1.0, gt=0)


class PointerRequest(BaseModel):
    x: float
    y: float


class PointerResponse(BaseModel):
    content_id: Optional[str] = None
    cursor: str = "default"
    payload: Optional[Dict[str, Any]] = None


class HealthResponse(BaseModel):
    status: str
    version: str
    engine_state: str
    graphs_loaded: int
