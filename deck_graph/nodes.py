"""
deck_graph.nodes — input records, graph nodes and the similarity matrix.

The host feeds ContentRecord / AreaRecord values (or plain dicts with the
same keys). Each layout pass turns them into ContentNode / AreaNode values:
immutable descriptors sharing ``id`` and ``fixed``. Content positions are
not stored on the nodes; they live in the simulation's flat arrays at
``ContentNode.index``.
"""

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

import numpy as np

from .vectors import as_embedding, cosine_similarity, has_embedding

NEBULA_ID = "__nebula__"
NEBULA_NAME = "Nebula"
NEBULA_EMOJI = "\U0001f32b\ufe0f"
NEBULA_COLOR = "#333333"

DEFAULT_AREA_COLOR = "#6c63ff"
ORBIT_FACTOR = 0.55

SimilarityMatrix = Dict[str, Dict[str, float]]
Assignments = Mapping[str, Sequence[str]]


class Status(str, Enum):
    UNREAD = "unread"
    READING = "reading"
    DONE = "done"

    @classmethod
    def parse(cls, value) -> "Status":
        try:
            return cls(value)
        except ValueError:
            return cls.UNREAD


@dataclass(frozen=True)
class StatusStyle:
    radius: float
    color: str
    glow: bool
    label: str      # "title" or "summary"


STATUS_STYLE = {
    Status.UNREAD:  StatusStyle(radius=14, color="#6c63ff", glow=True,  label="title"),
    Status.READING: StatusStyle(radius=11, color="#4ecdc4", glow=False, label="title"),
    Status.DONE:    StatusStyle(radius=8,  color="#555555", glow=False, label="summary"),
}


# ─────────────────────────────────────────────────────────────
# Input records
# ─────────────────────────────────────────────────────────────
@dataclass
class ContentRecord:
    id: str
    title: Optional[str] = None
    status: str = Status.UNREAD.value
    summary_line: Optional[str] = None
    url: Optional[str] = None
    embedding: Optional[Sequence[float]] = None
    payload: Any = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ContentRecord":
        return cls(
            id=str(data["id"]),
            title=data.get("title"),
            status=data.get("status") or Status.UNREAD.value,
            summary_line=data.get("summary_line", data.get("nugget")),
            url=data.get("url"),
            embedding=data.get("embedding"),
            payload=data.get("payload", data),
        )


@dataclass
class AreaRecord:
    id: str
    name: str
    color: Optional[str] = None
    emoji: str = ""
    embedding: Optional[Sequence[float]] = None
    seed_keywords: List[str] = field(default_factory=list)
    is_active: bool = True

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "AreaRecord":
        return cls(
            id=str(data["id"]),
            name=data.get("name", ""),
            color=data.get("color"),
            emoji=data.get("emoji") or "",
            embedding=data.get("embedding"),
            seed_keywords=list(data.get("seed_keywords") or []),
            is_active=data.get("is_active") is not False,
        )


def coerce_contents(items: Iterable[Any]) -> List[ContentRecord]:
    return [i if isinstance(i, ContentRecord) else ContentRecord.from_dict(i) for i in items]


def coerce_areas(items: Iterable[Any]) -> List[AreaRecord]:
    return [i if isinstance(i, AreaRecord) else AreaRecord.from_dict(i) for i in items]


# ─────────────────────────────────────────────────────────────
# Graph nodes
# ─────────────────────────────────────────────────────────────
@dataclass(frozen=True, eq=False)
class AreaNode:
    id: str
    name: str
    color: str
    emoji: str
    x: float
    y: float
    embedding: Optional[np.ndarray] = None
    fixed: bool = field(default=True, init=False)

    @property
    def label(self) -> str:
        return f"{self.emoji} {self.name}".strip()


@dataclass(frozen=True, eq=False)
class ContentNode:
    id: str
    index: int
    title: str
    summary: str
    status: Status
    area_ids: Tuple[str, ...]
    embedding: Optional[np.ndarray] = None
    payload: Any = None
    fixed: bool = field(default=False, init=False)

    @property
    def style(self) -> StatusStyle:
        return STATUS_STYLE[self.status]

    @property
    def radius(self) -> float:
        return self.style.radius

    @property
    def label(self) -> str:
        if self.style.label == "summary" and self.summary:
            return self.summary
        return self.title


def _frozen(vec) -> Optional[np.ndarray]:
    return as_embedding(vec) if has_embedding(vec) else None


def build_content_nodes(records: Sequence[ContentRecord],
                        assignments: Assignments) -> List[ContentNode]:
    nodes = []
    for index, rec in enumerate(records):
        nodes.append(ContentNode(
            id=rec.id,
            index=index,
            title=rec.title or rec.url or "Untitled",
            summary=rec.summary_line or "",
            status=Status.parse(rec.status),
            area_ids=tuple(str(a) for a in assignments.get(rec.id, ())),
            embedding=_frozen(rec.embedding),
            payload=rec.payload if rec.payload is not None else rec,
        ))
    return nodes


def nebula_node(width: float, height: float) -> AreaNode:
    return AreaNode(id=NEBULA_ID, name=NEBULA_NAME, color=NEBULA_COLOR,
                    emoji=NEBULA_EMOJI, x=width / 2, y=height / 2)


def layout_area_nodes(areas: Sequence[AreaRecord], width: float, height: float,
                      orbit_factor: float = ORBIT_FACTOR) -> List[AreaNode]:
    """
    Pin active areas evenly on a circle around the viewport center,
    first slot at the top.
    """
    active = [a for a in areas if a.is_active]
    cx, cy = width / 2, height / 2
    orbit = min(cx, cy) * orbit_factor
    nodes = []
    for i, area in enumerate(active):
        angle = 2 * math.pi * i / len(active) - math.pi / 2
        nodes.append(AreaNode(
            id=area.id,
            name=area.name,
            color=area.color or DEFAULT_AREA_COLOR,
            emoji=area.emoji or "",
            x=cx + orbit * math.cos(angle),
            y=cy + orbit * math.sin(angle),
            embedding=_frozen(area.embedding),
        ))
    return nodes


# ─────────────────────────────────────────────────────────────
# Similarity matrix
# ─────────────────────────────────────────────────────────────
def build_similarity_matrix(records: Sequence[ContentRecord],
                            areas: Sequence[AreaRecord],
                            assignments: Assignments) -> SimilarityMatrix:
    """
    content id -> {area id -> score}.

    Embedded content is scored by cosine similarity against every embedded
    area. Content without an embedding falls back to 1.0 for each assigned
    area; everything else is left absent.
    """
    matrix: SimilarityMatrix = {}
    embedded_areas = [a for a in areas if has_embedding(a.embedding)]
    for rec in records:
        scores: Dict[str, float] = {}
        if has_embedding(rec.embedding):
            for area in embedded_areas:
                scores[area.id] = cosine_similarity(rec.embedding, area.embedding)
        else:
            for area_id in assignments.get(rec.id, ()):
                scores[str(area_id)] = 1.0
        matrix[rec.id] = scores
    return matrix


def lookup_similarity(matrix: SimilarityMatrix, content_id: str, area_id: str,
                      default: Optional[float] = None) -> Optional[float]:
    return matrix.get(content_id, {}).get(area_id, default)
