"""
deck_graph.simulation — force simulation for the spatial graph.

One ForceSimulation per layout pass. Content nodes live in flat numpy
arrays (``positions``, ``velocities``, ``radii``) indexed by
``ContentNode.index``; area nodes are pinned and never enter the arrays.

Each tick follows d3-force:
    alpha += (alpha_target - alpha) * alpha_decay
    forces add to velocities   (repulsion, collision, magnet)
    velocities *= 1 - velocity_decay;  positions += velocities
"""

import logging
from typing import Dict, Mapping, Optional, Sequence, Tuple

import numpy as np

from .nodes import AreaNode, ContentNode, SimilarityMatrix

logger = logging.getLogger(__name__)

ALPHA_START = 1.0
ALPHA_MIN = 0.001
ALPHA_DECAY = 0.02
REHEAT_ALPHA = 0.3
VELOCITY_DECAY = 0.4

CHARGE_STRENGTH = -20.0
DISTANCE_MIN2 = 1.0
COLLIDE_PADDING = 4.0
COLLIDE_STRENGTH = 1.0

NEBULA_GAIN = 0.05
MAGNET_GAIN = 0.08
DEFAULT_SIMILARITY = 0.5

INITIAL_JITTER = 100.0


class ForceSimulation:
    """
    Args:
        nodes:        content nodes, ``node.index`` == row in the arrays
        areas:        pinned area nodes (the Nebula included)
        nebula:       the central attractor for unassigned content
        similarities: content id -> {area id -> score}
        seed:         seed for initial jitter and coincident-node jiggle
        initial_positions: content id -> (x, y), used instead of jitter
    """

    def __init__(self, nodes: Sequence[ContentNode], areas: Sequence[AreaNode],
                 nebula: AreaNode, similarities: SimilarityMatrix,
                 seed: Optional[int] = None,
                 initial_positions: Optional[Mapping[str, Tuple[float, float]]] = None):
        self.nodes = tuple(nodes)
        self.areas = tuple(areas)
        self.nebula = nebula
        self.similarities = similarities
        self.rng = np.random.default_rng(seed)

        self.alpha = ALPHA_START
        self.alpha_min = ALPHA_MIN
        self.alpha_decay = ALPHA_DECAY
        self.alpha_target = 0.0
        self.velocity_decay = VELOCITY_DECAY
        self.ticks = 0

        n = len(self.nodes)
        self.radii = np.array([node.radius for node in self.nodes], dtype=np.float64)
        self.velocities = np.zeros((n, 2), dtype=np.float64)
        self.positions = self._initial_positions(initial_positions or {})
        self._build_magnets()

    # ── Setup ──────────────────────────────────────────────

    def _initial_positions(self, known: Mapping[str, Tuple[float, float]]) -> np.ndarray:
        n = len(self.nodes)
        center = np.array([self.nebula.x, self.nebula.y])
        jitter = (self.rng.random((n, 2)) - 0.5) * INITIAL_JITTER
        positions = center + jitter
        for node in self.nodes:
            prev = known.get(node.id)
            if prev is not None and np.all(np.isfinite(prev)):
                positions[node.index] = prev
        return positions

    def _build_magnets(self):
        """Flatten every (node, area, gain) pull into parallel arrays."""
        area_map: Dict[str, AreaNode] = {a.id: a for a in self.areas}
        area_map.setdefault(self.nebula.id, self.nebula)

        index, targets, gains = [], [], []
        for node in self.nodes:
            if not node.area_ids:
                index.append(node.index)
                targets.append((self.nebula.x, self.nebula.y))
                gains.append(NEBULA_GAIN)
                continue
            scores = self.similarities.get(node.id, {})
            for area_id in node.area_ids:
                area = area_map.get(area_id)
                if area is None:
                    continue
                sim = scores.get(area_id)
                if sim is None:
                    sim = DEFAULT_SIMILARITY
                index.append(node.index)
                targets.append((area.x, area.y))
                gains.append(sim * MAGNET_GAIN)

        self._pull_index = np.array(index, dtype=np.intp)
        self._pull_targets = np.array(targets, dtype=np.float64).reshape(-1, 2)
        self._pull_gains = np.array(gains, dtype=np.float64)

    # ── Forces ─────────────────────────────────────────────

    def _jiggle(self, delta: np.ndarray, mask: np.ndarray):
        """Nudge exactly coincident pairs apart by a tiny random offset."""
        zero = (delta == 0) & mask[..., None]
        if zero.any():
            delta[zero] = (self.rng.random(int(zero.sum())) - 0.5) * 1e-6

    def _apply_repulsion(self, alpha: float):
        n = len(self.nodes)
        if n < 2:
            return
        off_diag = ~np.eye(n, dtype=bool)
        delta = self.positions[None, :, :] - self.positions[:, None, :]   # p_j - p_i
        self._jiggle(delta, off_diag)
        d2 = np.einsum("ijk,ijk->ij", delta, delta)
        np.fill_diagonal(d2, 1.0)
        d2 = np.where(d2 < DISTANCE_MIN2, np.sqrt(DISTANCE_MIN2 * d2), d2)
        w = np.where(off_diag, CHARGE_STRENGTH * alpha / d2, 0.0)
        self.velocities += np.einsum("ij,ijk->ik", w, delta)

    def _apply_collision(self):
        n = len(self.nodes)
        if n < 2:
            return
        radii = self.radii + COLLIDE_PADDING
        predicted = self.positions + self.velocities
        delta = predicted[:, None, :] - predicted[None, :, :]             # p_i - p_j
        reach = radii[:, None] + radii[None, :]
        off_diag = ~np.eye(n, dtype=bool)
        d2 = np.einsum("ijk,ijk->ij", delta, delta)
        overlap = off_diag & (d2 < reach * reach)
        if not overlap.any():
            return
        self._jiggle(delta, overlap)
        d2 = np.einsum("ijk,ijk->ij", delta, delta)
        dist = np.sqrt(np.where(overlap, d2, 1.0))
        push = np.where(overlap, (reach - dist) / dist * COLLIDE_STRENGTH, 0.0)
        r2 = radii * radii
        share = r2[None, :] / (r2[:, None] + r2[None, :])
        self.velocities += np.einsum("ij,ijk->ik", push * share, delta)

    def _apply_magnet(self, alpha: float):
        if self._pull_index.size == 0:
            return
        offset = self._pull_targets - self.positions[self._pull_index]
        np.add.at(self.velocities, self._pull_index,
                  offset * (self._pull_gains * alpha)[:, None])

    # ── Ticking ────────────────────────────────────────────

    @property
    def settled(self) -> bool:
        return self.alpha < self.alpha_min

    def step(self):
        """Advance one tick."""
        self.alpha += (self.alpha_target - self.alpha) * self.alpha_decay
        alpha = self.alpha

        self._apply_repulsion(alpha)
        self._apply_collision()
        self._apply_magnet(alpha)

        self.velocities *= 1.0 - self.velocity_decay
        self.positions += self.velocities
        self.ticks += 1

    def tick(self, iterations: int = 1):
        for _ in range(iterations):
            self.step()

    def run(self, max_ticks: Optional[int] = None) -> int:
        """Tick until settled (or ``max_ticks``). Returns ticks taken."""
        taken = 0
        while not self.settled and (max_ticks is None or taken < max_ticks):
            self.step()
            taken += 1
        logger.debug("Simulation ran %d ticks, alpha=%.4f", taken, self.alpha)
        return taken

    def reheat(self, alpha: float = REHEAT_ALPHA):
        self.alpha = alpha

    # ── Queries ────────────────────────────────────────────

    def position(self, node: ContentNode) -> Tuple[float, float]:
        x, y = self.positions[node.index]
        return float(x), float(y)

    def position_map(self) -> Dict[str, Tuple[float, float]]:
        return {node.id: self.position(node) for node in self.nodes}
