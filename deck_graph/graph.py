"""
deck_graph.graph — spatial graph view, export and snapshots.

Usage:
    from deck_graph import GraphView, export_graph, visualize

    view = GraphView(width=1200, height=800, on_node_click=open_bookmark)
    view.update(bookmarks, areas, {"bm-1": ["area-design"]})
    await view.run()                       # tick + redraw until settled

    graph = export_graph(view)             # nodes/edges dict with positions
    path = visualize(view, "deck_graph.png")
"""

import asyncio
import logging
import os
from typing import Any, Callable, Dict, Iterable, Mapping, Optional, Sequence, Tuple

from . import config
from .nodes import (Assignments, build_content_nodes, build_similarity_matrix,
                    coerce_areas, coerce_contents, layout_area_nodes, nebula_node)
from .render import GraphRenderer
from .simulation import REHEAT_ALPHA, ForceSimulation

logger = logging.getLogger(__name__)


class GraphView:
    """
    Owns one simulation and one renderer. ``update`` swaps in a complete
    new layout; ``tick`` advances it by one step and redraws.
    """

    def __init__(self, width: float = config.VIEWPORT_WIDTH,
                 height: float = config.VIEWPORT_HEIGHT,
                 pixel_ratio: float = config.PIXEL_RATIO,
                 on_node_click: Optional[Callable[[Any], None]] = None,
                 seed: Optional[int] = None,
                 keep_positions: bool = True):
        self.renderer = GraphRenderer(width, height, pixel_ratio, on_node_click)
        self.seed = seed
        self.keep_positions = keep_positions
        self.simulation: Optional[ForceSimulation] = None
        self.running = False
        self.hidden = False
        self._inputs: Optional[Tuple[list, list, Dict[str, Tuple[str, ...]]]] = None

    @property
    def width(self) -> float:
        return self.renderer.width

    @property
    def height(self) -> float:
        return self.renderer.height

    @property
    def on_node_click(self):
        return self.renderer.on_node_click

    @on_node_click.setter
    def on_node_click(self, callback):
        self.renderer.on_node_click = callback

    # ── Layout ─────────────────────────────────────────────

    def update(self, contents: Iterable[Any], areas: Iterable[Any],
               assignments: Optional[Mapping[str, Sequence[str]]] = None):
        """
        Rebuild nodes, areas and similarities from fresh data and restart
        the simulation.

        Args:
            contents:    ContentRecord values or dicts {id, title, status, ...}
            areas:       AreaRecord values or dicts {id, name, color, ...}
            assignments: content id -> [area id, ...]
        """
        records = coerce_contents(contents)
        area_records = coerce_areas(areas)
        assigned = {str(k): tuple(str(a) for a in v) for k, v in (assignments or {}).items()}
        self._inputs = (records, area_records, assigned)
        self._publish(self._stage(records, area_records, assigned))

    def _stage(self, records, area_records, assigned: Assignments) -> ForceSimulation:
        width, height = self.width, self.height
        area_nodes = layout_area_nodes(area_records, width, height)
        nebula = nebula_node(width, height)
        active = [a for a in area_records if a.is_active]
        similarities = build_similarity_matrix(records, active, assigned)
        nodes = build_content_nodes(records, assigned)

        known = None
        if self.keep_positions and self.simulation is not None:
            known = self.simulation.position_map()

        logger.debug("Layout staged: %d nodes, %d areas", len(nodes), len(area_nodes))
        return ForceSimulation(nodes, area_nodes + [nebula], nebula, similarities,
                               seed=self.seed, initial_positions=known)

    def _publish(self, simulation: ForceSimulation):
        self.simulation = simulation
        self.renderer.set_scene(simulation)
        self.running = not self.hidden
        self.renderer.draw()

    # ── Frame loop ─────────────────────────────────────────

    def tick(self) -> bool:
        """One relaxation step and one redraw. Returns True while running."""
        sim = self.simulation
        if not self.running or sim is None:
            return False
        sim.step()
        self.renderer.draw()
        if sim.settled:
            self.running = False
        return self.running

    async def run(self, fps: float = 60.0, max_ticks: Optional[int] = None) -> int:
        """Tick once per frame until settled, hidden or ``max_ticks``."""
        interval = 1.0 / fps if fps else 0.0
        ticks = 0
        while (max_ticks is None or ticks < max_ticks) and self.tick():
            ticks += 1
            await asyncio.sleep(interval)
        return ticks

    def settle(self, max_ticks: Optional[int] = None) -> int:
        """Synchronous variant of ``run`` without frame pacing."""
        ticks = 0
        while (max_ticks is None or ticks < max_ticks) and self.tick():
            ticks += 1
        return ticks

    def show(self):
        """Resume ticking, warmed to at least REHEAT_ALPHA."""
        self.renderer.draw()
        sim = self.simulation
        if sim is not None and sim.alpha < REHEAT_ALPHA:
            sim.reheat(REHEAT_ALPHA)
        self.hidden = False
        self.running = self.simulation is not None

    def hide(self):
        """Stop ticking; the last frame stays on the surface."""
        self.hidden = True
        self.running = False

    stop = hide

    def resize(self, width: float, height: float, pixel_ratio: Optional[float] = None):
        """
        Resize the surface. Area slots move with the new center, so the
        layout is restaged and relaxes from full alpha unless hidden.
        """
        self.renderer.resize(width, height, pixel_ratio)
        if self._inputs is None:
            return
        self._publish(self._stage(*self._inputs))

    def destroy(self):
        self.running = False
        self.simulation = None
        self._inputs = None
        self.renderer.clear_scene()

    # ── Interaction ────────────────────────────────────────

    def pointer_move(self, sx: float, sy: float):
        return self.renderer.pointer_move(sx, sy)

    def click(self, sx: float, sy: float):
        return self.renderer.click(sx, sy)

    def wheel(self, sx: float, sy: float, delta_y: float):
        self.renderer.wheel(sx, sy, delta_y)

    def drag(self, dx: float, dy: float):
        self.renderer.drag(dx, dy)


# ─────────────────────────────────────────────────────────────
# Export
# ─────────────────────────────────────────────────────────────
def export_graph(view: GraphView) -> dict:
    """
    Export the current layout as a dict with 'nodes' and 'edges' lists,
    positions in simulation space. Compatible with D3 and NetworkX loaders.
    """
    sim = view.simulation
    if sim is None:
        return {"nodes": [], "edges": [], "alpha": 0.0, "settled": True}

    nodes = []
    for area in sim.areas:
        nodes.append({
            "id": area.id, "type": "area", "label": area.label,
            "color": area.color, "x": area.x, "y": area.y, "fixed": True,
        })
    area_ids = {a.id for a in sim.areas}
    edges = []
    for node in sim.nodes:
        x, y = sim.position(node)
        nodes.append({
            "id": node.id, "type": "content", "label": node.label,
            "status": node.status.value, "color": node.style.color,
            "radius": node.radius, "x": x, "y": y, "fixed": False,
        })
        scores = sim.similarities.get(node.id, {})
        for area_id in node.area_ids:
            if area_id not in area_ids:
                continue
            edges.append({"source": node.id, "target": area_id,
                          "weight": scores.get(area_id)})
    return {"nodes": nodes, "edges": edges,
            "alpha": sim.alpha, "settled": sim.settled}


def visualize(view: GraphView, output_path: str = "deck_graph.png") -> str:
    """
    Write the current frame as a PNG.

    Returns:
        Absolute path to the written file.
    """
    abs_path = os.path.abspath(output_path)
    with open(abs_path, "wb") as f:
        f.write(view.renderer.to_png())
    sim = view.simulation
    logger.info("Spatial graph frame written to %s (%d nodes)",
                abs_path, len(sim.nodes) if sim else 0)
    return abs_path
