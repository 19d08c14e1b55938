"""
GraphManager — named spatial graph router.

Each graph name (a user, a board, a workspace) gets its own GraphView with
its own viewport and simulation, so layouts never interfere.

Thread safety: lookups are safe; ticks and updates take a per-graph lock.
"""

import threading
from typing import Dict, Tuple

from deck_graph import GraphView
from deck_graph import config


class GraphManager:
    def __init__(self, width: float = config.VIEWPORT_WIDTH,
                 height: float = config.VIEWPORT_HEIGHT,
                 pixel_ratio: float = config.PIXEL_RATIO):
        self._width = width
        self._height = height
        self._pixel_ratio = pixel_ratio
        self._views: Dict[str, GraphView] = {}
        self._locks: Dict[str, threading.Lock] = {}
        self._global_lock = threading.Lock()

    def _graph_name(self, name: str) -> str:
        # Sanitize: only allow alphanumeric, dash, underscore
        safe = "".join(c for c in name if c.isalnum() or c in "-_")
        if not safe:
            raise ValueError(f"Invalid graph name: {name!r}")
        return safe

    def get(self, name: str, create: bool = True) -> GraphView:
        """Return the view for this name, creating it if needed."""
        return self.get_with_lock(name, create)[0]

    def lock(self, name: str) -> threading.Lock:
        """Return the lock guarding an existing graph."""
        return self.get_with_lock(name, create=False)[1]

    def get_with_lock(self, name: str, create: bool = True) -> Tuple[GraphView, threading.Lock]:
        """View and lock in one lookup, so a concurrent drop cannot split them."""
        name = self._graph_name(name)
        with self._global_lock:
            view = self._views.get(name)
            if view is None:
                if not create:
                    raise KeyError(f"Graph '{name}' not found")
                view = GraphView(self._width, self._height, self._pixel_ratio)
                self._views[name] = view
                self._locks[name] = threading.Lock()
            return view, self._locks[name]

    def list_graphs(self):
        return list(self._views.keys())

    def drop(self, name: str):
        name = self._graph_name(name)
        with self._global_lock:
            view = self._views.pop(name, None)
            self._locks.pop(name, None)
        if view is None:
            raise KeyError(f"Graph '{name}' not found")
        view.destroy()

    def destroy_all(self):
        for view in self._views.values():
            view.destroy()
        self._views.clear()
        self._locks.clear()
