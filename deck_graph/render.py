"""
deck_graph.render — raster rendering and pointer interaction.

GraphRenderer draws a ForceSimulation onto a Pillow RGBA surface sized
for the device pixel ratio, and maps pointer events back through the
zoom/pan transform to hit-test content nodes.

    renderer = GraphRenderer(800, 600, pixel_ratio=2.0, on_node_click=open_detail)
    renderer.set_scene(simulation)
    renderer.draw()
    renderer.pointer_move(412, 300)     # hover, render only
    renderer.click(412, 300)            # -> on_node_click(payload)
"""

import io
from dataclasses import dataclass, replace
from functools import lru_cache
from typing import Callable, Dict, Optional, Tuple

from PIL import Image, ImageColor, ImageDraw, ImageFilter, ImageFont

from .nodes import AreaNode, ContentNode, Status

MIN_SCALE = 0.3
MAX_SCALE = 4.0
WHEEL_FACTOR = 0.002

AREA_RADIUS = 30
HIT_PADDING = 4
HOVER_GROWTH = 3
GLOW_BLUR = 12
LABEL_MAX = 30

BACKGROUND = (15, 17, 23, 255)          # #0f1117
EDGE_COLOR = (255, 255, 255, 20)        # white at 0.08
AREA_LABEL_COLOR = (204, 204, 204, 255)
NODE_LABEL_COLOR = (224, 224, 224, 255)
HOVER_RING_COLOR = (255, 255, 255, 255)


@dataclass(frozen=True)
class ZoomTransform:
    """Screen = world * k + (x, y), in CSS pixels."""
    x: float = 0.0
    y: float = 0.0
    k: float = 1.0

    def apply(self, wx: float, wy: float) -> Tuple[float, float]:
        return wx * self.k + self.x, wy * self.k + self.y

    def invert(self, sx: float, sy: float) -> Tuple[float, float]:
        return (sx - self.x) / self.k, (sy - self.y) / self.k

    def scale_about(self, factor: float, sx: float, sy: float) -> "ZoomTransform":
        """Zoom by ``factor`` keeping the world point under (sx, sy) still."""
        k = min(MAX_SCALE, max(MIN_SCALE, self.k * factor))
        wx, wy = self.invert(sx, sy)
        return ZoomTransform(x=sx - wx * k, y=sy - wy * k, k=k)

    def pan(self, dx: float, dy: float) -> "ZoomTransform":
        return replace(self, x=self.x + dx, y=self.y + dy)


@lru_cache(maxsize=32)
def _font(size: int):
    return ImageFont.load_default(size=size)


def _rgba(color: str, alpha: int = 255) -> Tuple[int, int, int, int]:
    r, g, b = ImageColor.getrgb(color)[:3]
    return r, g, b, alpha


def truncate(label: str, limit: int = LABEL_MAX) -> str:
    return label[:limit] + "..." if len(label) > limit else label


class GraphRenderer:
    def __init__(self, width: float, height: float, pixel_ratio: float = 1.0,
                 on_node_click: Optional[Callable] = None):
        self.on_node_click = on_node_click
        self.transform = ZoomTransform()
        self.hovered: Optional[ContentNode] = None
        self.cursor = "default"
        self.frames = 0
        self._scene = None
        self._areas: Dict[str, AreaNode] = {}
        self.resize(width, height, pixel_ratio)

    # ── Surface ────────────────────────────────────────────

    def resize(self, width: float, height: float, pixel_ratio: Optional[float] = None):
        """Rebuild the backing surface and redraw once."""
        if pixel_ratio is not None:
            self.pixel_ratio = pixel_ratio or 1.0
        self.width = width
        self.height = height
        size = (max(1, round(width * self.pixel_ratio)),
                max(1, round(height * self.pixel_ratio)))
        self.surface = Image.new("RGBA", size, BACKGROUND)
        if self._scene is not None:
            self.draw()

    def set_scene(self, simulation):
        self._scene = simulation
        self._areas = {a.id: a for a in simulation.areas}
        self._areas.setdefault(simulation.nebula.id, simulation.nebula)
        if self.hovered is not None and self.hovered not in simulation.nodes:
            self.hovered = None
            self.cursor = "default"

    def clear_scene(self):
        self._scene = None
        self._areas = {}
        self.hovered = None
        self.cursor = "default"

    def to_png(self) -> bytes:
        buf = io.BytesIO()
        self.surface.save(buf, format="PNG")
        return buf.getvalue()

    # ── Drawing ────────────────────────────────────────────

    def _device(self, wx: float, wy: float) -> Tuple[float, float]:
        sx, sy = self.transform.apply(wx, wy)
        return sx * self.pixel_ratio, sy * self.pixel_ratio

    @property
    def _scale(self) -> float:
        return self.transform.k * self.pixel_ratio

    def _circle(self, draw, cx, cy, r, **kwargs):
        draw.ellipse([cx - r, cy - r, cx + r, cy + r], **kwargs)

    def _text(self, draw, x, y, text, size, fill, valign="middle"):
        font = _font(max(1, round(size)))
        left, top, right, bottom = draw.textbbox((0, 0), text, font=font)
        tx = x - (right - left) / 2 - left
        ty = y - top if valign == "top" else y - (bottom - top) / 2 - top
        draw.text((tx, ty), text, font=font, fill=fill)

    def draw(self):
        """Redraw the whole scene onto the surface."""
        frame = Image.new("RGBA", self.surface.size, BACKGROUND)
        sim = self._scene
        if sim is not None:
            positions = sim.positions
            frame = Image.alpha_composite(frame, self._edge_layer(sim, positions))
            frame = Image.alpha_composite(frame, self._area_layer())
            frame = Image.alpha_composite(frame, self._glow_layer(sim, positions))
            self._draw_nodes(ImageDraw.Draw(frame), sim, positions)
        self.surface = frame
        self.frames += 1

    def _edge_layer(self, sim, positions) -> Image.Image:
        layer = Image.new("RGBA", self.surface.size, (0, 0, 0, 0))
        draw = ImageDraw.Draw(layer)
        width = max(1, round(0.5 * self._scale))
        for node in sim.nodes:
            start = self._device(*positions[node.index])
            for area_id in node.area_ids:
                area = self._areas.get(area_id)
                if area is None:
                    continue
                draw.line([start, self._device(area.x, area.y)], fill=EDGE_COLOR, width=width)
        return layer

    def _area_layer(self) -> Image.Image:
        layer = Image.new("RGBA", self.surface.size, (0, 0, 0, 0))
        draw = ImageDraw.Draw(layer)
        scale = self._scale
        for area in self._areas.values():
            cx, cy = self._device(area.x, area.y)
            self._circle(draw, cx, cy, AREA_RADIUS * scale,
                         fill=_rgba(area.color, 0x20), outline=_rgba(area.color, 0x60),
                         width=max(1, round(2 * scale)))
            self._text(draw, cx, cy, area.label, 11 * scale, AREA_LABEL_COLOR)
        return layer

    def _glow_layer(self, sim, positions) -> Image.Image:
        layer = Image.new("RGBA", self.surface.size, (0, 0, 0, 0))
        draw = ImageDraw.Draw(layer)
        scale = self._scale
        for node in sim.nodes:
            if not node.style.glow:
                continue
            cx, cy = self._device(*positions[node.index])
            self._circle(draw, cx, cy, self._node_radius(node) * scale,
                         fill=_rgba(node.style.color))
        return layer.filter(ImageFilter.GaussianBlur(GLOW_BLUR * scale / 2))

    def _node_radius(self, node: ContentNode) -> float:
        return node.radius + HOVER_GROWTH if node is self.hovered else node.radius

    def _draw_nodes(self, draw, sim, positions):
        scale = self._scale
        for node in sim.nodes:
            hovered = node is self.hovered
            r = self._node_radius(node) * scale
            cx, cy = self._device(*positions[node.index])
            if hovered:
                self._circle(draw, cx, cy, r, fill=_rgba(node.style.color),
                             outline=HOVER_RING_COLOR, width=max(1, round(2 * scale)))
            else:
                self._circle(draw, cx, cy, r, fill=_rgba(node.style.color))

            label = self.label_text(node)
            if label is not None:
                self._text(draw, cx, cy + r + 4 * scale, label,
                           10 * scale, NODE_LABEL_COLOR, valign="top")

    def label_visible(self, node: ContentNode) -> bool:
        return node is self.hovered or node.status in (Status.UNREAD, Status.READING)

    def label_text(self, node: ContentNode) -> Optional[str]:
        """Text drawn under ``node`` this frame, or None when hidden."""
        if not self.label_visible(node):
            return None
        return truncate(node.label)

    # ── Interaction ────────────────────────────────────────

    def screen_to_world(self, sx: float, sy: float) -> Tuple[float, float]:
        return self.transform.invert(sx, sy)

    def hit_test(self, wx: float, wy: float) -> Optional[ContentNode]:
        """Topmost content node under the world point, if any."""
        sim = self._scene
        if sim is None:
            return None
        positions = sim.positions
        for node in reversed(sim.nodes):
            x, y = positions[node.index]
            dx, dy = wx - x, wy - y
            if dx * dx + dy * dy <= (node.radius + HIT_PADDING) ** 2:
                return node
        return None

    def pointer_move(self, sx: float, sy: float) -> Optional[ContentNode]:
        hit = self.hit_test(*self.screen_to_world(sx, sy))
        self.hovered = hit
        self.cursor = "pointer" if hit else "default"
        self.draw()
        return hit

    def click(self, sx: float, sy: float) -> Optional[ContentNode]:
        hit = self.hit_test(*self.screen_to_world(sx, sy))
        if hit is not None and self.on_node_click is not None:
            self.on_node_click(hit.payload)
        return hit

    def wheel(self, sx: float, sy: float, delta_y: float):
        self.transform = self.transform.scale_about(2 ** (-delta_y * WHEEL_FACTOR), sx, sy)
        self.draw()

    def drag(self, dx: float, dy: float):
        self.transform = self.transform.pan(dx, dy)
        self.draw()

    def set_transform(self, transform: ZoomTransform):
        k = min(MAX_SCALE, max(MIN_SCALE, transform.k))
        self.transform = replace(transform, k=k)
        self.draw()
