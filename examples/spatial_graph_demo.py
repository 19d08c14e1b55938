"""
spatial_graph_demo.py — deck-graph end to end

Walks the whole stack on a handful of bookmarks:
  1.  Start the embedding engine (sentence-transformers, or --offline hashing)
  2.  Seed-keyword centroids for each area
  3.  classify() every bookmark against the areas
  4.  Build the spatial graph and let it settle
  5.  Hover / click through the renderer
  6.  export_graph() — nodes/edges JSON
  7.  visualize() — PNG snapshot

Run:
    python examples/spatial_graph_demo.py            # real model
    python examples/spatial_graph_demo.py --offline  # no model download
"""

import asyncio
import hashlib
import json
import sys

import numpy as np
sys.path.insert(0, '.')

import deck_graph
from deck_graph import AreaRecord, ContentRecord, EmbeddingEngine, GraphView, export_graph, visualize

OFFLINE = "--offline" in sys.argv
OUT_PNG = "/tmp/deck_graph_demo.png"
DIM     = 64


def hashing_loader():
    """Bag-of-words hashing encoder, good enough to show the layout."""
    def encode(text):
        vec = np.zeros(DIM, dtype=np.float32)
        for word in text.lower().split():
            h = int(hashlib.md5(word.encode()).hexdigest(), 16)
            vec[h % DIM] += 1.0 if (h >> 8) & 1 else -1.0
        norm = np.linalg.norm(vec)
        return vec / norm if norm else vec
    return encode


AREAS = [
    ("design", "Design",      "🎨", "#ff6b6b", ["typography", "color palette", "layout grid"]),
    ("eng",    "Engineering", "🛠", "#4ecdc4", ["compiler", "database index", "python async"]),
    ("money",  "Finance",     "💰", "#ffd93d", ["index funds", "tax planning", "budget"]),
]

BOOKMARKS = [
    ("b1", "Choosing a typography scale for layout grid systems", "unread"),
    ("b2", "How the database index picks a query plan",           "reading"),
    ("b3", "Python async internals and the compiler",             "done"),
    ("b4", "Index funds versus picking stocks",                   "unread"),
    ("b5", "Pasta recipe my aunt sent me",                        "unread"),
]


async def main():
    print("=" * 65)
    print(f"  deck-graph v{deck_graph.__version__} — Spatial Graph Demo"
          f"{' (offline)' if OFFLINE else ''}")
    print("=" * 65)

    # ─────────────────────────────────────────────────────────
    # 1. Engine
    # ─────────────────────────────────────────────────────────
    print("\n[1] Loading embedding model...")
    async with EmbeddingEngine(loader=hashing_loader if OFFLINE else None) as engine:
        print(f"    state: {engine.state.value}")

        # ─────────────────────────────────────────────────────
        # 2. Area centroids
        # ─────────────────────────────────────────────────────
        print("\n[2] Area centroids from seed keywords")
        areas = []
        for area_id, name, emoji, color, keywords in AREAS:
            vec = await engine.compute_area_embedding(keywords)
            areas.append(AreaRecord(id=area_id, name=name, emoji=emoji, color=color,
                                    embedding=vec, seed_keywords=keywords))
            print(f"    {emoji} {name:<12} {len(keywords)} keywords → dim {len(vec)}")

        # ─────────────────────────────────────────────────────
        # 3. Classification
        # ─────────────────────────────────────────────────────
        print("\n[3] Classifying bookmarks")
        contents, assignments = [], {}
        for content_id, title, status in BOOKMARKS:
            result = await engine.classify(title, areas)
            contents.append(ContentRecord(id=content_id, title=title, status=status,
                                          embedding=result.embedding))
            assignments[content_id] = [m.area.id for m in result.matches]
            where = ", ".join(f"{m.area.name} ({m.similarity:.2f})" for m in result.matches)
            print(f"    {content_id}: {title[:40]:<40} → {where or 'Nebula'}")

    # ─────────────────────────────────────────────────────────
    # 4. Layout
    # ─────────────────────────────────────────────────────────
    print("\n[4] Settling the force layout")
    clicked = []
    view = GraphView(width=900, height=640, on_node_click=clicked.append, seed=42)
    view.update(contents, areas, assignments)
    ticks = view.settle()
    print(f"    {ticks} ticks, alpha={view.simulation.alpha:.4f}, "
          f"{view.renderer.frames} frames drawn")

    # ─────────────────────────────────────────────────────────
    # 5. Interaction
    # ─────────────────────────────────────────────────────────
    print("\n[5] Hover and click")
    x, y = view.simulation.position_map()["b1"]
    sx, sy = view.renderer.transform.apply(x, y)
    hovered = view.pointer_move(sx, sy)
    print(f"    hover ({sx:.0f}, {sy:.0f}) → {hovered.id if hovered else None}, "
          f"cursor={view.renderer.cursor}")
    view.click(sx, sy)
    print(f"    click → payload {clicked[-1].id if clicked else None}")

    view.wheel(sx, sy, -300)
    print(f"    zoomed to k={view.renderer.transform.k:.2f}")

    # ─────────────────────────────────────────────────────────
    # 6. Export
    # ─────────────────────────────────────────────────────────
    print("\n[6] export_graph()")
    data = export_graph(view)
    print(f"    {len(data['nodes'])} nodes, {len(data['edges'])} edges")
    print("    " + json.dumps(data["nodes"][-1], ensure_ascii=False)[:100] + "...")

    # ─────────────────────────────────────────────────────────
    # 7. Snapshot
    # ─────────────────────────────────────────────────────────
    print("\n[7] visualize()")
    path = visualize(view, OUT_PNG)
    print(f"    written to {path}")

    view.destroy()
    print("\nDone.")


if __name__ == "__main__":
    asyncio.run(main())
