import os
import sys
import time

import numpy as np
import psutil
sys.path.insert(0, '.')

from deck_graph import AreaRecord, ContentRecord, GraphView, cosine_similarity
from deck_graph.simulation import ForceSimulation
from deck_graph.nodes import (build_content_nodes, build_similarity_matrix,
                              layout_area_nodes, nebula_node)

# Configuration
DIM = 384
NUM_AREAS = 8
NODE_COUNTS = [50, 200, 500, 1000]
WIDTH, HEIGHT = 1200, 800


def generate_vectors(size, dim):
    vecs = np.random.rand(size, dim).astype(np.float32) - 0.5
    return vecs / np.linalg.norm(vecs, axis=1, keepdims=True)


def percentile(sorted_values, q):
    return sorted_values[min(len(sorted_values) - 1, int(len(sorted_values) * q))]


def print_memory():
    process = psutil.Process(os.getpid())
    print(f"[Mem] {process.memory_info().rss / 1024 / 1024:.2f} MB")


def build_inputs(n):
    area_vecs = generate_vectors(NUM_AREAS, DIM)
    areas = [AreaRecord(id=f"a{i}", name=f"Area {i}", embedding=area_vecs[i])
             for i in range(NUM_AREAS)]
    content_vecs = generate_vectors(n, DIM)
    contents = [ContentRecord(id=f"c{i}", title=f"Bookmark {i}", embedding=content_vecs[i],
                              status=("unread", "reading", "done")[i % 3])
                for i in range(n)]
    assignments = {f"c{i}": [f"a{i % NUM_AREAS}"] for i in range(0, n, 2)}
    return contents, areas, assignments


def run_benchmark():
    print(f"=== Deck Graph Benchmark ({DIM} dim, {NUM_AREAS} areas) ===")

    # 1. Cosine similarity throughput
    print("\n[Phase 1] Cosine Similarity")
    a, b = generate_vectors(2, DIM)
    for _ in range(100): cosine_similarity(a, b)
    t0 = time.perf_counter()
    for _ in range(10_000):
        cosine_similarity(a, b)
    duration = time.perf_counter() - t0
    print(f"✅ {10_000 / duration:.0f} comparisons/sec")

    # 2. Settle time per graph size, simulation only
    print("\n[Phase 2] Simulation Settle Time")
    for n in NODE_COUNTS:
        contents, areas, assignments = build_inputs(n)
        nebula = nebula_node(WIDTH, HEIGHT)
        sim = ForceSimulation(build_content_nodes(contents, assignments),
                              layout_area_nodes(areas, WIDTH, HEIGHT) + [nebula], nebula,
                              build_similarity_matrix(contents, areas, assignments), seed=0)
        t0 = time.perf_counter()
        ticks = sim.run()
        duration = time.perf_counter() - t0
        print(f"✅ {n:>5} nodes: {ticks} ticks in {duration:.2f}s "
              f"({duration / ticks * 1000:.2f} ms/tick)")
        print_memory()

    # 3. Frame cost with rendering
    print("\n[Phase 3] Tick + Draw Latency (P99)")
    contents, areas, assignments = build_inputs(200)
    view = GraphView(WIDTH, HEIGHT, pixel_ratio=2.0, seed=0)
    view.update(contents, areas, assignments)
    latencies = []
    for _ in range(1000):
        if not view.running:
            view.show()
        t0 = time.perf_counter()
        view.tick()
        latencies.append((time.perf_counter() - t0) * 1000)   # ms
    latencies.sort()
    print(f"✅ Frame Latency: P50={percentile(latencies, 0.5):.2f}ms, "
          f"P99={percentile(latencies, 0.99):.2f}ms")

    print("\nDone.")


if __name__ == "__main__":
    run_benchmark()
