"""
Shared fixtures: a fake embedding model and small vector helpers.

FakeModel stands in for the sentence-transformers loader. It counts loads,
can fail to load, can hold encode() behind a gate, and maps known texts to
fixed vectors (anything else gets a deterministic hashed vector).
"""

import hashlib
import threading
import time

import numpy as np
import pytest

DIM = 8


def axis(i, dim=DIM, scale=1.0):
    vec = np.zeros(dim, dtype=np.float32)
    vec[i] = scale
    return vec


def hashed_vector(text, dim=DIM):
    seed = int(hashlib.md5(text.encode()).hexdigest(), 16) % (2 ** 32)
    vec = np.random.default_rng(seed).standard_normal(dim)
    return vec / np.linalg.norm(vec)


class FakeModel:
    def __init__(self, vectors=None, fail_load=False, load_delay=0.0, gate=None):
        self.vectors = dict(vectors or {})
        self.fail_load = fail_load
        self.load_delay = load_delay
        self.gate = gate
        self.loads = 0
        self.encoded = []
        self._lock = threading.Lock()

    def __call__(self):
        with self._lock:
            self.loads += 1
        if self.load_delay:
            time.sleep(self.load_delay)
        if self.fail_load:
            raise RuntimeError("model weights unavailable")
        return self.encode

    def encode(self, text):
        if self.gate is not None:
            self.gate.wait(timeout=5)
        if not text:
            raise ValueError("empty input")
        self.encoded.append(text)
        if text in self.vectors:
            return list(self.vectors[text])
        return list(hashed_vector(text))


@pytest.fixture
def fake_model():
    return FakeModel()


@pytest.fixture
def area_vectors():
    """Seed keyword vectors for two well separated areas."""
    return {
        "typography": axis(0),
        "color theory": axis(0) + axis(1, scale=0.2),
        "compilers": axis(4),
        "databases": axis(4) + axis(5, scale=0.2),
        "design systems": axis(0) + axis(1, scale=0.1),
        "query planners": axis(4) + axis(5, scale=0.1),
        "mostly compilers": axis(4) + axis(0, scale=0.3),
    }
