import asyncio
import threading

import numpy as np
import pytest

from deck_graph import (AreaRecord, EmbeddingEngine, EmbeddingRequestFailure,
                        EngineDestroyed, ModelLoadFailure, cosine_similarity)
from deck_graph.worker import WorkerState

from conftest import FakeModel, axis


def run(coro):
    return asyncio.run(coro)


def test_embed_returns_read_only_vector():
    model = FakeModel(vectors={"hello": axis(2)})

    async def scenario():
        async with EmbeddingEngine(loader=model) as engine:
            return await engine.embed("hello")

    vec = run(scenario())
    np.testing.assert_array_equal(vec, axis(2))
    assert not vec.flags.writeable


def test_concurrent_init_loads_model_once():
    model = FakeModel(load_delay=0.05)

    async def scenario():
        engine = EmbeddingEngine(loader=model)
        await asyncio.gather(engine.init(), engine.init())
        await engine.init()
        state = engine.state
        engine.destroy()
        return state

    assert run(scenario()) is WorkerState.READY
    assert model.loads == 1


def test_embed_before_init_triggers_load():
    model = FakeModel()

    async def scenario():
        engine = EmbeddingEngine(loader=model)
        vecs = await asyncio.gather(engine.embed("a"), engine.embed("b"))
        engine.destroy()
        return vecs

    vecs = run(scenario())
    assert len(vecs) == 2
    assert model.loads == 1


def test_embed_batch_preserves_order():
    model = FakeModel(vectors={"x": axis(0), "y": axis(1), "z": axis(2)})

    async def scenario():
        async with EmbeddingEngine(loader=model) as engine:
            return await engine.embed_batch(["z", "x", "y"])

    vecs = run(scenario())
    assert [int(np.argmax(v)) for v in vecs] == [2, 0, 1]


def test_destroy_rejects_in_flight_request_and_engine_recovers():
    gate = threading.Event()
    gated = FakeModel(gate=gate)
    free = FakeModel(vectors={"after": axis(3)})
    loaders = iter([gated, free])

    def loader():
        return next(loaders)()

    async def scenario():
        engine = EmbeddingEngine(loader=loader)
        await engine.init()
        pending = asyncio.ensure_future(engine.embed("stuck"))
        await asyncio.sleep(0.05)
        assert engine.pending_requests == 1

        engine.destroy()
        with pytest.raises(EngineDestroyed) as exc:
            await pending
        assert engine.pending_requests == 0
        assert engine.state is WorkerState.UNLOADED

        await engine.init()
        vec = await engine.embed("after")
        gate.set()
        engine.destroy()
        return exc.value, vec

    error, vec = run(scenario())
    assert isinstance(error, EmbeddingRequestFailure)
    assert error.request_id is not None
    np.testing.assert_array_equal(vec, axis(3))


def test_load_failure_rejects_init_and_can_be_retried():
    broken = FakeModel(fail_load=True)
    working = FakeModel()
    loaders = iter([broken, working])

    def loader():
        return next(loaders)()

    async def scenario():
        engine = EmbeddingEngine(loader=loader)
        with pytest.raises(ModelLoadFailure):
            await engine.init()
        failed_state = engine.state
        await engine.init()
        ready = engine.ready
        engine.destroy()
        return failed_state, ready

    failed_state, ready = run(scenario())
    assert failed_state is WorkerState.FAILED
    assert ready


def test_failed_request_does_not_poison_later_requests():
    model = FakeModel()

    async def scenario():
        async with EmbeddingEngine(loader=model) as engine:
            with pytest.raises(EmbeddingRequestFailure):
                await engine.embed("")
            return await engine.embed("fine")

    assert len(run(scenario())) > 0


def test_area_embedding_is_unit_centroid(area_vectors):
    model = FakeModel(vectors=area_vectors)

    async def scenario():
        async with EmbeddingEngine(loader=model) as engine:
            empty = await engine.compute_area_embedding([])
            vec = await engine.compute_area_embedding(["typography", "color theory"])
            return empty, vec

    empty, vec = run(scenario())
    assert empty is None
    assert np.linalg.norm(vec) == pytest.approx(1.0, rel=1e-5)
    assert int(np.argmax(vec)) == 0


def _areas():
    return [
        AreaRecord(id="design", name="Design", embedding=axis(0)),
        AreaRecord(id="eng", name="Engineering", embedding=axis(4)),
        AreaRecord(id="ops", name="Ops", embedding=axis(4) + axis(5)),
        AreaRecord(id="infra", name="Infra", embedding=axis(4) + axis(6)),
        AreaRecord(id="raw", name="No embedding yet"),
    ]


def test_classify_matches_sorted_capped_and_above_threshold():
    model = FakeModel(vectors={"kernel tuning": axis(4) + axis(5, scale=0.3)})

    async def scenario():
        async with EmbeddingEngine(loader=model) as engine:
            return await engine.classify("kernel tuning", _areas(), threshold=0.3)

    result = run(scenario())
    sims = [m.similarity for m in result.matches]
    assert len(result.matches) == 3
    assert sims == sorted(sims, reverse=True)
    assert all(s >= 0.3 for s in sims)
    assert result.matches[0].area.id == "eng"
    assert "design" not in [m.area.id for m in result.matches]
    assert result.unassigned is False


def test_classify_with_no_match_is_unassigned():
    model = FakeModel(vectors={"gardening": axis(7)})

    async def scenario():
        async with EmbeddingEngine(loader=model) as engine:
            return await engine.classify("gardening", _areas())

    result = run(scenario())
    assert result.matches == []
    assert result.unassigned is True
    assert cosine_similarity(result.embedding, axis(7)) == pytest.approx(1.0)


def test_classify_accepts_plain_dict_areas():
    model = FakeModel(vectors={"fonts": axis(0)})
    areas = [{"id": "design", "name": "Design", "embedding": list(axis(0))},
             {"id": "eng", "name": "Engineering", "embedding": list(axis(4))}]

    async def scenario():
        async with EmbeddingEngine(loader=model) as engine:
            return await engine.classify("fonts", areas, threshold=0.5)

    result = run(scenario())
    assert [m.area["id"] for m in result.matches] == ["design"]


def test_destroy_between_ready_and_post_rejects_cleanly():
    model = FakeModel()

    async def scenario():
        engine = EmbeddingEngine(loader=model)
        waiter = asyncio.ensure_future(engine.embed("late"))
        await engine.init()
        engine.destroy()
        with pytest.raises(EngineDestroyed):
            await waiter
        return engine.pending_requests

    assert run(scenario()) == 0
    assert model.encoded == []


def test_destroy_joins_an_idle_worker_thread():
    async def scenario():
        engine = EmbeddingEngine(loader=FakeModel())
        await engine.init()
        worker = engine._worker
        engine.destroy()
        return worker

    worker = run(scenario())
    assert worker.join(0) is True
    assert worker.state is WorkerState.UNLOADED
