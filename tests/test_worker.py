import queue
import threading

import pytest

from deck_graph.worker import (EmbeddingWorker, EmbedError, EmbedRequest, EmbedResult,
                               WorkerFailed, WorkerReady, WorkerState)

from conftest import FakeModel

TIMEOUT = 5


def _collector():
    replies = queue.Queue()
    return replies, replies.put


def _drain(replies, count):
    return [replies.get(timeout=TIMEOUT) for _ in range(count)]


def test_worker_loads_then_answers_requests():
    model = FakeModel(vectors={"hello": [1.0, 0.0]})
    replies, on_reply = _collector()
    worker = EmbeddingWorker(on_reply, loader=model)
    assert worker.state is WorkerState.UNLOADED

    worker.start()
    worker.post(EmbedRequest(7, "hello"))
    ready, result = _drain(replies, 2)
    worker.terminate()

    assert isinstance(ready, WorkerReady)
    assert result == EmbedResult(7, (1.0, 0.0))
    assert model.loads == 1


def test_requests_posted_before_ready_are_answered_after_load():
    gate = threading.Event()
    model = FakeModel()

    def slow_loader():
        gate.wait(TIMEOUT)
        return model()

    replies, on_reply = _collector()
    worker = EmbeddingWorker(on_reply, loader=slow_loader)
    worker.start()
    assert worker.state is WorkerState.LOADING
    worker.post(EmbedRequest(1, "first"))
    worker.post(EmbedRequest(2, "second"))
    gate.set()

    first, second, third = _drain(replies, 3)
    worker.terminate()

    assert isinstance(first, WorkerReady)
    assert [second.id, third.id] == [1, 2]
    assert worker.state in (WorkerState.READY, WorkerState.UNLOADED)


def test_encode_error_becomes_error_reply_and_worker_keeps_going():
    replies, on_reply = _collector()
    worker = EmbeddingWorker(on_reply, loader=FakeModel())
    worker.start()
    worker.post(EmbedRequest(1, ""))
    worker.post(EmbedRequest(2, "still fine"))
    _, bad, good = _drain(replies, 3)
    worker.terminate()

    assert isinstance(bad, EmbedError)
    assert bad.id == 1
    assert "empty input" in bad.error
    assert isinstance(good, EmbedResult)
    assert good.id == 2


def test_load_failure_reports_and_fails_queued_requests():
    gate = threading.Event()
    model = FakeModel(fail_load=True)

    def gated_loader():
        gate.wait(TIMEOUT)
        return model()

    replies, on_reply = _collector()
    worker = EmbeddingWorker(on_reply, loader=gated_loader)
    worker.start()
    worker.post(EmbedRequest(3, "queued"))
    gate.set()

    failed, orphan = _drain(replies, 2)
    assert isinstance(failed, WorkerFailed)
    assert "model weights unavailable" in failed.error
    assert isinstance(orphan, EmbedError)
    assert orphan.id == 3
    assert worker.state is WorkerState.FAILED


def test_no_replies_after_terminate():
    gate = threading.Event()
    model = FakeModel(gate=gate)
    replies, on_reply = _collector()
    worker = EmbeddingWorker(on_reply, loader=model)
    worker.start()
    assert isinstance(replies.get(timeout=TIMEOUT), WorkerReady)

    worker.post(EmbedRequest(1, "blocked"))
    worker.terminate()
    gate.set()

    with pytest.raises(queue.Empty):
        replies.get(timeout=0.3)
    assert worker.terminated


def test_replies_are_immutable():
    reply = EmbedResult(1, (0.5, 0.5))
    with pytest.raises(Exception):
        reply.id = 2
