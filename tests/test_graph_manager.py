import pytest

from app.graph_manager import GraphManager


@pytest.fixture
def manager():
    return GraphManager(width=120, height=90)


def test_get_creates_once_per_sanitised_name(manager):
    view = manager.get("team board!")
    assert manager.get("teamboard") is view
    assert manager.list_graphs() == ["teamboard"]


def test_invalid_name_is_rejected(manager):
    with pytest.raises(ValueError):
        manager.get("!!!")


def test_lock_never_recreates_a_dropped_graph(manager):
    view, lock = manager.get_with_lock("board")
    assert manager.lock("board") is lock

    manager.drop("board")
    with pytest.raises(KeyError):
        manager.lock("board")
    with pytest.raises(KeyError):
        manager.get_with_lock("board", create=False)
    assert manager.list_graphs() == []
    assert view.simulation is None


def test_drop_unknown_graph(manager):
    with pytest.raises(KeyError):
        manager.drop("ghost")
