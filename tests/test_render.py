import io

import pytest
from PIL import Image

from deck_graph.nodes import (ContentRecord, build_content_nodes, build_similarity_matrix,
                              coerce_areas, layout_area_nodes, nebula_node)
from deck_graph.render import (MAX_SCALE, MIN_SCALE, GraphRenderer, ZoomTransform, truncate)
from deck_graph.simulation import ForceSimulation

WIDTH, HEIGHT = 320, 240


def scene(records, positions, areas=(), assignments=None):
    assignments = assignments or {}
    area_records = coerce_areas(areas)
    nebula = nebula_node(WIDTH, HEIGHT)
    return ForceSimulation(
        build_content_nodes(records, assignments),
        layout_area_nodes(area_records, WIDTH, HEIGHT) + [nebula],
        nebula,
        build_similarity_matrix(records, area_records, assignments),
        seed=0,
        initial_positions=positions,
    )


@pytest.fixture
def clicks():
    return []


@pytest.fixture
def renderer(clicks):
    r = GraphRenderer(WIDTH, HEIGHT, on_node_click=clicks.append)
    r.set_scene(scene(
        [ContentRecord(id="a", title="Alpha", payload={"id": "a"}),
         ContentRecord(id="b", title="Beta", status="done",
                       summary_line="Ship the smallest thing that teaches you something",
                       payload={"id": "b"})],
        {"a": (100.0, 100.0), "b": (200.0, 150.0)},
        areas=[{"id": "area", "name": "Area", "color": "#ff6b6b"}],
        assignments={"a": ["area"]},
    ))
    return r


def test_transform_round_trip():
    t = ZoomTransform(x=35, y=-12, k=2.5)
    sx, sy = t.apply(10, 20)
    assert t.invert(sx, sy) == pytest.approx((10, 20))


def test_scale_about_is_clamped_and_keeps_anchor_still():
    t = ZoomTransform()
    zoomed = t.scale_about(100, 50, 60)
    assert zoomed.k == MAX_SCALE
    assert zoomed.invert(50, 60) == pytest.approx(t.invert(50, 60))
    assert t.scale_about(0.001, 0, 0).k == MIN_SCALE


def test_hit_test_through_pan_and_zoom(renderer, clicks):
    renderer.set_transform(ZoomTransform(x=40, y=-25, k=1.7))
    sx, sy = renderer.transform.apply(100, 100)

    hit = renderer.click(sx, sy)
    assert hit.id == "a"
    assert clicks == [{"id": "a"}]


def test_hit_test_respects_radius_and_padding(renderer):
    # unread radius 14 plus padding 4
    assert renderer.hit_test(100 + 17.5, 100).id == "a"
    assert renderer.hit_test(100 + 18.5, 100) is None


def test_click_on_empty_space_does_nothing(renderer, clicks):
    assert renderer.click(5, 5) is None
    assert clicks == []


def test_topmost_node_wins_on_overlap():
    r = GraphRenderer(WIDTH, HEIGHT)
    r.set_scene(scene([ContentRecord(id="under"), ContentRecord(id="over")],
                      {"under": (50.0, 50.0), "over": (52.0, 50.0)}))
    assert r.hit_test(51, 50).id == "over"


def test_pointer_move_sets_hover_and_cursor(renderer):
    frames = renderer.frames
    assert renderer.pointer_move(200, 150).id == "b"
    assert renderer.cursor == "pointer"
    assert renderer.label_visible(renderer.hovered)
    assert renderer.frames == frames + 1

    assert renderer.pointer_move(5, 5) is None
    assert renderer.cursor == "default"
    assert renderer.hovered is None


def test_labels_show_for_unread_and_reading_only(renderer):
    alpha, beta = renderer._scene.nodes
    assert renderer.label_visible(alpha)
    assert not renderer.label_visible(beta)


def test_hovered_done_node_draws_truncated_summary(renderer):
    alpha, beta = renderer._scene.nodes
    assert renderer.label_text(beta) is None

    renderer.pointer_move(200, 150)
    assert renderer.label_text(beta) == "Ship the smallest thing that t..."
    assert renderer.label_text(alpha) == "Alpha"


def test_wheel_zooms_about_pointer(renderer):
    before = renderer.screen_to_world(100, 100)
    renderer.wheel(100, 100, -500)
    assert renderer.transform.k == pytest.approx(2 ** 1)
    assert renderer.screen_to_world(100, 100) == pytest.approx(before)

    for _ in range(20):
        renderer.wheel(100, 100, -500)
    assert renderer.transform.k == MAX_SCALE


def test_drag_pans(renderer):
    renderer.drag(30, -10)
    assert (renderer.transform.x, renderer.transform.y) == (30, -10)
    assert renderer.hit_test(*renderer.screen_to_world(130, 90)).id == "a"


def test_resize_scales_backing_surface_by_pixel_ratio(renderer):
    renderer.resize(400, 300, pixel_ratio=2)
    assert renderer.surface.size == (800, 600)
    assert (renderer.width, renderer.height) == (400, 300)

    renderer.resize(500, 200)
    assert renderer.surface.size == (1000, 400)


def test_draw_paints_nodes_on_background(renderer):
    renderer.draw()
    background = renderer.surface.getpixel((2, 2))
    node_px = renderer.surface.getpixel((100, 100))
    assert background == (15, 17, 23, 255)
    assert node_px != background


def test_to_png_round_trips_through_pillow(renderer):
    renderer.draw()
    image = Image.open(io.BytesIO(renderer.to_png()))
    assert image.size == (WIDTH, HEIGHT)


def test_truncate_long_labels():
    assert truncate("short") == "short"
    assert truncate("x" * 31) == "x" * 30 + "..."


def test_clear_scene_disables_hits(renderer):
    renderer.clear_scene()
    assert renderer.hit_test(100, 100) is None
    renderer.draw()
