import pytest

from imagestage import sizing
from imagestage.errors import InvalidTransformError
from imagestage.sizing import ResizeMode


def test_fit_example_letterboxes_vertically() -> None:
    placement = sizing.fit(800, 600, 400, 400)

    assert placement.canvas_size == (400, 400)
    assert placement.size == (400, 300)
    assert (placement.x, placement.y) == (0, 50)
    assert placement.letterboxed


def test_fill_example_crops_horizontally() -> None:
    placement = sizing.fill(800, 600, 400, 400)

    assert placement.canvas_size == (400, 400)
    assert placement.size == (533, 400)
    assert -67 <= placement.x <= -66
    assert placement.y == 0
    assert not placement.letterboxed


def test_long_edge_uses_width_for_landscape_and_height_otherwise() -> None:
    assert sizing.long_edge(800, 600, 100).canvas_size == (100, 75)
    assert sizing.long_edge(600, 800, 100).canvas_size == (75, 100)
    assert sizing.long_edge(500, 500, 100).canvas_size == (100, 100)


def test_width_and_height_keep_aspect_ratio() -> None:
    assert sizing.to_width(800, 600, 400).canvas_size == (400, 300)
    assert sizing.to_height(800, 600, 300).canvas_size == (400, 300)


def test_max_returns_scaled_size_without_letterbox() -> None:
    placement = sizing.max_box(800, 600, 400, 400)

    assert placement.canvas_size == (400, 300)
    assert placement.size == (400, 300)
    assert (placement.x, placement.y) == (0, 0)


def test_max_grows_small_images() -> None:
    assert sizing.max_box(100, 50, 400, 400).canvas_size == (400, 200)


def test_scale_multiplies_both_edges() -> None:
    assert sizing.scale(800, 600, 50).canvas_size == (400, 300)
    assert sizing.scale(800, 600, 100).canvas_size == (800, 600)
    assert sizing.scale(3, 3, 50).canvas_size == (2, 2)


@pytest.mark.parametrize(
    "source, target",
    [((800, 600), (123, 457)), ((31, 977), (640, 480)), ((1, 1), (5, 9))],
)
def test_deform_canvas_is_exactly_the_request(source, target) -> None:
    placement = sizing.deform(*source, *target)

    assert placement.canvas_size == target
    assert placement.size == target


@pytest.mark.parametrize(
    "source, target",
    [((800, 600), (400, 400)), ((600, 800), (400, 400)), ((1920, 1080), (333, 777)), ((17, 3), (100, 100))],
)
def test_fit_stays_inside_box_and_touches_one_edge(source, target) -> None:
    placement = sizing.fit(*source, *target)
    width, height = target

    assert placement.canvas_size == target
    assert placement.width <= width + 1 and placement.height <= height + 1
    assert placement.width == width or placement.height == height


@pytest.mark.parametrize(
    "source, target",
    [((800, 600), (400, 400)), ((600, 800), (400, 400)), ((1920, 1080), (333, 777)), ((17, 3), (100, 100))],
)
def test_fill_covers_box_and_matches_one_edge(source, target) -> None:
    placement = sizing.fill(*source, *target)
    width, height = target

    assert placement.canvas_size == target
    assert placement.width >= width - 1 and placement.height >= height - 1
    assert (placement.width == width) != (placement.height == height)


def test_round_px_rounds_half_up() -> None:
    assert sizing.round_px(0.5) == 1
    assert sizing.round_px(2.5) == 3
    assert sizing.round_px(-66.67) == -67


@pytest.mark.parametrize(
    "call",
    [
        lambda: sizing.fit(800, 600, 0, 400),
        lambda: sizing.fill(800, 600, 400, -1),
        lambda: sizing.deform(0, 600, 400, 400),
        lambda: sizing.to_width(800, 0, 400),
        lambda: sizing.long_edge(800, 600, 0),
        lambda: sizing.scale(800, 600, 0),
        lambda: sizing.scale(1, 1, 10),
        lambda: sizing.to_width(800, 600, float("inf")),
        lambda: sizing.fit(800, 600, float("nan"), 400),
        lambda: sizing.long_edge(800, 600, float("-inf")),
        lambda: sizing.scale(800, 600, 1e308),
    ],
)
def test_invalid_parameters_raise(call) -> None:
    with pytest.raises(InvalidTransformError):
        call()


def test_compute_dispatches_by_mode_name() -> None:
    assert sizing.compute("long_edge", 800, 600, length=100).canvas_size == (100, 75)
    assert sizing.compute(ResizeMode.SCALE, 800, 600, percent=25).canvas_size == (200, 150)
    assert sizing.compute("fit", 800, 600, width=400, height=400).size == (400, 300)


def test_compute_rejects_unknown_modes_and_missing_values() -> None:
    with pytest.raises(InvalidTransformError, match="Unknown resize mode"):
        sizing.compute("stretch", 800, 600, width=10, height=10)
    with pytest.raises(InvalidTransformError, match="height"):
        sizing.compute("fit", 800, 600, width=400)
