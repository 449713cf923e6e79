import math

import pytest

from treemap_bot.models import StockRecord
from treemap_bot.treemap import (
    HEIGHT,
    WIDTH,
    _svg_pixel_size,
    cell_color,
    layout_treemap,
    render_treemap,
)


def _rec(symbol, ret):
    return StockRecord(symbol=symbol, daily_return=ret, price=50.0, change=ret)


@pytest.fixture
def records():
    returns = [2.1, -4.8, 0.6, 1.5, -0.25, 3.3, -1.1, 0.9, -2.7, 5.0, 0.3, -0.45]
    return [_rec(f"T{i:02d}", r) for i, r in enumerate(returns)]


def _overlap(a, b):
    return a.x0 < b.x1 and b.x0 < a.x1 and a.y0 < b.y1 and b.y0 < a.y1


def test_cells_are_proper_rectangles(records):
    nodes = layout_treemap(records)
    assert len(nodes) == len(records)
    for node in nodes:
        assert node.x0 < node.x1
        assert node.y0 < node.y1


def test_cells_do_not_overlap_and_stay_inside_padding(records):
    nodes = layout_treemap(records)
    for i, a in enumerate(nodes):
        assert a.x0 >= 1.0 - 1e-6 and a.y0 >= 1.0 - 1e-6
        assert a.x1 <= WIDTH - 1.0 + 1e-6 and a.y1 <= HEIGHT - 1.0 + 1e-6
        for b in nodes[i + 1 :]:
            assert not _overlap(a, b)


def test_total_area_is_canvas_minus_padding(records):
    nodes = layout_treemap(records)
    total = sum(n.area for n in nodes)
    assert total < WIDTH * HEIGHT
    assert total > 0.95 * WIDTH * HEIGHT
    # Re-adding the 1px gap to every cell recovers the tiled region exactly.
    tiled = sum((n.width + 1) * (n.height + 1) for n in nodes)
    assert math.isclose(tiled, (WIDTH - 1) * (HEIGHT - 1), rel_tol=1e-9)


def test_area_is_proportional_to_absolute_return(records):
    nodes = layout_treemap(records)
    ratios = [(n.width + 1) * (n.height + 1) / n.value for n in nodes]
    for r in ratios:
        assert math.isclose(r, ratios[0], rel_tol=1e-9)


def test_leaves_sorted_by_descending_weight(records):
    nodes = layout_treemap(records)
    values = [n.value for n in nodes]
    assert values == sorted(values, reverse=True)
    assert nodes[0].record.symbol == "T09"


def test_equal_weights_keep_input_order():
    recs = [_rec("A", 1.0), _rec("B", -1.0), _rec("C", 1.0)]
    nodes = layout_treemap(recs)
    assert [n.record.symbol for n in nodes] == ["A", "B", "C"]


def test_layout_is_deterministic(records):
    first = layout_treemap(records)
    second = layout_treemap(list(records))
    assert [(n.x0, n.y0, n.x1, n.y1) for n in first] == [
        (n.x0, n.y0, n.x1, n.y1) for n in second
    ]


def test_zero_return_degenerates_to_zero_area():
    recs = [_rec("UP", 2.0), _rec("FLAT", 0.0), _rec("DOWN", -1.0)]
    nodes = layout_treemap(recs)
    flat = [n for n in nodes if n.record.symbol == "FLAT"][0]
    assert flat.area == 0
    assert flat.is_degenerate
    assert nodes[-1] is flat
    for n in nodes:
        if n.record.symbol != "FLAT":
            assert n.x0 < n.x1 and n.y0 < n.y1


def test_all_zero_returns_are_all_degenerate():
    nodes = layout_treemap([_rec("A", 0.0), _rec("B", 0.0)])
    assert len(nodes) == 2
    assert all(n.is_degenerate for n in nodes)


def test_single_record_fills_padded_canvas():
    (node,) = layout_treemap([_rec("ONE", -3.0)])
    assert node.x0 == pytest.approx(1.0)
    assert node.y0 == pytest.approx(1.0)
    assert node.x1 == pytest.approx(WIDTH - 1.0)
    assert node.y1 == pytest.approx(HEIGHT - 1.0)


def test_layout_requires_records():
    with pytest.raises(ValueError):
        layout_treemap([])


@pytest.mark.parametrize(
    "ret,expected",
    [
        (2.5, (0.0, 25.0, 0.0)),
        (0.0, (0.0, 0.0, 0.0)),
        (-1.2, (12.0, 0.0, 0.0)),
        (25.5, (0.0, 255.0, 0.0)),
        (-40.0, (255.0, 0.0, 0.0)),
    ],
)
def test_cell_color(ret, expected):
    got = cell_color(ret)
    assert got == pytest.approx(expected)


def test_render_svg_is_standalone(records):
    out = render_treemap(records)
    text = out.decode("utf-8")
    assert text.lstrip().startswith("<?xml")
    assert "<svg" in text
    assert 'width="1200px"' in text
    assert 'height="800px"' in text
    assert 'viewBox="0 0 1200 800"' in text
    # no linked images or remote resources
    assert "<image" not in text
    assert 'href="http' not in text
    assert "<dc:date>" not in text


def test_render_svg_is_reproducible(records):
    assert render_treemap(records) == render_treemap(records)


def test_render_png(records):
    out = render_treemap(records, fmt="png")
    assert out[:8] == b"\x89PNG\r\n\x1a\n"


def test_render_rejects_unknown_format(records):
    with pytest.raises(ValueError):
        render_treemap(records, fmt="gif")


def test_svg_root_size_ignores_nested_width_attributes():
    svg = (
        b'<?xml version="1.0"?>\n'
        b'<svg width="1200pt" height="800pt" viewBox="0 0 1200 800">'
        b'<rect width="5pt"/></svg>'
    )
    out = _svg_pixel_size(svg, 1200, 800)
    assert b'<svg width="1200px" height="800px" viewBox="0 0 1200 800">' in out
    assert b'<rect width="5pt"/>' in out
