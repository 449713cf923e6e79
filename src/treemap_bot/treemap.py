"""Treemap layout and rendering for daily returns.

Every record becomes one cell whose area is proportional to the absolute
daily return. Cells are green for gains and red for losses, with intensity
saturating at a 25.5% move. Output is a standalone SVG sized in px (glyphs
embedded as paths) or, on request, a PNG.
"""

from __future__ import annotations

import io
import re
from typing import List, Sequence, Tuple

import matplotlib
import squarify
from matplotlib.figure import Figure
from matplotlib.patches import Rectangle

from .logging_utils import get_logger
from .models import StockRecord, TreemapNode

log = get_logger("treemap")

WIDTH = 1200
HEIGHT = 800
PADDING = 1.0

# SVG user units are points at 72 dpi, so this keeps 1 unit == 1 pixel.
_DPI = 72
_BACKGROUND = "#1b1f24"
_LABEL_COLOR = "white"
_LABEL_FONTSIZE = 11
_LABEL_OFFSET_X = 5
_SYMBOL_OFFSET_Y = 15
_RETURN_OFFSET_Y = 30


def cell_color(daily_return: float) -> Tuple[float, float, float]:
    """Return the (r, g, b) fill on a 0-255 scale."""
    intensity = min(abs(daily_return) * 10, 255)
    if daily_return >= 0:
        return (0.0, float(intensity), 0.0)
    return (float(intensity), 0.0, 0.0)


def _inset(
    record: StockRecord, x0: float, y0: float, x1: float, y1: float, p: float
) -> TreemapNode:
    x0, y0, x1, y1 = x0 + p, y0 + p, x1 - p, y1 - p
    if x1 < x0:
        x0 = x1 = (x0 + x1) / 2
    if y1 < y0:
        y0 = y1 = (y0 + y1) / 2
    return TreemapNode(record=record, x0=x0, y0=y0, x1=x1, y1=y1)


def _svg_pixel_size(svg: bytes, width: int, height: int) -> bytes:
    """Size the root ``<svg>`` in px; matplotlib writes pt.

    The viewBox already spans ``width`` x ``height`` units, so only the
    outer size changes.
    """
    root = re.search(rb"<svg\b[^>]*>", svg)
    if root is None:
        return svg
    tag = root.group(0)
    tag = re.sub(rb'(?<=\s)width="[^"]*"', b'width="%dpx"' % width, tag, count=1)
    tag = re.sub(rb'(?<=\s)height="[^"]*"', b'height="%dpx"' % height, tag, count=1)
    return svg[: root.start()] + tag + svg[root.end() :]


def layout_treemap(
    records: Sequence[StockRecord],
    width: float = WIDTH,
    height: float = HEIGHT,
    padding: float = PADDING,
) -> List[TreemapNode]:
    """Squarify ``records`` over a ``width`` x ``height`` canvas.

    Leaves are sorted by descending ``|daily_return|`` (stable for ties).
    ``padding`` is kept around the canvas edge and between neighbouring
    cells. Zero-weight records get zero-area nodes at the bottom-right
    corner of the padded canvas.
    """
    if not records:
        raise ValueError("layout_treemap requires at least one record")

    ordered = sorted(records, key=lambda r: abs(r.daily_return), reverse=True)
    weighted = [r for r in ordered if r.daily_return != 0]
    zero = [r for r in ordered if r.daily_return == 0]

    half = padding / 2
    # Tile the canvas shrunk by the outer padding, grown back by half the
    # inner padding; each cell is then inset by that half.
    x0 = padding - half
    y0 = padding - half
    dx = (width - padding + half) - x0
    dy = (height - padding + half) - y0

    nodes: List[TreemapNode] = []
    if weighted and dx > 0 and dy > 0:
        sizes = squarify.normalize_sizes(
            [abs(r.daily_return) for r in weighted], dx, dy
        )
        rects = squarify.squarify(sizes, x0, y0, dx, dy)
        for rec, rect in zip(weighted, rects):
            nodes.append(
                _inset(
                    rec,
                    rect["x"],
                    rect["y"],
                    rect["x"] + rect["dx"],
                    rect["y"] + rect["dy"],
                    half,
                )
            )

    corner_x = width - padding
    corner_y = height - padding
    for rec in zero:
        nodes.append(TreemapNode(record=rec, x0=corner_x, y0=corner_y, x1=corner_x, y1=corner_y))

    return nodes


def render_treemap(
    records: Sequence[StockRecord],
    *,
    width: int = WIDTH,
    height: int = HEIGHT,
    fmt: str = "svg",
) -> bytes:
    """Render ``records`` as a treemap image and return the encoded bytes.

    Parameters
    ----------
    records : sequence of StockRecord
        Non-empty list of records to draw.
    width, height : int
        Canvas size in pixels.
    fmt : str
        ``"svg"`` (default) or ``"png"``.
    """
    if fmt not in {"svg", "png"}:
        raise ValueError(f"unsupported treemap format: {fmt}")

    nodes = layout_treemap(records, width, height)

    fig = Figure(figsize=(width / _DPI, height / _DPI), dpi=_DPI)
    fig.patch.set_facecolor(_BACKGROUND)
    ax = fig.add_axes((0, 0, 1, 1))
    ax.set_xlim(0, width)
    ax.set_ylim(height, 0)
    ax.axis("off")

    drawn = 0
    for node in nodes:
        if node.is_degenerate:
            continue
        r, g, b = cell_color(node.record.daily_return)
        ax.add_patch(
            Rectangle(
                (node.x0, node.y0),
                node.width,
                node.height,
                facecolor=(r / 255, g / 255, b / 255),
                edgecolor="none",
            )
        )
        ax.text(
            node.x0 + _LABEL_OFFSET_X,
            node.y0 + _SYMBOL_OFFSET_Y,
            node.record.symbol,
            color=_LABEL_COLOR,
            fontsize=_LABEL_FONTSIZE,
            va="baseline",
        )
        ax.text(
            node.x0 + _LABEL_OFFSET_X,
            node.y0 + _RETURN_OFFSET_Y,
            f"{node.record.daily_return:.1f}%",
            color=_LABEL_COLOR,
            fontsize=_LABEL_FONTSIZE,
            va="baseline",
        )
        drawn += 1

    buf = io.BytesIO()
    rc = {"svg.fonttype": "path", "svg.hashsalt": "treemap-bot"}
    with matplotlib.rc_context(rc):
        if fmt == "svg":
            fig.savefig(
                buf,
                format="svg",
                facecolor=fig.get_facecolor(),
                metadata={"Date": None},
            )
        else:
            fig.savefig(buf, format="png", facecolor=fig.get_facecolor(), dpi=_DPI)

    out = buf.getvalue()
    if fmt == "svg":
        out = _svg_pixel_size(out, width, height)

    log.info(
        "treemap_rendered format=%s cells=%d skipped=%d bytes=%d",
        fmt,
        drawn,
        len(nodes) - drawn,
        len(out),
    )
    return out
