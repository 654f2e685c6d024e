"""
Visualization Module for Genre Atlas.

Draws one frame of the genre map with matplotlib: the category ring, the
node circles (largest first) and their labels. The camera transform is
applied here and never written back into the simulation.
"""
import textwrap
from typing import Optional, Sequence

import matplotlib.pyplot as plt
from matplotlib.collections import LineCollection
from matplotlib.figure import Figure
import matplotlib.font_manager as fm
from matplotlib.patches import Circle
import numpy as np

from .categories import ANCHORS, CategoryAnchor
from .interaction import Camera
from .layout import LayoutFrame, LayoutMode, draw_order

BACKGROUND = "#0b0b12"
LABEL_MIN_RADIUS = 15.0
RING_LABEL_OFFSET = 24.0
NODE_ALPHA = 0.8


def _setup_cjk_font():
    """Genre and artist names are often CJK; use a font that can draw them if one exists."""
    cjk_fonts = [
        'Noto Sans CJK SC',
        'Noto Sans CJK JP',
        'WenQuanYi Micro Hei',
        'Source Han Sans CN',
        'Microsoft YaHei',
        'PingFang SC',
    ]
    available = {f.name for f in fm.fontManager.ttflist}
    for font_name in cjk_fonts:
        if font_name in available:
            plt.rcParams['font.sans-serif'] = [font_name] + plt.rcParams['font.sans-serif']
            plt.rcParams['axes.unicode_minus'] = False
            return font_name
    plt.rcParams['axes.unicode_minus'] = False
    return None


_setup_cjk_font()


def ring_colors(anchors: Sequence[CategoryAnchor], angles: np.ndarray) -> np.ndarray:
    """
    Colors along the ring, interpolated between neighbouring anchors by
    angle (a conic gradient). Returns an (n, 3) array in [0, 1].
    """
    ordered = sorted(anchors, key=lambda a: a.angle)
    stops = np.array([a.angle for a in ordered] + [ordered[0].angle + 2 * np.pi])
    rgb = np.array([a.color for a in ordered] + [ordered[0].color], dtype=np.float64) / 255.0

    # Fold angles into [first stop, first stop + 2pi) so interpolation wraps
    theta = np.mod(angles - stops[0], 2 * np.pi) + stops[0]
    return np.stack([np.interp(theta, stops, rgb[:, c]) for c in range(3)], axis=1)


def wrap_label(text: str, diameter: float, fontsize: float) -> str:
    """Word-wraps a label to roughly 1.8 * radius of horizontal space."""
    chars = max(4, int(diameter * 0.9 / (fontsize * 0.6)))
    return "\n".join(textwrap.wrap(text, width=chars)) or text


class GenreMapRenderer:
    """Stateless draw pass over a LayoutFrame."""

    def __init__(self, dpi: int = 100, background: str = BACKGROUND, show_labels: bool = True):
        self.dpi = dpi
        self.background = background
        self.show_labels = show_labels

    def draw(self, frame: LayoutFrame, camera: Optional[Camera] = None, hovered: Optional[str] = None) -> Figure:
        camera = camera or Camera()
        width = frame.width or 800
        height = frame.height or 800
        fig, ax = plt.subplots(figsize=(width / self.dpi, height / self.dpi), dpi=self.dpi)
        fig.patch.set_facecolor(self.background)
        ax.set_facecolor(self.background)
        ax.set_xlim(0, width)
        ax.set_ylim(height, 0)  # screen space: y grows downward
        ax.set_aspect("equal")
        ax.axis("off")
        fig.subplots_adjust(left=0, right=1, bottom=0, top=1)

        if not frame.nodes:
            ax.text(width / 2, height / 2, "No genres to show", color="#888888", ha="center", va="center")
            return fig

        if frame.mode is LayoutMode.GLOBAL and frame.container_radius > 0:
            self._draw_ring(ax, frame, camera)
        self._draw_nodes(ax, frame, camera, hovered)
        return fig

    def _draw_ring(self, ax, frame: LayoutFrame, camera: Camera) -> None:
        cx, cy = camera.apply(*frame.center)
        r = frame.container_radius * camera.k

        angles = np.linspace(0, 2 * np.pi, 361)
        xs = cx + r * np.cos(angles)
        ys = cy + r * np.sin(angles)
        points = np.stack([xs, ys], axis=1)
        segments = np.stack([points[:-1], points[1:]], axis=1)
        colors = ring_colors(list(ANCHORS.values()), (angles[:-1] + angles[1:]) / 2)
        ax.add_collection(LineCollection(segments, colors=colors, linewidths=2, alpha=0.6, zorder=1))

        label_r = r + RING_LABEL_OFFSET
        for anchor in ANCHORS.values():
            color = np.array(anchor.color) / 255.0
            ax.plot(cx + anchor.x * r, cy + anchor.y * r, "o", color=color, markersize=4, zorder=2)
            ax.text(
                cx + anchor.x * label_r,
                cy + anchor.y * label_r,
                anchor.name.upper(),
                color=color,
                fontsize=8,
                fontweight="bold",
                ha="center",
                va="center",
                zorder=2,
            )

    def _draw_nodes(self, ax, frame: LayoutFrame, camera: Camera, hovered: Optional[str]) -> None:
        for snap in draw_order(frame.nodes):
            r = snap.visual_radius * camera.k
            if r <= 0:
                continue
            x, y = camera.apply(snap.x, snap.y)
            face = np.array(snap.node.color) / 255.0
            ax.add_patch(Circle(
                (x, y), r,
                facecolor=face,
                alpha=NODE_ALPHA,
                edgecolor="white",
                linewidth=1.5 if snap.id == hovered else 0.5,
                zorder=3,
            ))

            if self.show_labels and r > LABEL_MIN_RADIUS:
                fontsize = float(np.clip(r / 4, 6, 14))
                ax.text(
                    x, y, wrap_label(snap.node.name, 2 * r, fontsize),
                    color="white",
                    fontsize=fontsize,
                    ha="center",
                    va="center",
                    zorder=4,
                )

    def save_frame(self, frame: LayoutFrame, path: str, camera: Optional[Camera] = None) -> str:
        fig = self.draw(frame, camera)
        fig.savefig(path, dpi=self.dpi, facecolor=fig.get_facecolor())
        plt.close(fig)
        return path
