"""
Spatial Mapping Module.

Turns a category vector into a normalized map position (the weighted centroid
of the category anchors) and a blended display color.
"""
from typing import Dict, Optional, Tuple

import numpy as np

from .categories import ANCHORS, CategoryAnchor
from .core import RGB, CategoryVector


class SpatialMapper:
    """
    Stateless projection of category vectors onto the anchor circle.

    Weights are treated as relative mass, so {Pop: 0.5, Rock: 0.5} and
    {Pop: 1, Rock: 1} land on the same point.
    """

    def __init__(self, anchors: Optional[Dict[str, CategoryAnchor]] = None):
        self.anchors = dict(anchors or ANCHORS)
        names = list(self.anchors)
        self._index = {name: i for i, name in enumerate(names)}
        self._points = np.array([[self.anchors[n].x, self.anchors[n].y] for n in names], dtype=np.float64)
        self._colors = np.array([self.anchors[n].color for n in names], dtype=np.float64)

    def _weights(self, vector: CategoryVector) -> np.ndarray:
        w = np.zeros(len(self._index), dtype=np.float64)
        for name, weight in vector.items():
            idx = self._index.get(name)
            if idx is not None and weight > 0:
                w[idx] += weight
        return w

    def position(self, vector: CategoryVector) -> Tuple[float, float]:
        """Weight-normalized centroid of the anchors, inside the unit disk."""
        w = self._weights(vector)
        total = w.sum()
        if total <= 0:
            return (0.0, 0.0)
        xy = w @ self._points / total
        return (float(xy[0]), float(xy[1]))

    def color(self, vector: CategoryVector) -> RGB:
        """Weight-normalized average of the anchor RGB channels."""
        w = self._weights(vector)
        total = w.sum()
        if total <= 0:
            return (255, 255, 255)
        rgb = np.rint(w @ self._colors / total).astype(int)
        return (int(rgb[0]), int(rgb[1]), int(rgb[2]))
