"""
Layout Engine.

A force simulation over the active node set: collision, anchor attraction,
weak many-body repulsion and a hard circular enclosure. Forces follow the
d3-force conventions (alpha-scaled velocity nudges, velocity decay, then
integration), vectorized with numpy.
"""
from dataclasses import dataclass, fields
from enum import Enum
from typing import Dict, Iterable, List, Optional, Sequence, Tuple
import math
import threading

import numpy as np
from scipy.spatial import cKDTree

from .core import Node, NodeSnapshot, SimulationNode

# Alpha used to wake the simulation for small perturbations (resize, recount)
REHEAT_ALPHA = 0.3


class LayoutMode(Enum):
    GLOBAL = "global"    # all genres, pulled toward their category anchors
    CLUSTER = "cluster"  # one genre's artists, pulled toward the center


class Phase(Enum):
    EMPTY = "empty"
    INITIALIZING = "initializing"
    SETTLING = "settling"
    IDLE = "idle"


@dataclass
class LayoutConfig:
    """Tuning constants for the simulation. Lengths are in canvas pixels."""
    alpha_decay: float = 0.04
    velocity_decay: float = 0.6
    idle_alpha: float = 0.02
    alpha_min: float = 0.001
    collide_margin: float = 2.0
    collide_strength: float = 0.9
    collide_iterations: int = 3
    anchor_strength_global: float = 0.3
    anchor_strength_cluster: float = 0.15
    charge_strength: float = -10.0
    cluster_charge_factor: float = -2.0
    charge_distance_min: float = 1.0
    attraction_ratio: float = 0.75
    container_min_ratio: float = 0.25
    container_max_ratio: float = 0.45
    capacity: int = 200
    radius_unit: float = 4.5
    radius_base: float = 2.0
    radius_cap_global: float = 0.28
    radius_cap_cluster: float = 0.40
    cluster_radius_boost: float = 2.5
    min_radius: float = 1.0
    radius_easing: float = 0.1
    hover_scale: float = 1.15
    scale_easing: float = 0.2
    enclosure_damping: float = 0.1
    spawn_jitter: float = 50.0
    seed: Optional[int] = None

    def __post_init__(self):
        for f in fields(self):
            value = getattr(self, f.name)
            if f.name in ("charge_strength", "cluster_charge_factor", "seed"):
                continue
            if value < 0:
                raise ValueError(f"LayoutConfig.{f.name} must be >= 0, got {value}")
        if not 0 < self.velocity_decay <= 1:
            raise ValueError("velocity_decay must be in (0, 1].")
        if self.collide_iterations < 1:
            raise ValueError("collide_iterations must be >= 1.")
        if self.container_min_ratio > self.container_max_ratio:
            raise ValueError("container_min_ratio cannot exceed container_max_ratio.")


@dataclass(frozen=True)
class LayoutFrame:
    """Everything a draw pass needs, captured between ticks."""
    nodes: Tuple[NodeSnapshot, ...]
    width: float
    height: float
    center: Tuple[float, float]
    container_radius: float
    mode: LayoutMode
    phase: Phase


def draw_order(snapshots: Iterable[NodeSnapshot]) -> List[NodeSnapshot]:
    """Largest first, so small nodes are painted on top. Stable on ties."""
    return sorted(snapshots, key=lambda s: -s.radius)


def hit_test(
    snapshots: Sequence[NodeSnapshot],
    x: float,
    y: float,
    prefer: Optional[str] = None,
) -> Optional[NodeSnapshot]:
    """
    First node whose visual circle contains (x, y), in simulation space.
    The preferred (hovered) node wins if it still contains the point, then
    nodes are scanned front to back.
    """
    if prefer is not None:
        for snap in snapshots:
            if snap.id == prefer and snap.contains(x, y):
                return snap
    for snap in reversed(draw_order(snapshots)):
        if snap.contains(x, y):
            return snap
    return None


class LayoutEngine:
    """
    Owns the SimulationNodes of the active node set and advances them one
    tick at a time.

    All mutation goes through this class and is serialized by a lock, so an
    active-set change never lands in the middle of a tick. Readers get
    immutable snapshots.
    """

    def __init__(self, width: float = 0, height: float = 0, config: Optional[LayoutConfig] = None):
        self.config = config or LayoutConfig()
        self._lock = threading.RLock()
        self._rng = np.random.default_rng(self.config.seed)
        self._width = float(width)
        self._height = float(height)
        self._mode = LayoutMode.GLOBAL
        self._data: Tuple[Node, ...] = ()
        self._spawning: frozenset = frozenset()
        self._origin: Optional[Tuple[float, float]] = None
        self._nodes: List[SimulationNode] = []
        self._hovered: Optional[str] = None
        self._alpha = 0.0
        self._phase = Phase.EMPTY
        self._container_radius = 0.0
        self.ticks = 0

    # --- Properties ---

    @property
    def phase(self) -> Phase:
        return self._phase

    @property
    def alpha(self) -> float:
        return self._alpha

    @property
    def mode(self) -> LayoutMode:
        return self._mode

    @property
    def width(self) -> float:
        return self._width

    @property
    def height(self) -> float:
        return self._height

    @property
    def center(self) -> Tuple[float, float]:
        return (self._width / 2, self._height / 2)

    @property
    def container_radius(self) -> float:
        return self._container_radius

    @property
    def attraction_radius(self) -> float:
        return self._container_radius * self.config.attraction_ratio

    @property
    def hovered(self) -> Optional[str]:
        return self._hovered

    def __len__(self) -> int:
        return len(self._nodes)

    # --- Sizing ---

    def container_radius_for(self, n: int) -> float:
        """
        Ring radius for n nodes: sparse sets get a tighter ring, large sets
        grow toward the maximum. Cluster mode always fills the screen.
        """
        min_dim = min(self._width, self._height)
        if min_dim <= 0:
            return 0.0
        max_r = min_dim * self.config.container_max_ratio
        if self._mode is LayoutMode.CLUSTER:
            return max_r
        min_r = min_dim * self.config.container_min_ratio
        ratio = min(1.0, math.sqrt(n / self.config.capacity))
        return min_r + (max_r - min_r) * ratio

    def radius_for(self, count: int, n: int, container_radius: Optional[float] = None) -> float:
        """
        Circle radius for a node: area grows with count, and the whole set
        scales inversely with node count so five nodes render much larger
        than a hundred and fifty.
        """
        cfg = self.config
        if container_radius is None:
            container_radius = self.container_radius_for(n)
        unit = min(self._width, self._height) / 1000
        dynamic_scale = min(2.5, max(0.4, 6.0 / math.sqrt(n + 20)))
        cluster = self._mode is LayoutMode.CLUSTER
        boost = cfg.cluster_radius_boost if cluster else 1.0

        radius = (math.sqrt(max(count, 0)) * cfg.radius_unit * unit + cfg.radius_base * unit) * dynamic_scale * boost
        cap = cfg.radius_cap_cluster if cluster else cfg.radius_cap_global
        radius = max(radius, cfg.min_radius)
        return min(radius, container_radius * cap)

    # --- Mutation ---

    def resize(self, width: float, height: float) -> None:
        with self._lock:
            if (width, height) == (self._width, self._height):
                return
            self._width = float(width)
            self._height = float(height)
            was_empty = self._phase is Phase.EMPTY
            self._rebuild(reset=was_empty)
            if not was_empty:
                self.reheat(REHEAT_ALPHA)

    def set_nodes(
        self,
        nodes: Sequence[Node],
        mode: LayoutMode = LayoutMode.GLOBAL,
        spawning: Iterable[str] = (),
        origin: Optional[Tuple[float, float]] = None,
    ) -> None:
        """
        Replaces the active node set. State is carried over for ids that
        already exist. When only counts change (same ids, same mode) the
        simulation keeps running in its current phase; any other change
        restarts it from INITIALIZING.
        """
        with self._lock:
            data = tuple(nodes)
            ids = [n.id for n in data]
            same_set = (
                mode is self._mode
                and self._phase is not Phase.EMPTY
                and len(ids) == len(self._data)
                and set(ids) == {n.id for n in self._data}
            )
            recounted = same_set and [n.count for n in data] != [n.count for n in self._data]
            self._data = data
            self._mode = mode
            self._spawning = frozenset(spawning)
            self._origin = origin
            self._rebuild(reset=not same_set)
            if recounted:
                self.reheat(REHEAT_ALPHA)

    def set_hovered(self, node_id: Optional[str]) -> None:
        with self._lock:
            self._hovered = node_id

    def reheat(self, alpha: float = 1.0) -> None:
        with self._lock:
            if self._phase is Phase.EMPTY:
                return
            self._alpha = max(self._alpha, alpha)
            if self._phase is Phase.IDLE:
                self._phase = Phase.SETTLING

    def _rebuild(self, reset: bool) -> None:
        if self._width <= 0 or self._height <= 0 or not self._data:
            if self._phase is not Phase.EMPTY:
                print("[LayoutEngine] No container or no nodes; simulation paused.")
            self._nodes = []
            self._phase = Phase.EMPTY
            self._alpha = 0.0
            self._container_radius = 0.0
            return

        n = len(self._data)
        self._container_radius = self.container_radius_for(n)
        cx, cy = self.center
        attraction = self.attraction_radius
        existing: Dict[str, SimulationNode] = {s.id: s for s in self._nodes}

        built = []
        for node in self._data:
            radius = self.radius_for(node.count, n, self._container_radius)
            if self._mode is LayoutMode.GLOBAL and node.anchor is not None:
                tx = cx + node.anchor[0] * attraction
                ty = cy + node.anchor[1] * attraction
            else:
                tx, ty = cx, cy

            prev = existing.get(node.id)
            if prev is not None and math.isfinite(prev.x) and math.isfinite(prev.y):
                sim = SimulationNode(
                    node=node, x=prev.x, y=prev.y, vx=prev.vx, vy=prev.vy,
                    target_x=tx, target_y=ty, radius=radius,
                    current_radius=prev.current_radius, current_scale=prev.current_scale,
                    spawning=prev.spawning or node.id in self._spawning,
                )
            else:
                sx, sy = self._origin if self._origin is not None else (tx, ty)
                jitter = (self._rng.random(2) - 0.5) * self.config.spawn_jitter
                sim = SimulationNode(
                    node=node, x=sx + jitter[0], y=sy + jitter[1],
                    target_x=tx, target_y=ty, radius=radius,
                    current_radius=0.0, spawning=True,
                )
            built.append(sim)

        self._nodes = built
        if reset:
            carried = sum(1 for s in built if s.id in existing)
            print(
                f"[LayoutEngine] Active set: {n} nodes ({self._mode.value}), "
                f"{carried} carried over, container r={self._container_radius:.1f}."
            )
            self._phase = Phase.INITIALIZING
            self._alpha = 1.0

    # --- Simulation ---

    def tick(self) -> bool:
        """
        Advances the simulation by one step. Returns False when there is
        nothing to simulate.
        """
        with self._lock:
            if self._phase is Phase.EMPTY or not self._nodes:
                return False
            if self._phase is Phase.INITIALIZING:
                self._phase = Phase.SETTLING

            cfg = self.config
            self._alpha += (cfg.idle_alpha - self._alpha) * cfg.alpha_decay
            alpha = self._alpha

            nodes = self._nodes
            pos = np.array([[s.x, s.y] for s in nodes], dtype=np.float64)
            vel = np.array([[s.vx, s.vy] for s in nodes], dtype=np.float64)
            target = np.array([[s.target_x, s.target_y] for s in nodes], dtype=np.float64)
            radius = np.array([s.radius for s in nodes], dtype=np.float64)
            current = np.array([s.current_radius for s in nodes], dtype=np.float64)
            scale = np.array([s.current_scale for s in nodes], dtype=np.float64)

            self._collide(pos, vel, radius)
            self._attract(pos, vel, target, alpha)
            self._charge(pos, vel, radius, alpha)

            vel *= 1 - cfg.velocity_decay
            pos += vel

            current = self._ease(current, radius, cfg.radius_easing, 0.1)
            hover_target = np.array(
                [cfg.hover_scale if s.id == self._hovered else 1.0 for s in nodes], dtype=np.float64
            )
            scale = self._ease(scale, hover_target, cfg.scale_easing, 0.001)

            self._enclose(pos, vel, np.maximum(radius, current))

            for i, s in enumerate(nodes):
                s.x, s.y = float(pos[i, 0]), float(pos[i, 1])
                s.vx, s.vy = float(vel[i, 0]), float(vel[i, 1])
                s.current_radius = float(current[i])
                s.current_scale = float(scale[i])
                if s.spawning and s.current_radius == s.radius:
                    s.spawning = False

            self.ticks += 1
            if self._phase is Phase.SETTLING and self._alpha - cfg.idle_alpha < cfg.alpha_min:
                self._phase = Phase.IDLE
            return True

    def run(self, ticks: int) -> int:
        """Runs up to `ticks` steps (e.g. to pre-settle before a still render)."""
        done = 0
        for _ in range(ticks):
            if not self.tick():
                break
            done += 1
        return done

    @staticmethod
    def _ease(current: np.ndarray, target: np.ndarray, rate: float, snap: float) -> np.ndarray:
        diff = target - current
        return np.where(np.abs(diff) > snap, current + diff * rate, target)

    def _attract(self, pos: np.ndarray, vel: np.ndarray, target: np.ndarray, alpha: float) -> None:
        cfg = self.config
        strength = cfg.anchor_strength_global if self._mode is LayoutMode.GLOBAL else cfg.anchor_strength_cluster
        vel += (target - pos) * (strength * alpha)

    def _charge(self, pos: np.ndarray, vel: np.ndarray, radius: np.ndarray, alpha: float) -> None:
        n = len(pos)
        if n < 2:
            return
        cfg = self.config
        if self._mode is LayoutMode.CLUSTER:
            strength = radius * cfg.cluster_charge_factor
        else:
            strength = np.full(n, cfg.charge_strength)

        delta = pos[None, :, :] - pos[:, None, :]  # other - self
        l2 = np.einsum("ijk,ijk->ij", delta, delta)
        dmin2 = cfg.charge_distance_min ** 2
        l2 = np.where(l2 < dmin2, np.sqrt(dmin2 * l2), l2)
        np.fill_diagonal(l2, np.inf)
        l2[l2 == 0] = np.inf
        w = strength[None, :] * alpha / l2
        vel += np.einsum("ijk,ij->ik", delta, w)

    def _collide(self, pos: np.ndarray, vel: np.ndarray, radius: np.ndarray) -> None:
        n = len(pos)
        if n < 2:
            return
        cfg = self.config
        r = radius + cfg.collide_margin
        reach = 2 * float(r.max())
        r2 = r * r

        for _ in range(cfg.collide_iterations):
            predicted = pos + vel
            pairs = cKDTree(predicted).query_pairs(reach, output_type="ndarray")
            if len(pairs) == 0:
                return
            i, j = pairs[:, 0], pairs[:, 1]
            d = predicted[i] - predicted[j]
            l = np.einsum("ij,ij->i", d, d)
            rr = r[i] + r[j]
            hit = l < rr * rr
            if not hit.any():
                return
            i, j, d, l, rr = i[hit], j[hit], d[hit], l[hit], rr[hit]

            same = l == 0
            if same.any():
                d[same] = (self._rng.random((int(same.sum()), 2)) - 0.5) * 1e-6
                l[same] = np.einsum("ij,ij->i", d[same], d[same])

            dist = np.sqrt(l)
            push = d * ((rr - dist) / dist * cfg.collide_strength)[:, None]
            share = r2[j] / (r2[i] + r2[j])
            np.add.at(vel, i, push * share[:, None])
            np.add.at(vel, j, -push * (1 - share)[:, None])

    def _enclose(self, pos: np.ndarray, vel: np.ndarray, reach_radius: np.ndarray) -> None:
        limit = self._container_radius
        center = np.array(self.center)
        offset = pos - center
        dist = np.hypot(offset[:, 0], offset[:, 1])
        over = dist + reach_radius > limit
        if not over.any():
            return
        allowed = np.maximum(0.0, limit - reach_radius[over])
        d = dist[over]
        direction = np.zeros_like(offset[over])
        moving = d > 0
        direction[moving] = offset[over][moving] / d[moving][:, None]
        pos[over] = center + direction * allowed[:, None]
        vel[over] *= self.config.enclosure_damping

    # --- Reading ---

    def snapshot(self) -> Tuple[NodeSnapshot, ...]:
        with self._lock:
            return tuple(
                NodeSnapshot(
                    node=s.node, x=s.x, y=s.y, radius=s.radius,
                    current_radius=s.current_radius, current_scale=s.current_scale,
                    spawning=s.spawning,
                )
                for s in self._nodes
            )

    def frame(self) -> LayoutFrame:
        with self._lock:
            return LayoutFrame(
                nodes=self.snapshot(),
                width=self._width,
                height=self._height,
                center=self.center,
                container_radius=self._container_radius,
                mode=self._mode,
                phase=self._phase,
            )

    def find(self, x: float, y: float) -> Optional[NodeSnapshot]:
        """Hit test in simulation space against the live positions."""
        return hit_test(self.snapshot(), x, y, prefer=self._hovered)
