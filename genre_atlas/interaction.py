"""
Interaction Controller.

Owns the view state (drill-down stack, camera, time cursor) and turns
pointer input into navigation. It never touches node physics directly:
changes to the active set are sent to the LayoutEngine as whole sets.
"""
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Callable, List, Optional, Sequence, Tuple
import datetime
import threading

from .core import Node, NodeSnapshot
from .layout import LayoutEngine, LayoutMode, hit_test
from .temporal import TemporalFilter, TemporalFrame, Timestamp

MIN_ZOOM = 0.1
MAX_ZOOM = 12.0


class EventType(Enum):
    HOVER_ENTER = "hover_enter"
    HOVER_LEAVE = "hover_leave"
    DRILL_DOWN = "drill_down"
    DRILL_UP = "drill_up"
    LEAF_SELECTED = "leaf_selected"
    BACKGROUND_CLICK = "background_click"
    CURSOR_CHANGED = "cursor_changed"
    PLAYBACK_STOPPED = "playback_stopped"


@dataclass(frozen=True)
class InteractionEvent:
    type: EventType
    node: Optional[Node] = None
    cursor: Optional[datetime.datetime] = None


@dataclass(frozen=True)
class Camera:
    """Screen = simulation * k + (x, y). Applied only at draw and hit-test time."""
    x: float = 0.0
    y: float = 0.0
    k: float = 1.0

    def apply(self, px: float, py: float) -> Tuple[float, float]:
        return (px * self.k + self.x, py * self.k + self.y)

    def invert(self, sx: float, sy: float) -> Tuple[float, float]:
        return ((sx - self.x) / self.k, (sy - self.y) / self.k)

    def translated(self, dx: float, dy: float) -> "Camera":
        return replace(self, x=self.x + dx, y=self.y + dy)

    def scaled(self, factor: float, sx: float, sy: float) -> "Camera":
        """Zooms about the screen point (sx, sy), which stays fixed."""
        k = min(MAX_ZOOM, max(MIN_ZOOM, self.k * factor))
        px, py = self.invert(sx, sy)
        return Camera(x=sx - px * k, y=sy - py * k, k=k)


@dataclass(frozen=True)
class ViewState:
    stack: Tuple[str, ...] = ()
    active: Tuple[Node, ...] = ()
    camera: Camera = field(default_factory=Camera)
    cursor: Optional[datetime.datetime] = None
    time_range: Optional[Tuple[datetime.datetime, datetime.datetime]] = None

    @property
    def drilled(self) -> Optional[str]:
        return self.stack[-1] if self.stack else None


Listener = Callable[[InteractionEvent], None]


class InteractionController:
    """
    State machine over TOP_LEVEL and DRILLED(name).

    Every operation returns the events it emitted, and the same events are
    pushed to subscribers in order.
    """

    def __init__(self, engine: LayoutEngine, temporal: Optional[TemporalFilter] = None):
        self.engine = engine
        self.temporal = temporal
        self._lock = threading.RLock()
        self._hierarchy: Tuple[Node, ...] = ()
        self._stack: List[str] = []
        self._frame: Optional[TemporalFrame] = None
        self._camera = Camera()
        self._hovered: Optional[Node] = None
        self._selected: Optional[Node] = None
        self._listeners: List[Listener] = []

    # --- Subscriptions ---

    def subscribe(self, callback: Listener) -> Callable[[], None]:
        self._listeners.append(callback)

        def unsubscribe():
            if callback in self._listeners:
                self._listeners.remove(callback)
        return unsubscribe

    def _emit(self, events: List[InteractionEvent]) -> List[InteractionEvent]:
        for event in events:
            for listener in list(self._listeners):
                listener(event)
        return events

    # --- State ---

    @property
    def camera(self) -> Camera:
        return self._camera

    @property
    def hovered(self) -> Optional[Node]:
        return self._hovered

    @property
    def selected(self) -> Optional[Node]:
        return self._selected

    @property
    def view(self) -> ViewState:
        with self._lock:
            return ViewState(
                stack=tuple(self._stack),
                active=self._frame.nodes if self._frame else (),
                camera=self._camera,
                cursor=self.temporal.cursor_datetime if self.temporal else None,
                time_range=self.temporal.time_range if self.temporal else None,
            )

    def _level(self) -> Tuple[Node, ...]:
        """Unfiltered nodes of the current navigation level."""
        nodes = self._hierarchy
        for name in self._stack:
            parent = next((n for n in nodes if n.id == name), None)
            if parent is None:
                return ()
            nodes = parent.children
        return nodes

    def _apply(self, origin: Optional[Tuple[float, float]] = None, incremental: bool = False) -> List[InteractionEvent]:
        """Recomputes the active set and hands it to the engine."""
        level = self._level()
        previous = self._frame if incremental else None
        if self.temporal is not None:
            frame = self.temporal.current(level, previous)
        else:
            frame = TemporalFrame(nodes=tuple(level), cursor=None)
        self._frame = frame

        mode = LayoutMode.CLUSTER if self._stack else LayoutMode.GLOBAL
        self.engine.set_nodes(frame.nodes, mode, spawning=frame.spawned, origin=origin)

        events = []
        if self._hovered is not None and self._hovered.id not in frame.ids:
            events.append(InteractionEvent(EventType.HOVER_LEAVE, node=self._hovered))
            self._hovered = None
            self.engine.set_hovered(None)
        return events

    # --- Transitions ---

    def load(self, nodes: Sequence[Node]) -> List[InteractionEvent]:
        """
        Installs a freshly built hierarchy and returns to the top level.
        A node hovered before the load is reported with HOVER_LEAVE.
        """
        with self._lock:
            self._hierarchy = tuple(nodes)
            self._stack = []
            self._selected = None
            events = []
            if self._hovered is not None:
                events.append(InteractionEvent(EventType.HOVER_LEAVE, node=self._hovered))
            self._hovered = None
            self.engine.set_hovered(None)
            if self.temporal is not None:
                self.temporal.index(self._hierarchy)
            self._frame = None
            events.extend(self._apply())
        print(f"[InteractionController] Loaded {len(self._hierarchy)} genre nodes.")
        return self._emit(events)

    def _pick(self, sx: float, sy: float) -> Optional[NodeSnapshot]:
        px, py = self._camera.invert(sx, sy)
        prefer = self._hovered.id if self._hovered is not None else None
        return hit_test(self.engine.snapshot(), px, py, prefer=prefer)

    def pointer_move(self, sx: float, sy: float) -> List[InteractionEvent]:
        with self._lock:
            hit = self._pick(sx, sy)
            hit_id = hit.id if hit is not None else None
            current = self._hovered.id if self._hovered is not None else None
            if hit_id == current:
                return []
            events = []
            if self._hovered is not None:
                events.append(InteractionEvent(EventType.HOVER_LEAVE, node=self._hovered))
            self._hovered = hit.node if hit is not None else None
            if hit is not None:
                events.append(InteractionEvent(EventType.HOVER_ENTER, node=hit.node))
            self.engine.set_hovered(hit_id)
        return self._emit(events)

    def click(self, sx: float, sy: float) -> List[InteractionEvent]:
        """
        Node with children: drill down. Leaf: select it. Background: only
        clears the selection, never navigates.
        """
        with self._lock:
            hit = self._pick(sx, sy)
            if hit is None:
                self._selected = None
                events = [InteractionEvent(EventType.BACKGROUND_CLICK)]
            elif hit.node.children:
                node = next((n for n in self._level() if n.id == hit.id), hit.node)
                self._stack.append(node.id)
                self._selected = None
                events = self._apply(origin=(hit.x, hit.y))
                events.append(InteractionEvent(EventType.DRILL_DOWN, node=node))
            else:
                self._selected = hit.node
                events = [InteractionEvent(EventType.LEAF_SELECTED, node=hit.node)]
        return self._emit(events)

    def drill(self, node_id: str) -> List[InteractionEvent]:
        """Programmatic drill-down by id, for surfaces without a pointer."""
        with self._lock:
            node = next((n for n in self._level() if n.id == node_id), None)
            if node is None or not node.children:
                return []
            snap = next((s for s in self.engine.snapshot() if s.id == node_id), None)
            self._stack.append(node.id)
            self._selected = None
            events = self._apply(origin=(snap.x, snap.y) if snap is not None else None)
            events.append(InteractionEvent(EventType.DRILL_DOWN, node=node))
        return self._emit(events)

    def back(self) -> List[InteractionEvent]:
        with self._lock:
            if not self._stack:
                return []
            name = self._stack.pop()
            parent = next((n for n in self._level() if n.id == name), None)
            self._selected = None
            events = self._apply()
            events.append(InteractionEvent(EventType.DRILL_UP, node=parent))
        return self._emit(events)

    # --- Camera ---

    def pan(self, dx: float, dy: float) -> Camera:
        self._camera = self._camera.translated(dx, dy)
        return self._camera

    def zoom(self, factor: float, sx: float, sy: float) -> Camera:
        if factor <= 0:
            raise ValueError(f"Zoom factor must be positive, got {factor}")
        self._camera = self._camera.scaled(factor, sx, sy)
        return self._camera

    # --- Time ---

    def _cursor_events(self) -> List[InteractionEvent]:
        events = self._apply(incremental=True)
        events.append(InteractionEvent(EventType.CURSOR_CHANGED, cursor=self.temporal.cursor_datetime))
        return events

    def set_cursor(self, value: Optional[Timestamp]) -> List[InteractionEvent]:
        if self.temporal is None:
            return []
        with self._lock:
            self.temporal.set_cursor(value)
            events = self._cursor_events()
        return self._emit(events)

    def set_playback(self, rate: Optional[float]) -> List[InteractionEvent]:
        if self.temporal is None:
            return []
        with self._lock:
            before = self.temporal.cursor
            self.temporal.set_playback(rate)
            events = self._cursor_events() if self.temporal.cursor != before else []
        return self._emit(events)

    def advance(self, seconds: float) -> List[InteractionEvent]:
        """Moves playback forward; called once per frame by the render loop."""
        if self.temporal is None:
            return []
        with self._lock:
            was_playing = self.temporal.playing
            if not self.temporal.advance(seconds):
                return []
            events = self._cursor_events()
            if was_playing and not self.temporal.playing:
                events.append(InteractionEvent(EventType.PLAYBACK_STOPPED, cursor=self.temporal.cursor_datetime))
        return self._emit(events)
