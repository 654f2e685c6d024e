"""
Temporal Filter.

Replays library growth: a node's active count at time T is the number of its
contributions added at or before T, plus the contributions with no "added"
date, which are always active.
"""
from bisect import bisect_right
from dataclasses import dataclass, field, replace
from typing import Dict, FrozenSet, Iterable, Optional, Sequence, Tuple, Union
import datetime

from .core import Node

Timestamp = Union[datetime.datetime, float, int]


def to_seconds(value: Timestamp) -> float:
    """POSIX seconds for a datetime (naive values are read as UTC) or a number."""
    if isinstance(value, datetime.datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=datetime.timezone.utc)
        return value.timestamp()
    return float(value)


def from_seconds(value: float) -> datetime.datetime:
    return datetime.datetime.fromtimestamp(value, tz=datetime.timezone.utc)


@dataclass(frozen=True)
class _Timeline:
    stamps: Tuple[float, ...]
    undated: int

    def count_at(self, cursor: Optional[float]) -> int:
        if cursor is None:
            return len(self.stamps) + self.undated
        return bisect_right(self.stamps, cursor) + self.undated


@dataclass(frozen=True)
class TemporalFrame:
    """The active node set at one cursor value."""
    nodes: Tuple[Node, ...]
    cursor: Optional[float]
    spawned: FrozenSet[str] = field(default_factory=frozenset)
    despawned: FrozenSet[str] = field(default_factory=frozenset)

    @property
    def ids(self) -> Tuple[str, ...]:
        return tuple(n.id for n in self.nodes)


class TemporalFilter:
    """
    Per-node sorted contribution timestamps, a time cursor and a playback
    clock. Filtering itself is pure: it depends only on the nodes and the
    cursor it is given.
    """

    def __init__(self, nodes: Sequence[Node] = ()):
        self._timelines: Dict[Tuple[Optional[str], str], _Timeline] = {}
        self._range: Optional[Tuple[float, float]] = None
        self._cursor: Optional[float] = None
        self._rate: float = 0.0
        self._playing = False
        self.index(nodes)

    def index(self, nodes: Sequence[Node]) -> None:
        """(Re)builds timelines for a hierarchy and resets the cursor to the end."""
        self._timelines.clear()
        low, high = None, None
        for node in self._walk(nodes):
            stamps = sorted(to_seconds(t.added_at) for t in node.tracks if t.added_at is not None)
            self._timelines[node.key] = _Timeline(stamps=tuple(stamps), undated=len(node.tracks) - len(stamps))
            if stamps:
                low = stamps[0] if low is None else min(low, stamps[0])
                high = stamps[-1] if high is None else max(high, stamps[-1])

        self._range = (low, high) if low is not None else None
        self._cursor = high
        self._playing = False

    @staticmethod
    def _walk(nodes: Iterable[Node]) -> Iterable[Node]:
        for node in nodes:
            yield node
            yield from node.children

    # --- Queries ---

    @property
    def time_range(self) -> Optional[Tuple[datetime.datetime, datetime.datetime]]:
        if self._range is None:
            return None
        return (from_seconds(self._range[0]), from_seconds(self._range[1]))

    @property
    def cursor(self) -> Optional[float]:
        return self._cursor

    @property
    def cursor_datetime(self) -> Optional[datetime.datetime]:
        return None if self._cursor is None else from_seconds(self._cursor)

    @property
    def playing(self) -> bool:
        return self._playing

    @property
    def rate(self) -> float:
        return self._rate

    def active_count(self, node: Node, cursor: Optional[Timestamp] = None) -> int:
        """
        Contributions of `node` active at `cursor`. Nodes that were never
        indexed keep their full count.
        """
        timeline = self._timelines.get(node.key)
        if timeline is None:
            return node.count
        return timeline.count_at(None if cursor is None else to_seconds(cursor))

    def filter(
        self,
        nodes: Sequence[Node],
        cursor: Optional[Timestamp] = None,
        previous: Optional[TemporalFrame] = None,
    ) -> TemporalFrame:
        """
        Active nodes at `cursor` with their counts replaced by the active
        count. Nodes at zero are dropped. With a previous frame, reports
        which ids just spawned (0 -> >0) and which despawned.
        """
        at = None if cursor is None else to_seconds(cursor)
        active = []
        for node in nodes:
            count = self.active_count(node, at)
            if count <= 0:
                continue
            active.append(node if count == node.count else replace(node, count=count))

        ids = frozenset(n.id for n in active)
        if previous is None:
            spawned, despawned = frozenset(), frozenset()
        else:
            before = frozenset(previous.ids)
            spawned, despawned = ids - before, before - ids
        return TemporalFrame(nodes=tuple(active), cursor=at, spawned=spawned, despawned=despawned)

    def current(self, nodes: Sequence[Node], previous: Optional[TemporalFrame] = None) -> TemporalFrame:
        return self.filter(nodes, self._cursor, previous)

    # --- Cursor control ---

    def set_cursor(self, value: Optional[Timestamp]) -> None:
        """Absolute scrub. Values outside the discovered range are allowed."""
        self._cursor = None if value is None else to_seconds(value)

    def set_playback(self, rate: Optional[float]) -> None:
        """
        Starts playback at `rate` timeline seconds per wall-clock second;
        None or 0 pauses. Starting from the end rewinds to the beginning.
        """
        if rate is not None and rate < 0:
            raise ValueError(f"Playback rate must be >= 0, got {rate}")
        if not rate or self._range is None:
            self._playing = False
            self._rate = rate or 0.0
            return
        self._rate = float(rate)
        low, high = self._range
        if self._cursor is None or self._cursor >= high:
            self._cursor = low
        self._playing = True

    def advance(self, elapsed: float) -> bool:
        """
        Moves the cursor forward by `elapsed` wall seconds of playback.
        Stops (without wrapping) once the maximum timestamp is reached.
        Returns True when the cursor moved.
        """
        if not self._playing or self._range is None or elapsed <= 0:
            return False
        high = self._range[1]
        start = self._cursor if self._cursor is not None else self._range[0]
        self._cursor = min(high, start + self._rate * elapsed)
        if self._cursor >= high:
            self._playing = False
            print(f"[TemporalFilter] Playback reached {from_seconds(high):%Y-%m-%d}; stopped.")
        return self._cursor != start
