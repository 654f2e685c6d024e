"""
Core Data Structures for the Genre Atlas Project.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple, Union
import datetime

# Category name -> weight in [0, 1]
CategoryVector = Dict[str, float]
RGB = Tuple[int, int, int]

TOP_TRACKS_SAMPLE = 5


def parse_timestamp(value: Union[str, datetime.datetime, datetime.date, None]) -> Optional[datetime.datetime]:
    """
    Normalizes an "added" timestamp to an aware UTC datetime.
    Anything that cannot be read as a date returns None.
    """
    if value is None:
        return None
    if isinstance(value, datetime.datetime):
        stamp = value
    elif isinstance(value, datetime.date):
        stamp = datetime.datetime(value.year, value.month, value.day)
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            stamp = datetime.datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None

    if stamp.tzinfo is None:
        stamp = stamp.replace(tzinfo=datetime.timezone.utc)
    return stamp.astimezone(datetime.timezone.utc)


@dataclass(frozen=True)
class ArtistRef:
    """An (artist-id, artist-name) credit on a track."""
    id: str
    name: str


@dataclass(frozen=True)
class Track:
    """A single saved track. Immutable once fetched."""
    id: str
    name: str
    artists: Tuple[ArtistRef, ...]
    album: str
    album_id: Optional[str] = None
    duration_ms: Optional[int] = None
    added_at: Optional[Union[datetime.datetime, str]] = None
    uri: Optional[str] = None

    def __post_init__(self):
        # Unreadable dates become None, naive ones are read as UTC
        object.__setattr__(self, "added_at", parse_timestamp(self.added_at))

    @property
    def primary_artist(self) -> Optional[ArtistRef]:
        return self.artists[0] if self.artists else None

    @classmethod
    def from_spotify(cls, item: Dict[str, Any]) -> "Track":
        """
        Builds a Track from a saved-track item ({"added_at", "track"}) or a
        bare track object that carries its own "added_at".
        """
        raw = item.get("track") or item
        album = raw.get("album") or {}
        artists = tuple(
            ArtistRef(id=str(a.get("id") or ""), name=a.get("name") or "")
            for a in raw.get("artists") or []
            if a.get("id")
        )
        return cls(
            id=str(raw.get("id") or ""),
            name=raw.get("name") or "",
            artists=artists,
            album=album.get("name") or "",
            album_id=album.get("id") or album.get("uri"),
            duration_ms=raw.get("duration_ms"),
            added_at=parse_timestamp(item.get("added_at", raw.get("added_at"))),
            uri=raw.get("uri"),
        )


@dataclass(frozen=True)
class ArtistGenreInfo:
    """Artist metadata supplied by the fetch layer. Read-only."""
    name: str
    genres: Tuple[str, ...] = ()

    @classmethod
    def from_spotify(cls, artist: Dict[str, Any]) -> "ArtistGenreInfo":
        return cls(name=artist.get("name") or "", genres=tuple(artist.get("genres") or ()))


@dataclass(frozen=True)
class Node:
    """
    A genre node or an artist node of the two-level hierarchy.

    Genre nodes carry an anchor, a category vector and their artist children.
    Artist nodes are leaves and remember the id of the genre they belong to.
    """
    id: str
    name: str
    count: int
    artists: Tuple[str, ...] = ()
    albums: Tuple[str, ...] = ()
    anchor: Optional[Tuple[float, float]] = None
    color: RGB = (255, 255, 255)
    tracks: Tuple[Track, ...] = ()
    children: Tuple["Node", ...] = ()
    category: Optional[CategoryVector] = field(default=None, hash=False)
    parent: Optional[str] = None

    def __post_init__(self):
        if self.count < 0:
            raise ValueError(f"Node count must be >= 0, got {self.count}")

    @property
    def is_leaf(self) -> bool:
        return not self.children

    @property
    def artist_count(self) -> int:
        return len(self.artists)

    @property
    def album_count(self) -> int:
        return len(self.albums)

    @property
    def top_tracks(self) -> Tuple[Track, ...]:
        return self.tracks[:TOP_TRACKS_SAMPLE]

    @property
    def key(self) -> Tuple[Optional[str], str]:
        """Identity across the whole hierarchy (ids are only unique among siblings)."""
        return (self.parent, self.id)


@dataclass(eq=False)
class SimulationNode:
    """
    A Node plus the mutable physics state the LayoutEngine owns.
    Positions and radii are in simulation (canvas pixel) space.
    """
    node: Node
    x: float
    y: float
    target_x: float
    target_y: float
    radius: float
    vx: float = 0.0
    vy: float = 0.0
    current_radius: float = 0.0
    current_scale: float = 1.0
    spawning: bool = False

    @property
    def id(self) -> str:
        return self.node.id

    @property
    def name(self) -> str:
        return self.node.name

    @property
    def count(self) -> int:
        return self.node.count

    @property
    def color(self) -> RGB:
        return self.node.color


@dataclass(frozen=True)
class NodeSnapshot:
    """Read-only view of one simulated node, as seen by renderers and hit-testing."""
    node: Node
    x: float
    y: float
    radius: float
    current_radius: float
    current_scale: float
    spawning: bool

    @property
    def id(self) -> str:
        return self.node.id

    @property
    def visual_radius(self) -> float:
        return self.current_radius * self.current_scale

    def contains(self, x: float, y: float) -> bool:
        dx = x - self.x
        dy = y - self.y
        r = self.visual_radius
        return dx * dx + dy * dy < r * r


@dataclass
class LibraryStats:
    """Aggregate numbers describing one analysis run."""
    genre_count: int = 0
    artist_count: int = 0
    album_count: int = 0
    contribution_count: int = 0
    first_added: Optional[datetime.datetime] = None
    last_added: Optional[datetime.datetime] = None
    top_genres: List[Tuple[str, int]] = field(default_factory=list)
