"""
Aggregation Pipeline.

Turns a flat list of tracks plus artist genre metadata into the two-level
hierarchy (genre -> artists) of sized, positioned and colored nodes.
"""
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Sequence

from .classifier import GenreClassifier
from .core import ArtistGenreInfo, LibraryStats, Node, Track
from .mapper import SpatialMapper

TOP_N_GENRES = 200
DEFAULT_CHUNK_SIZE = 2000


@dataclass
class _ArtistBin:
    name: str
    tracks: List[Track] = field(default_factory=list)


@dataclass
class _GenreBin:
    count: int = 0
    artists: Dict[str, _ArtistBin] = field(default_factory=dict)
    albums: Dict[str, None] = field(default_factory=dict)
    tracks: List[Track] = field(default_factory=list)

    def add(self, track: Track, artist_id: str, artist_name: str) -> None:
        self.count += 1
        self.tracks.append(track)
        if track.album:
            self.albums.setdefault(track.album, None)
        slot = self.artists.get(artist_id)
        if slot is None:
            slot = self.artists[artist_id] = _ArtistBin(name=artist_name)
        slot.tracks.append(track)

    def merge(self, other: "_GenreBin") -> None:
        self.count += other.count
        self.tracks.extend(other.tracks)
        for album in other.albums:
            self.albums.setdefault(album, None)
        for artist_id, slot in other.artists.items():
            mine = self.artists.get(artist_id)
            if mine is None:
                self.artists[artist_id] = _ArtistBin(name=slot.name, tracks=list(slot.tracks))
            else:
                mine.tracks.extend(slot.tracks)


def _genre_labels(info: ArtistGenreInfo) -> List[str]:
    """Case-folded, de-duplicated labels in their original order."""
    seen: Dict[str, None] = {}
    for label in info.genres:
        g = " ".join((label or "").lower().split())
        if g:
            seen.setdefault(g, None)
    return list(seen)


def _accumulate(tracks: Sequence[Track], artist_map: Mapping[str, ArtistGenreInfo]) -> Dict[str, _GenreBin]:
    bins: Dict[str, _GenreBin] = {}
    for track in tracks:
        for artist in track.artists:
            info = artist_map.get(artist.id)
            if info is None:
                continue
            name = info.name or artist.name
            for genre in _genre_labels(info):
                slot = bins.get(genre)
                if slot is None:
                    slot = bins[genre] = _GenreBin()
                slot.add(track, artist.id, name)
    return bins


class AggregationPipeline:
    """
    Builds the genre/artist node hierarchy.

    Every (track, artist) pair where the artist has genre labels counts once
    for each of that artist's genres, both on the genre node and on the
    artist child, so child counts always sum to the genre count.
    """

    def __init__(
        self,
        classifier: Optional[GenreClassifier] = None,
        mapper: Optional[SpatialMapper] = None,
        top_n: int = TOP_N_GENRES,
        workers: int = 1,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        verbose: bool = False,
    ):
        if top_n <= 0:
            raise ValueError(f"top_n must be positive, got {top_n}")
        if workers <= 0 or chunk_size <= 0:
            raise ValueError("workers and chunk_size must be positive.")
        self.classifier = classifier or GenreClassifier()
        self.mapper = mapper or SpatialMapper()
        self.top_n = top_n
        self.workers = workers
        self.chunk_size = chunk_size
        self.verbose = verbose

    def build(self, tracks: Sequence[Track], artist_map: Mapping[str, ArtistGenreInfo]) -> List[Node]:
        """
        Returns genre nodes sorted by count (descending, then name), truncated
        to the top N. Empty input gives an empty list.
        """
        tracks = list(tracks)
        if not tracks or not artist_map:
            return []

        bins = self._collect(tracks, artist_map)
        nodes = [self._genre_node(genre, slot) for genre, slot in bins.items()]
        nodes.sort(key=lambda n: (-n.count, n.name))
        nodes = nodes[: self.top_n]

        if self.verbose:
            print(
                f"[AggregationPipeline] Built {len(nodes)} genre nodes "
                f"(of {len(bins)} distinct labels) from {len(tracks)} tracks."
            )
        return nodes

    def _collect(self, tracks: List[Track], artist_map: Mapping[str, ArtistGenreInfo]) -> Dict[str, _GenreBin]:
        if self.workers == 1 or len(tracks) <= self.chunk_size:
            return _accumulate(tracks, artist_map)

        chunks = [tracks[i:i + self.chunk_size] for i in range(0, len(tracks), self.chunk_size)]
        with ThreadPoolExecutor(max_workers=self.workers) as pool:
            partials = list(pool.map(lambda chunk: _accumulate(chunk, artist_map), chunks))

        # Merge in chunk order so track order matches the sequential path
        merged: Dict[str, _GenreBin] = {}
        for partial in partials:
            for genre, slot in partial.items():
                mine = merged.get(genre)
                if mine is None:
                    merged[genre] = mine = _GenreBin()
                mine.merge(slot)
        return merged

    def _genre_node(self, genre: str, slot: _GenreBin) -> Node:
        vector = self.classifier.classify(genre)
        anchor = self.mapper.position(vector)
        color = self.mapper.color(vector)

        children = [
            Node(
                id=f"{genre}/{artist_id}",
                name=artist.name,
                count=len(artist.tracks),
                artists=(artist.name,),
                color=color,
                tracks=tuple(artist.tracks),
                parent=genre,
            )
            for artist_id, artist in slot.artists.items()
        ]
        children.sort(key=lambda n: (-n.count, n.name, n.id))

        return Node(
            id=genre,
            name=genre,
            count=slot.count,
            artists=tuple(dict.fromkeys(a.name for a in slot.artists.values())),
            albums=tuple(slot.albums),
            anchor=anchor,
            color=color,
            tracks=tuple(slot.tracks),
            children=tuple(children),
            category=vector,
        )


def summarize(nodes: Sequence[Node], top: int = 10) -> LibraryStats:
    """Library-level numbers for headers and reports."""
    artists = set()
    albums = set()
    stamps = []
    for node in nodes:
        albums.update(node.albums)
        for child in node.children:
            artists.add(child.id[len(node.id) + 1:])
        stamps.extend(t.added_at for t in node.tracks if t.added_at is not None)

    return LibraryStats(
        genre_count=len(nodes),
        artist_count=len(artists),
        album_count=len(albums),
        contribution_count=sum(n.count for n in nodes),
        first_added=min(stamps) if stamps else None,
        last_added=max(stamps) if stamps else None,
        top_genres=[(n.name, n.count) for n in sorted(nodes, key=lambda n: (-n.count, n.name))[:top]],
    )
