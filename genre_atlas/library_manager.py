"""
Library Manager Module.

Loads a listener's library from JSON exports written by the fetch layer.
Expected structure:
    {export_dir}/tracks.json   saved-track items ({"added_at", "track"})
    {export_dir}/artists.json  artist objects ({"id", "name", "genres"})
Both files may be a bare list or a paging object with an "items" list.
"""
import glob
import json
import os
from typing import Any, Dict, List, Tuple

from .core import ArtistGenreInfo, Track

TRACKS_FILE = "tracks.json"
ARTISTS_FILE = "artists.json"


def _items(payload: Any, *keys: str) -> List[Dict[str, Any]]:
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict):
        for key in keys:
            if isinstance(payload.get(key), list):
                return payload[key]
    return []


class LibraryManager:
    """
    Adapts Spotify-shaped exports into Tracks and the artist genre map.
    """

    def __init__(self, export_dir: str):
        self.export_dir = os.path.abspath(export_dir)

    def _read(self, filename: str) -> Any:
        path = os.path.join(self.export_dir, filename)
        if not os.path.exists(path):
            raise FileNotFoundError(f"Export file not found: {path}")
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)

    def load_tracks(self, filename: str = TRACKS_FILE) -> List[Track]:
        """
        Reads saved tracks. Items without a track id are skipped; malformed
        "added_at" values become None.
        """
        tracks = []
        for item in _items(self._read(filename), "items", "tracks"):
            if not isinstance(item, dict):
                continue
            track = Track.from_spotify(item)
            if track.id:
                tracks.append(track)
        return tracks

    def load_artists(self, filename: str = ARTISTS_FILE) -> Dict[str, ArtistGenreInfo]:
        payload = self._read(filename)
        if isinstance(payload, dict) and not any(isinstance(payload.get(k), list) for k in ("items", "artists")):
            # Already keyed by artist id
            return {
                artist_id: ArtistGenreInfo.from_spotify(artist)
                for artist_id, artist in payload.items()
                if isinstance(artist, dict)
            }

        artists = {}
        for artist in _items(payload, "items", "artists"):
            if isinstance(artist, dict) and artist.get("id"):
                artists[str(artist["id"])] = ArtistGenreInfo.from_spotify(artist)
        return artists

    def load_library(self) -> Tuple[List[Track], Dict[str, ArtistGenreInfo]]:
        tracks = self.load_tracks()
        artists = self.load_artists()
        print(f"[LibraryManager] Loaded {len(tracks)} tracks and {len(artists)} artists from {self.export_dir}")
        return tracks, artists

    def save_library(self, tracks: List[Track], artists: Dict[str, ArtistGenreInfo]) -> str:
        """Writes a library back out in the same export shape (useful for fixtures)."""
        os.makedirs(self.export_dir, exist_ok=True)
        items = [
            {
                "added_at": t.added_at.isoformat() if t.added_at else None,
                "track": {
                    "id": t.id,
                    "name": t.name,
                    "uri": t.uri,
                    "duration_ms": t.duration_ms,
                    "album": {"id": t.album_id, "name": t.album},
                    "artists": [{"id": a.id, "name": a.name} for a in t.artists],
                },
            }
            for t in tracks
        ]
        with open(os.path.join(self.export_dir, TRACKS_FILE), "w", encoding="utf-8") as f:
            json.dump({"items": items}, f, ensure_ascii=False, indent=2)
        with open(os.path.join(self.export_dir, ARTISTS_FILE), "w", encoding="utf-8") as f:
            json.dump(
                {"artists": [{"id": k, "name": v.name, "genres": list(v.genres)} for k, v in artists.items()]},
                f, ensure_ascii=False, indent=2,
            )
        print(f"[LibraryManager] Saved {len(tracks)} tracks to {self.export_dir}")
        return self.export_dir

    @staticmethod
    def list_exports(root: str) -> List[str]:
        """Subdirectories of `root` that contain a tracks export."""
        files = glob.glob(os.path.join(root, "*", TRACKS_FILE))
        return sorted(os.path.basename(os.path.dirname(f)) for f in files)
