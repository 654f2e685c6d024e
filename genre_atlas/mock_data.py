"""
Mock Data Generator.

Simulates a listener's saved-track library: artists with overlapping genre
labels, tracks added over a few years, collaborations, a handful of undated
saves and artists Spotify has no genres for.
"""
import datetime
from typing import Dict, List, Tuple

import numpy as np

from .core import ArtistGenreInfo, ArtistRef, Track

# Labels in the style of Spotify artist genres, including ones no rule knows
GENRE_VOCABULARY = [
    "pop", "dance pop", "electropop", "indie pop", "k-pop",
    "rock", "indie rock", "alternative rock", "classic rock", "post-punk", "metal",
    "hip hop", "rap", "jazz rap", "trap", "pop rap", "neo soul", "r&b", "funk",
    "house", "techno", "ambient", "edm", "drum and bass",
    "jazz", "blues", "bossa nova", "smooth jazz",
    "folk", "indie folk", "country", "americana", "bluegrass",
    "classical", "soundtrack", "baroque", "neoclassical piano",
    "lo-fi beats", "reggaeton", "singer-songwriter", "chillwave",
    "vaporwave", "hyperpop", "shoegaze", "city pop", "zolo",
]


class MockLibraryGenerator:
    """Generates synthetic libraries."""

    @staticmethod
    def generate_library(
        num_artists: int = 60,
        num_tracks: int = 600,
        start: datetime.date = datetime.date(2019, 1, 1),
        days: int = 4 * 365,
        undated_ratio: float = 0.05,
        seed: int = 42,
    ) -> Tuple[List[Track], Dict[str, ArtistGenreInfo]]:
        """
        Returns (tracks, artist_map). Track popularity per artist follows a
        Zipf-like curve so a few artists dominate, as in real libraries.
        """
        if num_artists <= 0 or num_tracks < 0:
            raise ValueError("num_artists must be positive and num_tracks non-negative.")
        rng = np.random.default_rng(seed)

        artists: Dict[str, ArtistGenreInfo] = {}
        refs: List[ArtistRef] = []
        for i in range(num_artists):
            artist_id = f"artist{i:04d}"
            name = f"Artist {i + 1}"
            # About one in ten artists has no genre labels at all
            n_genres = 0 if rng.random() < 0.1 else int(rng.integers(1, 4))
            genres = tuple(rng.choice(GENRE_VOCABULARY, size=n_genres, replace=False)) if n_genres else ()
            artists[artist_id] = ArtistGenreInfo(name=name, genres=tuple(str(g) for g in genres))
            refs.append(ArtistRef(id=artist_id, name=name))

        weights = 1.0 / np.arange(1, num_artists + 1) ** 0.8
        weights /= weights.sum()
        origin = datetime.datetime(start.year, start.month, start.day, tzinfo=datetime.timezone.utc)

        tracks = []
        for j in range(num_tracks):
            primary = int(rng.choice(num_artists, p=weights))
            credits = [refs[primary]]
            if rng.random() < 0.08:
                feat = int(rng.integers(num_artists))
                if feat != primary:
                    credits.append(refs[feat])

            if rng.random() < undated_ratio:
                added_at = None
            else:
                added_at = origin + datetime.timedelta(seconds=float(rng.uniform(0, days * 86400)))

            album_no = int(rng.integers(1, 4))
            tracks.append(Track(
                id=f"track{j:05d}",
                name=f"Track {j + 1}",
                artists=tuple(credits),
                album=f"{refs[primary].name} - Album {album_no}",
                album_id=f"{refs[primary].id}-album{album_no}",
                duration_ms=int(rng.integers(120_000, 360_000)),
                added_at=added_at,
                uri=f"spotify:track:mock{j:05d}",
            ))

        return tracks, artists
