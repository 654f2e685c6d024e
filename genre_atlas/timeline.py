"""
Library growth over time: monthly genre streams and the streamgraph plot.
"""
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Sequence, Tuple
import datetime

import matplotlib.pyplot as plt
from matplotlib.figure import Figure
import numpy as np
import seaborn as sns

from .core import ArtistGenreInfo, Track, parse_timestamp

TOP_STREAM_GENRES = 30
TOOLTIP_GENRES = 5


@dataclass
class GenreStream:
    """
    Monthly contribution counts for the library's top genres.
    counts[i, j] is the number of tracks of genre i added in month j.
    """
    months: List[datetime.date]
    genres: List[str]
    counts: np.ndarray = field(repr=False)

    @property
    def totals(self) -> np.ndarray:
        return self.counts.sum(axis=0)


def _month_start(stamp: datetime.datetime) -> datetime.date:
    return datetime.date(stamp.year, stamp.month, 1)


def _month_range(first: datetime.date, last: datetime.date) -> List[datetime.date]:
    months = []
    y, m = first.year, first.month
    while (y, m) <= (last.year, last.month):
        months.append(datetime.date(y, m, 1))
        y, m = (y + 1, 1) if m == 12 else (y, m + 1)
    return months


def _primary_genres(track: Track, artist_map: Mapping[str, ArtistGenreInfo]) -> List[str]:
    artist = track.primary_artist
    info = artist_map.get(artist.id) if artist is not None else None
    if info is None:
        return []
    return list(dict.fromkeys(" ".join(g.lower().split()) for g in info.genres if g and g.strip()))


def build_monthly_streams(
    tracks: Sequence[Track],
    artist_map: Mapping[str, ArtistGenreInfo],
    top_n: int = TOP_STREAM_GENRES,
) -> Optional[GenreStream]:
    """
    Buckets dated tracks by the month they were added, credited to the
    genres of their primary artist. Months are contiguous (empty months
    are zero columns). Returns None when there is not enough data for a
    stream: no dated tracks, no genres, or fewer than two months.
    """
    dated: List[Tuple[datetime.date, List[str]]] = []
    totals: Dict[str, int] = {}
    for track in tracks:
        stamp = parse_timestamp(track.added_at)
        if stamp is None:
            continue
        genres = _primary_genres(track, artist_map)
        dated.append((_month_start(stamp), genres))
        for g in genres:
            totals[g] = totals.get(g, 0) + 1

    if not dated:
        print("[Timeline] No valid 'added_at' dates found in these tracks.")
        return None
    if not totals:
        print("[Timeline] No genres found for the artists in these tracks.")
        return None

    genres = [g for g, _ in sorted(totals.items(), key=lambda kv: (-kv[1], kv[0]))[:top_n]]
    months = _month_range(min(m for m, _ in dated), max(m for m, _ in dated))
    if len(months) < 2:
        print("[Timeline] Not enough data points over time to draw a streamgraph (need at least 2 months).")
        return None

    row = {g: i for i, g in enumerate(genres)}
    col = {m: j for j, m in enumerate(months)}
    counts = np.zeros((len(genres), len(months)), dtype=np.int64)
    for month, track_genres in dated:
        for g in track_genres:
            if g in row:
                counts[row[g], col[month]] += 1

    return GenreStream(months=months, genres=genres, counts=counts)


def nearest_month(
    stream: GenreStream,
    when: datetime.date,
    top: int = TOOLTIP_GENRES,
) -> Tuple[datetime.date, List[Tuple[str, int]]]:
    """The month closest to `when` and its heaviest genres (zero counts omitted)."""
    if isinstance(when, datetime.datetime):
        when = when.date()
    j = int(np.argmin([abs((m - when).days) for m in stream.months]))
    column = stream.counts[:, j]
    order = sorted(range(len(stream.genres)), key=lambda i: (-column[i], stream.genres[i]))
    return stream.months[j], [(stream.genres[i], int(column[i])) for i in order[:top] if column[i] > 0]


class LibraryStoryteller:
    """
    Narrative plots of how a library grew.
    """

    @staticmethod
    def plot_streamgraph(stream: GenreStream, highlight: Optional[datetime.date] = None) -> Figure:
        """
        Plots a streamgraph (silhouette stacked area) of genre additions per
        month. An optional highlight draws a scanner line at that month.
        """
        fig, ax = plt.subplots(figsize=(12, 6))

        colors = sns.color_palette("Spectral", n_colors=len(stream.genres))
        ax.stackplot(
            stream.months,
            stream.counts,
            labels=stream.genres,
            colors=colors,
            baseline="sym",
            alpha=0.85,
        )

        if highlight is not None:
            month, top = nearest_month(stream, highlight)
            ax.axvline(month, color="#333333", linewidth=1, linestyle="--")
            if top:
                summary = "\n".join(f"{g}: {c}" for g, c in top)
                ax.annotate(
                    f"{month:%B %Y}\n{summary}",
                    xy=(month, 0),
                    xytext=(10, 10),
                    textcoords="offset points",
                    fontsize=8,
                    bbox=dict(facecolor="white", alpha=0.8, edgecolor="#cccccc", boxstyle="round,pad=0.3"),
                )

        ax.set_title("Library Growth: Genres Added per Month")
        ax.set_ylabel("Tracks Added")
        ax.set_yticks([])
        if len(stream.genres) <= 15:
            ax.legend(loc="upper left", bbox_to_anchor=(1, 1), fontsize=8)

        sns.despine(left=True)
        fig.autofmt_xdate()
        plt.tight_layout()
        return fig
