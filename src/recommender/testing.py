"""In-memory catalog doubles for exercising the candidate pipeline in tests."""

import threading
from typing import Callable, Dict, Iterable, List, Optional, Sequence

from .services.exceptions import CatalogCallError
from .services.tracks import TrackCandidate


def make_track(
    track_id: str,
    *,
    artist: Optional[str] = None,
    popularity: int = 50,
    title: Optional[str] = None,
    album: str = "",
    preview: bool = True,
) -> TrackCandidate:
    """Build a TrackCandidate with sensible defaults for tests."""
    artist = artist if artist is not None else f"Artist {track_id}"
    return TrackCandidate(
        id=track_id,
        title=title or f"Song {track_id}",
        primary_artist=artist,
        all_artists=(artist,) if artist else (),
        album=album,
        duration_ms=180000,
        popularity=popularity,
        preview_url=f"https://p.scdn.co/{track_id}" if preview else None,
        external_url=f"https://open.spotify.com/track/{track_id}",
        uri=f"spotify:track:{track_id}",
    )


class FakeCatalog:
    """
    Catalog double returning canned results and recording every call.

    ``search_results`` maps exact queries to track lists (sliced by offset and
    limit). Queries not in the mapping go to ``default_search`` when given.
    Queries listed in ``failing_queries`` raise CatalogCallError; an
    ``error`` instance, when set, is raised by every call.
    """

    def __init__(
        self,
        *,
        search_results: Optional[Dict[str, Sequence[TrackCandidate]]] = None,
        recommendations: Iterable[TrackCandidate] = (),
        artist_ids: Optional[Dict[str, str]] = None,
        default_search: Optional[Callable[[str, int, int], List[TrackCandidate]]] = None,
        failing_queries: Iterable[str] = (),
        error: Optional[Exception] = None,
    ) -> None:
        self.search_results = dict(search_results or {})
        self.recommendations = list(recommendations)
        self.artist_ids = dict(artist_ids or {})
        self.default_search = default_search
        self.failing_queries = set(failing_queries)
        self.error = error
        self.calls: List[tuple] = []
        self._lock = threading.Lock()

    def _record(self, *call) -> None:
        with self._lock:
            self.calls.append(call)
        if self.error is not None:
            raise self.error

    def search_tracks(self, query: str, limit: int = 10, offset: int = 0) -> List[TrackCandidate]:
        self._record("search", query, limit, offset)
        if query in self.failing_queries:
            raise CatalogCallError(f"simulated failure for {query}", status=503)
        if query in self.search_results:
            return list(self.search_results[query][offset : offset + limit])
        if self.default_search is not None:
            return list(self.default_search(query, limit, offset))
        return []

    def search_artist(self, name: str) -> Optional[str]:
        self._record("artist", name)
        return self.artist_ids.get(name)

    def get_recommendations(self, seed_artists, seed_genres, targets, limit=50) -> List[TrackCandidate]:
        self._record("recommendations", tuple(seed_artists), tuple(seed_genres), dict(targets), limit)
        return list(self.recommendations[:limit])

    def calls_of(self, kind: str) -> List[tuple]:
        return [call for call in self.calls if call[0] == kind]
