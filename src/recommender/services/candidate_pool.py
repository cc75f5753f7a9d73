"""Collect deduplicated, artist-capped track candidates from the catalog."""

import logging
import random
from collections import Counter
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field, replace
from typing import Callable, Dict, Iterable, Iterator, List, Optional, Sequence

from django.conf import settings

from .exceptions import CatalogCallError
from .query_planner import (
    MAX_SEED_ARTISTS,
    MAX_SEED_GENRES,
    ArtistSearch,
    KeywordSearch,
    QueryDirective,
    RecommendationSeed,
    SearchRole,
)
from .spotify_handler import ExternalMusicCatalog
from .tracks import TrackCandidate

logger = logging.getLogger(__name__)

MAX_SEARCH_CALLS = getattr(settings, "RECOMMENDER_MAX_SEARCH_CALLS", 15)
MAX_BACKFILL_ROUNDS = getattr(settings, "RECOMMENDER_MAX_BACKFILL_ROUNDS", 3)
SEARCH_STOP_MULTIPLIER = 3
BACKFILL_MULTIPLIER = 2


def artist_key(track: TrackCandidate) -> str:
    """Normalized primary-artist key used for per-artist caps."""
    return (track.primary_artist or "").strip().lower()


@dataclass
class CandidatePool:
    """
    Insertion-ordered tracks keyed by id, capped per primary artist.

    Tracks without a primary artist are never capped.
    """

    max_per_artist: int
    tracks: Dict[str, TrackCandidate] = field(default_factory=dict)
    artist_counts: Counter = field(default_factory=Counter)

    def add(self, track: TrackCandidate) -> bool:
        if track.id in self.tracks:
            return False
        key = artist_key(track)
        if key and self.artist_counts[key] >= self.max_per_artist:
            return False
        self.tracks[track.id] = track
        if key:
            self.artist_counts[key] += 1
        return True

    def extend(self, tracks: Iterable[TrackCandidate]) -> int:
        """Insert tracks in order and return how many were accepted."""
        return sum(1 for track in tracks if self.add(track))

    def values(self) -> List[TrackCandidate]:
        return list(self.tracks.values())

    def ids(self) -> set:
        return set(self.tracks)

    def __len__(self) -> int:
        return len(self.tracks)

    def __iter__(self) -> Iterator[TrackCandidate]:
        return iter(list(self.tracks.values()))

    def __contains__(self, track_id: object) -> bool:
        return track_id in self.tracks


class CandidateAggregator:
    """
    Execute planned directives against a catalog and pool the results.

    Artist lookups run concurrently; searches run one at a time so the
    early-stop check always sees the current pool size. A failed call
    contributes nothing and never stops sibling calls, except an auth
    failure which propagates.
    """

    def __init__(
        self,
        catalog: ExternalMusicCatalog,
        rng: Optional[random.Random] = None,
        *,
        max_search_calls: Optional[int] = None,
        max_backfill_rounds: Optional[int] = None,
        lookup_workers: int = MAX_SEED_ARTISTS,
        log_step: Optional[Callable[[str], None]] = None,
    ) -> None:
        self.catalog = catalog
        self.rng = rng or random.Random()
        self.max_search_calls = MAX_SEARCH_CALLS if max_search_calls is None else max_search_calls
        self.max_backfill_rounds = MAX_BACKFILL_ROUNDS if max_backfill_rounds is None else max_backfill_rounds
        self.lookup_workers = max(1, lookup_workers)
        self.log_step = log_step

    def _log(self, message: str) -> None:
        if self.log_step:
            self.log_step(message)

    def _safe_call(self, context: str, func: Callable, *args, **kwargs) -> List:
        try:
            return func(*args, **kwargs) or []
        except CatalogCallError as exc:
            logger.warning("Catalog call failed (%s): %s", context, exc)
            self._log(f"Catalog call failed for {context}: {exc}")
            return []

    def _lookup_artist(self, name: str) -> Optional[str]:
        try:
            return self.catalog.search_artist(name)
        except CatalogCallError as exc:
            logger.warning("Artist lookup failed for %r: %s", name, exc)
            return None

    def resolve_artist_ids(self, names: Sequence[str]) -> List[str]:
        """Resolve up to five artist names to catalog ids, dropping misses."""
        names = list(names)[:MAX_SEED_ARTISTS]
        if not names:
            return []
        workers = min(self.lookup_workers, len(names))
        with ThreadPoolExecutor(max_workers=workers) as executor:
            futures = [executor.submit(self._lookup_artist, name) for name in names]
            resolved = [future.result() for future in futures]
        artist_ids: List[str] = []
        for name, artist_id in zip(names, resolved):
            if not artist_id:
                self._log(f"No catalog artist found for {name}.")
                continue
            if artist_id not in artist_ids:
                artist_ids.append(artist_id)
        return artist_ids

    def _run_recommendations(self, pool: CandidatePool, seed: RecommendationSeed, artist_ids: Sequence[str]) -> None:
        seed_artists = list(artist_ids)[:MAX_SEED_ARTISTS]
        seed_genres = list(seed.seed_genres)[:MAX_SEED_GENRES]
        if not seed_artists and not seed_genres:
            return
        self.rng.shuffle(seed_artists)
        self.rng.shuffle(seed_genres)
        request = replace(seed, seed_artists=tuple(seed_artists), seed_genres=tuple(seed_genres))
        tracks = self._safe_call(
            "recommendations",
            self.catalog.get_recommendations,
            request.seed_artists,
            request.seed_genres,
            request.target_params,
            request.limit,
        )
        tracks = list(tracks)
        self.rng.shuffle(tracks)
        added = pool.extend(tracks)
        self._log(f"Recommendations returned {len(tracks)} tracks, {added} pooled.")

    def _run_searches(self, pool: CandidatePool, searches: Sequence[KeywordSearch], stop_at: int) -> None:
        pinned = [search for search in searches if search.role == SearchRole.LANDMARK]
        shuffled = [search for search in searches if search.role != SearchRole.LANDMARK]
        self.rng.shuffle(shuffled)
        calls = 0
        for search in pinned + shuffled:
            if len(pool) >= stop_at or calls >= self.max_search_calls:
                break
            calls += 1
            tracks = self._safe_call(search.query, self.catalog.search_tracks, search.query, search.limit)
            pool.extend(tracks)
        self._log(f"Ran {calls} searches; pool holds {len(pool)} tracks.")

    def _run_backfill(self, pool: CandidatePool, searches: Sequence[KeywordSearch], threshold: int) -> None:
        for round_index in range(self.max_backfill_rounds):
            if len(pool) >= threshold or not searches:
                return
            added = 0
            for search in searches:
                if len(pool) >= threshold:
                    break
                tracks = self._safe_call(
                    search.query,
                    self.catalog.search_tracks,
                    search.query,
                    search.limit,
                    round_index * search.limit,
                )
                added += pool.extend(tracks)
            self._log(f"Backfill round {round_index + 1} added {added} tracks.")
            if not added:
                return

    def aggregate(
        self,
        directives: Sequence[QueryDirective],
        target_pool_size: int,
        max_per_artist: int,
    ) -> CandidatePool:
        """Run the directives and return a fresh pool."""
        pool = CandidatePool(max_per_artist=max_per_artist)
        seed = next((d for d in directives if isinstance(d, RecommendationSeed)), None)
        artist_names = [d.name for d in directives if isinstance(d, ArtistSearch)]
        searches = [d for d in directives if isinstance(d, KeywordSearch) and d.role != SearchRole.BACKFILL]
        backfill = [d for d in directives if isinstance(d, KeywordSearch) and d.role == SearchRole.BACKFILL]

        artist_ids = self.resolve_artist_ids(artist_names)
        if seed is not None:
            self._run_recommendations(pool, seed, artist_ids)
        self._run_searches(pool, searches, target_pool_size * SEARCH_STOP_MULTIPLIER)
        self._run_backfill(pool, backfill, target_pool_size * BACKFILL_MULTIPLIER)
        logger.debug("Aggregated %d candidates (target %d).", len(pool), target_pool_size)
        return pool
