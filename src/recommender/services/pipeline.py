"""Turn a vibe into a finalized list of Spotify track candidates."""

import logging
import random
from dataclasses import dataclass
from typing import Callable, Optional, Tuple

from django.conf import settings

from .candidate_pool import CandidateAggregator
from .diversity import MAX_LANDMARK_TRACKS, DiversityFinalizer, select_landmark_tracks
from .query_planner import LandmarkMatch, VibeQueryPlanner
from .selection import SelectionFilter, exclude_dance_tracks
from .spotify_handler import ExternalMusicCatalog
from .tracks import TrackCandidate
from .vibe import PopularityPolicy, SceneCategory, VibeDescriptor

logger = logging.getLogger(__name__)

TARGET_TRACK_COUNT = getattr(settings, "RECOMMENDER_TARGET_TRACK_COUNT", 20)
MAX_TRACKS_PER_ARTIST = getattr(settings, "RECOMMENDER_MAX_TRACKS_PER_ARTIST", 3)


@dataclass(frozen=True)
class CandidateResult:
    """Outcome of one candidate run. An empty ``tracks`` means exhausted."""

    tracks: Tuple[TrackCandidate, ...]
    target_count: int
    landmark: Optional[LandmarkMatch] = None
    pool_size: int = 0

    @property
    def exhausted(self) -> bool:
        return not self.tracks

    @property
    def shortfall(self) -> int:
        return max(self.target_count - len(self.tracks), 0)


def _log(log_step: Optional[Callable[[str], None]], message: str) -> None:
    if log_step:
        log_step(message)


def build_track_candidates(
    vibe: VibeDescriptor,
    policy: PopularityPolicy,
    catalog: ExternalMusicCatalog,
    *,
    rng: Optional[random.Random] = None,
    target_count: Optional[int] = None,
    max_per_artist: Optional[int] = None,
    planner: Optional[VibeQueryPlanner] = None,
    log_step: Optional[Callable[[str], None]] = None,
) -> CandidateResult:
    """
    Plan, aggregate, select and finalize tracks for a vibe.

    Catalog failures on individual calls only shrink the result. An auth
    failure (CatalogAuthError) propagates to the caller.
    """
    target = target_count or TARGET_TRACK_COUNT
    cap = max_per_artist or MAX_TRACKS_PER_ARTIST
    rng = rng or random.Random()
    planner = planner or VibeQueryPlanner()

    directives = planner.plan(vibe)
    landmark = planner.match_landmark(vibe)
    if landmark:
        _log(log_step, f"Landmark matched: {landmark.key}")
    if vibe.scene_category:
        _log(log_step, f"Scene detected: {vibe.scene_category.value}")

    aggregator = CandidateAggregator(catalog, rng, log_step=log_step)
    pool = aggregator.aggregate(directives, target, cap)
    if not len(pool):
        logger.info("No candidates found for genre=%s", vibe.primary_genre)
        return CandidateResult(tracks=(), target_count=target, landmark=landmark)

    candidates = pool.values()
    if vibe.scene_category == SceneCategory.STUDY:
        candidates = exclude_dance_tracks(candidates)
        _log(log_step, f"{len(candidates)} tracks left after removing dance tracks.")

    pinned = select_landmark_tracks(candidates, landmark, limit=MAX_LANDMARK_TRACKS, max_per_artist=cap)
    pinned_ids = {track.id for track in pinned}
    unpinned = [track for track in candidates if track.id not in pinned_ids]

    selection = SelectionFilter(rng)
    filtered = selection.filter(unpinned, policy, max(target - len(pinned), 0))
    tracks = DiversityFinalizer(cap).finalize(
        filtered,
        candidates,
        vibe.mood_word,
        target,
        pinned=pinned,
        order_key=selection.order_key(policy),
    )

    result = CandidateResult(tracks=tuple(tracks), target_count=target, landmark=landmark, pool_size=len(pool))
    if result.tracks and result.shortfall:
        logger.info("Returning %d of %d requested tracks.", len(result.tracks), target)
    _log(log_step, f"Finalized {len(result.tracks)} tracks from a pool of {len(pool)}.")
    return result
