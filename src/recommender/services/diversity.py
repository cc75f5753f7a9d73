"""Final ordering, artist-diversity and landmark pinning for track lists."""

import logging
from collections import Counter
from typing import Callable, Iterable, List, Optional, Sequence

from .candidate_pool import artist_key
from .query_planner import LandmarkMatch, contains_phrase
from .tracks import TrackCandidate

logger = logging.getLogger(__name__)

MAX_LANDMARK_TRACKS = 5


def title_has_word(track: TrackCandidate, word: str) -> bool:
    """True when the track title contains ``word`` as a whole word."""
    return bool(word) and contains_phrase(track.title, word)


def _matches_landmark(track: TrackCandidate, phrases: Sequence[str]) -> bool:
    fields = (track.title, track.primary_artist, track.album)
    return any(contains_phrase(value, phrase) for value in fields for phrase in phrases)


def select_landmark_tracks(
    tracks: Iterable[TrackCandidate],
    landmark: Optional[LandmarkMatch],
    *,
    limit: int = MAX_LANDMARK_TRACKS,
    max_per_artist: int = 3,
) -> List[TrackCandidate]:
    """Pick up to ``limit`` tracks that reference the landmark, in pool order."""
    if landmark is None:
        return []
    phrases = list(landmark.terms) + [landmark.name]
    selected: List[TrackCandidate] = []
    counts: Counter = Counter()
    for track in tracks:
        if len(selected) >= limit:
            break
        key = artist_key(track)
        if key and counts[key] >= max_per_artist:
            continue
        if _matches_landmark(track, phrases):
            selected.append(track)
            if key:
                counts[key] += 1
    return selected


class DiversityFinalizer:
    """
    Produce the final, capped and deduplicated track list.

    Pinned tracks lead the output in the order given. The remaining slots are
    filled from the policy-filtered tracks (mood-word titles dropped, tracks
    with previews preferred) and then backfilled from the pool, first still
    honouring the mood-word filter and finally without it. When ``order_key``
    is supplied the unpinned tail is re-sorted with it so the popularity
    ordering of the policy survives the backfill.
    """

    def __init__(self, max_per_artist: int = 3) -> None:
        self.max_per_artist = max_per_artist

    def finalize(
        self,
        filtered: Sequence[TrackCandidate],
        pool: Iterable[TrackCandidate],
        mood_word: str,
        target_count: int,
        *,
        pinned: Sequence[TrackCandidate] = (),
        order_key: Optional[Callable[[TrackCandidate], int]] = None,
        max_per_artist: Optional[int] = None,
    ) -> List[TrackCandidate]:
        cap = max_per_artist or self.max_per_artist
        mood_word = (mood_word or "").strip().lower()
        seen_ids = set()
        counts: Counter = Counter()

        def admit(track: TrackCandidate) -> bool:
            key = artist_key(track)
            if track.id in seen_ids or (key and counts[key] >= cap):
                return False
            seen_ids.add(track.id)
            if key:
                counts[key] += 1
            return True

        head = [track for track in pinned[:target_count] if admit(track)]
        slots = target_count - len(head)

        primary = [track for track in filtered if not title_has_word(track, mood_word)]
        primary.sort(key=lambda track: track.preview_url is None)
        tail = [track for track in primary[:slots] if admit(track)]

        pool_tracks = list(pool)
        pool_without_mood = [track for track in pool_tracks if not title_has_word(track, mood_word)]
        pool_without_mood.sort(key=lambda track: track.preview_url is None)
        for source in (primary[slots:], pool_without_mood, pool_tracks):
            for track in source:
                if len(tail) >= slots:
                    break
                if admit(track):
                    tail.append(track)

        if order_key is not None:
            tail.sort(key=order_key)

        result = head + tail
        deduped: List[TrackCandidate] = []
        output_ids = set()
        for track in result:
            if track.id in output_ids:
                continue
            output_ids.add(track.id)
            deduped.append(track)
        if len(deduped) != len(result):
            logger.warning("Final dedup removed %d duplicate tracks.", len(result) - len(deduped))
        return deduped[:target_count]
