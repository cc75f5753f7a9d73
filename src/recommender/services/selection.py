"""Popularity-policy selection over pooled track candidates."""

import math
import random
from typing import Callable, Iterable, List, Optional

from .tracks import TrackCandidate
from .vibe import PopularityPolicy

MAINSTREAM_THRESHOLD = 50
MAINSTREAM_RELAXED_THRESHOLD = 40
INDIE_CEILING = 60
INDIE_RELAXED_CEILING = 70
MIXED_HIGH_FLOOR = 70
MIXED_MID_FLOOR = 40
MIXED_SHARES = (35, 35, 30)

DANCE_TERMS = ("edm", "electronic", "dance", "house", "techno", "trance", "dubstep", "rave", "festival")


def exclude_dance_tracks(tracks: Iterable[TrackCandidate]) -> List[TrackCandidate]:
    """Drop club-oriented tracks, used for study scenes."""
    kept: List[TrackCandidate] = []
    for track in tracks:
        haystack = f"{track.title} {track.primary_artist} {track.album}".lower()
        if any(term in haystack for term in DANCE_TERMS):
            continue
        kept.append(track)
    return kept


class SelectionFilter:
    """Filter and order candidates according to a popularity policy."""

    def __init__(self, rng: Optional[random.Random] = None) -> None:
        self.rng = rng or random.Random()

    @staticmethod
    def order_key(policy: PopularityPolicy) -> Optional[Callable[[TrackCandidate], int]]:
        """Sort key that reproduces the policy ordering, or None for mixed."""
        if policy == PopularityPolicy.MAINSTREAM:
            return lambda track: -track.popularity
        if policy == PopularityPolicy.INDIE:
            return lambda track: track.popularity
        return None

    def filter(
        self,
        tracks: Iterable[TrackCandidate],
        policy: PopularityPolicy,
        target_count: int,
    ) -> List[TrackCandidate]:
        tracks = list(tracks)
        if policy == PopularityPolicy.MAINSTREAM:
            return self._mainstream(tracks, target_count)
        if policy == PopularityPolicy.INDIE:
            return self._indie(tracks, target_count)
        return self._mixed(tracks, target_count)

    def _mainstream(self, tracks: List[TrackCandidate], target_count: int) -> List[TrackCandidate]:
        kept = [track for track in tracks if track.popularity >= MAINSTREAM_THRESHOLD]
        if len(kept) < target_count:
            kept = [track for track in tracks if track.popularity >= MAINSTREAM_RELAXED_THRESHOLD]
        return sorted(kept, key=self.order_key(PopularityPolicy.MAINSTREAM))

    def _indie(self, tracks: List[TrackCandidate], target_count: int) -> List[TrackCandidate]:
        kept = [track for track in tracks if track.popularity < INDIE_CEILING]
        if len(kept) < target_count:
            kept = [track for track in tracks if track.popularity < INDIE_RELAXED_CEILING]
        return sorted(kept, key=self.order_key(PopularityPolicy.INDIE))

    def _mixed(self, tracks: List[TrackCandidate], target_count: int) -> List[TrackCandidate]:
        tiers = [
            [track for track in tracks if track.popularity >= MIXED_HIGH_FLOOR],
            [track for track in tracks if MIXED_MID_FLOOR <= track.popularity < MIXED_HIGH_FLOOR],
            [track for track in tracks if track.popularity < MIXED_MID_FLOOR],
        ]
        selected: List[TrackCandidate] = []
        leftovers: List[TrackCandidate] = []
        for tier, share in zip(tiers, MIXED_SHARES):
            self.rng.shuffle(tier)
            quota = math.ceil(target_count * share / 100)
            selected.extend(tier[:quota])
            leftovers.extend(tier[quota:])

        if len(selected) < target_count:
            self.rng.shuffle(leftovers)
            selected.extend(leftovers[: target_count - len(selected)])

        self.rng.shuffle(selected)
        return selected[:target_count]
