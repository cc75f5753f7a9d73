"""Tests for popularity-policy selection."""

import random
from collections import Counter

from django.test import SimpleTestCase

from recommender.services.selection import SelectionFilter, exclude_dance_tracks
from recommender.services.vibe import PopularityPolicy
from recommender.testing import make_track


def _tracks(popularities, prefix="t"):
    return [make_track(f"{prefix}{i}", popularity=value) for i, value in enumerate(popularities)]


def _tier(track):
    if track.popularity >= 70:
        return "high"
    if track.popularity >= 40:
        return "mid"
    return "low"


class SelectionFilterTests(SimpleTestCase):
    """Mainstream, indie and mixed policies."""

    def setUp(self):
        self.selection = SelectionFilter(random.Random(7))

    def test_mainstream_keeps_popular_tracks_descending(self):
        tracks = _tracks([55, 90, 30, 70, 45] + [60] * 3)
        result = self.selection.filter(tracks, PopularityPolicy.MAINSTREAM, 3)
        popularity = [track.popularity for track in result]
        self.assertEqual(popularity, [90, 70, 60, 60, 60, 55])

    def test_mainstream_relaxes_threshold_when_short(self):
        tracks = _tracks([55, 45, 42, 30, 39])
        result = self.selection.filter(tracks, PopularityPolicy.MAINSTREAM, 5)
        self.assertEqual([track.popularity for track in result], [55, 45, 42])

    def test_indie_keeps_less_popular_tracks_ascending(self):
        tracks = _tracks([10, 65, 59, 80, 30, 20])
        result = self.selection.filter(tracks, PopularityPolicy.INDIE, 3)
        self.assertEqual([track.popularity for track in result], [10, 20, 30, 59])

    def test_indie_relaxes_ceiling_when_short(self):
        tracks = _tracks([10, 65, 69, 80])
        result = self.selection.filter(tracks, PopularityPolicy.INDIE, 4)
        self.assertEqual([track.popularity for track in result], [10, 65, 69])

    def test_mixed_draws_from_each_tier(self):
        tracks = _tracks([85] * 15 + [55] * 15 + [20] * 15)
        result = self.selection.filter(tracks, PopularityPolicy.MIXED, 20)
        self.assertEqual(len(result), 20)
        self.assertEqual(len({track.id for track in result}), 20)
        self.assertEqual(Counter(_tier(track) for track in result), {"high": 7, "mid": 7, "low": 6})

    def test_mixed_backfills_from_leftovers(self):
        tracks = _tracks([85] * 15 + [55] * 15)
        result = self.selection.filter(tracks, PopularityPolicy.MIXED, 20)
        self.assertEqual(len(result), 20)
        self.assertEqual(len({track.id for track in result}), 20)

    def test_mixed_returns_what_is_available(self):
        tracks = _tracks([85, 55, 20])
        result = self.selection.filter(tracks, PopularityPolicy.MIXED, 20)
        self.assertEqual({track.id for track in result}, {"t0", "t1", "t2"})

    def test_order_key(self):
        self.assertIsNone(SelectionFilter.order_key(PopularityPolicy.MIXED))
        tracks = _tracks([40, 80, 60])
        mainstream = sorted(tracks, key=SelectionFilter.order_key(PopularityPolicy.MAINSTREAM))
        self.assertEqual([track.popularity for track in mainstream], [80, 60, 40])

    def test_never_fails_on_empty_input(self):
        for policy in PopularityPolicy:
            self.assertEqual(self.selection.filter([], policy, 20), [])


class DanceTrackFilterTests(SimpleTestCase):
    """Study scenes drop club music."""

    def test_excludes_dance_keywords_in_title_artist_or_album(self):
        tracks = [
            make_track("a", title="Late Night Study"),
            make_track("b", title="Techno Bunker"),
            make_track("c", artist="EDM Crew"),
            make_track("d", album="Festival Anthems"),
            make_track("e", title="Rainy Window"),
        ]
        self.assertEqual([track.id for track in exclude_dance_tracks(tracks)], ["a", "e"])
