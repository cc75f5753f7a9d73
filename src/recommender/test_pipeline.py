"""End-to-end tests for building track candidates from a vibe."""

import itertools
import random
import zlib
from collections import Counter

from django.test import SimpleTestCase

from recommender.services.exceptions import CatalogAuthError
from recommender.services.pipeline import CandidateResult, build_track_candidates
from recommender.services.vibe import Energy, PopularityPolicy, SceneCategory, Tempo, VibeDescriptor
from recommender.testing import FakeCatalog, make_track

HAPPY_POP = VibeDescriptor(genres=("pop",), mood="happy", energy=Energy.HIGH, tempo=Tempo.FAST)


def _spread_tracks(count):
    """Unique tracks with popularity spread evenly from 20 to 95."""
    return [
        make_track(f"t{i}", popularity=20 + (75 * i) // max(count - 1, 1))
        for i in range(count)
    ]


def _windowed_search(tracks, size=10):
    """Each call returns the next window of tracks, wrapping around."""
    counter = itertools.count()

    def _search(query, limit, offset):
        start = (next(counter) * size) % len(tracks)
        return (tracks + tracks)[start : start + size]

    return _search


def _query_hashed_search(tracks, size=10):
    """Results depend only on the query text."""

    def _search(query, limit, offset):
        start = zlib.crc32(query.encode("utf-8")) % len(tracks)
        return (tracks + tracks)[start : start + size]

    return _search


class BuildTrackCandidatesTests(SimpleTestCase):
    """Scenario coverage for the candidate pipeline."""

    def _assert_invariants(self, result, cap=3):
        ids = [track.id for track in result.tracks]
        self.assertEqual(len(ids), len(set(ids)))
        counts = Counter(track.primary_artist for track in result.tracks)
        self.assertTrue(all(count <= cap for count in counts.values()))
        self.assertLessEqual(len(result.tracks), result.target_count)

    def test_mainstream_returns_full_sorted_list(self):
        catalog = FakeCatalog(default_search=_windowed_search(_spread_tracks(60)))
        result = build_track_candidates(HAPPY_POP, PopularityPolicy.MAINSTREAM, catalog, rng=random.Random(1))

        self.assertIsInstance(result, CandidateResult)
        self.assertEqual(len(result.tracks), 20)
        self.assertEqual(result.shortfall, 0)
        popularity = [track.popularity for track in result.tracks]
        self.assertTrue(all(value >= 40 for value in popularity))
        self.assertEqual(popularity, sorted(popularity, reverse=True))
        self._assert_invariants(result)

    def test_small_catalog_returns_everything_without_error(self):
        catalog = FakeCatalog(default_search=_windowed_search(_spread_tracks(12), size=4))
        result = build_track_candidates(HAPPY_POP, PopularityPolicy.MAINSTREAM, catalog, rng=random.Random(2))

        self.assertEqual(len(result.tracks), 12)
        self.assertFalse(result.exhausted)
        self.assertEqual(result.shortfall, 8)
        popularity = [track.popularity for track in result.tracks]
        self.assertEqual(popularity, sorted(popularity, reverse=True))
        self._assert_invariants(result)

    def test_indie_output_is_ascending(self):
        catalog = FakeCatalog(default_search=_windowed_search(_spread_tracks(60)))
        result = build_track_candidates(HAPPY_POP, PopularityPolicy.INDIE, catalog, rng=random.Random(3))
        popularity = [track.popularity for track in result.tracks]
        self.assertEqual(len(popularity), 20)
        self.assertEqual(popularity, sorted(popularity))
        self._assert_invariants(result)

    def test_study_scene_uses_calm_recommendation_seed(self):
        vibe = VibeDescriptor(
            genres=("rock",),
            energy=Energy.HIGH,
            description="A student at a desk with textbooks",
            scene_category=SceneCategory.STUDY,
        )
        catalog = FakeCatalog(
            recommendations=[
                make_track("r1", title="Quiet Pages"),
                make_track("r2", title="Warehouse Rave"),
                make_track("r3", album="Deep House Sessions"),
            ],
            artist_ids={"Lofi Girl": "lofi-girl"},
        )
        result = build_track_candidates(vibe, PopularityPolicy.MIXED, catalog, rng=random.Random(4))

        call = catalog.calls_of("recommendations")[0]
        self.assertEqual(set(call[2]), {"chill", "ambient"})
        self.assertLessEqual(call[3]["target_energy"], 0.4)
        self.assertEqual(call[1], ("lofi-girl",))
        self.assertEqual([track.id for track in result.tracks], ["r1"])

    def test_landmark_track_is_pinned_first(self):
        fight_song = make_track("duke", title="Duke Fight Song", artist="Duke University Band", popularity=12)
        filler = _spread_tracks(60)
        catalog = FakeCatalog(
            search_results={'"Duke"': [fight_song]},
            default_search=_windowed_search(filler),
        )
        vibe = VibeDescriptor(genres=("pop",), landmark="Duke University")
        result = build_track_candidates(vibe, PopularityPolicy.MAINSTREAM, catalog, rng=random.Random(5))

        self.assertEqual(result.tracks[0].id, "duke")
        self.assertEqual(result.landmark.key, "duke university")
        self.assertEqual(len(result.tracks), 20)
        tail = [track.popularity for track in result.tracks[1:]]
        self.assertEqual(tail, sorted(tail, reverse=True))

    def test_refresh_produces_a_different_list(self):
        tracks = [make_track(f"t{i}", popularity=(i * 7) % 100) for i in range(150)]
        catalog = FakeCatalog(recommendations=tracks[:50], default_search=_query_hashed_search(tracks))
        first = build_track_candidates(HAPPY_POP, PopularityPolicy.MIXED, catalog, rng=random.Random(10))
        second = build_track_candidates(HAPPY_POP, PopularityPolicy.MIXED, catalog, rng=random.Random(20))

        self.assertEqual(len(first.tracks), 20)
        self.assertEqual(len(second.tracks), 20)
        self.assertNotEqual(
            [track.id for track in first.tracks],
            [track.id for track in second.tracks],
        )

    def test_empty_catalog_is_exhausted(self):
        catalog = FakeCatalog()
        result = build_track_candidates(HAPPY_POP, PopularityPolicy.MAINSTREAM, catalog, rng=random.Random(6))
        self.assertTrue(result.exhausted)
        self.assertEqual(result.tracks, ())
        self.assertEqual(result.shortfall, 20)
        self.assertGreater(len(catalog.calls_of("search")), 0)

    def test_failing_catalog_degrades_to_exhausted(self):
        catalog = FakeCatalog(failing_queries={"pop", "popular pop", 'genre:"pop"'})
        result = build_track_candidates(HAPPY_POP, PopularityPolicy.MAINSTREAM, catalog, rng=random.Random(7))
        self.assertTrue(result.exhausted)

    def test_auth_failure_propagates(self):
        catalog = FakeCatalog(error=CatalogAuthError("expired", status=401))
        with self.assertRaises(CatalogAuthError):
            build_track_candidates(HAPPY_POP, PopularityPolicy.MAINSTREAM, catalog, rng=random.Random(8))

    def test_log_step_receives_progress(self):
        messages = []
        catalog = FakeCatalog(default_search=_windowed_search(_spread_tracks(30)))
        build_track_candidates(
            HAPPY_POP,
            PopularityPolicy.MAINSTREAM,
            catalog,
            rng=random.Random(9),
            log_step=messages.append,
        )
        self.assertTrue(any(message.startswith("Finalized") for message in messages))
