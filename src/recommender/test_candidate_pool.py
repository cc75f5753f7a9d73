"""Tests for candidate pooling and catalog fan-out."""

import itertools
import random

from django.test import SimpleTestCase

from recommender.services.candidate_pool import CandidateAggregator, CandidatePool
from recommender.services.exceptions import CatalogAuthError
from recommender.services.query_planner import (
    ArtistSearch,
    KeywordSearch,
    RecommendationSeed,
    SearchRole,
)
from recommender.testing import FakeCatalog, make_track


def _fresh_tracks(prefix):
    """Return a search function that hands out new unique tracks on every call."""
    counter = itertools.count()

    def _search(query, limit, offset):
        return [make_track(f"{prefix}{next(counter)}") for _ in range(limit)]

    return _search


class CandidatePoolTests(SimpleTestCase):
    """Dedup and per-artist cap on insert."""

    def test_duplicates_are_ignored(self):
        pool = CandidatePool(max_per_artist=3)
        self.assertTrue(pool.add(make_track("a")))
        self.assertFalse(pool.add(make_track("a", title="Different title")))
        self.assertEqual(len(pool), 1)

    def test_artist_cap_is_case_insensitive(self):
        pool = CandidatePool(max_per_artist=2)
        added = pool.extend(
            [
                make_track("a", artist="Phoebe Bridgers"),
                make_track("b", artist="phoebe bridgers"),
                make_track("c", artist="Phoebe Bridgers"),
                make_track("d", artist="Clairo"),
            ]
        )
        self.assertEqual(added, 3)
        self.assertEqual(pool.ids(), {"a", "b", "d"})

    def test_tracks_without_artist_are_not_capped(self):
        pool = CandidatePool(max_per_artist=1)
        pool.extend([make_track(str(i), artist="") for i in range(4)])
        self.assertEqual(len(pool), 4)


class CandidateAggregatorTests(SimpleTestCase):
    """Directive execution order, failure isolation and stopping rules."""

    def test_recommendations_use_resolved_artist_ids(self):
        catalog = FakeCatalog(
            artist_ids={"Hozier": "id-hozier", "Clairo": "id-clairo"},
            recommendations=[make_track(f"r{i}") for i in range(5)],
        )
        directives = [
            RecommendationSeed(seed_genres=("pop", "indie"), targets=(("target_energy", 0.5),)),
            ArtistSearch("Hozier"),
            ArtistSearch("Unknown Person"),
            ArtistSearch("Clairo"),
        ]
        pool = CandidateAggregator(catalog, random.Random(3)).aggregate(directives, 20, 3)

        self.assertEqual(len(pool), 5)
        recommendation_call = catalog.calls_of("recommendations")[0]
        self.assertEqual(set(recommendation_call[1]), {"id-hozier", "id-clairo"})
        self.assertEqual(set(recommendation_call[2]), {"pop", "indie"})
        self.assertEqual(recommendation_call[3], {"target_energy": 0.5})
        self.assertEqual(len(catalog.calls_of("artist")), 3)

    def test_recommendation_runs_before_searches(self):
        catalog = FakeCatalog(default_search=_fresh_tracks("s"))
        directives = [
            RecommendationSeed(seed_genres=("pop",)),
            KeywordSearch("pop happy"),
        ]
        CandidateAggregator(catalog, random.Random(1)).aggregate(directives, 20, 3)
        kinds = [call[0] for call in catalog.calls]
        self.assertEqual(kinds[0], "recommendations")
        self.assertIn("search", kinds)

    def test_failed_calls_are_isolated(self):
        catalog = FakeCatalog(
            search_results={"pop sunny": [make_track("a"), make_track("b")]},
            failing_queries={"pop happy"},
        )
        directives = [KeywordSearch("pop happy"), KeywordSearch("pop sunny")]
        pool = CandidateAggregator(catalog, random.Random(2), max_backfill_rounds=0).aggregate(directives, 20, 3)
        self.assertEqual(pool.ids(), {"a", "b"})
        self.assertEqual(len(catalog.calls_of("search")), 2)

    def test_auth_failure_propagates(self):
        catalog = FakeCatalog(error=CatalogAuthError("expired", status=401))
        with self.assertRaises(CatalogAuthError):
            CandidateAggregator(catalog).aggregate([KeywordSearch("pop")], 20, 3)

    def test_auth_failure_during_artist_lookup_propagates(self):
        catalog = FakeCatalog(error=CatalogAuthError("expired", status=401))
        with self.assertRaises(CatalogAuthError):
            CandidateAggregator(catalog).aggregate([ArtistSearch("Hozier")], 20, 3)

    def test_searches_stop_at_three_times_target(self):
        catalog = FakeCatalog(default_search=_fresh_tracks("s"))
        directives = [KeywordSearch(f"query {i}") for i in range(10)]
        pool = CandidateAggregator(catalog, random.Random(5)).aggregate(directives, 5, 3)
        self.assertEqual(len(pool), 20)
        self.assertEqual(len(catalog.calls_of("search")), 2)

    def test_search_call_budget(self):
        catalog = FakeCatalog()
        directives = [KeywordSearch(f"query {i}") for i in range(30)]
        CandidateAggregator(catalog, random.Random(5), max_search_calls=15, max_backfill_rounds=0).aggregate(
            directives, 20, 3
        )
        self.assertEqual(len(catalog.calls_of("search")), 15)

    def test_landmark_searches_run_first(self):
        catalog = FakeCatalog()
        directives = [KeywordSearch(f"query {i}") for i in range(8)]
        directives.append(KeywordSearch('"Duke"', role=SearchRole.LANDMARK))
        directives.append(KeywordSearch("Duke fight song", role=SearchRole.LANDMARK))
        for seed in range(5):
            catalog.calls.clear()
            CandidateAggregator(catalog, random.Random(seed), max_backfill_rounds=0).aggregate(directives, 20, 3)
            queries = [call[1] for call in catalog.calls_of("search")]
            self.assertEqual(queries[:2], ['"Duke"', "Duke fight song"])

    def test_backfill_stops_when_round_adds_nothing(self):
        repeated = [make_track("x"), make_track("y")]
        catalog = FakeCatalog(default_search=lambda query, limit, offset: repeated)
        directives = [
            KeywordSearch("rock", limit=20, role=SearchRole.BACKFILL),
            KeywordSearch("popular rock", limit=20, role=SearchRole.BACKFILL),
            KeywordSearch('genre:"rock"', limit=20, role=SearchRole.BACKFILL),
        ]
        pool = CandidateAggregator(catalog, random.Random(1), max_backfill_rounds=3).aggregate(directives, 20, 3)
        self.assertEqual(pool.ids(), {"x", "y"})
        searches = catalog.calls_of("search")
        self.assertEqual(len(searches), 6)
        self.assertEqual([call[3] for call in searches[3:]], [20, 20, 20])

    def test_backfill_round_ceiling(self):
        catalog = FakeCatalog(default_search=_fresh_tracks("b"))
        directives = [
            KeywordSearch("rock", limit=20, role=SearchRole.BACKFILL),
            KeywordSearch("popular rock", limit=20, role=SearchRole.BACKFILL),
        ]
        pool = CandidateAggregator(catalog, random.Random(1), max_backfill_rounds=2).aggregate(
            directives, 1000, 3
        )
        self.assertEqual(len(catalog.calls_of("search")), 4)
        self.assertEqual(len(pool), 80)

    def test_backfill_skipped_when_pool_is_large_enough(self):
        catalog = FakeCatalog(
            search_results={"pop": [make_track(f"t{i}") for i in range(10)]},
        )
        directives = [
            KeywordSearch("pop"),
            KeywordSearch("popular pop", limit=20, role=SearchRole.BACKFILL),
        ]
        CandidateAggregator(catalog, random.Random(1)).aggregate(directives, 5, 3)
        self.assertEqual([call[1] for call in catalog.calls_of("search")], ["pop"])

    def test_same_directives_yield_same_id_set(self):
        tracks = {f"q{i}": [make_track(f"q{i}-{j}") for j in range(3)] for i in range(6)}
        catalog = FakeCatalog(
            search_results=tracks,
            recommendations=[make_track(f"r{i}") for i in range(4)],
        )
        directives = [RecommendationSeed(seed_genres=("pop",))] + [KeywordSearch(query) for query in tracks]
        first = CandidateAggregator(catalog, random.Random(1), max_backfill_rounds=0).aggregate(directives, 20, 3)
        second = CandidateAggregator(catalog, random.Random(99), max_backfill_rounds=0).aggregate(directives, 20, 3)
        self.assertEqual(first.ids(), second.ids())
        self.assertEqual(len(first), 22)
