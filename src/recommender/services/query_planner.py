"""Translate vibe metadata into an ordered list of catalog queries."""

import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Sequence, Tuple, Union

from .lookup_tables import DEFAULT_TABLES, LookupTables
from .vibe import Energy, SceneCategory, Tempo, VibeDescriptor

logger = logging.getLogger(__name__)

MAX_SEED_ARTISTS = 5
MAX_SEED_GENRES = 2
MAX_FALLBACK_GENRES = 3
FALLBACK_ARTISTS_PER_GENRE = 5
MAX_PLANNED_ARTISTS = 25
MAX_KEYWORD_COMBOS = 3
SEARCH_LIMIT = 10
BACKFILL_LIMIT = 20
RECOMMENDATION_LIMIT = 50

ENERGY_TARGETS = {
    Energy.HIGH: (("target_energy", 0.8), ("min_energy", 0.6)),
    Energy.LOW: (("target_energy", 0.3), ("max_energy", 0.5)),
    Energy.MEDIUM: (("target_energy", 0.5),),
}
TEMPO_TARGETS = {
    Tempo.FAST: (("target_tempo", 140), ("min_tempo", 120)),
    Tempo.SLOW: (("target_tempo", 80), ("max_tempo", 100)),
    Tempo.MODERATE: (("target_tempo", 110),),
}
ENERGY_SEARCH_WORDS = {
    Energy.HIGH: ("upbeat",),
    Energy.LOW: ("mellow", "acoustic"),
    Energy.MEDIUM: (),
}


class SearchRole(str, Enum):
    LANDMARK = "landmark"
    SEARCH = "search"
    BACKFILL = "backfill"


@dataclass(frozen=True)
class KeywordSearch:
    query: str
    limit: int = SEARCH_LIMIT
    role: SearchRole = SearchRole.SEARCH


@dataclass(frozen=True)
class ArtistSearch:
    name: str


@dataclass(frozen=True)
class RecommendationSeed:
    """
    Parameters for one recommendations call.

    ``seed_artists`` holds catalog artist ids; the planner leaves it empty and
    the aggregator fills it from the resolved ``ArtistSearch`` directives.
    """

    seed_genres: Tuple[str, ...] = ()
    targets: Tuple[Tuple[str, float], ...] = ()
    seed_artists: Tuple[str, ...] = ()
    limit: int = RECOMMENDATION_LIMIT

    @property
    def target_params(self) -> Dict[str, float]:
        return dict(self.targets)


QueryDirective = Union[KeywordSearch, ArtistSearch, RecommendationSeed]


@dataclass(frozen=True)
class LandmarkMatch:
    """A recognised institution plus the terms that identify its songs."""

    key: str
    name: str
    terms: Tuple[str, ...]


# Words that name no particular institution on their own.
GENERIC_LANDMARK_WORDS = frozenset(
    {
        "the", "of", "at", "and", "in", "university", "college", "school", "institute",
        "technology", "campus", "state", "north", "south", "east", "west", "hill", "new",
    }
)


def _normalize_phrase(text: str) -> str:
    return re.sub(r"\s+", " ", (text or "").strip().lower())


def contains_phrase(haystack: str, needle: str) -> bool:
    """Case-insensitive whole-word phrase search."""
    if not haystack or not needle:
        return False
    pattern = r"(?<!\w)" + re.escape(needle) + r"(?!\w)"
    return re.search(pattern, haystack, re.IGNORECASE) is not None


def _is_specific(landmark: str) -> bool:
    """True when the phrase holds at least one non-generic word."""
    return any(word not in GENERIC_LANDMARK_WORDS for word in re.findall(r"[\w&]+", landmark))


def _landmark_names_key(landmark: str, key: str) -> bool:
    """
    Match a normalized landmark against a table key.

    "Duke University Chapel" names "duke" and "Duke" names "duke university",
    but "Penn State" is not "penn" and "University" alone names nothing.
    """
    if landmark == key:
        return True
    if contains_phrase(landmark, key):
        return not contains_phrase(landmark, f"{key} state")
    return _is_specific(landmark) and contains_phrase(key, landmark)


def genre_slug(genre: str) -> str:
    """Convert a free-text genre into a recommendations seed genre."""
    slug = re.sub(r"\s+", "-", (genre or "").strip().lower())
    slug = slug.replace("r&b", "r-n-b")
    if slug in {"lofi", "lo-fi"}:
        return "chill"
    return slug


def _dedupe(values: Sequence[str]) -> List[str]:
    seen = set()
    result: List[str] = []
    for value in values:
        key = value.lower()
        if key in seen:
            continue
        seen.add(key)
        result.append(value)
    return result


class VibeQueryPlanner:
    """Build ordered catalog query directives for a vibe."""

    def __init__(self, tables: LookupTables = DEFAULT_TABLES, max_searches: int = 25) -> None:
        self.tables = tables
        self.max_searches = max_searches

    def match_landmark(self, vibe: VibeDescriptor) -> Optional[LandmarkMatch]:
        """Look the landmark up in the institution table, or return None."""
        landmark = _normalize_phrase(vibe.landmark or "")
        if not landmark:
            return None
        # Longest keys first so "duke university" wins over "duke".
        keys = sorted(self.tables.landmark_songs, key=len, reverse=True)
        for key in keys:
            if _landmark_names_key(landmark, key):
                return LandmarkMatch(key=key, name=vibe.landmark.strip(), terms=self.tables.landmark_songs[key])
        for key in keys:
            if contains_phrase(vibe.description, key):
                return LandmarkMatch(key=key, name=vibe.landmark.strip(), terms=self.tables.landmark_songs[key])
        return None

    def artist_names(self, vibe: VibeDescriptor) -> List[str]:
        """Return artist names in priority order for seeding and searching."""
        if vibe.scene_category == SceneCategory.STUDY:
            curated = [name.lower() for name in self.tables.study_artists]
            matching = [
                artist
                for artist in vibe.artists
                if any(artist.lower() in name or name in artist.lower() for name in curated)
            ]
            return _dedupe(list(self.tables.study_artists) + matching)[:MAX_PLANNED_ARTISTS]
        if vibe.artists:
            return list(vibe.artists[:MAX_PLANNED_ARTISTS])
        names: List[str] = []
        for genre in vibe.genres[:MAX_FALLBACK_GENRES]:
            names.extend(self.tables.genre_artists.get(genre.lower(), ())[:FALLBACK_ARTISTS_PER_GENRE])
        return _dedupe(names)[:MAX_PLANNED_ARTISTS]

    def seed_genres(self, vibe: VibeDescriptor) -> Tuple[str, ...]:
        if vibe.scene_category == SceneCategory.STUDY:
            return tuple(self.tables.study_seed_genres)
        slugs = [genre_slug(genre) for genre in vibe.genres[:MAX_SEED_GENRES]]
        return tuple(_dedupe([slug for slug in slugs if slug]))

    def audio_targets(self, vibe: VibeDescriptor) -> Tuple[Tuple[str, float], ...]:
        if vibe.scene_category == SceneCategory.STUDY:
            return tuple(self.tables.study_targets.items())
        targets: Dict[str, float] = {}
        targets.update(ENERGY_TARGETS[vibe.energy])
        targets.update(TEMPO_TARGETS[vibe.tempo])
        targets.update(self.tables.mood_targets.get(vibe.mood_word, ()))
        return tuple(targets.items())

    def _landmark_searches(self, vibe: VibeDescriptor) -> List[KeywordSearch]:
        match = self.match_landmark(vibe)
        if match is None:
            return []
        queries = [f'"{term}"' for term in match.terms]
        queries.extend(f"{match.name} {suffix}" for suffix in ("fight song", "anthem", "song"))
        return [KeywordSearch(query, role=SearchRole.LANDMARK) for query in queries]

    def _general_searches(self, vibe: VibeDescriptor, artist_names: Sequence[str]) -> List[KeywordSearch]:
        genre = vibe.primary_genre
        scene_queries: List[str] = []
        if vibe.scene_category == SceneCategory.STUDY:
            scene_queries.extend(self.tables.study_searches)
        combos: List[str] = []
        if vibe.mood_word:
            combos.append(f"{genre} {vibe.mood_word}")
        combos.extend(f"{genre} {word}" for word in ENERGY_SEARCH_WORDS[vibe.energy])
        combos.extend(f"{genre} {keyword}" for keyword in vibe.keywords[:MAX_KEYWORD_COMBOS])
        # Artist queries take whatever budget the scene and combo queries leave.
        artist_budget = max(self.max_searches - len(scene_queries) - len(combos), 0)
        artist_queries = [f'artist:"{name}"' for name in artist_names[:artist_budget]]
        queries = _dedupe(scene_queries + artist_queries + combos)[: self.max_searches]
        return [KeywordSearch(query) for query in queries]

    @staticmethod
    def _backfill_searches(vibe: VibeDescriptor) -> List[KeywordSearch]:
        genre = vibe.primary_genre
        queries = [genre, f"popular {genre}", f'genre:"{genre}"']
        return [KeywordSearch(query, limit=BACKFILL_LIMIT, role=SearchRole.BACKFILL) for query in queries]

    def plan(self, vibe: VibeDescriptor) -> Tuple[QueryDirective, ...]:
        """
        Return directives in execution priority order.

        The recommendation seed (when there is anything to seed with) comes
        first, then artist lookups, landmark searches, general searches and
        finally the broad genre searches reserved for backfill.
        """
        names = self.artist_names(vibe)
        seed_genres = self.seed_genres(vibe)
        directives: List[QueryDirective] = []
        if names or seed_genres:
            directives.append(RecommendationSeed(seed_genres=seed_genres, targets=self.audio_targets(vibe)))
        directives.extend(ArtistSearch(name) for name in names[:MAX_SEED_ARTISTS])
        directives.extend(self._landmark_searches(vibe))
        directives.extend(self._general_searches(vibe, names))
        directives.extend(self._backfill_searches(vibe))
        logger.debug(
            "Planned %d directives for genre=%s scene=%s landmark=%s",
            len(directives),
            vibe.primary_genre,
            vibe.scene_category.value if vibe.scene_category else None,
            vibe.landmark,
        )
        return tuple(directives)
