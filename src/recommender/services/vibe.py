"""Vibe metadata derived from photo analysis and its boundary defaults."""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, Optional, Sequence, Tuple

from .exceptions import InvalidVibeError

MAX_GENRES = 5
MAX_KEYWORDS = 5
MAX_ARTISTS = 25
DEFAULT_GENRES = ("pop",)
DEFAULT_THEME = "Photo Playlist"

STUDY_SCENE_TERMS = (
    "classroom",
    "school",
    "study",
    "desk",
    "student",
    "teacher",
    "education",
    "learning",
    "academic",
    "lecture",
    "whiteboard",
    "blackboard",
    "chalkboard",
)
NATURE_SCENE_TERMS = ("forest", "nature", "wood", "mountain", "tree")


class Energy(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class Tempo(str, Enum):
    SLOW = "slow"
    MODERATE = "moderate"
    FAST = "fast"


class SceneCategory(str, Enum):
    STUDY = "study"
    NATURE = "nature"


class PopularityPolicy(str, Enum):
    """How strongly the final list leans toward well-known tracks."""

    MAINSTREAM = "mainstream"
    INDIE = "indie"
    MIXED = "mixed"

    @classmethod
    def parse(cls, value: Optional[str]) -> "PopularityPolicy":
        """Resolve a request value, defaulting to mainstream when blank."""
        if value is not None and not isinstance(value, str):
            raise ValueError(f"Popularity filter must be a string, got {type(value).__name__}.")
        cleaned = (value or "").strip().lower()
        if not cleaned:
            return cls.MAINSTREAM
        try:
            return cls(cleaned)
        except ValueError as exc:
            raise ValueError(f"Unknown popularity filter: {value!r}") from exc


@dataclass(frozen=True)
class VibeDescriptor:
    """
    Structured music intent extracted from a photo.

    ``genres`` must hold at least one entry; the first one is the primary
    genre used for fallback queries. ``artists`` is in priority order.
    """

    genres: Tuple[str, ...]
    mood: Optional[str] = None
    energy: Energy = Energy.MEDIUM
    tempo: Tempo = Tempo.MODERATE
    keywords: Tuple[str, ...] = ()
    artists: Tuple[str, ...] = ()
    landmark: Optional[str] = None
    scene_category: Optional[SceneCategory] = None
    description: str = ""
    theme: str = field(default=DEFAULT_THEME)

    def __post_init__(self) -> None:
        genres = _clean_strings(self.genres)[:MAX_GENRES]
        if not genres:
            raise InvalidVibeError("A vibe requires at least one genre.")
        object.__setattr__(self, "genres", genres)
        object.__setattr__(self, "keywords", _clean_strings(self.keywords)[:MAX_KEYWORDS])
        object.__setattr__(self, "artists", _clean_strings(self.artists)[:MAX_ARTISTS])

    @property
    def primary_genre(self) -> str:
        return self.genres[0]

    @property
    def mood_word(self) -> str:
        return (self.mood or "").strip().lower()


def _clean_strings(values: Iterable[str]) -> Tuple[str, ...]:
    """Strip blanks and drop case-insensitive duplicates, preserving order."""
    if isinstance(values, str):
        values = (values,)
    seen = set()
    cleaned = []
    for value in values or ():
        if not isinstance(value, str):
            continue
        text = value.strip()
        key = text.lower()
        if not text or key in seen:
            continue
        seen.add(key)
        cleaned.append(text)
    return tuple(cleaned)


def _contains_any(text: str, terms: Sequence[str]) -> bool:
    return any(term in text for term in terms)


def classify_scene(description: str, genres: Sequence[str]) -> Optional[SceneCategory]:
    """
    Guess the scene type from the free-text photo description.

    Substring matching is intentionally loose: "woods" and "treehouse" both
    count as nature, "studying" counts as study.
    """
    text = (description or "").lower()
    lowered_genres = [genre.lower() for genre in genres if isinstance(genre, str)]
    if _contains_any(text, STUDY_SCENE_TERMS) or any(
        "lofi" in genre or "lo-fi" in genre for genre in lowered_genres
    ):
        return SceneCategory.STUDY
    primary = lowered_genres[0] if lowered_genres else ""
    if _contains_any(text, NATURE_SCENE_TERMS) or "folk" in primary:
        return SceneCategory.NATURE
    return None


def _parse_energy(value: object) -> Energy:
    cleaned = str(value or "").strip().lower()
    if cleaned == Energy.HIGH.value:
        return Energy.HIGH
    if cleaned == Energy.LOW.value:
        return Energy.LOW
    return Energy.MEDIUM


def _parse_tempo(value: object) -> Tempo:
    cleaned = str(value or "").strip().lower()
    if cleaned == Tempo.FAST.value:
        return Tempo.FAST
    if cleaned == Tempo.SLOW.value:
        return Tempo.SLOW
    return Tempo.MODERATE


def _string_list(value: object) -> Tuple[str, ...]:
    if isinstance(value, str):
        value = re.split(r"\s*,\s*", value)
    if not isinstance(value, (list, tuple)):
        return ()
    return _clean_strings(item for item in value if isinstance(item, str))


def vibe_from_analysis(analysis: Dict[str, object]) -> VibeDescriptor:
    """
    Build a descriptor from a vision analysis payload.

    Missing genres fall back to pop so the pipeline always has a primary
    genre to work with.
    """
    if not isinstance(analysis, dict):
        raise InvalidVibeError("Analysis payload must be an object.")

    genres = _string_list(analysis.get("genres")) or DEFAULT_GENRES
    description = str(analysis.get("description") or "").strip()
    mood = str(analysis.get("mood") or "").strip() or None
    landmark = str(analysis.get("school") or "").strip() or None
    theme = str(analysis.get("playlistTheme") or "").strip() or DEFAULT_THEME

    return VibeDescriptor(
        genres=genres,
        mood=mood,
        energy=_parse_energy(analysis.get("energy")),
        tempo=_parse_tempo(analysis.get("tempo")),
        keywords=_string_list(analysis.get("musicalKeywords")),
        artists=_string_list(analysis.get("artists")),
        landmark=landmark,
        scene_category=classify_scene(description, genres),
        description=description,
        theme=theme,
    )
