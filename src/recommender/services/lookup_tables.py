"""Static lookup data used to turn vibe metadata into catalog queries."""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping, Tuple


def _freeze(table) -> Mapping[str, Tuple]:
    return MappingProxyType({key: tuple(values) for key, values in table.items()})


_UNC_TERMS = ("Carolina on my mind", "Carolina in my mind", "Carolina", "Tar Heel", "UNC", "Chapel Hill")
_DUKE_TERMS = ("Duke", "Blue Devil", "Duke Blue Devils")
_MIT_TERMS = ("MIT", "Massachusetts Institute of Technology")
_PENN_TERMS = ("Penn", "Quaker")

LANDMARK_SONGS = _freeze(
    {
        "unc chapel hill": _UNC_TERMS,
        "unc": _UNC_TERMS,
        "university of north carolina": _UNC_TERMS,
        "duke university": _DUKE_TERMS,
        "duke": _DUKE_TERMS,
        "harvard": ("Harvard", "Crimson"),
        "harvard university": ("Harvard", "Crimson"),
        "yale": ("Yale", "Bulldog"),
        "stanford": ("Stanford", "Cardinal"),
        "mit": _MIT_TERMS,
        "massachusetts institute of technology": _MIT_TERMS,
        "princeton": ("Princeton", "Tiger"),
        "columbia": ("Columbia", "Lion"),
        "university of pennsylvania": _PENN_TERMS,
        "penn": _PENN_TERMS,
        "upenn": _PENN_TERMS,
    }
)

_LOFI_ARTISTS = (
    "Lofi Girl",
    "Chillhop Music",
    "Kupla",
    "Idealism",
    "Jinsang",
    "Nujabes",
    "Tomppabeats",
    "Birocratic",
    "Sleepy Fish",
    "Aso",
    "eery",
    "SwuM",
    "Bonobo",
    "Tycho",
)
_FOLK_POP_ARTISTS = (
    "Noah Kahan",
    "Hozier",
    "Lizzy McAlpine",
    "Mt. Joy",
    "The Lumineers",
    "Mumford & Sons",
    "Of Monsters and Men",
    "Vance Joy",
)

GENRE_ARTISTS = _freeze(
    {
        "indie folk": (
            "Noah Kahan",
            "Hozier",
            "Lizzy McAlpine",
            "Mt. Joy",
            "Bon Iver",
            "The Lumineers",
            "Gregory Alan Isakov",
            "Phoebe Bridgers",
            "Fleet Foxes",
            "Iron & Wine",
            "Ben Howard",
            "Jose Gonzalez",
        ),
        "folk pop": _FOLK_POP_ARTISTS,
        "folk": ("Noah Kahan", "Hozier", "The Lumineers", "Mumford & Sons", "Iron & Wine", "Fleet Foxes", "Bon Iver"),
        "pop": (
            "Taylor Swift",
            "Ariana Grande",
            "Ed Sheeran",
            "Dua Lipa",
            "The Weeknd",
            "Billie Eilish",
            "Olivia Rodrigo",
            "Harry Styles",
        ),
        "indie pop": (
            "Phoebe Bridgers",
            "Clairo",
            "Boygenius",
            "Lorde",
            "Tame Impala",
            "Arctic Monkeys",
            "The 1975",
            "Lana Del Rey",
        ),
        "hip hop": ("Drake", "Kendrick Lamar", "Travis Scott", "Post Malone", "J. Cole", "Tyler, The Creator", "Kanye West"),
        "r&b": ("The Weeknd", "SZA", "Frank Ocean", "Daniel Caesar", "Khalid", "H.E.R.", "Alicia Keys"),
        "country": ("Luke Combs", "Morgan Wallen", "Zach Bryan", "Kacey Musgraves", "Chris Stapleton", "Maren Morris"),
        "acoustic": ("Ed Sheeran", "John Mayer", "James Bay", "Damien Rice", "Ben Howard", "Jose Gonzalez"),
        "rock": ("The Killers", "Arctic Monkeys", "Foo Fighters", "Red Hot Chili Peppers", "Imagine Dragons"),
        "electronic": ("Daft Punk", "The Chemical Brothers", "ODESZA", "Flume", "Disclosure"),
        "dance": ("Calvin Harris", "David Guetta", "Avicii", "Swedish House Mafia", "Martin Garrix"),
        "lofi": _LOFI_ARTISTS,
        "lo-fi": _LOFI_ARTISTS,
        "ambient": ("Bonobo", "Tycho", "Boards of Canada", "Brian Eno", "Marconi Union", "Hammock", "Stars of the Lid"),
        "instrumental": ("Bonobo", "Tycho", "Nujabes", "Jinsang", "Tomppabeats", "Birocratic"),
        "chill": ("Lofi Girl", "Chillhop Music", "Kupla", "Bonobo", "Tycho", "ODESZA"),
    }
)

_UPBEAT_TARGETS = (("target_valence", 0.8), ("target_danceability", 0.7))
_SAD_TARGETS = (("target_valence", 0.3), ("max_valence", 0.5))
_CALM_TARGETS = (("target_energy", 0.3), ("target_valence", 0.5))
_DREAMY_TARGETS = (("target_valence", 0.6), ("target_energy", 0.4))

MOOD_TARGETS = _freeze(
    {
        "happy": _UPBEAT_TARGETS,
        "upbeat": _UPBEAT_TARGETS,
        "energetic": _UPBEAT_TARGETS,
        "sad": _SAD_TARGETS,
        "melancholy": _SAD_TARGETS,
        "melancholic": _SAD_TARGETS,
        "calm": _CALM_TARGETS,
        "chill": _CALM_TARGETS,
        "peaceful": _CALM_TARGETS,
        "romantic": _DREAMY_TARGETS,
        "dreamy": _DREAMY_TARGETS,
    }
)

STUDY_ARTISTS = _LOFI_ARTISTS + ("Boards of Canada", "Brian Eno")
STUDY_SEARCHES = ("lofi", "lo-fi", "study music", "chillhop", "lofi hip hop")
STUDY_SEED_GENRES = ("chill", "ambient")
STUDY_TARGETS = MappingProxyType(
    {
        "target_energy": 0.2,
        "max_energy": 0.4,
        "target_tempo": 85,
        "max_tempo": 100,
        "target_valence": 0.5,
        "target_danceability": 0.3,
        "max_danceability": 0.5,
        "target_instrumentalness": 0.7,
        "min_instrumentalness": 0.5,
    }
)


@dataclass(frozen=True)
class LookupTables:
    """Bundle of read-only tables handed to the query planner."""

    landmark_songs: Mapping[str, Tuple[str, ...]] = field(default_factory=lambda: LANDMARK_SONGS)
    genre_artists: Mapping[str, Tuple[str, ...]] = field(default_factory=lambda: GENRE_ARTISTS)
    mood_targets: Mapping[str, Tuple[Tuple[str, float], ...]] = field(default_factory=lambda: MOOD_TARGETS)
    study_artists: Tuple[str, ...] = STUDY_ARTISTS
    study_searches: Tuple[str, ...] = STUDY_SEARCHES
    study_seed_genres: Tuple[str, ...] = STUDY_SEED_GENRES
    study_targets: Mapping[str, float] = field(default_factory=lambda: STUDY_TARGETS)


DEFAULT_TABLES = LookupTables()
