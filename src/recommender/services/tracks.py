"""Track records returned by the music catalog."""

from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple


def _primary_image_url(images: Optional[List[Dict]]) -> str:
    """Return the first image URL from a Spotify images array."""
    for image in images or []:
        url = image.get("url") if isinstance(image, dict) else None
        if url:
            return url
    return ""


@dataclass(frozen=True)
class TrackCandidate:
    """A catalog track. Two candidates are equal when their ids match."""

    id: str
    title: str
    primary_artist: str
    all_artists: Tuple[str, ...] = ()
    album: str = ""
    duration_ms: int = 0
    popularity: int = 0
    preview_url: Optional[str] = None
    external_url: str = ""
    uri: str = ""
    album_image_url: str = ""

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, TrackCandidate):
            return NotImplemented
        return self.id == other.id

    def __hash__(self) -> int:
        return hash(self.id)

    @classmethod
    def from_spotify(cls, track: Dict) -> Optional["TrackCandidate"]:
        """Parse a Spotify track object, returning None when it has no id."""
        if not isinstance(track, dict) or not track.get("id"):
            return None
        album = track.get("album") or {}
        artist_names = tuple(
            artist.get("name", "")
            for artist in track.get("artists") or []
            if isinstance(artist, dict) and artist.get("name")
        )
        external_urls = track.get("external_urls") or {}
        try:
            popularity = int(track.get("popularity") or 0)
        except (TypeError, ValueError):
            popularity = 0
        try:
            duration_ms = int(track.get("duration_ms") or 0)
        except (TypeError, ValueError):
            duration_ms = 0
        return cls(
            id=str(track["id"]),
            title=track.get("name") or "Unknown",
            primary_artist=artist_names[0] if artist_names else "",
            all_artists=artist_names,
            album=album.get("name", "") if isinstance(album, dict) else "",
            duration_ms=duration_ms,
            popularity=max(0, min(100, popularity)),
            preview_url=track.get("preview_url") or None,
            external_url=external_urls.get("spotify", "") if isinstance(external_urls, dict) else "",
            uri=track.get("uri") or f"spotify:track:{track['id']}",
            album_image_url=_primary_image_url(album.get("images") if isinstance(album, dict) else None),
        )

    def to_payload(self) -> Dict[str, object]:
        """Serialize for the preview JSON response."""
        return {
            "id": self.id,
            "name": self.title,
            "artists": ", ".join(self.all_artists) or "Unknown",
            "album": self.album,
            "preview_url": self.preview_url,
            "external_urls": {"spotify": self.external_url},
            "uri": self.uri,
            "duration_ms": self.duration_ms,
            "popularity": self.popularity,
            "album_image": self.album_image_url or None,
        }
