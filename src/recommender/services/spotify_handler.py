"""Spotify helper utilities for the recommender app."""

import logging
from typing import Callable, Dict, Iterable, List, Optional, Protocol, Sequence

import requests
from django.conf import settings
import spotipy
from spotipy import SpotifyException

from .exceptions import CatalogAuthError, CatalogCallError
from .tracks import TrackCandidate
from .vibe import VibeDescriptor

logger = logging.getLogger(__name__)

CATALOG_TIMEOUT = getattr(settings, "RECOMMENDER_CATALOG_TIMEOUT", 5)
CATALOG_RETRIES = getattr(settings, "RECOMMENDER_CATALOG_RETRIES", 0)
PLAYLIST_NAME_MAX_LENGTH = 100
PLAYLIST_DESCRIPTION_MAX_LENGTH = 300
COVER_IMAGE_MAX_BYTES = 256 * 1024
MAX_SEARCH_LIMIT = 50
MAX_RECOMMENDATION_LIMIT = 100


class ExternalMusicCatalog(Protocol):
    """Read-only catalog operations the candidate pipeline depends on."""

    def search_tracks(self, query: str, limit: int = 10, offset: int = 0) -> List[TrackCandidate]:
        ...

    def search_artist(self, name: str) -> Optional[str]:
        ...

    def get_recommendations(
        self,
        seed_artists: Sequence[str],
        seed_genres: Sequence[str],
        targets: Dict[str, float],
        limit: int = 50,
    ) -> List[TrackCandidate]:
        ...


def _log(log_step: Optional[Callable[[str], None]], message: str) -> None:
    """Record a progress message via callback when one is supplied."""
    if log_step:
        log_step(message)


def _parse_tracks(items: object, context: str) -> List[TrackCandidate]:
    if not isinstance(items, list):
        raise CatalogCallError(f"Malformed track payload for {context}.")
    tracks: List[TrackCandidate] = []
    for item in items:
        track = TrackCandidate.from_spotify(item)
        if track is not None:
            tracks.append(track)
    return tracks


class SpotifyCatalog:
    """
    ExternalMusicCatalog backed by the Spotify Web API.

    Every call carries the configured request timeout. A 401 from Spotify is
    raised as CatalogAuthError; any other failure becomes CatalogCallError.
    """

    def __init__(self, token: str, *, timeout: Optional[float] = None, retries: Optional[int] = None) -> None:
        self.sp = spotipy.Spotify(
            auth=token,
            requests_timeout=CATALOG_TIMEOUT if timeout is None else timeout,
            retries=CATALOG_RETRIES if retries is None else retries,
        )

    def _call(self, context: str, func: Callable, *args, **kwargs):
        try:
            return func(*args, **kwargs)
        except SpotifyException as exc:
            status = getattr(exc, "http_status", 0) or 0
            if status == 401:
                raise CatalogAuthError(f"Spotify rejected the access token during {context}.", status=401) from exc
            raise CatalogCallError(f"Spotify error during {context}: {exc}", status=status) from exc
        except requests.exceptions.RequestException as exc:
            raise CatalogCallError(f"Network error during {context}: {exc}") from exc

    def search_tracks(self, query: str, limit: int = 10, offset: int = 0) -> List[TrackCandidate]:
        context = f"track search {query!r}"
        response = self._call(
            context,
            self.sp.search,
            q=query,
            limit=max(1, min(limit, MAX_SEARCH_LIMIT)),
            offset=max(0, offset),
            type="track",
        )
        if not isinstance(response, dict):
            raise CatalogCallError(f"Malformed response for {context}.")
        return _parse_tracks((response.get("tracks") or {}).get("items"), context)

    def search_artist(self, name: str) -> Optional[str]:
        context = f"artist search {name!r}"
        response = self._call(context, self.sp.search, q=name, limit=1, type="artist")
        if not isinstance(response, dict):
            raise CatalogCallError(f"Malformed response for {context}.")
        items = (response.get("artists") or {}).get("items") or []
        if not items or not isinstance(items[0], dict):
            return None
        return items[0].get("id") or None

    def get_recommendations(
        self,
        seed_artists: Sequence[str],
        seed_genres: Sequence[str],
        targets: Dict[str, float],
        limit: int = 50,
    ) -> List[TrackCandidate]:
        context = "recommendations"
        response = self._call(
            context,
            self.sp.recommendations,
            seed_artists=list(seed_artists) or None,
            seed_genres=list(seed_genres) or None,
            limit=max(1, min(limit, MAX_RECOMMENDATION_LIMIT)),
            **targets,
        )
        if not isinstance(response, dict):
            raise CatalogCallError(f"Malformed response for {context}.")
        return _parse_tracks(response.get("tracks"), context)


def truncate_at_word(text: str, max_length: int) -> str:
    """Trim text to max_length, cutting at the last space when possible."""
    if len(text) <= max_length:
        return text
    truncated = text[:max_length]
    last_space = truncated.rfind(" ")
    return truncated[:last_space] if last_space > 0 else truncated


def build_playlist_description(vibe: VibeDescriptor) -> str:
    """Summarise the photo analysis for the playlist description field."""
    description = vibe.description or "A curated playlist based on your photo"
    full = (
        f"Created from photo analysis: {description}. "
        f"Mood: {vibe.mood or ''}, Energy: {vibe.energy.value}, Tempo: {vibe.tempo.value}"
    )
    return truncate_at_word(full, PLAYLIST_DESCRIPTION_MAX_LENGTH)


def _unique_uris(track_uris: Iterable[str]) -> List[str]:
    seen = set()
    unique: List[str] = []
    for uri in track_uris:
        if not uri or not isinstance(uri, str) or uri in seen:
            continue
        seen.add(uri)
        unique.append(uri)
    return unique


def _strip_data_url(image: str) -> str:
    """Drop a ``data:image/jpeg;base64,`` style prefix if present."""
    if "," in image:
        return image.split(",", 1)[1]
    return image


def _upload_cover_image(
    sp: spotipy.Spotify,
    playlist_id: str,
    image: str,
    log_step: Optional[Callable[[str], None]] = None,
) -> bool:
    """Upload a base64 JPEG cover. Failures are logged and reported as False."""
    encoded = _strip_data_url(image).strip()
    if not encoded:
        return False
    approx_bytes = len(encoded) * 3 // 4
    if approx_bytes > COVER_IMAGE_MAX_BYTES:
        logger.warning(
            "Cover image is %dKB which exceeds Spotify's 256KB limit; attempting upload anyway.",
            approx_bytes // 1024,
        )
    try:
        sp.playlist_upload_cover_image(playlist_id, encoded)
    except SpotifyException as exc:
        logger.warning("Spotify rejected cover image for %s: %s", playlist_id, exc)
        _log(log_step, f"Cover upload failed: {exc}")
        return False
    except requests.exceptions.RequestException as exc:
        logger.warning("Network error uploading cover image for %s: %s", playlist_id, exc)
        _log(log_step, f"Cover upload failed: {exc}")
        return False
    _log(log_step, "Cover image uploaded.")
    return True


def create_playlist_with_tracks(
    token: str,
    track_uris: List[str],
    playlist_name: str,
    *,
    description: str = "",
    user_id: Optional[str] = None,
    public: bool = False,
    cover_image: Optional[str] = None,
    log_step: Optional[Callable[[str], None]] = None,
) -> Dict[str, object]:
    """
    Create a Spotify playlist and populate it with the given track URIs.

    The URIs are added in the order supplied, duplicates removed. Returns the
    created playlist metadata and resolved user id.
    """
    uris = _unique_uris(track_uris or [])
    if not uris:
        raise ValueError("At least one track uri is required to create a playlist.")
    cleaned_name = (playlist_name or "").strip()
    if not cleaned_name:
        raise ValueError("A playlist name must be provided.")
    if len(cleaned_name) > PLAYLIST_NAME_MAX_LENGTH:
        raise ValueError("Playlist name must be 100 characters or fewer.")

    sp = spotipy.Spotify(auth=token, requests_timeout=CATALOG_TIMEOUT)

    resolved_user_id = user_id
    if not resolved_user_id:
        profile = sp.current_user() or {}
        resolved_user_id = profile.get("id")
        if not resolved_user_id:
            raise RuntimeError("Spotify user id could not be resolved.")

    created = sp.user_playlist_create(
        user=resolved_user_id,
        name=cleaned_name,
        public=public,
        description=truncate_at_word(description or "", PLAYLIST_DESCRIPTION_MAX_LENGTH),
    )
    playlist_id = (created or {}).get("id")
    if not playlist_id:
        raise RuntimeError("Spotify did not return a playlist id.")
    _log(log_step, f"Created playlist {playlist_id} for {resolved_user_id}.")

    # Spotify limits each request to 100 tracks max.
    chunk_size = 100
    for start in range(0, len(uris), chunk_size):
        batch = uris[start : start + chunk_size]
        try:
            sp.playlist_add_items(playlist_id, batch)
        except SpotifyException as exc:
            raise RuntimeError(
                f"Spotify rejected playlist items batch starting at index {start}: {exc}"
            ) from exc
        except requests.exceptions.RequestException as exc:
            raise RuntimeError(
                f"Network error while adding playlist items starting at index {start}: {exc}"
            ) from exc
    _log(log_step, f"Added {len(uris)} tracks.")

    cover_uploaded = False
    if cover_image:
        cover_uploaded = _upload_cover_image(sp, playlist_id, cover_image, log_step)

    return {
        "playlist_id": playlist_id,
        "playlist_name": cleaned_name,
        "user_id": resolved_user_id,
        "external_url": ((created or {}).get("external_urls") or {}).get("spotify", ""),
        "track_count": len(uris),
        "cover_uploaded": cover_uploaded,
    }
