"""JSON endpoints for analysing photos and building Spotify playlists from them."""

import json
import logging
import time
from typing import Callable, Dict, List, Optional, Tuple

from django.conf import settings
from django.http import JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_POST
from requests import RequestException
from spotipy import SpotifyException

from .services.exceptions import (
    AnalysisUnavailable,
    CatalogAuthError,
    ImageTooLargeError,
    InvalidVibeError,
)
from .services.llm_handler import analyze_image
from .services.pipeline import build_track_candidates
from .services.spotify_handler import (
    PLAYLIST_NAME_MAX_LENGTH,
    SpotifyCatalog,
    build_playlist_description,
    create_playlist_with_tracks,
)
from .services.vibe import PopularityPolicy, vibe_from_analysis

logger = logging.getLogger(__name__)


def _make_logger(
    debug_steps: List[str],
    errors: List[str],
    *,
    label: str = "recommender",
    capture_debug: bool = True,
) -> Callable[[str], None]:
    """Capture diagnostic messages and surface potential errors for the UI."""
    start = time.perf_counter()

    def _log(message: str) -> None:
        elapsed = time.perf_counter() - start
        formatted = f"[{elapsed:0.2f}s] {message}"
        if capture_debug:
            debug_steps.append(formatted)
        lower_msg = message.lower()
        if any(keyword in lower_msg for keyword in ("error", "failed", "missing", "unavailable")):
            errors.append(message)
        logger.debug("%s: [%0.2fs] %s", label, elapsed, message)

    return _log


def _debug_enabled() -> bool:
    return bool(getattr(settings, "RECOMMENDER_DEBUG_VIEW_ENABLED", False))


def _load_json_body(request) -> Tuple[Optional[Dict[str, object]], Optional[JsonResponse]]:
    """Decode a JSON object body or return the error response to send."""
    content_type = (request.content_type or request.META.get("CONTENT_TYPE") or "").lower()
    if not content_type.startswith("application/json"):
        return None, JsonResponse({"error": "Expected JSON payload."}, status=400)
    try:
        payload = json.loads(request.body.decode("utf-8"))
    except (json.JSONDecodeError, UnicodeDecodeError):
        return None, JsonResponse({"error": "Invalid JSON payload."}, status=400)
    if not isinstance(payload, dict):
        return None, JsonResponse({"error": "Invalid JSON payload."}, status=400)
    return payload, None


def _auth_required(message: str = "Not authenticated with Spotify.") -> JsonResponse:
    return JsonResponse({"error": message, "requiresAuth": True}, status=401)


@require_POST
@csrf_exempt
def analyze_photo(request):
    """Run the vision model over an uploaded photo and return its analysis."""
    payload, error = _load_json_body(request)
    if error is not None:
        return error

    image = payload.get("image")
    if not isinstance(image, str) or not image.strip():
        return JsonResponse({"error": "No image provided."}, status=400)

    try:
        analysis = analyze_image(image)
    except ImageTooLargeError as exc:
        return JsonResponse({"error": str(exc)}, status=400)
    except ValueError as exc:
        return JsonResponse({"error": str(exc)}, status=400)
    except AnalysisUnavailable as exc:
        logger.warning("Photo analysis unavailable: %s", exc)
        return JsonResponse({"error": "Photo analysis is unavailable right now."}, status=503)

    return JsonResponse({"success": True, "analysis": analysis})


@require_POST
@csrf_exempt
def playlist_preview(request):
    """Build the candidate track list for an analysed photo."""
    payload, error = _load_json_body(request)
    if error is not None:
        return error

    analysis = payload.get("analysis")
    if not isinstance(analysis, dict):
        return JsonResponse({"error": "Analysis data is required."}, status=400)
    try:
        policy = PopularityPolicy.parse(payload.get("popularityFilter"))
        vibe = vibe_from_analysis(analysis)
    except (InvalidVibeError, ValueError) as exc:
        return JsonResponse({"error": str(exc)}, status=400)

    access_token = request.session.get("spotify_access_token")
    if not access_token:
        return _auth_required()

    debug_enabled = _debug_enabled()
    debug_steps: List[str] = []
    errors: List[str] = []
    log_step = _make_logger(debug_steps, errors, label="playlist_preview", capture_debug=debug_enabled)

    try:
        result = build_track_candidates(vibe, policy, SpotifyCatalog(access_token), log_step=log_step)
    except CatalogAuthError:
        logger.info("Spotify token rejected during preview.")
        return _auth_required("Spotify session expired. Please log in again.")

    if result.exhausted:
        return JsonResponse({"error": "No tracks found matching the analysis"}, status=404)

    response: Dict[str, object] = {
        "success": True,
        "playlistTheme": vibe.theme,
        "tracks": [track.to_payload() for track in result.tracks],
        "trackCount": len(result.tracks),
        "targetCount": result.target_count,
        "analysis": analysis,
    }
    if debug_enabled:
        response["debug"] = {"steps": debug_steps, "errors": errors}
    return JsonResponse(response)


@require_POST
@csrf_exempt
def create_playlist(request):
    """Save previewed tracks to a new playlist in the user's Spotify account."""
    payload, error = _load_json_body(request)
    if error is not None:
        return error

    analysis = payload.get("analysis")
    if not isinstance(analysis, dict):
        return JsonResponse({"error": "Analysis data is required."}, status=400)
    track_uris = payload.get("trackUris")
    if not isinstance(track_uris, list):
        return JsonResponse({"error": "trackUris must be a list."}, status=400)
    try:
        vibe = vibe_from_analysis(analysis)
    except InvalidVibeError as exc:
        return JsonResponse({"error": str(exc)}, status=400)

    access_token = request.session.get("spotify_access_token")
    if not access_token:
        return _auth_required()

    cover_image = payload.get("image") if isinstance(payload.get("image"), str) else None
    debug_steps: List[str] = []
    errors: List[str] = []
    log_step = _make_logger(debug_steps, errors, label="create_playlist", capture_debug=_debug_enabled())

    try:
        created = create_playlist_with_tracks(
            access_token,
            track_uris,
            vibe.theme[:PLAYLIST_NAME_MAX_LENGTH],
            description=build_playlist_description(vibe),
            user_id=request.session.get("spotify_user_id"),
            public=getattr(settings, "RECOMMENDER_PLAYLIST_PUBLIC", False),
            cover_image=cover_image,
            log_step=log_step,
        )
    except ValueError as exc:
        return JsonResponse({"error": str(exc)}, status=400)
    except SpotifyException as exc:
        status = getattr(exc, "http_status", 0) or 0
        if status == 401:
            return _auth_required("Spotify session expired. Please log in again.")
        if status == 403:
            return JsonResponse(
                {"error": "Spotify denied permission to create playlists for this account."},
                status=403,
            )
        logger.error("Spotify playlist creation failed: %s", exc)
        return JsonResponse({"error": "Spotify could not create the playlist."}, status=502)
    except (RequestException, RuntimeError) as exc:
        logger.error("Playlist creation failed: %s", exc)
        return JsonResponse({"error": "Spotify could not create the playlist."}, status=502)

    if created["user_id"]:
        request.session["spotify_user_id"] = created["user_id"]

    return JsonResponse(
        {
            "success": True,
            "playlist": {
                "id": created["playlist_id"],
                "name": created["playlist_name"],
                "external_url": created["external_url"],
                "tracks": {"total": created["track_count"]},
            },
            "coverUploaded": created["cover_uploaded"],
        }
    )
