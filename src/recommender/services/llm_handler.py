"""Lightweight adapter around the OpenAI vision model used for photo analysis."""

import json
import logging
import os
import re
from typing import Any, Dict, List, Optional

from django.conf import settings
from openai import OpenAI, OpenAIError

from .exceptions import AnalysisUnavailable, ImageTooLargeError

logger = logging.getLogger(__name__)

MAX_IMAGE_BYTES = 20 * 1024 * 1024
DATA_URL_PREFIX = "data:image/jpeg;base64,"

DEFAULT_ANALYSIS: Dict[str, Any] = {
    "colors": [],
    "lighting": "",
    "mood": "",
    "emotion": "",
    "moodScores": {},
    "genres": ["Pop"],
    "energy": "medium",
    "tempo": "moderate",
    "characteristics": [],
    "musicalKeywords": ["pop", "mainstream"],
    "description": "",
    "playlistTheme": "General Vibes",
    "school": None,
    "artists": ["Taylor Swift", "Ed Sheeran", "Ariana Grande", "The Weeknd", "Dua Lipa"],
}

ANALYSIS_PROMPT = (
    "Analyze this photo and describe the music that fits it. Respond with a single "
    "JSON object using these keys: colors (list), lighting, mood (one word), emotion, "
    "moodScores (object of mood -> 0..1), genres (1-5 Spotify-style genres, most "
    "fitting first), energy (low|medium|high), tempo (slow|moderate|fast), "
    "characteristics (list), musicalKeywords (up to 5), description (one or two "
    "sentences about the scene), playlistTheme (short playlist name), school (the "
    "university or landmark shown, or null), artists (up to 25 artist names that "
    "fit the photo, best match first)."
)

_VISION_CLIENT: Dict[str, Optional[OpenAI]] = {"client": None}
_FENCED_BLOCK_RE = re.compile(r"```(?:json)?\s*(.*?)```", re.IGNORECASE | re.DOTALL)


def _get_setting(name: str, default=None):
    if hasattr(settings, name):
        return getattr(settings, name)
    return os.getenv(name, default)


def _get_vision_client() -> Optional[OpenAI]:
    """Build the vision client once per process; None when no key is configured."""
    if _VISION_CLIENT["client"] is not None:
        return _VISION_CLIENT["client"]

    api_key = _get_setting("OPENAI_API_KEY")
    if not api_key:
        logger.warning("Photo analysis disabled: OPENAI_API_KEY is not set.")
        return None

    options: Dict[str, Any] = {
        "api_key": api_key,
        "timeout": float(_get_setting("RECOMMENDER_VISION_TIMEOUT", 30)),
        "max_retries": int(_get_setting("RECOMMENDER_VISION_RETRIES", 1)),
    }
    for option, setting_name in (("base_url", "OPENAI_API_BASE"), ("organization", "OPENAI_ORGANIZATION")):
        value = _get_setting(setting_name)
        if value:
            options[option] = value

    try:
        _VISION_CLIENT["client"] = OpenAI(**options)
    except (OpenAIError, ValueError) as exc:
        logger.error("Could not create the vision client: %s", exc)
        return None
    return _VISION_CLIENT["client"]


def _analysis_candidates(raw: str) -> List[str]:
    """
    Text spans that may hold the analysis object, most likely first.

    Fenced blocks come first, then the outermost ``{...}`` span, then the
    whole reply.
    """
    candidates = [block.strip() for block in _FENCED_BLOCK_RE.findall(raw or "") if block.strip()]
    stripped = (raw or "").strip()
    start, end = stripped.find("{"), stripped.rfind("}")
    if 0 <= start < end:
        candidates.append(stripped[start : end + 1])
    if stripped:
        candidates.append(stripped)
    return candidates


def _parse_analysis_reply(raw: str) -> Optional[Dict[str, Any]]:
    """
    Pull the analysis object out of a model reply.

    Only JSON objects count. An object carrying ``genres`` wins over any
    other object found earlier in the reply.
    """
    decoder = json.JSONDecoder()
    fallback: Optional[Dict[str, Any]] = None
    for candidate in _analysis_candidates(raw):
        for idx, ch in enumerate(candidate):
            if ch != "{":
                continue
            try:
                parsed = decoder.raw_decode(candidate[idx:])[0]
            except json.JSONDecodeError:
                continue
            if not isinstance(parsed, dict):
                continue
            if "genres" in parsed:
                return parsed
            if fallback is None:
                fallback = parsed
    return fallback


def _as_data_url(image: str) -> str:
    cleaned = (image or "").strip()
    if cleaned.startswith("data:"):
        return cleaned
    return f"{DATA_URL_PREFIX}{cleaned}"


def _approximate_image_bytes(data_url: str) -> int:
    encoded = data_url.split(",", 1)[1] if "," in data_url else data_url
    return len(encoded) * 3 // 4


def _response_text(response: object) -> str:
    output_text = getattr(response, "output_text", "")
    if output_text:
        return output_text.strip()

    segments: List[str] = []
    for item in getattr(response, "output", None) or []:
        for content in getattr(item, "content", None) or []:
            text_value = getattr(content, "text", None)
            value = getattr(text_value, "value", text_value)
            if isinstance(value, str) and value:
                segments.append(value)
    return "".join(segments).strip()


def default_analysis() -> Dict[str, Any]:
    """Return a fresh copy of the fallback analysis."""
    return json.loads(json.dumps(DEFAULT_ANALYSIS))


def normalize_analysis(parsed: Dict[str, Any]) -> Dict[str, Any]:
    """Fill in missing keys so downstream code can rely on the full shape."""
    analysis = default_analysis()
    analysis["artists"] = []
    for key, value in parsed.items():
        if value is not None or key == "school":
            analysis[key] = value
    if not analysis.get("genres"):
        analysis["genres"] = list(DEFAULT_ANALYSIS["genres"])
    return analysis


def analyze_image(image: str, *, model: Optional[str] = None) -> Dict[str, Any]:
    """
    Ask the vision model to describe the music that matches a photo.

    Accepts a data URL or bare base64 JPEG. Unparseable replies fall back to
    the default analysis. Raises ImageTooLargeError for oversized images and
    AnalysisUnavailable when the model cannot be reached.
    """
    if not image or not image.strip():
        raise ValueError("An image is required for analysis.")
    data_url = _as_data_url(image)
    if _approximate_image_bytes(data_url) > MAX_IMAGE_BYTES:
        raise ImageTooLargeError("Image exceeds the 20MB analysis limit.")

    client = _get_vision_client()
    if client is None:
        raise AnalysisUnavailable("Photo analysis is not configured.")

    max_tokens = _get_setting("RECOMMENDER_VISION_MAX_TOKENS", 1000)
    try:
        response = client.responses.create(
            model=model or _get_setting("RECOMMENDER_VISION_MODEL", "gpt-4o"),
            input=[
                {
                    "role": "user",
                    "content": [
                        {"type": "input_text", "text": ANALYSIS_PROMPT},
                        {"type": "input_image", "image_url": data_url},
                    ],
                }
            ],
            max_output_tokens=int(max_tokens),
        )
    except OpenAIError as exc:
        logger.error("OpenAI vision request failed: %s", exc)
        raise AnalysisUnavailable("Photo analysis failed.") from exc

    raw = _response_text(response)
    parsed = _parse_analysis_reply(raw)
    if not isinstance(parsed, dict):
        logger.warning("Vision response was not a JSON object; using default analysis.")
        return default_analysis()
    return normalize_analysis(parsed)
