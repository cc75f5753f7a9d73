"""
Django settings for the photoplaylist project.

Values come from environment variables; a ``.env`` file at the repository
root is loaded first when present.
"""

import os
from pathlib import Path

from dotenv import load_dotenv

BASE_DIR = Path(__file__).resolve().parent.parent
load_dotenv(BASE_DIR.parent / ".env")


def _env_bool(name, default=False):
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name, default):
    try:
        return int(os.getenv(name, default))
    except (TypeError, ValueError):
        return default


SECRET_KEY = os.getenv("DJANGO_SECRET_KEY", "dev-only-insecure-key")
DEBUG = _env_bool("DJANGO_DEBUG", False)
ALLOWED_HOSTS = [host for host in os.getenv("DJANGO_ALLOWED_HOSTS", "localhost,127.0.0.1,testserver").split(",") if host]

INSTALLED_APPS = [
    "django.contrib.sessions",
    "recommender",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
]

ROOT_URLCONF = "photoplaylist.urls"
WSGI_APPLICATION = "photoplaylist.wsgi.application"

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": BASE_DIR / "db.sqlite3",
    }
}

# Sessions only carry the Spotify token handed over by the auth layer.
CACHES = {
    "default": {
        "BACKEND": "django.core.cache.backends.locmem.LocMemCache",
        "LOCATION": "photoplaylist",
    }
}
SESSION_ENGINE = "django.contrib.sessions.backends.cache"

# Base64 photos arrive in JSON bodies.
DATA_UPLOAD_MAX_MEMORY_SIZE = 30 * 1024 * 1024

LANGUAGE_CODE = "en-us"
TIME_ZONE = "UTC"
USE_I18N = True
USE_TZ = True
DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

SPOTIFY_CLIENT_ID = os.getenv("SPOTIFY_CLIENT_ID", "")
SPOTIFY_CLIENT_SECRET = os.getenv("SPOTIFY_CLIENT_SECRET", "")

OPENAI_API_KEY = os.getenv("OPENAI_API_KEY", "")
OPENAI_API_BASE = os.getenv("OPENAI_API_BASE", "")
OPENAI_ORGANIZATION = os.getenv("OPENAI_ORGANIZATION", "")

RECOMMENDER_VISION_MODEL = os.getenv("RECOMMENDER_VISION_MODEL", "gpt-4o")
RECOMMENDER_VISION_MAX_TOKENS = _env_int("RECOMMENDER_VISION_MAX_TOKENS", 1000)
RECOMMENDER_VISION_TIMEOUT = _env_int("RECOMMENDER_VISION_TIMEOUT", 30)
RECOMMENDER_VISION_RETRIES = _env_int("RECOMMENDER_VISION_RETRIES", 1)
RECOMMENDER_TARGET_TRACK_COUNT = _env_int("RECOMMENDER_TARGET_TRACK_COUNT", 20)
RECOMMENDER_MAX_TRACKS_PER_ARTIST = _env_int("RECOMMENDER_MAX_TRACKS_PER_ARTIST", 3)
RECOMMENDER_CATALOG_TIMEOUT = _env_int("RECOMMENDER_CATALOG_TIMEOUT", 5)
RECOMMENDER_CATALOG_RETRIES = _env_int("RECOMMENDER_CATALOG_RETRIES", 0)
RECOMMENDER_MAX_SEARCH_CALLS = _env_int("RECOMMENDER_MAX_SEARCH_CALLS", 15)
RECOMMENDER_MAX_BACKFILL_ROUNDS = _env_int("RECOMMENDER_MAX_BACKFILL_ROUNDS", 3)
RECOMMENDER_PLAYLIST_PUBLIC = _env_bool("RECOMMENDER_PLAYLIST_PUBLIC", False)
RECOMMENDER_DEBUG_VIEW_ENABLED = _env_bool("RECOMMENDER_DEBUG_VIEW_ENABLED", False)
RECOMMENDER_LOG_LEVEL = os.getenv("RECOMMENDER_LOG_LEVEL", "INFO")

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "simple": {"format": "%(asctime)s %(levelname)s %(name)s: %(message)s"},
    },
    "handlers": {
        "console": {"class": "logging.StreamHandler", "formatter": "simple"},
    },
    "loggers": {
        "recommender": {
            "handlers": ["console"],
            "level": RECOMMENDER_LOG_LEVEL,
            "propagate": False,
        },
    },
}
