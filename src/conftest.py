"""
pytest configuration helpers for the photoplaylist project.

This module ensures Django is configured even when Pytest runs outside the
standard manage.py entry point.
"""

import logging
import os
import sys
from pathlib import Path

import django
from django.conf import settings
from django.core.exceptions import AppRegistryNotReady, ImproperlyConfigured

LOGGER = logging.getLogger(__name__)
PROJECT_ROOT = Path(__file__).resolve().parent

if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

DEFAULT_SETTINGS_MODULE = 'photoplaylist.settings'


def setup_django():
    """Configure Django from DJANGO_SETTINGS_MODULE, falling back to the project settings."""
    settings_modules = []
    configured = os.environ.get('DJANGO_SETTINGS_MODULE')
    if configured:
        settings_modules.append(configured)
    if DEFAULT_SETTINGS_MODULE not in settings_modules:
        settings_modules.append(DEFAULT_SETTINGS_MODULE)

    for settings_module in settings_modules:
        try:
            os.environ['DJANGO_SETTINGS_MODULE'] = settings_module
            django.setup()
            LOGGER.info("Django configured with %s", settings_module)
            return True
        except ImportError as exc:
            LOGGER.debug("Unable to import %s: %s", settings_module, exc, exc_info=exc)
        except (ImproperlyConfigured, AppRegistryNotReady, RuntimeError) as exc:
            LOGGER.warning("Failed to setup Django with %s: %s", settings_module, exc, exc_info=exc)

    return False


if not settings.configured:
    if not setup_django():
        LOGGER.error("Could not configure Django for the photoplaylist project. Tests may fail.")


def pytest_configure(config):  # pylint: disable=unused-argument
    """Called after command line options have been parsed."""
    if not settings.configured:
        setup_django()
