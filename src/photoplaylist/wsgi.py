"""WSGI entry point for the photoplaylist project."""

import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'photoplaylist.settings')

application = get_wsgi_application()
