"""WSGI config for verdict_site."""

import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "verdict_site.settings")

application = get_wsgi_application()
