"""
WSGI config for Treatment Finder.

Exposes the WSGI callable as a module-level variable named ``application``.
Production deployments set DJANGO_SETTINGS_MODULE=treatment_finder.settings.prod.
"""

import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "treatment_finder.settings.prod")

application = get_wsgi_application()
