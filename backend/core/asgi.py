# backend/core/asgi.py
"""
ASGI config for the CampusGig API (HTTP only; chat lives outside this service).
"""

import os
from django.core.asgi import get_asgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "core.settings")

application = get_asgi_application()
