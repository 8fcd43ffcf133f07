"""
WSGI config for jewel_connect project.
"""

import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE',
                      'jewel_connect.settings.production')

application = get_wsgi_application()
