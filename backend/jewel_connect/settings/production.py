"""
Production settings - used for deployment.
"""
import dj_database_url
import logging
from .base import *

logger = logging.getLogger(__name__)

# Security - DEBUG defaults to False, can be enabled via environment variable if needed
DEBUG = os.environ.get('DEBUG', 'False').lower() == 'true'

# Parse ALLOWED_HOSTS from environment variable
# Format: comma-separated list of allowed hosts (e.g., "example.com,api.example.com")
_allowed_hosts = os.environ.get('ALLOWED_HOSTS', '')
if _allowed_hosts and _allowed_hosts.strip():
    ALLOWED_HOSTS = [host.strip()
                     for host in _allowed_hosts.split(',') if host.strip()]
else:
    ALLOWED_HOSTS = []
    logger.warning(
        "ALLOWED_HOSTS environment variable not set! "
        "All requests will be rejected until it is configured."
    )

# Database - use DATABASE_URL from environment
DATABASES = {
    'default': dj_database_url.config(
        default=os.environ.get('DATABASE_URL'),
        conn_max_age=600,
        conn_health_checks=True,
    )
}

# Security settings
SECURE_SSL_REDIRECT = False
SESSION_COOKIE_SECURE = True
CSRF_COOKIE_SECURE = True
SECURE_CONTENT_TYPE_NOSNIFF = True
X_FRAME_OPTIONS = 'DENY'

SECURE_HSTS_SECONDS = 31536000  # 1 year
SECURE_HSTS_INCLUDE_SUBDOMAINS = True
SECURE_PROXY_SSL_HEADER = ('HTTP_X_FORWARDED_PROTO', 'https')

# Channels layer for production
_redis_url = os.environ.get('REDIS_URL')
if _redis_url:
    CHANNEL_LAYERS = {
        'default': {
            'BACKEND': 'channels_redis.core.RedisChannelLayer',
            'CONFIG': {
                "hosts": [_redis_url],
            },
        },
    }
else:
    # Note: This won't work for multi-instance deployments
    logger.warning(
        "REDIS_URL not set. Using in-memory channel layer. "
        "Group purchase notifications will not cross process boundaries."
    )
    CHANNEL_LAYERS = {
        'default': {
            'BACKEND': 'channels.layers.InMemoryChannelLayer',
        },
    }

# Parse CORS_ALLOWED_ORIGINS from environment variable
_cors_origins = os.environ.get('CORS_ALLOWED_ORIGINS', '')
if _cors_origins and _cors_origins.strip():
    CORS_ALLOWED_ORIGINS = [origin.strip()
                            for origin in _cors_origins.split(',') if origin.strip()]
else:
    # SECURITY: If not set, use empty list (blocks all origins)
    CORS_ALLOWED_ORIGINS = []
    logger.warning(
        "CORS_ALLOWED_ORIGINS environment variable not set! "
        "All cross-origin requests will be blocked."
    )

CORS_ALLOW_CREDENTIALS = True

# Configure logging to show INFO level messages
LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'verbose': {
            'format': '{levelname} {asctime} {module} {message}',
            'style': '{',
        },
    },
    'handlers': {
        'console': {
            'class': 'logging.StreamHandler',
            'formatter': 'verbose',
        },
    },
    'root': {
        'handlers': ['console'],
        'level': 'INFO',
    },
    'loggers': {
        'jewel_connect': {
            'handlers': ['console'],
            'level': 'INFO',
            'propagate': False,
        },
        'apps': {
            'handlers': ['console'],
            'level': 'INFO',
            'propagate': False,
        },
        'django.request': {
            'handlers': ['console'],
            'level': 'INFO',
            'propagate': False,
        },
    },
}

# Celery Configuration
CELERY_BROKER_URL = os.environ.get('REDIS_URL')
CELERY_RESULT_BACKEND = os.environ.get('REDIS_URL')
