"""
Django settings for call_gateway project.
"""
import os
import sys
from pathlib import Path
from celery.schedules import crontab
from dotenv import load_dotenv

load_dotenv()

BASE_DIR = Path(__file__).resolve().parent.parent

SECRET_KEY = os.getenv('DJANGO_SECRET_KEY', 'dev-secret-key-change-in-production')
DEBUG = os.getenv('DEBUG', 'True').lower() == 'true'
ALLOWED_HOSTS = os.getenv('ALLOWED_HOSTS', 'localhost,127.0.0.1,testserver').split(',')

INSTALLED_APPS = [
    'django.contrib.admin',
    'django.contrib.auth',
    'django.contrib.contenttypes',
    'django.contrib.sessions',
    'django.contrib.messages',
    'django.contrib.staticfiles',
    'rest_framework',
    'calls',
]

MIDDLEWARE = [
    'django.middleware.security.SecurityMiddleware',
    'django.contrib.sessions.middleware.SessionMiddleware',
    'django.middleware.common.CommonMiddleware',
    'django.middleware.csrf.CsrfViewMiddleware',
    'django.contrib.auth.middleware.AuthenticationMiddleware',
    'django.contrib.messages.middleware.MessageMiddleware',
    'django.middleware.clickjacking.XFrameOptionsMiddleware',
]

ROOT_URLCONF = 'call_gateway.urls'

TEMPLATES = [
    {
        'BACKEND': 'django.template.backends.django.DjangoTemplates',
        'DIRS': [],
        'APP_DIRS': True,
        'OPTIONS': {
            'context_processors': [
                'django.template.context_processors.debug',
                'django.template.context_processors.request',
                'django.contrib.auth.context_processors.auth',
                'django.contrib.messages.context_processors.messages',
            ],
        },
    },
]

ASGI_APPLICATION = 'call_gateway.asgi.application'

# Database configuration
DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.postgresql',
        'NAME': os.getenv('DB_NAME', 'call_gateway'),
        'USER': os.getenv('DB_USER', 'postgres'),
        'PASSWORD': os.getenv('DB_PASSWORD', 'postgres'),
        'HOST': os.getenv('DB_HOST', 'localhost'),
        'PORT': os.getenv('DB_PORT', '5432'),
    }
}

RUNNING_TESTS = (
    os.getenv('USE_SQLITE_FOR_TESTS', '').lower() == 'true'
    or any('pytest' in arg for arg in sys.argv)
    or bool(os.getenv('PYTEST_CURRENT_TEST'))
)

# Use SQLite for tests to avoid requiring a running PostgreSQL server
if RUNNING_TESTS:
    DATABASES = {
        'default': {
            'ENGINE': 'django.db.backends.sqlite3',
            'NAME': os.getenv('SQLITE_NAME', ':memory:'),
        }
    }

AUTH_PASSWORD_VALIDATORS = [
    {'NAME': 'django.contrib.auth.password_validation.UserAttributeSimilarityValidator'},
    {'NAME': 'django.contrib.auth.password_validation.MinimumLengthValidator'},
    {'NAME': 'django.contrib.auth.password_validation.CommonPasswordValidator'},
    {'NAME': 'django.contrib.auth.password_validation.NumericPasswordValidator'},
]

LANGUAGE_CODE = 'en-us'
TIME_ZONE = 'UTC'
USE_I18N = True
USE_TZ = True

STATIC_URL = 'static/'
DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'

# Celery configuration
CELERY_BROKER_URL = os.getenv('CELERY_BROKER_URL', 'redis://localhost:6379/0')
CELERY_RESULT_BACKEND = os.getenv('CELERY_RESULT_BACKEND', 'redis://localhost:6379/0')
CELERY_ACCEPT_CONTENT = ['json']
CELERY_TASK_SERIALIZER = 'json'
CELERY_RESULT_SERIALIZER = 'json'
# Tasks are published on the webhook response path
CELERY_BROKER_CONNECTION_TIMEOUT = float(os.getenv('CELERY_BROKER_CONNECTION_TIMEOUT', '2'))
CELERY_TASK_PUBLISH_RETRY = False
CELERY_BROKER_TRANSPORT_OPTIONS = {
    'socket_connect_timeout': CELERY_BROKER_CONNECTION_TIMEOUT,
    'socket_timeout': CELERY_BROKER_CONNECTION_TIMEOUT,
}
CELERY_BEAT_SCHEDULE = {
    'nightly-call-reconciliation': {
        'task': 'calls.tasks.reconcile_calls',
        'schedule': crontab(
            hour=int(os.getenv('RECONCILE_CRON_HOUR', '3')),
            minute=int(os.getenv('RECONCILE_CRON_MINUTE', '0')),
        ),
    },
}

if RUNNING_TESTS:
    CELERY_BROKER_URL = 'memory://'
    CELERY_RESULT_BACKEND = 'cache+memory://'
    CELERY_TASK_ALWAYS_EAGER = True
    CELERY_TASK_EAGER_PROPAGATES = True

# Voice platform API configuration
VOICE_API_BASE_URL = os.getenv('VOICE_API_BASE_URL', 'https://api.elevenlabs.io')
VOICE_API_KEY = os.getenv('VOICE_API_KEY', '')
VOICE_AGENT_ID = os.getenv('VOICE_AGENT_ID', '')
VOICE_API_TIMEOUT = float(os.getenv('VOICE_API_TIMEOUT', '30'))
VOICE_API_MAX_RETRIES = int(os.getenv('VOICE_API_MAX_RETRIES', '3'))

# Tenant resolution: used when the receiver number has no mapping
DEFAULT_TENANT_ID = os.getenv('DEFAULT_TENANT_ID', 'default')

# Reconciliation configuration
RECONCILE_HOURS_BACK = int(os.getenv('RECONCILE_HOURS_BACK', '24'))
RECONCILE_MAX_PAGES = int(os.getenv('RECONCILE_MAX_PAGES', '50'))
RECONCILE_SLEEP_SECONDS = float(os.getenv('RECONCILE_SLEEP_SECONDS', '0.1'))

# Cost estimation for calls recovered through reconciliation
COST_PER_MINUTE = float(os.getenv('COST_PER_MINUTE', '0.07'))
COST_PER_CREDIT = float(os.getenv('COST_PER_CREDIT', '0.00003'))

# In-process workers used when the Celery broker cannot accept a task
FALLBACK_WORKER_COUNT = int(os.getenv('FALLBACK_WORKER_COUNT', '4'))

# Logging configuration
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
        'calls': {
            'handlers': ['console'],
            'level': 'DEBUG',
            'propagate': False,
        },
    },
}

# REST Framework configuration
REST_FRAMEWORK = {
    'DEFAULT_RENDERER_CLASSES': [
        'rest_framework.renderers.JSONRenderer',
    ],
    'DEFAULT_PARSER_CLASSES': [
        'rest_framework.parsers.JSONParser',
    ],
}
