"""
Django settings for admission_panel project.

The panel owns no database. Every record lives in the external backend API
configured through PANEL_API_BASE_URL; the session only carries the login
token and the signed-in account.
"""
import os
from pathlib import Path


BASE_DIR = Path(__file__).resolve().parent.parent


def _env_flag(name, default='False'):
    return os.getenv(name, default).lower() in {'1', 'true', 'yes'}


DEBUG = _env_flag('DJANGO_DEBUG')
SECRET_KEY = os.getenv(
    'DJANGO_SECRET_KEY',
    'change-this-secret-key-in-production-8d0c5b1e2f7a4c63a1b9e4d7f2c6a830',
)
ALLOWED_HOSTS = [
    host.strip()
    for host in os.getenv('DJANGO_ALLOWED_HOSTS', 'localhost,127.0.0.1,testserver').split(',')
    if host.strip()
]


INSTALLED_APPS = [
    'django.contrib.messages',
    'django.contrib.staticfiles',
    'apps.core.api.apps.ApiConfig',
    'apps.core.users.apps.UsersConfig',
    'apps.core.academics.apps.AcademicsConfig',
    'apps.core.students.apps.StudentsConfig',
    'apps.core.hr.apps.HrConfig',
    'apps.core.fees.apps.FeesConfig',
]


MIDDLEWARE = [
    'django.middleware.security.SecurityMiddleware',
    'django.contrib.sessions.middleware.SessionMiddleware',
    'django.middleware.common.CommonMiddleware',
    'django.middleware.csrf.CsrfViewMiddleware',
    'django.contrib.messages.middleware.MessageMiddleware',
    'django.middleware.clickjacking.XFrameOptionsMiddleware',
]


ROOT_URLCONF = 'admission_panel.urls'

TEMPLATES = [
    {
        'BACKEND': 'django.template.backends.django.DjangoTemplates',
        'DIRS': [BASE_DIR / 'templates'],
        'APP_DIRS': True,
        'OPTIONS': {
            'context_processors': [
                'django.template.context_processors.request',
                'django.contrib.messages.context_processors.messages',
                'apps.core.users.context_processors.panel_account',
            ],
        },
    },
]

WSGI_APPLICATION = 'admission_panel.wsgi.application'


DATABASES = {}

SESSION_ENGINE = 'django.contrib.sessions.backends.signed_cookies'
SESSION_COOKIE_HTTPONLY = True
MESSAGE_STORAGE = 'django.contrib.messages.storage.cookie.CookieStorage'


LANGUAGE_CODE = 'en-us'
TIME_ZONE = os.getenv('DJANGO_TIME_ZONE', 'Asia/Kolkata')
USE_I18N = True
USE_TZ = True


STATIC_URL = 'static/'


CSRF_COOKIE_SECURE = not DEBUG
SESSION_COOKIE_SECURE = not DEBUG
SECURE_SSL_REDIRECT = _env_flag('DJANGO_SECURE_SSL_REDIRECT')
SECURE_PROXY_SSL_HEADER = ('HTTP_X_FORWARDED_PROTO', 'https')


LOGIN_URL = 'login'
LOGIN_REDIRECT_URL = 'home'


LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'panel': {
            'format': '{asctime} {levelname} {name}: {message}',
            'style': '{',
        },
    },
    'handlers': {
        'console': {
            'class': 'logging.StreamHandler',
            'formatter': 'panel',
        },
    },
    'root': {
        'handlers': ['console'],
        'level': 'WARNING',
    },
    'loggers': {
        'apps': {
            'handlers': ['console'],
            'level': os.getenv('DJANGO_LOG_LEVEL', 'INFO'),
            'propagate': False,
        },
    },
}


# Backend API
PANEL_API_BASE_URL = os.getenv('PANEL_API_BASE_URL', 'http://localhost:5000/api')
PANEL_API_TIMEOUT = float(os.getenv('PANEL_API_TIMEOUT', '15'))

# "all" lists every paid fee on the dashboard payments tab, "window" applies
# the selected period to the paid date as well.
PANEL_PAYMENTS_FILTER = os.getenv('PANEL_PAYMENTS_FILTER', 'all')
PANEL_DEFAULT_WINDOW = os.getenv('PANEL_DEFAULT_WINDOW', 'today')

# Branches whose specialities have a fixed number of seats.
PANEL_SEAT_LIMITED_BRANCHES = ('MD', 'MS', 'MDS', 'Nursing')

PANEL_INSTITUTION_NAME = os.getenv('PANEL_INSTITUTION_NAME', 'Admissions Office')
