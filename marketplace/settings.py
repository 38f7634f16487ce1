"""
Django settings for the marketplace project.
"""

import os
from pathlib import Path
from dotenv import load_dotenv

load_dotenv()
BASE_DIR = Path(__file__).resolve().parent.parent

# SECURITY WARNING: keep the secret key used in production secret!
SECRET_KEY = os.getenv('SECRET_KEY', 'insecure-dev-key-change-me')

# SECURITY WARNING: don't run with debug turned on in production!
DEBUG = os.getenv('DEBUG', 'True') == 'True'
ALLOWED_HOSTS = [
    'localhost',
    '127.0.0.1',
    'testserver',
]

CSRF_TRUSTED_ORIGINS = [
    'http://localhost:8000',
    'http://127.0.0.1:8000',
]

SITE_URL = os.getenv('SITE_URL', 'http://localhost:8000')

# Application definition
INSTALLED_APPS = [
    'django.contrib.admin',
    'django.contrib.auth',
    'django.contrib.contenttypes',
    'django.contrib.sessions',
    'django.contrib.messages',
    'django.contrib.staticfiles',
    'accounts',
    'catalog',
    'orders',
]

MIDDLEWARE = [
    'django.middleware.security.SecurityMiddleware',
    'marketplace.middleware.SecurityHeadersMiddleware',
    'marketplace.middleware.CacheControlMiddleware',
    'django.contrib.sessions.middleware.SessionMiddleware',
    'django.middleware.common.CommonMiddleware',
    'django.middleware.csrf.CsrfViewMiddleware',
    'django.contrib.auth.middleware.AuthenticationMiddleware',
    'django.contrib.messages.middleware.MessageMiddleware',
    'django.middleware.clickjacking.XFrameOptionsMiddleware',
]

ROOT_URLCONF = 'marketplace.urls'
WSGI_APPLICATION = 'marketplace.wsgi.application'

TEMPLATES = [
    {
        'BACKEND': 'django.template.backends.django.DjangoTemplates',
        'DIRS': [],
        'APP_DIRS': True,
        'OPTIONS': {
            'context_processors': [
                'django.template.context_processors.request',
                'django.contrib.auth.context_processors.auth',
                'django.contrib.messages.context_processors.messages',
            ],
        },
    },
]

# Database (PostgreSQL in production, SQLite for local runs and tests)
if os.getenv('DB_NAME'):
    DATABASES = {
        'default': {
            'ENGINE': 'django.db.backends.postgresql',
            'NAME': os.getenv('DB_NAME'),
            'USER': os.getenv('DB_USER'),
            'PASSWORD': os.getenv('DB_PASSWORD'),
            'HOST': os.getenv('DB_HOST'),
            'PORT': os.getenv('DB_PORT'),
        }
    }
else:
    DATABASES = {
        'default': {
            'ENGINE': 'django.db.backends.sqlite3',
            'NAME': BASE_DIR / 'db.sqlite3',
        }
    }

AUTH_USER_MODEL = 'accounts.User'

CACHES = {
    'default': {
        'BACKEND': os.getenv('CACHE_BACKEND', 'django.core.cache.backends.locmem.LocMemCache'),
        'LOCATION': os.getenv('CACHE_LOCATION', 'marketplace-default'),
    }
}

# ---------- Order engine ----------
FREE_SHIPPING_THRESHOLD = os.getenv('FREE_SHIPPING_THRESHOLD', '500')
FLAT_SHIPPING_FEE = os.getenv('FLAT_SHIPPING_FEE', '50')
ORDER_NUMBER_PREFIX = os.getenv('ORDER_NUMBER_PREFIX', 'ORD')

# "silent": an inapplicable coupon is ignored and the order proceeds at full price
# "strict": an inapplicable coupon rejects the order with CouponRejected
COUPON_REJECTION_POLICY = os.getenv('COUPON_REJECTION_POLICY', 'silent')

# Hours a PENDING, unpaid order may hold reserved stock (release_unpaid_orders)
UNPAID_ORDER_HOLD_HOURS = int(os.getenv('UNPAID_ORDER_HOLD_HOURS', '48'))

# ---------- Payment gateway (simulated) ----------
PAYMENT_GATEWAY = os.getenv('PAYMENT_GATEWAY', 'orders.payment_utils.SimulatedGateway')
PAYMENT_SIMULATION_DELAY = float(os.getenv('PAYMENT_SIMULATION_DELAY', '2.0'))
PAYMENT_SUCCESS_RATE = float(os.getenv('PAYMENT_SUCCESS_RATE', '95'))
PAYMENT_TIMEOUT = float(os.getenv('PAYMENT_TIMEOUT', '10'))
PAYMENT_LOCK_TIMEOUT = int(os.getenv('PAYMENT_LOCK_TIMEOUT', '60'))

# ---------- Events & documents ----------
ORDER_EVENT_SINKS = [
    'orders.notify_utils.EmailNotificationSink',
    'orders.notify_utils.AnalyticsWebhookSink',
]
ANALYTICS_WEBHOOK_URL = os.getenv('ANALYTICS_WEBHOOK_URL')
ANALYTICS_WEBHOOK_SECRET = os.getenv('ANALYTICS_WEBHOOK_SECRET', 'marketplace_analytics_secret')
ANALYTICS_WEBHOOK_TIMEOUT = float(os.getenv('ANALYTICS_WEBHOOK_TIMEOUT', '5'))

INVOICE_GENERATOR = os.getenv('INVOICE_GENERATOR', 'orders.invoice_utils.TextInvoiceGenerator')

# Password validation
AUTH_PASSWORD_VALIDATORS = [
    {
        'NAME': 'django.contrib.auth.password_validation.UserAttributeSimilarityValidator',
    },
    {
        'NAME': 'django.contrib.auth.password_validation.MinimumLengthValidator',
    },
    {
        'NAME': 'django.contrib.auth.password_validation.CommonPasswordValidator',
    },
    {
        'NAME': 'django.contrib.auth.password_validation.NumericPasswordValidator',
    },
]

# Internationalization
LANGUAGE_CODE = 'en-us'
TIME_ZONE = 'UTC'
USE_I18N = True
USE_TZ = True

# Static files
STATIC_URL = '/static/'
STATIC_ROOT = BASE_DIR / 'staticfiles'

DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'

# Email Configuration
EMAIL_BACKEND = os.getenv('EMAIL_BACKEND', 'django.core.mail.backends.smtp.EmailBackend')
EMAIL_HOST = os.getenv('EMAIL_HOST', 'smtp.gmail.com')
EMAIL_PORT = int(os.getenv('EMAIL_PORT', '587'))
EMAIL_USE_TLS = True
EMAIL_HOST_USER = os.getenv('EMAIL_HOST_USER')
EMAIL_HOST_PASSWORD = os.getenv('EMAIL_HOST_PASSWORD')
DEFAULT_FROM_EMAIL = os.getenv('DEFAULT_FROM_EMAIL', os.getenv('EMAIL_HOST_USER') or 'orders@localhost')

# Logging
LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')
LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'verbose': {
            'format': '{asctime} {levelname} {name}: {message}',
            'style': '{',
        },
    },
    'handlers': {
        'console': {
            'class': 'logging.StreamHandler',
            'formatter': 'verbose',
        },
    },
    'loggers': {
        'marketplace': {'handlers': ['console'], 'level': LOG_LEVEL},
        'accounts': {'handlers': ['console'], 'level': LOG_LEVEL},
        'catalog': {'handlers': ['console'], 'level': LOG_LEVEL},
        'orders': {'handlers': ['console'], 'level': LOG_LEVEL},
    },
}
