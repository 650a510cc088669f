import os
from decimal import Decimal
from pathlib import Path

import resend
from dotenv import load_dotenv

load_dotenv()

BASE_DIR = Path(__file__).resolve().parent.parent

SECRET_KEY = os.getenv("SECRET_KEY", "django-insecure-koabiga-development-key")

DEBUG = os.getenv("DEBUG", "False").lower() in ("1", "true", "yes")

ALLOWED_HOSTS = [
    host.strip() for host in os.getenv("ALLOWED_HOSTS", "*").split(",") if host.strip()
]

DOMAIN = os.getenv("DOMAIN", "http://localhost:3000")


INSTALLED_APPS = [
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",
    # Third party
    "rest_framework",
    "rest_framework.authtoken",
    # Local
    "accounts",
    "units",
    "feerules",
    "feeapplications",
    "payments",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
]

ROOT_URLCONF = "koabigaapi.urls"

TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [BASE_DIR / "templates"],
        "APP_DIRS": True,
        "OPTIONS": {
            "context_processors": [
                "django.template.context_processors.debug",
                "django.template.context_processors.request",
                "django.contrib.auth.context_processors.auth",
                "django.contrib.messages.context_processors.messages",
            ],
        },
    },
]

WSGI_APPLICATION = "koabigaapi.wsgi.application"


# Database
DB_ENGINE = os.getenv("DB_ENGINE", "django.db.backends.sqlite3")

if DB_ENGINE == "django.db.backends.sqlite3":
    DATABASES = {
        "default": {
            "ENGINE": DB_ENGINE,
            "NAME": os.getenv("DB_NAME", str(BASE_DIR / "db.sqlite3")),
        }
    }
else:
    DATABASES = {
        "default": {
            "ENGINE": DB_ENGINE,
            "NAME": os.getenv("DB_NAME"),
            "USER": os.getenv("DB_USER"),
            "PASSWORD": os.getenv("DB_PASSWORD"),
            "HOST": os.getenv("DB_HOST", "localhost"),
            "PORT": os.getenv("DB_PORT", "5432"),
        }
    }

CACHES = {
    "default": {
        "BACKEND": "django.core.cache.backends.locmem.LocMemCache",
        "LOCATION": "koabiga",
    }
}

AUTH_USER_MODEL = "accounts.User"

AUTH_PASSWORD_VALIDATORS = [
    {"NAME": "django.contrib.auth.password_validation.UserAttributeSimilarityValidator"},
    {"NAME": "django.contrib.auth.password_validation.MinimumLengthValidator"},
    {"NAME": "django.contrib.auth.password_validation.CommonPasswordValidator"},
    {"NAME": "django.contrib.auth.password_validation.NumericPasswordValidator"},
]

REST_FRAMEWORK = {
    "DEFAULT_AUTHENTICATION_CLASSES": [
        "rest_framework.authentication.TokenAuthentication",
        "rest_framework.authentication.SessionAuthentication",
    ],
    "DEFAULT_PERMISSION_CLASSES": [
        "rest_framework.permissions.IsAuthenticated",
    ],
}


LANGUAGE_CODE = "en-us"

TIME_ZONE = os.getenv("TIME_ZONE", "Africa/Kampala")

USE_I18N = True

USE_TZ = True

STATIC_URL = "static/"
STATIC_ROOT = BASE_DIR / "staticfiles"

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"


# Email (Resend)
resend.api_key = os.getenv("RESEND_API_KEY")
DEFAULT_FROM_EMAIL = os.getenv(
    "DEFAULT_FROM_EMAIL", "Koabiga Cooperative <payments@koabiga.com>"
)


# MTN Mobile Money collections
MTN_MOMO = {
    "BASE_URL": os.getenv("MTN_MOMO_BASE_URL", "https://proxy.momoapi.mtn.com"),
    "SUBSCRIPTION_KEY": os.getenv("MTN_MOMO_SUBSCRIPTION_KEY"),
    "TARGET_ENVIRONMENT": os.getenv("MTN_MOMO_TARGET_ENVIRONMENT", "live"),
    "API_USER": os.getenv("MTN_MOMO_API_USER"),
    "API_KEY": os.getenv("MTN_MOMO_API_KEY"),
    "CALLBACK_URL": os.getenv("MTN_MOMO_CALLBACK_URL"),
    "CURRENCY": os.getenv("MTN_MOMO_CURRENCY", "EUR"),
    "COUNTRY_CODE": os.getenv("MTN_MOMO_COUNTRY_CODE", "256"),
    # Provider tokens live for an hour
    "TOKEN_CACHE_TIMEOUT": int(os.getenv("MTN_MOMO_TOKEN_CACHE_TIMEOUT", "3300")),
    "REQUEST_TIMEOUT": int(os.getenv("MTN_MOMO_REQUEST_TIMEOUT", "30")),
}


# Fee scheduling
FEE_NEW_MEMBER_MONTHS = 3
FEE_ACTIVE_MEMBER_MONTHS = 6
PAYMENT_AMOUNT_TOLERANCE = Decimal("0.01")
PAYMENT_HISTORY_PAGE_SIZE = 10


LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "verbose": {
            "format": "{asctime} {levelname} {name} {message}",
            "style": "{",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "verbose",
        },
    },
    "root": {
        "handlers": ["console"],
        "level": "WARNING",
    },
    "loggers": {
        "accounts": {"handlers": ["console"], "level": "INFO", "propagate": False},
        "feerules": {"handlers": ["console"], "level": "INFO", "propagate": False},
        "feeapplications": {
            "handlers": ["console"],
            "level": "INFO",
            "propagate": False,
        },
        "payments": {"handlers": ["console"], "level": "INFO", "propagate": False},
    },
}
