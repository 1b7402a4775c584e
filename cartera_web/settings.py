"""
Settings del servicio de cartera.

Todo valor sensible llega por variables de entorno (o un .env local).
"""

import os
from pathlib import Path

from dotenv import load_dotenv


BASE_DIR = Path(__file__).resolve().parent.parent

load_dotenv(BASE_DIR / ".env")


def _env_bool(key: str, default: str = "0") -> bool:
    return os.getenv(key, default).strip() in ("1", "true", "True", "yes")


SECRET_KEY = os.getenv("DJANGO_SECRET_KEY", "dev-insecure-cartera-key")
DEBUG = _env_bool("DJANGO_DEBUG")
ALLOWED_HOSTS = [h.strip() for h in os.getenv("DJANGO_ALLOWED_HOSTS", "*").split(",") if h.strip()]

INSTALLED_APPS = [
    "rest_framework",
    "api",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.middleware.common.CommonMiddleware",
]

ROOT_URLCONF = "cartera_web.urls"
WSGI_APPLICATION = "cartera_web.wsgi.application"

# Sin modelos: el servicio no guarda estado.
DATABASES = {}

LANGUAGE_CODE = "es-co"
TIME_ZONE = os.getenv("DJANGO_TIME_ZONE", "America/Bogota")
USE_I18N = True
USE_TZ = True

REST_FRAMEWORK = {
    "DEFAULT_RENDERER_CLASSES": ["rest_framework.renderers.JSONRenderer"],
    "DEFAULT_PARSER_CLASSES": ["rest_framework.parsers.JSONParser"],
    "DEFAULT_AUTHENTICATION_CLASSES": [],
    "DEFAULT_PERMISSION_CLASSES": [],
    "UNAUTHENTICATED_USER": None,
}

#* INTEGRACION CARTERA (FOMPLUS CXC SOAP)
CARTERA = {
    "HOST": os.getenv("CARTERA_HOST", "https://cartera.fomplus.com"),
    "SOAP_PATH": os.getenv("CARTERA_SOAP_PATH", ""),
    "SOAP_ACTION": os.getenv("CARTERA_SOAP_ACTION", ""),
    "SOAP_NS": os.getenv("CARTERA_SOAP_NS", "http://tempuri.org/"),
    "DB": os.getenv("CARTERA_DB") or os.getenv("CARTERA_BASEDATOS", ""),
    "TOKEN": os.getenv("CARTERA_TOKEN", ""),
    "TIMEOUT_MS": os.getenv("CARTERA_TIMEOUT_MS", "28000"),
    "RETRY_BACKOFF_MS": os.getenv("CARTERA_RETRY_BACKOFF_MS", "800"),
    "ALLOW_PREFIXES": os.getenv("CARTERA_ALLOW_PREFIXES", ""),
    "EXTRACTOR": os.getenv("CARTERA_EXTRACTOR", "bracket"),
    "WSDL_URL": os.getenv("CARTERA_WSDL_URL", ""),
    "LOG_XML": _env_bool("CARTERA_SOAP_LOG_XML"),
}

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "simple": {"format": "%(asctime)s %(levelname)s %(name)s: %(message)s"},
    },
    "handlers": {
        "console": {"class": "logging.StreamHandler", "formatter": "simple"},
    },
    "root": {"handlers": ["console"], "level": "WARNING"},
    "loggers": {
        "api": {
            "handlers": ["console"],
            "level": os.getenv("DJANGO_LOG_LEVEL", "INFO"),
            "propagate": False,
        },
    },
}
