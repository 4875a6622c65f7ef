"""
Django settings for the character arena backend.

Every deployment knob is read from the environment; see ``ArenaConfig``
for the values the battle, judge and session components consume.
"""

import os
from pathlib import Path
from urllib.parse import parse_qs, unquote, urlparse

BASE_DIR = Path(__file__).resolve().parent.parent


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() not in ("0", "false", "no", "off", "")


def _database_from_url(url: str) -> dict:
    """Translate a DATABASE_URL into a Django DATABASES entry."""

    parsed = urlparse(url)
    scheme = parsed.scheme
    if scheme == "sqlite":
        name = unquote(parsed.path[1:] if parsed.path.startswith("/") else parsed.path)
        if not name or name == ":memory:":
            name = ":memory:"
        elif not os.path.isabs(name):
            name = str(BASE_DIR / name)
        return {"ENGINE": "django.db.backends.sqlite3", "NAME": name}

    if scheme in {"mysql", "mariadb"}:
        engine = "django.db.backends.mysql"
        default_port = 3306
    elif scheme in {"postgres", "postgresql"}:
        engine = "django.db.backends.postgresql"
        default_port = 5432
    else:
        raise ValueError(f"Unsupported DATABASE_URL scheme: {scheme!r}")

    qs = parse_qs(parsed.query)
    options = {}
    if engine == "django.db.backends.mysql":
        options["charset"] = (qs.get("charset", ["utf8mb4"]) or ["utf8mb4"])[0]

    return {
        "ENGINE": engine,
        "NAME": (parsed.path or "/").lstrip("/"),
        "USER": unquote(parsed.username or ""),
        "PASSWORD": unquote(parsed.password or ""),
        "HOST": parsed.hostname or "localhost",
        "PORT": str(parsed.port or default_port),
        "OPTIONS": options,
    }


SECRET_KEY = os.getenv("DJANGO_SECRET_KEY", "django-insecure-arena-dev-key")
DEBUG = _env_bool("DJANGO_DEBUG", False)
ALLOWED_HOSTS = [
    host.strip()
    for host in os.getenv("DJANGO_ALLOWED_HOSTS", "localhost,127.0.0.1,testserver").split(",")
    if host.strip()
]

INSTALLED_APPS = [
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",
    "accounts",
    "arena",
    "maintenance",
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

ROOT_URLCONF = "arena_backend.urls"
WSGI_APPLICATION = "arena_backend.wsgi.application"
APPEND_SLASH = False

TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [],
        "APP_DIRS": True,
        "OPTIONS": {
            "context_processors": [
                "django.template.context_processors.request",
                "django.contrib.auth.context_processors.auth",
                "django.contrib.messages.context_processors.messages",
            ],
        },
    },
]

DATABASES = {
    "default": _database_from_url(os.getenv("DATABASE_URL", "sqlite:///db.sqlite3")),
}

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

LANGUAGE_CODE = "en-us"
TIME_ZONE = "UTC"
USE_I18N = True
USE_TZ = True

STATIC_URL = "static/"

# Language model judge (OpenAI-compatible chat completions).
LLM_BASE_URL = os.getenv("LLM_BASE_URL", "https://api.openai.com/v1")
LLM_API_KEY = os.getenv("LLM_API_KEY", "")
LLM_MODEL = os.getenv("LLM_MODEL", "gpt-4o-mini")
LLM_TIMEOUT = float(os.getenv("LLM_TIMEOUT", "20"))
LLM_MAX_TOKENS = int(os.getenv("LLM_MAX_TOKENS", "300"))
LLM_TEMPERATURE = float(os.getenv("LLM_TEMPERATURE", "0.4"))

# Arena
ARENA_SESSION_SECRET = os.getenv("ARENA_SESSION_SECRET", "")
ARENA_SESSION_MAX_AGE = 7 * 24 * 60 * 60
ARENA_DEBUG_LOG = _env_bool("ARENA_DEBUG_LOG", False)
ARENA_COOLDOWN_SECONDS = int(os.getenv("ARENA_COOLDOWN_SECONDS", "60"))
ARENA_K_FACTOR = 32
ARENA_LOCK_TIMEOUT = int(os.getenv("ARENA_LOCK_TIMEOUT", "5"))
ARENA_SELF_REGISTRATION = _env_bool("ARENA_SELF_REGISTRATION", False)
ARENA_DEFAULT_PASSWORD = os.getenv("ARENA_DEFAULT_PASSWORD", "Neuron")
ARENA_SECURE_COOKIE = _env_bool("ARENA_SECURE_COOKIE", not DEBUG)

_APP_LOG_LEVEL = "DEBUG" if ARENA_DEBUG_LOG else "INFO"

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "standard": {
            "format": "%(asctime)s %(levelname)s [%(name)s] %(message)s",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "standard",
        },
    },
    "root": {"handlers": ["console"], "level": "WARNING"},
    "loggers": {
        name: {"handlers": ["console"], "level": _APP_LOG_LEVEL, "propagate": False}
        for name in ("arena", "accounts", "maintenance", "arena_backend")
    },
}
