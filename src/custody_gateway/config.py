# Process Configuration
#
# All settings come from the process environment (optionally seeded from a
# .env file). The master key and the database location have no defaults:
# starting without them raises ConfigurationError instead of running with
# unprotected or throwaway storage.

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional, Tuple

from dotenv import load_dotenv

from .exceptions import ConfigurationError
from .vault.encryption import load_master_key

DEFAULT_PORT = 3000
DEFAULT_HOST = "127.0.0.1"
DEFAULT_PROVIDER_TIMEOUT = 60.0

DEFAULT_CHAT_MODEL = "gpt-3.5-turbo"
DEFAULT_IMAGE_MODEL = "dall-e-3"
DEFAULT_IMAGE_SIZE = "1024x1024"

PAYPAL_ENVIRONMENTS = {
    "sandbox": "https://api-m.sandbox.paypal.com",
    "live": "https://api-m.paypal.com",
}

_SQLITE_PREFIX = "sqlite:///"


@dataclass(frozen=True)
class Settings:
    """Immutable process settings, built once at startup."""

    master_key: bytes = field(repr=False)
    database_path: Path
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    provider_timeout: float = DEFAULT_PROVIDER_TIMEOUT
    chat_model: str = DEFAULT_CHAT_MODEL
    image_model: str = DEFAULT_IMAGE_MODEL
    image_size: str = DEFAULT_IMAGE_SIZE
    paypal_env: str = "sandbox"
    payment_currency: str = "USD"
    cors_origins: Tuple[str, ...] = ("*",)
    log_dir: Path = Path("./logs")

    @property
    def paypal_base_url(self) -> str:
        return PAYPAL_ENVIRONMENTS[self.paypal_env]


def parse_database_url(url: str) -> Path:
    """Resolve a persistence connection string to a SQLite file path.

    Accepts ``sqlite:///relative/or/absolute.db`` or a bare filesystem path.
    """
    url = url.strip()
    if not url:
        raise ConfigurationError("CUSTODY_DATABASE_URL is empty")
    if url.startswith(_SQLITE_PREFIX):
        path = url[len(_SQLITE_PREFIX):]
        if not path:
            raise ConfigurationError("CUSTODY_DATABASE_URL has no database path")
        return Path(path)
    if "://" in url:
        scheme = url.split("://", 1)[0]
        raise ConfigurationError(
            f"Unsupported database scheme '{scheme}' (only sqlite is supported)"
        )
    return Path(url)


def _require(env: Mapping[str, str], name: str) -> str:
    value = env.get(name, "").strip()
    if not value:
        raise ConfigurationError(f"{name} must be set before the gateway can start")
    return value


def _int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name, "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}")
    if not 1 <= value <= 65535:
        raise ConfigurationError(f"{name} must be between 1 and 65535")
    return value


def _float(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name, "").strip()
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}")
    if value <= 0:
        raise ConfigurationError(f"{name} must be positive")
    return value


def load_settings(
    env: Optional[Mapping[str, str]] = None,
    *,
    dotenv: bool = True,
) -> Settings:
    """Build Settings from the environment.

    Args:
        env: Mapping to read instead of ``os.environ`` (tests).
        dotenv: Load a ``.env`` file into ``os.environ`` first. Ignored
                when ``env`` is given.

    Raises:
        ConfigurationError: If a required value is missing or malformed.
    """
    if env is None:
        if dotenv:
            load_dotenv()
        env = os.environ

    master_key = load_master_key(_require(env, "CUSTODY_SECRET_KEY"))
    database_path = parse_database_url(_require(env, "CUSTODY_DATABASE_URL"))

    paypal_env = env.get("CUSTODY_PAYPAL_ENV", "sandbox").strip().lower() or "sandbox"
    if paypal_env not in PAYPAL_ENVIRONMENTS:
        raise ConfigurationError(
            f"CUSTODY_PAYPAL_ENV must be one of {sorted(PAYPAL_ENVIRONMENTS)}"
        )

    origins = tuple(
        o.strip() for o in env.get("CUSTODY_CORS_ORIGINS", "*").split(",") if o.strip()
    )

    return Settings(
        master_key=master_key,
        database_path=database_path,
        host=env.get("CUSTODY_HOST", "").strip() or DEFAULT_HOST,
        port=_int(env, "PORT", DEFAULT_PORT),
        provider_timeout=_float(env, "CUSTODY_PROVIDER_TIMEOUT", DEFAULT_PROVIDER_TIMEOUT),
        chat_model=env.get("CUSTODY_CHAT_MODEL", "").strip() or DEFAULT_CHAT_MODEL,
        image_model=env.get("CUSTODY_IMAGE_MODEL", "").strip() or DEFAULT_IMAGE_MODEL,
        image_size=env.get("CUSTODY_IMAGE_SIZE", "").strip() or DEFAULT_IMAGE_SIZE,
        paypal_env=paypal_env,
        payment_currency=(env.get("CUSTODY_PAYMENT_CURRENCY", "").strip() or "USD").upper(),
        cors_origins=origins or ("*",),
        log_dir=Path(env.get("CUSTODY_LOG_DIR", "").strip() or "./logs"),
    )
