# runtime configuration, read once from the environment (and .env if present)
import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}") from None


@dataclass(frozen=True)
class StoreConfig:
    """
    Injected configuration for the remote services and local storage.

    Fields:
      - content_api_url: base of the headless CMS delivery API
      - content_api_token: public delivery token sent as ``token`` query param
      - backend_api_url: base of the auth/checkout backend
      - currency: currency constant sent with every checkout request
      - http_timeout: client timeout (seconds) applied to every request
      - page_size: ``per_page`` used for catalog listings
      - db_path: sqlite file backing the local key/value store
    """

    content_api_url: str = "https://api.storyblok.com/v2/cdn"
    content_api_token: str = ""
    backend_api_url: str = "https://diplostore.fwh.is/diplo-store-api"
    currency: str = "usd"
    http_timeout: float = 15.0
    page_size: int = 100
    db_path: str = "data/storefront.sqlite"


def load_config(env_file: Optional[str] = None) -> StoreConfig:
    """Build a StoreConfig from environment variables, falling back to defaults."""
    load_dotenv(env_file)
    defaults = StoreConfig()
    page_size = _int_env("CATALOG_PAGE_SIZE", defaults.page_size)
    if page_size < 1:
        raise ValueError("CATALOG_PAGE_SIZE must be at least 1")
    return StoreConfig(
        content_api_url=os.getenv("CONTENT_API_URL", defaults.content_api_url).rstrip("/"),
        content_api_token=os.getenv("CONTENT_API_TOKEN", defaults.content_api_token),
        backend_api_url=os.getenv("BACKEND_API_URL", defaults.backend_api_url).rstrip("/"),
        currency=os.getenv("STORE_CURRENCY", defaults.currency),
        http_timeout=_float_env("HTTP_TIMEOUT", defaults.http_timeout),
        page_size=page_size,
        db_path=os.getenv("STORE_DB_PATH", defaults.db_path),
    )
