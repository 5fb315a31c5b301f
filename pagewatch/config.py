"""
Configuration management for the product page monitor.
Handles environment variables and application settings.
"""
import os
from typing import Dict, List, Optional
from dotenv import load_dotenv

from pagewatch.errors import ConfigurationError

load_dotenv()


DEFAULT_TARGET_URL = "https://www.lego.com/en-us/product/at-at-75313"
DEFAULT_AVAILABILITY_SELECTOR = 'span[itemprop="offers"] > meta[itemprop="availability"]'
DEFAULT_PRICE_SELECTOR = 'span[itemprop="offers"] > meta[itemprop="price"]'
DEFAULT_BLOCKED_RESOURCE_TYPES = "image,stylesheet,font"
DEFAULT_BROWSER_ARGS = "--no-sandbox,--disable-gpu,--disable-dev-shm-usage"

# Load-completion conditions accepted by page.goto
WAIT_CONDITIONS = ("domcontentloaded", "load", "networkidle", "commit")

# Storage collaborator settings; all four must be present before a run starts
STORAGE_SETTINGS = (
    "APPWRITE_ENDPOINT",
    "APPWRITE_PROJECT_ID",
    "APPWRITE_API_KEY",
    "APPWRITE_BUCKET_ID",
)


def _get_str(name: str, default: Optional[str] = None) -> Optional[str]:
    value = os.getenv(name)
    if value is None:
        return default
    stripped = value.strip()
    return stripped if stripped else default


def _get_clearable_str(name: str, default: Optional[str]) -> Optional[str]:
    """Like _get_str, but a variable set to an empty value clears the default."""
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip() or None


def _get_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _get_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _get_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _get_list(name: str, default: str) -> List[str]:
    raw = _get_str(name, default) or ""
    return [item.strip() for item in raw.split(",") if item.strip()]


class Config:
    """Application configuration loaded from environment variables."""

    def __init__(self):
        # Server settings
        self.HOST: str = _get_str("HOST", "0.0.0.0")
        self.PORT: int = _get_int("PORT", 8000)
        self.DEBUG: bool = _get_bool("DEBUG", False)

        # Storage collaborator (Appwrite-compatible bucket API)
        self.APPWRITE_ENDPOINT: Optional[str] = _get_str("APPWRITE_ENDPOINT")
        self.APPWRITE_PROJECT_ID: Optional[str] = _get_str("APPWRITE_PROJECT_ID")
        self.APPWRITE_API_KEY: Optional[str] = _get_str("APPWRITE_API_KEY")
        self.APPWRITE_BUCKET_ID: Optional[str] = _get_str("APPWRITE_BUCKET_ID")
        self.UPLOAD_TIMEOUT: float = max(1.0, _get_float("UPLOAD_TIMEOUT", 30.0))

        # Monitored page
        self.TARGET_URL: str = _get_str("TARGET_URL", DEFAULT_TARGET_URL)
        # Set AVAILABILITY_SELECTOR empty to rely on the CTA_SELECTOR fallback
        self.AVAILABILITY_SELECTOR: Optional[str] = _get_clearable_str(
            "AVAILABILITY_SELECTOR", DEFAULT_AVAILABILITY_SELECTOR
        )
        self.PRICE_SELECTOR: Optional[str] = _get_clearable_str(
            "PRICE_SELECTOR", DEFAULT_PRICE_SELECTOR
        )
        self.CTA_SELECTOR: Optional[str] = _get_str("CTA_SELECTOR")
        self.USER_AGENT: Optional[str] = _get_str("USER_AGENT")

        # Browser
        self.CHROMIUM_EXECUTABLE_PATH: Optional[str] = _get_str("CHROMIUM_EXECUTABLE_PATH")
        self.BROWSER_ARGS: List[str] = _get_list("BROWSER_ARGS", DEFAULT_BROWSER_ARGS)
        self.VIEWPORT_WIDTH: int = max(320, _get_int("VIEWPORT_WIDTH", 1920))
        self.VIEWPORT_HEIGHT: int = max(240, _get_int("VIEWPORT_HEIGHT", 1080))

        # Per-operation timeouts
        self.NAVIGATION_TIMEOUT_MS: int = max(1000, _get_int("NAVIGATION_TIMEOUT_MS", 30000))
        self.NAVIGATION_WAIT_UNTIL: str = _get_str("NAVIGATION_WAIT_UNTIL", "domcontentloaded")
        self.SELECTOR_TIMEOUT_MS: int = max(0, _get_int("SELECTOR_TIMEOUT_MS", 10000))
        self.SCREENSHOT_TIMEOUT_MS: int = max(1000, _get_int("SCREENSHOT_TIMEOUT_MS", 30000))
        self.OVERLAY_TIMEOUT_MS: int = max(0, _get_int("OVERLAY_TIMEOUT_MS", 3000))

        # Request filtering and overlays
        self.BLOCK_RESOURCES: bool = _get_bool("BLOCK_RESOURCES", False)
        self.BLOCKED_RESOURCE_TYPES: List[str] = _get_list(
            "BLOCKED_RESOURCE_TYPES", DEFAULT_BLOCKED_RESOURCE_TYPES
        )
        self.ALLOWED_ORIGINS: List[str] = _get_list("ALLOWED_ORIGINS", "")
        self.OVERLAY_DISMISS_SELECTORS: List[str] = _get_list("OVERLAY_DISMISS_SELECTORS", "")

        # Retry budget, applied per step
        self.RETRY_MAX_ATTEMPTS: int = max(1, _get_int("RETRY_MAX_ATTEMPTS", 3))
        self.RETRY_DELAY_SECONDS: float = max(0.0, _get_float("RETRY_DELAY_SECONDS", 2.0))
        self.RETRY_BACKOFF_MULTIPLIER: float = max(1.0, _get_float("RETRY_BACKOFF_MULTIPLIER", 1.0))

        # Logging
        self.LOG_LEVEL: str = _get_str("LOG_LEVEL", "INFO")
        self.LOG_FORMAT: str = _get_str("LOG_FORMAT", "json")  # json or console

    def get_missing_storage_vars(self) -> List[str]:
        """Return the storage environment variables that are not set."""
        return [name for name in STORAGE_SETTINGS if not getattr(self, name)]

    def is_storage_configured(self) -> bool:
        """
        Check if the storage collaborator is fully configured.

        Requires ALL of:
        - APPWRITE_ENDPOINT
        - APPWRITE_PROJECT_ID
        - APPWRITE_API_KEY
        - APPWRITE_BUCKET_ID
        """
        return not self.get_missing_storage_vars()

    def get_invalid_settings(self) -> Dict[str, str]:
        """Return settings that are present but unusable, with the reason."""
        invalid: Dict[str, str] = {}
        if not self.TARGET_URL.startswith(("http://", "https://")):
            invalid["TARGET_URL"] = f"must be an http(s) URL, got {self.TARGET_URL}"
        if self.NAVIGATION_WAIT_UNTIL not in WAIT_CONDITIONS:
            invalid["NAVIGATION_WAIT_UNTIL"] = (
                f"must be one of {', '.join(WAIT_CONDITIONS)}, got {self.NAVIGATION_WAIT_UNTIL}"
            )
        if not self.AVAILABILITY_SELECTOR and not self.CTA_SELECTOR:
            invalid["AVAILABILITY_SELECTOR"] = "is empty and no CTA_SELECTOR is set"
        return invalid

    def is_valid(self) -> bool:
        """True when a monitoring run can start with these settings."""
        return not self.get_missing_storage_vars() and not self.get_invalid_settings()

    def require_storage(self) -> None:
        """Raise ConfigurationError naming every missing storage setting."""
        missing = self.get_missing_storage_vars()
        if missing:
            raise ConfigurationError(missing)

    def validate(self) -> None:
        """Raise ConfigurationError naming every missing or invalid setting."""
        missing = self.get_missing_storage_vars()
        invalid = self.get_invalid_settings()
        if missing or invalid:
            raise ConfigurationError(missing, invalid)


config = Config()
