"""Configuration management from environment variables."""
import os
from pathlib import Path
from dotenv import load_dotenv

# Load .env file
load_dotenv()

# Project root
PROJECT_ROOT = Path(__file__).parent.parent
DATA_DIR = Path(os.getenv("DATA_DIR", str(PROJECT_ROOT / "data")))
CACHE_DB = DATA_DIR / "cache.db"
EXPORT_DIR = DATA_DIR / "exports"

# Ensure directories exist
DATA_DIR.mkdir(parents=True, exist_ok=True)
EXPORT_DIR.mkdir(exist_ok=True)


class Config:
    """Application configuration."""

    # Bandcamp
    BASE_URL: str = os.getenv("BASE_URL", "https://bandcamp.com")
    ART_BASE_URL: str = os.getenv("ART_BASE_URL", "https://f4.bcbits.com/img")
    USER_AGENT: str = os.getenv(
        "USER_AGENT",
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    )
    SESSION_COOKIE: str | None = os.getenv("SESSION_COOKIE")

    # Harvester
    PAGE_SIZE: int = int(os.getenv("PAGE_SIZE", "100"))
    MAX_PAGES: int = int(os.getenv("MAX_PAGES", "500"))
    RATE_PER_DOMAIN: float = float(os.getenv("RATE_PER_DOMAIN", "3.0"))
    TIMEOUT: int = int(os.getenv("TIMEOUT", "20"))
    # 1 attempt = no transport retries
    MAX_RETRIES: int = int(os.getenv("MAX_RETRIES", "1"))

    # Logging
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # API Security
    API_KEY: str | None = os.getenv("API_KEY")

    @classmethod
    def validate(cls, require_cookie: bool = False) -> None:
        """Validate required configuration."""
        errors = []
        if require_cookie and not cls.SESSION_COOKIE:
            errors.append("SESSION_COOKIE is required (or pass --cookie)")
        if cls.PAGE_SIZE <= 0:
            errors.append("PAGE_SIZE must be positive")
        if cls.MAX_PAGES <= 0:
            errors.append("MAX_PAGES must be positive")
        if cls.MAX_RETRIES < 1:
            errors.append("MAX_RETRIES must be at least 1")
        if errors:
            raise ValueError(f"Configuration errors: {', '.join(errors)}")


config = Config()
