# bulkadd/config.py
from dataclasses import dataclass
from dotenv import load_dotenv
import os

load_dotenv()


def _env_flag(name: str) -> bool:
    return os.getenv(name, "").strip().lower() in ("1", "true", "yes", "on")


# API
API_BASE_URL = os.getenv("DOOF_API_URL", "http://localhost:5001/api")
API_TOKEN = os.getenv("DOOF_API_TOKEN")
API_EMAIL = os.getenv("DOOF_API_EMAIL")
API_PASSWORD = os.getenv("DOOF_API_PASSWORD")
DEV_MODE = _env_flag("DOOF_DEV_MODE")
OFFLINE_MODE = _env_flag("DOOF_OFFLINE_MODE")

# Runtime parameters
MAX_RETRIES = 3
BASE_DELAY_MS = 500
REQUEST_TIMEOUT = 30
RATE_LIMIT = 10  # requests per second against the backend proxy
DUPLICATE_THRESHOLD = 95
LOG_LEVEL = os.getenv("LOG_LEVEL", "DEBUG")

# Places search parameters
PLACE_TYPES = "establishment"
PLACE_COMPONENTS = "country:us"

# File names
INPUT_FILE = os.getenv("DOOF_INPUT_FILE", "restaurants.txt")
OUTPUT_CSV = os.getenv("DOOF_OUTPUT_CSV", "bulk_add_review.csv")


@dataclass
class ClientConfig:
    """Explicit settings handed to DoofApiClient; nothing is read from globals at request time."""
    base_url: str
    token: str | None = None
    dev_mode: bool = False
    offline_mode: bool = False
    timeout: float = REQUEST_TIMEOUT
    rate_limit: float = RATE_LIMIT

    @classmethod
    def from_env(cls) -> "ClientConfig":
        return cls(
            base_url=API_BASE_URL,
            token=API_TOKEN,
            dev_mode=DEV_MODE,
            offline_mode=OFFLINE_MODE,
        )
