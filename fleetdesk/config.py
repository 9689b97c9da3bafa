import json
import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

DATA_DIR = Path(os.getenv("DATA_DIR", "data"))
DEBUG = os.getenv("DEBUG", "false").lower() in {"1", "true", "yes"}
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# Key of the fleet set created when a pre-set deck list is migrated.
DEFAULT_SET_NAME = os.getenv("DEFAULT_SET_NAME", "default")
DRAG_ACTIVATION_DISTANCE = float(os.getenv("DRAG_ACTIVATION_DISTANCE", "8"))
CATALOG_MAX_REFERENCE_ID = int(os.getenv("CATALOG_MAX_REFERENCE_ID", "1500"))
SYNTHETIC_ID_BASE = int(os.getenv("SYNTHETIC_ID_BASE", "100000"))

API_BASE_URL = os.getenv("API_BASE_URL", "http://localhost:3002")
API_TIMEOUT = float(os.getenv("API_TIMEOUT", "30"))


def _load_json_list(env_key: str, default: list) -> list:
    raw_value = os.getenv(env_key)
    if not raw_value:
        return default
    try:
        parsed = json.loads(raw_value)
    except json.JSONDecodeError:
        return default
    return parsed if isinstance(parsed, list) else default


CORS_ORIGINS = _load_json_list("CORS_ORIGINS", ["*"])
