"""Environment-driven configuration for the GrazeTrack backend."""
import os

from dotenv import load_dotenv

load_dotenv()

_ROOT_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))


def _default_images_root() -> str:
    cwd_images = os.path.abspath(os.path.join(os.getcwd(), "images"))
    if os.path.isdir(cwd_images):
        return cwd_images
    return os.path.abspath(os.path.join(os.getcwd(), "..", "images"))


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise RuntimeError(f"Invalid backend environment configuration: {name} must be an integer, got {raw!r}")
    if value <= 0:
        raise RuntimeError(f"Invalid backend environment configuration: {name} must be positive, got {value}")
    return value


def _str_env(name: str, default: str) -> str:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip()


DATABASE_URL = _str_env(
    "DATABASE_URL",
    f"sqlite:///{os.path.join(_ROOT_DIR, 'data', 'grazetrack.db')}",
)
API_HOST = _str_env("API_HOST", "0.0.0.0")
API_PORT = _int_env("API_PORT", 3001)
CORS_ORIGIN = _str_env("CORS_ORIGIN", "http://localhost:5173")
IMAGES_ROOT = _str_env("IMAGES_ROOT", _default_images_root())

# 25MB per uploaded file
MAX_UPLOAD_BYTES = _int_env("MAX_UPLOAD_BYTES", 25 * 1024 * 1024)

# Firebase ID tokens are verified when a project id is configured;
# otherwise bearer tokens are HS256 JWTs signed with SECRET_KEY.
FIREBASE_PROJECT_ID = os.getenv("FIREBASE_PROJECT_ID") or None
FIREBASE_SERVICE_ACCOUNT_FILE = os.getenv("FIREBASE_SERVICE_ACCOUNT_FILE") or None
SECRET_KEY = _str_env("SECRET_KEY", "grazetrack-dev-secret-change-in-production")

LOG_LEVEL = _str_env("LOG_LEVEL", "INFO").upper()
LOG_REDACT_PII = _str_env("LOG_REDACT_PII", "true").lower() not in ("0", "false", "no")

RATE_LIMIT_PER_MINUTE = _int_env("RATE_LIMIT_PER_MINUTE", 120)
UPLOAD_RATE_LIMIT_PER_MINUTE = _int_env("UPLOAD_RATE_LIMIT_PER_MINUTE", 20)
