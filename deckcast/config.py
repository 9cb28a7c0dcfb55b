import os
from pathlib import Path


LOCAL_PROFILES = {"local", "dev", "test"}


PROJECT_ROOT = Path(__file__).resolve().parent.parent
DEFAULT_INSTANCE_ROOT = Path(
    os.getenv("DECKCAST_INSTANCE_PATH", PROJECT_ROOT / "instance")
)
DEFAULT_LOG_DIR = Path(
    os.getenv("DECKCAST_LOG_DIR", DEFAULT_INSTANCE_ROOT / "logs")
)


def _env_flag(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"0", "false", "no", "off"}:
        return False
    if normalized in {"1", "true", "yes", "on"}:
        return True
    return default


def _normalize_cache_backend(value: str | None, default: str = "memory") -> str:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"memory", "redis"}:
        return normalized
    return default


class Config:
    DEPLOY_PROFILE = os.getenv("DEPLOY_PROFILE", "")
    ELEVENLABS_API_KEY = os.getenv("ELEVENLABS_API_KEY", "")
    TTS_API_URL = os.getenv("TTS_API_URL", "https://api.elevenlabs.io/v1/text-to-speech")
    TTS_MODEL_ID = os.getenv("TTS_MODEL_ID", "eleven_multilingual_v2")
    TTS_TIMEOUT_SECONDS = float(os.getenv("TTS_TIMEOUT_SECONDS", "60"))
    DEFAULT_LANGUAGE = os.getenv("DEFAULT_LANGUAGE", "en")
    DEFAULT_THEME = os.getenv("DEFAULT_THEME", "professional")
    TRANSITION_GAP_MS = float(os.getenv("TRANSITION_GAP_MS", "2000"))
    EMPTY_SLIDE_DURATION_MS = float(os.getenv("EMPTY_SLIDE_DURATION_MS", "3000"))
    AUDIO_SAMPLE_RATE = int(os.getenv("AUDIO_SAMPLE_RATE", "44100"))
    VIDEO_WIDTH = int(os.getenv("VIDEO_WIDTH", "1920"))
    VIDEO_HEIGHT = int(os.getenv("VIDEO_HEIGHT", "1080"))
    VIDEO_FPS = int(os.getenv("VIDEO_FPS", "30"))
    MAX_MIX_BUFFER_BYTES = int(os.getenv("MAX_MIX_BUFFER_BYTES", str(512 * 1024 * 1024)))
    EXPORT_REALTIME = _env_flag(os.getenv("EXPORT_REALTIME"), default=False)
    NARRATION_CACHE_BACKEND = _normalize_cache_backend(os.getenv("NARRATION_CACHE_BACKEND"))
    NARRATION_CACHE_TTL_SECONDS = int(os.getenv("NARRATION_CACHE_TTL_SECONDS", "43200"))
    REDIS_URL = os.getenv("REDIS_URL", "")
    WORK_QUEUE_NAME = os.getenv("WORK_QUEUE_NAME", "deckcast-exports")
    WORK_QUEUE_TIMEOUT = int(os.getenv("WORK_QUEUE_TIMEOUT", "1800"))
    EXPORT_JOB_TTL_SECONDS = int(os.getenv("EXPORT_JOB_TTL_SECONDS", "7200"))
    ENABLE_SYNC_EXPORT = _env_flag(os.getenv("ENABLE_SYNC_EXPORT"), default=False)
    MAX_CONTENT_LENGTH = 5 * 1024 * 1024  # 5MB slide payloads
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
    LOG_FORMAT = os.getenv("LOG_FORMAT", "json")
    LOG_TO_STDOUT = os.getenv("LOG_TO_STDOUT", "1").lower() not in {"0", "false", "no"}
    LOG_TO_FILE = os.getenv("LOG_TO_FILE", "1").lower() not in {"0", "false", "no"}
    LOG_VERBOSITY = os.getenv("LOG_VERBOSITY", "essential")
    LOG_DIR = os.getenv("LOG_DIR", str(DEFAULT_LOG_DIR))
    LOG_FILE = os.getenv("LOG_FILE", str(DEFAULT_LOG_DIR / "deckcast.log"))
    LOG_FILE_MAX_BYTES = int(os.getenv("LOG_FILE_MAX_BYTES", str(10 * 1024 * 1024)))
    LOG_FILE_BACKUP_COUNT = int(os.getenv("LOG_FILE_BACKUP_COUNT", "5"))
    REQUEST_ID_HEADER = os.getenv("REQUEST_ID_HEADER", "X-Request-ID")
