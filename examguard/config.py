"""
examguard Configuration Settings

All engine thresholds are in milliseconds, measured against each tick's
own timestamp.
"""
from pydantic_settings import BaseSettings
from typing import List, Optional


class Settings(BaseSettings):
    """Configuration for the proctoring service."""

    # API Settings
    APP_NAME: str = "examguard Proctoring Service"
    DEBUG: bool = True

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_TO_FILE: bool = False
    LOG_DIR: str = "logs"

    # Presence / gaze hysteresis
    NO_FACE_THRESHOLD_MS: int = 10_000
    LOOK_AWAY_THRESHOLD_MS: int = 5_000
    HYSTERESIS_COOLDOWN_MS: int = 1_000
    GAZE_DEVIATION_FRACTION: float = 0.18  # of frame width

    # Object flagging
    ITEM_CONFIDENCE_MIN: float = 0.45
    RESCUE_CONFIDENCE_MIN: float = 0.25
    ITEM_DEBOUNCE_MS: int = 5_000
    ITEM_CLASSES: List[str] = [
        "cell phone", "cellphone", "phone",
        "laptop", "book", "remote",
        "keyboard", "mouse", "tv", "monitor"
    ]

    # Paper heuristic
    PAPER_LUMINANCE_MIN: float = 0.85
    PAPER_FRACTION_MIN: float = 0.30
    PAPER_MAX_SAMPLES: int = 2000
    FRAME_CHANNEL_ORDER: str = "BGR"

    # Tick cadence: object model runs every OBJECT_TICK_MULTIPLIER * TICK_MS
    TICK_MS: int = 500
    OBJECT_TICK_MULTIPLIER: int = 2

    # Session
    EVENT_HISTORY_LIMIT: int = 1000

    # Collaborators
    EVENT_SINK_URL: Optional[str] = None  # None = log into the local event store
    VIDEO_UPLOAD_URL: Optional[str] = None
    SINK_TIMEOUT_SECONDS: float = 5.0
    YOLO_MODEL_PATH: Optional[str] = None
    LOAD_MODELS: bool = True

    # MongoDB mirror of the event log (disabled when unset)
    MONGODB_URI: Optional[str] = None
    MONGODB_DBNAME: str = "proctoring"

    # Event log service
    LOGS_FILE: str = "logs.json"
    UPLOADS_DIR: str = "uploads"
    LOGS_PAGE_SIZE: int = 100
    MAX_UPLOAD_BYTES: int = 200 * 1024 * 1024  # 200MB

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"


settings = Settings()
