from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    LOG_LEVEL: str = "INFO"
    # Durable state lives here (anchor record)
    DATA_DIR: str = "data"
    ANCHOR_STATE_FILE: str = "helmwatch-anchor-state.json"
    # Anchor watch
    ANCHOR_DEFAULT_RADIUS_M: float = 30.0
    ANCHOR_POSITION_PERIOD_SECONDS: float = 2.0
    # Collision risk thresholds (nautical miles, must be strictly increasing)
    COLLISION_DANGER_CPA_NM: float = 0.25
    COLLISION_CAUTION_CPA_NM: float = 0.5
    COLLISION_WATCH_CPA_NM: float = 1.0
    # Targets whose CPA is further away than this (minutes) are not acted on
    COLLISION_MAX_TCPA_MIN: float = 30.0
    COLLISION_MAX_RANGE_NM: float = 5.0
    COLLISION_ANNOUNCE_COOLDOWN_MIN: float = 5.0
    COLLISION_SCAN_INTERVAL_SECONDS: float = 30.0
    COLLISION_COOLDOWN_MAX_ENTRIES: int = 1024
    # Telemetry store
    TELEMETRY_SELF_CONTEXT: str = "vessels.self"
    TELEMETRY_TARGET_TTL_SECONDS: float = 600.0
    # Optional YAML snapshot (own vessel + targets) loaded into the store at startup
    TELEMETRY_SNAPSHOT_FILE: str | None = None
    # API authentication (if unset, all requests pass)
    HELMWATCH_API_KEY: str | None = None
    # CORS origins (comma-separated string for env var support)
    CORS_ORIGINS: str = "http://localhost:3000"
    RATE_LIMIT_ENABLED: bool = True
    RATE_LIMIT_DEFAULT: str = "120/minute"

    @property
    def anchor_state_path(self) -> Path:
        return Path(self.DATA_DIR) / self.ANCHOR_STATE_FILE


settings = Settings()
