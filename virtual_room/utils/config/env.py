from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_name: str = "virtual-room"
    environment: str = "local"
    debug: bool = True
    log_level: str = "INFO"

    mongo_port: int = 27017
    mongo_host: str = "localhost"
    mongo_db: str = "virtual_room"
    mongo_password: str | None = None
    mongo_params: str | None = None
    mongo_user: str | None = None
    mongo_url: str | None = None

    jwt_algorithm: str = "HS256"
    jwt_secret_key: str = "very-secret-key"
    access_token_expires_minutes: int = 30
    refresh_token_expires_days: int = 7

    redis_db: int = 0
    redis_port: int = 6379
    redis_host: str = "localhost"
    redis_password: str | None = None

    # Virtual room timing
    heartbeat_timeout_seconds: int = 15
    poll_interval_seconds: int = 3
    stream_interval_seconds: float = 1.0
    stream_keepalive_seconds: float = 15.0
    session_lock_timeout_seconds: int = 5

    recent_cheating_events_limit: int = 3
    message_rate_limit_seconds: int = 1

    model_config = SettingsConfigDict(env_file=(".env",), case_sensitive=False, extra="ignore")

    @property
    def mongo_uri(self) -> str:
        if self.mongo_url:
            return self.mongo_url
        auth = ""
        if self.mongo_user and self.mongo_password:
            auth = f"{self.mongo_user}:{self.mongo_password}@"
        params = self.mongo_params or "retryWrites=true&w=majority"
        return f"mongodb+srv://{auth}{self.mongo_host}/{self.mongo_db}?{params}"


settings = Settings()
