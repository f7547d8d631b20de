from pydantic_settings import BaseSettings


class Config(BaseSettings):
    """Application configuration loaded from environment variables."""

    host: str = "127.0.0.1"
    port: int = 3100
    debug: bool = False
    database_url: str | None = None  # MongoDB URL; in-memory stores are used when unset
    users_file: str | None = None  # JSON seed for the in-memory user directory (optional)
    session_ttl_days: int = 30
    sweep_interval_seconds: float = 60.0
    bcrypt_rounds: int = 12
    cookie_name: str = "auth_token"
    cookie_secure: bool = False  # Set to True in production with HTTPS
    cors_origins: list[str] = []

    model_config = {
        "env_file": [".env"],
        "env_prefix": "TOKENGATE_",
        "extra": "ignore",
    }
