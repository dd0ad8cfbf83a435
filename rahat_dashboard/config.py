from pydantic import model_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Rahat backend
    api_base_url: str = "http://localhost:3001/api"
    request_timeout_seconds: float = 15.0
    session_cookie_name: str = "better-auth.session_token"

    # App
    environment: str = "development"
    log_level: str = "INFO"
    allowed_origins: str = "http://localhost:3000,http://localhost"

    # Navigation targets
    signin_path: str = "/signin"
    home_path: str = "/"

    # Session snapshot + read caching
    session_stale_seconds: float = 300.0
    max_tracked_sessions: int = 500
    read_retry_limit: int = 2
    retry_base_delay_seconds: float = 1.0
    retry_max_delay_seconds: float = 30.0

    # Search inputs
    search_debounce_seconds: float = 2.0

    model_config = {"env_file": ".env", "env_prefix": "RAHAT_", "extra": "ignore"}

    @model_validator(mode="after")
    def _validate_production(self):
        if self.environment == "production":
            if not self.api_base_url.startswith("https://"):
                raise ValueError(
                    "Production requires an https:// RAHAT_API_BASE_URL"
                )
            if self.read_retry_limit < 0:
                raise ValueError("RAHAT_READ_RETRY_LIMIT must not be negative")
        return self


settings = Settings()
