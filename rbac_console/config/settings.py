from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional, List


class Settings(BaseSettings):
    # Supabase
    supabase_url: str = ""
    supabase_key: str = ""
    supabase_service_role_key: Optional[str] = None  # Data access after the auth gateway; falls back to supabase_key

    # Gemini (OpenAI-compatible endpoint)
    gemini_api_key: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("gemini_api_key", "google_gemini_api_key"),
    )
    gemini_model: str = "gemini-1.5-flash"
    gemini_base_url: str = "https://generativelanguage.googleapis.com/v1beta/openai"
    gemini_temperature: float = 0.1  # Low temperature keeps the JSON output stable
    gemini_top_p: float = 1.0
    gemini_max_output_tokens: int = 2048
    gemini_timeout_seconds: int = 30

    # Natural language commands
    ai_confidence_threshold: float = 0.5
    ai_context_ttl_seconds: int = 30
    ai_command_max_length: int = 1000
    ai_command_rate_limit: str = "30/minute"

    # Session cookies
    access_token_cookie: str = "sb-access-token"
    refresh_token_cookie: str = "sb-refresh-token"
    cookie_secure: bool = False
    cookie_samesite: str = "lax"

    # App
    app_name: str = "rbac-console"
    debug: bool = False
    environment: str = "development"  # development | staging | production
    log_level: str = "INFO"
    cors_origins: str = "http://localhost:3000,http://127.0.0.1:3000"
    rate_limit: str = "100/minute"  # slowapi format, e.g. "100/minute"

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def ai_enabled(self) -> bool:
        return bool(self.gemini_api_key and self.gemini_api_key.strip())

    def get_cors_origins_list(self) -> List[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        env_prefix="",  # No prefix needed
        extra="ignore",
        populate_by_name=True,
    )


settings = Settings()
