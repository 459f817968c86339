from pydantic_settings import BaseSettings, SettingsConfigDict
from matura.core.errors import ConfigurationError

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    app_env: str = "dev"
    app_name: str = "matura"
    api_host: str = "0.0.0.0"
    api_port: int = 8080

    database_url: str
    redis_url: str

    openai_api_key: str | None = None
    openai_api_base: str = "https://api.openai.com/v1"
    openai_model: str = "gpt-4o"
    openai_temperature: float = 0.4
    openai_max_tokens: int = 4000

    gemini_api_key: str | None = None
    gemini_api_base: str = "https://generativelanguage.googleapis.com/v1beta"
    gemini_model: str = "gemini-1.5-flash"
    gemini_temperature: float = 0.7
    gemini_max_tokens: int = 2048

    figma_api_key: str | None = None
    figma_api_base: str = "https://api.figma.com/v1"
    figma_timeout_seconds: float = 15.0

    # Per-call timeouts by quality tier
    quick_timeout_seconds: float = 45.0
    advanced_timeout_seconds: float = 90.0
    premium_timeout_seconds: float = 120.0

    # Ordered provider chains per pipeline role
    idea_providers: list[str] = ["gemini", "openai"]
    design_providers: list[str] = ["gemini", "openai"]
    code_providers: list[str] = ["openai", "gemini"]
    schema_providers: list[str] = ["openai", "gemini"]

    provider_max_attempts: int = 2
    provider_backoff_seconds: float = 1.0
    provider_backoff_max_seconds: float = 8.0

    max_idea_length: int = 5000

    repair_max_retries: int = 3
    repair_error_window: int = 5

    rate_limit_requests: int = 100
    rate_limit_window_seconds: int = 900
    # only behind a proxy that overwrites X-Forwarded-For
    trust_forwarded_for: bool = False

    generated_dir: str = "/data/generated"
    write_generated_files: bool = True

    def timeout_for(self, tier: str) -> float:
        return {
            "quick": self.quick_timeout_seconds,
            "advanced": self.advanced_timeout_seconds,
            "premium": self.premium_timeout_seconds,
        }.get(tier, self.advanced_timeout_seconds)


def validate_provider_keys(cfg: Settings) -> None:
    """Fail startup unless at least one LLM provider is configured."""
    if not (cfg.openai_api_key or cfg.gemini_api_key):
        raise ConfigurationError("OPENAI_API_KEY or GEMINI_API_KEY must be set")


settings = Settings()
