from pydantic import BaseModel
from pydantic_settings import BaseSettings


class PlatformSettings(BaseModel):
    enabled: bool = True
    models: dict[str, bool] = {}


def _default_platforms() -> dict[str, PlatformSettings]:
    return {
        "google": PlatformSettings(
            enabled=True,
            models={"gemini-2.0-flash-001": True, "gemini-2.5-pro": True},
        ),
        "openai": PlatformSettings(
            enabled=True,
            models={"gpt-4o-mini": True, "gpt-4.1": True, "o3-mini": False},
        ),
        "anthropic": PlatformSettings(
            enabled=True,
            models={"claude-sonnet-4.5": True, "claude-haiku-4.5": True},
        ),
        "deepseek": PlatformSettings(
            enabled=False,
            models={"deepseek-chat": True},
        ),
    }


class Settings(BaseSettings):
    # OpenRouter
    openrouter_api_key: str = ""
    openrouter_base_url: str = "https://openrouter.ai/api/v1"
    default_model: str = "google/gemini-2.0-flash-001"
    llm_max_tokens: int = 8192

    # Platform / model enablement, keyed by the prefix of an OpenRouter model id
    platforms: dict[str, PlatformSettings] = _default_platforms()

    # Search provider
    search_provider: str = "brave"  # brave | jina
    brave_api_key: str = ""
    jina_api_key: str = ""
    search_fallback_to_jina: bool = False
    search_max_results: int = 10
    search_timeout_seconds: float = 30.0

    # Content fetch
    fetch_timeout_seconds: float = 60.0
    fetch_max_content_chars: int = 120000
    image_analysis_enabled: bool = False
    image_analysis_model: str = ""  # falls back to default_model
    image_min_relevance: float = 0.6

    # Rate-limit retry
    retry_max_attempts: int = 3
    retry_base_delay_ms: int = 1000

    # Selection
    selection_min_score: float = 0.5
    max_selectable_results: int = 3

    # Report
    default_language: str = "en"  # en | vi

    # App
    cors_origins: str = "http://localhost:3000"
    app_log_level: str = "INFO"
    noisy_log_level: str = "WARNING"
    log_dir: str = "logs"

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
        "env_nested_delimiter": "__",
    }

    @property
    def cors_origin_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",")]

    @property
    def retry_base_delay(self) -> float:
        return max(self.retry_base_delay_ms, 0) / 1000.0


settings = Settings()
