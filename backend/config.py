from pydantic import BaseModel
from pydantic_settings import BaseSettings


class ModelPrice(BaseModel):
    """USD price per 1K tokens for one model."""
    input_per_1k: float
    output_per_1k: float


# Reference prices at the time the table was written. They drift; override
# through MODEL_PRICING (JSON) instead of editing this file.
DEFAULT_MODEL_PRICING: dict[str, ModelPrice] = {
    "gpt-4": ModelPrice(input_per_1k=0.03, output_per_1k=0.06),
    "gpt-4-turbo": ModelPrice(input_per_1k=0.01, output_per_1k=0.03),
    "gpt-3.5-turbo": ModelPrice(input_per_1k=0.0005, output_per_1k=0.0015),
    "claude-3-opus": ModelPrice(input_per_1k=0.015, output_per_1k=0.075),
    "claude-3-sonnet": ModelPrice(input_per_1k=0.003, output_per_1k=0.015),
    "claude-3-haiku": ModelPrice(input_per_1k=0.00025, output_per_1k=0.00125),
    "gemini-2.5-flash": ModelPrice(input_per_1k=0.0003, output_per_1k=0.0025),
}


class Settings(BaseSettings):
    # Backend credentials
    openai_api_key: str = ""
    anthropic_api_key: str = ""
    gemini_api_key: str = ""

    # Default model per backend
    openai_default_model: str = "gpt-3.5-turbo"
    claude_default_model: str = "claude-3-haiku-20240307"
    gemini_default_model: str = "gemini-2.5-flash"

    # Request shaping
    llm_temperature: float = 0.1
    llm_max_output_tokens: int = 4096
    llm_request_timeout_s: float = 60.0

    # Outbound rate limiting
    llm_max_concurrency: int = 5
    llm_min_interval_ms: int = 200

    # Retry policy
    retry_max_attempts: int = 3
    retry_base_delay_s: float = 1.0
    retry_max_delay_s: float = 30.0

    # Caching
    summary_cache_ttl_s: int = 24 * 60 * 60
    text_cache_ttl_s: int = 60 * 60

    # Batch extraction
    batch_concurrency: int = 5
    min_text_length: int = 50

    model_pricing: dict[str, ModelPrice] = DEFAULT_MODEL_PRICING
    debug: bool = False

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
        "protected_namespaces": ("settings_",),
    }


settings = Settings()
