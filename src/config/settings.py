"""Application settings loaded from environment variables via pydantic-settings.

# ─── HOW SETTINGS WORK ────────────────────────────────────────────────
#
# This class reads configuration from TWO sources (in priority order):
#
#   1. **Environment variables** - e.g., OPENAI_API_KEY=sk-abc123
#   2. **.env file** - key=value lines in the project root .env file
#
# Field name `openai_api_key` maps to env var `OPENAI_API_KEY`.
#
# Vendor selection happens ONCE, at startup: `llm_vendor` picks the
# streaming chat adapter and `embedding_vendor` picks the embedding
# adapter (see src/main.py).  Every other component only sees the
# IStreamingChatProvider / IEmbeddingProvider interfaces.
# ──────────────────────────────────────────────────────────────────────
"""

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """ragdesk application settings.

    Environment variables override defaults. Loaded from .env file when present.
    """

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # === Chat-completion vendor ===
    # One of: openai, azure, cohere, anthropic, ollama
    llm_vendor: str = "openai"
    openai_api_key: str = ""
    openai_base_url: str = ""  # OpenAI-compatible endpoints (TogetherAI, vLLM, LM Studio, ...)
    openai_chat_model: str = ""
    azure_openai_api_key: str = ""
    azure_openai_endpoint: str = ""
    azure_openai_api_version: str = "2024-02-01"
    azure_chat_deployment: str = ""
    cohere_api_key: str = ""
    cohere_chat_model: str = ""
    anthropic_api_key: str = ""
    anthropic_model: str = ""
    ollama_base_url: str = "http://localhost:11434"
    ollama_model: str = "llama3.1"

    # === Embedding vendor ===
    # One of: openai, azure, cohere, ollama
    embedding_vendor: str = "openai"
    openai_embedding_model: str = ""
    azure_embedding_deployment: str = ""
    cohere_embedding_model: str = ""
    ollama_embedding_model: str = "nomic-embed-text"

    # === Storage / ingestion ===
    data_dir: str = "./data"
    chunk_size: int = 512
    chunk_overlap_percent: int = 25
    folder_depth: int = 3

    # === Retrieval ===
    search_margin: int = 5
    search_concurrency: int = 4
    fusion_strategy: str = "zscore"  # zscore | rrf

    # === App Config ===
    app_host: str = "127.0.0.1"
    app_port: int = 8000
    app_env: str = "development"
    log_level: str = "INFO"

    @property
    def databases_dir(self) -> Path:
        """Root directory holding ``registry.json`` and one folder per database."""
        return Path(self.data_dir) / "databases"

    def get_available_llm_providers(self) -> list[str]:
        """Return the chat vendors that have the credentials they need."""
        providers: list[str] = []
        if self.openai_api_key or self.openai_base_url:
            providers.append("openai")
        if self.azure_openai_api_key and self.azure_openai_endpoint:
            providers.append("azure")
        if self.cohere_api_key:
            providers.append("cohere")
        if self.anthropic_api_key:
            providers.append("anthropic")
        if self.ollama_base_url:
            providers.append("ollama")
        return providers
