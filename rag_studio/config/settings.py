"""Application settings loaded from environment variables via pydantic-settings.

# ─── HOW SETTINGS WORK ────────────────────────────────────────────────
#
# Values are read from two sources, in priority order:
#
#   1. **Environment variables**, e.g. OPENAI_API_KEY=sk-abc123
#   2. **.env file** in the working directory (local development)
#
# Field ``openai_api_key`` maps to env var ``OPENAI_API_KEY``.  Defaults
# below apply when neither source sets a value.
#
# An empty API key means "not configured": the matching provider reports
# ``is_available() == False`` and every call made through it fails with
# a configuration error instead of reaching the network.
# ──────────────────────────────────────────────────────────────────────
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """RAG Studio settings.

    Environment variables override defaults. Loaded from .env file when present.
    """

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # === Generic enrichment / auto-fix (OpenAI-compatible) ===
    openai_api_key: str = ""
    openai_base_url: str = ""  # Custom base URL for OpenAI-compatible gateways
    openai_enrichment_model: str = "gpt-4o"
    openai_embedding_model: str = "text-embedding-3-small"

    # === Sourced enrichment (Mistral) ===
    mistral_api_key: str = ""
    mistral_base_url: str = "https://api.mistral.ai/v1"
    mistral_model: str = "mistral-medium-2505"

    # === Call policy ===
    llm_timeout_seconds: float = 60.0
    enrichment_delay_seconds: float = 1.0
    fix_delay_seconds: float = 0.5
    ingestion_delay_seconds: float = 0.2
    enrichment_max_batch_size: int = 50
    enrichment_batch_timeout_seconds: float = 1800.0

    # === Storage ===
    chromadb_persist_dir: str = "./data/chromadb"
    custom_index_db_path: str = "data/custom_indexes.db"

    # === App Config ===
    app_env: str = "development"
    log_level: str = "INFO"

    def get_available_llm_providers(self) -> list[str]:
        """Return the enrichment provider names that have an API key configured."""
        providers: list[str] = []
        if self.openai_api_key:
            providers.append("openai")
        if self.mistral_api_key:
            providers.append("mistral")
        return providers
