"""YAML configuration loader with environment variable overrides.

# ─── CONFIGURATION HIERARCHY ───────────────────────────────────────────
#
# Configuration is loaded in layers (later layers override earlier):
#
#   1. config/config.yaml  -- static defaults checked into the repo
#   2. .env file           -- local developer overrides (not committed)
#   3. Environment vars    -- set at deploy time
#
# load_config() reads the YAML file first, then deep-merges the values
# resolved by Settings (steps 2 and 3) on top.  Keys that only exist in
# YAML, such as ``pipeline.default_index``, pass through untouched.
# ──────────────────────────────────────────────────────────────────────
"""

from pathlib import Path
from typing import Any

import yaml

from rag_studio.config.settings import Settings


def load_config(path: str = "config/config.yaml", settings: Settings | None = None) -> dict[str, Any]:
    """Load YAML config and merge with environment-based Settings.

    Args:
        path: Path to the YAML configuration file.  A missing file is
            treated as an empty document.
        settings: Pre-built Settings; read from the environment when omitted.

    Returns:
        Fully resolved configuration dictionary.
    """
    config_path = Path(path)
    if config_path.exists():
        with open(config_path, encoding="utf-8") as f:
            yaml_config = yaml.safe_load(f) or {}
    else:
        yaml_config = {}

    settings = settings or Settings()
    env_overrides = {
        "app": {
            "env": settings.app_env,
        },
        "llm": {
            "openai_api_key": settings.openai_api_key,
            "openai_base_url": settings.openai_base_url,
            "openai_enrichment_model": settings.openai_enrichment_model,
            "openai_embedding_model": settings.openai_embedding_model,
            "mistral_api_key": settings.mistral_api_key,
            "mistral_base_url": settings.mistral_base_url,
            "mistral_model": settings.mistral_model,
            "timeout_seconds": settings.llm_timeout_seconds,
            "available_providers": settings.get_available_llm_providers(),
        },
        "pipeline": {
            "enrichment_delay_seconds": settings.enrichment_delay_seconds,
            "fix_delay_seconds": settings.fix_delay_seconds,
            "ingestion_delay_seconds": settings.ingestion_delay_seconds,
            "enrichment_max_batch_size": settings.enrichment_max_batch_size,
            "enrichment_batch_timeout_seconds": settings.enrichment_batch_timeout_seconds,
        },
        "storage": {
            "chromadb_persist_dir": settings.chromadb_persist_dir,
            "custom_index_db_path": settings.custom_index_db_path,
        },
        "logging": {
            "level": settings.log_level,
        },
    }

    _deep_merge(yaml_config, env_overrides)
    return yaml_config


def _deep_merge(base: dict, overrides: dict) -> None:
    """Recursively merge overrides into base dict, mutating base in place."""
    for key, value in overrides.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value
