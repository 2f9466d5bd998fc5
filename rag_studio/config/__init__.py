"""Configuration module -- exports Settings, load_config and the built-in index schemas."""

from rag_studio.config.loader import load_config
from rag_studio.config.schemas import PHARMACEUTICAL_PRODUCTS, PHARMACEUTICAL_SCHEMA, default_indexes
from rag_studio.config.settings import Settings

__all__ = [
    "PHARMACEUTICAL_PRODUCTS",
    "PHARMACEUTICAL_SCHEMA",
    "Settings",
    "default_indexes",
    "load_config",
]
