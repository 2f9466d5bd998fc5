"""Shared pytest fixtures for the RAG Studio test suite."""

from __future__ import annotations

import json
from itertools import count
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from rag_studio.config.settings import Settings
from rag_studio.interfaces.document_store import IDocumentStore
from rag_studio.interfaces.embedding_provider import IEmbeddingProvider
from rag_studio.interfaces.llm_provider import ILLMProvider, LLMCompletion
from rag_studio.services.index_registry import IndexRegistry
from rag_studio.services.validation_service import ValidationService
from rag_studio.utils.concurrency import FixedIntervalScheduler

# ---------------------------------------------------------------------------
# Records and LLM payloads
# ---------------------------------------------------------------------------

DOLIPRANE: dict[str, Any] = {
    "product_code": "doliprane_500mg",
    "product_name": "DOLIPRANE 500 mg",
    "dci": "paracétamol",
}


def complete_record(**overrides: Any) -> dict[str, Any]:
    """A record that validates against pharmaceutical_products without warnings."""
    record: dict[str, Any] = {
        **DOLIPRANE,
        "category": "Antalgique",
        "product_data": {
            "product_identity": {
                "commercial_name": "Doliprane",
                "active_substances": ["paracétamol"],
            },
            "officinal_classification": {
                "therapeutic_family": "Antalgique non opioïde",
                "main_symptoms": ["douleur", "fièvre"],
            },
        },
    }
    record.update(overrides)
    return record


def enrichment_payload(
    record: dict[str, Any] | None = None,
    confidence: dict[str, Any] | None = None,
    **extra: Any,
) -> str:
    """JSON text shaped like a successful enrichment completion."""
    body: dict[str, Any] = {
        "enrichedDocument": record if record is not None else complete_record(),
        "confidence": confidence if confidence is not None else {"product_code": 95, "dci": 90, "overall": 88},
        "reasoning": ["RCP ANSM"],
        "warnings": [],
    }
    body.update(extra)
    return json.dumps(body, ensure_ascii=False)


def completion(content: str, tokens: int = 42) -> LLMCompletion:
    return LLMCompletion(content=content, tokens_used=tokens, model="test-model")


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------


def make_settings(**overrides: Any) -> Settings:
    defaults: dict[str, Any] = {
        "openai_api_key": "sk-test",
        "openai_base_url": "",
        "mistral_api_key": "mistral-test",
        "mistral_base_url": "https://api.mistral.test/v1",
        "llm_timeout_seconds": 5.0,
    }
    defaults.update(overrides)
    return Settings(_env_file=None, **defaults)


@pytest.fixture()
def settings() -> Settings:
    return make_settings()


# ---------------------------------------------------------------------------
# Core collaborators
# ---------------------------------------------------------------------------


@pytest.fixture()
def registry() -> IndexRegistry:
    return IndexRegistry()


@pytest.fixture()
def validation_service(registry: IndexRegistry) -> ValidationService:
    return ValidationService(registry)


@pytest.fixture()
def no_delay() -> FixedIntervalScheduler:
    """Scheduler without pauses so batch tests run instantly."""
    return FixedIntervalScheduler(interval=0)


@pytest.fixture()
def mock_llm() -> MagicMock:
    """ILLMProvider mock; set ``mock_llm.complete.side_effect`` per test."""
    mock = MagicMock(spec=ILLMProvider)
    mock.complete = AsyncMock(return_value=completion(enrichment_payload()))
    mock.get_provider_name.return_value = "mock-llm"
    mock.is_available.return_value = True
    return mock


@pytest.fixture()
def mock_store() -> MagicMock:
    """IDocumentStore mock returning ``inserted-1``, ``inserted-2`` ..."""
    ids = count(1)
    mock = MagicMock(spec=IDocumentStore)
    mock.ingest_document = AsyncMock(side_effect=lambda *_args, **_kw: f"inserted-{next(ids)}")
    mock.get_document_count = AsyncMock(return_value=0)
    mock.get_provider_name.return_value = "mock-store"
    return mock


@pytest.fixture()
def mock_embedding_provider() -> MagicMock:
    mock = MagicMock(spec=IEmbeddingProvider)
    mock.embed_single = AsyncMock(return_value=[0.1] * 8)
    mock.embed = AsyncMock(return_value=[[0.1] * 8])
    mock.get_dimension.return_value = 8
    mock.get_provider_name.return_value = "mock-embedding"
    mock.is_available.return_value = True
    return mock
