"""Unit tests for the error hierarchy and LLM JSON extraction."""

from __future__ import annotations

import pytest

from rag_studio.utils.errors import (
    BatchLimitExceededError,
    ConfigurationError,
    IndexNotFoundError,
    InvalidTransitionError,
    LLMError,
    MalformedResponseError,
    PipelineError,
    RagStudioError,
    SlugConflictError,
)
from rag_studio.utils.llm_json import INVALID_JSON_MESSAGE, parse_json_object


class TestErrorHierarchy:
    def test_provider_prefix_in_str(self) -> None:
        exc = LLMError("Erreur API Mistral: 503", provider_name="mistral")
        assert str(exc) == "[mistral] Erreur API Mistral: 503"
        assert exc.message == "Erreur API Mistral: 503"

    def test_without_provider(self) -> None:
        assert str(PipelineError("boom")) == "boom"

    def test_subclass_relationships(self) -> None:
        assert issubclass(IndexNotFoundError, ConfigurationError)
        assert issubclass(MalformedResponseError, LLMError)
        assert issubclass(InvalidTransitionError, PipelineError)
        assert issubclass(BatchLimitExceededError, PipelineError)
        assert issubclass(SlugConflictError, RagStudioError)

    def test_structured_attributes(self) -> None:
        assert IndexNotFoundError("nope").index_id == "nope"
        limit = BatchLimitExceededError(60, 50)
        assert (limit.size, limit.limit) == (60, 50)
        assert SlugConflictError("pharma").slug == "pharma"


class TestParseJsonObject:
    def test_plain_object(self) -> None:
        assert parse_json_object('{"a": 1}') == {"a": 1}

    def test_markdown_fence(self) -> None:
        content = 'Voici le résultat :\n```json\n{"product_code": "x"}\n```'
        assert parse_json_object(content) == {"product_code": "x"}

    def test_preamble_before_object(self) -> None:
        assert parse_json_object('Réponse : {"dci": "ibuprofène"} fin') == {"dci": "ibuprofène"}

    def test_invalid_json(self) -> None:
        with pytest.raises(MalformedResponseError) as excinfo:
            parse_json_object("pas du json", provider_name="openai")
        assert excinfo.value.message == INVALID_JSON_MESSAGE
        assert excinfo.value.provider_name == "openai"

    def test_array_is_not_an_object(self) -> None:
        with pytest.raises(MalformedResponseError):
            parse_json_object("[1, 2, 3]")
