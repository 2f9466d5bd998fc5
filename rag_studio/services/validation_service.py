"""Schema validation of records before ingestion.

Validation is pure: the same record checked against the same schema
always yields the same list of :class:`ValidationError` entries, in field
declaration order.  Severity rules:

* required field absent (missing key, ``None`` or ``""``) -> ``error``
* present with the wrong JSON type                         -> ``error``
* string shorter / longer than allowed                     -> ``error``
* string not matching ``pattern``                          -> ``warning``
* recommended optional field absent                        -> ``warning``

A pattern mismatch is advisory: a malformed identifier is tolerated with
a nudge, an absent one is not.
"""

from __future__ import annotations

import re
import uuid
from collections.abc import Mapping, Sequence
from functools import lru_cache
from typing import Any

import structlog

from rag_studio.models.documents import (
    EnrichmentStatus,
    ProcessedDocument,
    Severity,
    ValidationError,
)
from rag_studio.models.index import FieldType, IndexSchema
from rag_studio.services.index_registry import IndexRegistry
from rag_studio.utils.logging import get_logger

SEARCHABLE_TEXT_SEPARATOR = " | "
SCHEMA_FIELD = "_schema"
PATTERN_SUGGESTION = "Utilisez uniquement des lettres, chiffres, tirets et underscores"


@lru_cache(maxsize=64)
def _compile(pattern: str) -> re.Pattern[str]:
    """Compile a schema pattern with end-of-string semantics for a final ``$``.

    A trailing ``$`` becomes ``\\Z`` so that ``"abc\\n"`` does not satisfy
    ``^[a-z]+$``.
    """
    stem = pattern[:-1]
    if pattern.endswith("$") and (len(stem) - len(stem.rstrip("\\"))) % 2 == 0:
        pattern = stem + r"\Z"
    return re.compile(pattern)


def json_type_name(value: Any) -> str:
    """Return the JSON kind of a Python value (``string``, ``number`` ...)."""
    if isinstance(value, bool):
        return FieldType.BOOLEAN.value
    if isinstance(value, str):
        return FieldType.STRING.value
    if isinstance(value, (int, float)):
        return FieldType.NUMBER.value
    if isinstance(value, Mapping):
        return FieldType.OBJECT.value
    if isinstance(value, (list, tuple)):
        return FieldType.ARRAY.value
    return type(value).__name__


def validate_against_schema(record: Mapping[str, Any], schema: IndexSchema) -> list[ValidationError]:
    """Check *record* against *schema*; see module docstring for the rules."""
    errors: list[ValidationError] = []

    for name, rule in schema.fields.items():
        value = record.get(name)

        if rule.required and (value is None or value == ""):
            errors.append(
                ValidationError(
                    field=name,
                    message=f'Champ requis "{name}" manquant',
                    severity=Severity.ERROR,
                    suggestion=rule.description,
                )
            )
            continue

        if value is None:
            continue

        actual = json_type_name(value)
        if actual != rule.type.value:
            errors.append(
                ValidationError(
                    field=name,
                    message=f'Type invalide pour "{name}": attendu {rule.type.value}, reçu {actual}',
                    severity=Severity.ERROR,
                )
            )
            continue

        if rule.type is FieldType.STRING:
            if rule.min_length and len(value) < rule.min_length:
                errors.append(
                    ValidationError(
                        field=name,
                        message=f'"{name}" trop court (min: {rule.min_length} caractères)',
                        severity=Severity.ERROR,
                    )
                )
            if rule.max_length and len(value) > rule.max_length:
                errors.append(
                    ValidationError(
                        field=name,
                        message=f'"{name}" trop long (max: {rule.max_length} caractères)',
                        severity=Severity.ERROR,
                    )
                )
            if rule.pattern and not _compile(rule.pattern).search(value):
                errors.append(
                    ValidationError(
                        field=name,
                        message=f'"{name}" ne respecte pas le format attendu',
                        severity=Severity.WARNING,
                        suggestion=PATTERN_SUGGESTION,
                    )
                )

    for name in schema.recommended_fields:
        if record.get(name) is None:
            errors.append(
                ValidationError(
                    field=name,
                    message=f'Champ "{name}" recommandé mais absent',
                    severity=Severity.WARNING,
                    suggestion=schema.fields[name].description,
                )
            )

    return errors


def _strings(value: Any) -> list[str]:
    if isinstance(value, str):
        return [value]
    return []


def _string_items(value: Any) -> list[str]:
    if isinstance(value, list):
        return [item for item in value if isinstance(item, str)]
    return []


def generate_searchable_text(record: Mapping[str, Any]) -> str:
    """Project a record to the text consumed by full-text and embedding search.

    The order below is fixed; reordering changes ranking on the text side
    of hybrid search.
    """
    parts: list[str] = []
    parts += _strings(record.get("product_name"))
    parts += _strings(record.get("dci"))
    parts += _strings(record.get("category"))

    data = record.get("product_data")
    if isinstance(data, Mapping):
        identity = data.get("product_identity")
        if isinstance(identity, Mapping):
            parts += _strings(identity.get("commercial_name"))
            parts += _string_items(identity.get("active_substances"))

        classification = data.get("officinal_classification")
        if isinstance(classification, Mapping):
            parts += _strings(classification.get("therapeutic_family"))
            parts += _string_items(classification.get("main_symptoms"))

        clinical = data.get("clinical")
        if isinstance(clinical, Mapping):
            parts += _string_items(clinical.get("indications"))

        rag_meta = data.get("rag_metadata")
        if isinstance(rag_meta, Mapping):
            parts += _string_items(rag_meta.get("semantic_tags"))
            parts += _string_items(rag_meta.get("common_patient_queries"))

    return SEARCHABLE_TEXT_SEPARATOR.join(p for p in parts if p)


class ValidationService:
    """Validates records against the schema of a registered index.

    Schemas are resolved through the injected :class:`IndexRegistry`, so
    custom indexes that declare fields are validated the same way as the
    built-in pharmaceutical index.
    """

    def __init__(self, index_registry: IndexRegistry) -> None:
        self._registry = index_registry
        self._logger: structlog.BoundLogger = get_logger(__name__)

    def get_schema(self, index_id: str) -> IndexSchema | None:
        return self._registry.get_schema(index_id)

    def get_required_fields(self, index_id: str) -> list[str]:
        schema = self.get_schema(index_id)
        return schema.required_fields if schema else []

    def validate(self, record: Mapping[str, Any], index_id: str) -> list[ValidationError]:
        """Return every schema violation of *record* for *index_id*.

        An unknown index (or one without a schema) yields a single error on
        the pseudo-field ``_schema``.
        """
        schema = self.get_schema(index_id)
        if schema is None:
            return [
                ValidationError(
                    field=SCHEMA_FIELD,
                    message=f"Schéma non trouvé pour l'index \"{index_id}\"",
                    severity=Severity.ERROR,
                )
            ]
        return validate_against_schema(record, schema)

    def validate_batch(
        self,
        records: Sequence[Mapping[str, Any]],
        index_id: str,
    ) -> list[ProcessedDocument]:
        """Validate every record and wrap each in a fresh :class:`ProcessedDocument`.

        ``searchable_text`` is computed only for records without errors.
        """
        documents: list[ProcessedDocument] = []
        for record in records:
            snapshot = dict(record)
            errors = self.validate(snapshot, index_id)
            has_errors = any(e.severity == Severity.ERROR for e in errors)
            has_warnings = any(e.severity == Severity.WARNING for e in errors)
            documents.append(
                ProcessedDocument(
                    id=f"doc-{uuid.uuid4().hex[:12]}",
                    original_data=snapshot,
                    processed_data=dict(snapshot),
                    validation_errors=errors,
                    enrichment_status=EnrichmentStatus.PENDING,
                    human_review_required=has_warnings and not has_errors,
                    searchable_text=None if has_errors else generate_searchable_text(snapshot),
                )
            )

        self._logger.info(
            "batch_validated",
            index_id=index_id,
            total=len(documents),
            with_errors=sum(1 for d in documents if d.has_errors),
        )
        return documents

    generate_searchable_text = staticmethod(generate_searchable_text)
