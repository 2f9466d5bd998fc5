"""Index definition models: schemas, search/embedding config, custom indexes.

All models are frozen Pydantic v2 models.  An index is either built-in
(shipped with the application, static schema) or custom (owned by a user,
persisted by the custom index provider).  The distinction is modelled as
the tagged variant :data:`IndexKind` rather than optional flags on a
shared shape.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

CUSTOM_INDEX_PREFIX = "custom_"


class FieldType(str, Enum):  # noqa: UP042
    """JSON value kinds a schema field can declare."""

    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    OBJECT = "object"
    ARRAY = "array"


class IndexCategory(str, Enum):  # noqa: UP042
    PRODUCTS = "products"
    INTERACTIONS = "interactions"
    ARTICLES = "articles"
    PROTOCOLS = "protocols"
    CUSTOM = "custom"


class IndexStatus(str, Enum):  # noqa: UP042
    ACTIVE = "active"
    MAINTENANCE = "maintenance"
    DISABLED = "disabled"


class IconName(str, Enum):  # noqa: UP042
    """Closed set of icon identifiers an index may declare.

    Only the presentation layer resolves these to graphics; unknown names
    read from storage fall back to :attr:`DATABASE`.
    """

    DATABASE = "Database"
    BUILDING = "Building2"
    FILE_TEXT = "FileText"
    PILL = "Pill"
    LAYERS = "Layers"
    CLIPBOARD_LIST = "ClipboardList"
    SPARKLES = "Sparkles"

    @classmethod
    def parse(cls, value: str | None) -> IconName:
        try:
            return cls(value)
        except ValueError:
            return cls.DATABASE


# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

class FieldSchema(BaseModel):
    """Validation rules for one record field.

    Accepts camelCase keys (``minLength``) as well as snake_case so that a
    custom index ``schema_config`` written by the dashboard can be loaded
    directly.
    """

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    required: bool = False
    type: FieldType = FieldType.STRING
    description: str | None = None
    min_length: int | None = None
    max_length: int | None = None
    pattern: str | None = None
    # Absent optional fields that still deserve a nudge.
    recommended: bool = False


class IndexSchema(BaseModel):
    """Ordered mapping of field name to :class:`FieldSchema`."""

    model_config = ConfigDict(frozen=True)

    fields: dict[str, FieldSchema]
    version: str = "1.0"

    @property
    def required_fields(self) -> list[str]:
        return [name for name, rule in self.fields.items() if rule.required]

    @property
    def recommended_fields(self) -> list[str]:
        return [
            name
            for name, rule in self.fields.items()
            if rule.recommended and not rule.required
        ]


# ---------------------------------------------------------------------------
# Index kind (tagged variant)
# ---------------------------------------------------------------------------

class BuiltInIndex(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["built_in"] = "built_in"
    id: str


class CustomIndexKind(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["custom"] = "custom"
    id: str
    owner_id: str
    # Primary key of the custom index row; documents are tagged with it.
    custom_id: str


IndexKind = Annotated[Union[BuiltInIndex, CustomIndexKind], Field(discriminator="kind")]


# ---------------------------------------------------------------------------
# Index definition
# ---------------------------------------------------------------------------

class SearchConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    rpc_function_name: str
    vector_weight: float = 0.7
    text_weight: float = 0.3
    default_match_count: int = 5


class EmbeddingConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    model: str = "text-embedding-3-small"
    dimensions: int = 1536
    prepare_text_fn: str = "prepareGenericText"


class IndexDefinition(BaseModel):
    """A destination index as seen by the pipeline."""

    model_config = ConfigDict(frozen=True)

    kind: IndexKind
    name: str
    description: str = ""
    icon: IconName = IconName.DATABASE
    category: IndexCategory
    table_name: str
    schema_version: str = "1.0"
    search_config: SearchConfig
    embedding_config: EmbeddingConfig = Field(default_factory=EmbeddingConfig)
    status: IndexStatus = IndexStatus.ACTIVE
    created_at: datetime = Field(default_factory=lambda: datetime.now(tz=timezone.utc))  # noqa: UP017
    updated_at: datetime = Field(default_factory=lambda: datetime.now(tz=timezone.utc))  # noqa: UP017

    @property
    def id(self) -> str:
        return self.kind.id

    @property
    def is_custom(self) -> bool:
        return isinstance(self.kind, CustomIndexKind)


class IndexStats(BaseModel):
    model_config = ConfigDict(frozen=True)

    index_id: str
    document_count: int = 0
    last_ingestion: datetime | None = None
    health: Literal["healthy", "degraded", "error"] = "healthy"
    error_message: str | None = None


# ---------------------------------------------------------------------------
# Custom indexes
# ---------------------------------------------------------------------------

class SearchWeights(BaseModel):
    model_config = ConfigDict(frozen=True)

    vector: float = 0.7
    text: float = 0.3


class CustomIndex(BaseModel):
    """A user-defined index definition as persisted by the custom index provider."""

    model_config = ConfigDict(frozen=True)

    id: str
    owner_id: str
    slug: str
    name: str
    description: str | None = None
    icon: IconName = IconName.DATABASE
    category: str = "custom"
    schema_config: dict[str, Any] = Field(default_factory=dict)
    embedding_model: str = "text-embedding-3-small"
    search_weights: SearchWeights = Field(default_factory=SearchWeights)
    status: IndexStatus = IndexStatus.ACTIVE
    document_count: int = 0
    created_at: datetime
    updated_at: datetime

    @property
    def index_id(self) -> str:
        """Registry id under which this index is exposed to the pipeline."""
        return f"{CUSTOM_INDEX_PREFIX}{self.slug}"


class CreateIndexParams(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    slug: str
    description: str | None = None
    icon: IconName = IconName.DATABASE
    schema_config: dict[str, Any] = Field(default_factory=dict)


class UpdateIndexParams(BaseModel):
    """Partial update; ``None`` means "leave unchanged"."""

    model_config = ConfigDict(frozen=True)

    name: str | None = None
    description: str | None = None
    icon: IconName | None = None
    status: IndexStatus | None = None
    schema_config: dict[str, Any] | None = None
