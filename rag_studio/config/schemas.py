"""Built-in index definitions and their static validation schemas.

Custom indexes are loaded at runtime by the IndexRegistry; this module
only declares what ships with the application.
"""

from datetime import datetime, timezone

from rag_studio.models.index import (
    BuiltInIndex,
    EmbeddingConfig,
    FieldSchema,
    FieldType,
    IconName,
    IndexCategory,
    IndexDefinition,
    IndexSchema,
    SearchConfig,
)

PHARMACEUTICAL_PRODUCTS = "pharmaceutical_products"

PRODUCT_CODE_PATTERN = r"(?i)^[a-z0-9_-]+$"

PHARMACEUTICAL_SCHEMA = IndexSchema(
    fields={
        "product_code": FieldSchema(
            required=True,
            type=FieldType.STRING,
            description="Code unique du produit (ex: doliprane_500mg)",
            min_length=3,
            max_length=100,
            pattern=PRODUCT_CODE_PATTERN,
        ),
        "product_name": FieldSchema(
            required=True,
            type=FieldType.STRING,
            description="Nom commercial du produit",
            min_length=2,
            max_length=200,
        ),
        "dci": FieldSchema(
            required=True,
            type=FieldType.STRING,
            description="Dénomination Commune Internationale",
            min_length=2,
        ),
        "category": FieldSchema(
            required=False,
            type=FieldType.STRING,
            description="Catégorie thérapeutique",
            recommended=True,
        ),
        "product_data": FieldSchema(
            required=False,
            type=FieldType.OBJECT,
            description="Données structurées du produit (schéma complet)",
            recommended=True,
        ),
    },
)

BUILT_IN_SCHEMAS: dict[str, IndexSchema] = {
    PHARMACEUTICAL_PRODUCTS: PHARMACEUTICAL_SCHEMA,
}


def default_indexes() -> list[IndexDefinition]:
    """Index definitions registered in every fresh IndexRegistry."""
    return [
        IndexDefinition(
            kind=BuiltInIndex(id=PHARMACEUTICAL_PRODUCTS),
            name="Produits pharmaceutiques",
            description="Catalogue de médicaments avec données complètes (posologie, CI, interactions)",
            icon=IconName.PILL,
            category=IndexCategory.PRODUCTS,
            table_name=PHARMACEUTICAL_PRODUCTS,
            schema_version="1.0",
            search_config=SearchConfig(
                rpc_function_name="search_products_hybrid",
                vector_weight=0.7,
                text_weight=0.3,
                default_match_count=5,
            ),
            embedding_config=EmbeddingConfig(
                model="text-embedding-3-small",
                dimensions=1536,
                prepare_text_fn="prepareProductText",
            ),
            created_at=datetime(2025, 1, 1, tzinfo=timezone.utc),  # noqa: UP017
        ),
    ]
