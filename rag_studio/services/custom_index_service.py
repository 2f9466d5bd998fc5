"""User-defined index management.

Wraps an :class:`ICustomIndexProvider` with slug normalization and keeps
the session's :class:`IndexRegistry` in step with every create, update and
delete, so a freshly created index can be ingested into immediately.
"""

from __future__ import annotations

import re
import unicodedata

import structlog

from rag_studio.interfaces.custom_index_provider import ICustomIndexProvider
from rag_studio.models.index import CreateIndexParams, CustomIndex, UpdateIndexParams
from rag_studio.services.index_registry import IndexRegistry
from rag_studio.utils.errors import ConfigurationError

logger = structlog.get_logger(logger_name=__name__)

MAX_SLUG_LENGTH = 50

_NON_SLUG_CHARS = re.compile(r"[^a-z0-9_]")
_UNDERSCORE_RUNS = re.compile(r"_+")


def normalize_slug(value: str) -> str:
    """Turn a display name into an index slug.

    Lowercases, strips accents, replaces anything outside ``[a-z0-9_]``
    with ``_``, collapses runs of underscores, trims leading and trailing
    underscores and cuts the result to 50 characters.

    >>> normalize_slug("Pharmacie de l'Étoile!")
    'pharmacie_de_l_etoile'
    """
    decomposed = unicodedata.normalize("NFD", value.lower())
    stripped = "".join(c for c in decomposed if not unicodedata.combining(c))
    slug = _UNDERSCORE_RUNS.sub("_", _NON_SLUG_CHARS.sub("_", stripped)).strip("_")
    return slug[:MAX_SLUG_LENGTH].strip("_")


class CustomIndexService:
    """Create, list, update and delete an owner's custom indexes.

    Parameters
    ----------
    provider:
        Persistence backend.  Enforces per-owner slug uniqueness.
    index_registry:
        Optional session registry; when given, definitions are registered
        and unregistered as they change.
    """

    def __init__(self, provider: ICustomIndexProvider, index_registry: IndexRegistry | None = None) -> None:
        self._provider = provider
        self._registry = index_registry

    async def create(self, owner_id: str, params: CreateIndexParams) -> CustomIndex:
        """Persist a new index under the normalized form of ``params.slug``.

        Raises
        ------
        ConfigurationError
            If the slug normalizes to an empty string.
        SlugConflictError
            If the owner already has an index with that slug.
        """
        slug = normalize_slug(params.slug or params.name)
        if not slug:
            raise ConfigurationError(f'Identifiant d\'index invalide : "{params.slug}"')

        created = await self._provider.create_index(owner_id, params.model_copy(update={"slug": slug}))
        if self._registry is not None:
            self._registry.register(
                IndexRegistry.definition_from_custom(created),
                schema=self._registry.schema_from_custom(created),
            )
        logger.info("custom_index_service_created", owner_id=owner_id, slug=slug)
        return created

    async def list_indexes(self, owner_id: str) -> list[CustomIndex]:
        return await self._provider.list_indexes(owner_id)

    async def get(self, index_pk: str) -> CustomIndex | None:
        return await self._provider.get_index(index_pk)

    async def get_by_slug(self, owner_id: str, slug: str) -> CustomIndex | None:
        return await self._provider.get_index_by_slug(owner_id, normalize_slug(slug))

    async def update(self, index_pk: str, params: UpdateIndexParams) -> CustomIndex:
        updated = await self._provider.update_index(index_pk, params)
        if self._registry is not None:
            self._registry.unregister(updated.index_id)
            self._registry.register(
                IndexRegistry.definition_from_custom(updated),
                schema=self._registry.schema_from_custom(updated),
            )
        return updated

    async def delete(self, index_pk: str) -> bool:
        existing = await self._provider.get_index(index_pk)
        deleted = await self._provider.delete_index(index_pk)
        if deleted and existing is not None and self._registry is not None:
            self._registry.unregister(existing.index_id)
        logger.info("custom_index_service_deleted", id=index_pk, deleted=deleted)
        return deleted

    async def is_slug_available(self, owner_id: str, slug: str) -> bool:
        """``True`` when the normalized *slug* is non-empty and unused by *owner_id*."""
        normalized = normalize_slug(slug)
        if not normalized:
            return False
        return await self._provider.count_slug(owner_id, normalized) == 0
