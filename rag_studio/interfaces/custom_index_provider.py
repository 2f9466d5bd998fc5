"""Abstract base class for custom index persistence.

Custom index definitions belong to an owner.  Slug uniqueness per owner is
enforced by the storage layer itself (a UNIQUE constraint), not by a
check-then-insert in the service, so concurrent creators cannot both win.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from rag_studio.models.index import CreateIndexParams, CustomIndex, UpdateIndexParams


class ICustomIndexProvider(ABC):
    """Contract for custom index definition storage.

    All operations are async to support network-backed stores.
    """

    @abstractmethod
    async def create_index(self, owner_id: str, params: CreateIndexParams) -> CustomIndex:
        """Insert a new definition.

        Raises
        ------
        rag_studio.utils.errors.SlugConflictError
            If the owner already has an index with this slug.
        """

    @abstractmethod
    async def list_indexes(self, owner_id: str) -> list[CustomIndex]:
        """Return the owner's definitions, newest first."""

    @abstractmethod
    async def get_index(self, index_pk: str) -> CustomIndex | None:
        """Return a definition by primary key."""

    @abstractmethod
    async def get_index_by_slug(self, owner_id: str, slug: str) -> CustomIndex | None:
        """Return the owner's definition with this slug."""

    @abstractmethod
    async def update_index(self, index_pk: str, params: UpdateIndexParams) -> CustomIndex:
        """Apply a partial update and bump ``updated_at``.

        Raises
        ------
        rag_studio.utils.errors.DocumentStoreError
            If no definition has this primary key.
        """

    @abstractmethod
    async def delete_index(self, index_pk: str) -> bool:
        """Delete a definition; return ``True`` if a row was removed."""

    @abstractmethod
    async def count_slug(self, owner_id: str, slug: str) -> int:
        """Return how many of the owner's definitions use *slug* (0 or 1)."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a short identifier such as ``"sqlite"``."""
