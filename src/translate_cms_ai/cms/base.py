"""
Base classes for CMS entity stores.

An entity store fetches source posts and publishes their translations.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any


@dataclass
class Entity:
    """A CMS post or page."""

    id: int
    title: str = ""
    raw_content: str = ""
    meta: dict[str, Any] = field(default_factory=dict)
    type: str = "post"
    language: str | None = None
    categories: list[int] = field(default_factory=list)
    tags: list[int] = field(default_factory=list)
    # Existing translations by language code (Polylang)
    translations: dict[str, int] = field(default_factory=dict)


class EntityStore(ABC):
    """Abstract CMS collaborator."""

    @abstractmethod
    async def fetch(self, entity_id: int) -> Entity:
        """
        Fetch an entity with its raw content and meta.

        Raises:
            EntityNotFoundError: If the entity does not exist.
            CMSError: For other CMS failures.
        """
        ...

    @abstractmethod
    async def publish(
        self,
        entity: Entity,
        target_lang: str,
        title: str,
        content: str,
        meta: dict[str, Any],
    ) -> int:
        """
        Publish a translation of ``entity``.

        Returns:
            ID of the published translation.
        """
        ...

    async def close(self) -> None:
        """Release network resources."""
        return None
