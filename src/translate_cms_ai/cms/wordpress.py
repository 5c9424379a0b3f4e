"""
WordPress REST API entity store.

Fetches posts and pages in edit context so raw content and builder meta
are available, and publishes translations linked through Polylang.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from translate_cms_ai.cms.base import Entity, EntityStore
from translate_cms_ai.errors import CMSError, EntityNotFoundError

logger = logging.getLogger(__name__)


def get_httpx_timeout(timeout: float) -> httpx.Timeout:
    """Long read timeout, short connect and pool timeouts."""
    return httpx.Timeout(connect=10.0, write=60.0, read=timeout, pool=10.0)


def _error_detail(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return response.text[:500]
    if isinstance(payload, dict) and "message" in payload:
        return str(payload["message"])
    return str(payload)[:500]


def _rendered_or_raw(value: Any) -> str:
    if isinstance(value, dict):
        return value.get("raw") if value.get("raw") is not None else value.get("rendered", "")
    return value or ""


class WordPressEntityStore(EntityStore):
    """
    Entity store backed by the WordPress REST API.

    Authenticates with an application password over basic auth.
    """

    ENDPOINTS = ("posts", "pages")

    def __init__(
        self,
        base_url: str,
        username: str = "",
        application_password: str = "",
        *,
        timeout: float = 30.0,
        publish_status: str = "publish",
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """
        Initialize WordPress client.

        Args:
            base_url: Site URL, e.g. https://example.com.
            username: WordPress user name.
            application_password: Application password for that user.
            timeout: Read timeout in seconds.
            publish_status: Status given to published translations.
            transport: Optional httpx transport (used by tests).
        """
        self.base_url = base_url.rstrip("/")
        self.publish_status = publish_status
        auth = httpx.BasicAuth(username, application_password) if username else None
        self._client = httpx.AsyncClient(
            base_url=f"{self.base_url}/wp-json/wp/v2",
            auth=auth,
            timeout=get_httpx_timeout(timeout),
            transport=transport,
        )

    async def fetch(self, entity_id: int) -> Entity:
        """Fetch a post, falling back to pages when no post has that ID."""
        for endpoint in self.ENDPOINTS:
            try:
                response = await self._client.get(f"/{endpoint}/{entity_id}", params={"context": "edit"})
            except httpx.HTTPError as e:
                raise CMSError(f"WordPress request failed: {e}") from e

            if response.status_code == 404:
                logger.debug("Entity %s not found under /%s", entity_id, endpoint)
                continue
            if response.is_error:
                raise CMSError(
                    f"WordPress API error ({response.status_code}): {_error_detail(response)}",
                    status_code=response.status_code,
                )
            return self._to_entity(response.json(), endpoint)

        raise EntityNotFoundError(entity_id)

    def _to_entity(self, data: dict[str, Any], endpoint: str) -> Entity:
        meta = data.get("meta")
        translations = data.get("translations")
        return Entity(
            id=int(data["id"]),
            title=_rendered_or_raw(data.get("title")),
            raw_content=_rendered_or_raw(data.get("content")),
            meta=meta if isinstance(meta, dict) else {},
            type=data.get("type") or endpoint.rstrip("s"),
            language=data.get("lang"),
            categories=list(data.get("categories") or []),
            tags=list(data.get("tags") or []),
            translations={k: int(v) for k, v in translations.items()} if isinstance(translations, dict) else {},
        )

    async def publish(
        self,
        entity: Entity,
        target_lang: str,
        title: str,
        content: str,
        meta: dict[str, Any],
    ) -> int:
        """
        Create or update the translation of ``entity`` in ``target_lang``.

        Categories and tags are copied from the source. An existing Polylang
        translation is updated in place.
        """
        endpoint = "pages" if entity.type == "page" else "posts"
        body: dict[str, Any] = {
            "title": title,
            "content": content,
            "status": self.publish_status,
            "categories": entity.categories,
            "tags": entity.tags,
        }
        if entity.type == "page":
            body.pop("categories")
            body.pop("tags")
        if meta:
            body["meta"] = meta

        existing_id = entity.translations.get(target_lang)
        if existing_id and existing_id != entity.id:
            path = f"/{endpoint}/{existing_id}"
            logger.info("Updating %s #%s for %s", entity.type, existing_id, target_lang)
        else:
            path = f"/{endpoint}"
            body["lang"] = target_lang
            body["translations"] = {entity.language or "en": entity.id}
            logger.info("Creating %s translation of #%s for %s", entity.type, entity.id, target_lang)

        try:
            response = await self._client.post(path, json=body)
        except httpx.HTTPError as e:
            raise CMSError(f"WordPress request failed: {e}") from e

        if response.is_error:
            raise CMSError(
                f"Failed to publish translation ({response.status_code}): {_error_detail(response)}",
                status_code=response.status_code,
            )
        return int(response.json()["id"])

    async def close(self) -> None:
        """Close the HTTP client."""
        await self._client.aclose()
