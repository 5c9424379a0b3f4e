"""Shared fixtures: in-memory store, fake CMS and a scripted translator."""

from __future__ import annotations

import asyncio
import json
from typing import Any

import pytest

from translate_cms_ai.cms.base import Entity, EntityStore
from translate_cms_ai.database import Database, DuckDBJobStore, TranslationJob
from translate_cms_ai.errors import EntityNotFoundError
from translate_cms_ai.translation.queue import TranslationQueue
from translate_cms_ai.translation.service import TranslationService
from translate_cms_ai.translation.translator import TranslationProvider, TranslationResult

GUTENBERG_DOC = (
    "<!-- wp:paragraph -->\n<p>Hello world</p>\n<!-- /wp:paragraph -->\n\n"
    '<!-- wp:heading {"level":2} -->\n<h2>Title here</h2>\n<!-- /wp:heading -->'
)

ELEMENTOR_TREE = [
    {"id": "a1", "elType": "widget", "widgetType": "heading", "settings": {"title": "Hello"}, "elements": []},
    {"id": "a2", "elType": "widget", "widgetType": "heading", "settings": {"title": "World"}, "elements": []},
]


class FakeEntityStore(EntityStore):
    """In-memory CMS that records published translations."""

    def __init__(self, entities: list[Entity] | None = None):
        self.entities = {entity.id: entity for entity in entities or []}
        self.published: list[dict[str, Any]] = []
        self.fetch_count = 0

    async def fetch(self, entity_id: int) -> Entity:
        self.fetch_count += 1
        await asyncio.sleep(0)
        if entity_id not in self.entities:
            raise EntityNotFoundError(entity_id)
        return self.entities[entity_id]

    async def publish(self, entity, target_lang, title, content, meta) -> int:
        published_id = 1000 + len(self.published)
        self.published.append(
            {
                "id": published_id,
                "source_id": entity.id,
                "lang": target_lang,
                "title": title,
                "content": content,
                "meta": meta,
            }
        )
        return published_id


class ScriptedTranslator(TranslationProvider):
    """
    Translator whose body calls follow a script.

    Each script entry is an exception to raise or None to succeed. Once the
    script is used up every call succeeds. Successful calls look the text up
    in ``translations`` and otherwise return it unchanged.
    """

    def __init__(
        self,
        script: list[Exception | None] | None = None,
        translations: dict[str, str] | None = None,
        on_call=None,
    ):
        self.script = list(script or [])
        self.translations = translations or {}
        self.on_call = on_call
        self.calls = 0
        self.title_calls = 0

    async def translate_text(self, text, source_lang, target_lang, instructions=None):
        self.calls += 1
        await asyncio.sleep(0)
        if self.on_call is not None:
            self.on_call()
        if self.script:
            outcome = self.script.pop(0)
            if outcome is not None:
                raise outcome
        return TranslationResult(self.translations.get(text, text), tokens_used=10, model_used="scripted")

    async def translate_title(self, title, source_lang, target_lang):
        self.title_calls += 1
        await asyncio.sleep(0)
        return TranslationResult(f"[{target_lang}] {title}", tokens_used=2, model_used="scripted")


@pytest.fixture
def db():
    database = Database(":memory:")
    yield database
    database.close()


@pytest.fixture
def job_store(db):
    return DuckDBJobStore(db)


@pytest.fixture
def entities():
    return [
        Entity(id=1, title="Plain post", raw_content="A short plain paragraph.", language="en"),
        Entity(id=2, title="Block post", raw_content=GUTENBERG_DOC, language="en"),
        Entity(
            id=3,
            title="Elementor page",
            raw_content="",
            meta={"_elementor_data": json.dumps(ELEMENTOR_TREE), "_edit_lock": "123:1"},
            type="page",
            language="en",
        ),
    ]


@pytest.fixture
def entity_store(entities):
    return FakeEntityStore(entities)


@pytest.fixture
def delays():
    return []


@pytest.fixture
def fake_sleep(delays):
    async def sleep(seconds: float) -> None:
        delays.append(seconds)

    return sleep


@pytest.fixture
def make_queue(job_store, entity_store, fake_sleep):
    def factory(translator: TranslationProvider | None = None, **options: Any) -> TranslationQueue:
        options.setdefault("retry_base_delay", 1.0)
        return TranslationQueue(
            job_store,
            entity_store,
            translator or ScriptedTranslator(),
            sleep=fake_sleep,
            **options,
        )

    return factory


@pytest.fixture
def make_service(job_store, entity_store, make_queue):
    def factory(translator: TranslationProvider | None = None, **options: Any) -> TranslationService:
        queue = make_queue(translator, **options)
        return TranslationService(
            job_store,
            entity_store,
            queue,
            source_language="en",
            target_languages=["fr", "de"],
        )

    return factory


@pytest.fixture
def new_job(db):
    """Insert a job record and apply extra fields."""

    def factory(entity_id: int, target_language: str = "fr", **fields: Any) -> str:
        job_id = db.create_job(TranslationJob(entity_id=entity_id, target_language=target_language))
        if fields:
            db.update_job(job_id, **fields)
        return job_id

    return factory


@pytest.fixture
def scripted():
    """The ScriptedTranslator class, for tests that build their own."""
    return ScriptedTranslator
