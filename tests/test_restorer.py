"""Tests for restoring translated text into source structures."""

from __future__ import annotations

import base64
import copy
import json

import phpserialize

from translate_cms_ai.content import ContentRestorer, extract_content, restore_content
from translate_cms_ai.content.base import BlockMetadata, ContentFormat

from conftest import ELEMENTOR_TREE, GUTENBERG_DOC


def round_trip(content, meta, translate=lambda text: text, **options):
    extracted = extract_content(content, meta, **options)
    translated = translate(extracted.combined_text)
    return restore_content(content, meta, translated, extracted.block_metadata, **options)


class TestPlainRoundTrip:
    def test_identity_reproduces_document(self):
        content = "  First paragraph.\n\n\nSecond paragraph with <a href=\"/x\">a link</a>.\n\n"
        restored = round_trip(content, {})

        assert restored.content == content
        assert not restored.fallback

    def test_translation_keeps_outer_whitespace(self):
        restored = round_trip("\nHello there.\n", {}, lambda text: "Bonjour.")
        assert restored.content == "\nBonjour.\n"

    def test_blank_document(self):
        restored = round_trip("", {})
        assert restored.content == ""
        assert restored.meta == {}


class TestTreeRestore:
    def test_hello_world_example(self):
        meta = {"_elementor_data": json.dumps(ELEMENTOR_TREE)}
        extracted = extract_content("", meta)
        assert extracted.combined_text == "Hello\n\nWorld"

        restored = restore_content("", meta, "Bonjour\n\nMonde", extracted.block_metadata)

        expected = copy.deepcopy(ELEMENTOR_TREE)
        expected[0]["settings"]["title"] = "Bonjour"
        expected[1]["settings"]["title"] = "Monde"
        assert json.loads(restored.meta["_elementor_data"]) == expected
        assert not restored.fallback

    def test_original_meta_is_not_mutated(self):
        tree = copy.deepcopy(ELEMENTOR_TREE)
        meta = {"_elementor_data": tree, "_thumbnail_id": 12}
        extracted = extract_content("", meta)

        restored = restore_content("", meta, "Bonjour\n\nMonde", extracted.block_metadata)

        assert tree == ELEMENTOR_TREE
        assert restored.meta["_elementor_data"][0]["settings"]["title"] == "Bonjour"
        assert restored.meta["_thumbnail_id"] == 12

    def test_non_text_fields_survive(self):
        tree = [
            {
                "id": "w",
                "elType": "widget",
                "settings": {"title": "Contact us", "link": {"url": "/contact"}, "align": "center"},
                "elements": [],
            }
        ]
        meta = {"_elementor_data": json.dumps(tree)}
        restored = round_trip("", meta, lambda text: "Contactez-nous")

        data = json.loads(restored.meta["_elementor_data"])
        assert data[0]["settings"] == {"title": "Contactez-nous", "link": {"url": "/contact"}, "align": "center"}

    def test_falls_back_to_recorded_payload(self):
        meta = {"_elementor_data": json.dumps(ELEMENTOR_TREE)}
        extracted = extract_content("", meta)

        restored = ContentRestorer().restore(None, None, "Bonjour\n\nMonde", extracted.block_metadata)

        assert json.loads(restored.meta["_elementor_data"])[1]["settings"]["title"] == "Monde"

    def test_bebuilder_payload_is_re_encoded(self):
        tree = [{"type": "column", "fields": {"title": "Our story", "content": "<p>Hello there</p>"}}]
        meta = {"mfn-page-items": [base64.b64encode(phpserialize.dumps(tree)).decode("ascii")]}
        translations = {"Our story\n\n<p>Hello there</p>": "Notre histoire\n\n<p>Bonjour</p>"}

        restored = round_trip("", meta, translations.get)

        encoded = restored.meta["mfn-page-items"]
        assert isinstance(encoded, list) and len(encoded) == 1
        decoded = phpserialize.loads(base64.b64decode(encoded[0]), decode_strings=True)
        assert decoded[0]["type"] == "column"
        assert decoded[0]["fields"] == {"title": "Notre histoire", "content": "<p>Bonjour</p>"}

    def test_divider_shortcodes_around_a_field_survive(self):
        tree = [{"type": "column", "fields": {"content": '[divider height="30"]Some body text here'}}]
        meta = {"mfn-page-items": [base64.b64encode(phpserialize.dumps(tree)).decode("ascii")]}
        translations = {"Some body text here": "Translated body"}

        restored = round_trip("", meta, translations.get)

        decoded = phpserialize.loads(base64.b64decode(restored.meta["mfn-page-items"][0]), decode_strings=True)
        assert decoded[0]["fields"]["content"] == '[divider height="30"]Translated body'
        assert not restored.fallback


class TestInlineRestore:
    def test_gutenberg_delimiters_are_kept(self):
        translations = {"<p>Hello world</p>\n\n<h2>Title here</h2>": "<p>Bonjour le monde</p>\n\n<h2>Titre ici</h2>"}
        restored = round_trip(GUTENBERG_DOC, {}, translations.get)

        assert restored.content == (
            "<!-- wp:paragraph -->\n<p>Bonjour le monde</p>\n<!-- /wp:paragraph -->\n\n"
            '<!-- wp:heading {"level":2} -->\n<h2>Titre ici</h2>\n<!-- /wp:heading -->'
        )

    def test_gutenberg_identity(self):
        assert round_trip(GUTENBERG_DOC, {}).content == GUTENBERG_DOC

    def test_mixed_body_text(self):
        content = (
            "Intro paragraph text\n\n<!-- wp:paragraph -->\n<p>Inside block</p>\n"
            "<!-- /wp:paragraph -->\n\nOutro text here"
        )
        translated = "<p>Dans le bloc</p>\n\nTexte d'intro\n\nTexte de fin"
        restored = round_trip(content, {}, lambda text: translated)

        assert restored.content == (
            "Texte d'intro\n\n<!-- wp:paragraph -->\n<p>Dans le bloc</p>\n"
            "<!-- /wp:paragraph -->\n\nTexte de fin"
        )

    def test_shortcode_attributes_are_kept(self):
        content = (
            '[vc_row][vc_column width="1/2"][vc_column_text]<p>Welcome to our site</p>'
            "[/vc_column_text][/vc_column][/vc_row]"
        )
        restored = round_trip(content, {}, lambda text: "<p>Bienvenue sur notre site</p>")

        assert restored.content == (
            '[vc_row][vc_column width="1/2"][vc_column_text]<p>Bienvenue sur notre site</p>'
            "[/vc_column_text][/vc_column][/vc_row]"
        )

    def test_self_closing_shortcode_is_kept(self):
        content = "[vc_column_text]Hello [vc_icon] wonderful world[/vc_column_text]"
        translations = {"Hello [vc_icon] wonderful world": "Bonjour [vc_icon] monde merveilleux"}

        restored = round_trip(content, {}, translations.get)

        assert restored.content == "[vc_column_text]Bonjour [vc_icon] monde merveilleux[/vc_column_text]"
        assert not restored.fallback

    def test_container_text_around_nested_shortcodes(self):
        content = (
            "[vc_column_text]Intro words here[vc_row][vc_column_text]Inner text[/vc_column_text][/vc_row]"
            "Closing words here[/vc_column_text]"
        )
        translated = "Mots d'intro\n\nTexte interne\n\nMots de fin"

        restored = round_trip(content, {}, lambda text: translated)

        assert restored.content == (
            "[vc_column_text]Mots d'intro[vc_row][vc_column_text]Texte interne[/vc_column_text][/vc_row]"
            "Mots de fin[/vc_column_text]"
        )

    def test_tree_and_inline_together(self):
        meta = {"_elementor_data": json.dumps(ELEMENTOR_TREE)}
        translated = "Bonjour\n\nMonde\n\n<p>Salut</p>\n\n<h2>Titre</h2>"
        restored = round_trip(GUTENBERG_DOC, meta, lambda text: translated)

        assert "<p>Salut</p>" in restored.content
        assert "<!-- /wp:heading -->" in restored.content
        assert json.loads(restored.meta["_elementor_data"])[0]["settings"]["title"] == "Bonjour"


class TestFallback:
    def test_segment_count_mismatch(self):
        meta = {"_elementor_data": json.dumps(ELEMENTOR_TREE)}
        extracted = extract_content(GUTENBERG_DOC, meta)

        restored = restore_content(GUTENBERG_DOC, meta, "  Only one segment  ", extracted.block_metadata)

        assert restored.fallback
        assert restored.content == "Only one segment"
        assert restored.meta == meta
        assert restored.meta is not meta

    def test_source_changed_since_extraction(self):
        extracted = extract_content(GUTENBERG_DOC, {})
        changed = GUTENBERG_DOC.replace("Hello world", "Goodbye world")

        restored = restore_content(changed, {}, "<p>A</p>\n\n<h2>B</h2>", extracted.block_metadata)

        assert restored.fallback
        assert restored.content == "<p>A</p>\n\n<h2>B</h2>"

    def test_tree_path_no_longer_resolves(self):
        meta = {"_elementor_data": json.dumps(ELEMENTOR_TREE)}
        extracted = extract_content("", meta)
        shorter = {"_elementor_data": json.dumps(ELEMENTOR_TREE[:1] + [{"id": "x", "elements": []}])}

        restored = restore_content("", shorter, "Bonjour\n\nMonde", extracted.block_metadata)

        assert restored.fallback
        assert restored.meta == shorter

    def test_metadata_survives_serialization(self):
        meta = {"_elementor_data": json.dumps(ELEMENTOR_TREE)}
        extracted = extract_content(GUTENBERG_DOC, meta)
        metadata = BlockMetadata.from_dict(json.loads(json.dumps(extracted.block_metadata.to_dict())))

        assert metadata.primary_format == ContentFormat.ELEMENTOR
        restored = restore_content(
            GUTENBERG_DOC, meta, "Bonjour\n\nMonde\n\n<p>Salut</p>\n\n<h2>Titre</h2>", metadata
        )
        assert not restored.fallback
