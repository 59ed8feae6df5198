"""Test structured-data validators."""
from __future__ import annotations

import pytest

from torquepress.article_schema import FAQItem
from torquepress.seo_validators import (
    ValidationStatus,
    validate_article_schema,
    validate_breadcrumb_schema,
    validate_collection_page_schema,
    validate_faq_blocks,
    validate_faq_page_schema,
    validate_jsonld,
    validate_video_object_schema,
)


# ===========================================================================
# ARTICLE / VIDEO
# ===========================================================================


class TestArticleSchema:

    @pytest.mark.unit
    def test_complete_article(self, article):
        result = validate_article_schema(article)
        assert result.valid
        assert result.errors == []
        assert result.warnings == []

    @pytest.mark.unit
    def test_missing_published_at_is_error(self, make_article):
        result = validate_article_schema(make_article(publishedAt=None))
        assert not result.valid
        assert "Missing required field: publishedAt" in result.errors

    @pytest.mark.unit
    def test_missing_optional_fields_warn(self, make_article):
        article = make_article(
            updatedAt=None, author=None, hero={"headline": "RAV4 Hybrid vs CR-V Hybrid"},
        )
        result = validate_article_schema(article)
        assert result.valid
        assert len(result.warnings) == 3


class TestVideoObjectSchema:

    @pytest.mark.unit
    def test_valid(self, article):
        assert validate_video_object_schema(article, 42.5).valid

    @pytest.mark.unit
    @pytest.mark.parametrize("duration", [0, -1])
    def test_invalid_duration(self, article, duration):
        result = validate_video_object_schema(article, duration)
        assert "Invalid duration" in result.errors

    @pytest.mark.unit
    def test_missing_poster(self, make_article):
        article = make_article(hero={"headline": "No image"})
        result = validate_video_object_schema(article, 30)
        assert "Missing thumbnailUrl (poster image)" in result.errors

    @pytest.mark.unit
    def test_missing_upload_date_warns(self, make_article):
        result = validate_video_object_schema(make_article(publishedAt=None), 30)
        assert result.valid
        assert result.warnings == ["Missing uploadDate"]


# ===========================================================================
# FAQ / BREADCRUMB / COLLECTION
# ===========================================================================


class TestFAQPageSchema:

    @pytest.mark.unit
    def test_empty(self):
        result = validate_faq_page_schema([])
        assert result.errors == ["FAQ block is empty"]

    @pytest.mark.unit
    def test_missing_answer(self):
        result = validate_faq_page_schema([FAQItem(q="Does the RAV4 tow?", a="")])
        assert result.errors == ["FAQ item 1: Missing answer"]

    @pytest.mark.unit
    def test_short_items_warn(self):
        result = validate_faq_page_schema([FAQItem(q="AWD?", a="Yes.")])
        assert result.valid
        assert len(result.warnings) == 2


class TestBreadcrumbSchema:

    @pytest.mark.unit
    def test_valid(self):
        items = [{"name": "Home", "url": "/"}, {"name": "SUVs", "url": "/topics/suvs"}]
        result = validate_breadcrumb_schema(items)
        assert result.valid and result.warnings == []

    @pytest.mark.unit
    def test_relative_url_warns(self):
        result = validate_breadcrumb_schema([{"name": "SUVs", "url": "topics/suvs"}])
        assert result.valid
        assert result.warnings == ["Breadcrumb item 1: URL should be absolute path"]

    @pytest.mark.unit
    def test_missing_name(self):
        result = validate_breadcrumb_schema([{"url": "/"}])
        assert result.errors == ["Breadcrumb item 1: Missing name"]

    @pytest.mark.unit
    def test_empty(self):
        assert not validate_breadcrumb_schema([]).valid


class TestCollectionPageSchema:

    @pytest.mark.unit
    def test_no_items_warns(self):
        result = validate_collection_page_schema("SUVs", "All SUV coverage", [])
        assert result.valid
        assert result.warnings == ["Collection has no items"]

    @pytest.mark.unit
    def test_missing_title_and_item_url(self):
        result = validate_collection_page_schema(" ", "desc", [{"name": "RAV4"}])
        assert "Missing collection title" in result.errors
        assert "Collection item 1: Missing URL" in result.errors


# ===========================================================================
# JSON-LD
# ===========================================================================


class TestJsonLd:

    @pytest.mark.unit
    def test_valid_article(self):
        schema = {
            "@context": "https://schema.org",
            "@type": "Article",
            "headline": "RAV4 vs CR-V",
            "datePublished": "2025-01-15",
            "author": {"@type": "Person", "name": "Dana Reyes"},
            "publisher": {"@type": "Organization", "name": "Torquepress"},
        }
        assert validate_jsonld(schema).valid

    @pytest.mark.unit
    def test_article_missing_fields(self):
        result = validate_jsonld({"@context": "https://schema.org", "@type": "TechArticle"})
        assert result.errors == [
            "Missing headline", "Missing datePublished", "Missing author", "Missing publisher",
        ]

    @pytest.mark.unit
    def test_graph_inherits_context(self):
        schema = {
            "@context": "https://schema.org",
            "@graph": [{"@type": "FAQPage", "mainEntity": []}, {"@type": "BreadcrumbList"}],
        }
        assert validate_jsonld(schema).valid

    @pytest.mark.unit
    def test_list_of_nodes(self):
        result = validate_jsonld([{"@type": "VideoObject", "name": "Clip"}, "oops"])
        assert "Missing @context" in result.errors
        assert "VideoObject missing thumbnailUrl" in result.errors
        assert "JSON-LD node is not an object" in result.errors

    @pytest.mark.unit
    def test_faq_page_needs_main_entity(self):
        result = validate_jsonld({"@context": "https://schema.org", "@type": "FAQPage"})
        assert result.errors == ["FAQPage missing mainEntity array"]


class TestFAQBlocks:

    @pytest.mark.unit
    def test_no_faq_is_green(self, article):
        assert validate_faq_blocks(article) == (ValidationStatus.GREEN, [])

    @pytest.mark.unit
    def test_multiple_blocks_amber(self, article_data, make_article):
        faq = {"type": "faq", "items": [{"q": "Is it AWD?", "a": "Yes, standard."}]}
        article = make_article(blocks=article_data["blocks"] + [faq, faq])
        status, messages = validate_faq_blocks(article)
        assert status == ValidationStatus.AMBER
        assert messages[0].startswith("Found 2 FAQ blocks")

    @pytest.mark.unit
    def test_duplicates_and_empty_answers(self, article_data, make_article):
        faq = {"type": "faq", "items": [
            {"q": "Is it AWD?", "a": ""},
            {"q": "is it awd? ", "a": "Yes."},
        ]}
        article = make_article(blocks=article_data["blocks"] + [faq])
        status, messages = validate_faq_blocks(article)
        assert status == ValidationStatus.AMBER
        assert "Found 1 FAQ items with empty answers" in messages
        assert "Found 1 duplicate FAQ questions" in messages
