"""Test WCAG contrast helpers."""
from __future__ import annotations

import pytest

from torquepress.contrast import (
    DARK_FALLBACK,
    LIGHT_FALLBACK,
    WCAG_AA,
    assert_contrast_for_html,
    contrast_ratio,
    hex_to_rgb,
    meets_wcag_aa,
    meets_wcag_aaa,
    pick_readable,
)

LOW_CONTRAST_TOKENS = {"text-dim": "#777777", "bg-dim": "#666666"}


class TestContrastRatio:

    @pytest.mark.unit
    def test_black_on_white(self):
        assert contrast_ratio("#000000", "#ffffff") == pytest.approx(21.0)

    @pytest.mark.unit
    def test_symmetric(self):
        assert contrast_ratio("#336699", "#eeeeee") == pytest.approx(contrast_ratio("#eeeeee", "#336699"))

    @pytest.mark.unit
    def test_same_colour(self):
        assert contrast_ratio("#808080", "#808080") == pytest.approx(1.0)

    @pytest.mark.unit
    def test_invalid_colour(self):
        assert contrast_ratio("red", "#ffffff") == 1.0
        assert hex_to_rgb("#fff") is None

    @pytest.mark.unit
    def test_hex_without_hash(self):
        assert hex_to_rgb("ff8000") == (255, 128, 0)


class TestWcagLevels:

    @pytest.mark.unit
    def test_aa(self):
        assert meets_wcag_aa("#000000", "#ffffff")
        assert not meets_wcag_aa("#777777", "#666666")

    @pytest.mark.unit
    def test_large_text_threshold(self):
        # #949494 on white is ~3.0:1
        assert not meets_wcag_aa("#949494", "#ffffff")
        assert meets_wcag_aa("#8a8a8a", "#ffffff", large_text=True)

    @pytest.mark.unit
    def test_aaa(self):
        assert meets_wcag_aaa("#000000", "#ffffff")
        assert not meets_wcag_aaa("#767676", "#ffffff")


class TestPickReadable:

    @pytest.mark.unit
    def test_best_candidate(self):
        assert pick_readable(["#777777", "#ffffff"], "#000000") == "#ffffff"

    @pytest.mark.unit
    def test_fallback_on_dark_background(self):
        assert pick_readable(["#222222"], "#111111") == LIGHT_FALLBACK

    @pytest.mark.unit
    def test_fallback_on_light_background(self):
        assert pick_readable(["#eeeeee"], "#ffffff") == DARK_FALLBACK


class TestAssertContrastForHtml:

    @pytest.mark.unit
    def test_site_tokens_pass(self):
        html = '<p class="text-fg bg-surface">Body</p><span class="text-fg-muted bg-muted">x</span>'
        assert assert_contrast_for_html(html) == []

    @pytest.mark.unit
    def test_low_contrast_reported(self):
        html = '<p class="lead text-dim bg-dim">Hard to read</p>'
        errors = assert_contrast_for_html(html, LOW_CONTRAST_TOKENS)
        assert len(errors) == 1
        assert errors[0].selector == "p.lead.text-dim.bg-dim"
        assert errors[0].required == WCAG_AA
        assert errors[0].to_dict()["ratio"] < WCAG_AA

    @pytest.mark.unit
    def test_unknown_tokens_ignored(self):
        assert assert_contrast_for_html('<p class="text-brand bg-brand">x</p>') == []

    @pytest.mark.unit
    def test_needs_both_classes(self):
        assert assert_contrast_for_html('<p class="text-dim">x</p>', LOW_CONTRAST_TOKENS) == []
