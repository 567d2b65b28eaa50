# tests/services/test_keyword_classifier.py
"""
Tests for keyword classification and tag slugs

Coverage:
- Genre inference (ordering, substring matches, empty input)
- Skill level inference (first level wins)
- Slug generation
- Product type / link interest / engagement tags
- Tag derivation rules built on top of the classifiers
"""

import pytest
from types import SimpleNamespace

from contact_sync.services.keyword_classifier import (
    MAX_SLUG_LENGTH,
    category_tag,
    engagement_tag,
    generate_course_tag_slug,
    generate_product_tag_slug,
    generate_tag_slug,
    infer_genres_from_text,
    infer_skill_level_from_text,
    link_interest_tags,
    product_text,
    product_type_interest_tag,
)
from contact_sync.services import tag_rules


def product(**fields):
    defaults = dict(
        title="", description=None, product_type=None,
        product_category=None, genre=[]
    )
    defaults.update(fields)
    return SimpleNamespace(**defaults)


def course(**fields):
    defaults = dict(title="", slug=None, description=None, category=None, skill_level=None)
    defaults.update(fields)
    return SimpleNamespace(**defaults)


# ============================================================================
# TEST: Genre inference
# ============================================================================

@pytest.mark.unit
class TestGenreInference:

    def test_empty_text_has_no_genres(self):
        assert infer_genres_from_text("") == []
        assert infer_genres_from_text(None) == []

    def test_single_genre(self):
        assert infer_genres_from_text("Dark Techno Essentials") == ["genre:techno"]

    def test_case_insensitive(self):
        assert infer_genres_from_text("AMBIENT textures") == ["genre:ambient"]

    def test_tech_house_matches_both_families_in_table_order(self):
        assert infer_genres_from_text("tech house grooves") == ["genre:techno", "genre:house"]

    def test_trap_matches_hip_hop_and_trap(self):
        genres = infer_genres_from_text("808 trap drums")
        assert genres == ["genre:hip-hop", "genre:trap"]

    def test_substring_matching_is_intentional(self):
        # "pop" inside "popular"
        assert "genre:pop" in infer_genres_from_text("popular sounds")

    def test_two_genres_and_nothing_else(self):
        assert infer_genres_from_text("banging techno and house set") == ["genre:techno", "genre:house"]


# ============================================================================
# TEST: Skill inference
# ============================================================================

@pytest.mark.unit
class TestSkillInference:

    def test_no_text(self):
        assert infer_skill_level_from_text(None) is None

    def test_no_match(self):
        assert infer_skill_level_from_text("Heavy kicks") is None

    @pytest.mark.parametrize("text,level", [
        ("Beginner Synthesis", "beginner"),
        ("Intermediate arrangement", "intermediate"),
        ("Advanced sound design", "advanced"),
        ("Mixing 101", "beginner"),
    ])
    def test_levels(self, text, level):
        assert infer_skill_level_from_text(text) == level

    def test_first_declared_level_wins(self):
        assert infer_skill_level_from_text("From beginner to advanced") == "beginner"


# ============================================================================
# TEST: Slugs and simple tag builders
# ============================================================================

@pytest.mark.unit
class TestSlugs:

    def test_punctuation_dropped(self):
        assert generate_tag_slug("Epic Drums Vol. 1!") == "epic-drums-vol-1"

    def test_whitespace_and_hyphen_runs_collapse(self):
        assert generate_tag_slug("Lo  Fi -- Keys") == "lo-fi-keys"

    def test_truncated_then_trimmed(self):
        slug = generate_tag_slug("a" * 49 + " bcd")
        assert len(slug) <= MAX_SLUG_LENGTH
        assert not slug.endswith("-")
        assert slug == "a" * 49

    def test_empty_title(self):
        assert generate_tag_slug("") == ""
        assert generate_tag_slug("!!!") == ""

    def test_product_and_course_slugs_agree(self):
        title = "Mixing Fundamentals"
        assert generate_product_tag_slug(title) == generate_course_tag_slug(title) == "mixing-fundamentals"

    def test_category_tag(self):
        assert category_tag("Sound Design") == "category:sound-design"
        assert category_tag(None) is None

    def test_product_type_interest(self):
        assert product_type_interest_tag("sample-pack") == "interest:samples"
        assert product_type_interest_tag("beat-lease") == "interest:beats"
        assert product_type_interest_tag("mystery") is None
        assert product_type_interest_tag(None) is None


@pytest.mark.unit
class TestLinkAndEngagementTags:

    def test_mixing_link(self):
        assert link_interest_tags("https://store.com/mixing-course") == ["interest:mixing", "interest:learning"]

    def test_mastering_link(self):
        assert link_interest_tags("https://x.com/mastering") == ["interest:mastering"]

    def test_no_link(self):
        assert link_interest_tags(None) == []
        assert link_interest_tags("https://x.com/about") == []

    @pytest.mark.parametrize("score,tag", [
        (None, None),
        (0, None),
        (49, None),
        (50, "engagement:warm"),
        (79, "engagement:warm"),
        (80, "engagement:hot"),
        (100, "engagement:hot"),
    ])
    def test_engagement_thresholds(self, score, tag):
        assert engagement_tag(score) == tag


# ============================================================================
# TEST: Tag rules
# ============================================================================

@pytest.mark.unit
class TestTagRules:

    def test_product_text_optionally_includes_category(self):
        p = product(title="Kit", description="drums", genre=["house"], product_category="sample-pack")
        assert product_text(p) == "Kit drums house"
        assert product_text(p, include_category=True) == "Kit drums house sample-pack"

    def test_follow_gate_tags(self):
        p = product(
            title="Dark Techno Essentials", description="Heavy kicks",
            product_type="sample-pack", genre=["techno"]
        )
        assert tag_rules.follow_gate_tags(p) == ["interest:samples", "genre:techno", "source:follow-gate"]

    def test_purchase_product_tags_include_category_interest(self):
        p = product(title="Vocal Chops", product_type="sample-pack", product_category="preset-pack")
        assert tag_rules.purchase_product_tags(p) == [
            "product:vocal-chops", "interest:samples", "interest:presets"
        ]

    def test_purchase_course_tags(self):
        c = course(title="Ambient Worlds", skill_level="advanced")
        assert tag_rules.purchase_course_tags(c) == [
            "course:ambient-worlds", "interest:learning", "skill:advanced", "genre:ambient"
        ]

    def test_course_detail_prefers_stored_slug(self):
        c = course(title="Ambient Worlds", slug="ambient-101")
        assert tag_rules.course_detail_tags(c)[0] == "course:ambient-101"

    def test_enrollment_course_tags(self):
        c = course(title="Mixing Fundamentals", category="Mixing", skill_level="beginner")
        assert tag_rules.enrollment_course_tags(c) == [
            "interest:learning", "student", "course:mixing-fundamentals",
            "skill:beginner", "category:mixing"
        ]

    @pytest.mark.parametrize("source,tags", [
        ("purchase", ["customer"]),
        ("customer_sync", ["customer"]),
        ("course_enrollment", ["student", "interest:learning"]),
        ("student_sync", ["student", "interest:learning"]),
        ("follow_gate", ["lead"]),
        ("manual", []),
        (None, []),
    ])
    def test_source_tags(self, source, tags):
        assert tag_rules.source_tags(source) == tags

    def test_cold_engagement_needs_sent_emails(self):
        assert tag_rules.reconciliation_engagement_tags(10, 6) == ["engagement:cold"]
        assert tag_rules.reconciliation_engagement_tags(10, 5) == []
        assert tag_rules.reconciliation_engagement_tags(None, 10) == ["engagement:cold"]
        assert tag_rules.reconciliation_engagement_tags(30, 10) == []
        assert tag_rules.reconciliation_engagement_tags(85, 10) == ["engagement:hot"]

    def test_unique_tags_keeps_first_occurrence(self):
        assert tag_rules.unique_tags(["a", "b", "a", "c", "b"]) == ["a", "b", "c"]
