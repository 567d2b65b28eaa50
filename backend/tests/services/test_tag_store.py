# tests/services/test_tag_store.py
"""
Tests for TagStore

Coverage:
- Get-or-create semantics per (store, name)
- Color and description defaults
- Recovery from a concurrent insert (unique constraint)
"""

import pytest
from unittest.mock import patch

from contact_sync.models import EmailTag
from contact_sync.services.tag_store import DEFAULT_TAG_COLOR, TagStore, create_tag_store

STORE_ID = "store_1"
OTHER_STORE_ID = "store_2"


@pytest.fixture
def tag_store(db_session):
    return create_tag_store(db_session)


@pytest.mark.unit
class TestTagDefaults:

    @pytest.mark.parametrize("name,color", [
        ("customer", "#F59E0B"),
        ("product:epic-drums", "#EC4899"),
        ("course:mixing-101", "#8B5CF6"),
        ("genre:techno", "#8B5CF6"),
        ("interest:samples", "#3B82F6"),
        ("skill:beginner", "#10B981"),
        ("engagement:hot", DEFAULT_TAG_COLOR),
        ("lead", DEFAULT_TAG_COLOR),
    ])
    def test_colors(self, name, color):
        assert TagStore.tag_color_for(name) == color

    def test_descriptions(self):
        assert TagStore.tag_description_for("product:epic-drums") == "Purchased: epic drums"
        assert TagStore.tag_description_for("course:mixing-101") == "Enrolled in: mixing 101"
        assert TagStore.tag_description_for("genre:techno") == "Auto-generated tag: genre:techno"


@pytest.mark.integration
class TestGetOrCreate:

    def test_creates_tag_on_first_use(self, tag_store, db_session):
        tag_id = tag_store.get_or_create_tag(STORE_ID, "genre:techno")

        tag = db_session.get(EmailTag, tag_id)
        assert tag.name == "genre:techno"
        assert tag.store_id == STORE_ID
        assert tag.contact_count == 0
        assert tag.color == "#8B5CF6"

    def test_returns_same_id_on_repeat(self, tag_store, db_session):
        first = tag_store.get_or_create_tag(STORE_ID, "customer")
        second = tag_store.get_or_create_tag(STORE_ID, "customer")

        assert first == second
        assert db_session.query(EmailTag).count() == 1

    def test_tags_are_scoped_per_store(self, tag_store):
        assert tag_store.get_or_create_tag(STORE_ID, "customer") != \
            tag_store.get_or_create_tag(OTHER_STORE_ID, "customer")

    def test_explicit_color_and_description(self, tag_store):
        tag, created = tag_store.create_tag_if_absent(
            STORE_ID, "engagement:hot", color="#EF4444", description="Hot"
        )
        assert created is True
        assert tag.color == "#EF4444"
        assert tag.description == "Hot"

    def test_existing_tag_not_modified(self, tag_store):
        tag_store.create_tag_if_absent(STORE_ID, "engagement:hot")
        tag, created = tag_store.create_tag_if_absent(STORE_ID, "engagement:hot", color="#EF4444")

        assert created is False
        assert tag.color == DEFAULT_TAG_COLOR

    def test_concurrent_insert_returns_existing_row(self, tag_store, db_session):
        """Lookup misses, insert hits the unique constraint, re-read wins"""
        existing_id = tag_store.get_or_create_tag(STORE_ID, "genre:house")
        existing = db_session.get(EmailTag, existing_id)

        with patch.object(tag_store, "get_tag_by_name", side_effect=[None, existing]):
            tag, created = tag_store.create_tag_if_absent(STORE_ID, "genre:house")

        assert created is False
        assert tag.id == existing_id
        assert db_session.query(EmailTag).filter(EmailTag.name == "genre:house").count() == 1

    def test_list_tags_only_for_store(self, tag_store):
        tag_store.get_or_create_tag(STORE_ID, "a")
        tag_store.get_or_create_tag(STORE_ID, "b")
        tag_store.get_or_create_tag(OTHER_STORE_ID, "c")

        assert {tag.name for tag in tag_store.list_tags(STORE_ID)} == {"a", "b"}
