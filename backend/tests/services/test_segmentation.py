# tests/services/test_segmentation.py
"""
Tests for SegmentationService

Coverage:
- all / any / exclusion predicates
- Only subscribed contacts are returned
- Prebuilt segment templates are idempotent
- Segment listing and contact stats
"""

import pytest

from contact_sync.models import EmailTag
from contact_sync.services.segmentation import (
    PREBUILT_SEGMENT_TEMPLATES,
    SegmentationService,
    create_segmentation_service,
)
from contact_sync.services.tag_application import TagApplicationService

STORE_ID = "store_1"


@pytest.fixture
def segments(db_session):
    return create_segmentation_service(db_session)


@pytest.fixture
def tagged_contacts(db_session, make_contact):
    """
    a: techno, customer
    b: techno
    c: customer
    d: techno, customer (bounced)
    """
    tagger = TagApplicationService(db_session)
    layout = {
        "a@example.com": (["genre:techno", "customer"], "subscribed"),
        "b@example.com": (["genre:techno"], "subscribed"),
        "c@example.com": (["customer"], "subscribed"),
        "d@example.com": (["genre:techno", "customer"], "bounced"),
    }
    for email, (tags, status) in layout.items():
        contact = make_contact(email, status=status)
        tagger.add_tags_to_contact(contact.id, STORE_ID, tags)

    return {
        tag.name: tag.id
        for tag in db_session.query(EmailTag).filter(EmailTag.store_id == STORE_ID)
    }


def emails(results):
    return [contact.email for contact in results]


@pytest.mark.unit
class TestMatches:

    def test_all(self):
        assert SegmentationService.matches(["a", "b"], ["a", "b"], "all")
        assert not SegmentationService.matches(["a"], ["a", "b"], "all")

    def test_any(self):
        assert SegmentationService.matches(["b"], ["a", "b"], "any")
        assert not SegmentationService.matches(["c"], ["a", "b"], "any")

    def test_exclusion_wins(self):
        assert not SegmentationService.matches(["a", "x"], ["a"], "any", exclude_tag_ids=["x"])

    def test_empty_tags_match_everyone(self):
        assert SegmentationService.matches([], [], "all")
        assert SegmentationService.matches(None, [], "any")


@pytest.mark.integration
class TestGetContactsByTags:

    def test_all_mode(self, segments, tagged_contacts):
        results = segments.get_contacts_by_tags(
            STORE_ID, [tagged_contacts["genre:techno"], tagged_contacts["customer"]], mode="all"
        )
        assert emails(results) == ["a@example.com"]

    def test_any_mode_in_creation_order(self, segments, tagged_contacts):
        results = segments.get_contacts_by_tags(
            STORE_ID, [tagged_contacts["genre:techno"], tagged_contacts["customer"]], mode="any"
        )
        assert emails(results) == ["a@example.com", "b@example.com", "c@example.com"]

    def test_exclusion(self, segments, tagged_contacts):
        results = segments.get_contacts_by_tags(
            STORE_ID, [tagged_contacts["genre:techno"]], mode="any",
            exclude_tag_ids=[tagged_contacts["customer"]]
        )
        assert emails(results) == ["b@example.com"]

    def test_limit(self, segments, tagged_contacts):
        results = segments.get_contacts_by_tags(STORE_ID, [tagged_contacts["customer"]], limit=1)
        assert emails(results) == ["a@example.com"]

    def test_bad_mode(self, segments):
        with pytest.raises(ValueError):
            segments.get_contacts_by_tags(STORE_ID, [], mode="none")

    def test_projection(self, segments, make_contact):
        make_contact("ada@example.com", first_name="Ada", last_name="Lovelace", engagement_score=42)

        [result] = segments.get_contacts_by_tags(STORE_ID, [])

        assert result.name == "Ada Lovelace"
        assert result.engagement_score == 42


@pytest.mark.integration
class TestPrebuiltSegments:

    def test_creates_all_templates(self, segments, db_session):
        result = segments.create_prebuilt_segments(STORE_ID)

        assert result.created == len(PREBUILT_SEGMENT_TEMPLATES)
        assert result.skipped == 0
        hot = db_session.query(EmailTag).filter(EmailTag.name == "engagement:hot").one()
        assert hot.color == "#EF4444"
        assert hot.description == "Highly engaged contacts (score >= 80)"

    def test_rerun_skips_existing(self, segments, db_session, tagged_contacts):
        result = segments.create_prebuilt_segments(STORE_ID)

        # "customer" and "genre:techno" already exist
        assert result.skipped == 2
        assert result.created == len(PREBUILT_SEGMENT_TEMPLATES) - 2

        again = segments.create_prebuilt_segments(STORE_ID)
        assert again.created == 0
        assert [s.tag_id for s in again.segments] == [s.tag_id for s in result.segments]


@pytest.mark.integration
class TestSegmentListingAndStats:

    def test_segments_by_tag(self, segments, tagged_contacts):
        by_name = {s.tag_name: s for s in segments.get_segments_by_tag(STORE_ID)}

        assert by_name["customer"].display_name == "Customers"
        assert by_name["customer"].contact_count == 3
        assert by_name["genre:techno"].display_name == "Techno Producers"

    def test_unknown_tags_display_their_name(self, segments, db_session, make_contact):
        contact = make_contact("fan@example.com")
        TagApplicationService(db_session).add_tags_to_contact(contact.id, STORE_ID, ["vip"])

        [summary] = segments.get_segments_by_tag(STORE_ID)
        assert summary.display_name == "vip"

    def test_contact_stats(self, segments, make_contact):
        make_contact("a@example.com", engagement_score=80)
        make_contact("b@example.com", engagement_score=41)
        make_contact("c@example.com", status="unsubscribed")
        make_contact("d@example.com", status="bounced", engagement_score=0)

        stats = segments.get_contact_stats(STORE_ID)

        assert stats.total == 4
        assert stats.subscribed == 2
        assert stats.unsubscribed == 1
        assert stats.bounced == 1
        assert stats.avg_engagement == 40

    def test_list_contacts_newest_first(self, segments, tagged_contacts):
        contacts = segments.list_contacts(STORE_ID, tag_id=tagged_contacts["customer"], status="subscribed")
        assert emails(contacts) == ["c@example.com", "a@example.com"]
