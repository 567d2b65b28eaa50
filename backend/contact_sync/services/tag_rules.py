"""
Tag derivation rules shared by the event handlers and the reconciliation jobs.

Each function returns tag names in a stable order. Callers may pass the
result straight to TagApplicationService.add_tags_to_contact, which ignores
tags the contact already holds.
"""

from typing import Iterable, List, Optional

from contact_sync.models import Course, DigitalProduct
from contact_sync.services.keyword_classifier import (
    category_tag,
    course_text,
    engagement_tag,
    generate_course_tag_slug,
    generate_product_tag_slug,
    infer_genres_from_text,
    infer_skill_level_from_text,
    product_text,
    product_type_interest_tag,
)

COLD_ENGAGEMENT_THRESHOLD = 20
COLD_MIN_EMAILS_SENT = 5


def unique_tags(tag_names: Iterable[str]) -> List[str]:
    """Drop duplicates, keeping first occurrence order."""
    return list(dict.fromkeys(tag_names))


def course_slug(course: Course) -> str:
    return course.slug or generate_course_tag_slug(course.title)


def follow_gate_tags(product: DigitalProduct) -> List[str]:
    """Interest, genre and skill tags for a follow-gate download, plus the source tag."""
    tags = []

    interest = product_type_interest_tag(product.product_type)
    if interest:
        tags.append(interest)

    text = product_text(product, include_category=True)
    tags.extend(infer_genres_from_text(text))

    skill_level = infer_skill_level_from_text(text)
    if skill_level:
        tags.append(f"skill:{skill_level}")

    tags.append("source:follow-gate")
    return tags


def purchase_product_tags(product: DigitalProduct) -> List[str]:
    """Tags for buying a digital product (excluding the `customer` tag)."""
    tags = []

    slug = generate_product_tag_slug(product.title)
    if slug:
        tags.append(f"product:{slug}")

    interest = product_type_interest_tag(product.product_type)
    if interest:
        tags.append(interest)

    category_interest = product_type_interest_tag(product.product_category)
    if category_interest:
        tags.append(category_interest)

    tags.extend(infer_genres_from_text(product_text(product)))
    return tags


def purchase_course_tags(course: Course) -> List[str]:
    """Tags for buying a course (excluding the `customer` tag)."""
    tags = []

    slug = generate_course_tag_slug(course.title)
    if slug:
        tags.append(f"course:{slug}")

    tags.append("interest:learning")

    if course.skill_level:
        tags.append(f"skill:{course.skill_level}")

    tags.extend(infer_genres_from_text(course_text(course)))
    return tags


def course_detail_tags(course: Course) -> List[str]:
    """course:/genre:/skill:/category: tags describing one course."""
    tags = []

    slug = course_slug(course)
    if slug:
        tags.append(f"course:{slug}")

    tags.extend(infer_genres_from_text(course_text(course)))

    if course.skill_level:
        tags.append(f"skill:{course.skill_level}")

    category = category_tag(course.category)
    if category:
        tags.append(category)

    return tags


def enrollment_course_tags(course: Course) -> List[str]:
    """Tags for enrolling in a course."""
    return ["interest:learning", "student"] + course_detail_tags(course)


def owned_product_tags(product: DigitalProduct) -> List[str]:
    """Tags re-derived from a product found in a contact's history."""
    tags = []

    interest = product_type_interest_tag(product.product_type)
    if interest:
        tags.append(interest)

    text = product_text(product)
    tags.extend(infer_genres_from_text(text))

    skill_level = infer_skill_level_from_text(text)
    if skill_level:
        tags.append(f"skill:{skill_level}")

    return tags


def source_product_tags(product: DigitalProduct) -> List[str]:
    tags = []
    interest = product_type_interest_tag(product.product_type)
    if interest:
        tags.append(interest)
    tags.extend(infer_genres_from_text(product_text(product)))
    return tags


def source_course_tags(course: Course) -> List[str]:
    tags = ["interest:learning"]
    if course.skill_level:
        tags.append(f"skill:{course.skill_level}")
    category = category_tag(course.category)
    if category:
        tags.append(category)
    return tags


def source_tags(source: Optional[str]) -> List[str]:
    """Tags implied by how the contact entered the list."""
    if source in ("purchase", "customer_sync"):
        return ["customer"]
    if source in ("course_enrollment", "student_sync"):
        return ["student", "interest:learning"]
    if source == "follow_gate":
        return ["lead"]
    return []


def reconciliation_engagement_tags(score: Optional[int], emails_sent: Optional[int]) -> List[str]:
    """Engagement tags for a stored score; adds `engagement:cold` for unresponsive contacts."""
    tag = engagement_tag(score)
    if tag:
        return [tag]
    if (score or 0) < COLD_ENGAGEMENT_THRESHOLD and (emails_sent or 0) > COLD_MIN_EMAILS_SENT:
        return ["engagement:cold"]
    return []
