"""Keyword-based classification of product and course text into tag names."""

import re
import logging
from types import MappingProxyType
from typing import List, Optional

logger = logging.getLogger(__name__)


# Genre keyword variants. Iteration order is the order tags are emitted in.
GENRE_KEYWORDS = MappingProxyType({
    'techno': ('techno', 'tech house', 'minimal', 'industrial'),
    'house': ('house', 'deep house', 'progressive house', 'tech house'),
    'hip-hop': ('hip hop', 'hip-hop', 'rap', 'trap', 'boom bap', 'drill'),
    'trap': ('trap', '808', 'drill'),
    'rnb': ('rnb', 'r&b', 'soul', 'neo soul'),
    'pop': ('pop', 'dance pop', 'electro pop'),
    'edm': ('edm', 'electronic', 'dance', 'festival'),
    'lo-fi': ('lofi', 'lo-fi', 'chillhop', 'chill'),
    'ambient': ('ambient', 'atmospheric', 'soundscape'),
    'drum-and-bass': ('drum and bass', 'dnb', 'jungle'),
    'dubstep': ('dubstep', 'bass music', 'riddim'),
    'reggaeton': ('reggaeton', 'latin', 'dembow'),
    'afrobeat': ('afrobeat', 'afro', 'amapiano'),
})

# First matching level wins
SKILL_KEYWORDS = MappingProxyType({
    'beginner': ('beginner', 'basic', 'intro', 'starter', 'first', 'learn', '101'),
    'intermediate': ('intermediate', 'mid-level', 'improving'),
    'advanced': ('advanced', 'pro', 'master', 'expert', 'professional'),
})

PRODUCT_TYPE_TAGS = MappingProxyType({
    'sample-pack': 'interest:samples',
    'preset-pack': 'interest:presets',
    'midi-pack': 'interest:midi',
    'beat-lease': 'interest:beats',
    'effect-chain': 'interest:mixing',
    'coaching': 'interest:coaching',
    'course': 'interest:learning',
    'pdf': 'interest:guides',
    'service': 'interest:services',
})

# Clicked-link substrings -> interest tag
LINK_INTEREST_KEYWORDS = (
    (('mixing', 'mix'), 'interest:mixing'),
    (('mastering', 'master'), 'interest:mastering'),
    (('sample', 'loop'), 'interest:samples'),
    (('preset',), 'interest:presets'),
    (('course', 'learn'), 'interest:learning'),
)

HOT_ENGAGEMENT_THRESHOLD = 80
WARM_ENGAGEMENT_THRESHOLD = 50

MAX_SLUG_LENGTH = 50


def infer_genres_from_text(text: Optional[str]) -> List[str]:
    """Return `genre:<name>` for every genre with a keyword in the text."""
    if not text:
        return []

    text_lower = text.lower()
    return [
        f"genre:{genre}"
        for genre, keywords in GENRE_KEYWORDS.items()
        if any(keyword in text_lower for keyword in keywords)
    ]


def infer_skill_level_from_text(text: Optional[str]) -> Optional[str]:
    """Detect skill level from text, first declared level wins."""
    if not text:
        return None

    text_lower = text.lower()

    for level, keywords in SKILL_KEYWORDS.items():
        if any(keyword in text_lower for keyword in keywords):
            return level

    return None


def generate_tag_slug(title: Optional[str]) -> str:
    """
    Build a URL-safe slug for product/course tags.

    "Epic Drums Vol. 1!" -> "epic-drums-vol-1"
    """
    if not title:
        return ""

    slug = title.lower()
    slug = re.sub(r'[^a-z0-9\s-]', '', slug)
    slug = re.sub(r'\s+', '-', slug)
    slug = re.sub(r'-+', '-', slug)
    slug = slug[:MAX_SLUG_LENGTH]
    return slug.strip('-')


# Products and courses share one slug rule so tag names stay stable
generate_product_tag_slug = generate_tag_slug
generate_course_tag_slug = generate_tag_slug


def category_tag(category: Optional[str]) -> Optional[str]:
    if not category:
        return None
    return "category:" + re.sub(r'\s+', '-', category.lower())


def product_type_interest_tag(product_type: Optional[str]) -> Optional[str]:
    if not product_type:
        return None
    return PRODUCT_TYPE_TAGS.get(product_type)


def link_interest_tags(link_url: Optional[str]) -> List[str]:
    """Interest tags implied by a clicked link."""
    if not link_url:
        return []

    url = link_url.lower()
    return [
        tag
        for keywords, tag in LINK_INTEREST_KEYWORDS
        if any(keyword in url for keyword in keywords)
    ]


def engagement_tag(score: Optional[int]) -> Optional[str]:
    """`engagement:hot` at 80+, `engagement:warm` at 50+, else nothing."""
    score = score or 0
    if score >= HOT_ENGAGEMENT_THRESHOLD:
        return "engagement:hot"
    if score >= WARM_ENGAGEMENT_THRESHOLD:
        return "engagement:warm"
    return None


def product_text(product, include_category: bool = False) -> str:
    """Text blob classified for a product: title, description, genres[, category]."""
    parts = [product.title or "", product.description or ""]
    parts.extend(product.genre or [])
    if include_category:
        parts.append(product.product_category or "")
    return " ".join(parts)


def course_text(course) -> str:
    return " ".join([course.title or "", course.description or "", course.category or ""])
