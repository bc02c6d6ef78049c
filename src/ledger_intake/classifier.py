"""
Keyword-based category classifier.

Scores each active expense category against the vendor name and description:
- +1 per table keyword contained in the text
- +2 when the category's own name appears in the text

Known limitation: the keyword table is keyed by display name, so categories
with other names only ever match through the name bonus.
"""

import logging
from collections.abc import Iterable
from typing import Optional

from .schemas import Category

logger = logging.getLogger(__name__)

NAME_MATCH_BONUS = 2

CATEGORY_KEYWORDS: dict[str, tuple[str, ...]] = {
    "Software": (
        "software", "saas", "subscription", "adobe", "microsoft", "google workspace",
        "slack", "zoom", "dropbox", "github", "license",
    ),
    "Infrastructure": (
        "aws", "azure", "gcp", "google cloud", "hosting", "server", "cloud",
        "digital ocean", "heroku", "vercel", "netlify",
    ),
    "Office Supplies": (
        "office depot", "staples", "paper", "supplies", "printer", "toner", "stationery",
    ),
    "Marketing": (
        "marketing", "advertising", "google ads", "facebook ads", "linkedin ads",
        "social media", "seo", "mailchimp",
    ),
    "Professional Services": (
        "consulting", "legal", "accounting", "lawyer", "attorney", "cpa",
        "consultant", "professional",
    ),
    "Travel": (
        "airline", "hotel", "uber", "lyft", "rental car", "airbnb", "expedia", "booking",
    ),
    "Utilities": (
        "electricity", "water", "gas", "internet", "phone", "utility", "telecom",
    ),
    "Equipment": (
        "equipment", "hardware", "computer", "laptop", "monitor", "desk", "chair", "furniture",
    ),
}


class CategoryClassifier:
    """Best-guess category assignment for extracted records."""

    def __init__(self, keywords: Optional[dict[str, tuple[str, ...]]] = None):
        self.keywords = keywords if keywords is not None else CATEGORY_KEYWORDS

    def score(self, category_name: str, search_text: str) -> int:
        """Score one category name against lower-cased search text."""
        score = sum(
            1 for keyword in self.keywords.get(category_name, ()) if keyword.lower() in search_text
        )
        if category_name and category_name.lower() in search_text:
            score += NAME_MATCH_BONUS
        return score

    def classify(
        self,
        vendor_name: Optional[str],
        description: Optional[str],
        categories: Iterable[Category],
    ) -> Optional[str]:
        """
        Return the id of the best-scoring category, or None.

        The strictly highest positive score wins; ties keep the earlier
        category. Never raises.
        """
        try:
            search_text = f"{vendor_name or ''} {description or ''}".lower()

            best_match: Optional[str] = None
            highest_score = 0
            for category in categories:
                score = self.score(category.name, search_text)
                if score > highest_score:
                    highest_score = score
                    best_match = category.id

            if best_match is not None:
                logger.debug(
                    "Detected category %s for vendor %r (score=%d)",
                    best_match,
                    vendor_name,
                    highest_score,
                )
            return best_match

        except Exception as e:
            logger.error("Error detecting category: %s", e)
            return None
