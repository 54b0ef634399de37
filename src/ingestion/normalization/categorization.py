"""
Keyword-based event categorization.

Provides categorization strategies using the Strategy pattern:
- BaseCategorizer: interface the Normalizer depends on
- KeywordCategorizer: ordered regex groups over title + description
"""

import re
from abc import ABC, abstractmethod
from typing import List, Optional, Sequence, Tuple

DEFAULT_CATEGORY = "other"

# Order matters: the first match becomes the primary category.
CATEGORY_PATTERNS: List[Tuple[str, re.Pattern]] = [
    (
        "music",
        re.compile(
            r"\b(concert|music|band|singer|dj|festival|jazz|rock|pop|classical|electronic)\b"
        ),
    ),
    (
        "arts",
        re.compile(
            r"\b(art|gallery|museum|theater|theatre|dance|ballet|opera|exhibit|performance)\b"
        ),
    ),
    (
        "food-drink",
        re.compile(
            r"\b(food|drink|restaurant|bar|wine|beer|cocktail|dining|culinary|tasting)\b"
        ),
    ),
    (
        "sports",
        re.compile(
            r"\b(sport|fitness|yoga|gym|running|basketball|football|baseball|soccer|workout)\b"
        ),
    ),
    (
        "business",
        re.compile(
            r"\b(business|conference|seminar|workshop|networking|professional|meeting|training)\b"
        ),
    ),
    (
        "community",
        re.compile(
            r"\b(community|social|meetup|volunteer|charity|fundraiser|neighborhood)\b"
        ),
    ),
    (
        "technology",
        re.compile(
            r"\b(tech|technology|programming|software|startup|digital|coding|ai|data)\b"
        ),
    ),
    (
        "education",
        re.compile(
            r"\b(education|learning|class|course|lecture|university|college|school)\b"
        ),
    ),
]


class BaseCategorizer(ABC):
    """Abstract base for categorization strategies."""

    @abstractmethod
    def categorize(self, text: str) -> List[str]:
        """Return category tags for the text; never empty."""
        pass


class KeywordCategorizer(BaseCategorizer):
    """
    Match text against ordered keyword groups.

    All matching groups are kept. If nothing matches, the single default
    catch-all category is returned.
    """

    def __init__(
        self,
        patterns: Optional[Sequence[Tuple[str, re.Pattern]]] = None,
        default_category: str = DEFAULT_CATEGORY,
        max_tags: Optional[int] = None,
    ):
        self.patterns = list(patterns) if patterns is not None else CATEGORY_PATTERNS
        self.default_category = default_category
        self.max_tags = max_tags

    def categorize(self, text: str) -> List[str]:
        lowered = (text or "").lower()
        matches = [name for name, pattern in self.patterns if pattern.search(lowered)]
        if self.max_tags is not None:
            matches = matches[: self.max_tags]
        return matches or [self.default_category]


def categorize_text(text: str) -> List[str]:
    """Categorize with the default keyword groups."""
    return KeywordCategorizer().categorize(text)
