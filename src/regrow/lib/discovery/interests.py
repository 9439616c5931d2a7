"""Interest extraction from listing titles and categories.

An interest profile is a set of category labels plus a set of lower-cased
title tokens.  Matching is plain substring containment: no stemming and no
locale-aware tokenisation.
"""

import re
from collections.abc import Iterable
from dataclasses import dataclass, field

from ...models import Listing

# Whitespace plus a fixed punctuation class.
KEYWORD_SPLIT_RE = re.compile(r"[\s,.;:/\\|()+\-_\"'!?]+")

MIN_KEYWORD_LENGTH = 2


def extract_keywords(title: str | None, keywords: set[str] | None = None) -> set[str]:
    """Add the lower-cased tokens of *title* to *keywords* and return it.

    Fragments shorter than two characters are discarded.  Calling this
    repeatedly with the same title leaves the set unchanged.
    """
    if keywords is None:
        keywords = set()
    if not title:
        return keywords
    for word in KEYWORD_SPLIT_RE.split(title.lower()):
        word = word.strip()
        if len(word) >= MIN_KEYWORD_LENGTH:
            keywords.add(word)
    return keywords


def matches_keyword(title: str | None, keywords: set[str]) -> bool:
    """True iff the lower-cased *title* contains any of *keywords*."""
    if not title or not keywords:
        return False
    lower_title = title.lower()
    return any(keyword in lower_title for keyword in keywords)


@dataclass
class InterestProfile:
    """Inferred interest: category labels and title keywords."""

    categories: set[str] = field(default_factory=set)
    keywords: set[str] = field(default_factory=set)

    @classmethod
    def from_listings(cls, listings: Iterable[Listing]) -> "InterestProfile":
        profile = cls()
        for listing in listings:
            category = (listing.category or "").strip()
            if category:
                profile.categories.add(category)
            extract_keywords(listing.title, profile.keywords)
        return profile

    def add_keyword(self, keyword: str) -> None:
        """Add a search keyword verbatim (lower-cased, not tokenised)."""
        keyword = keyword.strip().lower()
        if keyword:
            self.keywords.add(keyword)

    def matches(self, listing: Listing) -> bool:
        """Category membership or title keyword match."""
        if listing.category and listing.category in self.categories:
            return True
        return matches_keyword(listing.title, self.keywords)

    @property
    def is_empty(self) -> bool:
        return not self.categories and not self.keywords
