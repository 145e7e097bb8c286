"""
Category Configuration
----------------------

Fixed category ordering for the category strip and the table mapping a
category (or a label) to its long-press behavior.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional, Tuple


class CategoryBehavior(Enum):
    """What a long press on a card in this category does."""
    PLAIN = "plain"             # add the card as-is
    PLURAL = "plural"           # add the plural form
    VERB_FORMS = "verb_forms"   # open the verb forms picker


# Special view keys with their own slot rules
HOME_VIEW = "home"
FAVOURITES_VIEW = "favourites"
CUSTOM_VIEW = "custom"

# Strip order; anything not listed is appended in discovery order
CATEGORY_PRIORITY: Tuple[str, ...] = (
    "home",
    "favourites",
    "custom",
    "emergency",
    "social",
    "questions",
    "pronouns",
    "verbs",
    "adjective",
    "adverb",
    "prepositions",
    "conjuction",
    "determiners",
    "negation",
)

CATEGORY_BEHAVIORS: Dict[str, CategoryBehavior] = {
    "noun": CategoryBehavior.PLURAL,
    "nouns": CategoryBehavior.PLURAL,
    "verbs": CategoryBehavior.VERB_FORMS,
}

# Labels that behave like verbs wherever they live
LABEL_BEHAVIORS: Dict[str, CategoryBehavior] = {
    "will": CategoryBehavior.VERB_FORMS,
}


@dataclass(frozen=True)
class CategoryRule:
    """Resolved behavior for a single card."""
    behavior: CategoryBehavior
    source: str  # "label", "folder" or "default"


def category_key(label: str) -> str:
    """Lowercased key used for matching a category label."""
    return (label or "").strip().lower()


def priority_index(key: str) -> Optional[int]:
    """Position of a category key in the fixed order, or None."""
    key = category_key(key)
    try:
        return CATEGORY_PRIORITY.index(key)
    except ValueError:
        return None


def resolve_behavior(folder: str, label: str = "") -> CategoryRule:
    """
    Look up the long-press behavior for a card.

    Label rules win over folder rules; anything unknown is PLAIN.
    """
    label_key = category_key(label)
    if label_key in LABEL_BEHAVIORS:
        return CategoryRule(LABEL_BEHAVIORS[label_key], "label")

    folder_key = category_key(folder)
    if folder_key in CATEGORY_BEHAVIORS:
        return CategoryRule(CATEGORY_BEHAVIORS[folder_key], "folder")

    return CategoryRule(CategoryBehavior.PLAIN, "default")
