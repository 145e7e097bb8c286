"""
Grid Configuration
------------------

Grid sizes, their fixed dimensions, and the curated home-view templates.
Templates are hand-ordered constants: a ``None`` entry is a blank tile kept
for layout symmetry and must never be filled.
"""

from enum import Enum
from typing import Dict, Optional, Tuple


class GridSize(Enum):
    """Supported board sizes."""
    SMALL = "Small"
    MEDIUM = "Medium"
    LARGE = "Large"

    @classmethod
    def parse(cls, value) -> "GridSize":
        """Parse a stored size name; unknown values fall back to Medium."""
        if isinstance(value, GridSize):
            return value
        for size in cls:
            if str(value or "").strip().lower() == size.value.lower():
                return size
        return cls.MEDIUM


# (rows, cols)
GRID_DIMENSIONS: Dict[GridSize, Tuple[int, int]] = {
    GridSize.SMALL: (5, 9),
    GridSize.MEDIUM: (6, 11),
    GridSize.LARGE: (7, 13),
}


SMALL_TEMPLATE: Tuple[Optional[str], ...] = (
    "what_A1", "I_A1", "we_A1", "come_A1", "child_A1", "place_A1", "hand_A1", "good_A1", "bad_A1",
    "how_A1", "you_A1", "they_A1", "do_A1", "man_A1", "house_A1", "bathroom_A1", "thirsty_A2", "hungry_A1",
    "why_A1", "he_A1", "be_A1", "get_A1", "woman_A1", "school_A1", "food_A1", "happy_A1", "sad_A1",
    "where_A1", "she_A1", "have_A1", "go_B1", "friend_A1", "job_A1", "water_A1", "tired_A1", "calm_B1",
    "who_A1", "yes_A1", "no_A1", "hello_A1", "good_morning_A1", "bye_A1", "thanks_A1", "please_A1", "to_A1",
    None, None, None, None, None, None, None, None, None,
)

MEDIUM_TEMPLATE: Tuple[Optional[str], ...] = (
    "what_A1", "I_A1", "it_A1", "have_A1", "know_A1", "child_A1", "place_A1", "time_A1", "hand_A1", "good_A1", "bad_A1",
    "how_A1", "you_A1", "we_A1", "come_A1", "make_A1", "man_A1", "world_A1", "year_A1", "thing_A1", "thirsty_A2", "hungry_A1",
    "why_A1", "he_A1", "they_A1", "do_A1", "say_A1", "woman_A1", "house_A1", "week_A1", "bathroom_A1", "happy_A1", "sad_A1",
    "where_A1", "she_A1", "be_A1", "get_A1", "see_A1", "person_A1", "school_A1", "life_A1", "food_A1", "tired_A1", "calm_B1",
    "who_A1", "yes_A1", "no_A1", "go_B1", "create_A1", "friend_A1", "job_A1", "family_A1", "water_A1", "and_A1", "or_A1",
    "when_A1", "a_A1", "an_A1", "the_A1", "hello_A1", "good_morning_A1", "bye_A1", "thanks_A1", "please_A1", "to_A1", "of_A1",
    None, None, None, None, None, None, None, None, None, None, None,
)

LARGE_TEMPLATE: Tuple[Optional[str], ...] = (
    "what_A1", "I_A1", "it_A1", "have_A1", "know_A1", "eat_A1", "child_A1", "place_A1", "time_A1", "hand_A1", "good_A1", "bad_A1", "boring_A1",
    "how_A1", "you_A1", "we_A1", "come_A1", "make_A1", "drink_A1", "man_A1", "world_A1", "year_A1", "thing_A1", "thirsty_A2", "hungry_A1", "wrong_A1",
    "why_A1", "he_A1", "they_A1", "do_A1", "say_A1", "think_A1", "woman_A1", "house_A1", "week_A1", "bathroom_A1", "happy_A1", "sad_A1", "funny_A1",
    "where_A1", "she_A1", "be_A1", "get_A1", "see_A1", "study_A2", "person_A1", "school_A1", "life_A1", "food_A1", "tired_A1", "calm_B1", "polite_A2",
    "who_A1", "my_A1", "your_A1", "go_B1", "create_A1", "will_A1", "friend_A1", "job_A1", "family_A1", "water_A1", "beautiful_A1", "pretty_A1", "brilliant_A2",
    "when_A1", "yes_A1", "no_A1", "hello_A1", "good_morning_A1", "bye_A1", "thanks_A1", "please_A1", "sorry_A1", "great_A1", "and_A1", "or_A1", "because_A1",
    "whose_A1", "a_A1", "an_A1", "the_A1", "toothache_A2", "backache_B1", "headache_A1", "ache_B1", "dizzy_A2", "sore_B1", "to_A1", "of_A1", "from_A1",
    None, None, None, None, None, None, None, None, None, None, None,
)

GRID_TEMPLATES: Dict[GridSize, Tuple[Optional[str], ...]] = {
    GridSize.SMALL: SMALL_TEMPLATE,
    GridSize.MEDIUM: MEDIUM_TEMPLATE,
    GridSize.LARGE: LARGE_TEMPLATE,
}

ALL_LEVELS: Tuple[str, ...] = ("A1", "A2", "B1", "B2", "C1", "C2")
DEFAULT_VISIBLE_LEVELS: Tuple[str, ...] = ("A1", "A2", "B1")


def get_dimensions(size) -> Tuple[int, int]:
    """Get (rows, cols) for a grid size or size name."""
    return GRID_DIMENSIONS[GridSize.parse(size)]


def get_per_page(size) -> int:
    rows, cols = get_dimensions(size)
    return rows * cols


def get_template(size) -> Tuple[Optional[str], ...]:
    """Get the curated home template for a grid size or size name."""
    return GRID_TEMPLATES[GridSize.parse(size)]
