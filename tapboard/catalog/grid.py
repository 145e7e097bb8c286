"""
Grid Assembler
--------------

Turns a catalog into an ordered list of slots (a ``None`` slot is a blank
tile) and slices it into pages.
"""

from dataclasses import dataclass, field
from typing import FrozenSet, Iterable, List, Optional, Sequence

from ..config import (
    CUSTOM_VIEW,
    DEFAULT_VISIBLE_LEVELS,
    FAVOURITES_VIEW,
    HOME_VIEW,
    GridSize,
    category_key,
    get_dimensions,
    get_template,
)
from ..models.card import Card
from .builder import Catalog

Slots = List[Optional[Card]]


def assemble_grid(
    catalog: Catalog,
    category: Optional[str],
    visible_levels: Iterable[str],
    grid_size=GridSize.MEDIUM,
    favourites: Sequence[Card] = (),
) -> Slots:
    """
    Lay out the slots for one view.

    Args:
        catalog: Merged card catalog
        category: Category key; None, "" or "home" selects the home template
        visible_levels: Levels the user wants to see
        grid_size: GridSize or size name
        favourites: Current favourite cards (used by the favourites view)

    Returns:
        Slots in display order
    """
    levels = frozenset(visible_levels or DEFAULT_VISIBLE_LEVELS)
    key = category_key(category or "")

    if key in ("", HOME_VIEW):
        return home_slots(catalog, levels, grid_size)
    if key == FAVOURITES_VIEW:
        return [card for card in favourites if card.is_visible(levels)]
    if key == CUSTOM_VIEW:
        return [card for card in catalog.in_folder(CUSTOM_VIEW) if card.is_visible(levels)]

    return [card if card.is_visible(levels) else None for card in catalog.in_folder(key)]


def home_slots(catalog: Catalog, levels: FrozenSet[str], grid_size=GridSize.MEDIUM) -> Slots:
    """Fill the curated template; keys without a visible card stay blank."""
    slots: Slots = []
    for key in get_template(grid_size):
        if key is None:
            slots.append(None)
            continue
        card = catalog.by_base_name.get(key.lower())
        slots.append(card if card is not None and card.is_visible(levels) else None)
    return slots


def page_count(slots: Sequence[Optional[Card]], per_page: int) -> int:
    """Number of pages needed for the non-blank slots (at least 1)."""
    filled = sum(1 for slot in slots if slot is not None)
    if filled == 0 or per_page <= 0:
        return 1
    return (filled + per_page - 1) // per_page


def clamp_page(page: int, count: int) -> int:
    if page >= count:
        return max(count - 1, 0)
    return max(page, 0)


def paginate(slots: Sequence[Optional[Card]], rows: int, cols: int, page: int) -> Slots:
    """
    Get one page of slots.

    Out-of-range pages clamp to the last page.
    """
    per_page = rows * cols
    page = clamp_page(page, page_count(slots, per_page))
    return list(slots[page * per_page:(page + 1) * per_page])


@dataclass
class GridPage:
    """One rendered page of the board."""
    slots: Slots
    page: int
    page_count: int
    rows: int
    cols: int

    @property
    def has_previous(self) -> bool:
        return self.page > 0

    @property
    def has_next(self) -> bool:
        return self.page < self.page_count - 1


@dataclass
class GridState:
    """
    Current view selection and page.

    Changing the category, grid size or visible levels resets the page.
    """

    category: Optional[str] = None
    grid_size: GridSize = GridSize.MEDIUM
    visible_levels: FrozenSet[str] = field(default_factory=lambda: frozenset(DEFAULT_VISIBLE_LEVELS))
    page: int = 0

    def select_category(self, category: Optional[str]) -> None:
        if category_key(category or "") != category_key(self.category or ""):
            self.category = category
            self.page = 0

    def set_grid_size(self, grid_size) -> None:
        size = GridSize.parse(grid_size)
        if size is not self.grid_size:
            self.grid_size = size
            self.page = 0

    def set_visible_levels(self, levels: Iterable[str]) -> None:
        levels = frozenset(levels or DEFAULT_VISIBLE_LEVELS)
        if levels != self.visible_levels:
            self.visible_levels = levels
            self.page = 0

    def next_page(self) -> None:
        self.page += 1

    def previous_page(self) -> None:
        self.page = max(self.page - 1, 0)

    def render(self, catalog: Catalog, favourites: Sequence[Card] = ()) -> GridPage:
        """Assemble, clamp the stored page and slice."""
        rows, cols = get_dimensions(self.grid_size)
        slots = assemble_grid(catalog, self.category, self.visible_levels, self.grid_size, favourites)
        count = page_count(slots, rows * cols)
        self.page = clamp_page(self.page, count)
        return GridPage(
            slots=paginate(slots, rows, cols, self.page),
            page=self.page,
            page_count=count,
            rows=rows,
            cols=cols,
        )
