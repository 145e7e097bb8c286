"""Card catalog: sources, builder and grid layout."""

from .sources import CardSource, CustomWordsSource, DirectoryCardSource, MappingCardSource
from .builder import Catalog, CatalogBuilder, build_catalog, build_categories, merge_cards, walk_source
from .grid import GridPage, GridState, assemble_grid, clamp_page, home_slots, page_count, paginate

__all__ = [
    'CardSource',
    'CustomWordsSource',
    'DirectoryCardSource',
    'MappingCardSource',
    'Catalog',
    'CatalogBuilder',
    'build_catalog',
    'build_categories',
    'merge_cards',
    'walk_source',
    'GridPage',
    'GridState',
    'assemble_grid',
    'clamp_page',
    'home_slots',
    'page_count',
    'paginate',
]
