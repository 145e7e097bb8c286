"""Configuration module for TapBoard."""

from .settings import Config
from .grid import (
    ALL_LEVELS,
    DEFAULT_VISIBLE_LEVELS,
    GRID_DIMENSIONS,
    GRID_TEMPLATES,
    GridSize,
    get_dimensions,
    get_per_page,
    get_template,
)
from .categories import (
    CATEGORY_PRIORITY,
    CUSTOM_VIEW,
    FAVOURITES_VIEW,
    HOME_VIEW,
    CategoryBehavior,
    CategoryRule,
    category_key,
    priority_index,
    resolve_behavior,
)
from .suggestions import KEYWORD_TRIGGERS, fallback_candidates

__all__ = [
    'Config',
    'ALL_LEVELS',
    'DEFAULT_VISIBLE_LEVELS',
    'GRID_DIMENSIONS',
    'GRID_TEMPLATES',
    'GridSize',
    'get_dimensions',
    'get_per_page',
    'get_template',
    'CATEGORY_PRIORITY',
    'CUSTOM_VIEW',
    'FAVOURITES_VIEW',
    'HOME_VIEW',
    'CategoryBehavior',
    'CategoryRule',
    'category_key',
    'priority_index',
    'resolve_behavior',
    'KEYWORD_TRIGGERS',
    'fallback_candidates',
]
