"""TapBoard - AAC communication board engine"""

__version__ = "1.0.0"
__author__ = "TapBoard Team"

from .config import Config, GridSize
from .models import Card, Category, UserGridSettings, VerbForms
from .catalog import Catalog, CatalogBuilder, GridState, assemble_grid, build_catalog, paginate
from .grammar import OverrideTables, get_verb_forms, negative_icon_for, suggest_plural
from .services import BoardService, SuggestionService, SyncService, merge_suggestions
from .utils import normalize_file_name

__all__ = [
    'Config',
    'GridSize',
    'Card',
    'Category',
    'UserGridSettings',
    'VerbForms',
    'Catalog',
    'CatalogBuilder',
    'GridState',
    'assemble_grid',
    'build_catalog',
    'paginate',
    'OverrideTables',
    'get_verb_forms',
    'negative_icon_for',
    'suggest_plural',
    'BoardService',
    'SuggestionService',
    'SyncService',
    'merge_suggestions',
    'normalize_file_name',
]
