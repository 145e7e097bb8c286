"""Utils module."""

from .labels import (
    LabelNormalizer,
    capitalize_first,
    normalize_file_name,
    parse_level,
    trim_category_name,
)
from .locks import KeyedLock
from .logger import setup_logger

__all__ = [
    'LabelNormalizer',
    'capitalize_first',
    'normalize_file_name',
    'parse_level',
    'trim_category_name',
    'KeyedLock',
    'setup_logger'
]
