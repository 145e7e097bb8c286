"""Grammar helpers: plurals, verb forms, negations."""

from .morphology import (
    SPECIAL_VERBS,
    get_verb_forms,
    negative_icon_for,
    negative_icon_path,
    present_variants,
    suggest_plural,
)
from .overrides import OverrideTables, load_json_table

__all__ = [
    'SPECIAL_VERBS',
    'get_verb_forms',
    'negative_icon_for',
    'negative_icon_path',
    'present_variants',
    'suggest_plural',
    'OverrideTables',
    'load_json_table',
]
