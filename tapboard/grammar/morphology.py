"""
Morphology Engine
-----------------

Rule-based plural, verb-form and negation helpers. Everything here is
pure: callers pass in the override tables loaded by
:class:`tapboard.grammar.overrides.OverrideTables` (or plain dicts).
"""

from typing import Any, Dict, List, Mapping, Optional

from ..config import Config
from ..errors import InvalidOverrideData
from ..models.card import VerbForms
from ..utils.logger import setup_logger

logger = setup_logger(__name__)

VOWELS = "aeiou"
SIBILANT_ENDINGS = ("s", "x", "z", "ch", "sh")

# Hardcoded irregulars, checked before any override table
SPECIAL_VERBS: Dict[str, VerbForms] = {
    "be": VerbForms(
        base="be",
        past="was/were",
        perfect="been",
        negatives=("am not", "is not", "are not", "was not", "were not"),
    ),
    "have": VerbForms(
        base="have",
        past="had",
        perfect="had",
        negatives=("don’t have", "doesn’t have", "didn’t have"),
    ),
    "will": VerbForms(
        base="will",
        past="would",
        perfect="would have",
        negatives=("won’t", "will not"),
    ),
}

PRESENT_VARIANTS: Dict[str, tuple] = {
    "be": ("am", "is", "are"),
    "have": ("have", "has"),
}

# Priority order; the first tier with a matching marker wins
NEGATION_TIERS = (
    ("future", ("won't", "will not")),
    ("perfect", ("haven", "hasn", "hadn")),
    ("past", ("didn", "wasn", "weren")),
    ("present", ("don'", "doesn", "isn", "aren")),
)
DEFAULT_NEGATION = "present"


def suggest_plural(noun: str, overrides: Optional[Mapping[str, Any]] = None) -> str:
    """
    Get the plural of a noun.

    Args:
        noun: Singular noun (any case)
        overrides: Lowercase singular -> plural table

    Returns:
        The stored override verbatim, otherwise the lowercased rule result
    """
    lower = (noun or "").lower()
    if not lower:
        return ""

    if overrides and lower in overrides:
        try:
            return _read_plural(lower, overrides[lower])
        except InvalidOverrideData as e:
            logger.debug(f"Ignoring plural override: {e}")

    if lower.endswith("y") and len(lower) > 1 and lower[-2] not in VOWELS:
        return lower[:-1] + "ies"
    if lower.endswith(SIBILANT_ENDINGS):
        return lower + "es"
    return lower + "s"


def get_verb_forms(verb: str, overrides: Optional[Mapping[str, Any]] = None) -> VerbForms:
    """
    Get past, perfect and negative forms of a verb.

    Lookup order: special irregulars (be, have, will), then ``overrides``,
    then the regular "+ed" rule. A malformed override field falls back to
    its default while the valid fields are kept.
    """
    base = (verb or "").strip().lower()
    if base in SPECIAL_VERBS:
        return SPECIAL_VERBS[base]

    regular = base + "ed"
    if not overrides or base not in overrides:
        return VerbForms(base=base, past=regular, perfect=regular)

    entry = overrides[base]
    if not isinstance(entry, Mapping):
        logger.debug(f"Ignoring verb override for '{base}': entry is not an object")
        return VerbForms(base=base, past=regular, perfect=regular)

    past = _field_or_default(base, entry, "past", str, regular)
    perfect = _field_or_default(base, entry, "perfect", str, past)
    negatives = _field_or_default(base, entry, "negatives", list, [])
    if not all(isinstance(item, str) for item in negatives):
        logger.debug(f"Ignoring non-text negatives for '{base}'")
        negatives = [item for item in negatives if isinstance(item, str)]

    return VerbForms(base=base, past=past, perfect=perfect, negatives=tuple(negatives))


def present_variants(verb: str) -> List[str]:
    """Present-tense variants shown alongside the verb forms (be, have only)."""
    return list(PRESENT_VARIANTS.get((verb or "").strip().lower(), ()))


def negative_icon_for(phrase: str) -> str:
    """
    Pick the negation icon key for a negative phrase.

    Returns one of "future", "perfect", "past" or "present".
    """
    text = (phrase or "").lower().replace("’", "'")
    for key, markers in NEGATION_TIERS:
        if any(marker in text for marker in markers):
            return key
    return DEFAULT_NEGATION


def negative_icon_path(key: str, base: Optional[str] = None) -> str:
    """Resolve an icon key into the asset path of its tense icon."""
    base = Config.NEGATION_ICON_BASE if base is None else base
    return f"{base}negative_{key}.png"


def _read_plural(noun: str, value: Any) -> str:
    if not isinstance(value, str) or not value:
        raise InvalidOverrideData(f"plural for '{noun}' must be a non-empty string")
    return value


def _read_field(verb: str, entry: Mapping[str, Any], name: str, kind: type):
    value = entry[name]
    if not isinstance(value, kind):
        raise InvalidOverrideData(f"'{name}' for '{verb}' must be {kind.__name__}")
    return value


def _field_or_default(verb: str, entry: Mapping[str, Any], name: str, kind: type, default):
    if name not in entry:
        return default
    try:
        return _read_field(verb, entry, name, kind)
    except InvalidOverrideData as e:
        logger.debug(f"Using default {name}: {e}")
        return default
