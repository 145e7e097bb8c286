"""Irregular verb and plural tables loaded from JSON files."""

import json
import os
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import aiofiles

from ..config import Config
from ..models.card import VerbForms
from ..utils.logger import setup_logger
from .morphology import get_verb_forms, suggest_plural

logger = setup_logger(__name__)


@dataclass
class OverrideTables:
    """
    Irregular verb and noun tables.

    ``verbs`` maps a lowercase base verb to ``{"past", "perfect", "negatives"}``;
    ``nouns`` maps a lowercase singular to its plural.
    """

    verbs: Dict[str, Any] = field(default_factory=dict)
    nouns: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_empty(self) -> bool:
        return not self.verbs and not self.nouns

    def plural(self, noun: str) -> str:
        return suggest_plural(noun, self.nouns)

    def verb_forms(self, verb: str) -> VerbForms:
        return get_verb_forms(verb, self.verbs)

    @classmethod
    async def load(cls, directory: Optional[str] = None) -> "OverrideTables":
        """
        Load both tables from ``directory`` (defaults to Config.OVERRIDES_DIR).

        A missing or malformed file gives an empty table.
        """
        directory = directory or Config.OVERRIDES_DIR
        verbs = await load_json_table(os.path.join(directory, Config.IRREGULAR_VERBS_FILE))
        nouns = await load_json_table(os.path.join(directory, Config.IRREGULAR_NOUNS_FILE))
        logger.info(f"Loaded {len(verbs)} irregular verbs, {len(nouns)} irregular nouns")
        return cls(verbs=verbs, nouns=nouns)


async def load_json_table(path: str) -> Dict[str, Any]:
    """
    Read a JSON object from disk.

    Args:
        path: File path

    Returns:
        Mapping with lowercased keys, or an empty dict on any problem
    """
    if not os.path.exists(path):
        logger.warning(f"Override table not found: {path}")
        return {}

    try:
        async with aiofiles.open(path, 'r', encoding='utf-8') as f:
            content = await f.read()
        data = json.loads(content)
    except (OSError, ValueError) as e:
        logger.warning(f"Could not read override table {path}: {e}")
        return {}

    if not isinstance(data, dict):
        logger.warning(f"Override table {path} is not a JSON object")
        return {}

    return {str(key).lower(): value for key, value in data.items()}
