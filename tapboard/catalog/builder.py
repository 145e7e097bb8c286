"""
Card Catalog Builder
--------------------

Walks card sources into one deduplicated, immutable catalog and builds the
ordered category strip.
"""

import asyncio
from concurrent.futures import ThreadPoolExecutor
from types import MappingProxyType
from typing import Any, Callable, Dict, Iterable, Iterator, List, Mapping, Optional, Sequence, Tuple

from ..config import CATEGORY_PRIORITY, Config, category_key
from ..errors import PartialSourceFailure
from ..models.card import Card, Category
from ..utils.labels import LabelNormalizer
from ..utils.logger import setup_logger
from .sources import CardSource, join_path

logger = setup_logger(__name__)


class Catalog:
    """
    Immutable, ordered collection of unique cards.

    Lookups are built once. ``by_label`` and ``by_base_name`` keep the
    last card for a repeated key.
    """

    def __init__(self, cards: Iterable[Card] = ()):
        self._cards: Tuple[Card, ...] = tuple(merge_cards([list(cards)]))

        by_label: Dict[str, Card] = {}
        by_base: Dict[str, Card] = {}
        for card in self._cards:
            by_label[card.label.lower()] = card
            by_base[card.base_name] = card
        self._by_label = MappingProxyType(by_label)
        self._by_base = MappingProxyType(by_base)

    @property
    def cards(self) -> Tuple[Card, ...]:
        return self._cards

    @property
    def by_label(self) -> Mapping[str, Card]:
        """Lowercased label -> card."""
        return self._by_label

    @property
    def by_base_name(self) -> Mapping[str, Card]:
        """Lowercased, extension-free file name -> card."""
        return self._by_base

    def find_label(self, label: str) -> Optional[Card]:
        return self._by_label.get((label or "").strip().lower())

    def in_folder(self, prefix: str) -> List[Card]:
        """
        Cards whose folder starts with ``prefix`` (case-insensitive).

        Prefix matching means "noun" also selects a "nouns" folder.
        """
        key = category_key(prefix)
        return [card for card in self._cards if card.folder.lower().startswith(key)]

    def folders(self) -> List[str]:
        """Distinct folders in first-seen order."""
        seen: Dict[str, None] = {}
        for card in self._cards:
            seen.setdefault(card.folder, None)
        return list(seen)

    def __iter__(self) -> Iterator[Card]:
        return iter(self._cards)

    def __len__(self) -> int:
        return len(self._cards)

    def __getitem__(self, index):
        return self._cards[index]

    def __contains__(self, card: object) -> bool:
        return isinstance(card, Card) and any(c.identity_key == card.identity_key for c in self._cards)

    def __repr__(self) -> str:
        return f"Catalog({len(self._cards)} cards)"


def merge_cards(groups: Sequence[Sequence[Card]]) -> List[Card]:
    """
    Concatenate card groups, removing identity duplicates.

    A later card replaces an earlier one with the same identity but takes
    over its position.
    """
    merged: Dict[Tuple[str, str], Card] = {}
    for group in groups:
        for card in group:
            merged[card.identity_key] = card
    return list(merged.values())


def walk_source(source: CardSource) -> List[Card]:
    """
    Enumerate every image leaf of a source.

    Raises whatever the source raises; callers decide how to degrade.
    """
    cards: List[Card] = []

    def walk(path: str, top_group: Optional[str]) -> None:
        for name in source.list(path):
            full_path = join_path(path, name)
            children = source.list(full_path)
            if children:
                walk(full_path, top_group if top_group is not None else name)
            elif LabelNormalizer.is_image(name):
                cards.append(Card(
                    file_name=name,
                    label=source.label_for(name),
                    path=source.resolve_path(full_path),
                    folder=source.folder_for(path, top_group),
                ))

    for root in source.roots:
        walk(root, None)
    return cards


class CatalogBuilder:
    """Builds a :class:`Catalog` from an ordered list of sources."""

    # Thread pool for blocking enumeration
    _executor = ThreadPoolExecutor(max_workers=4)

    def __init__(
        self,
        sources: Sequence[CardSource],
        progress_callback: Optional[Callable[[Dict[str, Any]], None]] = None
    ):
        """
        Args:
            sources: Card sources; later sources win on identity collisions
            progress_callback: Optional callback.
                               Payload schema: {"event": "log"|"progress", "message": str, "value": float}
        """
        self.sources = list(sources)
        self.progress_callback = progress_callback
        self.failures: List[PartialSourceFailure] = []

    def _emit(self, event: str, message: str = "", value: float = 0.0) -> None:
        if self.progress_callback:
            self.progress_callback({"event": event, "message": message, "value": value})

    def _walk_safely(self, source: CardSource) -> List[Card]:
        try:
            return walk_source(source)
        except Exception as e:
            self._record_failure(source, e)
            return []

    def _record_failure(self, source: CardSource, error: BaseException) -> None:
        failure = PartialSourceFailure(source.name, error)
        self.failures.append(failure)
        logger.warning(str(failure))
        self._emit("log", str(failure))

    def build(self) -> Catalog:
        """Walk all sources in order and merge them."""
        self.failures = []
        groups = []
        for index, source in enumerate(self.sources, start=1):
            groups.append(self._walk_safely(source))
            self._emit("progress", source.name, 100.0 * index / max(len(self.sources), 1))
        return self._finish(groups)

    async def build_async(self) -> Catalog:
        """Walk all sources concurrently in the thread pool; merge order follows ``sources``."""
        self.failures = []
        loop = asyncio.get_event_loop()
        tasks = [loop.run_in_executor(self._executor, walk_source, source) for source in self.sources]
        results = await asyncio.gather(*tasks, return_exceptions=True)

        groups = []
        for source, result in zip(self.sources, results):
            if isinstance(result, BaseException):
                self._record_failure(source, result)
                groups.append([])
            else:
                groups.append(result)
        self._emit("progress", "done", 100.0)
        return self._finish(groups)

    def _finish(self, groups: List[List[Card]]) -> Catalog:
        catalog = Catalog(merge_cards(groups))
        logger.info(f"Catalog built: {len(catalog)} cards from {len(self.sources)} sources "
                    f"({len(self.failures)} failed)")
        return catalog


def build_catalog(sources: Sequence[CardSource]) -> Catalog:
    """Build a catalog synchronously; failing sources contribute nothing."""
    return CatalogBuilder(sources).build()


def build_categories(
    category_source: Optional[CardSource],
    user_categories: Iterable[Any] = (),
    default_icon: Optional[str] = None,
) -> List[Category]:
    """
    Build the ordered category strip.

    Icon files are read from every root of ``category_source`` and sorted by
    the fixed priority list; unknown ones follow in discovery order, then
    user categories. Labels are unique case-insensitively (first wins).

    Args:
        category_source: Source of category icon files (may be None)
        user_categories: Category objects or dicts with "name"/"label" and
                         optional "imagePath"/"path"
        default_icon: Icon for user categories without one

    Returns:
        Ordered categories
    """
    default_icon = default_icon or Config.CUSTOM_CATEGORY_ICON
    discovered: List[Category] = []

    if category_source is not None:
        try:
            for root in category_source.roots:
                for name in category_source.list(root):
                    if not LabelNormalizer.is_image(name):
                        continue
                    discovered.append(Category(
                        label=LabelNormalizer.trim_category_name(name),
                        path=category_source.resolve_path(join_path(root, name)),
                    ))
        except Exception as e:
            failure = PartialSourceFailure(category_source.name, e)
            logger.warning(str(failure))
            discovered = []

    def rank(indexed: Tuple[int, Category]) -> Tuple[int, int]:
        position, category = indexed
        try:
            return (CATEGORY_PRIORITY.index(category.key), position)
        except ValueError:
            return (len(CATEGORY_PRIORITY), position)

    ordered = [category for _, category in sorted(enumerate(discovered), key=rank)]

    for entry in user_categories:
        category = _as_category(entry, default_icon)
        if category is not None:
            ordered.append(category)

    seen = set()
    unique: List[Category] = []
    for category in ordered:
        if category.key in seen:
            continue
        seen.add(category.key)
        unique.append(category)
    return unique


def _as_category(entry: Any, default_icon: str) -> Optional[Category]:
    if isinstance(entry, Category):
        return entry if entry.path else Category(entry.label, default_icon)
    if isinstance(entry, Mapping):
        label = entry.get("name") or entry.get("label")
        if not label:
            return None
        path = entry.get("imagePath") or entry.get("path") or default_icon
        return Category(label=str(label), path=str(path))
    return None
