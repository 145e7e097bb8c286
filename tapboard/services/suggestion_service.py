"""
Suggestion Service - next-word cards for the sentence being built.

External predictions are reconciled with the catalog (anything that is not
a card is dropped), topped up from the keyword fallback table and
deduplicated. Refreshes are last-request-wins: a new request cancels the
one in flight and a stale result is never published.
"""

import asyncio
from typing import Any, Callable, Iterable, List, Optional, Sequence

from ..config import Config, fallback_candidates
from ..errors import PredictionError, ResolutionMiss
from ..models.card import Card
from ..predictors.base import BaseSuggestionPredictor, ConversationMessage, now_millis
from ..utils.logger import setup_logger
from ..catalog.builder import Catalog

logger = setup_logger(__name__)


def resolve_words(words: Iterable[str], catalog: Catalog, ignored: Iterable[str] = ()) -> List[Card]:
    """
    Map words to catalog cards by label (case-insensitive).

    Words in ``ignored`` and words without a card are dropped.
    """
    skip = {word.strip().lower() for word in ignored}
    cards: List[Card] = []
    for word in words:
        key = (word or "").strip().lower()
        if not key or key in skip:
            continue
        card = catalog.by_label.get(key)
        if card is None:
            logger.debug(str(ResolutionMiss(f"No card for suggestion '{key}'")))
            continue
        cards.append(card)
    return cards


def merge_suggestions(
    sentence: str,
    external_ranked: Sequence[str],
    catalog: Catalog,
    ai_support: bool = True,
    ignored: Iterable[str] = (),
) -> List[Card]:
    """
    Combine external predictions with keyword fallbacks.

    Args:
        sentence: Sentence built so far
        external_ranked: Predictor output, best first
        catalog: Card catalog used for resolution
        ai_support: When False the external predictions are ignored
        ignored: Generic replies to drop from the external predictions

    Returns:
        Cards, external first, unique by card identity
    """
    if not sentence or not sentence.strip():
        return []

    cards: List[Card] = []
    if ai_support:
        cards.extend(resolve_words(external_ranked, catalog, ignored))
    cards.extend(resolve_words(fallback_candidates(sentence), catalog))

    seen = set()
    unique: List[Card] = []
    for card in cards:
        if card.identity_key in seen:
            continue
        seen.add(card.identity_key)
        unique.append(card)
    return unique


def build_conversation(history: Sequence[ConversationMessage], sentence: str) -> List[ConversationMessage]:
    """History sorted oldest first, ending with the current sentence."""
    ordered = sorted(history, key=lambda message: message.timestamp)
    latest = ordered[-1].timestamp if ordered else 0
    current = ConversationMessage(sentence, max(now_millis(), latest + 1))
    return ordered + [current]


class SuggestionService:
    """
    Reactive suggestion pipeline keyed on (sentence, ai_support).

    Example:
        service = SuggestionService(catalog, predictor, on_update=show)
        service.request("I am hungry", ai_support=True)
        cards = await service.wait()
    """

    def __init__(
        self,
        catalog: Catalog,
        predictor: Optional[BaseSuggestionPredictor] = None,
        ignored: Optional[Iterable[str]] = None,
        on_update: Optional[Callable[[List[Card]], Any]] = None,
    ):
        self.catalog = catalog
        self.predictor = predictor
        self.ignored = tuple(Config.IGNORED_REPLIES if ignored is None else ignored)
        self.on_update = on_update
        self.conversation: List[ConversationMessage] = []

        self._generation = 0
        self._task: Optional[asyncio.Task] = None
        self._latest: List[Card] = []
        self._latest_key: Optional[tuple] = None

    @property
    def latest(self) -> List[Card]:
        """Last published suggestions."""
        return list(self._latest)

    @property
    def latest_key(self) -> Optional[tuple]:
        """(sentence, ai_support) of the last published suggestions."""
        return self._latest_key

    @property
    def generation(self) -> int:
        return self._generation

    def set_catalog(self, catalog: Catalog) -> None:
        self.catalog = catalog

    def seed_conversation(self, messages: Iterable[ConversationMessage]) -> None:
        self.conversation = sorted(messages, key=lambda message: message.timestamp)

    def add_to_conversation(self, sentence: str, timestamp: Optional[int] = None) -> None:
        """Append a spoken sentence to the conversation."""
        if sentence and sentence.strip():
            self.conversation.append(ConversationMessage(sentence.strip(), timestamp or now_millis()))

    async def suggest(self, sentence: str, ai_support: bool = True) -> List[Card]:
        """Compute suggestions once, without cancellation bookkeeping."""
        if not sentence or not sentence.strip():
            return []

        external: List[str] = []
        if ai_support and self.predictor is not None:
            try:
                external = await self.predictor.predict(build_conversation(self.conversation, sentence))
            except PredictionError as e:
                logger.warning(f"Predictor failed, using fallback suggestions: {e}")
                external = []

        return merge_suggestions(sentence, external, self.catalog, ai_support, self.ignored)

    def request(self, sentence: str, ai_support: bool = True) -> asyncio.Task:
        """
        Start a refresh, superseding the one in flight.

        Must be called from a running event loop.
        """
        self._generation += 1
        generation = self._generation

        if self._task is not None and not self._task.done():
            self._task.cancel()

        key = (sentence, ai_support)
        self._task = asyncio.ensure_future(self._refresh(generation, key, sentence, ai_support))
        return self._task

    async def _refresh(self, generation: int, key: tuple, sentence: str, ai_support: bool) -> List[Card]:
        cards = await self.suggest(sentence, ai_support)
        if generation != self._generation:
            logger.debug(f"Discarding stale suggestions for '{sentence}'")
            return cards

        self._latest = cards
        self._latest_key = key
        if self.on_update:
            self.on_update(list(cards))
        return cards

    async def wait(self) -> List[Card]:
        """Wait for the newest request and return the published suggestions."""
        while self._task is not None:
            task = self._task
            try:
                await asyncio.shield(task)
            except asyncio.CancelledError:
                if task is self._task:
                    raise
            if task is self._task:
                break
        return self.latest

    async def close(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        if self.predictor is not None:
            await self.predictor.close()
