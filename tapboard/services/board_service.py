"""
Board Service - one user's board session.

Loads the catalog, categories, settings, override tables and history, then
answers the interactions of a board screen: browsing categories and pages,
building a sentence from cards, long-press grammar helpers, favourites and
suggestions.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from ..catalog.builder import Catalog, CatalogBuilder, build_categories
from ..catalog.grid import GridPage, GridState
from ..catalog.sources import CardSource
from ..config import CategoryBehavior, Config, resolve_behavior
from ..grammar.morphology import negative_icon_for, negative_icon_path, present_variants
from ..grammar.overrides import OverrideTables
from ..models.card import Card, Category, VerbForms
from ..models.settings import UserGridSettings
from ..predictors.base import BaseSuggestionPredictor, ConversationMessage
from ..utils.labels import capitalize_first
from ..utils.logger import setup_logger
from .suggestion_service import SuggestionService
from .sync_service import SyncService

logger = setup_logger(__name__)


@dataclass
class VerbFormsView:
    """Everything the verb forms picker shows for one card."""
    card: Card
    forms: VerbForms
    main_forms: List[Tuple[str, str]]
    present: List[str]
    negatives: List[Tuple[str, str]]  # (phrase, icon path)


@dataclass
class LongPressResult:
    """Outcome of a long press: a card was added, or a picker should open."""
    behavior: CategoryBehavior
    added: Optional[Card] = None
    verb_forms: Optional[VerbFormsView] = None


@dataclass
class BoardState:
    """Loaded session data."""
    is_loading: bool = True
    owner_id: Optional[str] = None
    catalog: Catalog = field(default_factory=Catalog)
    categories: List[Category] = field(default_factory=list)
    favourites: List[Card] = field(default_factory=list)
    settings: UserGridSettings = field(default_factory=UserGridSettings)
    overrides: OverrideTables = field(default_factory=OverrideTables)


class BoardService:
    """
    Board session façade.

    Usage:
        board = BoardService(sources, category_source, sync, predictor)
        await board.load()
        page = board.render()
        board.tap(page.slots[0])
        cards = await board.suggestions()
    """

    def __init__(
        self,
        sources: Sequence[CardSource],
        category_source: Optional[CardSource],
        sync: SyncService,
        predictor: Optional[BaseSuggestionPredictor] = None,
        overrides_dir: Optional[str] = None,
        event_callback: Optional[Callable[[Dict[str, Any]], None]] = None,
    ):
        """
        Args:
            sources: Card sources, later ones win on collisions
            category_source: Source of category icons
            sync: Sync service for the signed-in user
            predictor: External next-word predictor (optional)
            overrides_dir: Directory of the irregular verb/noun tables
            event_callback: Optional callback.
                            Payload schema: {"event": "favourite_toggled"|"error", "message": str, "added": bool}
        """
        self.sources = list(sources)
        self.category_source = category_source
        self.sync = sync
        self.overrides_dir = overrides_dir
        self.event_callback = event_callback

        self.state = BoardState(owner_id=sync.owner_id)
        self.grid = GridState()
        self.sentence: List[Card] = []
        self.suggestion_service = SuggestionService(self.state.catalog, predictor)

    def _emit(self, event: str, message: str = "", **extra) -> None:
        if self.event_callback:
            self.event_callback({"event": event, "message": message, **extra})

    # ==================== Loading ====================

    async def load(self) -> BoardState:
        """Load everything the board needs."""
        self.state.is_loading = True

        catalog = await CatalogBuilder(self.sources).build_async()
        user_categories = await self.sync.list_categories()
        settings = await self.sync.load_settings()
        overrides = await OverrideTables.load(self.overrides_dir)
        history = await self.sync.recent_history()
        await self.sync.push_history()

        self.state.catalog = catalog
        self.state.categories = build_categories(self.category_source, user_categories)
        self.state.overrides = overrides
        self._apply_settings(settings)

        self.suggestion_service.set_catalog(catalog)
        self.suggestion_service.seed_conversation(
            ConversationMessage(entry.sentence, entry.timestamp) for entry in history
        )

        self.state.is_loading = False
        logger.info(f"Board loaded: {len(catalog)} cards, {len(self.state.categories)} categories")
        return self.state

    def _apply_settings(self, settings: UserGridSettings) -> None:
        self.state.settings = settings
        self.grid.set_grid_size(settings.grid_size)
        self.grid.set_visible_levels(settings.visible_levels)

    async def update_settings(self, settings: UserGridSettings) -> bool:
        """Apply new settings and persist them. Returns True when synced."""
        self._apply_settings(settings)
        return await self.sync.save_settings(settings)

    # ==================== Grid ====================

    async def select_category(self, category: Optional[str]) -> GridPage:
        """Switch the grid to a category (None or "home" for the home view)."""
        self.grid.select_category(category)
        if (category or "").strip().lower() == "favourites":
            await self.refresh_favourites()
        return self.render()

    def next_page(self) -> GridPage:
        self.grid.next_page()
        return self.render()

    def previous_page(self) -> GridPage:
        self.grid.previous_page()
        return self.render()

    def render(self) -> GridPage:
        return self.grid.render(self.state.catalog, self.state.favourites)

    # ==================== Sentence ====================

    @property
    def sentence_text(self) -> str:
        return " ".join(card.label for card in self.sentence)

    def _add(self, card: Card) -> bool:
        if len(self.sentence) >= Config.MAX_SENTENCE_CARDS:
            return False
        self.sentence.append(card)
        return True

    def tap(self, card: Card) -> bool:
        """Add a card to the sentence. Returns False when the bar is full."""
        return self._add(card)

    def long_press(self, card: Card) -> LongPressResult:
        """
        Apply the card's long-press behavior.

        Nouns add their plural, verbs (and "will") open the forms picker,
        everything else is added as-is.
        """
        behavior = resolve_behavior(card.folder, card.label).behavior

        if behavior is CategoryBehavior.PLURAL:
            plural = card.with_label(capitalize_first(self.state.overrides.plural(card.label)))
            return LongPressResult(behavior, added=plural if self._add(plural) else None)

        if behavior is CategoryBehavior.VERB_FORMS:
            return LongPressResult(behavior, verb_forms=self.verb_forms(card))

        return LongPressResult(behavior, added=card if self._add(card) else None)

    def verb_forms(self, card: Card) -> VerbFormsView:
        forms = self.state.overrides.verb_forms(card.label)
        return VerbFormsView(
            card=card,
            forms=forms,
            main_forms=forms.main_forms(),
            present=present_variants(forms.base),
            negatives=[(phrase, negative_icon_path(negative_icon_for(phrase))) for phrase in forms.negatives],
        )

    def add_word(self, card: Card, text: str) -> bool:
        """Add a chosen verb form (or any text) using the card's image."""
        return self._add(card.with_label(text))

    def remove_at(self, index: int) -> None:
        if 0 <= index < len(self.sentence):
            del self.sentence[index]

    def clear_sentence(self) -> None:
        self.sentence.clear()

    async def speak_sentence(self) -> str:
        """
        Record the current sentence as spoken.

        Returns the sentence text (playback is up to the caller).
        """
        text = self.sentence_text
        if not text.strip():
            return ""
        await self.sync.record_sentence(text)
        if self.state.settings.ai_support:
            self.suggestion_service.add_to_conversation(text)
        return text

    # ==================== Suggestions ====================

    def refresh_suggestions(self):
        """Request suggestions for the current sentence (last request wins)."""
        return self.suggestion_service.request(self.sentence_text, self.state.settings.ai_support)

    async def suggestions(self) -> List[Card]:
        self.refresh_suggestions()
        return await self.suggestion_service.wait()

    # ==================== Favourites ====================

    async def refresh_favourites(self) -> List[Card]:
        self.state.favourites = await self.sync.refresh_favourites()
        return self.state.favourites

    async def toggle_favourite(self, card: Card) -> bool:
        """Add or remove a favourite, then reload the favourites list."""
        if self.sync.owner_id is None:
            self._emit("error", "User not logged in", added=False)
            return False
        added = await self.sync.toggle_favourite(card)
        await self.refresh_favourites()
        self._emit("favourite_toggled", card.label, added=added)
        return added

    def is_favourite(self, card: Card) -> bool:
        return any(fav.label == card.label for fav in self.state.favourites)

    async def close(self) -> None:
        await self.suggestion_service.close()
        if self.sync.remote is not None:
            await self.sync.remote.close()
