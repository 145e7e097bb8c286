"""
Tests for the suggestion merger and the suggestion service.

Tests cover:
- Resolving predictions against the catalog
- Keyword fallbacks
- Conversation ordering
- Degrading when the predictor fails
- Last-request-wins refreshes
"""

import asyncio

from tapboard.config import fallback_candidates
from tapboard.predictors import ConversationMessage, now_millis
from tapboard.services import SuggestionService, merge_suggestions, resolve_words
from tapboard.services.suggestion_service import build_conversation

from conftest import FakePredictor

IGNORED = ("nice", "ok", "okay", "thanks")


def _labels(cards):
    return [card.label for card in cards]


class TestFallbackTable:
    """Test keyword triggers."""

    def test_first_tier_only(self):
        assert fallback_candidates("I am hungry and tired") == ["eat", "food", "water", "drink"]

    def test_case_insensitive(self):
        assert fallback_candidates("SLEEP now") == ["sleep", "bed", "rest"]

    def test_no_trigger(self):
        assert fallback_candidates("I want") == []


class TestMergeSuggestions:
    """Test merging external predictions with fallbacks."""

    def test_external_first_then_fallback(self, catalog):
        cards = merge_suggestions("I am hungry", ["drink", "pizza", "ok", "Eat"], catalog, ignored=IGNORED)
        assert _labels(cards) == ["Drink", "Eat", "Food", "Water"]

    def test_blank_sentence(self, catalog):
        assert merge_suggestions("   ", ["eat"], catalog) == []

    def test_unresolved_words_dropped(self, catalog):
        assert merge_suggestions("I want", ["pizza", "juice"], catalog) == []

    def test_unresolved_fallbacks_dropped(self, catalog):
        assert _labels(merge_suggestions("so tired", [], catalog)) == ["Sleep"]

    def test_ai_support_off_uses_fallback_only(self, catalog):
        assert _labels(merge_suggestions("I am hungry", ["go"], catalog, ai_support=False)) == \
            ["Eat", "Food", "Water", "Drink"]

    def test_ignored_replies_dropped(self, catalog):
        assert resolve_words(["Thanks", "hello"], catalog, IGNORED) == [catalog.find_label("hello")]


class TestBuildConversation:
    """Test conversation ordering."""

    def test_sorted_and_current_last(self):
        history = [ConversationMessage("b", 2000), ConversationMessage("a", 1000)]

        conversation = build_conversation(history, "c")

        assert [m.text for m in conversation] == ["a", "b", "c"]
        assert conversation[-1].timestamp >= now_millis() - 1000

    def test_current_after_future_timestamps(self):
        future = now_millis() + 10_000_000
        conversation = build_conversation([ConversationMessage("later", future)], "now")
        assert conversation[-1].timestamp == future + 1


class TestSuggestionService:
    """Test the reactive suggestion service."""

    def test_suggest_uses_predictor(self, catalog):
        predictor = FakePredictor(replies=["water"])
        service = SuggestionService(catalog, predictor)
        service.seed_conversation([ConversationMessage("hello", 2), ConversationMessage("hi there", 1)])

        cards = asyncio.run(service.suggest("I want"))

        assert _labels(cards) == ["Water"]
        assert [m.text for m in predictor.histories[0]] == ["hi there", "hello", "I want"]

    def test_predictor_failure_degrades(self, catalog):
        service = SuggestionService(catalog, FakePredictor(error="rate limited"))
        assert _labels(asyncio.run(service.suggest("I am thirsty"))) == ["Drink", "Water", "Cup"]

    def test_ai_support_off_skips_predictor(self, catalog):
        predictor = FakePredictor(replies=["water"])
        service = SuggestionService(catalog, predictor)

        assert asyncio.run(service.suggest("I want", ai_support=False)) == []
        assert predictor.histories == []

    def test_add_to_conversation(self, catalog):
        service = SuggestionService(catalog)
        service.add_to_conversation("  I am happy ", timestamp=5)
        service.add_to_conversation("   ")
        assert [(m.text, m.timestamp) for m in service.conversation] == [("I am happy", 5)]

    def test_last_request_wins(self, catalog):
        predictor = FakePredictor(
            replies={"I am hungry": ["food"], "I am tired": ["sleep"]},
            delays={"I am hungry": 0.05},
        )
        published = []
        service = SuggestionService(catalog, predictor, on_update=published.append)

        async def scenario():
            first = service.request("I am hungry")
            service.request("I am tired")
            cards = await service.wait()
            return first, cards

        first, cards = asyncio.run(scenario())

        assert first.cancelled()
        assert _labels(cards) == ["Sleep"]
        assert [_labels(update) for update in published] == [["Sleep"]]
        assert service.latest_key == ("I am tired", True)
        assert service.generation == 2

    def test_close_closes_predictor(self, catalog):
        predictor = FakePredictor()
        service = SuggestionService(catalog, predictor)
        asyncio.run(service.close())
        assert predictor.closed
